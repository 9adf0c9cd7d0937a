import logging
import re
from datetime import date
from typing import Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from .models import GroceryItem, MealPlan, PantryItem

logger = logging.getLogger(__name__)

# First match wins.
SECTION_RULES = [
    (
        "Produce",
        re.compile(
            r"lettuce|tomato|onion|garlic|pepper|carrot|celery|broccoli|spinach|kale|cucumber"
            r"|zucchini|squash|potato|mushroom|avocado|lemon|lime|orange|apple|banana|berry"
            r"|fruit|vegetable",
            re.I,
        ),
    ),
    (
        "Meat",
        re.compile(
            r"chicken|beef|pork|turkey|fish|salmon|shrimp|bacon|sausage|meat|steak|ground", re.I
        ),
    ),
    ("Dairy", re.compile(r"milk|cheese|yogurt|cream|butter|egg|sour cream", re.I)),
    ("Bakery", re.compile(r"bread|bagel|roll|tortilla|bun|muffin|croissant", re.I)),
    ("Frozen", re.compile(r"frozen|ice cream", re.I)),
    ("Canned", re.compile(r"can |canned|beans|soup|tomato sauce|paste", re.I)),
    (
        "Pantry",
        re.compile(
            r"rice|pasta|flour|sugar|oil|vinegar|sauce|spice|seasoning|salt|pepper|honey|syrup",
            re.I,
        ),
    ),
]
DEFAULT_SECTION = "Other"

_LEADING_NUMBER = re.compile(r"^\s*[-+]?(?:\d+(?:\.\d*)?|\.\d+)")


def categorize_ingredient(name: str) -> str:
    for section, pattern in SECTION_RULES:
        if pattern.search(name):
            return section
    return DEFAULT_SECTION


def normalize_name(name: str) -> str:
    return name.strip().lower()


def parse_quantity(raw) -> float:
    """Leading number of a quantity string; missing, unparseable or zero counts as 1."""
    if isinstance(raw, (int, float)) and not isinstance(raw, bool):
        value = float(raw)
    else:
        match = _LEADING_NUMBER.match(str(raw or ""))
        value = float(match.group(0)) if match else 0.0
    return value or 1.0


def display_name(key: str) -> str:
    return key[:1].upper() + key[1:]


def collect_ingredients(
    session: Session, start_date: date, end_date: date
) -> dict[str, dict]:
    """Aggregate meal-plan ingredients in the range, minus pantry stock.

    Keys are normalized names. Quantities add up regardless of unit; the
    first unit seen for a name is kept.
    """
    plans = session.exec(
        select(MealPlan).where(MealPlan.date >= start_date, MealPlan.date <= end_date)
    ).all()
    pantry_names = {normalize_name(p.name) for p in session.exec(select(PantryItem)).all()}

    totals: dict[str, dict] = {}
    for plan in plans:
        if not plan.recipe or not isinstance(plan.recipe.ingredients, list):
            continue
        for ingredient in plan.recipe.ingredients:
            if not isinstance(ingredient, dict):
                continue
            key = normalize_name(str(ingredient.get("name") or ""))
            if not key or key in pantry_names:
                continue
            quantity = parse_quantity(ingredient.get("quantity"))
            entry = totals.get(key)
            if entry:
                entry["quantity"] += quantity
            else:
                totals[key] = {"quantity": quantity, "unit": ingredient.get("unit") or ""}
    return totals


def find_grocery_item(session: Session, name: str) -> Optional[GroceryItem]:
    # Whole-name match after trimming and lowercasing, same as pantry suppression.
    return session.exec(
        select(GroceryItem).where(func.lower(func.trim(GroceryItem.name)) == normalize_name(name))
    ).first()


def generate_grocery_list(session: Session, start_date: date, end_date: date) -> dict:
    """Add missing meal-plan ingredients to the grocery list.

    Each new item is committed on its own. A failed insert is rolled back,
    logged and listed under ``failed`` while the rest carry on.
    """
    totals = collect_ingredients(session, start_date, end_date)
    created: list[GroceryItem] = []
    failed: list[str] = []
    for key, entry in totals.items():
        if find_grocery_item(session, key):
            continue
        item = GroceryItem(
            name=display_name(key),
            quantity=entry["quantity"],
            unit=entry["unit"] or None,
            section=categorize_ingredient(key),
        )
        try:
            session.add(item)
            session.commit()
            session.refresh(item)
        except SQLAlchemyError:
            session.rollback()
            logger.exception("Failed to add grocery item %r", key)
            failed.append(display_name(key))
            continue
        created.append(item)
    logger.info(
        "Generated grocery list for %s..%s: %d added, %d failed",
        start_date,
        end_date,
        len(created),
        len(failed),
    )
    return {"added": len(created), "items": created, "failed": failed}
