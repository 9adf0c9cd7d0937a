"""Import recipes from web pages that publish schema.org JSON-LD.

Recipe sites embed a ``Recipe`` object in ``<script type="application/ld+json">``
blocks. The shapes vary from site to site (strings, lists, nested objects,
``@graph`` wrappers), so every field goes through a small parser that returns
one normalized shape.
"""

import json
import logging
import re
from dataclasses import asdict, dataclass, field
from typing import Any, Optional

import httpx

from .errors import BadRequest

logger = logging.getLogger(__name__)

JSON_LD_BLOCK = re.compile(
    r"<script[^>]*type=[\"']application/ld\+json[\"'][^>]*>(.*?)</script>",
    re.I | re.S,
)
DURATION = re.compile(r"PT(?:(\d+)H)?(?:(\d+)M)?")
NUMBER = re.compile(r"\d+(?:\.\d+)?")
LEADING_INT = re.compile(r"^\s*([-+]?\d+)")


@dataclass
class ImportedRecipe:
    name: str
    description: Optional[str] = None
    ingredients: list[dict] = field(default_factory=list)
    steps: list[str] = field(default_factory=list)
    prep_time: Optional[int] = None
    cook_time: Optional[int] = None
    servings: Optional[int] = None
    macros: Optional[dict] = None
    image_url: Optional[str] = None

    def as_dict(self) -> dict:
        return asdict(self)


def parse_duration(value: Any) -> Optional[int]:
    """Minutes in an ISO-8601 duration such as ``PT1H30M``."""
    if not value or not isinstance(value, str):
        return None
    match = DURATION.search(value)
    if not match:
        return None
    hours = int(match.group(1) or 0)
    minutes = int(match.group(2) or 0)
    return hours * 60 + minutes


def parse_number(value: Any) -> float:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    if not value or not isinstance(value, str):
        return 0.0
    match = NUMBER.search(value)
    return float(match.group(0)) if match else 0.0


def parse_servings(value: Any) -> Optional[int]:
    if isinstance(value, list):
        value = value[0] if value else None
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return int(value) or None
    match = LEADING_INT.match(str(value))
    if not match:
        return None
    return int(match.group(1)) or None


def extract_image_url(image: Any) -> Optional[str]:
    if isinstance(image, str):
        return image or None
    if isinstance(image, list):
        return extract_image_url(image[0]) if image else None
    if isinstance(image, dict):
        url = image.get("url")
        return url if isinstance(url, str) and url else None
    return None


def parse_instructions(instructions: Any) -> list[str]:
    if isinstance(instructions, str):
        items: list = instructions.splitlines()
    elif isinstance(instructions, list):
        items = instructions
    else:
        return []

    steps: list[str] = []
    for item in items:
        if isinstance(item, str):
            text = item
        elif isinstance(item, dict) and "itemListElement" in item:
            steps.extend(parse_instructions(item["itemListElement"]))
            continue
        elif isinstance(item, dict):
            text = item.get("text") or ""
        else:
            continue
        text = str(text).strip()
        if text:
            steps.append(text)
    return steps


def parse_macros(nutrition: Any) -> Optional[dict]:
    if not isinstance(nutrition, dict):
        return None
    return {
        "calories": parse_number(nutrition.get("calories")),
        "protein": parse_number(nutrition.get("proteinContent")),
        "carbs": parse_number(nutrition.get("carbohydrateContent")),
        "fat": parse_number(nutrition.get("fatContent")),
    }


def parse_ingredients(lines: Any) -> list[dict]:
    if not isinstance(lines, list):
        return []
    return [
        {"name": line.strip(), "quantity": "", "unit": ""}
        for line in lines
        if isinstance(line, str) and line.strip()
    ]


def is_recipe(node: Any) -> bool:
    if not isinstance(node, dict):
        return False
    kind = node.get("@type")
    if isinstance(kind, list):
        return "Recipe" in kind
    return kind == "Recipe"


def find_recipe_node(data: Any) -> Optional[dict]:
    """Direct object first, then its ``@graph``, then a bare top-level list."""
    if is_recipe(data):
        return data
    if isinstance(data, dict) and isinstance(data.get("@graph"), list):
        for node in data["@graph"]:
            if is_recipe(node):
                return node
    if isinstance(data, list):
        for node in data:
            if is_recipe(node):
                return node
    return None


def extract_json_ld(html: str) -> list[Any]:
    blocks = []
    for raw in JSON_LD_BLOCK.findall(html):
        try:
            blocks.append(json.loads(raw.strip()))
        except ValueError:
            logger.debug("Skipping malformed JSON-LD block")
    return blocks


def normalize_recipe(node: dict) -> ImportedRecipe:
    description = node.get("description")
    return ImportedRecipe(
        name=str(node.get("name") or "").strip() or "Imported Recipe",
        description=description if isinstance(description, str) and description else None,
        ingredients=parse_ingredients(node.get("recipeIngredient")),
        steps=parse_instructions(node.get("recipeInstructions")),
        prep_time=parse_duration(node.get("prepTime")),
        cook_time=parse_duration(node.get("cookTime")),
        servings=parse_servings(node.get("recipeYield")),
        macros=parse_macros(node.get("nutrition")),
        image_url=extract_image_url(node.get("image")),
    )


def parse_recipe_html(html: str) -> ImportedRecipe:
    for block in extract_json_ld(html):
        node = find_recipe_node(block)
        if node is not None:
            return normalize_recipe(node)
    raise BadRequest("No recipe data found on this page")


async def fetch_recipe(client: httpx.AsyncClient, url: str) -> ImportedRecipe:
    try:
        response = await client.get(url, follow_redirects=True)
        response.raise_for_status()
    except (httpx.HTTPError, httpx.InvalidURL) as exc:
        logger.warning("Recipe fetch failed for %s: %s", url, exc)
        raise BadRequest("Failed to fetch URL") from exc
    return parse_recipe_html(response.text)
