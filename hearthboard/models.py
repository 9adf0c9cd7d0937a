import datetime as dt
from datetime import date, datetime, timezone
from enum import Enum
from typing import Optional

from sqlalchemy import JSON, Column, UniqueConstraint
from sqlmodel import Field, Relationship, SQLModel

ALL_DAYS = [0, 1, 2, 3, 4, 5, 6]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MealType(str, Enum):
    breakfast = "breakfast"
    lunch = "lunch"
    dinner = "dinner"
    snack = "snack"


class ChoreAssignment(SQLModel, table=True):
    chore_id: int = Field(foreign_key="chore.id", primary_key=True)
    user_id: int = Field(foreign_key="user.id", primary_key=True)
    created_at: datetime = Field(default_factory=utcnow)

    chore: Optional["Chore"] = Relationship(back_populates="assignments")
    user: Optional["User"] = Relationship(back_populates="assignments")


class User(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    color: str
    emoji: Optional[str] = None
    points_balance: int = Field(default=0)
    created_at: datetime = Field(default_factory=utcnow)

    assignments: list[ChoreAssignment] = Relationship(
        back_populates="user", sa_relationship_kwargs={"cascade": "all, delete-orphan"}
    )
    completions: list["ChoreCompletion"] = Relationship(
        back_populates="user", sa_relationship_kwargs={"cascade": "all, delete-orphan"}
    )


class Chore(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    description: Optional[str] = None
    points: int = Field(default=1)
    is_claimable: bool = Field(default=False)
    is_recurring: bool = Field(default=True)
    # Sunday = 0 ... Saturday = 6
    days_of_week: list[int] = Field(
        default_factory=lambda: list(ALL_DAYS), sa_column=Column(JSON, nullable=False)
    )
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    assignments: list[ChoreAssignment] = Relationship(
        back_populates="chore", sa_relationship_kwargs={"cascade": "all, delete-orphan"}
    )
    assigned_users: list[User] = Relationship(
        link_model=ChoreAssignment, sa_relationship_kwargs={"viewonly": True}
    )
    completions: list["ChoreCompletion"] = Relationship(
        back_populates="chore", sa_relationship_kwargs={"cascade": "all, delete-orphan"}
    )


class ChoreCompletion(SQLModel, table=True):
    __table_args__ = (UniqueConstraint("chore_id", "user_id", "completion_date"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    chore_id: int = Field(foreign_key="chore.id", index=True)
    user_id: int = Field(foreign_key="user.id", index=True)
    completion_date: date
    points_earned: int
    completed_at: datetime = Field(default_factory=utcnow)

    chore: Optional[Chore] = Relationship(back_populates="completions")
    user: Optional[User] = Relationship(back_populates="completions")


class Recipe(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    description: Optional[str] = None
    # [{"name": ..., "quantity": ..., "unit": ...}]
    ingredients: list[dict] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    steps: list[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    prep_time: Optional[int] = None
    cook_time: Optional[int] = None
    servings: Optional[int] = None
    macros: Optional[dict] = Field(default=None, sa_column=Column(JSON))
    source_url: Optional[str] = None
    image_url: Optional[str] = None
    is_favorite: bool = Field(default=False)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    meal_plans: list["MealPlan"] = Relationship(
        back_populates="recipe", sa_relationship_kwargs={"cascade": "all, delete-orphan"}
    )


class MealPlan(SQLModel, table=True):
    __table_args__ = (UniqueConstraint("date", "meal_type"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    date: dt.date
    meal_type: MealType
    recipe_id: int = Field(foreign_key="recipe.id")
    created_at: datetime = Field(default_factory=utcnow)

    recipe: Optional[Recipe] = Relationship(back_populates="meal_plans")


class GroceryItem(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    quantity: Optional[float] = None
    unit: Optional[str] = None
    section: str = Field(default="Other")
    store: Optional[str] = None
    checked: bool = Field(default=False)
    created_at: datetime = Field(default_factory=utcnow)


class PantryItem(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    quantity: Optional[float] = None
    unit: Optional[str] = None
    expires_at: Optional[date] = None
    created_at: datetime = Field(default_factory=utcnow)


__all__ = [
    "ALL_DAYS",
    "utcnow",
    "MealType",
    "User",
    "Chore",
    "ChoreAssignment",
    "ChoreCompletion",
    "Recipe",
    "MealPlan",
    "GroceryItem",
    "PantryItem",
]
