"""Request and response bodies for the JSON API.

Fields are snake_case in Python and camelCase on the wire.
"""

import datetime as dt
from typing import Annotated, ClassVar, Optional

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from .models import ALL_DAYS, MealType


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class UpdateModel(CamelModel):
    # Fields that may be cleared with an explicit null.
    nullable: ClassVar[frozenset[str]] = frozenset()

    def changes(self) -> dict:
        data = self.model_dump(exclude_unset=True)
        return {k: v for k, v in data.items() if v is not None or k in self.nullable}


def _check_days(days: list[int]) -> list[int]:
    bad = [d for d in days if d not in ALL_DAYS]
    if bad:
        raise ValueError(f"days of week must be 0-6, got {bad[0]}")
    return sorted(set(days))


DaysOfWeek = Annotated[list[int], AfterValidator(_check_days)]


class SuccessResponse(CamelModel):
    success: bool = True


# --- Users ---


class UserCreate(CamelModel):
    name: str = Field(min_length=1)
    color: str = Field(min_length=1)
    emoji: Optional[str] = None


class UserRead(CamelModel):
    id: int
    name: str
    color: str
    emoji: Optional[str] = None
    points_balance: int
    created_at: dt.datetime


# --- Chores ---


class CompletionRead(CamelModel):
    id: int
    chore_id: int
    user_id: int
    completion_date: dt.date
    points_earned: int
    completed_at: dt.datetime


class ChoreCreate(CamelModel):
    name: str = Field(min_length=1)
    description: Optional[str] = None
    points: int = Field(default=1, ge=0)
    is_claimable: bool = False
    is_recurring: bool = True
    days_of_week: DaysOfWeek = Field(default_factory=lambda: list(ALL_DAYS))
    assigned_user_ids: list[int] = Field(default_factory=list)


class ChoreUpdate(UpdateModel):
    nullable: ClassVar[frozenset[str]] = frozenset({"description"})

    name: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    points: Optional[int] = Field(default=None, ge=0)
    is_claimable: Optional[bool] = None
    is_recurring: Optional[bool] = None
    days_of_week: Optional[DaysOfWeek] = None
    assigned_user_ids: Optional[list[int]] = None


class ChoreRead(CamelModel):
    id: int
    name: str
    description: Optional[str] = None
    points: int
    is_claimable: bool
    is_recurring: bool
    days_of_week: list[int]
    assigned_users: list[UserRead] = Field(default_factory=list)
    completions: list[CompletionRead] = Field(default_factory=list)
    created_at: dt.datetime
    updated_at: dt.datetime


class CompleteChoreRequest(CamelModel):
    chore_id: int
    user_id: int
    date: dt.date


# --- Recipes ---


class RecipeIngredient(CamelModel):
    name: str
    quantity: str = ""
    unit: str = ""

    @field_validator("quantity", "unit", mode="before")
    @classmethod
    def coerce_text(cls, value):
        if value is None:
            return ""
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return f"{value:g}"
        return value


class Macros(CamelModel):
    calories: float = 0
    protein: float = 0
    carbs: float = 0
    fat: float = 0


class RecipeCreate(CamelModel):
    name: str = Field(min_length=1)
    description: Optional[str] = None
    ingredients: list[RecipeIngredient] = Field(default_factory=list)
    steps: list[str] = Field(default_factory=list)
    prep_time: Optional[int] = None
    cook_time: Optional[int] = None
    servings: Optional[int] = None
    macros: Optional[Macros] = None
    source_url: Optional[str] = None
    image_url: Optional[str] = None
    is_favorite: bool = False


class RecipeUpdate(UpdateModel):
    nullable: ClassVar[frozenset[str]] = frozenset(
        {"description", "prep_time", "cook_time", "servings", "macros", "source_url", "image_url"}
    )

    name: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    ingredients: Optional[list[RecipeIngredient]] = None
    steps: Optional[list[str]] = None
    prep_time: Optional[int] = None
    cook_time: Optional[int] = None
    servings: Optional[int] = None
    macros: Optional[Macros] = None
    source_url: Optional[str] = None
    image_url: Optional[str] = None
    is_favorite: Optional[bool] = None


class RecipeRead(CamelModel):
    id: int
    name: str
    description: Optional[str] = None
    ingredients: list[RecipeIngredient]
    steps: list[str]
    prep_time: Optional[int] = None
    cook_time: Optional[int] = None
    servings: Optional[int] = None
    macros: Optional[Macros] = None
    source_url: Optional[str] = None
    image_url: Optional[str] = None
    is_favorite: bool
    created_at: dt.datetime
    updated_at: dt.datetime


class RecipeImportRequest(CamelModel):
    url: str = Field(min_length=1)


# --- Meal plans ---


class MealPlanCreate(CamelModel):
    date: dt.date
    meal_type: MealType
    recipe_id: int


class MealPlanRead(CamelModel):
    id: int
    date: dt.date
    meal_type: MealType
    recipe_id: int
    recipe: Optional[RecipeRead] = None


# --- Grocery ---


class GroceryItemCreate(CamelModel):
    name: str = Field(min_length=1)
    quantity: Optional[float] = None
    unit: Optional[str] = None
    section: Optional[str] = None
    store: Optional[str] = None


class GroceryItemUpdate(UpdateModel):
    nullable: ClassVar[frozenset[str]] = frozenset({"quantity", "unit", "store"})

    name: Optional[str] = Field(default=None, min_length=1)
    quantity: Optional[float] = None
    unit: Optional[str] = None
    section: Optional[str] = None
    store: Optional[str] = None
    checked: Optional[bool] = None


class GroceryItemRead(CamelModel):
    id: int
    name: str
    quantity: Optional[float] = None
    unit: Optional[str] = None
    section: str
    store: Optional[str] = None
    checked: bool
    created_at: dt.datetime


class GenerateGroceryRequest(CamelModel):
    start_date: dt.date
    end_date: dt.date

    @model_validator(mode="after")
    def check_order(self):
        if self.end_date < self.start_date:
            raise ValueError("endDate must not be before startDate")
        return self


class GenerateGroceryResult(CamelModel):
    added: int
    items: list[GroceryItemRead]
    failed: list[str] = Field(default_factory=list)


# --- Pantry ---


class PantryItemCreate(CamelModel):
    name: str = Field(min_length=1)
    quantity: Optional[float] = None
    unit: Optional[str] = None
    expires_at: Optional[dt.date] = None


class PantryItemUpdate(UpdateModel):
    nullable: ClassVar[frozenset[str]] = frozenset({"quantity", "unit", "expires_at"})

    name: Optional[str] = Field(default=None, min_length=1)
    quantity: Optional[float] = None
    unit: Optional[str] = None
    expires_at: Optional[dt.date] = None


class PantryItemRead(CamelModel):
    id: int
    name: str
    quantity: Optional[float] = None
    unit: Optional[str] = None
    expires_at: Optional[dt.date] = None
    created_at: dt.datetime


# --- Weather ---


class WeatherRead(CamelModel):
    temp: int
    temp_c: int
    condition: str
    icon: str
    location: str
