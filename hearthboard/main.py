import logging
import os
from contextlib import asynccontextmanager
from datetime import date, datetime, timedelta
from typing import Optional

import httpx
from fastapi import Depends, FastAPI, Form, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates
from sqlalchemy import or_
from sqlmodel import Session, select
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.sessions import SessionMiddleware

from . import config
from .auth import (
    LoginRateLimiter,
    SessionGateMiddleware,
    get_client_ip,
    get_login_limiter,
    is_authenticated,
    is_valid_pin_format,
    login_user,
    logout_user,
    verify_pin,
)
from .chores import complete_chore, get_chore, replace_chore_assignments, uncomplete_chore
from .db import get_session, init_db, unit_of_work
from .errors import (
    BadRequest,
    HearthboardError,
    InternalError,
    NotFound,
    RateLimited,
    Unauthorized,
    persistence_errors,
)
from .grocery import generate_grocery_list
from .helpers import (
    calculate_earnings,
    chore_occurs_on,
    get_section_emoji,
    get_start_of_week,
    greeting,
)
from .models import (
    Chore,
    ChoreCompletion,
    GroceryItem,
    MealPlan,
    MealType,
    PantryItem,
    Recipe,
    User,
    utcnow,
)
from .recipe_import import fetch_recipe
from .schemas import (
    ChoreCreate,
    ChoreRead,
    ChoreUpdate,
    CompleteChoreRequest,
    CompletionRead,
    GenerateGroceryRequest,
    GenerateGroceryResult,
    GroceryItemCreate,
    GroceryItemRead,
    GroceryItemUpdate,
    MealPlanCreate,
    MealPlanRead,
    PantryItemCreate,
    PantryItemRead,
    PantryItemUpdate,
    RecipeCreate,
    RecipeImportRequest,
    RecipeRead,
    RecipeUpdate,
    SuccessResponse,
    UserCreate,
    UserRead,
    WeatherRead,
)
from .weather import WeatherCache, WeatherError, fetch_weather

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

MEAL_ORDER = [m.value for m in MealType]
LOCKOUT_MESSAGE = "Too many failed attempts. Please wait 5 minutes."


@asynccontextmanager
async def lifespan(_: FastAPI):
    init_db()
    yield


app = FastAPI(title="Hearthboard", lifespan=lifespan)
app.state.login_limiter = LoginRateLimiter()
app.state.weather_cache = WeatherCache()

# Added first so it runs inside SessionMiddleware and can read the session.
app.add_middleware(SessionGateMiddleware)
app.add_middleware(
    SessionMiddleware,
    secret_key=config.SESSION_SECRET,
    session_cookie=config.SESSION_COOKIE,
    max_age=config.SESSION_MAX_AGE_DAYS * 24 * 60 * 60,
    same_site="lax",
    https_only=config.SESSION_HTTPS_ONLY,
)

static_dir = os.path.join(os.path.dirname(__file__), "static")
templates_dir = os.path.join(os.path.dirname(__file__), "templates")
app.mount("/static", StaticFiles(directory=static_dir), name="static")
templates = Jinja2Templates(directory=templates_dir)
templates.env.globals["section_emoji"] = get_section_emoji


@app.exception_handler(HearthboardError)
async def hearthboard_error_handler(request: Request, exc: HearthboardError):
    return JSONResponse({"error": exc.message}, status_code=exc.status_code)


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        {"error": exc.detail}, status_code=exc.status_code, headers=getattr(exc, "headers", None)
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    message = "Invalid request"
    if errors:
        first = errors[0]
        field = ".".join(str(part) for part in first.get("loc", ())[1:])
        message = f"{field}: {first.get('msg')}" if field else str(first.get("msg"))
    return JSONResponse({"error": message}, status_code=400)


async def get_http_client():
    async with httpx.AsyncClient(
        timeout=config.HTTP_TIMEOUT_SECONDS, headers={"User-Agent": config.USER_AGENT}
    ) as client:
        yield client


def get_weather_cache(request: Request) -> WeatherCache:
    return request.app.state.weather_cache


def attempt_login(request: Request, ip: str, pin, limiter: LoginRateLimiter):
    if not is_valid_pin_format(pin):
        raise BadRequest("Invalid PIN format")
    if not verify_pin(pin):
        attempts = limiter.record_failure(ip)
        logger.warning("Incorrect PIN from %s (attempt %d)", ip, attempts)
        raise Unauthorized("Incorrect PIN")
    limiter.clear(ip)
    login_user(request)


def apply_changes(obj, changes: dict):
    for key, value in changes.items():
        setattr(obj, key, value)


def get_or_404(session: Session, model, obj_id: int, label: str):
    obj = session.get(model, obj_id)
    if not obj:
        raise NotFound(f"{label} not found")
    return obj


def chore_read(chore: Chore, week_start: Optional[date] = None) -> ChoreRead:
    read = ChoreRead.model_validate(chore)
    if week_start is not None:
        week_end = week_start + timedelta(days=6)
        read.completions = [
            c for c in read.completions if week_start <= c.completion_date <= week_end
        ]
    return read


def meal_sort_key(plan: MealPlan):
    meal_type = plan.meal_type.value if isinstance(plan.meal_type, MealType) else plan.meal_type
    return (plan.date, MEAL_ORDER.index(meal_type))


# --- Pages ---


@app.get("/login", response_class=HTMLResponse)
def login_form(request: Request):
    if is_authenticated(request):
        return RedirectResponse("/", status_code=303)
    return templates.TemplateResponse(request, "login.html", {"error": None})


@app.post("/login")
async def login(
    request: Request,
    pin: str = Form(""),
    limiter: LoginRateLimiter = Depends(get_login_limiter),
):
    ip = get_client_ip(request)
    try:
        if limiter.is_limited(ip):
            raise RateLimited(LOCKOUT_MESSAGE)
        attempt_login(request, ip, pin, limiter)
    except HearthboardError as exc:
        return templates.TemplateResponse(
            request, "login.html", {"error": exc.message}, status_code=exc.status_code
        )
    return RedirectResponse("/", status_code=303)


@app.post("/logout")
def logout(request: Request):
    logout_user(request)
    return RedirectResponse("/login", status_code=303)


@app.get("/", response_class=HTMLResponse)
def dashboard(request: Request, session: Session = Depends(get_session)):
    now = datetime.now()
    today = now.date()
    with persistence_errors("Failed to load dashboard"):
        users = session.exec(select(User).order_by(User.created_at, User.id)).all()
        chores = [
            c
            for c in session.exec(select(Chore).order_by(Chore.created_at, Chore.id)).all()
            if chore_occurs_on(c.days_of_week, today)
        ]
        done = {
            (c.chore_id, c.user_id)
            for c in session.exec(
                select(ChoreCompletion).where(ChoreCompletion.completion_date == today)
            ).all()
        }
        meals = sorted(
            session.exec(select(MealPlan).where(MealPlan.date == today)).all(), key=meal_sort_key
        )
        return templates.TemplateResponse(
            request,
            "dashboard.html",
            {
                "greeting": greeting(now.hour),
                "today": today,
                "users": users,
                "earnings": {u.id: calculate_earnings(u.points_balance) for u in users},
                "chores": chores,
                "done": done,
                "meals": meals,
            },
        )


@app.get("/cook/{recipe_id}", response_class=HTMLResponse)
def cook_page(request: Request, recipe_id: int, session: Session = Depends(get_session)):
    recipe = get_or_404(session, Recipe, recipe_id, "Recipe")
    return templates.TemplateResponse(request, "cook.html", {"recipe": recipe})


@app.get("/health")
def health():
    return {"status": "ok"}


# --- Auth API ---


@app.post("/api/auth/login", response_model=SuccessResponse)
async def api_login(request: Request, limiter: LoginRateLimiter = Depends(get_login_limiter)):
    ip = get_client_ip(request)
    if limiter.is_limited(ip):
        raise RateLimited(LOCKOUT_MESSAGE)
    try:
        body = await request.json()
    except ValueError:
        raise BadRequest("Invalid request")
    pin = body.get("pin") if isinstance(body, dict) else None
    attempt_login(request, ip, pin, limiter)
    return SuccessResponse()


@app.post("/api/auth/logout", response_model=SuccessResponse)
def api_logout(request: Request):
    logout_user(request)
    return SuccessResponse()


# --- Users ---


@app.get("/api/users", response_model=list[UserRead])
def list_users(session: Session = Depends(get_session)):
    with persistence_errors("Failed to fetch users"):
        users = session.exec(select(User).order_by(User.created_at, User.id)).all()
        return [UserRead.model_validate(u) for u in users]


@app.post("/api/users", response_model=UserRead, status_code=201)
def create_user(payload: UserCreate, session: Session = Depends(get_session)):
    with persistence_errors("Failed to create user"):
        user = User(name=payload.name, color=payload.color, emoji=payload.emoji or None)
        with unit_of_work(session):
            session.add(user)
        session.refresh(user)
        return UserRead.model_validate(user)


@app.delete("/api/users/{user_id}", response_model=SuccessResponse)
def delete_user(user_id: int, session: Session = Depends(get_session)):
    with persistence_errors("Failed to delete user"):
        user = get_or_404(session, User, user_id, "User")
        with unit_of_work(session):
            session.delete(user)
        return SuccessResponse()


# --- Chores ---


@app.get("/api/chores", response_model=list[ChoreRead])
def list_chores(
    week_of: Optional[date] = Query(None, alias="weekOf"),
    session: Session = Depends(get_session),
):
    week_start = get_start_of_week(week_of)
    with persistence_errors("Failed to fetch chores"):
        chores = session.exec(select(Chore).order_by(Chore.created_at, Chore.id)).all()
        return [chore_read(c, week_start) for c in chores]


@app.post("/api/chores", response_model=ChoreRead, status_code=201)
def create_chore(payload: ChoreCreate, session: Session = Depends(get_session)):
    with persistence_errors("Failed to create chore"):
        chore = Chore(**payload.model_dump(exclude={"assigned_user_ids"}))
        with unit_of_work(session):
            session.add(chore)
            session.flush()
            if payload.assigned_user_ids:
                replace_chore_assignments(session, chore, payload.assigned_user_ids)
        session.refresh(chore)
        return chore_read(chore)


@app.post("/api/chores/complete", response_model=CompletionRead, status_code=201)
def complete_chore_route(payload: CompleteChoreRequest, session: Session = Depends(get_session)):
    with persistence_errors("Failed to complete chore"):
        completion = complete_chore(session, payload.chore_id, payload.user_id, payload.date)
        return CompletionRead.model_validate(completion)


@app.delete("/api/chores/complete", response_model=SuccessResponse)
def uncomplete_chore_route(
    chore_id: int = Query(..., alias="choreId"),
    user_id: int = Query(..., alias="userId"),
    completion_date: date = Query(..., alias="date"),
    session: Session = Depends(get_session),
):
    with persistence_errors("Failed to undo completion"):
        uncomplete_chore(session, chore_id, user_id, completion_date)
        return SuccessResponse()


@app.get("/api/chores/{chore_id}", response_model=ChoreRead)
def read_chore(chore_id: int, session: Session = Depends(get_session)):
    with persistence_errors("Failed to fetch chore"):
        return chore_read(get_chore(session, chore_id))


@app.patch("/api/chores/{chore_id}", response_model=ChoreRead)
def update_chore(chore_id: int, payload: ChoreUpdate, session: Session = Depends(get_session)):
    changes = payload.changes()
    assigned_user_ids = changes.pop("assigned_user_ids", None)
    with persistence_errors("Failed to update chore"):
        chore = get_chore(session, chore_id)
        with unit_of_work(session):
            apply_changes(chore, changes)
            chore.updated_at = utcnow()
            session.add(chore)
            if assigned_user_ids is not None:
                replace_chore_assignments(session, chore, assigned_user_ids)
        session.refresh(chore)
        return chore_read(chore)


@app.delete("/api/chores/{chore_id}", response_model=SuccessResponse)
def delete_chore(chore_id: int, session: Session = Depends(get_session)):
    with persistence_errors("Failed to delete chore"):
        chore = get_chore(session, chore_id)
        with unit_of_work(session):
            session.delete(chore)
        return SuccessResponse()


# --- Recipes ---


@app.get("/api/recipes", response_model=list[RecipeRead])
def list_recipes(
    favorites: bool = Query(False),
    search: Optional[str] = Query(None),
    session: Session = Depends(get_session),
):
    statement = select(Recipe)
    if favorites:
        statement = statement.where(Recipe.is_favorite == True)  # noqa: E712
    if search:
        pattern = f"%{search.strip()}%"
        statement = statement.where(
            or_(Recipe.name.ilike(pattern), Recipe.description.ilike(pattern))
        )
    with persistence_errors("Failed to fetch recipes"):
        recipes = session.exec(statement.order_by(Recipe.created_at.desc(), Recipe.id.desc())).all()
        return [RecipeRead.model_validate(r) for r in recipes]


@app.post("/api/recipes", response_model=RecipeRead, status_code=201)
def create_recipe(payload: RecipeCreate, session: Session = Depends(get_session)):
    with persistence_errors("Failed to create recipe"):
        recipe = Recipe(**payload.model_dump())
        with unit_of_work(session):
            session.add(recipe)
        session.refresh(recipe)
        return RecipeRead.model_validate(recipe)


@app.post("/api/recipes/import", response_model=RecipeRead, status_code=201)
async def import_recipe(
    payload: RecipeImportRequest,
    session: Session = Depends(get_session),
    client: httpx.AsyncClient = Depends(get_http_client),
):
    url = payload.url.strip()
    if not url.lower().startswith(("http://", "https://")):
        raise BadRequest("URL must start with http:// or https://")
    imported = await fetch_recipe(client, url)
    with persistence_errors("Failed to import recipe"):
        recipe = Recipe(**imported.as_dict(), source_url=url)
        with unit_of_work(session):
            session.add(recipe)
        session.refresh(recipe)
        logger.info("Imported recipe %r from %s", recipe.name, url)
        return RecipeRead.model_validate(recipe)


@app.get("/api/recipes/{recipe_id}", response_model=RecipeRead)
def read_recipe(recipe_id: int, session: Session = Depends(get_session)):
    with persistence_errors("Failed to fetch recipe"):
        return RecipeRead.model_validate(get_or_404(session, Recipe, recipe_id, "Recipe"))


@app.patch("/api/recipes/{recipe_id}", response_model=RecipeRead)
def update_recipe(recipe_id: int, payload: RecipeUpdate, session: Session = Depends(get_session)):
    with persistence_errors("Failed to update recipe"):
        recipe = get_or_404(session, Recipe, recipe_id, "Recipe")
        with unit_of_work(session):
            apply_changes(recipe, payload.changes())
            recipe.updated_at = utcnow()
            session.add(recipe)
        session.refresh(recipe)
        return RecipeRead.model_validate(recipe)


@app.delete("/api/recipes/{recipe_id}", response_model=SuccessResponse)
def delete_recipe(recipe_id: int, session: Session = Depends(get_session)):
    with persistence_errors("Failed to delete recipe"):
        recipe = get_or_404(session, Recipe, recipe_id, "Recipe")
        with unit_of_work(session):
            session.delete(recipe)
        return SuccessResponse()


# --- Meal plans ---


@app.get("/api/meal-plans", response_model=list[MealPlanRead])
def list_meal_plans(
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    session: Session = Depends(get_session),
):
    statement = select(MealPlan)
    if start_date and end_date:
        statement = statement.where(MealPlan.date >= start_date, MealPlan.date <= end_date)
    with persistence_errors("Failed to fetch meal plans"):
        plans = sorted(session.exec(statement).all(), key=meal_sort_key)
        return [MealPlanRead.model_validate(p) for p in plans]


@app.post("/api/meal-plans", response_model=MealPlanRead, status_code=201)
def upsert_meal_plan(payload: MealPlanCreate, session: Session = Depends(get_session)):
    with persistence_errors("Failed to create meal plan"):
        get_or_404(session, Recipe, payload.recipe_id, "Recipe")
        with unit_of_work(session):
            plan = session.exec(
                select(MealPlan).where(
                    MealPlan.date == payload.date, MealPlan.meal_type == payload.meal_type
                )
            ).first()
            if plan:
                plan.recipe_id = payload.recipe_id
            else:
                plan = MealPlan(
                    date=payload.date, meal_type=payload.meal_type, recipe_id=payload.recipe_id
                )
            session.add(plan)
        session.refresh(plan)
        return MealPlanRead.model_validate(plan)


@app.delete("/api/meal-plans", response_model=SuccessResponse)
def delete_meal_plan(
    plan_date: date = Query(..., alias="date"),
    meal_type: MealType = Query(..., alias="mealType"),
    session: Session = Depends(get_session),
):
    with persistence_errors("Failed to delete meal plan"):
        plan = session.exec(
            select(MealPlan).where(MealPlan.date == plan_date, MealPlan.meal_type == meal_type)
        ).first()
        if not plan:
            raise NotFound("Meal plan not found")
        with unit_of_work(session):
            session.delete(plan)
        return SuccessResponse()


# --- Grocery ---


@app.get("/api/grocery", response_model=list[GroceryItemRead])
def list_grocery_items(session: Session = Depends(get_session)):
    with persistence_errors("Failed to fetch grocery items"):
        items = session.exec(
            select(GroceryItem).order_by(GroceryItem.checked, GroceryItem.section, GroceryItem.name)
        ).all()
        return [GroceryItemRead.model_validate(i) for i in items]


@app.post("/api/grocery", response_model=GroceryItemRead, status_code=201)
def create_grocery_item(payload: GroceryItemCreate, session: Session = Depends(get_session)):
    with persistence_errors("Failed to create grocery item"):
        item = GroceryItem(
            name=payload.name,
            quantity=payload.quantity,
            unit=payload.unit or None,
            section=payload.section or "Other",
            store=payload.store or None,
        )
        with unit_of_work(session):
            session.add(item)
        session.refresh(item)
        return GroceryItemRead.model_validate(item)


@app.delete("/api/grocery", response_model=SuccessResponse)
def clear_grocery_items(
    checked_only: bool = Query(False, alias="checkedOnly"),
    session: Session = Depends(get_session),
):
    statement = select(GroceryItem)
    if checked_only:
        statement = statement.where(GroceryItem.checked == True)  # noqa: E712
    with persistence_errors("Failed to clear items"):
        with unit_of_work(session):
            for item in session.exec(statement).all():
                session.delete(item)
        return SuccessResponse()


@app.post("/api/grocery/generate", response_model=GenerateGroceryResult)
def generate_grocery(payload: GenerateGroceryRequest, session: Session = Depends(get_session)):
    with persistence_errors("Failed to generate grocery list"):
        result = generate_grocery_list(session, payload.start_date, payload.end_date)
        return GenerateGroceryResult(
            added=result["added"],
            items=[GroceryItemRead.model_validate(i) for i in result["items"]],
            failed=result["failed"],
        )


@app.patch("/api/grocery/{item_id}", response_model=GroceryItemRead)
def update_grocery_item(
    item_id: int, payload: GroceryItemUpdate, session: Session = Depends(get_session)
):
    with persistence_errors("Failed to update grocery item"):
        item = get_or_404(session, GroceryItem, item_id, "Grocery item")
        with unit_of_work(session):
            apply_changes(item, payload.changes())
            session.add(item)
        session.refresh(item)
        return GroceryItemRead.model_validate(item)


@app.delete("/api/grocery/{item_id}", response_model=SuccessResponse)
def delete_grocery_item(item_id: int, session: Session = Depends(get_session)):
    with persistence_errors("Failed to delete grocery item"):
        item = get_or_404(session, GroceryItem, item_id, "Grocery item")
        with unit_of_work(session):
            session.delete(item)
        return SuccessResponse()


# --- Pantry ---


@app.get("/api/pantry", response_model=list[PantryItemRead])
def list_pantry_items(session: Session = Depends(get_session)):
    with persistence_errors("Failed to fetch pantry items"):
        items = session.exec(
            select(PantryItem).order_by(
                PantryItem.expires_at.is_(None), PantryItem.expires_at, PantryItem.name
            )
        ).all()
        return [PantryItemRead.model_validate(i) for i in items]


@app.post("/api/pantry", response_model=PantryItemRead, status_code=201)
def create_pantry_item(payload: PantryItemCreate, session: Session = Depends(get_session)):
    with persistence_errors("Failed to create pantry item"):
        item = PantryItem(
            name=payload.name,
            quantity=payload.quantity,
            unit=payload.unit or None,
            expires_at=payload.expires_at,
        )
        with unit_of_work(session):
            session.add(item)
        session.refresh(item)
        return PantryItemRead.model_validate(item)


@app.patch("/api/pantry/{item_id}", response_model=PantryItemRead)
def update_pantry_item(
    item_id: int, payload: PantryItemUpdate, session: Session = Depends(get_session)
):
    with persistence_errors("Failed to update pantry item"):
        item = get_or_404(session, PantryItem, item_id, "Pantry item")
        with unit_of_work(session):
            apply_changes(item, payload.changes())
            session.add(item)
        session.refresh(item)
        return PantryItemRead.model_validate(item)


@app.delete("/api/pantry/{item_id}", response_model=SuccessResponse)
def delete_pantry_item(item_id: int, session: Session = Depends(get_session)):
    with persistence_errors("Failed to delete pantry item"):
        item = get_or_404(session, PantryItem, item_id, "Pantry item")
        with unit_of_work(session):
            session.delete(item)
        return SuccessResponse()


# --- Weather ---


@app.get("/api/weather", response_model=WeatherRead)
async def weather(
    location: str = Query("auto"),
    client: httpx.AsyncClient = Depends(get_http_client),
    cache: WeatherCache = Depends(get_weather_cache),
):
    try:
        summary = await fetch_weather(client, location, cache)
    except WeatherError as exc:
        raise InternalError("Failed to fetch weather") from exc
    return WeatherRead.model_validate(summary)
