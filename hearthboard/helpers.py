from datetime import date, timedelta
from typing import Iterable, Optional

SECTION_EMOJI = {
    "Produce": "\U0001F96C",
    "Meat": "\U0001F969",
    "Dairy": "\U0001F9C0",
    "Bakery": "\U0001F35E",
    "Frozen": "\U0001F9CA",
    "Canned": "\U0001F96B",
    "Pantry": "\U0001FAD9",
}
DEFAULT_SECTION_EMOJI = "\U0001F4E6"


def greeting(hour: int) -> str:
    """Time-of-day greeting for an hour in 0-23."""
    if hour < 12:
        return "Good Morning"
    if hour < 17:
        return "Good Afternoon"
    return "Good Evening"


def calculate_earnings(points: int) -> str:
    """Convert points to a dollar string, 10 points per whole dollar."""
    if points < 10:
        return "$0.00"
    return f"${points // 10}.00"


def js_weekday(day: date) -> int:
    """Weekday index with Sunday = 0, as stored on chores."""
    return (day.weekday() + 1) % 7


def get_start_of_week(today: Optional[date] = None) -> date:
    today = today or date.today()
    return today - timedelta(days=js_weekday(today))


def get_week_dates(offset: int = 0, today: Optional[date] = None) -> list[date]:
    """The seven dates, Sunday to Saturday, of the week ``offset`` weeks from today."""
    start = get_start_of_week(today) + timedelta(weeks=offset)
    return [start + timedelta(days=i) for i in range(7)]


def format_date(day: date) -> str:
    return day.isoformat()


def get_section_emoji(section: str) -> str:
    return SECTION_EMOJI.get(section, DEFAULT_SECTION_EMOJI)


def chore_occurs_on(days_of_week: Iterable[int], day: date) -> bool:
    return js_weekday(day) in set(days_of_week)


def can_user_complete_chore(
    assigned_user_ids: Iterable[int], user_id: int, is_claimable: bool
) -> bool:
    """Claimable chores are open to everyone; otherwise only assignees may complete."""
    if is_claimable:
        return True
    return user_id in set(assigned_user_ids)
