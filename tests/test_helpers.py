from datetime import date, timedelta

from hearthboard.helpers import (
    DEFAULT_SECTION_EMOJI,
    calculate_earnings,
    can_user_complete_chore,
    chore_occurs_on,
    format_date,
    get_section_emoji,
    get_start_of_week,
    get_week_dates,
    greeting,
    js_weekday,
)

WEDNESDAY = date(2024, 6, 12)


def test_greeting_boundaries():
    assert greeting(0) == "Good Morning"
    assert greeting(11) == "Good Morning"
    assert greeting(12) == "Good Afternoon"
    assert greeting(16) == "Good Afternoon"
    assert greeting(17) == "Good Evening"
    assert greeting(23) == "Good Evening"


def test_calculate_earnings():
    assert calculate_earnings(0) == "$0.00"
    assert calculate_earnings(9) == "$0.00"
    assert calculate_earnings(10) == "$1.00"
    assert calculate_earnings(57) == "$5.00"
    assert calculate_earnings(-20) == "$0.00"


def test_week_starts_on_sunday():
    assert js_weekday(date(2024, 6, 9)) == 0
    assert js_weekday(date(2024, 6, 15)) == 6
    assert get_start_of_week(WEDNESDAY) == date(2024, 6, 9)
    assert get_start_of_week(date(2024, 6, 9)) == date(2024, 6, 9)


def test_get_week_dates():
    week = get_week_dates(0, today=WEDNESDAY)
    assert len(week) == 7
    assert week[0] == date(2024, 6, 9)
    assert week[-1] == date(2024, 6, 15)
    assert all(b - a == timedelta(days=1) for a, b in zip(week, week[1:]))

    next_week = get_week_dates(1, today=WEDNESDAY)
    assert next_week[0] == week[0] + timedelta(days=7)
    assert get_week_dates(-1, today=WEDNESDAY)[0] == date(2024, 6, 2)


def test_format_date():
    assert format_date(date(2024, 1, 5)) == "2024-01-05"


def test_section_emoji():
    assert get_section_emoji("Produce") != DEFAULT_SECTION_EMOJI
    assert get_section_emoji("Hardware") == DEFAULT_SECTION_EMOJI


def test_chore_occurs_on():
    saturday = date(2024, 6, 15)
    assert chore_occurs_on([0, 6], saturday)
    assert not chore_occurs_on([1, 2, 3, 4, 5], saturday)
    assert not chore_occurs_on([], saturday)


def test_can_user_complete_chore():
    assert can_user_complete_chore([1, 2], 1, False)
    assert not can_user_complete_chore([1, 2], 3, False)
    assert not can_user_complete_chore([], 1, False)
    assert can_user_complete_chore([], 7, True)
    assert can_user_complete_chore([1], 7, True)
