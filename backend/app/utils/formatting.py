"""Display formatting for API payloads. Nothing in the booking core depends on these."""

import calendar
from datetime import date, datetime
from decimal import Decimal


def format_date(value: date | datetime) -> str:
    if isinstance(value, datetime):
        value = value.date()
    return value.isoformat()


def format_time(value: datetime) -> str:
    return value.strftime("%H:%M")


def format_display_date(value: date) -> str:
    return f"{calendar.day_name[value.weekday()]}, {calendar.month_name[value.month]} {value.day}, {value.year}"


def format_weekday_short(value: date) -> str:
    return calendar.day_abbr[value.weekday()]


def format_month_name(year: int, month: int) -> str:
    return f"{calendar.month_name[month]} {year}"


def format_money(amount: Decimal) -> str:
    return f"${amount:.2f}"
