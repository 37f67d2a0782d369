"""Week-of-month labels used as a display column in the ledger.

Weeks start on Sunday, so the first week of a month may be short:

    week = ceil((day_of_month + weekday_of_first) / 7)

where ``weekday_of_first`` counts Sunday as 0 and Saturday as 6.
"""
from __future__ import annotations

import math
from datetime import date, datetime


def _coerce_date(value: date | datetime | str) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return date.fromisoformat(value.strip()[:10])
    raise TypeError(f"unsupported date value: {value!r}")


def week_of_month(value: date | datetime | str) -> int:
    day = _coerce_date(value)
    first_offset = (day.replace(day=1).weekday() + 1) % 7
    return math.ceil((day.day + first_offset) / 7)


def week_label(value: date | datetime | str) -> str:
    return f"Week {week_of_month(value)}"
