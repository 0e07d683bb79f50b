"""Date manipulation utilities"""

import calendar
import math
from datetime import date, datetime, timedelta
from typing import List, Tuple

SECONDS_PER_DAY = 86_400


def last_n_days(today: date, n: int) -> List[date]:
    """Dates for today and the n-1 days before it, most recent first"""
    return [today - timedelta(days=i) for i in range(n)]


def add_days(from_date: date, days: int) -> date:
    """Plain calendar-day addition, no month-length normalisation"""
    return from_date + timedelta(days=days)


def month_bounds(month: str) -> Tuple[date, date]:
    """
    First and last day of a "YYYY-MM" month.

    Raises:
        ValueError: If the month string is malformed
    """
    year_str, _, month_str = month.partition("-")
    year, month_num = int(year_str), int(month_str)
    if not 1 <= month_num <= 12:
        raise ValueError(f"Invalid month: {month}")
    last_day = calendar.monthrange(year, month_num)[1]
    return date(year, month_num, 1), date(year, month_num, last_day)


def ceil_days_between(start: datetime, end: datetime) -> int:
    """Whole days from start to end, rounded up (negative when end is in the past)"""
    return math.ceil((end - start).total_seconds() / SECONDS_PER_DAY)


def add_months(month_start: date, months: int) -> date:
    """First day of the month `months` after the month of month_start"""
    index = month_start.year * 12 + month_start.month - 1 + months
    return date(index // 12, index % 12 + 1, 1)


def days_between(start: date, end: date) -> List[date]:
    """Every day from start to end, both inclusive"""
    return [start + timedelta(days=i) for i in range((end - start).days + 1)]
