# services/due_calculator.py
"""
Due date arithmetic.

Pure functions, no database access. A contract's day of month is clamped to
the length of each month independently, so a schedule on the 31st runs
Jan 31 -> Feb 28 (29 in leap years) -> Mar 31.
"""
from calendar import monthrange
from datetime import date
from typing import List

MONTH_NAMES = (
     "January", "February", "March", "April", "May", "June",
     "July", "August", "September", "October", "November", "December",
)


def _check_day(day_of_month: int) -> None:
     if not 1 <= day_of_month <= 31:
          raise ValueError(f"Day of month must be between 1 and 31, got {day_of_month}")


def days_in_month(year: int, month: int) -> int:
     return monthrange(year, month)[1]


def add_months(d: date, months: int) -> date:
     """Shift by whole calendar months, clamping the day to the target month."""
     index = d.year * 12 + (d.month - 1) + months
     year, month = divmod(index, 12)
     month += 1
     return date(year, month, min(d.day, days_in_month(year, month)))


def adjust_day_of_month(d: date, day_of_month: int) -> date:
     """Same month as `d`, on `day_of_month` or the last day if the month is shorter."""
     _check_day(day_of_month)
     return d.replace(day=min(day_of_month, days_in_month(d.year, d.month)))


def first_due_date(start_date: date, day_of_month: int) -> date:
     """
     First due date on or after `start_date`.

     If the start day is already past the due day, the first due falls in the
     following month.
     """
     _check_day(day_of_month)
     if start_date.day <= day_of_month:
          return adjust_day_of_month(start_date, day_of_month)
     return adjust_day_of_month(add_months(start_date.replace(day=1), 1), day_of_month)


def next_due_date(current: date, day_of_month: int) -> date:
     """Due date one calendar month after `current`."""
     return adjust_day_of_month(add_months(current.replace(day=1), 1), day_of_month)


def due_dates_between(start_date: date, end_date: date, day_of_month: int) -> List[date]:
     """
     All due dates in the inclusive range [start_date, end_date].

     Returns an empty list when the first due date is already past `end_date`.
     """
     dates = []
     current = first_due_date(start_date, day_of_month)
     while current <= end_date:
          dates.append(current)
          current = next_due_date(current, day_of_month)
     return dates


def period_label(d: date) -> str:
     """'March 2026' style label for descriptions."""
     return f"{MONTH_NAMES[d.month - 1]} {d.year}"
