# services/clock.py
"""
Injectable time source.

Services take a clock instead of calling `date.today()` so the status and
overdue sweeps can be exercised against a fixed calendar.
"""
from datetime import date, datetime, time


class Clock:
     """Production clock backed by the system time."""

     def today(self) -> date:
          return date.today()

     def now(self) -> datetime:
          return datetime.now()


class FixedClock(Clock):
     """Clock pinned to a given day. Can be moved forward by tests and tools."""

     def __init__(self, today: date):
          self._today = today

     def today(self) -> date:
          return self._today

     def now(self) -> datetime:
          return datetime.combine(self._today, time(hour=9))

     def set(self, today: date) -> None:
          self._today = today


system_clock = Clock()
