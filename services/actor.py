# services/actor.py
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class Actor:
     """Who is performing an operation. Passed explicitly into every mutating call."""
     id: Optional[int]
     username: str
     role: Optional[str] = None


# Used by scheduled sweeps
SYSTEM_ACTOR = Actor(id=None, username="SYSTEM", role="system")
