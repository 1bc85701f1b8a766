# services/locking.py
"""
Per-flat serialization.

Overlap check + insert and payment allocation must not interleave for the
same flat. A flat lock belongs to the session that took it and is released
when that session's outermost transaction commits, rolls back or closes, so
a competing writer only reads the flat once the first one's rows are
visible. Taking the lock again from the same session is a no-op.

Across processes the flat row itself is locked: SELECT ... FOR UPDATE where
the backend supports it, WITH (UPDLOCK, ROWLOCK) on SQL Server. SQLite has
neither and relies on the in-process lock alone.
"""
import logging
import threading
from contextlib import contextmanager
from typing import Dict, Generator, List, Optional

from sqlalchemy import event
from sqlalchemy.orm import Session, SessionTransaction

from config import FLAT_LOCK_TIMEOUT_SECONDS
from exceptions import ConcurrencyConflictError, NotFoundError
from models import Flat

logger = logging.getLogger(__name__)

HELD_LOCKS_KEY = "held_flat_locks"


class SessionLock:
     """Mutex owned by a session rather than a thread."""

     def __init__(self):
          self._condition = threading.Condition()
          self._owner: Optional[Session] = None

     @property
     def owner(self) -> Optional[Session]:
          return self._owner

     def acquire(self, owner: Session, timeout: Optional[float] = None) -> bool:
          """
          Take the lock for `owner`.

          Returns:
               True if newly taken, False if `owner` already held it
          """
          with self._condition:
               if self._owner is owner:
                    return False
               if not self._condition.wait_for(lambda: self._owner is None, timeout=timeout):
                    raise TimeoutError("Timed out waiting for lock")
               self._owner = owner
               return True

     def release(self, owner: Session) -> None:
          with self._condition:
               if self._owner is owner:
                    self._owner = None
                    self._condition.notify_all()


class FlatLocks:
     """Registry of session-owned locks keyed by flat id."""

     def __init__(self, timeout: Optional[float] = FLAT_LOCK_TIMEOUT_SECONDS):
          self.timeout = timeout
          self._guard = threading.Lock()
          self._locks: Dict[int, SessionLock] = {}

     def _lock_for(self, flat_id: int) -> SessionLock:
          with self._guard:
               lock = self._locks.get(flat_id)
               if lock is None:
                    lock = SessionLock()
                    self._locks[flat_id] = lock
               return lock

     @contextmanager
     def hold(self, db: Session, flat_id: int) -> Generator[Flat, None, None]:
          """
          Lock the flat for the rest of `db`'s transaction and yield its row.

          Raises:
               NotFoundError: If the flat does not exist
               ConcurrencyConflictError: If another session kept the flat locked past the timeout
          """
          lock = self._lock_for(flat_id)
          try:
               newly_acquired = lock.acquire(db, timeout=self.timeout)
          except TimeoutError:
               logger.warning("Gave up waiting for the lock on flat %s", flat_id)
               raise ConcurrencyConflictError("Flat", flat_id)
          if newly_acquired:
               held: List[SessionLock] = db.info.setdefault(HELD_LOCKS_KEY, [])
               held.append(lock)

          try:
               flat = (
                    db.query(Flat)
                    .with_hint(Flat, "WITH (UPDLOCK, ROWLOCK)", "mssql")
                    .filter(Flat.id == flat_id)
                    .with_for_update()
                    .first()
               )
          except Exception:
               # No transaction to end means nothing would ever release it
               if newly_acquired and not db.in_transaction():
                    release_session_locks(db)
               raise
          if flat is None:
               raise NotFoundError("Flat", flat_id)
          yield flat


def release_session_locks(db: Session) -> None:
     for lock in db.info.pop(HELD_LOCKS_KEY, None) or ():
          lock.release(db)


@event.listens_for(Session, "after_transaction_end")
def _release_on_transaction_end(session: Session, transaction: SessionTransaction) -> None:
     if transaction.parent is None:
          release_session_locks(session)


flat_locks = FlatLocks()
