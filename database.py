# database.py
"""
SQLAlchemy database connection and session management.

This module provides:
- Database engine configuration for Azure SQL (MS SQL Server)
- Session factory for dependency injection
- Connection utilities

Usage:
     from database import get_session, engine

     # In FastAPI routes:
     @app.get("/contracts")
     def get_contracts(db: Session = Depends(get_session)):
          return db.query(Contract).all()
     """
import logging
from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool

from config import DATABASE_URL, SQL_ECHO

logger = logging.getLogger(__name__)


def enable_sqlite_savepoints(target: Engine) -> None:
     """
     Let pysqlite honour SAVEPOINT.

     The driver's own transaction handling swallows BEGIN, which breaks
     `Session.begin_nested()`. Bulk due generation relies on savepoints to
     skip duplicates, so SQLite engines emit BEGIN themselves.
     """

     @event.listens_for(target, "connect")
     def _do_connect(dbapi_connection, connection_record):
          dbapi_connection.isolation_level = None
          cursor = dbapi_connection.cursor()
          cursor.execute("PRAGMA foreign_keys=ON")
          cursor.close()

     @event.listens_for(target, "begin")
     def _do_begin(conn):
          conn.exec_driver_sql("BEGIN")


if DATABASE_URL.startswith("sqlite"):
     engine = create_engine(
          DATABASE_URL,
          connect_args={"check_same_thread": False},
          echo=SQL_ECHO,
     )
     enable_sqlite_savepoints(engine)
else:
     # Create SQLAlchemy engine
     engine = create_engine(
          DATABASE_URL,
          poolclass=QueuePool,
          pool_size=5,
          max_overflow=10,
          pool_timeout=30,
          pool_recycle=1800,  # Recycle connections after 30 minutes
          echo=SQL_ECHO,
     )

# Session factory
SessionLocal = sessionmaker(
     bind=engine,
     autocommit=False,
     autoflush=False,
     expire_on_commit=False,
)


def get_session() -> Generator[Session, None, None]:
     """
     FastAPI dependency that provides a database session.

     The request is one unit of work: commit on success, rollback on any
     exception raised by the route.

     Yields:
          Session: SQLAlchemy database session
     """
     session = SessionLocal()
     try:
          yield session
          session.commit()
     except Exception:
          session.rollback()
          raise
     finally:
          session.close()


@contextmanager
def get_session_context() -> Generator[Session, None, None]:
     """
     Context manager for database sessions (for use outside FastAPI routes).

     Usage:
          with get_session_context() as db:
               ContractService(db).update_contract_statuses()

     Yields:
          Session: SQLAlchemy database session
     """
     session = SessionLocal()
     try:
          yield session
          session.commit()
     except Exception:
          session.rollback()
          raise
     finally:
          session.close()


def init_db() -> None:
     """
     Initialize database tables.

     Creates all tables defined in the models if they don't exist.
     For production, use Alembic migrations instead.
     """
     from models import Base
     Base.metadata.create_all(bind=engine)


def check_connection() -> bool:
     """
     Test database connectivity.

     Returns:
          bool: True if connection successful, False otherwise
     """
     try:
          with engine.connect() as conn:
               conn.execute(text("SELECT 1"))
          return True
     except Exception:
          logger.exception("Database connection failed")
          return False
