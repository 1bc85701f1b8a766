# tasks.py
"""
Scheduled jobs.

Each job opens its own session and commits when it finishes. Run from cron
or any external scheduler:

     python tasks.py contract-statuses      # daily, shortly after midnight
     python tasks.py overdue-dues           # daily
     python tasks.py monthly-dues           # 1st of each month
     python tasks.py expiry-notices         # daily
"""
import argparse
import logging

from config import EXPIRY_NOTICE_DAYS
from database import get_session_context
from dependencies import event_publisher, notification_listener
from logging_config import configure_logging
from services import ContractService, MonthlyDueService

logger = logging.getLogger(__name__)


def run_contract_status_sweep() -> dict:
     with get_session_context() as db:
          return ContractService(db, publisher=event_publisher).update_contract_statuses()


def run_overdue_sweep() -> int:
     with get_session_context() as db:
          return MonthlyDueService(db, publisher=event_publisher).update_overdue_statuses()


def run_monthly_generation() -> dict:
     with get_session_context() as db:
          return MonthlyDueService(db, publisher=event_publisher).generate_monthly_dues_automatically()


def run_expiry_notices(days_ahead: int = EXPIRY_NOTICE_DAYS) -> int:
     with get_session_context() as db:
          expiring = ContractService(db, publisher=event_publisher).list_expiring_contracts(days_ahead)
          return notification_listener.notify_expiring(expiring)


JOBS = {
     "contract-statuses": run_contract_status_sweep,
     "overdue-dues": run_overdue_sweep,
     "monthly-dues": run_monthly_generation,
     "expiry-notices": run_expiry_notices,
}


def main(argv=None) -> None:
     parser = argparse.ArgumentParser(description="Run a scheduled rental job")
     parser.add_argument("job", choices=sorted(JOBS))
     args = parser.parse_args(argv)

     configure_logging()
     result = JOBS[args.job]()
     logger.info("Job %s finished: %s", args.job, result)


if __name__ == "__main__":
     main()
