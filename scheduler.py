import logging
from typing import Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

from config import get_settings
from periods import month_period
from recurrence import local_today
from services import build_services
from storage import NotConnectedError, Store, StoreOperationError, get_store


logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


class SchedulerManager:
    def __init__(self, store: Optional[Store] = None) -> None:
        settings = get_settings()
        self.store = store
        self.scheduler = BackgroundScheduler(timezone=settings.timezone)

    def _run_job(self, source: str = "manual") -> int:
        logger.info(f"scheduler_run: source={source}")
        store = self.store or get_store()
        if not store.is_connected():
            logger.info(f"scheduler_run: source={source} skipped=not_connected")
            return 0
        services = build_services(store)
        month = month_period(None, today=local_today())
        try:
            count = services.fixed_expenses.post_recurring(month, services.transactions)
        except (NotConnectedError, StoreOperationError):
            logger.exception(f"scheduler_run: source={source} failed")
            return 0
        logger.info(f"scheduler_run: source={source} recurring_posted={count}")
        return count

    def start(self) -> None:
        self._run_job("startup")

        trigger = CronTrigger(hour=3, minute=15)
        self.scheduler.add_job(
            self._run_job,
            trigger,
            args=["daily_03:15"],
            id="recurring_fixed_expenses",
            replace_existing=True,
            misfire_grace_time=3600,
        )

        self.scheduler.start()
        logger.info("Scheduler started with daily 03:15 recurring posting")

    def stop(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("Scheduler stopped")
