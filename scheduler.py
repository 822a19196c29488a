import logging

from apscheduler.events import EVENT_JOB_ERROR, JobExecutionEvent
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from config import get_settings
from database import session_scope
from services import QuoteRefreshService


logger = logging.getLogger(__name__)


class SchedulerManager:
    """Periodic investment quote refresh, off unless FINANCE_SCHEDULER_ENABLED is set."""

    def __init__(self) -> None:
        settings = get_settings()
        self.enabled = settings.scheduler_enabled
        self.refresh_minutes = settings.quotes_refresh_minutes
        self.scheduler = BackgroundScheduler(timezone=settings.timezone)
        self.scheduler.add_listener(self._on_job_error, EVENT_JOB_ERROR)

    def refresh_quotes(self, source: str = "manual") -> dict:
        with session_scope() as session:
            result = QuoteRefreshService(session).refresh()
        logger.info(
            f"quotes_job: source={source} updated={result['updated']} "
            f"errors={len(result['errors'])}"
        )
        return result

    def _on_job_error(self, event: JobExecutionEvent) -> None:
        logger.error(f"quotes_job_failed: job_id={event.job_id} error={event.exception!r}")

    def start(self) -> None:
        if not self.enabled:
            logger.info("scheduler_disabled: quotes refresh only on request")
            return

        # B3 closes at 18:00 local time; 18:30 picks up the closing prices.
        self.scheduler.add_job(
            self.refresh_quotes,
            CronTrigger(day_of_week="mon-fri", hour=18, minute=30),
            args=["market_close"],
            id="quotes_market_close",
            replace_existing=True,
            misfire_grace_time=3600,
        )
        self.scheduler.add_job(
            self.refresh_quotes,
            IntervalTrigger(minutes=self.refresh_minutes),
            args=[f"every_{self.refresh_minutes}m"],
            id="quotes_interval",
            replace_existing=True,
            coalesce=True,
            misfire_grace_time=300,
        )
        self.scheduler.start()
        logger.info(
            f"scheduler_started: market_close=18:30 interval_minutes={self.refresh_minutes}"
        )

    def stop(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("scheduler_stopped")
