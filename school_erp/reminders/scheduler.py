"""
Background fee reminder job.

FeeReminderRunner is the single entry point for a reminder pass. The APScheduler job calls
run_once() on an interval; the admin trigger endpoint calls it on demand with the request's
session. A lock keeps passes from overlapping.
"""

import asyncio
import logging
from datetime import datetime
from typing import Callable, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from sqlalchemy.ext.asyncio import AsyncSession

from school_erp.api.v1.reminders.service import generate_reminders
from school_erp.core.config import settings
from school_erp.db.session import AsyncSessionLocal

logger = logging.getLogger(__name__)

JOB_ID = "fee_reminders"


class FeeReminderRunner:
    def __init__(self, session_factory: Callable[[], AsyncSession] = AsyncSessionLocal):
        self._session_factory = session_factory
        self._lock = asyncio.Lock()
        self.last_created: Optional[int] = None
        self.last_run_at: Optional[datetime] = None

    @property
    def is_running(self) -> bool:
        return self._lock.locked()

    async def run_once(
        self,
        db: Optional[AsyncSession] = None,
        now: Optional[datetime] = None,
        raise_errors: bool = False,
    ) -> bool:
        """
        Run one reminder pass. Returns False without doing anything when a pass is already
        in flight. Errors are logged and swallowed unless raise_errors is set, so the next
        scheduled interval still runs.
        """
        if self._lock.locked():
            logger.warning("Fee reminder pass already running; skipping this trigger")
            return False
        async with self._lock:
            self.last_created = None
            try:
                if db is not None:
                    self.last_created = await generate_reminders(db, now=now)
                else:
                    async with self._session_factory() as session:
                        self.last_created = await generate_reminders(session, now=now)
            except Exception:
                logger.exception("Error generating fee reminders")
                if raise_errors:
                    raise
            finally:
                self.last_run_at = datetime.utcnow()
            logger.info("Fee reminder check completed at %s", self.last_run_at.isoformat())
        return True


fee_reminder_runner = FeeReminderRunner()


def start_scheduler(runner: FeeReminderRunner = fee_reminder_runner) -> Optional[AsyncIOScheduler]:
    """Schedule the reminder job (first pass right away). Returns None when the feature flag is off."""
    if not settings.fee_reminders_enabled:
        logger.info("Fee reminders are disabled via FEE_REMINDERS_ENABLED")
        return None
    scheduler = AsyncIOScheduler()
    scheduler.add_job(
        runner.run_once,
        "interval",
        hours=settings.fee_reminder_interval_hours,
        id=JOB_ID,
        replace_existing=True,
        max_instances=1,
        coalesce=True,
        next_run_time=datetime.now(),
    )
    scheduler.start()
    logger.info(
        "Fee reminder job scheduled every %s hours", settings.fee_reminder_interval_hours
    )
    return scheduler


def shutdown_scheduler(scheduler: Optional[AsyncIOScheduler]) -> None:
    # wait=False: do not block shutdown on the sleeping interval
    if scheduler is not None and scheduler.running:
        scheduler.shutdown(wait=False)
