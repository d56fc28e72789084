import logging
from datetime import datetime
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from app.config import settings
from app.services.epg_update_service import run_epg_update


logger = logging.getLogger(__name__)

JOB_ID = 'epg_update'


class EPGScheduler:
    """Scheduler for automatic EPG updates"""

    def __init__(self):
        self.scheduler: AsyncIOScheduler | None = None

    async def _update_job(self) -> None:
        """Background job that runs the EPG update"""
        logger.info("Scheduled EPG update triggered")
        try:
            result = await run_epg_update()
            if result.get("status") == "failed":
                logger.error(f"Scheduled update failed: {result.get('error')}")
        except Exception as e:
            logger.error(f"Exception in scheduled update: {e}", exc_info=True)

    def start(self) -> None:
        """Start the scheduler with the EPG update job"""
        if self.scheduler and self.scheduler.running:
            logger.warning("Scheduler already running")
            return

        tz = settings.tzinfo
        try:
            trigger = CronTrigger.from_crontab(settings.epg_fetch_cron, timezone=tz)
        except (ValueError, KeyError) as exc:
            logger.error("Invalid cron expression '%s': %s", settings.epg_fetch_cron, exc)
            raise

        self.scheduler = AsyncIOScheduler(timezone=tz)
        self.scheduler.add_job(
            self._update_job,
            trigger=trigger,
            id=JOB_ID,
            max_instances=1,
            coalesce=True,
            misfire_grace_time=settings.epg_fetch_misfire_grace_sec
        )

        if settings.run_on_start:
            logger.info("RUN_ON_START enabled - scheduling immediate update")
            self.scheduler.add_job(
                self._update_job,
                id='epg_update_on_start',
                next_run_time=datetime.now(tz),
            )

        self.scheduler.start()
        next_time = self.get_next_run_time()
        logger.info(
            "Scheduler started. Next update: %s",
            next_time.isoformat() if next_time else "unknown"
        )

    def shutdown(self) -> None:
        """Shutdown the scheduler"""
        if self.scheduler and self.scheduler.running:
            self.scheduler.shutdown()
            logger.info("Scheduler stopped")
            self.scheduler = None

    @property
    def running(self) -> bool:
        return bool(self.scheduler and self.scheduler.running)

    def get_next_run_time(self) -> datetime | None:
        """Get next scheduled update time"""
        if not self.scheduler:
            return None
        job = self.scheduler.get_job(JOB_ID)
        return job.next_run_time if job else None


epg_scheduler = EPGScheduler()
