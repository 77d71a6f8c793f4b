"""
Background scheduler: runs periodic jobs inside the FastAPI process.

Jobs:
  - Projection refresh (daily, PROJECTION_REFRESH_HOUR_UTC): regenerates
    PROJECTED billing events of every subscription so the window rolls forward
"""
import logging

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

from subtracker.config import get_settings

logger = logging.getLogger(__name__)

scheduler = BackgroundScheduler(daemon=True)


def _run_projection_refresh():
    from subtracker.infrastructure.db.session import get_session_factory
    from subtracker.application.subscriptions import RegenerateProjectionsUseCase

    Session = get_session_factory()
    db = Session()
    try:
        RegenerateProjectionsUseCase(db).execute()
    except Exception:
        db.rollback()
        logger.exception("Projection refresh job failed")
    finally:
        db.close()


def start_scheduler():
    """Start the background scheduler with all periodic jobs."""
    hour = get_settings().PROJECTION_REFRESH_HOUR_UTC
    scheduler.add_job(
        _run_projection_refresh,
        CronTrigger(hour=hour, minute=0, timezone="UTC"),
        id="projection_refresh",
        replace_existing=True,
    )

    scheduler.start()
    logger.info("Scheduler started: projection_refresh (%02d:00 UTC)", hour)


def shutdown_scheduler():
    """Gracefully stop the scheduler."""
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler stopped")
