from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger
from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_EXECUTED
import logging

from .config import settings
from .maintenance_state import MaintenanceState
from .metrics import error_count
from .siteinfo import SiteDirectory, SiteinfoError

logger = logging.getLogger(__name__)

# Global scheduler instance
scheduler = BackgroundScheduler(
    timezone="UTC",
    job_defaults={
        'coalesce': True,
        'max_instances': 1,
        'misfire_grace_time': 3600
    }
)


def job_listener(event):
    if event.exception:
        logger.error(f"Job {event.job_id} failed with exception: {event.exception}")
    else:
        logger.info(f"Job {event.job_id} executed successfully")


def reload_and_prune(directory: SiteDirectory, state: MaintenanceState) -> int:
    """refresh siteinfo, then drop maintenance entries for retired sites"""
    logger.info("Reloading siteinfo data...")
    try:
        directory.reload()
    except SiteinfoError as e:
        logger.error(f"Failed to reload the siteinfo data: {e}")
        error_count.labels("reload", "scheduler.reload_and_prune").inc()
        return 0

    removed = state.prune()
    logger.info(f"Pruned {removed} retired entities from maintenance")
    return removed


def reload_trigger() -> IntervalTrigger:
    #jitter keeps the effective interval inside [RELOAD_MIN, RELOAD_MAX]
    jitter = min(settings.RELOAD_TIME - settings.RELOAD_MIN, settings.RELOAD_MAX - settings.RELOAD_TIME)
    return IntervalTrigger(seconds=settings.RELOAD_TIME, jitter=jitter or None)


def init_scheduler(directory: SiteDirectory, state: MaintenanceState):
    scheduler.add_listener(job_listener, EVENT_JOB_ERROR | EVENT_JOB_EXECUTED)

    scheduler.add_job(
        reload_and_prune,
        trigger=reload_trigger(),
        args=[directory, state],
        id='siteinfo_reload',
        name='Siteinfo Reload and Maintenance Prune',
        replace_existing=True
    )

    logger.info("Scheduler initialized with siteinfo reload job")
    logger.info(f"  - Siteinfo reload: every {settings.RELOAD_TIME}s "
                f"(between {settings.RELOAD_MIN}s and {settings.RELOAD_MAX}s)")


def start_scheduler():
    if not scheduler.running:
        scheduler.start()
        logger.info("Background scheduler started")


def shutdown_scheduler():
    if scheduler.running:
        scheduler.shutdown(wait=True)
        logger.info("Background scheduler stopped")


def get_scheduled_jobs():
    jobs = []
    for job in scheduler.get_jobs():
        jobs.append({
            "id": job.id,
            "name": job.name,
            "next_run_time": job.next_run_time.isoformat() if job.next_run_time else None,
            "trigger": str(job.trigger)
        })
    return jobs
