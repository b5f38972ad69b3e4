"""APScheduler configuration and the periodic sweeps of in-memory stores."""

from apscheduler.jobstores.memory import MemoryJobStore
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from cardbot.bot.middlewares import RateLimitMiddleware
from cardbot.config import Config
from cardbot.logging import get_logger
from cardbot.services import Services

logger = get_logger(__name__)

_scheduler: AsyncIOScheduler | None = None

SESSION_SWEEP_JOB_ID = "session_sweep"
CACHE_SWEEP_JOB_ID = "cache_sweep"
RATE_LIMIT_SWEEP_JOB_ID = "rate_limit_sweep"


def get_scheduler() -> AsyncIOScheduler:
    """Get or create the scheduler instance."""
    global _scheduler

    if _scheduler is None:
        logger.info("Creating scheduler")
        _scheduler = AsyncIOScheduler(
            jobstores={"default": MemoryJobStore()},
            job_defaults={
                "coalesce": True,
                "max_instances": 1,
                "misfire_grace_time": 60,
            },
        )

    return _scheduler


def start_scheduler() -> None:
    """Start the scheduler if not already running."""
    scheduler = get_scheduler()
    if not scheduler.running:
        logger.info("Starting scheduler")
        scheduler.start()


def shutdown_scheduler() -> None:
    """Shutdown the scheduler gracefully."""
    global _scheduler
    if _scheduler is not None and _scheduler.running:
        logger.info("Shutting down scheduler")
        _scheduler.shutdown(wait=True)
    _scheduler = None


# ------------------------------------------------------------------
# Sweep jobs
# ------------------------------------------------------------------

def sweep_sessions(services: Services) -> int:
    """Drop expired conversations and search states."""
    removed = services.conversations.cleanup_expired()
    removed += services.search_sessions.cleanup()
    if removed:
        logger.info(f"Session sweep removed {removed} expired entries")
    return removed


def sweep_caches(services: Services) -> int:
    removed = sum(cache.cleanup() for cache in services.caches())
    if removed:
        logger.info(f"Cache sweep removed {removed} expired entries")
    return removed


def sweep_rate_limits(services: Services, middleware: RateLimitMiddleware | None = None) -> int:
    removed = services.rate_limiter.cleanup()
    if middleware is not None:
        removed += middleware.cleanup()
    if removed:
        logger.info(f"Rate limit sweep removed {removed} idle entries")
    return removed


def setup_sweep_jobs(
    services: Services,
    config: Config,
    rate_limit_middleware: RateLimitMiddleware | None = None,
) -> list[str]:
    """Register the three periodic sweeps. Returns the job ids."""
    scheduler = get_scheduler()
    jobs = [
        (SESSION_SWEEP_JOB_ID, "Session Sweep", sweep_sessions, (services,),
         config.session_sweep_minutes),
        (CACHE_SWEEP_JOB_ID, "Cache Sweep", sweep_caches, (services,),
         config.cache_sweep_minutes),
        (RATE_LIMIT_SWEEP_JOB_ID, "Rate Limit Sweep", sweep_rate_limits,
         (services, rate_limit_middleware), config.rate_limit_sweep_minutes),
    ]

    job_ids = []
    for job_id, name, func, args, minutes in jobs:
        if minutes <= 0:
            logger.info(f"{name} job not scheduled: interval is {minutes}")
            continue
        job = scheduler.add_job(
            func,
            "interval",
            minutes=minutes,
            args=args,
            id=job_id,
            name=name,
            replace_existing=True,
        )
        logger.info(f"Scheduled {name} job: interval={minutes}m, job_id={job.id}")
        job_ids.append(job.id)

    return job_ids
