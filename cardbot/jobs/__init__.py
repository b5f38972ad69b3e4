"""Jobs module for scheduled background maintenance."""

from cardbot.jobs.scheduler import (
    get_scheduler,
    setup_sweep_jobs,
    shutdown_scheduler,
    start_scheduler,
    sweep_caches,
    sweep_rate_limits,
    sweep_sessions,
)

__all__ = [
    "get_scheduler",
    "setup_sweep_jobs",
    "shutdown_scheduler",
    "start_scheduler",
    "sweep_caches",
    "sweep_rate_limits",
    "sweep_sessions",
]
