"""
Scheduled jobs: run-state guard, per-run reports and JobQueue registration.
"""

import enum
import threading
from dataclasses import dataclass, field
from typing import List

from apscheduler.triggers.cron import CronTrigger

from groupmind.logging_config import get_logger

logger = get_logger(__name__)


class JobState(enum.Enum):
    IDLE = "idle"
    RUNNING = "running"


class JobGuard:
    """
    At most one run of a job at a time. A tick that finds the job running is
    skipped, not queued.
    """

    def __init__(self, name):
        self.name = name
        self.state = JobState.IDLE
        self._lock = threading.Lock()

    def try_enter(self):
        if not self._lock.acquire(blocking=False):
            logger.warning(f"{self.name} already running, skipping this tick")
            return False
        self.state = JobState.RUNNING
        return True

    def leave(self):
        self.state = JobState.IDLE
        self._lock.release()


@dataclass
class CompileReport:
    """What one hourly/daily run did, per conversation."""
    period: str
    created: List[str] = field(default_factory=list)
    skipped_existing: List[str] = field(default_factory=list)
    skipped_empty: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)

    @property
    def conversations(self):
        return len(self.created) + len(self.skipped_existing) + len(self.skipped_empty) + len(self.failed)


async def _run_each(bot_data, names):
    """Run jobs in order; one that raises is logged and the rest still run."""
    for name in names:
        try:
            await bot_data[name].run()
        except Exception as e:
            logger.exception(f"Job {name} failed: {e}")


async def _hourly_tick(context):
    await _run_each(context.application.bot_data, ["hourly_notes", "reminder_sweep"])


async def _daily_tick(context):
    await _run_each(context.application.bot_data, ["daily_digest", "knowledge_compiler"])


def register_jobs(job_queue, tz, daily_time):
    """Hourly at minute 0 and daily at `daily_time`, both in the group's timezone."""
    job_queue.run_custom(
        _hourly_tick,
        job_kwargs={"trigger": CronTrigger(minute=0, timezone=tz), "max_instances": 1, "coalesce": True},
        name="hourly",
    )
    job_queue.run_custom(
        _daily_tick,
        job_kwargs={
            "trigger": CronTrigger(hour=daily_time.hour, minute=daily_time.minute, timezone=tz),
            "max_instances": 1,
            "coalesce": True,
        },
        name="daily",
    )
    logger.info(f"Jobs scheduled: hourly at :00, daily at {daily_time.strftime('%H:%M')} ({tz.key})")
