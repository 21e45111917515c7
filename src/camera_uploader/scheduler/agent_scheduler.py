"""Periodic invocation of the camera upload agent."""

from typing import Dict, Any, Optional
from datetime import datetime, timezone

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from apscheduler.events import EVENT_JOB_EXECUTED, EVENT_JOB_ERROR, EVENT_JOB_MISSED, EVENT_JOB_MAX_INSTANCES

from ..core.agent import CameraUploadAgent, InvocationResult
from ..utils.logging import get_logger


class SchedulerError(Exception):
    """Raised when scheduler operations fail."""
    pass


class AgentScheduler:
    """Runs the agent on a fixed interval, never two invocations at once."""

    JOB_ID = "camera_upload"

    def __init__(self, agent: CameraUploadAgent, interval_minutes: int = 30, run_on_start: bool = True):
        """Initialize the scheduler.

        Args:
            agent: Agent whose invocation is scheduled
            interval_minutes: Minutes between invocations
            run_on_start: Fire the first invocation immediately
        """
        self.agent = agent
        self.interval_minutes = interval_minutes
        self.run_on_start = run_on_start
        self.logger = get_logger(self.__class__.__name__)

        self.scheduler = AsyncIOScheduler(
            job_defaults={
                'coalesce': True,  # Combine multiple pending executions
                'max_instances': 1,  # Invocations never overlap
                'misfire_grace_time': 300
            }
        )

        self.stats: Dict[str, Any] = {
            "run_count": 0,
            "success_count": 0,
            "error_count": 0,
            "skipped_count": 0,
            "last_run": None,
            "last_result": None
        }

        self.scheduler.add_listener(self._job_executed, EVENT_JOB_EXECUTED)
        self.scheduler.add_listener(self._job_error, EVENT_JOB_ERROR)
        self.scheduler.add_listener(self._job_missed, EVENT_JOB_MISSED | EVENT_JOB_MAX_INSTANCES)

    @property
    def is_running(self) -> bool:
        return self.scheduler.running

    async def start(self):
        """Start the scheduler and register the upload job."""
        if self.scheduler.running:
            self.logger.warning("Scheduler is already running")
            return

        job_kwargs = {}
        if self.run_on_start:
            job_kwargs["next_run_time"] = datetime.now(timezone.utc)

        try:
            self.scheduler.start()
            job = self.scheduler.add_job(
                func=self.agent.run_invocation,
                trigger=IntervalTrigger(minutes=self.interval_minutes),
                id=self.JOB_ID,
                name="Camera upload",
                replace_existing=True,
                **job_kwargs
            )
        except Exception as e:
            self.logger.error("Failed to start scheduler", error=str(e))
            raise SchedulerError(f"Failed to start scheduler: {e}") from e

        self.logger.info(
            "Agent scheduler started",
            interval_minutes=self.interval_minutes,
            next_run=job.next_run_time
        )

    async def stop(self, wait: bool = True):
        """Stop the scheduler."""
        if not self.scheduler.running:
            self.logger.warning("Scheduler is not running")
            return

        self.scheduler.shutdown(wait=wait)
        self.logger.info("Agent scheduler stopped")

    async def trigger_now(self) -> InvocationResult:
        """Run one invocation outside the schedule, after any invocation in progress."""
        self.logger.info("Manually triggering invocation")
        result = await self.agent.run_invocation()
        self._update_stats(result)
        return result

    def get_stats(self) -> Dict[str, Any]:
        stats = self.stats.copy()
        job = self.scheduler.get_job(self.JOB_ID) if self.scheduler.running else None
        stats.update({
            "is_running": self.scheduler.running,
            "interval_minutes": self.interval_minutes,
            "next_run": job.next_run_time if job else None
        })
        return stats

    def _update_stats(self, result: Optional[InvocationResult]):
        self.stats["last_run"] = datetime.now(timezone.utc)
        self.stats["run_count"] += 1

        if isinstance(result, InvocationResult):
            self.stats["last_result"] = {
                "outcome": result.outcome.value,
                "items_uploaded": result.items_uploaded,
                "items_duplicate": result.items_duplicate,
                "items_failed": result.items_failed,
                "duration": result.duration,
                "error_message": result.error_message
            }
            if result.success:
                self.stats["success_count"] += 1
            else:
                self.stats["error_count"] += 1
        else:
            self.stats["success_count"] += 1

    def _job_executed(self, event):
        """Handle job execution event."""
        self._update_stats(getattr(event, "retval", None))

    def _job_error(self, event):
        """Handle job error event."""
        self.stats["last_run"] = datetime.now(timezone.utc)
        self.stats["run_count"] += 1
        self.stats["error_count"] += 1
        self.stats["last_result"] = {"outcome": "error", "error_message": str(event.exception)}

        self.logger.error("Scheduled invocation raised", job_id=event.job_id, error=str(event.exception))

    def _job_missed(self, event):
        """Handle missed or overlapping runs."""
        self.stats["skipped_count"] += 1
        self.logger.warning(
            "Scheduled invocation skipped",
            job_id=event.job_id,
            scheduled_run_time=getattr(event, "scheduled_run_time", None)
        )
