"""Owner of the recurring background jobs.

One apscheduler AsyncIOScheduler runs two interval jobs, both firing once
at start-up:

- ``token_sweep``: TokenLifecycleManager.sweep, every 2 hours by default
- ``delivery_tick``: DeliveryScheduler.process_due_messages, every minute

Jobs never overlap with themselves and missed runs are coalesced. A job
failure is logged and the schedule continues.
"""

import asyncio
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from typing import Any

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from structlog import get_logger

from threadly.config.scheduler import SchedulerSettings
from threadly.exceptions import ThreadlyError
from threadly.scheduling.delivery import DeliveryScheduler
from threadly.tokens.lifecycle import TokenLifecycleManager


logger = get_logger(__name__)

TOKEN_SWEEP_JOB_ID = "token_sweep"
DELIVERY_TICK_JOB_ID = "delivery_tick"


class BackgroundSupervisor:
    """Starts, runs and joins the token sweep and the delivery tick."""

    def __init__(
        self,
        lifecycle: TokenLifecycleManager,
        delivery: DeliveryScheduler,
        settings: SchedulerSettings | None = None,
    ) -> None:
        self.lifecycle = lifecycle
        self.delivery = delivery
        self.settings = settings or SchedulerSettings()
        self._scheduler: AsyncIOScheduler | None = None
        self._active: set[asyncio.Task[Any]] = set()
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start the scheduler and queue the first run of each job."""
        if self._running:
            logger.warning("background_supervisor_already_running")
            return

        now = datetime.now(UTC)
        self._scheduler = AsyncIOScheduler(timezone=UTC)
        self._scheduler.add_job(
            self._run_job,
            "interval",
            hours=self.settings.token_sweep_interval_hours,
            args=[TOKEN_SWEEP_JOB_ID, self.lifecycle.sweep],
            id=TOKEN_SWEEP_JOB_ID,
            name="Token Sweep",
            next_run_time=now,
            max_instances=1,
            coalesce=True,
        )
        self._scheduler.add_job(
            self._run_job,
            "interval",
            seconds=self.settings.delivery_interval_seconds,
            args=[DELIVERY_TICK_JOB_ID, self.delivery.process_due_messages],
            id=DELIVERY_TICK_JOB_ID,
            name="Delivery Tick",
            next_run_time=now,
            max_instances=1,
            coalesce=True,
        )
        self._scheduler.start()
        self._running = True

        logger.info(
            "background_supervisor_started",
            token_sweep_interval_hours=self.settings.token_sweep_interval_hours,
            delivery_interval_seconds=self.settings.delivery_interval_seconds,
        )

    async def stop(self) -> None:
        """Pause scheduling, join running jobs, then shut the scheduler down.

        Jobs still running after the graceful-shutdown timeout are cancelled.
        Scheduler shutdown cancels pending job futures, so it comes last.
        """
        if not self._running:
            return
        self._running = False

        if self._scheduler is not None:
            self._scheduler.pause()

        timeout = self.settings.graceful_shutdown_timeout
        pending = {task for task in self._active if not task.done()}
        if pending:
            logger.info("background_jobs_draining", count=len(pending))
            _, still_running = await asyncio.wait(pending, timeout=timeout)
            for task in still_running:
                task.cancel()
            if still_running:
                logger.warning(
                    "background_jobs_cancelled_on_shutdown", count=len(still_running)
                )
                await asyncio.gather(*still_running, return_exceptions=True)

        await self.delivery.aclose(timeout=timeout)

        if self._scheduler is not None:
            self._scheduler.shutdown(wait=False)
            self._scheduler = None

        logger.info("background_supervisor_stopped")

    async def run_job_now(self, job_id: str) -> None:
        """Run a job immediately, outside its schedule."""
        jobs: dict[str, Callable[[], Awaitable[Any]]] = {
            TOKEN_SWEEP_JOB_ID: self.lifecycle.sweep,
            DELIVERY_TICK_JOB_ID: self.delivery.process_due_messages,
        }
        if job_id not in jobs:
            raise ValueError(f"Unknown job: {job_id}")
        await self._run_job(job_id, jobs[job_id])

    async def _run_job(self, job_id: str, func: Callable[[], Awaitable[Any]]) -> None:
        task = asyncio.current_task()
        if task is not None:
            self._active.add(task)
        try:
            await func()
        except ThreadlyError as e:
            logger.error(
                "background_job_failed",
                job=job_id,
                error_type=str(e.error_type),
                error=e.message,
            )
        except Exception:
            logger.exception("background_job_error", job=job_id)
        finally:
            if task is not None:
                self._active.discard(task)
