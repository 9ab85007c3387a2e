"""
In-process periodic jobs: the stale-game sweep and the notification worker.

Each job opens its own database session per run. Overlapping runs (another
API worker, a manual POST /games/sweep) are safe because both jobs apply
their writes with conditional UPDATEs.
"""

import asyncio
from typing import Awaitable, Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from pickup.core.logging import get_logger
from pickup.db.session import AsyncSessionLocal
from pickup.services.game_service import sweep_stale
from pickup.services.notification_worker import run_notification_worker
from pickup.services.provider_factory import get_push_provider

logger = get_logger(__name__)


class PeriodicJob:
    """Runs `job(session)` every `interval` seconds until stopped."""

    def __init__(
        self,
        name: str,
        job: Callable[[AsyncSession], Awaitable[object]],
        interval: float,
        session_factory=AsyncSessionLocal,
    ):
        self.name = name
        self.interval = interval
        self._job = job
        self._session_factory = session_factory
        self._worker_task: Optional[asyncio.Task] = None
        self._stop_event = asyncio.Event()

    @property
    def running(self) -> bool:
        return self._worker_task is not None and not self._worker_task.done()

    def start(self) -> None:
        if not self.running:
            self._stop_event.clear()
            self._worker_task = asyncio.create_task(self._poll_loop())
            logger.info("periodic_job_started", job=self.name, interval=self.interval)

    async def stop(self) -> None:
        self._stop_event.set()
        if self.running:
            self._worker_task.cancel()
            try:
                await self._worker_task
            except asyncio.CancelledError:
                pass
            logger.info("periodic_job_stopped", job=self.name)
        self._worker_task = None

    async def run_once(self) -> object:
        async with self._session_factory() as session:
            return await self._job(session)

    async def _poll_loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                await self.run_once()
            except Exception as e:
                logger.error("periodic_job_failed", job=self.name, error=str(e), exc_info=True)

            # Wait for the interval or until stop is signalled
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self.interval)
                break
            except asyncio.TimeoutError:
                pass


async def _sweep(session: AsyncSession) -> list[int]:
    return await sweep_stale(session)


async def _deliver(session: AsyncSession):
    return await run_notification_worker(session, get_push_provider())


def stale_sweep_job(interval: float) -> PeriodicJob:
    return PeriodicJob("stale_game_sweep", _sweep, interval)


def notification_worker_job(interval: float) -> PeriodicJob:
    return PeriodicJob("notification_worker", _deliver, interval)
