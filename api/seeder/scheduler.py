"""
Periodic seeding loop driven by the application lifespan.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

from core.config import Config

from . import service

logger = logging.getLogger(__name__)


class SeedScheduler:
    """
    Runs `job` once at startup and then every `interval_s` seconds.

    Ticks are sequential: the next sleep starts only after the previous run
    finished, so two seeding runs never overlap.
    """

    def __init__(
        self,
        config: Config,
        job: Callable[[], Awaitable[None]] | None = None,
    ):
        settings = config.scheduler
        self.enabled = bool(settings["enabled"] and settings["seeding_enabled"])
        self.interval_s = max(float(settings["interval_s"]), 0.0)
        self._job = job or (lambda: service.seed_data(config))
        self._task: asyncio.Task[None] | None = None
        logger.info(
            "Scheduler initialized",
            extra={
                "enabled": settings["enabled"],
                "data_seeding_enabled": settings["seeding_enabled"],
                "interval_s": self.interval_s,
            },
        )

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if not self.enabled or self.running:
            return
        self._task = asyncio.create_task(self._run(), name="seed-scheduler")

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _run(self) -> None:
        logger.info("Seeding initial data on startup")
        await self._tick()
        while True:
            await asyncio.sleep(self.interval_s)
            logger.info("Running scheduled data seeding")
            await self._tick()

    async def _tick(self) -> None:
        try:
            await self._job()
        except Exception:
            # Keep the loop alive; the next tick retries.
            logger.exception("Scheduled seeding failed")
