"""
Periodic detection loop.

Runs AnomalyEngine.run_pass on the asyncio event loop that also delivers
samples, so passes never overlap with ingestion and no locking is needed.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from .engine import AnomalyEngine

logger = logging.getLogger(__name__)


class DetectionLoop:
    """
    Calls engine.run_pass() every `update_interval_ms`.

    The interval is re-read from the engine's detection config before each
    sleep, so config updates take effect on the next tick. A failing pass is
    logged and the loop keeps going.
    """

    def __init__(self, engine: AnomalyEngine):
        self.engine = engine
        self.passes = 0
        self._task: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def interval_seconds(self) -> float:
        return self.engine.detection_config.update_interval_ms / 1000.0

    async def start(self) -> None:
        """Start the loop on the running event loop. No-op if already running."""
        if self.is_running:
            return
        self._task = asyncio.create_task(self._run())
        logger.info(f"Started detection loop ({self.interval_seconds:.3f}s interval)")

    async def stop(self) -> None:
        """Cancel the loop and wait for it to finish."""
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info(f"Stopped detection loop after {self.passes} passes")

    def tick(self) -> int:
        """Run a single pass now; returns the number of events emitted."""
        try:
            events = self.engine.run_pass()
        except Exception as e:
            logger.error(f"Detection pass failed: {e}")
            return 0
        finally:
            self.passes += 1
        return len(events)

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            self.tick()
