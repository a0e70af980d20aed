"""Window sweeper — evicts expired rate windows in the background.

Learn: Contractors who stop submitting would otherwise keep their
RateWindow forever. The sweeper runs as a long-lived task in the FastAPI
lifespan and calls AdmissionController.sweep() once per interval.

Stopping is explicit: stop() sets an asyncio.Event that the loop waits
on, so shutdown does not have to wait out a full interval or rely on
task cancellation.

Usage:
    sweeper = WindowSweeper(controller, interval=60.0)
    task = asyncio.create_task(sweeper.run_loop())
    ...
    sweeper.stop()
    await task
"""

import asyncio

import structlog

from tenderhub.admission.limiter import AdmissionController

logger = structlog.get_logger()


class WindowSweeper:
    """Periodic, stoppable sweep of an AdmissionController."""

    def __init__(self, controller: AdmissionController, interval: float = 60.0):
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.controller = controller
        self.interval = interval
        self._stop = asyncio.Event()

    @property
    def stopped(self) -> bool:
        return self._stop.is_set()

    async def run_loop(self) -> None:
        """Sweep once per interval until stop() is called."""
        logger.info("window_sweeper.started", interval=self.interval)

        while not self._stop.is_set():
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=self.interval)
            except asyncio.TimeoutError:
                self.sweep_once()

        logger.info("window_sweeper.stopped")

    def sweep_once(self) -> int:
        try:
            removed = self.controller.sweep()
        except Exception:
            logger.exception("window_sweeper.error")
            return 0
        if removed:
            logger.debug(
                "window_sweeper.swept",
                removed=removed,
                tracked=len(self.controller),
            )
        return removed

    def stop(self) -> None:
        """Signal the sweeper to stop."""
        self._stop.set()
        logger.info("window_sweeper.stopping")
