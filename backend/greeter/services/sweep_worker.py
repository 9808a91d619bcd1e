"""Onboarding housekeeping background worker.

asyncio background task started from the FastAPI lifespan. Periodically
purges expired verification codes and orphaned or abandoned sessions.
Best-effort: codes already expire lazily on validation.
"""

import asyncio
import contextlib
import logging
from datetime import UTC, datetime

from greeter.services.onboarding_flow import OnboardingFlow

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_SECONDS = 15 * 60


class SweepWorker:
    """Background worker that periodically sweeps onboarding state.

    Lifecycle:
    - start() creates an asyncio task that runs the sweep loop.
    - stop() cancels the task and waits for graceful shutdown.
    - run_once() executes a single sweep (for testing).

    Args:
        flow: Onboarding flow whose stores are swept.
        interval_seconds: Seconds between sweeps.
    """

    def __init__(
        self,
        flow: OnboardingFlow,
        *,
        interval_seconds: int = DEFAULT_INTERVAL_SECONDS,
    ) -> None:
        self._flow = flow
        self._interval_seconds = interval_seconds
        self._task: asyncio.Task[None] | None = None
        self._last_run_at: datetime | None = None
        self._running = False

    @property
    def is_running(self) -> bool:
        """Whether the background task is currently active."""
        return self._running and self._task is not None and not self._task.done()

    @property
    def last_run_at(self) -> datetime | None:
        """Timestamp of the most recent completed sweep."""
        return self._last_run_at

    def start(self) -> None:
        """Start the background sweep loop.

        Creates an asyncio task. No-op if already running.
        Must be called from an async context (running event loop).
        """
        if self.is_running:
            logger.warning("Sweep worker already running")
            return

        self._running = True
        self._task = asyncio.create_task(self._run_loop())
        logger.info("Sweep worker started (interval=%ds)", self._interval_seconds)

    async def stop(self) -> None:
        """Stop the background sweep loop.

        Cancels the task and waits for it to finish.
        """
        self._running = False
        if self._task is not None and not self._task.done():
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
        self._task = None
        logger.info("Sweep worker stopped")

    def run_once(self) -> tuple[int, int]:
        """Execute a single sweep.

        Returns:
            (challenges_removed, sessions_removed).
        """
        result = self._flow.sweep()
        self._last_run_at = datetime.now(UTC)
        return result

    async def _run_loop(self) -> None:
        """Background loop: sleep → sweep → repeat."""
        try:
            while self._running:
                await asyncio.sleep(self._interval_seconds)
                try:
                    challenges, sessions = self.run_once()
                    logger.debug(
                        "Sweep: %d codes, %d sessions removed", challenges, sessions
                    )
                except Exception:  # noqa: BLE001
                    logger.exception("Error in onboarding sweep")
        except asyncio.CancelledError:
            logger.debug("Sweep loop cancelled")
            raise
