"""
Proactive Agent: background tick loop.

AUTONOMY PROOF:
Runs periodically without user prompting, but NEVER executes autonomously.

SAFETY MODEL:
1. Agent SCANS prices, balances and armed automations every tick
2. Agent CREATES PENDING_APPROVAL proposals with a simulated transaction
3. Owner REVIEWS the decision report and signs or denies in-wallet
4. Nothing is broadcast by the backend

NO AUTO-EXECUTION. NO SIGNING. HUMAN-IN-THE-LOOP ALWAYS.
"""
import asyncio
import logging
from typing import Optional

logger = logging.getLogger(__name__)


class ProactiveScheduler:
    """
    Async background loop that runs ProposalEngine.tick periodically.

    Design choices:
    - Simple asyncio.sleep loop (no external scheduler dependency)
    - Runs in same process as FastAPI, owned by the app lifespan
    - Each tick runs in the default thread pool so the event loop never blocks
    """

    def __init__(self, engine, interval_seconds: float = 60, initial_delay_seconds: float = 10):
        self.engine = engine
        self.interval_seconds = interval_seconds
        self.initial_delay_seconds = initial_delay_seconds
        self._running = False
        self._task: Optional[asyncio.Task] = None
        self.ticks_run = 0

    @property
    def running(self) -> bool:
        return self._running

    async def _loop(self):
        self._running = True
        logger.info(f"[ProactiveAgent] Scheduler started. Interval: {self.interval_seconds}s")

        # Initial delay to let server fully start
        await asyncio.sleep(self.initial_delay_seconds)

        while self._running:
            try:
                loop = asyncio.get_running_loop()
                await loop.run_in_executor(None, self.engine.tick)
                self.ticks_run += 1
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"[ProactiveAgent] Tick error: {e}", exc_info=True)

            await asyncio.sleep(self.interval_seconds)

    def start(self) -> None:
        """Start the loop. Called from the FastAPI lifespan."""
        if self._task is not None and not self._task.done():
            return
        self._task = asyncio.create_task(self._loop())
        logger.info("[ProactiveAgent] Proposal scheduler initialized")

    async def stop(self) -> None:
        """Stop gracefully. An in-flight tick finishes in its worker thread."""
        self._running = False
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("[ProactiveAgent] Scheduler stopped")
