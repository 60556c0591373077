import asyncio
import logging
from typing import Optional

from seatledger.config import settings
from seatledger.services.registry import LedgerRegistry

logger = logging.getLogger(__name__)


class HoldSweeper:
    """Periodically releases holds whose expiry time has passed."""

    def __init__(self, registry: LedgerRegistry, interval: float = settings.HOLD_SWEEP_INTERVAL_SECONDS):
        self.registry = registry
        self.interval = interval
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self):
        if not self.running:
            self._task = asyncio.create_task(self._run(), name="hold-sweeper")
            logger.info("hold sweeper started", extra={"interval": self.interval})

    async def stop(self):
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("hold sweeper stopped")

    async def run_once(self) -> int:
        try:
            return await self.registry.sweep_expired()
        except Exception:
            # a failed tick must not stop later ones
            logger.exception("hold sweep failed")
            return 0

    async def _run(self):
        while True:
            await asyncio.sleep(self.interval)
            await self.run_once()
