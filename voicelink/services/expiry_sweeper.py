"""Background task that periodically removes expired codes and tokens."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional, Sequence

from voicelink.services.oauth_authority import OAuthAuthority

logger = logging.getLogger(__name__)


class ExpirySweeper:
    """Run ``cleanup_expired`` on every authority at a fixed interval."""

    def __init__(
        self, authorities: Sequence[OAuthAuthority], interval_seconds: float
    ) -> None:
        self._authorities = list(authorities)
        self._interval = interval_seconds
        self._task: Optional[asyncio.Task[None]] = None

    @property
    def enabled(self) -> bool:
        return self._interval > 0

    def sweep_once(self) -> int:
        total = 0
        for authority in self._authorities:
            try:
                total += authority.cleanup_expired()
            except Exception:
                logger.exception(
                    "Expiry sweep failed", extra={"assistant": authority.namespace}
                )
        if total:
            logger.info("Expiry sweep removed %d records", total)
        return total

    async def run_forever(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            self.sweep_once()

    def start(self) -> None:
        if not self.enabled:
            logger.info("Expiry sweep disabled")
            return
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.run_forever())

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None


__all__ = ["ExpirySweeper"]
