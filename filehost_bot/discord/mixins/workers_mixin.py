from __future__ import annotations

import asyncio
import logging

from ...core.errors import CollaboratorError, NotFoundError
from ...services.messaging import OutboundPayload

logger = logging.getLogger("filehost_bot")

PREMIUM_EXPIRED_NOTICE = "ℹ️ Your premium subscription has expired. Your storage slots are back to your regular limit."


class WorkersMixin:
    async def _sweep_expired_premiums(self) -> list[int]:
        expired = await self.ledger.expire_premiums()
        for subject_id in expired:
            try:
                await self.fanout.send_direct(subject_id, OutboundPayload(PREMIUM_EXPIRED_NOTICE))
            except (CollaboratorError, NotFoundError) as exc:
                logger.info("Premium expiry notice to %s not delivered: %s", subject_id, exc)
        if expired:
            logger.info("Premium expired for %s subjects", len(expired))
        return expired

    async def _premium_expiry_worker(self) -> None:
        interval = max(10, int(self.settings.premium_expiry_sweep_seconds))
        while True:
            try:
                await self._sweep_expired_premiums()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Premium expiry sweep failed")
            await asyncio.sleep(interval)
