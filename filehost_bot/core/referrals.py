from __future__ import annotations

import logging

from ..registry import QuotaSnapshot, ReferrerStanding, RegistryStore

logger = logging.getLogger("filehost_bot")


class ReferralGraph:
    def __init__(self, registry: RegistryStore) -> None:
        self.registry = registry

    async def record_referral(self, referrer_id: int, referred_id: int) -> QuotaSnapshot | None:
        """Credit ``referrer_id`` for ``referred_id``.

        Returns the referrer's updated quota, or None when nothing changed:
        self-referral, an unknown referrer, or a referred subject that was
        already claimed by someone (first claim wins).
        """
        if int(referrer_id) == int(referred_id):
            logger.info("Self-referral ignored for subject=%s", referrer_id)
            return None
        if await self.registry.get_subject(referrer_id) is None:
            return None
        if not await self.registry.insert_referral(referrer_id, referred_id):
            return None
        logger.info("Referral recorded: referrer=%s referred=%s", referrer_id, referred_id)
        return await self.registry.get_quota(referrer_id)

    async def referrer_of(self, referred_id: int) -> int | None:
        return await self.registry.get_referrer_of(referred_id)

    async def referred_by(self, referrer_id: int) -> list[int]:
        return await self.registry.list_referred_ids(referrer_id)

    async def top_referrers(self, limit: int = 10) -> list[ReferrerStanding]:
        return await self.registry.top_referrers(limit)

    async def total_referrals(self) -> int:
        return await self.registry.count_referrals()
