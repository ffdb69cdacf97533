from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from ..registry import QuotaSnapshot, RegistryStore
from ..registry.clock import utc_now
from .auth import AdminGate
from .bot_config import BotConfigStore, PremiumSettings
from .errors import ConcurrencyConflict, NotFoundError, ValidationError
from .locks import KeyedLocks

logger = logging.getLogger("filehost_bot")


@dataclass(slots=True, frozen=True)
class AdmissionResult:
    admitted: bool
    snapshot: QuotaSnapshot


@dataclass(slots=True, frozen=True)
class BulkResult:
    affected: int
    failed: int


class QuotaLedger:
    """Slot accounting per subject.

    Admission is a single conditional UPDATE in the registry, serialized per
    subject with an ``asyncio.Lock`` so the check and the increment can never be
    split by another admission for the same subject. Every read goes to the
    registry; nothing is cached between calls.
    """

    def __init__(
        self,
        registry: RegistryStore,
        gate: AdminGate,
        config: BotConfigStore,
        *,
        default_base_limit: int = 2,
    ) -> None:
        self.registry = registry
        self.gate = gate
        self.config = config
        self.default_base_limit = max(0, int(default_base_limit))
        self._locks = KeyedLocks()

    async def snapshot(self, subject_id: int) -> QuotaSnapshot:
        snapshot = await self.registry.get_quota(subject_id)
        if snapshot is None:
            raise NotFoundError(f"User {subject_id} not found.")
        return snapshot

    async def can_admit(self, subject_id: int) -> bool:
        return (await self.snapshot(subject_id)).can_admit

    async def admit(self, subject_id: int) -> AdmissionResult:
        async with self._locks.hold(subject_id):
            admitted, snapshot = await self.registry.try_consume_slot(subject_id)
        if snapshot is None:
            raise NotFoundError(f"User {subject_id} not found.")
        if not admitted:
            logger.info(
                "Admission refused for subject=%s used=%s total=%s",
                subject_id,
                snapshot.consumed_count,
                snapshot.total_slots,
            )
        return AdmissionResult(admitted=admitted, snapshot=snapshot)

    async def reserve(self, subject_id: int) -> QuotaSnapshot:
        result = await self.admit(subject_id)
        if not result.admitted:
            raise ConcurrencyConflict("Upload limit reached", snapshot=result.snapshot)
        return result.snapshot

    async def release(self, subject_id: int) -> QuotaSnapshot:
        return await self.adjust_consumed(subject_id, -1)

    async def adjust_consumed(self, subject_id: int, delta: int) -> QuotaSnapshot:
        async with self._locks.hold(subject_id):
            snapshot = await self.registry.add_consumed(subject_id, delta)
        if snapshot is None:
            raise NotFoundError(f"User {subject_id} not found.")
        return snapshot

    async def reset_consumed(self, subject_id: int, value: int = 0) -> QuotaSnapshot:
        async with self._locks.hold(subject_id):
            snapshot = await self.registry.set_consumed(subject_id, value)
        if snapshot is None:
            raise NotFoundError(f"User {subject_id} not found.")
        return snapshot

    async def set_base_limit(self, actor_id: int, subject_id: int, value: int) -> QuotaSnapshot:
        self.gate.require_admin(actor_id)
        if value < 0:
            raise ValidationError("Base limit must be zero or a positive number.")
        await self.snapshot(subject_id)
        async with self._locks.hold(subject_id):
            snapshot = await self.registry.set_base_limit(subject_id, value)
        logger.info("Base limit of subject=%s set to %s by admin=%s", subject_id, value, actor_id)
        return snapshot  # type: ignore[return-value]

    async def add_slots(self, actor_id: int, subject_id: int, amount: int) -> QuotaSnapshot:
        self.gate.require_admin(actor_id)
        if amount == 0:
            raise ValidationError("Slot amount must not be zero.")
        async with self._locks.hold(subject_id):
            current = await self.registry.get_quota(subject_id)
            if current is None:
                raise NotFoundError(f"User {subject_id} not found.")
            snapshot = await self.registry.set_base_limit(subject_id, max(0, current.base_limit + amount))
        logger.info("Added %s slots to subject=%s by admin=%s", amount, subject_id, actor_id)
        return snapshot  # type: ignore[return-value]

    async def grant_referral_reward(self, actor_id: int, subject_id: int, reward: int) -> QuotaSnapshot:
        self.gate.require_admin(actor_id)
        if reward < 1:
            raise ValidationError("Referral reward must be at least 1.")
        await self.snapshot(subject_id)
        async with self._locks.hold(subject_id):
            snapshot = await self.registry.set_referral_reward(subject_id, reward)
        return snapshot  # type: ignore[return-value]

    async def bulk_set_base_limit(self, actor_id: int, value: int) -> BulkResult:
        self.gate.require_admin(actor_id)
        if value < 0:
            raise ValidationError("Base limit must be zero or a positive number.")
        return await self._apply_to_all(
            await self.registry.list_subject_ids(),
            lambda subject_id: self.registry.set_base_limit(subject_id, value),
            label="base_limit",
        )

    async def bulk_set_referral_reward(self, actor_id: int, reward: int) -> BulkResult:
        self.gate.require_admin(actor_id)
        if reward < 1:
            raise ValidationError("Referral reward must be at least 1.")
        return await self._apply_to_all(
            await self.registry.list_subject_ids(),
            lambda subject_id: self.registry.set_referral_reward(subject_id, reward),
            label="referral_reward",
        )

    async def _apply_to_all(self, subject_ids: list[int], update, *, label: str) -> BulkResult:
        affected = 0
        failed = 0
        for subject_id in subject_ids:
            try:
                async with self._locks.hold(subject_id):
                    snapshot = await update(subject_id)
            except Exception:
                failed += 1
                logger.exception("Bulk %s update failed for subject=%s", label, subject_id)
                continue
            if snapshot is None:
                failed += 1
                continue
            affected += 1
        logger.info("Bulk %s update finished: affected=%s failed=%s", label, affected, failed)
        return BulkResult(affected=affected, failed=failed)

    async def grant_premium(
        self,
        actor_id: int,
        subject_id: int,
        *,
        slots: int | None = None,
        now: datetime | None = None,
    ) -> QuotaSnapshot:
        self.gate.require_admin(actor_id)
        terms = await self.config.load(PremiumSettings)
        granted_slots = terms.default_slots if slots is None else int(slots)
        if granted_slots < 1:
            raise ValidationError("Premium slots must be a positive number.")
        since = now or utc_now()
        until = since + timedelta(days=terms.duration_days)
        await self.snapshot(subject_id)
        async with self._locks.hold(subject_id):
            snapshot = await self.registry.apply_premium(subject_id, slots=granted_slots, since=since, until=until)
        logger.info("Premium granted to subject=%s slots=%s until=%s", subject_id, granted_slots, until.isoformat())
        return snapshot  # type: ignore[return-value]

    async def revoke_premium(self, actor_id: int, subject_id: int) -> QuotaSnapshot:
        self.gate.require_admin(actor_id)
        return await self._revoke(subject_id)

    async def _revoke(self, subject_id: int) -> QuotaSnapshot:
        subject = await self.registry.get_subject(subject_id)
        if subject is None:
            raise NotFoundError(f"User {subject_id} not found.")
        if not subject.premium:
            raise ValidationError(f"User {subject_id} is not a premium user.")
        async with self._locks.hold(subject_id):
            snapshot = await self.registry.clear_premium(subject_id, fallback_base_limit=self.default_base_limit)
        logger.info("Premium revoked for subject=%s, base limit restored to %s", subject_id, snapshot.base_limit)
        return snapshot  # type: ignore[union-attr]

    async def apply_premium_default_slots(self, actor_id: int, slots: int) -> BulkResult:
        await self.config.set_premium_default_slots(actor_id, slots)
        premium_ids = [subject.subject_id for subject in await self.registry.list_subjects(premium_only=True)]
        return await self._apply_to_all(
            premium_ids,
            lambda subject_id: self.registry.set_base_limit(subject_id, slots),
            label="premium_slots",
        )

    async def expire_premiums(self, now: datetime | None = None) -> list[int]:
        expired: list[int] = []
        for subject_id in await self.registry.list_expired_premium_ids(now or utc_now()):
            try:
                await self._revoke(subject_id)
            except (NotFoundError, ValidationError):
                continue
            expired.append(subject_id)
        return expired
