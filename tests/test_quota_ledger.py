from __future__ import annotations

import asyncio
import sys
from datetime import timedelta
from pathlib import Path

import pytest


PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from filehost_bot.core.auth import AdminGate  # noqa: E402
from filehost_bot.core.bot_config import BotConfigStore, PremiumSettings  # noqa: E402
from filehost_bot.core.errors import (  # noqa: E402
    AuthorizationError,
    ConcurrencyConflict,
    NotFoundError,
    ValidationError,
)
from filehost_bot.core.ledger import QuotaLedger  # noqa: E402
from filehost_bot.core.referrals import ReferralGraph  # noqa: E402
from filehost_bot.registry import RegistryStore  # noqa: E402
from filehost_bot.registry.clock import utc_now  # noqa: E402

ADMIN = 1


async def _ledger(tmp_path: Path, *, default_base_limit: int = 2) -> tuple[RegistryStore, QuotaLedger]:
    registry = RegistryStore(tmp_path / "registry.db")
    await registry.init()
    gate = AdminGate({ADMIN})
    config = BotConfigStore(registry, gate, premium_default_slots=20, premium_duration_days=30)
    return registry, QuotaLedger(registry, gate, config, default_base_limit=default_base_limit)


async def _register(registry: RegistryStore, subject_id: int, *, base_limit: int = 2, reward: int = 1) -> None:
    await registry.register_subject(
        subject_id,
        f"user-{subject_id}",
        chat_id=subject_id,
        base_limit=base_limit,
        referral_reward=reward,
    )


def test_concurrent_admissions_for_last_slot_admit_exactly_one(tmp_path: Path) -> None:
    async def scenario():
        registry, ledger = await _ledger(tmp_path)
        await _register(registry, 10, base_limit=1)
        results = await asyncio.gather(ledger.admit(10), ledger.admit(10))
        return results, await ledger.snapshot(10)

    results, snapshot = asyncio.run(scenario())

    assert sorted(result.admitted for result in results) == [False, True]
    assert snapshot.consumed_count == 1
    assert snapshot.can_admit is False


def test_reserve_raises_conflict_carrying_current_snapshot(tmp_path: Path) -> None:
    async def scenario():
        registry, ledger = await _ledger(tmp_path)
        await _register(registry, 10, base_limit=1)
        await ledger.reserve(10)
        await ledger.reserve(10)

    with pytest.raises(ConcurrencyConflict) as excinfo:
        asyncio.run(scenario())

    assert excinfo.value.snapshot.consumed_count == 1
    assert excinfo.value.snapshot.total_slots == 1


def test_referrals_extend_total_slots(tmp_path: Path) -> None:
    async def scenario():
        registry, ledger = await _ledger(tmp_path)
        await _register(registry, 10, base_limit=1, reward=3)
        await _register(registry, 11)
        await ReferralGraph(registry).record_referral(10, 11)
        return await ledger.snapshot(10)

    snapshot = asyncio.run(scenario())

    assert snapshot.referral_count == 1
    assert snapshot.total_slots == 4
    assert snapshot.remaining == 4


def test_lowering_base_limit_keeps_consumed_and_blocks_admission(tmp_path: Path) -> None:
    async def scenario():
        registry, ledger = await _ledger(tmp_path)
        await _register(registry, 10, base_limit=5)
        await ledger.reset_consumed(10, 3)
        lowered = await ledger.set_base_limit(ADMIN, 10, 1)
        seen = [await ledger.can_admit(10)]
        for _ in range(3):
            await ledger.release(10)
            seen.append(await ledger.can_admit(10))
        return lowered, seen

    lowered, seen = asyncio.run(scenario())

    assert lowered.consumed_count == 3
    assert lowered.total_slots == 1
    assert seen == [False, False, False, True]


def test_release_never_drops_below_zero(tmp_path: Path) -> None:
    async def scenario():
        registry, ledger = await _ledger(tmp_path)
        await _register(registry, 10)
        return await ledger.release(10)

    assert asyncio.run(scenario()).consumed_count == 0


def test_add_slots_floors_base_limit_at_zero(tmp_path: Path) -> None:
    async def scenario():
        registry, ledger = await _ledger(tmp_path)
        await _register(registry, 10, base_limit=2)
        return await ledger.add_slots(ADMIN, 10, -5)

    assert asyncio.run(scenario()).base_limit == 0


def test_quota_mutations_require_admin_and_leave_state_untouched(tmp_path: Path) -> None:
    async def scenario():
        registry, ledger = await _ledger(tmp_path)
        await _register(registry, 10, base_limit=2)
        with pytest.raises(AuthorizationError):
            await ledger.add_slots(10, 10, 5)
        with pytest.raises(AuthorizationError):
            await ledger.grant_premium(10, 10)
        return await ledger.snapshot(10)

    assert asyncio.run(scenario()).base_limit == 2


def test_unknown_subject_is_not_found(tmp_path: Path) -> None:
    async def scenario():
        _, ledger = await _ledger(tmp_path)
        await ledger.admit(404)

    with pytest.raises(NotFoundError, match="User 404 not found"):
        asyncio.run(scenario())


def test_premium_grant_and_revoke_restore_previous_limit(tmp_path: Path) -> None:
    async def scenario():
        registry, ledger = await _ledger(tmp_path)
        await _register(registry, 10, base_limit=3)
        first = await ledger.grant_premium(ADMIN, 10)
        again = await ledger.grant_premium(ADMIN, 10, slots=50)
        subject = await registry.get_subject(10)
        revoked = await ledger.revoke_premium(ADMIN, 10)
        after = await registry.get_subject(10)
        with pytest.raises(ValidationError):
            await ledger.revoke_premium(ADMIN, 10)
        return first, again, subject, revoked, after

    first, again, subject, revoked, after = asyncio.run(scenario())

    assert first.base_limit == 20
    assert again.base_limit == 50
    assert subject.premium is True
    assert subject.premium_until is not None
    assert subject.premium_until - utc_now() > timedelta(days=29)
    assert revoked.base_limit == 3
    assert after.premium is False


def test_premium_grant_uses_stored_premium_settings(tmp_path: Path) -> None:
    async def scenario():
        registry, ledger = await _ledger(tmp_path)
        await _register(registry, 10)
        await ledger.config.set_premium_duration(ADMIN, 7)
        await ledger.config.set_premium_default_slots(ADMIN, 12)
        now = utc_now()
        snapshot = await ledger.grant_premium(ADMIN, 10, now=now)
        return snapshot, (await registry.get_subject(10)).premium_until - now

    snapshot, window = asyncio.run(scenario())

    assert snapshot.base_limit == 12
    assert window.days == 7


def test_expire_premiums_reverts_only_lapsed_subjects(tmp_path: Path) -> None:
    async def scenario():
        registry, ledger = await _ledger(tmp_path)
        await _register(registry, 10, base_limit=2)
        await _register(registry, 11, base_limit=2)
        await ledger.grant_premium(ADMIN, 10, now=utc_now() - timedelta(days=31))
        await ledger.grant_premium(ADMIN, 11)
        expired = await ledger.expire_premiums()
        return expired, await registry.get_subject(10), await registry.get_subject(11)

    expired, lapsed, active = asyncio.run(scenario())

    assert expired == [10]
    assert lapsed.premium is False
    assert lapsed.quota.base_limit == 2
    assert active.premium is True


def test_bulk_updates_touch_every_subject(tmp_path: Path) -> None:
    async def scenario():
        registry, ledger = await _ledger(tmp_path)
        for subject_id in (10, 11, 12):
            await _register(registry, subject_id)
        limits = await ledger.bulk_set_base_limit(ADMIN, 7)
        rewards = await ledger.bulk_set_referral_reward(ADMIN, 4)
        return limits, rewards, await registry.list_subjects()

    limits, rewards, subjects = asyncio.run(scenario())

    assert (limits.affected, limits.failed) == (3, 0)
    assert (rewards.affected, rewards.failed) == (3, 0)
    assert {subject.quota.base_limit for subject in subjects} == {7}
    assert {subject.quota.referral_reward for subject in subjects} == {4}


def test_bulk_referral_reward_rejects_values_below_one(tmp_path: Path) -> None:
    async def scenario():
        _, ledger = await _ledger(tmp_path)
        await ledger.bulk_set_referral_reward(ADMIN, 0)

    with pytest.raises(ValidationError):
        asyncio.run(scenario())


def test_premium_default_slots_apply_to_premium_subjects_only(tmp_path: Path) -> None:
    async def scenario():
        registry, ledger = await _ledger(tmp_path)
        await _register(registry, 10, base_limit=2)
        await _register(registry, 11, base_limit=2)
        await ledger.grant_premium(ADMIN, 10)
        result = await ledger.apply_premium_default_slots(ADMIN, 35)
        terms = await ledger.config.load(PremiumSettings)
        return result, terms, await registry.get_quota(10), await registry.get_quota(11)

    result, terms, premium, regular = asyncio.run(scenario())

    assert result.affected == 1
    assert terms.default_slots == 35
    assert premium.base_limit == 35
    assert regular.base_limit == 2


def test_repeated_premium_cycles_do_not_drift_the_base_limit(tmp_path: Path) -> None:
    async def scenario():
        registry, ledger = await _ledger(tmp_path)
        await _register(registry, 10, base_limit=3)
        limits = []
        for _ in range(3):
            await ledger.grant_premium(ADMIN, 10)
            limits.append((await ledger.revoke_premium(ADMIN, 10)).base_limit)
        return limits

    assert asyncio.run(scenario()) == [3, 3, 3]


def test_bulk_update_counts_a_failing_subject_and_keeps_going(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    async def scenario():
        registry, ledger = await _ledger(tmp_path)
        for subject_id in (10, 11, 12):
            await _register(registry, subject_id)
        original = registry.set_base_limit

        async def flaky_set_base_limit(subject_id: int, value: int):
            if subject_id == 11:
                raise RuntimeError("database is locked")
            return await original(subject_id, value)

        monkeypatch.setattr(registry, "set_base_limit", flaky_set_base_limit)
        result = await ledger.bulk_set_base_limit(ADMIN, 9)
        return result, {subject.subject_id: subject.quota.base_limit for subject in await registry.list_subjects()}

    result, limits = asyncio.run(scenario())

    assert (result.affected, result.failed) == (2, 1)
    assert limits == {10: 9, 11: 2, 12: 9}


def test_subject_locks_are_dropped_once_idle(tmp_path: Path) -> None:
    async def scenario():
        registry, ledger = await _ledger(tmp_path)
        for subject_id in (10, 11):
            await _register(registry, subject_id)
        await asyncio.gather(ledger.admit(10), ledger.admit(10), ledger.admit(11))
        return len(ledger._locks)

    assert asyncio.run(scenario()) == 0
