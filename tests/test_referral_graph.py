from __future__ import annotations

import asyncio
import sys
from pathlib import Path


PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from filehost_bot.core.referrals import ReferralGraph  # noqa: E402
from filehost_bot.registry import RegistryStore  # noqa: E402


async def _graph(tmp_path: Path, *subject_ids: int) -> ReferralGraph:
    registry = RegistryStore(tmp_path / "registry.db")
    await registry.init()
    for subject_id in subject_ids:
        await registry.register_subject(
            subject_id,
            f"user-{subject_id}",
            chat_id=subject_id,
            base_limit=2,
            referral_reward=1,
        )
    return ReferralGraph(registry)


def test_first_claim_wins_and_repeats_are_ignored(tmp_path: Path) -> None:
    async def scenario():
        graph = await _graph(tmp_path, 1, 2, 3)
        first = await graph.record_referral(1, 3)
        repeat = await graph.record_referral(1, 3)
        stolen = await graph.record_referral(2, 3)
        return first, repeat, stolen, await graph.referrer_of(3), await graph.total_referrals()

    first, repeat, stolen, referrer, total = asyncio.run(scenario())

    assert first is not None
    assert first.referral_count == 1
    assert first.total_slots == 3
    assert repeat is None
    assert stolen is None
    assert referrer == 1
    assert total == 1


def test_self_referral_and_unknown_referrer_change_nothing(tmp_path: Path) -> None:
    async def scenario():
        graph = await _graph(tmp_path, 1)
        own = await graph.record_referral(1, 1)
        ghost = await graph.record_referral(99, 1)
        return own, ghost, await graph.referrer_of(1), await graph.total_referrals()

    own, ghost, referrer, total = asyncio.run(scenario())

    assert own is None
    assert ghost is None
    assert referrer is None
    assert total == 0


def test_top_referrers_orders_by_count_then_registration(tmp_path: Path) -> None:
    async def scenario():
        graph = await _graph(tmp_path, 1, 2, 3)
        for referred in (10, 11):
            await graph.record_referral(1, referred)
        for referred in (20, 21):
            await graph.record_referral(2, referred)
        for referred in (30, 31, 32):
            await graph.record_referral(3, referred)
        return await graph.top_referrers(), await graph.top_referrers(2), await graph.referred_by(3)

    top, limited, referred = asyncio.run(scenario())

    assert [(item.subject_id, item.referral_count) for item in top] == [(3, 3), (1, 2), (2, 2)]
    assert [item.subject_id for item in limited] == [3, 1]
    assert referred == [30, 31, 32]
