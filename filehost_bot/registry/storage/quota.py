from __future__ import annotations

from datetime import datetime

import aiosqlite

from ..models import QuotaSnapshot
from ..clock import to_iso, utc_now
from .utils import _registry_connection


_REFERRAL_COUNT_SQL = "(SELECT COUNT(*) FROM referrals r WHERE r.referrer_id = subjects.subject_id)"


class RegistryQuotaMixin:
    async def get_quota(self, subject_id: int) -> QuotaSnapshot | None:
        async with _registry_connection(self.db_path) as db:
            return await self._read_quota(db, subject_id)

    async def _read_quota(self, db: aiosqlite.Connection, subject_id: int) -> QuotaSnapshot | None:
        async with db.execute(
            f"""
            SELECT subject_id, base_limit, consumed_count, referral_reward, {_REFERRAL_COUNT_SQL}
            FROM subjects
            WHERE subject_id = ?
            """,
            (subject_id,),
        ) as cursor:
            row = await cursor.fetchone()
        if row is None:
            return None
        return QuotaSnapshot(
            subject_id=int(row[0]),
            base_limit=int(row[1]),
            consumed_count=int(row[2]),
            referral_reward=int(row[3]),
            referral_count=int(row[4]),
        )

    async def try_consume_slot(self, subject_id: int) -> tuple[bool, QuotaSnapshot | None]:
        """Check-and-increment in a single conditional UPDATE."""
        async with _registry_connection(self.db_path) as db:
            cursor = await db.execute(
                f"""
                UPDATE subjects
                SET consumed_count = consumed_count + 1, updated_at = ?
                WHERE subject_id = ?
                  AND consumed_count < base_limit + referral_reward * {_REFERRAL_COUNT_SQL}
                """,
                (to_iso(utc_now()), subject_id),
            )
            admitted = cursor.rowcount == 1
            await db.commit()
            snapshot = await self._read_quota(db, subject_id)
        return admitted, snapshot

    async def add_consumed(self, subject_id: int, delta: int) -> QuotaSnapshot | None:
        async with _registry_connection(self.db_path) as db:
            await db.execute(
                """
                UPDATE subjects
                SET consumed_count = MAX(0, consumed_count + ?), updated_at = ?
                WHERE subject_id = ?
                """,
                (int(delta), to_iso(utc_now()), subject_id),
            )
            await db.commit()
            return await self._read_quota(db, subject_id)

    async def set_consumed(self, subject_id: int, value: int) -> QuotaSnapshot | None:
        async with _registry_connection(self.db_path) as db:
            await db.execute(
                "UPDATE subjects SET consumed_count = ?, updated_at = ? WHERE subject_id = ?",
                (max(0, int(value)), to_iso(utc_now()), subject_id),
            )
            await db.commit()
            return await self._read_quota(db, subject_id)

    async def set_base_limit(self, subject_id: int, value: int) -> QuotaSnapshot | None:
        async with _registry_connection(self.db_path) as db:
            await db.execute(
                "UPDATE subjects SET base_limit = ?, updated_at = ? WHERE subject_id = ?",
                (int(value), to_iso(utc_now()), subject_id),
            )
            await db.commit()
            return await self._read_quota(db, subject_id)

    async def set_referral_reward(self, subject_id: int, value: int) -> QuotaSnapshot | None:
        async with _registry_connection(self.db_path) as db:
            await db.execute(
                "UPDATE subjects SET referral_reward = ?, updated_at = ? WHERE subject_id = ?",
                (int(value), to_iso(utc_now()), subject_id),
            )
            await db.commit()
            return await self._read_quota(db, subject_id)

    async def apply_premium(
        self,
        subject_id: int,
        *,
        slots: int,
        since: datetime,
        until: datetime,
    ) -> QuotaSnapshot | None:
        # pre_premium_base_limit is captured only on the first grant so repeated
        # grants never overwrite the value a later revoke restores.
        async with _registry_connection(self.db_path) as db:
            await db.execute(
                """
                UPDATE subjects
                SET pre_premium_base_limit = CASE WHEN premium = 1 THEN pre_premium_base_limit ELSE base_limit END,
                    premium = 1,
                    premium_since = CASE WHEN premium = 1 THEN premium_since ELSE ? END,
                    premium_until = ?,
                    base_limit = ?,
                    updated_at = ?
                WHERE subject_id = ?
                """,
                (to_iso(since), to_iso(until), int(slots), to_iso(utc_now()), subject_id),
            )
            await db.commit()
            return await self._read_quota(db, subject_id)

    async def clear_premium(self, subject_id: int, *, fallback_base_limit: int) -> QuotaSnapshot | None:
        async with _registry_connection(self.db_path) as db:
            await db.execute(
                """
                UPDATE subjects
                SET base_limit = COALESCE(pre_premium_base_limit, ?),
                    pre_premium_base_limit = NULL,
                    premium = 0,
                    premium_until = ?,
                    updated_at = ?
                WHERE subject_id = ? AND premium = 1
                """,
                (int(fallback_base_limit), to_iso(utc_now()), to_iso(utc_now()), subject_id),
            )
            await db.commit()
            return await self._read_quota(db, subject_id)

    async def list_expired_premium_ids(self, now: datetime) -> list[int]:
        async with _registry_connection(self.db_path) as db:
            async with db.execute(
                """
                SELECT subject_id
                FROM subjects
                WHERE premium = 1 AND premium_until IS NOT NULL AND premium_until <= ?
                ORDER BY seq ASC
                """,
                (to_iso(now),),
            ) as cursor:
                rows = await cursor.fetchall()
        return [int(row[0]) for row in rows]
