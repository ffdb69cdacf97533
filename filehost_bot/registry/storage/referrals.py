from __future__ import annotations

from ..models import ReferrerStanding
from ..clock import to_iso, utc_now
from .utils import _registry_connection


class RegistryReferralsMixin:
    async def insert_referral(self, referrer_id: int, referred_id: int) -> bool:
        """First claim wins: a referred id can be inserted exactly once, system-wide."""
        async with _registry_connection(self.db_path) as db:
            cursor = await db.execute(
                """
                INSERT OR IGNORE INTO referrals (referred_id, referrer_id, created_at)
                VALUES (?, ?, ?)
                """,
                (referred_id, referrer_id, to_iso(utc_now())),
            )
            await db.commit()
        return cursor.rowcount == 1

    async def get_referrer_of(self, referred_id: int) -> int | None:
        async with _registry_connection(self.db_path) as db:
            async with db.execute(
                "SELECT referrer_id FROM referrals WHERE referred_id = ?",
                (referred_id,),
            ) as cursor:
                row = await cursor.fetchone()
        return int(row[0]) if row else None

    async def list_referred_ids(self, referrer_id: int) -> list[int]:
        async with _registry_connection(self.db_path) as db:
            async with db.execute(
                "SELECT referred_id FROM referrals WHERE referrer_id = ? ORDER BY created_at ASC, referred_id ASC",
                (referrer_id,),
            ) as cursor:
                rows = await cursor.fetchall()
        return [int(row[0]) for row in rows]

    async def count_referrals(self) -> int:
        async with _registry_connection(self.db_path) as db:
            async with db.execute("SELECT COUNT(*) FROM referrals") as cursor:
                row = await cursor.fetchone()
        return int(row[0]) if row else 0

    async def top_referrers(self, limit: int) -> list[ReferrerStanding]:
        if limit <= 0:
            return []
        async with _registry_connection(self.db_path) as db:
            async with db.execute(
                """
                SELECT s.subject_id, s.display_name, COUNT(r.referred_id) AS referral_count
                FROM subjects s
                JOIN referrals r ON r.referrer_id = s.subject_id
                GROUP BY s.subject_id, s.display_name, s.seq
                ORDER BY referral_count DESC, s.seq ASC
                LIMIT ?
                """,
                (int(limit),),
            ) as cursor:
                rows = await cursor.fetchall()
        return [
            ReferrerStanding(
                subject_id=int(row[0]),
                display_name=str(row[1] or "Unknown"),
                referral_count=int(row[2]),
            )
            for row in rows
        ]
