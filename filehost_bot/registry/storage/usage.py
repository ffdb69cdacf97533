from __future__ import annotations

from datetime import datetime

from ..clock import to_iso, usage_day, utc_now
from .utils import _registry_connection


class RegistryUsageMixin:
    async def track_daily_usage(self, subject_id: int, *, now: datetime | None = None) -> bool:
        """Count the subject once for the calendar day. Returns True on the first sighting."""
        moment = now or utc_now()
        async with _registry_connection(self.db_path) as db:
            cursor = await db.execute(
                "INSERT OR IGNORE INTO daily_usage (day, subject_id, first_seen_at) VALUES (?, ?, ?)",
                (usage_day(moment), subject_id, to_iso(moment)),
            )
            await db.commit()
        return cursor.rowcount == 1

    async def get_daily_usage(self, day: str) -> int:
        async with _registry_connection(self.db_path) as db:
            async with db.execute("SELECT COUNT(*) FROM daily_usage WHERE day = ?", (day,)) as cursor:
                row = await cursor.fetchone()
        return int(row[0]) if row else 0

    async def get_daily_usage_subjects(self, day: str) -> list[int]:
        async with _registry_connection(self.db_path) as db:
            async with db.execute(
                "SELECT subject_id FROM daily_usage WHERE day = ? ORDER BY first_seen_at ASC",
                (day,),
            ) as cursor:
                rows = await cursor.fetchall()
        return [int(row[0]) for row in rows]
