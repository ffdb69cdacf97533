from __future__ import annotations

from ..models import BanEntry
from ..clock import from_iso, to_iso, utc_now
from .utils import _registry_connection


class RegistryBansMixin:
    async def ban_subject(self, subject_id: int, banned_by: int | None) -> bool:
        async with _registry_connection(self.db_path) as db:
            cursor = await db.execute(
                "INSERT OR IGNORE INTO banned_subjects (subject_id, banned_at, banned_by) VALUES (?, ?, ?)",
                (subject_id, to_iso(utc_now()), banned_by),
            )
            await db.commit()
        return cursor.rowcount == 1

    async def unban_subject(self, subject_id: int) -> bool:
        async with _registry_connection(self.db_path) as db:
            cursor = await db.execute("DELETE FROM banned_subjects WHERE subject_id = ?", (subject_id,))
            await db.commit()
        return cursor.rowcount == 1

    async def is_banned(self, subject_id: int) -> bool:
        async with _registry_connection(self.db_path) as db:
            async with db.execute(
                "SELECT 1 FROM banned_subjects WHERE subject_id = ?",
                (subject_id,),
            ) as cursor:
                row = await cursor.fetchone()
        return row is not None

    async def list_bans(self) -> list[BanEntry]:
        async with _registry_connection(self.db_path) as db:
            async with db.execute(
                "SELECT subject_id, banned_at, banned_by FROM banned_subjects ORDER BY banned_at ASC, subject_id ASC"
            ) as cursor:
                rows = await cursor.fetchall()
        return [
            BanEntry(
                subject_id=int(row[0]),
                banned_at=from_iso(row[1]),
                banned_by=int(row[2]) if row[2] is not None else None,
            )
            for row in rows
        ]

    async def clear_bans(self) -> int:
        async with _registry_connection(self.db_path) as db:
            cursor = await db.execute("DELETE FROM banned_subjects")
            await db.commit()
        return max(0, cursor.rowcount)
