from __future__ import annotations

from datetime import datetime

import aiosqlite

from ..models import Subject
from .schema import SUBJECT_COLUMNS
from ..clock import to_iso, utc_now
from .utils import _registry_connection


class RegistrySubjectsMixin:
    async def register_subject(
        self,
        subject_id: int,
        display_name: str,
        *,
        chat_id: int | None,
        base_limit: int,
        referral_reward: int,
        joined_at: datetime | None = None,
    ) -> bool:
        """Insert a subject if it is unknown. Returns True when a new row was created."""
        now = to_iso(joined_at or utc_now())
        async with _registry_connection(self.db_path) as db:
            cursor = await db.execute(
                """
                INSERT OR IGNORE INTO subjects (
                    subject_id, display_name, joined_at, chat_id, base_limit, consumed_count, referral_reward, updated_at
                )
                VALUES (?, ?, ?, ?, ?, 0, ?, ?)
                """,
                (subject_id, display_name, now, chat_id, base_limit, referral_reward, now),
            )
            created = cursor.rowcount == 1
            if not created:
                await db.execute(
                    """
                    UPDATE subjects
                    SET display_name = ?, chat_id = COALESCE(?, chat_id), updated_at = ?
                    WHERE subject_id = ?
                    """,
                    (display_name, chat_id, now, subject_id),
                )
            await db.commit()
        return created

    async def get_subject(self, subject_id: int) -> Subject | None:
        async with _registry_connection(self.db_path) as db:
            db.row_factory = aiosqlite.Row
            async with db.execute(
                f"SELECT {SUBJECT_COLUMNS} FROM subjects s WHERE s.subject_id = ?",
                (subject_id,),
            ) as cursor:
                row = await cursor.fetchone()
        if row is None:
            return None
        return Subject.from_row(row)

    async def list_subjects(self, *, premium_only: bool = False) -> list[Subject]:
        where = "WHERE s.premium = 1" if premium_only else ""
        async with _registry_connection(self.db_path) as db:
            db.row_factory = aiosqlite.Row
            async with db.execute(
                f"SELECT {SUBJECT_COLUMNS} FROM subjects s {where} ORDER BY s.seq ASC"
            ) as cursor:
                rows = await cursor.fetchall()
        return [Subject.from_row(row) for row in rows]

    async def list_subject_ids(self) -> list[int]:
        async with _registry_connection(self.db_path) as db:
            async with db.execute("SELECT subject_id FROM subjects ORDER BY seq ASC") as cursor:
                rows = await cursor.fetchall()
        return [int(row[0]) for row in rows]

    async def count_subjects(self) -> int:
        async with _registry_connection(self.db_path) as db:
            async with db.execute("SELECT COUNT(*) FROM subjects") as cursor:
                row = await cursor.fetchone()
        return int(row[0]) if row else 0

    async def set_notifications(self, subject_id: int, enabled: bool) -> bool:
        async with _registry_connection(self.db_path) as db:
            cursor = await db.execute(
                "UPDATE subjects SET notifications = ?, updated_at = ? WHERE subject_id = ?",
                (1 if enabled else 0, to_iso(utc_now()), subject_id),
            )
            await db.commit()
        return cursor.rowcount == 1

    async def mark_subject_deleted(self, subject_id: int, consumed_count: int) -> bool:
        now = to_iso(utc_now())
        async with _registry_connection(self.db_path) as db:
            cursor = await db.execute(
                """
                UPDATE subjects
                SET deleted = 1,
                    deleted_at = ?,
                    notifications = 0,
                    consumed_count = ?,
                    updated_at = ?
                WHERE subject_id = ?
                """,
                (now, max(0, int(consumed_count)), now, subject_id),
            )
            await db.commit()
        return cursor.rowcount == 1

    async def restore_subject(self, subject_id: int) -> None:
        async with _registry_connection(self.db_path) as db:
            await db.execute(
                "UPDATE subjects SET deleted = 0, deleted_at = NULL, updated_at = ? WHERE subject_id = ? AND deleted = 1",
                (to_iso(utc_now()), subject_id),
            )
            await db.commit()
