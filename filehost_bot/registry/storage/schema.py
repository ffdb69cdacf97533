from __future__ import annotations

import os
from pathlib import Path

import aiosqlite

from .utils import _registry_connection


SUBJECT_COLUMNS = """
    s.subject_id,
    s.display_name,
    s.joined_at,
    s.chat_id,
    s.premium,
    s.premium_since,
    s.premium_until,
    s.notifications,
    s.deleted,
    s.base_limit,
    s.consumed_count,
    s.referral_reward,
    (SELECT COUNT(*) FROM referrals r WHERE r.referrer_id = s.subject_id) AS referral_count,
    EXISTS(SELECT 1 FROM banned_subjects b WHERE b.subject_id = s.subject_id) AS banned
"""


class RegistrySchemaMixin:
    SCHEMA_VERSION = 3

    def __init__(self, db_path: Path) -> None:
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    @staticmethod
    def _allow_destructive_reset_on_mismatch() -> bool:
        raw = os.getenv("REGISTRY_SQLITE_RESET_ON_SCHEMA_MISMATCH", "")
        return raw.strip().lower() in {"1", "true", "yes", "y", "on"}

    async def _has_user_tables(self, db: aiosqlite.Connection) -> bool:
        async with db.execute(
            """
            SELECT 1
            FROM sqlite_master
            WHERE type = 'table'
              AND name NOT LIKE 'sqlite_%'
            LIMIT 1
            """
        ) as cursor:
            row = await cursor.fetchone()
        return bool(row)

    async def init(self) -> None:
        async with _registry_connection(self.db_path) as db:
            await db.execute("PRAGMA journal_mode=WAL")
            async with db.execute("PRAGMA user_version") as cursor:
                row = await cursor.fetchone()
            version = int(row[0]) if row else 0
            has_tables = await self._has_user_tables(db)

            if version > self.SCHEMA_VERSION:
                if has_tables and self._allow_destructive_reset_on_mismatch():
                    await self._reset_schema(db)
                    await db.execute(f"PRAGMA user_version = {self.SCHEMA_VERSION}")
                    await db.commit()
                    return
                raise RuntimeError(
                    "SQLite schema version mismatch detected (database is newer than this bot build). "
                    f"Found user_version={version}, supported={self.SCHEMA_VERSION}. "
                    "Set REGISTRY_SQLITE_RESET_ON_SCHEMA_MISMATCH=1 to allow destructive reset."
                )

            if not has_tables:
                await self._create_schema(db)
                await db.execute(f"PRAGMA user_version = {self.SCHEMA_VERSION}")
            else:
                await self._create_schema(db)
                await self._migrate_schema(db, version)
                if version != self.SCHEMA_VERSION:
                    await db.execute(f"PRAGMA user_version = {self.SCHEMA_VERSION}")

            await db.commit()

    async def _reset_schema(self, db: aiosqlite.Connection) -> None:
        for table in ("referrals", "daily_usage", "banned_subjects", "bot_config", "subjects"):
            await db.execute(f"DROP TABLE IF EXISTS {table}")
        await self._create_schema(db)

    async def _table_columns(self, db: aiosqlite.Connection, table_name: str) -> set[str]:
        cols: set[str] = set()
        async with db.execute(f"PRAGMA table_info({table_name})") as cursor:
            rows = await cursor.fetchall()
        for row in rows:
            cols.add(str(row[1]))
        return cols

    async def _add_column_if_missing(self, db: aiosqlite.Connection, table_name: str, column_sql: str) -> None:
        column_name = str(column_sql.split()[0]).strip()
        if not column_name:
            return
        cols = await self._table_columns(db, table_name)
        if column_name in cols:
            return
        await db.execute(f"ALTER TABLE {table_name} ADD COLUMN {column_sql}")

    async def _migrate_schema(self, db: aiosqlite.Connection, from_version: int) -> None:
        if from_version < 2:
            await self._migrate_v2_premium_restore_schema(db)
        if from_version < 3:
            await self._migrate_v3_soft_delete_schema(db)
        # Re-run idempotent migrations to self-heal partial deployments.
        await self._migrate_v2_premium_restore_schema(db)
        await self._migrate_v3_soft_delete_schema(db)

    async def _migrate_v2_premium_restore_schema(self, db: aiosqlite.Connection) -> None:
        await self._add_column_if_missing(db, "subjects", "premium_since TEXT")
        await self._add_column_if_missing(db, "subjects", "pre_premium_base_limit INTEGER")

    async def _migrate_v3_soft_delete_schema(self, db: aiosqlite.Connection) -> None:
        await self._add_column_if_missing(db, "subjects", "deleted INTEGER NOT NULL DEFAULT 0")
        await self._add_column_if_missing(db, "subjects", "deleted_at TEXT")

    async def _create_schema(self, db: aiosqlite.Connection) -> None:
        await db.executescript(
            """
            CREATE TABLE IF NOT EXISTS subjects (
                seq INTEGER PRIMARY KEY AUTOINCREMENT,
                subject_id INTEGER NOT NULL UNIQUE,
                display_name TEXT NOT NULL,
                joined_at TEXT NOT NULL,
                chat_id INTEGER,
                premium INTEGER NOT NULL DEFAULT 0,
                premium_since TEXT,
                premium_until TEXT,
                pre_premium_base_limit INTEGER,
                notifications INTEGER NOT NULL DEFAULT 1,
                deleted INTEGER NOT NULL DEFAULT 0,
                deleted_at TEXT,
                base_limit INTEGER NOT NULL CHECK (base_limit >= 0),
                consumed_count INTEGER NOT NULL DEFAULT 0 CHECK (consumed_count >= 0),
                referral_reward INTEGER NOT NULL DEFAULT 1 CHECK (referral_reward >= 1),
                updated_at TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS referrals (
                referred_id INTEGER PRIMARY KEY,
                referrer_id INTEGER NOT NULL,
                created_at TEXT NOT NULL,
                FOREIGN KEY(referrer_id) REFERENCES subjects(subject_id)
            );

            CREATE TABLE IF NOT EXISTS daily_usage (
                day TEXT NOT NULL,
                subject_id INTEGER NOT NULL,
                first_seen_at TEXT NOT NULL,
                PRIMARY KEY (day, subject_id)
            );

            CREATE TABLE IF NOT EXISTS banned_subjects (
                subject_id INTEGER PRIMARY KEY,
                banned_at TEXT NOT NULL,
                banned_by INTEGER
            );

            CREATE TABLE IF NOT EXISTS bot_config (
                name TEXT PRIMARY KEY,
                payload TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                updated_by INTEGER
            );

            CREATE INDEX IF NOT EXISTS idx_referrals_referrer
            ON referrals(referrer_id, created_at);

            CREATE INDEX IF NOT EXISTS idx_subjects_premium_until
            ON subjects(premium, premium_until);
            """
        )
