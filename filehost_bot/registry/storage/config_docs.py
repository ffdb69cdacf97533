from __future__ import annotations

import json
from typing import Any

from ..clock import to_iso, utc_now
from .utils import _registry_connection


class RegistryConfigDocsMixin:
    async def read_config_doc(self, name: str) -> dict[str, Any] | None:
        async with _registry_connection(self.db_path) as db:
            async with db.execute("SELECT payload FROM bot_config WHERE name = ?", (name,)) as cursor:
                row = await cursor.fetchone()
        if row is None:
            return None
        try:
            payload = json.loads(str(row[0]))
        except json.JSONDecodeError:
            return None
        return payload if isinstance(payload, dict) else None

    async def write_config_doc(self, name: str, payload: dict[str, Any], updated_by: int | None) -> None:
        async with _registry_connection(self.db_path) as db:
            await db.execute(
                """
                INSERT INTO bot_config (name, payload, updated_at, updated_by)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(name) DO UPDATE SET
                    payload = excluded.payload,
                    updated_at = excluded.updated_at,
                    updated_by = excluded.updated_by
                """,
                (name, json.dumps(payload, ensure_ascii=False, sort_keys=True), to_iso(utc_now()), updated_by),
            )
            await db.commit()
