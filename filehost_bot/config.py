from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Set

from dotenv import load_dotenv


load_dotenv()


def _env_lookup(name: str, aliases: tuple[str, ...] = ()) -> str | None:
    for key in (name, *aliases):
        # Be tolerant to UTF-8 BOM accidentally saved in .env key names.
        for candidate in (key, f"\ufeff{key}"):
            raw = os.getenv(candidate)
            if raw is not None:
                return raw
    return None


def _env_int(name: str, default: int, aliases: tuple[str, ...] = ()) -> int:
    raw = _env_lookup(name, aliases)
    if raw is None:
        return default
    try:
        return int(raw.strip())
    except ValueError:
        return default


def _env_float(name: str, default: float, aliases: tuple[str, ...] = ()) -> float:
    raw = _env_lookup(name, aliases)
    if raw is None:
        return default
    try:
        return float(raw.strip())
    except ValueError:
        return default


def _env_id_set(name: str, aliases: tuple[str, ...] = ()) -> Set[int]:
    raw = (_env_lookup(name, aliases) or "").strip()
    if not raw:
        return set()
    result: Set[int] = set()
    for chunk in raw.split(","):
        value = chunk.strip()
        if not value:
            continue
        try:
            result.add(int(value))
        except ValueError:
            continue
    return result


def _clean_token(value: str) -> str:
    cleaned = value.strip()
    if cleaned.lower().startswith("bot "):
        cleaned = cleaned[4:].strip()
    if (cleaned.startswith('"') and cleaned.endswith('"')) or (
        cleaned.startswith("'") and cleaned.endswith("'")
    ):
        cleaned = cleaned[1:-1].strip()
    return cleaned


def _env_str(name: str, default: str, aliases: tuple[str, ...] = ()) -> str:
    raw = _env_lookup(name, aliases)
    if raw is None:
        return default
    value = raw.strip()
    return value if value else default


@dataclass(slots=True)
class Settings:
    discord_token: str
    command_prefix: str
    admin_ids: Set[int]

    sqlite_path: Path
    artifact_root: Path
    artifact_base_url: str
    max_upload_bytes: int

    default_base_limit: int
    default_referral_reward: int
    premium_default_slots: int
    premium_duration_days: int
    premium_expiry_sweep_seconds: int

    broadcast_send_delay_seconds: float
    broadcast_concurrency: int
    broadcast_max_retries: int
    collaborator_timeout_seconds: float

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            discord_token=_clean_token(_env_lookup("DISCORD_TOKEN") or ""),
            command_prefix=_env_str("DISCORD_COMMAND_PREFIX", "!"),
            admin_ids=_env_id_set("ADMIN_IDS", aliases=("ADMIN_ID",)),
            sqlite_path=Path(_env_str("SQLITE_PATH", "./data/filehost.db")).expanduser(),
            artifact_root=Path(_env_str("ARTIFACT_ROOT", "./data/artifacts")).expanduser(),
            artifact_base_url=_env_str("ARTIFACT_BASE_URL", "http://localhost:8080/files"),
            max_upload_bytes=_env_int("MAX_UPLOAD_BYTES", 8 * 1024 * 1024),
            default_base_limit=_env_int("DEFAULT_BASE_LIMIT", 2),
            default_referral_reward=_env_int("DEFAULT_REFERRAL_REWARD", 1),
            premium_default_slots=_env_int("PREMIUM_DEFAULT_SLOTS", 20),
            premium_duration_days=_env_int("PREMIUM_DURATION_DAYS", 30),
            premium_expiry_sweep_seconds=_env_int("PREMIUM_EXPIRY_SWEEP_SECONDS", 600),
            broadcast_send_delay_seconds=_env_int("BROADCAST_SEND_DELAY_MS", 50) / 1000.0,
            broadcast_concurrency=_env_int("BROADCAST_CONCURRENCY", 4),
            broadcast_max_retries=_env_int("BROADCAST_MAX_RETRIES", 1),
            collaborator_timeout_seconds=_env_float("COLLABORATOR_TIMEOUT_SECONDS", 15.0),
        )

    def validate(self) -> None:
        if not self.discord_token:
            raise ValueError("DISCORD_TOKEN is required")
        if self.discord_token == "put_your_discord_bot_token_here":
            raise ValueError("DISCORD_TOKEN is still placeholder")
        if not self.command_prefix.strip():
            raise ValueError("DISCORD_COMMAND_PREFIX cannot be empty")
        if not self.admin_ids:
            raise ValueError("ADMIN_IDS must list at least one admin user id")

        if not self.artifact_base_url.strip():
            raise ValueError("ARTIFACT_BASE_URL cannot be empty")
        if self.max_upload_bytes < 1024:
            raise ValueError("MAX_UPLOAD_BYTES must be >= 1024")

        if self.default_base_limit < 0:
            raise ValueError("DEFAULT_BASE_LIMIT must be >= 0")
        if self.default_referral_reward < 1:
            raise ValueError("DEFAULT_REFERRAL_REWARD must be >= 1")
        if self.premium_default_slots < 1:
            raise ValueError("PREMIUM_DEFAULT_SLOTS must be >= 1")
        if self.premium_duration_days < 1:
            raise ValueError("PREMIUM_DURATION_DAYS must be >= 1")
        if self.premium_expiry_sweep_seconds < 10:
            raise ValueError("PREMIUM_EXPIRY_SWEEP_SECONDS must be >= 10")

        if self.broadcast_send_delay_seconds < 0.0:
            raise ValueError("BROADCAST_SEND_DELAY_MS must be >= 0")
        if self.broadcast_concurrency < 1 or self.broadcast_concurrency > 16:
            raise ValueError("BROADCAST_CONCURRENCY must be in [1, 16]")
        if self.broadcast_max_retries < 0:
            raise ValueError("BROADCAST_MAX_RETRIES must be >= 0")
        if self.collaborator_timeout_seconds < 1.0:
            raise ValueError("COLLABORATOR_TIMEOUT_SECONDS must be >= 1")
