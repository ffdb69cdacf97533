from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Mapping

from .clock import from_iso


@dataclass(slots=True, frozen=True)
class QuotaSnapshot:
    """Point-in-time view of a subject's slot accounting."""

    subject_id: int
    base_limit: int
    consumed_count: int
    referral_reward: int
    referral_count: int

    @property
    def total_slots(self) -> int:
        return self.base_limit + self.referral_count * self.referral_reward

    @property
    def remaining(self) -> int:
        return max(0, self.total_slots - self.consumed_count)

    @property
    def can_admit(self) -> bool:
        return self.consumed_count < self.total_slots


@dataclass(slots=True, frozen=True)
class Subject:
    subject_id: int
    display_name: str
    joined_at: datetime | None
    chat_id: int | None
    premium: bool
    premium_since: datetime | None
    premium_until: datetime | None
    notifications: bool
    banned: bool
    deleted: bool
    quota: QuotaSnapshot

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Subject":
        subject_id = int(row["subject_id"])
        chat_id = row["chat_id"]
        return cls(
            subject_id=subject_id,
            display_name=str(row["display_name"] or "Unknown"),
            joined_at=from_iso(row["joined_at"]),
            chat_id=int(chat_id) if chat_id is not None else None,
            premium=bool(row["premium"]),
            premium_since=from_iso(row["premium_since"]),
            premium_until=from_iso(row["premium_until"]),
            notifications=bool(row["notifications"]),
            banned=bool(row["banned"]),
            deleted=bool(row["deleted"]),
            quota=QuotaSnapshot(
                subject_id=subject_id,
                base_limit=int(row["base_limit"]),
                consumed_count=int(row["consumed_count"]),
                referral_reward=int(row["referral_reward"]),
                referral_count=int(row["referral_count"]),
            ),
        )


@dataclass(slots=True, frozen=True)
class ReferrerStanding:
    subject_id: int
    display_name: str
    referral_count: int


@dataclass(slots=True, frozen=True)
class BanEntry:
    subject_id: int
    banned_at: datetime | None
    banned_by: int | None
