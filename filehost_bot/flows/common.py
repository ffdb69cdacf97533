from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable

from ..core.errors import ValidationError

# Largest value an SQLite INTEGER column holds.
SQLITE_MAX_INT = 2**63 - 1


class EventKind(str, Enum):
    ACTION = "action"
    TEXT = "text"
    FILE = "file"


@dataclass(slots=True)
class InboundFile:
    filename: str
    size: int
    content_type: str
    read: Callable[[], Awaitable[bytes]]
    url: str = ""


@dataclass(slots=True)
class InboundEvent:
    actor_id: int
    display_name: str
    kind: EventKind
    action: str = ""
    args: list[str] = field(default_factory=list)
    text: str = ""
    files: list[InboundFile] = field(default_factory=list)
    reply_address: int | None = None


def collapse_spaces(text: str) -> str:
    return re.sub(r"\s+", " ", text).strip()


def chunk_text(text: str, limit: int = 1900) -> list[str]:
    if len(text) <= limit:
        return [text]
    parts: list[str] = []
    current = ""
    for line in text.splitlines(keepends=True):
        if len(current) + len(line) <= limit:
            current += line
            continue
        if current:
            parts.append(current)
            current = ""
        if len(line) <= limit:
            current = line
        else:
            for i in range(0, len(line), limit):
                parts.append(line[i : i + limit])
    if current:
        parts.append(current)
    return parts


def parse_command(content: str, prefix: str) -> tuple[str, list[str]] | None:
    raw = content.strip()
    if not prefix or not raw.startswith(prefix):
        return None
    body = raw[len(prefix) :].strip()
    if not body:
        return None
    name, _, rest = body.partition(" ")
    return name.lower(), rest.split()


def parse_int(value: str, *, what: str = "number", minimum: int | None = None) -> int:
    try:
        parsed = int(str(value).strip())
    except ValueError:
        raise ValidationError(f"Please send a valid {what}.") from None
    if abs(parsed) > SQLITE_MAX_INT:
        raise ValidationError(f"Please send a valid {what} (too large).")
    if minimum is not None and parsed < minimum:
        raise ValidationError(f"Please send a valid {what} (at least {minimum}).")
    return parsed


def parse_user_id(value: str) -> int:
    return parse_int(collapse_spaces(value).split(" ")[0] if value.strip() else "", what="user ID", minimum=1)


def parse_pair(text: str, *, usage: str) -> tuple[int, int]:
    parts = collapse_spaces(text).split(" ")
    if len(parts) != 2:
        raise ValidationError(f"Invalid format. Please use: {usage}")
    return parse_int(parts[0], what="user ID", minimum=1), parse_int(parts[1], what="number")
