from __future__ import annotations

import asyncio
import logging
import mimetypes
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path, PurePosixPath
from typing import Protocol
from urllib.parse import quote

logger = logging.getLogger("filehost_bot")

_SAFE_NAME_RE = re.compile(r"[^A-Za-z0-9._-]+")


@dataclass(slots=True, frozen=True)
class StoredArtifact:
    path: str
    name: str
    url: str
    size: int
    updated_at: datetime | None = None


class ArtifactStore(Protocol):
    async def put(self, path: str, data: bytes, content_type: str) -> str: ...

    async def list(self, prefix: str) -> list[StoredArtifact]: ...

    async def exists(self, path: str) -> bool: ...

    async def delete(self, path: str) -> bool: ...


def sanitize_filename(name: str) -> str:
    base = PurePosixPath(str(name or "").replace("\\", "/")).name
    cleaned = _SAFE_NAME_RE.sub("_", base).strip("._")
    return cleaned[:120]


def subject_prefix(subject_id: int) -> str:
    return f"{int(subject_id)}/"


def artifact_path(subject_id: int, filename: str) -> str:
    return f"{subject_prefix(subject_id)}{filename}"


def guess_content_type(filename: str) -> str:
    if filename.lower().endswith((".html", ".htm")):
        return "text/html; charset=utf-8"
    guessed, _ = mimetypes.guess_type(filename)
    return guessed or "application/octet-stream"


class LocalArtifactStore:
    """Artifacts as files under ``root``, published under ``base_url``.

    Blocking filesystem calls run in ``asyncio.to_thread``.
    """

    def __init__(self, root: Path, base_url: str) -> None:
        self.root = Path(root)
        self.base_url = base_url.rstrip("/")
        self.root.mkdir(parents=True, exist_ok=True)

    def _resolve(self, path: str) -> Path:
        relative = PurePosixPath(str(path).lstrip("/"))
        if any(part in {"..", ""} for part in relative.parts):
            raise ValueError(f"Invalid artifact path: {path!r}")
        return self.root.joinpath(*relative.parts)

    def url_for(self, path: str) -> str:
        return f"{self.base_url}/{quote(str(path).lstrip('/'))}"

    async def put(self, path: str, data: bytes, content_type: str) -> str:
        target = self._resolve(path)

        def _write() -> None:
            target.parent.mkdir(parents=True, exist_ok=True)
            tmp = target.with_name(target.name + ".part")
            tmp.write_bytes(data)
            tmp.replace(target)

        await asyncio.to_thread(_write)
        logger.debug("Stored artifact %s (%s bytes, %s)", path, len(data), content_type)
        return self.url_for(path)

    async def list(self, prefix: str) -> list[StoredArtifact]:
        folder = self._resolve(prefix.rstrip("/"))

        def _scan() -> list[StoredArtifact]:
            if not folder.is_dir():
                return []
            items: list[StoredArtifact] = []
            for entry in sorted(folder.iterdir(), key=lambda item: item.name):
                if not entry.is_file() or entry.name.endswith(".part"):
                    continue
                stat = entry.stat()
                path = f"{prefix.rstrip('/')}/{entry.name}"
                items.append(
                    StoredArtifact(
                        path=path,
                        name=entry.name,
                        url=self.url_for(path),
                        size=int(stat.st_size),
                        updated_at=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
                    )
                )
            return items

        return await asyncio.to_thread(_scan)

    async def exists(self, path: str) -> bool:
        target = self._resolve(path)
        return await asyncio.to_thread(target.is_file)

    async def delete(self, path: str) -> bool:
        target = self._resolve(path)

        def _unlink() -> bool:
            if not target.is_file():
                return False
            target.unlink()
            return True

        return await asyncio.to_thread(_unlink)
