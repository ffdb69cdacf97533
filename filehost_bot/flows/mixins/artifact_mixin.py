from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, TypeVar

from ... import texts
from ...core.bot_config import FileTypesConfig, normalize_extension
from ...core.errors import CollaboratorError, NotFoundError, ValidationError
from ...registry import QuotaSnapshot
from ...services.artifact_store import (
    StoredArtifact,
    artifact_path,
    guess_content_type,
    sanitize_filename,
    subject_prefix,
)
from ..common import InboundEvent, InboundFile

logger = logging.getLogger("filehost_bot")

T = TypeVar("T")


class ArtifactMixin:
    async def _artifact_call(self, awaitable: Awaitable[T], what: str) -> T:
        timeout = self.settings.collaborator_timeout_seconds
        try:
            return await asyncio.wait_for(awaitable, timeout=timeout)
        except asyncio.TimeoutError:
            raise CollaboratorError(f"{what} timed out after {timeout:.0f}s") from None
        except (OSError, ValueError) as exc:
            raise CollaboratorError(f"{what} failed: {exc}") from exc

    async def _store_call(self, subject_id: int, awaitable: Awaitable[T], what: str) -> T:
        """Run a store mutation that may outlive its timeout.

        A timed out put or delete keeps running, so the subject's slot count is
        settled against the store once it actually finishes. The raised
        CollaboratorError carries ``pending=True`` in that case.
        """
        task = asyncio.ensure_future(awaitable)
        try:
            return await self._artifact_call(asyncio.shield(task), what)
        except CollaboratorError as exc:
            exc.pending = not task.done()
            if exc.pending:
                settle = asyncio.create_task(self._settle_after(subject_id, task, what))
                self.settlements.add(settle)
                settle.add_done_callback(self.settlements.discard)
            raise

    async def _settle_after(self, subject_id: int, task: asyncio.Future, what: str) -> None:
        try:
            await task
        except Exception as exc:
            logger.warning("Late %s for subject=%s failed: %s", what, subject_id, exc)
        async with self.upload_locks.hold(subject_id):
            try:
                remaining = len(await self._list_files(subject_id))
            except CollaboratorError as exc:
                logger.warning("Could not settle slot count of subject=%s: %s", subject_id, exc)
                return
            if await self.registry.get_quota(subject_id) is None:
                return
            await self.ledger.reset_consumed(subject_id, remaining)
        logger.info("Slot count of subject=%s settled at %s after late %s", subject_id, remaining, what)

    async def _handle_files(self, event: InboundEvent) -> list[str]:
        await self._require_registered(event.actor_id)
        replies: list[str] = []
        for item in event.files:
            async with self.upload_locks.hold(event.actor_id):
                replies.append(await self._upload_one(event.actor_id, item))
        return replies

    async def _upload_one(self, subject_id: int, item: InboundFile) -> str:
        file_types = await self.config.load(FileTypesConfig)
        extension = normalize_extension(item.filename.rsplit(".", 1)[-1] if "." in item.filename else "")
        if not file_types.is_allowed(extension):
            allowed = ", ".join(f".{ext.upper()}" for ext in file_types.enabled_extensions()) or "none"
            return f"⚠️ Invalid file type. Currently allowed file types are: {allowed}"
        if item.size > self.settings.max_upload_bytes:
            return texts.UPLOAD_TOO_LARGE.format(limit=self.settings.max_upload_bytes)

        name = sanitize_filename(item.filename)
        if not name:
            raise ValidationError("Invalid file name.")
        path = artifact_path(subject_id, name)

        replaced = await self._artifact_call(self.artifacts.exists(path), "artifact lookup")
        if not replaced:
            # Raises ConcurrencyConflict when the last slot is gone.
            await self.ledger.reserve(subject_id)

        try:
            data = await self._artifact_call(item.read(), "attachment download")
            url = await self._store_call(
                subject_id,
                self.artifacts.put(path, data, guess_content_type(name)),
                "artifact upload",
            )
        except CollaboratorError as exc:
            if exc.pending:
                logger.warning("Upload of %s for subject=%s still running, slot held until it settles", name, subject_id)
            else:
                if not replaced:
                    await self.ledger.release(subject_id)
                logger.warning("Upload of %s for subject=%s failed, reservation released", name, subject_id)
            raise

        snapshot = await self.ledger.snapshot(subject_id)
        logger.info("Stored %s for subject=%s (replaced=%s)", path, subject_id, replaced)
        return texts.upload_success(url, snapshot, replaced=replaced)

    async def _list_files(self, subject_id: int) -> list[StoredArtifact]:
        return await self._artifact_call(self.artifacts.list(subject_prefix(subject_id)), "artifact listing")

    async def _delete_file(self, subject_id: int, filename: str) -> QuotaSnapshot:
        name = sanitize_filename(filename)
        if not name:
            raise ValidationError("Please give the file name to delete.")
        async with self.upload_locks.hold(subject_id):
            deleted = await self._store_call(subject_id, self.artifacts.delete(artifact_path(subject_id, name)), "artifact delete")
            if not deleted:
                raise NotFoundError(texts.FILE_NOT_FOUND.format(name=name))
            return await self.ledger.adjust_consumed(subject_id, -1)

    async def _delete_all_files(self, subject_id: int) -> tuple[int, int]:
        """Delete every artifact of a subject. Returns (deleted, still_present)."""
        deleted = 0
        async with self.upload_locks.hold(subject_id):
            for artifact in await self._list_files(subject_id):
                try:
                    if await self._store_call(subject_id, self.artifacts.delete(artifact.path), "artifact delete"):
                        deleted += 1
                except CollaboratorError as exc:
                    logger.warning("Could not delete %s: %s", artifact.path, exc)
            remaining = len(await self._list_files(subject_id))
            if await self.registry.get_quota(subject_id) is not None:
                await self.ledger.reset_consumed(subject_id, remaining)
        return deleted, remaining

    @staticmethod
    def _format_file_list(artifacts: list[StoredArtifact]) -> str:
        return "\n".join(f"• `{artifact.name}` {artifact.url}" for artifact in artifacts)
