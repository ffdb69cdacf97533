from __future__ import annotations

import logging
from typing import Any

import discord

from ...flows.common import EventKind, InboundEvent, InboundFile, chunk_text, collapse_spaces, parse_command

logger = logging.getLogger("filehost_bot")


class MessageMixin:
    @staticmethod
    def _display_name(author: Any) -> str:
        for attr in ("global_name", "display_name", "name"):
            value = str(getattr(author, attr, "") or "").strip()
            if value:
                return value
        return "Unknown"

    def _build_event(self, message: discord.Message) -> InboundEvent | None:
        author = message.author
        base: dict[str, Any] = {
            "actor_id": int(author.id),
            "display_name": self._display_name(author),
            "reply_address": int(author.id),
        }

        command = parse_command(message.content or "", self.settings.command_prefix)
        if command is not None:
            name, args = command
            return InboundEvent(kind=EventKind.ACTION, action=name, args=args, **base)

        # Free text and uploads are accepted in direct messages only.
        if message.guild is not None:
            return None

        files = [
            InboundFile(
                filename=attachment.filename,
                size=int(attachment.size or 0),
                content_type=str(attachment.content_type or ""),
                read=attachment.read,
                url=str(attachment.url or ""),
            )
            for attachment in message.attachments
        ]
        text = (message.content or "").strip()
        if files:
            return InboundEvent(kind=EventKind.FILE, text=text, files=files, **base)
        if not collapse_spaces(text):
            return None
        return InboundEvent(kind=EventKind.TEXT, text=text, **base)

    async def _send_chunks(
        self,
        channel: discord.abc.Messageable,
        text: str,
        reference: discord.Message | None = None,
    ) -> None:
        for index, chunk in enumerate(chunk_text(text, 1900)):
            kwargs: dict[str, Any] = {}
            if index == 0 and reference is not None:
                kwargs["reference"] = reference
            await channel.send(chunk, **kwargs)

    async def on_message(self, message: discord.Message) -> None:
        if message.author.bot:
            return
        event = self._build_event(message)
        if event is None:
            return

        replies = await self.dispatcher.handle(event)
        try:
            for index, reply in enumerate(replies):
                await self._send_chunks(message.channel, reply, reference=message if index == 0 else None)
        except discord.HTTPException as exc:
            logger.warning("Reply to actor=%s failed: %s", event.actor_id, exc)
