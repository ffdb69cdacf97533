from __future__ import annotations

import logging

import discord

from ..flows.common import chunk_text
from ..services.messaging import DELIVERED, OutboundPayload, SendOutcome, SendResult

logger = logging.getLogger("filehost_bot")


class DiscordMessagingSink:
    """Direct messages through the bot's own client.

    Forbidden and NotFound mean the user blocked DMs, left every shared server
    or no longer exists. Both are reported as unreachable.
    """

    def __init__(self, client: discord.Client) -> None:
        self.client = client

    async def _resolve_user(self, address: int) -> discord.abc.Messageable:
        user = self.client.get_user(int(address))
        if user is None:
            user = await self.client.fetch_user(int(address))
        return user

    async def send(self, address: int, payload: OutboundPayload) -> SendResult:
        try:
            user = await self._resolve_user(address)
            for chunk in chunk_text(payload.render(), 1900):
                await user.send(chunk)
        except (discord.Forbidden, discord.NotFound) as exc:
            return SendResult(SendOutcome.UNREACHABLE, f"{type(exc).__name__}: {exc}")
        except discord.HTTPException as exc:
            return SendResult(SendOutcome.ERROR, f"HTTP {exc.status}: {exc.text or exc}")
        return DELIVERED
