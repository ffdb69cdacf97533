from __future__ import annotations

import asyncio
import contextlib
import logging

import discord

from ..config import Settings
from ..core.auth import AdminGate
from ..core.bot_config import BotConfigStore
from ..core.conversation import ConversationStateMachine
from ..core.fanout import FanoutEngine
from ..core.ledger import QuotaLedger
from ..core.referrals import ReferralGraph
from ..flows.dispatcher import EventDispatcher
from ..registry import RegistryStore
from ..services.artifact_store import ArtifactStore
from .mixins.message_mixin import MessageMixin
from .mixins.workers_mixin import WorkersMixin
from .sink import DiscordMessagingSink

logger = logging.getLogger("filehost_bot")


class FileHostDiscordBot(
    MessageMixin,
    WorkersMixin,
    discord.Client,
):
    def __init__(
        self,
        settings: Settings,
        registry: RegistryStore,
        gate: AdminGate,
        config: BotConfigStore,
        ledger: QuotaLedger,
        referrals: ReferralGraph,
        artifacts: ArtifactStore,
    ) -> None:
        intents = discord.Intents.default()
        intents.message_content = True
        intents.dm_messages = True

        super().__init__(intents=intents)

        self.settings = settings
        self.registry = registry
        self.gate = gate
        self.config = config
        self.ledger = ledger
        self.referrals = referrals
        self.artifacts = artifacts
        self.conversations = ConversationStateMachine()

        self.sink = DiscordMessagingSink(self)
        self.fanout = FanoutEngine(
            registry,
            self.sink,
            config,
            send_delay_seconds=settings.broadcast_send_delay_seconds,
            concurrency=settings.broadcast_concurrency,
            max_retries=settings.broadcast_max_retries,
            timeout_seconds=settings.collaborator_timeout_seconds,
        )
        self.dispatcher = EventDispatcher(
            settings=settings,
            registry=registry,
            gate=gate,
            config=config,
            ledger=ledger,
            referrals=referrals,
            fanout=self.fanout,
            conversations=self.conversations,
            artifacts=artifacts,
        )

        self.premium_expiry_task: asyncio.Task[None] | None = None

    async def setup_hook(self) -> None:
        await self.registry.init()
        logger.info("Registry ready: %s (%s subjects)", self.registry.db_path, await self.registry.count_subjects())
        self.premium_expiry_task = asyncio.create_task(self._premium_expiry_worker(), name="premium-expiry")

    async def close(self) -> None:
        await self._cancel_task(self.premium_expiry_task)
        await self._run_shutdown_step("discord.Client.close", super().close(), timeout=6.0)

    async def _run_shutdown_step(self, label: str, coro: object, *, timeout: float) -> None:
        try:
            await asyncio.wait_for(coro, timeout=timeout)  # type: ignore[arg-type]
        except asyncio.TimeoutError:
            logger.warning("Shutdown step timed out: %s", label)
        except Exception as exc:
            logger.warning("Shutdown step failed: %s (%s)", label, exc)

    async def _cancel_task(self, task: asyncio.Task[None] | None) -> None:
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    async def on_ready(self) -> None:
        if self.user:
            logger.info("Connected as %s (%s)", self.user, self.user.id)
