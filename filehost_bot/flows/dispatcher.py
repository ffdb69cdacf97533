from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Union

from .. import texts
from ..config import Settings
from ..core.auth import AdminGate
from ..core.bot_config import BotConfigStore
from ..core.conversation import ConversationState, ConversationStateMachine, ConversationStep
from ..core.errors import (
    AuthorizationError,
    CollaboratorError,
    ConcurrencyConflict,
    NotFoundError,
    ValidationError,
)
from ..core.fanout import FanoutEngine
from ..core.ledger import QuotaLedger
from ..core.locks import KeyedLocks
from ..core.referrals import ReferralGraph
from ..registry import QuotaSnapshot, RegistryStore, Subject
from ..services.artifact_store import ArtifactStore
from .common import EventKind, InboundEvent
from .mixins import PROMPT_ACTIONS, AdminMenuMixin, ArtifactMixin, ContinuationsMixin, UserMenuMixin

logger = logging.getLogger("filehost_bot")

HandlerResult = Union[str, list[str]]
ActionHandler = Callable[[InboundEvent], Awaitable[HandlerResult]]
Continuation = Callable[[InboundEvent, ConversationState], Awaitable[HandlerResult]]

USER_ACTIONS = (
    "start",
    "help",
    "upload",
    "myfiles",
    "delete",
    "del",
    "mystats",
    "refer",
    "get_premium",
    "notifications_on",
    "notifications_off",
    "report_bug",
    "delete_my_data",
    "confirm_delete_my_data",
    "request_my_data",
    "cancel",
)

ADMIN_ACTIONS = (
    "admin",
    "view_files",
    "total_users",
    "referral_stats",
    "daily_stats",
    "view_banned",
    "clear_bans",
    "premium_list",
    "approve_premium",
    "deny_premium",
    "message_user",
    "confirm_delete_user_files",
    "toggle_notifications",
    "enable_type",
    "disable_type",
)


class EventDispatcher(UserMenuMixin, AdminMenuMixin, ContinuationsMixin, ArtifactMixin):
    """Routes one inbound event to exactly one handler and returns the replies.

    Menu actions go to a stateless handler. Free text goes to the continuation
    of the actor's pending step, or to the default handler when there is none.
    Files are uploads, unless the actor is composing a broadcast.
    """

    def __init__(
        self,
        *,
        settings: Settings,
        registry: RegistryStore,
        gate: AdminGate,
        config: BotConfigStore,
        ledger: QuotaLedger,
        referrals: ReferralGraph,
        fanout: FanoutEngine,
        conversations: ConversationStateMachine,
        artifacts: ArtifactStore,
    ) -> None:
        self.settings = settings
        self.registry = registry
        self.gate = gate
        self.config = config
        self.ledger = ledger
        self.referrals = referrals
        self.fanout = fanout
        self.conversations = conversations
        self.artifacts = artifacts
        self.upload_locks = KeyedLocks()
        self.settlements: set[asyncio.Task] = set()

        self.user_actions: dict[str, ActionHandler] = {name: getattr(self, f"_action_{name}") for name in USER_ACTIONS}
        self.admin_actions: dict[str, ActionHandler] = {name: getattr(self, f"_action_{name}") for name in ADMIN_ACTIONS}
        self.continuations: dict[ConversationStep, Continuation] = {
            step: getattr(self, f"_continue_{step.value}") for step in ConversationStep
        }

    @property
    def prefix(self) -> str:
        return self.settings.command_prefix

    async def _require_subject(self, subject_id: int) -> Subject:
        subject = await self.registry.get_subject(subject_id)
        if subject is None:
            raise NotFoundError(f"User {subject_id} not found.")
        return subject

    async def _require_registered(self, actor_id: int) -> Subject:
        subject = await self.registry.get_subject(actor_id)
        if subject is None or subject.deleted:
            raise NotFoundError(texts.START_FIRST.format(prefix=self.prefix))
        return subject

    async def handle(self, event: InboundEvent) -> list[str]:
        try:
            result = await self._dispatch(event)
        except AuthorizationError:
            logger.info("Rejected privileged %s from actor=%s", event.action or event.kind.value, event.actor_id)
            result = texts.NOT_AUTHORIZED
        except ConcurrencyConflict as exc:
            result = self._quota_exceeded(exc.snapshot)
        except (ValidationError, NotFoundError) as exc:
            result = f"❌ {exc}"
        except CollaboratorError as exc:
            logger.warning("Collaborator failure for actor=%s: %s", event.actor_id, exc)
            result = f"❌ Operation failed: {exc}"
        except Exception:
            logger.exception("Event handling failed for actor=%s kind=%s", event.actor_id, event.kind.value)
            result = texts.GENERIC_FAILURE
        if isinstance(result, str):
            return [result] if result else []
        return [item for item in result if item]

    def _quota_exceeded(self, snapshot: object) -> str:
        if isinstance(snapshot, QuotaSnapshot):
            return texts.quota_exceeded(snapshot, self.prefix)
        return "❌ Upload limit reached."

    async def _dispatch(self, event: InboundEvent) -> HandlerResult:
        if not self.gate.is_admin(event.actor_id) and await self.registry.is_banned(event.actor_id):
            self.conversations.clear(event.actor_id)
            return texts.BANNED

        if event.kind is EventKind.ACTION:
            return await self._dispatch_action(event)
        if event.kind is EventKind.FILE:
            if self.conversations.has_state(event.actor_id, ConversationStep.BROADCAST):
                return await self._dispatch_text(event)
            return await self._handle_files(event)
        return await self._dispatch_text(event)

    async def _dispatch_action(self, event: InboundEvent) -> HandlerResult:
        name = event.action
        if name != "cancel":
            # Any menu action replaces a stale pending step.
            self.conversations.clear(event.actor_id)

        if name in PROMPT_ACTIONS:
            self.gate.require_admin(event.actor_id)
            return self._prompt_for(event.actor_id, PROMPT_ACTIONS[name])
        if name in self.admin_actions:
            self.gate.require_admin(event.actor_id)
            return await self.admin_actions[name](event)
        if name in self.user_actions:
            return await self.user_actions[name](event)
        return f"Unknown command `{self.prefix}{name}`. Send `{self.prefix}help` for the list."

    async def _dispatch_text(self, event: InboundEvent) -> HandlerResult:
        state = self.conversations.take_state(event.actor_id)
        if state is None:
            return await self._default_text(event)
        if state.step.admin_only:
            self.gate.require_admin(event.actor_id)
        continuation = self.continuations.get(state.step)
        if continuation is None:
            logger.warning("No continuation for step=%s, state dropped for actor=%s", state.step, event.actor_id)
            return await self._default_text(event)
        logger.debug("Continuing step=%s for actor=%s", state.step.value, event.actor_id)
        return await continuation(event, state)
