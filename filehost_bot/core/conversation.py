from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from ..registry.clock import utc_now


class ConversationStep(str, Enum):
    ADD_SLOTS = "add_slots"
    SEND_NOTIFICATION = "send_notification"
    BROADCAST = "broadcast"
    BAN_USER = "ban_user"
    UNBAN_USER = "unban_user"
    ADD_PREMIUM_USER = "add_premium_user"
    APPROVE_PREMIUM = "approve_premium"
    REMOVE_PREMIUM_USER = "remove_premium_user"
    VIEW_USER_FILES = "view_user_files"
    DELETE_USER_FILES = "delete_user_files"
    PREMIUM_DEFAULT_SLOTS = "premium_default_slots"
    PREMIUM_DURATION = "premium_duration"
    PREMIUM_WELCOME_MSG = "premium_welcome_msg"
    UPDATE_WELCOME_MSG = "update_welcome_msg"
    EDIT_DEFAULT_SLOTS = "edit_default_slots"
    EDIT_REFERRAL_REWARD = "edit_referral_reward"
    SET_REFERRAL_REWARD = "set_referral_reward"
    MESSAGE_USER = "message_user"
    REPORT_BUG = "report_bug"

    @property
    def admin_only(self) -> bool:
        return self is not ConversationStep.REPORT_BUG


@dataclass(slots=True, frozen=True)
class ConversationState:
    step: ConversationStep
    target: int | None = None
    created_at: datetime = field(default_factory=utc_now)


class ConversationStateMachine:
    """Pending dialogue step per actor.

    Kept in memory only. ``take_state`` reads and clears under one lock, so two
    near-simultaneous text events from the same actor cannot both consume the
    same step. The lock is a plain ``threading.Lock``: every critical section is
    a dict operation and never awaits.
    """

    def __init__(self) -> None:
        self._states: dict[int, ConversationState] = {}
        self._lock = threading.Lock()

    def set_state(self, actor_id: int, step: ConversationStep, target: int | None = None) -> ConversationState:
        state = ConversationState(step=ConversationStep(step), target=target)
        with self._lock:
            self._states[int(actor_id)] = state
        return state

    def take_state(self, actor_id: int) -> ConversationState | None:
        with self._lock:
            return self._states.pop(int(actor_id), None)

    def has_state(self, actor_id: int, step: ConversationStep | None = None) -> bool:
        with self._lock:
            state = self._states.get(int(actor_id))
        if state is None:
            return False
        return step is None or state.step == step

    def peek(self, actor_id: int) -> ConversationState | None:
        with self._lock:
            return self._states.get(int(actor_id))

    def clear(self, actor_id: int) -> bool:
        with self._lock:
            return self._states.pop(int(actor_id), None) is not None

    def __len__(self) -> int:
        with self._lock:
            return len(self._states)
