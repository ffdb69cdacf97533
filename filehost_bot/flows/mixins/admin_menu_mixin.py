from __future__ import annotations

import logging

from ... import texts
from ...core.bot_config import FileTypesConfig, NotificationsConfig, PremiumSettings
from ...core.conversation import ConversationStep
from ...core.errors import CollaboratorError, ValidationError
from ...registry.clock import to_iso, usage_day
from ...services.messaging import OutboundPayload
from ..common import InboundEvent, parse_user_id

logger = logging.getLogger("filehost_bot")

# Actions that only open a follow-up step. Their text arrives as the next event.
PROMPT_ACTIONS: dict[str, ConversationStep] = {
    "add_slots": ConversationStep.ADD_SLOTS,
    "send_notification": ConversationStep.SEND_NOTIFICATION,
    "broadcast": ConversationStep.BROADCAST,
    "ban_user": ConversationStep.BAN_USER,
    "unban_user": ConversationStep.UNBAN_USER,
    "add_premium_user": ConversationStep.ADD_PREMIUM_USER,
    "remove_premium_user": ConversationStep.REMOVE_PREMIUM_USER,
    "view_user_files": ConversationStep.VIEW_USER_FILES,
    "delete_user_files": ConversationStep.DELETE_USER_FILES,
    "premium_default_slots": ConversationStep.PREMIUM_DEFAULT_SLOTS,
    "premium_duration": ConversationStep.PREMIUM_DURATION,
    "premium_welcome_msg": ConversationStep.PREMIUM_WELCOME_MSG,
    "update_welcome_msg": ConversationStep.UPDATE_WELCOME_MSG,
    "edit_default_slots": ConversationStep.EDIT_DEFAULT_SLOTS,
    "edit_referral_reward": ConversationStep.EDIT_REFERRAL_REWARD,
    "set_referral_reward": ConversationStep.SET_REFERRAL_REWARD,
}

LIST_LIMIT = 50


class AdminMenuMixin:
    def _prompt_for(self, actor_id: int, step: ConversationStep, target: int | None = None) -> str:
        self.conversations.set_state(actor_id, step, target)
        prompt = texts.ADMIN_PROMPTS[step.value]
        return prompt.replace("{target}", str(target)) if target is not None else prompt

    async def _target_from_args(self, event: InboundEvent) -> int:
        if not event.args:
            raise ValidationError(f"Usage: {self.prefix}{event.action} <user id>")
        return parse_user_id(event.args[0])

    async def _action_admin(self, event: InboundEvent) -> str:
        return texts.ADMIN_HELP.format(prefix=self.prefix)

    async def _action_total_users(self, event: InboundEvent) -> str:
        subjects = await self.registry.list_subjects()
        if not subjects:
            return "⚠️ No registered users found."
        lines = [f"👥 **Total users: {len(subjects)}**"]
        lines.extend(f"{index}. {texts.subject_label(subject)}" for index, subject in enumerate(subjects[:LIST_LIMIT], 1))
        if len(subjects) > LIST_LIMIT:
            lines.append(f"... and {len(subjects) - LIST_LIMIT} more")
        return "\n".join(lines)

    async def _action_daily_stats(self, event: InboundEvent) -> str:
        today = usage_day()
        count = await self.registry.get_daily_usage(today)
        if count == 0:
            return "📊 No users today yet."
        return f"📊 **Daily Statistics**\n\nToday ({today}):\n👥 Total Users: {count}"

    async def _action_referral_stats(self, event: InboundEvent) -> str:
        total = await self.referrals.total_referrals()
        top = await self.referrals.top_referrers(10)
        if not top:
            return "📊 No referrals recorded yet."
        lines = [f"📊 **Referral Statistics**\nTotal referrals: {total}\n\n🏆 Top referrers:"]
        lines.extend(
            f"{index}. {standing.display_name} ({standing.subject_id}): {standing.referral_count}"
            for index, standing in enumerate(top, 1)
        )
        return "\n".join(lines)

    async def _action_view_files(self, event: InboundEvent) -> str:
        lines: list[str] = []
        total = 0
        for subject in await self.registry.list_subjects():
            artifacts = await self._list_files(subject.subject_id)
            if not artifacts:
                continue
            total += len(artifacts)
            lines.append(f"**{texts.subject_label(subject)}**")
            lines.append(self._format_file_list(artifacts))
        if not lines:
            return "📂 No uploaded files found."
        return f"📂 **All files ({total})**\n" + "\n".join(lines)

    async def _action_view_banned(self, event: InboundEvent) -> str:
        bans = await self.registry.list_bans()
        if not bans:
            return "📢 No users are currently banned."
        lines = ["⛔ **Banned users**"]
        lines.extend(f"• {entry.subject_id} (since {to_iso(entry.banned_at) or 'unknown'})" for entry in bans)
        return "\n".join(lines)

    async def _action_clear_bans(self, event: InboundEvent) -> str:
        count = await self.registry.clear_bans()
        logger.info("Admin %s cleared %s bans", event.actor_id, count)
        return f"✅ Cleared all bans ({count} users unbanned)"

    async def _action_premium_list(self, event: InboundEvent) -> str:
        subjects = await self.registry.list_subjects(premium_only=True)
        terms = await self.config.load(PremiumSettings)
        header = f"👑 **Premium users** (default {terms.default_slots} slots, {terms.duration_days} days)"
        if not subjects:
            return f"{header}\n📝 No premium users found."
        lines = [header]
        for subject in subjects:
            until = subject.premium_until.date().isoformat() if subject.premium_until else "no expiry"
            lines.append(f"• {subject.display_name} ({subject.subject_id}): {subject.quota.total_slots} slots, until {until}")
        return "\n".join(lines)

    async def _action_approve_premium(self, event: InboundEvent) -> str:
        target = await self._target_from_args(event)
        await self._require_subject(target)
        return self._prompt_for(event.actor_id, ConversationStep.APPROVE_PREMIUM, target)

    async def _action_deny_premium(self, event: InboundEvent) -> str:
        target = await self._target_from_args(event)
        await self.fanout.send_direct(target, OutboundPayload(texts.PREMIUM_DENIED_USER))
        return f"✅ Premium request of user {target} denied."

    async def _action_message_user(self, event: InboundEvent) -> str:
        target = await self._target_from_args(event)
        await self._require_subject(target)
        return self._prompt_for(event.actor_id, ConversationStep.MESSAGE_USER, target)

    async def _action_confirm_delete_user_files(self, event: InboundEvent) -> str:
        target = await self._target_from_args(event)
        await self._require_subject(target)
        deleted, remaining = await self._delete_all_files(target)
        logger.info("Admin %s deleted %s files of subject=%s", event.actor_id, deleted, target)
        suffix = f" ({remaining} could not be deleted)" if remaining else ""
        return f"✅ Deleted {deleted} files of user {target}.{suffix}"

    async def _action_toggle_notifications(self, event: InboundEvent) -> str:
        updated = await self.config.toggle_notifications(event.actor_id)
        state = "enabled" if updated.enabled else "disabled"
        return f"🔔 Notifications are now {state} for all users."

    async def _action_enable_type(self, event: InboundEvent) -> str:
        return await self._set_file_type(event, True)

    async def _action_disable_type(self, event: InboundEvent) -> str:
        return await self._set_file_type(event, False)

    async def _set_file_type(self, event: InboundEvent, enabled: bool) -> str:
        if not event.args:
            raise ValidationError(f"Usage: {self.prefix}{event.action} <html|zip|js|css>")
        updated: FileTypesConfig = await self.config.set_extension(event.actor_id, event.args[0], enabled)
        allowed = ", ".join(f".{ext}" for ext in updated.enabled_extensions()) or "none"
        return f"✅ File types updated. Allowed: {allowed}"

    async def _notify_subject_quietly(self, subject_id: int, text: str) -> str:
        """Best-effort notice after an admin change. Returns a warning line or ''."""
        try:
            await self.fanout.send_direct(subject_id, OutboundPayload(text))
        except CollaboratorError as exc:
            logger.warning("Notice to subject=%s was not delivered: %s", subject_id, exc)
            return f"\n⚠️ The user could not be notified: {exc}"
        return ""

    async def _switch_state_text(self) -> str:
        switch = await self.config.load(NotificationsConfig)
        return "" if switch.enabled else "\n⚠️ Notifications are globally disabled, nothing was sent."
