from __future__ import annotations

import logging

from ... import texts
from ...core.bot_config import FileTypesConfig, WelcomeMessageConfig
from ...core.conversation import ConversationStep
from ...core.errors import CollaboratorError, ValidationError
from ...registry.clock import to_iso
from ...services.messaging import OutboundPayload
from ..common import InboundEvent, collapse_spaces

logger = logging.getLogger("filehost_bot")


class UserMenuMixin:
    async def _action_start(self, event: InboundEvent) -> list[str]:
        await self.registry.track_daily_usage(event.actor_id)
        existing = await self.registry.get_subject(event.actor_id)
        created = await self.registry.register_subject(
            event.actor_id,
            event.display_name,
            chat_id=event.reply_address,
            base_limit=self.settings.default_base_limit,
            referral_reward=self.settings.default_referral_reward,
        )
        if existing is not None and existing.deleted:
            await self.registry.restore_subject(event.actor_id)
            await self.registry.set_notifications(event.actor_id, True)

        replies: list[str] = []
        if created and event.args:
            replies.extend(await self._apply_referral(event))

        if self.gate.is_admin(event.actor_id):
            replies.append(texts.ADMIN_HELP.format(prefix=self.prefix))
            return replies

        welcome = await self.config.load(WelcomeMessageConfig)
        replies.append(welcome.render(event.display_name, event.actor_id) if welcome.text else texts.default_welcome(event.display_name))
        replies.append(texts.USER_HELP.format(prefix=self.prefix))
        return replies

    async def _apply_referral(self, event: InboundEvent) -> list[str]:
        try:
            referrer_id = int(event.args[0])
        except ValueError:
            return []
        snapshot = await self.referrals.record_referral(referrer_id, event.actor_id)
        if snapshot is None:
            return []
        try:
            await self.fanout.send_direct(
                referrer_id,
                OutboundPayload(texts.referrer_notice(event.display_name, snapshot)),
            )
        except CollaboratorError as exc:
            logger.warning("Referral notice to %s was not delivered: %s", referrer_id, exc)
        return [texts.referral_welcome(self.prefix, event.actor_id)]

    async def _action_help(self, event: InboundEvent) -> list[str]:
        replies = [texts.USER_HELP.format(prefix=self.prefix)]
        if self.gate.is_admin(event.actor_id):
            replies.append(texts.ADMIN_HELP.format(prefix=self.prefix))
        return replies

    async def _action_upload(self, event: InboundEvent) -> str:
        file_types = await self.config.load(FileTypesConfig)
        allowed = ", ".join(f".{ext}" for ext in file_types.enabled_extensions()) or "none"
        return f"{texts.UPLOAD_PROMPT}\nAllowed types: {allowed}"

    async def _action_myfiles(self, event: InboundEvent) -> str:
        subject = await self._require_registered(event.actor_id)
        artifacts = await self._list_files(subject.subject_id)
        if not artifacts:
            return texts.NO_FILES
        return f"📂 **Your files** ({len(artifacts)}/{subject.quota.total_slots})\n{self._format_file_list(artifacts)}"

    async def _action_delete(self, event: InboundEvent) -> str:
        subject = await self._require_registered(event.actor_id)
        artifacts = await self._list_files(subject.subject_id)
        if not artifacts:
            return texts.NO_FILES
        lines = [f"`{self.prefix}del {artifact.name}`" for artifact in artifacts]
        return "🗑️ Pick a file to delete:\n" + "\n".join(lines)

    async def _action_del(self, event: InboundEvent) -> str:
        await self._require_registered(event.actor_id)
        if not event.args:
            raise ValidationError(f"Usage: {self.prefix}del <file name>")
        name = " ".join(event.args)
        snapshot = await self._delete_file(event.actor_id, name)
        return texts.FILE_DELETED.format(name=name, used=snapshot.consumed_count, total=snapshot.total_slots)

    async def _action_mystats(self, event: InboundEvent) -> str:
        subject = await self._require_registered(event.actor_id)
        return texts.stats_summary(subject)

    async def _action_refer(self, event: InboundEvent) -> str:
        subject = await self._require_registered(event.actor_id)
        return texts.referral_info(subject, self.prefix)

    async def _action_get_premium(self, event: InboundEvent) -> str:
        subject = await self._require_registered(event.actor_id)
        if subject.premium:
            return texts.ALREADY_PREMIUM
        notice = OutboundPayload(
            "🔔 **New Premium Request**\n\n"
            f"👤 User: {subject.display_name}\n"
            f"🆔 ID: {subject.subject_id}\n\n"
            f"`{self.prefix}approve_premium {subject.subject_id}` "
            f"`{self.prefix}deny_premium {subject.subject_id}` "
            f"`{self.prefix}message_user {subject.subject_id}`"
        )
        report = await self.fanout.notify_admins(self.gate.admin_ids, notice)
        logger.info("Premium request from %s forwarded to %s admins", subject.subject_id, report.sent)
        return texts.PREMIUM_REQUESTED

    async def _action_notifications_on(self, event: InboundEvent) -> str:
        await self._require_registered(event.actor_id)
        await self.registry.set_notifications(event.actor_id, True)
        return texts.NOTIFICATIONS_ON

    async def _action_notifications_off(self, event: InboundEvent) -> str:
        await self._require_registered(event.actor_id)
        await self.registry.set_notifications(event.actor_id, False)
        return texts.NOTIFICATIONS_OFF

    async def _action_report_bug(self, event: InboundEvent) -> str:
        self.conversations.set_state(event.actor_id, ConversationStep.REPORT_BUG)
        return texts.REPORT_BUG_PROMPT

    async def _action_delete_my_data(self, event: InboundEvent) -> str:
        await self._require_registered(event.actor_id)
        return texts.DELETE_DATA_CONFIRM.format(prefix=self.prefix)

    async def _action_confirm_delete_my_data(self, event: InboundEvent) -> str:
        subject = await self._require_registered(event.actor_id)
        deleted, remaining = await self._delete_all_files(subject.subject_id)
        await self.registry.mark_subject_deleted(subject.subject_id, remaining)
        logger.info("Subject %s deleted their data (%s files removed, %s left)", subject.subject_id, deleted, remaining)
        return texts.DATA_DELETED.format(prefix=self.prefix)

    async def _action_request_my_data(self, event: InboundEvent) -> str:
        subject = await self._require_registered(event.actor_id)
        artifacts = await self._list_files(subject.subject_id)
        referred = await self.referrals.referred_by(subject.subject_id)
        referrer = await self.referrals.referrer_of(subject.subject_id)
        lines = [
            "📋 **Your Data**",
            f"ID: {subject.subject_id}",
            f"Name: {subject.display_name}",
            f"Joined: {to_iso(subject.joined_at) or 'unknown'}",
            f"Premium: {'yes' if subject.premium else 'no'}",
            f"Notifications: {'on' if subject.notifications else 'off'}",
            f"Slots: {subject.quota.consumed_count}/{subject.quota.total_slots}",
            f"Referred by: {referrer if referrer is not None else 'nobody'}",
            f"Referrals: {', '.join(str(item) for item in referred) or 'none'}",
            f"Files ({len(artifacts)}):",
        ]
        if artifacts:
            lines.append(self._format_file_list(artifacts))
        return "\n".join(lines)

    async def _action_cancel(self, event: InboundEvent) -> str:
        if self.conversations.clear(event.actor_id):
            return texts.CANCELLED
        return texts.NOTHING_TO_CANCEL

    async def _default_text(self, event: InboundEvent) -> str:
        if not collapse_spaces(event.text):
            return ""
        return texts.NO_PENDING_TEXT.format(prefix=self.prefix)
