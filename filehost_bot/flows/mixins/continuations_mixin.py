from __future__ import annotations

import logging

from ... import texts
from ...core.bot_config import PremiumSettings
from ...core.conversation import ConversationState
from ...core.errors import NotFoundError, ValidationError
from ...core.fanout import ALL
from ...registry.clock import to_iso, utc_now
from ...services.messaging import OutboundPayload
from ..common import InboundEvent, collapse_spaces, parse_int, parse_pair, parse_user_id

logger = logging.getLogger("filehost_bot")

MIN_NOTIFICATION_CHARS = 5
MIN_WELCOME_CHARS = 10


def _require_text(text: str, minimum: int, what: str) -> str:
    cleaned = text.strip()
    if len(cleaned) < minimum:
        raise ValidationError(f"Please provide a valid {what} (at least {minimum} characters).")
    return cleaned


class ContinuationsMixin:
    """One continuation per conversation step.

    The dispatcher takes the pending state before calling in here, so every
    path, including a ValidationError, leaves the actor with no pending step.
    """

    async def _continue_add_slots(self, event: InboundEvent, state: ConversationState) -> str:
        subject_id, amount = parse_pair(event.text, usage="UserID NumberOfSlots")
        snapshot = await self.ledger.add_slots(event.actor_id, subject_id, amount)
        reply = f"✅ Successfully added {amount} slots to user {subject_id}.\nNew total slots: {snapshot.total_slots}"
        return reply + await self._notify_subject_quietly(
            subject_id,
            f"🎁 An admin added {amount} upload slots to your account. Total slots: {snapshot.total_slots}",
        )

    async def _continue_send_notification(self, event: InboundEvent, state: ConversationState) -> str:
        text = _require_text(event.text, MIN_NOTIFICATION_CHARS, "notification message")
        report = await self.fanout.notify(OutboundPayload(f"🔔 **Notification**\n\n{text}"), ALL)
        return f"✅ Notification sent to {report.sent} users ({report.failed} failed).{await self._switch_state_text()}"

    async def _continue_broadcast(self, event: InboundEvent, state: ConversationState) -> str:
        urls = tuple(item.url for item in event.files if item.url)
        text = event.text.strip()
        if not text and not urls:
            raise ValidationError("Broadcast message cannot be empty.")
        report = await self.fanout.notify(OutboundPayload(text, attachment_urls=urls), ALL)
        return (
            f"✅ Broadcast finished: sent {report.sent}, failed {report.failed} "
            f"({report.suppressed} unreachable).{await self._switch_state_text()}"
        )

    async def _continue_ban_user(self, event: InboundEvent, state: ConversationState) -> str:
        subject_id = parse_user_id(event.text)
        if self.gate.is_admin(subject_id):
            raise ValidationError("Admins cannot be banned.")
        if not await self.registry.ban_subject(subject_id, event.actor_id):
            return f"⚠️ User {subject_id} is already banned."
        logger.info("Subject %s banned by admin=%s", subject_id, event.actor_id)
        return f"✅ User {subject_id} has been banned."

    async def _continue_unban_user(self, event: InboundEvent, state: ConversationState) -> str:
        subject_id = parse_user_id(event.text)
        if not await self.registry.unban_subject(subject_id):
            return f"⚠️ User {subject_id} is not banned."
        reply = f"✅ User {subject_id} has been unbanned."
        notice = OutboundPayload("🔔 **Account Status Update**\n\nYour account has been unbanned! You can use the bot again.")
        try:
            report = await self.fanout.notify(notice, subject_id)
        except NotFoundError:
            return reply
        if report.failed:
            reply += "\n⚠️ The user could not be notified."
        return reply

    async def _continue_add_premium_user(self, event: InboundEvent, state: ConversationState) -> str:
        parts = collapse_spaces(event.text).split(" ")
        subject_id = parse_user_id(parts[0])
        slots = parse_int(parts[1], what="number of slots", minimum=1) if len(parts) > 1 else None
        return await self._grant_premium(event.actor_id, subject_id, slots)

    async def _continue_approve_premium(self, event: InboundEvent, state: ConversationState) -> str:
        if state.target is None:
            raise ValidationError("No target user specified. Premium not added.")
        raw = event.text.strip().lower()
        slots = None if raw in {"", "default"} else parse_int(raw, what="number of slots", minimum=1)
        return await self._grant_premium(event.actor_id, state.target, slots)

    async def _grant_premium(self, actor_id: int, subject_id: int, slots: int | None) -> str:
        snapshot = await self.ledger.grant_premium(actor_id, subject_id, slots=slots)
        subject = await self._require_subject(subject_id)
        terms = await self.config.load(PremiumSettings)
        until = subject.premium_until.date().isoformat() if subject.premium_until else "no expiry"
        reply = f"✅ User {subject_id} is now a premium user with {snapshot.base_limit} slots until {until}!"
        return reply + await self._notify_subject_quietly(subject_id, terms.render_welcome(snapshot.base_limit))

    async def _continue_remove_premium_user(self, event: InboundEvent, state: ConversationState) -> str:
        subject_id = parse_user_id(event.text)
        snapshot = await self.ledger.revoke_premium(event.actor_id, subject_id)
        reply = f"✅ Premium status removed from user {subject_id}. Base limit is back to {snapshot.base_limit}."
        return reply + await self._notify_subject_quietly(
            subject_id,
            f"ℹ️ Your premium status has ended. You now have {snapshot.total_slots} upload slots.",
        )

    async def _continue_view_user_files(self, event: InboundEvent, state: ConversationState) -> str:
        subject = await self._require_subject(parse_user_id(event.text))
        artifacts = await self._list_files(subject.subject_id)
        if not artifacts:
            return texts.ADMIN_NO_FILES.format(user_id=subject.subject_id)
        return f"📂 Files of {texts.subject_label(subject)}:\n{self._format_file_list(artifacts)}"

    async def _continue_delete_user_files(self, event: InboundEvent, state: ConversationState) -> str:
        subject = await self._require_subject(parse_user_id(event.text))
        artifacts = await self._list_files(subject.subject_id)
        if not artifacts:
            return texts.ADMIN_NO_FILES.format(user_id=subject.subject_id)
        return (
            f"⚠️ User {subject.subject_id} has {len(artifacts)} files. "
            f"Send `{self.prefix}confirm_delete_user_files {subject.subject_id}` to delete all of them."
        )

    async def _continue_premium_default_slots(self, event: InboundEvent, state: ConversationState) -> str:
        slots = parse_int(event.text, what="number of slots", minimum=1)
        result = await self.ledger.apply_premium_default_slots(event.actor_id, slots)
        if result.affected == 0 and result.failed == 0:
            return f"✅ Default premium slots updated to {slots}.\n\nNo existing premium users to update."
        return f"✅ Default premium slots updated to {slots}.\n\nUpdated {result.affected} premium users ({result.failed} failed)."

    async def _continue_premium_duration(self, event: InboundEvent, state: ConversationState) -> str:
        days = parse_int(event.text, what="number of days", minimum=1)
        await self.config.set_premium_duration(event.actor_id, days)
        return f"✅ Premium subscription duration updated to {days} days. This applies to new premium grants."

    async def _continue_premium_welcome_msg(self, event: InboundEvent, state: ConversationState) -> str:
        text = _require_text(event.text, MIN_WELCOME_CHARS, "welcome message")
        await self.config.set_premium_welcome(event.actor_id, text)
        return "✅ Premium welcome message updated."

    async def _continue_update_welcome_msg(self, event: InboundEvent, state: ConversationState) -> str:
        text = _require_text(event.text, MIN_WELCOME_CHARS, "welcome message")
        await self.config.set_welcome_message(event.actor_id, text)
        return "✅ Welcome message updated. New users will see it when they start the bot."

    async def _continue_edit_default_slots(self, event: InboundEvent, state: ConversationState) -> str:
        value = parse_int(event.text, what="number", minimum=1)
        result = await self.ledger.bulk_set_base_limit(event.actor_id, value)
        report = await self.fanout.notify(
            OutboundPayload(f"🔔 **Storage Update**\n\nThe default storage slot limit is now {value} slots!"),
            ALL,
        )
        return (
            f"✅ Default slot limit updated to {value} for {result.affected} users ({result.failed} failed).\n"
            f"📣 {report.sent} users notified."
        )

    async def _continue_edit_referral_reward(self, event: InboundEvent, state: ConversationState) -> str:
        reward = parse_int(event.text, what="number", minimum=1)
        result = await self.ledger.bulk_set_referral_reward(event.actor_id, reward)
        report = await self.fanout.notify(
            OutboundPayload(f"🔔 **Referral Program Update**\n\nEach referral now rewards {reward} slots!"),
            ALL,
        )
        return (
            f"✅ Referral reward updated to {reward} slots per referral for {result.affected} users "
            f"({result.failed} failed).\n📣 {report.sent} users notified."
        )

    async def _continue_set_referral_reward(self, event: InboundEvent, state: ConversationState) -> str:
        subject_id, reward = parse_pair(event.text, usage="UserID SlotsPerReferral")
        snapshot = await self.ledger.grant_referral_reward(event.actor_id, subject_id, reward)
        return (
            f"✅ User {subject_id} now earns {snapshot.referral_reward} slots per referral.\n"
            f"Total slots: {snapshot.total_slots} (used {snapshot.consumed_count})"
        )

    async def _continue_message_user(self, event: InboundEvent, state: ConversationState) -> str:
        if state.target is None:
            raise ValidationError("No target user specified. Message not sent.")
        text = _require_text(event.text, 1, "message")
        await self.fanout.send_direct(state.target, OutboundPayload(f"📨 **Message from admin**\n\n{text}"))
        return f"✅ Message sent successfully to user {state.target}."

    async def _continue_report_bug(self, event: InboundEvent, state: ConversationState) -> str:
        text = _require_text(event.text, 1, "bug description")
        report = OutboundPayload(
            "🐛 **Bug Report Received**\n\n"
            f"From: {event.display_name} (ID: {event.actor_id})\n\n"
            f"{text}\n\nSubmitted: {to_iso(utc_now())}"
        )
        delivered = await self.fanout.notify_admins(self.gate.admin_ids, report)
        logger.info("Bug report from %s sent to %s admins", event.actor_id, delivered.sent)
        return texts.BUG_REPORT_SENT
