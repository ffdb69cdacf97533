from __future__ import annotations

from .registry import QuotaSnapshot, Subject


NOT_AUTHORIZED = "❌ You are not authorized to perform this action."
BANNED = "❌ You are banned from using this bot."
GENERIC_FAILURE = "❌ Something went wrong. Please try again later."
START_FIRST = "Send `{prefix}start` first to create your account."
CANCELLED = "✅ Cancelled."
NOTHING_TO_CANCEL = "Nothing to cancel."
UPLOAD_PROMPT = "📤 Send me an HTML or ZIP file as an attachment to host it."
UPLOAD_TOO_LARGE = "❌ File is too large. Maximum size is {limit} bytes."
NO_FILES = "📂 You have no uploaded files."
ADMIN_NO_FILES = "📂 User {user_id} has no uploaded files."
FILE_NOT_FOUND = "File `{name}` not found."
FILE_DELETED = "🗑️ `{name}` deleted. Slots used: {used}/{total}"
ALREADY_PREMIUM = "✨ You are already a Premium user! Enjoy your premium benefits."
PREMIUM_REQUESTED = (
    "🌟 Your premium request has been sent to the administrators. "
    "An admin will review it and contact you soon."
)
PREMIUM_DENIED_USER = "Your premium request was reviewed and was not approved this time."
NOTIFICATIONS_ON = "🔔 Notifications enabled."
NOTIFICATIONS_OFF = "🔕 Notifications disabled. You will not receive broadcasts."
REPORT_BUG_PROMPT = "🐛 Describe the problem you ran into in one message."
BUG_REPORT_SENT = "✅ Bug report submitted. Thank you for helping us improve!"
DELETE_DATA_CONFIRM = (
    "⚠️ This deletes ALL your uploaded files and account information and cannot be undone.\n"
    "Send `{prefix}confirm_delete_my_data` to proceed or `{prefix}cancel` to keep everything."
)
DATA_DELETED = "✅ Your files and account data were deleted. Send `{prefix}start` to come back any time."
NO_PENDING_TEXT = "I did not expect a message right now. Send `{prefix}help` to see what I can do."

ADMIN_PROMPTS = {
    "add_slots": "Send: `UserID NumberOfSlots`\nExample: `123456789 5`",
    "send_notification": "📣 Send the notification message for all users.",
    "broadcast": "📢 Send the message to broadcast. Attachments are shared as links.",
    "ban_user": "Send the user ID to ban:",
    "unban_user": "Send the user ID to unban:",
    "add_premium_user": "Send: `UserID [slots]` to make a user premium:",
    "approve_premium": "Send the number of slots for user {target}, or `default`:",
    "remove_premium_user": "Send the user ID to remove premium status:",
    "view_user_files": "Send the user ID whose files you want to see:",
    "delete_user_files": "Send the user ID whose files you want to delete:",
    "premium_default_slots": "Send the default number of slots for premium users:",
    "premium_duration": "Send the default premium duration in days:",
    "premium_welcome_msg": "Send the welcome message for new premium users. `{slots}` is replaced by the slot count:",
    "update_welcome_msg": "Send the new welcome message. `{name}` and `{userId}` are replaced:",
    "edit_default_slots": "Send the new base slot limit for all users:",
    "edit_referral_reward": "Send the new number of slots rewarded per referral for all users:",
    "set_referral_reward": "Send: `UserID SlotsPerReferral`",
    "message_user": "Send the message for user {target}:",
}

USER_HELP = """\
🚀 **File Hosting Bot**
`{prefix}upload` how to upload a file
`{prefix}myfiles` list your files
`{prefix}delete` pick a file to delete, `{prefix}del <name>` delete it
`{prefix}mystats` your storage usage
`{prefix}refer` your referral code
`{prefix}get_premium` request premium
`{prefix}notifications_on` / `{prefix}notifications_off`
`{prefix}report_bug` report a problem
`{prefix}request_my_data` / `{prefix}delete_my_data`
`{prefix}cancel` abort the current step"""

ADMIN_HELP = """\
🛠️ **Admin Panel**
Stats: `{prefix}total_users` `{prefix}daily_stats` `{prefix}referral_stats` `{prefix}view_files`
Messaging: `{prefix}broadcast` `{prefix}send_notification` `{prefix}message_user <id>` `{prefix}toggle_notifications`
Quota: `{prefix}add_slots` `{prefix}edit_default_slots` `{prefix}edit_referral_reward` `{prefix}set_referral_reward`
Bans: `{prefix}ban_user` `{prefix}unban_user` `{prefix}view_banned` `{prefix}clear_bans`
Premium: `{prefix}premium_list` `{prefix}add_premium_user` `{prefix}remove_premium_user` \
`{prefix}approve_premium <id>` `{prefix}deny_premium <id>` `{prefix}premium_default_slots` \
`{prefix}premium_duration` `{prefix}premium_welcome_msg`
Files: `{prefix}view_user_files` `{prefix}delete_user_files` `{prefix}enable_type <ext>` `{prefix}disable_type <ext>`
Welcome: `{prefix}update_welcome_msg`"""


def default_welcome(name: str) -> str:
    return (
        f"🚀 Welcome to the HTML Hosting Bot, {name}!\n\n"
        "• Upload HTML/ZIP files\n"
        "• Get instant file links\n"
        "• Manage your uploads\n"
        "• Earn more slots through referrals"
    )


def usage_bar(snapshot: QuotaSnapshot, width: int = 20) -> str:
    total = max(0, snapshot.total_slots)
    used = min(snapshot.consumed_count, total)
    if total > width:
        filled = round(width * used / total) if total else 0
        return "▰" * filled + "▱" * (width - filled)
    return "▰" * used + "▱" * (total - used)


def quota_line(snapshot: QuotaSnapshot) -> str:
    return f"[{snapshot.consumed_count}/{snapshot.total_slots}] {usage_bar(snapshot)}"


def quota_exceeded(snapshot: QuotaSnapshot, prefix: str) -> str:
    return (
        f"❌ You've reached your file upload limit ({snapshot.consumed_count}/{snapshot.total_slots}).\n\n"
        f"Share your referral code to get more slots: `{prefix}refer`"
    )


def upload_success(url: str, snapshot: QuotaSnapshot, *, replaced: bool) -> str:
    head = "♻️ File replaced!" if replaced else "🎉 Success! File uploaded!"
    return f"{head}\n\n📂 File link:\n{url}\n\n📊 Storage usage:\n{quota_line(snapshot)}"


def stats_summary(subject: Subject) -> str:
    quota = subject.quota
    lines = [
        "📊 **Your Stats**",
        f"📁 Files: {quota.consumed_count}",
        f"👥 Referrals: {quota.referral_count} (+{quota.referral_reward} slot(s) each)",
        f"📦 Slots: {quota.consumed_count}/{quota.total_slots} ({quota.remaining} left)",
        quota_line(quota),
    ]
    if subject.premium:
        until = subject.premium_until.date().isoformat() if subject.premium_until else "no expiry"
        lines.append(f"👑 Premium until {until}")
    return "\n".join(lines)


def referral_info(subject: Subject, prefix: str) -> str:
    quota = subject.quota
    return (
        "🎁 **Invite friends and earn storage!**\n"
        f"Ask them to send `{prefix}start {subject.subject_id}` as their first message.\n"
        f"Each referral gives you +{quota.referral_reward} slot(s).\n\n"
        f"👥 Referrals so far: {quota.referral_count}\n"
        f"📦 Total slots: {quota.total_slots}"
    )


def referral_welcome(prefix: str, subject_id: int) -> str:
    return (
        "🎉 Welcome! You were referred by another user!\n"
        "💫 Share your own code to earn more slots: "
        f"`{prefix}start {subject_id}`"
    )


def referrer_notice(new_user_name: str, snapshot: QuotaSnapshot) -> str:
    return (
        "🌟 **New Referral Success!**\n\n"
        f"👤 User: {new_user_name}\n"
        f"📊 Your new total slots: {snapshot.total_slots}\n"
        f"💰 Reward: +{snapshot.referral_reward} storage slot(s)"
    )


def subject_label(subject: Subject) -> str:
    flags = []
    if subject.premium:
        flags.append("👑")
    if subject.banned:
        flags.append("⛔")
    if subject.deleted:
        flags.append("🗑️")
    marker = f" {' '.join(flags)}" if flags else ""
    return f"{subject.display_name} ({subject.subject_id}){marker}"
