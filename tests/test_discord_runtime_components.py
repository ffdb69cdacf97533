from __future__ import annotations

import asyncio
import os
import sys
from pathlib import Path
from types import SimpleNamespace

import pytest


PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

discord = pytest.importorskip("discord")

from filehost_bot.app import _acquire_instance_lock, _release_instance_lock, build_bot  # noqa: E402
from filehost_bot.config import Settings  # noqa: E402
from filehost_bot.core.errors import CollaboratorError  # noqa: E402
from filehost_bot.discord.mixins.message_mixin import MessageMixin  # noqa: E402
from filehost_bot.discord.mixins.workers_mixin import WorkersMixin  # noqa: E402
from filehost_bot.discord.sink import DiscordMessagingSink  # noqa: E402
from filehost_bot.flows.common import EventKind  # noqa: E402
from filehost_bot.services.messaging import OutboundPayload, SendOutcome  # noqa: E402


class _FakeDispatcher:
    def __init__(self, replies: list[str]) -> None:
        self.replies = replies
        self.events = []

    async def handle(self, event):
        self.events.append(event)
        return list(self.replies)


class _FakeChannel:
    def __init__(self) -> None:
        self.sent: list[tuple[str, dict]] = []

    async def send(self, content: str, **kwargs) -> None:
        self.sent.append((content, kwargs))


class _FakeBot(MessageMixin):
    def __init__(self, replies: list[str] | None = None) -> None:
        self.settings = SimpleNamespace(command_prefix="!")
        self.dispatcher = _FakeDispatcher(replies or [])


def _message(content: str, *, guild: object | None = None, attachments: list | None = None, bot: bool = False):
    author = SimpleNamespace(id=42, bot=bot, global_name=None, display_name="Neo", name="neo")
    return SimpleNamespace(
        author=author,
        content=content,
        guild=guild,
        attachments=attachments or [],
        channel=_FakeChannel(),
    )


def _attachment(filename: str = "site.html"):
    async def _read() -> bytes:
        return b"<html></html>"

    return SimpleNamespace(
        filename=filename,
        size=13,
        content_type="text/html",
        url=f"https://cdn.example/{filename}",
        read=_read,
    )


def test_build_event_maps_commands_anywhere_and_text_only_in_dms() -> None:
    bot = _FakeBot()

    command = bot._build_event(_message("!Start 7", guild=SimpleNamespace(id=1)))
    guild_chatter = bot._build_event(_message("hello there", guild=SimpleNamespace(id=1)))
    dm_text = bot._build_event(_message("  10 5  "))
    dm_blank = bot._build_event(_message("   "))

    assert command.kind is EventKind.ACTION
    assert (command.action, command.args) == ("start", ["7"])
    assert command.display_name == "Neo"
    assert command.reply_address == 42
    assert guild_chatter is None
    assert dm_text.kind is EventKind.TEXT
    assert dm_text.text == "10 5"
    assert dm_blank is None


def test_build_event_wraps_dm_attachments_as_files() -> None:
    bot = _FakeBot()

    event = bot._build_event(_message("caption", attachments=[_attachment()]))
    payload = asyncio.run(event.files[0].read())

    assert event.kind is EventKind.FILE
    assert event.text == "caption"
    assert event.files[0].filename == "site.html"
    assert event.files[0].url == "https://cdn.example/site.html"
    assert payload == b"<html></html>"


def test_on_message_replies_in_chunks_and_ignores_bots() -> None:
    bot = _FakeBot(["first", "x" * 4000])
    message = _message("!help")
    from_bot = _message("!help", bot=True)

    asyncio.run(bot.on_message(message))
    asyncio.run(bot.on_message(from_bot))

    sent = message.channel.sent
    assert [len(content) for content, _ in sent] == [5, 1900, 1900, 200]
    assert sent[0][1] == {"reference": message}
    assert all(kwargs == {} for _, kwargs in sent[1:])
    assert len(bot.dispatcher.events) == 1
    assert from_bot.channel.sent == []


class _FakeUser:
    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.sent: list[str] = []

    async def send(self, content: str) -> None:
        if self.error is not None:
            raise self.error
        self.sent.append(content)


class _FakeClient:
    def __init__(self, user: _FakeUser, *, cached: bool = True) -> None:
        self.user = user
        self.cached = cached
        self.fetched: list[int] = []

    def get_user(self, user_id: int):
        return self.user if self.cached else None

    async def fetch_user(self, user_id: int):
        self.fetched.append(user_id)
        return self.user


def test_sink_classifies_forbidden_as_unreachable_and_http_errors_as_reported() -> None:
    forbidden = discord.Forbidden(SimpleNamespace(status=403, reason="Forbidden"), "Cannot send messages to this user")
    server_error = discord.HTTPException(SimpleNamespace(status=500, reason="Server Error"), "boom")
    payload = OutboundPayload("hi")

    blocked = asyncio.run(DiscordMessagingSink(_FakeClient(_FakeUser(forbidden))).send(5, payload))
    failing = asyncio.run(DiscordMessagingSink(_FakeClient(_FakeUser(server_error))).send(5, payload))

    assert blocked.outcome is SendOutcome.UNREACHABLE
    assert failing.outcome is SendOutcome.ERROR
    assert "500" in failing.cause


def test_sink_fetches_uncached_users_and_appends_attachment_links() -> None:
    user = _FakeUser()
    client = _FakeClient(user, cached=False)
    payload = OutboundPayload("news", attachment_urls=("https://cdn.example/a.png",))

    result = asyncio.run(DiscordMessagingSink(client).send(5, payload))

    assert result.delivered
    assert client.fetched == [5]
    assert user.sent == ["news\nhttps://cdn.example/a.png"]


class _FakeWorkers(WorkersMixin):
    def __init__(self) -> None:
        self.notified: list[int] = []
        self.ledger = SimpleNamespace(expire_premiums=self._expire)
        self.fanout = SimpleNamespace(send_direct=self._send_direct)

    async def _expire(self) -> list[int]:
        return [10, 11]

    async def _send_direct(self, subject_id: int, payload: OutboundPayload) -> None:
        if subject_id == 11:
            raise CollaboratorError("dm closed")
        self.notified.append(subject_id)


def test_premium_sweep_notifies_what_it_can() -> None:
    workers = _FakeWorkers()

    expired = asyncio.run(workers._sweep_expired_premiums())

    assert expired == [10, 11]
    assert workers.notified == [10]


def test_instance_lock_refuses_a_live_owner_and_replaces_a_stale_one(tmp_path: Path) -> None:
    lock_path = tmp_path / "filehost_bot.pid"
    lock_path.write_text(str(os.getpid()), encoding="utf-8")

    with pytest.raises(RuntimeError, match="already running"):
        _acquire_instance_lock(lock_path)

    lock_path.write_text("0", encoding="utf-8")
    _acquire_instance_lock(lock_path)
    assert lock_path.read_text(encoding="utf-8") == str(os.getpid())

    _release_instance_lock(lock_path)
    assert not lock_path.exists()


def test_build_bot_wires_one_fanout_engine_through_sink_and_dispatcher(tmp_path: Path) -> None:
    settings = Settings(
        discord_token="token",
        command_prefix="?",
        admin_ids={1},
        sqlite_path=tmp_path / "registry.db",
        artifact_root=tmp_path / "artifacts",
        artifact_base_url="https://files.example",
        max_upload_bytes=4096,
        default_base_limit=2,
        default_referral_reward=1,
        premium_default_slots=20,
        premium_duration_days=30,
        premium_expiry_sweep_seconds=600,
        broadcast_send_delay_seconds=0.0,
        broadcast_concurrency=3,
        broadcast_max_retries=2,
        collaborator_timeout_seconds=5.0,
    )

    bot = build_bot(settings)

    assert bot.dispatcher.fanout is bot.fanout
    assert bot.fanout.sink is bot.sink
    assert bot.sink.client is bot
    assert (bot.fanout.concurrency, bot.fanout.max_retries) == (3, 2)
    assert bot.dispatcher.prefix == "?"
