from __future__ import annotations

import asyncio
import sys
from pathlib import Path

import pytest


PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from filehost_bot.core.errors import ValidationError  # noqa: E402
from filehost_bot.flows.common import chunk_text, parse_command, parse_int, parse_pair, parse_user_id  # noqa: E402
from filehost_bot.services.artifact_store import (  # noqa: E402
    LocalArtifactStore,
    guess_content_type,
    sanitize_filename,
)


def test_sanitize_filename_strips_directories_and_odd_characters() -> None:
    assert sanitize_filename("../../etc/passwd") == "passwd"
    assert sanitize_filename("C:\\Users\\me\\My Site.html") == "My_Site.html"
    assert sanitize_filename("...") == ""


def test_html_is_served_as_utf8() -> None:
    assert guess_content_type("index.HTML") == "text/html; charset=utf-8"
    assert guess_content_type("bundle.zip") == "application/zip"


def test_local_store_put_list_delete(tmp_path: Path) -> None:
    async def scenario():
        store = LocalArtifactStore(tmp_path / "artifacts", "https://files.example/")
        url = await store.put("7/index.html", b"<html></html>", "text/html")
        await store.put("7/b.zip", b"PK", "application/zip")
        listed = await store.list("7/")
        exists = await store.exists("7/index.html")
        removed = await store.delete("7/index.html")
        removed_again = await store.delete("7/index.html")
        return url, listed, exists, removed, removed_again, await store.list("8/")

    url, listed, exists, removed, removed_again, empty = asyncio.run(scenario())

    assert url == "https://files.example/7/index.html"
    assert [(item.name, item.size) for item in listed] == [("b.zip", 2), ("index.html", 13)]
    assert exists is True
    assert (removed, removed_again) == (True, False)
    assert empty == []


def test_local_store_refuses_paths_outside_its_root(tmp_path: Path) -> None:
    store = LocalArtifactStore(tmp_path / "artifacts", "https://files.example")

    with pytest.raises(ValueError):
        asyncio.run(store.put("7/../../escape.html", b"x", "text/html"))

    assert not (tmp_path / "escape.html").exists()


def test_parse_command_requires_the_prefix() -> None:
    assert parse_command("!del my file.html", "!") == ("del", ["my", "file.html"])
    assert parse_command("del a.html", "!") is None
    assert parse_command("!   ", "!") is None


def test_admin_input_parsers_raise_validation_errors() -> None:
    assert parse_pair(" 12   5 ", usage="UserID NumberOfSlots") == (12, 5)
    assert parse_user_id("99 trailing words") == 99
    assert parse_int("-3", what="number") == -3

    with pytest.raises(ValidationError, match="Invalid format"):
        parse_pair("12", usage="UserID NumberOfSlots")
    with pytest.raises(ValidationError, match="user ID"):
        parse_user_id("abc")
    with pytest.raises(ValidationError, match="at least 1"):
        parse_int("0", what="number of days", minimum=1)


def test_chunk_text_keeps_lines_together_when_possible() -> None:
    text = "\n".join(["a" * 10] * 5)

    chunks = chunk_text(text, limit=25)

    assert "".join(chunks) == text
    assert all(len(chunk) <= 25 for chunk in chunks)
    assert chunks[0] == "a" * 10 + "\n" + "a" * 10 + "\n"


def test_ids_beyond_the_sqlite_integer_range_are_rejected() -> None:
    assert parse_user_id(str(2**63 - 1)) == 2**63 - 1

    with pytest.raises(ValidationError, match="too large"):
        parse_user_id("99999999999999999999")
    with pytest.raises(ValidationError, match="too large"):
        parse_pair("5 99999999999999999999", usage="UserID NumberOfSlots")
