"""Unit-Tests fuer den Message-Store (aiosqlite)."""
import asyncio
import os

import pytest

from relaychat.errors import NotFoundError, ValidationError
from relaychat.services.message_store import (
    create_message,
    delete_message,
    find_conversation,
    get_message,
    get_reactions,
    init_message_db,
    list_participants,
    mark_seen_bulk,
    set_status_if_forward,
    toggle_reaction,
    update_content,
)


@pytest.mark.asyncio
async def test_init_message_db(message_db_path):
    await init_message_db()
    assert os.path.exists(message_db_path)


@pytest.mark.asyncio
async def test_create_and_find_conversation(message_db):
    msg = await create_message("alice", "bob", "Hallo Bob!")
    assert msg["id"]
    assert msg["timestamp"]
    assert msg["status"] == "sent"
    assert msg["kind"] == "text"
    assert msg["reactions"] == []

    messages = await find_conversation("alice", "bob")
    assert len(messages) == 1
    assert messages[0]["content"] == "Hallo Bob!"
    assert messages[0]["status"] == "sent"


@pytest.mark.asyncio
async def test_conversation_contains_both_directions_in_order(message_db):
    await create_message("alice", "bob", "eins", timestamp="2024-01-01T10:00:00+00:00")
    await create_message("bob", "alice", "zwei", timestamp="2024-01-01T10:01:00+00:00")
    await create_message("alice", "carol", "fremd")
    await create_message("alice", "bob", "drei", timestamp="2024-01-01T10:02:00+00:00")

    messages = await find_conversation("bob", "alice")
    assert [m["content"] for m in messages] == ["eins", "zwei", "drei"]


@pytest.mark.asyncio
async def test_same_timestamp_keeps_insertion_order(message_db):
    ts = "2024-01-01T10:00:00+00:00"
    for i in range(3):
        await create_message("alice", "bob", f"Msg {i}", timestamp=ts)

    messages = await find_conversation("alice", "bob")
    assert [m["content"] for m in messages] == ["Msg 0", "Msg 1", "Msg 2"]


@pytest.mark.asyncio
async def test_empty_conversation(message_db):
    assert await find_conversation("nobody", "else") == []


@pytest.mark.asyncio
async def test_conversation_without_database_file(message_db_path):
    assert await find_conversation("alice", "bob") == []


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "sender,receiver,content",
    [("", "bob", "hi"), ("alice", "", "hi"), ("alice", "bob", ""), ("alice", "bob", "   ")],
)
async def test_create_requires_fields(message_db, sender, receiver, content):
    with pytest.raises(ValidationError):
        await create_message(sender, receiver, content)


@pytest.mark.asyncio
async def test_file_message_kind_from_upload(message_db):
    msg = await create_message(
        "alice", "bob", "", file_url="/uploads/ab/abc.png", file_type="image/png"
    )
    assert msg["kind"] == "image"
    assert msg["content"] == "/uploads/ab/abc.png"
    assert msg["file_type"] == "image/png"

    doc = await create_message(
        "alice", "bob", "Vertrag", file_url="/uploads/cd/cde.pdf", file_type="application/pdf"
    )
    assert doc["kind"] == "file"
    assert doc["content"] == "Vertrag"


@pytest.mark.asyncio
async def test_legacy_url_content_is_classified_once(message_db):
    msg = await create_message("alice", "bob", "/uploads/ab/foto.jpg")
    assert msg["kind"] == "image"
    assert msg["file_url"] == "/uploads/ab/foto.jpg"

    text = await create_message("alice", "bob", "schau mal /uploads/ab/foto.jpg")
    assert text["kind"] == "text"

    stored = await get_message(msg["id"])
    assert stored["kind"] == "image"


@pytest.mark.asyncio
async def test_update_content(message_db):
    msg = await create_message("alice", "bob", "Original")
    await toggle_reaction(msg["id"], "bob", "👍")
    await set_status_if_forward(msg["id"], "delivered")

    updated = await update_content(msg["id"], "Bearbeitet")
    assert updated["content"] == "Bearbeitet"
    assert updated["edited_at"] is not None
    assert updated["status"] == "delivered"
    assert updated["reactions"] == [{"user": "bob", "reaction": "👍"}]


@pytest.mark.asyncio
async def test_update_nonexistent_message(message_db):
    with pytest.raises(NotFoundError):
        await update_content("fake-id", "Nichts")


@pytest.mark.asyncio
async def test_delete_message(message_db):
    msg = await create_message("alice", "bob", "Weg damit")
    await toggle_reaction(msg["id"], "bob", "❤️")

    assert await delete_message(msg["id"]) is True
    assert await find_conversation("alice", "bob") == []
    assert await get_reactions(msg["id"]) == []


@pytest.mark.asyncio
async def test_delete_nonexistent_message_is_noop(message_db):
    kept = await create_message("alice", "bob", "bleibt")

    assert await delete_message("fake-id") is False
    messages = await find_conversation("alice", "bob")
    assert [m["id"] for m in messages] == [kept["id"]]


@pytest.mark.asyncio
async def test_toggle_reaction_twice_restores_set(message_db):
    msg = await create_message("alice", "bob", "Reagier!")
    await toggle_reaction(msg["id"], "alice", "🔥")
    before = await get_reactions(msg["id"])

    added = await toggle_reaction(msg["id"], "bob", "👍")
    assert {"user": "bob", "reaction": "👍"} in added
    removed = await toggle_reaction(msg["id"], "bob", "👍")
    assert removed == before


@pytest.mark.asyncio
async def test_reactions_are_per_user_and_symbol(message_db):
    msg = await create_message("alice", "bob", "Viele Reactions")
    await toggle_reaction(msg["id"], "bob", "👍")
    await toggle_reaction(msg["id"], "alice", "👍")
    reactions = await toggle_reaction(msg["id"], "bob", "❤️")
    assert len(reactions) == 3


@pytest.mark.asyncio
async def test_concurrent_toggles_keep_both_symbols(message_db):
    msg = await create_message("alice", "bob", "Gleichzeitig")

    await asyncio.gather(
        toggle_reaction(msg["id"], "bob", "👍"),
        toggle_reaction(msg["id"], "alice", "❤️"),
        toggle_reaction(msg["id"], "bob", "😂"),
    )

    reactions = await get_reactions(msg["id"])
    assert sorted((r["user"], r["reaction"]) for r in reactions) == sorted(
        [("bob", "👍"), ("alice", "❤️"), ("bob", "😂")]
    )


@pytest.mark.asyncio
async def test_toggle_reaction_unknown_message(message_db):
    with pytest.raises(NotFoundError):
        await toggle_reaction("fake-id", "bob", "👍")


@pytest.mark.asyncio
async def test_status_moves_forward_only(message_db):
    msg = await create_message("alice", "bob", "Status")

    assert (await set_status_if_forward(msg["id"], "delivered"))["status"] == "delivered"
    assert (await set_status_if_forward(msg["id"], "read"))["status"] == "read"
    assert (await set_status_if_forward(msg["id"], "sent"))["status"] == "read"
    assert (await set_status_if_forward(msg["id"], "delivered"))["status"] == "read"


@pytest.mark.asyncio
async def test_status_can_skip_delivered(message_db):
    msg = await create_message("alice", "bob", "Direkt gelesen")
    assert (await set_status_if_forward(msg["id"], "read"))["status"] == "read"


@pytest.mark.asyncio
async def test_status_errors(message_db):
    msg = await create_message("alice", "bob", "Status")
    with pytest.raises(ValidationError):
        await set_status_if_forward(msg["id"], "archived")
    with pytest.raises(NotFoundError):
        await set_status_if_forward("fake-id", "read")


@pytest.mark.asyncio
async def test_mark_seen_bulk(message_db):
    first = await create_message("alice", "bob", "eins")
    await create_message("alice", "bob", "zwei")
    reply = await create_message("bob", "alice", "antwort")
    await set_status_if_forward(first["id"], "delivered")

    seen = await mark_seen_bulk("alice", "bob")
    assert [m["content"] for m in seen] == ["eins", "zwei"]
    assert all(m["status"] == "read" for m in seen)

    # Andere Richtung bleibt unberuehrt
    assert (await get_message(reply["id"]))["status"] == "sent"


@pytest.mark.asyncio
async def test_mark_seen_bulk_is_idempotent(message_db):
    await create_message("alice", "bob", "eins")
    first = await mark_seen_bulk("alice", "bob")
    second = await mark_seen_bulk("alice", "bob")
    assert first == second


@pytest.mark.asyncio
async def test_list_participants(message_db):
    await create_message("alice", "bob", "hi")
    await create_message("carol", "alice", "hey")
    assert await list_participants() == ["alice", "bob", "carol"]
