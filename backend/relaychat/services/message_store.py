"""Durable message store (SQLite via aiosqlite).

Messages are plain dicts::

    {"id", "sender", "receiver", "content", "kind", "file_url", "file_type",
     "timestamp", "status", "edited_at", "reactions": [{"user", "reaction"}]}

Mutations of one message are serialized through a per-message lock; status
changes are also guarded in SQL so that they can only move forward.
"""
import functools
import logging
import os
import uuid
from datetime import datetime, timezone

import aiosqlite

from relaychat.config import settings
from relaychat.errors import NotFoundError, StoreError, ValidationError
from relaychat.services.content import classify
from relaychat.services.locks import KeyedLock

logger = logging.getLogger(__name__)

STATUS_SENT = "sent"
STATUS_DELIVERED = "delivered"
STATUS_READ = "read"
STATUSES = (STATUS_SENT, STATUS_DELIVERED, STATUS_READ)

MESSAGE_SCHEMA = """
CREATE TABLE IF NOT EXISTS messages (
    id TEXT PRIMARY KEY,
    sender TEXT NOT NULL,
    receiver TEXT NOT NULL,
    content TEXT NOT NULL,
    kind TEXT NOT NULL DEFAULT 'text',
    file_url TEXT,
    file_type TEXT,
    timestamp TEXT NOT NULL,
    status TEXT NOT NULL DEFAULT 'sent',
    edited_at TEXT
);

CREATE TABLE IF NOT EXISTS reactions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    message_id TEXT NOT NULL,
    username TEXT NOT NULL,
    reaction TEXT NOT NULL,
    UNIQUE(message_id, username, reaction)
);

CREATE INDEX IF NOT EXISTS idx_messages_pair ON messages(sender, receiver);
CREATE INDEX IF NOT EXISTS idx_messages_timestamp ON messages(timestamp);
CREATE INDEX IF NOT EXISTS idx_reactions_message ON reactions(message_id);
"""

_message_locks = KeyedLock()


def _db_path() -> str:
    return settings.message_db_path


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _guarded(func):
    """Surface storage failures as StoreError."""

    @functools.wraps(func)
    async def wrapper(*args, **kwargs):
        try:
            return await func(*args, **kwargs)
        except (aiosqlite.Error, OSError) as exc:
            logger.exception("Message store operation %s failed", func.__name__)
            raise StoreError(f"{func.__name__} failed") from exc

    return wrapper


def _require(**fields: str | None) -> None:
    missing = [name for name, value in fields.items() if not value or not value.strip()]
    if missing:
        raise ValidationError(f"Missing required field(s): {', '.join(missing)}")


async def init_message_db() -> None:
    path = _db_path()
    os.makedirs(os.path.dirname(os.path.abspath(path)), exist_ok=True)
    async with aiosqlite.connect(path) as db:
        await db.execute("PRAGMA journal_mode=WAL")
        await db.executescript(MESSAGE_SCHEMA)
        await db.commit()


async def _reactions_by_message(db, where: str, params: tuple) -> dict[str, list[dict]]:
    cursor = await db.execute(
        f"""SELECT r.message_id, r.username, r.reaction
            FROM reactions r JOIN messages m ON m.id = r.message_id
            WHERE {where} ORDER BY r.id""",
        params,
    )
    grouped: dict[str, list[dict]] = {}
    for message_id, user, reaction in await cursor.fetchall():
        grouped.setdefault(message_id, []).append({"user": user, "reaction": reaction})
    return grouped


async def _load(db, where: str, params: tuple) -> list[dict]:
    db.row_factory = aiosqlite.Row
    cursor = await db.execute(
        f"SELECT m.* FROM messages m WHERE {where} ORDER BY m.timestamp, m.rowid",
        params,
    )
    rows = await cursor.fetchall()
    if not rows:
        return []
    reactions = await _reactions_by_message(db, where, params)
    return [dict(row) | {"reactions": reactions.get(row["id"], [])} for row in rows]


async def _load_one(db, message_id: str) -> dict:
    messages = await _load(db, "m.id = ?", (message_id,))
    if not messages:
        raise NotFoundError(f"Message {message_id} not found")
    return messages[0]


@_guarded
async def create_message(
    sender: str,
    receiver: str,
    content: str | None,
    file_url: str | None = None,
    file_type: str | None = None,
    timestamp: str | datetime | None = None,
) -> dict:
    if not (content and content.strip()) and file_url:
        content = file_url
    _require(sender=sender, receiver=receiver, content=content)

    kind, file_url, file_type = classify(content, file_url, file_type)
    if isinstance(timestamp, datetime):
        timestamp = timestamp.isoformat()
    message = {
        "id": str(uuid.uuid4()),
        "sender": sender,
        "receiver": receiver,
        "content": content,
        "kind": kind,
        "file_url": file_url,
        "file_type": file_type,
        "timestamp": timestamp or _now(),
        "status": STATUS_SENT,
        "edited_at": None,
    }

    async with aiosqlite.connect(_db_path()) as db:
        await db.execute(
            """INSERT INTO messages
               (id, sender, receiver, content, kind, file_url, file_type, timestamp, status)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                message["id"], sender, receiver, content, kind,
                file_url, file_type, message["timestamp"], STATUS_SENT,
            ),
        )
        await db.commit()

    return message | {"reactions": []}


@_guarded
async def get_message(message_id: str) -> dict | None:
    if not os.path.exists(_db_path()):
        return None
    async with aiosqlite.connect(_db_path()) as db:
        messages = await _load(db, "m.id = ?", (message_id,))
        return messages[0] if messages else None


@_guarded
async def find_conversation(user_a: str, user_b: str) -> list[dict]:
    """All messages between two users in either direction, oldest first."""
    if not os.path.exists(_db_path()):
        return []
    async with aiosqlite.connect(_db_path()) as db:
        return await _load(
            db,
            "(m.sender = ? AND m.receiver = ?) OR (m.sender = ? AND m.receiver = ?)",
            (user_a, user_b, user_b, user_a),
        )


@_guarded
async def update_content(message_id: str, content: str) -> dict:
    _require(content=content)
    async with _message_locks.hold(message_id):
        async with aiosqlite.connect(_db_path()) as db:
            cursor = await db.execute(
                "UPDATE messages SET content = ?, edited_at = ? WHERE id = ?",
                (content, _now(), message_id),
            )
            await db.commit()
            if cursor.rowcount == 0:
                raise NotFoundError(f"Message {message_id} not found")
            return await _load_one(db, message_id)


@_guarded
async def delete_message(message_id: str) -> bool:
    """Hard delete. Deleting an unknown id is a no-op and returns False."""
    async with _message_locks.hold(message_id):
        async with aiosqlite.connect(_db_path()) as db:
            await db.execute("DELETE FROM reactions WHERE message_id = ?", (message_id,))
            cursor = await db.execute("DELETE FROM messages WHERE id = ?", (message_id,))
            await db.commit()
            return cursor.rowcount > 0


@_guarded
async def set_status_if_forward(message_id: str, status: str) -> dict:
    """Advance the status if ``status`` is later than the current one."""
    if status not in STATUSES:
        raise ValidationError(f"Unknown status '{status}'")
    earlier = STATUSES[: STATUSES.index(status)]

    async with _message_locks.hold(message_id):
        async with aiosqlite.connect(_db_path()) as db:
            if earlier:
                placeholders = ", ".join("?" for _ in earlier)
                await db.execute(
                    f"UPDATE messages SET status = ? WHERE id = ? AND status IN ({placeholders})",
                    (status, message_id, *earlier),
                )
                await db.commit()
            return await _load_one(db, message_id)


@_guarded
async def toggle_reaction(message_id: str, user: str, reaction: str) -> list[dict]:
    """Remove the (user, reaction) pair if present, add it otherwise."""
    _require(user=user, reaction=reaction)
    async with _message_locks.hold(message_id):
        async with aiosqlite.connect(_db_path()) as db:
            cursor = await db.execute("SELECT 1 FROM messages WHERE id = ?", (message_id,))
            if await cursor.fetchone() is None:
                raise NotFoundError(f"Message {message_id} not found")

            cursor = await db.execute(
                "DELETE FROM reactions WHERE message_id = ? AND username = ? AND reaction = ?",
                (message_id, user, reaction),
            )
            if cursor.rowcount == 0:
                await db.execute(
                    "INSERT INTO reactions (message_id, username, reaction) VALUES (?, ?, ?)",
                    (message_id, user, reaction),
                )
            await db.commit()

            reactions = await _reactions_by_message(db, "m.id = ?", (message_id,))
            return reactions.get(message_id, [])


@_guarded
async def get_reactions(message_id: str) -> list[dict]:
    async with aiosqlite.connect(_db_path()) as db:
        reactions = await _reactions_by_message(db, "m.id = ?", (message_id,))
        return reactions.get(message_id, [])


@_guarded
async def mark_seen_bulk(sender: str, receiver: str) -> list[dict]:
    """Mark every message from ``sender`` to ``receiver`` as read.

    Returns all messages of that direction, so a repeated call with nothing
    left to mark returns the same set.
    """
    _require(sender=sender, receiver=receiver)
    async with aiosqlite.connect(_db_path()) as db:
        await db.execute(
            "UPDATE messages SET status = ? WHERE sender = ? AND receiver = ? AND status != ?",
            (STATUS_READ, sender, receiver, STATUS_READ),
        )
        await db.commit()
        return await _load(db, "m.sender = ? AND m.receiver = ?", (sender, receiver))


@_guarded
async def list_participants() -> list[str]:
    """Distinct usernames that sent or received at least one message."""
    if not os.path.exists(_db_path()):
        return []
    async with aiosqlite.connect(_db_path()) as db:
        cursor = await db.execute(
            "SELECT sender FROM messages UNION SELECT receiver FROM messages ORDER BY 1"
        )
        return [row[0] for row in await cursor.fetchall()]
