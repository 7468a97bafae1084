"""Per-connection session: identify, handle events, disconnect.

State machine: ``unidentified`` -> ``identified`` -> ``closed``. Every event
other than ``user_connected`` needs an identified session. Failures are
logged and answered with an ``error`` frame to the originating connection.
"""
import enum
import logging

import pydantic

from relaychat.errors import AuthError, NotFoundError, RelayError, StoreError, ValidationError
from relaychat.schemas.events import (
    MarkSeenEvent,
    MessageStatusEvent,
    SendMessageEvent,
    ToggleReactionEvent,
    TypingEvent,
    UpdateMessageEvent,
)
from relaychat.services import message_store
from relaychat.websocket.presence import PresenceTracker
from relaychat.websocket.router import DeliveryRouter

logger = logging.getLogger(__name__)


class SessionState(enum.Enum):
    UNIDENTIFIED = "unidentified"
    IDENTIFIED = "identified"
    CLOSED = "closed"


def _message_id(data) -> str:
    if isinstance(data, dict):
        data = data.get("_id") or data.get("id") or data.get("messageId")
    if not isinstance(data, str) or not data:
        raise ValidationError("Message id is required")
    return data


class Session:
    def __init__(
        self,
        connection,
        presence: PresenceTracker,
        router: DeliveryRouter,
        token_username: str | None = None,
        enforce_ownership: bool = True,
    ):
        self.connection = connection
        self.presence = presence
        self.router = router
        self.token_username = token_username
        self.enforce_ownership = enforce_ownership
        self.state = SessionState.UNIDENTIFIED
        self.username: str | None = None
        self._handlers = {
            "user_connected": self.identify,
            "send_message": self._send_message,
            "toggle_reaction": self._toggle_reaction,
            "typing": self._typing,
            "update_message": self._update_message,
            "delete_message": self._delete_message,
            "mark_seen": self._mark_seen,
            "message_delivered": self._message_delivered,
            "message_read": self._message_read,
        }

    async def handle(self, event: str | None, data) -> None:
        if self.state is SessionState.CLOSED:
            return
        try:
            handler = self._handlers.get(event)
            if handler is None:
                raise ValidationError(f"Unknown event '{event}'")
            if event != "user_connected" and self.state is not SessionState.IDENTIFIED:
                raise AuthError("Connection is not identified", status_code=401)
            await handler(data)
        except pydantic.ValidationError as exc:
            await self._fail(event, ValidationError(f"Invalid payload: {exc.error_count()} error(s)"))
        except RelayError as exc:
            await self._fail(event, exc)
        except Exception:
            logger.exception("Unhandled error in %s from %s", event, self.username)
            await self._fail(event, StoreError("Unhandled error"))

    async def _fail(self, event: str | None, exc: RelayError) -> None:
        if isinstance(exc, StoreError):
            message = StoreError.public_message
        else:
            message = exc.message
            logger.warning("Rejected %s from %s: %s", event, self.username or "?", message)
        try:
            await self.connection.send("error", {"event": event, "error": message})
        except Exception as send_exc:
            logger.warning("Could not report error to %s: %s", self.connection, send_exc)

    def _bind(self, claimed: str | None) -> str:
        """The acting username: the session identity, which ``claimed`` must match."""
        if claimed and claimed != self.username:
            raise AuthError(f"Cannot act as '{claimed}'", status_code=403)
        return self.username

    async def _get_message(self, message_id: str) -> dict:
        message = await message_store.get_message(message_id)
        if message is None:
            raise NotFoundError(f"Message {message_id} not found")
        return message

    async def identify(self, data) -> None:
        username = data.get("username") if isinstance(data, dict) else data
        if not isinstance(username, str) or not username.strip():
            raise ValidationError("Username is required")
        if self.token_username is not None and username != self.token_username:
            raise AuthError("Username does not match token", status_code=401)
        if self.state is SessionState.IDENTIFIED:
            if username != self.username:
                raise AuthError("Connection already identified as another user")
            return

        await self.presence.identify(self.connection, username)
        self.username = username
        self.state = SessionState.IDENTIFIED
        await self.router.presence_changed()

    async def close(self) -> None:
        if self.state is SessionState.CLOSED:
            return
        was_identified = self.state is SessionState.IDENTIFIED
        self.state = SessionState.CLOSED
        if was_identified:
            await self.presence.remove(self.connection)
            await self.router.presence_changed()
        logger.info("%s closed (%s)", self.connection, self.username or "unidentified")

    async def _send_message(self, data) -> None:
        event = SendMessageEvent.model_validate(data or {})
        sender = self._bind(event.sender)
        message = await message_store.create_message(
            sender, event.receiver, event.content, event.file_url, event.file_type
        )
        await self.router.message_sent(message)

    async def _toggle_reaction(self, data) -> None:
        event = ToggleReactionEvent.model_validate(data or {})
        user = self._bind(event.user)
        message = await self._get_message(event.message_id)
        reactions = await message_store.toggle_reaction(message["id"], user, event.reaction)
        await self.router.reaction_toggled(message, reactions)

    async def _typing(self, data) -> None:
        event = TypingEvent.model_validate(data or {})
        sender = self._bind(event.sender)
        await self.router.typing(sender, event.receiver, event.is_typing)

    async def _update_message(self, data) -> None:
        event = UpdateMessageEvent.model_validate(data or {})
        message = await self._get_message(event.id)
        self._check_owner(message)
        updated = await message_store.update_content(message["id"], event.content)
        await self.router.message_edited(updated)

    async def _delete_message(self, data) -> None:
        message_id = _message_id(data)
        message = await message_store.get_message(message_id)
        if message is None:
            # Already gone; confirm to the requester only
            await self.connection.send("message_deleted", message_id)
            return
        self._check_owner(message)
        await message_store.delete_message(message_id)
        await self.router.message_deleted(message_id, message["sender"], message["receiver"])

    async def _mark_seen(self, data) -> None:
        event = MarkSeenEvent.model_validate(data or {})
        receiver = self._bind(event.receiver)
        messages = await message_store.mark_seen_bulk(event.sender, receiver)
        await self.router.messages_seen(
            messages, event.sender, receiver, requester=self.connection
        )

    async def _message_delivered(self, data) -> None:
        await self._advance_status(data, message_store.STATUS_DELIVERED)

    async def _message_read(self, data) -> None:
        await self._advance_status(data, message_store.STATUS_READ)

    async def _advance_status(self, data, status: str) -> None:
        event = MessageStatusEvent.model_validate(data or {})
        message = await self._get_message(event.message_id)
        if message["receiver"] != self.username:
            raise AuthError("Only the receiver can update message status", status_code=403)
        updated = await message_store.set_status_if_forward(message["id"], status)
        if updated["status"] == status and message["status"] != status:
            await self.router.status_changed(updated)

    def _check_owner(self, message: dict) -> None:
        if self.enforce_ownership and message["sender"] != self.username:
            raise AuthError("Only the sender can change this message", status_code=403)
