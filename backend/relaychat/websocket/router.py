"""Fan-out of domain events to live connections.

Presence changes always go to every connection and typing notices only to
the receiver. New messages go to the receiver and echo to the sender.
Edits, deletes, reactions, status changes and bulk-seen confirmations follow
the configured policy: ``conversation`` targets the two participants,
``broadcast`` targets everyone.
"""
import logging

from relaychat.config import FANOUT_POLICIES
from relaychat.schemas.message import message_payload
from relaychat.websocket.presence import PresenceTracker

logger = logging.getLogger(__name__)


class DeliveryRouter:
    def __init__(self, presence: PresenceTracker, policy: str = "conversation"):
        if policy not in FANOUT_POLICIES:
            raise ValueError(f"Unknown fan-out policy '{policy}'")
        self.presence = presence
        self.policy = policy

    def _participants(self, *usernames: str) -> set:
        targets = set()
        for username in usernames:
            targets |= self.presence.connections_for(username)
        return targets

    def _policy_targets(self, *usernames: str) -> set:
        if self.policy == "broadcast":
            return self.presence.all_connections()
        return self._participants(*usernames)

    async def _emit(self, targets, event: str, data) -> int:
        delivered = 0
        for connection in list(targets):
            try:
                await connection.send(event, data)
                delivered += 1
            except Exception as exc:
                logger.warning("Dropping %s for %s: %s", event, connection, exc)
        return delivered

    async def presence_changed(self) -> int:
        online = sorted(self.presence.online_usernames())
        return await self._emit(self.presence.all_connections(), "online_users", online)

    async def message_sent(self, message: dict) -> int:
        targets = self._participants(message["receiver"], message["sender"])
        return await self._emit(targets, "receive_message", message_payload(message))

    async def message_edited(self, message: dict) -> int:
        targets = self._policy_targets(message["sender"], message["receiver"])
        return await self._emit(targets, "message_updated", message_payload(message))

    async def message_deleted(self, message_id: str, *participants: str) -> int:
        targets = self._policy_targets(*participants)
        return await self._emit(targets, "message_deleted", message_id)

    async def reaction_toggled(self, message: dict, reactions: list[dict]) -> int:
        targets = self._policy_targets(message["sender"], message["receiver"])
        return await self._emit(
            targets,
            "reaction_updated",
            {"messageId": message["id"], "reactions": reactions},
        )

    async def status_changed(self, message: dict) -> int:
        targets = self._policy_targets(message["sender"], message["receiver"])
        return await self._emit(
            targets,
            "message_status_updated",
            {"messageId": message["id"], "status": message["status"]},
        )

    async def typing(self, sender: str, receiver: str, is_typing: bool) -> int:
        return await self._emit(
            self.presence.connections_for(receiver),
            "typing",
            {"sender": sender, "isTyping": is_typing},
        )

    async def messages_seen(
        self, messages: list[dict], sender: str, receiver: str, requester=None
    ) -> int:
        targets = self._policy_targets(sender, receiver)
        if requester is not None:
            targets.add(requester)
        return await self._emit(
            targets, "messages_seen", [message_payload(m) for m in messages]
        )
