"""Payloads of inbound socket events.

Identity fields (``sender``, ``user``, ``receiver`` of mark_seen) are optional:
the gateway fills them from the identified session.
"""
from pydantic import BaseModel, Field


class _Event(BaseModel):
    model_config = {"populate_by_name": True}


class SendMessageEvent(_Event):
    sender: str | None = None
    receiver: str
    content: str = ""
    file_url: str | None = Field(default=None, alias="fileUrl")
    file_type: str | None = Field(default=None, alias="fileType")


class ToggleReactionEvent(_Event):
    message_id: str = Field(alias="messageId")
    user: str | None = None
    reaction: str


class TypingEvent(_Event):
    sender: str | None = None
    receiver: str
    is_typing: bool = Field(default=True, alias="isTyping")


class UpdateMessageEvent(_Event):
    id: str = Field(alias="_id")
    content: str


class MarkSeenEvent(_Event):
    sender: str
    receiver: str | None = None


class MessageStatusEvent(_Event):
    message_id: str = Field(alias="messageId")
