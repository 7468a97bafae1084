from pydantic import BaseModel, Field, computed_field


class ReactionOut(BaseModel):
    user: str
    reaction: str


class MessageCreate(BaseModel):
    sender: str
    receiver: str
    content: str = ""
    file_url: str | None = Field(default=None, alias="fileUrl")
    file_type: str | None = Field(default=None, alias="fileType")
    timestamp: str | None = None

    model_config = {"populate_by_name": True}


class MessageUpdate(BaseModel):
    content: str


class MessageOut(BaseModel):
    id: str = Field(serialization_alias="_id")
    sender: str
    receiver: str
    content: str
    kind: str = "text"  # 'text', 'image', 'file'
    file_url: str | None = Field(default=None, serialization_alias="fileUrl")
    file_type: str | None = Field(default=None, serialization_alias="fileType")
    timestamp: str
    status: str = "sent"  # 'sent', 'delivered', 'read'
    edited_at: str | None = Field(default=None, serialization_alias="editedAt")
    reactions: list[ReactionOut] = []

    @computed_field
    @property
    def seen(self) -> bool:
        return self.status == "read"


def message_payload(message: dict) -> dict:
    """Wire representation of a stored message."""
    return MessageOut.model_validate(message).model_dump(by_alias=True)
