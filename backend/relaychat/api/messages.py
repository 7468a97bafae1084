from fastapi import APIRouter, Depends, Request

from relaychat.config import settings
from relaychat.errors import AuthError
from relaychat.schemas.message import MessageCreate, MessageOut, MessageUpdate
from relaychat.services import message_store
from relaychat.services.auth import get_optional_username
from relaychat.services.conversations import get_conversation
from relaychat.websocket.router import DeliveryRouter

router = APIRouter(tags=["messages"])


def get_router(request: Request) -> DeliveryRouter:
    return request.app.state.router


def _check_owner(message: dict, username: str | None) -> None:
    if not settings.enforce_message_ownership:
        return
    if username is None:
        raise AuthError("Authentication required", status_code=401)
    if message["sender"] != username:
        raise AuthError("Only the sender can change this message", status_code=403)


@router.get("/api/messages", response_model=list[MessageOut])
@router.get("/messages", response_model=list[MessageOut], include_in_schema=False)
async def list_messages(sender: str | None = None, receiver: str | None = None):
    return await get_conversation(sender, receiver)


@router.post("/api/messages", response_model=MessageOut)
@router.post("/messages", response_model=MessageOut, include_in_schema=False)
async def create_message(
    data: MessageCreate,
    delivery: DeliveryRouter = Depends(get_router),
):
    message = await message_store.create_message(
        data.sender,
        data.receiver,
        data.content,
        data.file_url,
        data.file_type,
        data.timestamp,
    )
    await delivery.message_sent(message)
    return message


@router.patch("/api/messages/{message_id}", response_model=MessageOut)
@router.patch("/messages/{message_id}", response_model=MessageOut, include_in_schema=False)
async def edit_message(
    message_id: str,
    data: MessageUpdate,
    username: str | None = Depends(get_optional_username),
    delivery: DeliveryRouter = Depends(get_router),
):
    message = await message_store.get_message(message_id)
    if message is not None:
        _check_owner(message, username)
    updated = await message_store.update_content(message_id, data.content)
    await delivery.message_edited(updated)
    return updated


@router.delete("/api/messages/{message_id}")
@router.delete("/messages/{message_id}", include_in_schema=False)
async def remove_message(
    message_id: str,
    username: str | None = Depends(get_optional_username),
    delivery: DeliveryRouter = Depends(get_router),
):
    message = await message_store.get_message(message_id)
    if message is not None:
        _check_owner(message, username)
        await message_store.delete_message(message_id)
        await delivery.message_deleted(message_id, message["sender"], message["receiver"])
    return {"message": "Message deleted"}
