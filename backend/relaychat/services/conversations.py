"""Read path: user directory and two-party conversation history."""
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from relaychat.config import settings
from relaychat.errors import ValidationError
from relaychat.models.user import User
from relaychat.services import message_store


async def list_users(db: AsyncSession) -> list[dict]:
    """All known users.

    The user table is canonical. With ``user_directory = "messages"`` the
    list is derived from message participants instead, which is what
    deployments without registration did.
    """
    if settings.user_directory == "messages":
        return [
            {"username": name, "last_seen": None, "profile_pic_url": None}
            for name in await message_store.list_participants()
        ]

    result = await db.execute(select(User).order_by(User.username))
    return [
        {
            "username": user.username,
            "last_seen": user.last_seen,
            "profile_pic_url": user.profile_pic_url,
        }
        for user in result.scalars().all()
    ]


async def get_conversation(sender: str | None, receiver: str | None) -> list[dict]:
    if not sender or not receiver:
        raise ValidationError("sender and receiver are required")
    return await message_store.find_conversation(sender, receiver)
