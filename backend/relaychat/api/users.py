from fastapi import APIRouter, Depends, File, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from relaychat.database import get_db
from relaychat.errors import ValidationError
from relaychat.models.user import User
from relaychat.schemas.user import UserOut
from relaychat.services.auth import get_current_user
from relaychat.services.conversations import list_users
from relaychat.services.content import KIND_IMAGE
from relaychat.services.file_store import store_file

router = APIRouter(tags=["users"])


@router.get("/api/users", response_model=list[UserOut])
@router.get("/users", response_model=list[UserOut], include_in_schema=False)
async def get_users(db: AsyncSession = Depends(get_db)):
    return [UserOut.model_validate(u) for u in await list_users(db)]


@router.put("/api/users/me/profile-pic", response_model=UserOut)
async def update_profile_pic(
    file: UploadFile = File(...),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    stored = await store_file(file)
    if stored["kind"] != KIND_IMAGE:
        raise ValidationError("Profile picture must be an image")
    current_user.profile_pic_url = stored["url"]
    await db.flush()
    await db.refresh(current_user)
    return UserOut.model_validate(current_user)
