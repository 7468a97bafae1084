from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from relaychat.database import get_db
from relaychat.errors import ValidationError
from relaychat.schemas.user import LoginOut, UserCreate, UserLogin
from relaychat.services.auth import authenticate_user, create_access_token, register_user

router = APIRouter(tags=["auth"])


@router.post("/api/users/register")
@router.post("/register", include_in_schema=False)
async def register(data: UserCreate, db: AsyncSession = Depends(get_db)):
    if not data.username.strip() or not data.password:
        raise ValidationError("Username and password required")
    await register_user(db, data.username, data.password)
    return {"message": "User registered successfully"}


@router.post("/api/users/login", response_model=LoginOut)
@router.post("/login", response_model=LoginOut, include_in_schema=False)
async def login(data: UserLogin, db: AsyncSession = Depends(get_db)):
    if not data.username or not data.password:
        raise ValidationError("Username and password required")
    user = await authenticate_user(db, data.username, data.password)
    return LoginOut(
        username=user.username,
        profile_pic_url=user.profile_pic_url,
        access_token=create_access_token(user.username),
    )
