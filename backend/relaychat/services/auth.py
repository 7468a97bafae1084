from datetime import datetime, timedelta, timezone

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from relaychat.config import settings
from relaychat.database import get_db
from relaychat.errors import AuthError
from relaychat.models.user import User

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/users/login")
optional_oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/users/login", auto_error=False)


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain: str, hashed: str) -> bool:
    return pwd_context.verify(plain, hashed)


def create_access_token(username: str) -> str:
    expire = datetime.now(timezone.utc) + timedelta(minutes=settings.jwt_expire_minutes)
    payload = {"sub": username, "exp": expire}
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def username_from_token(token: str) -> str:
    """Decode a bearer token and return its subject, or raise AuthError."""
    try:
        payload = jwt.decode(
            token, settings.jwt_secret, algorithms=[settings.jwt_algorithm]
        )
    except JWTError:
        raise AuthError("Invalid authentication credentials", status_code=401)
    username = payload.get("sub")
    if not username:
        raise AuthError("Invalid authentication credentials", status_code=401)
    return username


async def register_user(db: AsyncSession, username: str, password: str) -> User:
    existing = await db.execute(select(User).where(User.username == username))
    if existing.scalar_one_or_none():
        raise AuthError("Username already taken")

    user = User(username=username, password_hash=hash_password(password))
    db.add(user)
    try:
        await db.flush()
    except IntegrityError:
        # Concurrent registration of the same name
        raise AuthError("Username already taken")
    await db.refresh(user)
    return user


async def authenticate_user(db: AsyncSession, username: str, password: str) -> User:
    result = await db.execute(select(User).where(User.username == username))
    user = result.scalar_one_or_none()
    if not user or not verify_password(password, user.password_hash):
        raise AuthError("Invalid credentials")
    return user


async def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid authentication credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        username = username_from_token(token)
    except AuthError:
        raise credentials_exception

    result = await db.execute(select(User).where(User.username == username))
    user = result.scalar_one_or_none()
    if user is None:
        raise credentials_exception
    return user


async def get_optional_username(
    token: str | None = Depends(optional_oauth2_scheme),
) -> str | None:
    if token is None:
        return None
    return username_from_token(token)


async def record_last_seen(session_factory, username: str) -> None:
    """Presence collaborator: stamp ``last_seen`` when a user goes offline."""
    async with session_factory() as db:
        result = await db.execute(select(User).where(User.username == username))
        user = result.scalar_one_or_none()
        if user:
            user.last_seen = datetime.now(timezone.utc)
            await db.commit()
