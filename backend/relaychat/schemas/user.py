from datetime import datetime

from pydantic import BaseModel, Field


class UserCreate(BaseModel):
    username: str
    password: str


class UserLogin(BaseModel):
    username: str
    password: str


class UserOut(BaseModel):
    username: str
    last_seen: datetime | None = Field(default=None, serialization_alias="lastSeen")
    profile_pic_url: str | None = Field(default=None, serialization_alias="profilePicUrl")

    model_config = {"from_attributes": True}


class LoginOut(BaseModel):
    username: str
    profile_pic_url: str | None = Field(default=None, serialization_alias="profilePicUrl")
    access_token: str
    token_type: str = "bearer"
