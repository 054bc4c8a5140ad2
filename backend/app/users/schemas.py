# app/users/schemas.py
from pydantic import BaseModel, EmailStr, ConfigDict, Field
from uuid import UUID
from datetime import datetime

class UserPublic(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    role: str

class UserRead(UserPublic):
    model_config = ConfigDict(from_attributes=True)

    email: EmailStr
    created_at: datetime

class UserUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=80)
