from datetime import datetime, timezone
from uuid import uuid4, UUID
from typing import Literal

from sqlmodel import SQLModel, Field
from sqlalchemy import Column, String, DateTime, Uuid, func

Role = Literal["student", "tutor"]


class User(SQLModel, table=True):
    __tablename__ = "users"
    __table_args__ = {"extend_existing": True}

    id: UUID = Field(
        default_factory=uuid4,
        sa_column=Column(Uuid, primary_key=True, default=uuid4),
    )
    email: str = Field(
        sa_column=Column(String, unique=True, nullable=False, index=True),
    )
    hashed_password: str = Field(
        sa_column=Column(String, nullable=False),
    )
    name: str = Field(
        sa_column=Column(String(80), nullable=False),
    )
    role: str = Field(
        default="student",
        sa_column=Column(String(10), nullable=False, server_default="student"),
    )
    created_at: datetime = Field(
       default_factory=lambda: datetime.now(timezone.utc),
       sa_column=Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    )

    @property
    def is_tutor(self) -> bool:
        return self.role == "tutor"
