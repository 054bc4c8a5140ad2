# app/courses/models.py
from datetime import datetime, timezone
from uuid import UUID
from typing import Optional, List

from sqlmodel import SQLModel, Field, Relationship
import sqlalchemy as sa
from sqlalchemy import func, UniqueConstraint


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Course(SQLModel, table=True):
    __tablename__ = "courses"

    id: Optional[int] = Field(default=None, primary_key=True)
    title: str = Field(max_length=120)
    description: str = Field(sa_column=sa.Column(sa.Text, nullable=False))
    thumbnail: Optional[str] = Field(default=None, max_length=500)
    tutor_id: UUID = Field(
        sa_column=sa.Column(
            sa.Uuid,
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        )
    )
    created_at: datetime = Field(
        default_factory=_utcnow,
        sa_column=sa.Column(
            sa.DateTime(timezone=True),
            server_default=func.now(),
            nullable=False
        )
    )

    # Relationships
    videos: List["Video"] = Relationship(
        back_populates="course",
        sa_relationship_kwargs={
            "cascade": "all, delete-orphan",
            "order_by": "Video.order",
        },
    )
    enrollments: List["Enrollment"] = Relationship(
        back_populates="course",
        sa_relationship_kwargs={"cascade": "all, delete-orphan"},
    )


class Video(SQLModel, table=True):
    __tablename__ = "videos"

    id: Optional[int] = Field(default=None, primary_key=True)
    course_id: int = Field(
        sa_column=sa.Column(
            sa.Integer,
            sa.ForeignKey("courses.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        )
    )
    title: str = Field(max_length=200)
    video_url: str = Field(max_length=500)
    transcript: str = Field(default="", sa_column=sa.Column(sa.Text, nullable=False, server_default=""))
    order: int = Field(default=0, description="Position of the lesson inside the course")

    course: Optional[Course] = Relationship(back_populates="videos")


class Enrollment(SQLModel, table=True):
    """
    A student's enrollment in a course.

    A student may enroll in a given course only once.
    """
    __tablename__ = "enrollments"

    id: Optional[int] = Field(default=None, primary_key=True)
    student_id: UUID = Field(
        sa_column=sa.Column(
            sa.Uuid,
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        )
    )
    course_id: int = Field(
        sa_column=sa.Column(
            sa.Integer,
            sa.ForeignKey("courses.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        )
    )
    progress: int = Field(default=0, ge=0, le=100)
    enrolled_at: datetime = Field(
        default_factory=_utcnow,
        sa_column=sa.Column(
            sa.DateTime(timezone=True),
            server_default=func.now(),
            nullable=False
        )
    )

    course: Optional[Course] = Relationship(back_populates="enrollments")

    __table_args__ = (
        UniqueConstraint('student_id', 'course_id', name='uq_enrollments_student_course'),
    )
