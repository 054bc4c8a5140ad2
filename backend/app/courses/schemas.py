# app/courses/schemas.py
from datetime import datetime
from uuid import UUID
from typing import List, Optional
from pydantic import BaseModel, Field, field_validator, ConfigDict

from app.users.schemas import UserPublic


# ─────────────────────────  CREATE / UPDATE SCHEMAS  ──────────────────────────
class VideoReorder(BaseModel):
    video_ids: List[int] = Field(
        ...,
        min_length=1,
        description="All video IDs of the course in their new order"
    )

    @field_validator('video_ids')
    @classmethod
    def validate_unique(cls, v):
        if len(set(v)) != len(v):
            raise ValueError('Video IDs must be unique')
        return v


class EnrollmentCreate(BaseModel):
    course_id: int = Field(..., ge=1, description="ID of the course to enroll in")


class EnrollmentProgressUpdate(BaseModel):
    progress: int = Field(..., ge=0, le=100, description="Completion percentage")


# ───────────────────────────  READ SCHEMAS  ───────────────────────────
class VideoRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    course_id: int
    title: str
    video_url: str
    transcript: str = ""
    order: int


class CourseRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    description: str
    thumbnail: Optional[str] = None
    tutor_id: UUID
    created_at: datetime


class CourseReadWithVideos(CourseRead):
    tutor: Optional[UserPublic] = None
    videos: List[VideoRead] = []


class EnrollmentRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    student_id: UUID
    course_id: int
    progress: int
    enrolled_at: datetime


class EnrollmentWithCourse(EnrollmentRead):
    course: CourseRead


class EnrollmentWithStudent(EnrollmentRead):
    student: UserPublic


class TranscriptQueued(BaseModel):
    video_id: int
    task_id: str
    message: str = "Transcript generation queued"
