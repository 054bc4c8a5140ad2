"""
Course lookups shared by the REST routers, the chat gateway and the
notification dispatcher.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.courses.models import Course, Enrollment

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CourseParticipants:
    """Tutor and enrolled students of one course"""
    course_id: int
    title: str
    tutor_id: UUID
    student_ids: List[UUID] = field(default_factory=list)

    def includes(self, user_id: UUID) -> bool:
        return user_id == self.tutor_id or user_id in self.student_ids

    def all_except(self, user_id: UUID) -> List[UUID]:
        return [uid for uid in [self.tutor_id, *self.student_ids] if uid != user_id]


def get_course_participants(db: Session, course_id: int) -> Optional[CourseParticipants]:
    """
    Resolve who takes part in a course.

    Returns:
        CourseParticipants, or None if the course does not exist
    """
    course = db.get(Course, course_id)
    if course is None:
        return None

    student_ids = db.scalars(
        select(Enrollment.student_id)
        .where(Enrollment.course_id == course_id)
        .order_by(Enrollment.enrolled_at, Enrollment.id)
    ).all()

    return CourseParticipants(
        course_id=course.id,
        title=course.title,
        tutor_id=course.tutor_id,
        student_ids=list(student_ids),
    )


def next_video_order(course: Course) -> int:
    if not course.videos:
        return 0
    return max(v.order for v in course.videos) + 1
