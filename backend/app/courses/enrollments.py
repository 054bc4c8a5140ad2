import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Path, status
from sqlalchemy.orm import Session
from sqlalchemy import select, desc
from sqlalchemy.exc import IntegrityError
from starlette.concurrency import run_in_threadpool

from app.core.database import get_session
from app.core.exceptions import CoursePortalError
from app.auth.deps import get_current_user
from app.auth.models import User
from app.courses.models import Course, Enrollment
from app.courses.schemas import (
    CourseRead, EnrollmentCreate, EnrollmentRead, EnrollmentWithCourse,
    EnrollmentWithStudent, EnrollmentProgressUpdate
)
from app.notifications.dispatcher import dispatcher
from app.notifications.models import NotificationKind
from app.users.schemas import UserPublic

router = APIRouter(tags=["enrollments"])

# Configure logging
logger = logging.getLogger(__name__)


def _create_enrollment(db: Session, student: User, course_id: int) -> tuple[Enrollment, Course]:
    course = db.get(Course, course_id)
    if not course:
        raise HTTPException(status_code=404, detail="Course not found")
    if course.tutor_id == student.id:
        raise HTTPException(status_code=400, detail="You cannot enroll in your own course")

    existing = db.scalar(
        select(Enrollment).where(
            Enrollment.student_id == student.id,
            Enrollment.course_id == course_id,
        )
    )
    if existing:
        raise HTTPException(status_code=400, detail="Already enrolled")

    enrollment = Enrollment(student_id=student.id, course_id=course_id)
    db.add(enrollment)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=400, detail="Already enrolled")
    db.refresh(enrollment)
    return enrollment, course


@router.post(
    "",
    response_model=EnrollmentRead,
    status_code=status.HTTP_201_CREATED,
    summary="Enroll in a course",
)
async def enroll(
    body: EnrollmentCreate,
    db: Session = Depends(get_session),
    user: User = Depends(get_current_user),
):
    enrollment, course = await run_in_threadpool(_create_enrollment, db, user, body.course_id)
    logger.info(f"User {user.id} enrolled in course {course.id}")

    try:
        await dispatcher.notify(
            recipient_id=course.tutor_id,
            kind=NotificationKind.enrollment,
            course_id=course.id,
            message=f"{user.name} enrolled in {course.title}",
        )
    except CoursePortalError as e:
        # Don't fail the enrollment if the notification fails
        logger.error(f"Failed to notify tutor of enrollment {enrollment.id}: {e.detail}")

    return enrollment


@router.get("/me", response_model=List[EnrollmentWithCourse], summary="My enrollments")
def my_enrollments(
    db: Session = Depends(get_session),
    user: User = Depends(get_current_user),
):
    stmt = (
        select(Enrollment, Course)
        .join(Course, Course.id == Enrollment.course_id)
        .where(Enrollment.student_id == user.id)
        .order_by(desc(Enrollment.enrolled_at), desc(Enrollment.id))
    )
    return [
        EnrollmentWithCourse(
            **EnrollmentRead.model_validate(enrollment).model_dump(),
            course=CourseRead.model_validate(course),
        )
        for enrollment, course in db.execute(stmt).all()
    ]


@router.get(
    "/course/{course_id}",
    response_model=List[EnrollmentWithStudent],
    summary="Students enrolled in a course (tutor only)",
)
def course_enrollments(
    course_id: int = Path(..., ge=1),
    db: Session = Depends(get_session),
    user: User = Depends(get_current_user),
):
    course = db.get(Course, course_id)
    if not course or course.tutor_id != user.id:
        raise HTTPException(status_code=403, detail="Unauthorized")

    stmt = (
        select(Enrollment, User)
        .join(User, User.id == Enrollment.student_id)
        .where(Enrollment.course_id == course_id)
        .order_by(Enrollment.enrolled_at, Enrollment.id)
    )
    return [
        EnrollmentWithStudent(
            **EnrollmentRead.model_validate(enrollment).model_dump(),
            student=UserPublic.model_validate(student),
        )
        for enrollment, student in db.execute(stmt).all()
    ]


@router.put("/{enrollment_id}/progress", response_model=EnrollmentRead, summary="Update course progress")
def update_progress(
    body: EnrollmentProgressUpdate,
    enrollment_id: int = Path(..., ge=1),
    db: Session = Depends(get_session),
    user: User = Depends(get_current_user),
):
    enrollment = db.get(Enrollment, enrollment_id)
    if not enrollment:
        raise HTTPException(status_code=404, detail="Enrollment not found")
    if enrollment.student_id != user.id:
        raise HTTPException(status_code=403, detail="Not your enrollment")

    enrollment.progress = body.progress
    db.add(enrollment)
    db.commit()
    db.refresh(enrollment)
    return enrollment
