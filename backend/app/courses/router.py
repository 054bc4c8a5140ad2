import logging
from typing import List, Optional

from fastapi import (
    APIRouter,
    Depends,
    HTTPException,
    File,
    Form,
    Path,
    UploadFile,
    Request,
    status
)
from sqlalchemy.orm import Session
from sqlalchemy import select, desc

from app.core.database import get_session
from app.auth.deps import get_current_user, get_current_tutor
from app.auth.models import User
from app.core.limiter import limiter
from app.core.storage import save_file, delete_file, fit_thumbnail, get_local_path, StorageError
from app.courses.models import Course, Video
from app.courses.schemas import (
    CourseRead, CourseReadWithVideos, VideoRead, VideoReorder, TranscriptQueued
)
from app.courses.service import get_course_participants, next_video_order
from app.users.schemas import UserPublic

router = APIRouter(tags=["courses"])

# Configure logging
logger = logging.getLogger(__name__)


def _get_course_or_404(db: Session, course_id: int) -> Course:
    course = db.get(Course, course_id)
    if not course:
        raise HTTPException(status_code=404, detail="Course not found")
    return course


def _get_owned_course(db: Session, course_id: int, user: User) -> Course:
    course = _get_course_or_404(db, course_id)
    if course.tutor_id != user.id:
        raise HTTPException(status_code=403, detail="Only the course tutor can modify this course")
    return course


def _get_course_video(course: Course, video_id: int) -> Video:
    for video in course.videos:
        if video.id == video_id:
            return video
    raise HTTPException(status_code=404, detail="Video not found")


def _save_thumbnail(thumbnail: UploadFile) -> str:
    url, local_path, _ = save_file(thumbnail, "thumbnail")
    try:
        fit_thumbnail(local_path)
    except StorageError as e:
        delete_file(local_path)
        raise HTTPException(status_code=422, detail=str(e))
    return url


def _course_detail(db: Session, course: Course) -> CourseReadWithVideos:
    detail = CourseReadWithVideos.model_validate(course)
    tutor = db.get(User, course.tutor_id)
    if tutor:
        detail.tutor = UserPublic.model_validate(tutor)
    return detail


@router.post(
    "",
    response_model=CourseReadWithVideos,
    status_code=status.HTTP_201_CREATED,
    summary="Create course",
)
@limiter.limit("20/minute")
def create_course(
    request: Request,
    title: str = Form(..., min_length=1, max_length=120),
    description: str = Form(..., min_length=1),
    thumbnail: Optional[UploadFile] = File(None),
    db: Session = Depends(get_session),
    tutor: User = Depends(get_current_tutor),
):
    if not title.strip() or not description.strip():
        raise HTTPException(status_code=422, detail="Title and description are required")

    course = Course(
        title=title.strip(),
        description=description.strip(),
        tutor_id=tutor.id,
    )
    if thumbnail is not None and thumbnail.filename:
        course.thumbnail = _save_thumbnail(thumbnail)

    db.add(course)
    db.commit()
    db.refresh(course)

    logger.info(f"Course {course.id} created by tutor {tutor.id}")
    return _course_detail(db, course)


@router.get("", response_model=List[CourseRead], summary="List all courses")
def list_courses(
    db: Session = Depends(get_session),
    user: User = Depends(get_current_user),
):
    stmt = select(Course).order_by(desc(Course.created_at), desc(Course.id))
    return db.scalars(stmt).all()


@router.get("/tutor", response_model=List[CourseReadWithVideos], summary="Courses of the current tutor")
def list_tutor_courses(
    db: Session = Depends(get_session),
    tutor: User = Depends(get_current_tutor),
):
    stmt = (
        select(Course)
        .where(Course.tutor_id == tutor.id)
        .order_by(desc(Course.created_at), desc(Course.id))
    )
    return [_course_detail(db, course) for course in db.scalars(stmt).all()]


@router.get("/{course_id}", response_model=CourseReadWithVideos, summary="Course details with videos")
def get_course(
    course_id: int = Path(..., ge=1),
    db: Session = Depends(get_session),
    user: User = Depends(get_current_user),
):
    return _course_detail(db, _get_course_or_404(db, course_id))


@router.put("/{course_id}", response_model=CourseReadWithVideos, summary="Update course")
def update_course(
    course_id: int = Path(..., ge=1),
    title: Optional[str] = Form(None, max_length=120),
    description: Optional[str] = Form(None),
    thumbnail: Optional[UploadFile] = File(None),
    db: Session = Depends(get_session),
    tutor: User = Depends(get_current_tutor),
):
    course = _get_owned_course(db, course_id, tutor)

    if title is not None and title.strip():
        course.title = title.strip()
    if description is not None and description.strip():
        course.description = description.strip()
    if thumbnail is not None and thumbnail.filename:
        old_thumbnail = course.thumbnail
        course.thumbnail = _save_thumbnail(thumbnail)
        if old_thumbnail:
            delete_file(get_local_path(old_thumbnail))

    db.add(course)
    db.commit()
    db.refresh(course)
    return _course_detail(db, course)


@router.delete("/{course_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete course")
def delete_course(
    course_id: int = Path(..., ge=1),
    db: Session = Depends(get_session),
    tutor: User = Depends(get_current_tutor),
):
    course = _get_owned_course(db, course_id, tutor)

    files = [video.video_url for video in course.videos]
    if course.thumbnail:
        files.append(course.thumbnail)

    db.delete(course)
    db.commit()

    for url in files:
        delete_file(get_local_path(url))

    logger.info(f"Course {course_id} deleted by tutor {tutor.id}")


# ─────────────────────────────  VIDEOS  ─────────────────────────────
@router.post(
    "/{course_id}/videos",
    response_model=VideoRead,
    status_code=status.HTTP_201_CREATED,
    summary="Upload a video lesson",
)
def upload_video(
    course_id: int = Path(..., ge=1),
    title: str = Form(..., min_length=1, max_length=200),
    video: UploadFile = File(...),
    db: Session = Depends(get_session),
    tutor: User = Depends(get_current_tutor),
):
    course = _get_owned_course(db, course_id, tutor)

    url, local_path, _ = save_file(video, "video")

    record = Video(
        course_id=course.id,
        title=title.strip(),
        video_url=url,
        order=next_video_order(course),
    )
    db.add(record)
    db.commit()
    db.refresh(record)

    logger.info(f"Video {record.id} uploaded to course {course.id}: {local_path}")
    return record


@router.put(
    "/{course_id}/videos/reorder",
    response_model=List[VideoRead],
    summary="Reorder video lessons",
)
def reorder_videos(
    body: VideoReorder,
    course_id: int = Path(..., ge=1),
    db: Session = Depends(get_session),
    tutor: User = Depends(get_current_tutor),
):
    course = _get_owned_course(db, course_id, tutor)

    videos = {video.id: video for video in course.videos}
    if set(body.video_ids) != set(videos):
        raise HTTPException(
            status_code=400,
            detail="video_ids must list every video of the course exactly once"
        )

    for position, video_id in enumerate(body.video_ids):
        videos[video_id].order = position
        db.add(videos[video_id])
    db.commit()

    return [videos[video_id] for video_id in body.video_ids]


@router.delete(
    "/{course_id}/videos/{video_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a video lesson",
)
def delete_video(
    course_id: int = Path(..., ge=1),
    video_id: int = Path(..., ge=1),
    db: Session = Depends(get_session),
    tutor: User = Depends(get_current_tutor),
):
    course = _get_owned_course(db, course_id, tutor)
    video = _get_course_video(course, video_id)
    video_url = video.video_url

    course.videos.remove(video)
    # Close the gap left in the lesson order
    for position, remaining in enumerate(course.videos):
        remaining.order = position
    db.commit()

    delete_file(get_local_path(video_url))


@router.post(
    "/{course_id}/videos/{video_id}/transcript",
    response_model=TranscriptQueued,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Generate a transcript for a video",
    description="Any course participant may request it; the tutor is notified when it is ready.",
)
def request_transcript(
    course_id: int = Path(..., ge=1),
    video_id: int = Path(..., ge=1),
    db: Session = Depends(get_session),
    user: User = Depends(get_current_user),
):
    course = _get_course_or_404(db, course_id)
    participants = get_course_participants(db, course_id)
    if not participants.includes(user.id):
        raise HTTPException(status_code=403, detail="You are not a participant of this course")
    video = _get_course_video(course, video_id)

    from app.transcripts.tasks import generate_video_transcript

    try:
        task = generate_video_transcript.delay(video.id)
    except Exception as e:
        logger.error(f"Failed to queue transcript for video {video.id}: {e}")
        raise HTTPException(status_code=503, detail="Transcript service unavailable")

    logger.info(f"Transcript generation for video {video.id} queued by user {user.id}, task_id: {task.id}")
    return TranscriptQueued(video_id=video.id, task_id=str(task.id))
