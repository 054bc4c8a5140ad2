import logging

from app.celery_app import celery_app
from app.core.database import SessionLocal
from app.core.storage import get_local_path
from app.courses.models import Course, Video
from app.notifications.models import NotificationKind
from app.notifications.store import NotificationStore
from app.transcripts.service import generate_transcript, TranscriptError

# Configure logging
logger = logging.getLogger(__name__)


@celery_app.task(
    bind=True,
    autoretry_for=(TranscriptError,),
    retry_kwargs={'max_retries': 2, 'countdown': 60},
)
def generate_video_transcript(self, video_id: int) -> dict:
    """
    Generate and store the transcript of a video lesson.

    The course tutor gets an `other` notification once the transcript is
    saved. It shows up on their next notification fetch; the worker has
    no live WebSocket connections to push to.

    Args:
        video_id: ID of the Video record

    Returns:
        dict: Task result with success status and transcript length
    """
    logger.info(f"Starting transcript generation for video {video_id}")

    with SessionLocal() as db:
        video = db.get(Video, video_id)
        if not video:
            logger.warning(f"Video {video_id} no longer exists, skipping transcript")
            return {"success": False, "video_id": video_id, "error": "Video not found"}

        transcript = generate_transcript(get_local_path(video.video_url))

        video.transcript = transcript
        db.add(video)
        db.commit()

        course = db.get(Course, video.course_id)
        title = video.title
        tutor_id = course.tutor_id
        course_id = course.id

    logger.info(f"Stored transcript for video {video_id} ({len(transcript)} chars)")

    NotificationStore().create_many(
        [tutor_id],
        NotificationKind.other,
        course_id,
        f"Transcript ready for \"{title}\"",
    )

    return {
        "success": True,
        "video_id": video_id,
        "transcript_length": len(transcript),
    }
