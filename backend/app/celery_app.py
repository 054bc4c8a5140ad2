from celery import Celery
from app.core.config import settings

# Create Celery app instance
celery_app = Celery(
    "course_portal",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=[
        "app.transcripts.tasks",
    ]
)

# Celery configuration
celery_app.conf.update(
    # Task routing
    task_routes={
        "app.transcripts.tasks.*": {"queue": "transcripts"},
    },

    # Task execution settings
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,

    # Task result settings
    result_expires=3600,  # 1 hour

    # Task retry settings
    task_acks_late=True,
    task_reject_on_worker_lost=True,

    # Worker settings
    worker_prefetch_multiplier=1,
    worker_max_tasks_per_child=100,

    # Video transcription can take minutes
    task_soft_time_limit=600,
    task_time_limit=900,
)

if __name__ == "__main__":
    celery_app.start()
