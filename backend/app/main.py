import logging
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from slowapi.errors import RateLimitExceeded

from app.core.config import settings
from app.core.database import init_db
from app.core.limiter import limiter, _rate_limit_exceeded_handler
from app.auth.router import router as auth_router
from app.users.router import router as users_router
from app.courses.router import router as courses_router
from app.courses.enrollments import router as enrollments_router
from app.chat.router import router as chat_router
from app.notifications.router import router as notifications_router

logger = logging.getLogger(__name__)

app = FastAPI(title="Course Portal API", version="0.1.0")

# Set up SlowAPI limiter
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

@app.on_event("startup")
def startup():
    # Initialize database
    init_db()
    Path(settings.UPLOAD_PATH).mkdir(parents=True, exist_ok=True)
    logger.info("Course Portal API started")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["*"],
    expose_headers=["*"],
)

# Uploaded thumbnails and videos
Path(settings.UPLOAD_PATH).mkdir(parents=True, exist_ok=True)
app.mount(settings.UPLOAD_URL, StaticFiles(directory=settings.UPLOAD_PATH), name="uploads")


# Include all routers

app.include_router(auth_router, prefix="/api/v1/auth", tags=["auth"])
app.include_router(users_router, prefix="/api/v1/users", tags=["users"])
app.include_router(courses_router, prefix="/api/v1/courses", tags=["courses"])
app.include_router(enrollments_router, prefix="/api/v1/enrollments", tags=["enrollments"])
app.include_router(notifications_router, prefix="/api/v1/notifications", tags=["notifications"])
app.include_router(chat_router, prefix="/api/v1", tags=["chat"])
