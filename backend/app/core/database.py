# app/core/database.py
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, Session
from app.core.config import settings

# Sync engine
sync_url = settings.DATABASE_URL.replace("+asyncpg", "")

if sync_url.startswith("sqlite"):
    # Single shared connection so threadpool workers see the same database
    engine = create_engine(
        sync_url,
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
else:
    engine = create_engine(sync_url, echo=False, pool_pre_ping=True)

# Sync sessionmaker
SessionLocal = sessionmaker(
    bind=engine,
    class_=Session,
    autoflush=False,
    autocommit=False,
    expire_on_commit=False,
)

# Dependency
def get_session() -> Session:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

# Init DB (e.g. w startup)
def init_db():
    # Register every table on the metadata before creating
    import app.auth.models  # noqa: F401
    import app.courses.models  # noqa: F401
    import app.chat.models  # noqa: F401
    import app.notifications.models  # noqa: F401

    SQLModel.metadata.create_all(bind=engine)
