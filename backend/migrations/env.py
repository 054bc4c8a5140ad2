from logging.config import fileConfig
from logging import getLogger

from alembic import context
from sqlalchemy import create_engine
from sqlmodel import SQLModel

# ——— Import all modules with SQLModel(table=True) so metadata is populated ———
import app.auth.models  # noqa: F401
import app.courses.models  # noqa: F401
import app.chat.models  # noqa: F401
import app.notifications.models  # noqa: F401

from app.core.config import settings

if context.config.config_file_name is not None:
    fileConfig(context.config.config_file_name)

# Collect metadata for all tables
target_metadata = SQLModel.metadata

logger = getLogger("alembic.env")
logger.info("Tables in metadata: %r", list(target_metadata.tables.keys()))

sync_url = settings.DATABASE_URL.replace("+asyncpg", "")


def run_migrations_offline() -> None:
    """Run migrations in 'offline' mode (generate SQL without DB connectivity)."""
    context.configure(
        url=sync_url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Run migrations in 'online' mode."""
    engine = create_engine(sync_url, echo=False)

    with engine.begin() as conn:
        context.configure(
            connection=conn,
            target_metadata=target_metadata,
            compare_type=True,
            render_as_batch=True,
        )
        context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
