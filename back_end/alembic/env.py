from logging.config import fileConfig
import os

from alembic import context
from sqlalchemy import engine_from_config, pool
from dotenv import load_dotenv

from app.db.base import Base
from app.core.config import settings

# incidents / incident_votes / historical_incident_patterns 등록
import app.db.models  # noqa: F401

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def _database_url() -> str:
    # .env 의 DATABASE_URL 우선, 없으면 앱 기본값(sqlite)
    load_dotenv()
    return os.getenv("DATABASE_URL") or settings.DATABASE_URL


def _configure_options(url: str) -> dict:
    return {
        "target_metadata": target_metadata,
        "compare_type": True,
        # sqlite 는 ALTER TABLE 이 제한적이라 batch 모드로 재생성
        "render_as_batch": url.startswith("sqlite"),
    }


config.set_main_option("sqlalchemy.url", _database_url())


def run_migrations_offline() -> None:
    url = config.get_main_option("sqlalchemy.url")
    context.configure(
        url=url,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **_configure_options(url),
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    connectable = engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    url = config.get_main_option("sqlalchemy.url")
    with connectable.connect() as connection:
        context.configure(connection=connection, **_configure_options(url))
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
