"""Alembic migration environment.

Reads DATABASE_URL from environment if set, automatically converting
the asyncpg URL to a sync psycopg2 URL for Alembic compatibility:
    postgresql+asyncpg://...  →  postgresql://...

Only the crm_risk schema is managed here; the crm schema belongs to the
CRM core and is read-only for this service.
"""
import os
from logging.config import fileConfig

from sqlalchemy import engine_from_config, pool
from alembic import context

from app.models.risk_assessment import SCHEMA, Base

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# Override sqlalchemy.url from DATABASE_URL env var (sync version)
db_url = os.environ.get("DATABASE_URL", "")
if db_url:
    # FastAPI uses postgresql+asyncpg://; Alembic needs plain postgresql://
    sync_url = (
        db_url
        .replace("postgresql+asyncpg://", "postgresql://")
        .replace("postgresql+psycopg2://", "postgresql://")
    )
    config.set_main_option("sqlalchemy.url", sync_url)

target_metadata = Base.metadata


def run_migrations_online() -> None:
    connectable = engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            include_schemas=True,
            version_table_schema=SCHEMA,
        )
        with context.begin_transaction():
            context.run_migrations()


run_migrations_online()
