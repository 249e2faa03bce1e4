from __future__ import annotations

import os

from sqlalchemy import engine_from_config, pool
from sqlalchemy.engine import Connection

from alembic import context

config = context.config

target_metadata = None

_IDENTITY_PG_DSN_ENV = "IDENTITY_PG_DSN"


def _resolve_sqlalchemy_url() -> str | None:
    """
    Resolve SQLAlchemy URL from `alembic.ini` or `IDENTITY_PG_DSN` environment fallback.

    Args:
        None.
    Returns:
        str | None: Configured URL, or None when neither source is set.
    Assumptions:
        Environment DSN uses URL form; conninfo form is handled by `apps.migrations.main`.
    Raises:
        None.
    Side Effects:
        Reads process environment.
    """
    url = config.get_main_option("sqlalchemy.url")
    if url:
        return url
    env_dsn = os.environ.get(_IDENTITY_PG_DSN_ENV, "").strip()
    if not env_dsn:
        return None
    if env_dsn.startswith("postgresql://"):
        return "postgresql+psycopg://" + env_dsn[len("postgresql://"):]
    if env_dsn.startswith("postgres://"):
        return "postgresql+psycopg://" + env_dsn[len("postgres://"):]
    return env_dsn


def run_migrations_offline() -> None:
    """
    Run Alembic migrations in offline mode.

    Docs:
      - docs/architecture/identity/identity-2fa-device-trust-v1.md
    Related:
      - alembic/versions/20261019_0001_identity_2fa_device_trust_v1.py
      - apps/migrations/main.py
    """
    context.configure(
        url=_resolve_sqlalchemy_url(),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """
    Run Alembic migrations in online mode using injected or constructed SQLAlchemy connection.

    Args:
        None.
    Returns:
        None.
    Assumptions:
        Optional injected connection comes from `apps.migrations.main` advisory-lock flow.
    Raises:
        ValueError: If no connection is injected and no URL can be resolved.
    Side Effects:
        Opens DB connection (when not injected) and applies schema changes.
    """
    injected_connection = config.attributes.get("connection")
    if isinstance(injected_connection, Connection):
        context.configure(
            connection=injected_connection,
            target_metadata=target_metadata,
        )
        with context.begin_transaction():
            context.run_migrations()
        return

    url = _resolve_sqlalchemy_url()
    if url is None:
        raise ValueError(f"sqlalchemy.url or {_IDENTITY_PG_DSN_ENV} must be set")
    section = dict(config.get_section(config.config_ini_section, {}))
    section["sqlalchemy.url"] = url
    connectable = engine_from_config(
        section,
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )

    with connectable.connect() as connection:
        context.configure(connection=connection, target_metadata=target_metadata)
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
