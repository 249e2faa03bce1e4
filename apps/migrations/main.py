from __future__ import annotations

import argparse
import logging
import os
from pathlib import Path
from typing import Mapping

from psycopg.conninfo import conninfo_to_dict
from sqlalchemy import create_engine, text
from sqlalchemy.engine import URL, Connection
from sqlalchemy.engine.url import make_url

from alembic import command
from alembic.config import Config

log = logging.getLogger(__name__)

_IDENTITY_PG_DSN_ENV = "IDENTITY_PG_DSN"
_DEFAULT_LOCK_KEY = 71402951337
_POSTGRES_URL_PREFIXES: tuple[str, ...] = (
    "postgresql+psycopg://",
    "postgresql://",
    "postgres://",
)


def _build_parser() -> argparse.ArgumentParser:
    """
    Build CLI parser for fail-fast Alembic migration runner.

    Docs:
      - docs/architecture/identity/identity-2fa-device-trust-v1.md
    Related:
      - alembic.ini
      - alembic/env.py
    """
    parser = argparse.ArgumentParser(prog="certusflow-migrations")
    parser.add_argument(
        "--dsn",
        default="",
        help=f"Postgres DSN. Falls back to ${_IDENTITY_PG_DSN_ENV} when omitted.",
    )
    parser.add_argument(
        "--lock-key",
        type=int,
        default=_DEFAULT_LOCK_KEY,
        help="Advisory lock key used with pg_advisory_lock during migration upgrade.",
    )
    return parser


def _resolve_dsn(*, arg_dsn: str, environ: Mapping[str, str]) -> str:
    dsn = arg_dsn.strip() or environ.get(_IDENTITY_PG_DSN_ENV, "").strip()
    if not dsn:
        raise ValueError(f"Migration DSN is required via --dsn or {_IDENTITY_PG_DSN_ENV}")
    return dsn


def _build_alembic_config(*, repo_root: Path) -> Config:
    """
    Build Alembic configuration for `alembic upgrade head` execution.

    Args:
        repo_root: Repository root path.
    Returns:
        Config: Ready-to-run Alembic configuration.
    Assumptions:
        `alembic.ini` and `alembic/` live in repository root.
    Raises:
        ValueError: If alembic.ini is missing.
    Side Effects:
        None.
    """
    alembic_ini = repo_root / "alembic.ini"
    if not alembic_ini.exists():
        raise ValueError(f"Missing Alembic config file: {alembic_ini}")

    config = Config(str(alembic_ini))
    config.set_main_option("script_location", str(repo_root / "alembic"))
    return config


def _upgrade_head_under_lock(*, config: Config, sqlalchemy_url: URL, lock_key: int) -> None:
    """
    Run `alembic upgrade head` while holding Postgres advisory lock.

    Args:
        config: Prepared Alembic config.
        sqlalchemy_url: SQLAlchemy URL built from URL DSN or libpq conninfo.
        lock_key: Advisory lock key.
    Returns:
        None.
    Assumptions:
        Advisory lock must be held on the same connection used by Alembic.
    Raises:
        Exception: Any DB or Alembic failure is propagated for fail-fast startup.
    Side Effects:
        Applies identity 2FA schema migrations.
    """
    engine = create_engine(sqlalchemy_url, pool_pre_ping=True)
    with engine.connect() as connection:
        log.info("migrations acquiring pg_advisory_lock lock_key=%s", lock_key)
        connection.execute(text("SELECT pg_advisory_lock(:lock_key)"), {"lock_key": lock_key})
        try:
            config.attributes["connection"] = connection
            log.info("migrations running alembic upgrade head")
            command.upgrade(config, "head")
            connection.commit()
            log.info("migrations applied")
        except Exception:
            connection.rollback()
            raise
        finally:
            _release_pg_advisory_lock(connection=connection, lock_key=lock_key)
            connection.commit()


def _release_pg_advisory_lock(*, connection: Connection, lock_key: int) -> None:
    log.info("migrations releasing pg_advisory_lock lock_key=%s", lock_key)
    connection.execute(text("SELECT pg_advisory_unlock(:lock_key)"), {"lock_key": lock_key})


def _to_sqlalchemy_psycopg_url(*, dsn: str) -> URL:
    """
    Normalize DSN to SQLAlchemy psycopg URL from URL DSN or libpq conninfo.

    Args:
        dsn: Raw Postgres DSN, the same value identity runtime passes to psycopg.
    Returns:
        URL: SQLAlchemy URL using `postgresql+psycopg` dialect.
    Assumptions:
        DSN can be PostgreSQL URL or libpq conninfo keyword-value string.
    Raises:
        ValueError: If DSN is empty or unsupported.
    Side Effects:
        None.
    """
    normalized = dsn.strip()
    if not normalized:
        raise ValueError("Postgres DSN cannot be empty")
    if normalized.startswith(_POSTGRES_URL_PREFIXES):
        parsed_url = make_url(normalized)
        if parsed_url.drivername not in {"postgresql", "postgres", "postgresql+psycopg"}:
            raise ValueError("Postgres URL DSN must use postgresql:// or postgres:// scheme")
        return parsed_url.set(drivername="postgresql+psycopg")
    return _to_sqlalchemy_url_from_conninfo_dsn(conninfo_dsn=normalized)


def _to_sqlalchemy_url_from_conninfo_dsn(*, conninfo_dsn: str) -> URL:
    """
    Convert libpq conninfo DSN to SQLAlchemy URL with psycopg driver.

    Args:
        conninfo_dsn: libpq DSN in keyword-value format (`host=... user=... password=...`).
    Returns:
        URL: SQLAlchemy URL with parsed auth/host/database/query components.
    Assumptions:
        `psycopg.conninfo.conninfo_to_dict` validates conninfo syntax.
    Raises:
        ValueError: If conninfo DSN is invalid or port is not numeric.
    Side Effects:
        None.
    """
    try:
        conninfo_fields = conninfo_to_dict(conninfo_dsn)
    except Exception as error:  # noqa: BLE001
        raise ValueError("Postgres DSN must be URL or libpq conninfo format") from error

    raw_port = str(conninfo_fields.pop("port", "")).strip()
    resolved_port: int | None = None
    if raw_port:
        try:
            resolved_port = int(raw_port)
        except ValueError as error:
            raise ValueError("Conninfo port must be numeric when provided") from error

    resolved_database = str(conninfo_fields.pop("dbname", "")).strip() or None
    query = {
        key: str(value)
        for key, value in sorted(conninfo_fields.items())
        if key not in {"host", "hostaddr", "password", "user"} and str(value)
    }
    resolved_host = str(
        conninfo_fields.get("host", conninfo_fields.get("hostaddr", ""))
    ).strip() or None

    return URL.create(
        "postgresql+psycopg",
        username=str(conninfo_fields.get("user", "")).strip() or None,
        password=str(conninfo_fields.get("password", "")).strip() or None,
        host=resolved_host,
        port=resolved_port,
        database=resolved_database,
        query=query,
    )


def main(argv: list[str] | None = None) -> int:
    """
    Run fail-fast migration flow with advisory lock and `alembic upgrade head`.

    Args:
        argv: Optional CLI argument list without program name.
    Returns:
        int: Zero on success, non-zero on failure.
    Assumptions:
        Caller expects startup to fail immediately when migrations fail.
    Raises:
        None.
    Side Effects:
        Reads environment, connects to Postgres, applies migrations, logs status.

    Docs:
      - docs/architecture/identity/identity-2fa-device-trust-v1.md
    Related:
      - alembic/env.py
      - alembic/versions/20261019_0001_identity_2fa_device_trust_v1.py
    """
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    args = _build_parser().parse_args(argv)

    try:
        dsn = _resolve_dsn(arg_dsn=args.dsn, environ=os.environ)
        sqlalchemy_url = _to_sqlalchemy_psycopg_url(dsn=dsn)
        repo_root = Path(__file__).resolve().parents[2]
        config = _build_alembic_config(repo_root=repo_root)
        _upgrade_head_under_lock(
            config=config,
            sqlalchemy_url=sqlalchemy_url,
            lock_key=args.lock_key,
        )
    except Exception:  # noqa: BLE001
        log.exception("migrations failed")
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
