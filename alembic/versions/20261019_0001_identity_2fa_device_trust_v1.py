"""Create identity 2FA, audit, and trusted device tables."""

from __future__ import annotations

from alembic import op

# revision identifiers, used by Alembic.
revision = "20261019_0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    """
    Apply identity 2FA and device-trust storage schema.

    Args:
        None.
    Returns:
        None.
    Assumptions:
        `user_id` values are opaque UUIDs owned by the external identity store.
    Raises:
        Exception: Postgres execution errors from Alembic runtime.
    Side Effects:
        Creates identity tables, constraints, and indexes.
    """
    op.execute(
        """
        CREATE TABLE IF NOT EXISTS user_2fa (
            user_id UUID PRIMARY KEY,
            totp_secret_enc BYTEA NOT NULL,
            enabled BOOLEAN NOT NULL DEFAULT FALSE,
            verified_at TIMESTAMPTZ NULL,
            backup_codes TEXT[] NOT NULL DEFAULT '{}',
            updated_at TIMESTAMPTZ NOT NULL,
            CONSTRAINT user_2fa_enabled_verified_chk
                CHECK (NOT enabled OR verified_at IS NOT NULL),
            CONSTRAINT user_2fa_pending_backup_codes_chk
                CHECK (enabled OR cardinality(backup_codes) = 0)
        )
        """
    )

    op.execute(
        """
        CREATE TABLE IF NOT EXISTS user_2fa_audit (
            event_id UUID PRIMARY KEY,
            user_id UUID NOT NULL,
            event_type TEXT NOT NULL,
            success BOOLEAN NOT NULL,
            failure_kind TEXT NULL,
            ip_address TEXT NULL,
            user_agent TEXT NULL,
            created_at TIMESTAMPTZ NOT NULL,
            CONSTRAINT user_2fa_audit_event_type_chk
                CHECK (
                    event_type IN (
                        'setup_initiated',
                        'verify_attempt',
                        'enabled',
                        'disable_attempt',
                        'disabled',
                        'login_failed',
                        'login_success'
                    )
                ),
            CONSTRAINT user_2fa_audit_failure_kind_chk
                CHECK (
                    failure_kind IS NULL
                    OR failure_kind IN ('input_format', 'authorization', 'state', 'integrity')
                )
        )
        """
    )
    op.execute(
        """
        CREATE INDEX IF NOT EXISTS idx_user_2fa_audit_user_created
            ON user_2fa_audit (user_id, created_at)
        """
    )

    op.execute(
        """
        CREATE TABLE IF NOT EXISTS user_trusted_devices (
            device_id UUID PRIMARY KEY,
            user_id UUID NOT NULL,
            device_fingerprint TEXT NOT NULL,
            token_hash TEXT NOT NULL,
            device_name TEXT NOT NULL,
            ip_address TEXT NULL,
            user_agent TEXT NULL,
            created_at TIMESTAMPTZ NOT NULL,
            expires_at TIMESTAMPTZ NOT NULL,
            last_used_at TIMESTAMPTZ NOT NULL,
            CONSTRAINT user_trusted_devices_user_fingerprint_uq
                UNIQUE (user_id, device_fingerprint),
            CONSTRAINT user_trusted_devices_expiry_chk
                CHECK (expires_at > created_at)
        )
        """
    )
    op.execute(
        """
        CREATE INDEX IF NOT EXISTS idx_user_trusted_devices_expires_at
            ON user_trusted_devices (expires_at)
        """
    )


def downgrade() -> None:
    """
    Drop identity 2FA and device-trust storage schema.

    Args:
        None.
    Returns:
        None.
    Assumptions:
        Downgrade is used only on disposable environments.
    Raises:
        Exception: Postgres execution errors from Alembic runtime.
    Side Effects:
        Drops identity 2FA tables and all stored secrets.
    """
    op.execute("DROP TABLE IF EXISTS user_trusted_devices")
    op.execute("DROP INDEX IF EXISTS idx_user_2fa_audit_user_created")
    op.execute("DROP TABLE IF EXISTS user_2fa_audit")
    op.execute("DROP TABLE IF EXISTS user_2fa")
