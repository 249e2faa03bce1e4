"""
Composition helpers for identity 2FA and device-trust API module.

Docs: docs/architecture/identity/identity-2fa-device-trust-v1.md
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Literal, Mapping

from fastapi import APIRouter
from prometheus_client import REGISTRY, CollectorRegistry, Counter

from apps.api.routes import build_identity_router as build_identity_api_router
from certusflow.contexts.identity.adapters.inbound.api.deps import RequireCurrentUserDependency
from certusflow.contexts.identity.adapters.outbound import (
    AesGcmEnvelopeTwoFactorSecretCipher,
    GoTruePrimaryCredentialVerifier,
    Hs256JwtCodec,
    InMemoryIdentityTrustedDeviceRepository,
    InMemoryIdentityTwoFactorAuditLog,
    InMemoryIdentityTwoFactorRepository,
    JwtBearerCurrentUser,
    PostgresIdentityTrustedDeviceRepository,
    PostgresIdentityTwoFactorAuditLog,
    PostgresIdentityTwoFactorRepository,
    PsycopgIdentityPostgresGateway,
    PyOtpTwoFactorTotpProvider,
    RejectAllPrimaryCredentialVerifier,
    Sha256TwoFactorBackupCodeCodec,
    SystemIdentityClock,
)
from certusflow.contexts.identity.application import (
    IdentityClock,
    PrimaryCredentialVerifier,
    TotpCodeChecker,
    TrustedDeviceLedger,
    TrustedDeviceRepository,
    TwoFactorAuditHooks,
    TwoFactorAuditLog,
    TwoFactorAuditRecorder,
    TwoFactorRepository,
)
from certusflow.contexts.identity.application.use_cases import (
    DisableTwoFactorTotpUseCase,
    GetTwoFactorStatusUseCase,
    LoginTwoFactorChallengeUseCase,
    ManageTrustedDevicesUseCase,
    SetupTwoFactorTotpUseCase,
    TwoFactorLoginHooks,
    VerifyTwoFactorTotpUseCase,
)

log = logging.getLogger(__name__)

_ENV_NAME_KEY = "CERTUSFLOW_ENV"
_IDENTITY_FAIL_FAST_KEY = "IDENTITY_FAIL_FAST"
_IDENTITY_2FA_KEK_B64_KEY = "IDENTITY_2FA_KEK_B64"
_IDENTITY_JWT_SECRET_KEY = "IDENTITY_JWT_SECRET"
_IDENTITY_PRIMARY_AUTH_URL_KEY = "IDENTITY_PRIMARY_AUTH_URL"
_IDENTITY_PRIMARY_AUTH_API_KEY_KEY = "IDENTITY_PRIMARY_AUTH_API_KEY"
_IDENTITY_PG_DSN_KEY = "IDENTITY_PG_DSN"
_IDENTITY_2FA_ISSUER_KEY = "IDENTITY_2FA_ISSUER"
_IDENTITY_TOTP_VALID_WINDOW_KEY = "IDENTITY_TOTP_VALID_WINDOW"
_IDENTITY_2FA_BACKUP_CODE_COUNT_KEY = "IDENTITY_2FA_BACKUP_CODE_COUNT"
_IDENTITY_TRUSTED_DEVICE_TTL_DAYS_KEY = "IDENTITY_TRUSTED_DEVICE_TTL_DAYS"
_IDENTITY_COOKIE_NAME_KEY = "IDENTITY_COOKIE_NAME"
_IDENTITY_TRUSTED_DEVICE_COOKIE_NAME_KEY = "IDENTITY_TRUSTED_DEVICE_COOKIE_NAME"
_IDENTITY_COOKIE_PATH_KEY = "IDENTITY_COOKIE_PATH"
_IDENTITY_COOKIE_SAMESITE_KEY = "IDENTITY_COOKIE_SAMESITE"
_IDENTITY_COOKIE_SECURE_KEY = "IDENTITY_COOKIE_SECURE"
_ALLOWED_ENVS = ("dev", "prod", "test")
_ALLOWED_SAMESITE = ("lax", "none", "strict")


@dataclass(frozen=True, slots=True)
class IdentityRuntimeSettings:
    """
    IdentityRuntimeSettings — runtime policy for identity 2FA wiring.

    Docs:
      - docs/architecture/identity/identity-2fa-device-trust-v1.md
    Related:
      - apps/api/wiring/modules/identity.py
      - apps/api/main/app.py
    """

    env_name: str
    fail_fast: bool
    kek_b64: str
    identity_jwt_secret: str
    primary_auth_url: str
    primary_auth_api_key: str
    postgres_dsn: str
    issuer: str
    totp_valid_window: int
    backup_code_count: int
    trusted_device_ttl_days: int
    cookie_name: str
    trusted_device_cookie_name: str
    cookie_secure: bool
    cookie_samesite: Literal["lax", "strict", "none"]
    cookie_path: str

    def __post_init__(self) -> None:
        """
        Validate identity runtime settings invariants.

        Args:
            None.
        Returns:
            None.
        Assumptions:
            Values are normalized by resolver before dataclass construction.
        Raises:
            ValueError: If one of invariants is violated.
        Side Effects:
            None.
        """
        if self.env_name not in _ALLOWED_ENVS:
            raise ValueError(
                f"IdentityRuntimeSettings.env_name must be one of {_ALLOWED_ENVS}, "
                f"got {self.env_name!r}"
            )
        if not self.kek_b64:
            raise ValueError("IdentityRuntimeSettings.kek_b64 must be non-empty")
        if not self.identity_jwt_secret:
            raise ValueError("IdentityRuntimeSettings.identity_jwt_secret must be non-empty")
        if bool(self.primary_auth_url) != bool(self.primary_auth_api_key):
            raise ValueError(
                "IdentityRuntimeSettings.primary_auth_url and primary_auth_api_key "
                "must be set together"
            )
        if not self.issuer:
            raise ValueError("IdentityRuntimeSettings.issuer must be non-empty")
        if self.totp_valid_window < 0:
            raise ValueError("IdentityRuntimeSettings.totp_valid_window must be >= 0")
        if self.backup_code_count <= 0:
            raise ValueError("IdentityRuntimeSettings.backup_code_count must be > 0")
        if self.trusted_device_ttl_days <= 0:
            raise ValueError("IdentityRuntimeSettings.trusted_device_ttl_days must be > 0")
        if not self.cookie_name:
            raise ValueError("IdentityRuntimeSettings.cookie_name must be non-empty")
        if not self.trusted_device_cookie_name:
            raise ValueError(
                "IdentityRuntimeSettings.trusted_device_cookie_name must be non-empty"
            )
        if self.cookie_name == self.trusted_device_cookie_name:
            raise ValueError("IdentityRuntimeSettings cookie names must differ")
        if self.cookie_samesite not in _ALLOWED_SAMESITE:
            raise ValueError(
                "IdentityRuntimeSettings.cookie_samesite must be one of "
                f"{_ALLOWED_SAMESITE}, got {self.cookie_samesite!r}"
            )
        if not self.cookie_path:
            raise ValueError("IdentityRuntimeSettings.cookie_path must be non-empty")


class IdentityTwoFactorMetrics:
    """
    Prometheus metrics bundle for identity 2FA login flow and audit sink.

    Docs:
      - docs/architecture/identity/identity-2fa-device-trust-v1.md
    Related:
      - src/certusflow/contexts/identity/application/use_cases/login_two_factor_challenge.py
      - src/certusflow/contexts/identity/application/services/two_factor_audit_recorder.py
      - apps/api/main/app.py
    """

    def __init__(self, *, registry: CollectorRegistry | None = None) -> None:
        """
        Register identity 2FA counters in provided or default Prometheus registry.

        Args:
            registry: Optional registry for tests or app-owned exposition.
        Returns:
            None.
        Assumptions:
            One metrics bundle per registry.
        Raises:
            ValueError: Propagated by Prometheus client on duplicate metric names.
        Side Effects:
            Registers metrics in target registry.
        """
        self.registry = registry or REGISTRY
        self.login_success_total = Counter(
            "identity_2fa_login_success_total",
            "Identity logins completed with a session",
            registry=self.registry,
        )
        self.login_failure_total = Counter(
            "identity_2fa_login_failure_total",
            "Identity logins rejected at primary or second factor",
            registry=self.registry,
        )
        self.trusted_device_bypass_total = Counter(
            "identity_2fa_trusted_device_bypass_total",
            "Identity logins that skipped the second factor via trusted device",
            registry=self.registry,
        )
        self.backup_code_consumed_total = Counter(
            "identity_2fa_backup_code_consumed_total",
            "Identity backup codes consumed at login",
            registry=self.registry,
        )
        self.primary_session_revoked_total = Counter(
            "identity_2fa_primary_session_revoked_total",
            "Primary provider sessions revoked after failed second factor",
            registry=self.registry,
        )
        self.audit_write_failures_total = Counter(
            "identity_2fa_audit_write_failures_total",
            "Identity 2FA audit events lost because the sink failed",
            registry=self.registry,
        )

    def login_hooks(self) -> TwoFactorLoginHooks:
        return TwoFactorLoginHooks(
            on_login_success=self.login_success_total.inc,
            on_login_failure=self.login_failure_total.inc,
            on_trusted_device_bypass=self.trusted_device_bypass_total.inc,
            on_backup_code_consumed=self.backup_code_consumed_total.inc,
            on_primary_session_revoked=self.primary_session_revoked_total.inc,
        )

    def audit_hooks(self) -> TwoFactorAuditHooks:
        return TwoFactorAuditHooks(on_audit_write_failed=self.audit_write_failures_total.inc)


@dataclass(frozen=True, slots=True)
class IdentityApiModule:
    """
    IdentityApiModule — wired identity router plus shared auth dependency and metrics.

    Docs:
      - docs/architecture/identity/identity-2fa-device-trust-v1.md
    Related:
      - apps/api/main/app.py
    """

    router: APIRouter
    current_user_dependency: RequireCurrentUserDependency
    metrics: IdentityTwoFactorMetrics


def build_identity_api_module(
    *,
    environ: Mapping[str, str],
    registry: CollectorRegistry | None = None,
) -> IdentityApiModule:
    """
    Build fully wired identity module from environment settings.

    Docs: docs/architecture/identity/identity-2fa-device-trust-v1.md
    Related: apps.api.routes.identity,
      certusflow.contexts.identity.adapters.outbound,
      apps.api.main.app

    Args:
        environ: Runtime environment mapping.
        registry: Optional Prometheus registry for identity counters.
    Returns:
        IdentityApiModule: Router, current-user dependency and metrics bundle.
    Assumptions:
        Fail-fast policy and secrets are resolved by `_resolve_identity_runtime_settings`.
    Raises:
        ValueError: If KEK is missing/invalid or fail-fast settings require missing secrets.
    Side Effects:
        Registers Prometheus counters; creates HTTP client for the primary provider.
    """
    settings = _resolve_identity_runtime_settings(environ=environ)
    metrics = IdentityTwoFactorMetrics(registry=registry)
    clock = SystemIdentityClock()

    secret_cipher = AesGcmEnvelopeTwoFactorSecretCipher(kek_b64=settings.kek_b64)
    totp_provider = PyOtpTwoFactorTotpProvider(valid_window=settings.totp_valid_window)
    backup_code_codec = Sha256TwoFactorBackupCodeCodec()
    two_factor_repository, audit_log, trusted_device_repository = _build_repositories(
        settings=settings
    )
    audit_recorder = TwoFactorAuditRecorder(
        audit_log=audit_log,
        clock=clock,
        hooks=metrics.audit_hooks(),
    )
    totp_checker = TotpCodeChecker(
        secret_cipher=secret_cipher,
        totp_provider=totp_provider,
        clock=clock,
    )
    trusted_device_ledger = TrustedDeviceLedger(
        repository=trusted_device_repository,
        clock=clock,
        ttl_days=settings.trusted_device_ttl_days,
    )

    jwt_codec = Hs256JwtCodec(secret_key=settings.identity_jwt_secret, clock=clock)
    current_user_dependency = RequireCurrentUserDependency(
        current_user=JwtBearerCurrentUser(jwt_codec=jwt_codec),
        cookie_name=settings.cookie_name,
    )

    router = build_identity_api_router(
        two_factor_setup=SetupTwoFactorTotpUseCase(
            repository=two_factor_repository,
            secret_cipher=secret_cipher,
            totp_provider=totp_provider,
            audit_recorder=audit_recorder,
            clock=clock,
            issuer=settings.issuer,
        ),
        two_factor_verify=VerifyTwoFactorTotpUseCase(
            repository=two_factor_repository,
            totp_checker=totp_checker,
            backup_code_codec=backup_code_codec,
            audit_recorder=audit_recorder,
            clock=clock,
            backup_code_count=settings.backup_code_count,
        ),
        two_factor_disable=DisableTwoFactorTotpUseCase(
            repository=two_factor_repository,
            totp_checker=totp_checker,
            audit_recorder=audit_recorder,
        ),
        two_factor_status=GetTwoFactorStatusUseCase(repository=two_factor_repository),
        two_factor_login=LoginTwoFactorChallengeUseCase(
            primary_verifier=_build_primary_verifier(settings=settings, clock=clock),
            repository=two_factor_repository,
            totp_checker=totp_checker,
            backup_code_codec=backup_code_codec,
            trusted_device_ledger=trusted_device_ledger,
            audit_recorder=audit_recorder,
            clock=clock,
            hooks=metrics.login_hooks(),
        ),
        manage_trusted_devices=ManageTrustedDevicesUseCase(ledger=trusted_device_ledger),
        current_user_dependency=current_user_dependency,
        cookie_name=settings.cookie_name,
        trusted_device_cookie_name=settings.trusted_device_cookie_name,
        cookie_secure=settings.cookie_secure,
        cookie_samesite=settings.cookie_samesite,
        cookie_path=settings.cookie_path,
    )
    log.info(
        "identity 2fa module wired env=%s fail_fast=%s storage=%s primary_auth=%s",
        settings.env_name,
        settings.fail_fast,
        "postgres" if settings.postgres_dsn else "in_memory",
        "gotrue" if settings.primary_auth_url else "reject_all",
    )
    return IdentityApiModule(
        router=router,
        current_user_dependency=current_user_dependency,
        metrics=metrics,
    )


def _build_repositories(
    *,
    settings: IdentityRuntimeSettings,
) -> tuple[TwoFactorRepository, TwoFactorAuditLog, TrustedDeviceRepository]:
    """
    Build storage adapters based on runtime DSN availability.

    Args:
        settings: Resolved runtime settings.
    Returns:
        tuple[TwoFactorRepository, TwoFactorAuditLog, TrustedDeviceRepository]: Adapters.
    Assumptions:
        Postgres DSN is optional in dev/test, in-memory fallback is acceptable for local runs.
    Raises:
        ValueError: If Postgres DSN is malformed for gateway construction.
    Side Effects:
        None.
    """
    if settings.postgres_dsn:
        gateway = PsycopgIdentityPostgresGateway(dsn=settings.postgres_dsn)
        return (
            PostgresIdentityTwoFactorRepository(gateway=gateway),
            PostgresIdentityTwoFactorAuditLog(gateway=gateway),
            PostgresIdentityTrustedDeviceRepository(gateway=gateway),
        )
    return (
        InMemoryIdentityTwoFactorRepository(),
        InMemoryIdentityTwoFactorAuditLog(),
        InMemoryIdentityTrustedDeviceRepository(),
    )


def _build_primary_verifier(
    *,
    settings: IdentityRuntimeSettings,
    clock: IdentityClock,
) -> PrimaryCredentialVerifier:
    if settings.primary_auth_url:
        return GoTruePrimaryCredentialVerifier(
            base_url=settings.primary_auth_url,
            api_key=settings.primary_auth_api_key,
            clock=clock,
        )
    log.warning("identity primary auth url is not configured, logins are rejected")
    return RejectAllPrimaryCredentialVerifier()


def _resolve_identity_runtime_settings(*, environ: Mapping[str, str]) -> IdentityRuntimeSettings:
    """
    Resolve identity runtime settings with fail-fast policy and defaults.

    Args:
        environ: Runtime environment mapping.
    Returns:
        IdentityRuntimeSettings: Validated normalized settings.
    Assumptions:
        Missing `CERTUSFLOW_ENV` defaults to `dev`; KEK is required in every environment.
    Raises:
        ValueError: If env values are invalid or required secrets are missing.
    Side Effects:
        None.
    """
    env_name = _resolve_env_name(environ=environ)
    fail_fast = _resolve_fail_fast(environ=environ, env_name=env_name)

    kek_b64 = environ.get(_IDENTITY_2FA_KEK_B64_KEY, "").strip()
    if not kek_b64:
        raise ValueError(f"{_IDENTITY_2FA_KEK_B64_KEY} must be set")

    identity_jwt_secret = environ.get(_IDENTITY_JWT_SECRET_KEY, "").strip()
    primary_auth_url = environ.get(_IDENTITY_PRIMARY_AUTH_URL_KEY, "").strip()
    primary_auth_api_key = environ.get(_IDENTITY_PRIMARY_AUTH_API_KEY_KEY, "").strip()
    if fail_fast:
        for key, value in (
            (_IDENTITY_JWT_SECRET_KEY, identity_jwt_secret),
            (_IDENTITY_PRIMARY_AUTH_URL_KEY, primary_auth_url),
            (_IDENTITY_PRIMARY_AUTH_API_KEY_KEY, primary_auth_api_key),
        ):
            if not value:
                raise ValueError(f"{key} must be set when {_IDENTITY_FAIL_FAST_KEY}=true")

    cookie_samesite = _resolve_cookie_samesite(environ=environ)
    cookie_secure = _resolve_cookie_secure(environ=environ, env_name=env_name)
    return IdentityRuntimeSettings(
        env_name=env_name,
        fail_fast=fail_fast,
        kek_b64=kek_b64,
        identity_jwt_secret=identity_jwt_secret or "dev-identity-jwt-secret",
        primary_auth_url=primary_auth_url,
        primary_auth_api_key=primary_auth_api_key,
        postgres_dsn=environ.get(_IDENTITY_PG_DSN_KEY, "").strip(),
        issuer=environ.get(_IDENTITY_2FA_ISSUER_KEY, "CertusFlow").strip(),
        totp_valid_window=_resolve_int(
            environ=environ,
            key=_IDENTITY_TOTP_VALID_WINDOW_KEY,
            default=1,
            minimum=0,
        ),
        backup_code_count=_resolve_int(
            environ=environ,
            key=_IDENTITY_2FA_BACKUP_CODE_COUNT_KEY,
            default=10,
            minimum=1,
        ),
        trusted_device_ttl_days=_resolve_int(
            environ=environ,
            key=_IDENTITY_TRUSTED_DEVICE_TTL_DAYS_KEY,
            default=30,
            minimum=1,
        ),
        cookie_name=environ.get(_IDENTITY_COOKIE_NAME_KEY, "certusflow_access_token").strip(),
        trusted_device_cookie_name=environ.get(
            _IDENTITY_TRUSTED_DEVICE_COOKIE_NAME_KEY,
            "trusted_device_token",
        ).strip(),
        cookie_secure=cookie_secure,
        cookie_samesite=cookie_samesite,
        cookie_path=environ.get(_IDENTITY_COOKIE_PATH_KEY, "/").strip(),
    )


def _resolve_env_name(*, environ: Mapping[str, str]) -> str:
    raw_env_name = environ.get(_ENV_NAME_KEY, "dev").strip().lower()
    if raw_env_name not in _ALLOWED_ENVS:
        raise ValueError(
            f"{_ENV_NAME_KEY} must be one of {_ALLOWED_ENVS}, got {raw_env_name!r}"
        )
    return raw_env_name


def _resolve_fail_fast(*, environ: Mapping[str, str], env_name: str) -> bool:
    """
    Resolve fail-fast policy for identity startup validation.

    Args:
        environ: Runtime environment mapping.
        env_name: Normalized environment name.
    Returns:
        bool: Effective fail-fast flag.
    Assumptions:
        Default is enabled for `prod` and disabled for `dev`/`test`.
    Raises:
        ValueError: If override value is not parseable as boolean.
    Side Effects:
        None.
    """
    raw_override = environ.get(_IDENTITY_FAIL_FAST_KEY, "").strip()
    if not raw_override:
        return env_name == "prod"
    return _parse_bool(raw_value=raw_override, key=_IDENTITY_FAIL_FAST_KEY)


def _resolve_cookie_secure(*, environ: Mapping[str, str], env_name: str) -> bool:
    raw_value = environ.get(_IDENTITY_COOKIE_SECURE_KEY, "").strip()
    if not raw_value:
        return env_name == "prod"
    return _parse_bool(raw_value=raw_value, key=_IDENTITY_COOKIE_SECURE_KEY)


def _resolve_cookie_samesite(*, environ: Mapping[str, str]) -> Literal["lax", "strict", "none"]:
    raw_samesite = environ.get(_IDENTITY_COOKIE_SAMESITE_KEY, "lax").strip().lower()
    if raw_samesite not in _ALLOWED_SAMESITE:
        raise ValueError(
            f"{_IDENTITY_COOKIE_SAMESITE_KEY} must be one of {_ALLOWED_SAMESITE}, "
            f"got {raw_samesite!r}"
        )
    return raw_samesite  # type: ignore[return-value]


def _resolve_int(*, environ: Mapping[str, str], key: str, default: int, minimum: int) -> int:
    """
    Resolve bounded integer env setting with fallback default.

    Args:
        environ: Runtime environment mapping.
        key: Environment variable key.
        default: Fallback integer.
        minimum: Inclusive lower bound.
    Returns:
        int: Parsed integer value.
    Assumptions:
        Empty env value means default should be used.
    Raises:
        ValueError: If value is not parseable or below minimum.
    Side Effects:
        None.
    """
    raw_value = environ.get(key, "").strip()
    if not raw_value:
        return default
    try:
        parsed = int(raw_value)
    except ValueError as error:
        raise ValueError(f"{key} must be integer, got {raw_value!r}") from error
    if parsed < minimum:
        raise ValueError(f"{key} must be >= {minimum}, got {parsed}")
    return parsed


def _parse_bool(*, raw_value: str, key: str) -> bool:
    normalized = raw_value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    raise ValueError(
        f"{key} must be a boolean literal (1/0/true/false/yes/no/on/off), got {raw_value!r}"
    )
