from __future__ import annotations

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from certusflow.contexts.identity.adapters.inbound.api.deps.client_context import (
    resolve_client_context,
)
from certusflow.contexts.identity.adapters.inbound.api.deps.current_user import (
    RequireCurrentUserDependency,
)
from certusflow.contexts.identity.application.ports.current_user import CurrentUserPrincipal
from certusflow.contexts.identity.application.services.two_factor_audit_recorder import (
    ClientContext,
)
from certusflow.contexts.identity.application.use_cases import (
    ManageTrustedDevicesUseCase,
    TrustedDeviceView,
)
from certusflow.platform.errors import CertusflowError


class TrustedDeviceResponse(BaseModel):
    """
    TrustedDeviceResponse — one trusted device row in `GET /2fa/trusted-devices`.

    Docs:
      - docs/architecture/identity/identity-2fa-device-trust-v1.md
    Related:
      - src/certusflow/contexts/identity/application/use_cases/manage_trusted_devices.py
    """

    device_id: UUID
    device_name: str
    ip_address: str | None
    created_at: datetime
    last_used_at: datetime
    expires_at: datetime
    is_current: bool


class TrustedDeviceListResponse(BaseModel):
    items: list[TrustedDeviceResponse]


class TrustedDeviceRevokeResponse(BaseModel):
    revoked: bool


class TrustedDeviceRevokeOthersResponse(BaseModel):
    revoked_count: int


def build_trusted_devices_router(
    *,
    manage_use_case: ManageTrustedDevicesUseCase,
    current_user_dependency: RequireCurrentUserDependency,
) -> APIRouter:
    """
    Build router exposing trusted device self-service endpoints.

    Args:
        manage_use_case: Trusted device list/revoke use-case.
        current_user_dependency: Auth dependency for current user principal.
    Returns:
        APIRouter: Router with `/2fa/trusted-devices` endpoints.
    Assumptions:
        Current client is identified by the same user agent used at issue time.
    Raises:
        ValueError: If required dependencies are missing.
    Side Effects:
        None.
    """
    if manage_use_case is None:  # type: ignore[truthy-bool]
        raise ValueError("build_trusted_devices_router requires manage_use_case")
    if current_user_dependency is None:  # type: ignore[truthy-bool]
        raise ValueError("build_trusted_devices_router requires current_user_dependency")

    router = APIRouter(tags=["identity"])

    @router.get("/2fa/trusted-devices", response_model=TrustedDeviceListResponse)
    def get_trusted_devices(
        principal: CurrentUserPrincipal = Depends(current_user_dependency),
        client: ClientContext = Depends(resolve_client_context),
    ) -> TrustedDeviceListResponse:
        views = manage_use_case.list_devices(
            user_id=principal.user_id,
            client_identity=client.user_agent,
        )
        return TrustedDeviceListResponse(items=[_to_response(view=view) for view in views])

    @router.delete(
        "/2fa/trusted-devices/{device_id}",
        response_model=TrustedDeviceRevokeResponse,
    )
    def delete_trusted_device(
        device_id: UUID,
        principal: CurrentUserPrincipal = Depends(current_user_dependency),
    ) -> TrustedDeviceRevokeResponse:
        """
        Revoke one trusted device of the current user.

        Args:
            device_id: Trusted device identifier.
            principal: Authenticated current user.
        Returns:
            TrustedDeviceRevokeResponse: Revoked marker.
        Assumptions:
            Devices of other users are indistinguishable from unknown ids.
        Raises:
            CertusflowError: `not_found` when device does not belong to the user.
        Side Effects:
            Deletes one trusted device row.
        """
        revoked = manage_use_case.revoke_device(user_id=principal.user_id, device_id=device_id)
        if not revoked:
            raise CertusflowError.not_found(resource="Trusted device", resource_id=device_id)
        return TrustedDeviceRevokeResponse(revoked=True)

    @router.post(
        "/2fa/trusted-devices/revoke-others",
        response_model=TrustedDeviceRevokeOthersResponse,
    )
    def post_revoke_other_trusted_devices(
        principal: CurrentUserPrincipal = Depends(current_user_dependency),
        client: ClientContext = Depends(resolve_client_context),
    ) -> TrustedDeviceRevokeOthersResponse:
        revoked_count = manage_use_case.revoke_other_devices(
            user_id=principal.user_id,
            client_identity=client.user_agent,
        )
        return TrustedDeviceRevokeOthersResponse(revoked_count=revoked_count)

    return router


def _to_response(*, view: TrustedDeviceView) -> TrustedDeviceResponse:
    device = view.device
    return TrustedDeviceResponse(
        device_id=device.device_id,
        device_name=device.device_name,
        ip_address=device.ip_address,
        created_at=device.created_at,
        last_used_at=device.last_used_at,
        expires_at=device.expires_at,
        is_current=view.is_current,
    )
