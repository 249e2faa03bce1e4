from .gotrue_primary_credential_verifier import GoTruePrimaryCredentialVerifier
from .reject_all_primary_credential_verifier import RejectAllPrimaryCredentialVerifier

__all__ = [
    "GoTruePrimaryCredentialVerifier",
    "RejectAllPrimaryCredentialVerifier",
]
