from .client_context import resolve_client_context
from .current_user import RequireCurrentUserDependency

__all__ = [
    "RequireCurrentUserDependency",
    "resolve_client_context",
]
