from .errors import (
    certusflow_error_handler,
    register_api_error_handlers,
    request_validation_error_handler,
)

__all__ = [
    "certusflow_error_handler",
    "register_api_error_handlers",
    "request_validation_error_handler",
]
