from .certusflow_error import CertusflowError

__all__ = [
    "CertusflowError",
]
