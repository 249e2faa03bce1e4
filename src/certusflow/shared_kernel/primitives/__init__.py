from .user_id import UserId

__all__ = [
    "UserId",
]
