from relaychat.models.user import User

__all__ = [
    "User",
]
