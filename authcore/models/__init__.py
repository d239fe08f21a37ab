from authcore.models.refresh_token import RefreshToken
from authcore.models.user import Role, User

__all__ = [
    "RefreshToken",
    "Role",
    "User",
]
