# Models package (re-export feature modules for stable imports)
from .users.user import User
from .users.session import UserSession
from .auth.challenge import VerificationChallenge, PROVIDER_MANAGED_HASH

__all__ = [
    "User",
    "UserSession",
    "VerificationChallenge",
    "PROVIDER_MANAGED_HASH",
]
