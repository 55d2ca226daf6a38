import logging
from datetime import timedelta
from typing import Any, Dict, Optional

import jwt

from ...application.ports.token_signer import TokenSigner
from ...exceptions import ConfigurationError
from ...utils import utcnow

logger = logging.getLogger(__name__)


class JwtTokenSigner(TokenSigner):
    """HS256 access tokens; verified by signature and expiry only."""

    def __init__(self, secret: Optional[str], algorithm: str = "HS256") -> None:
        self._secret = secret
        self.algorithm = algorithm

    def _require_secret(self) -> str:
        if not self._secret:
            raise ConfigurationError("JWT_ACCESS_SECRET is not configured")
        return self._secret

    def sign_access_token(self, user_id: str, phone_number: str, expires_in: int) -> str:
        now = utcnow()
        to_encode = {
            "sub": user_id,
            "phoneNumber": phone_number,
            "type": "access",
            "iat": now,
            "exp": now + timedelta(seconds=expires_in),
        }
        return jwt.encode(to_encode, self._require_secret(), algorithm=self.algorithm)

    def verify_access_token(self, token: str) -> Dict[str, Any]:
        """Return the claims; raises jwt.InvalidTokenError when invalid or expired."""
        payload = jwt.decode(
            token,
            self._require_secret(),
            algorithms=[self.algorithm],
            options={"require": ["exp", "sub"]},
        )
        if payload.get("type") != "access":
            raise jwt.InvalidTokenError("Not an access token")
        return payload
