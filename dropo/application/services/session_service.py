import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional, Tuple

from ..ports.secret_hasher import SecretHasher
from ..ports.session_repo import SessionRepository
from ..ports.token_signer import TokenSigner
from ..ports.user_repo import UserRepository
from ...exceptions import (
    MalformedTokenError,
    RefreshTokenReuseError,
    SessionExpiredError,
    SessionNotFoundError,
)
from ...utils import generate_token, utcnow

logger = logging.getLogger(__name__)

DEFAULT_ACCESS_TTL_SECONDS = 900  # 15 minutes
DEFAULT_REFRESH_TTL_SECONDS = 60 * 60 * 24 * 30  # 30 days
REFRESH_TOKEN_DELIMITER = "."


@dataclass
class AuthTokens:
    access_token: str
    refresh_token: str
    expires_in: int
    refresh_expires_in: int


def compose_refresh_token(session_token: str, secret: str) -> str:
    return f"{session_token}{REFRESH_TOKEN_DELIMITER}{secret}"


def split_refresh_token(refresh_token: Optional[str]) -> Tuple[str, str]:
    """Split ``"<session>.<secret>"``; missing parts come back as ''."""
    session_token, _, secret = (refresh_token or "").strip().partition(REFRESH_TOKEN_DELIMITER)
    return session_token, secret


@dataclass
class SessionService:
    """Refresh-token-backed sessions.

    Each refresh token is ``<session_token>.<secret>``. Only a hash of the
    secret is stored. The session token is stable for the life of the
    session while the secret is replaced on every rotation; presenting a
    secret that no longer matches deletes the session.
    """

    session_repo: SessionRepository
    user_repo: UserRepository
    hasher: SecretHasher
    token_signer: TokenSigner
    access_ttl_seconds: int = DEFAULT_ACCESS_TTL_SECONDS
    refresh_ttl_seconds: int = DEFAULT_REFRESH_TTL_SECONDS
    now: Callable[[], datetime] = utcnow

    def create_session(self, user_id: str, phone_number: str, client_descriptor: Optional[str] = None) -> AuthTokens:
        # Sign first so a missing signing secret fails before anything is stored
        access_token = self._sign(user_id, phone_number)
        session_token = generate_token(24)
        secret = generate_token(32)
        self.session_repo.create(
            session_token=session_token,
            user_id=user_id,
            refresh_token_hash=self.hasher.hash(secret),
            user_agent=client_descriptor,
            expires_at=self._refresh_expiry(),
        )
        logger.info(f"Created session for user {user_id}")
        return self._issue(access_token, session_token, secret)

    def rotate_session(self, refresh_token: str, client_descriptor: Optional[str] = None) -> AuthTokens:
        session_token, secret = split_refresh_token(refresh_token)
        if not session_token or not secret:
            raise MalformedTokenError("Refresh token must be '<session>.<secret>'")

        session = self.session_repo.get(session_token)
        if session is None:
            raise SessionNotFoundError("Session not found")

        if session.expires_at <= self.now():
            self.session_repo.delete(session_token)
            raise SessionExpiredError(f"Session for user {session.user_id} expired")

        if not self.hasher.verify(secret, session.refresh_token_hash):
            self.session_repo.delete(session_token)
            logger.warning(f"Refresh token reuse detected for user {session.user_id}; session revoked")
            raise RefreshTokenReuseError("Refresh secret does not match")

        user = self.user_repo.get_by_id(session.user_id)
        access_token = self._sign(session.user_id, user.phone_number if user else "")

        new_secret = generate_token(32)
        swapped = self.session_repo.replace_secret(
            session_token=session_token,
            expected_hash=session.refresh_token_hash,
            new_hash=self.hasher.hash(new_secret),
            expires_at=self._refresh_expiry(),
            user_agent=client_descriptor,
        )
        if not swapped:
            # A concurrent refresh rotated the same secret first
            self.session_repo.delete(session_token)
            logger.warning(f"Concurrent rotation lost for user {session.user_id}; session revoked")
            raise RefreshTokenReuseError("Refresh secret was rotated concurrently")

        return self._issue(access_token, session_token, new_secret)

    def revoke_session(self, refresh_token: str, user_id: Optional[str] = None) -> int:
        session_token, _ = split_refresh_token(refresh_token)
        if not session_token:
            raise MalformedTokenError("Refresh token has no session part")
        return self.session_repo.delete(session_token, user_id=user_id)

    def revoke_all_sessions(self, user_id: str) -> int:
        deleted = self.session_repo.delete_for_user(user_id)
        logger.info(f"Revoked {deleted} session(s) for user {user_id}")
        return deleted

    def _refresh_expiry(self) -> datetime:
        return self.now() + timedelta(seconds=self.refresh_ttl_seconds)

    def _sign(self, user_id: str, phone_number: str) -> str:
        return self.token_signer.sign_access_token(user_id, phone_number, self.access_ttl_seconds)

    def _issue(self, access_token: str, session_token: str, secret: str) -> AuthTokens:
        return AuthTokens(
            access_token=access_token,
            refresh_token=compose_refresh_token(session_token, secret),
            expires_in=self.access_ttl_seconds,
            refresh_expires_in=self.refresh_ttl_seconds,
        )
