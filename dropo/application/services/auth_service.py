import logging
from typing import Optional
from dataclasses import dataclass

from ..ports.user_repo import UserRepository, UserDto
from ..ports.audit_logger import AuditLogger
from .challenge_service import ChallengeService, ChallengeTicket
from .session_service import AuthTokens, SessionService, split_refresh_token
from ...exceptions import AuthError

logger = logging.getLogger(__name__)


@dataclass
class AuthResult:
    user: UserDto
    tokens: AuthTokens
    onboarding_complete: bool


@dataclass
class AuthService:
    challenge_service: ChallengeService
    session_service: SessionService
    user_repo: UserRepository
    audit: Optional[AuditLogger] = None

    def request_otp(self, phone_number: str, ip_address: Optional[str] = None) -> ChallengeTicket:
        ticket = self.challenge_service.request_challenge(phone_number)
        self._audit("otp_requested", phone=phone_number, request_id=ticket.request_id, ip_address=ip_address)
        return ticket

    def verify_otp(
        self,
        phone_number: str,
        code: str,
        request_id: Optional[str] = None,
        name: Optional[str] = None,
        client_descriptor: Optional[str] = None,
        ip_address: Optional[str] = None,
    ) -> AuthResult:
        try:
            self.challenge_service.verify_challenge(phone_number, code, request_id)
        except AuthError as e:
            self._audit("otp_verification_failed", phone=phone_number, request_id=request_id,
                        ip_address=ip_address, success=False, details={"reason": type(e).__name__})
            raise

        user = self.user_repo.upsert_by_phone(phone_number, name)
        tokens = self.session_service.create_session(user.id, user.phone_number, client_descriptor)
        self._audit("otp_verified", phone=phone_number, user_id=user.id, request_id=request_id, ip_address=ip_address)

        return AuthResult(user=user, tokens=tokens, onboarding_complete=bool(user.name))

    def refresh_tokens(self, refresh_token: str, client_descriptor: Optional[str] = None, ip_address: Optional[str] = None) -> AuthTokens:
        try:
            tokens = self.session_service.rotate_session(refresh_token, client_descriptor)
        except AuthError as e:
            self._audit("session_refresh_failed", ip_address=ip_address, success=False,
                        details={"reason": type(e).__name__})
            raise
        self._audit("session_rotated", ip_address=ip_address)
        return tokens

    def logout(self, refresh_token: Optional[str] = None, user_id: Optional[str] = None) -> bool:
        """Revoke one session (by refresh token) or all of the caller's sessions."""
        if refresh_token:
            session_token, _ = split_refresh_token(refresh_token)
            if not session_token:
                logger.warning("Logout with a refresh token that has no session part; nothing revoked")
            else:
                self.session_service.revoke_session(refresh_token, user_id=user_id)
            self._audit("logout", user_id=user_id, details={"scope": "session"})
        elif user_id:
            self.session_service.revoke_all_sessions(user_id)
            self._audit("logout", user_id=user_id, details={"scope": "all"})
        return True

    def _audit(self, action: str, **kwargs) -> None:
        if self.audit is not None:
            self.audit.log(action, **kwargs)
