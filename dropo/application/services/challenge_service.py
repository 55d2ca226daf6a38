import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional

from ..ports.challenge_repo import ChallengeRepository
from ..ports.otp_provider import OTPProvider
from ..ports.secret_hasher import SecretHasher
from ...db.models.auth.challenge import PROVIDER_MANAGED_HASH
from ...exceptions import (
    ConfigurationError,
    ChallengeExpiredError,
    ChallengeNotFoundError,
    InvalidCodeError,
    MalformedRequestError,
)
from ...utils import generate_otp, utcnow

logger = logging.getLogger(__name__)

DEFAULT_OTP_TTL_SECONDS = 300


@dataclass
class ChallengeTicket:
    request_id: str
    expires_in: int
    dev_code: Optional[str] = None


@dataclass
class ChallengeService:
    """Issues one-time codes and checks them.

    With an ``otp_provider`` the code lives with the provider (Twilio Verify)
    and only a placeholder row is kept for auditing. Without one, codes are
    generated locally, stored hashed, and handed back as ``dev_code`` when
    ``dev_mode`` is set. Without a provider and without ``dev_mode`` every
    operation fails with ConfigurationError.
    """

    challenge_repo: ChallengeRepository
    hasher: SecretHasher
    otp_provider: Optional[OTPProvider] = None
    ttl_seconds: int = DEFAULT_OTP_TTL_SECONDS
    code_length: int = 6
    dev_mode: bool = False
    now: Callable[[], datetime] = utcnow

    @property
    def provider_enabled(self) -> bool:
        return self.otp_provider is not None

    def request_challenge(self, phone_number: str) -> ChallengeTicket:
        if self.provider_enabled:
            request_id = self.otp_provider.send(phone_number)
            self._persist(phone_number, request_id, PROVIDER_MANAGED_HASH)
            return ChallengeTicket(request_id=request_id, expires_in=self.ttl_seconds)

        self._require_dev_mode()
        code = generate_otp(self.code_length)
        request_id = str(uuid.uuid4())
        self._persist(phone_number, request_id, self.hasher.hash(code))
        logger.debug(f"Dev OTP for request {request_id}: {code}")

        return ChallengeTicket(
            request_id=request_id,
            expires_in=self.ttl_seconds,
            dev_code=code,
        )

    def verify_challenge(self, phone_number: str, code: str, request_id: Optional[str] = None) -> None:
        """Return normally on success; raise a ChallengeError subclass otherwise."""
        if self.provider_enabled:
            self._verify_with_provider(phone_number, code)
            return

        self._require_dev_mode()
        if not request_id:
            raise MalformedRequestError("requestId is required for self-issued OTPs")

        challenge = self.challenge_repo.get(request_id)
        if challenge is None or challenge.phone_number != phone_number:
            raise ChallengeNotFoundError(f"No challenge for request {request_id}")

        if challenge.expires_at <= self.now():
            self.challenge_repo.delete(request_id)
            raise ChallengeExpiredError(f"Challenge {request_id} expired at {challenge.expires_at.isoformat()}")

        if not self.hasher.verify(code, challenge.code_hash):
            raise InvalidCodeError(f"Code mismatch for request {request_id}")

        # One-time use: only the caller whose delete removed the row wins
        if not self.challenge_repo.delete(request_id):
            raise ChallengeNotFoundError(f"Challenge {request_id} already consumed")

    def _verify_with_provider(self, phone_number: str, code: str) -> None:
        verification_id = self.otp_provider.verify(phone_number, code)
        if not verification_id:
            raise InvalidCodeError("Provider did not approve the code")
        # Placeholder row is audit-only; a missing row is not an error
        self.challenge_repo.delete(verification_id)

    def _require_dev_mode(self) -> None:
        if not self.dev_mode:
            raise ConfigurationError("No OTP provider configured and OTP_DEV_MODE is off")

    def _persist(self, phone_number: str, request_id: str, code_hash: str) -> None:
        self.challenge_repo.upsert(
            request_id=request_id,
            phone_number=phone_number,
            code_hash=code_hash,
            ttl_seconds=self.ttl_seconds,
            expires_at=self.now() + timedelta(seconds=self.ttl_seconds),
        )
