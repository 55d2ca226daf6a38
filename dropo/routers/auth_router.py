# dropo/routers/auth_router.py
import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional, Tuple

import jwt
from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlmodel import Session

from ..application.ports.audit_logger import AuditLogger
from ..application.ports.otp_provider import OTPProvider
from ..application.ports.rate_limiter import RateLimiter
from ..application.ports.secret_hasher import SecretHasher
from ..application.ports.token_signer import TokenSigner
from ..application.services.auth_service import AuthService
from ..application.services.challenge_service import ChallengeService, DEFAULT_OTP_TTL_SECONDS
from ..application.services.session_service import (
    SessionService,
    AuthTokens,
    DEFAULT_ACCESS_TTL_SECONDS,
    DEFAULT_REFRESH_TTL_SECONDS,
)
from ..core.config import settings
from ..database import get_session
from ..exceptions import RateLimitExceededError
from ..infrastructure.audit.std_logger import StdAuditLogger
from ..infrastructure.otp.twilio_provider import TwilioOTPProvider
from ..infrastructure.persistence.sqlalchemy.repositories.challenge_repository_sql import SqlChallengeRepository
from ..infrastructure.persistence.sqlalchemy.repositories.session_repository_sql import SqlSessionRepository
from ..infrastructure.persistence.sqlalchemy.repositories.user_repository_sql import SqlUserRepository
from ..infrastructure.rate_limit.memory_rate_limiter import InMemoryRateLimiter
from ..infrastructure.rate_limit.redis_rate_limiter import RedisRateLimiter
from ..infrastructure.security.bcrypt_hasher import BcryptSecretHasher
from ..infrastructure.tokens.jwt_signer import JwtTokenSigner
from ..schemas import (
    ErrorResponse,
    LogoutRequest,
    LogoutResponse,
    RefreshTokenRequest,
    RequestOtpRequest,
    RequestOtpResponse,
    VerifyOtpRequest,
    VerifyOtpResponse,
    AuthTokensResponse,
    AuthUserResponse,
)
from ..utils import parse_ttl

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/v1/auth",
    tags=["Authentication"],
    responses={400: {"model": ErrorResponse}, 401: {"model": ErrorResponse}},
)

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass
class CurrentUser:
    user_id: str
    phone_number: str


# ------------------------
# Minimal DI for services
# ------------------------
@lru_cache()
def get_token_ttls() -> Tuple[int, int, int]:
    """(access, refresh, otp) TTLs in seconds, parsed once per process."""
    return (
        parse_ttl(settings.JWT_ACCESS_TTL, DEFAULT_ACCESS_TTL_SECONDS),
        parse_ttl(settings.JWT_REFRESH_TTL, DEFAULT_REFRESH_TTL_SECONDS),
        parse_ttl(settings.OTP_TTL, DEFAULT_OTP_TTL_SECONDS),
    )


@lru_cache()
def get_secret_hasher() -> SecretHasher:
    return BcryptSecretHasher(rounds=settings.BCRYPT_ROUNDS)


@lru_cache()
def get_token_signer() -> TokenSigner:
    return JwtTokenSigner(settings.JWT_ACCESS_SECRET, settings.JWT_ALGORITHM)


@lru_cache()
def get_otp_provider() -> Optional[OTPProvider]:
    """Twilio when configured; otherwise None (self-issued codes, OTP_DEV_MODE only)."""
    if settings.twilio_enabled:
        logger.info("Twilio Verify enabled for OTP delivery")
        return TwilioOTPProvider()
    if not settings.OTP_DEV_MODE:
        logger.error("Twilio credentials missing and OTP_DEV_MODE is off; OTP endpoints will fail")
    elif settings.is_production:
        logger.warning("OTP_DEV_MODE is enabled with ENV=production; OTP codes are returned to clients")
    else:
        logger.warning("Twilio credentials missing. Using development OTP mode.")
    return None


@lru_cache()
def get_rate_limiter() -> RateLimiter:
    if settings.REDIS_URL:
        return RedisRateLimiter(settings.REDIS_URL)
    return InMemoryRateLimiter()


def get_audit_logger() -> AuditLogger:
    return StdAuditLogger()


def get_auth_service(
    session: Session = Depends(get_session),
    hasher: SecretHasher = Depends(get_secret_hasher),
    signer: TokenSigner = Depends(get_token_signer),
    otp_provider: Optional[OTPProvider] = Depends(get_otp_provider),
    audit: AuditLogger = Depends(get_audit_logger),
) -> AuthService:
    access_ttl, refresh_ttl, otp_ttl = get_token_ttls()
    user_repo = SqlUserRepository(session)
    challenge_service = ChallengeService(
        challenge_repo=SqlChallengeRepository(session),
        hasher=hasher,
        otp_provider=otp_provider,
        ttl_seconds=otp_ttl,
        code_length=settings.OTP_CODE_LENGTH,
        dev_mode=settings.OTP_DEV_MODE,
    )
    session_service = SessionService(
        session_repo=SqlSessionRepository(session),
        user_repo=user_repo,
        hasher=hasher,
        token_signer=signer,
        access_ttl_seconds=access_ttl,
        refresh_ttl_seconds=refresh_ttl,
    )
    return AuthService(
        challenge_service=challenge_service,
        session_service=session_service,
        user_repo=user_repo,
        audit=audit,
    )


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    signer: TokenSigner = Depends(get_token_signer),
) -> CurrentUser:
    """Stateless bearer check: signature and expiry only, no store lookup."""
    if not credentials or not credentials.credentials:
        raise HTTPException(status_code=401, detail="Authentication required", headers={"WWW-Authenticate": "Bearer"})
    try:
        payload = signer.verify_access_token(credentials.credentials)
    except jwt.InvalidTokenError as e:
        logger.info(f"Rejected access token: {e}")
        raise HTTPException(status_code=401, detail="Invalid or expired token", headers={"WWW-Authenticate": "Bearer"})
    return CurrentUser(user_id=payload["sub"], phone_number=payload.get("phoneNumber", ""))


def _client_ip(request: Request) -> Optional[str]:
    return request.client.host if request.client else None


def _tokens_response(tokens: AuthTokens) -> AuthTokensResponse:
    return AuthTokensResponse(
        accessToken=tokens.access_token,
        refreshToken=tokens.refresh_token,
        expiresIn=tokens.expires_in,
        refreshExpiresIn=tokens.refresh_expires_in,
    )


# ------------------------
# Endpoints
# ------------------------
@router.post("/request-otp", response_model=RequestOtpResponse, response_model_exclude_none=True)
def request_otp(
    payload: RequestOtpRequest,
    request: Request,
    auth_service: AuthService = Depends(get_auth_service),
    limiter: RateLimiter = Depends(get_rate_limiter),
):
    """Start a phone verification and return its requestId."""
    if not limiter.allow(f"otp:{payload.phoneNumber}", settings.OTP_RATE_LIMIT_MAX_REQUESTS, settings.OTP_RATE_LIMIT_WINDOW_SEC):
        raise RateLimitExceededError(f"OTP rate limit hit from {_client_ip(request)}")

    ticket = auth_service.request_otp(payload.phoneNumber, ip_address=_client_ip(request))
    return RequestOtpResponse(requestId=ticket.request_id, expiresIn=ticket.expires_in, devCode=ticket.dev_code)


@router.post("/verify-otp", response_model=VerifyOtpResponse)
def verify_otp(
    payload: VerifyOtpRequest,
    request: Request,
    auth_service: AuthService = Depends(get_auth_service),
):
    """Check the code, upsert the user and open a session."""
    result = auth_service.verify_otp(
        phone_number=payload.phoneNumber,
        code=payload.code,
        request_id=payload.requestId,
        name=payload.name,
        client_descriptor=request.headers.get("user-agent"),
        ip_address=_client_ip(request),
    )
    return VerifyOtpResponse(
        user=AuthUserResponse(id=result.user.id, name=result.user.name, phoneNumber=result.user.phone_number),
        tokens=_tokens_response(result.tokens),
        onboardingComplete=result.onboarding_complete,
    )


@router.post("/refresh", response_model=AuthTokensResponse)
def refresh(
    payload: RefreshTokenRequest,
    request: Request,
    auth_service: AuthService = Depends(get_auth_service),
):
    tokens = auth_service.refresh_tokens(
        payload.refreshToken,
        client_descriptor=request.headers.get("user-agent"),
        ip_address=_client_ip(request),
    )
    return _tokens_response(tokens)


@router.post("/logout", response_model=LogoutResponse)
def logout(
    payload: Optional[LogoutRequest] = None,
    current_user: CurrentUser = Depends(get_current_user),
    auth_service: AuthService = Depends(get_auth_service),
):
    """Revoke the given session, or every session of the caller."""
    refresh_token = payload.refreshToken if payload else None
    auth_service.logout(refresh_token=refresh_token, user_id=current_user.user_id)
    return LogoutResponse(success=True)
