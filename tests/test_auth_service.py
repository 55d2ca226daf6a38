import pytest

from dropo.application.services.auth_service import AuthService
from dropo.application.services.challenge_service import ChallengeService
from dropo.application.services.session_service import SessionService, split_refresh_token
from dropo.exceptions import (
    InvalidCodeError,
    RefreshTokenReuseError,
    SessionError,
    SessionNotFoundError,
)

PHONE = "+15551234567"


@pytest.fixture
def svc(challenge_repo, session_repo, user_repo, hasher, signer, audit, clock):
    return AuthService(
        challenge_service=ChallengeService(challenge_repo=challenge_repo, hasher=hasher, dev_mode=True, now=clock),
        session_service=SessionService(
            session_repo=session_repo,
            user_repo=user_repo,
            hasher=hasher,
            token_signer=signer,
            now=clock,
        ),
        user_repo=user_repo,
        audit=audit,
    )


def login(svc, phone=PHONE, name=None):
    ticket = svc.request_otp(phone)
    return svc.verify_otp(phone, ticket.dev_code, ticket.request_id, name=name)


def test_login_refresh_and_reuse_end_to_end(svc, session_repo):
    result = login(svc)
    s_a = result.tokens.refresh_token

    s_b = svc.refresh_tokens(s_a).refresh_token
    assert split_refresh_token(s_a)[0] == split_refresh_token(s_b)[0]

    with pytest.raises(RefreshTokenReuseError) as reuse:
        svc.refresh_tokens(s_a)
    assert isinstance(reuse.value, SessionError)
    assert session_repo.rows == {}

    with pytest.raises(SessionNotFoundError):
        svc.refresh_tokens(s_b)


def test_verify_creates_user_and_reports_onboarding(svc, user_repo):
    result = login(svc)
    assert result.user.phone_number == PHONE
    assert result.onboarding_complete is False

    result = login(svc, name="Alice")
    assert result.user.name == "Alice"
    assert result.onboarding_complete is True
    assert len(user_repo.users) == 1


def test_blank_name_does_not_overwrite(svc):
    login(svc, name="Alice")
    result = login(svc, name="   ")
    assert result.user.name == "Alice"
    assert result.onboarding_complete is True


def test_failed_verification_creates_nothing_and_is_audited(svc, user_repo, session_repo, audit):
    ticket = svc.request_otp(PHONE)
    wrong = "000000" if ticket.dev_code != "000000" else "111111"

    with pytest.raises(InvalidCodeError):
        svc.verify_otp(PHONE, wrong, ticket.request_id, ip_address="10.0.0.1")

    assert user_repo.users == {}
    assert session_repo.rows == {}
    action, entry = audit.entries[-1]
    assert action == "otp_verification_failed"
    assert entry["success"] is False
    assert entry["details"] == {"reason": "InvalidCodeError"}


def test_audit_trail(svc, audit):
    result = login(svc)
    svc.refresh_tokens(result.tokens.refresh_token)
    svc.logout(user_id=result.user.id)
    assert audit.actions == ["otp_requested", "otp_verified", "session_rotated", "logout"]


def test_refresh_failure_is_audited(svc, audit):
    with pytest.raises(SessionNotFoundError):
        svc.refresh_tokens("missing.secret")
    assert audit.actions[-1] == "session_refresh_failed"


def test_logout_with_token_revokes_only_that_session(svc, session_repo):
    first = login(svc)
    second = login(svc)

    assert svc.logout(first.tokens.refresh_token, user_id=first.user.id) is True

    assert list(session_repo.rows) == [split_refresh_token(second.tokens.refresh_token)[0]]


def test_logout_without_token_revokes_all_of_callers_sessions(svc, session_repo):
    mine = login(svc)
    login(svc)
    theirs = login(svc, phone="+15557654321")

    assert svc.logout(user_id=mine.user.id) is True
    assert list(session_repo.rows) == [split_refresh_token(theirs.tokens.refresh_token)[0]]


def test_logout_cannot_revoke_someone_elses_session(svc, session_repo):
    mine = login(svc)
    theirs = login(svc, phone="+15557654321")

    svc.logout(theirs.tokens.refresh_token, user_id=mine.user.id)
    assert len(session_repo.rows) == 2


def test_logout_with_malformed_token_is_ignored(svc, session_repo):
    result = login(svc)
    assert svc.logout(".secret-only", user_id=result.user.id) is True
    assert len(session_repo.rows) == 1


def test_logout_is_idempotent(svc):
    result = login(svc)
    assert svc.logout(result.tokens.refresh_token, user_id=result.user.id) is True
    assert svc.logout(result.tokens.refresh_token, user_id=result.user.id) is True
