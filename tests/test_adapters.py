import json
import logging
from datetime import timedelta

import jwt
import pytest
from twilio.base.exceptions import TwilioRestException

from dropo.exceptions import ConfigurationError
from dropo.infrastructure.audit.std_logger import StdAuditLogger
from dropo.infrastructure.otp.twilio_provider import TwilioOTPProvider
from dropo.infrastructure.tokens.jwt_signer import JwtTokenSigner
from dropo.utils import hash_phone_number, utcnow

SECRET = "adapter-test-secret-0123456789abcdef0123456789"
PHONE = "+15551234567"


def test_jwt_round_trip():
    signer = JwtTokenSigner(SECRET)
    token = signer.sign_access_token("user-1", PHONE, 900)
    claims = signer.verify_access_token(token)
    assert claims["sub"] == "user-1"
    assert claims["phoneNumber"] == PHONE
    assert claims["type"] == "access"
    assert claims["exp"] - claims["iat"] == 900


def test_jwt_expired_token_rejected():
    signer = JwtTokenSigner(SECRET)
    token = signer.sign_access_token("user-1", PHONE, -10)
    with pytest.raises(jwt.ExpiredSignatureError):
        signer.verify_access_token(token)


def test_jwt_rejects_other_token_types_and_keys():
    signer = JwtTokenSigner(SECRET)
    other_type = jwt.encode(
        {"sub": "user-1", "type": "refresh", "exp": utcnow() + timedelta(minutes=5)},
        SECRET, algorithm="HS256",
    )
    with pytest.raises(jwt.InvalidTokenError):
        signer.verify_access_token(other_type)

    foreign = JwtTokenSigner("another-secret-0123456789abcdef0123456789ab").sign_access_token("user-1", PHONE, 900)
    with pytest.raises(jwt.InvalidSignatureError):
        signer.verify_access_token(foreign)


def test_jwt_requires_secret():
    with pytest.raises(ConfigurationError):
        JwtTokenSigner("").sign_access_token("user-1", PHONE, 900)
    with pytest.raises(ConfigurationError):
        JwtTokenSigner(None).verify_access_token("x.y.z")


class _Result:
    def __init__(self, sid, status="pending"):
        self.sid = sid
        self.status = status


class _Verifications:
    def __init__(self, calls):
        self.calls = calls

    def create(self, to, channel):
        self.calls.append(("send", to, channel))
        return _Result("VE123")


class _Checks:
    def __init__(self, calls, outcome):
        self.calls = calls
        self.outcome = outcome

    def create(self, to, code):
        self.calls.append(("check", to, code))
        if isinstance(self.outcome, Exception):
            raise self.outcome
        return _Result("VE123", self.outcome)


class FakeTwilioClient:
    def __init__(self, outcome="approved"):
        self.calls = []
        self.services_requested = []
        outer = self

        class _Service:
            verifications = _Verifications(outer.calls)
            verification_checks = _Checks(outer.calls, outcome)

        class _V2:
            def services(self, sid):
                outer.services_requested.append(sid)
                return _Service()

        class _Verify:
            v2 = _V2()

        self.verify = _Verify()


def test_twilio_send_and_approved_check():
    client = FakeTwilioClient()
    provider = TwilioOTPProvider(client=client, verify_sid="VA000")
    assert provider.send(PHONE) == "VE123"
    assert provider.verify(PHONE, "123456") == "VE123"
    assert client.calls == [("send", PHONE, "sms"), ("check", PHONE, "123456")]
    assert client.services_requested == ["VA000", "VA000"]


def test_twilio_pending_check_is_not_approved():
    provider = TwilioOTPProvider(client=FakeTwilioClient("pending"), verify_sid="VA000")
    assert provider.verify(PHONE, "000000") is None


def test_twilio_404_is_not_approved():
    outcome = TwilioRestException(404, "/Verifications", msg="not found", code=20404)
    provider = TwilioOTPProvider(client=FakeTwilioClient(outcome), verify_sid="VA000")
    assert provider.verify(PHONE, "123456") is None


def test_twilio_max_attempts_is_not_approved():
    outcome = TwilioRestException(429, "/VerificationCheck", msg="Max check attempts reached", code=60202)
    provider = TwilioOTPProvider(client=FakeTwilioClient(outcome), verify_sid="VA000")
    assert provider.verify(PHONE, "123456") is None


def test_twilio_other_errors_propagate():
    outcome = TwilioRestException(500, "/Verifications", msg="boom")
    provider = TwilioOTPProvider(client=FakeTwilioClient(outcome), verify_sid="VA000")
    with pytest.raises(TwilioRestException):
        provider.verify(PHONE, "123456")


def test_twilio_requires_service_sid(monkeypatch):
    from dropo.infrastructure.otp import twilio_provider as mod

    monkeypatch.setattr(mod.settings, "TWILIO_VERIFY_SERVICE_SID", "")
    provider = TwilioOTPProvider(client=FakeTwilioClient(), verify_sid="")
    with pytest.raises(ConfigurationError):
        provider.send(PHONE)


def test_audit_log_hashes_phone(caplog):
    caplog.set_level(logging.INFO, logger="dropo.infrastructure.audit.std_logger")
    StdAuditLogger().log("otp_requested", phone=PHONE, request_id="req-1", ip_address="10.0.0.1")

    record = caplog.records[-1]
    assert record.getMessage().startswith("AUDIT: ")
    entry = json.loads(record.getMessage()[len("AUDIT: "):])
    assert entry["action"] == "otp_requested"
    assert entry["phone_hash"] == hash_phone_number(PHONE)
    assert PHONE not in record.getMessage()
