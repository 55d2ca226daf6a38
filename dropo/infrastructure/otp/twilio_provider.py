import logging
from typing import Optional

from twilio.base.exceptions import TwilioRestException
from twilio.http.http_client import TwilioHttpClient
from twilio.rest import Client

from ...core.config import settings
from ...application.ports.otp_provider import OTPProvider
from ...exceptions import ConfigurationError

logger = logging.getLogger(__name__)


class TwilioOTPProvider(OTPProvider):
    def __init__(self, client: Optional[Client] = None, verify_sid: Optional[str] = None):
        self.client = client or Client(
            settings.TWILIO_ACCOUNT_SID,
            settings.TWILIO_AUTH_TOKEN,
            http_client=TwilioHttpClient(timeout=15, max_retries=3),
        )
        self.verify_sid = verify_sid or settings.TWILIO_VERIFY_SERVICE_SID

    def _service(self):
        if not self.verify_sid:
            raise ConfigurationError("Twilio Verify Service SID not configured")
        return self.client.verify.v2.services(self.verify_sid)

    def send(self, phone: str) -> str:
        verification = self._service().verifications.create(to=phone, channel="sms")
        logger.info(f"Twilio verification started, SID: {verification.sid}")
        return verification.sid

    def verify(self, phone: str, code: str) -> Optional[str]:
        try:
            check = self._service().verification_checks.create(to=phone, code=code)
        except TwilioRestException as e:
            # 4xx covers 404 (approved, expired or unknown verification) and
            # 429 / 60202 (max check attempts); only server errors propagate
            if e.status is not None and 400 <= e.status < 500:
                logger.info(f"Twilio verification check rejected: status={e.status} code={e.code}")
                return None
            raise
        logger.info(f"Twilio verification check status: {check.status}")
        return check.sid if check.status == "approved" else None
