# dropo/db/models/auth/challenge.py
from sqlalchemy import DateTime
from sqlmodel import SQLModel, Field
from datetime import datetime

from ....utils import utcnow

# code_hash placeholder for challenges whose code lives with Twilio Verify
PROVIDER_MANAGED_HASH = "twilio-managed"

class VerificationChallenge(SQLModel, table=True):
    __tablename__ = "verification_challenges"
    request_id: str = Field(primary_key=True, max_length=64)
    phone_number: str = Field(max_length=20, index=True)
    code_hash: str = Field(max_length=100)
    ttl_seconds: int
    expires_at: datetime = Field(index=True, sa_type=DateTime(timezone=True))
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))
