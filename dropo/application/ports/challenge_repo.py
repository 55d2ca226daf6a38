from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass
class ChallengeDto:
    request_id: str
    phone_number: str
    code_hash: str
    ttl_seconds: int
    expires_at: datetime
    created_at: datetime


class ChallengeRepository:
    def upsert(self, request_id: str, phone_number: str, code_hash: str, ttl_seconds: int, expires_at: datetime) -> ChallengeDto:
        ...

    def get(self, request_id: str) -> Optional[ChallengeDto]:
        ...

    def delete(self, request_id: str) -> bool:
        """Delete the challenge; True only if this call removed a row."""
        ...

    def purge_expired(self, now: datetime) -> int:
        ...
