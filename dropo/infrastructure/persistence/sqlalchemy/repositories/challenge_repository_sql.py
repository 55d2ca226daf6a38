from datetime import datetime
from typing import Optional
from sqlalchemy import delete
from sqlmodel import Session, select

from .....db.models import VerificationChallenge
from .....application.ports.challenge_repo import ChallengeRepository, ChallengeDto
from .....utils import as_utc


class SqlChallengeRepository(ChallengeRepository):
    def __init__(self, session: Session):
        self.session = session

    def _to_dto(self, rec: VerificationChallenge) -> ChallengeDto:
        return ChallengeDto(
            request_id=rec.request_id,
            phone_number=rec.phone_number,
            code_hash=rec.code_hash,
            ttl_seconds=rec.ttl_seconds,
            expires_at=as_utc(rec.expires_at),
            created_at=as_utc(rec.created_at),
        )

    def upsert(self, request_id: str, phone_number: str, code_hash: str, ttl_seconds: int, expires_at: datetime) -> ChallengeDto:
        rec = self.session.get(VerificationChallenge, request_id)
        if rec is None:
            rec = VerificationChallenge(request_id=request_id)
        rec.phone_number = phone_number
        rec.code_hash = code_hash
        rec.ttl_seconds = ttl_seconds
        rec.expires_at = expires_at
        self.session.add(rec)
        self.session.commit()
        self.session.refresh(rec)
        return self._to_dto(rec)

    def get(self, request_id: str) -> Optional[ChallengeDto]:
        rec = self.session.exec(
            select(VerificationChallenge).where(VerificationChallenge.request_id == request_id)
        ).first()
        return self._to_dto(rec) if rec else None

    def delete(self, request_id: str) -> bool:
        result = self.session.exec(
            delete(VerificationChallenge)
            .where(VerificationChallenge.request_id == request_id)
            .execution_options(synchronize_session=False)
        )
        self.session.commit()
        return result.rowcount == 1

    def purge_expired(self, now: datetime) -> int:
        result = self.session.exec(
            delete(VerificationChallenge)
            .where(VerificationChallenge.expires_at <= now)
            .execution_options(synchronize_session=False)
        )
        self.session.commit()
        return result.rowcount
