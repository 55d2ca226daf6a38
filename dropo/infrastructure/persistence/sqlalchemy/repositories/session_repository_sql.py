from datetime import datetime
from typing import Optional
from sqlalchemy import delete, update
from sqlmodel import Session, select

from .....db.models import UserSession
from .....db.models.users.session import USER_AGENT_MAX_LENGTH
from .....application.ports.session_repo import SessionRepository, SessionDto
from .....utils import as_utc


def _clip_user_agent(user_agent: Optional[str]) -> Optional[str]:
    # Client descriptor is opaque; keep it within the column width
    return user_agent[:USER_AGENT_MAX_LENGTH] if user_agent else user_agent


class SqlSessionRepository(SessionRepository):
    def __init__(self, session: Session):
        self.session = session

    def _to_dto(self, rec: UserSession) -> SessionDto:
        return SessionDto(
            session_token=rec.session_token,
            user_id=rec.user_id,
            refresh_token_hash=rec.refresh_token_hash,
            user_agent=rec.user_agent,
            expires_at=as_utc(rec.expires_at),
            created_at=as_utc(rec.created_at),
        )

    def create(self, session_token: str, user_id: str, refresh_token_hash: str, user_agent: Optional[str], expires_at: datetime) -> SessionDto:
        rec = UserSession(
            session_token=session_token,
            user_id=user_id,
            refresh_token_hash=refresh_token_hash,
            user_agent=_clip_user_agent(user_agent),
            expires_at=expires_at,
        )
        self.session.add(rec)
        self.session.commit()
        self.session.refresh(rec)
        return self._to_dto(rec)

    def get(self, session_token: str) -> Optional[SessionDto]:
        rec = self.session.exec(
            select(UserSession).where(UserSession.session_token == session_token)
        ).first()
        return self._to_dto(rec) if rec else None

    def replace_secret(self, session_token: str, expected_hash: str, new_hash: str, expires_at: datetime, user_agent: Optional[str]) -> bool:
        # Conditional write: a concurrent rotation that already swapped the hash wins
        result = self.session.exec(
            update(UserSession)
            .where(UserSession.session_token == session_token)
            .where(UserSession.refresh_token_hash == expected_hash)
            .values(refresh_token_hash=new_hash, expires_at=expires_at, user_agent=_clip_user_agent(user_agent))
            .execution_options(synchronize_session=False)
        )
        self.session.commit()
        return result.rowcount == 1

    def delete(self, session_token: str, user_id: Optional[str] = None) -> int:
        stmt = delete(UserSession).where(UserSession.session_token == session_token)
        if user_id is not None:
            stmt = stmt.where(UserSession.user_id == user_id)
        result = self.session.exec(stmt.execution_options(synchronize_session=False))
        self.session.commit()
        return result.rowcount

    def delete_for_user(self, user_id: str) -> int:
        result = self.session.exec(
            delete(UserSession)
            .where(UserSession.user_id == user_id)
            .execution_options(synchronize_session=False)
        )
        self.session.commit()
        return result.rowcount

    def purge_expired(self, now: datetime) -> int:
        result = self.session.exec(
            delete(UserSession)
            .where(UserSession.expires_at <= now)
            .execution_options(synchronize_session=False)
        )
        self.session.commit()
        return result.rowcount
