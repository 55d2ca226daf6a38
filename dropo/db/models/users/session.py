# dropo/db/models/users/session.py
from typing import Optional
from sqlalchemy import DateTime
from sqlmodel import SQLModel, Field
from datetime import datetime

from ....utils import utcnow

USER_AGENT_MAX_LENGTH = 500

class UserSession(SQLModel, table=True):
    __tablename__ = "user_sessions"
    session_token: str = Field(primary_key=True, max_length=64)
    user_id: str = Field(foreign_key="users.id", index=True)
    refresh_token_hash: str = Field(max_length=100)
    user_agent: Optional[str] = Field(default=None, max_length=USER_AGENT_MAX_LENGTH)
    expires_at: datetime = Field(index=True, sa_type=DateTime(timezone=True))
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))
