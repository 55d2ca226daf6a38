from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass
class SessionDto:
    session_token: str
    user_id: str
    refresh_token_hash: str
    user_agent: Optional[str]
    expires_at: datetime
    created_at: datetime


class SessionRepository:
    def create(self, session_token: str, user_id: str, refresh_token_hash: str, user_agent: Optional[str], expires_at: datetime) -> SessionDto:
        ...

    def get(self, session_token: str) -> Optional[SessionDto]:
        ...

    def replace_secret(self, session_token: str, expected_hash: str, new_hash: str, expires_at: datetime, user_agent: Optional[str]) -> bool:
        """Swap the stored hash only if it still equals ``expected_hash``."""
        ...

    def delete(self, session_token: str, user_id: Optional[str] = None) -> int:
        ...

    def delete_for_user(self, user_id: str) -> int:
        ...

    def purge_expired(self, now: datetime) -> int:
        ...
