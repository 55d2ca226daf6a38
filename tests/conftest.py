from datetime import datetime, timedelta, timezone
from typing import Optional

import pytest

from dropo.application.ports.challenge_repo import ChallengeRepository, ChallengeDto
from dropo.application.ports.session_repo import SessionRepository, SessionDto
from dropo.application.ports.user_repo import UserRepository, UserDto
from dropo.infrastructure.security.bcrypt_hasher import BcryptSecretHasher
from dropo.utils import utcnow


class Clock:
    def __init__(self, start: datetime = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)):
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, seconds: int) -> None:
        self.current += timedelta(seconds=seconds)


class FakeChallengeRepo(ChallengeRepository):
    def __init__(self):
        self.rows = {}

    def upsert(self, request_id, phone_number, code_hash, ttl_seconds, expires_at):
        dto = ChallengeDto(request_id, phone_number, code_hash, ttl_seconds, expires_at, utcnow())
        self.rows[request_id] = dto
        return dto

    def get(self, request_id):
        return self.rows.get(request_id)

    def delete(self, request_id):
        return self.rows.pop(request_id, None) is not None

    def purge_expired(self, now):
        expired = [k for k, v in self.rows.items() if v.expires_at <= now]
        for k in expired:
            del self.rows[k]
        return len(expired)


class FakeSessionRepo(SessionRepository):
    def __init__(self):
        self.rows = {}
        self.lose_next_swap = False

    def create(self, session_token, user_id, refresh_token_hash, user_agent, expires_at):
        dto = SessionDto(session_token, user_id, refresh_token_hash, user_agent, expires_at, utcnow())
        self.rows[session_token] = dto
        return dto

    def get(self, session_token):
        row = self.rows.get(session_token)
        # hand out copies so callers never share state with the store
        return SessionDto(**vars(row)) if row else None

    def replace_secret(self, session_token, expected_hash, new_hash, expires_at, user_agent):
        if self.lose_next_swap:
            self.lose_next_swap = False
            return False
        row = self.rows.get(session_token)
        if row is None or row.refresh_token_hash != expected_hash:
            return False
        row.refresh_token_hash = new_hash
        row.expires_at = expires_at
        row.user_agent = user_agent
        return True

    def delete(self, session_token, user_id=None):
        row = self.rows.get(session_token)
        if row is None or (user_id is not None and row.user_id != user_id):
            return 0
        del self.rows[session_token]
        return 1

    def delete_for_user(self, user_id):
        doomed = [k for k, v in self.rows.items() if v.user_id == user_id]
        for k in doomed:
            del self.rows[k]
        return len(doomed)

    def purge_expired(self, now):
        expired = [k for k, v in self.rows.items() if v.expires_at <= now]
        for k in expired:
            del self.rows[k]
        return len(expired)


class FakeUserRepo(UserRepository):
    def __init__(self):
        self.users = {}

    def get_by_phone(self, phone_number: str) -> Optional[UserDto]:
        return self.users.get(phone_number)

    def get_by_id(self, user_id: str) -> Optional[UserDto]:
        for u in self.users.values():
            if u.id == user_id:
                return u
        return None

    def upsert_by_phone(self, phone_number: str, name: Optional[str] = None) -> UserDto:
        name = name.strip() if name else None
        user = self.users.get(phone_number)
        if user is None:
            now = utcnow()
            user = UserDto(id=f"user-{len(self.users) + 1}", name=name, phone_number=phone_number,
                           created_at=now, updated_at=now)
            self.users[phone_number] = user
        elif name:
            user.name = name
        return user


class FakeSigner:
    def __init__(self):
        self.issued = []

    def sign_access_token(self, user_id, phone_number, expires_in):
        self.issued.append((user_id, phone_number, expires_in))
        return f"access-{len(self.issued)}"

    def verify_access_token(self, token):
        raise NotImplementedError


class FakeAudit:
    def __init__(self):
        self.entries = []

    def log(self, action, **kwargs):
        self.entries.append((action, kwargs))

    @property
    def actions(self):
        return [a for a, _ in self.entries]


@pytest.fixture(scope="session")
def hasher():
    return BcryptSecretHasher(rounds=4)


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def challenge_repo():
    return FakeChallengeRepo()


@pytest.fixture
def session_repo():
    return FakeSessionRepo()


@pytest.fixture
def user_repo():
    return FakeUserRepo()


@pytest.fixture
def signer():
    return FakeSigner()


@pytest.fixture
def audit():
    return FakeAudit()
