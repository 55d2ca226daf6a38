from typing import Protocol, Optional
from datetime import datetime

class UserDto:
    def __init__(self, id: str, name: Optional[str], phone_number: str,
                 created_at: datetime, updated_at: datetime):
        self.id = id
        self.name = name
        self.phone_number = phone_number
        self.created_at = created_at
        self.updated_at = updated_at

class UserRepository(Protocol):
    def get_by_phone(self, phone_number: str) -> Optional[UserDto]:
        ...

    def get_by_id(self, user_id: str) -> Optional[UserDto]:
        ...

    def upsert_by_phone(self, phone_number: str, name: Optional[str] = None) -> UserDto:
        ...
