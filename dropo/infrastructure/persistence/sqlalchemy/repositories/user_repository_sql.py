from typing import Optional
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from .....db.models import User
from .....application.ports.user_repo import UserRepository, UserDto
from .....utils import as_utc, utcnow

class SqlUserRepository(UserRepository):
    def __init__(self, session: Session):
        self.session = session

    def _to_dto(self, user: User) -> UserDto:
        return UserDto(
            id=user.id,
            name=user.name,
            phone_number=user.phone_number,
            created_at=as_utc(user.created_at),
            updated_at=as_utc(user.updated_at),
        )

    def get_by_phone(self, phone_number: str) -> Optional[UserDto]:
        user = self.session.exec(select(User).where(User.phone_number == phone_number)).first()
        return self._to_dto(user) if user else None

    def get_by_id(self, user_id: str) -> Optional[UserDto]:
        user = self.session.exec(select(User).where(User.id == user_id)).first()
        return self._to_dto(user) if user else None

    def upsert_by_phone(self, phone_number: str, name: Optional[str] = None) -> UserDto:
        name = name.strip() if name else None
        user = self.session.exec(select(User).where(User.phone_number == phone_number)).first()
        if user is None:
            user = User(phone_number=phone_number, name=name)
            self.session.add(user)
            try:
                self.session.commit()
            except IntegrityError:
                # Another request created the same phone number first
                self.session.rollback()
                return self.upsert_by_phone(phone_number, name)
            self.session.refresh(user)
            return self._to_dto(user)

        if name and name != user.name:
            user.name = name
            user.updated_at = utcnow()
            self.session.add(user)
            self.session.commit()
            self.session.refresh(user)
        return self._to_dto(user)
