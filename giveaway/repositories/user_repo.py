# giveaway/repositories/user_repo.py
import uuid

from sqlmodel import Session, select

from giveaway.models.profile import Profile
from giveaway.models.user import User


class UserRepository:
    """Account rows. `create_with_profile` and `save` commit."""

    def get_by_id(self, session: Session, user_id: uuid.UUID) -> User | None:
        return session.get(User, user_id)

    def get_by_phone(self, session: Session, phone: str) -> User | None:
        return session.exec(select(User).where(User.phone == phone)).first()

    def create_with_profile(
        self,
        session: Session,
        user: User,
        profile: Profile,
    ) -> User:
        """Insert the account and its "user" profile in one transaction."""
        session.add(user)
        session.flush()
        profile.user_id = user.id
        session.add(profile)
        session.commit()
        session.refresh(user)
        return user

    def save(self, session: Session, user: User, *others) -> User:
        """Persist the account, plus any related rows edited alongside it."""
        session.add(user)
        for row in others:
            session.add(row)
        session.commit()
        session.refresh(user)
        return user
