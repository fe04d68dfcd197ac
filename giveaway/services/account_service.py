# giveaway/services/account_service.py
import logging
import uuid
from datetime import datetime, timezone

from fastapi import HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session

from giveaway.models.profile import Profile
from giveaway.models.user import User
from giveaway.repositories.profile_repo import ProfileRepository
from giveaway.repositories.user_repo import UserRepository
from giveaway.schemas.user import AccountRead, AccountUpdate

logger = logging.getLogger(__name__)


def default_name(email: str) -> str:
    return email.split("@", 1)[0][:50] or "Customer"


class AccountService:
    """
    Local accounts mirrored from identity tokens.

    Every account has exactly one "user" profile; name and phone are kept
    in step between the two. Phone numbers are unique across accounts.
    """

    def __init__(self, repo: UserRepository, profile_repo: ProfileRepository):
        self.repo = repo
        self.profile_repo = profile_repo

    def resolve_account(
        self,
        session: Session,
        user_id: uuid.UUID,
        email: str,
        phone: str | None = None,
        name: str | None = None,
    ) -> User:
        """
        Return the account for a verified token, creating it on first sight.

        A token phone already held by another account is dropped rather
        than failing sign-in; the user can set a different one later.
        """
        user = self.repo.get_by_id(session, user_id)
        if user is not None:
            return user

        if phone and self.repo.get_by_phone(session, phone) is not None:
            logger.info(f"Phone from token for {user_id} already in use; not copied")
            phone = None

        display_name = (name or "").strip()[:50] or default_name(email)
        user = User(id=user_id, email=email, name=display_name, phone=phone, role="user")
        profile = Profile(
            user_id=user_id,
            profile_type="user",
            name=display_name,
            phone=phone,
            email=email,
        )
        try:
            return self.repo.create_with_profile(session, user, profile)
        except IntegrityError:
            # Two first requests for the same account raced; the other won.
            session.rollback()
            user = self.repo.get_by_id(session, user_id)
            if user is None:
                raise
            return user

    def get_account(self, session: Session, user: User) -> AccountRead:
        return self._to_read(user, self._user_profile(session, user))

    def update_account(
        self,
        session: Session,
        user: User,
        payload: AccountUpdate,
    ) -> AccountRead:
        """
        Raises:
            HTTPException(409): phone number belongs to another account.
        """
        data = payload.model_dump(exclude_unset=True)
        profile = self._user_profile(session, user)

        new_phone = data.get("phone")
        if new_phone and new_phone != user.phone:
            holder = self.repo.get_by_phone(session, new_phone)
            if holder is not None and holder.id != user.id:
                raise HTTPException(
                    status_code=status.HTTP_409_CONFLICT,
                    detail="Phone number already in use",
                )

        if data.get("name"):
            user.name = data["name"]
            profile.name = data["name"]
        if "phone" in data:
            user.phone = data["phone"]
            profile.phone = data["phone"]
        for key in ("state", "district", "date_of_birth"):
            if key in data:
                setattr(profile, key, data[key])
        profile.updated_at = datetime.now(timezone.utc)

        user = self.repo.save(session, user, profile)
        session.refresh(profile)
        return self._to_read(user, profile)

    def _user_profile(self, session: Session, user: User) -> Profile:
        profile = self.profile_repo.get_user_profile(session, user.id)
        if profile is None:
            # Accounts created before profiles were provisioned with them.
            profile = self.profile_repo.save(
                session,
                Profile(
                    user_id=user.id,
                    profile_type="user",
                    name=user.name,
                    phone=user.phone,
                    email=user.email,
                ),
            )
        return profile

    @staticmethod
    def _to_read(user: User, profile: Profile) -> AccountRead:
        return AccountRead(
            id=user.id,
            email=user.email,
            name=user.name,
            phone=user.phone,
            role=user.role,
            created_at=user.created_at,
            user_profile_id=profile.id,
            state=profile.state,
            district=profile.district,
            date_of_birth=profile.date_of_birth,
            profile_complete=bool(user.phone and profile.state),
        )
