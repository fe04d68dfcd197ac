# giveaway/services/profile_service.py
import uuid
from datetime import datetime, timezone

from fastapi import HTTPException, status
from sqlmodel import Session

from giveaway.models.profile import Profile
from giveaway.models.user import User
from giveaway.repositories.order_repo import OrderRepository
from giveaway.repositories.profile_repo import ProfileRepository
from giveaway.schemas.profile import BuyerProfileCreate, ProfileUpdate


class ProfileService:
    """
    Business logic for profiles.

    Responsibilities:
      - exactly one "user" profile per account, created on first access
      - buyer profile CRUD, scoped to the owning account
      - refuse to delete a buyer already named on an order
    """

    def __init__(self, repo: ProfileRepository, order_repo: OrderRepository):
        self.repo = repo
        self.order_repo = order_repo

    # ----- Account holder profile -----

    def get_user_profile(self, session: Session, current_user: User) -> Profile:
        """
        Return the account holder's profile, creating it from the account
        details if it does not exist yet.
        """
        profile = self.repo.get_user_profile(session, current_user.id)
        if profile is None:
            profile = Profile(
                user_id=current_user.id,
                profile_type="user",
                name=current_user.name,
                phone=current_user.phone,
                email=current_user.email,
            )
            profile = self.repo.save(session, profile)
        return profile

    def update_user_profile(
        self,
        session: Session,
        current_user: User,
        payload: ProfileUpdate,
    ) -> Profile:
        profile = self.get_user_profile(session, current_user)
        return self._apply_update(session, profile, payload)

    # ----- Buyer profiles -----

    def list_buyers(self, session: Session, user_id: uuid.UUID) -> list[Profile]:
        return self.repo.list_buyers(session, user_id)

    def create_buyer(
        self,
        session: Session,
        user_id: uuid.UUID,
        payload: BuyerProfileCreate,
    ) -> Profile:
        profile = Profile(
            user_id=user_id,
            profile_type="buyer",
            **payload.model_dump(),
        )
        return self.repo.save(session, profile)

    def get_buyer(
        self,
        session: Session,
        user_id: uuid.UUID,
        profile_id: uuid.UUID,
    ) -> Profile:
        """
        Raises:
            HTTPException(404): if not found, not a buyer, or not owned.
        """
        profile = self.repo.get_by_id(session, profile_id)
        if (
            profile is None
            or profile.user_id != user_id
            or profile.profile_type != "buyer"
        ):
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Buyer profile not found",
            )
        return profile

    def update_buyer(
        self,
        session: Session,
        user_id: uuid.UUID,
        profile_id: uuid.UUID,
        payload: ProfileUpdate,
    ) -> Profile:
        profile = self.get_buyer(session, user_id, profile_id)
        return self._apply_update(session, profile, payload)

    def delete_buyer(
        self,
        session: Session,
        user_id: uuid.UUID,
        profile_id: uuid.UUID,
    ) -> None:
        """
        Raises:
            HTTPException(409): if an order references the profile.
        """
        profile = self.get_buyer(session, user_id, profile_id)
        if self.order_repo.count_orders_for_profile(session, profile.id):
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Buyer profile is used by an order and cannot be deleted",
            )
        self.repo.delete(session, profile)

    def _apply_update(
        self,
        session: Session,
        profile: Profile,
        payload: ProfileUpdate,
    ) -> Profile:
        data = payload.model_dump(exclude_unset=True)
        for key, value in data.items():
            setattr(profile, key, value)
        profile.updated_at = datetime.now(timezone.utc)
        return self.repo.save(session, profile)
