# giveaway/repositories/profile_repo.py
import uuid

from sqlmodel import Session, select

from giveaway.models.profile import Profile


class ProfileRepository:
    """
    Data access layer for Profile.

    Commits on every write, same as the user repository: profile edits are
    single-row operations.
    """

    def get_by_id(self, session: Session, profile_id: uuid.UUID) -> Profile | None:
        return session.get(Profile, profile_id)

    def get_user_profile(self, session: Session, user_id: uuid.UUID) -> Profile | None:
        stmt = select(Profile).where(
            Profile.user_id == user_id,
            Profile.profile_type == "user",
        )
        return session.exec(stmt).first()

    def list_buyers(self, session: Session, user_id: uuid.UUID) -> list[Profile]:
        stmt = (
            select(Profile)
            .where(Profile.user_id == user_id, Profile.profile_type == "buyer")
            .order_by(Profile.created_at)
        )
        return list(session.exec(stmt).all())

    def list_buyers_by_ids(
        self,
        session: Session,
        user_id: uuid.UUID,
        profile_ids: list[uuid.UUID],
    ) -> list[Profile]:
        if not profile_ids:
            return []
        stmt = select(Profile).where(
            Profile.user_id == user_id,
            Profile.profile_type == "buyer",
            Profile.id.in_(profile_ids),
        )
        return list(session.exec(stmt).all())

    def save(self, session: Session, profile: Profile) -> Profile:
        session.add(profile)
        session.commit()
        session.refresh(profile)
        return profile

    def delete(self, session: Session, profile: Profile) -> None:
        session.delete(profile)
        session.commit()
