# giveaway/services/address_service.py
import uuid

from fastapi import HTTPException, status
from sqlmodel import Session

from giveaway.models.address import Address
from giveaway.repositories.address_repo import AddressRepository
from giveaway.schemas.address import AddressCreate, AddressUpdate


class AddressService:
    """
    Saved shipping addresses.

    Rules:
      - at most one default address per user
      - the first address a user saves becomes the default
      - deleting the default hands it to the oldest remaining address
    """

    def __init__(self, repo: AddressRepository):
        self.repo = repo

    def list_addresses(self, session: Session, user_id: uuid.UUID) -> list[Address]:
        return self.repo.list_for_user(session, user_id)

    def get_address(
        self,
        session: Session,
        user_id: uuid.UUID,
        address_id: uuid.UUID,
    ) -> Address:
        return self._get_or_404(session, user_id, address_id)

    def create_address(
        self,
        session: Session,
        user_id: uuid.UUID,
        payload: AddressCreate,
    ) -> Address:
        address = Address(user_id=user_id, **payload.model_dump())
        if not self.repo.list_for_user(session, user_id):
            address.is_default = True
        if address.is_default:
            self.repo.clear_default(session, user_id, keep_id=address.id)
        return self.repo.save(session, address)

    def update_address(
        self,
        session: Session,
        user_id: uuid.UUID,
        address_id: uuid.UUID,
        payload: AddressUpdate,
    ) -> Address:
        address = self._get_or_404(session, user_id, address_id)

        data = payload.model_dump(exclude_unset=True)
        for key, value in data.items():
            if value is None and key not in ("district", "landmark"):
                continue
            setattr(address, key, value)

        if address.is_default:
            self.repo.clear_default(session, user_id, keep_id=address.id)
        return self.repo.save(session, address)

    def set_default_address(
        self,
        session: Session,
        user_id: uuid.UUID,
        address_id: uuid.UUID,
    ) -> Address:
        address = self._get_or_404(session, user_id, address_id)
        address.is_default = True
        self.repo.clear_default(session, user_id, keep_id=address.id)
        return self.repo.save(session, address)

    def delete_address(
        self,
        session: Session,
        user_id: uuid.UUID,
        address_id: uuid.UUID,
    ) -> None:
        """
        Orders keep their own shipping snapshot, so deleting is always safe.
        Removing the default promotes the oldest remaining address.
        """
        address = self._get_or_404(session, user_id, address_id)
        was_default = address.is_default
        self.repo.delete(session, address)

        if was_default:
            remaining = self.repo.list_for_user(session, user_id)
            if remaining:
                remaining[0].is_default = True
                self.repo.save(session, remaining[0])

    def _get_or_404(
        self,
        session: Session,
        user_id: uuid.UUID,
        address_id: uuid.UUID,
    ) -> Address:
        address = self.repo.get_for_user(session, user_id, address_id)
        if not address:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Address not found",
            )
        return address
