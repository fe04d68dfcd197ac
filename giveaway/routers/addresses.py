# giveaway/routers/addresses.py
import uuid

from fastapi import APIRouter, Depends, status
from sqlmodel import Session

from giveaway.core.auth import require_user
from giveaway.database import get_session
from giveaway.models.user import User
from giveaway.repositories.address_repo import AddressRepository
from giveaway.schemas.address import AddressCreate, AddressRead, AddressUpdate
from giveaway.services.address_service import AddressService

router = APIRouter(prefix="/addresses", tags=["Addresses"])

service = AddressService(AddressRepository())


@router.get("", response_model=list[AddressRead])
def list_addresses(
    session: Session = Depends(get_session),
    current_user: User = Depends(require_user),
):
    """
    Saved addresses of the current user, default first.
    """
    return service.list_addresses(session, current_user.id)


@router.post(
    "",
    response_model=AddressRead,
    status_code=status.HTTP_201_CREATED,
)
def create_address(
    payload: AddressCreate,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_user),
):
    return service.create_address(session, current_user.id, payload)


@router.get("/{address_id}", response_model=AddressRead)
def get_address(
    address_id: uuid.UUID,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_user),
):
    return service.get_address(session, current_user.id, address_id)


@router.patch("/{address_id}", response_model=AddressRead)
def update_address(
    address_id: uuid.UUID,
    payload: AddressUpdate,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_user),
):
    return service.update_address(session, current_user.id, address_id, payload)


@router.put("/{address_id}/default", response_model=AddressRead)
def set_default_address(
    address_id: uuid.UUID,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_user),
):
    """
    Make this address the default; every other address loses the flag.
    """
    return service.set_default_address(session, current_user.id, address_id)


@router.delete("/{address_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_address(
    address_id: uuid.UUID,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_user),
):
    service.delete_address(session, current_user.id, address_id)
