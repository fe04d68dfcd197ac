# giveaway/routers/profiles.py
import uuid

from fastapi import APIRouter, Depends, status
from sqlmodel import Session

from giveaway.core.auth import require_user
from giveaway.database import get_session
from giveaway.models.user import User
from giveaway.repositories.order_repo import OrderRepository
from giveaway.repositories.profile_repo import ProfileRepository
from giveaway.schemas.profile import BuyerProfileCreate, ProfileRead, ProfileUpdate
from giveaway.services.profile_service import ProfileService

router = APIRouter(prefix="/profiles", tags=["Profiles"])

service = ProfileService(ProfileRepository(), OrderRepository())


# -------- Account holder profile --------


@router.get("/user", response_model=ProfileRead)
def read_user_profile(
    session: Session = Depends(get_session),
    current_user: User = Depends(require_user),
):
    """
    The account holder's own profile; created on first access.
    """
    return service.get_user_profile(session, current_user)


@router.patch("/user", response_model=ProfileRead)
def update_user_profile(
    payload: ProfileUpdate,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_user),
):
    return service.update_user_profile(session, current_user, payload)


# -------- Buyer profiles --------


@router.get("/buyers", response_model=list[ProfileRead])
def list_buyers(
    session: Session = Depends(get_session),
    current_user: User = Depends(require_user),
):
    return service.list_buyers(session, current_user.id)


@router.post(
    "/buyers",
    response_model=ProfileRead,
    status_code=status.HTTP_201_CREATED,
)
def create_buyer(
    payload: BuyerProfileCreate,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_user),
):
    """
    Add a buyer (gift recipient). Buyer profiles listed on a paid order
    receive one mug unit each.
    """
    return service.create_buyer(session, current_user.id, payload)


@router.get("/buyers/{profile_id}", response_model=ProfileRead)
def get_buyer(
    profile_id: uuid.UUID,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_user),
):
    return service.get_buyer(session, current_user.id, profile_id)


@router.patch("/buyers/{profile_id}", response_model=ProfileRead)
def update_buyer(
    profile_id: uuid.UUID,
    payload: ProfileUpdate,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_user),
):
    return service.update_buyer(session, current_user.id, profile_id, payload)


@router.delete("/buyers/{profile_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_buyer(
    profile_id: uuid.UUID,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_user),
):
    """
    Delete a buyer profile. Fails with 409 once an order uses it.
    """
    service.delete_buyer(session, current_user.id, profile_id)
