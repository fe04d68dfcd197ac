# giveaway/routers/users.py
from fastapi import APIRouter, Depends
from sqlmodel import Session

from giveaway.core.auth import accounts, get_current_user
from giveaway.database import get_session
from giveaway.models.user import User
from giveaway.schemas.user import AccountRead, AccountUpdate

router = APIRouter(prefix="/users", tags=["Users"])


@router.get("/me", response_model=AccountRead)
def read_me(
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    """
    The signed-in account with its user-profile details.

    The account (and its user profile) is created on the first
    authenticated request, so this never 404s.
    """
    return accounts.get_account(session, current_user)


@router.patch("/me", response_model=AccountRead)
def update_me(
    payload: AccountUpdate,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    """
    Edit name, phone, state, district or date of birth.

    409 if the phone number is registered to another account.
    """
    return accounts.update_account(session, current_user, payload)
