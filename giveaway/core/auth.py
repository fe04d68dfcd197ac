# giveaway/core/auth.py
"""
Bearer-token authentication.

Tokens are issued by the identity provider and signed with the shared
JWT_SECRET. We only verify them and map the claims onto a local account;
accounts (with their "user" profile) are created on first sight.
"""
import uuid
from dataclasses import dataclass

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import jwt, JWTError
from sqlmodel import Session

from giveaway.core.config import get_settings
from giveaway.database import get_session
from giveaway.models.user import User
from giveaway.repositories.profile_repo import ProfileRepository
from giveaway.repositories.user_repo import UserRepository
from giveaway.services.account_service import AccountService

settings = get_settings()

bearer_scheme = HTTPBearer(auto_error=False)

accounts = AccountService(UserRepository(), ProfileRepository())


@dataclass(frozen=True)
class IdentityClaims:
    """The subset of token claims an account is built from."""

    user_id: uuid.UUID
    email: str
    phone: str | None = None
    name: str | None = None


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def read_identity_claims(token: str) -> IdentityClaims:
    """
    Verify signature and expiry, then pull out sub / email / phone / name.

    'aud' is not checked; providers disagree on it.

    Raises:
        HTTPException(401): bad signature, expired, or missing sub/email.
    """
    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALG],
            options={"verify_aud": False},
        )
    except JWTError:
        raise _unauthorized("Invalid or expired token")

    sub = payload.get("sub")
    email = payload.get("email")
    if not sub or not email:
        raise _unauthorized("Token missing sub/email")

    try:
        user_id = uuid.UUID(str(sub))
    except ValueError:
        raise _unauthorized("Invalid sub in token")

    metadata = payload.get("user_metadata") or {}
    return IdentityClaims(
        user_id=user_id,
        email=email,
        phone=payload.get("phone") or None,
        name=payload.get("name") or metadata.get("name") or None,
    )


def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    session: Session = Depends(get_session),
) -> User:
    if credentials is None:
        raise _unauthorized("Authentication required")

    claims = read_identity_claims(credentials.credentials)
    return accounts.resolve_account(
        session,
        user_id=claims.user_id,
        email=claims.email,
        phone=claims.phone,
        name=claims.name,
    )


def require_admin(user: User = Depends(get_current_user)) -> User:
    if user.role != "admin":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return user


def require_user(user: User = Depends(get_current_user)) -> User:
    """
    Customer-only routes: checkout, payments, buyer profiles, addresses.
    Admin accounts get 403 here.
    """
    if user.role != "user":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Customer access required",
        )
    return user
