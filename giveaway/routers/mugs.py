# giveaway/routers/mugs.py
from fastapi import APIRouter, Depends
from sqlmodel import Session

from giveaway.core.auth import require_user
from giveaway.database import get_session
from giveaway.models.user import User
from giveaway.repositories.mug_repo import MugAssignmentRepository
from giveaway.repositories.order_repo import OrderRepository
from giveaway.repositories.sequence_repo import SequenceCounterRepository
from giveaway.schemas.mug import MugAssignmentRead
from giveaway.services.mug_service import MugService

router = APIRouter(prefix="/mugs", tags=["Mugs"])

service = MugService(MugAssignmentRepository(), OrderRepository(), SequenceCounterRepository())


@router.get("/me", response_model=list[MugAssignmentRead])
def list_my_mugs(
    session: Session = Depends(get_session),
    current_user: User = Depends(require_user),
    skip: int = 0,
    limit: int = 50,
):
    """
    Mug units assigned to the current user's buyer profiles, by unit id.
    """
    return service.list_user_mugs(session, current_user.id, skip, limit)
