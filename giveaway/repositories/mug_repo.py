# giveaway/repositories/mug_repo.py
import uuid

from sqlalchemy import func
from sqlmodel import Session, select

from giveaway.models.mug import MugAssignment


class MugAssignmentRepository:
    """
    Data access layer for mug_assignments.

    Rows are append-only; there is no update or delete here.
    """

    def exists_for_order(self, session: Session, order_id: uuid.UUID) -> bool:
        stmt = select(MugAssignment.id).where(MugAssignment.order_id == order_id).limit(1)
        return session.exec(stmt).first() is not None

    def max_unit_id(self, session: Session) -> int:
        """Highest unit_id in the whole table, 0 when empty."""
        value = session.exec(select(func.max(MugAssignment.unit_id))).one()
        return int(value or 0)

    def insert(self, session: Session, row: MugAssignment) -> MugAssignment:
        """
        Insert one row and flush so a unique violation surfaces here.
        """
        session.add(row)
        session.flush()
        return row

    def list_for_order(
        self,
        session: Session,
        order_id: uuid.UUID,
    ) -> list[MugAssignment]:
        stmt = (
            select(MugAssignment)
            .where(MugAssignment.order_id == order_id)
            .order_by(MugAssignment.unit_id)
        )
        return list(session.exec(stmt).all())

    def list_for_user(
        self,
        session: Session,
        user_id: uuid.UUID,
        skip: int = 0,
        limit: int = 50,
    ) -> list[MugAssignment]:
        stmt = (
            select(MugAssignment)
            .where(MugAssignment.user_id == user_id)
            .order_by(MugAssignment.unit_id)
            .offset(skip)
            .limit(limit)
        )
        return list(session.exec(stmt).all())
