# giveaway/repositories/address_repo.py
import uuid

from sqlmodel import Session, select

from giveaway.models.address import Address


class AddressRepository:

    def list_for_user(self, session: Session, user_id: uuid.UUID) -> list[Address]:
        stmt = (
            select(Address)
            .where(Address.user_id == user_id)
            .order_by(Address.is_default.desc(), Address.created_at)
        )
        return list(session.exec(stmt).all())

    def get_for_user(
        self,
        session: Session,
        user_id: uuid.UUID,
        address_id: uuid.UUID,
    ) -> Address | None:
        stmt = select(Address).where(
            Address.id == address_id,
            Address.user_id == user_id,
        )
        return session.exec(stmt).first()

    def clear_default(
        self,
        session: Session,
        user_id: uuid.UUID,
        keep_id: uuid.UUID | None = None,
    ) -> None:
        """Unset is_default on every other address of the user (no commit)."""
        for row in self.list_for_user(session, user_id):
            if row.id != keep_id and row.is_default:
                row.is_default = False
                session.add(row)

    def save(self, session: Session, address: Address) -> Address:
        session.add(address)
        session.commit()
        session.refresh(address)
        return address

    def delete(self, session: Session, address: Address) -> None:
        session.delete(address)
        session.commit()
