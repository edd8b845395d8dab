"""Address book service."""
import logging
from typing import List
from sqlalchemy.orm import Session

from errors import NotFoundError
from models import Address
from schemas import AddressCreate, AddressUpdate

logger = logging.getLogger(__name__)


class AddressService:
    """Shipping addresses of a user. Exactly one is default whenever any exist."""

    def list_addresses(self, db: Session, user_id: str) -> List[Address]:
        return (
            db.query(Address)
            .filter(Address.user_id == user_id)
            .order_by(Address.created_at, Address.id)
            .all()
        )

    def _get(self, db: Session, user_id: str, address_id: str) -> Address:
        address = db.query(Address).filter(
            Address.id == address_id,
            Address.user_id == user_id
        ).first()
        if address is None:
            raise NotFoundError("Address not found")
        return address

    def _make_default(self, db: Session, user_id: str, address: Address) -> None:
        for other in self.list_addresses(db, user_id):
            other.is_default = other is address

    def _ensure_default(self, db: Session, user_id: str) -> None:
        addresses = self.list_addresses(db, user_id)
        if addresses and not any(address.is_default for address in addresses):
            addresses[0].is_default = True

    def add_address(self, db: Session, user_id: str, data: AddressCreate) -> List[Address]:
        """Add an address; the first one, or one flagged default, becomes the default."""
        is_first = db.query(Address).filter(Address.user_id == user_id).count() == 0

        address = Address(user_id=user_id, **data.model_dump())
        db.add(address)
        db.flush()

        if data.is_default or is_first:
            self._make_default(db, user_id, address)
        db.commit()

        logger.info("Address added", extra={"user_id": user_id, "address_id": address.id})
        return self.list_addresses(db, user_id)

    def update_address(self, db: Session, user_id: str, address_id: str, data: AddressUpdate) -> List[Address]:
        """
        Change the supplied fields of an address.

        Raises:
            NotFoundError: If the address does not belong to the user
        """
        address = self._get(db, user_id, address_id)
        changes = data.model_dump(exclude_unset=True)
        make_default = changes.pop("is_default", None)

        for field, value in changes.items():
            if value is not None:
                setattr(address, field, value)

        if make_default:
            self._make_default(db, user_id, address)
        elif make_default is False:
            address.is_default = False
            db.flush()
            self._ensure_default(db, user_id)
        db.commit()

        logger.info("Address updated", extra={"user_id": user_id, "address_id": address_id})
        return self.list_addresses(db, user_id)

    def delete_address(self, db: Session, user_id: str, address_id: str) -> List[Address]:
        """Delete an address; if it was the default, the oldest remaining one takes over."""
        address = self._get(db, user_id, address_id)
        db.delete(address)
        db.flush()
        self._ensure_default(db, user_id)
        db.commit()

        logger.info("Address deleted", extra={"user_id": user_id, "address_id": address_id})
        return self.list_addresses(db, user_id)
