"""Delivery address resolution for bot-initiated orders and checkout."""
from typing import Optional, Union

from sqlalchemy.orm import Session

from ..data.models import Customer
from ..schemas.io_models import DishRead
from ..schemas.order_models import NeedsAddress, OrderQuery
from .errors import NotFound

NEED_ADDRESS_REPLY = (
    "I don't have a delivery address for you. "
    "Please provide your delivery address so I can place the order."
)


class AddressResolver:
    def lookup(self, db: Session, customer_id: int, override: str = None) -> Optional[str]:
        """Explicit override, else the customer's saved address, else None."""
        override = (override or "").strip()
        if override:
            return override
        customer = db.get(Customer, customer_id)
        if customer is None:
            raise NotFound("Customer not found.")
        saved = (customer.address or "").strip()
        return saved or None

    def resolve(self, db: Session, customer_id: int, override: str, query: OrderQuery,
                dish: DishRead) -> Union[str, NeedsAddress]:
        address = self.lookup(db, customer_id, override)
        if address:
            return address
        return NeedsAddress(reply=NEED_ADDRESS_REPLY, query=query, found_dish=dish)
