"""Pydantic models for API I/O.

Field names are snake_case in Python and camelCase on the wire, which is what
the existing web and courier clients send and expect.
"""
from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import Any, Dict, List, Optional

from ..data.models import DeliveryStatus, OrderStatus, PaymentMethod


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    def dump(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


# ----- projections -----

class CustomerBrief(CamelModel):
    id: int
    name: str
    phone: Optional[str] = None
    email: Optional[str] = None


class OwnerBrief(CamelModel):
    id: int
    hotel_name: str
    email: Optional[str] = None
    phone: Optional[str] = None


class CourierBrief(CamelModel):
    id: int
    name: str
    phone: Optional[str] = None
    email: Optional[str] = None


class OrderItemRead(CamelModel):
    dish_id: int
    name: str
    price: float
    quantity: int


class OrderRead(CamelModel):
    id: int
    customer_id: int
    owner_id: int
    delivery_boy_id: Optional[int] = None
    items: List[OrderItemRead]
    total_amount: float
    address: str
    payment: PaymentMethod
    status: OrderStatus
    delivery_status: DeliveryStatus
    remarks: str = ""
    created_at: datetime
    updated_at: datetime
    assigned_at: Optional[datetime] = None
    picked_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    customer: Optional[CustomerBrief] = None
    owner: Optional[OwnerBrief] = None
    delivery_boy: Optional[CourierBrief] = None


class DishRead(CamelModel):
    id: int
    owner_id: int
    hotel_name: Optional[str] = None
    name: str
    price: float
    image: Optional[str] = None
    about: Optional[str] = None
    avg_rating: float = 0


class ReviewRead(CamelModel):
    id: int
    customer_id: int
    dish_id: int
    rating: int
    comment: str = ""
    created_at: Optional[datetime] = None
    customer: Optional[CustomerBrief] = None


class CartLine(CamelModel):
    id: int
    dish_id: int
    owner_id: int
    name: str
    price: float
    image: Optional[str] = None
    about: Optional[str] = None
    hotel_name: str
    quantity: int
    subtotal: float


class CartView(CamelModel):
    items: List[CartLine] = Field(default_factory=list)
    total: float = 0


# ----- requests -----

class OrderItemIn(CamelModel):
    dish_id: int
    quantity: int = 1
    # accepted for compatibility; the catalog is authoritative
    name: Optional[str] = None
    price: Optional[float] = None


class OrderCreate(CamelModel):
    customer_id: int
    owner_id: int
    items: List[OrderItemIn]
    address: str
    payment: PaymentMethod
    total_amount: Optional[float] = None
    remarks: str = ""


class StatusUpdate(CamelModel):
    # coerced to OrderStatus by the lifecycle engine
    status: str
    owner_id: Optional[int] = None


class CourierAction(CamelModel):
    delivery_boy_id: Optional[int] = None


class CartAdd(CamelModel):
    customer_id: int
    dish_id: int
    quantity: int = 1


class CartQuantity(CamelModel):
    quantity: int


class CheckoutRequest(CamelModel):
    payment_method: PaymentMethod = PaymentMethod.cod
    address: Optional[str] = None


class ReviewCreate(CamelModel):
    customer_id: int
    dish_id: int
    rating: int
    comment: str = ""


class BotRequest(CamelModel):
    message: Optional[str] = None
    customer_id: Optional[int] = None
    address: Optional[str] = None
