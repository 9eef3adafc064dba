from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from .database import Base
import enum
import secrets


class OrderStatus(str, enum.Enum):
    pending = "Pending"
    preparing = "Preparing"
    dish_picked = "Dish Picked by Delivery Boy"
    delivered = "Delivered"
    cancelled = "Cancelled"

    @classmethod
    def _missing_(cls, value):
        # Accept the compact spelling used by some clients
        if isinstance(value, str) and value.replace(" ", "").lower() in ("dishpickedbycourier", "dishpickedbydeliveryboy"):
            return cls.dish_picked
        return None

    @property
    def is_terminal(self) -> bool:
        return self in (OrderStatus.delivered, OrderStatus.cancelled)


class DeliveryStatus(str, enum.Enum):
    unassigned = "Unassigned"
    assigned = "Assigned"
    picked_up = "PickedUp"
    out_for_delivery = "OutForDelivery"
    delivered = "Delivered"


class PaymentMethod(str, enum.Enum):
    cod = "COD"
    upi = "UPI"
    card = "Card"


class CartStatus(str, enum.Enum):
    in_cart = "in-cart"
    ordered = "ordered"
    delivered = "delivered"


def _owner_code():
    return "OWN-" + secrets.token_hex(3).upper()


class Customer(Base):
    __tablename__ = "customers"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    phone = Column(String, unique=True, index=True, nullable=True)
    email = Column(String, unique=True, index=True, nullable=True)
    address = Column(String, nullable=False, default="")
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    orders = relationship("Order", back_populates="customer")


class Owner(Base):
    __tablename__ = "owners"

    id = Column(Integer, primary_key=True, index=True)
    hotel_name = Column(String, index=True, nullable=False)
    email = Column(String, unique=True, index=True, nullable=True)
    phone = Column(String, nullable=True)
    address = Column(String, nullable=False, default="")
    owner_code = Column(String, unique=True, index=True, default=_owner_code)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    dishes = relationship("Dish", back_populates="owner")
    orders = relationship("Order", back_populates="owner")


class DeliveryBoy(Base):
    __tablename__ = "delivery_boys"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    email = Column(String, unique=True, index=True, nullable=True)
    phone = Column(String, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    orders = relationship("Order", back_populates="delivery_boy")


class Dish(Base):
    __tablename__ = "dishes"

    id = Column(Integer, primary_key=True, index=True)
    owner_id = Column(Integer, ForeignKey("owners.id"), nullable=False, index=True)
    name = Column(String, index=True, nullable=False)
    price = Column(Float, nullable=False)
    image = Column(String, nullable=False, default="https://via.placeholder.com/200")
    about = Column(String, nullable=True)
    avg_rating = Column(Float, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    owner = relationship("Owner", back_populates="dishes")
    reviews = relationship("Review", back_populates="dish")

    @property
    def hotel_name(self):
        return self.owner.hotel_name if self.owner else None


class Review(Base):
    __tablename__ = "reviews"
    __table_args__ = (
        UniqueConstraint("customer_id", "dish_id", name="uq_review_customer_dish"),
        CheckConstraint("rating >= 1 AND rating <= 5", name="ck_review_rating"),
    )

    id = Column(Integer, primary_key=True, index=True)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=False, index=True)
    dish_id = Column(Integer, ForeignKey("dishes.id"), nullable=False, index=True)
    rating = Column(Integer, nullable=False)
    comment = Column(String, nullable=False, default="")
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    customer = relationship("Customer")
    dish = relationship("Dish", back_populates="reviews")


class CartItem(Base):
    __tablename__ = "cart_items"
    __table_args__ = (
        UniqueConstraint("customer_id", "dish_id", name="uq_cart_customer_dish"),
    )

    id = Column(Integer, primary_key=True, index=True)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=False, index=True)
    dish_id = Column(Integer, ForeignKey("dishes.id"), nullable=False)
    quantity = Column(Integer, nullable=False, default=1)
    status = Column(Enum(CartStatus), nullable=False, default=CartStatus.in_cart)
    added_at = Column(DateTime(timezone=True), server_default=func.now())

    dish = relationship("Dish")


class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=False, index=True)
    owner_id = Column(Integer, ForeignKey("owners.id"), nullable=False, index=True)
    delivery_boy_id = Column(Integer, ForeignKey("delivery_boys.id"), nullable=True, index=True)
    total_amount = Column(Float, nullable=False)
    address = Column(String, nullable=False)
    payment = Column(Enum(PaymentMethod), nullable=False)
    status = Column(Enum(OrderStatus), nullable=False, default=OrderStatus.pending)
    delivery_status = Column(Enum(DeliveryStatus), nullable=False, default=DeliveryStatus.unassigned)
    remarks = Column(String, nullable=False, default="")
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)
    assigned_at = Column(DateTime(timezone=True), nullable=True)
    picked_at = Column(DateTime(timezone=True), nullable=True)
    delivered_at = Column(DateTime(timezone=True), nullable=True)

    customer = relationship("Customer", back_populates="orders")
    owner = relationship("Owner", back_populates="orders")
    delivery_boy = relationship("DeliveryBoy", back_populates="orders")
    items = relationship("OrderItem", back_populates="order", order_by="OrderItem.id", cascade="all, delete-orphan")


class OrderItem(Base):
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)
    dish_id = Column(Integer, ForeignKey("dishes.id"), nullable=False)
    # name and price are snapshots taken when the order is placed
    name = Column(String, nullable=False)
    price = Column(Float, nullable=False)
    quantity = Column(Integer, nullable=False)

    order = relationship("Order", back_populates="items")
