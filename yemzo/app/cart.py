"""Customer cart: one row per (customer, dish), converted to orders at checkout."""
from collections import OrderedDict
from typing import List

from sqlalchemy.orm import Session

from ..data.models import CartItem, Customer, Dish, PaymentMethod
from ..schemas.io_models import CartLine, CartView, OrderCreate, OrderItemIn, OrderRead
from ..utils.logger import get_logger
from .address import AddressResolver
from .errors import NotFound, ValidationError
from .lifecycle import OrderLifecycle

log = get_logger("cart")


class CartService:
    def __init__(self, lifecycle: OrderLifecycle, addresses: AddressResolver = None):
        self.lifecycle = lifecycle
        self.addresses = addresses or AddressResolver()

    @staticmethod
    def _line(item: CartItem) -> CartLine:
        dish = item.dish
        return CartLine(
            id=item.id,
            dish_id=dish.id,
            owner_id=dish.owner_id,
            name=dish.name,
            price=dish.price,
            image=dish.image,
            about=dish.about,
            hotel_name=dish.hotel_name or "Unknown Hotel",
            quantity=item.quantity,
            subtotal=round(dish.price * item.quantity, 2),
        )

    def add(self, db: Session, customer_id: int, dish_id: int, quantity: int = 1) -> CartLine:
        if quantity is None:
            quantity = 1
        if quantity < 1:
            raise ValidationError("Quantity cannot be less than 1.")
        if db.get(Customer, customer_id) is None:
            raise NotFound("Customer not found.")
        if db.get(Dish, dish_id) is None:
            raise NotFound("Dish not found.")

        existing = db.query(CartItem).filter(CartItem.customer_id == customer_id, CartItem.dish_id == dish_id).first()
        if existing:
            existing.quantity += quantity
            item = existing
        else:
            item = CartItem(customer_id=customer_id, dish_id=dish_id, quantity=quantity)
            db.add(item)
        db.commit()
        db.refresh(item)
        return self._line(item)

    def view(self, db: Session, customer_id: int) -> CartView:
        items = (
            db.query(CartItem)
            .filter(CartItem.customer_id == customer_id)
            .order_by(CartItem.id.desc())
            .all()
        )
        lines = [self._line(i) for i in items]
        return CartView(items=lines, total=round(sum(line.subtotal for line in lines), 2))

    def update_quantity(self, db: Session, item_id: int, quantity: int):
        """Returns the updated line, or None when a quantity below 1 removed it."""
        item = db.get(CartItem, item_id)
        if item is None:
            raise NotFound("Item not found in cart.")
        if quantity < 1:
            db.delete(item)
            db.commit()
            return None
        item.quantity = quantity
        db.commit()
        db.refresh(item)
        return self._line(item)

    def remove(self, db: Session, item_id: int):
        deleted = db.query(CartItem).filter(CartItem.id == item_id).delete(synchronize_session=False)
        db.commit()
        if not deleted:
            raise NotFound("Item not found in cart.")

    def clear(self, db: Session, customer_id: int) -> int:
        deleted = db.query(CartItem).filter(CartItem.customer_id == customer_id).delete(synchronize_session=False)
        db.commit()
        return deleted

    def checkout(self, db: Session, customer_id: int, payment: PaymentMethod = PaymentMethod.cod,
                 address: str = None) -> List[OrderRead]:
        """Place one order per restaurant in the cart, then empty the cart."""
        items = db.query(CartItem).filter(CartItem.customer_id == customer_id).order_by(CartItem.id).all()
        if not items:
            raise ValidationError("Your cart is empty!")
        delivery_address = self.addresses.lookup(db, customer_id, address)
        if not delivery_address:
            raise ValidationError("Delivery address is required.")

        by_owner = OrderedDict()
        for item in items:
            by_owner.setdefault(item.dish.owner_id, []).append(item)

        orders = []
        for owner_id, owner_items in by_owner.items():
            payload = OrderCreate(
                customer_id=customer_id,
                owner_id=owner_id,
                items=[OrderItemIn(dish_id=i.dish_id, quantity=i.quantity) for i in owner_items],
                address=delivery_address,
                payment=payment,
            )
            orders.append(self.lifecycle.create_order(db, payload))
            db.query(CartItem).filter(CartItem.id.in_([i.id for i in owner_items])).delete(synchronize_session=False)
            db.commit()

        log.info("Customer %s checked out %d order(s)", customer_id, len(orders))
        return orders
