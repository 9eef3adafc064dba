"""Order lifecycle engine.

An order carries two tracked dimensions:

    status:          Pending -> Preparing -> Dish Picked by Delivery Boy -> Delivered
                     (Cancelled from any non-terminal status)
    delivery_status: Unassigned -> Assigned -> PickedUp -> Delivered

Courier transitions are written with a conditional UPDATE on the current
delivery status, so when two requests race only one of them sees its
precondition hold. The loser gets InvalidTransition and the order is left
as the winner wrote it. Events are published after the commit.
"""
from datetime import datetime, timezone
from typing import Callable, List

from sqlalchemy.orm import Session

from ..data.models import (
    Customer,
    DeliveryBoy,
    DeliveryStatus,
    Dish,
    Order,
    OrderItem,
    OrderStatus,
    Owner,
)
from ..schemas.io_models import OrderCreate, OrderRead
from ..utils.logger import get_logger
from ..utils.security import mask_pii
from .errors import InvalidTransition, NotFound, ValidationError
from .notifier import Notifier

log = get_logger("lifecycle")

TOTAL_TOLERANCE = 0.01
TERMINAL = [OrderStatus.delivered, OrderStatus.cancelled]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class OrderLifecycle:
    def __init__(self, notifier: Notifier = None):
        self.notifier = notifier or Notifier()

    # ----- helpers -----

    @staticmethod
    def project(order: Order) -> OrderRead:
        return OrderRead.model_validate(order)

    @staticmethod
    def _get(db: Session, order_id: int) -> Order:
        order = db.get(Order, order_id)
        if order is None:
            raise NotFound("Order not found.")
        return order

    def _conditional_update(self, db: Session, order_id: int, conditions: list, values: dict,
                            explain: Callable[[Order], str]) -> Order:
        """Check-and-set in one statement; explain() words the failure when nothing matched."""
        values[Order.updated_at] = utcnow()
        matched = (
            db.query(Order)
            .filter(Order.id == order_id, *conditions)
            .update(values, synchronize_session=False)
        )
        if not matched:
            db.rollback()
            order = self._get(db, order_id)
            raise InvalidTransition(explain(order))
        db.commit()
        return self._get(db, order_id)

    # ----- creation -----

    def create_order(self, db: Session, payload: OrderCreate, message: str = None) -> OrderRead:
        customer = db.get(Customer, payload.customer_id)
        if customer is None:
            raise NotFound("Customer not found.")
        owner = db.get(Owner, payload.owner_id)
        if owner is None:
            raise NotFound("Restaurant not found.")
        if not payload.items:
            raise ValidationError("Order must contain at least one item.")
        address = (payload.address or "").strip()
        if not address:
            raise ValidationError("Delivery address is required.")

        lines = []
        for item in payload.items:
            if item.quantity < 1:
                raise ValidationError("Quantity must be at least 1.")
            dish = db.get(Dish, item.dish_id)
            if dish is None:
                raise NotFound(f"Dish {item.dish_id} not found.")
            if dish.owner_id != owner.id:
                raise ValidationError(f"{dish.name} is not served by {owner.hotel_name}.")
            # snapshot name and price as they are right now
            lines.append(OrderItem(dish_id=dish.id, name=dish.name, price=dish.price, quantity=item.quantity))

        total = round(sum(line.price * line.quantity for line in lines), 2)
        if payload.total_amount is not None and abs(payload.total_amount - total) > TOTAL_TOLERANCE:
            raise ValidationError(f"Total amount {payload.total_amount} does not match item total {total}.")

        now = utcnow()
        order = Order(
            customer_id=customer.id,
            owner_id=owner.id,
            items=lines,
            total_amount=total,
            address=address,
            payment=payload.payment,
            status=OrderStatus.pending,
            delivery_status=DeliveryStatus.unassigned,
            delivery_boy_id=None,
            remarks=payload.remarks or "",
            created_at=now,
            updated_at=now,
        )
        db.add(order)
        db.commit()
        db.refresh(order)

        view = self.project(order)
        log.info("Order %s created for customer %s at owner %s (total %.2f, deliver to %s)",
                 order.id, customer.id, owner.id, total, mask_pii(address))
        self.notifier.order_created(view.dump(), message)
        return view

    # ----- courier actions -----

    def accept(self, db: Session, order_id: int, courier_id: int) -> OrderRead:
        if courier_id is None:
            raise ValidationError("Delivery boy ID is required.")
        if db.get(DeliveryBoy, courier_id) is None:
            raise NotFound("Delivery boy not found.")

        order = self._conditional_update(
            db,
            order_id,
            [Order.delivery_status == DeliveryStatus.unassigned, Order.status.notin_(TERMINAL)],
            {
                Order.delivery_boy_id: courier_id,
                Order.delivery_status: DeliveryStatus.assigned,
                Order.assigned_at: utcnow(),
            },
            lambda o: "Order already assigned." if o.delivery_status != DeliveryStatus.unassigned
            else f"Order is {o.status.value}.",
        )
        view = self.project(order)
        log.info("Order %s accepted by courier %s", order_id, courier_id)
        self.notifier.order_assigned(view.dump())
        return view

    def courier_pickup(self, db: Session, order_id: int, courier_id: int = None) -> OrderRead:
        conditions = [Order.delivery_status == DeliveryStatus.assigned, Order.status.notin_(TERMINAL)]
        if courier_id is not None:
            conditions.append(Order.delivery_boy_id == courier_id)

        def explain(o: Order) -> str:
            if o.status.is_terminal:
                return f"Order is {o.status.value}."
            if o.delivery_status != DeliveryStatus.assigned:
                return "Order not yet assigned." if o.delivery_status == DeliveryStatus.unassigned \
                    else f"Order is already {o.delivery_status.value}."
            return "Order is assigned to another delivery boy."

        # status moves in lockstep with the courier's pickup
        order = self._conditional_update(
            db,
            order_id,
            conditions,
            {
                Order.delivery_status: DeliveryStatus.picked_up,
                Order.status: OrderStatus.dish_picked,
                Order.picked_at: utcnow(),
            },
            explain,
        )
        view = self.project(order)
        log.info("Order %s picked up by courier %s", order_id, order.delivery_boy_id)
        self.notifier.order_updated(view.dump())
        return view

    def courier_deliver(self, db: Session, order_id: int, courier_id: int = None) -> OrderRead:
        conditions = [Order.delivery_status == DeliveryStatus.picked_up, Order.status.notin_(TERMINAL)]
        if courier_id is not None:
            conditions.append(Order.delivery_boy_id == courier_id)

        def explain(o: Order) -> str:
            if o.status.is_terminal:
                return f"Order is {o.status.value}."
            if o.delivery_status != DeliveryStatus.picked_up:
                return "Order not picked yet." if o.delivery_status in (DeliveryStatus.unassigned, DeliveryStatus.assigned) \
                    else f"Order is already {o.delivery_status.value}."
            return "Order is assigned to another delivery boy."

        order = self._conditional_update(
            db,
            order_id,
            conditions,
            {
                Order.delivery_status: DeliveryStatus.delivered,
                Order.status: OrderStatus.delivered,
                Order.delivered_at: utcnow(),
            },
            explain,
        )
        view = self.project(order)
        log.info("Order %s delivered by courier %s", order_id, order.delivery_boy_id)
        self.notifier.order_updated(view.dump())
        return view

    # ----- owner actions -----

    def update_status(self, db: Session, order_id: int, status: OrderStatus, owner_id: int = None) -> OrderRead:
        """Owner sets the order status; the picked status also moves the delivery track."""
        try:
            status = OrderStatus(status)
        except ValueError:
            raise ValidationError(f"Unknown order status '{status}'.")

        order = self._get(db, order_id)
        if owner_id is not None and order.owner_id != owner_id:
            raise NotFound("Order not found.")
        if order.status.is_terminal:
            raise InvalidTransition(f"Order is already {order.status.value}.")

        observed_status, observed_delivery = order.status, order.delivery_status
        values = {Order.status: status}
        if status == OrderStatus.delivered and order.delivery_boy_id is not None:
            # the courier's delivery moves both tracks together
            raise InvalidTransition("This order is with a delivery boy; only they can mark it delivered.")
        if status == OrderStatus.dish_picked:
            if order.delivery_boy_id is None or observed_delivery not in (DeliveryStatus.assigned, DeliveryStatus.picked_up):
                raise InvalidTransition("No delivery boy has accepted this order yet.")
            if observed_delivery != DeliveryStatus.picked_up:
                values[Order.delivery_status] = DeliveryStatus.picked_up
                values[Order.picked_at] = utcnow()

        order = self._conditional_update(
            db,
            order_id,
            [Order.status == observed_status, Order.delivery_status == observed_delivery],
            values,
            lambda o: "Order was changed by someone else; refresh and try again.",
        )
        view = self.project(order)
        log.info("Order %s status %s -> %s", order_id, observed_status.value, status.value)
        self.notifier.order_updated(view.dump())
        return view

    def cancel(self, db: Session, order_id: int) -> OrderRead:
        return self.update_status(db, order_id, OrderStatus.cancelled)

    # ----- queries -----

    def get_order(self, db: Session, order_id: int) -> OrderRead:
        return self.project(self._get(db, order_id))

    @staticmethod
    def _newest_first(db: Session, *conditions) -> List[OrderRead]:
        orders = (
            db.query(Order)
            .filter(*conditions)
            .order_by(Order.created_at.desc(), Order.id.desc())
            .all()
        )
        return [OrderRead.model_validate(o) for o in orders]

    def orders_for_customer(self, db: Session, customer_id: int) -> List[OrderRead]:
        return self._newest_first(db, Order.customer_id == customer_id)

    def orders_for_owner(self, db: Session, owner_id: int) -> List[OrderRead]:
        return self._newest_first(db, Order.owner_id == owner_id)

    def orders_for_courier(self, db: Session, courier_id: int) -> List[OrderRead]:
        return self._newest_first(db, Order.delivery_boy_id == courier_id)

    def available_orders(self, db: Session) -> List[OrderRead]:
        return self._newest_first(
            db,
            Order.delivery_status == DeliveryStatus.unassigned,
            Order.status.notin_(TERMINAL),
        )

    def all_orders(self, db: Session) -> List[OrderRead]:
        return self._newest_first(db)
