#!/usr/bin/env python3
"""
Order lifecycle engine

PURPOSE:
    Creation invariants, courier and owner transitions, the
    courier-assigned invariant, and the events published on each change.

TEST COVERAGE:
    - snapshot pricing and total validation
    - single acceptance under competing couriers
    - pickup/delivery preconditions
    - owner status updates, cancellation, terminal states
"""

import unittest

from yemzo.app.errors import InvalidTransition, NotFound, ValidationError
from yemzo.app.lifecycle import OrderLifecycle
from yemzo.app.notifier import Notifier
from yemzo.data.models import DeliveryStatus, Dish, Order, OrderStatus, PaymentMethod
from yemzo.schemas.io_models import OrderCreate, OrderItemIn

from .support import RecordingTransport, memory_session_factory, seed


class TestOrderLifecycle(unittest.TestCase):

    def setUp(self):
        self.db = memory_session_factory()()
        self.ids = seed(self.db)
        self.transport = RecordingTransport()
        self.lifecycle = OrderLifecycle(Notifier(self.transport))

    def tearDown(self):
        self.db.close()

    def place(self, **overrides):
        fields = dict(
            customer_id=self.ids.customer,
            owner_id=self.ids.royal,
            items=[OrderItemIn(dish_id=self.ids.royal_biryani, quantity=2)],
            address="  221B Baker St ",
            payment=PaymentMethod.cod,
        )
        fields.update(overrides)
        return self.lifecycle.create_order(self.db, OrderCreate(**fields))

    def assertCourierInvariant(self):
        for order in self.db.query(Order).all():
            self.assertEqual(order.delivery_boy_id is None, order.delivery_status == DeliveryStatus.unassigned)

    # ----- creation -----

    def test_new_order_is_pending_and_unassigned(self):
        order = self.place()
        self.assertEqual(order.status, OrderStatus.pending)
        self.assertEqual(order.delivery_status, DeliveryStatus.unassigned)
        self.assertIsNone(order.delivery_boy_id)
        self.assertEqual(order.total_amount, 340)
        self.assertEqual(order.address, "221B Baker St")
        self.assertEqual(order.items[0].name, "Chicken Biryani")
        self.assertLessEqual(order.created_at, order.updated_at)
        self.assertEqual(order.customer.name, "Asha Rao")
        self.assertEqual(order.owner.hotel_name, "Royal Treat")

    def test_prices_are_snapshotted(self):
        order = self.place()
        self.db.get(Dish, self.ids.royal_biryani).price = 999
        self.db.commit()
        again = self.lifecycle.get_order(self.db, order.id)
        self.assertEqual(again.items[0].price, 170)
        self.assertEqual(again.total_amount, 340)

    def test_supplied_total_must_match(self):
        self.place(total_amount=340.004)
        with self.assertRaises(ValidationError):
            self.place(total_amount=300)
        self.assertEqual(self.db.query(Order).count(), 1)

    def test_invalid_orders_are_rejected(self):
        with self.assertRaises(ValidationError):
            self.place(address="   ")
        with self.assertRaises(ValidationError):
            self.place(items=[])
        with self.assertRaises(ValidationError):
            self.place(items=[OrderItemIn(dish_id=self.ids.royal_biryani, quantity=0)])
        with self.assertRaises(ValidationError):
            self.place(items=[OrderItemIn(dish_id=self.ids.spice_pizza, quantity=1)])
        with self.assertRaises(NotFound):
            self.place(customer_id=9999)
        with self.assertRaises(NotFound):
            self.place(items=[OrderItemIn(dish_id=9999, quantity=1)])
        self.assertEqual(self.db.query(Order).count(), 0)
        self.assertEqual(self.transport.published, [])

    def test_creation_events(self):
        order = self.place()
        self.assertEqual(self.transport.events_for(f"customer:{self.ids.customer}"), ["order-created"])
        self.assertEqual(self.transport.events_for(f"owner:{self.ids.royal}"), ["new-order"])
        self.assertEqual(self.transport.events_for("courier-pool"), ["available-order"])
        pool_payload = self.transport.published[-1][2]
        self.assertEqual(pool_payload["orderId"], order.id)
        self.assertEqual(pool_payload["hotel"], self.ids.royal)
        self.assertEqual(pool_payload["hotelName"], "Royal Treat")
        self.assertNotIn("address", pool_payload)

    # ----- courier actions -----

    def test_accept_assigns_courier(self):
        order = self.place()
        accepted = self.lifecycle.accept(self.db, order.id, self.ids.courier)
        self.assertEqual(accepted.delivery_status, DeliveryStatus.assigned)
        self.assertEqual(accepted.delivery_boy_id, self.ids.courier)
        self.assertIsNotNone(accepted.assigned_at)
        courier_events = self.transport.events_for(f"courier:{self.ids.courier}")
        self.assertEqual(courier_events, ["order-updated", "order-assigned"])
        self.assertCourierInvariant()

    def test_second_accept_fails_and_keeps_first_courier(self):
        order = self.place()
        self.lifecycle.accept(self.db, order.id, self.ids.courier)
        with self.assertRaises(InvalidTransition):
            self.lifecycle.accept(self.db, order.id, self.ids.other_courier)
        current = self.lifecycle.get_order(self.db, order.id)
        self.assertEqual(current.delivery_boy_id, self.ids.courier)
        self.assertEqual(self.transport.events_for(f"courier:{self.ids.other_courier}"), [])

    def test_accept_checks_references(self):
        order = self.place()
        with self.assertRaises(NotFound):
            self.lifecycle.accept(self.db, order.id, 9999)
        with self.assertRaises(NotFound):
            self.lifecycle.accept(self.db, 9999, self.ids.courier)
        with self.assertRaises(ValidationError):
            self.lifecycle.accept(self.db, order.id, None)

    def test_pickup_requires_assignment(self):
        order = self.place()
        with self.assertRaises(InvalidTransition) as ctx:
            self.lifecycle.courier_pickup(self.db, order.id)
        self.assertEqual(ctx.exception.message, "Order not yet assigned.")
        self.assertEqual(self.lifecycle.get_order(self.db, order.id).delivery_status, DeliveryStatus.unassigned)

    def test_pickup_by_other_courier_fails(self):
        order = self.place()
        self.lifecycle.accept(self.db, order.id, self.ids.courier)
        with self.assertRaises(InvalidTransition):
            self.lifecycle.courier_pickup(self.db, order.id, self.ids.other_courier)

    def test_full_delivery_path(self):
        order = self.place()
        self.lifecycle.accept(self.db, order.id, self.ids.courier)
        picked = self.lifecycle.courier_pickup(self.db, order.id, self.ids.courier)
        self.assertEqual(picked.delivery_status, DeliveryStatus.picked_up)
        self.assertEqual(picked.status, OrderStatus.dish_picked)
        self.assertIsNotNone(picked.picked_at)

        delivered = self.lifecycle.courier_deliver(self.db, order.id, self.ids.courier)
        self.assertEqual(delivered.delivery_status, DeliveryStatus.delivered)
        self.assertEqual(delivered.status, OrderStatus.delivered)
        self.assertIsNotNone(delivered.delivered_at)
        self.assertCourierInvariant()

        with self.assertRaises(InvalidTransition):
            self.lifecycle.courier_deliver(self.db, order.id)

    def test_deliver_requires_pickup(self):
        order = self.place()
        self.lifecycle.accept(self.db, order.id, self.ids.courier)
        with self.assertRaises(InvalidTransition) as ctx:
            self.lifecycle.courier_deliver(self.db, order.id)
        self.assertEqual(ctx.exception.message, "Order not picked yet.")
        self.assertEqual(self.lifecycle.get_order(self.db, order.id).delivery_status, DeliveryStatus.assigned)

    # ----- owner actions -----

    def test_owner_moves_order_to_preparing(self):
        order = self.place()
        updated = self.lifecycle.update_status(self.db, order.id, "Preparing", self.ids.royal)
        self.assertEqual(updated.status, OrderStatus.preparing)
        self.assertEqual(self.transport.events_for(f"owner:{self.ids.royal}"), ["new-order", "order-updated"])

    def test_other_owner_cannot_see_order(self):
        order = self.place()
        with self.assertRaises(NotFound):
            self.lifecycle.update_status(self.db, order.id, "Preparing", self.ids.spice)

    def test_unknown_status_is_rejected(self):
        order = self.place()
        with self.assertRaises(ValidationError):
            self.lifecycle.update_status(self.db, order.id, "Teleported")

    def test_owner_picked_requires_courier(self):
        order = self.place()
        with self.assertRaises(InvalidTransition):
            self.lifecycle.update_status(self.db, order.id, OrderStatus.dish_picked)
        self.assertCourierInvariant()

    def test_owner_picked_forces_delivery_pickup(self):
        order = self.place()
        self.lifecycle.accept(self.db, order.id, self.ids.courier)
        updated = self.lifecycle.update_status(self.db, order.id, "DishPickedByCourier")
        self.assertEqual(updated.status, OrderStatus.dish_picked)
        self.assertEqual(updated.delivery_status, DeliveryStatus.picked_up)
        self.assertIsNotNone(updated.picked_at)
        delivered = self.lifecycle.courier_deliver(self.db, order.id)
        self.assertEqual(delivered.status, OrderStatus.delivered)

    def test_owner_cannot_deliver_a_courier_held_order(self):
        order = self.place()
        self.lifecycle.accept(self.db, order.id, self.ids.courier)
        self.lifecycle.courier_pickup(self.db, order.id, self.ids.courier)
        with self.assertRaises(InvalidTransition):
            self.lifecycle.update_status(self.db, order.id, "Delivered", self.ids.royal)

        delivered = self.lifecycle.courier_deliver(self.db, order.id, self.ids.courier)
        self.assertEqual(delivered.status, OrderStatus.delivered)
        self.assertEqual(delivered.delivery_status, DeliveryStatus.delivered)

    def test_owner_can_deliver_without_courier(self):
        order = self.place()
        delivered = self.lifecycle.update_status(self.db, order.id, "Delivered", self.ids.royal)
        self.assertEqual(delivered.status, OrderStatus.delivered)
        self.assertEqual(delivered.delivery_status, DeliveryStatus.unassigned)
        self.assertCourierInvariant()
        self.assertEqual(self.lifecycle.available_orders(self.db), [])

    def test_cancelled_order_is_terminal(self):
        order = self.place()
        cancelled = self.lifecycle.cancel(self.db, order.id)
        self.assertEqual(cancelled.status, OrderStatus.cancelled)
        with self.assertRaises(InvalidTransition):
            self.lifecycle.update_status(self.db, order.id, "Preparing")
        with self.assertRaises(InvalidTransition):
            self.lifecycle.accept(self.db, order.id, self.ids.courier)
        self.assertEqual(self.lifecycle.available_orders(self.db), [])

    def test_assigned_order_can_be_cancelled(self):
        order = self.place()
        self.lifecycle.accept(self.db, order.id, self.ids.courier)
        self.lifecycle.cancel(self.db, order.id)
        with self.assertRaises(InvalidTransition):
            self.lifecycle.courier_pickup(self.db, order.id, self.ids.courier)

    # ----- queries -----

    def test_order_queries(self):
        first = self.place()
        second = self.place(owner_id=self.ids.spice, items=[OrderItemIn(dish_id=self.ids.spice_pizza)])
        self.lifecycle.accept(self.db, first.id, self.ids.courier)

        self.assertEqual([o.id for o in self.lifecycle.orders_for_customer(self.db, self.ids.customer)],
                         [second.id, first.id])
        self.assertEqual([o.id for o in self.lifecycle.orders_for_owner(self.db, self.ids.spice)], [second.id])
        self.assertEqual([o.id for o in self.lifecycle.orders_for_courier(self.db, self.ids.courier)], [first.id])
        self.assertEqual([o.id for o in self.lifecycle.available_orders(self.db)], [second.id])
        self.assertEqual(len(self.lifecycle.all_orders(self.db)), 2)
        with self.assertRaises(NotFound):
            self.lifecycle.get_order(self.db, 9999)


if __name__ == '__main__':
    unittest.main()
