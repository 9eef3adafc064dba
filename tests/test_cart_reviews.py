#!/usr/bin/env python3
"""
Cart and reviews

PURPOSE:
    Cart upserts and per-restaurant checkout; review uniqueness and the
    stored dish average.
"""

import unittest

from yemzo.app.cart import CartService
from yemzo.app.errors import DuplicateReview, NotFound, ValidationError
from yemzo.app.lifecycle import OrderLifecycle
from yemzo.app.notifier import Notifier
from yemzo.app.reviews import ReviewService
from yemzo.data.models import CartItem, Dish, Order, PaymentMethod

from .support import RecordingTransport, memory_session_factory, seed


class TestCartService(unittest.TestCase):

    def setUp(self):
        self.db = memory_session_factory()()
        self.ids = seed(self.db)
        self.cart = CartService(OrderLifecycle(Notifier(RecordingTransport())))

    def tearDown(self):
        self.db.close()

    def test_adding_same_dish_increments_quantity(self):
        self.cart.add(self.db, self.ids.customer, self.ids.royal_pizza)
        line = self.cart.add(self.db, self.ids.customer, self.ids.royal_pizza, 2)
        self.assertEqual(line.quantity, 3)
        self.assertEqual(line.subtotal, 597)
        self.assertEqual(self.db.query(CartItem).count(), 1)

    def test_add_validates(self):
        with self.assertRaises(NotFound):
            self.cart.add(self.db, self.ids.customer, 9999)
        with self.assertRaises(ValidationError):
            self.cart.add(self.db, self.ids.customer, self.ids.royal_pizza, 0)

    def test_view_totals(self):
        self.cart.add(self.db, self.ids.customer, self.ids.royal_pizza)
        self.cart.add(self.db, self.ids.customer, self.ids.spice_pizza, 2)
        view = self.cart.view(self.db, self.ids.customer)
        self.assertEqual(len(view.items), 2)
        self.assertEqual(view.total, 499)
        self.assertEqual({line.hotel_name for line in view.items}, {"Royal Treat", "Spice Hub"})

    def test_quantity_below_one_removes_line(self):
        line = self.cart.add(self.db, self.ids.customer, self.ids.royal_pizza)
        self.assertEqual(self.cart.update_quantity(self.db, line.id, 4).quantity, 4)
        self.assertIsNone(self.cart.update_quantity(self.db, line.id, 0))
        self.assertEqual(self.cart.view(self.db, self.ids.customer).items, [])
        with self.assertRaises(NotFound):
            self.cart.update_quantity(self.db, line.id, 1)
        with self.assertRaises(NotFound):
            self.cart.remove(self.db, line.id)

    def test_clear(self):
        self.cart.add(self.db, self.ids.customer, self.ids.royal_pizza)
        self.cart.add(self.db, self.ids.customer, self.ids.spice_pizza)
        self.assertEqual(self.cart.clear(self.db, self.ids.customer), 2)

    def test_checkout_places_one_order_per_restaurant(self):
        self.cart.add(self.db, self.ids.customer, self.ids.royal_pizza)
        self.cart.add(self.db, self.ids.customer, self.ids.royal_biryani, 2)
        self.cart.add(self.db, self.ids.customer, self.ids.spice_pizza)

        orders = self.cart.checkout(self.db, self.ids.customer, PaymentMethod.upi)
        by_owner = {o.owner_id: o for o in orders}
        self.assertEqual(set(by_owner), {self.ids.royal, self.ids.spice})
        self.assertEqual(by_owner[self.ids.royal].total_amount, 539)
        self.assertEqual(by_owner[self.ids.spice].total_amount, 150)
        self.assertTrue(all(o.payment == PaymentMethod.upi for o in orders))
        self.assertEqual(self.db.query(CartItem).count(), 0)

    def test_checkout_needs_items_and_address(self):
        with self.assertRaises(ValidationError):
            self.cart.checkout(self.db, self.ids.customer)
        self.cart.add(self.db, self.ids.homeless, self.ids.royal_pizza)
        with self.assertRaises(ValidationError):
            self.cart.checkout(self.db, self.ids.homeless)
        self.assertEqual(self.db.query(Order).count(), 0)

        orders = self.cart.checkout(self.db, self.ids.homeless, address="5 Elm St")
        self.assertEqual(orders[0].address, "5 Elm St")


class TestReviewService(unittest.TestCase):

    def setUp(self):
        self.db = memory_session_factory()()
        self.ids = seed(self.db)
        self.reviews = ReviewService()

    def tearDown(self):
        self.db.close()

    def test_average_is_stored_on_dish(self):
        self.reviews.add(self.db, self.ids.customer, self.ids.royal_pizza, 5, "Great crust")
        result = self.reviews.add(self.db, self.ids.homeless, self.ids.royal_pizza, 4)
        self.assertEqual(result["avg_rating"], 4.5)
        self.assertEqual(self.db.get(Dish, self.ids.royal_pizza).avg_rating, 4.5)

    def test_duplicate_review_leaves_average_unchanged(self):
        self.reviews.add(self.db, self.ids.customer, self.ids.royal_pizza, 5)
        with self.assertRaises(DuplicateReview):
            self.reviews.add(self.db, self.ids.customer, self.ids.royal_pizza, 1)
        self.assertEqual(self.db.get(Dish, self.ids.royal_pizza).avg_rating, 5)

    def test_rating_must_be_whole_one_to_five(self):
        for bad in (0, 6, 4.5):
            with self.assertRaises(ValidationError):
                self.reviews.add(self.db, self.ids.customer, self.ids.royal_pizza, bad)
        with self.assertRaises(NotFound):
            self.reviews.add(self.db, self.ids.customer, 9999, 3)

    def test_listing_and_averages(self):
        self.reviews.add(self.db, self.ids.customer, self.ids.royal_pizza, 5, "first")
        self.reviews.add(self.db, self.ids.homeless, self.ids.royal_pizza, 2, "second")
        self.reviews.add(self.db, self.ids.customer, self.ids.spice_pizza, 3)

        listed = self.reviews.for_dish(self.db, self.ids.royal_pizza)
        self.assertEqual([r.comment for r in listed], ["second", "first"])
        self.assertEqual(listed[0].customer.name, "Nomad")

        averages = {a["dishId"]: a for a in self.reviews.averages(self.db)}
        self.assertEqual(averages[self.ids.royal_pizza]["avgRating"], 3.5)
        self.assertEqual(averages[self.ids.royal_pizza]["count"], 2)
        self.assertEqual(averages[self.ids.spice_pizza]["dishName"], "Paneer Pizza")


if __name__ == '__main__':
    unittest.main()
