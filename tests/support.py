"""Shared fixtures: in-memory database, sample marketplace data and a recording transport."""
from types import SimpleNamespace

from yemzo.app.errors import NotificationFailure
from yemzo.data.database import create_tables, make_engine, make_session_factory
from yemzo.data.models import Customer, DeliveryBoy, Dish, Owner, Review


class RecordingTransport:
    """Captures every publish as (topic, event, payload)."""

    name = "recording"

    def __init__(self):
        self.published = []

    def publish(self, topic, event, payload):
        self.published.append((topic, event, payload))

    def events_for(self, topic):
        return [event for t, event, _ in self.published if t == topic]


class FailingTransport:
    name = "failing"

    def __init__(self):
        self.attempts = 0

    def publish(self, topic, event, payload):
        self.attempts += 1
        raise NotificationFailure("transport is down")


def memory_session_factory():
    engine = make_engine("sqlite://")
    create_tables(engine)
    return make_session_factory(engine)


def seed(db):
    royal = Owner(hotel_name="Royal Treat", email="royal@example.com")
    spice = Owner(hotel_name="Spice Hub", email="spice@example.com")
    db.add_all([royal, spice])

    royal_biryani = Dish(owner=royal, name="Chicken Biryani", price=170)
    spice_biryani = Dish(owner=spice, name="Hyderabadi Biryani", price=160)
    royal_pizza = Dish(owner=royal, name="Margherita Pizza", price=199)
    spice_pizza = Dish(owner=spice, name="Paneer Pizza", price=150)
    db.add_all([royal_biryani, spice_biryani, royal_pizza, spice_pizza])

    customer = Customer(name="Asha Rao", phone="9000000001", email="asha@example.com", address="221B Baker St")
    homeless = Customer(name="Nomad", phone="9000000003", address="")
    courier = DeliveryBoy(name="Ravi Kumar", phone="9000000002")
    other_courier = DeliveryBoy(name="Sam Lee", phone="9000000004")
    db.add_all([customer, homeless, courier, other_courier])
    db.commit()

    return SimpleNamespace(
        royal=royal.id,
        spice=spice.id,
        royal_biryani=royal_biryani.id,
        spice_biryani=spice_biryani.id,
        royal_pizza=royal_pizza.id,
        spice_pizza=spice_pizza.id,
        customer=customer.id,
        homeless=homeless.id,
        courier=courier.id,
        other_courier=other_courier.id,
    )


def rate(db, dish_id, *ratings):
    """One review per rating, each from a fresh customer."""
    for n, rating in enumerate(ratings):
        reviewer = Customer(name=f"Reviewer {dish_id}-{n}", address="")
        db.add(reviewer)
        db.flush()
        db.add(Review(customer_id=reviewer.id, dish_id=dish_id, rating=rating))
    db.commit()
