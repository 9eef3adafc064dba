import csv
import os
from .database import SessionLocal, create_tables
from .models import Customer, DeliveryBoy, Dish, Owner

MENU_CSV_PATH = os.path.join(os.path.dirname(__file__), "raw", "menu.csv")

SAMPLE_CUSTOMER = {"name": "Asha Rao", "phone": "9000000001", "email": "asha@example.com", "address": "221B Baker St"}
SAMPLE_COURIER = {"name": "Ravi Kumar", "phone": "9000000002", "email": "ravi@example.com"}


def populate(session_factory=SessionLocal, csv_path: str = MENU_CSV_PATH) -> bool:
    """Seed restaurants and dishes from menu.csv plus one customer and one courier.

    Returns False without touching anything when dishes already exist.
    """
    db = session_factory()
    try:
        if db.query(Dish).count() > 0:
            print("Dishes table is not empty. Skipping population.")
            return False

        owners = {}
        with open(csv_path, mode='r', encoding='utf-8') as csvfile:
            reader = csv.DictReader(csvfile)
            for row in reader:
                hotel = row['hotel'].strip()
                owner = owners.get(hotel)
                if owner is None:
                    slug = hotel.lower().replace(" ", "")
                    owner = Owner(hotel_name=hotel, email=f"{slug}@example.com", address=f"{hotel} Main Road")
                    db.add(owner)
                    owners[hotel] = owner
                db.add(Dish(
                    owner=owner,
                    name=row['item'].strip(),
                    about=row['about'].strip(),
                    price=float(row['price'].replace('₹', '')),
                ))

        db.add(Customer(**SAMPLE_CUSTOMER))
        db.add(DeliveryBoy(**SAMPLE_COURIER))
        db.commit()
        print(f"Seeded {len(owners)} restaurants from {os.path.basename(csv_path)}.")
        return True
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


if __name__ == "__main__":
    create_tables()
    populate()
