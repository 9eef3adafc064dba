"""Catalog helpers: dish lookup, live average ratings and best-match selection."""
from functools import cmp_to_key
from typing import Dict, Iterable, List, NamedTuple, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from ..app.config import Config
from ..schemas.io_models import DishRead
from ..schemas.order_models import OrderQuery
from .models import Dish, Owner, Review

RATING_EPSILON = 1e-6


class Selection(NamedTuple):
    dish: Optional[DishRead]
    # "no_dishes" when nothing matched the description, "filtered_out" when
    # candidates existed but none met the rating floor
    reason: Optional[str] = None


def _compare(a: DishRead, b: DishRead) -> int:
    r_diff = (b.avg_rating or 0) - (a.avg_rating or 0)
    if abs(r_diff) > RATING_EPSILON:
        return 1 if r_diff > 0 else -1
    p_diff = (a.price or 0) - (b.price or 0)
    if p_diff:
        return 1 if p_diff > 0 else -1
    return a.id - b.id


def rank_candidates(candidates: Iterable[DishRead]) -> List[DishRead]:
    """Rating descending, ties within epsilon broken by price ascending."""
    return sorted(candidates, key=cmp_to_key(_compare))


class MenuStore:
    def __init__(self, db: Session):
        self.db = db

    def get_dish(self, dish_id: int) -> Optional[Dish]:
        return self.db.get(Dish, dish_id)

    def add_dish(self, owner_id: int, name: str, price: float, image: str = None, about: str = None) -> Dish:
        dish = Dish(owner_id=owner_id, name=name, price=price, about=about)
        if image:
            dish.image = image
        self.db.add(dish)
        self.db.commit()
        self.db.refresh(dish)
        return dish

    def average_ratings(self, dish_ids: List[int]) -> Dict[int, float]:
        if not dish_ids:
            return {}
        rows = (
            self.db.query(Review.dish_id, func.avg(Review.rating))
            .filter(Review.dish_id.in_(dish_ids))
            .group_by(Review.dish_id)
            .all()
        )
        return {dish_id: round(float(avg), 2) for dish_id, avg in rows}

    def enrich(self, dishes: List[Dish]) -> List[DishRead]:
        ratings = self.average_ratings([d.id for d in dishes])
        enriched = []
        for d in dishes:
            item = DishRead.model_validate(d)
            item.avg_rating = ratings.get(d.id, 0)
            enriched.append(item)
        return enriched

    def _base_query(self):
        return self.db.query(Dish).options(joinedload(Dish.owner)).order_by(Dish.id)

    def search(self, dish_name: str = "", hotel_name: str = "", limit: int = None) -> List[DishRead]:
        """Case-insensitive substring search on dish and restaurant names."""
        q = self._base_query()
        if dish_name:
            q = q.filter(Dish.name.icontains(dish_name, autoescape=True))
        if hotel_name:
            q = q.join(Dish.owner).filter(Owner.hotel_name.icontains(hotel_name, autoescape=True))
        return self.enrich(q.limit(limit or Config.SEARCH_PAGE_SIZE).all())

    def candidates(self, dish_name: str = "", hotel_name: str = "", max_price: float = None) -> List[Dish]:
        q = self._base_query()
        if dish_name:
            q = q.filter(Dish.name.icontains(dish_name, autoescape=True))
        if max_price is not None:
            q = q.filter(Dish.price <= max_price)
        if hotel_name:
            found = q.join(Dish.owner).filter(func.lower(Owner.hotel_name) == hotel_name.strip().lower()).all()
            if found:
                return found
            # widen once: drop the restaurant constraint
        return q.all()

    def select_best(self, query: OrderQuery) -> Selection:
        found = self.candidates(query.dish_name, query.hotel_name, query.max_price)
        if not found:
            return Selection(None, "no_dishes")

        enriched = self.enrich(found)
        if query.min_rating is not None:
            enriched = [d for d in enriched if (d.avg_rating or 0) >= query.min_rating]
        if not enriched:
            return Selection(None, "filtered_out")

        return Selection(rank_candidates(enriched)[0])
