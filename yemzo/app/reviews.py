"""Dish reviews and average ratings."""
from typing import Any, Dict, List

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..data.models import Customer, Dish, Review
from ..schemas.io_models import ReviewRead
from .errors import DuplicateReview, NotFound, ValidationError


class ReviewService:
    def add(self, db: Session, customer_id: int, dish_id: int, rating: int, comment: str = "") -> Dict[str, Any]:
        if not isinstance(rating, int) or not 1 <= rating <= 5:
            raise ValidationError("Rating must be a whole number from 1 to 5.")
        if db.get(Customer, customer_id) is None:
            raise NotFound("Customer not found.")
        dish = db.get(Dish, dish_id)
        if dish is None:
            raise NotFound("Dish not found.")

        existing = db.query(Review).filter(Review.customer_id == customer_id, Review.dish_id == dish_id).first()
        if existing:
            raise DuplicateReview("You have already reviewed this dish.")

        review = Review(customer_id=customer_id, dish_id=dish_id, rating=rating, comment=(comment or "").strip())
        db.add(review)
        try:
            db.flush()
        except IntegrityError:
            # a concurrent request won the unique (customer, dish) slot
            db.rollback()
            raise DuplicateReview("You have already reviewed this dish.")

        dish.avg_rating = self.recompute_average(db, dish_id)
        db.commit()
        db.refresh(review)
        return {"review": ReviewRead.model_validate(review), "avg_rating": dish.avg_rating}

    @staticmethod
    def recompute_average(db: Session, dish_id: int) -> float:
        avg = db.query(func.avg(Review.rating)).filter(Review.dish_id == dish_id).scalar()
        return round(float(avg), 1) if avg is not None else 0

    def for_dish(self, db: Session, dish_id: int) -> List[ReviewRead]:
        reviews = (
            db.query(Review)
            .filter(Review.dish_id == dish_id)
            .order_by(Review.created_at.desc(), Review.id.desc())
            .all()
        )
        return [ReviewRead.model_validate(r) for r in reviews]

    def averages(self, db: Session) -> List[Dict[str, Any]]:
        rows = (
            db.query(Review.dish_id, Dish.name, func.avg(Review.rating), func.count(Review.id))
            .outerjoin(Dish, Dish.id == Review.dish_id)
            .group_by(Review.dish_id, Dish.name)
            .order_by(Review.dish_id)
            .all()
        )
        return [
            {
                "dishId": dish_id,
                "dishName": name or "Unknown Dish",
                "avgRating": round(float(avg), 1),
                "count": count,
            }
            for dish_id, name, avg, count in rows
        ]
