"""Order intent resolver: language model first, rule-based parser as fallback."""
from typing import Any, Dict

from ..app.config import Config
from ..app.errors import UpstreamUnavailable
from ..schemas.order_models import OrderQuery
from ..utils.logger import get_logger
from ..utils.security import mask_pii
from .entity_extractor import EntityExtractor
from .llm_router import LLMParser
from .rules import detect_intent, extract_dish_name

log = get_logger("nlu")


def _number_or_none(value):
    if value is None or value == "":
        return None
    return float(value)


def _text(value) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    raise ValueError(f"expected text, got {type(value).__name__}")


class IntentResolver:
    def __init__(self, parser: LLMParser = None, use_llm: bool = None):
        self.parser = parser or LLMParser()
        self.use_llm = Config.llm_enabled() if use_llm is None else use_llm
        self.entity_extractor = EntityExtractor()

    def resolve(self, message: str) -> OrderQuery:
        """Always returns a complete OrderQuery; never raises for bad model output."""
        if self.use_llm:
            try:
                raw = self.parser.parse(message)
                return self.from_model_output(raw)
            except (UpstreamUnavailable, AttributeError, TypeError, ValueError) as e:
                log.warning("Order parser model unavailable, using local fallback: %s", e)
        return self.fallback(message)

    @staticmethod
    def from_model_output(raw: Dict[str, Any]) -> OrderQuery:
        quantity = raw.get("quantity")
        quantity = int(quantity) if quantity not in (None, "") else 1
        return OrderQuery(
            dish_name=_text(raw.get("dishName")),
            max_price=_number_or_none(raw.get("maxPrice")),
            min_rating=_number_or_none(raw.get("minRating")),
            hotel_name=_text(raw.get("hotelName")),
            quantity=max(1, quantity),
            intent=raw.get("intent") or "order",
        )

    def fallback(self, message: str) -> OrderQuery:
        dish_name = extract_dish_name(message)
        entities = self.entity_extractor.extract(message, dish_name)
        query = OrderQuery(
            dish_name=dish_name,
            max_price=entities["max_price"],
            min_rating=entities["min_rating"],
            hotel_name=entities["hotel_name"],
            quantity=entities["quantity"],
            intent=detect_intent(message),
        )
        log.info("Fallback parsed '%s' -> %s", mask_pii(message), query.dump())
        return query
