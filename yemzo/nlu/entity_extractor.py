"""Very small rule-based entity extractor for food-ordering instructions."""
import math
import re
from typing import Any, Dict, Optional

_CURRENCY = r"(?:₹|\brs\.?|\binr)"

PRICE_CEILING = re.compile(r"(?:under|below|less than|<)\s*" + _CURRENCY + r"?\s*([0-9]+(?:\.[0-9]+)?)")
PRICE_BARE = re.compile(_CURRENCY + r"\s*([0-9]+(?:\.[0-9]+)?)")
RATING_FLOOR = re.compile(r"(?:above|greater than|>=|>|at least|minimum)\s*([0-5](?:\.\d)?)(?![\d.])")
HOTEL = re.compile(
    r"\b(?:from|at)\s+(?!least\b)([a-z][a-z0-9&'\- ]{1,59}?)(?:\s+(?:hotel|restaurant))?"
    r"(?=\s+(?:under|below|less|with|for|above|rating|and|near)\b|\s*[,.!?]|\s*$)"
)
QUANTITY = re.compile(r"(?<![\d.])\b(\d+)\s*(?:x|pcs|pieces|plates|qty|quantity)?\s*(?:of\s+)?[a-z]")
NUMBER_WORDS = {"one": 1, "two": 2, "three": 3, "four": 4, "five": 5}


class EntityExtractor:
    """Pulls price, rating, restaurant and quantity constraints out of free text."""

    def extract(self, text: str, dish_name: str = "") -> Dict[str, Any]:
        t = (text or "").lower()
        entities: Dict[str, Any] = {"max_price": None, "min_rating": None, "hotel_name": "", "quantity": 1}

        spans = []
        m = PRICE_CEILING.search(t) or PRICE_BARE.search(t)
        if m:
            entities["max_price"] = math.floor(float(m.group(1)))
            spans.append(m.span())

        m = RATING_FLOOR.search(t)
        if m:
            entities["min_rating"] = float(m.group(1))
            spans.append(m.span())

        # numbers consumed by price/rating must not be read as quantities
        scrubbed = self._scrub(t, spans)

        m = HOTEL.search(scrubbed)
        if m:
            entities["hotel_name"] = m.group(1).strip()

        entities["quantity"] = self._quantity(scrubbed, dish_name) or 1
        return entities

    @staticmethod
    def _scrub(text: str, spans) -> str:
        for start, end in sorted(spans, reverse=True):
            text = text[:start] + " , " + text[end:]
        return text

    @staticmethod
    def _quantity(text: str, dish_name: str) -> Optional[int]:
        m = QUANTITY.search(text)
        if m:
            return max(1, int(m.group(1)))
        if dish_name:
            for word, value in NUMBER_WORDS.items():
                if re.search(rf"\b{word}\s+{re.escape(dish_name)}", text):
                    return value
        return None
