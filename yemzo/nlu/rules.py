"""Rule-based intent detection and dish vocabulary for the order bot."""
import re
from typing import List

ORDER_WORDS = ["order", "buy", "i want", "get me", "place order", "please order", "deliver", "book"]

KNOWN_DISHES = ["biryani", "pizza", "burger", "fried rice", "pasta", "sandwich", "noodles", "sushi"]

# words that end the dish part of "<dish> from X under 200 ..."
SEPARATORS = re.compile(r"\b(?:from|under|below|with|rating|for|at)\b")

FILLER = {
    "i", "me", "a", "an", "the", "some", "please", "want", "order", "buy", "get", "place",
    "deliver", "book", "can", "you", "could", "would", "like", "to", "my", "us",
    "one", "two", "three", "four", "five",
}

MAX_DISH_NAME = 40


def _contains_any(q: str, vocab: List[str]) -> bool:
    ql = q.lower()
    for phrase in vocab:
        if phrase in ql:
            return True
    return False


def detect_intent(text: str) -> str:
    """Imperative order verbs mean 'order'; anything else is a 'search'."""
    if _contains_any(text, ORDER_WORDS):
        return "order"
    return "search"


def known_dish(text: str) -> str:
    t = text.lower()
    for dish in KNOWN_DISHES:
        if dish in t:
            return dish
    return ""


def guess_dish(text: str) -> str:
    """Best-effort dish name: the last one or two words before a constraint keyword."""
    prefix = SEPARATORS.split(text.lower(), maxsplit=1)[0]
    tokens = [t for t in re.findall(r"[a-z][a-z'\-]*", prefix) if t not in FILLER]
    candidate = " ".join(tokens[-2:]).strip()
    if candidate and len(candidate) <= MAX_DISH_NAME:
        return candidate
    return ""


def extract_dish_name(text: str) -> str:
    return known_dish(text) or guess_dish(text)
