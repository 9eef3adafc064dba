"""BaseAgent interface for all agents."""
from abc import ABC, abstractmethod

from ..app.errors import ValidationError


class BaseAgent(ABC):
    name: str = "base"

    @abstractmethod
    def handle(self, db, message: str, customer_id: int, address: str = None):
        """Return one tagged result; no transport or HTTP concerns here."""
        ...

    def _require(self, value, what: str):
        if value is None or (isinstance(value, str) and not value.strip()):
            raise ValidationError(f"{what} is required.")
        return value
