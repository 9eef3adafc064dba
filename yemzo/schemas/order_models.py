"""Order bot contracts.

- `OrderQuery` is what the intent resolver produces from free text.
- The bot answers with exactly one of four tagged results, so callers branch
  on `kind` instead of probing optional fields.
"""
from pydantic import Field
from typing import Annotated, List, Literal, Optional, Union

from .io_models import CamelModel, DishRead, OrderRead


class OrderQuery(CamelModel):
    dish_name: str = ""
    max_price: Optional[float] = None
    min_rating: Optional[float] = None
    hotel_name: str = ""
    quantity: int = 1
    intent: Literal["order", "search", "info"] = "order"


class SearchResults(CamelModel):
    kind: Literal["search_results"] = "search_results"
    reply: str
    query: OrderQuery
    results: List[DishRead] = Field(default_factory=list)


class NoMatch(CamelModel):
    kind: Literal["no_match"] = "no_match"
    reply: str
    query: OrderQuery


class NeedsAddress(CamelModel):
    kind: Literal["needs_address"] = "needs_address"
    reply: str
    query: OrderQuery
    found_dish: DishRead
    need_address: bool = True


class OrderCreated(CamelModel):
    kind: Literal["order_created"] = "order_created"
    reply: str
    order: OrderRead
    found_dish: DishRead


BotResult = Annotated[
    Union[SearchResults, NoMatch, NeedsAddress, OrderCreated],
    Field(discriminator="kind"),
]
