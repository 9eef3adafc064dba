"""Order bot: turns one free-text message into a search, a clarification or an order.

The flow is resolve intent, then search or select the best dish, then resolve
the delivery address, then create the order (cash on delivery).
"""
from sqlalchemy.orm import Session

from .base_agent import BaseAgent
from ..app.address import AddressResolver
from ..app.lifecycle import OrderLifecycle
from ..data.menu_store import MenuStore
from ..data.models import PaymentMethod
from ..nlu.intent_model import IntentResolver
from ..schemas.io_models import OrderCreate, OrderItemIn
from ..schemas.order_models import NeedsAddress, NoMatch, OrderCreated, SearchResults
from ..utils.logger import get_logger
from ..utils.security import mask_pii

log = get_logger("order_bot")

NO_DISHES = "I couldn't find any dishes matching that description."
FILTERED_OUT = "No dishes meet your rating/price filters."


class OrderBotAgent(BaseAgent):
    name = "order"

    def __init__(self, lifecycle: OrderLifecycle, resolver: IntentResolver = None,
                 addresses: AddressResolver = None):
        self.lifecycle = lifecycle
        self.resolver = resolver or IntentResolver()
        self.addresses = addresses or AddressResolver()

    def handle(self, db: Session, message: str, customer_id: int, address: str = None):
        self._require(message, "Message")
        self._require(customer_id, "Customer ID")
        log.info("Order bot message from customer %s: %s", customer_id, mask_pii(message))

        query = self.resolver.resolve(message)
        menu = MenuStore(db)

        if query.intent != "order":
            results = menu.search(query.dish_name, query.hotel_name)
            return SearchResults(
                reply=f"Found {len(results)} dishes matching your query.",
                query=query,
                results=results,
            )

        selection = menu.select_best(query)
        if selection.dish is None:
            reply = FILTERED_OUT if selection.reason == "filtered_out" else NO_DISHES
            return NoMatch(reply=reply, query=query)
        dish = selection.dish

        resolved = self.addresses.resolve(db, customer_id, address, query, dish)
        if isinstance(resolved, NeedsAddress):
            log.info("Customer %s has no delivery address; asking for one", customer_id)
            return resolved

        total = round(dish.price * query.quantity, 2)
        reply = f"Ordered {query.quantity} x {dish.name} from {dish.hotel_name} for ₹{total:.2f}."
        order = self.lifecycle.create_order(
            db,
            OrderCreate(
                customer_id=customer_id,
                owner_id=dish.owner_id,
                items=[OrderItemIn(dish_id=dish.id, quantity=query.quantity)],
                address=resolved,
                payment=PaymentMethod.cod,
                total_amount=total,
            ),
            message=reply,
        )
        return OrderCreated(reply=f"{reply} Order ID: #{order.id}", order=order, found_dish=dish)
