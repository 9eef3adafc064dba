#!/usr/bin/env python3
"""
Main FastAPI application for the Yemzo order service.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import Depends, FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from ..agents.order_agent import OrderBotAgent
from ..data.database import create_tables, make_engine, make_session_factory
from ..data.menu_store import MenuStore
from ..schemas.io_models import (
    BotRequest,
    CartAdd,
    CartQuantity,
    CheckoutRequest,
    CourierAction,
    OrderCreate,
    OrderRead,
    ReviewCreate,
    StatusUpdate,
)
from ..utils.logger import get_logger
from .cart import CartService
from .config import Config
from .errors import YemzoError
from .lifecycle import OrderLifecycle
from .notifier import COURIER_POOL, Notifier, build_transport, courier_topic, customer_topic, owner_topic
from .reviews import ReviewService

log = get_logger("api")

JOIN_EVENTS = {
    "join-customer": customer_topic,
    "join-owner": owner_topic,
    "join-delivery": courier_topic,
    "join-delivery-pool": lambda _: COURIER_POOL,
    "join-room": str,
}


def _orders(orders: List[OrderRead]):
    return [o.dump() for o in orders]


def create_app(transport=None, session_factory=None) -> FastAPI:
    if session_factory is None:
        session_factory = make_session_factory(make_engine())

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        create_tables(session_factory.kw["bind"])
        log.info("Yemzo API started (realtime: %s)", app.state.transport.name)
        yield

    app = FastAPI(
        title="Yemzo Order API",
        description="Food ordering marketplace: orders, delivery, cart, reviews and the order bot",
        version="1.0.0",
        lifespan=lifespan,
    )

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # In production, specify your frontend domain
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Initialize components
    app.state.transport = transport or build_transport()
    app.state.session_factory = session_factory
    lifecycle = OrderLifecycle(Notifier(app.state.transport))
    cart = CartService(lifecycle)
    reviews = ReviewService()
    bot = OrderBotAgent(lifecycle)
    app.state.lifecycle = lifecycle

    def get_db(request: Request):
        db = request.app.state.session_factory()
        try:
            yield db
        finally:
            db.close()

    @app.exception_handler(YemzoError)
    async def yemzo_error(request: Request, exc: YemzoError):
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def bad_request(request: Request, exc: RequestValidationError):
        first = exc.errors()[0] if exc.errors() else {}
        field = ".".join(str(p) for p in first.get("loc", ())[1:])
        message = f"{field}: {first.get('msg', 'invalid input')}" if field else first.get("msg", "Invalid input.")
        return JSONResponse(status_code=400, content={"success": False, "code": "VALIDATION_ERROR", "message": message})

    @app.exception_handler(Exception)
    async def server_error(request: Request, exc: Exception):
        log.exception("Unhandled error on %s %s", request.method, request.url.path)
        content = {"success": False, "code": "INTERNAL_ERROR", "message": "Server error"}
        if Config.is_development():
            content["error"] = str(exc)
        return JSONResponse(status_code=500, content=content)

    # ----- orders -----

    @app.post("/api/orders/create", status_code=201)
    def create_order(body: OrderCreate, db: Session = Depends(get_db)):
        order = lifecycle.create_order(db, body)
        return {"success": True, "message": "Order placed successfully", "order": order.dump()}

    @app.get("/api/orders/all")
    def all_orders(db: Session = Depends(get_db)):
        return {"message": "All orders", "orders": _orders(lifecycle.all_orders(db))}

    @app.get("/api/orders/owner/{owner_id}")
    def owner_orders(owner_id: int, db: Session = Depends(get_db)):
        return {"message": "Owner orders", "orders": _orders(lifecycle.orders_for_owner(db, owner_id))}

    @app.get("/api/orders/customer/{customer_id}")
    def customer_orders(customer_id: int, db: Session = Depends(get_db)):
        return {"message": "Customer orders", "orders": _orders(lifecycle.orders_for_customer(db, customer_id))}

    @app.get("/api/orders/{order_id}")
    def get_order(order_id: int, db: Session = Depends(get_db)):
        return {"message": "Order", "order": lifecycle.get_order(db, order_id).dump()}

    @app.put("/api/orders/status/{order_id}")
    def update_status(order_id: int, body: StatusUpdate, db: Session = Depends(get_db)):
        order = lifecycle.update_status(db, order_id, body.status, body.owner_id)
        return {"message": "Order status updated", "order": order.dump()}

    @app.put("/api/orders/assign/{order_id}")
    @app.post("/api/delivery/accept/{order_id}")
    def accept_order(order_id: int, body: CourierAction, db: Session = Depends(get_db)):
        order = lifecycle.accept(db, order_id, body.delivery_boy_id)
        return {"message": "Order accepted", "order": order.dump()}

    @app.put("/api/orders/pickup/{order_id}")
    @app.put("/api/delivery/pickup/{order_id}")
    def pickup_order(order_id: int, body: Optional[CourierAction] = None, db: Session = Depends(get_db)):
        order = lifecycle.courier_pickup(db, order_id, body.delivery_boy_id if body else None)
        return {"message": "Order picked up", "order": order.dump()}

    @app.put("/api/orders/delivered/{order_id}")
    @app.put("/api/delivery/delivered/{order_id}")
    def deliver_order(order_id: int, body: Optional[CourierAction] = None, db: Session = Depends(get_db)):
        order = lifecycle.courier_deliver(db, order_id, body.delivery_boy_id if body else None)
        return {"message": "Order delivered", "order": order.dump()}

    # ----- delivery -----

    @app.get("/api/delivery/my-orders/{delivery_boy_id}")
    def courier_orders(delivery_boy_id: int, db: Session = Depends(get_db)):
        return {"message": "Assigned orders", "orders": _orders(lifecycle.orders_for_courier(db, delivery_boy_id))}

    @app.get("/api/delivery/available")
    def available_orders(db: Session = Depends(get_db)):
        return {"message": "Available orders", "orders": _orders(lifecycle.available_orders(db))}

    # ----- cart -----

    @app.post("/api/cart/add")
    def add_to_cart(body: CartAdd, db: Session = Depends(get_db)):
        line = cart.add(db, body.customer_id, body.dish_id, body.quantity)
        return {"message": "Added to cart", "item": line.dump()}

    @app.get("/api/cart/{customer_id}")
    def view_cart(customer_id: int, db: Session = Depends(get_db)):
        view = cart.view(db, customer_id)
        return {"message": "Cart", **view.dump()}

    @app.put("/api/cart/update/{item_id}")
    def update_cart_item(item_id: int, body: CartQuantity, db: Session = Depends(get_db)):
        line = cart.update_quantity(db, item_id, body.quantity)
        if line is None:
            return {"message": "Item removed from cart", "item": None}
        return {"message": "Quantity updated", "item": line.dump()}

    @app.delete("/api/cart/clear/{customer_id}")
    def clear_cart(customer_id: int, db: Session = Depends(get_db)):
        removed = cart.clear(db, customer_id)
        return {"message": "Cart cleared", "removed": removed}

    @app.delete("/api/cart/{item_id}")
    def remove_cart_item(item_id: int, db: Session = Depends(get_db)):
        cart.remove(db, item_id)
        return {"message": "Item removed from cart"}

    @app.post("/api/cart/checkout/{customer_id}")
    def checkout(customer_id: int, body: Optional[CheckoutRequest] = None, db: Session = Depends(get_db)):
        body = body or CheckoutRequest()
        orders = cart.checkout(db, customer_id, body.payment_method, body.address)
        return {"success": True, "message": "Order placed successfully", "orders": _orders(orders)}

    # ----- dishes and reviews -----

    @app.get("/api/dishes/search")
    def search_dishes(q: str = "", hotel: str = "", db: Session = Depends(get_db)):
        results = MenuStore(db).search(q, hotel)
        return {"message": f"Found {len(results)} dishes", "dishes": [d.dump() for d in results]}

    @app.post("/api/reviews/add", status_code=201)
    def add_review(body: ReviewCreate, db: Session = Depends(get_db)):
        result = reviews.add(db, body.customer_id, body.dish_id, body.rating, body.comment)
        return {"message": "Review added", "review": result["review"].dump(), "avgRating": result["avg_rating"]}

    @app.get("/api/reviews/averages/all")
    def review_averages(db: Session = Depends(get_db)):
        return {"message": "Average ratings", "averages": reviews.averages(db)}

    @app.get("/api/reviews/{dish_id}")
    def dish_reviews(dish_id: int, db: Session = Depends(get_db)):
        return {"message": "Reviews", "reviews": [r.dump() for r in reviews.for_dish(db, dish_id)]}

    # ----- order bot -----

    @app.post("/api/ai/order-bot")
    def order_bot(body: BotRequest, db: Session = Depends(get_db)):
        result = bot.handle(db, body.message, body.customer_id, body.address)
        return {"success": True, **result.dump()}

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {"status": "healthy", "realtime": app.state.transport.name}

    # ----- real-time gateway -----

    @app.websocket("/ws")
    async def realtime(ws: WebSocket):
        await ws.accept()
        sub = app.state.transport.connect()

        async def forward():
            while True:
                await ws.send_json(await sub.receive())

        writer = asyncio.create_task(forward())
        try:
            while True:
                try:
                    frame = await ws.receive_json()
                except ValueError:
                    await ws.send_json({"event": "error", "data": "frames must be JSON"})
                    continue
                if not isinstance(frame, dict):
                    frame = {}
                event, data = frame.get("event"), frame.get("data")
                if event == "leave-room" and data:
                    await sub.leave(str(data))
                    await ws.send_json({"event": "left", "data": str(data)})
                elif event in JOIN_EVENTS and (data is not None or event == "join-delivery-pool"):
                    topic = JOIN_EVENTS[event](data)
                    await sub.join(topic)
                    await ws.send_json({"event": "joined", "data": topic})
                else:
                    await ws.send_json({"event": "error", "data": f"unknown event '{event}'"})
        except WebSocketDisconnect:
            pass
        finally:
            writer.cancel()
            await sub.close()

    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn
    Config.debug_print()
    uvicorn.run(app, host="0.0.0.0", port=8000)
