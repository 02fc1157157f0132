"""HTTP surface of the marketplace domain."""

from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from marketplace.api.auth import InMemorySessionStore, SessionStore
from marketplace.api.envelope import register_error_handlers
from marketplace.api.routes import (
    cart_router,
    checkout_router,
    inventory_router,
    order_router,
    payment_router,
    return_router,
    shipment_router,
)
from marketplace.domain import marketplace
from marketplace.utils.logging import add_context, clear_context

ROUTERS = [
    cart_router,
    checkout_router,
    order_router,
    payment_router,
    inventory_router,
    shipment_router,
    return_router,
]


def create_app(session_store: SessionStore | None = None) -> FastAPI:
    """Build the API. The domain must already be initialized."""
    app = FastAPI(
        title="Marketplace Fulfillment API",
        description="Carts, checkout, orders, payments and stock for a multi-store marketplace",
    )
    app.state.session_store = session_store or InMemorySessionStore()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def domain_context_middleware(request: Request, call_next):
        """Push the marketplace domain context and a request id for each request."""
        clear_context()
        add_context(request_id=request.headers.get("X-Request-ID") or uuid4().hex)
        with marketplace.domain_context():
            response = await call_next(request)
        return response

    register_error_handlers(app)
    for router in ROUTERS:
        app.include_router(router)

    @app.get("/health")
    async def health():
        return JSONResponse(content={"status": "ok", "domain": marketplace.name})

    return app


__all__ = ["ROUTERS", "create_app"]
