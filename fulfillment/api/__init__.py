# fulfillment/api/__init__.py
from typing import Optional

from fastapi import FastAPI

from fulfillment.api.errors import register_error_handlers
from fulfillment.api.routers import cart, health, orders
from fulfillment.services.identity_service import IdentityResolver, TokenVerifier
from fulfillment.services.lock_service import LockService
from fulfillment.utils.settings import CHECKOUT_LOCK_ENABLED


def create_app(
    identity_resolver: Optional[IdentityResolver] = None,
    lock_service: Optional[LockService] = None,
) -> FastAPI:
    """
    Build the application. The identity resolver and the checkout lock are
    created here once and shared by every request through ``app.state``.
    """
    app = FastAPI(title="Storefront Fulfillment", version="1.0.0")

    app.state.identity_resolver = identity_resolver or IdentityResolver(TokenVerifier())
    if lock_service is None and CHECKOUT_LOCK_ENABLED:
        lock_service = LockService()
    app.state.lock_service = lock_service

    register_error_handlers(app)
    app.include_router(health.router)
    app.include_router(cart.router)
    app.include_router(orders.router)
    return app
