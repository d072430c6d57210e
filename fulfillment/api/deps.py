# fulfillment/api/deps.py
from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from fulfillment.data.database import get_db
from fulfillment.domain.caller import CallerContext
from fulfillment.domain.errors import Forbidden, Unauthenticated
from fulfillment.services.cart_service import CartService
from fulfillment.services.catalog_gateway import CatalogGateway
from fulfillment.services.checkout_service import CheckoutService
from fulfillment.services.identity_service import IdentityResolver
from fulfillment.services.order_service import OrderService

# errors are raised by get_caller so they share the structured error body
security = HTTPBearer(auto_error=False)


def get_identity_resolver(request: Request) -> IdentityResolver:
    return request.app.state.identity_resolver


def get_caller(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    resolver: IdentityResolver = Depends(get_identity_resolver),
    db: Session = Depends(get_db),
) -> CallerContext:
    """Resolve the bearer token into a CallerContext, provisioning the customer on first sight."""
    if credentials is None or not credentials.credentials:
        raise Unauthenticated("No token provided")
    return resolver.caller_context(db, credentials.credentials)


def get_admin(caller: CallerContext = Depends(get_caller)) -> CallerContext:
    if not caller.is_admin:
        raise Forbidden("Administrator role required")
    return caller


def get_cart_service(db: Session = Depends(get_db)) -> CartService:
    return CartService(db=db, catalog=CatalogGateway(db))


def get_checkout_service(request: Request, db: Session = Depends(get_db)) -> CheckoutService:
    return CheckoutService(
        db=db,
        catalog=CatalogGateway(db),
        lock_service=request.app.state.lock_service,
    )


def get_order_service(db: Session = Depends(get_db)) -> OrderService:
    return OrderService(db)
