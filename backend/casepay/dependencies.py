"""
Request Dependencies — Identity, gateway, dispatcher and service factories
for FastAPI's Depends(). Tests swap these via app.dependency_overrides.
"""
from fastapi import Depends, Header
from sqlalchemy.orm import Session

from casepay.config import Settings, get_settings
from casepay.database import get_db
from casepay.exceptions import NotAuthenticated, PermissionDenied
from casepay.services.access import Actor, ROLE_USER
from casepay.services.admin_override import AdminOverride
from casepay.services.case_service import CaseService
from casepay.services.notification_service import NotificationDispatcher
from casepay.services.order_gateway import OrderGateway, build_order_gateway
from casepay.services.payment_service import PaymentService

_dispatcher = NotificationDispatcher()


def get_current_actor(
    user_id: str = Header(None, alias="x-user-id"),
    role: str = Header(ROLE_USER, alias="x-user-role"),
) -> Actor:
    """Identity resolved by the authenticating proxy in front of this service."""
    if not user_id:
        raise NotAuthenticated("Missing x-user-id header")
    return Actor(user_id=user_id, role=(role or ROLE_USER).lower())


def require_admin(actor: Actor = Depends(get_current_actor)) -> Actor:
    if not actor.is_admin:
        raise PermissionDenied("Administrator access required")
    return actor


def get_order_gateway(settings: Settings = Depends(get_settings)) -> OrderGateway:
    return build_order_gateway(settings)


def get_dispatcher() -> NotificationDispatcher:
    return _dispatcher


def get_case_service(
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> CaseService:
    return CaseService(db, settings)


def get_payment_service(
    db: Session = Depends(get_db),
    gateway: OrderGateway = Depends(get_order_gateway),
    settings: Settings = Depends(get_settings),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> PaymentService:
    return PaymentService(db, gateway, settings, dispatcher)


def get_admin_override(
    db: Session = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> AdminOverride:
    return AdminOverride(db, dispatcher)
