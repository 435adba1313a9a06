"""Storefront Services"""

from .pricing_engine import build_cart_line, compute_summary, resolve_discount
from .payment_builder import UnsupportedPaymentMethodError, build_payment_request
from .payment_validator import luhn_check, validate_payment_request
from .payment_gateway import SimulatedPaymentGateway
from .order_workflow import InvalidTransitionError
from .order_store import InMemoryOrderStore, MongoOrderStore, OrderStore
from .order_notification_service import OrderNotificationService, PaymentEvent
from .order_service import (
    OrderLifecycleController,
    OrderNotFoundError,
    OrderRetryNotAllowedError,
    PaymentMethodDisabledError,
    ReconciliationEvent,
    ReconciliationOutcome,
)

__all__ = [
    "build_cart_line",
    "compute_summary",
    "resolve_discount",
    "UnsupportedPaymentMethodError",
    "build_payment_request",
    "luhn_check",
    "validate_payment_request",
    "SimulatedPaymentGateway",
    "InvalidTransitionError",
    "InMemoryOrderStore",
    "MongoOrderStore",
    "OrderStore",
    "OrderNotificationService",
    "PaymentEvent",
    "OrderLifecycleController",
    "OrderNotFoundError",
    "OrderRetryNotAllowedError",
    "PaymentMethodDisabledError",
    "ReconciliationEvent",
    "ReconciliationOutcome",
]
