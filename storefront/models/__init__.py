"""Storefront data models"""

from .pricing import (
    CartItemKind,
    CartLine,
    DiscountFamily,
    DiscountRule,
    OrderSummary,
    PricingSettings,
    DEFAULT_PRICING_SETTINGS,
)
from .payments import (
    PaymentMethod,
    PaymentStatus,
    PaymentRequest,
    PaymentResult,
    PaymentSettings,
    PaymentValidationError,
    DEFAULT_PAYMENT_SETTINGS,
)
from .orders import (
    CustomerInfo,
    Invoice,
    InvoiceStatus,
    Order,
    OrderStatus,
    TransitionType,
)

__all__ = [
    # Pricing
    "CartItemKind",
    "CartLine",
    "DiscountFamily",
    "DiscountRule",
    "OrderSummary",
    "PricingSettings",
    "DEFAULT_PRICING_SETTINGS",
    # Payments
    "PaymentMethod",
    "PaymentStatus",
    "PaymentRequest",
    "PaymentResult",
    "PaymentSettings",
    "PaymentValidationError",
    "DEFAULT_PAYMENT_SETTINGS",
    # Orders
    "CustomerInfo",
    "Invoice",
    "InvoiceStatus",
    "Order",
    "OrderStatus",
    "TransitionType",
]
