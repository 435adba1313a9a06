"""
Payment Request Builder
Turns a payment method plus raw user-entered fields into a typed request.

Missing fields become empty strings so nothing unset leaks into validation.
An unknown method is an integration bug and raises, it is never reported as
a field error.
"""
import secrets
import string
from decimal import Decimal
from typing import Any, Dict, Mapping, Optional

from storefront.models.payments import (
    BankTransferRequest,
    CardBrand,
    CardDetails,
    CardPaymentRequest,
    MobilePaymentRequest,
    PayPalPaymentRequest,
    PaymentMethod,
    PaymentRequest,
)

# Placeholder numbers shown in the card form
CARD_TEST_HINTS: Dict[PaymentMethod, str] = {
    PaymentMethod.CARD_CIB: "6037990000000000",
    PaymentMethod.CARD_INTERNATIONAL: "4242424242424242",
}

CARD_BRAND_BY_METHOD: Dict[PaymentMethod, CardBrand] = {
    PaymentMethod.CARD_CIB: CardBrand.CIB,
    PaymentMethod.CARD_INTERNATIONAL: CardBrand.VISA,
}

_REFERENCE_ALPHABET = string.ascii_uppercase + string.digits


class UnsupportedPaymentMethodError(ValueError):
    """Raised when a payment method outside the supported set is requested."""

    def __init__(self, method: Any):
        self.method = method
        super().__init__(f"Unsupported payment method: {method}")


def _field(data: Mapping[str, Any], name: str, default: str = "") -> str:
    value = data.get(name)
    if value is None:
        return default
    return str(value)


def coerce_payment_method(method: Any) -> PaymentMethod:
    if isinstance(method, PaymentMethod):
        return method
    try:
        return PaymentMethod(str(method))
    except ValueError:
        raise UnsupportedPaymentMethodError(method) from None


def generate_bank_reference() -> str:
    """Short opaque reference customers can quote on a transfer: REF-XXXXXXXX"""
    suffix = "".join(secrets.choice(_REFERENCE_ALPHABET) for _ in range(8))
    return f"REF-{suffix}"


def build_payment_request(
    method: Any,
    amount: Decimal,
    currency: str,
    customer_email: str,
    customer_name: str,
    data: Optional[Mapping[str, Any]] = None,
) -> PaymentRequest:
    """Build the method-specific payment request from raw form fields."""
    method = coerce_payment_method(method)
    data = data or {}
    base = {
        "method": method,
        "amount": Decimal(amount),
        "currency": currency,
        "customer_email": customer_email,
        "customer_name": customer_name,
    }

    if method in CARD_BRAND_BY_METHOD:
        card = CardDetails(
            card_number=_field(data, "card_number"),
            holder_name=_field(data, "holder_name"),
            expiry_month=_field(data, "expiry_month"),
            expiry_year=_field(data, "expiry_year"),
            cvc=_field(data, "cvc"),
            brand=CARD_BRAND_BY_METHOD[method],
        )
        return CardPaymentRequest(card=card, **base)
    if method == PaymentMethod.PAYPAL:
        return PayPalPaymentRequest(paypal_account=_field(data, "paypal_account", customer_email), **base)
    if method == PaymentMethod.MOBILE_PAYMENT:
        return MobilePaymentRequest(phone_number=_field(data, "phone_number"), **base)
    if method == PaymentMethod.BANK_TRANSFER:
        return BankTransferRequest(reference=_field(data, "reference"), **base)

    raise UnsupportedPaymentMethodError(method)
