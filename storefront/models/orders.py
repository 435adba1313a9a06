"""Order & invoice records.

An Order is created the instant a payment attempt is committed to and is
never deleted, only moved to a new status. Line items, the summary and the
pricing inputs are snapshots taken at checkout.
"""
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from storefront.models.payments import PaymentMethod, PaymentResult, PaymentValidationError
from storefront.models.pricing import CartLine, DiscountRule, OrderSummary


class OrderStatus(str, Enum):
    """Order lifecycle states."""
    CART = "CART"
    CHECKOUT = "CHECKOUT"
    AWAITING_PAYMENT = "AWAITING_PAYMENT"
    PAID = "PAID"
    PENDING_CONFIRMATION = "PENDING_CONFIRMATION"   # Awaiting bank / device confirmation
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"


class InvoiceStatus(str, Enum):
    PAID = "paid"
    PENDING = "pending"
    BANK_PENDING = "bank_pending"
    FREE = "free"
    CANCELLED = "cancelled"


class TransitionType(str, Enum):
    """Who moved the record to its new status."""
    SYSTEM = "system"                   # Payment pipeline
    CUSTOMER_ACTION = "customer_action"
    RECONCILIATION = "reconciliation"   # External confirmation (bank statement, device)


class FailureKind(str, Enum):
    PRE_GATEWAY = "pre_gateway"     # Validator rejected the request
    GATEWAY = "gateway"             # Processor reported failure (incl. timeout)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class CustomerInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    email: str
    name: str


class StatusTransition(BaseModel):
    model_config = ConfigDict(frozen=True)

    from_status: Optional[str] = None
    to_status: str
    triggered_by: TransitionType = TransitionType.SYSTEM
    reason: Optional[str] = None
    at: datetime = Field(default_factory=_now)


class OrderPayment(BaseModel):
    """Payment state of an order. Raw request fields are never kept here."""
    method: PaymentMethod
    attempts: int = 0
    request_fingerprint: Optional[str] = None
    card_last4: Optional[str] = None
    reference: Optional[str] = None
    result: Optional[PaymentResult] = None
    failure_kind: Optional[FailureKind] = None
    validation_errors: List[PaymentValidationError] = []


class Order(BaseModel):
    order_id: str
    customer: CustomerInfo
    lines: List[CartLine]
    summary: OrderSummary

    # Pricing inputs locked in at checkout
    currency: str
    vat_rate_percent: Decimal
    discount_rules: List[DiscountRule] = []

    payment: OrderPayment
    status: OrderStatus = OrderStatus.AWAITING_PAYMENT
    status_history: List[StatusTransition] = []
    applied_reconciliations: List[str] = []

    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)


class InvoiceLine(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    label: str
    quantity: int
    unit_price_ht: Decimal
    total_ht: Decimal
    vat_rate: Decimal


class Invoice(BaseModel):
    """Billing record derived 1:1 from a paid or pending order."""
    invoice_id: str
    order_id: str
    status: InvoiceStatus
    lines: List[InvoiceLine]

    subtotal_ht: Decimal
    tax_amount: Decimal
    total_ttc: Decimal
    vat_rate_percent: Decimal
    currency: str

    payment_method: PaymentMethod
    payment_reference: Optional[str] = None
    notes: Optional[str] = None

    status_history: List[StatusTransition] = []
    issued_at: datetime = Field(default_factory=_now)
    paid_at: Optional[datetime] = None
