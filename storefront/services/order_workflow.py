"""
Order Workflow State Machine
Defines the valid states, transitions and status mappings for storefront orders.
This is the single source of truth for order lifecycle rules.
"""
from decimal import Decimal
from typing import Dict, List, Optional, Set, Tuple

from storefront.models.orders import InvoiceStatus, OrderStatus
from storefront.models.payments import PaymentMethod, PaymentStatus


class InvalidTransitionError(ValueError):
    """Raised for a status change outside the whitelist."""

    def __init__(self, from_status: OrderStatus, to_status: OrderStatus):
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"Invalid transition: {from_status.value} → {to_status.value}. "
            f"Allowed: {[s.value for s in get_allowed_transitions(from_status)]}"
        )


# Valid state transitions - whitelist approach
ALLOWED_TRANSITIONS: Dict[OrderStatus, List[OrderStatus]] = {
    OrderStatus.CART: [OrderStatus.CHECKOUT],
    OrderStatus.CHECKOUT: [OrderStatus.AWAITING_PAYMENT],
    OrderStatus.AWAITING_PAYMENT: [
        OrderStatus.PAID,
        OrderStatus.PENDING_CONFIRMATION,
        OrderStatus.FAILED,
    ],
    OrderStatus.PENDING_CONFIRMATION: [OrderStatus.PAID, OrderStatus.CANCELLED],
    OrderStatus.FAILED: [OrderStatus.AWAITING_PAYMENT],  # Identical retry only
    # Terminal states
    OrderStatus.PAID: [],
    OrderStatus.CANCELLED: [],
}


# Transitions only an external reconciliation event may trigger
RECONCILIATION_TRANSITIONS: Set[Tuple[OrderStatus, OrderStatus]] = {
    (OrderStatus.PENDING_CONFIRMATION, OrderStatus.PAID),
    (OrderStatus.PENDING_CONFIRMATION, OrderStatus.CANCELLED),
}


# States from which a payment attempt may be (re)submitted
RETRYABLE_STATES: Set[OrderStatus] = {
    OrderStatus.AWAITING_PAYMENT,
    OrderStatus.FAILED,
}


# Terminal states - no further transitions possible
TERMINAL_STATES: Set[OrderStatus] = {
    OrderStatus.PAID,
    OrderStatus.CANCELLED,
}


PAYMENT_STATUS_TO_ORDER_STATUS: Dict[PaymentStatus, OrderStatus] = {
    PaymentStatus.SUCCESS: OrderStatus.PAID,
    PaymentStatus.PENDING: OrderStatus.PENDING_CONFIRMATION,
    PaymentStatus.FAILED: OrderStatus.FAILED,
}


def is_valid_transition(from_status: OrderStatus, to_status: OrderStatus) -> bool:
    """Check if a state transition is valid"""
    if from_status not in ALLOWED_TRANSITIONS:
        return False
    return to_status in ALLOWED_TRANSITIONS[from_status]


def requires_reconciliation(from_status: OrderStatus, to_status: OrderStatus) -> bool:
    """Check if a transition may only be applied by a reconciliation event"""
    return (from_status, to_status) in RECONCILIATION_TRANSITIONS


def is_terminal_state(status: OrderStatus) -> bool:
    """Check if a status is terminal (no further transitions)"""
    return status in TERMINAL_STATES


def is_retryable(status: OrderStatus) -> bool:
    return status in RETRYABLE_STATES


def get_allowed_transitions(status: OrderStatus) -> List[OrderStatus]:
    """Get list of valid next states from current status"""
    return ALLOWED_TRANSITIONS.get(status, [])


def order_status_for_payment(status: PaymentStatus) -> OrderStatus:
    return PAYMENT_STATUS_TO_ORDER_STATUS[status]


def invoice_status_for(
    order_status: OrderStatus,
    method: PaymentMethod,
    total_ttc: Decimal = Decimal("0"),
) -> Optional[InvoiceStatus]:
    """
    Invoice status mirroring an order status.

    Returns None for states that carry no invoice (before payment, or a
    failed attempt).
    """
    if order_status == OrderStatus.PAID:
        return InvoiceStatus.FREE if total_ttc == 0 else InvoiceStatus.PAID
    if order_status == OrderStatus.PENDING_CONFIRMATION:
        if method == PaymentMethod.BANK_TRANSFER:
            return InvoiceStatus.BANK_PENDING
        return InvoiceStatus.PENDING
    if order_status == OrderStatus.CANCELLED:
        return InvoiceStatus.CANCELLED
    return None
