"""
Order Service - Order Lifecycle Controller
Orchestrates build → validate → execute for one order and keeps the order,
its invoice and the customer notifications consistent.

Rules enforced here:
- The order snapshot (lines, summary, VAT rate, discount rules) is taken at
  checkout, before any gateway call.
- A request with validation errors never reaches the gateway.
- Each attempt gets an attempt id; a newer attempt or an abandon supersedes
  the in-flight one and its late result is discarded.
- A Failed order accepts only an identical retry (same request fingerprint).
- Reconciliation events are idempotent per event id.
"""
import hashlib
import json
import logging
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence

from pydantic import BaseModel

from storefront import config
from storefront.models.orders import (
    CustomerInfo,
    FailureKind,
    Invoice,
    Order,
    OrderPayment,
    OrderStatus,
    StatusTransition,
    TransitionType,
)
from storefront.models.payments import (
    CARD_METHODS,
    DEFAULT_PAYMENT_SETTINGS,
    PaymentMethod,
    PaymentResult,
    PaymentSettings,
    PaymentStatus,
    PaymentValidationError,
)
from storefront.models.pricing import CartLine, PricingSettings
from storefront.services.invoice_service import create_invoice_for_order, update_invoice_status
from storefront.services.order_notification_service import OrderNotificationService
from storefront.services.order_store import InMemoryOrderStore, OrderStore
from storefront.services.order_workflow import (
    InvalidTransitionError,
    invoice_status_for,
    is_retryable,
    is_valid_transition,
    order_status_for_payment,
    requires_reconciliation,
)
from storefront.services.payment_builder import (
    build_payment_request,
    coerce_payment_method,
    generate_bank_reference,
)
from storefront.services.payment_gateway import SimulatedPaymentGateway, execute_with_timeout
from storefront.services.payment_validator import (
    mask_card_number,
    normalize_card_number,
    validate_payment_request,
)
from storefront.services.pricing_engine import apply_discounts, compute_summary_for_settings

logger = logging.getLogger(__name__)


class OrderNotFoundError(LookupError):
    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__(f"Order not found: {order_id}")


class OrderRetryNotAllowedError(ValueError):
    """Raised when a payment attempt is made on an order that cannot take one."""

    def __init__(self, order_id: str, status: OrderStatus, reason: str):
        self.order_id = order_id
        self.status = status
        super().__init__(f"Order {order_id} ({status.value}) cannot be retried: {reason}")


class PaymentMethodDisabledError(ValueError):
    def __init__(self, method: PaymentMethod):
        self.method = method
        super().__init__(f"Payment method is disabled: {method.value}")


class ReconciliationOutcome(str, Enum):
    APPLIED = "applied"
    ALREADY_APPLIED = "already_applied"
    STALE = "stale"


class ReconciliationTarget(str, Enum):
    PAID = "paid"
    CANCELLED = "cancelled"


RECONCILIATION_TARGET_STATUS: Dict[ReconciliationTarget, OrderStatus] = {
    ReconciliationTarget.PAID: OrderStatus.PAID,
    ReconciliationTarget.CANCELLED: OrderStatus.CANCELLED,
}


class ReconciliationEvent(BaseModel):
    """External confirmation (bank statement match, device confirmation)."""
    event_id: str
    order_id: str
    outcome: ReconciliationTarget
    reference: Optional[str] = None


class PaymentAttemptOutcome(BaseModel):
    order_id: str
    attempt_id: str
    status: OrderStatus
    result: Optional[PaymentResult] = None
    validation_errors: List[PaymentValidationError] = []
    failure_kind: Optional[FailureKind] = None
    invoice_id: Optional[str] = None
    superseded: bool = False


def generate_order_id() -> str:
    """Generate unique order ID: ORD-YYYY-XXXXXX"""
    year = datetime.now(timezone.utc).strftime("%Y")
    short_uuid = uuid.uuid4().hex[:6].upper()
    return f"ORD-{year}-{short_uuid}"


def generate_attempt_id() -> str:
    """Generate unique payment attempt ID: ATT-XXXXXXXX"""
    return f"ATT-{uuid.uuid4().hex[:8].upper()}"


def request_fingerprint(method: PaymentMethod, raw_fields: Mapping[str, Any]) -> str:
    """SHA-256 over the method and the normalised fields. Never reversible to card data."""
    fields = {}
    for key, value in raw_fields.items():
        if value is None:
            continue
        text = str(value).strip()
        if key == "card_number":
            text = normalize_card_number(text)
        fields[key] = text
    payload = json.dumps({"method": method.value, "fields": fields}, sort_keys=True)
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def transition_order(
    order: Order,
    new_status: OrderStatus,
    triggered_by: TransitionType,
    reason: Optional[str] = None,
) -> Order:
    """
    Move `order` to `new_status` in place, appending to its status history.
    This is the ONLY function that should modify order status.

    Raises InvalidTransitionError for transitions outside the whitelist.
    """
    current_status = order.status
    if not is_valid_transition(current_status, new_status):
        raise InvalidTransitionError(current_status, new_status)

    # Only an external confirmation may settle a pending order
    if requires_reconciliation(current_status, new_status) and triggered_by != TransitionType.RECONCILIATION:
        raise InvalidTransitionError(current_status, new_status)

    now = datetime.now(timezone.utc)
    order.status = new_status
    order.status_history.append(StatusTransition(
        from_status=current_status.value,
        to_status=new_status.value,
        triggered_by=triggered_by,
        reason=reason,
        at=now,
    ))
    order.updated_at = now

    logger.info(f"Order {order.order_id} transitioned: {current_status.value} → {new_status.value}")
    return order


class OrderLifecycleController:
    """Drives orders from checkout to a paid, pending, failed or cancelled state."""

    def __init__(
        self,
        store: Optional[OrderStore] = None,
        gateway: Optional[SimulatedPaymentGateway] = None,
        notifier: Optional[OrderNotificationService] = None,
        payment_settings: PaymentSettings = DEFAULT_PAYMENT_SETTINGS,
        timeout_seconds: Optional[float] = None,
    ):
        self.store = store or InMemoryOrderStore()
        self.gateway = gateway or SimulatedPaymentGateway()
        self.payment_settings = payment_settings
        self.notifier = notifier or OrderNotificationService(payment_settings=payment_settings)
        self.timeout_seconds = (
            config.PAYMENT_GATEWAY_TIMEOUT_SECONDS if timeout_seconds is None else timeout_seconds
        )
        # order_id -> attempt id whose result may still be applied
        self._in_flight: Dict[str, str] = {}

    async def checkout(
        self,
        lines: Sequence[CartLine],
        pricing: PricingSettings,
        method: Any,
        customer: CustomerInfo,
    ) -> Order:
        """
        Create the order snapshot once the customer commits to a payment method.

        Raises PaymentMethodDisabledError / UnsupportedPaymentMethodError for
        methods the storefront cannot take, ValueError for an empty cart.
        """
        method = coerce_payment_method(method)
        if not self.payment_settings.is_enabled(method):
            raise PaymentMethodDisabledError(method)
        if not lines:
            raise ValueError("Cannot check out an empty cart")

        snapshot = apply_discounts(lines, pricing.discount_rules)
        summary = compute_summary_for_settings(snapshot, pricing)

        order = Order(
            order_id=generate_order_id(),
            customer=customer,
            lines=snapshot,
            summary=summary,
            currency=pricing.currency,
            vat_rate_percent=pricing.vat_rate_percent,
            discount_rules=list(pricing.discount_rules),
            payment=OrderPayment(method=method),
            status=OrderStatus.CART,
            status_history=[StatusTransition(to_status=OrderStatus.CART.value)],
        )
        transition_order(order, OrderStatus.CHECKOUT, TransitionType.CUSTOMER_ACTION)
        transition_order(
            order,
            OrderStatus.AWAITING_PAYMENT,
            TransitionType.CUSTOMER_ACTION,
            reason=f"Payment method selected: {method.value}",
        )
        await self.store.save_order(order)

        logger.info(f"Order created: {order.order_id} ({summary.total_ttc} {summary.currency})")
        return order

    async def submit_payment(
        self,
        order_id: str,
        raw_fields: Optional[Mapping[str, Any]] = None,
    ) -> PaymentAttemptOutcome:
        """
        Run one payment attempt for an order.

        Validation and gateway failures come back in the outcome. Raises
        OrderNotFoundError for an unknown order and OrderRetryNotAllowedError
        when the order cannot take this attempt.
        """
        order = await self._require_order(order_id)
        method = order.payment.method
        raw_fields = dict(raw_fields or {})
        fingerprint = request_fingerprint(method, raw_fields)

        if not is_retryable(order.status):
            raise OrderRetryNotAllowedError(order_id, order.status, "start a new order instead")
        if order.status == OrderStatus.FAILED:
            if fingerprint != order.payment.request_fingerprint:
                raise OrderRetryNotAllowedError(
                    order_id, order.status, "only an identical request may be retried"
                )
            transition_order(order, OrderStatus.AWAITING_PAYMENT, TransitionType.CUSTOMER_ACTION, "Retry")

        if method == PaymentMethod.BANK_TRANSFER and not str(raw_fields.get("reference") or "").strip():
            raw_fields["reference"] = generate_bank_reference()

        request = build_payment_request(
            method,
            order.summary.total_ttc,
            order.currency,
            order.customer.email,
            order.customer.name,
            raw_fields,
        )

        attempt_id = generate_attempt_id()
        previous_attempt = self._in_flight.get(order_id)
        if previous_attempt:
            logger.info(f"Attempt {attempt_id} supersedes {previous_attempt} on order {order_id}")
        self._in_flight[order_id] = attempt_id

        payment = order.payment
        payment.attempts += 1
        payment.request_fingerprint = fingerprint
        payment.validation_errors = []
        payment.failure_kind = None
        payment.result = None
        if method in CARD_METHODS:
            number = normalize_card_number(request.card.card_number)
            payment.card_last4 = number[-4:] if len(number) >= 4 else None
            logger.info(f"Attempt {attempt_id} on {order_id}: {method.value} {mask_card_number(number)}")
        else:
            logger.info(f"Attempt {attempt_id} on {order_id}: {method.value}")
        if method == PaymentMethod.BANK_TRANSFER:
            payment.reference = request.reference

        errors = validate_payment_request(request)
        if errors:
            return await self._fail_before_gateway(order, attempt_id, errors)

        await self.store.save_order(order)
        result = await execute_with_timeout(self.gateway, request, self.timeout_seconds)

        if self._in_flight.get(order_id) != attempt_id:
            logger.info(
                f"Discarding late {result.status.value} result of attempt {attempt_id} on order {order_id}"
            )
            current = await self.store.get_order(order_id)
            return PaymentAttemptOutcome(
                order_id=order_id,
                attempt_id=attempt_id,
                status=current.status if current else order.status,
                result=result,
                superseded=True,
            )
        self._in_flight.pop(order_id, None)

        return await self._apply_gateway_result(order, attempt_id, result)

    async def _fail_before_gateway(
        self,
        order: Order,
        attempt_id: str,
        errors: List[PaymentValidationError],
    ) -> PaymentAttemptOutcome:
        if self._in_flight.get(order.order_id) == attempt_id:
            self._in_flight.pop(order.order_id, None)

        result = PaymentResult(
            status=PaymentStatus.FAILED,
            message="Please correct the highlighted fields",
            failure_reason="validation",
            metadata={"invalid_fields": [e.field for e in errors]},
        )
        order.payment.result = result
        order.payment.validation_errors = errors
        order.payment.failure_kind = FailureKind.PRE_GATEWAY
        transition_order(
            order,
            OrderStatus.FAILED,
            TransitionType.SYSTEM,
            reason=f"Validation failed: {', '.join(e.field for e in errors)}",
        )
        await self.store.save_order(order)

        logger.info(f"Order {order.order_id} failed before gateway ({len(errors)} field error(s))")
        return PaymentAttemptOutcome(
            order_id=order.order_id,
            attempt_id=attempt_id,
            status=order.status,
            result=result,
            validation_errors=errors,
            failure_kind=FailureKind.PRE_GATEWAY,
        )

    async def _apply_gateway_result(
        self,
        order: Order,
        attempt_id: str,
        result: PaymentResult,
    ) -> PaymentAttemptOutcome:
        new_status = order_status_for_payment(result.status)
        reason = result.failure_reason or result.message

        order.payment.result = result
        if result.status == PaymentStatus.FAILED:
            order.payment.failure_kind = FailureKind.GATEWAY
        transition_order(order, new_status, TransitionType.SYSTEM, reason=reason)

        invoice: Optional[Invoice] = None
        if new_status in (OrderStatus.PAID, OrderStatus.PENDING_CONFIRMATION):
            reference = result.metadata.get("reference") or result.transaction_id
            invoice = await create_invoice_for_order(order, self.store, payment_reference=reference)
        await self.store.save_order(order)

        if new_status == OrderStatus.PAID:
            await self.notifier.notify_payment_confirmed(order, invoice, result.message)
        elif new_status == OrderStatus.PENDING_CONFIRMATION:
            await self.notifier.notify_order_pending(order, invoice, result.message)

        return PaymentAttemptOutcome(
            order_id=order.order_id,
            attempt_id=attempt_id,
            status=order.status,
            result=result,
            failure_kind=order.payment.failure_kind,
            invoice_id=invoice.invoice_id if invoice else None,
        )

    async def abandon(self, order_id: str) -> bool:
        """
        Drop the in-flight attempt of an order the customer has left.

        The order status is untouched; the attempt's eventual result is
        discarded. Returns False when nothing was in flight.
        """
        await self._require_order(order_id)
        attempt_id = self._in_flight.pop(order_id, None)
        if attempt_id is None:
            return False
        logger.info(f"Attempt {attempt_id} on order {order_id} abandoned by customer")
        return True

    async def reconcile(self, event: ReconciliationEvent) -> ReconciliationOutcome:
        """
        Apply an external confirmation to a PendingConfirmation order.

        Unknown or non-pending orders are reported STALE and left alone; an
        event id seen before is ALREADY_APPLIED without side effects.
        """
        order = await self.store.get_order(event.order_id)
        if order is None:
            logger.warning(f"Stale reconciliation {event.event_id}: unknown order {event.order_id}")
            return ReconciliationOutcome.STALE

        if event.event_id in order.applied_reconciliations:
            logger.info(f"Reconciliation {event.event_id} already applied to order {order.order_id}")
            return ReconciliationOutcome.ALREADY_APPLIED

        target = RECONCILIATION_TARGET_STATUS[event.outcome]
        if order.status != OrderStatus.PENDING_CONFIRMATION:
            logger.warning(
                f"Stale reconciliation {event.event_id}: order {order.order_id} is {order.status.value}"
            )
            return ReconciliationOutcome.STALE

        transition_order(
            order,
            target,
            TransitionType.RECONCILIATION,
            reason=f"Reconciliation event {event.event_id}",
        )
        order.applied_reconciliations.append(event.event_id)
        if event.reference and not order.payment.reference:
            order.payment.reference = event.reference

        invoice = await self.store.get_invoice_for_order(order.order_id)
        invoice_status = invoice_status_for(target, order.payment.method, order.summary.total_ttc)
        if invoice is None:
            invoice = await create_invoice_for_order(order, self.store, payment_reference=event.reference)
        else:
            invoice = await update_invoice_status(
                invoice,
                invoice_status,
                self.store,
                reason=f"Reconciliation event {event.event_id}",
            )
        await self.store.save_order(order)

        if target == OrderStatus.PAID:
            if order.payment.method == PaymentMethod.BANK_TRANSFER:
                await self.notifier.notify_bank_transfer_received(order, invoice)
            else:
                await self.notifier.notify_payment_confirmed(order, invoice)

        logger.info(f"Reconciliation {event.event_id} applied: order {order.order_id} → {target.value}")
        return ReconciliationOutcome.APPLIED

    async def get_order(self, order_id: str) -> Optional[Order]:
        return await self.store.get_order(order_id)

    async def get_invoice_for_order(self, order_id: str) -> Optional[Invoice]:
        return await self.store.get_invoice_for_order(order_id)

    def has_attempt_in_flight(self, order_id: str) -> bool:
        return order_id in self._in_flight

    async def _require_order(self, order_id: str) -> Order:
        order = await self.store.get_order(order_id)
        if order is None:
            raise OrderNotFoundError(order_id)
        return order
