"""
Order Notification Service
Decides which payment event fired and which variables the templated-email
collaborator receives. Rendering and delivery belong to the sink.

Events:
- order_pending: attempt landed in PendingConfirmation
- payment_confirmed: order paid (pipeline success, or reconciliation of a
  non bank-transfer payment)
- bank_transfer_received: reconciliation confirmed a bank transfer

Failed attempts send nothing. A delivery failure is logged and reported in
the result, it never rolls back the order transition that caused it.
"""
import logging
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from storefront.models.orders import Invoice, Order
from storefront.models.payments import (
    DEFAULT_PAYMENT_SETTINGS,
    PAYMENT_METHOD_LABELS,
    PaymentMethod,
    PaymentSettings,
)
from storefront.services.pricing_engine import round_amount

logger = logging.getLogger(__name__)


class PaymentEvent(str, Enum):
    ORDER_PENDING = "order_pending"
    PAYMENT_CONFIRMED = "payment_confirmed"
    BANK_TRANSFER_RECEIVED = "bank_transfer_received"


# Event configuration
EVENT_CONFIG: Dict[PaymentEvent, Dict[str, str]] = {
    PaymentEvent.ORDER_PENDING: {
        "title": "Order awaiting payment confirmation",
        "payment_status": "Pending validation",
    },
    PaymentEvent.PAYMENT_CONFIRMED: {
        "title": "Payment confirmed",
        "payment_status": "Paid",
    },
    PaymentEvent.BANK_TRANSFER_RECEIVED: {
        "title": "Bank transfer received",
        "payment_status": "Paid",
    },
}


class PaymentEventNotification(BaseModel):
    """Payload handed to the templated-email collaborator."""
    event: PaymentEvent
    title: str
    order_reference: str
    invoice_id: Optional[str] = None
    amount: str
    customer_email: str
    user_name: str
    variables: Dict[str, str] = Field(default_factory=dict)


def format_amount(amount: Decimal, currency: str) -> str:
    """e.g. 46080 DZD -> '46,080.00 DZD'"""
    return f"{round_amount(Decimal(amount), currency):,} {currency}"


def _method_label(method: PaymentMethod, settings: PaymentSettings) -> str:
    config = settings.config_for(method)
    if config and config.label:
        return config.label
    return PAYMENT_METHOD_LABELS.get(method, method.value)


def _bank_accounts_text(settings: PaymentSettings) -> Optional[str]:
    config = settings.config_for(PaymentMethod.BANK_TRANSFER)
    if not config or not config.bank_accounts:
        return None
    return "\n".join(
        " ".join(part for part in (account.label, account.bank_name, account.account_number) if part)
        for account in config.bank_accounts
    )


def build_payment_event(
    event: PaymentEvent,
    order: Order,
    invoice: Optional[Invoice],
    payment_settings: PaymentSettings = DEFAULT_PAYMENT_SETTINGS,
    message: Optional[str] = None,
) -> PaymentEventNotification:
    """Assemble the notification payload for `event`. Unset variables are omitted."""
    method = order.payment.method
    amount = format_amount(order.summary.total_ttc, order.currency)
    method_config = payment_settings.config_for(method)
    reference = (invoice.payment_reference if invoice else None) or order.payment.reference

    variables: Dict[str, Optional[str]] = {
        "payment_status": EVENT_CONFIG[event]["payment_status"],
        "payment_method": _method_label(method, payment_settings),
        "payment_reference": reference,
        "payment_message": message,
        "instructions": method_config.instructions if method_config else None,
        "amount": amount,
        "order_reference": order.order_id,
        "invoice_id": invoice.invoice_id if invoice else None,
        "user_name": order.customer.name,
    }
    if method == PaymentMethod.BANK_TRANSFER:
        variables["bank_accounts"] = _bank_accounts_text(payment_settings)

    return PaymentEventNotification(
        event=event,
        title=EVENT_CONFIG[event]["title"],
        order_reference=order.order_id,
        invoice_id=invoice.invoice_id if invoice else None,
        amount=amount,
        customer_email=order.customer.email,
        user_name=order.customer.name,
        variables={key: value for key, value in variables.items() if value is not None},
    )


class NotificationSink:
    """Delivery collaborator interface."""

    async def send(self, notification: PaymentEventNotification) -> None:
        raise NotImplementedError


class LoggingNotificationSink(NotificationSink):
    async def send(self, notification: PaymentEventNotification) -> None:
        logger.info(
            f"{notification.title} ({notification.event.value}): order {notification.order_reference} "
            f"(invoice={notification.invoice_id}, amount={notification.amount})"
        )


class RecordingNotificationSink(NotificationSink):
    """Keeps every notification in memory."""

    def __init__(self):
        self.sent: List[PaymentEventNotification] = []

    async def send(self, notification: PaymentEventNotification) -> None:
        self.sent.append(notification)

    def events(self) -> List[PaymentEvent]:
        return [n.event for n in self.sent]


class OrderNotificationService:
    """
    Service for emitting payment-event notifications to the customer.
    """

    def __init__(
        self,
        sink: Optional[NotificationSink] = None,
        payment_settings: PaymentSettings = DEFAULT_PAYMENT_SETTINGS,
    ):
        self.sink = sink or LoggingNotificationSink()
        self.payment_settings = payment_settings

    async def notify_payment_event(
        self,
        event: PaymentEvent,
        order: Order,
        invoice: Optional[Invoice] = None,
        message: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Send one payment-event notification.

        Returns:
            Summary with `success`, the event and any delivery errors
        """
        notification = build_payment_event(event, order, invoice, self.payment_settings, message)
        results: Dict[str, Any] = {
            "success": True,
            "event": event.value,
            "order_id": order.order_id,
            "errors": [],
        }

        try:
            await self.sink.send(notification)
            logger.info(f"Order notification sent ({event.value}): {order.order_id}")
        except Exception as e:
            logger.error(f"Failed to send {event.value} notification for {order.order_id}: {e}")
            results["success"] = False
            results["errors"].append(str(e))

        return results

    async def notify_order_pending(self, order: Order, invoice: Optional[Invoice] = None, message: str = None):
        return await self.notify_payment_event(PaymentEvent.ORDER_PENDING, order, invoice, message)

    async def notify_payment_confirmed(self, order: Order, invoice: Optional[Invoice] = None, message: str = None):
        return await self.notify_payment_event(PaymentEvent.PAYMENT_CONFIRMED, order, invoice, message)

    async def notify_bank_transfer_received(self, order: Order, invoice: Optional[Invoice] = None):
        return await self.notify_payment_event(PaymentEvent.BANK_TRANSFER_RECEIVED, order, invoice)
