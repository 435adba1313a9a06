"""
Invoice Service
Derives the billing record of an order and keeps its status in lockstep.

Business rules:
- One invoice per order, created when the payment attempt lands in Paid or
  PendingConfirmation. Failed attempts carry no invoice.
- Format: MS-YYYY-NNNN (4-digit zero-padded sequence per year).
- Totals are copied from the order snapshot, never recomputed from live
  pricing configuration.
- Status changes are appended to the invoice's own history.
"""
import logging
from datetime import datetime, timezone
from typing import List, Optional

from storefront.models.orders import (
    Invoice,
    InvoiceLine,
    InvoiceStatus,
    Order,
    StatusTransition,
    TransitionType,
)
from storefront.models.payments import PaymentMethod
from storefront.services.order_store import OrderStore
from storefront.services.order_workflow import invoice_status_for
from storefront.services.pricing_engine import HUNDRED, line_total_ht, round_amount

logger = logging.getLogger(__name__)

INVOICE_NUMBER_FORMAT = "MS-{year}-{seq:04d}"

BANK_TRANSFER_NOTE = (
    "Your account will be activated once the full amount including tax has "
    "been received. You will be notified automatically when the transfer is cleared."
)


async def generate_invoice_number(store: OrderStore, now: Optional[datetime] = None) -> str:
    """Next invoice number for the current year: MS-YYYY-NNNN"""
    year = (now or datetime.now(timezone.utc)).year
    seq = await store.next_invoice_sequence(year)
    return INVOICE_NUMBER_FORMAT.format(year=year, seq=seq)


def build_invoice_lines(order: Order) -> List[InvoiceLine]:
    lines = []
    for index, line in enumerate(order.lines, start=1):
        unit_price = line.unit_price_ht * (HUNDRED - line.discount_percent) / HUNDRED
        lines.append(InvoiceLine(
            id=f"{order.order_id}-{index}",
            label=line.label or line.kind.value,
            quantity=line.quantity,
            unit_price_ht=round_amount(unit_price, order.currency),
            total_ht=round_amount(line_total_ht(line), order.currency),
            vat_rate=order.vat_rate_percent,
        ))
    return lines


async def create_invoice_for_order(
    order: Order,
    store: OrderStore,
    payment_reference: Optional[str] = None,
) -> Invoice:
    """
    Create and persist the invoice mirroring the order's current status.

    Raises ValueError when the order is in a status that carries no invoice.
    """
    status = invoice_status_for(order.status, order.payment.method, order.summary.total_ttc)
    if status is None:
        raise ValueError(f"Order {order.order_id} in status {order.status.value} has no invoice")

    now = datetime.now(timezone.utc)
    invoice = Invoice(
        invoice_id=await generate_invoice_number(store, now),
        order_id=order.order_id,
        status=status,
        lines=build_invoice_lines(order),
        subtotal_ht=order.summary.subtotal_ht,
        tax_amount=order.summary.tax_amount,
        total_ttc=order.summary.total_ttc,
        vat_rate_percent=order.vat_rate_percent,
        currency=order.currency,
        payment_method=order.payment.method,
        payment_reference=payment_reference,
        notes=BANK_TRANSFER_NOTE if order.payment.method == PaymentMethod.BANK_TRANSFER else None,
        status_history=[StatusTransition(to_status=status.value, triggered_by=TransitionType.SYSTEM)],
        issued_at=now,
        paid_at=now if status in (InvoiceStatus.PAID, InvoiceStatus.FREE) else None,
    )
    await store.save_invoice(invoice)

    logger.info(f"Invoice {invoice.invoice_id} created for order {order.order_id}: {status.value}")
    return invoice


async def update_invoice_status(
    invoice: Invoice,
    new_status: InvoiceStatus,
    store: OrderStore,
    triggered_by: TransitionType = TransitionType.RECONCILIATION,
    reason: Optional[str] = None,
) -> Invoice:
    """Move an invoice to `new_status`, recording the transition. No-op if unchanged."""
    if invoice.status == new_status:
        return invoice

    now = datetime.now(timezone.utc)
    previous = invoice.status
    update = {
        "status": new_status,
        "status_history": invoice.status_history + [StatusTransition(
            from_status=previous.value,
            to_status=new_status.value,
            triggered_by=triggered_by,
            reason=reason,
            at=now,
        )],
    }
    if new_status in (InvoiceStatus.PAID, InvoiceStatus.FREE) and invoice.paid_at is None:
        update["paid_at"] = now

    updated = invoice.model_copy(update=update)
    await store.save_invoice(updated)

    logger.info(f"Invoice {invoice.invoice_id} transitioned: {previous.value} → {new_status.value}")
    return updated
