"""
Invoice service tests: numbering, lines, status mapping.
"""
import pytest
from datetime import datetime, timezone
from decimal import Decimal

from storefront.models.orders import CustomerInfo, InvoiceStatus, Order, OrderPayment, OrderStatus
from storefront.models.payments import PaymentMethod
from storefront.models.pricing import CartItemKind, DiscountRule
from storefront.services.invoice_service import (
    BANK_TRANSFER_NOTE,
    create_invoice_for_order,
    generate_invoice_number,
    update_invoice_status,
)
from storefront.services.order_store import InMemoryOrderStore
from storefront.services.pricing_engine import build_cart_line, compute_summary_for_settings


def _order(pricing, status=OrderStatus.PAID, method=PaymentMethod.CARD_INTERNATIONAL):
    lines = [
        build_cart_line(CartItemKind.SUBSCRIPTION, 12, pricing),
        build_cart_line(CartItemKind.TOKEN_PACK, 2, pricing),
    ]
    return Order(
        order_id="ORD-2026-F00D42",
        customer=CustomerInfo(email="amina@example.com", name="Amina Benali"),
        lines=lines,
        summary=compute_summary_for_settings(lines, pricing),
        currency=pricing.currency,
        vat_rate_percent=pricing.vat_rate_percent,
        discount_rules=list(pricing.discount_rules),
        payment=OrderPayment(method=method),
        status=status,
    )


class TestInvoiceNumbering:

    @pytest.mark.asyncio
    async def test_sequence_per_year(self):
        store = InMemoryOrderStore()
        now = datetime(2026, 3, 1, tzinfo=timezone.utc)

        first = await generate_invoice_number(store, now)
        second = await generate_invoice_number(store, now)
        next_year = await generate_invoice_number(store, datetime(2027, 1, 2, tzinfo=timezone.utc))

        assert first == "MS-2026-0001"
        assert second == "MS-2026-0002"
        assert next_year == "MS-2027-0001"


class TestCreateInvoice:

    @pytest.mark.asyncio
    async def test_paid_invoice_copies_order_totals(self, pricing):
        store = InMemoryOrderStore()
        order = _order(pricing)

        invoice = await create_invoice_for_order(order, store, payment_reference="INT-1-ABC")

        assert invoice.status == InvoiceStatus.PAID
        assert invoice.paid_at is not None
        assert invoice.total_ttc == order.summary.total_ttc
        assert invoice.payment_reference == "INT-1-ABC"
        assert invoice.notes is None
        assert await store.get_invoice_for_order(order.order_id) == invoice

    @pytest.mark.asyncio
    async def test_lines_show_discounted_unit_price(self, pricing):
        invoice = await create_invoice_for_order(_order(pricing), InMemoryOrderStore())

        subscription, tokens = invoice.lines
        assert subscription.unit_price_ht == Decimal("3200")
        assert subscription.total_ht == Decimal("38400")
        assert subscription.vat_rate == Decimal("20")
        assert tokens.total_ht == Decimal("2000")
        assert sum(line.total_ht for line in invoice.lines) == invoice.subtotal_ht

    @pytest.mark.asyncio
    async def test_pending_bank_transfer(self, pricing):
        order = _order(pricing, OrderStatus.PENDING_CONFIRMATION, PaymentMethod.BANK_TRANSFER)

        invoice = await create_invoice_for_order(order, InMemoryOrderStore(), payment_reference="REF-ABCD1234")

        assert invoice.status == InvoiceStatus.BANK_PENDING
        assert invoice.paid_at is None
        assert invoice.notes == BANK_TRANSFER_NOTE

    @pytest.mark.asyncio
    async def test_zero_total_paid_order_is_free(self, pricing):
        free_pricing = pricing.model_copy(update={
            "discount_rules": [DiscountRule(threshold=1, percentage=Decimal("100"))],
        })
        lines = [build_cart_line(CartItemKind.SUBSCRIPTION, 1, free_pricing)]
        order = _order(pricing).model_copy(update={
            "lines": lines,
            "summary": compute_summary_for_settings(lines, free_pricing),
        })

        invoice = await create_invoice_for_order(order, InMemoryOrderStore())

        assert invoice.status == InvoiceStatus.FREE
        assert invoice.paid_at is not None

    @pytest.mark.asyncio
    async def test_failed_order_has_no_invoice(self, pricing):
        with pytest.raises(ValueError):
            await create_invoice_for_order(_order(pricing, OrderStatus.FAILED), InMemoryOrderStore())


class TestUpdateInvoiceStatus:

    @pytest.mark.asyncio
    async def test_transition_is_recorded(self, pricing):
        store = InMemoryOrderStore()
        order = _order(pricing, OrderStatus.PENDING_CONFIRMATION, PaymentMethod.BANK_TRANSFER)
        invoice = await create_invoice_for_order(order, store)

        updated = await update_invoice_status(invoice, InvoiceStatus.PAID, store, reason="stmt-001")

        assert updated.status == InvoiceStatus.PAID
        assert updated.paid_at is not None
        last = updated.status_history[-1]
        assert (last.from_status, last.to_status, last.reason) == ("bank_pending", "paid", "stmt-001")
        assert (await store.get_invoice(invoice.invoice_id)).status == InvoiceStatus.PAID

    @pytest.mark.asyncio
    async def test_same_status_is_a_no_op(self, pricing):
        store = InMemoryOrderStore()
        invoice = await create_invoice_for_order(_order(pricing), store)

        updated = await update_invoice_status(invoice, InvoiceStatus.PAID, store)

        assert updated is invoice
        assert len(updated.status_history) == 1
