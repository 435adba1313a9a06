"""
Simulated payment gateway tests. The delay is injected so nothing sleeps.
"""
import asyncio
import pytest
from decimal import Decimal
from unittest.mock import AsyncMock

from storefront.models.payments import PaymentMethod, PaymentStatus
from storefront.services.payment_builder import UnsupportedPaymentMethodError, build_payment_request
from storefront.services.payment_gateway import (
    SimulatedPaymentGateway,
    ends_with_zeros_policy,
    execute_with_timeout,
    no_delay,
)

VALID_CARD = {
    "card_number": "4242424242424242",
    "holder_name": "Amina Benali",
    "expiry_month": "08",
    "expiry_year": "29",
    "cvc": "123",
}


def _request(method, data=None):
    return build_payment_request(method, Decimal("46080"), "DZD", "amina@example.com", "Amina Benali", data)


class TestCardPayments:

    @pytest.mark.asyncio
    async def test_valid_international_card_succeeds(self, gateway):
        result = await gateway.execute(_request(PaymentMethod.CARD_INTERNATIONAL, VALID_CARD))

        assert result.status == PaymentStatus.SUCCESS
        assert result.transaction_id
        assert result.transaction_id.startswith("INT-")

    @pytest.mark.asyncio
    async def test_card_ending_in_zeros_is_pending(self, gateway):
        request = _request(PaymentMethod.CARD_INTERNATIONAL, {**VALID_CARD, "card_number": "4242424242420000"})

        result = await gateway.execute(request)

        assert result.status == PaymentStatus.PENDING
        assert "awaiting bank confirmation" in result.message

    @pytest.mark.asyncio
    async def test_cib_card_prefix(self, gateway):
        request = _request(PaymentMethod.CARD_CIB, {**VALID_CARD, "card_number": "6037990000000006"})

        result = await gateway.execute(request)

        assert result.transaction_id.startswith("CIB-")

    @pytest.mark.asyncio
    async def test_transaction_ids_are_fresh_per_call(self, gateway):
        request = _request(PaymentMethod.CARD_INTERNATIONAL, VALID_CARD)

        first = await gateway.execute(request)
        second = await gateway.execute(request)

        assert first.transaction_id != second.transaction_id
        assert first.transaction_id.startswith("INT-1700000000000-")

    @pytest.mark.asyncio
    async def test_invalid_card_returns_failed_instead_of_raising(self):
        delay = AsyncMock()
        gateway = SimulatedPaymentGateway(delay=delay)

        result = await gateway.execute(_request(PaymentMethod.CARD_INTERNATIONAL, {**VALID_CARD, "cvc": "x"}))

        assert result.status == PaymentStatus.FAILED
        assert result.transaction_id is None
        assert result.metadata["invalid_fields"] == ["cvc"]
        delay.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_card_latency_goes_through_injected_delay(self):
        delay = AsyncMock()
        gateway = SimulatedPaymentGateway(delay=delay, card_latency=0.6)

        await gateway.execute(_request(PaymentMethod.CARD_INTERNATIONAL, VALID_CARD))

        delay.assert_awaited_once_with(0.6)

    @pytest.mark.asyncio
    async def test_soft_decline_policy_is_replaceable(self):
        gateway = SimulatedPaymentGateway(delay=no_delay, soft_decline_policy=lambda number: number.startswith("42"))

        result = await gateway.execute(_request(PaymentMethod.CARD_INTERNATIONAL, VALID_CARD))

        assert result.status == PaymentStatus.PENDING

    def test_default_policy(self):
        assert ends_with_zeros_policy("4242424242420000")
        assert not ends_with_zeros_policy("4242424242424242")


class TestOtherMethods:

    @pytest.mark.asyncio
    async def test_paypal_success(self, gateway):
        result = await gateway.execute(_request(PaymentMethod.PAYPAL))

        assert result.status == PaymentStatus.SUCCESS
        assert result.transaction_id.startswith("PP-")

    @pytest.mark.asyncio
    async def test_paypal_invalid_is_defensive_failure(self, gateway):
        result = await gateway.execute(_request(PaymentMethod.PAYPAL, {"paypal_account": "not-an-email"}))

        assert result.status == PaymentStatus.FAILED

    @pytest.mark.asyncio
    async def test_mobile_payment_is_pending(self, gateway):
        result = await gateway.execute(_request(PaymentMethod.MOBILE_PAYMENT, {"phone_number": "0555123456"}))

        assert result.status == PaymentStatus.PENDING
        assert result.transaction_id.startswith("MOB-")

    @pytest.mark.asyncio
    async def test_mobile_payment_invalid_phone_fails(self, gateway):
        result = await gateway.execute(_request(PaymentMethod.MOBILE_PAYMENT, {"phone_number": "12"}))

        assert result.status == PaymentStatus.FAILED

    @pytest.mark.asyncio
    async def test_bank_transfer_without_reference_is_pending(self):
        delay = AsyncMock()
        gateway = SimulatedPaymentGateway(delay=delay)

        result = await gateway.execute(_request(PaymentMethod.BANK_TRANSFER))

        assert result.status == PaymentStatus.PENDING
        assert result.metadata == {"reference": ""}
        assert result.transaction_id.startswith("VIR-")
        delay.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_bank_transfer_reference_in_metadata(self, gateway):
        result = await gateway.execute(_request(PaymentMethod.BANK_TRANSFER, {"reference": "REF-ABCD1234"}))

        assert result.metadata["reference"] == "REF-ABCD1234"

    @pytest.mark.asyncio
    async def test_unknown_request_raises(self, gateway):
        with pytest.raises(UnsupportedPaymentMethodError):
            await gateway.execute(object())


class TestTimeout:

    @pytest.mark.asyncio
    async def test_timeout_becomes_failed_result(self):
        gateway = SimulatedPaymentGateway(delay=asyncio.sleep, card_latency=5)

        result = await execute_with_timeout(gateway, _request(PaymentMethod.CARD_INTERNATIONAL, VALID_CARD), 0.01)

        assert result.status == PaymentStatus.FAILED
        assert result.failure_reason == "timeout"

    @pytest.mark.asyncio
    async def test_concurrent_calls_are_independent(self, gateway):
        requests = [
            _request(PaymentMethod.CARD_INTERNATIONAL, VALID_CARD),
            _request(PaymentMethod.PAYPAL),
            _request(PaymentMethod.BANK_TRANSFER),
        ]

        results = await asyncio.gather(*(gateway.execute(r) for r in requests))

        assert [r.status for r in results] == [PaymentStatus.SUCCESS, PaymentStatus.SUCCESS, PaymentStatus.PENDING]
