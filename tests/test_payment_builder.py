"""
Payment request builder tests.
"""
import re
import pytest
from decimal import Decimal

from storefront.models.payments import (
    BankTransferRequest,
    CardBrand,
    CardPaymentRequest,
    MobilePaymentRequest,
    PayPalPaymentRequest,
    PaymentMethod,
    PaymentValidationError,
)
from storefront.services.payment_builder import (
    CARD_TEST_HINTS,
    UnsupportedPaymentMethodError,
    build_payment_request,
    generate_bank_reference,
)

AMOUNT = Decimal("46080.00")


def _build(method, data=None):
    return build_payment_request(method, AMOUNT, "DZD", "amina@example.com", "Amina Benali", data)


class TestCardRequests:

    @pytest.mark.parametrize("method,brand", [
        (PaymentMethod.CARD_CIB, CardBrand.CIB),
        (PaymentMethod.CARD_INTERNATIONAL, CardBrand.VISA),
    ])
    def test_brand_is_fixed_by_method(self, method, brand):
        request = _build(method, {"card_number": "4242424242424242", "brand": "mastercard"})

        assert isinstance(request, CardPaymentRequest)
        assert request.card.brand == brand

    def test_missing_fields_default_to_empty_strings(self):
        request = _build("card_international", {"card_number": None})

        assert request.card.card_number == ""
        assert request.card.holder_name == ""
        assert request.card.expiry_month == ""
        assert request.card.cvc == ""

    def test_numbers_are_coerced_to_strings(self):
        request = _build(PaymentMethod.CARD_CIB, {"expiry_month": 8, "expiry_year": 29, "cvc": 123})

        assert request.card.expiry_year == "29"
        assert request.card.cvc == "123"

    def test_card_number_is_not_in_repr(self):
        request = _build(PaymentMethod.CARD_INTERNATIONAL, {"card_number": "4242424242424242", "cvc": "987"})

        assert "4242424242424242" not in repr(request)
        assert "987" not in repr(request)

    def test_request_carries_amount_and_customer(self):
        request = _build(PaymentMethod.CARD_INTERNATIONAL)

        assert request.amount == AMOUNT
        assert request.currency == "DZD"
        assert request.customer_email == "amina@example.com"
        assert request.customer_name == "Amina Benali"

    def test_test_hints_cover_both_card_methods(self):
        assert set(CARD_TEST_HINTS) == {PaymentMethod.CARD_CIB, PaymentMethod.CARD_INTERNATIONAL}


class TestOtherMethods:

    def test_paypal_defaults_to_customer_email(self):
        request = _build(PaymentMethod.PAYPAL)

        assert isinstance(request, PayPalPaymentRequest)
        assert request.paypal_account == "amina@example.com"

    def test_paypal_explicit_account_wins(self):
        request = _build(PaymentMethod.PAYPAL, {"paypal_account": "billing@example.org"})

        assert request.paypal_account == "billing@example.org"

    def test_mobile_payment(self):
        request = _build("mobile_payment", {"phone_number": "+213 555 12 34 56"})

        assert isinstance(request, MobilePaymentRequest)
        assert request.phone_number == "+213 555 12 34 56"

    def test_bank_transfer_keeps_blank_reference(self):
        request = _build(PaymentMethod.BANK_TRANSFER)

        assert isinstance(request, BankTransferRequest)
        assert request.reference == ""


class TestUnsupportedMethod:

    def test_unknown_method_raises(self):
        with pytest.raises(UnsupportedPaymentMethodError) as exc_info:
            _build("bitcoin")

        assert exc_info.value.method == "bitcoin"
        assert not isinstance(exc_info.value, PaymentValidationError)


class TestBankReference:

    def test_reference_format(self):
        assert re.fullmatch(r"REF-[A-Z0-9]{8}", generate_bank_reference())

    def test_references_are_not_reused(self):
        assert len({generate_bank_reference() for _ in range(50)}) == 50
