"""
Payment validator tests: per-method field checks and the Luhn checksum.
"""
import random
import pytest
from decimal import Decimal

from storefront.models.payments import PaymentMethod
from storefront.services.payment_builder import UnsupportedPaymentMethodError, build_payment_request
from storefront.services.payment_validator import (
    luhn_check,
    mask_card_number,
    validate_payment_request,
)

VALID_CARD = {
    "card_number": "4242424242424242",
    "holder_name": "Amina Benali",
    "expiry_month": "08",
    "expiry_year": "29",
    "cvc": "123",
}


def _request(method, data):
    return build_payment_request(method, Decimal("100"), "DZD", "amina@example.com", "Amina Benali", data)


def _card(**overrides):
    return _request(PaymentMethod.CARD_INTERNATIONAL, {**VALID_CARD, **overrides})


def _fields(errors):
    return [e.field for e in errors]


def _luhn_check_digit(payload: str) -> str:
    total = 0
    for index, char in enumerate(reversed(payload)):
        digit = int(char)
        if index % 2 == 0:
            digit *= 2
            if digit > 9:
                digit -= 9
        total += digit
    return str((10 - total % 10) % 10)


def _random_luhn_numbers(count, seed=20240917):
    rng = random.Random(seed)
    numbers = []
    for _ in range(count):
        payload = "".join(rng.choice("0123456789") for _ in range(15))
        numbers.append(payload + _luhn_check_digit(payload))
    return numbers


class TestLuhn:

    def test_known_numbers(self):
        assert luhn_check("4242424242424242")
        assert luhn_check("79927398713")
        assert not luhn_check("79927398710")

    def test_non_digits_fail(self):
        assert not luhn_check("")
        assert not luhn_check("4242-4242-4242-4242")
        assert not luhn_check("٤٢٤٢٤٢٤٢٤٢٤٢٤٢٤٢")

    @pytest.mark.parametrize("number", _random_luhn_numbers(40))
    def test_valid_checksum_reports_no_card_number_error(self, number):
        assert "card_number" not in _fields(validate_payment_request(_card(card_number=number)))

    @pytest.mark.parametrize("number", _random_luhn_numbers(40, seed=7))
    def test_broken_checksum_reports_exactly_one_card_number_error(self, number):
        broken = number[:-1] + str((int(number[-1]) + 1) % 10)

        assert _fields(validate_payment_request(_card(card_number=broken))).count("card_number") == 1


class TestCardValidation:

    def test_valid_card(self):
        assert validate_payment_request(_card()) == []

    def test_whitespace_is_stripped(self):
        assert validate_payment_request(_card(card_number=" 4242 4242 4242 4242 ")) == []

    @pytest.mark.parametrize("number", ["4242", "42424242424242424242", "4242-4242-4242-4242", ""])
    def test_bad_numbers_give_one_error(self, number):
        assert _fields(validate_payment_request(_card(card_number=number))) == ["card_number"]

    def test_all_errors_are_reported_together(self):
        errors = validate_payment_request(_card(holder_name="   ", expiry_month="13", cvc="12"))

        assert sorted(_fields(errors)) == ["cvc", "expiry_month", "holder_name"]

    @pytest.mark.parametrize("month", ["0", "00", "1", "13", "ab"])
    def test_bad_expiry_month(self, month):
        assert _fields(validate_payment_request(_card(expiry_month=month))) == ["expiry_month"]

    @pytest.mark.parametrize("year", ["2029", "9", "2a", ""])
    def test_expiry_year_must_be_two_digits(self, year):
        assert _fields(validate_payment_request(_card(expiry_year=year))) == ["expiry_year"]

    def test_four_digit_cvc_is_accepted(self):
        assert validate_payment_request(_card(cvc="1234")) == []

    def test_cib_card_is_validated_the_same_way(self):
        request = _request(PaymentMethod.CARD_CIB, {**VALID_CARD, "card_number": "6037990000000006"})

        assert validate_payment_request(request) == []


class TestOtherMethods:

    def test_paypal_not_an_email(self):
        errors = validate_payment_request(_request(PaymentMethod.PAYPAL, {"paypal_account": "not-an-email"}))

        assert _fields(errors) == ["paypal_account"]

    @pytest.mark.parametrize("account", ["user@example", "a b@example.com", "@example.com"])
    def test_paypal_shapes_rejected(self, account):
        errors = validate_payment_request(_request(PaymentMethod.PAYPAL, {"paypal_account": account}))

        assert len(errors) == 1

    def test_paypal_valid(self):
        assert validate_payment_request(_request(PaymentMethod.PAYPAL, {})) == []

    def test_mobile_counts_digits_only(self):
        assert validate_payment_request(
            _request(PaymentMethod.MOBILE_PAYMENT, {"phone_number": "+213 (0) 555-12-34"})
        ) == []
        errors = validate_payment_request(_request(PaymentMethod.MOBILE_PAYMENT, {"phone_number": "555-12-34"}))
        assert _fields(errors) == ["phone_number"]

    def test_bank_transfer_without_reference_is_valid(self):
        assert validate_payment_request(_request(PaymentMethod.BANK_TRANSFER, {})) == []

    def test_unknown_request_type_raises(self):
        with pytest.raises(UnsupportedPaymentMethodError):
            validate_payment_request(object())


class TestMaskCardNumber:

    def test_keeps_last_four(self):
        assert mask_card_number("4242 4242 4242 4242") == "**** 4242"

    def test_short_input(self):
        assert mask_card_number("42") == "****"
