"""
Payment Validator
Per-method structural and checksum checks, run before any gateway call.

Every problem is reported; validation never stops at the first bad field so
the form can highlight all of them at once. No I/O happens here.
"""
import re
from typing import List

from storefront.models.payments import (
    BankTransferRequest,
    CardPaymentRequest,
    MobilePaymentRequest,
    PayPalPaymentRequest,
    PaymentRequest,
    PaymentValidationError,
)
from storefront.services.payment_builder import UnsupportedPaymentMethodError

CARD_NUMBER_MIN_LENGTH = 12
CARD_NUMBER_MAX_LENGTH = 19
PHONE_MIN_DIGITS = 8

_WHITESPACE_RE = re.compile(r"\s+")
_NON_DIGIT_RE = re.compile(r"[^0-9]")
_EXPIRY_MONTH_RE = re.compile(r"0[1-9]|1[0-2]")
_EXPIRY_YEAR_RE = re.compile(r"[0-9]{2}")
_CVC_RE = re.compile(r"[0-9]{3,4}")
_EMAIL_RE = re.compile(r"[^@\s]+@[^@\s]+\.[^@\s]+")


def normalize_card_number(value: str) -> str:
    return _WHITESPACE_RE.sub("", value or "")


def mask_card_number(value: str) -> str:
    """Keep only the last four digits, e.g. '**** 4242'."""
    number = normalize_card_number(value)
    return f"**** {number[-4:]}" if len(number) >= 4 else "****"


def luhn_check(number: str) -> bool:
    """Luhn checksum over a digits-only string. Any other character fails."""
    if not number or not number.isascii() or not number.isdigit():
        return False
    total = 0
    for index, char in enumerate(reversed(number)):
        digit = int(char)
        if index % 2 == 1:
            digit *= 2
            if digit > 9:
                digit -= 9
        total += digit
    return total % 10 == 0


def is_valid_email(value: str) -> bool:
    return bool(value) and _EMAIL_RE.fullmatch(value) is not None


def phone_digit_count(value: str) -> int:
    return len(_NON_DIGIT_RE.sub("", value or ""))


def _validate_card(request: CardPaymentRequest) -> List[PaymentValidationError]:
    errors: List[PaymentValidationError] = []
    card = request.card
    number = normalize_card_number(card.card_number)

    if not CARD_NUMBER_MIN_LENGTH <= len(number) <= CARD_NUMBER_MAX_LENGTH:
        errors.append(PaymentValidationError(field="card_number", message="Invalid card number"))
    elif not luhn_check(number):
        errors.append(PaymentValidationError(field="card_number", message="Invalid card number (checksum)"))

    if not card.holder_name.strip():
        errors.append(PaymentValidationError(field="holder_name", message="Cardholder name is required"))

    if not _EXPIRY_MONTH_RE.fullmatch(card.expiry_month):
        errors.append(PaymentValidationError(field="expiry_month", message="Invalid expiry month"))

    if not _EXPIRY_YEAR_RE.fullmatch(card.expiry_year):
        errors.append(PaymentValidationError(field="expiry_year", message="Invalid expiry year (YY format)"))

    if not _CVC_RE.fullmatch(card.cvc):
        errors.append(PaymentValidationError(field="cvc", message="Invalid CVC"))

    return errors


def validate_payment_request(request: PaymentRequest) -> List[PaymentValidationError]:
    """Return every validation error for `request`; an empty list means valid."""
    if isinstance(request, CardPaymentRequest):
        return _validate_card(request)
    if isinstance(request, PayPalPaymentRequest):
        if not is_valid_email(request.paypal_account):
            return [PaymentValidationError(field="paypal_account", message="Invalid PayPal address")]
        return []
    if isinstance(request, MobilePaymentRequest):
        if phone_digit_count(request.phone_number) < PHONE_MIN_DIGITS:
            return [PaymentValidationError(field="phone_number", message="Invalid phone number")]
        return []
    if isinstance(request, BankTransferRequest):
        # The reference is advisory only
        return []

    raise UnsupportedPaymentMethodError(getattr(request, "method", request))
