"""
Simulated Payment Gateway
Deterministic stand-in for a real processor so the pipeline runs offline.

Rules per method:
- Card: success, or pending when the soft-decline policy matches
  (default: number ends in "0000")
- PayPal: success
- Mobile payment: pending until the customer confirms on their device
- Bank transfer: pending immediately, reference carried in metadata

Invalid data reaching the gateway yields a `failed` result, never an
exception. Calls are stateless and independent; there is no retry here.
"""
import asyncio
import logging
import time
import uuid
from typing import Awaitable, Callable, Dict, Optional

from storefront import config
from storefront.models.payments import (
    BankTransferRequest,
    CardPaymentRequest,
    MobilePaymentRequest,
    PayPalPaymentRequest,
    PaymentMethod,
    PaymentRequest,
    PaymentResult,
    PaymentStatus,
)
from storefront.services.payment_builder import UnsupportedPaymentMethodError
from storefront.services.payment_validator import (
    PHONE_MIN_DIGITS,
    is_valid_email,
    normalize_card_number,
    phone_digit_count,
    validate_payment_request,
)

logger = logging.getLogger(__name__)

DelayFn = Callable[[float], Awaitable[None]]
SoftDeclinePolicy = Callable[[str], bool]

TRANSACTION_PREFIXES: Dict[PaymentMethod, str] = {
    PaymentMethod.CARD_CIB: "CIB",
    PaymentMethod.CARD_INTERNATIONAL: "INT",
    PaymentMethod.PAYPAL: "PP",
    PaymentMethod.MOBILE_PAYMENT: "MOB",
    PaymentMethod.BANK_TRANSFER: "VIR",
}


def ends_with_zeros_policy(card_number: str) -> bool:
    """Default soft-decline rule: numbers ending in 0000 await the bank."""
    return card_number.endswith("0000")


async def no_delay(_seconds: float) -> None:
    return None


class SimulatedPaymentGateway:
    """Executes validated payment requests against simulated processors."""

    def __init__(
        self,
        delay: DelayFn = asyncio.sleep,
        clock: Callable[[], float] = time.time,
        soft_decline_policy: SoftDeclinePolicy = ends_with_zeros_policy,
        card_latency: float = None,
        paypal_latency: float = None,
        mobile_latency: float = None,
    ):
        self._delay = delay
        self._clock = clock
        self._soft_decline = soft_decline_policy
        self.card_latency = config.CARD_LATENCY_SECONDS if card_latency is None else card_latency
        self.paypal_latency = config.PAYPAL_LATENCY_SECONDS if paypal_latency is None else paypal_latency
        self.mobile_latency = config.MOBILE_LATENCY_SECONDS if mobile_latency is None else mobile_latency

    def _transaction_id(self, method: PaymentMethod) -> str:
        """Fresh id per call: METHOD-<millis>-<random>"""
        millis = int(self._clock() * 1000)
        return f"{TRANSACTION_PREFIXES[method]}-{millis}-{uuid.uuid4().hex[:8].upper()}"

    async def execute(self, request: PaymentRequest) -> PaymentResult:
        if isinstance(request, CardPaymentRequest):
            return await self._process_card(request)
        if isinstance(request, PayPalPaymentRequest):
            return await self._process_paypal(request)
        if isinstance(request, MobilePaymentRequest):
            return await self._process_mobile(request)
        if isinstance(request, BankTransferRequest):
            return self._process_bank_transfer(request)

        raise UnsupportedPaymentMethodError(getattr(request, "method", request))

    async def _process_card(self, request: CardPaymentRequest) -> PaymentResult:
        errors = validate_payment_request(request)
        if errors:
            logger.warning(f"Card request reached gateway with {len(errors)} invalid field(s)")
            return PaymentResult(
                status=PaymentStatus.FAILED,
                failure_reason="; ".join(e.message for e in errors),
                metadata={"invalid_fields": [e.field for e in errors]},
            )

        number = normalize_card_number(request.card.card_number)
        await self._delay(self.card_latency)

        if self._soft_decline(number):
            return PaymentResult(
                status=PaymentStatus.PENDING,
                transaction_id=self._transaction_id(request.method),
                message="Transaction awaiting bank confirmation",
            )
        return PaymentResult(
            status=PaymentStatus.SUCCESS,
            transaction_id=self._transaction_id(request.method),
            message="Payment accepted",
        )

    async def _process_paypal(self, request: PayPalPaymentRequest) -> PaymentResult:
        await self._delay(self.paypal_latency)
        if not is_valid_email(request.paypal_account):
            return PaymentResult(
                status=PaymentStatus.FAILED,
                failure_reason="Invalid PayPal address",
                metadata={"invalid_fields": ["paypal_account"]},
            )
        return PaymentResult(
            status=PaymentStatus.SUCCESS,
            transaction_id=self._transaction_id(request.method),
            message="PayPal payment completed",
        )

    async def _process_mobile(self, request: MobilePaymentRequest) -> PaymentResult:
        await self._delay(self.mobile_latency)
        if phone_digit_count(request.phone_number) < PHONE_MIN_DIGITS:
            return PaymentResult(
                status=PaymentStatus.FAILED,
                failure_reason="Invalid phone number",
                metadata={"invalid_fields": ["phone_number"]},
            )
        return PaymentResult(
            status=PaymentStatus.PENDING,
            transaction_id=self._transaction_id(request.method),
            message="Mobile payment awaiting confirmation on your device",
        )

    def _process_bank_transfer(self, request: BankTransferRequest) -> PaymentResult:
        return PaymentResult(
            status=PaymentStatus.PENDING,
            transaction_id=self._transaction_id(request.method),
            message="Bank transfer instructions sent to the customer",
            metadata={"reference": request.reference},
        )


async def execute_with_timeout(
    gateway: SimulatedPaymentGateway,
    request: PaymentRequest,
    timeout_seconds: Optional[float],
) -> PaymentResult:
    """Run one gateway call; a timeout becomes a `failed` result."""
    try:
        return await asyncio.wait_for(gateway.execute(request), timeout=timeout_seconds)
    except asyncio.TimeoutError:
        logger.warning(f"Gateway call for {request.method.value} timed out after {timeout_seconds}s")
        return PaymentResult(
            status=PaymentStatus.FAILED,
            failure_reason="timeout",
            message="The payment processor did not answer in time",
        )
