"""Payment data models.

A payment request is a closed set of method-specific variants. Every consumer
(builder, validator, gateway) dispatches on the concrete variant and raises
UnsupportedPaymentMethodError when it meets one it does not know.
"""
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class PaymentMethod(str, Enum):
    CARD_CIB = "card_cib"
    CARD_INTERNATIONAL = "card_international"
    MOBILE_PAYMENT = "mobile_payment"
    BANK_TRANSFER = "bank_transfer"
    PAYPAL = "paypal"


CARD_METHODS = frozenset({PaymentMethod.CARD_CIB, PaymentMethod.CARD_INTERNATIONAL})


class CardBrand(str, Enum):
    CIB = "cib"
    VISA = "visa"
    MASTERCARD = "mastercard"


class PaymentStatus(str, Enum):
    SUCCESS = "success"
    PENDING = "pending"
    FAILED = "failed"


class PaymentValidationError(BaseModel):
    """A user-correctable, field-scoped problem with a payment request."""
    model_config = ConfigDict(frozen=True)

    field: str
    message: str


class BasePaymentRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    method: PaymentMethod
    amount: Decimal
    currency: str
    customer_email: str
    customer_name: str


class CardDetails(BaseModel):
    model_config = ConfigDict(frozen=True)

    # Raw card data stays out of reprs and log lines
    card_number: str = Field(default="", repr=False)
    holder_name: str = ""
    expiry_month: str = ""
    expiry_year: str = ""
    cvc: str = Field(default="", repr=False)
    brand: CardBrand


class CardPaymentRequest(BasePaymentRequest):
    card: CardDetails


class PayPalPaymentRequest(BasePaymentRequest):
    paypal_account: str = ""


class MobilePaymentRequest(BasePaymentRequest):
    phone_number: str = ""


class BankTransferRequest(BasePaymentRequest):
    reference: str = ""


PaymentRequest = Union[
    CardPaymentRequest,
    PayPalPaymentRequest,
    MobilePaymentRequest,
    BankTransferRequest,
]


class PaymentResult(BaseModel):
    """Outcome of one payment attempt. Produced once, never mutated."""
    model_config = ConfigDict(frozen=True)

    status: PaymentStatus
    transaction_id: Optional[str] = None
    message: Optional[str] = None
    failure_reason: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


class BankAccountInfo(BaseModel):
    id: str
    label: str
    bank_name: Optional[str] = None
    account_number: Optional[str] = None
    iban: Optional[str] = None
    swift: Optional[str] = None
    notes: Optional[str] = None


class PaymentMethodConfig(BaseModel):
    enabled: bool = True
    label: str
    description: Optional[str] = None
    instructions: Optional[str] = None
    bank_accounts: List[BankAccountInfo] = []


class PaymentSettings(BaseModel):
    """Per-method configuration. Only decides which methods may be used."""
    methods: Dict[PaymentMethod, PaymentMethodConfig]

    def is_enabled(self, method: PaymentMethod) -> bool:
        config = self.methods.get(method)
        return bool(config and config.enabled)

    def config_for(self, method: PaymentMethod) -> Optional[PaymentMethodConfig]:
        return self.methods.get(method)


PAYMENT_METHOD_LABELS: Dict[PaymentMethod, str] = {
    PaymentMethod.CARD_CIB: "CIB card",
    PaymentMethod.CARD_INTERNATIONAL: "International card",
    PaymentMethod.MOBILE_PAYMENT: "Mobile payment",
    PaymentMethod.BANK_TRANSFER: "Bank transfer",
    PaymentMethod.PAYPAL: "PayPal",
}


DEFAULT_PAYMENT_SETTINGS = PaymentSettings(
    methods={method: PaymentMethodConfig(label=label) for method, label in PAYMENT_METHOD_LABELS.items()}
)
