"""Pricing data models.

Cart lines, discount tiers and the pricing configuration consumed by the
pricing engine. Configuration is plain data passed at call time; nothing here
reads a process-wide settings cache.
"""
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator


# Thresholds up to this value are months, above it they are token counts
DURATION_THRESHOLD_MAX = 12

TOKENS_PER_PACK_UNIT = 1_000_000


class CartItemKind(str, Enum):
    SUBSCRIPTION = "subscription"
    TOKEN_PACK = "token_pack"


class DiscountFamily(str, Enum):
    DURATION = "duration"   # threshold in months
    VOLUME = "volume"       # threshold in tokens


class DiscountRule(BaseModel):
    """A discount tier: `percentage` applies from `threshold` upward."""
    model_config = ConfigDict(frozen=True)

    threshold: int = Field(..., ge=0)
    percentage: Decimal = Field(..., ge=0, le=100)

    @property
    def family(self) -> DiscountFamily:
        if self.threshold <= DURATION_THRESHOLD_MAX:
            return DiscountFamily.DURATION
        return DiscountFamily.VOLUME


class CartLine(BaseModel):
    """A priced cart line.

    Subscriptions count months in `quantity`, token packs count packs of
    `tokens_per_unit` tokens. For subscriptions `tokens_per_unit` is the
    monthly token allowance bundled with each month.

    When `tokens_per_unit` is omitted a token pack counts single tokens
    (`quantity` is the token count) and a subscription bundles none.
    """
    model_config = ConfigDict(frozen=True)

    id: str
    kind: CartItemKind
    quantity: int = Field(..., gt=0)
    unit_price_ht: Decimal = Field(..., ge=0)
    discount_percent: Decimal = Field(default=Decimal("0"), ge=0, le=100)
    tokens_per_unit: Optional[int] = Field(default=None, ge=0, validate_default=True)
    label: str = ""

    @field_validator("tokens_per_unit")
    @classmethod
    def default_tokens_per_unit(cls, v: Optional[int], info: ValidationInfo) -> int:
        if v is not None:
            return v
        return 1 if info.data.get("kind") == CartItemKind.TOKEN_PACK else 0

    @property
    def discount_volume(self) -> int:
        """Quantity compared against discount thresholds (months or tokens)."""
        if self.kind == CartItemKind.TOKEN_PACK:
            return self.quantity * self.tokens_per_unit
        return self.quantity

    @property
    def tokens_granted(self) -> int:
        return self.quantity * self.tokens_per_unit


class SubscriptionPricing(BaseModel):
    model_config = ConfigDict(frozen=True)

    monthly_price: Decimal = Field(..., ge=0)
    monthly_tokens: int = Field(..., ge=0)


class TokenPricing(BaseModel):
    model_config = ConfigDict(frozen=True)

    price_per_million: Decimal = Field(..., ge=0)


class VatSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    enabled: bool = True
    rate: Decimal = Field(default=Decimal("20"), ge=0, le=100)


class PricingSettings(BaseModel):
    """Pricing/VAT/discount configuration read by the pricing engine."""
    model_config = ConfigDict(frozen=True)

    subscription: SubscriptionPricing
    tokens: TokenPricing
    currency: str = "DZD"
    vat: VatSettings = VatSettings()
    discount_rules: List[DiscountRule] = []

    @property
    def vat_rate_percent(self) -> Decimal:
        return self.vat.rate if self.vat.enabled else Decimal("0")


class OrderSummary(BaseModel):
    """Derived totals. Always recomputed from line snapshots, never edited."""
    model_config = ConfigDict(frozen=True)

    subtotal_ht: Decimal
    tax_amount: Decimal
    total_ttc: Decimal
    total_discount: Decimal = Decimal("0")
    total_tokens_granted: int = 0
    vat_rate_percent: Decimal = Decimal("0")
    currency: str = "DZD"


DEFAULT_PRICING_SETTINGS = PricingSettings(
    subscription=SubscriptionPricing(monthly_price=Decimal("4000"), monthly_tokens=1_000_000),
    tokens=TokenPricing(price_per_million=Decimal("1000")),
    currency="DZD",
    vat=VatSettings(enabled=True, rate=Decimal("20")),
    discount_rules=[
        DiscountRule(threshold=6, percentage=Decimal("7")),
        DiscountRule(threshold=12, percentage=Decimal("20")),
        DiscountRule(threshold=10_000_000, percentage=Decimal("10")),
        DiscountRule(threshold=20_000_000, percentage=Decimal("20")),
    ],
)
