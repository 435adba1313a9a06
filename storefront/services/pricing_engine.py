"""
Pricing Engine
Computes per-line and order-level totals (HT / tax / TTC) from cart lines.

Arithmetic runs on Decimal end to end. Presentation rounding to the
currency's smallest unit happens once, on the summary that is returned.
"""
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Iterable, List, Optional, Sequence, Union

from storefront.models.pricing import (
    CartItemKind,
    CartLine,
    DiscountFamily,
    DiscountRule,
    OrderSummary,
    PricingSettings,
    TOKENS_PER_PACK_UNIT,
)

HUNDRED = Decimal("100")
ZERO = Decimal("0")

# ISO 4217 exponents that differ from the usual two decimals
CURRENCY_MINOR_UNITS: Dict[str, int] = {
    "JPY": 0,
    "KRW": 0,
    "XOF": 0,
    "XAF": 0,
    "BHD": 3,
    "KWD": 3,
    "OMR": 3,
    "TND": 3,
}

KIND_TO_FAMILY: Dict[CartItemKind, DiscountFamily] = {
    CartItemKind.SUBSCRIPTION: DiscountFamily.DURATION,
    CartItemKind.TOKEN_PACK: DiscountFamily.VOLUME,
}


def minor_unit_quantum(currency: str) -> Decimal:
    """Smallest representable amount for `currency` (e.g. 0.01)."""
    exponent = CURRENCY_MINOR_UNITS.get((currency or "").upper(), 2)
    return Decimal(1).scaleb(-exponent)


def round_amount(amount: Decimal, currency: str) -> Decimal:
    return amount.quantize(minor_unit_quantum(currency), rounding=ROUND_HALF_UP)


def resolve_discount(rules: Iterable[DiscountRule], kind: CartItemKind, volume: int) -> Decimal:
    """
    Discount percentage for `volume` units of `kind`.

    Only the rules of the kind's family are considered. The rule with the
    largest threshold not exceeding `volume` wins; on a duplicated threshold
    the highest percentage wins. No qualifying rule means no discount.
    """
    if volume <= 0:
        return ZERO
    family = KIND_TO_FAMILY[kind]
    best: Optional[DiscountRule] = None
    for rule in rules:
        if rule.family != family or rule.threshold > volume:
            continue
        if best is None or (rule.threshold, rule.percentage) > (best.threshold, best.percentage):
            best = rule
    return best.percentage if best else ZERO


def line_total_ht(line: CartLine, discount_percent: Optional[Decimal] = None) -> Decimal:
    """Unrounded HT total of a line after its discount."""
    discount = line.discount_percent if discount_percent is None else discount_percent
    return line.unit_price_ht * line.quantity * (HUNDRED - discount) / HUNDRED


def apply_discounts(lines: Sequence[CartLine], rules: Sequence[DiscountRule]) -> List[CartLine]:
    """Return copies of `lines` with the resolved discount stamped on each."""
    return [
        line.model_copy(update={"discount_percent": resolve_discount(rules, line.kind, line.discount_volume)})
        for line in lines
    ]


def compute_summary(
    lines: Sequence[CartLine],
    vat_rate_percent: Union[Decimal, int, float, str],
    discount_rules: Optional[Sequence[DiscountRule]] = None,
    currency: str = "DZD",
) -> OrderSummary:
    """
    Compute the order summary for `lines`.

    When `discount_rules` is given each line's discount is resolved from it;
    otherwise the discount already carried by the line is used (order
    snapshots). An empty cart yields an all-zero summary.
    """
    vat_rate = vat_rate_percent if isinstance(vat_rate_percent, Decimal) else Decimal(str(vat_rate_percent))
    subtotal = ZERO
    gross = ZERO
    tokens = 0
    for line in lines:
        assert line.quantity > 0, f"cart line {line.id} has non-positive quantity"
        discount = None
        if discount_rules is not None:
            discount = resolve_discount(discount_rules, line.kind, line.discount_volume)
        subtotal += line_total_ht(line, discount)
        gross += line.unit_price_ht * line.quantity
        tokens += line.tokens_granted

    subtotal_ht = round_amount(subtotal, currency)
    tax_amount = round_amount(subtotal * vat_rate / HUNDRED, currency)

    # TTC is the sum of the displayed HT and tax amounts
    return OrderSummary(
        subtotal_ht=subtotal_ht,
        tax_amount=tax_amount,
        total_ttc=subtotal_ht + tax_amount,
        total_discount=round_amount(gross - subtotal, currency),
        total_tokens_granted=tokens,
        vat_rate_percent=vat_rate,
        currency=currency,
    )


def build_cart_line(
    kind: CartItemKind,
    quantity: int,
    pricing: PricingSettings,
    line_id: Optional[str] = None,
) -> CartLine:
    """
    Build a priced cart line from the pricing configuration.

    Subscriptions: quantity is months, each month bundles the monthly tokens.
    Token packs: quantity is millions of tokens.
    """
    if kind == CartItemKind.SUBSCRIPTION:
        unit_price = pricing.subscription.monthly_price
        tokens_per_unit = pricing.subscription.monthly_tokens
        label = f"Subscription - {quantity} month(s)"
    else:
        unit_price = pricing.tokens.price_per_million
        tokens_per_unit = TOKENS_PER_PACK_UNIT
        label = f"Token pack - {quantity}M tokens"

    line = CartLine(
        id=line_id or kind.value,
        kind=kind,
        quantity=quantity,
        unit_price_ht=unit_price,
        tokens_per_unit=tokens_per_unit,
        label=label,
    )
    discount = resolve_discount(pricing.discount_rules, kind, line.discount_volume)
    return line.model_copy(update={"discount_percent": discount})


def compute_summary_for_settings(lines: Sequence[CartLine], pricing: PricingSettings) -> OrderSummary:
    """Summary using the VAT rate, discount rules and currency of `pricing`."""
    return compute_summary(
        lines,
        pricing.vat_rate_percent,
        discount_rules=pricing.discount_rules,
        currency=pricing.currency,
    )
