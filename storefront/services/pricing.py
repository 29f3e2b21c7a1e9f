"""Money helpers shared by the order ledger and the gateway adapters."""

from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from storefront.models.order import SETTLEMENT_CURRENCY, Currency
from storefront.schemas.checkout import PricedLine

CENT = Decimal("0.01")


def to_decimal(value: Any) -> Decimal:
    """Coerce a PostgREST numeric (int, float or str) to Decimal without float noise."""
    if isinstance(value, Decimal):
        return value
    if value is None:
        return Decimal("0")
    return Decimal(str(value))


def quantize(amount: Decimal) -> Decimal:
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def settlement_currency(method: str) -> Currency:
    """Currency a payment method always settles in."""
    try:
        return SETTLEMENT_CURRENCY[method]
    except KeyError:
        raise ValueError(f"Unknown payment method: {method}") from None


def unit_price(line: PricedLine, currency: Currency, exchange_rate: Decimal) -> Decimal:
    """Unit price of a line in the given currency.

    DZD uses the catalog's explicit DZD price when set and falls back to
    the USD price at the current exchange rate.
    """
    if currency == "USD":
        return quantize(line.price_usd)
    if line.price_dzd:
        return quantize(line.price_dzd)
    return quantize(line.price_usd * exchange_rate)


def cart_total(lines: list[PricedLine], currency: Currency, exchange_rate: Decimal) -> Decimal:
    return quantize(sum((unit_price(line, currency, exchange_rate) * line.quantity for line in lines), Decimal("0")))


def convert(amount: Decimal, from_currency: Currency, to_currency: Currency, exchange_rate: Decimal) -> Decimal:
    """Convert between USD and DZD at the given USD->DZD rate."""
    if from_currency == to_currency:
        return quantize(amount)
    if from_currency == "DZD" and to_currency == "USD":
        return quantize(amount / exchange_rate)
    if from_currency == "USD" and to_currency == "DZD":
        return quantize(amount * exchange_rate)
    raise ValueError(f"Unsupported conversion {from_currency} -> {to_currency}")


def tax_for(subtotal: Decimal, tax_rate_percent: Decimal) -> Decimal:
    return quantize(subtotal * tax_rate_percent / Decimal("100"))


def whole_units(amount: Decimal) -> int:
    """Round to whole currency units (Chargily takes dinars, not centimes)."""
    return int(amount.quantize(Decimal("1"), rounding=ROUND_HALF_UP))
