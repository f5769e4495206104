"""Amount parsing and base-unit arithmetic.

User amounts arrive as a decimal literal, the word "all", or a percentage.
Everything sent to the network is an integer count of base units; the
conversion always rounds down.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_DOWN, Decimal, InvalidOperation
from enum import Enum
from typing import Optional, Union

from .errors import InsufficientFunds, ValidationFailed

LAMPORTS_PER_SOL = 1_000_000_000
SOL_DECIMALS = 9

_ALL_WORDS = {"all", "max", "everything", "entire balance"}

# No token supply comes close; keeps base-unit math inside Decimal precision
MAX_AMOUNT = Decimal("1e15")


class AmountKind(str, Enum):
    LITERAL = "literal"
    ALL = "all"
    PERCENT = "percent"


@dataclass(frozen=True)
class AmountSpec:
    """A validated, not yet resolved, amount request."""
    kind: AmountKind
    value: Decimal = Decimal("0")

    def describe(self, symbol: str = "") -> str:
        if self.kind == AmountKind.ALL:
            return f"all {symbol}".strip()
        if self.kind == AmountKind.PERCENT:
            return f"{format_decimal(self.value)}% of {symbol}".strip() if symbol else f"{format_decimal(self.value)}%"
        return f"{format_decimal(self.value)} {symbol}".strip()


def _to_decimal(raw: Union[str, int, float, Decimal], param: str) -> Decimal:
    text = str(raw).strip().replace(",", "")
    try:
        value = Decimal(text)
    except InvalidOperation as exc:
        raise ValidationFailed(f"'{raw}' is not a valid number.", param=param) from exc
    if not value.is_finite():
        raise ValidationFailed(f"'{raw}' is not a valid number.", param=param)
    return value


def parse_percentage(raw: Union[str, int, float, Decimal]) -> Decimal:
    value = _to_decimal(str(raw).strip().rstrip("%"), "amount")
    if value <= 0 or value > 100:
        raise ValidationFailed("Percentage must be greater than 0 and at most 100.", param="amount")
    return value


def parse_amount(
    amount: Optional[Union[str, int, float, Decimal]],
    percentage: Optional[Union[str, int, float, Decimal]] = None,
) -> AmountSpec:
    """Validate the user's amount input without touching any balance."""
    has_amount = amount is not None and str(amount).strip() != ""
    has_percentage = percentage is not None and str(percentage).strip() != ""

    if has_amount and has_percentage:
        raise ValidationFailed(
            "Please give either an amount or a percentage, not both.",
            param="amount",
        )
    if has_percentage:
        return AmountSpec(AmountKind.PERCENT, parse_percentage(percentage))
    if not has_amount:
        raise ValidationFailed("An amount is required.", param="amount")

    text = str(amount).strip().lower()
    if text in _ALL_WORDS:
        return AmountSpec(AmountKind.ALL)
    if text.endswith("%"):
        return AmountSpec(AmountKind.PERCENT, parse_percentage(text))

    # "1.5 sol" -> "1.5"
    head = text.split()[0]
    value = _to_decimal(head, "amount")
    if value <= 0:
        raise ValidationFailed("Amount must be greater than zero.", param="amount")
    if value > MAX_AMOUNT:
        raise ValidationFailed(f"'{head}' is larger than any token supply.", param="amount")
    return AmountSpec(AmountKind.LITERAL, value)


def to_base_units(value: Decimal, decimals: int) -> int:
    try:
        scaled = (value * (Decimal(10) ** decimals)).quantize(Decimal("1"), rounding=ROUND_DOWN)
    except InvalidOperation as exc:
        raise ValidationFailed(f"{value} is too large an amount.", param="amount") from exc
    return int(scaled)


def from_base_units(units: int, decimals: int) -> Decimal:
    return Decimal(units) / (Decimal(10) ** decimals)


def format_decimal(value: Decimal, places: int = 4) -> str:
    """Trim to ``places`` decimals without scientific notation."""
    try:
        quantized = value.quantize(Decimal(1).scaleb(-places), rounding=ROUND_DOWN)
    except InvalidOperation:
        # Too many integer digits to keep ``places`` decimals
        quantized = value.to_integral_value(rounding=ROUND_DOWN)
    text = format(quantized, "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text or "0"


def resolve_amount(
    spec: AmountSpec,
    balance: int,
    decimals: int,
    *,
    reserve: int = 0,
    symbol: str = "",
) -> int:
    """Turn ``spec`` into base units against ``balance`` (also base units).

    ``reserve`` is held back from "all" and percentage amounts so the
    transaction fee can still be paid.
    """
    spendable = balance - reserve
    available = format_decimal(from_base_units(balance, decimals))

    if spec.kind == AmountKind.ALL:
        if spendable <= 0:
            raise InsufficientFunds(
                f"Insufficient balance to cover fees. You have {available} {symbol}".strip() + ".",
                available=available,
            )
        return spendable

    if spec.kind == AmountKind.PERCENT:
        units = int((Decimal(balance) * spec.value / Decimal(100)).to_integral_value(rounding=ROUND_DOWN))
        units = min(units, spendable)
        if units <= 0:
            raise InsufficientFunds(
                f"{format_decimal(spec.value)}% of your balance is too small to send. "
                f"You have {available} {symbol}".strip() + ".",
                available=available,
            )
        return units

    units = to_base_units(spec.value, decimals)
    if units <= 0:
        raise ValidationFailed(
            f"Amount is smaller than the token's smallest unit ({decimals} decimals).",
            param="amount",
        )
    if units > balance:
        raise InsufficientFunds(
            f"Insufficient balance. You have {available} {symbol}".strip() + ".",
            available=available,
            required=format_decimal(spec.value),
        )
    return units
