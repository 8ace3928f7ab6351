"""
Domain Layer - Value objects for the shipping back-office ledger.
Money is fixed-point (2 decimals, ROUND_HALF_UP); rates are always explicit.
"""

from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum
from typing import NewType

from .errors import InvalidAmount, InvalidRate

OrderId = NewType("OrderId", str)
CustomerId = NewType("CustomerId", str)
RepresentativeId = NewType("RepresentativeId", str)

CENT = Decimal("0.01")
ZERO = Decimal("0")


class Currency(str, Enum):
    LYD = "LYD"
    USD = "USD"


class OrderStatus(str, Enum):
    """Order lifecycle: pending → ... → out_for_delivery → delivered."""
    PENDING = "pending"
    PROCESSED = "processed"
    READY = "ready"
    SHIPPED = "shipped"
    ARRIVED_DUBAI = "arrived_dubai"
    ARRIVED_BENGHAZI = "arrived_benghazi"
    ARRIVED_TOBRUK = "arrived_tobruk"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class TransactionType(str, Enum):
    ORDER = "order"      # Debit: order value charged to the customer
    PAYMENT = "payment"  # Credit: money received against an order


class TransactionStatus(str, Enum):
    """Mirrors the order status at posting time, or PAID once fully settled."""
    PENDING = "pending"
    PROCESSED = "processed"
    READY = "ready"
    SHIPPED = "shipped"
    ARRIVED_DUBAI = "arrived_dubai"
    ARRIVED_BENGHAZI = "arrived_benghazi"
    ARRIVED_TOBRUK = "arrived_tobruk"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    PAID = "paid"

    @classmethod
    def from_order(cls, status: OrderStatus) -> "TransactionStatus":
        return cls(OrderStatus(status).value)


class DepositStatus(str, Enum):
    PENDING = "pending"
    COLLECTED = "collected"
    CANCELLED = "cancelled"


class CollectedBy(str, Enum):
    ADMIN = "admin"
    REPRESENTATIVE = "representative"


class ExternalDebtStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    PAYMENT = "payment"


class AccountType(str, Enum):
    CASH = "cash"
    BANK = "bank"
    USD = "usd"


class DebtKind(str, Enum):
    DEBIT = "debit"    # Positive amount: the balance grows
    CREDIT = "credit"  # Negative amount: the balance shrinks


class BalanceDirection(str, Enum):
    OWED_BY_US = "owed_by_us"  # عليه
    OWED_TO_US = "owed_to_us"  # له
    SETTLED = "settled"


class RateChannel(str, Enum):
    """Which configured rate a conversion uses."""
    BASE = "base"
    CARDS_CASH = "cards_cash"
    CARDS_BANK = "cards_bank"
    CARDS_BALANCE = "cards_balance"
    PRODUCTS_CASH = "products_cash"
    PRODUCTS_BANK = "products_bank"
    PRODUCTS_BALANCE = "products_balance"
    ORDER_SNAPSHOT = "order_snapshot"  # Rate frozen on an order at creation


class CustodyFilter(str, Enum):
    ALL = "all"
    REGULAR = "regular"
    TEMP = "temp"


def quantize(amount: Decimal) -> Decimal:
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True, slots=True)
class Money:
    """
    Value Object - amount in a currency, held at 2 decimals.

    exact=True keeps a conversion intermediate at full precision; any
    arithmetic on it, or rounded(), brings it back to cents.
    """
    amount: Decimal
    currency: Currency = Currency.LYD
    exact: bool = field(default=False, compare=False)

    def __post_init__(self) -> None:
        if not isinstance(self.amount, Decimal):
            raise InvalidAmount(f"Money amount must be a Decimal, got {type(self.amount).__name__}")
        if not self.amount.is_finite():
            raise InvalidAmount(f"Money amount must be finite, got {self.amount}")
        if not self.exact:
            object.__setattr__(self, "amount", quantize(self.amount))
        object.__setattr__(self, "currency", Currency(self.currency))

    @classmethod
    def zero(cls, currency: Currency = Currency.LYD) -> "Money":
        return cls(ZERO, currency)

    def rounded(self) -> "Money":
        return Money(self.amount, self.currency)

    def _check_currency(self, other: "Money") -> None:
        if self.currency != other.currency:
            raise ValueError(
                f"Cannot combine {self.currency.value} with {other.currency.value}"
            )

    def __add__(self, other: "Money") -> "Money":
        self._check_currency(other)
        return Money(self.amount + other.amount, self.currency)

    def __sub__(self, other: "Money") -> "Money":
        self._check_currency(other)
        return Money(self.amount - other.amount, self.currency)

    def __neg__(self) -> "Money":
        return Money(-self.amount, self.currency)

    def __abs__(self) -> "Money":
        return Money(abs(self.amount), self.currency)

    def __str__(self) -> str:
        return f"{self.amount:.2f} {self.currency.value}"

    def is_zero(self) -> bool:
        return self.amount == ZERO

    def is_positive(self) -> bool:
        return self.amount > ZERO

    def is_negative(self) -> bool:
        return self.amount < ZERO


def lyd(value: Decimal | int | str) -> Money:
    return Money(Decimal(str(value)), Currency.LYD)


def usd(value: Decimal | int | str) -> Money:
    return Money(Decimal(str(value)), Currency.USD)


def money_sum(items, currency: Currency = Currency.LYD) -> Money:
    total = Money.zero(currency)
    for item in items:
        total += item
    return total


def parse_money(raw: object, currency: Currency = Currency.LYD) -> Money:
    """
    Parse external input into Money. Malformed input is rejected,
    never coerced to zero.
    """
    if raw is None or isinstance(raw, bool):
        raise InvalidAmount(f"Invalid amount: {raw!r}")
    if isinstance(raw, float):
        raw = repr(raw)
    text = str(raw).strip().replace(",", "")
    if not text:
        raise InvalidAmount("Invalid amount: empty value")
    try:
        value = Decimal(text)
    except InvalidOperation:
        raise InvalidAmount(f"Invalid amount: {raw!r}") from None
    if not value.is_finite():
        raise InvalidAmount(f"Invalid amount: {raw!r}")
    return Money(value, currency)


def parse_rate(raw: object) -> Decimal:
    """Parse an exchange rate; missing, malformed or non-positive values are rejected."""
    if raw is None or isinstance(raw, bool):
        raise InvalidRate(f"Exchange rate is required, got {raw!r}")
    try:
        value = Decimal(str(raw).strip())
    except InvalidOperation:
        raise InvalidRate(f"Invalid exchange rate: {raw!r}") from None
    if not value.is_finite() or value <= ZERO:
        raise InvalidRate(f"Exchange rate must be positive, got {raw!r}")
    return value


@dataclass(frozen=True, slots=True)
class ExchangeRate:
    """Value Object - LYD per 1 USD, tagged with the channel it came from."""
    rate: Decimal
    channel: RateChannel

    def __post_init__(self) -> None:
        object.__setattr__(self, "rate", parse_rate(self.rate))
        object.__setattr__(self, "channel", RateChannel(self.channel))
