"""
Domain Entities - snapshots of records owned by the persistence layer.
Derived figures (remaining amounts, debt, custody) are recomputed on read.
"""

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime
from decimal import Decimal

from .value_objects import (
    AccountType,
    BalanceDirection,
    CollectedBy,
    Currency,
    DepositStatus,
    ExternalDebtStatus,
    Money,
    OrderStatus,
    RateChannel,
    TransactionStatus,
    TransactionType,
    money_sum,
)


def new_id() -> str:
    return uuid.uuid4().hex


@dataclass
class Customer:
    id: str
    name: str
    phone: str = ""
    address: str | None = None
    username: str | None = None


@dataclass
class Representative:
    id: str
    name: str
    phone: str = ""
    username: str | None = None
    assigned_orders: int = 0  # Recomputed on read from out_for_delivery orders


@dataclass
class Order:
    """
    Entity - customer order. sellingPriceLYD is fixed at creation,
    remaining_amount is derived from the payment transactions.
    """
    user_id: str
    customer_name: str
    invoice_number: str
    selling_price_lyd: Money
    exchange_rate: Decimal
    id: str = field(default_factory=new_id)
    tracking_id: str = ""
    operation_date: datetime = field(default_factory=datetime.utcnow)
    remaining_amount: Money | None = None
    status: OrderStatus = OrderStatus.PENDING
    purchase_price_usd: Money | None = None
    down_payment_lyd: Money | None = None
    weight_kg: Decimal | None = None
    price_per_kilo: Decimal | None = None
    customer_weight_cost_lyd: Money | None = None
    added_cost_usd: Money | None = None
    store: str | None = None
    payment_method: str | None = None
    item_description: str | None = None
    product_links: str = ""
    representative_id: str | None = None
    representative_name: str | None = None
    shipping_cost_lyd: Money | None = None
    collected_amount: Money | None = None
    delivery_date: datetime | None = None

    def __post_init__(self) -> None:
        if self.remaining_amount is None:
            self.remaining_amount = self.selling_price_lyd

    @property
    def is_cancelled(self) -> bool:
        return self.status == OrderStatus.CANCELLED


@dataclass(frozen=True)
class Transaction:
    """Entity - immutable ledger entry. amount is always a positive magnitude."""
    customer_id: str
    type: TransactionType
    amount: Money
    status: TransactionStatus
    description: str = ""
    order_id: str | None = None
    customer_name: str = ""
    date: datetime = field(default_factory=datetime.utcnow)
    id: str = field(default_factory=new_id)

    @property
    def is_payment(self) -> bool:
        return self.type == TransactionType.PAYMENT


@dataclass
class Deposit:
    """Entity - earnest money taken ahead of an order."""
    receipt_number: str
    customer_name: str
    amount: Money
    id: str = field(default_factory=new_id)
    user_id: str | None = None
    customer_phone: str = ""
    date: datetime = field(default_factory=datetime.utcnow)
    description: str = ""
    status: DepositStatus = DepositStatus.PENDING
    representative_id: str | None = None
    representative_name: str | None = None
    collected_by: CollectedBy | None = None
    collected_date: datetime | None = None


@dataclass
class SubOrder:
    """Entity - one line of a bulk invoice, with its own lifecycle."""
    temp_order_id: str
    customer_name: str
    selling_price_lyd: Money
    sub_order_id: str = field(default_factory=new_id)
    remaining_amount: Money | None = None
    purchase_price_usd: Money | None = None
    down_payment_lyd: Money | None = None
    shipment_status: OrderStatus = OrderStatus.PENDING
    customer_phone: str = ""
    customer_address: str = ""
    tracking_id: str | None = None
    weight_kg: Decimal = Decimal("0")
    price_per_kilo_usd: Decimal = Decimal("0")
    store: str = ""
    product_links: str = ""
    item_description: str = ""
    payment_method: str = ""
    operation_date: datetime | None = None
    delivery_date: datetime | None = None
    representative_id: str | None = None
    representative_name: str | None = None
    parent_invoice_id: str | None = None
    invoice_name: str | None = None

    def __post_init__(self) -> None:
        if self.remaining_amount is None:
            down = self.down_payment_lyd or Money.zero()
            self.remaining_amount = self.selling_price_lyd - down

    @property
    def is_merged(self) -> bool:
        return self.parent_invoice_id is not None


@dataclass
class TempOrder:
    """
    Entity - provisional bulk invoice. Totals are derived from sub-orders;
    parent_invoice_id links to the canonical Order after merge.
    """
    invoice_name: str
    id: str = field(default_factory=new_id)
    status: OrderStatus = OrderStatus.PENDING
    sub_orders: list[SubOrder] = field(default_factory=list)
    created_at: datetime = field(default_factory=datetime.utcnow)
    assigned_user_id: str | None = None
    assigned_user_name: str | None = None
    parent_invoice_id: str | None = None

    @property
    def total_amount(self) -> Money:
        return money_sum(so.selling_price_lyd for so in self.sub_orders)

    @property
    def remaining_amount(self) -> Money:
        return money_sum(so.remaining_amount for so in self.sub_orders)

    @property
    def paid_amount(self) -> Money:
        return self.total_amount - self.remaining_amount

    @property
    def is_merged(self) -> bool:
        return self.parent_invoice_id is not None

    def find_sub_order(self, sub_order_id: str) -> SubOrder | None:
        for sub_order in self.sub_orders:
            if sub_order.sub_order_id == sub_order_id:
                return sub_order
        return None


@dataclass(frozen=True)
class TempPayment:
    """Entity - payment recorded against one sub-order of a bulk invoice."""
    temp_order_id: str
    sub_order_id: str
    customer_name: str
    amount: Money
    account_type: AccountType = AccountType.CASH
    notes: str = ""
    date: datetime = field(default_factory=datetime.utcnow)
    id: str = field(default_factory=new_id)


@dataclass(frozen=True)
class Expense:
    """Entity - operating expense paid in LYD."""
    description: str
    amount: Money
    date: datetime = field(default_factory=datetime.utcnow)
    id: str = field(default_factory=new_id)


@dataclass(frozen=True)
class InstantSale:
    """Entity - a recorded over-the-counter sale with its frozen rates and profit."""
    product_name: str
    cost_usd: Money
    cost_exchange_rate: Decimal
    total_cost_lyd: Money
    sale_currency: Currency
    sale_price: Money
    final_sale_price_lyd: Money
    net_profit: Money
    sale_exchange_rate: Decimal | None = None
    created_at: datetime = field(default_factory=datetime.utcnow)
    id: str = field(default_factory=new_id)


@dataclass
class Creditor:
    id: str
    name: str
    type: str = "company"  # company, person
    currency: Currency = Currency.LYD
    total_debt: Money | None = None  # Derived running balance, cached for listing
    contact_info: str | None = None


@dataclass(frozen=True)
class ExternalDebt:
    """Entity - signed movement on a creditor account (positive = we owe more)."""
    creditor_id: str
    amount: Money
    date: datetime = field(default_factory=datetime.utcnow)
    status: ExternalDebtStatus = ExternalDebtStatus.PENDING
    notes: str = ""
    account_type: AccountType = AccountType.CASH
    creditor_name: str = ""
    id: str = field(default_factory=new_id)


@dataclass(frozen=True)
class AppSettings:
    """Process-wide configuration: base rate, per-kilo prices, channel rates."""
    exchange_rate: Decimal
    price_per_kilo_lyd: Decimal = Decimal("0")
    price_per_kilo_usd: Decimal = Decimal("0")
    cards_exchange_rate_cash: Decimal = Decimal("0")
    cards_exchange_rate_bank: Decimal = Decimal("0")
    cards_exchange_rate_balance: Decimal = Decimal("0")
    products_exchange_rate_cash: Decimal = Decimal("0")
    products_exchange_rate_bank: Decimal = Decimal("0")
    products_exchange_rate_balance: Decimal = Decimal("0")

    RATE_FIELDS = {
        RateChannel.BASE: "exchange_rate",
        RateChannel.CARDS_CASH: "cards_exchange_rate_cash",
        RateChannel.CARDS_BANK: "cards_exchange_rate_bank",
        RateChannel.CARDS_BALANCE: "cards_exchange_rate_balance",
        RateChannel.PRODUCTS_CASH: "products_exchange_rate_cash",
        RateChannel.PRODUCTS_BANK: "products_exchange_rate_bank",
        RateChannel.PRODUCTS_BALANCE: "products_exchange_rate_balance",
    }

    def updated(self, **changes) -> "AppSettings":
        return replace(self, **changes)


@dataclass
class AuditEntry:
    actor: str
    action: str
    entity_type: str
    entity_id: str
    old_value: str | None = None
    new_value: str | None = None
    description: str | None = None
    created_at: datetime = field(default_factory=datetime.utcnow)
    id: str = field(default_factory=new_id)


# ---------------------------------------------------------------------------
# Computed views returned to the presentation layer
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CustomerBalance:
    debt: Money
    pending_deposits: Money

    @property
    def net_balance(self) -> Money:
        return self.debt - self.pending_deposits


@dataclass(frozen=True)
class StatementLine:
    date: datetime
    description: str
    kind: str  # order, payment, deposit
    debit: Money
    credit: Money
    status: str
    reference_id: str
    order_id: str | None = None


@dataclass
class CustomerStatement:
    customer: Customer
    lines: list[StatementLine]
    total_orders_value: Money
    total_paid: Money
    balance: CustomerBalance
    inconsistencies: list = field(default_factory=list)

    @property
    def debt(self) -> Money:
        return self.balance.debt


@dataclass(frozen=True)
class CreditorStatementRow:
    date: datetime
    notes: str
    debit: Money | None
    credit: Money | None
    balance: Money
    debt_id: str
    account_type: AccountType


@dataclass
class CreditorStatement:
    creditor: Creditor
    opening_balance: Money
    rows: list[CreditorStatementRow]
    closing_balance: Money
    direction: BalanceDirection


@dataclass(frozen=True)
class CustodyItem:
    id: str
    customer_name: str
    invoice_number: str
    remaining_amount: Money
    customer_phone: str = ""
    customer_address: str = ""
    is_temp: bool = False
    temp_order_id: str | None = None


@dataclass(frozen=True)
class CustodySummary:
    representative_id: str
    pending_regular: Money
    pending_temp: Money
    collected: Money
    pending_deposits: Money
    assigned_orders: int

    @property
    def pending_custody(self) -> Money:
        return self.pending_regular + self.pending_temp


@dataclass(frozen=True)
class FinancialLogEntry:
    id: str
    kind: str  # delivered, deposit
    description: str
    customer_name: str
    amount: Money
    date: datetime | None


@dataclass
class FinancialLog:
    entries: list[FinancialLogEntry]
    total_collected: Money
    delivered_count: int
    deposit_count: int


@dataclass(frozen=True)
class TempOrderAggregate:
    invoice_count: int
    total_value: Money
    total_debt: Money
    total_paid: Money


@dataclass(frozen=True)
class OrderQuote:
    purchase_cost_lyd: Money
    shipping_cost_lyd: Money
    customer_weight_cost_lyd: Money
    added_cost_lyd: Money
    final_selling_price_lyd: Money
    remaining_amount: Money
    net_profit: Money


@dataclass(frozen=True)
class InstantSaleQuote:
    total_cost_lyd: Money
    final_sale_price_lyd: Money
    net_profit: Money


@dataclass(frozen=True)
class FinancialPeriod:
    key: str  # yyyy-mm-dd, or yyyy-mm for monthly buckets
    revenue: Money
    expenses: Money
    profit: Money


@dataclass
class FinancialSummary:
    """
    Business figures for a date window.

    revenue counts payments received plus instant-sale takings; profit counts
    order margins plus instant-sale profit; net_profit subtracts expenses.
    debt is what is still owed on the window's non-cancelled orders.
    """
    total_revenue: Money
    total_debt: Money
    total_expenses: Money
    orders_profit: Money
    instant_sales_profit: Money
    net_profit: Money
    periods: list[FinancialPeriod]
