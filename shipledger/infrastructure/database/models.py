"""
Infrastructure - SQLModel tables for the ledger.
Money columns are NUMERIC(14, 2); rate columns NUMERIC(12, 6).
"""

from datetime import datetime
from decimal import Decimal

from sqlmodel import Field, Relationship, SQLModel


def money_field(**kwargs):
    return Field(max_digits=14, decimal_places=2, **kwargs)


def rate_field(**kwargs):
    return Field(max_digits=12, decimal_places=6, **kwargs)


class Customer(SQLModel, table=True):
    """Customer (registered user placing orders)."""

    __tablename__ = "customer"

    id: str = Field(primary_key=True)
    name: str
    username: str | None = Field(default=None, index=True)
    phone: str = ""
    address: str | None = None
    created_at: datetime = Field(default_factory=datetime.utcnow)


class Representative(SQLModel, table=True):
    """Delivery representative (custody owner)."""

    __tablename__ = "representative"

    id: str = Field(primary_key=True)
    name: str
    username: str | None = Field(default=None, index=True)
    phone: str = ""
    created_at: datetime = Field(default_factory=datetime.utcnow)


class Order(SQLModel, table=True):
    """Customer order. remaining_amount is kept in step with the payment transactions."""

    __tablename__ = "orders"

    id: str = Field(primary_key=True)
    invoice_number: str = Field(index=True)
    tracking_id: str = Field(default="", index=True)
    user_id: str = Field(index=True)
    customer_name: str
    operation_date: datetime = Field(index=True)
    selling_price_lyd: Decimal = money_field()
    remaining_amount: Decimal = money_field()
    status: str = Field(index=True)
    exchange_rate: Decimal = rate_field()

    purchase_price_usd: Decimal | None = money_field(default=None)
    down_payment_lyd: Decimal | None = money_field(default=None)
    weight_kg: Decimal | None = Field(default=None, max_digits=12, decimal_places=3)
    price_per_kilo: Decimal | None = money_field(default=None)
    customer_weight_cost_lyd: Decimal | None = money_field(default=None)
    added_cost_usd: Decimal | None = money_field(default=None)
    shipping_cost_lyd: Decimal | None = money_field(default=None)
    store: str | None = None
    payment_method: str | None = None
    item_description: str | None = None
    product_links: str = ""

    representative_id: str | None = Field(default=None, index=True)
    representative_name: str | None = None
    collected_amount: Decimal | None = money_field(default=None)
    delivery_date: datetime | None = None

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
    version: int = 1


class Transaction(SQLModel, table=True):
    """Immutable ledger entry. row_id gives the insertion order for equal dates."""

    __tablename__ = "ledger_transaction"

    row_id: int | None = Field(default=None, primary_key=True)
    id: str = Field(unique=True, index=True)
    order_id: str | None = Field(default=None, index=True)
    customer_id: str = Field(index=True)
    customer_name: str = ""
    date: datetime = Field(index=True)
    type: str
    status: str
    amount: Decimal = money_field()
    description: str = ""


class Deposit(SQLModel, table=True):
    """Earnest money (عربون)."""

    __tablename__ = "deposit"

    id: str = Field(primary_key=True)
    receipt_number: str = Field(index=True)
    user_id: str | None = Field(default=None, index=True)
    customer_name: str
    customer_phone: str = ""
    amount: Decimal = money_field()
    date: datetime
    description: str = ""
    status: str = Field(default="pending", index=True)
    representative_id: str | None = Field(default=None, index=True)
    representative_name: str | None = None
    collected_by: str | None = None
    collected_date: datetime | None = None
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class TempOrder(SQLModel, table=True):
    """Bulk invoice; parent_invoice_id is set once merged into an order."""

    __tablename__ = "temp_order"

    id: str = Field(primary_key=True)
    invoice_name: str
    status: str = "pending"
    created_at: datetime = Field(default_factory=datetime.utcnow)
    assigned_user_id: str | None = Field(default=None, index=True)
    assigned_user_name: str | None = None
    parent_invoice_id: str | None = Field(default=None, index=True)

    sub_orders: list["SubOrder"] = Relationship(back_populates="temp_order")


class SubOrder(SQLModel, table=True):
    """Line of a bulk invoice."""

    __tablename__ = "sub_order"

    sub_order_id: str = Field(primary_key=True)
    temp_order_id: str = Field(foreign_key="temp_order.id", index=True)
    position: int = 0
    customer_name: str
    customer_phone: str = ""
    customer_address: str = ""
    tracking_id: str | None = None
    purchase_price_usd: Decimal | None = money_field(default=None)
    selling_price_lyd: Decimal = money_field()
    down_payment_lyd: Decimal | None = money_field(default=None)
    remaining_amount: Decimal = money_field()
    shipment_status: str = "pending"
    weight_kg: Decimal = Field(default=Decimal("0"), max_digits=12, decimal_places=3)
    price_per_kilo_usd: Decimal = money_field(default=Decimal("0"))
    store: str = ""
    product_links: str = ""
    item_description: str = ""
    payment_method: str = ""
    operation_date: datetime | None = None
    delivery_date: datetime | None = None
    representative_id: str | None = Field(default=None, index=True)
    representative_name: str | None = None
    parent_invoice_id: str | None = None

    temp_order: "TempOrder" = Relationship(back_populates="sub_orders")


class TempPayment(SQLModel, table=True):
    """Payment against a sub-order of a bulk invoice."""

    __tablename__ = "temp_payment"

    id: str = Field(primary_key=True)
    temp_order_id: str = Field(index=True)
    sub_order_id: str = Field(index=True)
    customer_name: str = ""
    amount: Decimal = money_field()
    account_type: str = "cash"
    notes: str = ""
    date: datetime = Field(default_factory=datetime.utcnow)


class Expense(SQLModel, table=True):
    """Operating expense (مصروف), always in LYD."""

    __tablename__ = "expense"

    id: str = Field(primary_key=True)
    description: str
    amount: Decimal = money_field()
    date: datetime = Field(index=True)


class InstantSale(SQLModel, table=True):
    """Recorded instant sale with the rates and profit frozen at sale time."""

    __tablename__ = "instant_sale"

    id: str = Field(primary_key=True)
    product_name: str
    cost_usd: Decimal = money_field()
    cost_exchange_rate: Decimal = rate_field()
    total_cost_lyd: Decimal = money_field()
    sale_currency: str = "LYD"
    sale_price: Decimal = money_field()
    sale_exchange_rate: Decimal | None = rate_field(default=None)
    final_sale_price_lyd: Decimal = money_field()
    net_profit: Decimal = money_field()
    created_at: datetime = Field(default_factory=datetime.utcnow, index=True)


class Creditor(SQLModel, table=True):
    """External party (company or person) with its own running balance."""

    __tablename__ = "creditor"

    id: str = Field(primary_key=True)
    name: str
    type: str = "company"
    currency: str = "LYD"
    total_debt: Decimal = money_field(default=Decimal("0"))
    contact_info: str | None = None
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class ExternalDebt(SQLModel, table=True):
    """Signed movement on a creditor account."""

    __tablename__ = "external_debt"

    row_id: int | None = Field(default=None, primary_key=True)
    id: str = Field(unique=True, index=True)
    creditor_id: str = Field(foreign_key="creditor.id", index=True)
    creditor_name: str = ""
    amount: Decimal = money_field()
    date: datetime = Field(index=True)
    status: str = "pending"
    notes: str = ""
    account_type: str = "cash"


class AppSettings(SQLModel, table=True):
    """Single-row settings table (id = 1)."""

    __tablename__ = "app_settings"

    id: int = Field(default=1, primary_key=True)
    exchange_rate: Decimal = rate_field()
    price_per_kilo_lyd: Decimal = money_field(default=Decimal("0"))
    price_per_kilo_usd: Decimal = money_field(default=Decimal("0"))
    cards_exchange_rate_cash: Decimal = rate_field(default=Decimal("0"))
    cards_exchange_rate_bank: Decimal = rate_field(default=Decimal("0"))
    cards_exchange_rate_balance: Decimal = rate_field(default=Decimal("0"))
    products_exchange_rate_cash: Decimal = rate_field(default=Decimal("0"))
    products_exchange_rate_bank: Decimal = rate_field(default=Decimal("0"))
    products_exchange_rate_balance: Decimal = rate_field(default=Decimal("0"))
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class AuditLog(SQLModel, table=True):
    """Audit trail for administrative overrides and other sensitive changes."""

    __tablename__ = "audit_log"

    id: str = Field(primary_key=True)
    user_id: str = Field(index=True)
    action: str = Field(index=True)
    entity_type: str
    entity_id: str
    old_value: str | None = None
    new_value: str | None = None
    description: str | None = None
    created_at: datetime = Field(default_factory=datetime.utcnow, index=True)
