"""
API DTOs - Data Transfer Objects for API requests/responses.
Amounts travel as decimals in LYD unless the field name says USD.
"""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from shipledger.domain import entities
from shipledger.domain.errors import Inconsistent
from shipledger.domain.value_objects import (
    AccountType,
    BalanceDirection,
    CollectedBy,
    Currency,
    DebtKind,
    Money,
    OrderStatus,
    RateChannel,
    parse_money,
)


def _amount(money: Money | None) -> Decimal | None:
    return None if money is None else money.amount


def _optional(raw: Decimal | None, currency: Currency = Currency.LYD) -> Money | None:
    return None if raw is None else parse_money(raw, currency)


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


class CustomerCreateDTO(BaseModel):
    """DTO - Register a customer."""
    id: str | None = Field(None, description="Leave empty to generate")
    name: str = Field(..., min_length=1)
    phone: str = ""
    address: str | None = None
    username: str | None = None

    def to_entity(self) -> entities.Customer:
        return entities.Customer(
            id=self.id or entities.new_id(),
            name=self.name,
            phone=self.phone,
            address=self.address,
            username=self.username,
        )


class RepresentativeCreateDTO(BaseModel):
    """DTO - Register a delivery representative."""
    id: str | None = None
    name: str = Field(..., min_length=1)
    phone: str = ""
    username: str | None = None

    def to_entity(self) -> entities.Representative:
        return entities.Representative(
            id=self.id or entities.new_id(), name=self.name, phone=self.phone, username=self.username
        )


class OrderCreateDTO(BaseModel):
    """DTO - Create an order. Without exchange_rate the live base rate is frozen on it."""
    user_id: str
    customer_name: str
    selling_price_lyd: Decimal = Field(..., gt=0)
    invoice_number: str | None = None
    tracking_id: str | None = None
    exchange_rate: Decimal | None = Field(None, gt=0)
    operation_date: datetime | None = None
    purchase_price_usd: Decimal | None = Field(None, ge=0)
    down_payment_lyd: Decimal | None = Field(None, ge=0)
    weight_kg: Decimal | None = Field(None, ge=0)
    price_per_kilo: Decimal | None = Field(None, ge=0)
    customer_weight_cost_lyd: Decimal | None = Field(None, ge=0)
    added_cost_usd: Decimal | None = Field(None, ge=0)
    shipping_cost_lyd: Decimal | None = Field(None, ge=0)
    store: str | None = None
    payment_method: str | None = None
    item_description: str | None = None
    product_links: str = ""

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "user_id": "c1",
            "customer_name": "Ahmed Ali",
            "selling_price_lyd": "450.00",
            "purchase_price_usd": "60.00",
            "down_payment_lyd": "100.00",
            "weight_kg": "2.5",
            "store": "Shein",
        }
    })

    def to_entity(self, invoice_number: str, tracking_id: str, exchange_rate: Decimal) -> entities.Order:
        return entities.Order(
            user_id=self.user_id,
            customer_name=self.customer_name,
            invoice_number=self.invoice_number or invoice_number,
            tracking_id=self.tracking_id or tracking_id,
            selling_price_lyd=parse_money(self.selling_price_lyd),
            exchange_rate=self.exchange_rate or exchange_rate,
            operation_date=self.operation_date or datetime.utcnow(),
            purchase_price_usd=_optional(self.purchase_price_usd, Currency.USD),
            down_payment_lyd=_optional(self.down_payment_lyd),
            weight_kg=self.weight_kg,
            price_per_kilo=self.price_per_kilo,
            customer_weight_cost_lyd=_optional(self.customer_weight_cost_lyd),
            added_cost_usd=_optional(self.added_cost_usd, Currency.USD),
            shipping_cost_lyd=_optional(self.shipping_cost_lyd),
            store=self.store,
            payment_method=self.payment_method,
            item_description=self.item_description,
            product_links=self.product_links,
        )


class PaymentCreateDTO(BaseModel):
    """DTO - Payment against an order."""
    amount: Decimal = Field(..., description="Amount in LYD")
    description: str = ""
    date: datetime | None = None


class StatusChangeDTO(BaseModel):
    """DTO - Status change; override bypasses the transition table and is audited."""
    status: OrderStatus
    override: bool = False
    actor: str = "admin"
    reason: str | None = None


class AssignRepresentativeDTO(BaseModel):
    representative_id: str


class DeliveryDTO(BaseModel):
    """DTO - Delivery confirmation by a representative."""
    representative_id: str
    collected_amount: Decimal = Field(..., ge=0)
    account_type: AccountType = AccountType.CASH
    delivery_date: datetime | None = None


class DepositCreateDTO(BaseModel):
    """DTO - Earnest money receipt."""
    receipt_number: str
    customer_name: str
    amount: Decimal = Field(..., gt=0)
    user_id: str | None = None
    customer_phone: str = ""
    description: str = ""
    representative_id: str | None = None
    date: datetime | None = None

    def to_entity(self) -> entities.Deposit:
        return entities.Deposit(
            receipt_number=self.receipt_number,
            customer_name=self.customer_name,
            amount=parse_money(self.amount),
            user_id=self.user_id,
            customer_phone=self.customer_phone,
            description=self.description,
            representative_id=self.representative_id,
            date=self.date or datetime.utcnow(),
        )


class DepositCollectDTO(BaseModel):
    collected_by: CollectedBy
    representative_id: str | None = None
    collected_date: datetime | None = None


class CreditorCreateDTO(BaseModel):
    """DTO - External creditor (company or person)."""
    id: str | None = None
    name: str = Field(..., min_length=1)
    type: str = Field("company", pattern="^(company|person)$")
    currency: Currency = Currency.LYD
    contact_info: str | None = None

    def to_entity(self) -> entities.Creditor:
        return entities.Creditor(
            id=self.id or entities.new_id(),
            name=self.name,
            type=self.type,
            currency=self.currency,
            contact_info=self.contact_info,
        )


class ExternalDebtCreateDTO(BaseModel):
    """DTO - Debit (we owe more) or credit (we paid) on a creditor account."""
    amount: Decimal = Field(..., gt=0)
    kind: DebtKind
    notes: str = ""
    account_type: AccountType = AccountType.CASH
    date: datetime | None = None


class SubOrderCreateDTO(BaseModel):
    customer_name: str
    selling_price_lyd: Decimal = Field(..., gt=0)
    sub_order_id: str | None = None
    purchase_price_usd: Decimal | None = Field(None, ge=0)
    down_payment_lyd: Decimal | None = Field(None, ge=0)
    customer_phone: str = ""
    customer_address: str = ""
    tracking_id: str | None = None
    weight_kg: Decimal = Field(Decimal("0"), ge=0)
    price_per_kilo_usd: Decimal = Field(Decimal("0"), ge=0)
    store: str = ""
    product_links: str = ""
    item_description: str = ""
    payment_method: str = ""
    representative_id: str | None = None
    shipment_status: OrderStatus = OrderStatus.PENDING

    def to_entity(self, temp_order_id: str) -> entities.SubOrder:
        return entities.SubOrder(
            temp_order_id=temp_order_id,
            sub_order_id=self.sub_order_id or entities.new_id(),
            customer_name=self.customer_name,
            selling_price_lyd=parse_money(self.selling_price_lyd),
            purchase_price_usd=_optional(self.purchase_price_usd, Currency.USD),
            down_payment_lyd=_optional(self.down_payment_lyd),
            customer_phone=self.customer_phone,
            customer_address=self.customer_address,
            tracking_id=self.tracking_id,
            weight_kg=self.weight_kg,
            price_per_kilo_usd=self.price_per_kilo_usd,
            store=self.store,
            product_links=self.product_links,
            item_description=self.item_description,
            payment_method=self.payment_method,
            representative_id=self.representative_id,
            shipment_status=self.shipment_status,
            operation_date=datetime.utcnow(),
        )


class TempOrderCreateDTO(BaseModel):
    """DTO - Bulk invoice with its sub-orders."""
    invoice_name: str
    assigned_user_id: str | None = None
    status: OrderStatus = OrderStatus.PENDING
    sub_orders: list[SubOrderCreateDTO] = Field(default_factory=list)

    def to_entity(self) -> entities.TempOrder:
        temp_order = entities.TempOrder(
            invoice_name=self.invoice_name,
            status=self.status,
            assigned_user_id=self.assigned_user_id,
        )
        temp_order.sub_orders = [so.to_entity(temp_order.id) for so in self.sub_orders]
        return temp_order


class MergeTempOrderDTO(BaseModel):
    user_id: str | None = Field(None, description="Defaults to the invoice's assigned customer")
    exchange_rate: Decimal | None = Field(None, gt=0)
    invoice_number: str | None = None


class MergeSubOrderDTO(BaseModel):
    user_id: str
    exchange_rate: Decimal | None = Field(None, gt=0)
    invoice_number: str | None = None


class SubOrderPaymentDTO(BaseModel):
    amount: Decimal
    account_type: AccountType = AccountType.CASH
    notes: str = ""


class SubOrderAssignDTO(BaseModel):
    representative_id: str


class SettingsUpdateDTO(BaseModel):
    """DTO - Partial AppSettings update; omitted fields keep their value."""
    exchange_rate: Decimal | None = None
    price_per_kilo_lyd: Decimal | None = None
    price_per_kilo_usd: Decimal | None = None
    cards_exchange_rate_cash: Decimal | None = None
    cards_exchange_rate_bank: Decimal | None = None
    cards_exchange_rate_balance: Decimal | None = None
    products_exchange_rate_cash: Decimal | None = None
    products_exchange_rate_bank: Decimal | None = None
    products_exchange_rate_balance: Decimal | None = None


class ConvertRequestDTO(BaseModel):
    amount: Decimal
    currency: Currency = Field(..., description="Currency of amount; the result is in the other one")
    channel: RateChannel = RateChannel.BASE


class OrderQuoteRequestDTO(BaseModel):
    selling_price_lyd: Decimal = Field(..., ge=0)
    purchase_price_usd: Decimal = Field(..., ge=0)
    weight_kg: Decimal = Field(Decimal("0"), ge=0)
    shipping_currency: Currency = Currency.USD
    customer_price_per_kilo: Decimal | None = Field(None, ge=0)
    added_cost_usd: Decimal | None = Field(None, ge=0)
    down_payment_lyd: Decimal | None = Field(None, ge=0)
    cost_channel: RateChannel = RateChannel.BASE


class InstantSaleRequestDTO(BaseModel):
    cost_usd: Decimal = Field(..., ge=0)
    sale_price: Decimal = Field(..., ge=0)
    sale_currency: Currency = Currency.LYD
    cost_channel: RateChannel = RateChannel.BASE
    sale_rate: Decimal | None = Field(None, gt=0)


class InstantSaleCreateDTO(InstantSaleRequestDTO):
    """DTO - Record an instant sale; prices are frozen at the live rates."""
    product_name: str = Field(..., min_length=1)
    cost_usd: Decimal = Field(..., gt=0)
    sale_price: Decimal = Field(..., gt=0)


class ExpenseCreateDTO(BaseModel):
    """DTO - Record an operating expense in LYD."""
    description: str = Field(..., min_length=1)
    amount: Decimal = Field(..., gt=0)
    date: datetime | None = None


class CardPriceRequestDTO(BaseModel):
    cost_usd: Decimal = Field(..., ge=0)
    margin_percent: Decimal = Field(Decimal("0"), ge=0)
    channel: RateChannel = RateChannel.CARDS_CASH


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------


class CustomerResponseDTO(BaseModel):
    id: str
    name: str
    phone: str
    address: str | None
    username: str | None

    @classmethod
    def from_domain(cls, customer: entities.Customer) -> "CustomerResponseDTO":
        return cls(
            id=customer.id,
            name=customer.name,
            phone=customer.phone,
            address=customer.address,
            username=customer.username,
        )


class RepresentativeResponseDTO(BaseModel):
    id: str
    name: str
    phone: str
    username: str | None
    assigned_orders: int

    @classmethod
    def from_domain(cls, rep: entities.Representative) -> "RepresentativeResponseDTO":
        return cls(
            id=rep.id,
            name=rep.name,
            phone=rep.phone,
            username=rep.username,
            assigned_orders=rep.assigned_orders,
        )


class OrderResponseDTO(BaseModel):
    """DTO - Order with its derived remaining amount."""
    id: str
    invoice_number: str
    tracking_id: str
    user_id: str
    customer_name: str
    operation_date: datetime
    status: OrderStatus
    selling_price_lyd: Decimal
    remaining_amount: Decimal
    exchange_rate: Decimal
    purchase_price_usd: Decimal | None
    down_payment_lyd: Decimal | None
    shipping_cost_lyd: Decimal | None
    weight_kg: Decimal | None
    store: str | None
    item_description: str | None
    product_links: str
    representative_id: str | None
    representative_name: str | None
    collected_amount: Decimal | None
    delivery_date: datetime | None

    @classmethod
    def from_domain(cls, order: entities.Order) -> "OrderResponseDTO":
        return cls(
            id=order.id,
            invoice_number=order.invoice_number,
            tracking_id=order.tracking_id,
            user_id=order.user_id,
            customer_name=order.customer_name,
            operation_date=order.operation_date,
            status=order.status,
            selling_price_lyd=order.selling_price_lyd.amount,
            remaining_amount=order.remaining_amount.amount,
            exchange_rate=order.exchange_rate,
            purchase_price_usd=_amount(order.purchase_price_usd),
            down_payment_lyd=_amount(order.down_payment_lyd),
            shipping_cost_lyd=_amount(order.shipping_cost_lyd),
            weight_kg=order.weight_kg,
            store=order.store,
            item_description=order.item_description,
            product_links=order.product_links,
            representative_id=order.representative_id,
            representative_name=order.representative_name,
            collected_amount=_amount(order.collected_amount),
            delivery_date=order.delivery_date,
        )


class TransactionResponseDTO(BaseModel):
    id: str
    order_id: str | None
    customer_id: str
    date: datetime
    type: str
    status: str
    amount: Decimal
    description: str

    @classmethod
    def from_domain(cls, tx: entities.Transaction) -> "TransactionResponseDTO":
        return cls(
            id=tx.id,
            order_id=tx.order_id,
            customer_id=tx.customer_id,
            date=tx.date,
            type=tx.type.value,
            status=tx.status.value,
            amount=tx.amount.amount,
            description=tx.description,
        )


class PaymentResultDTO(BaseModel):
    order: OrderResponseDTO
    transaction: TransactionResponseDTO


class DepositResponseDTO(BaseModel):
    id: str
    receipt_number: str
    user_id: str | None
    customer_name: str
    amount: Decimal
    date: datetime
    status: str
    representative_id: str | None
    representative_name: str | None
    collected_by: str | None
    collected_date: datetime | None

    @classmethod
    def from_domain(cls, deposit: entities.Deposit) -> "DepositResponseDTO":
        return cls(
            id=deposit.id,
            receipt_number=deposit.receipt_number,
            user_id=deposit.user_id,
            customer_name=deposit.customer_name,
            amount=deposit.amount.amount,
            date=deposit.date,
            status=deposit.status.value,
            representative_id=deposit.representative_id,
            representative_name=deposit.representative_name,
            collected_by=deposit.collected_by.value if deposit.collected_by else None,
            collected_date=deposit.collected_date,
        )


class CustomerBalanceDTO(BaseModel):
    """DTO - Debt, pending deposits and net balance (debt - pending deposits)."""
    debt: Decimal
    pending_deposits: Decimal
    net_balance: Decimal

    @classmethod
    def from_domain(cls, balance: entities.CustomerBalance) -> "CustomerBalanceDTO":
        return cls(
            debt=balance.debt.amount,
            pending_deposits=balance.pending_deposits.amount,
            net_balance=balance.net_balance.amount,
        )


class InconsistencyDTO(BaseModel):
    record_type: str
    record_id: str
    missing_parent: str

    @classmethod
    def from_domain(cls, problem: Inconsistent) -> "InconsistencyDTO":
        return cls(
            record_type=problem.record_type,
            record_id=problem.record_id,
            missing_parent=problem.missing_parent,
        )


class StatementLineDTO(BaseModel):
    date: datetime
    description: str
    kind: str
    debit: Decimal
    credit: Decimal
    status: str
    reference_id: str
    order_id: str | None


class CustomerStatementDTO(BaseModel):
    """DTO - Customer account statement."""
    customer: CustomerResponseDTO
    lines: list[StatementLineDTO]
    total_orders_value: Decimal
    total_paid: Decimal
    balance: CustomerBalanceDTO
    inconsistencies: list[InconsistencyDTO] = []

    @classmethod
    def from_domain(cls, statement: entities.CustomerStatement) -> "CustomerStatementDTO":
        return cls(
            customer=CustomerResponseDTO.from_domain(statement.customer),
            lines=[
                StatementLineDTO(
                    date=line.date,
                    description=line.description,
                    kind=line.kind,
                    debit=line.debit.amount,
                    credit=line.credit.amount,
                    status=line.status,
                    reference_id=line.reference_id,
                    order_id=line.order_id,
                )
                for line in statement.lines
            ],
            total_orders_value=statement.total_orders_value.amount,
            total_paid=statement.total_paid.amount,
            balance=CustomerBalanceDTO.from_domain(statement.balance),
            inconsistencies=[InconsistencyDTO.from_domain(p) for p in statement.inconsistencies],
        )


class CustodySummaryDTO(BaseModel):
    representative_id: str
    pending_regular: Decimal
    pending_temp: Decimal
    pending_custody: Decimal
    collected_custody: Decimal
    pending_deposits: Decimal
    assigned_orders: int

    @classmethod
    def from_domain(cls, summary: entities.CustodySummary) -> "CustodySummaryDTO":
        return cls(
            representative_id=summary.representative_id,
            pending_regular=summary.pending_regular.amount,
            pending_temp=summary.pending_temp.amount,
            pending_custody=summary.pending_custody.amount,
            collected_custody=summary.collected.amount,
            pending_deposits=summary.pending_deposits.amount,
            assigned_orders=summary.assigned_orders,
        )


class CustodyItemDTO(BaseModel):
    id: str
    customer_name: str
    invoice_number: str
    remaining_amount: Decimal
    customer_phone: str
    customer_address: str
    is_temp: bool
    temp_order_id: str | None

    @classmethod
    def from_domain(cls, item: entities.CustodyItem) -> "CustodyItemDTO":
        return cls(
            id=item.id,
            customer_name=item.customer_name,
            invoice_number=item.invoice_number,
            remaining_amount=item.remaining_amount.amount,
            customer_phone=item.customer_phone,
            customer_address=item.customer_address,
            is_temp=item.is_temp,
            temp_order_id=item.temp_order_id,
        )


class FinancialLogEntryDTO(BaseModel):
    id: str
    kind: str
    description: str
    customer_name: str
    amount: Decimal
    date: datetime | None


class FinancialLogDTO(BaseModel):
    entries: list[FinancialLogEntryDTO]
    total_collected: Decimal
    delivered_count: int
    deposit_count: int

    @classmethod
    def from_domain(cls, log: entities.FinancialLog) -> "FinancialLogDTO":
        return cls(
            entries=[
                FinancialLogEntryDTO(
                    id=e.id,
                    kind=e.kind,
                    description=e.description,
                    customer_name=e.customer_name,
                    amount=e.amount.amount,
                    date=e.date,
                )
                for e in log.entries
            ],
            total_collected=log.total_collected.amount,
            delivered_count=log.delivered_count,
            deposit_count=log.deposit_count,
        )


class CreditorResponseDTO(BaseModel):
    id: str
    name: str
    type: str
    currency: Currency
    total_debt: Decimal
    contact_info: str | None

    @classmethod
    def from_domain(cls, creditor: entities.Creditor) -> "CreditorResponseDTO":
        total = creditor.total_debt or Money.zero(creditor.currency)
        return cls(
            id=creditor.id,
            name=creditor.name,
            type=creditor.type,
            currency=creditor.currency,
            total_debt=total.amount,
            contact_info=creditor.contact_info,
        )


class ExternalDebtResponseDTO(BaseModel):
    id: str
    creditor_id: str
    amount: Decimal
    date: datetime
    status: str
    notes: str
    account_type: AccountType

    @classmethod
    def from_domain(cls, debt: entities.ExternalDebt) -> "ExternalDebtResponseDTO":
        return cls(
            id=debt.id,
            creditor_id=debt.creditor_id,
            amount=debt.amount.amount,
            date=debt.date,
            status=debt.status.value,
            notes=debt.notes,
            account_type=debt.account_type,
        )


class CreditorStatementRowDTO(BaseModel):
    date: datetime
    notes: str
    debit: Decimal | None
    credit: Decimal | None
    balance: Decimal
    debt_id: str
    account_type: AccountType


class CreditorStatementDTO(BaseModel):
    """DTO - Creditor running-balance statement."""
    creditor: CreditorResponseDTO
    opening_balance: Decimal
    rows: list[CreditorStatementRowDTO]
    closing_balance: Decimal
    direction: BalanceDirection

    @classmethod
    def from_domain(cls, statement: entities.CreditorStatement) -> "CreditorStatementDTO":
        return cls(
            creditor=CreditorResponseDTO.from_domain(statement.creditor),
            opening_balance=statement.opening_balance.amount,
            rows=[
                CreditorStatementRowDTO(
                    date=row.date,
                    notes=row.notes,
                    debit=_amount(row.debit),
                    credit=_amount(row.credit),
                    balance=row.balance.amount,
                    debt_id=row.debt_id,
                    account_type=row.account_type,
                )
                for row in statement.rows
            ],
            closing_balance=statement.closing_balance.amount,
            direction=statement.direction,
        )


class SubOrderResponseDTO(BaseModel):
    sub_order_id: str
    customer_name: str
    customer_phone: str
    selling_price_lyd: Decimal
    remaining_amount: Decimal
    shipment_status: OrderStatus
    representative_id: str | None
    parent_invoice_id: str | None
    delivery_date: datetime | None

    @classmethod
    def from_domain(cls, so: entities.SubOrder) -> "SubOrderResponseDTO":
        return cls(
            sub_order_id=so.sub_order_id,
            customer_name=so.customer_name,
            customer_phone=so.customer_phone,
            selling_price_lyd=so.selling_price_lyd.amount,
            remaining_amount=so.remaining_amount.amount,
            shipment_status=so.shipment_status,
            representative_id=so.representative_id,
            parent_invoice_id=so.parent_invoice_id,
            delivery_date=so.delivery_date,
        )


class TempOrderResponseDTO(BaseModel):
    """DTO - Bulk invoice with derived totals."""
    id: str
    invoice_name: str
    status: OrderStatus
    created_at: datetime
    assigned_user_id: str | None
    parent_invoice_id: str | None
    total_amount: Decimal
    remaining_amount: Decimal
    paid_amount: Decimal
    sub_orders: list[SubOrderResponseDTO]

    @classmethod
    def from_domain(cls, temp_order: entities.TempOrder) -> "TempOrderResponseDTO":
        return cls(
            id=temp_order.id,
            invoice_name=temp_order.invoice_name,
            status=temp_order.status,
            created_at=temp_order.created_at,
            assigned_user_id=temp_order.assigned_user_id,
            parent_invoice_id=temp_order.parent_invoice_id,
            total_amount=temp_order.total_amount.amount,
            remaining_amount=temp_order.remaining_amount.amount,
            paid_amount=temp_order.paid_amount.amount,
            sub_orders=[SubOrderResponseDTO.from_domain(so) for so in temp_order.sub_orders],
        )


class TempOrderAggregateDTO(BaseModel):
    invoice_count: int
    total_value: Decimal
    total_debt: Decimal
    total_paid: Decimal

    @classmethod
    def from_domain(cls, aggregate: entities.TempOrderAggregate) -> "TempOrderAggregateDTO":
        return cls(
            invoice_count=aggregate.invoice_count,
            total_value=aggregate.total_value.amount,
            total_debt=aggregate.total_debt.amount,
            total_paid=aggregate.total_paid.amount,
        )


class AppSettingsDTO(BaseModel):
    exchange_rate: Decimal
    price_per_kilo_lyd: Decimal
    price_per_kilo_usd: Decimal
    cards_exchange_rate_cash: Decimal
    cards_exchange_rate_bank: Decimal
    cards_exchange_rate_balance: Decimal
    products_exchange_rate_cash: Decimal
    products_exchange_rate_bank: Decimal
    products_exchange_rate_balance: Decimal

    model_config = ConfigDict(from_attributes=True)


class ConversionResultDTO(BaseModel):
    amount: Decimal
    currency: Currency
    rate: Decimal
    channel: RateChannel


class OrderQuoteDTO(BaseModel):
    purchase_cost_lyd: Decimal
    shipping_cost_lyd: Decimal
    customer_weight_cost_lyd: Decimal
    added_cost_lyd: Decimal
    final_selling_price_lyd: Decimal
    remaining_amount: Decimal
    net_profit: Decimal

    @classmethod
    def from_domain(cls, quote: entities.OrderQuote) -> "OrderQuoteDTO":
        return cls(
            purchase_cost_lyd=quote.purchase_cost_lyd.amount,
            shipping_cost_lyd=quote.shipping_cost_lyd.amount,
            customer_weight_cost_lyd=quote.customer_weight_cost_lyd.amount,
            added_cost_lyd=quote.added_cost_lyd.amount,
            final_selling_price_lyd=quote.final_selling_price_lyd.amount,
            remaining_amount=quote.remaining_amount.amount,
            net_profit=quote.net_profit.amount,
        )


class InstantSaleQuoteDTO(BaseModel):
    total_cost_lyd: Decimal
    final_sale_price_lyd: Decimal
    net_profit: Decimal

    @classmethod
    def from_domain(cls, quote: entities.InstantSaleQuote) -> "InstantSaleQuoteDTO":
        return cls(
            total_cost_lyd=quote.total_cost_lyd.amount,
            final_sale_price_lyd=quote.final_sale_price_lyd.amount,
            net_profit=quote.net_profit.amount,
        )


class CardPriceDTO(BaseModel):
    price_lyd: Decimal
    channel: RateChannel


class ExpenseResponseDTO(BaseModel):
    id: str
    description: str
    amount: Decimal
    date: datetime

    @classmethod
    def from_domain(cls, expense: entities.Expense) -> "ExpenseResponseDTO":
        return cls(
            id=expense.id,
            description=expense.description,
            amount=expense.amount.amount,
            date=expense.date,
        )


class InstantSaleResponseDTO(BaseModel):
    """DTO - Recorded instant sale."""
    id: str
    product_name: str
    cost_usd: Decimal
    cost_exchange_rate: Decimal
    total_cost_lyd: Decimal
    sale_currency: Currency
    sale_price: Decimal
    sale_exchange_rate: Decimal | None
    final_sale_price_lyd: Decimal
    net_profit: Decimal
    created_at: datetime

    @classmethod
    def from_domain(cls, sale: entities.InstantSale) -> "InstantSaleResponseDTO":
        return cls(
            id=sale.id,
            product_name=sale.product_name,
            cost_usd=sale.cost_usd.amount,
            cost_exchange_rate=sale.cost_exchange_rate,
            total_cost_lyd=sale.total_cost_lyd.amount,
            sale_currency=sale.sale_currency,
            sale_price=sale.sale_price.amount,
            sale_exchange_rate=sale.sale_exchange_rate,
            final_sale_price_lyd=sale.final_sale_price_lyd.amount,
            net_profit=sale.net_profit.amount,
            created_at=sale.created_at,
        )


class FinancialPeriodDTO(BaseModel):
    period: str
    revenue: Decimal
    expenses: Decimal
    profit: Decimal


class FinancialSummaryDTO(BaseModel):
    """DTO - Revenue, debt, expenses and profit for a date window."""
    total_revenue: Decimal
    total_debt: Decimal
    total_expenses: Decimal
    orders_profit: Decimal
    instant_sales_profit: Decimal
    net_profit: Decimal
    periods: list[FinancialPeriodDTO]

    @classmethod
    def from_domain(cls, summary: entities.FinancialSummary) -> "FinancialSummaryDTO":
        return cls(
            total_revenue=summary.total_revenue.amount,
            total_debt=summary.total_debt.amount,
            total_expenses=summary.total_expenses.amount,
            orders_profit=summary.orders_profit.amount,
            instant_sales_profit=summary.instant_sales_profit.amount,
            net_profit=summary.net_profit.amount,
            periods=[
                FinancialPeriodDTO(
                    period=p.key,
                    revenue=p.revenue.amount,
                    expenses=p.expenses.amount,
                    profit=p.profit.amount,
                )
                for p in summary.periods
            ],
        )
