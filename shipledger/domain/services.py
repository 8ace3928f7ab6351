"""
Domain Services - ledger computations over snapshots.
All services are pure: they read their inputs once and keep no state.
"""

import logging
from abc import ABC, abstractmethod
from collections import defaultdict
from collections.abc import Iterable, Iterator
from contextlib import AbstractContextManager
from dataclasses import replace
from datetime import datetime
from decimal import Decimal

from .entities import (
    AppSettings,
    AuditEntry,
    Creditor,
    CreditorStatement,
    CreditorStatementRow,
    Customer,
    CustomerBalance,
    CustodyItem,
    CustodySummary,
    Deposit,
    Expense,
    ExternalDebt,
    FinancialLog,
    FinancialLogEntry,
    FinancialPeriod,
    FinancialSummary,
    InstantSale,
    InstantSaleQuote,
    Order,
    OrderQuote,
    Representative,
    SubOrder,
    TempOrder,
    TempOrderAggregate,
    TempPayment,
    Transaction,
)
from .errors import (
    DoubleMerge,
    IllegalTransition,
    Inconsistent,
    InvalidAmount,
    InvalidRate,
    NotFound,
    OverPayment,
)
from .state_machine import validate_deposit_transition
from .value_objects import (
    AccountType,
    BalanceDirection,
    CollectedBy,
    Currency,
    CustodyFilter,
    DebtKind,
    DepositStatus,
    ExchangeRate,
    Money,
    OrderStatus,
    RateChannel,
    TransactionStatus,
    TransactionType,
    money_sum,
)

logger = logging.getLogger(__name__)


class ILedgerRepository(ABC):
    """
    Persistence boundary. Every read returns a snapshot; writes made inside
    one atomic() block are applied together or not at all. atomic(snapshot=True)
    additionally asks the store for repeatable reads across the whole block.
    """

    @abstractmethod
    def atomic(self, snapshot: bool = False) -> AbstractContextManager["ILedgerRepository"]:
        ...

    # -- customers / representatives ---------------------------------------

    @abstractmethod
    def get_customer_by_id(self, customer_id: str) -> Customer | None:
        ...

    @abstractmethod
    def save_customer(self, customer: Customer) -> Customer:
        ...

    @abstractmethod
    def get_representative_by_id(self, rep_id: str) -> Representative | None:
        ...

    @abstractmethod
    def save_representative(self, representative: Representative) -> Representative:
        ...

    # -- orders / transactions ---------------------------------------------

    @abstractmethod
    def get_order_by_id(self, order_id: str) -> Order | None:
        ...

    @abstractmethod
    def get_orders_by_user_id(self, user_id: str) -> list[Order]:
        ...

    @abstractmethod
    def get_orders_by_representative_id(self, rep_id: str) -> list[Order]:
        ...

    @abstractmethod
    def save_order(self, order: Order) -> Order:
        ...

    @abstractmethod
    def get_transactions_by_order_id(self, order_id: str) -> list[Transaction]:
        ...

    @abstractmethod
    def get_transactions_by_user_id(self, user_id: str) -> list[Transaction]:
        ...

    @abstractmethod
    def add_transaction(self, transaction: Transaction) -> Transaction:
        ...

    # -- deposits ----------------------------------------------------------

    @abstractmethod
    def get_deposit_by_id(self, deposit_id: str) -> Deposit | None:
        ...

    @abstractmethod
    def get_deposits_by_user_id(self, user_id: str) -> list[Deposit]:
        ...

    @abstractmethod
    def get_deposits_by_representative_id(self, rep_id: str) -> list[Deposit]:
        ...

    @abstractmethod
    def save_deposit(self, deposit: Deposit) -> Deposit:
        ...

    # -- creditors ---------------------------------------------------------

    @abstractmethod
    def get_creditor_by_id(self, creditor_id: str) -> Creditor | None:
        ...

    @abstractmethod
    def save_creditor(self, creditor: Creditor) -> Creditor:
        ...

    @abstractmethod
    def get_external_debts_for_creditor(self, creditor_id: str) -> list[ExternalDebt]:
        ...

    @abstractmethod
    def get_external_debt_by_id(self, debt_id: str) -> ExternalDebt | None:
        ...

    @abstractmethod
    def add_external_debt(self, debt: ExternalDebt) -> ExternalDebt:
        ...

    @abstractmethod
    def delete_external_debt(self, debt_id: str) -> bool:
        ...

    # -- bulk invoices -----------------------------------------------------

    @abstractmethod
    def get_temp_order_by_id(self, temp_order_id: str) -> TempOrder | None:
        ...

    @abstractmethod
    def list_temp_orders(self) -> list[TempOrder]:
        ...

    @abstractmethod
    def get_temp_sub_orders_by_representative_id(self, rep_id: str) -> list[SubOrder]:
        ...

    @abstractmethod
    def save_temp_order(self, temp_order: TempOrder) -> TempOrder:
        ...

    @abstractmethod
    def add_temp_payment(self, payment: TempPayment) -> TempPayment:
        ...

    # -- reporting ---------------------------------------------------------

    @abstractmethod
    def list_orders(self, start: datetime | None = None, end: datetime | None = None) -> list[Order]:
        """Orders whose operation_date falls in the inclusive window."""

    @abstractmethod
    def list_transactions(
        self, start: datetime | None = None, end: datetime | None = None
    ) -> list[Transaction]:
        ...

    # -- expenses / instant sales ------------------------------------------

    @abstractmethod
    def get_expense_by_id(self, expense_id: str) -> Expense | None:
        ...

    @abstractmethod
    def list_expenses(self, start: datetime | None = None, end: datetime | None = None) -> list[Expense]:
        ...

    @abstractmethod
    def add_expense(self, expense: Expense) -> Expense:
        ...

    @abstractmethod
    def delete_expense(self, expense_id: str) -> bool:
        ...

    @abstractmethod
    def get_instant_sale_by_id(self, sale_id: str) -> InstantSale | None:
        ...

    @abstractmethod
    def list_instant_sales(
        self, start: datetime | None = None, end: datetime | None = None
    ) -> list[InstantSale]:
        """Newest first."""

    @abstractmethod
    def add_instant_sale(self, sale: InstantSale) -> InstantSale:
        ...

    @abstractmethod
    def delete_instant_sale(self, sale_id: str) -> bool:
        ...

    # -- settings / audit --------------------------------------------------

    @abstractmethod
    def get_app_settings(self) -> AppSettings:
        ...

    @abstractmethod
    def update_app_settings(self, partial: dict) -> bool:
        ...

    @abstractmethod
    def add_audit_entry(self, entry: AuditEntry) -> AuditEntry:
        ...


class ExchangeRateService:
    """
    Service - LYD/USD conversion. Every conversion takes an explicit
    ExchangeRate tagged with its channel; rates are never implied.
    """

    def live_rate(self, settings: AppSettings, channel: RateChannel) -> ExchangeRate:
        channel = RateChannel(channel)
        field_name = AppSettings.RATE_FIELDS.get(channel)
        if field_name is None:
            raise InvalidRate(f"{channel.value} is not a configurable rate channel")
        return ExchangeRate(rate=getattr(settings, field_name), channel=channel)

    def order_rate(self, order: Order) -> ExchangeRate:
        return ExchangeRate(rate=order.exchange_rate, channel=RateChannel.ORDER_SNAPSHOT)

    def to_lyd(self, amount: Money, rate: ExchangeRate) -> Money:
        if amount.currency != Currency.USD:
            raise ValueError(f"to_lyd expects a USD amount, got {amount.currency.value}")
        return Money(amount.amount * rate.rate, Currency.LYD)

    def to_usd(self, amount: Money, rate: ExchangeRate) -> Money:
        """
        The quotient is kept exact so a later to_lyd() rounds only once.
        Call rounded() on the result to show or store it.
        """
        if amount.currency != Currency.LYD:
            raise ValueError(f"to_usd expects a LYD amount, got {amount.currency.value}")
        return Money(amount.amount / rate.rate, Currency.USD, exact=True)

    def in_lyd(self, amount: Money, rate: ExchangeRate) -> Money:
        if amount.currency == Currency.LYD:
            return amount
        return self.to_lyd(amount, rate)

    def price_order(
        self,
        selling_price_lyd: Money,
        purchase_price_usd: Money,
        cost_rate: ExchangeRate,
        shipping_rate: ExchangeRate,
        weight_kg: Decimal = Decimal("0"),
        price_per_kilo: Money | None = None,
        customer_price_per_kilo: Money | None = None,
        added_cost: Money | None = None,
        down_payment_lyd: Money | None = None,
    ) -> OrderQuote:
        """
        Price a new order. USD per-kilo prices and added costs convert at
        shipping_rate; the purchase price converts at cost_rate.
        """
        if weight_kg < 0:
            raise InvalidAmount(f"Weight cannot be negative: {weight_kg}")

        purchase_cost = self.to_lyd(purchase_price_usd, cost_rate)

        shipping_cost = Money.zero()
        if price_per_kilo is not None:
            shipping = Money(price_per_kilo.amount * weight_kg, price_per_kilo.currency)
            shipping_cost = self.in_lyd(shipping, shipping_rate)

        customer_weight_cost = Money.zero()
        if customer_price_per_kilo is not None:
            weight_cost = Money(
                customer_price_per_kilo.amount * weight_kg, customer_price_per_kilo.currency
            )
            customer_weight_cost = self.in_lyd(weight_cost, shipping_rate)

        added_cost_lyd = self.in_lyd(added_cost, shipping_rate) if added_cost else Money.zero()

        final_price = selling_price_lyd + customer_weight_cost + added_cost_lyd
        down_payment = down_payment_lyd or Money.zero()

        return OrderQuote(
            purchase_cost_lyd=purchase_cost,
            shipping_cost_lyd=shipping_cost,
            customer_weight_cost_lyd=customer_weight_cost,
            added_cost_lyd=added_cost_lyd,
            final_selling_price_lyd=final_price,
            remaining_amount=final_price - down_payment,
            net_profit=final_price - purchase_cost - shipping_cost,
        )

    def quote_instant_sale(
        self,
        cost_usd: Money,
        cost_rate: ExchangeRate,
        sale_price: Money,
        sale_rate: ExchangeRate | None = None,
    ) -> InstantSaleQuote:
        total_cost = self.to_lyd(cost_usd, cost_rate)
        if sale_price.currency == Currency.USD:
            if sale_rate is None:
                raise InvalidRate("A sale exchange rate is required for USD sale prices")
            final_price = self.to_lyd(sale_price, sale_rate)
        else:
            final_price = sale_price
        return InstantSaleQuote(
            total_cost_lyd=total_cost,
            final_sale_price_lyd=final_price,
            net_profit=final_price - total_cost,
        )

    def price_card(self, cost_usd: Money, margin_percent: Decimal, rate: ExchangeRate) -> Money:
        if rate.channel not in (
            RateChannel.BASE,
            RateChannel.CARDS_CASH,
            RateChannel.CARDS_BANK,
            RateChannel.CARDS_BALANCE,
        ):
            raise InvalidRate(f"Cards are not priced on the {rate.channel.value} channel")
        price_usd = cost_usd.amount * (Decimal("1") + Decimal(margin_percent) / Decimal("100"))
        return Money(price_usd * rate.rate, Currency.LYD)


class OrderLedgerService:
    """
    Service - derives remaining amounts and customer debt from transactions.
    remaining = sellingPriceLYD - sum(payments); debt ignores cancelled orders.
    """

    def paid_amount(self, order: Order, transactions: Iterable[Transaction]) -> Money:
        paid = Money.zero()
        for tx in transactions:
            if tx.order_id != order.id:
                logger.warning(
                    "Inconsistent ledger: transaction %s (order %s) passed for order %s, ignored",
                    tx.id, tx.order_id, order.id,
                )
                continue
            if tx.is_payment:
                paid += tx.amount
        return paid

    def compute_remaining(self, order: Order, transactions: Iterable[Transaction]) -> Money:
        return order.selling_price_lyd - self.paid_amount(order, transactions)

    def group_by_order(self, transactions: Iterable[Transaction]) -> dict[str | None, list[Transaction]]:
        grouped: dict[str | None, list[Transaction]] = defaultdict(list)
        for tx in transactions:
            grouped[tx.order_id].append(tx)
        return grouped

    def find_inconsistencies(
        self,
        orders: Iterable[Order],
        transactions: Iterable[Transaction],
    ) -> list[Inconsistent]:
        known = {order.id for order in orders}
        problems = []
        for tx in transactions:
            if tx.order_id is not None and tx.order_id not in known:
                logger.warning(
                    "Inconsistent ledger: transaction %s references missing order %s",
                    tx.id, tx.order_id,
                )
                problems.append(Inconsistent("Transaction", tx.id, tx.order_id))
        return problems

    def remaining_by_order(
        self,
        orders: Iterable[Order],
        transactions: Iterable[Transaction] | None = None,
    ) -> dict[str, Money]:
        """
        Remaining amount per order. Without transactions the stored
        remaining_amount is used.
        """
        if transactions is None:
            return {order.id: order.remaining_amount for order in orders}
        grouped = self.group_by_order(transactions)
        return {
            order.id: self.compute_remaining(order, grouped.get(order.id, []))
            for order in orders
        }

    def customer_debt(
        self,
        orders: Iterable[Order],
        transactions: Iterable[Transaction] | None = None,
    ) -> Money:
        active = [order for order in orders if not order.is_cancelled]
        remaining = self.remaining_by_order(active, transactions)
        return money_sum(remaining.values())

    def total_orders_value(self, orders: Iterable[Order]) -> Money:
        return money_sum(o.selling_price_lyd for o in orders if not o.is_cancelled)

    def opening_transactions(self, order: Order) -> list[Transaction]:
        """Debit for the order value plus a credit for any down payment."""
        status = TransactionStatus.from_order(order.status)
        entries = [
            Transaction(
                customer_id=order.user_id,
                customer_name=order.customer_name,
                order_id=order.id,
                type=TransactionType.ORDER,
                amount=order.selling_price_lyd,
                status=status,
                description=f"Order #{order.invoice_number}",
                date=order.operation_date,
            )
        ]
        down_payment = order.down_payment_lyd
        if down_payment is not None and down_payment.is_positive():
            self.check_payment(order, order.selling_price_lyd, down_payment)
            fully_paid = down_payment == order.selling_price_lyd
            entries.append(
                Transaction(
                    customer_id=order.user_id,
                    customer_name=order.customer_name,
                    order_id=order.id,
                    type=TransactionType.PAYMENT,
                    amount=down_payment,
                    status=TransactionStatus.PAID if fully_paid else status,
                    description=f"Down payment for order #{order.invoice_number}",
                    date=order.operation_date,
                )
            )
        return entries

    def check_payment(self, order: Order, remaining: Money, amount: Money) -> None:
        if not amount.is_positive():
            raise InvalidAmount(f"Payment must be positive, got {amount}")
        if order.is_cancelled:
            raise OverPayment(f"Order {order.invoice_number} is cancelled and accepts no payments")
        if remaining.is_zero():
            raise OverPayment(f"Order {order.invoice_number} is already fully paid")
        if amount.amount > remaining.amount:
            raise OverPayment(
                f"Payment {amount} exceeds remaining {remaining} on order {order.invoice_number}"
            )

    def payment_transaction(
        self,
        order: Order,
        remaining: Money,
        amount: Money,
        description: str = "",
        date: datetime | None = None,
    ) -> Transaction:
        """Validate a payment against the current remaining and build its credit entry."""
        self.check_payment(order, remaining, amount)
        settled = (remaining - amount).is_zero()
        return Transaction(
            customer_id=order.user_id,
            customer_name=order.customer_name,
            order_id=order.id,
            type=TransactionType.PAYMENT,
            amount=amount,
            status=TransactionStatus.PAID if settled else TransactionStatus.from_order(order.status),
            description=description or f"Payment for order #{order.invoice_number}",
            date=date or datetime.utcnow(),
        )


class DepositService:
    """
    Service - earnest-money ledger. Deposits never change an order's
    remaining amount; they are combined with debt only in CustomerBalance.
    """

    def __init__(self, ledger: OrderLedgerService | None = None):
        self.ledger = ledger or OrderLedgerService()

    def pending_amount(self, deposits: Iterable[Deposit]) -> Money:
        return money_sum(d.amount for d in deposits if d.status == DepositStatus.PENDING)

    def collected_amount(self, deposits: Iterable[Deposit]) -> Money:
        return money_sum(d.amount for d in deposits if d.status == DepositStatus.COLLECTED)

    def collect(
        self,
        deposit: Deposit,
        collected_by: CollectedBy,
        representative_id: str | None = None,
        representative_name: str | None = None,
        at: datetime | None = None,
    ) -> Deposit:
        validate_deposit_transition(deposit.status, DepositStatus.COLLECTED)
        return replace(
            deposit,
            status=DepositStatus.COLLECTED,
            collected_by=CollectedBy(collected_by),
            collected_date=at or datetime.utcnow(),
            representative_id=representative_id or deposit.representative_id,
            representative_name=representative_name or deposit.representative_name,
        )

    def cancel(self, deposit: Deposit) -> Deposit:
        validate_deposit_transition(deposit.status, DepositStatus.CANCELLED)
        return replace(deposit, status=DepositStatus.CANCELLED)

    def customer_balance(
        self,
        orders: Iterable[Order],
        deposits: Iterable[Deposit],
        transactions: Iterable[Transaction] | None = None,
    ) -> CustomerBalance:
        return CustomerBalance(
            debt=self.ledger.customer_debt(orders, transactions),
            pending_deposits=self.pending_amount(deposits),
        )


class CustodyService:
    """
    Service - money a representative is holding or must collect.
    pending = out_for_delivery orders + unmerged, undelivered sub-orders.
    """

    CLOSED_SUB_ORDER_STATES = (OrderStatus.DELIVERED, OrderStatus.CANCELLED)

    def pending_orders(self, rep_id: str, orders: Iterable[Order]) -> list[Order]:
        return [
            o for o in orders
            if o.representative_id == rep_id and o.status == OrderStatus.OUT_FOR_DELIVERY
        ]

    def delivered_orders(self, rep_id: str, orders: Iterable[Order]) -> list[Order]:
        return [
            o for o in orders
            if o.representative_id == rep_id and o.status == OrderStatus.DELIVERED
        ]

    def pending_sub_orders(self, rep_id: str, sub_orders: Iterable[SubOrder]) -> list[SubOrder]:
        return [
            so for so in sub_orders
            if so.representative_id == rep_id
            and not so.is_merged
            and so.shipment_status not in self.CLOSED_SUB_ORDER_STATES
        ]

    def pending_custody(
        self, rep_id: str, orders: Iterable[Order], sub_orders: Iterable[SubOrder]
    ) -> Money:
        regular = money_sum(o.remaining_amount for o in self.pending_orders(rep_id, orders))
        temp = money_sum(so.remaining_amount for so in self.pending_sub_orders(rep_id, sub_orders))
        return regular + temp

    def collected_custody(self, rep_id: str, orders: Iterable[Order]) -> Money:
        return money_sum(
            o.collected_amount or Money.zero() for o in self.delivered_orders(rep_id, orders)
        )

    def assigned_order_count(self, rep_id: str, orders: Iterable[Order]) -> int:
        return len(self.pending_orders(rep_id, orders))

    def summary(
        self,
        rep_id: str,
        orders: list[Order],
        sub_orders: list[SubOrder],
        deposits: list[Deposit],
    ) -> CustodySummary:
        return CustodySummary(
            representative_id=rep_id,
            pending_regular=money_sum(
                o.remaining_amount for o in self.pending_orders(rep_id, orders)
            ),
            pending_temp=money_sum(
                so.remaining_amount for so in self.pending_sub_orders(rep_id, sub_orders)
            ),
            collected=self.collected_custody(rep_id, orders),
            pending_deposits=money_sum(
                d.amount for d in deposits
                if d.status == DepositStatus.PENDING and d.representative_id == rep_id
            ),
            assigned_orders=self.assigned_order_count(rep_id, orders),
        )

    def custody_items(
        self,
        rep_id: str,
        orders: Iterable[Order],
        sub_orders: Iterable[SubOrder],
        custody_filter: CustodyFilter = CustodyFilter.ALL,
    ) -> list[CustodyItem]:
        custody_filter = CustodyFilter(custody_filter)
        items: list[CustodyItem] = []

        if custody_filter in (CustodyFilter.ALL, CustodyFilter.REGULAR):
            for order in self.pending_orders(rep_id, orders):
                items.append(CustodyItem(
                    id=order.id,
                    customer_name=order.customer_name,
                    invoice_number=order.invoice_number,
                    remaining_amount=order.remaining_amount,
                ))

        if custody_filter in (CustodyFilter.ALL, CustodyFilter.TEMP):
            for so in self.pending_sub_orders(rep_id, sub_orders):
                items.append(CustodyItem(
                    id=so.sub_order_id,
                    customer_name=so.customer_name,
                    invoice_number=so.invoice_name or "Bulk invoice",
                    remaining_amount=so.remaining_amount,
                    customer_phone=so.customer_phone,
                    customer_address=so.customer_address,
                    is_temp=True,
                    temp_order_id=so.temp_order_id,
                ))

        return items

    def financial_log(
        self,
        rep_id: str,
        orders: Iterable[Order],
        deposits: Iterable[Deposit],
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> FinancialLog:
        """Delivered orders and collected deposits, newest first."""
        entries = [
            FinancialLogEntry(
                id=o.id,
                kind="delivered",
                description=f"Order #{o.invoice_number}",
                customer_name=o.customer_name,
                amount=o.collected_amount or Money.zero(),
                date=o.delivery_date,
            )
            for o in self.delivered_orders(rep_id, orders)
        ]
        entries += [
            FinancialLogEntry(
                id=d.id,
                kind="deposit",
                description=f"Receipt #{d.receipt_number}",
                customer_name=d.customer_name,
                amount=d.amount,
                date=d.collected_date,
            )
            for d in deposits
            if d.status == DepositStatus.COLLECTED and d.representative_id == rep_id
        ]

        if start is not None and end is not None:
            entries = [e for e in entries if e.date is not None and start <= e.date <= end]

        entries.sort(key=lambda e: e.date or datetime.min, reverse=True)

        return FinancialLog(
            entries=entries,
            total_collected=money_sum(e.amount for e in entries),
            delivered_count=sum(1 for e in entries if e.kind == "delivered"),
            deposit_count=sum(1 for e in entries if e.kind == "deposit"),
        )


class CreditorLedgerService:
    """
    Service - running balance per external party.
    Positive balance: owed by us. Negative balance: owed to us.
    """

    def signed_amount(self, amount: Money, kind: DebtKind) -> Money:
        if not amount.is_positive():
            raise InvalidAmount(f"Debt amount must be positive, got {amount}")
        return amount if DebtKind(kind) == DebtKind.DEBIT else -amount

    def direction(self, balance: Money) -> BalanceDirection:
        if balance.is_positive():
            return BalanceDirection.OWED_BY_US
        if balance.is_negative():
            return BalanceDirection.OWED_TO_US
        return BalanceDirection.SETTLED

    def chronological(self, debts: Iterable[ExternalDebt]) -> list[ExternalDebt]:
        # sorted() is stable: equal dates keep creation order
        return sorted(debts, key=lambda d: d.date)

    def iter_rows(
        self, debts: Iterable[ExternalDebt], opening_balance: Money
    ) -> Iterator[CreditorStatementRow]:
        balance = opening_balance
        for debt in self.chronological(debts):
            balance += debt.amount
            yield CreditorStatementRow(
                date=debt.date,
                notes=debt.notes,
                debit=debt.amount if debt.amount.is_positive() else None,
                credit=abs(debt.amount) if debt.amount.is_negative() else None,
                balance=balance,
                debt_id=debt.id,
                account_type=debt.account_type,
            )

    def total_debt(self, debts: Iterable[ExternalDebt], currency: Currency = Currency.LYD) -> Money:
        return money_sum((d.amount for d in debts), currency)

    def statement(
        self,
        creditor: Creditor,
        debts: Iterable[ExternalDebt],
        opening_balance: Money | None = None,
    ) -> CreditorStatement:
        opening = opening_balance or Money.zero(creditor.currency)
        rows = list(self.iter_rows(debts, opening))
        closing = rows[-1].balance if rows else opening
        return CreditorStatement(
            creditor=creditor,
            opening_balance=opening,
            rows=rows,
            closing_balance=closing,
            direction=self.direction(closing),
        )

    def totals_by_account_type(
        self, debts: Iterable[ExternalDebt], currency: Currency = Currency.LYD
    ) -> dict[AccountType, Money]:
        totals = {account: Money.zero(currency) for account in AccountType}
        for debt in debts:
            totals[debt.account_type] += debt.amount
        return totals


class TempOrderService:
    """
    Service - bulk invoices. Totals derive from sub-orders; merged invoices
    and sub-orders stay on record but drop out of every pending figure.
    """

    def is_active(self, temp_order: TempOrder) -> bool:
        return temp_order.status != OrderStatus.CANCELLED and not temp_order.is_merged

    def aggregate(self, temp_orders: Iterable[TempOrder]) -> TempOrderAggregate:
        active = [t for t in temp_orders if self.is_active(t)]
        # Sub-orders merged on their own are counted by their canonical order
        open_subs = [so for t in active for so in t.sub_orders if not so.is_merged]
        total_value = money_sum(so.selling_price_lyd for so in open_subs)
        total_debt = money_sum(so.remaining_amount for so in open_subs)
        return TempOrderAggregate(
            invoice_count=len(active),
            total_value=total_value,
            total_debt=total_debt,
            total_paid=total_value - total_debt,
        )

    def get_sub_order(self, temp_order: TempOrder, sub_order_id: str) -> SubOrder:
        sub_order = temp_order.find_sub_order(sub_order_id)
        if sub_order is None:
            raise NotFound("SubOrder", sub_order_id)
        return sub_order

    def _check_mergeable(self, temp_order: TempOrder) -> None:
        if temp_order.is_merged:
            raise DoubleMerge(
                f"Bulk invoice {temp_order.invoice_name} was already merged into order "
                f"{temp_order.parent_invoice_id}"
            )
        if temp_order.status == OrderStatus.CANCELLED:
            raise IllegalTransition("temp_order", OrderStatus.CANCELLED.value, "merged")

    def build_merged_order(
        self,
        temp_order: TempOrder,
        user_id: str,
        customer_name: str,
        invoice_number: str,
        exchange_rate: ExchangeRate,
    ) -> Order:
        """Canonical order carrying the bulk invoice totals; paid amount becomes the down payment."""
        self._check_mergeable(temp_order)
        subs = [so for so in temp_order.sub_orders if not so.is_merged]
        if not subs:
            raise InvalidAmount(f"Bulk invoice {temp_order.invoice_name} has no sub-orders to merge")

        total = money_sum(so.selling_price_lyd for so in subs)
        remaining = money_sum(so.remaining_amount for so in subs)
        names = ", ".join(so.customer_name for so in subs)

        return Order(
            user_id=user_id,
            customer_name=customer_name,
            invoice_number=invoice_number,
            selling_price_lyd=total,
            remaining_amount=remaining,
            exchange_rate=exchange_rate.rate,
            status=temp_order.status,
            purchase_price_usd=money_sum(
                (so.purchase_price_usd or Money.zero(Currency.USD) for so in subs), Currency.USD
            ),
            down_payment_lyd=total - remaining,
            weight_kg=sum((so.weight_kg for so in subs), Decimal("0")),
            product_links="\n".join(so.product_links for so in subs if so.product_links),
            item_description=f"Bulk invoice for customers: {names}",
            store=subs[0].store or None,
        )

    def build_sub_order_order(
        self,
        temp_order: TempOrder,
        sub_order_id: str,
        user_id: str,
        invoice_number: str,
        exchange_rate: ExchangeRate,
    ) -> Order:
        self._check_mergeable(temp_order)
        sub_order = self.get_sub_order(temp_order, sub_order_id)
        if sub_order.is_merged:
            raise DoubleMerge(
                f"Sub-order {sub_order_id} was already merged into order {sub_order.parent_invoice_id}"
            )
        return Order(
            user_id=user_id,
            customer_name=sub_order.customer_name,
            invoice_number=invoice_number,
            tracking_id=sub_order.tracking_id or "",
            selling_price_lyd=sub_order.selling_price_lyd,
            remaining_amount=sub_order.remaining_amount,
            exchange_rate=exchange_rate.rate,
            status=sub_order.shipment_status,
            purchase_price_usd=sub_order.purchase_price_usd,
            down_payment_lyd=sub_order.selling_price_lyd - sub_order.remaining_amount,
            weight_kg=sub_order.weight_kg,
            product_links=sub_order.product_links,
            item_description=sub_order.item_description,
            store=sub_order.store or None,
            representative_id=sub_order.representative_id,
            representative_name=sub_order.representative_name,
        )

    def mark_merged(self, temp_order: TempOrder, order_id: str) -> TempOrder:
        self._check_mergeable(temp_order)
        sub_orders = [
            so if so.is_merged else replace(so, parent_invoice_id=order_id)
            for so in temp_order.sub_orders
        ]
        return replace(temp_order, parent_invoice_id=order_id, sub_orders=sub_orders)

    def mark_sub_order_merged(self, temp_order: TempOrder, sub_order_id: str, order_id: str) -> TempOrder:
        sub_order = self.get_sub_order(temp_order, sub_order_id)
        if sub_order.is_merged:
            raise DoubleMerge(f"Sub-order {sub_order_id} was already merged")
        return self._replace_sub_order(temp_order, replace(sub_order, parent_invoice_id=order_id))

    def apply_payment(self, temp_order: TempOrder, sub_order_id: str, amount: Money) -> TempOrder:
        sub_order = self.get_sub_order(temp_order, sub_order_id)
        if not amount.is_positive():
            raise InvalidAmount(f"Payment must be positive, got {amount}")
        if sub_order.is_merged or temp_order.is_merged:
            raise OverPayment(f"Sub-order {sub_order_id} was merged; pay the canonical order instead")
        if sub_order.shipment_status == OrderStatus.CANCELLED:
            raise OverPayment(f"Sub-order {sub_order_id} is cancelled and accepts no payments")
        if amount.amount > sub_order.remaining_amount.amount:
            raise OverPayment(
                f"Payment {amount} exceeds remaining {sub_order.remaining_amount} on sub-order {sub_order_id}"
            )
        updated = replace(sub_order, remaining_amount=sub_order.remaining_amount - amount)
        return self._replace_sub_order(temp_order, updated)

    def with_sub_order(self, temp_order: TempOrder, sub_order: SubOrder) -> TempOrder:
        return self._replace_sub_order(temp_order, sub_order)

    def _replace_sub_order(self, temp_order: TempOrder, sub_order: SubOrder) -> TempOrder:
        sub_orders = [
            sub_order if so.sub_order_id == sub_order.sub_order_id else so
            for so in temp_order.sub_orders
        ]
        return replace(temp_order, sub_orders=sub_orders)


class FinancialReportService:
    """
    Service - revenue, expenses and profit over a reporting window.

    Inputs are expected to be limited to the window already. Figures are
    bucketed by day, or by month when monthly=True.
    """

    def __init__(self, rates: ExchangeRateService | None = None):
        self.rates = rates or ExchangeRateService()

    def order_profit(self, order: Order) -> Money:
        """sellingPriceLYD - purchase cost at the order's frozen rate - shipping cost."""
        purchase = order.purchase_price_usd or Money.zero(Currency.USD)
        purchase_cost = self.rates.to_lyd(purchase, ExchangeRate(order.exchange_rate, RateChannel.ORDER_SNAPSHOT))
        return order.selling_price_lyd - purchase_cost - (order.shipping_cost_lyd or Money.zero())

    def financial_summary(
        self,
        orders: Iterable[Order],
        transactions: Iterable[Transaction],
        expenses: Iterable[Expense],
        instant_sales: Iterable[InstantSale],
        monthly: bool = False,
    ) -> FinancialSummary:
        bucket_format = "%Y-%m" if monthly else "%Y-%m-%d"
        revenue: dict[str, Money] = defaultdict(Money.zero)
        spent: dict[str, Money] = defaultdict(Money.zero)
        profit: dict[str, Money] = defaultdict(Money.zero)

        for tx in transactions:
            if tx.is_payment:
                revenue[tx.date.strftime(bucket_format)] += tx.amount

        for expense in expenses:
            spent[expense.date.strftime(bucket_format)] += expense.amount

        active = [o for o in orders if not o.is_cancelled]
        orders_profit = Money.zero()
        for order in active:
            margin = self.order_profit(order)
            profit[order.operation_date.strftime(bucket_format)] += margin
            orders_profit += margin

        sales_profit = Money.zero()
        for sale in instant_sales:
            key = sale.created_at.strftime(bucket_format)
            revenue[key] += sale.final_sale_price_lyd
            profit[key] += sale.net_profit
            sales_profit += sale.net_profit

        periods = [
            FinancialPeriod(key=key, revenue=revenue[key], expenses=spent[key], profit=profit[key])
            for key in sorted(set(revenue) | set(spent) | set(profit))
        ]
        total_expenses = money_sum(spent.values())
        return FinancialSummary(
            total_revenue=money_sum(revenue.values()),
            total_debt=money_sum(o.remaining_amount for o in active),
            total_expenses=total_expenses,
            orders_profit=orders_profit,
            instant_sales_profit=sales_profit,
            net_profit=orders_profit + sales_profit - total_expenses,
            periods=periods,
        )
