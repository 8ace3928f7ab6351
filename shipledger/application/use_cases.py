"""
Application Use Cases - read-modify-write operations over the ledger.

Each operation runs inside one repository.atomic() block: its reads form a
consistent snapshot and its writes land together or not at all.
"""

import logging
import threading
import time
import uuid
from collections.abc import Callable
from dataclasses import replace
from datetime import datetime
from decimal import Decimal

from shipledger.domain.entities import (
    AppSettings,
    AuditEntry,
    Creditor,
    CreditorStatement,
    Customer,
    CustomerBalance,
    CustomerStatement,
    CustodyItem,
    CustodySummary,
    Deposit,
    Expense,
    ExternalDebt,
    FinancialLog,
    FinancialSummary,
    InstantSale,
    InstantSaleQuote,
    Order,
    OrderQuote,
    Representative,
    StatementLine,
    TempOrder,
    TempOrderAggregate,
    TempPayment,
    Transaction,
)
from shipledger.domain.errors import (
    IllegalTransition,
    InvalidAmount,
    LedgerError,
    NotFound,
    OverPayment,
)
from shipledger.domain.services import (
    CreditorLedgerService,
    CustodyService,
    DepositService,
    ExchangeRateService,
    FinancialReportService,
    ILedgerRepository,
    OrderLedgerService,
    TempOrderService,
)
from shipledger.domain.state_machine import can_transition, validate_transition
from shipledger.domain.value_objects import (
    AccountType,
    CollectedBy,
    Currency,
    CustodyFilter,
    DebtKind,
    ExchangeRate,
    ExternalDebtStatus,
    Money,
    OrderStatus,
    RateChannel,
    parse_money,
    parse_rate,
)

logger = logging.getLogger(__name__)

OVERRIDE_ACTION = "STATUS_OVERRIDE"


def generate_invoice_number(now: datetime | None = None) -> str:
    now = now or datetime.utcnow()
    return f"INV-{now:%Y%m%d}-{uuid.uuid4().hex[:6].upper()}"


def generate_tracking_id(now: datetime | None = None) -> str:
    now = now or datetime.utcnow()
    return f"TRK-{now:%y%m%d}{uuid.uuid4().hex[:8].upper()}"


def _money(value, currency: Currency = Currency.LYD) -> Money:
    if isinstance(value, Money):
        if value.currency != currency:
            raise InvalidAmount(f"Expected an amount in {currency.value}, got {value}")
        return value
    return parse_money(value, currency)


def _require(entity, kind: str, entity_id: str):
    if entity is None:
        raise NotFound(kind, entity_id)
    return entity


def _audit_override(
    repo: ILedgerRepository,
    actor: str,
    entity_type: str,
    entity_id: str,
    previous: OrderStatus,
    target: OrderStatus,
    reason: str | None,
) -> None:
    repo.add_audit_entry(AuditEntry(
        actor=actor,
        action=OVERRIDE_ACTION,
        entity_type=entity_type,
        entity_id=entity_id,
        old_value=previous.value,
        new_value=target.value,
        description=reason or "Administrative status override",
    ))


class AppSettingsCache:
    """
    Thread-safe cache of the AppSettings snapshot.

    The snapshot is re-read from the repository after ttl_seconds or after
    invalidate(). A ttl of 0 disables caching.
    """

    def __init__(self, ttl_seconds: float = 300.0, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._value: AppSettings | None = None
        self._loaded_at = 0.0

    def get(self, repo: ILedgerRepository) -> AppSettings:
        with self._lock:
            now = self._clock()
            if self._value is None or now - self._loaded_at >= self.ttl_seconds:
                self._value = repo.get_app_settings()
                self._loaded_at = now
                logger.debug("AppSettings loaded into cache")
            return self._value

    def invalidate(self) -> None:
        with self._lock:
            self._value = None
        logger.info("AppSettings cache invalidated")


class SettingsUseCases:
    """Rate settings, conversion and quoting against the live channel rates."""

    RATE_FIELDS = frozenset(AppSettings.RATE_FIELDS.values())
    PRICE_FIELDS = frozenset({"price_per_kilo_lyd", "price_per_kilo_usd"})

    def __init__(self, repo: ILedgerRepository, cache: AppSettingsCache, rates: ExchangeRateService | None = None):
        self.repo = repo
        self.cache = cache
        self.rates = rates or ExchangeRateService()

    def get_settings(self) -> AppSettings:
        return self.cache.get(self.repo)

    def rate(self, channel: RateChannel = RateChannel.BASE) -> ExchangeRate:
        return self.rates.live_rate(self.get_settings(), channel)

    def update_settings(self, partial: dict) -> AppSettings:
        cleaned: dict[str, Decimal] = {}
        for name, value in partial.items():
            if value is None:
                continue
            if name in self.RATE_FIELDS:
                cleaned[name] = parse_rate(value)
            elif name in self.PRICE_FIELDS:
                price = parse_money(value).amount
                if price < 0:
                    raise InvalidAmount(f"{name} cannot be negative: {value}")
                cleaned[name] = price
            else:
                raise ValueError(f"Unknown settings field: {name}")
        if not cleaned:
            return self.get_settings()

        with self.repo.atomic():
            if not self.repo.update_app_settings(cleaned):
                raise NotFound("AppSettings", "1")
            updated = self.repo.get_app_settings()
        self.cache.invalidate()
        logger.info("AppSettings updated: %s", ", ".join(sorted(cleaned)))
        return updated

    def convert(self, amount, currency: Currency, channel: RateChannel = RateChannel.BASE) -> Money:
        currency = Currency(currency)
        money = _money(amount, currency)
        rate = self.rate(channel)
        if currency == Currency.USD:
            return self.rates.to_lyd(money, rate)
        return self.rates.to_usd(money, rate).rounded()

    def quote_order(
        self,
        selling_price_lyd,
        purchase_price_usd,
        weight_kg: Decimal = Decimal("0"),
        shipping_currency: Currency = Currency.USD,
        customer_price_per_kilo=None,
        added_cost_usd=None,
        down_payment_lyd=None,
        cost_channel: RateChannel = RateChannel.BASE,
    ) -> OrderQuote:
        """Price an order with the configured per-kilo shipping price and live rates."""
        settings = self.get_settings()
        shipping_currency = Currency(shipping_currency)
        per_kilo = (
            settings.price_per_kilo_usd if shipping_currency == Currency.USD else settings.price_per_kilo_lyd
        )
        return self.rates.price_order(
            selling_price_lyd=_money(selling_price_lyd),
            purchase_price_usd=_money(purchase_price_usd, Currency.USD),
            cost_rate=self.rates.live_rate(settings, cost_channel),
            shipping_rate=self.rates.live_rate(settings, RateChannel.BASE),
            weight_kg=Decimal(weight_kg),
            price_per_kilo=Money(per_kilo, shipping_currency),
            customer_price_per_kilo=(
                _money(customer_price_per_kilo, shipping_currency)
                if customer_price_per_kilo is not None else None
            ),
            added_cost=_money(added_cost_usd, Currency.USD) if added_cost_usd is not None else None,
            down_payment_lyd=_money(down_payment_lyd) if down_payment_lyd is not None else None,
        )

    def quote_instant_sale(
        self,
        cost_usd,
        sale_price,
        sale_currency: Currency = Currency.LYD,
        cost_channel: RateChannel = RateChannel.BASE,
        sale_rate=None,
    ) -> InstantSaleQuote:
        sale_currency = Currency(sale_currency)
        settings = self.get_settings()
        return self.rates.quote_instant_sale(
            cost_usd=_money(cost_usd, Currency.USD),
            cost_rate=self.rates.live_rate(settings, cost_channel),
            sale_price=_money(sale_price, sale_currency),
            sale_rate=(
                ExchangeRate(sale_rate, RateChannel.BASE) if sale_rate is not None
                else self.rates.live_rate(settings, RateChannel.BASE)
            ),
        )

    def price_card(self, cost_usd, margin_percent, channel: RateChannel = RateChannel.CARDS_CASH) -> Money:
        return self.rates.price_card(
            _money(cost_usd, Currency.USD), Decimal(str(margin_percent)), self.rate(channel)
        )


class OrderUseCases:

    def __init__(self, repo: ILedgerRepository, ledger: OrderLedgerService | None = None):
        self.repo = repo
        self.ledger = ledger or OrderLedgerService()

    def _load(self, order_id: str) -> Order:
        return _require(self.repo.get_order_by_id(order_id), "Order", order_id)

    def create_order(self, order: Order) -> Order:
        """Persist a new order with its opening debit and down-payment credit."""
        parse_rate(order.exchange_rate)
        if not order.selling_price_lyd.is_positive():
            raise InvalidAmount(f"Selling price must be positive, got {order.selling_price_lyd}")
        if order.status != OrderStatus.PENDING:
            raise IllegalTransition(
                "order", "new", order.status.value, hint="new orders start pending"
            )

        with self.repo.atomic():
            if self.repo.get_order_by_id(order.id) is not None:
                raise LedgerError(f"Order '{order.id}' already exists")
            entries = self.ledger.opening_transactions(order)
            order.remaining_amount = self.ledger.compute_remaining(order, entries)
            self.repo.save_order(order)
            for entry in entries:
                self.repo.add_transaction(entry)

        logger.info(
            "Order %s created for %s: %s, remaining %s",
            order.invoice_number, order.user_id, order.selling_price_lyd, order.remaining_amount,
        )
        return order

    def get_order(self, order_id: str) -> Order:
        with self.repo.atomic():
            order = self._load(order_id)
            transactions = self.repo.get_transactions_by_order_id(order_id)
        remaining = self.ledger.compute_remaining(order, transactions)
        if remaining != order.remaining_amount:
            logger.warning(
                "Order %s stored remaining %s differs from ledger %s",
                order.id, order.remaining_amount, remaining,
            )
            order.remaining_amount = remaining
        return order

    def get_transactions(self, order_id: str) -> list[Transaction]:
        with self.repo.atomic():
            self._load(order_id)
            return self.repo.get_transactions_by_order_id(order_id)

    def record_payment(
        self,
        order_id: str,
        amount,
        description: str = "",
        date: datetime | None = None,
    ) -> tuple[Order, Transaction]:
        amount = _money(amount)
        with self.repo.atomic():
            order = self._load(order_id)
            remaining = self.ledger.compute_remaining(
                order, self.repo.get_transactions_by_order_id(order_id)
            )
            transaction = self.ledger.payment_transaction(order, remaining, amount, description, date)
            self.repo.add_transaction(transaction)
            order.remaining_amount = remaining - amount
            self.repo.save_order(order)

        logger.info(
            "Payment %s recorded on order %s, remaining %s",
            amount, order.invoice_number, order.remaining_amount,
        )
        return order, transaction

    def change_status(
        self,
        order_id: str,
        target: OrderStatus,
        override: bool = False,
        actor: str = "admin",
        reason: str | None = None,
    ) -> Order:
        target = OrderStatus(target)
        with self.repo.atomic():
            order = self._load(order_id)
            previous = order.status
            if target == OrderStatus.DELIVERED and previous != target:
                raise IllegalTransition(
                    "order", previous.value, target.value, hint="record it with deliver_order"
                )
            if not validate_transition(previous, target, override, "order", order.id):
                return order
            order.status = target
            self.repo.save_order(order)
            if not can_transition(previous, target):
                _audit_override(self.repo, actor, "order", order.id, previous, target, reason)
        return order

    def assign_representative(self, order_id: str, rep_id: str) -> Order:
        with self.repo.atomic():
            order = self._load(order_id)
            rep = _require(self.repo.get_representative_by_id(rep_id), "Representative", rep_id)
            if order.status in (OrderStatus.DELIVERED, OrderStatus.CANCELLED):
                raise IllegalTransition("order", order.status.value, "reassigned")
            order.representative_id = rep.id
            order.representative_name = rep.name
            self.repo.save_order(order)
        logger.info("Order %s assigned to representative %s", order.invoice_number, rep.id)
        return order

    def deliver_order(
        self,
        order_id: str,
        rep_id: str,
        collected_amount,
        at: datetime | None = None,
    ) -> Order:
        """
        Mark an out-for-delivery order delivered and record the cash the
        representative collected as a payment, in one write.
        """
        collected = _money(collected_amount)
        if collected.is_negative():
            raise InvalidAmount(f"Collected amount cannot be negative: {collected}")
        at = at or datetime.utcnow()

        with self.repo.atomic():
            order = self._load(order_id)
            if order.status != OrderStatus.OUT_FOR_DELIVERY:
                raise IllegalTransition("order", order.status.value, OrderStatus.DELIVERED.value)
            if order.representative_id != rep_id:
                raise LedgerError(
                    f"Order {order.invoice_number} is not assigned to representative {rep_id}"
                )
            remaining = self.ledger.compute_remaining(
                order, self.repo.get_transactions_by_order_id(order_id)
            )
            if collected.amount > remaining.amount:
                raise OverPayment(
                    f"Collected {collected} exceeds remaining {remaining} on order {order.invoice_number}"
                )
            if collected.is_positive():
                self.repo.add_transaction(self.ledger.payment_transaction(
                    order, remaining, collected,
                    description=f"Collected on delivery of order #{order.invoice_number}",
                    date=at,
                ))
            validate_transition(order.status, OrderStatus.DELIVERED, entity="order", entity_id=order.id)
            order.status = OrderStatus.DELIVERED
            order.collected_amount = collected
            order.delivery_date = at
            order.remaining_amount = remaining - collected
            self.repo.save_order(order)

        logger.info(
            "Order %s delivered by %s, collected %s", order.invoice_number, rep_id, collected
        )
        return order


class DepositUseCases:

    def __init__(self, repo: ILedgerRepository, deposits: DepositService | None = None):
        self.repo = repo
        self.deposits = deposits or DepositService()

    def _load(self, deposit_id: str) -> Deposit:
        return _require(self.repo.get_deposit_by_id(deposit_id), "Deposit", deposit_id)

    def create_deposit(self, deposit: Deposit) -> Deposit:
        if not deposit.amount.is_positive():
            raise InvalidAmount(f"Deposit must be positive, got {deposit.amount}")
        with self.repo.atomic():
            if deposit.user_id is not None:
                _require(self.repo.get_customer_by_id(deposit.user_id), "Customer", deposit.user_id)
            if deposit.representative_id is not None:
                rep = _require(
                    self.repo.get_representative_by_id(deposit.representative_id),
                    "Representative", deposit.representative_id,
                )
                deposit.representative_name = rep.name
            self.repo.save_deposit(deposit)
        logger.info("Deposit %s created: %s", deposit.receipt_number, deposit.amount)
        return deposit

    def collect_deposit(
        self,
        deposit_id: str,
        collected_by: CollectedBy,
        rep_id: str | None = None,
        at: datetime | None = None,
    ) -> Deposit:
        collected_by = CollectedBy(collected_by)
        with self.repo.atomic():
            deposit = self._load(deposit_id)
            rep_id = rep_id or deposit.representative_id
            rep_name = None
            if rep_id is not None:
                rep = _require(self.repo.get_representative_by_id(rep_id), "Representative", rep_id)
                rep_name = rep.name
            elif collected_by == CollectedBy.REPRESENTATIVE:
                raise LedgerError(f"Deposit {deposit.receipt_number} has no representative to collect it")
            deposit = self.deposits.collect(deposit, collected_by, rep_id, rep_name, at)
            self.repo.save_deposit(deposit)
        logger.info("Deposit %s collected by %s", deposit.receipt_number, collected_by.value)
        return deposit

    def cancel_deposit(self, deposit_id: str) -> Deposit:
        with self.repo.atomic():
            deposit = self.deposits.cancel(self._load(deposit_id))
            self.repo.save_deposit(deposit)
        logger.info("Deposit %s cancelled", deposit.receipt_number)
        return deposit


class CustodyUseCases:
    """Representative custody views and the bulk-invoice delivery write."""

    def __init__(
        self,
        repo: ILedgerRepository,
        custody: CustodyService | None = None,
        temp_orders: TempOrderService | None = None,
    ):
        self.repo = repo
        self.custody = custody or CustodyService()
        self.temp_orders = temp_orders or TempOrderService()

    def _snapshot(self, rep_id: str):
        with self.repo.atomic(snapshot=True):
            rep = _require(self.repo.get_representative_by_id(rep_id), "Representative", rep_id)
            orders = self.repo.get_orders_by_representative_id(rep_id)
            sub_orders = self.repo.get_temp_sub_orders_by_representative_id(rep_id)
            deposits = self.repo.get_deposits_by_representative_id(rep_id)
        return rep, orders, sub_orders, deposits

    def get_representative(self, rep_id: str) -> Representative:
        rep, orders, _, _ = self._snapshot(rep_id)
        rep.assigned_orders = self.custody.assigned_order_count(rep_id, orders)
        return rep

    def summary(self, rep_id: str) -> CustodySummary:
        _, orders, sub_orders, deposits = self._snapshot(rep_id)
        return self.custody.summary(rep_id, orders, sub_orders, deposits)

    def items(self, rep_id: str, custody_filter: CustodyFilter = CustodyFilter.ALL) -> list[CustodyItem]:
        _, orders, sub_orders, _ = self._snapshot(rep_id)
        return self.custody.custody_items(rep_id, orders, sub_orders, custody_filter)

    def financial_log(
        self, rep_id: str, start: datetime | None = None, end: datetime | None = None
    ) -> FinancialLog:
        _, orders, _, deposits = self._snapshot(rep_id)
        return self.custody.financial_log(rep_id, orders, deposits, start, end)

    def deliver_sub_order(
        self,
        temp_order_id: str,
        sub_order_id: str,
        rep_id: str,
        collected_amount,
        account_type: AccountType = AccountType.CASH,
        at: datetime | None = None,
    ) -> TempOrder:
        collected = _money(collected_amount)
        if collected.is_negative():
            raise InvalidAmount(f"Collected amount cannot be negative: {collected}")
        at = at or datetime.utcnow()

        with self.repo.atomic():
            temp_order = _require(
                self.repo.get_temp_order_by_id(temp_order_id), "TempOrder", temp_order_id
            )
            sub_order = self.temp_orders.get_sub_order(temp_order, sub_order_id)
            if sub_order.is_merged:
                raise IllegalTransition("sub_order", "merged", OrderStatus.DELIVERED.value)
            if sub_order.representative_id != rep_id:
                raise LedgerError(f"Sub-order {sub_order_id} is not assigned to representative {rep_id}")
            if sub_order.shipment_status != OrderStatus.OUT_FOR_DELIVERY:
                raise IllegalTransition(
                    "sub_order", sub_order.shipment_status.value, OrderStatus.DELIVERED.value
                )
            if collected.is_positive():
                temp_order = self.temp_orders.apply_payment(temp_order, sub_order_id, collected)
                self.repo.add_temp_payment(TempPayment(
                    temp_order_id=temp_order.id,
                    sub_order_id=sub_order_id,
                    customer_name=sub_order.customer_name,
                    amount=collected,
                    account_type=AccountType(account_type),
                    notes=f"Collected on delivery by {rep_id}",
                    date=at,
                ))
            validate_transition(
                sub_order.shipment_status, OrderStatus.DELIVERED, entity="sub_order", entity_id=sub_order_id
            )
            sub_order = self.temp_orders.get_sub_order(temp_order, sub_order_id)
            temp_order = self.temp_orders.with_sub_order(
                temp_order, replace(sub_order, shipment_status=OrderStatus.DELIVERED, delivery_date=at)
            )
            self.repo.save_temp_order(temp_order)

        logger.info("Sub-order %s delivered by %s, collected %s", sub_order_id, rep_id, collected)
        return temp_order


class CreditorUseCases:

    def __init__(self, repo: ILedgerRepository, creditors: CreditorLedgerService | None = None):
        self.repo = repo
        self.creditors = creditors or CreditorLedgerService()

    def _load(self, creditor_id: str) -> Creditor:
        return _require(self.repo.get_creditor_by_id(creditor_id), "Creditor", creditor_id)

    def _refresh_total(self, creditor: Creditor) -> Creditor:
        debts = self.repo.get_external_debts_for_creditor(creditor.id)
        creditor.total_debt = self.creditors.total_debt(debts, creditor.currency)
        return self.repo.save_creditor(creditor)

    def create_creditor(self, creditor: Creditor) -> Creditor:
        creditor.total_debt = Money.zero(creditor.currency)
        with self.repo.atomic():
            if self.repo.get_creditor_by_id(creditor.id) is not None:
                raise LedgerError(f"Creditor '{creditor.id}' already exists")
            self.repo.save_creditor(creditor)
        return creditor

    def get_creditor(self, creditor_id: str) -> Creditor:
        with self.repo.atomic():
            return self._load(creditor_id)

    def add_external_debt(
        self,
        creditor_id: str,
        amount,
        kind: DebtKind,
        notes: str = "",
        account_type: AccountType = AccountType.CASH,
        date: datetime | None = None,
    ) -> ExternalDebt:
        """Record a debit (we owe more) or credit (we paid) and re-derive the creditor total."""
        kind = DebtKind(kind)
        with self.repo.atomic():
            creditor = self._load(creditor_id)
            signed = self.creditors.signed_amount(_money(amount, creditor.currency), kind)
            debt = ExternalDebt(
                creditor_id=creditor.id,
                creditor_name=creditor.name,
                amount=signed,
                date=date or datetime.utcnow(),
                status=ExternalDebtStatus.PENDING if kind == DebtKind.DEBIT else ExternalDebtStatus.PAYMENT,
                notes=notes,
                account_type=AccountType(account_type),
            )
            self.repo.add_external_debt(debt)
            creditor = self._refresh_total(creditor)

        logger.info("Creditor %s: %s %s, balance %s", creditor.id, kind.value, signed, creditor.total_debt)
        return debt

    def delete_external_debt(self, debt_id: str) -> Creditor:
        with self.repo.atomic():
            debt = _require(self.repo.get_external_debt_by_id(debt_id), "ExternalDebt", debt_id)
            creditor = self._load(debt.creditor_id)
            self.repo.delete_external_debt(debt_id)
            creditor = self._refresh_total(creditor)
        logger.info("External debt %s deleted, creditor %s balance %s", debt_id, creditor.id, creditor.total_debt)
        return creditor

    def get_creditor_statement(self, creditor_id: str, opening_balance=None) -> CreditorStatement:
        with self.repo.atomic(snapshot=True):
            creditor = self._load(creditor_id)
            debts = self.repo.get_external_debts_for_creditor(creditor_id)
        opening = _money(opening_balance, creditor.currency) if opening_balance is not None else None
        return self.creditors.statement(creditor, debts, opening)

    def account_totals(self, creditor_id: str) -> dict[AccountType, Money]:
        with self.repo.atomic():
            creditor = self._load(creditor_id)
            debts = self.repo.get_external_debts_for_creditor(creditor_id)
        return self.creditors.totals_by_account_type(debts, creditor.currency)


class TempOrderUseCases:

    def __init__(
        self,
        repo: ILedgerRepository,
        temp_orders: TempOrderService | None = None,
        ledger: OrderLedgerService | None = None,
        rates: ExchangeRateService | None = None,
    ):
        self.repo = repo
        self.temp_orders = temp_orders or TempOrderService()
        self.ledger = ledger or OrderLedgerService()
        self.rates = rates or ExchangeRateService()

    def _load(self, temp_order_id: str) -> TempOrder:
        return _require(self.repo.get_temp_order_by_id(temp_order_id), "TempOrder", temp_order_id)

    def _order_rate(self, exchange_rate) -> ExchangeRate:
        if exchange_rate is not None:
            return ExchangeRate(exchange_rate, RateChannel.ORDER_SNAPSHOT)
        return self.rates.live_rate(self.repo.get_app_settings(), RateChannel.BASE)

    def _persist_order(self, order: Order) -> None:
        self.repo.save_order(order)
        for entry in self.ledger.opening_transactions(order):
            self.repo.add_transaction(entry)

    def create_temp_order(self, temp_order: TempOrder) -> TempOrder:
        for so in temp_order.sub_orders:
            if not so.selling_price_lyd.is_positive():
                raise InvalidAmount(f"Sub-order {so.sub_order_id} needs a positive selling price")
            if so.remaining_amount.is_negative():
                raise OverPayment(f"Sub-order {so.sub_order_id} down payment exceeds its price")
            so.temp_order_id = temp_order.id
        with self.repo.atomic():
            if temp_order.assigned_user_id is not None:
                customer = _require(
                    self.repo.get_customer_by_id(temp_order.assigned_user_id),
                    "Customer", temp_order.assigned_user_id,
                )
                temp_order.assigned_user_name = customer.name
            for so in temp_order.sub_orders:
                if so.representative_id is not None:
                    rep = _require(
                        self.repo.get_representative_by_id(so.representative_id),
                        "Representative", so.representative_id,
                    )
                    so.representative_name = rep.name
            self.repo.save_temp_order(temp_order)
        logger.info("Bulk invoice %s created with %d sub-orders", temp_order.invoice_name, len(temp_order.sub_orders))
        return temp_order

    def get_temp_order(self, temp_order_id: str) -> TempOrder:
        with self.repo.atomic():
            return self._load(temp_order_id)

    def aggregate(self) -> TempOrderAggregate:
        with self.repo.atomic(snapshot=True):
            temp_orders = self.repo.list_temp_orders()
        return self.temp_orders.aggregate(temp_orders)

    def merge_temp_order(
        self,
        temp_order_id: str,
        user_id: str | None = None,
        exchange_rate=None,
        invoice_number: str | None = None,
    ) -> Order:
        """Turn a bulk invoice into one canonical order and link the two."""
        with self.repo.atomic():
            temp_order = self._load(temp_order_id)
            user_id = user_id or temp_order.assigned_user_id
            if user_id is None:
                raise LedgerError(f"Bulk invoice {temp_order.invoice_name} has no customer to merge into")
            customer = _require(self.repo.get_customer_by_id(user_id), "Customer", user_id)
            order = self.temp_orders.build_merged_order(
                temp_order,
                user_id=customer.id,
                customer_name=customer.name,
                invoice_number=invoice_number or generate_invoice_number(),
                exchange_rate=self._order_rate(exchange_rate),
            )
            order.tracking_id = generate_tracking_id()
            self._persist_order(order)
            self.repo.save_temp_order(self.temp_orders.mark_merged(temp_order, order.id))

        logger.info("Bulk invoice %s merged into order %s", temp_order.invoice_name, order.invoice_number)
        return order

    def merge_sub_order(
        self,
        temp_order_id: str,
        sub_order_id: str,
        user_id: str,
        exchange_rate=None,
        invoice_number: str | None = None,
    ) -> Order:
        with self.repo.atomic():
            temp_order = self._load(temp_order_id)
            customer = _require(self.repo.get_customer_by_id(user_id), "Customer", user_id)
            order = self.temp_orders.build_sub_order_order(
                temp_order,
                sub_order_id,
                user_id=customer.id,
                invoice_number=invoice_number or generate_invoice_number(),
                exchange_rate=self._order_rate(exchange_rate),
            )
            if not order.tracking_id:
                order.tracking_id = generate_tracking_id()
            self._persist_order(order)
            self.repo.save_temp_order(
                self.temp_orders.mark_sub_order_merged(temp_order, sub_order_id, order.id)
            )

        logger.info("Sub-order %s merged into order %s", sub_order_id, order.invoice_number)
        return order

    def record_sub_order_payment(
        self,
        temp_order_id: str,
        sub_order_id: str,
        amount,
        account_type: AccountType = AccountType.CASH,
        notes: str = "",
    ) -> TempOrder:
        amount = _money(amount)
        with self.repo.atomic():
            temp_order = self.temp_orders.apply_payment(self._load(temp_order_id), sub_order_id, amount)
            sub_order = temp_order.find_sub_order(sub_order_id)
            self.repo.add_temp_payment(TempPayment(
                temp_order_id=temp_order.id,
                sub_order_id=sub_order_id,
                customer_name=sub_order.customer_name,
                amount=amount,
                account_type=AccountType(account_type),
                notes=notes,
            ))
            self.repo.save_temp_order(temp_order)
        logger.info(
            "Payment %s on sub-order %s, remaining %s", amount, sub_order_id, sub_order.remaining_amount
        )
        return temp_order

    def change_sub_order_status(
        self,
        temp_order_id: str,
        sub_order_id: str,
        target: OrderStatus,
        override: bool = False,
        actor: str = "admin",
        reason: str | None = None,
    ) -> TempOrder:
        target = OrderStatus(target)
        with self.repo.atomic():
            temp_order = self._load(temp_order_id)
            sub_order = self.temp_orders.get_sub_order(temp_order, sub_order_id)
            previous = sub_order.shipment_status
            if target == OrderStatus.DELIVERED and previous != target:
                raise IllegalTransition(
                    "sub_order", previous.value, target.value, hint="record it with deliver_sub_order"
                )
            if not validate_transition(previous, target, override, "sub_order", sub_order_id):
                return temp_order
            temp_order = self.temp_orders.with_sub_order(
                temp_order, replace(sub_order, shipment_status=target)
            )
            self.repo.save_temp_order(temp_order)
            if not can_transition(previous, target):
                _audit_override(self.repo, actor, "sub_order", sub_order_id, previous, target, reason)
        return temp_order

    def assign_sub_order_representative(self, temp_order_id: str, sub_order_id: str, rep_id: str) -> TempOrder:
        with self.repo.atomic():
            temp_order = self._load(temp_order_id)
            sub_order = self.temp_orders.get_sub_order(temp_order, sub_order_id)
            rep = _require(self.repo.get_representative_by_id(rep_id), "Representative", rep_id)
            temp_order = self.temp_orders.with_sub_order(
                temp_order, replace(sub_order, representative_id=rep.id, representative_name=rep.name)
            )
            self.repo.save_temp_order(temp_order)
        return temp_order


class StatementUseCases:
    """Customer statement and balance, read in one consistent snapshot."""

    def __init__(
        self,
        repo: ILedgerRepository,
        ledger: OrderLedgerService | None = None,
        deposits: DepositService | None = None,
    ):
        self.repo = repo
        self.ledger = ledger or OrderLedgerService()
        self.deposits = deposits or DepositService(self.ledger)

    def _snapshot(self, customer_id: str):
        with self.repo.atomic(snapshot=True):
            customer = _require(self.repo.get_customer_by_id(customer_id), "Customer", customer_id)
            orders = self.repo.get_orders_by_user_id(customer_id)
            transactions = self.repo.get_transactions_by_user_id(customer_id)
            deposits = self.repo.get_deposits_by_user_id(customer_id)
        return customer, orders, transactions, deposits

    def customer_statement(self, customer_id: str) -> CustomerStatement:
        customer, orders, transactions, deposits = self._snapshot(customer_id)

        inconsistencies = self.ledger.find_inconsistencies(orders, transactions)
        known = {order.id for order in orders}
        allocated = [tx for tx in transactions if tx.order_id in known]
        cancelled = {order.id for order in orders if order.is_cancelled}

        lines = [
            StatementLine(
                date=tx.date,
                description=tx.description,
                kind=tx.type.value,
                debit=Money.zero() if tx.is_payment else tx.amount,
                credit=tx.amount if tx.is_payment else Money.zero(),
                status=tx.status.value,
                reference_id=tx.id,
                order_id=tx.order_id,
            )
            for tx in transactions
        ]
        lines += [
            StatementLine(
                date=d.date,
                description=d.description or f"Deposit receipt #{d.receipt_number}",
                kind="deposit",
                debit=Money.zero(),
                credit=d.amount,
                status=d.status.value,
                reference_id=d.id,
            )
            for d in deposits
        ]
        lines.sort(key=lambda line: line.date)

        total_paid = Money.zero()
        for tx in allocated:
            if tx.is_payment and tx.order_id not in cancelled:
                total_paid += tx.amount

        return CustomerStatement(
            customer=customer,
            lines=lines,
            total_orders_value=self.ledger.total_orders_value(orders),
            total_paid=total_paid,
            balance=self.deposits.customer_balance(orders, deposits, allocated),
            inconsistencies=inconsistencies,
        )

    def customer_balance(self, customer_id: str) -> CustomerBalance:
        _, orders, transactions, deposits = self._snapshot(customer_id)
        known = {order.id for order in orders}
        allocated = [tx for tx in transactions if tx.order_id in known]
        return self.deposits.customer_balance(orders, deposits, allocated)

    def order_count(self, customer_id: str) -> int:
        _, orders, _, _ = self._snapshot(customer_id)
        return sum(1 for o in orders if not o.is_cancelled)


class CustomerUseCases:

    def __init__(self, repo: ILedgerRepository):
        self.repo = repo

    def register_customer(self, customer: Customer) -> Customer:
        with self.repo.atomic():
            if self.repo.get_customer_by_id(customer.id) is not None:
                raise LedgerError(f"Customer '{customer.id}' already exists")
            self.repo.save_customer(customer)
        return customer

    def register_representative(self, representative: Representative) -> Representative:
        with self.repo.atomic():
            if self.repo.get_representative_by_id(representative.id) is not None:
                raise LedgerError(f"Representative '{representative.id}' already exists")
            self.repo.save_representative(representative)
        return representative


class ExpenseUseCases:

    def __init__(self, repo: ILedgerRepository):
        self.repo = repo

    def add_expense(self, description: str, amount, date: datetime | None = None) -> Expense:
        description = (description or "").strip()
        if not description:
            raise LedgerError("Expense description is required")
        amount = _money(amount)
        if not amount.is_positive():
            raise InvalidAmount(f"Expense amount must be positive, got {amount}")
        expense = Expense(description=description, amount=amount, date=date or datetime.utcnow())
        with self.repo.atomic():
            self.repo.add_expense(expense)
        logger.info("Expense recorded: %s %s", expense.description, expense.amount)
        return expense

    def delete_expense(self, expense_id: str) -> None:
        with self.repo.atomic():
            _require(self.repo.get_expense_by_id(expense_id), "Expense", expense_id)
            self.repo.delete_expense(expense_id)
        logger.info("Expense %s deleted", expense_id)

    def list_expenses(self, start: datetime | None = None, end: datetime | None = None) -> list[Expense]:
        with self.repo.atomic():
            return self.repo.list_expenses(start, end)


class InstantSaleUseCases:
    """Record over-the-counter sales priced at the live rates."""

    def __init__(self, repo: ILedgerRepository, settings: SettingsUseCases):
        self.repo = repo
        self.settings = settings

    def record_instant_sale(
        self,
        product_name: str,
        cost_usd,
        sale_price,
        sale_currency: Currency = Currency.LYD,
        cost_channel: RateChannel = RateChannel.BASE,
        sale_rate=None,
        created_at: datetime | None = None,
    ) -> InstantSale:
        product_name = (product_name or "").strip()
        if not product_name:
            raise LedgerError("Product name is required")
        sale_currency = Currency(sale_currency)
        cost = _money(cost_usd, Currency.USD)
        price = _money(sale_price, sale_currency)
        if not cost.is_positive() or not price.is_positive():
            raise InvalidAmount("Instant sale cost and price must be positive")

        quote = self.settings.quote_instant_sale(cost, price, sale_currency, cost_channel, sale_rate)
        sale_exchange_rate = None
        if sale_currency == Currency.USD:
            sale_exchange_rate = (
                parse_rate(sale_rate) if sale_rate is not None else self.settings.rate(RateChannel.BASE).rate
            )
        sale = InstantSale(
            product_name=product_name,
            cost_usd=cost,
            cost_exchange_rate=self.settings.rate(cost_channel).rate,
            total_cost_lyd=quote.total_cost_lyd,
            sale_currency=sale_currency,
            sale_price=price,
            final_sale_price_lyd=quote.final_sale_price_lyd,
            net_profit=quote.net_profit,
            sale_exchange_rate=sale_exchange_rate,
            created_at=created_at or datetime.utcnow(),
        )
        with self.repo.atomic():
            self.repo.add_instant_sale(sale)
        logger.info("Instant sale %s: %s, profit %s", sale.product_name, sale.final_sale_price_lyd, sale.net_profit)
        return sale

    def list_instant_sales(
        self, start: datetime | None = None, end: datetime | None = None
    ) -> list[InstantSale]:
        with self.repo.atomic():
            return self.repo.list_instant_sales(start, end)

    def delete_instant_sale(self, sale_id: str) -> None:
        with self.repo.atomic():
            _require(self.repo.get_instant_sale_by_id(sale_id), "InstantSale", sale_id)
            self.repo.delete_instant_sale(sale_id)


class FinancialReportUseCases:

    def __init__(self, repo: ILedgerRepository, reports: FinancialReportService | None = None):
        self.repo = repo
        self.reports = reports or FinancialReportService()

    def financial_summary(
        self,
        start: datetime | None = None,
        end: datetime | None = None,
        monthly: bool = False,
    ) -> FinancialSummary:
        if start is not None and end is not None and start > end:
            raise LedgerError(f"Report window starts after it ends: {start} > {end}")
        with self.repo.atomic(snapshot=True):
            orders = self.repo.list_orders(start, end)
            transactions = self.repo.list_transactions(start, end)
            expenses = self.repo.list_expenses(start, end)
            sales = self.repo.list_instant_sales(start, end)
        return self.reports.financial_summary(orders, transactions, expenses, sales, monthly)
