"""
Infrastructure - SQLModel implementation of the ledger repository.

Writes are flushed immediately but only committed when the outermost
atomic() block exits; any exception rolls the whole block back. Reads made
inside the same block share one database transaction.

The transaction runs at the engine's default isolation. Under READ COMMITTED
two SELECTs in one block may see different commits, so read-only reports that
must agree with themselves open the block with atomic(snapshot=True), which
raises the isolation to SNAPSHOT_ISOLATION for that transaction.
"""

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from decimal import Decimal

from sqlalchemy.orm import Session

from shipledger.domain import entities as domain
from shipledger.domain.errors import NotFound
from shipledger.domain.services import ILedgerRepository
from shipledger.domain.value_objects import (
    AccountType,
    CollectedBy,
    Currency,
    DepositStatus,
    ExternalDebtStatus,
    Money,
    OrderStatus,
    TransactionStatus,
    TransactionType,
)
from shipledger.infrastructure.database import models

logger = logging.getLogger(__name__)

SETTINGS_ROW_ID = 1

SNAPSHOT_ISOLATION = {
    "postgresql": "REPEATABLE READ",
    "sqlite": "SERIALIZABLE",
}


def _money(value: Decimal | None, currency: Currency = Currency.LYD) -> Money | None:
    if value is None:
        return None
    return Money(Decimal(value), currency)


def _amount(money: Money | None) -> Decimal | None:
    return None if money is None else money.amount


class SqlLedgerRepository(ILedgerRepository):

    def __init__(self, session: Session):
        self.session = session
        self._depth = 0

    @contextmanager
    def atomic(self, snapshot: bool = False) -> Iterator["SqlLedgerRepository"]:
        outermost = self._depth == 0
        if outermost and snapshot:
            self._begin_snapshot()
        self._depth += 1
        try:
            yield self
            if outermost:
                self.session.commit()
        except Exception:
            if outermost:
                logger.warning("Rolling back ledger unit of work", exc_info=True)
                self.session.rollback()
            raise
        finally:
            self._depth -= 1

    def _begin_snapshot(self) -> None:
        # Isolation can only be chosen before the transaction's first statement
        if self.session.in_transaction():
            logger.debug("Snapshot requested inside an open transaction, reusing it")
            return
        dialect = self.session.get_bind().dialect.name
        level = SNAPSHOT_ISOLATION.get(dialect)
        if level is None:
            logger.debug("No snapshot isolation configured for %s", dialect)
            return
        self.session.connection(execution_options={"isolation_level": level})

    def _upsert(self, model, key, values: dict):
        row = self.session.get(model, key)
        if row is None:
            row = model(**values)
            self.session.add(row)
        else:
            for name, value in values.items():
                setattr(row, name, value)
        self.session.flush()
        return row

    # -- customers / representatives ---------------------------------------

    def get_customer_by_id(self, customer_id: str) -> domain.Customer | None:
        row = self.session.get(models.Customer, customer_id)
        if row is None:
            return None
        return domain.Customer(
            id=row.id, name=row.name, phone=row.phone, address=row.address, username=row.username
        )

    def save_customer(self, customer: domain.Customer) -> domain.Customer:
        self._upsert(models.Customer, customer.id, {
            "id": customer.id,
            "name": customer.name,
            "phone": customer.phone,
            "address": customer.address,
            "username": customer.username,
        })
        return customer

    def get_representative_by_id(self, rep_id: str) -> domain.Representative | None:
        row = self.session.get(models.Representative, rep_id)
        if row is None:
            return None
        return domain.Representative(id=row.id, name=row.name, phone=row.phone, username=row.username)

    def save_representative(self, representative: domain.Representative) -> domain.Representative:
        self._upsert(models.Representative, representative.id, {
            "id": representative.id,
            "name": representative.name,
            "phone": representative.phone,
            "username": representative.username,
        })
        return representative

    # -- orders ------------------------------------------------------------

    def _to_order(self, row: models.Order) -> domain.Order:
        return domain.Order(
            id=row.id,
            user_id=row.user_id,
            customer_name=row.customer_name,
            invoice_number=row.invoice_number,
            tracking_id=row.tracking_id,
            operation_date=row.operation_date,
            selling_price_lyd=_money(row.selling_price_lyd),
            remaining_amount=_money(row.remaining_amount),
            status=OrderStatus(row.status),
            exchange_rate=Decimal(row.exchange_rate),
            purchase_price_usd=_money(row.purchase_price_usd, Currency.USD),
            down_payment_lyd=_money(row.down_payment_lyd),
            weight_kg=row.weight_kg,
            price_per_kilo=row.price_per_kilo,
            customer_weight_cost_lyd=_money(row.customer_weight_cost_lyd),
            added_cost_usd=_money(row.added_cost_usd, Currency.USD),
            shipping_cost_lyd=_money(row.shipping_cost_lyd),
            store=row.store,
            payment_method=row.payment_method,
            item_description=row.item_description,
            product_links=row.product_links,
            representative_id=row.representative_id,
            representative_name=row.representative_name,
            collected_amount=_money(row.collected_amount),
            delivery_date=row.delivery_date,
        )

    def get_order_by_id(self, order_id: str) -> domain.Order | None:
        row = self.session.get(models.Order, order_id)
        return self._to_order(row) if row else None

    def get_orders_by_user_id(self, user_id: str) -> list[domain.Order]:
        rows = (
            self.session.query(models.Order)
            .filter(models.Order.user_id == user_id)
            .order_by(models.Order.operation_date)
            .all()
        )
        return [self._to_order(r) for r in rows]

    def get_orders_by_representative_id(self, rep_id: str) -> list[domain.Order]:
        rows = (
            self.session.query(models.Order)
            .filter(models.Order.representative_id == rep_id)
            .order_by(models.Order.operation_date)
            .all()
        )
        return [self._to_order(r) for r in rows]

    def save_order(self, order: domain.Order) -> domain.Order:
        existing = self.session.get(models.Order, order.id)
        self._upsert(models.Order, order.id, {
            "id": order.id,
            "invoice_number": order.invoice_number,
            "tracking_id": order.tracking_id,
            "user_id": order.user_id,
            "customer_name": order.customer_name,
            "operation_date": order.operation_date,
            "selling_price_lyd": order.selling_price_lyd.amount,
            "remaining_amount": order.remaining_amount.amount,
            "status": OrderStatus(order.status).value,
            "exchange_rate": order.exchange_rate,
            "purchase_price_usd": _amount(order.purchase_price_usd),
            "down_payment_lyd": _amount(order.down_payment_lyd),
            "weight_kg": order.weight_kg,
            "price_per_kilo": order.price_per_kilo,
            "customer_weight_cost_lyd": _amount(order.customer_weight_cost_lyd),
            "added_cost_usd": _amount(order.added_cost_usd),
            "shipping_cost_lyd": _amount(order.shipping_cost_lyd),
            "store": order.store,
            "payment_method": order.payment_method,
            "item_description": order.item_description,
            "product_links": order.product_links,
            "representative_id": order.representative_id,
            "representative_name": order.representative_name,
            "collected_amount": _amount(order.collected_amount),
            "delivery_date": order.delivery_date,
            "updated_at": datetime.utcnow(),
            "version": existing.version + 1 if existing else 1,
        })
        return order

    # -- transactions ------------------------------------------------------

    def _to_transaction(self, row: models.Transaction) -> domain.Transaction:
        return domain.Transaction(
            id=row.id,
            order_id=row.order_id,
            customer_id=row.customer_id,
            customer_name=row.customer_name,
            date=row.date,
            type=TransactionType(row.type),
            status=TransactionStatus(row.status),
            amount=_money(row.amount),
            description=row.description,
        )

    def get_transactions_by_order_id(self, order_id: str) -> list[domain.Transaction]:
        rows = (
            self.session.query(models.Transaction)
            .filter(models.Transaction.order_id == order_id)
            .order_by(models.Transaction.date, models.Transaction.row_id)
            .all()
        )
        return [self._to_transaction(r) for r in rows]

    def get_transactions_by_user_id(self, user_id: str) -> list[domain.Transaction]:
        rows = (
            self.session.query(models.Transaction)
            .filter(models.Transaction.customer_id == user_id)
            .order_by(models.Transaction.date, models.Transaction.row_id)
            .all()
        )
        return [self._to_transaction(r) for r in rows]

    def add_transaction(self, transaction: domain.Transaction) -> domain.Transaction:
        self.session.add(models.Transaction(
            id=transaction.id,
            order_id=transaction.order_id,
            customer_id=transaction.customer_id,
            customer_name=transaction.customer_name,
            date=transaction.date,
            type=transaction.type.value,
            status=transaction.status.value,
            amount=transaction.amount.amount,
            description=transaction.description,
        ))
        self.session.flush()
        return transaction

    # -- deposits ----------------------------------------------------------

    def _to_deposit(self, row: models.Deposit) -> domain.Deposit:
        return domain.Deposit(
            id=row.id,
            receipt_number=row.receipt_number,
            user_id=row.user_id,
            customer_name=row.customer_name,
            customer_phone=row.customer_phone,
            amount=_money(row.amount),
            date=row.date,
            description=row.description,
            status=DepositStatus(row.status),
            representative_id=row.representative_id,
            representative_name=row.representative_name,
            collected_by=CollectedBy(row.collected_by) if row.collected_by else None,
            collected_date=row.collected_date,
        )

    def get_deposit_by_id(self, deposit_id: str) -> domain.Deposit | None:
        row = self.session.get(models.Deposit, deposit_id)
        return self._to_deposit(row) if row else None

    def get_deposits_by_user_id(self, user_id: str) -> list[domain.Deposit]:
        rows = (
            self.session.query(models.Deposit)
            .filter(models.Deposit.user_id == user_id)
            .order_by(models.Deposit.date)
            .all()
        )
        return [self._to_deposit(r) for r in rows]

    def get_deposits_by_representative_id(self, rep_id: str) -> list[domain.Deposit]:
        rows = (
            self.session.query(models.Deposit)
            .filter(models.Deposit.representative_id == rep_id)
            .order_by(models.Deposit.date)
            .all()
        )
        return [self._to_deposit(r) for r in rows]

    def save_deposit(self, deposit: domain.Deposit) -> domain.Deposit:
        self._upsert(models.Deposit, deposit.id, {
            "id": deposit.id,
            "receipt_number": deposit.receipt_number,
            "user_id": deposit.user_id,
            "customer_name": deposit.customer_name,
            "customer_phone": deposit.customer_phone,
            "amount": deposit.amount.amount,
            "date": deposit.date,
            "description": deposit.description,
            "status": deposit.status.value,
            "representative_id": deposit.representative_id,
            "representative_name": deposit.representative_name,
            "collected_by": deposit.collected_by.value if deposit.collected_by else None,
            "collected_date": deposit.collected_date,
            "updated_at": datetime.utcnow(),
        })
        return deposit

    # -- creditors ---------------------------------------------------------

    def get_creditor_by_id(self, creditor_id: str) -> domain.Creditor | None:
        row = self.session.get(models.Creditor, creditor_id)
        if row is None:
            return None
        currency = Currency(row.currency)
        return domain.Creditor(
            id=row.id,
            name=row.name,
            type=row.type,
            currency=currency,
            total_debt=_money(row.total_debt, currency),
            contact_info=row.contact_info,
        )

    def save_creditor(self, creditor: domain.Creditor) -> domain.Creditor:
        total = creditor.total_debt or Money.zero(creditor.currency)
        self._upsert(models.Creditor, creditor.id, {
            "id": creditor.id,
            "name": creditor.name,
            "type": creditor.type,
            "currency": Currency(creditor.currency).value,
            "total_debt": total.amount,
            "contact_info": creditor.contact_info,
            "updated_at": datetime.utcnow(),
        })
        return creditor

    def _to_external_debt(self, row: models.ExternalDebt, currency: Currency) -> domain.ExternalDebt:
        return domain.ExternalDebt(
            id=row.id,
            creditor_id=row.creditor_id,
            creditor_name=row.creditor_name,
            amount=_money(row.amount, currency),
            date=row.date,
            status=ExternalDebtStatus(row.status),
            notes=row.notes,
            account_type=AccountType(row.account_type),
        )

    def _creditor_currency(self, creditor_id: str) -> Currency:
        creditor = self.session.get(models.Creditor, creditor_id)
        return Currency(creditor.currency) if creditor else Currency.LYD

    def get_external_debts_for_creditor(self, creditor_id: str) -> list[domain.ExternalDebt]:
        currency = self._creditor_currency(creditor_id)
        rows = (
            self.session.query(models.ExternalDebt)
            .filter(models.ExternalDebt.creditor_id == creditor_id)
            .order_by(models.ExternalDebt.row_id)
            .all()
        )
        return [self._to_external_debt(r, currency) for r in rows]

    def get_external_debt_by_id(self, debt_id: str) -> domain.ExternalDebt | None:
        row = self.session.query(models.ExternalDebt).filter(models.ExternalDebt.id == debt_id).first()
        if row is None:
            return None
        return self._to_external_debt(row, self._creditor_currency(row.creditor_id))

    def add_external_debt(self, debt: domain.ExternalDebt) -> domain.ExternalDebt:
        self.session.add(models.ExternalDebt(
            id=debt.id,
            creditor_id=debt.creditor_id,
            creditor_name=debt.creditor_name,
            amount=debt.amount.amount,
            date=debt.date,
            status=debt.status.value,
            notes=debt.notes,
            account_type=debt.account_type.value,
        ))
        self.session.flush()
        return debt

    def delete_external_debt(self, debt_id: str) -> bool:
        row = self.session.query(models.ExternalDebt).filter(models.ExternalDebt.id == debt_id).first()
        if row is None:
            return False
        self.session.delete(row)
        self.session.flush()
        return True

    # -- bulk invoices -----------------------------------------------------

    def _to_sub_order(self, row: models.SubOrder, invoice_name: str | None) -> domain.SubOrder:
        return domain.SubOrder(
            sub_order_id=row.sub_order_id,
            temp_order_id=row.temp_order_id,
            customer_name=row.customer_name,
            customer_phone=row.customer_phone,
            customer_address=row.customer_address,
            tracking_id=row.tracking_id,
            purchase_price_usd=_money(row.purchase_price_usd, Currency.USD),
            selling_price_lyd=_money(row.selling_price_lyd),
            down_payment_lyd=_money(row.down_payment_lyd),
            remaining_amount=_money(row.remaining_amount),
            shipment_status=OrderStatus(row.shipment_status),
            weight_kg=Decimal(row.weight_kg),
            price_per_kilo_usd=Decimal(row.price_per_kilo_usd),
            store=row.store,
            product_links=row.product_links,
            item_description=row.item_description,
            payment_method=row.payment_method,
            operation_date=row.operation_date,
            delivery_date=row.delivery_date,
            representative_id=row.representative_id,
            representative_name=row.representative_name,
            parent_invoice_id=row.parent_invoice_id,
            invoice_name=invoice_name,
        )

    def _to_temp_order(self, row: models.TempOrder) -> domain.TempOrder:
        # row.sub_orders is not refreshed for sub-orders written by foreign key in this session
        subs = (
            self.session.query(models.SubOrder)
            .filter(models.SubOrder.temp_order_id == row.id)
            .order_by(models.SubOrder.position)
            .all()
        )
        return domain.TempOrder(
            id=row.id,
            invoice_name=row.invoice_name,
            status=OrderStatus(row.status),
            created_at=row.created_at,
            assigned_user_id=row.assigned_user_id,
            assigned_user_name=row.assigned_user_name,
            parent_invoice_id=row.parent_invoice_id,
            sub_orders=[self._to_sub_order(s, row.invoice_name) for s in subs],
        )

    def get_temp_order_by_id(self, temp_order_id: str) -> domain.TempOrder | None:
        row = self.session.get(models.TempOrder, temp_order_id)
        return self._to_temp_order(row) if row else None

    def list_temp_orders(self) -> list[domain.TempOrder]:
        rows = self.session.query(models.TempOrder).order_by(models.TempOrder.created_at).all()
        return [self._to_temp_order(r) for r in rows]

    def get_temp_sub_orders_by_representative_id(self, rep_id: str) -> list[domain.SubOrder]:
        rows = (
            self.session.query(models.SubOrder, models.TempOrder.invoice_name)
            .join(models.TempOrder, models.SubOrder.temp_order_id == models.TempOrder.id)
            .filter(models.SubOrder.representative_id == rep_id)
            .order_by(models.TempOrder.created_at, models.SubOrder.position)
            .all()
        )
        return [self._to_sub_order(sub, invoice_name) for sub, invoice_name in rows]

    def save_temp_order(self, temp_order: domain.TempOrder) -> domain.TempOrder:
        self._upsert(models.TempOrder, temp_order.id, {
            "id": temp_order.id,
            "invoice_name": temp_order.invoice_name,
            "status": OrderStatus(temp_order.status).value,
            "created_at": temp_order.created_at,
            "assigned_user_id": temp_order.assigned_user_id,
            "assigned_user_name": temp_order.assigned_user_name,
            "parent_invoice_id": temp_order.parent_invoice_id,
        })
        for position, so in enumerate(temp_order.sub_orders):
            self._upsert(models.SubOrder, so.sub_order_id, {
                "sub_order_id": so.sub_order_id,
                "temp_order_id": temp_order.id,
                "position": position,
                "customer_name": so.customer_name,
                "customer_phone": so.customer_phone,
                "customer_address": so.customer_address,
                "tracking_id": so.tracking_id,
                "purchase_price_usd": _amount(so.purchase_price_usd),
                "selling_price_lyd": so.selling_price_lyd.amount,
                "down_payment_lyd": _amount(so.down_payment_lyd),
                "remaining_amount": so.remaining_amount.amount,
                "shipment_status": OrderStatus(so.shipment_status).value,
                "weight_kg": so.weight_kg,
                "price_per_kilo_usd": so.price_per_kilo_usd,
                "store": so.store,
                "product_links": so.product_links,
                "item_description": so.item_description,
                "payment_method": so.payment_method,
                "operation_date": so.operation_date,
                "delivery_date": so.delivery_date,
                "representative_id": so.representative_id,
                "representative_name": so.representative_name,
                "parent_invoice_id": so.parent_invoice_id,
            })
        return temp_order

    def add_temp_payment(self, payment: domain.TempPayment) -> domain.TempPayment:
        self.session.add(models.TempPayment(
            id=payment.id,
            temp_order_id=payment.temp_order_id,
            sub_order_id=payment.sub_order_id,
            customer_name=payment.customer_name,
            amount=payment.amount.amount,
            account_type=payment.account_type.value,
            notes=payment.notes,
            date=payment.date,
        ))
        self.session.flush()
        return payment

    # -- reporting ---------------------------------------------------------

    @staticmethod
    def _window(query, column, start, end):
        if start is not None:
            query = query.filter(column >= start)
        if end is not None:
            query = query.filter(column <= end)
        return query

    def list_orders(self, start: datetime | None = None, end: datetime | None = None) -> list[domain.Order]:
        query = self._window(
            self.session.query(models.Order), models.Order.operation_date, start, end
        )
        return [self._to_order(r) for r in query.order_by(models.Order.operation_date).all()]

    def list_transactions(
        self, start: datetime | None = None, end: datetime | None = None
    ) -> list[domain.Transaction]:
        query = self._window(
            self.session.query(models.Transaction), models.Transaction.date, start, end
        )
        rows = query.order_by(models.Transaction.date, models.Transaction.row_id).all()
        return [self._to_transaction(r) for r in rows]

    # -- expenses / instant sales ------------------------------------------

    def _to_expense(self, row: models.Expense) -> domain.Expense:
        return domain.Expense(
            id=row.id, description=row.description, amount=_money(row.amount), date=row.date
        )

    def get_expense_by_id(self, expense_id: str) -> domain.Expense | None:
        row = self.session.get(models.Expense, expense_id)
        return self._to_expense(row) if row else None

    def list_expenses(self, start: datetime | None = None, end: datetime | None = None) -> list[domain.Expense]:
        query = self._window(self.session.query(models.Expense), models.Expense.date, start, end)
        return [self._to_expense(r) for r in query.order_by(models.Expense.date).all()]

    def add_expense(self, expense: domain.Expense) -> domain.Expense:
        self.session.add(models.Expense(
            id=expense.id,
            description=expense.description,
            amount=expense.amount.amount,
            date=expense.date,
        ))
        self.session.flush()
        return expense

    def delete_expense(self, expense_id: str) -> bool:
        row = self.session.get(models.Expense, expense_id)
        if row is None:
            return False
        self.session.delete(row)
        self.session.flush()
        return True

    def _to_instant_sale(self, row: models.InstantSale) -> domain.InstantSale:
        sale_currency = Currency(row.sale_currency)
        return domain.InstantSale(
            id=row.id,
            product_name=row.product_name,
            cost_usd=_money(row.cost_usd, Currency.USD),
            cost_exchange_rate=Decimal(row.cost_exchange_rate),
            total_cost_lyd=_money(row.total_cost_lyd),
            sale_currency=sale_currency,
            sale_price=_money(row.sale_price, sale_currency),
            sale_exchange_rate=(
                Decimal(row.sale_exchange_rate) if row.sale_exchange_rate is not None else None
            ),
            final_sale_price_lyd=_money(row.final_sale_price_lyd),
            net_profit=_money(row.net_profit),
            created_at=row.created_at,
        )

    def get_instant_sale_by_id(self, sale_id: str) -> domain.InstantSale | None:
        row = self.session.get(models.InstantSale, sale_id)
        return self._to_instant_sale(row) if row else None

    def list_instant_sales(
        self, start: datetime | None = None, end: datetime | None = None
    ) -> list[domain.InstantSale]:
        query = self._window(
            self.session.query(models.InstantSale), models.InstantSale.created_at, start, end
        )
        rows = query.order_by(models.InstantSale.created_at.desc()).all()
        return [self._to_instant_sale(r) for r in rows]

    def add_instant_sale(self, sale: domain.InstantSale) -> domain.InstantSale:
        self.session.add(models.InstantSale(
            id=sale.id,
            product_name=sale.product_name,
            cost_usd=sale.cost_usd.amount,
            cost_exchange_rate=sale.cost_exchange_rate,
            total_cost_lyd=sale.total_cost_lyd.amount,
            sale_currency=sale.sale_currency.value,
            sale_price=sale.sale_price.amount,
            sale_exchange_rate=sale.sale_exchange_rate,
            final_sale_price_lyd=sale.final_sale_price_lyd.amount,
            net_profit=sale.net_profit.amount,
            created_at=sale.created_at,
        ))
        self.session.flush()
        return sale

    def delete_instant_sale(self, sale_id: str) -> bool:
        row = self.session.get(models.InstantSale, sale_id)
        if row is None:
            return False
        self.session.delete(row)
        self.session.flush()
        return True

    # -- settings / audit --------------------------------------------------

    def get_app_settings(self) -> domain.AppSettings:
        row = self.session.get(models.AppSettings, SETTINGS_ROW_ID)
        if row is None:
            raise NotFound("AppSettings", str(SETTINGS_ROW_ID))
        return domain.AppSettings(
            exchange_rate=Decimal(row.exchange_rate),
            price_per_kilo_lyd=Decimal(row.price_per_kilo_lyd),
            price_per_kilo_usd=Decimal(row.price_per_kilo_usd),
            cards_exchange_rate_cash=Decimal(row.cards_exchange_rate_cash),
            cards_exchange_rate_bank=Decimal(row.cards_exchange_rate_bank),
            cards_exchange_rate_balance=Decimal(row.cards_exchange_rate_balance),
            products_exchange_rate_cash=Decimal(row.products_exchange_rate_cash),
            products_exchange_rate_bank=Decimal(row.products_exchange_rate_bank),
            products_exchange_rate_balance=Decimal(row.products_exchange_rate_balance),
        )

    def update_app_settings(self, partial: dict) -> bool:
        row = self.session.get(models.AppSettings, SETTINGS_ROW_ID)
        if row is None:
            return False
        for name, value in partial.items():
            if name not in domain.AppSettings.__dataclass_fields__:
                raise ValueError(f"Unknown settings field: {name}")
            setattr(row, name, value)
        row.updated_at = datetime.utcnow()
        self.session.flush()
        return True

    def add_audit_entry(self, entry: domain.AuditEntry) -> domain.AuditEntry:
        self.session.add(models.AuditLog(
            id=entry.id,
            user_id=entry.actor,
            action=entry.action,
            entity_type=entry.entity_type,
            entity_id=entry.entity_id,
            old_value=entry.old_value,
            new_value=entry.new_value,
            description=entry.description,
            created_at=entry.created_at,
        ))
        self.session.flush()
        return entry
