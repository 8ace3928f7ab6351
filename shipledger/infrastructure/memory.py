"""
Infrastructure - in-process ledger repository.

Runs the use cases without a database (tests, scripting). Reads hand out copies
so callers never mutate stored state; atomic() restores a snapshot of every
table when the block raises.
"""

import copy
import logging
from collections.abc import Iterator
from contextlib import contextmanager

from shipledger.domain import entities as domain
from shipledger.domain.errors import NotFound
from shipledger.domain.services import ILedgerRepository

logger = logging.getLogger(__name__)


class InMemoryLedgerRepository(ILedgerRepository):

    def __init__(self, app_settings: domain.AppSettings | None = None):
        self._tables: dict[str, dict] = {
            "customers": {},
            "representatives": {},
            "orders": {},
            "transactions": {},
            "deposits": {},
            "creditors": {},
            "external_debts": {},
            "temp_orders": {},
            "temp_payments": {},
            "expenses": {},
            "instant_sales": {},
            "audit": {},
        }
        self._settings = app_settings
        self._depth = 0

    @contextmanager
    def atomic(self, snapshot: bool = False) -> Iterator["InMemoryLedgerRepository"]:
        if self._depth:
            self._depth += 1
            try:
                yield self
            finally:
                self._depth -= 1
            return

        snapshot = copy.deepcopy((self._tables, self._settings))
        self._depth = 1
        try:
            yield self
        except Exception:
            logger.warning("Rolling back ledger unit of work", exc_info=True)
            self._tables, self._settings = snapshot
            raise
        finally:
            self._depth = 0

    def _get(self, table: str, key: str):
        item = self._tables[table].get(key)
        return copy.deepcopy(item)

    def _put(self, table: str, key: str, item):
        self._tables[table][key] = copy.deepcopy(item)
        return item

    def _select(self, table: str, predicate, sort_key=None) -> list:
        items = [copy.deepcopy(i) for i in self._tables[table].values() if predicate(i)]
        if sort_key is not None:
            items.sort(key=sort_key)
        return items

    # -- customers / representatives ---------------------------------------

    def get_customer_by_id(self, customer_id: str) -> domain.Customer | None:
        return self._get("customers", customer_id)

    def save_customer(self, customer: domain.Customer) -> domain.Customer:
        return self._put("customers", customer.id, customer)

    def get_representative_by_id(self, rep_id: str) -> domain.Representative | None:
        return self._get("representatives", rep_id)

    def save_representative(self, representative: domain.Representative) -> domain.Representative:
        return self._put("representatives", representative.id, representative)

    # -- orders / transactions ---------------------------------------------

    def get_order_by_id(self, order_id: str) -> domain.Order | None:
        return self._get("orders", order_id)

    def get_orders_by_user_id(self, user_id: str) -> list[domain.Order]:
        return self._select("orders", lambda o: o.user_id == user_id, lambda o: o.operation_date)

    def get_orders_by_representative_id(self, rep_id: str) -> list[domain.Order]:
        return self._select(
            "orders", lambda o: o.representative_id == rep_id, lambda o: o.operation_date
        )

    def save_order(self, order: domain.Order) -> domain.Order:
        return self._put("orders", order.id, order)

    def get_transactions_by_order_id(self, order_id: str) -> list[domain.Transaction]:
        # dict preserves insertion order, so a stable sort keeps ties in creation order
        return self._select("transactions", lambda t: t.order_id == order_id, lambda t: t.date)

    def get_transactions_by_user_id(self, user_id: str) -> list[domain.Transaction]:
        return self._select("transactions", lambda t: t.customer_id == user_id, lambda t: t.date)

    def add_transaction(self, transaction: domain.Transaction) -> domain.Transaction:
        return self._put("transactions", transaction.id, transaction)

    # -- deposits ----------------------------------------------------------

    def get_deposit_by_id(self, deposit_id: str) -> domain.Deposit | None:
        return self._get("deposits", deposit_id)

    def get_deposits_by_user_id(self, user_id: str) -> list[domain.Deposit]:
        return self._select("deposits", lambda d: d.user_id == user_id, lambda d: d.date)

    def get_deposits_by_representative_id(self, rep_id: str) -> list[domain.Deposit]:
        return self._select("deposits", lambda d: d.representative_id == rep_id, lambda d: d.date)

    def save_deposit(self, deposit: domain.Deposit) -> domain.Deposit:
        return self._put("deposits", deposit.id, deposit)

    # -- creditors ---------------------------------------------------------

    def get_creditor_by_id(self, creditor_id: str) -> domain.Creditor | None:
        return self._get("creditors", creditor_id)

    def save_creditor(self, creditor: domain.Creditor) -> domain.Creditor:
        return self._put("creditors", creditor.id, creditor)

    def get_external_debts_for_creditor(self, creditor_id: str) -> list[domain.ExternalDebt]:
        return self._select("external_debts", lambda d: d.creditor_id == creditor_id)

    def get_external_debt_by_id(self, debt_id: str) -> domain.ExternalDebt | None:
        return self._get("external_debts", debt_id)

    def add_external_debt(self, debt: domain.ExternalDebt) -> domain.ExternalDebt:
        return self._put("external_debts", debt.id, debt)

    def delete_external_debt(self, debt_id: str) -> bool:
        return self._tables["external_debts"].pop(debt_id, None) is not None

    # -- bulk invoices -----------------------------------------------------

    def _with_invoice_name(self, temp_order: domain.TempOrder) -> domain.TempOrder:
        for so in temp_order.sub_orders:
            so.invoice_name = temp_order.invoice_name
        return temp_order

    def get_temp_order_by_id(self, temp_order_id: str) -> domain.TempOrder | None:
        temp_order = self._get("temp_orders", temp_order_id)
        return self._with_invoice_name(temp_order) if temp_order else None

    def list_temp_orders(self) -> list[domain.TempOrder]:
        temp_orders = self._select("temp_orders", lambda t: True, lambda t: t.created_at)
        return [self._with_invoice_name(t) for t in temp_orders]

    def get_temp_sub_orders_by_representative_id(self, rep_id: str) -> list[domain.SubOrder]:
        return [
            so
            for temp_order in self.list_temp_orders()
            for so in temp_order.sub_orders
            if so.representative_id == rep_id
        ]

    def save_temp_order(self, temp_order: domain.TempOrder) -> domain.TempOrder:
        return self._put("temp_orders", temp_order.id, temp_order)

    def add_temp_payment(self, payment: domain.TempPayment) -> domain.TempPayment:
        return self._put("temp_payments", payment.id, payment)

    def get_temp_payments(self, sub_order_id: str) -> list[domain.TempPayment]:
        return self._select("temp_payments", lambda p: p.sub_order_id == sub_order_id)

    # -- reporting ---------------------------------------------------------

    @staticmethod
    def _in_window(when, start, end) -> bool:
        return (start is None or when >= start) and (end is None or when <= end)

    def list_orders(self, start=None, end=None) -> list[domain.Order]:
        return self._select(
            "orders", lambda o: self._in_window(o.operation_date, start, end), lambda o: o.operation_date
        )

    def list_transactions(self, start=None, end=None) -> list[domain.Transaction]:
        return self._select(
            "transactions", lambda t: self._in_window(t.date, start, end), lambda t: t.date
        )

    # -- expenses / instant sales ------------------------------------------

    def get_expense_by_id(self, expense_id: str) -> domain.Expense | None:
        return self._get("expenses", expense_id)

    def list_expenses(self, start=None, end=None) -> list[domain.Expense]:
        return self._select(
            "expenses", lambda e: self._in_window(e.date, start, end), lambda e: e.date
        )

    def add_expense(self, expense: domain.Expense) -> domain.Expense:
        return self._put("expenses", expense.id, expense)

    def delete_expense(self, expense_id: str) -> bool:
        return self._tables["expenses"].pop(expense_id, None) is not None

    def get_instant_sale_by_id(self, sale_id: str) -> domain.InstantSale | None:
        return self._get("instant_sales", sale_id)

    def list_instant_sales(self, start=None, end=None) -> list[domain.InstantSale]:
        sales = self._select(
            "instant_sales", lambda s: self._in_window(s.created_at, start, end), lambda s: s.created_at
        )
        return sales[::-1]

    def add_instant_sale(self, sale: domain.InstantSale) -> domain.InstantSale:
        return self._put("instant_sales", sale.id, sale)

    def delete_instant_sale(self, sale_id: str) -> bool:
        return self._tables["instant_sales"].pop(sale_id, None) is not None

    # -- settings / audit --------------------------------------------------

    def get_app_settings(self) -> domain.AppSettings:
        if self._settings is None:
            raise NotFound("AppSettings", "1")
        return self._settings

    def update_app_settings(self, partial: dict) -> bool:
        if self._settings is None:
            return False
        for name in partial:
            if name not in domain.AppSettings.__dataclass_fields__:
                raise ValueError(f"Unknown settings field: {name}")
        self._settings = self._settings.updated(**partial)
        return True

    def add_audit_entry(self, entry: domain.AuditEntry) -> domain.AuditEntry:
        return self._put("audit", entry.id, entry)

    def audit_entries(self) -> list[domain.AuditEntry]:
        return self._select("audit", lambda e: True, lambda e: e.created_at)
