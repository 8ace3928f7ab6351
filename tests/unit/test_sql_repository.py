"""
Unit tests - SQLModel repository on an in-memory SQLite database.
"""

from datetime import datetime
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

from shipledger.application.use_cases import (
    AppSettingsCache,
    CreditorUseCases,
    CustodyUseCases,
    CustomerUseCases,
    ExpenseUseCases,
    FinancialReportUseCases,
    OrderUseCases,
    SettingsUseCases,
    StatementUseCases,
    TempOrderUseCases,
)
from shipledger.domain.entities import (
    AuditEntry,
    Creditor,
    Customer,
    Deposit,
    Expense,
    InstantSale,
    Representative,
    SubOrder,
    TempOrder,
)
from shipledger.domain.errors import NotFound, OverPayment
from shipledger.domain.value_objects import (
    Currency,
    DebtKind,
    OrderStatus,
    TransactionType,
    lyd,
    usd,
)
from shipledger.infrastructure.database import begin_sqlite_transactions, init_db, models
from shipledger.infrastructure.repositories import SqlLedgerRepository


@pytest.fixture
def sql_repo(db_session, customer, representative) -> SqlLedgerRepository:
    repository = SqlLedgerRepository(db_session)
    with repository.atomic():
        repository.save_customer(customer)
        repository.save_representative(representative)
    return repository


class TestSqlLedgerRepository:

    def test_customer_round_trip(self, sql_repo):
        loaded = sql_repo.get_customer_by_id("c1")
        assert loaded.name == "Ahmed Ali"
        assert loaded.address == "Benghazi"
        assert sql_repo.get_customer_by_id("c404") is None

    def test_seeded_settings(self, sql_repo):
        settings = sql_repo.get_app_settings()
        assert settings.exchange_rate == Decimal("5.00")

    def test_order_and_transactions_persist(self, sql_repo, make_order):
        orders = OrderUseCases(sql_repo)
        order = orders.create_order(make_order("300", down_payment_lyd=lyd("100")))
        orders.record_payment(order.id, "50", date=datetime(2025, 3, 5))

        loaded = orders.get_order(order.id)
        assert loaded.remaining_amount == lyd("150.00")
        assert loaded.exchange_rate == Decimal("5.00")
        types = [tx.type for tx in sql_repo.get_transactions_by_order_id(order.id)]
        assert types == [TransactionType.ORDER, TransactionType.PAYMENT, TransactionType.PAYMENT]

    def test_save_order_bumps_version(self, sql_repo, db_session, make_order):
        orders = OrderUseCases(sql_repo)
        order = orders.create_order(make_order())
        orders.change_status(order.id, OrderStatus.PROCESSED)
        assert db_session.get(models.Order, order.id).version == 2

    def test_failed_unit_of_work_rolls_back(self, sql_repo, make_order):
        order = make_order("100")
        with pytest.raises(RuntimeError):
            with sql_repo.atomic():
                sql_repo.save_order(order)
                raise RuntimeError("boom")
        assert sql_repo.get_order_by_id(order.id) is None

    def test_overpayment_rolls_back_nothing_committed(self, sql_repo, make_order):
        orders = OrderUseCases(sql_repo)
        order = orders.create_order(make_order("100"))
        with pytest.raises(OverPayment):
            orders.record_payment(order.id, "150")
        assert len(sql_repo.get_transactions_by_order_id(order.id)) == 1

    def test_nested_blocks_commit_once(self, sql_repo):
        with sql_repo.atomic():
            with sql_repo.atomic():
                sql_repo.save_customer(Customer(id="c2", name="Sara"))
            assert sql_repo.session.in_transaction()
        assert sql_repo.get_customer_by_id("c2").name == "Sara"

    def test_snapshot_block_raises_isolation(self, sql_repo):
        with sql_repo.atomic(snapshot=True):
            assert sql_repo.session.connection().get_isolation_level() == "SERIALIZABLE"
            assert sql_repo.get_customer_by_id("c1") is not None
        assert not sql_repo.session.in_transaction()

    def test_snapshot_joins_an_open_transaction(self, sql_repo):
        sql_repo.get_customer_by_id("c1")
        assert sql_repo.session.in_transaction()
        with sql_repo.atomic(snapshot=True):
            assert sql_repo.get_representative_by_id("r1").name == "Khaled"

    def test_deposit_round_trip(self, sql_repo):
        with sql_repo.atomic():
            sql_repo.save_deposit(Deposit(
                receipt_number="R-1", customer_name="Ahmed Ali", amount=lyd("25"), user_id="c1"
            ))
        [deposit] = sql_repo.get_deposits_by_user_id("c1")
        assert deposit.amount == lyd("25.00")

    def test_statement(self, sql_repo, make_order):
        orders = OrderUseCases(sql_repo)
        order = orders.create_order(make_order("100"))
        orders.record_payment(order.id, "40")
        statement = StatementUseCases(sql_repo).customer_statement("c1")
        assert statement.debt == lyd("60.00")
        assert len(statement.lines) == 2

    def test_audit_entry_persisted(self, sql_repo, db_session):
        with sql_repo.atomic():
            sql_repo.add_audit_entry(AuditEntry(
                actor="admin", action="STATUS_OVERRIDE", entity_type="order", entity_id="o1"
            ))
        row = db_session.query(models.AuditLog).one()
        assert row.user_id == "admin"

    def test_settings_update(self, sql_repo):
        settings = SettingsUseCases(sql_repo, AppSettingsCache())
        settings.update_settings({"cards_exchange_rate_cash": "5.25"})
        assert sql_repo.get_app_settings().cards_exchange_rate_cash == Decimal("5.25")

    def test_missing_settings_row(self, db_session):
        db_session.query(models.AppSettings).delete()
        with pytest.raises(NotFound):
            SqlLedgerRepository(db_session).get_app_settings()


class TestSqlCreditors:

    def test_running_balance_and_total(self, sql_repo):
        creditors = CreditorUseCases(sql_repo)
        creditors.create_creditor(Creditor(id="k1", name="Supplier", currency=Currency.USD))
        creditors.add_external_debt("k1", "100", DebtKind.DEBIT, date=datetime(2025, 1, 1))
        payment = creditors.add_external_debt("k1", "40", DebtKind.CREDIT, date=datetime(2025, 1, 2))
        creditors.add_external_debt("k1", "10", DebtKind.DEBIT, date=datetime(2025, 1, 2))

        statement = creditors.get_creditor_statement("k1")
        assert [row.balance for row in statement.rows] == [usd("100"), usd("60"), usd("70")]
        assert creditors.get_creditor("k1").total_debt == usd("70.00")

        assert creditors.delete_external_debt(payment.id).total_debt == usd("110.00")
        assert sql_repo.get_external_debt_by_id(payment.id) is None


class TestSqlTempOrders:

    def create(self, sql_repo) -> TempOrder:
        temp = TempOrder(invoice_name="Bulk April", assigned_user_id="c1")
        temp.sub_orders = [
            SubOrder(
                temp_order_id=temp.id,
                sub_order_id=sub_id,
                customer_name=name,
                selling_price_lyd=lyd(price),
                representative_id="r1",
            )
            for sub_id, name, price in [("sb", "Zed", "70"), ("sa", "Amal", "30")]
        ]
        return TempOrderUseCases(sql_repo).create_temp_order(temp)

    def test_sub_orders_keep_their_order(self, sql_repo):
        temp = self.create(sql_repo)
        loaded = sql_repo.get_temp_order_by_id(temp.id)
        assert [so.sub_order_id for so in loaded.sub_orders] == ["sb", "sa"]
        assert loaded.total_amount == lyd("100.00")
        assert loaded.assigned_user_name == "Ahmed Ali"

    def test_representative_sub_orders_carry_invoice_name(self, sql_repo):
        self.create(sql_repo)
        subs = sql_repo.get_temp_sub_orders_by_representative_id("r1")
        assert {so.invoice_name for so in subs} == {"Bulk April"}
        assert CustodyUseCases(sql_repo).summary("r1").pending_temp == lyd("100.00")

    def test_payment_then_merge(self, sql_repo):
        temp_orders = TempOrderUseCases(sql_repo)
        temp = self.create(sql_repo)
        temp_orders.record_sub_order_payment(temp.id, "sa", "10")
        order = temp_orders.merge_temp_order(temp.id, invoice_number="INV-BULK-1")

        assert order.remaining_amount == lyd("90.00")
        merged = sql_repo.get_temp_order_by_id(temp.id)
        assert merged.parent_invoice_id == order.id
        assert all(so.is_merged for so in merged.sub_orders)
        assert CustodyUseCases(sql_repo).summary("r1").pending_temp == lyd("0")
        assert OrderUseCases(sql_repo).get_order(order.id).invoice_number == "INV-BULK-1"

    def test_registering_a_representative(self, sql_repo):
        CustomerUseCases(sql_repo).register_representative(Representative(id="r2", name="Omar"))
        assert sql_repo.get_representative_by_id("r2").name == "Omar"


class TestSqliteTransactions:

    def test_reads_open_a_transaction(self):
        engine = create_engine(
            "sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool
        )
        begin_sqlite_transactions(engine)
        init_db(engine)
        with Session(engine) as session:
            session.get(models.AppSettings, 1)
            assert session.connection().connection.dbapi_connection.in_transaction
        engine.dispose()


class TestSqlReporting:

    def test_expenses_and_sales_round_trip(self, sql_repo):
        with sql_repo.atomic():
            sql_repo.add_expense(Expense(description="Fuel", amount=lyd("60"), date=datetime(2025, 3, 20)))
            sql_repo.add_instant_sale(InstantSale(
                product_name="Google Play $20",
                cost_usd=usd("15"),
                cost_exchange_rate=Decimal("5.00"),
                total_cost_lyd=lyd("75"),
                sale_currency=Currency.USD,
                sale_price=usd("20"),
                sale_exchange_rate=Decimal("5.00"),
                final_sale_price_lyd=lyd("100"),
                net_profit=lyd("25"),
                created_at=datetime(2025, 3, 21),
            ))

        [expense] = sql_repo.list_expenses(datetime(2025, 3, 1), datetime(2025, 3, 31))
        assert expense.amount == lyd("60.00")
        assert sql_repo.list_expenses(end=datetime(2025, 3, 19)) == []

        [sale] = sql_repo.list_instant_sales()
        assert sale.sale_price == usd("20.00")
        assert sale.sale_exchange_rate == Decimal("5.00")

        with sql_repo.atomic():
            assert sql_repo.delete_expense(expense.id)
            assert not sql_repo.delete_expense(expense.id)
        assert sql_repo.get_expense_by_id(expense.id) is None

    def test_financial_summary(self, sql_repo, make_order):
        orders = OrderUseCases(sql_repo)
        order = orders.create_order(make_order(
            "450", purchase_price_usd=usd("60"), shipping_cost_lyd=lyd("50"), down_payment_lyd=lyd("100")
        ))
        ExpenseUseCases(sql_repo).add_expense("Office rent", "30", date=datetime(2025, 3, 2))

        summary = FinancialReportUseCases(sql_repo).financial_summary(monthly=True)
        assert summary.total_revenue == lyd("100.00")
        assert summary.net_profit == lyd("70.00")
        assert [p.key for p in summary.periods] == ["2025-03"]
        assert orders.get_order(order.id).shipping_cost_lyd == lyd("50.00")
