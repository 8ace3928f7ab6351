"""
Unit tests - Financial report, expenses and instant sales.
"""

from datetime import datetime
from decimal import Decimal

import pytest

from shipledger.application.use_cases import (
    AppSettingsCache,
    ExpenseUseCases,
    FinancialReportUseCases,
    InstantSaleUseCases,
    OrderUseCases,
    SettingsUseCases,
)
from shipledger.domain.entities import Expense, InstantSale, Transaction
from shipledger.domain.errors import InvalidAmount, LedgerError, NotFound
from shipledger.domain.services import FinancialReportService
from shipledger.domain.value_objects import (
    Currency,
    OrderStatus,
    RateChannel,
    TransactionStatus,
    TransactionType,
    lyd,
    usd,
)


def payment(amount, when, order_id="o1") -> Transaction:
    return Transaction(
        customer_id="c1",
        type=TransactionType.PAYMENT,
        amount=lyd(amount),
        status=TransactionStatus.PENDING,
        order_id=order_id,
        date=when,
    )


def instant_sale(price, profit, when) -> InstantSale:
    return InstantSale(
        product_name="PUBG 60 UC",
        cost_usd=usd("10"),
        cost_exchange_rate=Decimal("5.00"),
        total_cost_lyd=lyd(price) - lyd(profit),
        sale_currency=Currency.LYD,
        sale_price=lyd(price),
        final_sale_price_lyd=lyd(price),
        net_profit=lyd(profit),
        created_at=when,
    )


class TestFinancialReportService:

    def setup_method(self):
        self.service = FinancialReportService()

    def test_order_profit(self, make_order):
        order = make_order("450", purchase_price_usd=usd("60"), shipping_cost_lyd=lyd("50"))
        # 450 - 60 * 5.00 - 50
        assert self.service.order_profit(order) == lyd("100.00")

    def test_order_profit_without_costs(self, make_order):
        assert self.service.order_profit(make_order("80")) == lyd("80.00")

    def test_order_profit_uses_the_frozen_rate(self, make_order):
        order = make_order("100", purchase_price_usd=usd("10"), exchange_rate=Decimal("7.10"))
        assert self.service.order_profit(order) == lyd("29.00")

    @pytest.fixture
    def records(self, make_order):
        orders = [
            make_order(
                "450",
                purchase_price_usd=usd("60"),
                shipping_cost_lyd=lyd("50"),
                remaining_amount=lyd("150"),
                operation_date=datetime(2025, 3, 1, 9, 0),
            ),
            make_order("200", status=OrderStatus.CANCELLED, operation_date=datetime(2025, 3, 1, 12, 0)),
            make_order("100", operation_date=datetime(2025, 3, 15, 9, 0)),
        ]
        transactions = [
            Transaction(
                customer_id="c1",
                type=TransactionType.ORDER,
                amount=lyd("450"),
                status=TransactionStatus.PENDING,
                date=datetime(2025, 3, 1, 9, 0),
            ),
            payment("300", datetime(2025, 3, 1, 9, 0)),
            payment("50", datetime(2025, 4, 2, 16, 0)),
        ]
        expenses = [
            Expense(description="Office rent", amount=lyd("40"), date=datetime(2025, 3, 1, 8, 0)),
            Expense(description="Fuel", amount=lyd("60"), date=datetime(2025, 3, 20, 8, 0)),
        ]
        sales = [instant_sale("120", "20", datetime(2025, 3, 15, 18, 0))]
        return orders, transactions, expenses, sales

    def test_totals(self, records):
        summary = self.service.financial_summary(*records)
        assert summary.total_revenue == lyd("470.00")
        assert summary.total_debt == lyd("250.00")
        assert summary.total_expenses == lyd("100.00")
        assert summary.orders_profit == lyd("200.00")
        assert summary.instant_sales_profit == lyd("20.00")
        assert summary.net_profit == lyd("120.00")

    def test_daily_periods(self, records):
        summary = self.service.financial_summary(*records)
        assert [p.key for p in summary.periods] == [
            "2025-03-01", "2025-03-15", "2025-03-20", "2025-04-02",
        ]
        first = summary.periods[0]
        assert (first.revenue, first.expenses, first.profit) == (lyd("300"), lyd("40"), lyd("100"))

    def test_monthly_periods(self, records):
        summary = self.service.financial_summary(*records, monthly=True)
        march, april = summary.periods
        assert march.key == "2025-03"
        assert (march.revenue, march.expenses, march.profit) == (lyd("420"), lyd("100"), lyd("220"))
        assert (april.revenue, april.expenses, april.profit) == (lyd("50"), lyd("0"), lyd("0"))

    def test_empty_window(self):
        summary = self.service.financial_summary([], [], [], [])
        assert summary.net_profit.is_zero()
        assert summary.periods == []


class TestExpenseUseCases:

    def test_add_list_delete(self, repo):
        expenses = ExpenseUseCases(repo)
        rent = expenses.add_expense("Office rent", "40", date=datetime(2025, 3, 1))
        expenses.add_expense("Fuel", "60", date=datetime(2025, 4, 1))

        march = expenses.list_expenses(datetime(2025, 3, 1), datetime(2025, 3, 31))
        assert [e.description for e in march] == ["Office rent"]

        expenses.delete_expense(rent.id)
        assert [e.description for e in expenses.list_expenses()] == ["Fuel"]

    def test_delete_unknown_expense(self, repo):
        with pytest.raises(NotFound):
            ExpenseUseCases(repo).delete_expense("missing")

    @pytest.mark.parametrize("description, amount, error", [
        ("Fuel", "0", InvalidAmount),
        ("Fuel", "-5", InvalidAmount),
        ("   ", "10", LedgerError),
    ])
    def test_invalid_expense_rejected(self, repo, description, amount, error):
        with pytest.raises(error):
            ExpenseUseCases(repo).add_expense(description, amount)
        assert repo.list_expenses() == []


class TestInstantSaleUseCases:

    def setup_method(self):
        self.when = datetime(2025, 3, 15, 18, 0)

    def sales(self, repo) -> InstantSaleUseCases:
        return InstantSaleUseCases(repo, SettingsUseCases(repo, AppSettingsCache()))

    def test_record_lyd_sale(self, repo):
        sale = self.sales(repo).record_instant_sale("PUBG 60 UC", "10", "80", created_at=self.when)
        assert sale.total_cost_lyd == lyd("50.00")
        assert sale.net_profit == lyd("30.00")
        assert sale.cost_exchange_rate == Decimal("5.00")
        assert sale.sale_exchange_rate is None
        assert repo.get_instant_sale_by_id(sale.id).product_name == "PUBG 60 UC"

    def test_record_usd_sale_freezes_live_rate(self, repo):
        sale = self.sales(repo).record_instant_sale("Google Play $20", "15", "20", sale_currency=Currency.USD)
        assert sale.final_sale_price_lyd == lyd("100.00")
        assert sale.sale_exchange_rate == Decimal("5.00")
        assert sale.net_profit == lyd("25.00")

    def test_cost_channel(self, repo):
        sale = self.sales(repo).record_instant_sale("Card", "10", "60", cost_channel=RateChannel.CARDS_CASH)
        assert sale.cost_exchange_rate == Decimal("5.20")
        assert sale.total_cost_lyd == lyd("52.00")

    def test_newest_first_and_delete(self, repo):
        sales = self.sales(repo)
        older = sales.record_instant_sale("A", "1", "10", created_at=datetime(2025, 3, 1))
        newer = sales.record_instant_sale("B", "1", "10", created_at=datetime(2025, 3, 2))
        assert [s.id for s in sales.list_instant_sales()] == [newer.id, older.id]
        sales.delete_instant_sale(older.id)
        assert [s.id for s in sales.list_instant_sales()] == [newer.id]
        with pytest.raises(NotFound):
            sales.delete_instant_sale(older.id)

    def test_invalid_sale_rejected(self, repo):
        sales = self.sales(repo)
        with pytest.raises(InvalidAmount):
            sales.record_instant_sale("Card", "0", "10")
        with pytest.raises(LedgerError):
            sales.record_instant_sale("", "1", "10")


class TestFinancialReportUseCases:

    def test_summary_over_a_window(self, repo, make_order):
        orders = OrderUseCases(repo)
        order = orders.create_order(make_order(
            "450",
            purchase_price_usd=usd("60"),
            shipping_cost_lyd=lyd("50"),
            down_payment_lyd=lyd("100"),
        ))
        orders.record_payment(order.id, "50", date=datetime(2025, 3, 5))
        expenses = ExpenseUseCases(repo)
        expenses.add_expense("Office rent", "30", date=datetime(2025, 3, 2))
        expenses.add_expense("April rent", "30", date=datetime(2025, 4, 10))

        summary = FinancialReportUseCases(repo).financial_summary(
            datetime(2025, 3, 1), datetime(2025, 3, 31, 23, 59)
        )
        assert summary.total_revenue == lyd("150.00")
        assert summary.total_debt == lyd("300.00")
        assert summary.total_expenses == lyd("30.00")
        assert summary.orders_profit == lyd("100.00")
        assert summary.net_profit == lyd("70.00")

    def test_inverted_window_rejected(self, repo):
        with pytest.raises(LedgerError):
            FinancialReportUseCases(repo).financial_summary(datetime(2025, 4, 1), datetime(2025, 3, 1))
