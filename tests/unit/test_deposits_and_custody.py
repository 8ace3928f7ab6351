"""
Unit tests - Deposits (earnest money) and representative custody.
"""

from dataclasses import replace
from datetime import datetime

import pytest

from shipledger.domain.entities import Deposit, SubOrder
from shipledger.domain.errors import IllegalTransition
from shipledger.domain.services import CustodyService, DepositService
from shipledger.domain.value_objects import (
    CollectedBy,
    CustodyFilter,
    DepositStatus,
    OrderStatus,
    lyd,
)


def deposit(amount, status=DepositStatus.PENDING, **kwargs) -> Deposit:
    fields = {"receipt_number": "R-1", "customer_name": "Ahmed Ali", "amount": lyd(amount), "status": status}
    fields.update(kwargs)
    return Deposit(**fields)


class TestDeposits:

    def setup_method(self):
        self.service = DepositService()

    def test_pending_and_collected_sums(self):
        deposits = [
            deposit("50"),
            deposit("20"),
            deposit("30", DepositStatus.COLLECTED),
            deposit("99", DepositStatus.CANCELLED),
        ]
        assert self.service.pending_amount(deposits) == lyd("70.00")
        assert self.service.collected_amount(deposits) == lyd("30.00")

    def test_collect_sets_collector_and_date(self):
        at = datetime(2025, 4, 2, 9, 30)
        collected = self.service.collect(deposit("50"), CollectedBy.REPRESENTATIVE, "r1", "Khaled", at)
        assert collected.status == DepositStatus.COLLECTED
        assert collected.collected_by == CollectedBy.REPRESENTATIVE
        assert collected.collected_date == at
        assert collected.representative_id == "r1"

    def test_collect_twice_rejected(self):
        collected = self.service.collect(deposit("50"), CollectedBy.ADMIN)
        with pytest.raises(IllegalTransition):
            self.service.collect(collected, CollectedBy.ADMIN)

    def test_cancelled_deposit_cannot_be_collected(self):
        cancelled = self.service.cancel(deposit("50"))
        with pytest.raises(IllegalTransition):
            self.service.collect(cancelled, CollectedBy.ADMIN)

    def test_deposits_do_not_touch_order_remaining(self, make_order):
        order = make_order("200")
        balance = self.service.customer_balance([order], [deposit("50")])
        assert order.remaining_amount == lyd("200.00")
        assert balance.debt == lyd("200.00")
        assert balance.pending_deposits == lyd("50.00")
        assert balance.net_balance == lyd("150.00")

    def test_net_balance_can_go_negative(self, make_order):
        balance = self.service.customer_balance([make_order("20")], [deposit("50")])
        assert balance.net_balance == lyd("-30.00")


class TestCustody:
    """pending = out-for-delivery orders + open sub-orders; collected = delivered orders."""

    def setup_method(self):
        self.service = CustodyService()

    def sub_order(self, price, **kwargs) -> SubOrder:
        fields = {
            "temp_order_id": "t1",
            "customer_name": "Sara",
            "selling_price_lyd": lyd(price),
            "representative_id": "r1",
            "invoice_name": "Bulk March",
        }
        fields.update(kwargs)
        return SubOrder(**fields)

    def test_pending_custody_combines_orders_and_sub_orders(self, make_order):
        order = make_order("50", status=OrderStatus.OUT_FOR_DELIVERY, representative_id="r1")
        sub = self.sub_order("30")
        assert self.service.pending_custody("r1", [order], [sub]) == lyd("80.00")

    def test_delivery_moves_money_from_pending_to_collected(self, make_order):
        order = make_order("50", status=OrderStatus.OUT_FOR_DELIVERY, representative_id="r1")
        sub = self.sub_order("30")
        delivered = replace(
            order,
            status=OrderStatus.DELIVERED,
            collected_amount=lyd("50"),
            remaining_amount=lyd("0"),
            delivery_date=datetime(2025, 4, 1),
        )
        assert self.service.pending_custody("r1", [delivered], [sub]) == lyd("30.00")
        assert self.service.collected_custody("r1", [delivered]) == lyd("50.00")

    def test_other_states_and_representatives_excluded(self, make_order):
        orders = [
            make_order("10", status=OrderStatus.SHIPPED, representative_id="r1"),
            make_order("20", status=OrderStatus.OUT_FOR_DELIVERY, representative_id="r2"),
            make_order("40", status=OrderStatus.OUT_FOR_DELIVERY, representative_id="r1"),
        ]
        assert self.service.pending_custody("r1", orders, []) == lyd("40.00")
        assert self.service.assigned_order_count("r1", orders) == 1

    def test_merged_and_closed_sub_orders_excluded(self):
        subs = [
            self.sub_order("30"),
            self.sub_order("15", parent_invoice_id="o9"),
            self.sub_order("25", shipment_status=OrderStatus.DELIVERED),
            self.sub_order("35", shipment_status=OrderStatus.CANCELLED),
        ]
        assert self.service.pending_custody("r1", [], subs) == lyd("30.00")

    def test_sub_order_remaining_after_down_payment(self):
        sub = self.sub_order("30", down_payment_lyd=lyd("10"))
        assert self.service.pending_custody("r1", [], [sub]) == lyd("20.00")

    def test_summary(self, make_order):
        orders = [make_order("50", status=OrderStatus.OUT_FOR_DELIVERY, representative_id="r1")]
        deposits = [
            deposit("12", representative_id="r1"),
            deposit("8", representative_id="r2"),
        ]
        summary = self.service.summary("r1", orders, [self.sub_order("30")], deposits)
        assert summary.pending_regular == lyd("50.00")
        assert summary.pending_temp == lyd("30.00")
        assert summary.pending_custody == lyd("80.00")
        assert summary.collected == lyd("0.00")
        assert summary.pending_deposits == lyd("12.00")
        assert summary.assigned_orders == 1

    @pytest.mark.parametrize("custody_filter,expected", [
        (CustodyFilter.ALL, 2),
        (CustodyFilter.REGULAR, 1),
        (CustodyFilter.TEMP, 1),
    ])
    def test_custody_items_filter(self, make_order, custody_filter, expected):
        orders = [make_order("50", status=OrderStatus.OUT_FOR_DELIVERY, representative_id="r1")]
        items = self.service.custody_items("r1", orders, [self.sub_order("30")], custody_filter)
        assert len(items) == expected

    def test_sub_order_items_are_marked_temp(self):
        items = self.service.custody_items("r1", [], [self.sub_order("30")])
        assert items[0].is_temp is True
        assert items[0].temp_order_id == "t1"
        assert items[0].invoice_number == "Bulk March"


class TestFinancialLog:

    def setup_method(self):
        self.service = CustodyService()

    def test_entries_newest_first_with_totals(self, make_order):
        orders = [
            make_order(
                "50",
                status=OrderStatus.DELIVERED,
                representative_id="r1",
                collected_amount=lyd("50"),
                delivery_date=datetime(2025, 4, 1),
            ),
            make_order(
                "70",
                status=OrderStatus.DELIVERED,
                representative_id="r1",
                collected_amount=lyd("60"),
                delivery_date=datetime(2025, 4, 5),
            ),
        ]
        deposits = [
            deposit(
                "15",
                DepositStatus.COLLECTED,
                representative_id="r1",
                collected_date=datetime(2025, 4, 3),
            ),
            deposit("99", representative_id="r1"),
        ]
        log = self.service.financial_log("r1", orders, deposits)
        assert [e.amount for e in log.entries] == [lyd("60"), lyd("15"), lyd("50")]
        assert log.total_collected == lyd("125.00")
        assert log.delivered_count == 2
        assert log.deposit_count == 1

    def test_date_window_is_inclusive(self, make_order):
        orders = [
            make_order(
                "50",
                status=OrderStatus.DELIVERED,
                representative_id="r1",
                collected_amount=lyd("50"),
                delivery_date=datetime(2025, 4, 1),
            ),
            make_order(
                "70",
                status=OrderStatus.DELIVERED,
                representative_id="r1",
                collected_amount=lyd("70"),
                delivery_date=datetime(2025, 5, 1),
            ),
        ]
        log = self.service.financial_log(
            "r1", orders, [], start=datetime(2025, 4, 1), end=datetime(2025, 4, 30)
        )
        assert log.total_collected == lyd("50.00")
        assert log.delivered_count == 1
