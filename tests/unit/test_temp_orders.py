"""
Unit tests - Bulk invoices (temp orders) and their merge into canonical orders.
"""

from decimal import Decimal

import pytest

from shipledger.domain.entities import SubOrder, TempOrder
from shipledger.domain.errors import DoubleMerge, IllegalTransition, NotFound, OverPayment
from shipledger.domain.services import TempOrderService
from shipledger.domain.value_objects import (
    ExchangeRate,
    OrderStatus,
    RateChannel,
    lyd,
    usd,
)


def temp_order(*prices, **kwargs) -> TempOrder:
    temp = TempOrder(invoice_name="Bulk March", **kwargs)
    temp.sub_orders = [
        SubOrder(
            temp_order_id=temp.id,
            sub_order_id=f"s{i}",
            customer_name=f"Customer {i}",
            selling_price_lyd=lyd(price),
            purchase_price_usd=usd("10"),
            weight_kg=Decimal("1.5"),
        )
        for i, price in enumerate(prices, start=1)
    ]
    return temp


class TestAggregate:

    def setup_method(self):
        self.service = TempOrderService()

    def test_totals_come_from_sub_orders(self):
        temp = temp_order("100", "50")
        assert temp.total_amount == lyd("150.00")
        assert temp.remaining_amount == lyd("150.00")
        assert temp.paid_amount == lyd("0")

    def test_cancelled_and_merged_invoices_excluded(self):
        active = temp_order("100", "50")
        cancelled = temp_order("80", status=OrderStatus.CANCELLED)
        merged = temp_order("60", parent_invoice_id="o1")
        aggregate = self.service.aggregate([active, cancelled, merged])
        assert aggregate.invoice_count == 1
        assert aggregate.total_value == lyd("150.00")
        assert aggregate.total_debt == lyd("150.00")

    def test_payments_move_debt_to_paid(self):
        temp = self.service.apply_payment(temp_order("100", "50"), "s1", lyd("40"))
        aggregate = self.service.aggregate([temp])
        assert aggregate.total_debt == lyd("110.00")
        assert aggregate.total_paid == lyd("40.00")


class TestSubOrderPayments:

    def setup_method(self):
        self.service = TempOrderService()

    def test_payment_reduces_only_its_sub_order(self):
        temp = self.service.apply_payment(temp_order("100", "50"), "s2", lyd("20"))
        assert temp.find_sub_order("s1").remaining_amount == lyd("100.00")
        assert temp.find_sub_order("s2").remaining_amount == lyd("30.00")

    def test_overpayment_rejected(self):
        with pytest.raises(OverPayment):
            self.service.apply_payment(temp_order("50"), "s1", lyd("50.01"))

    def test_unknown_sub_order(self):
        with pytest.raises(NotFound):
            self.service.apply_payment(temp_order("50"), "nope", lyd("1"))

    def test_merged_sub_order_accepts_no_payment(self):
        temp = self.service.mark_sub_order_merged(temp_order("50", "20"), "s1", "o1")
        with pytest.raises(OverPayment, match="merged"):
            self.service.apply_payment(temp, "s1", lyd("10"))


class TestMerge:

    def setup_method(self):
        self.service = TempOrderService()
        self.rate = ExchangeRate(Decimal("5.1"), RateChannel.BASE)

    def test_merged_order_carries_totals(self):
        temp = self.service.apply_payment(temp_order("100", "50"), "s1", lyd("30"))
        order = self.service.build_merged_order(temp, "c1", "Ahmed Ali", "INV-9", self.rate)
        assert order.selling_price_lyd == lyd("150.00")
        assert order.remaining_amount == lyd("120.00")
        assert order.down_payment_lyd == lyd("30.00")
        assert order.purchase_price_usd == usd("20.00")
        assert order.weight_kg == Decimal("3.0")
        assert order.exchange_rate == Decimal("5.1")
        assert "Customer 1, Customer 2" in order.item_description

    def test_merge_twice_rejected(self):
        temp = temp_order("100")
        merged = self.service.mark_merged(temp, "o1")
        assert merged.parent_invoice_id == "o1"
        assert all(so.parent_invoice_id == "o1" for so in merged.sub_orders)
        with pytest.raises(DoubleMerge):
            self.service.build_merged_order(merged, "c1", "Ahmed Ali", "INV-10", self.rate)
        with pytest.raises(DoubleMerge):
            self.service.mark_merged(merged, "o2")

    def test_cancelled_invoice_cannot_merge(self):
        temp = temp_order("100", status=OrderStatus.CANCELLED)
        with pytest.raises(IllegalTransition):
            self.service.build_merged_order(temp, "c1", "Ahmed Ali", "INV-11", self.rate)

    def test_already_merged_sub_orders_are_left_out(self):
        temp = self.service.mark_sub_order_merged(temp_order("100", "50"), "s1", "o1")
        order = self.service.build_merged_order(temp, "c1", "Ahmed Ali", "INV-12", self.rate)
        assert order.selling_price_lyd == lyd("50.00")
        merged = self.service.mark_merged(temp, "o2")
        assert merged.find_sub_order("s1").parent_invoice_id == "o1"
        assert merged.find_sub_order("s2").parent_invoice_id == "o2"

    def test_single_sub_order_merge(self):
        temp = temp_order("100", "50")
        order = self.service.build_sub_order_order(temp, "s2", "c2", "INV-13", self.rate)
        assert order.customer_name == "Customer 2"
        assert order.selling_price_lyd == lyd("50.00")
        temp = self.service.mark_sub_order_merged(temp, "s2", order.id)
        with pytest.raises(DoubleMerge):
            self.service.build_sub_order_order(temp, "s2", "c2", "INV-14", self.rate)
