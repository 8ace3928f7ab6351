"""
Unit tests - HTTP API over an in-memory SQLite database.
"""

from decimal import Decimal

import pytest

API = "/api/v1"


@pytest.fixture
def people(client):
    client.post(f"{API}/customers", json={"id": "c1", "name": "Ahmed Ali", "phone": "0912345678"})
    client.post(f"{API}/representatives", json={"id": "r1", "name": "Khaled"})
    return client


def create_order(client, price="100", **extra):
    payload = {"user_id": "c1", "customer_name": "Ahmed Ali", "selling_price_lyd": price}
    payload.update(extra)
    response = client.post(f"{API}/orders", json=payload)
    assert response.status_code == 201, response.text
    return response.json()


def walk_to_delivery(client, order_id):
    for target in ["processed", "ready", "shipped", "arrived_tobruk", "out_for_delivery"]:
        response = client.post(f"{API}/orders/{order_id}/status", json={"status": target})
        assert response.status_code == 200, response.text


class TestHealth:

    def test_root_and_health(self, client):
        assert client.get("/").json()["docs"] == "/docs"
        assert client.get("/health").json() == {"status": "healthy"}


class TestOrdersApi:

    def test_create_order_freezes_live_rate(self, people):
        order = create_order(people, "250")
        assert Decimal(order["exchange_rate"]) == Decimal("5")
        assert Decimal(order["remaining_amount"]) == Decimal("250")
        assert order["invoice_number"].startswith("INV-")

    def test_payment_flow(self, people):
        order = create_order(people, "100", down_payment_lyd="20")
        response = people.post(f"{API}/orders/{order['id']}/payments", json={"amount": "30"})
        assert response.status_code == 201
        assert Decimal(response.json()["order"]["remaining_amount"]) == Decimal("50")

        transactions = people.get(f"{API}/orders/{order['id']}/transactions").json()
        assert [tx["type"] for tx in transactions] == ["order", "payment", "payment"]

    def test_overpayment_is_a_conflict(self, people):
        order = create_order(people, "100")
        response = people.post(f"{API}/orders/{order['id']}/payments", json={"amount": "100.01"})
        assert response.status_code == 409
        assert response.json()["error"] == "OverPayment"

    def test_zero_payment_is_bad_input(self, people):
        order = create_order(people, "100")
        response = people.post(f"{API}/orders/{order['id']}/payments", json={"amount": "0"})
        assert response.status_code == 400

    def test_unknown_order_is_404(self, people):
        response = people.get(f"{API}/orders/missing")
        assert response.status_code == 404
        assert response.json()["error"] == "NotFound"

    def test_illegal_transition_is_a_conflict(self, people):
        order = create_order(people)
        response = people.post(f"{API}/orders/{order['id']}/status", json={"status": "delivered"})
        assert response.status_code == 409
        assert "pending -> delivered" in response.json()["detail"]

    def test_override(self, people):
        order = create_order(people)
        response = people.post(
            f"{API}/orders/{order['id']}/status",
            json={"status": "shipped", "override": True, "reason": "sent with the May batch"},
        )
        assert response.status_code == 200
        assert response.json()["status"] == "shipped"

    def test_delivered_status_needs_the_delivery_endpoint(self, people):
        order = create_order(people, "50")
        people.post(f"{API}/orders/{order['id']}/assign", json={"representative_id": "r1"})
        walk_to_delivery(people, order["id"])
        response = people.post(
            f"{API}/orders/{order['id']}/status", json={"status": "delivered", "override": True}
        )
        assert response.status_code == 409
        assert "deliver_order" in response.json()["detail"]
        custody = people.get(f"{API}/representatives/r1/custody").json()
        assert Decimal(custody["pending_custody"]) == Decimal("50")

    def test_unknown_status_rejected_by_validation(self, people):
        order = create_order(people)
        response = people.post(f"{API}/orders/{order['id']}/status", json={"status": "lost"})
        assert response.status_code == 422


class TestCustodyApi:

    def test_delivery_updates_custody(self, people):
        order = create_order(people, "50")
        people.post(f"{API}/orders/{order['id']}/assign", json={"representative_id": "r1"})
        walk_to_delivery(people, order["id"])
        people.post(f"{API}/temp-orders", json={
            "invoice_name": "Bulk May",
            "sub_orders": [{"customer_name": "Sara", "selling_price_lyd": "30", "representative_id": "r1"}],
        })

        custody = people.get(f"{API}/representatives/r1/custody").json()
        assert Decimal(custody["pending_custody"]) == Decimal("80")

        response = people.post(
            f"{API}/orders/{order['id']}/deliver",
            json={"representative_id": "r1", "collected_amount": "50"},
        )
        assert response.status_code == 200
        assert response.json()["status"] == "delivered"

        custody = people.get(f"{API}/representatives/r1/custody").json()
        assert Decimal(custody["pending_custody"]) == Decimal("30")
        assert Decimal(custody["collected_custody"]) == Decimal("50")

        items = people.get(f"{API}/representatives/r1/custody/items", params={"filter": "temp"}).json()
        assert [item["is_temp"] for item in items] == [True]

        log = people.get(f"{API}/representatives/r1/financial-log").json()
        assert log["delivered_count"] == 1

    def test_negative_collection_rejected_by_validation(self, people):
        order = create_order(people)
        response = people.post(
            f"{API}/orders/{order['id']}/deliver",
            json={"representative_id": "r1", "collected_amount": "-1"},
        )
        assert response.status_code == 422

    def test_unknown_representative(self, people):
        assert people.get(f"{API}/representatives/r404/custody").status_code == 404


class TestStatementApi:

    def test_statement_and_balance(self, people):
        order = create_order(people, "100")
        people.post(f"{API}/orders/{order['id']}/payments", json={"amount": "40"})
        deposit = people.post(f"{API}/deposits", json={
            "receipt_number": "R-1", "customer_name": "Ahmed Ali", "amount": "15", "user_id": "c1",
        })
        assert deposit.status_code == 201

        statement = people.get(f"{API}/customers/c1/statement").json()
        assert Decimal(statement["total_paid"]) == Decimal("40")
        assert Decimal(statement["balance"]["debt"]) == Decimal("60")
        assert len(statement["lines"]) == 3

        balance = people.get(f"{API}/customers/c1/balance").json()
        assert Decimal(balance["net_balance"]) == Decimal("45")

    def test_deposit_collect_then_cancel_conflicts(self, people):
        deposit = people.post(f"{API}/deposits", json={
            "receipt_number": "R-2", "customer_name": "Ahmed Ali", "amount": "15", "representative_id": "r1",
        }).json()
        collected = people.post(f"{API}/deposits/{deposit['id']}/collect", json={"collected_by": "representative"})
        assert collected.json()["status"] == "collected"
        assert people.post(f"{API}/deposits/{deposit['id']}/cancel").status_code == 409

    def test_unknown_customer_statement(self, people):
        assert people.get(f"{API}/customers/c404/statement").status_code == 404


class TestCreditorsApi:

    def test_running_balance(self, people):
        people.post(f"{API}/creditors", json={"id": "k1", "name": "Dubai Cargo"})
        for kind, amount in [("debit", "100"), ("credit", "40"), ("debit", "10")]:
            response = people.post(f"{API}/creditors/k1/debts", json={"amount": amount, "kind": kind})
            assert response.status_code == 201

        statement = people.get(f"{API}/creditors/k1/statement").json()
        assert [Decimal(row["balance"]) for row in statement["rows"]] == [
            Decimal("100"), Decimal("60"), Decimal("70"),
        ]
        assert statement["direction"] == "owed_by_us"

        debt_id = statement["rows"][1]["debt_id"]
        creditor = people.delete(f"{API}/creditors/debts/{debt_id}").json()
        assert Decimal(creditor["total_debt"]) == Decimal("110")

        totals = people.get(f"{API}/creditors/k1/totals").json()
        assert Decimal(totals["cash"]) == Decimal("110")

    def test_invalid_creditor_type(self, people):
        response = people.post(f"{API}/creditors", json={"name": "X", "type": "robot"})
        assert response.status_code == 422


class TestTempOrdersApi:

    def create(self, client):
        response = client.post(f"{API}/temp-orders", json={
            "invoice_name": "Bulk June",
            "assigned_user_id": "c1",
            "sub_orders": [
                {"sub_order_id": "s1", "customer_name": "Sara", "selling_price_lyd": "60"},
                {"sub_order_id": "s2", "customer_name": "Omar", "selling_price_lyd": "40"},
            ],
        })
        assert response.status_code == 201, response.text
        return response.json()

    def test_merge_and_double_merge(self, people):
        temp = self.create(people)
        paid = people.post(f"{API}/temp-orders/{temp['id']}/sub-orders/s1/payments", json={"amount": "10"})
        assert Decimal(paid.json()["remaining_amount"]) == Decimal("90")

        merged = people.post(f"{API}/temp-orders/{temp['id']}/merge", json={})
        assert merged.status_code == 201
        assert Decimal(merged.json()["remaining_amount"]) == Decimal("90")

        again = people.post(f"{API}/temp-orders/{temp['id']}/merge", json={})
        assert again.status_code == 409
        assert again.json()["error"] == "DoubleMerge"

        aggregate = people.get(f"{API}/temp-orders/aggregate").json()
        assert aggregate["invoice_count"] == 0

    def test_sub_order_overpayment(self, people):
        temp = self.create(people)
        response = people.post(f"{API}/temp-orders/{temp['id']}/sub-orders/s2/payments", json={"amount": "41"})
        assert response.status_code == 409


class TestSettingsApi:

    def test_update_and_convert(self, client):
        response = client.patch(f"{API}/settings", json={"exchange_rate": "6"})
        assert response.status_code == 200
        assert Decimal(response.json()["exchange_rate"]) == Decimal("6")

        converted = client.post(f"{API}/settings/convert", json={"amount": "10", "currency": "USD"}).json()
        assert Decimal(converted["amount"]) == Decimal("60")

    def test_zero_rate_rejected(self, client):
        response = client.patch(f"{API}/settings", json={"exchange_rate": "0"})
        assert response.status_code == 400
        assert response.json()["error"] == "InvalidRate"
        assert Decimal(client.get(f"{API}/settings").json()["exchange_rate"]) == Decimal("5")


class TestReportsApi:

    def test_expenses_sales_and_summary(self, people):
        order = create_order(
            people, "450",
            purchase_price_usd="60", shipping_cost_lyd="50", down_payment_lyd="100",
            operation_date="2025-03-01T10:00:00",
        )
        assert Decimal(order["shipping_cost_lyd"]) == Decimal("50")

        expense = people.post(f"{API}/expenses", json={
            "description": "Office rent", "amount": "30", "date": "2025-03-02T09:00:00",
        })
        assert expense.status_code == 201

        sale = people.post(f"{API}/instant-sales", json={
            "product_name": "PUBG 60 UC", "cost_usd": "10", "sale_price": "80",
        })
        assert sale.status_code == 201
        assert Decimal(sale.json()["net_profit"]) == Decimal("30")

        summary = people.get(f"{API}/reports/financial-summary", params={
            "start": "2025-03-01T00:00:00", "end": "2025-03-31T23:59:59",
        }).json()
        assert Decimal(summary["total_revenue"]) == Decimal("100")
        assert Decimal(summary["total_debt"]) == Decimal("350")
        assert Decimal(summary["net_profit"]) == Decimal("70")
        assert [p["period"] for p in summary["periods"]] == ["2025-03-01", "2025-03-02"]

    def test_delete_expense(self, client):
        expense = client.post(f"{API}/expenses", json={"description": "Fuel", "amount": "12.5"}).json()
        assert client.delete(f"{API}/expenses/{expense['id']}").status_code == 204
        assert client.get(f"{API}/expenses").json() == []
        assert client.delete(f"{API}/expenses/{expense['id']}").status_code == 404

    def test_invalid_expense_rejected_by_validation(self, client):
        assert client.post(f"{API}/expenses", json={"description": "Fuel", "amount": "0"}).status_code == 422

    def test_inverted_window(self, client):
        response = client.get(f"{API}/reports/financial-summary", params={
            "start": "2025-04-01T00:00:00", "end": "2025-03-01T00:00:00",
        })
        assert response.status_code == 400
