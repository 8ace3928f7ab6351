#!/usr/bin/env python3
"""
Database Seeding Script - shipping back-office ledger
Seeds sample customers, orders, deposits, a bulk invoice and a creditor
through the use cases, so every figure goes through the ledger rules.
"""

from datetime import datetime, timedelta
from decimal import Decimal


def main():
    """Main function."""
    print("=" * 60)
    print("Database Seeding - Shipping Ledger")
    print("=" * 60)

    from shipledger.core.config import get_settings
    from shipledger.core.logging import setup_logging

    settings = get_settings()
    setup_logging(settings.log_level, settings.log_dir, process_name="seed")

    # Initialize database first
    from shipledger.infrastructure.database import SessionLocal, init_db

    init_db()

    from shipledger.application.use_cases import (
        AppSettingsCache,
        CreditorUseCases,
        CustomerUseCases,
        DepositUseCases,
        OrderUseCases,
        SettingsUseCases,
        StatementUseCases,
        TempOrderUseCases,
        generate_invoice_number,
        generate_tracking_id,
    )
    from shipledger.domain.entities import (
        Creditor,
        Customer,
        Deposit,
        Order,
        Representative,
        SubOrder,
        TempOrder,
    )
    from shipledger.domain.value_objects import Currency, DebtKind, OrderStatus, lyd, usd
    from shipledger.infrastructure.repositories import SqlLedgerRepository

    db = SessionLocal()
    repo = SqlLedgerRepository(db)

    try:
        # Settings
        SettingsUseCases(repo, AppSettingsCache(ttl_seconds=0)).update_settings({
            "exchange_rate": Decimal("7.10"),
            "price_per_kilo_usd": Decimal("9.00"),
            "price_per_kilo_lyd": Decimal("65.00"),
            "cards_exchange_rate_cash": Decimal("7.25"),
            "products_exchange_rate_cash": Decimal("7.15"),
        })
        print("✓ App settings")

        # Customers and representatives
        people = CustomerUseCases(repo)
        customer = people.register_customer(
            Customer(id="cust-001", name="Ahmed Ali", phone="0912345678", address="Benghazi")
        )
        second = people.register_customer(Customer(id="cust-002", name="Mona Salem", phone="0923456789"))
        rep = people.register_representative(Representative(id="rep-001", name="Khaled", phone="0915550000"))
        print("✓ Customers: 2, representatives: 1")

        # Orders
        orders = OrderUseCases(repo)
        now = datetime.utcnow()
        first = orders.create_order(Order(
            user_id=customer.id,
            customer_name=customer.name,
            invoice_number=generate_invoice_number(now),
            tracking_id=generate_tracking_id(now),
            selling_price_lyd=lyd("450.00"),
            exchange_rate=Decimal("7.10"),
            purchase_price_usd=usd("55.00"),
            down_payment_lyd=lyd("100.00"),
            weight_kg=Decimal("2.5"),
            store="Shein",
            operation_date=now - timedelta(days=10),
        ))
        orders.record_payment(first.id, lyd("150.00"), date=now - timedelta(days=5))

        on_route = orders.create_order(Order(
            user_id=second.id,
            customer_name=second.name,
            invoice_number=generate_invoice_number(now),
            tracking_id=generate_tracking_id(now),
            selling_price_lyd=lyd("320.00"),
            exchange_rate=Decimal("7.10"),
            operation_date=now - timedelta(days=8),
        ))
        for status in (
            OrderStatus.PROCESSED,
            OrderStatus.READY,
            OrderStatus.SHIPPED,
            OrderStatus.ARRIVED_BENGHAZI,
            OrderStatus.OUT_FOR_DELIVERY,
        ):
            orders.change_status(on_route.id, status, actor="seed")
        orders.assign_representative(on_route.id, rep.id)
        print("✓ Orders: 2")

        # Deposits
        deposits = DepositUseCases(repo)
        deposits.create_deposit(Deposit(
            receipt_number="R-0001",
            customer_name=customer.name,
            user_id=customer.id,
            amount=lyd("50.00"),
            representative_id=rep.id,
        ))
        print("✓ Deposits: 1")

        # Bulk invoice
        temp = TempOrder(invoice_name="Bulk March", assigned_user_id=customer.id)
        temp.sub_orders = [
            SubOrder(
                temp_order_id=temp.id,
                customer_name="Sara",
                selling_price_lyd=lyd("120.00"),
                down_payment_lyd=lyd("20.00"),
                purchase_price_usd=usd("14.00"),
                representative_id=rep.id,
            ),
            SubOrder(
                temp_order_id=temp.id,
                customer_name="Omar",
                selling_price_lyd=lyd("80.00"),
                purchase_price_usd=usd("9.50"),
            ),
        ]
        TempOrderUseCases(repo).create_temp_order(temp)
        print("✓ Bulk invoices: 1")

        # Creditor
        creditors = CreditorUseCases(repo)
        supplier = creditors.create_creditor(
            Creditor(id="cred-001", name="Dubai Cargo", type="company", currency=Currency.USD)
        )
        creditors.add_external_debt(supplier.id, usd("1000.00"), DebtKind.DEBIT, notes="Air freight")
        creditors.add_external_debt(supplier.id, usd("400.00"), DebtKind.CREDIT, notes="Bank transfer")
        print("✓ Creditors: 1")

        # Check
        balance = StatementUseCases(repo).customer_balance(customer.id)
        print(f"✓ {customer.name}: debt={balance.debt}, net={balance.net_balance}")
        statement = creditors.get_creditor_statement(supplier.id)
        print(f"✓ {supplier.name}: balance={statement.closing_balance} ({statement.direction.value})")

        print("\n" + "=" * 60)
        print("Seeding completed successfully!")
        print("=" * 60)

    except Exception as e:
        print(f"\n❌ Error: {e}")
        db.rollback()
        raise
    finally:
        db.close()


if __name__ == "__main__":
    main()
