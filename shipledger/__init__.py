"""Shipping back-office ledger: orders, payments, deposits, custody and creditors."""

__version__ = "0.1.0"
