"""
Dependency injection for the routers.

One SqlLedgerRepository per request, bound to the request's session. The
AppSettings cache is process-wide.
"""

from functools import lru_cache

from fastapi import Depends
from sqlalchemy.orm import Session

from shipledger.application.use_cases import (
    AppSettingsCache,
    CreditorUseCases,
    CustodyUseCases,
    CustomerUseCases,
    DepositUseCases,
    ExpenseUseCases,
    FinancialReportUseCases,
    InstantSaleUseCases,
    OrderUseCases,
    SettingsUseCases,
    StatementUseCases,
    TempOrderUseCases,
)
from shipledger.core.config import get_settings
from shipledger.domain.services import ILedgerRepository
from shipledger.infrastructure.database import get_db
from shipledger.infrastructure.repositories import SqlLedgerRepository


def get_repository(db: Session = Depends(get_db)) -> ILedgerRepository:
    return SqlLedgerRepository(db)


@lru_cache
def get_settings_cache() -> AppSettingsCache:
    """Shared AppSettings cache; its TTL comes from SHIPLEDGER_SETTINGS_CACHE_TTL_SECONDS."""
    return AppSettingsCache(ttl_seconds=get_settings().settings_cache_ttl_seconds)


def get_settings_use_cases(
    repo: ILedgerRepository = Depends(get_repository),
    cache: AppSettingsCache = Depends(get_settings_cache),
) -> SettingsUseCases:
    return SettingsUseCases(repo, cache)


def get_order_use_cases(repo: ILedgerRepository = Depends(get_repository)) -> OrderUseCases:
    return OrderUseCases(repo)


def get_customer_use_cases(repo: ILedgerRepository = Depends(get_repository)) -> CustomerUseCases:
    return CustomerUseCases(repo)


def get_statement_use_cases(repo: ILedgerRepository = Depends(get_repository)) -> StatementUseCases:
    return StatementUseCases(repo)


def get_deposit_use_cases(repo: ILedgerRepository = Depends(get_repository)) -> DepositUseCases:
    return DepositUseCases(repo)


def get_custody_use_cases(repo: ILedgerRepository = Depends(get_repository)) -> CustodyUseCases:
    return CustodyUseCases(repo)


def get_creditor_use_cases(repo: ILedgerRepository = Depends(get_repository)) -> CreditorUseCases:
    return CreditorUseCases(repo)


def get_temp_order_use_cases(repo: ILedgerRepository = Depends(get_repository)) -> TempOrderUseCases:
    return TempOrderUseCases(repo)


def get_expense_use_cases(repo: ILedgerRepository = Depends(get_repository)) -> ExpenseUseCases:
    return ExpenseUseCases(repo)


def get_instant_sale_use_cases(
    repo: ILedgerRepository = Depends(get_repository),
    settings: SettingsUseCases = Depends(get_settings_use_cases),
) -> InstantSaleUseCases:
    return InstantSaleUseCases(repo, settings)


def get_report_use_cases(repo: ILedgerRepository = Depends(get_repository)) -> FinancialReportUseCases:
    return FinancialReportUseCases(repo)
