"""
API Routers - external creditors and their running balance.
"""

from decimal import Decimal

from fastapi import APIRouter, Depends, Query, status

from shipledger.api.dependencies import get_creditor_use_cases
from shipledger.application.dto.ledger_dto import (
    CreditorCreateDTO,
    CreditorResponseDTO,
    CreditorStatementDTO,
    ExternalDebtCreateDTO,
    ExternalDebtResponseDTO,
)
from shipledger.application.use_cases import CreditorUseCases

router = APIRouter(prefix="/creditors", tags=["Creditors"])


@router.post("", response_model=CreditorResponseDTO, status_code=status.HTTP_201_CREATED)
def create_creditor(dto: CreditorCreateDTO, creditors: CreditorUseCases = Depends(get_creditor_use_cases)):
    return CreditorResponseDTO.from_domain(creditors.create_creditor(dto.to_entity()))


@router.get("/{creditor_id}", response_model=CreditorResponseDTO)
def get_creditor(creditor_id: str, creditors: CreditorUseCases = Depends(get_creditor_use_cases)):
    return CreditorResponseDTO.from_domain(creditors.get_creditor(creditor_id))


@router.get("/{creditor_id}/statement", response_model=CreditorStatementDTO)
def get_statement(
    creditor_id: str,
    opening_balance: Decimal | None = Query(None, description="Balance carried in before the first row"),
    creditors: CreditorUseCases = Depends(get_creditor_use_cases),
):
    """
    Running-balance statement, oldest first.

    Positive balance: we owe the creditor. Negative: the creditor owes us.
    """
    return CreditorStatementDTO.from_domain(creditors.get_creditor_statement(creditor_id, opening_balance))


@router.get("/{creditor_id}/totals", response_model=dict[str, Decimal])
def get_account_totals(creditor_id: str, creditors: CreditorUseCases = Depends(get_creditor_use_cases)):
    """Net movement per account type (cash, bank, usd)."""
    totals = creditors.account_totals(creditor_id)
    return {account.value: money.amount for account, money in totals.items()}


@router.post("/{creditor_id}/debts", response_model=ExternalDebtResponseDTO, status_code=status.HTTP_201_CREATED)
def add_external_debt(
    creditor_id: str,
    dto: ExternalDebtCreateDTO,
    creditors: CreditorUseCases = Depends(get_creditor_use_cases),
):
    debt = creditors.add_external_debt(
        creditor_id, dto.amount, dto.kind, dto.notes, dto.account_type, dto.date
    )
    return ExternalDebtResponseDTO.from_domain(debt)


@router.delete("/debts/{debt_id}", response_model=CreditorResponseDTO)
def delete_external_debt(debt_id: str, creditors: CreditorUseCases = Depends(get_creditor_use_cases)):
    """Remove a movement; the creditor total is re-derived in the same write."""
    return CreditorResponseDTO.from_domain(creditors.delete_external_debt(debt_id))
