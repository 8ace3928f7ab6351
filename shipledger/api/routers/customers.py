"""
API Routers - customers, statements and balances.
"""

from fastapi import APIRouter, Depends, status

from shipledger.api.dependencies import get_customer_use_cases, get_statement_use_cases
from shipledger.application.dto.ledger_dto import (
    CustomerBalanceDTO,
    CustomerCreateDTO,
    CustomerResponseDTO,
    CustomerStatementDTO,
)
from shipledger.application.use_cases import CustomerUseCases, StatementUseCases

router = APIRouter(prefix="/customers", tags=["Customers"])


@router.post("", response_model=CustomerResponseDTO, status_code=status.HTTP_201_CREATED)
def register_customer(dto: CustomerCreateDTO, customers: CustomerUseCases = Depends(get_customer_use_cases)):
    return CustomerResponseDTO.from_domain(customers.register_customer(dto.to_entity()))


@router.get("/{customer_id}/statement", response_model=CustomerStatementDTO)
def get_statement(customer_id: str, statements: StatementUseCases = Depends(get_statement_use_cases)):
    """
    Customer account statement.

    Orders, transactions and deposits are read in one snapshot. Orphaned
    transactions are listed under `inconsistencies` and left out of the totals.
    """
    return CustomerStatementDTO.from_domain(statements.customer_statement(customer_id))


@router.get("/{customer_id}/balance", response_model=CustomerBalanceDTO)
def get_balance(customer_id: str, statements: StatementUseCases = Depends(get_statement_use_cases)):
    return CustomerBalanceDTO.from_domain(statements.customer_balance(customer_id))
