"""
API Routers - operating expenses and recorded instant sales.
"""

from datetime import datetime

from fastapi import APIRouter, Depends, status

from shipledger.api.dependencies import get_expense_use_cases, get_instant_sale_use_cases
from shipledger.application.dto.ledger_dto import (
    ExpenseCreateDTO,
    ExpenseResponseDTO,
    InstantSaleCreateDTO,
    InstantSaleResponseDTO,
)
from shipledger.application.use_cases import ExpenseUseCases, InstantSaleUseCases

router = APIRouter(tags=["Expenses"])


@router.post("/expenses", response_model=ExpenseResponseDTO, status_code=status.HTTP_201_CREATED)
def add_expense(dto: ExpenseCreateDTO, expenses: ExpenseUseCases = Depends(get_expense_use_cases)):
    return ExpenseResponseDTO.from_domain(expenses.add_expense(dto.description, dto.amount, dto.date))


@router.get("/expenses", response_model=list[ExpenseResponseDTO])
def list_expenses(
    start: datetime | None = None,
    end: datetime | None = None,
    expenses: ExpenseUseCases = Depends(get_expense_use_cases),
):
    """Expenses dated inside [start, end], oldest first."""
    return [ExpenseResponseDTO.from_domain(e) for e in expenses.list_expenses(start, end)]


@router.delete("/expenses/{expense_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_expense(expense_id: str, expenses: ExpenseUseCases = Depends(get_expense_use_cases)):
    expenses.delete_expense(expense_id)


@router.post("/instant-sales", response_model=InstantSaleResponseDTO, status_code=status.HTTP_201_CREATED)
def record_instant_sale(
    dto: InstantSaleCreateDTO,
    sales: InstantSaleUseCases = Depends(get_instant_sale_use_cases),
):
    sale = sales.record_instant_sale(
        product_name=dto.product_name,
        cost_usd=dto.cost_usd,
        sale_price=dto.sale_price,
        sale_currency=dto.sale_currency,
        cost_channel=dto.cost_channel,
        sale_rate=dto.sale_rate,
    )
    return InstantSaleResponseDTO.from_domain(sale)


@router.get("/instant-sales", response_model=list[InstantSaleResponseDTO])
def list_instant_sales(
    start: datetime | None = None,
    end: datetime | None = None,
    sales: InstantSaleUseCases = Depends(get_instant_sale_use_cases),
):
    return [InstantSaleResponseDTO.from_domain(s) for s in sales.list_instant_sales(start, end)]


@router.delete("/instant-sales/{sale_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_instant_sale(sale_id: str, sales: InstantSaleUseCases = Depends(get_instant_sale_use_cases)):
    sales.delete_instant_sale(sale_id)
