"""
API Routers - financial reports.
"""

from datetime import datetime

from fastapi import APIRouter, Depends, Query

from shipledger.api.dependencies import get_report_use_cases
from shipledger.application.dto.ledger_dto import FinancialSummaryDTO
from shipledger.application.use_cases import FinancialReportUseCases

router = APIRouter(prefix="/reports", tags=["Reports"])


@router.get("/financial-summary", response_model=FinancialSummaryDTO)
def financial_summary(
    start: datetime | None = Query(None, description="Inclusive window start"),
    end: datetime | None = Query(None, description="Inclusive window end"),
    monthly: bool = Query(False, description="Bucket periods by month instead of by day"),
    reports: FinancialReportUseCases = Depends(get_report_use_cases),
):
    """
    Revenue, outstanding debt, expenses and profit for the window.

    - revenue: payments received plus instant-sale takings
    - profit: order margins (price - purchase cost - shipping) plus instant-sale profit
    - net profit: profit - expenses
    """
    return FinancialSummaryDTO.from_domain(reports.financial_summary(start, end, monthly))
