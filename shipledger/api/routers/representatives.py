"""
API Routers - delivery representatives and their custody.
"""

from datetime import datetime

from fastapi import APIRouter, Depends, Query, status

from shipledger.api.dependencies import get_custody_use_cases, get_customer_use_cases
from shipledger.application.dto.ledger_dto import (
    CustodyItemDTO,
    CustodySummaryDTO,
    FinancialLogDTO,
    RepresentativeCreateDTO,
    RepresentativeResponseDTO,
)
from shipledger.application.use_cases import CustodyUseCases, CustomerUseCases
from shipledger.domain.value_objects import CustodyFilter

router = APIRouter(prefix="/representatives", tags=["Representatives"])


@router.post("", response_model=RepresentativeResponseDTO, status_code=status.HTTP_201_CREATED)
def register_representative(
    dto: RepresentativeCreateDTO,
    customers: CustomerUseCases = Depends(get_customer_use_cases),
):
    return RepresentativeResponseDTO.from_domain(customers.register_representative(dto.to_entity()))


@router.get("/{rep_id}", response_model=RepresentativeResponseDTO)
def get_representative(rep_id: str, custody: CustodyUseCases = Depends(get_custody_use_cases)):
    return RepresentativeResponseDTO.from_domain(custody.get_representative(rep_id))


@router.get("/{rep_id}/custody", response_model=CustodySummaryDTO)
def get_custody_summary(rep_id: str, custody: CustodyUseCases = Depends(get_custody_use_cases)):
    """
    Money the representative must collect (out-for-delivery orders plus open
    bulk sub-orders) and money already collected on delivered orders.
    """
    return CustodySummaryDTO.from_domain(custody.summary(rep_id))


@router.get("/{rep_id}/custody/items", response_model=list[CustodyItemDTO])
def get_custody_items(
    rep_id: str,
    filter: CustodyFilter = Query(CustodyFilter.ALL, description="all, regular or temp"),
    custody: CustodyUseCases = Depends(get_custody_use_cases),
):
    return [CustodyItemDTO.from_domain(item) for item in custody.items(rep_id, filter)]


@router.get("/{rep_id}/financial-log", response_model=FinancialLogDTO)
def get_financial_log(
    rep_id: str,
    start: datetime | None = Query(None, description="Inclusive window start"),
    end: datetime | None = Query(None, description="Inclusive window end"),
    custody: CustodyUseCases = Depends(get_custody_use_cases),
):
    """Delivered orders and collected deposits, newest first."""
    return FinancialLogDTO.from_domain(custody.financial_log(rep_id, start, end))
