"""
API Routers - earnest money (deposits).
"""

from fastapi import APIRouter, Depends, status

from shipledger.api.dependencies import get_deposit_use_cases
from shipledger.application.dto.ledger_dto import (
    DepositCollectDTO,
    DepositCreateDTO,
    DepositResponseDTO,
)
from shipledger.application.use_cases import DepositUseCases

router = APIRouter(prefix="/deposits", tags=["Deposits"])


@router.post("", response_model=DepositResponseDTO, status_code=status.HTTP_201_CREATED)
def create_deposit(dto: DepositCreateDTO, deposits: DepositUseCases = Depends(get_deposit_use_cases)):
    return DepositResponseDTO.from_domain(deposits.create_deposit(dto.to_entity()))


@router.post("/{deposit_id}/collect", response_model=DepositResponseDTO)
def collect_deposit(
    deposit_id: str,
    dto: DepositCollectDTO,
    deposits: DepositUseCases = Depends(get_deposit_use_cases),
):
    """pending -> collected. Collected and cancelled deposits are final."""
    deposit = deposits.collect_deposit(deposit_id, dto.collected_by, dto.representative_id, dto.collected_date)
    return DepositResponseDTO.from_domain(deposit)


@router.post("/{deposit_id}/cancel", response_model=DepositResponseDTO)
def cancel_deposit(deposit_id: str, deposits: DepositUseCases = Depends(get_deposit_use_cases)):
    return DepositResponseDTO.from_domain(deposits.cancel_deposit(deposit_id))
