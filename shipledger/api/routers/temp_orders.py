"""
API Routers - bulk invoices (temp orders) and their sub-orders.
"""

from fastapi import APIRouter, Depends, status

from shipledger.api.dependencies import get_custody_use_cases, get_temp_order_use_cases
from shipledger.application.dto.ledger_dto import (
    DeliveryDTO,
    MergeSubOrderDTO,
    MergeTempOrderDTO,
    OrderResponseDTO,
    StatusChangeDTO,
    SubOrderAssignDTO,
    SubOrderPaymentDTO,
    TempOrderAggregateDTO,
    TempOrderCreateDTO,
    TempOrderResponseDTO,
)
from shipledger.application.use_cases import CustodyUseCases, TempOrderUseCases

router = APIRouter(prefix="/temp-orders", tags=["Bulk invoices"])


@router.post("", response_model=TempOrderResponseDTO, status_code=status.HTTP_201_CREATED)
def create_temp_order(
    dto: TempOrderCreateDTO,
    temp_orders: TempOrderUseCases = Depends(get_temp_order_use_cases),
):
    return TempOrderResponseDTO.from_domain(temp_orders.create_temp_order(dto.to_entity()))


@router.get("/aggregate", response_model=TempOrderAggregateDTO)
def get_aggregate(temp_orders: TempOrderUseCases = Depends(get_temp_order_use_cases)):
    """Totals over active bulk invoices; cancelled and merged ones are left out."""
    return TempOrderAggregateDTO.from_domain(temp_orders.aggregate())


@router.get("/{temp_order_id}", response_model=TempOrderResponseDTO)
def get_temp_order(temp_order_id: str, temp_orders: TempOrderUseCases = Depends(get_temp_order_use_cases)):
    return TempOrderResponseDTO.from_domain(temp_orders.get_temp_order(temp_order_id))


@router.post("/{temp_order_id}/merge", response_model=OrderResponseDTO, status_code=status.HTTP_201_CREATED)
def merge_temp_order(
    temp_order_id: str,
    dto: MergeTempOrderDTO,
    temp_orders: TempOrderUseCases = Depends(get_temp_order_use_cases),
):
    """
    Convert the bulk invoice into one canonical order.

    Amounts already paid on the sub-orders become the order's down payment.
    A second merge is rejected with 409.
    """
    order = temp_orders.merge_temp_order(temp_order_id, dto.user_id, dto.exchange_rate, dto.invoice_number)
    return OrderResponseDTO.from_domain(order)


@router.post(
    "/{temp_order_id}/sub-orders/{sub_order_id}/merge",
    response_model=OrderResponseDTO,
    status_code=status.HTTP_201_CREATED,
)
def merge_sub_order(
    temp_order_id: str,
    sub_order_id: str,
    dto: MergeSubOrderDTO,
    temp_orders: TempOrderUseCases = Depends(get_temp_order_use_cases),
):
    order = temp_orders.merge_sub_order(
        temp_order_id, sub_order_id, dto.user_id, dto.exchange_rate, dto.invoice_number
    )
    return OrderResponseDTO.from_domain(order)


@router.post("/{temp_order_id}/sub-orders/{sub_order_id}/payments", response_model=TempOrderResponseDTO)
def record_sub_order_payment(
    temp_order_id: str,
    sub_order_id: str,
    dto: SubOrderPaymentDTO,
    temp_orders: TempOrderUseCases = Depends(get_temp_order_use_cases),
):
    temp_order = temp_orders.record_sub_order_payment(
        temp_order_id, sub_order_id, dto.amount, dto.account_type, dto.notes
    )
    return TempOrderResponseDTO.from_domain(temp_order)


@router.post("/{temp_order_id}/sub-orders/{sub_order_id}/status", response_model=TempOrderResponseDTO)
def change_sub_order_status(
    temp_order_id: str,
    sub_order_id: str,
    dto: StatusChangeDTO,
    temp_orders: TempOrderUseCases = Depends(get_temp_order_use_cases),
):
    temp_order = temp_orders.change_sub_order_status(
        temp_order_id, sub_order_id, dto.status, dto.override, dto.actor, dto.reason
    )
    return TempOrderResponseDTO.from_domain(temp_order)


@router.post("/{temp_order_id}/sub-orders/{sub_order_id}/assign", response_model=TempOrderResponseDTO)
def assign_sub_order(
    temp_order_id: str,
    sub_order_id: str,
    dto: SubOrderAssignDTO,
    temp_orders: TempOrderUseCases = Depends(get_temp_order_use_cases),
):
    temp_order = temp_orders.assign_sub_order_representative(
        temp_order_id, sub_order_id, dto.representative_id
    )
    return TempOrderResponseDTO.from_domain(temp_order)


@router.post("/{temp_order_id}/sub-orders/{sub_order_id}/deliver", response_model=TempOrderResponseDTO)
def deliver_sub_order(
    temp_order_id: str,
    sub_order_id: str,
    dto: DeliveryDTO,
    custody: CustodyUseCases = Depends(get_custody_use_cases),
):
    """Representative delivers one sub-order and books the cash collected."""
    temp_order = custody.deliver_sub_order(
        temp_order_id,
        sub_order_id,
        dto.representative_id,
        dto.collected_amount,
        dto.account_type,
        dto.delivery_date,
    )
    return TempOrderResponseDTO.from_domain(temp_order)
