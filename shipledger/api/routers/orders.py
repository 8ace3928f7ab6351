"""
API Routers - order lifecycle and payments.
"""

from fastapi import APIRouter, Depends, status

from shipledger.api.dependencies import get_order_use_cases, get_settings_use_cases
from shipledger.application.dto.ledger_dto import (
    AssignRepresentativeDTO,
    DeliveryDTO,
    OrderCreateDTO,
    OrderResponseDTO,
    PaymentCreateDTO,
    PaymentResultDTO,
    StatusChangeDTO,
    TransactionResponseDTO,
)
from shipledger.application.use_cases import (
    OrderUseCases,
    SettingsUseCases,
    generate_invoice_number,
    generate_tracking_id,
)
from shipledger.domain.value_objects import RateChannel

router = APIRouter(prefix="/orders", tags=["Orders"])


@router.post("", response_model=OrderResponseDTO, status_code=status.HTTP_201_CREATED)
def create_order(
    dto: OrderCreateDTO,
    orders: OrderUseCases = Depends(get_order_use_cases),
    settings: SettingsUseCases = Depends(get_settings_use_cases),
):
    """
    Create an order.

    - The exchange rate is frozen on the order; the live base rate is used when omitted
    - A down payment is booked as the first payment transaction
    """
    rate = dto.exchange_rate or settings.rate(RateChannel.BASE).rate
    order = dto.to_entity(generate_invoice_number(), generate_tracking_id(), rate)
    return OrderResponseDTO.from_domain(orders.create_order(order))


@router.get("/{order_id}", response_model=OrderResponseDTO)
def get_order(order_id: str, orders: OrderUseCases = Depends(get_order_use_cases)):
    """Order with its remaining amount recomputed from the ledger."""
    return OrderResponseDTO.from_domain(orders.get_order(order_id))


@router.get("/{order_id}/transactions", response_model=list[TransactionResponseDTO])
def get_order_transactions(order_id: str, orders: OrderUseCases = Depends(get_order_use_cases)):
    return [TransactionResponseDTO.from_domain(tx) for tx in orders.get_transactions(order_id)]


@router.post("/{order_id}/payments", response_model=PaymentResultDTO, status_code=status.HTTP_201_CREATED)
def record_payment(
    order_id: str,
    dto: PaymentCreateDTO,
    orders: OrderUseCases = Depends(get_order_use_cases),
):
    """
    Record a payment.

    Rejected with 409 when it exceeds the remaining amount or the order is
    cancelled or already settled.
    """
    order, transaction = orders.record_payment(order_id, dto.amount, dto.description, dto.date)
    return PaymentResultDTO(
        order=OrderResponseDTO.from_domain(order),
        transaction=TransactionResponseDTO.from_domain(transaction),
    )


@router.post("/{order_id}/status", response_model=OrderResponseDTO)
def change_status(
    order_id: str,
    dto: StatusChangeDTO,
    orders: OrderUseCases = Depends(get_order_use_cases),
):
    """Move the order through its lifecycle. override=true forces the change and is audited."""
    order = orders.change_status(order_id, dto.status, dto.override, dto.actor, dto.reason)
    return OrderResponseDTO.from_domain(order)


@router.post("/{order_id}/assign", response_model=OrderResponseDTO)
def assign_representative(
    order_id: str,
    dto: AssignRepresentativeDTO,
    orders: OrderUseCases = Depends(get_order_use_cases),
):
    return OrderResponseDTO.from_domain(orders.assign_representative(order_id, dto.representative_id))


@router.post("/{order_id}/deliver", response_model=OrderResponseDTO)
def deliver_order(
    order_id: str,
    dto: DeliveryDTO,
    orders: OrderUseCases = Depends(get_order_use_cases),
):
    """Confirm delivery and book the cash collected by the representative."""
    order = orders.deliver_order(order_id, dto.representative_id, dto.collected_amount, dto.delivery_date)
    return OrderResponseDTO.from_domain(order)
