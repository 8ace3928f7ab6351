"""
Order lifecycle state machine.

Transition rules:
- pending → processed → ready → shipped
- shipped → arrived_dubai | arrived_benghazi | arrived_tobruk
- arrived_* → out_for_delivery → delivered
- any non-terminal state → cancelled
- delivered, cancelled: terminal

An administrative override skips validation and is logged separately.
"""

import logging

from .errors import IllegalTransition
from .value_objects import DepositStatus, OrderStatus

logger = logging.getLogger(__name__)

ORDER_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.PROCESSED}),
    OrderStatus.PROCESSED: frozenset({OrderStatus.READY}),
    OrderStatus.READY: frozenset({OrderStatus.SHIPPED}),
    OrderStatus.SHIPPED: frozenset({
        OrderStatus.ARRIVED_DUBAI,
        OrderStatus.ARRIVED_BENGHAZI,
        OrderStatus.ARRIVED_TOBRUK,
    }),
    OrderStatus.ARRIVED_DUBAI: frozenset({OrderStatus.OUT_FOR_DELIVERY}),
    OrderStatus.ARRIVED_BENGHAZI: frozenset({OrderStatus.OUT_FOR_DELIVERY}),
    OrderStatus.ARRIVED_TOBRUK: frozenset({OrderStatus.OUT_FOR_DELIVERY}),
    OrderStatus.OUT_FOR_DELIVERY: frozenset({OrderStatus.DELIVERED}),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}

TERMINAL_ORDER_STATES = frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED})

DEPOSIT_TRANSITIONS: dict[DepositStatus, frozenset[DepositStatus]] = {
    DepositStatus.PENDING: frozenset({DepositStatus.COLLECTED, DepositStatus.CANCELLED}),
    DepositStatus.COLLECTED: frozenset(),
    DepositStatus.CANCELLED: frozenset(),
}


def is_terminal(status: OrderStatus) -> bool:
    return status in TERMINAL_ORDER_STATES


def allowed_targets(status: OrderStatus) -> frozenset[OrderStatus]:
    targets = ORDER_TRANSITIONS[status]
    if not is_terminal(status):
        targets = targets | {OrderStatus.CANCELLED}
    return targets


def can_transition(current: OrderStatus, target: OrderStatus) -> bool:
    return target in allowed_targets(current)


def validate_transition(
    current: OrderStatus | str,
    target: OrderStatus | str,
    override: bool = False,
    entity: str = "order",
    entity_id: str = "",
) -> bool:
    """
    Check an order status change.

    Returns False for a same-status write (nothing to do), True when the
    change should be applied. Raises IllegalTransition otherwise.
    """
    current = OrderStatus(current)
    target = OrderStatus(target)

    if current == target:
        logger.debug("%s %s already %s, nothing to do", entity, entity_id, target.value)
        return False

    if not can_transition(current, target):
        if not override:
            raise IllegalTransition(entity, current.value, target.value)
        logger.warning(
            "ADMIN OVERRIDE: %s %s forced %s -> %s",
            entity, entity_id, current.value, target.value,
        )
        return True

    logger.info("%s %s: %s -> %s", entity, entity_id, current.value, target.value)
    return True


def validate_deposit_transition(current: DepositStatus | str, target: DepositStatus | str) -> None:
    current = DepositStatus(current)
    target = DepositStatus(target)
    if target not in DEPOSIT_TRANSITIONS[current]:
        raise IllegalTransition("deposit", current.value, target.value)
