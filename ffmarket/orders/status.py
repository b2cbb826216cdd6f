"""Order lifecycle. The only legal moves are out of ``pending``."""

from enum import Enum
from typing import Dict, Tuple


class OrderStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class PaymentEvent(str, Enum):
    """Outcome reported by the payment provider, named as the provider names it."""

    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class TransitionRejected(Exception):
    def __init__(self, current: str, event: str):
        super().__init__(f"illegal transition: {current} on {event}")
        self.current = current
        self.event = event


TRANSITIONS: Dict[Tuple[OrderStatus, PaymentEvent], OrderStatus] = {
    (OrderStatus.PENDING, PaymentEvent.COMPLETED): OrderStatus.COMPLETED,
    (OrderStatus.PENDING, PaymentEvent.FAILED): OrderStatus.CANCELLED,
}

PAYMENT_STATUS_FOR = {
    OrderStatus.PENDING: PaymentStatus.PENDING,
    OrderStatus.COMPLETED: PaymentStatus.COMPLETED,
    OrderStatus.CANCELLED: PaymentStatus.FAILED,
}


def apply_transition(current, event) -> OrderStatus:
    """Return the status reached from ``current`` on ``event``.

    Raises TransitionRejected for anything but pending -> completed and
    pending -> cancelled, including unknown status values.
    """
    try:
        key = (OrderStatus(current), PaymentEvent(event))
    except ValueError:
        raise TransitionRejected(str(current), str(event))
    nxt = TRANSITIONS.get(key)
    if nxt is None:
        raise TransitionRejected(key[0].value, key[1].value)
    return nxt


def payment_status_for(status) -> PaymentStatus:
    return PAYMENT_STATUS_FOR[OrderStatus(status)]
