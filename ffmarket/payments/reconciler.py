"""Applies provider outcomes to orders.

Webhook, verify and any future caller go through ``reconcile`` so the
transition rules in ``orders.status`` are enforced in one place. The order
update and the product "sold" update share one transaction.
"""

import logging
from dataclasses import dataclass
from typing import Optional

import sqlalchemy as sa
from prometheus_client import Counter
from sqlalchemy.exc import SQLAlchemyError

from ..common.database import Database
from ..common.errors import NotFoundError, StorageError
from ..orders.model import Order
from ..orders.status import PaymentEvent, TransitionRejected, apply_transition, payment_status_for
from ..products.model import Product, ProductStatus
from ..realtime.publisher import OrderEventPublisher

_logger = logging.getLogger(__name__)

PAYMENT_EVENTS = Counter(
    "payment_events_total",
    "Provider outcomes applied to orders",
    ["source", "outcome"],
)


@dataclass
class ReconcileResult:
    order_id: str
    status: str
    payment_status: str
    applied: bool


async def reconcile(
    db: Database,
    publisher: Optional[OrderEventPublisher],
    order_id: str,
    event: PaymentEvent,
    *,
    transaction_id: Optional[str] = None,
    invoice_id: Optional[str] = None,
    source: str = "unknown",
) -> ReconcileResult:
    """Move ``order_id`` along ``event`` and return where it ended up.

    A rejected transition is not an error: the order is left as it is and
    the result has ``applied=False``. When ``invoice_id`` is given it must
    match the invoice stored on the order, otherwise the event is ignored.
    """
    try:
        async with db.session() as session:
            async with session.begin():
                res = await session.execute(sa.select(Order).where(Order.id == order_id).with_for_update())
                order = res.scalar_one_or_none()
                if order is None:
                    raise NotFoundError(f"Order not found: {order_id}")

                if invoice_id and order.invoice_id and order.invoice_id != invoice_id:
                    _logger.warning(
                        "Invoice mismatch, ignoring %s | order_id=%s stored=%s got=%s source=%s",
                        event.value, order_id, order.invoice_id, invoice_id, source,
                    )
                    PAYMENT_EVENTS.labels(source=source, outcome="invoice_mismatch").inc()
                    return ReconcileResult(order.id, order.status, order.payment_status, applied=False)

                try:
                    nxt = apply_transition(order.status, event)
                except TransitionRejected as e:
                    _logger.warning("Transition rejected | order_id=%s source=%s %s", order_id, source, e)
                    PAYMENT_EVENTS.labels(source=source, outcome="rejected").inc()
                    return ReconcileResult(order.id, order.status, order.payment_status, applied=False)

                order.status = nxt.value
                order.payment_status = payment_status_for(nxt).value
                if transaction_id:
                    order.transaction_id = transaction_id
                product_id = order.product_id

                if event is PaymentEvent.COMPLETED:
                    await session.execute(
                        sa.update(Product).where(Product.id == product_id).values(status=ProductStatus.SOLD.value)
                    )
                result = ReconcileResult(order.id, order.status, order.payment_status, applied=True)
    except SQLAlchemyError as e:
        _logger.error("Order reconcile failed | order_id=%s event=%s err=%s", order_id, event.value, e)
        raise StorageError("Failed to update order") from e

    PAYMENT_EVENTS.labels(source=source, outcome=result.status).inc()
    _logger.info(
        "Order status updated | order_id=%s status=%s payment_status=%s source=%s",
        order_id, result.status, result.payment_status, source,
    )
    if publisher is not None:
        await publisher.publish(
            {
                "order_id": order_id,
                "product_id": product_id,
                "status": result.status,
                "payment_status": result.payment_status,
            }
        )
    return result
