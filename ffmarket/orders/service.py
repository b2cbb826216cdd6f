import logging
from typing import Any, Dict, List, Optional

import sqlalchemy as sa
from sqlalchemy.exc import SQLAlchemyError

from ..common.database import Database
from ..common.errors import NotFoundError, StorageError, ValidationError
from ..products.model import Product
from ..products.service import is_purchasable
from .model import Order
from .status import OrderStatus, PaymentStatus

_logger = logging.getLogger(__name__)

# prices are floats; a gap under half a paisa is rounding, not a different price
PRICE_TOLERANCE = 0.005


def to_order_status_dict(order: Order) -> Dict[str, Any]:
    # Contact fields stay out: this is served to unauthenticated pollers
    return {
        "id": order.id,
        "product_id": order.product_id,
        "product_title": order.product_title,
        "total_price": order.total_price,
        "status": order.status,
        "payment_status": order.payment_status,
        "invoice_id": order.invoice_id,
        "transaction_id": order.transaction_id,
        "created_at": order.created_at.isoformat() if order.created_at else None,
        "updated_at": order.updated_at.isoformat() if order.updated_at else None,
    }


async def create_pending_order(
    db: Database,
    *,
    product_id: str,
    amount: float,
    buyer_id: str,
    customer_name: str,
    customer_email: str,
    customer_phone: Optional[str],
    default_phone: str,
) -> Dict[str, Any]:
    """Insert a pending order for ``product_id`` and return it as a dict.

    The seller and title are copied from the product row. Raises
    NotFoundError for an unknown product, ValidationError when the product
    can no longer be bought or ``amount`` is not its price, StorageError
    when the database fails.
    """
    try:
        async with db.session() as session:
            async with session.begin():
                prod = await session.get(Product, product_id)
                if prod is None:
                    raise NotFoundError(f"Product not found: {product_id}")
                if not is_purchasable(prod.status):
                    raise ValidationError(f"Product is not available for purchase (status={prod.status})")
                if abs(float(amount) - float(prod.price)) > PRICE_TOLERANCE:
                    raise ValidationError(f"amount does not match the product price ({prod.price:g})")

                phone = customer_phone or default_phone
                order = Order(
                    product_id=prod.id,
                    buyer_id=buyer_id,
                    seller_id=prod.seller_id,
                    product_title=prod.title or "Game Account",
                    product_price=float(prod.price),
                    total_price=float(amount),
                    buyer_name=customer_name or "Customer",
                    buyer_email=customer_email,
                    buyer_phone=phone,
                    buyer_whatsapp=phone,
                    status=OrderStatus.PENDING.value,
                    payment_status=PaymentStatus.PENDING.value,
                )
                session.add(order)
                await session.flush()  # assign PK
                order_id = order.id
                seller_id = order.seller_id
    except SQLAlchemyError as e:
        _logger.error("Order insert failed | product_id=%s err=%s", product_id, e)
        raise StorageError("Failed to create order") from e

    _logger.info("Order created | order_id=%s product_id=%s buyer_id=%s", order_id, product_id, buyer_id)
    return {"id": order_id, "product_id": product_id, "seller_id": seller_id, "status": OrderStatus.PENDING.value}


async def attach_invoice(db: Database, order_id: str, invoice_id: str) -> None:
    # Only the invoice id: a webhook may already have settled the order
    stmt = sa.update(Order).where(Order.id == order_id).values(invoice_id=invoice_id)
    try:
        async with db.session() as session:
            await session.execute(stmt)
            await session.commit()
    except SQLAlchemyError as e:
        _logger.error("Invoice update failed | order_id=%s invoice_id=%s err=%s", order_id, invoice_id, e)
        raise StorageError("Failed to store invoice id") from e
    _logger.info("Invoice attached | order_id=%s invoice_id=%s", order_id, invoice_id)


async def get_order(db: Database, order_id: str) -> Dict[str, Any]:
    try:
        async with db.session() as session:
            order = await session.get(Order, order_id)
    except SQLAlchemyError as e:
        _logger.error("Order load failed | order_id=%s err=%s", order_id, e)
        raise StorageError("Failed to load order") from e
    if order is None:
        raise NotFoundError(f"Order not found: {order_id}")
    return to_order_status_dict(order)


async def get_orders_for_buyer(db: Database, buyer_id: str, limit: int = 50) -> List[Dict[str, Any]]:
    """Orders placed by ``buyer_id``, newest first."""
    stmt = (
        sa.select(Order)
        .where(Order.buyer_id == buyer_id)
        .order_by(Order.created_at.desc(), Order.id)
        .limit(limit)
    )
    try:
        async with db.session() as session:
            res = await session.execute(stmt)
            items = [to_order_status_dict(o) for o in res.scalars().all()]
    except SQLAlchemyError as e:
        _logger.error("Order list failed | buyer_id=%s err=%s", buyer_id, e)
        raise StorageError("Failed to list orders") from e
    _logger.debug("DB list orders | buyer_id=%s count=%s", buyer_id, len(items))
    return items


async def find_order_id_by_invoice(db: Database, invoice_id: str) -> Optional[str]:
    stmt = sa.select(Order.id).where(Order.invoice_id == invoice_id)
    try:
        async with db.session() as session:
            res = await session.execute(stmt)
            row = res.first()
    except SQLAlchemyError as e:
        _logger.error("Invoice lookup failed | invoice_id=%s err=%s", invoice_id, e)
        raise StorageError("Failed to look up invoice") from e
    return row[0] if row else None
