import logging
from typing import Any, Dict, List, Optional

import sqlalchemy as sa
from sqlalchemy.exc import SQLAlchemyError

from ..common.database import Database
from ..common.errors import StorageError
from .model import PURCHASABLE_STATUSES, Product

_logger = logging.getLogger(__name__)


def to_product_dict(prod: Product) -> Dict[str, Any]:
    return {
        "id": prod.id,
        "seller_id": prod.seller_id,
        "title": prod.title,
        "price": prod.price,
        "status": prod.status,
        "created_at": prod.created_at.isoformat() if prod.created_at else None,
    }


async def get_product(db: Database, product_id: str) -> Optional[Dict[str, Any]]:
    try:
        async with db.session() as session:
            prod = await session.get(Product, product_id)
    except SQLAlchemyError as e:
        _logger.error("Product load failed | product_id=%s err=%s", product_id, e)
        raise StorageError("Failed to load product") from e
    if prod is None:
        return None
    return to_product_dict(prod)


async def get_products(db: Database, limit: int = 50) -> List[Dict[str, Any]]:
    """Purchasable products, newest first."""
    stmt = (
        sa.select(Product)
        .where(Product.status.in_(PURCHASABLE_STATUSES))
        .order_by(Product.created_at.desc())
        .limit(limit)
    )
    try:
        async with db.session() as session:
            res = await session.execute(stmt)
            items = [to_product_dict(p) for p in res.scalars().all()]
    except SQLAlchemyError as e:
        _logger.error("Product list failed | err=%s", e)
        raise StorageError("Failed to list products") from e
    _logger.debug("DB list products | count=%s", len(items))
    return items


def is_purchasable(status: str) -> bool:
    return status in PURCHASABLE_STATUSES
