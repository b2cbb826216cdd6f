import asyncio
import logging

import sqlalchemy as sa

from .common.config import Settings
from .common.database import Database
from .products.model import Product, ProductStatus

_logger = logging.getLogger(__name__)

DEMO_SELLER_ID = "demo-seller"

SAMPLE_PRODUCTS = [
    {"title": "Level 72 account, Elite Pass S1-S12", "price": 4500.0},
    {"title": "Level 65 account, 30 evo guns", "price": 3200.0},
    {"title": "Level 58 account, rare bundles", "price": 2500.0},
    {"title": "Level 45 starter account", "price": 900.0},
    {"title": "Level 80 account, Heroic rank", "price": 7800.0},
]


async def seed_products(db: Database) -> int:
    await db.init()
    added = 0
    async with db.session() as session:
        for p in SAMPLE_PRODUCTS:
            # avoid duplicates by title
            res = await session.execute(sa.select(Product.id).where(Product.title == p["title"]))
            if res.first():
                continue
            session.add(
                Product(
                    seller_id=DEMO_SELLER_ID,
                    title=p["title"],
                    price=p["price"],
                    status=ProductStatus.ACTIVE.value,
                )
            )
            added += 1
        if added:
            await session.commit()
    _logger.info("Seed complete. Added %s products.", added)
    return added


async def amain():
    settings = Settings.from_env()
    db = Database(settings.DB_URL)
    try:
        await seed_products(db)
    finally:
        await db.close()


def main() -> None:
    logging.basicConfig(level=logging.INFO)
    asyncio.run(amain())


if __name__ == "__main__":
    main()
