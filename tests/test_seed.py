import sqlalchemy as sa

from ffmarket.products.model import Product
from ffmarket.seed import SAMPLE_PRODUCTS, seed_products


async def test_seed_is_idempotent(db):
    assert await seed_products(db) == len(SAMPLE_PRODUCTS)
    assert await seed_products(db) == 0
    async with db.session() as session:
        res = await session.execute(sa.select(Product.status).distinct())
        assert [row[0] for row in res.all()] == ["active"]
