import json

import pytest
import sqlalchemy as sa

from ffmarket.app import create_app
from ffmarket.common.config import Settings
from ffmarket.common.database import Database
from ffmarket.common.errors import UpstreamError
from ffmarket.orders.model import Order
from ffmarket.payments.signature import SIGNATURE_HEADER, sign_payload
from ffmarket.products.model import Product, ProductStatus

WEBHOOK_SECRET = "whsec_test"


class FakeZiniPay:
    """Stands in for ZiniPayClient; records every call."""

    def __init__(self):
        self.created = []
        self.verified = []
        self.create_response = {
            "status": True,
            "payment_url": "https://secure.zinipay.test/pay/inv-1",
            "invoiceId": "inv-1",
        }
        self.verify_response = {"status": "PENDING"}
        self.create_error = None
        self.verify_error = None
        self.before_create = None
        self.closed = False

    async def create_payment(self, payment):
        if self.before_create is not None:
            await self.before_create(payment)
        self.created.append(payment)
        if self.create_error is not None:
            raise self.create_error
        return dict(self.create_response)

    async def verify_payment(self, invoice_id):
        self.verified.append(invoice_id)
        if self.verify_error is not None:
            raise self.verify_error
        return dict(self.verify_response)

    async def close(self):
        self.closed = True


class RecordingPublisher:
    connector = None
    channel = "order-updates"
    enabled = False

    def __init__(self):
        self.events = []

    async def publish(self, event):
        self.events.append(event)

    async def close(self):
        pass


@pytest.fixture
def settings():
    return Settings(
        APP_ENV="development",
        DB_URL="sqlite+aiosqlite:///:memory:",
        ZINIPAY_API_KEY="zini-test-key",
        ZINIPAY_WEBHOOK_SECRET=WEBHOOK_SECRET,
        FRONTEND_URL="http://shop.test",
        BACKEND_URL="http://api.shop.test",
    )


@pytest.fixture
async def db(settings):
    database = Database(settings.DB_URL)
    await database.init()
    yield database
    await database.close()


@pytest.fixture
async def product(db):
    async with db.session() as session:
        session.add(
            Product(
                id="p1",
                seller_id="seller-1",
                title="Level 60 account",
                price=2500.0,
                status=ProductStatus.ACTIVE.value,
            )
        )
        await session.commit()
    return "p1"


@pytest.fixture
def provider():
    return FakeZiniPay()


@pytest.fixture
def publisher():
    return RecordingPublisher()


@pytest.fixture
def app(settings, db, provider, publisher):
    return create_app(settings, database=db, provider=provider, publisher=publisher)


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def initiate_body(product):
    return {
        "product_id": product,
        "amount": 2500,
        "customer_email": "a@b.com",
        "customer_name": "A",
        "customer_phone": "01811111111",
        "user_id": "u1",
    }


async def insert_order(db, order_id="o1", product_id="p1", invoice_id="inv-1", status="pending", buyer_id="u1"):
    payment_status = {"pending": "pending", "completed": "completed", "cancelled": "failed"}[status]
    async with db.session() as session:
        session.add(
            Order(
                id=order_id,
                product_id=product_id,
                buyer_id=buyer_id,
                seller_id="seller-1",
                product_title="Level 60 account",
                product_price=2500.0,
                total_price=2500.0,
                buyer_name="A",
                buyer_email="a@b.com",
                buyer_phone="01811111111",
                buyer_whatsapp="01811111111",
                status=status,
                payment_status=payment_status,
                invoice_id=invoice_id,
            )
        )
        await session.commit()
    return order_id


async def load_order(db, order_id):
    async with db.session() as session:
        return await session.get(Order, order_id)


async def load_product(db, product_id):
    async with db.session() as session:
        return await session.get(Product, product_id)


async def count_orders(db):
    async with db.session() as session:
        res = await session.execute(sa.select(sa.func.count(Order.id)))
        return int(res.scalar() or 0)


async def post_webhook(client, payload, secret=WEBHOOK_SECRET, signature=None):
    body = json.dumps(payload).encode("utf-8")
    headers = {"Content-Type": "application/json"}
    if signature is None and secret:
        signature = sign_payload(secret, body)
    if signature is not None:
        headers[SIGNATURE_HEADER] = signature
    return await client.post("/api/payment/webhook", data=body, headers=headers)


def upstream_error(message="provider down"):
    return UpstreamError(message)
