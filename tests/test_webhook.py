from conftest import WEBHOOK_SECRET, insert_order, load_order, load_product, post_webhook
from ffmarket.payments.signature import SIGNATURE_HEADER, sign_payload


def completed(order_id="o1", invoice_id="inv-1", transaction_id="TXN-9"):
    return {
        "status": "COMPLETED",
        "invoiceId": invoice_id,
        "transaction_id": transaction_id,
        "metadata": {"order_id": order_id, "product_id": "p1"},
    }


def failed(order_id="o1", invoice_id="inv-1"):
    return {"status": "FAILED", "invoiceId": invoice_id, "metadata": {"order_id": order_id, "product_id": "p1"}}


async def test_completed_webhook_completes_order_and_sells_product(client, db, product, publisher):
    await insert_order(db)
    resp = await post_webhook(client, completed())
    assert resp.status_code == 200
    assert await resp.get_json() == {"success": True, "message": "Webhook processed"}

    order = await load_order(db, "o1")
    assert order.status == "completed"
    assert order.payment_status == "completed"
    assert order.transaction_id == "TXN-9"
    assert (await load_product(db, "p1")).status == "sold"
    assert publisher.events == [
        {"order_id": "o1", "product_id": "p1", "status": "completed", "payment_status": "completed"}
    ]


async def test_completed_webhook_without_transaction_id_uses_invoice(client, db, product):
    await insert_order(db)
    payload = completed()
    payload.pop("transaction_id")
    await post_webhook(client, payload)
    assert (await load_order(db, "o1")).transaction_id == "inv-1"


async def test_failed_webhook_cancels_order_and_keeps_product(client, db, product, publisher):
    await insert_order(db)
    resp = await post_webhook(client, failed())
    assert resp.status_code == 200

    order = await load_order(db, "o1")
    assert order.status == "cancelled"
    assert order.payment_status == "failed"
    assert (await load_product(db, "p1")).status == "active"
    assert [e["status"] for e in publisher.events] == ["cancelled"]


async def test_redelivered_completed_webhook_is_idempotent(client, db, product, publisher):
    await insert_order(db)
    await post_webhook(client, completed())
    first = await load_order(db, "o1")
    resp = await post_webhook(client, completed())
    assert resp.status_code == 200

    second = await load_order(db, "o1")
    assert (second.status, second.payment_status, second.transaction_id) == (
        first.status,
        first.payment_status,
        first.transaction_id,
    )
    assert (await load_product(db, "p1")).status == "sold"
    assert len(publisher.events) == 1


async def test_failed_after_completed_does_not_move_order_back(client, db, product):
    await insert_order(db)
    await post_webhook(client, completed())
    await post_webhook(client, failed())
    order = await load_order(db, "o1")
    assert order.status == "completed"
    assert order.payment_status == "completed"


async def test_bad_signature_is_rejected_without_changes(client, db, product, publisher):
    await insert_order(db)
    resp = await post_webhook(client, completed(), signature="deadbeef")
    assert resp.status_code == 401
    assert (await load_order(db, "o1")).status == "pending"
    assert (await load_product(db, "p1")).status == "active"
    assert publisher.events == []


async def test_unsigned_webhook_is_rejected(client, db, product):
    await insert_order(db)
    resp = await post_webhook(client, completed(), secret=None)
    assert resp.status_code == 401
    assert (await load_order(db, "o1")).status == "pending"


async def test_webhook_signed_with_other_secret_is_rejected(client, db, product):
    await insert_order(db)
    resp = await post_webhook(client, completed(), secret="someone-else")
    assert resp.status_code == 401
    assert (await load_order(db, "o1")).status == "pending"


async def test_invoice_mismatch_is_ignored(client, db, product):
    await insert_order(db, invoice_id="inv-1")
    resp = await post_webhook(client, completed(invoice_id="inv-other"))
    assert resp.status_code == 200
    assert (await load_order(db, "o1")).status == "pending"
    assert (await load_product(db, "p1")).status == "active"


async def test_unknown_order_still_acknowledged(client, db, product):
    resp = await post_webhook(client, completed(order_id="nope"))
    assert resp.status_code == 200
    assert (await resp.get_json())["success"] is True


async def test_other_statuses_are_ignored(client, db, product):
    await insert_order(db)
    payload = completed()
    payload["status"] = "PENDING"
    resp = await post_webhook(client, payload)
    assert resp.status_code == 200
    assert (await load_order(db, "o1")).status == "pending"


async def test_malformed_body_is_acknowledged(client, db):
    body = b"not json"
    resp = await client.post(
        "/api/payment/webhook",
        data=body,
        headers={SIGNATURE_HEADER: sign_payload(WEBHOOK_SECRET, body)},
    )
    assert resp.status_code == 200
