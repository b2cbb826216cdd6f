import json
import logging
import math
from typing import Any, Dict

from quart import Blueprint, current_app, jsonify, request

from ..common.errors import ConfigurationError, MarketError, NotFoundError, UpstreamError, ValidationError
from ..orders.service import attach_invoice, create_pending_order, find_order_id_by_invoice
from ..orders.status import PaymentEvent
from .reconciler import reconcile
from .signature import SIGNATURE_HEADER, verify_signature

_logger = logging.getLogger(__name__)

bp = Blueprint("payments", __name__, url_prefix="/api/payment")

REQUIRED_INITIATE_FIELDS = ("product_id", "amount", "customer_email", "customer_name", "user_id")


def _components():
    return current_app.extensions["market"]


def _error(e: MarketError):
    return jsonify({"success": False, "error": str(e)}), e.status_code


def _parse_amount(value: Any) -> float:
    if isinstance(value, bool):
        raise ValidationError("amount must be a number")
    try:
        amount = float(value)
    except (TypeError, ValueError):
        raise ValidationError("amount must be a number")
    if not math.isfinite(amount):
        raise ValidationError("amount must be a number")
    if amount <= 0:
        raise ValidationError("amount must be greater than zero")
    return amount


def _format_amount(amount: float) -> str:
    return str(int(amount)) if amount.is_integer() else str(amount)


def _validate_initiate(data: Dict[str, Any]) -> float:
    missing = [k for k in REQUIRED_INITIATE_FIELDS if data.get(k) in (None, "")]
    if missing:
        raise ValidationError("Missing required fields: " + ", ".join(missing))
    return _parse_amount(data["amount"])


@bp.get("/test")
async def payment_test():
    c = _components()
    db_ok = await c.database.ping()
    return jsonify(
        {
            "success": True,
            "message": "ZiniPay payment routes are working",
            "config": {
                "has_api_key": bool(c.settings.ZINIPAY_API_KEY),
                "has_webhook_secret": bool(c.settings.ZINIPAY_WEBHOOK_SECRET),
                "frontend_url": c.settings.FRONTEND_URL,
                "backend_url": c.settings.BACKEND_URL,
            },
            "database": "connected" if db_ok else "disconnected",
        }
    )


@bp.post("/initiate")
async def payment_initiate():
    c = _components()
    data = await request.get_json(silent=True) or {}
    _logger.info("Initiating payment | product_id=%s user_id=%s", data.get("product_id"), data.get("user_id"))

    try:
        amount = _validate_initiate(data)
        if not c.settings.ZINIPAY_API_KEY:
            raise ConfigurationError("ZiniPay API key not configured. Please set ZINIPAY_API_KEY")

        # Persist first: a failed provider call leaves a pending order, never an unrecorded charge
        order = await create_pending_order(
            c.database,
            product_id=str(data["product_id"]),
            amount=amount,
            buyer_id=str(data["user_id"]),
            customer_name=data["customer_name"],
            customer_email=data["customer_email"],
            customer_phone=data.get("customer_phone"),
            default_phone=c.settings.DEFAULT_CONTACT_PHONE,
        )
        order_id = order["id"]

        payment = {
            "cus_name": data["customer_name"],
            "cus_email": data["customer_email"],
            "amount": _format_amount(amount),
            "redirect_url": c.settings.redirect_url,
            "cancel_url": c.settings.cancel_url,
            "webhook_url": c.settings.webhook_url,
            "metadata": {
                "phone": data.get("customer_phone") or "",
                "order_id": order_id,
                "product_id": str(data["product_id"]),
                "user_id": str(data["user_id"]),
            },
        }
        try:
            resp = await c.provider.create_payment(payment)
        except UpstreamError as e:
            _logger.error("Payment initiation failed at provider | order_id=%s err=%s", order_id, e)
            raise UpstreamError("Failed to initiate payment with the payment provider") from e

        invoice_id = resp.get("invoiceId")
        if invoice_id:
            await attach_invoice(c.database, order_id, invoice_id)
    except MarketError as e:
        _logger.error("Payment initiation error: %s: %s", type(e).__name__, e)
        return _error(e)

    return jsonify(
        {
            "success": True,
            "payment_url": resp["payment_url"],
            "order_id": order_id,
            "invoice_id": invoice_id,
        }
    )


@bp.post("/verify")
async def payment_verify():
    c = _components()
    data = await request.get_json(silent=True) or {}
    invoice_id = data.get("invoiceId")
    if not invoice_id:
        return jsonify({"success": False, "error": "Invoice ID is required"}), 400

    _logger.info("Verifying payment | invoice_id=%s", invoice_id)
    try:
        result = await c.provider.verify_payment(invoice_id)
        if str(result.get("status", "")).upper() != PaymentEvent.COMPLETED.value:
            return jsonify({"success": False, "message": "Payment not completed", "data": result})

        metadata = result.get("metadata") or {}
        order_id = metadata.get("order_id") or await find_order_id_by_invoice(c.database, invoice_id)
        if order_id:
            try:
                await reconcile(
                    c.database,
                    c.publisher,
                    str(order_id),
                    PaymentEvent.COMPLETED,
                    transaction_id=result.get("transaction_id") or invoice_id,
                    invoice_id=invoice_id,
                    source="verify",
                )
            except NotFoundError:
                _logger.warning("Verified invoice has no order | invoice_id=%s order_id=%s", invoice_id, order_id)
        else:
            _logger.warning("Verified invoice has no order | invoice_id=%s", invoice_id)
    except MarketError as e:
        _logger.error("Verification error | invoice_id=%s %s: %s", invoice_id, type(e).__name__, e)
        return _error(e)

    return jsonify({"success": True, "data": result})


@bp.post("/webhook")
async def payment_webhook():
    c = _components()
    body = await request.get_data()
    signature = request.headers.get(SIGNATURE_HEADER)

    if not c.settings.ZINIPAY_WEBHOOK_SECRET:
        _logger.error("Webhook rejected: ZINIPAY_WEBHOOK_SECRET is not configured")
        return jsonify({"success": False, "error": "Webhook verification not configured"}), 401
    if not verify_signature(c.settings.ZINIPAY_WEBHOOK_SECRET, body, signature):
        _logger.warning("Webhook rejected: bad signature | remote=%s", request.remote_addr)
        return jsonify({"success": False, "error": "Invalid signature"}), 401

    # From here on the provider always gets a 200 so it does not retry forever
    try:
        payload = json.loads(body or b"{}")
        if not isinstance(payload, dict):
            raise ValueError("payload is not an object")
        status = str(payload.get("status") or "").upper()
        invoice_id = payload.get("invoiceId")
        metadata = payload.get("metadata") or {}
        order_id = metadata.get("order_id")
        _logger.info("Webhook received | status=%s invoice_id=%s order_id=%s", status, invoice_id, order_id)

        if order_id and status == PaymentEvent.COMPLETED.value:
            await reconcile(
                c.database,
                c.publisher,
                str(order_id),
                PaymentEvent.COMPLETED,
                transaction_id=payload.get("transaction_id") or invoice_id,
                invoice_id=invoice_id,
                source="webhook",
            )
        elif order_id and status == PaymentEvent.FAILED.value:
            await reconcile(
                c.database,
                c.publisher,
                str(order_id),
                PaymentEvent.FAILED,
                invoice_id=invoice_id,
                source="webhook",
            )
        else:
            _logger.info("Webhook ignored | status=%s order_id=%s", status, order_id)
    except (MarketError, ValueError, AttributeError) as e:
        _logger.error("Webhook processing error: %s: %s", type(e).__name__, e)

    return jsonify({"success": True, "message": "Webhook processed"})
