from quart import Blueprint, current_app, jsonify, request

from .service import get_order, get_orders_for_buyer

bp = Blueprint("orders", __name__, url_prefix="/api/orders")


@bp.get("")
async def orders_list():
    buyer_id = request.args.get("buyer_id", "").strip()
    if not buyer_id:
        return jsonify({"success": False, "error": "buyer_id is required"}), 400
    db = current_app.extensions["market"].database
    limit = min(max(request.args.get("limit", 50, type=int), 1), 100)
    items = await get_orders_for_buyer(db, buyer_id, limit=limit)
    return jsonify({"success": True, "orders": items})


@bp.get("/<order_id>")
async def order_status(order_id: str):
    db = current_app.extensions["market"].database
    order = await get_order(db, order_id)
    return jsonify({"success": True, "order": order})
