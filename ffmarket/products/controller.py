from quart import Blueprint, current_app, jsonify, request

from .service import get_product, get_products

bp = Blueprint("products", __name__, url_prefix="/api/products")


@bp.get("")
async def products_list():
    db = current_app.extensions["market"].database
    limit = min(max(request.args.get("limit", 50, type=int), 1), 100)
    items = await get_products(db, limit=limit)
    return jsonify({"success": True, "products": items})


@bp.get("/<product_id>")
async def product_detail(product_id: str):
    db = current_app.extensions["market"].database
    prod = await get_product(db, product_id)
    if not prod:
        return jsonify({"success": False, "error": "product_not_found"}), 404
    return jsonify({"success": True, "product": prod})
