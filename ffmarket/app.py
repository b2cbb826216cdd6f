import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest
from quart import Quart, g, jsonify, request
from quart_cors import cors
from werkzeug.exceptions import HTTPException

from .common.config import Settings
from .common.database import Database
from .common.errors import MarketError
from .common.redis_client import RedisConnector
from .orders.controller import bp as orders_bp
from .payments.controller import bp as payments_bp
from .payments.provider import ZiniPayClient
from .products.controller import bp as products_bp
from .realtime.controller import bp as realtime_bp
from .realtime.publisher import OrderEventPublisher

log = logging.getLogger(__name__)

# Basic metrics with proper buckets for latency
REQUEST_COUNT = Counter("http_requests_total", "Total HTTP requests", ["method", "endpoint", "status"])
REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["endpoint"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.075, 0.1, 0.25, 0.5, 0.75, 1.0, 2.5, 5.0, 7.5, 10.0, float("inf"))
)


@dataclass
class MarketComponents:
    settings: Settings
    database: Database
    provider: ZiniPayClient
    publisher: Optional[OrderEventPublisher]


def create_app(
    settings: Optional[Settings] = None,
    database: Optional[Database] = None,
    provider=None,
    publisher: Optional[OrderEventPublisher] = None,
) -> Quart:
    """Build the payment server.

    Every collaborator can be passed in; anything left out is built from
    ``settings`` (read from the environment when not given).
    """
    settings = settings or Settings.from_env()
    database = database or Database(settings.DB_URL, echo=settings.DB_ECHO)
    provider = provider or ZiniPayClient(
        settings.ZINIPAY_API_KEY, settings.ZINIPAY_API_URL, timeout=settings.ZINIPAY_TIMEOUT
    )
    if publisher is None:
        connector = RedisConnector(settings.REDIS_URL) if settings.REDIS_URL else None
        publisher = OrderEventPublisher(connector, settings.ORDER_EVENTS_CHANNEL)

    app = Quart(__name__)
    app.extensions["market"] = MarketComponents(
        settings=settings, database=database, provider=provider, publisher=publisher
    )

    if settings.is_dev:
        app = cors(app, allow_origin="*")
    else:
        app = cors(
            app,
            allow_origin=[settings.FRONTEND_URL, "http://localhost:5173"],
            allow_credentials=True,
        )

    # Blueprints
    app.register_blueprint(payments_bp)
    app.register_blueprint(orders_bp)
    app.register_blueprint(products_bp)
    app.register_blueprint(realtime_bp)

    @app.before_request
    async def before_request():
        g.start_time = time.time()
        log.info("%s %s", request.method, request.path)

    @app.after_request
    async def after_request(response):
        try:
            start = getattr(g, "start_time", None)
            if start is not None:
                duration = time.time() - start
                # Route templates keep label cardinality bounded
                endpoint = request.url_rule.rule if request.url_rule else "<unmatched>"
                REQUEST_LATENCY.labels(endpoint=endpoint).observe(duration)
                REQUEST_COUNT.labels(
                    method=request.method,
                    endpoint=endpoint,
                    status=str(response.status_code)
                ).inc()
        except Exception as e:
            log.error(f"Error recording metrics: {e}")
        return response

    @app.errorhandler(MarketError)
    async def handle_market_error(e: MarketError):
        log.error("Request failed | %s %s %s: %s", request.method, request.path, type(e).__name__, e)
        return jsonify({"success": False, "error": str(e)}), e.status_code

    @app.errorhandler(404)
    async def not_found(e):
        return jsonify({"error": "Route not found"}), 404

    @app.errorhandler(Exception)
    async def server_error(e: Exception):
        if isinstance(e, HTTPException):
            return e
        log.exception("Server Error on %s %s", request.method, request.path)
        return jsonify({
            "error": "Internal server error",
            "message": str(e) if settings.is_dev else "Something went wrong",
        }), 500

    @app.get("/metrics")
    async def metrics():
        data = generate_latest()
        return app.response_class(data, mimetype=CONTENT_TYPE_LATEST)

    @app.get("/health")
    async def health():
        db_ok = await database.ping()
        return jsonify({
            "status": "ok",
            "version": settings.APP_VERSION,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "environment": "development" if settings.is_dev else "production",
            "database": "connected" if db_ok else "disconnected",
        })

    @app.get("/")
    async def index():
        return jsonify({
            "message": "Free Fire Market Payment Server",
            "version": settings.APP_VERSION,
            "endpoints": {
                "health": "/health",
                "payment": "/api/payment",
                "orders": "/api/orders",
                "products": "/api/products",
                "events": "/events",
                "metrics": "/metrics",
            },
        })

    @app.before_serving
    async def startup():
        log.info("Initializing database...")
        await database.init()
        log.info("Database ready.")
        log.info(
            "ZiniPay config | has_api_key=%s has_webhook_secret=%s frontend_url=%s backend_url=%s",
            bool(settings.ZINIPAY_API_KEY),
            bool(settings.ZINIPAY_WEBHOOK_SECRET),
            settings.FRONTEND_URL,
            settings.BACKEND_URL,
        )
        if publisher is None or not publisher.enabled:
            log.warning("REDIS_URL not set, order status feed disabled")

    @app.after_serving
    async def shutdown():
        await provider.close()
        if publisher is not None:
            await publisher.close()
        await database.close()
        log.info("Shutdown complete.")

    return app
