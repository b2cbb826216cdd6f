import asyncio
import json
import logging

from quart import Blueprint, Response, current_app, jsonify, request

_logger = logging.getLogger(__name__)

bp = Blueprint("realtime", __name__)


@bp.get("/events")
async def sse_events():
    publisher = current_app.extensions["market"].publisher
    if publisher is None or not publisher.enabled:
        return jsonify({"success": False, "error": "Order feed is not configured"}), 503

    connector = publisher.connector
    channel = publisher.channel
    order_filter = request.args.get("order_id")

    async def gen():
        pubsub = None
        backoff = 1.0
        # Advise client on retry
        yield "retry: 3000\n\n"
        try:
            while True:
                try:
                    if pubsub is None:
                        r = await connector.get()
                        pubsub = r.pubsub(ignore_subscribe_messages=True)
                        await pubsub.subscribe(channel)
                    message = await pubsub.get_message(timeout=5.0)
                    if message:
                        try:
                            payload = json.loads(message.get("data"))
                        except (TypeError, ValueError):
                            _logger.debug("Skipping malformed order event: %r", message.get("data"))
                            continue
                        if order_filter and payload.get("order_id") != order_filter:
                            continue
                        yield "event: order\n"
                        yield f"data: {json.dumps(payload)}\n\n"
                    else:
                        # Keep-alive to prevent closes by proxies
                        yield ": keep-alive\n\n"
                    backoff = 1.0  # reset after success
                except asyncio.CancelledError:
                    break
                except Exception as e:
                    _logger.warning("Order feed error, retrying in %ss | err=%s", int(backoff), e)
                    yield f": redis-error, retrying in {int(backoff)}s\n\n"
                    await asyncio.sleep(backoff)
                    backoff = min(backoff * 2, 15.0)
                    await _close_pubsub(pubsub, channel)
                    pubsub = None
                    connector.reset()
        finally:
            await _close_pubsub(pubsub, channel)

    headers = {
        "Cache-Control": "no-cache",
        "X-Accel-Buffering": "no",
        "Connection": "keep-alive",
    }
    response = Response(gen(), mimetype="text/event-stream", headers=headers)
    response.timeout = None
    return response


async def _close_pubsub(pubsub, channel: str) -> None:
    if pubsub is None:
        return
    try:
        await pubsub.unsubscribe(channel)
        await pubsub.aclose()
    except Exception as e:
        _logger.debug("Pubsub cleanup failed: %s", e)
