import json
import logging
from typing import Any, Dict, Optional

from ..common.redis_client import RedisConnector

_logger = logging.getLogger(__name__)


class OrderEventPublisher:
    """Publishes applied order transitions on a Redis channel.

    Publishing never fails the caller: the order row is already committed
    when this runs, so errors are logged and dropped.
    """

    def __init__(self, connector: Optional[RedisConnector], channel: str):
        self.connector = connector
        self.channel = channel

    @property
    def enabled(self) -> bool:
        return self.connector is not None and self.connector.enabled

    async def publish(self, event: Dict[str, Any]) -> None:
        if not self.enabled:
            _logger.debug("Order feed disabled, dropping event | order_id=%s", event.get("order_id"))
            return
        try:
            r = await self.connector.get()
            await r.publish(self.channel, json.dumps(event))
            _logger.info(
                "Published order update | order_id=%s status=%s channel=%s",
                event.get("order_id"),
                event.get("status"),
                self.channel,
            )
        except Exception as e:
            _logger.warning("Order update publish failed | order_id=%s err=%s", event.get("order_id"), e)
            self.connector.reset()

    async def close(self) -> None:
        if self.connector is not None:
            await self.connector.close()
