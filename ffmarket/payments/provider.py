"""ZiniPay REST client.

Two calls are used: ``/create`` returns a hosted-payment URL plus an
invoice id, ``/verify`` reports the current status of an invoice.
"""

import asyncio
import logging
from typing import Any, Dict, Optional

import aiohttp

from ..common.errors import ConfigurationError, UpstreamError

_logger = logging.getLogger(__name__)


class ZiniPayClient:
    def __init__(self, api_key: str, base_url: str, timeout: float = 30.0):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self._session: Optional[aiohttp.ClientSession] = None
        self._lock = asyncio.Lock()

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            async with self._lock:
                if self._session is None or self._session.closed:
                    self._session = aiohttp.ClientSession(timeout=self.timeout)
        return self._session

    async def close(self) -> None:
        if self._session is not None:
            try:
                await self._session.close()
            finally:
                self._session = None

    async def _post(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        if not self.api_key:
            raise ConfigurationError("ZiniPay API key not configured. Please set ZINIPAY_API_KEY")
        url = f"{self.base_url}/{path}"
        headers = {"zini-api-key": self.api_key, "Content-Type": "application/json"}
        session = await self._get_session()
        try:
            async with session.post(url, json=payload, headers=headers) as resp:
                try:
                    data = await resp.json(content_type=None)
                except ValueError:
                    data = None
                if resp.status >= 400:
                    message = data.get("message") if isinstance(data, dict) else None
                    _logger.error("ZiniPay %s failed | status=%s body=%s", path, resp.status, data)
                    raise UpstreamError(message or f"ZiniPay returned HTTP {resp.status}")
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            _logger.error("ZiniPay %s unreachable | err=%r", path, e)
            raise UpstreamError(f"ZiniPay request failed: {e}") from e
        if not isinstance(data, dict):
            raise UpstreamError("ZiniPay returned a non-JSON response")
        return data

    async def create_payment(self, payment: Dict[str, Any]) -> Dict[str, Any]:
        """Create a hosted payment; returns the provider body with ``payment_url`` and ``invoiceId``."""
        data = await self._post("create", payment)
        _logger.info("ZiniPay create | invoice_id=%s", data.get("invoiceId"))
        if not (data.get("status") and data.get("payment_url")):
            raise UpstreamError(data.get("message") or "Failed to generate payment URL")
        return data

    async def verify_payment(self, invoice_id: str) -> Dict[str, Any]:
        data = await self._post("verify", {"invoiceId": invoice_id})
        _logger.info("ZiniPay verify | invoice_id=%s status=%s", invoice_id, data.get("status"))
        return data
