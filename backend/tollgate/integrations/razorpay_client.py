"""Razorpay Orders API client."""

from typing import Any, Dict, Optional

import httpx
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from tollgate.core.config import settings
from tollgate.core.exceptions import ExternalServiceError


class RazorpayClient:
    """Minimal client for the Razorpay REST API.

    Transport errors are retried; API errors (4xx/5xx responses) are not.
    """

    def __init__(
        self,
        key_id: Optional[str] = None,
        key_secret: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the client.

        Args:
            key_id: API key id; defaults to RAZORPAY_KEY_ID
            key_secret: API key secret; defaults to RAZORPAY_KEY_SECRET
            base_url: API base URL; defaults to RAZORPAY_API_URL
            timeout: Request timeout in seconds; defaults to PROVIDER_TIMEOUT_SECONDS
            transport: Optional httpx transport (used to stub the API in tests)
        """
        self.key_id = key_id or settings.RAZORPAY_KEY_ID
        self.key_secret = key_secret or settings.RAZORPAY_KEY_SECRET
        if not self.key_id or not self.key_secret:
            raise ValueError("Razorpay key id and secret must be configured")
        self.base_url = (base_url or settings.RAZORPAY_API_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.PROVIDER_TIMEOUT_SECONDS
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            auth=(self.key_id, self.key_secret),
            timeout=self.timeout,
            transport=self._transport,
        )

    @retry(
        retry=retry_if_exception_type(httpx.TransportError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
        reraise=True,
    )
    async def _post(self, path: str, body: Dict[str, Any]) -> Dict[str, Any]:
        async with self._client() as client:
            response = await client.post(path, json=body)
        response.raise_for_status()
        return response.json()

    async def create_order(
        self,
        *,
        amount_minor: int,
        currency: str,
        receipt: str,
        notes: Dict[str, str],
    ) -> Dict[str, Any]:
        """Create an order.

        Args:
            amount_minor: Amount in paise
            currency: ISO currency code
            receipt: Merchant receipt id (max 40 chars)
            notes: Key/value notes echoed back in webhooks
        """
        try:
            return await self._post(
                "/orders",
                {
                    "amount": amount_minor,
                    "currency": currency.upper(),
                    "receipt": receipt[:40],
                    "notes": {key: str(value) for key, value in notes.items() if value},
                },
            )
        except httpx.HTTPStatusError as e:
            raise ExternalServiceError(
                service_name="Razorpay",
                message=f"Failed to create order: {e.response.status_code} {e.response.text}",
            ) from e
        except httpx.HTTPError as e:
            raise ExternalServiceError(
                service_name="Razorpay",
                message=f"Failed to create order: {str(e)}",
            ) from e


# Singleton instance
razorpay_client = RazorpayClient() if settings.RAZORPAY_ENABLED else None
