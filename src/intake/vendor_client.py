"""
Client for the Vapi call-detail API.

Used only as an extraction fallback when a webhook delivery is missing
structured data that Vapi has finished computing by the time we ask.
"""

import logging
from typing import Any, Optional

import httpx

from .errors import VendorAPIError

logger = logging.getLogger(__name__)


class VapiClient:
    """
    Thin async wrapper around ``GET /call/{id}``.

    Usage:
        client = VapiClient(api_key="...")
        call = await client.fetch_call("call-123")
    """

    def __init__(
        self,
        api_key: Optional[str],
        base_url: str = "https://api.vapi.ai",
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the client.

        Args:
            api_key: Bearer token for the Vapi API
            base_url: API root
            timeout: Request timeout in seconds
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    async def fetch_call(self, call_id: str) -> dict[str, Any]:
        """
        Fetch a call object by id.

        Raises:
            VendorAPIError: if no key is configured, the request fails,
                the API answers with an error status, or the body is not JSON
        """
        if not self.api_key:
            raise VendorAPIError("Vapi API key not configured")

        url = f"{self.base_url}/call/{call_id}"
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        logger.info(f"Fetching call data from Vapi API: {call_id}")

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.get(url, headers=headers)
                response.raise_for_status()
                data = response.json()
        except httpx.TimeoutException as e:
            raise VendorAPIError(f"Vapi API timed out after {self.timeout}s") from e
        except httpx.HTTPStatusError as e:
            raise VendorAPIError(
                f"Vapi API error: {e.response.status_code} - {e.response.text[:200]}"
            ) from e
        except httpx.RequestError as e:
            raise VendorAPIError(f"Failed to reach Vapi API: {e}") from e
        except ValueError as e:
            raise VendorAPIError(f"Vapi API returned invalid JSON: {e}") from e

        if not isinstance(data, dict):
            raise VendorAPIError("Vapi API returned an unexpected body")

        logger.info("Call data fetched from Vapi API")
        return data
