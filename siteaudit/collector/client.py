"""
Signal Provider Client

Async HTTP client for the external page-analysis service that fetches a
prospect's website and returns a normalized signal bundle.

Timeouts and errors are reported, never retried here: a failed collection
marks the analysis failed and the caller decides whether to re-run.
"""

import logging
from typing import Any, Dict, Optional, Protocol

import httpx

from ..models import BusinessType
from ..scoring.signals import InvalidSignalValue, SignalBundle

logger = logging.getLogger(__name__)


class SignalCollectionError(Exception):
    """The provider could not produce a signal bundle."""
    def __init__(self, message: str, status_code: int = None, response: dict = None):
        super().__init__(message)
        self.status_code = status_code
        self.response = response


class SignalCollectionTimeout(SignalCollectionError):
    """The provider did not answer within the configured timeout."""
    pass


class SignalProvider(Protocol):
    """Anything that turns a URL into a SignalBundle."""

    async def collect(self, url: str, business_type: BusinessType) -> SignalBundle:
        ...


class HttpSignalProvider:
    """
    Signal provider backed by an HTTP service.

    Usage:
        async with HttpSignalProvider(base_url="http://signals:8100") as provider:
            bundle = await provider.collect("https://example.com", BusinessType.AGENCY)
    """

    ENDPOINT = "/v1/signals"

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the provider client.

        Args:
            base_url: Provider base URL
            api_key: Bearer token, if the provider requires one
            timeout: Request timeout in seconds
            transport: Custom httpx transport (tests use httpx.MockTransport)
        """
        headers = {"Content-Type": "application/json"}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"

        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers=headers,
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )
        self._closed = False

    async def collect(self, url: str, business_type: BusinessType) -> SignalBundle:
        """
        Request the signal bundle for one URL.

        Raises:
            SignalCollectionTimeout: Provider timed out
            SignalCollectionError: HTTP error, non-200 status, blocked fetch or bad payload
        """
        if self._closed:
            raise SignalCollectionError("Client is closed")

        payload = {"url": url, "businessType": business_type.value}
        logger.debug(f"POST {self.ENDPOINT} for {url}")

        try:
            response = await self._client.post(self.ENDPOINT, json=payload)
        except httpx.TimeoutException as e:
            raise SignalCollectionTimeout(f"Signal provider timed out: {e}") from e
        except httpx.HTTPError as e:
            raise SignalCollectionError(f"Signal provider unreachable: {e}") from e

        if response.status_code != 200:
            raise SignalCollectionError(
                f"Signal provider returned {response.status_code}",
                status_code=response.status_code,
                response=_safe_json(response),
            )

        body = _safe_json(response)
        if not isinstance(body, dict):
            raise SignalCollectionError("Signal provider returned a non-object payload")

        # Site refused the crawler (robots.txt, WAF); not a retryable condition
        if body.get("blocked"):
            raise SignalCollectionError(
                f"Fetch blocked: {body.get('reason', 'unknown reason')}",
                status_code=response.status_code,
                response=body,
            )

        signals = body.get("signals", body)
        if not isinstance(signals, dict):
            raise SignalCollectionError("Signal provider returned non-object signals", response=body)
        try:
            return SignalBundle.from_dict(signals)
        except InvalidSignalValue as e:
            raise SignalCollectionError(f"Signal provider returned a bad payload: {e}", response=body) from e

    async def close(self):
        """Close the HTTP client."""
        if not self._closed:
            await self._client.aclose()
            self._closed = True

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()


def _safe_json(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return None


def create_signal_provider(settings=None) -> HttpSignalProvider:
    """Build the HTTP provider from settings."""
    from ..utils.config import get_settings

    settings = settings or get_settings()
    return HttpSignalProvider(
        base_url=settings.SIGNAL_PROVIDER_URL,
        api_key=settings.SIGNAL_PROVIDER_API_KEY,
        timeout=settings.SIGNAL_TIMEOUT_SECONDS,
    )


# ============================================================================
# MANUAL CHECK
# ============================================================================

async def probe_provider(url: str = "https://example.com"):
    """Collect one bundle from the configured provider and print a summary."""
    import os
    from dotenv import load_dotenv

    load_dotenv()

    base_url = os.getenv("SIGNAL_PROVIDER_URL")
    if not base_url:
        print("Missing SIGNAL_PROVIDER_URL")
        return

    async with HttpSignalProvider(base_url, api_key=os.getenv("SIGNAL_PROVIDER_API_KEY")) as provider:
        bundle = await provider.collect(url, BusinessType.SINGLE_OPERATOR)

    measured = {key: value for key, value in bundle.to_dict().items() if value not in (None, [])}
    print(f"Signals measured: {len(measured)}")
    for key, value in sorted(measured.items()):
        print(f"  {key}: {value}")


if __name__ == "__main__":
    import asyncio
    import sys

    asyncio.run(probe_provider(*sys.argv[1:2]))
