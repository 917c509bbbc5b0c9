"""
HTTP transport to the remote attendance collector.

The coordinator only needs one capability from the network: POST a body to a
URL and get back a status code and response text, or a TransportError saying
why not. HttpTransport provides it over httpx.

Timeouts are split in two because they mean different things for delivery:
a read timeout happens after the request went out, so the collector may well
have stored the batch; a connect/write/pool timeout means it never arrived.
"""
import logging
from typing import Optional, Protocol, Tuple

import httpx

logger = logging.getLogger(__name__)


# ── Exceptions ────────────────────────────────────────────────────────────────

class TransportError(Exception):
    """Base class for failures to complete a POST."""


class TransportTimeout(TransportError):
    """
    The request timed out.

    possibly_delivered is True when the request was fully sent and only the
    response was not received in time.
    """

    def __init__(self, message: str, possibly_delivered: bool):
        super().__init__(message)
        self.possibly_delivered = possibly_delivered


class ConnectionFailed(TransportError):
    """No connection to the collector could be made (offline, DNS, refused)."""


class TransportOther(TransportError):
    """Any other transport failure; ``code`` names it for the logs."""

    def __init__(self, message: str, code: str):
        super().__init__(message)
        self.code = code


# ── Capability ────────────────────────────────────────────────────────────────

class NetworkCapability(Protocol):
    def post(self, url: str, body: str, timeout: float) -> Tuple[int, str]:
        """POST ``body``; return (status_code, response_text) or raise TransportError."""
        ...


# ── httpx implementation ──────────────────────────────────────────────────────

class HttpTransport:
    """
    NetworkCapability over httpx.

    Redirects are followed: script-hosted collectors answer a POST with a
    redirect to the page holding the result.
    """

    def __init__(self, client: Optional[httpx.Client] = None):
        """
        Args:
            client: Optional pre-configured httpx client (for testing).
        """
        self._client = client

    def post(self, url: str, body: str, timeout: float) -> Tuple[int, str]:
        if not url:
            raise TransportOther("No collector URL configured", code="no_url")

        client = self._client or httpx.Client()
        try:
            response = client.post(
                url,
                content=body.encode("utf-8"),
                headers={"Content-Type": "application/json"},
                timeout=timeout,
                follow_redirects=True,
            )
        except httpx.ReadTimeout as exc:
            raise TransportTimeout(
                f"Timed out waiting for response from {url}", possibly_delivered=True
            ) from exc
        except httpx.TimeoutException as exc:
            raise TransportTimeout(
                f"Timed out sending to {url}: {exc}", possibly_delivered=False
            ) from exc
        except (httpx.ConnectError, httpx.NetworkError) as exc:
            raise ConnectionFailed(f"Cannot reach {url}: {exc}") from exc
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise TransportOther(str(exc), code=type(exc).__name__) from exc
        finally:
            if self._client is None:
                client.close()

        logger.debug("POST %s -> %d", url, response.status_code)
        return response.status_code, response.text
