"""
Handshake client.

One GET against ``{scheme}://{domain}/{endpoint_path}`` carrying the collected
signals; a non-empty 2xx body is the redirect address.
"""

from __future__ import annotations

import base64
import logging
from typing import Optional

import httpx

from launchgate.shared.core.configuration import HandshakeConfig
from launchgate.shared.core.errors import MalformedResponse, TransportFailure
from launchgate.shared.domain.models import DeviceSignals, HandshakeOutcome

logger = logging.getLogger(__name__)

# Field order is part of the wire format
PAYLOAD_FIELDS = ("apns_token", "att_token", "bundle_id")


def derive_domain(bundle_id: Optional[str], suffix: str = "top") -> str:
    """Strip every dot from the bundle identifier and append the suffix.

    >>> derive_domain("com.example.App")
    'comexampleApp.top'
    """
    stripped = (bundle_id or "").replace(".", "")
    return f"{stripped}.{suffix.lstrip('.')}"


def ensure_scheme(address: str, scheme: str = "https") -> str:
    """Prefix ``address`` with ``scheme://`` unless it already names http or https."""
    lowered = address.lower()
    if lowered.startswith("http://") or lowered.startswith("https://"):
        return address
    return f"{scheme}://{address}"


def build_payload(signals: DeviceSignals) -> str:
    """Render the signals as the fixed ``apns_token=..&att_token=..&bundle_id=..`` string."""
    values = {
        "apns_token": signals.push_token or "",
        "att_token": signals.attribution_token or "",
        "bundle_id": signals.bundle_identifier or "",
    }
    return "&".join(f"{name}={values[name]}" for name in PAYLOAD_FIELDS)


def encode_payload(payload: str) -> str:
    return base64.b64encode(payload.encode("utf-8")).decode("ascii")


def decode_payload(encoded: str) -> dict[str, str]:
    """Inverse of `encode_payload` + `build_payload` for inspecting captured requests."""
    text = base64.b64decode(encoded).decode("utf-8")
    fields: dict[str, str] = {}
    for part in text.split("&"):
        name, _, value = part.partition("=")
        fields[name] = value
    return fields


class HandshakeClient:
    """Performs the single handshake exchange."""

    def __init__(
        self,
        config: Optional[HandshakeConfig] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.config = config or HandshakeConfig()
        self._client = client
        self._owns_client = client is None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            headers = {}
            if self.config.user_agent:
                headers["User-Agent"] = self.config.user_agent
            self._client = httpx.AsyncClient(
                timeout=self.config.request_timeout,
                follow_redirects=True,
                headers=headers,
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    def endpoint_url(self, domain: str) -> str:
        return f"{self.config.scheme}://{domain}/{self.config.endpoint_path.lstrip('/')}"

    def build_params(self, signals: DeviceSignals) -> dict[str, str]:
        return {self.config.query_parameter: encode_payload(build_payload(signals))}

    async def request(self, domain: str, signals: DeviceSignals) -> str:
        """Send the request and return the raw body text.

        Raises:
            TransportFailure: On network errors or a non-2xx status
        """
        url = self.endpoint_url(domain)
        try:
            response = await self._get_client().get(url, params=self.build_params(signals))
        except httpx.TimeoutException as e:
            raise TransportFailure(f"handshake timed out: {e}") from e
        except httpx.HTTPError as e:
            raise TransportFailure(f"handshake request failed: {type(e).__name__}: {e}") from e

        if not response.is_success:
            raise TransportFailure(
                f"handshake returned HTTP {response.status_code}",
                status_code=response.status_code,
            )
        return response.text

    def parse_address(self, body: str) -> Optional[str]:
        """Turn a response body into a redirect address.

        Returns None for an empty body.

        Raises:
            MalformedResponse: If the body cannot form a URL with a host
        """
        text = body.strip()
        if not text:
            return None
        if any(ch.isspace() for ch in text):
            raise MalformedResponse("response body contains whitespace")

        # Bare addresses always get https, independent of the request scheme
        address = ensure_scheme(text)
        try:
            parsed = httpx.URL(address)
        except (httpx.InvalidURL, ValueError) as e:
            raise MalformedResponse(f"response body is not a URL: {e}") from e
        if not parsed.host:
            raise MalformedResponse("response body has no host")
        return address

    async def exchange(self, domain: str, signals: DeviceSignals) -> HandshakeOutcome:
        """Run the handshake; every failure maps onto the continue outcome."""
        try:
            body = await self.request(domain, signals)
            address = self.parse_address(body)
        except TransportFailure as e:
            logger.warning(f"Handshake with {domain} failed: {e}")
            return HandshakeOutcome.proceed()
        except MalformedResponse as e:
            logger.warning(f"Handshake response from {domain} unusable: {e}")
            return HandshakeOutcome.proceed()

        if address is None:
            logger.info(f"Handshake with {domain} returned no address")
            return HandshakeOutcome.proceed()

        logger.info(f"Handshake with {domain} returned a redirect address")
        return HandshakeOutcome(redirect_address=address)
