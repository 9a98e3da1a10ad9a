"""Delivery transports.

`UnloadSafeTransport` hands the body to a beacon-style capability that the
host keeps alive across page unload. `KeepAliveFetchTransport` is the
fallback: a plain POST over a pooled httpx connection with no credentials.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from http.cookiejar import CookieJar, DefaultCookiePolicy
from typing import Callable, List, Optional

import httpx

logger = logging.getLogger(__name__)

# Returns True when the host accepted the body for background delivery
Beacon = Callable[[str, bytes], bool]


class DeliveryStatus(str, Enum):
    DELIVERED = "delivered"
    QUEUED = "queued"


@dataclass
class DeliveryResult:
    """Outcome of one delivery attempt."""
    status: DeliveryStatus
    transport: Optional[str] = None
    error: Optional[str] = None

    @property
    def delivered(self) -> bool:
        return self.status == DeliveryStatus.DELIVERED


class Transport(ABC):
    """Sends one serialized event; False or an exception means failure."""

    name = "transport"

    @abstractmethod
    async def send(self, url: str, body: bytes) -> bool:
        ...


class UnloadSafeTransport(Transport):
    name = "beacon"

    def __init__(self, beacon: Beacon):
        self.beacon = beacon

    async def send(self, url: str, body: bytes) -> bool:
        return bool(self.beacon(url, body))


def credentialless_cookies() -> CookieJar:
    """A cookie jar that never stores or returns a cookie."""
    return CookieJar(policy=DefaultCookiePolicy(allowed_domains=[]))


class KeepAliveFetchTransport(Transport):
    name = "keepalive_fetch"

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 10.0,
        http_transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(
            transport=http_transport,
            timeout=timeout,
            headers={"Connection": "keep-alive"},
            cookies=credentialless_cookies(),
            follow_redirects=False,
        )

    async def send(self, url: str, body: bytes) -> bool:
        # No credentials: nothing another caller left in the jar goes out
        self.client.cookies.clear()
        response = await self.client.post(
            url,
            content=body,
            headers={"Content-Type": "application/json"},
        )
        self.client.cookies.clear()
        if response.is_success:
            return True
        logger.warning(f"Tracking endpoint answered {response.status_code}")
        return False

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()


def select_transports(
    beacon: Optional[Beacon] = None,
    client: Optional[httpx.AsyncClient] = None,
    timeout: float = 10.0,
    http_transport: Optional[httpx.AsyncBaseTransport] = None,
) -> List[Transport]:
    """Order the transports the host supports: beacon first, then fetch."""
    transports: List[Transport] = []
    if callable(beacon):
        transports.append(UnloadSafeTransport(beacon))
    transports.append(KeepAliveFetchTransport(client, timeout=timeout, http_transport=http_transport))
    return transports
