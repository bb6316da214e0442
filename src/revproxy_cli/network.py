from __future__ import annotations

import ipaddress
import logging
import socket
from collections.abc import Sequence
from dataclasses import dataclass, field

import httpx

from .configmanager import DEFAULT_HTTP_TIMEOUT, DEFAULT_IP_LOOKUP_URLS

logger = logging.getLogger(__name__)

BACKEND_OK_STATUSES = frozenset({200, 301, 302})


def port_is_listening(host: str, port: int, *, timeout: float = 2.0) -> bool:
    try:
        with socket.create_connection((host, port), timeout=timeout):
            return True
    except OSError:
        return False


@dataclass
class NetworkClient:
    """Address lookups and backend probes.

    The public address comes from plain-text "what is my IP" services; the
    first URL that answers with a valid address wins.
    """

    lookup_urls: Sequence[str] = field(default_factory=lambda: DEFAULT_IP_LOOKUP_URLS)
    timeout_s: float = DEFAULT_HTTP_TIMEOUT

    def __post_init__(self) -> None:
        logger.debug("Initializing NetworkClient lookup_urls=%s timeout_s=%s", list(self.lookup_urls), self.timeout_s)
        self._client = httpx.Client(
            timeout=self.timeout_s,
            follow_redirects=False,
            headers={"accept": "text/plain", "user-agent": "curl/8"},
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> NetworkClient:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # type: ignore[no-untyped-def]
        self.close()

    def public_address(self) -> str | None:
        for url in self.lookup_urls:
            try:
                resp = self._client.get(url)
            except httpx.HTTPError as e:
                logger.debug("Address lookup via %s failed (%s)", url, str(e))
                continue
            if resp.status_code != 200:
                logger.debug("Address lookup via %s returned HTTP %s", url, resp.status_code)
                continue
            candidate = resp.text.strip()
            try:
                ipaddress.ip_address(candidate)
            except ValueError:
                logger.debug("Address lookup via %s returned garbage: %r", url, candidate[:64])
                continue
            return candidate
        return None

    def resolve_address(self, domain: str) -> str | None:
        """First IPv4 address the system resolver returns for domain."""
        try:
            return socket.gethostbyname(domain)
        except OSError as e:
            logger.debug("DNS lookup for %s failed (%s)", domain, str(e))
            return None

    def backend_listening(self, port: int) -> bool:
        return port_is_listening("127.0.0.1", port, timeout=min(self.timeout_s, 2.0))

    def backend_status(self, port: int, *, host_header: str | None = None) -> int | None:
        headers = {"host": host_header} if host_header else None
        try:
            resp = self._client.get(f"http://127.0.0.1:{port}/", headers=headers)
        except httpx.HTTPError as e:
            logger.debug("Backend probe on port %s failed (%s)", port, str(e))
            return None
        return resp.status_code
