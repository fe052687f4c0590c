"""Server address auto-detection for pgselfhost."""

import ipaddress
import socket
from typing import Optional, Sequence, Tuple

import requests

from pgselfhost.constants import (
    ADDRESS_ECHO_SERVICES,
    PLACEHOLDER_HOST,
    PROBE_TIMEOUT_SECONDS,
)
from pgselfhost.errors import NetworkProbeFailure


class HostAddressDetector:
    """Walks the address-echo services, then the local route, then a placeholder."""

    # Routed but never contacted: connect() on a UDP socket sends nothing.
    ROUTE_PROBE_TARGET = ("192.0.2.1", 80)

    def __init__(
        self,
        logger,
        services: Sequence[str] = ADDRESS_ECHO_SERVICES,
        timeout: float = PROBE_TIMEOUT_SECONDS,
        requests_module=requests,
        socket_module=socket,
    ):
        self.logger = logger
        self.services = tuple(services)
        self.timeout = timeout
        self.requests = requests_module
        self.socket = socket_module

    def detect(self) -> Tuple[str, str]:
        """Return ``(address, origin)`` where origin is probe, local or placeholder."""
        for service in self.services:
            try:
                address = self.probe(service)
            except NetworkProbeFailure as exc:
                self.logger.debug("Address probe failed: %s", exc)
                continue
            self.logger.info("Server address %s detected via %s", address, service)
            return address, "probe"

        local_address = self.local_address()
        if local_address:
            self.logger.info("Using local network address %s", local_address)
            return local_address, "local"

        self.logger.warning(
            "Could not detect the server address; using placeholder '%s'.", PLACEHOLDER_HOST
        )
        return PLACEHOLDER_HOST, "placeholder"

    def probe(self, service: str) -> str:
        try:
            response = self.requests.get(service, timeout=self.timeout)
            response.raise_for_status()
        except self.requests.RequestException as exc:
            raise NetworkProbeFailure(f"{service}: {exc}") from exc

        candidate = (response.text or "").strip()
        try:
            ipaddress.IPv4Address(candidate)
        except ValueError as exc:
            raise NetworkProbeFailure(
                f"{service} returned an invalid address: {candidate[:64]!r}"
            ) from exc
        return candidate

    def local_address(self) -> Optional[str]:
        try:
            sock = self.socket.socket(self.socket.AF_INET, self.socket.SOCK_DGRAM)
        except OSError as exc:
            self.logger.debug("Local address lookup failed: %s", exc)
            return None

        try:
            sock.connect(self.ROUTE_PROBE_TARGET)
            candidate = sock.getsockname()[0]
        except OSError as exc:
            self.logger.debug("Local address lookup failed: %s", exc)
            return None
        finally:
            sock.close()

        try:
            parsed = ipaddress.IPv4Address(candidate)
        except ValueError:
            return None
        if parsed.is_loopback or parsed.is_unspecified:
            return None
        return candidate
