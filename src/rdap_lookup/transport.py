"""
HTTP transport configuration.

Builds reusable, connection-pooling httpx clients with a pinned TLS
version and explicit timeouts. One client per configuration is meant to be
shared by every registry and RDAP client that needs it.
"""

import logging
import socket
import ssl
import time
from dataclasses import dataclass
from email.utils import parsedate_to_datetime

import httpx

from . import __version__

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = f"rdap-lookup/{__version__}"


@dataclass(frozen=True)
class TransportConfig:
    """
    Transport settings, all durations in seconds.

    httpx has a single connect timeout spanning the TCP dial and the TLS
    handshake, so the larger of `dial_timeout` and `tls_handshake_timeout`
    is used for it. `response_header_timeout` becomes the read timeout.

    `insecure_skip_verify` disables certificate and hostname verification.
    It exists for test servers with self-signed certificates and must never
    be enabled against real registries.
    """

    tls_version: ssl.TLSVersion = ssl.TLSVersion.TLSv1_2
    dial_timeout: float = 30.0
    keep_alive: float = 30.0
    tls_handshake_timeout: float = 60.0
    idle_conn_timeout: float = 60.0
    response_header_timeout: float = 60.0
    insecure_skip_verify: bool = False
    max_connections: int = 100
    max_keepalive_connections: int = 20
    user_agent: str = DEFAULT_USER_AGENT

    def timeout(self) -> httpx.Timeout:
        connect = max(self.dial_timeout, self.tls_handshake_timeout)
        return httpx.Timeout(
            connect=connect,
            read=self.response_header_timeout,
            write=self.response_header_timeout,
            pool=connect,
        )


def build_ssl_context(config: TransportConfig) -> ssl.SSLContext:
    """Create an SSL context pinned to exactly `config.tls_version`."""
    ctx = ssl.create_default_context()
    ctx.minimum_version = config.tls_version
    ctx.maximum_version = config.tls_version
    if config.insecure_skip_verify:
        logger.warning("TLS certificate verification is disabled")
        ctx.check_hostname = False
        ctx.verify_mode = ssl.CERT_NONE
    return ctx


def _socket_options(config: TransportConfig) -> list[tuple[int, int, int]]:
    options = [(socket.SOL_SOCKET, socket.SO_KEEPALIVE, 1)]
    # TCP_KEEPIDLE is Linux-only; macOS uses TCP_KEEPALIVE for the same knob
    idle = getattr(socket, "TCP_KEEPIDLE", None) or getattr(socket, "TCP_KEEPALIVE", None)
    if idle is not None:
        options.append((socket.IPPROTO_TCP, idle, max(1, int(config.keep_alive))))
    return options


def build_transport(config: TransportConfig | None = None) -> httpx.HTTPTransport:
    """Create a pooled HTTP transport for the given configuration."""
    config = config or TransportConfig()
    return httpx.HTTPTransport(
        verify=build_ssl_context(config),
        limits=httpx.Limits(
            max_connections=config.max_connections,
            max_keepalive_connections=config.max_keepalive_connections,
            keepalive_expiry=config.idle_conn_timeout,
        ),
        socket_options=_socket_options(config),
    )


def build_http_client(
    config: TransportConfig | None = None,
    headers: dict[str, str] | None = None,
) -> httpx.Client:
    """
    Create an httpx.Client on top of `build_transport()`.

    Redirects are followed (RFC 7480 Section 5.2).
    """
    config = config or TransportConfig()
    client_headers = {"User-Agent": config.user_agent}
    if headers:
        client_headers.update(headers)
    logger.debug(
        "Building HTTP client (tls=%s, insecure=%s)",
        config.tls_version.name,
        config.insecure_skip_verify,
    )
    return httpx.Client(
        transport=build_transport(config),
        timeout=config.timeout(),
        headers=client_headers,
        follow_redirects=True,
    )


def parse_retry_after(header: str | None) -> float | None:
    """
    Parse Retry-After header value.

    Supports:
    - Seconds: "120" -> 120.0
    - HTTP date: "Wed, 21 Oct 2015 07:28:00 GMT" -> seconds until that time
    """
    if not header:
        return None

    header = header.strip()

    try:
        return float(header)
    except ValueError:
        pass

    try:
        dt = parsedate_to_datetime(header)
        delta = dt.timestamp() - time.time()
        return max(0.0, delta)
    except (ValueError, TypeError):
        pass

    return None
