"""
RDAP Bootstrap Registry

Fetches the IANA RDAP bootstrap files (RFC 7484) and resolves domains,
IP networks and AS numbers to their authoritative RDAP server.

Registry files are fetched lazily, at most once per endpoint per
BootstrapRegistry, and cached for the lifetime of the instance. Clients
SHOULD NOT fetch the registry on every request (RFC 7484 Section 8).
"""

import ipaddress
import json
import logging
import threading

import httpx

from .errors import (
    NetworkError,
    NotFoundError,
    ParseError,
    StatusError,
    ValidationError,
)
from .models import QueryKind, ResolutionQuery, Service, ServiceRegistryDocument
from .transport import TransportConfig, build_http_client, parse_retry_after

logger = logging.getLogger(__name__)

# From the RDAP section on https://www.iana.org/protocols
IANA_ASN_URL = "https://data.iana.org/rdap/asn.json"
IANA_DNS_URL = "https://data.iana.org/rdap/dns.json"
IANA_IPV4_URL = "https://data.iana.org/rdap/ipv4.json"
IANA_IPV6_URL = "https://data.iana.org/rdap/ipv6.json"

MAX_ASN = 2**32 - 1


def parse_asn(value: str | int) -> int:
    """
    Parse an AS number given as an int, "15169" or "AS15169".

    Raises ValidationError outside the 32-bit asplain range (RFC 5396).
    """
    if isinstance(value, bool):
        raise ValidationError(f"invalid AS number: {value!r}")
    if isinstance(value, int):
        number = value
    elif isinstance(value, str):
        raw = value.strip()
        if raw[:2].lower() == "as":
            raw = raw[2:]
        if not (raw.isascii() and raw.isdigit()):
            raise ValidationError(f"invalid AS number: {value!r}")
        number = int(raw)
    else:
        raise ValidationError(f"invalid AS number: {value!r}")

    if not 0 <= number <= MAX_ASN:
        raise ValidationError(f"AS number out of range: {value!r}")
    return number


def parse_ip_query(value: str) -> ipaddress.IPv4Network | ipaddress.IPv6Network:
    """
    Parse an address or CIDR block into a network.

    A bare address becomes a /32 (or /128). Host bits in a CIDR block are
    allowed and masked off, e.g. "192.0.2.1/25" -> 192.0.2.0/25.
    """
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"invalid ip or cidr specified: {value!r}")
    try:
        return ipaddress.ip_network(value.strip(), strict=False)
    except ValueError as e:
        raise ValidationError(f"invalid ip or cidr specified: {value!r}") from e


def _split_labels(name: str) -> list[str]:
    return name.strip().rstrip(".").lower().split(".")


def _parse_asn_range(entry: str) -> tuple[int, int]:
    """Parse a registry range "start-end"; a single number is its own range."""
    start, sep, end = entry.strip().partition("-")
    if not sep:
        end = start
    if not (start + end).isascii() or not start.isdigit() or not end.isdigit():
        raise ParseError(f"invalid AS number range in bootstrap file: {entry!r}")
    low, high = int(start), int(end)
    if low > high:
        raise ParseError(f"inverted AS number range in bootstrap file: {entry!r}")
    return low, high


class BootstrapRegistry:
    """
    Resolves the RDAP server for a domain, IP network or AS number.

    Endpoints left unset default to the IANA registry files. Instances are
    safe to share between threads: concurrent first lookups against the
    same endpoint collapse into a single fetch.
    """

    def __init__(
        self,
        asn_endpoint: str | None = None,
        dns_endpoint: str | None = None,
        ipv4_endpoint: str | None = None,
        ipv6_endpoint: str | None = None,
        http_client: httpx.Client | None = None,
        transport_config: TransportConfig | None = None,
    ) -> None:
        self.asn_endpoint = asn_endpoint or IANA_ASN_URL
        self.dns_endpoint = dns_endpoint or IANA_DNS_URL
        self.ipv4_endpoint = ipv4_endpoint or IANA_IPV4_URL
        self.ipv6_endpoint = ipv6_endpoint or IANA_IPV6_URL

        self._http = http_client
        self._owns_http = http_client is None
        self._transport_config = transport_config
        self._setup_lock = threading.Lock()

        self._documents: dict[str, ServiceRegistryDocument] = {}
        self._endpoint_locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    @property
    def endpoints(self) -> dict[str, str]:
        return {
            "asn": self.asn_endpoint,
            "dns": self.dns_endpoint,
            "ipv4": self.ipv4_endpoint,
            "ipv6": self.ipv6_endpoint,
        }

    def close(self) -> None:
        """Close the HTTP client if this registry created it."""
        with self._setup_lock:
            if self._owns_http and self._http is not None:
                self._http.close()
                self._http = None

    def __enter__(self) -> "BootstrapRegistry":
        return self

    def __exit__(self, *args) -> None:
        self.close()

    # -------------------------------------------------------------------------
    # Fetching and caching
    # -------------------------------------------------------------------------

    def _client(self) -> httpx.Client:
        with self._setup_lock:
            if self._http is None:
                self._http = build_http_client(self._transport_config)
            return self._http

    def _lock_for(self, endpoint: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._endpoint_locks.get(endpoint)
            if lock is None:
                lock = self._endpoint_locks[endpoint] = threading.Lock()
            return lock

    def document(self, endpoint: str) -> ServiceRegistryDocument:
        """
        Return the registry file at `endpoint`, fetching it on first use.

        Callers racing on the first fetch wait on a per-endpoint lock and
        then share the cached document. Failed fetches are not cached.
        """
        cached = self._documents.get(endpoint)
        if cached is not None:
            return cached

        with self._lock_for(endpoint):
            cached = self._documents.get(endpoint)
            if cached is not None:
                logger.debug("Bootstrap cache hit for %s", endpoint)
                return cached
            document = self._fetch(endpoint)
            self._documents[endpoint] = document
            return document

    def _fetch(self, endpoint: str) -> ServiceRegistryDocument:
        logger.debug("Fetching bootstrap file %s", endpoint)
        headers = {"Accept": "application/json"}

        try:
            with self._client().stream("GET", endpoint, headers=headers) as response:
                body = response.read()
        except httpx.HTTPError as e:
            raise NetworkError(f"error fetching bootstrap file {endpoint}: {e}") from e

        if response.status_code >= 400:
            raise StatusError(
                response.status_code,
                endpoint,
                retry_after=parse_retry_after(response.headers.get("Retry-After")),
            )

        try:
            data = json.loads(body)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise ParseError(f"invalid JSON in bootstrap file {endpoint}: {e}") from e

        document = ServiceRegistryDocument.from_dict(data)
        logger.debug(
            "Loaded bootstrap file %s (version %s, %d services)",
            endpoint,
            document.version,
            len(document.services),
        )
        return document

    # -------------------------------------------------------------------------
    # Resolution
    # -------------------------------------------------------------------------

    def resolve(self, value: str | int) -> str:
        """Resolve any query value, dispatching on its detected kind."""
        query = ResolutionQuery.parse(value)
        if query.kind is QueryKind.ASN:
            return self.resolve_asn(query.value)
        if query.kind is QueryKind.IP:
            return self.resolve_ip(query.value)
        return self.resolve_domain(query.value)

    def resolve_domain(self, fqdn: str) -> str:
        """
        Find the RDAP server for a domain name.

        RFC 7484 Section 4: label-wise longest match, from right to left. A
        query for a.b.example.com matching both "com" and "example.com"
        uses the example.com entry. Entries tying on match length are
        considered equivalent; the first one in the file is used.
        """
        if not isinstance(fqdn, str) or not fqdn.strip().rstrip("."):
            raise ValidationError(f"empty domain name: {fqdn!r}")
        labels = _split_labels(fqdn)
        document = self.document(self.dns_endpoint)

        best: Service | None = None
        best_length = 0
        for service in document.services:
            for entry in service.entries:
                entry_labels = _split_labels(entry)
                length = len(entry_labels)
                if not entry.strip() or length > len(labels):
                    continue
                if labels[-length:] != entry_labels:
                    continue
                if length > best_length:
                    best, best_length = service, length
                elif length == best_length and service is not best:
                    logger.debug(
                        "Equivalent bootstrap entries for %s; keeping the first", fqdn
                    )

        if best is None:
            raise NotFoundError(f"no RDAP server found for domain {fqdn!r}")
        url = best.preferred_url()
        logger.debug("Resolved domain %s -> %s", fqdn, url)
        return url

    def resolve_ip(self, addr_or_cidr: str) -> str:
        """
        Find the RDAP server for an IP address or CIDR block.

        RFC 7484 Section 5.1: longest match as done for routing. An entry
        matches when the query lies within its prefix; the most specific
        (longest prefix, smallest range) entry wins. A query for
        192.0.2.1/25 matching 192.0.0.0/8 and 192.0.2.0/24 uses the latter.
        """
        query = parse_ip_query(addr_or_cidr)
        endpoint = self.ipv4_endpoint if query.version == 4 else self.ipv6_endpoint
        document = self.document(endpoint)

        best: Service | None = None
        best_prefix = None
        for service in document.services:
            for entry in service.entries:
                try:
                    prefix = ipaddress.ip_network(entry.strip(), strict=False)
                except ValueError as e:
                    raise ParseError(f"invalid prefix in bootstrap file: {entry!r}") from e
                if prefix.version != query.version or not query.subnet_of(prefix):
                    continue
                if best_prefix is None or (prefix.prefixlen, -prefix.num_addresses) > (
                    best_prefix.prefixlen,
                    -best_prefix.num_addresses,
                ):
                    best, best_prefix = service, prefix

        if best is None:
            raise NotFoundError(f"no RDAP server found for {query}")
        url = best.preferred_url()
        logger.debug("Resolved %s via %s -> %s", query, best_prefix, url)
        return url

    def resolve_asn(self, asn: str | int) -> str:
        """
        Find the RDAP server for an AS number.

        RFC 7484 Section 5.3: entries are inclusive ranges of AS numbers. The
        smallest range containing the number wins.
        """
        number = parse_asn(asn)
        document = self.document(self.asn_endpoint)

        best: Service | None = None
        best_span = None
        for service in document.services:
            for entry in service.entries:
                low, high = _parse_asn_range(entry)
                if not low <= number <= high:
                    continue
                if best_span is None or high - low < best_span:
                    best, best_span = service, high - low

        if best is None:
            raise NotFoundError(f"no RDAP server found for AS{number}")
        url = best.preferred_url()
        logger.debug("Resolved AS%d -> %s", number, url)
        return url
