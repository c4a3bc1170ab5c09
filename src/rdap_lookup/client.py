"""
RDAP Client

Issues RDAP lookups (RFC 7482) against a single server and decodes the
responses (RFC 7483) into typed objects, or raises a typed error.
"""

import json
import logging
import threading
from enum import Enum
from urllib.parse import quote, urlparse

import httpx

from .bootstrap import parse_asn, parse_ip_query
from .errors import (
    NetworkError,
    ParseError,
    RDAPProtocolError,
    SchemeError,
    StatusError,
    TypeMismatchError,
    ValidationError,
)
from .models import Autnum, Domain, Entity, IPNetwork, Nameserver, RDAPError, Resource
from .transport import TransportConfig, build_http_client, parse_retry_after

logger = logging.getLogger(__name__)

# From https://about.rdap.org/
DEFAULT_SERVER = "https://rdap.org"

# RFC 7480 Section 4.2 allows application/json or application/rdap+json,
# but some servers only understand the former.
DEFAULT_ACCEPT_HEADER = "application/json"


class ResourceType(Enum):
    """Lookup path segments (RFC 7482 Section 3.1) and their object class."""

    IP = ("ip", IPNetwork)
    AUTNUM = ("autnum", Autnum)
    DOMAIN = ("domain", Domain)
    NAMESERVER = ("nameserver", Nameserver)
    ENTITY = ("entity", Entity)

    def __init__(self, segment: str, model: type[Resource]) -> None:
        self.segment = segment
        self.model = model


def _normalize_identifier(resource_type: ResourceType, identifier) -> str:
    """Validate an identifier before any request is made."""
    if resource_type is ResourceType.IP:
        # Send the canonical form back, e.g. "2001:DB8::0001" -> "2001:db8::1"
        network = parse_ip_query(identifier)
        if network.num_addresses == 1:
            return str(network.network_address)
        return str(network)
    if resource_type is ResourceType.AUTNUM:
        return str(parse_asn(identifier))
    if not isinstance(identifier, str) or not identifier.strip():
        raise ValidationError(f"empty {resource_type.segment} identifier provided")
    return identifier.strip()


class RDAPClient:
    """
    Makes RDAP requests against one server.

    The HTTP client and base address are set up exactly once, on first
    use. Without a base address the rdap.org redirector is used, which
    forwards to the authoritative server.

    Usage:
        with RDAPClient("https://rdap.verisign.com/com/v1/") as client:
            domain = client.domain("example.com")
    """

    def __init__(
        self,
        base_address: str | None = None,
        http_client: httpx.Client | None = None,
        transport_config: TransportConfig | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        if base_address:
            parsed = urlparse(base_address)
            if parsed.scheme not in ("http", "https") or not parsed.netloc:
                raise ValueError(f"invalid RDAP base address: {base_address!r}")

        self._requested_base = base_address
        self._base_address: str | None = None
        self._http = http_client
        self._owns_http = http_client is None
        self._transport_config = transport_config
        self._headers = dict(headers or {})
        self._setup_lock = threading.Lock()
        self._ready = False

    def _setup(self) -> tuple[httpx.Client, str]:
        with self._setup_lock:
            if not self._ready:
                if self._http is None:
                    self._http = build_http_client(self._transport_config)
                # Drop the trailing slash so segments join with exactly one
                self._base_address = (self._requested_base or DEFAULT_SERVER).rstrip("/")
                self._ready = True
            return self._http, self._base_address

    @property
    def base_address(self) -> str:
        return self._setup()[1]

    def close(self) -> None:
        """Close the HTTP client if this RDAPClient created it."""
        with self._setup_lock:
            if self._owns_http and self._http is not None:
                self._http.close()
                self._http = None
                self._ready = False

    def __enter__(self) -> "RDAPClient":
        return self

    def __exit__(self, *args) -> None:
        self.close()

    # -------------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------------

    def ip(self, addr: str, headers: dict[str, str] | None = None) -> IPNetwork:
        """
        Look up an IP network: /ip/<address or CIDR block>.

        RFC 7482 Section 3.1.1.
        """
        return self.request(ResourceType.IP, addr, headers)

    def autnum(self, asn: str | int, headers: dict[str, str] | None = None) -> Autnum:
        """Look up an autonomous system: /autnum/<asplain number>."""
        return self.request(ResourceType.AUTNUM, asn, headers)

    def domain(self, fqdn: str, headers: dict[str, str] | None = None) -> Domain:
        """
        Look up a domain: /domain/<fully qualified domain name>.

        RFC 7482 Section 3.1.3. IDNs may be given as A-labels or U-labels.
        """
        return self.request(ResourceType.DOMAIN, fqdn, headers)

    def nameserver(self, name: str, headers: dict[str, str] | None = None) -> Nameserver:
        return self.request(ResourceType.NAMESERVER, name, headers)

    def entity(self, handle: str, headers: dict[str, str] | None = None) -> Entity:
        return self.request(ResourceType.ENTITY, handle, headers)

    def help(self, headers: dict[str, str] | None = None) -> dict:
        """
        Fetch the server's /help document (RFC 7482 Section 3.1.6).

        The answer is a notices structure, returned as plain JSON.
        """
        return self._get("help", headers)

    def request(
        self,
        resource_type: ResourceType,
        identifier,
        headers: dict[str, str] | None = None,
    ) -> Resource:
        """
        Look up `identifier` and decode it as `resource_type`.

        Raises TypeMismatchError, carrying the decoded object, when the
        server answers with a different objectClassName.
        """
        value = _normalize_identifier(resource_type, identifier)
        segment = f"{resource_type.segment}/{quote(value, safe='/:')}"
        data = self._get(segment, headers)

        resource = resource_type.model.from_dict(data)
        expected = resource_type.model.OBJECT_CLASS
        if resource.object_class_name != expected:
            raise TypeMismatchError(expected, resource.object_class_name, resource)
        return resource

    # -------------------------------------------------------------------------
    # HTTP
    # -------------------------------------------------------------------------

    def _build_request(
        self, segment: str, headers: dict[str, str] | None
    ) -> tuple[httpx.Client, httpx.Request]:
        http, base = self._setup()
        url = f"{base}/{segment.lstrip('/')}"

        # Client-level headers count too, including those of a caller-supplied client
        merged = httpx.Headers(http.headers)
        merged.update(self._headers)
        if headers:
            merged.update(headers)

        # httpx sends "Accept: */*" unless told otherwise
        if merged.get("Accept", "*/*") == "*/*":
            merged["Accept"] = DEFAULT_ACCEPT_HEADER
        return http, http.build_request("GET", url, headers=merged)

    @staticmethod
    def _check_scheme(request: httpx.Request) -> None:
        # RFC 7481 Section 3.5: credentials MUST travel over TLS
        if request.headers.get("Authentication") and request.url.scheme != "https":
            raise SchemeError(
                f"invalid scheme {request.url.scheme!r} in request with Authentication header"
            )

    def _send(self, http: httpx.Client, request: httpx.Request) -> tuple[httpx.Response, bytes]:
        """
        Send `request`, following redirects (RFC 7480 Section 5.2) one hop
        at a time so every hop is checked before it goes out.

        The body is always read and the response closed, so the connection
        goes back to the pool whatever happens next.
        """
        for _ in range(http.max_redirects + 1):
            self._check_scheme(request)
            logger.debug("GET %s", request.url)
            response = http.send(request, stream=True, follow_redirects=False)
            try:
                body = response.read()
            finally:
                response.close()
            if response.next_request is None:
                return response, body
            request = response.next_request
        raise NetworkError(f"exceeded maximum of {http.max_redirects} redirects to {request.url}")

    def _get(self, segment: str, headers: dict[str, str] | None = None):
        http, request = self._build_request(segment, headers)
        try:
            response, body = self._send(http, request)
        except httpx.HTTPError as e:
            raise NetworkError(f"error during request to {request.url}: {e}") from e

        url = str(response.url)
        if response.status_code >= 400:
            raise self._status_error(response, body, url)

        try:
            return json.loads(body)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise ParseError(f"error parsing response from {url}: {e}") from e

    def _status_error(self, response: httpx.Response, body: bytes, url: str):
        """
        Build the error for a 4xx/5xx response.

        RFC 7480 Section 5.3: servers MAY return an error object in the body.
        A 429 is not retried; Retry-After is handed back to the caller.
        """
        retry_after = parse_retry_after(response.headers.get("Retry-After"))
        logger.debug("%d from %s (retry_after=%s)", response.status_code, url, retry_after)

        try:
            error = RDAPError.from_dict(json.loads(body))
        except (json.JSONDecodeError, UnicodeDecodeError, ParseError):
            return StatusError(response.status_code, url, retry_after)
        return RDAPProtocolError(error, response.status_code, url, retry_after)
