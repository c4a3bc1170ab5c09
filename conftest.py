"""Shared fixtures: canned bootstrap files and mock HTTP transports."""

import json

import httpx
import pytest

DNS_URL = "https://bootstrap.test/dns.json"
IPV4_URL = "https://bootstrap.test/ipv4.json"
IPV6_URL = "https://bootstrap.test/ipv6.json"
ASN_URL = "https://bootstrap.test/asn.json"

DNS_BOOTSTRAP = {
    "version": "1.0",
    "publication": "2024-05-01T12:00:00Z",
    "description": "Test DNS bootstrap",
    "services": [
        [["com"], ["https://rdap.com-registry.test/v1/"]],
        [["example.com"], ["http://rdap.example.test/", "https://rdap.example.test/"]],
        [["net", "org"], ["https://rdap.shared.test/rdap/"]],
        [["plain"], ["http://rdap.plain.test/"]],
    ],
}

IPV4_BOOTSTRAP = {
    "version": "1.0",
    "publication": "2024-05-01T12:00:00Z",
    "services": [
        [["192.0.0.0/8"], ["https://rdap.wide.test/"]],
        [["192.0.2.0/24"], ["https://rdap.narrow.test/"]],
        [["198.51.100.0/24", "203.0.113.0/24"], ["https://rdap.docs.test/"]],
    ],
}

IPV6_BOOTSTRAP = {
    "version": "1.0",
    "services": [
        [["2001:db8::/32"], ["https://rdap.v6.test/"]],
        [["2001:db8:1234::/48"], ["https://rdap.v6-narrow.test/"]],
    ],
}

ASN_BOOTSTRAP = {
    "version": "1.0",
    "services": [
        [["1-1876", "1877-1901"], ["https://rdap.arin.test/"]],
        [["1000-1100"], ["https://rdap.ripe.test/"]],
        [["64512"], ["https://rdap.private.test/"]],
    ],
}

BOOTSTRAP_FILES = {
    DNS_URL: DNS_BOOTSTRAP,
    IPV4_URL: IPV4_BOOTSTRAP,
    IPV6_URL: IPV6_BOOTSTRAP,
    ASN_URL: ASN_BOOTSTRAP,
}


class RecordingHandler:
    """MockTransport handler that records every request it serves."""

    def __init__(self, responder):
        self.responder = responder
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.responder(request)

    @property
    def urls(self) -> list[str]:
        return [str(r.url) for r in self.requests]


def json_response(data, status_code: int = 200, headers=None) -> httpx.Response:
    return httpx.Response(
        status_code,
        content=json.dumps(data).encode(),
        headers={"Content-Type": "application/json", **(headers or {})},
    )


def serve_bootstrap(request: httpx.Request) -> httpx.Response:
    data = BOOTSTRAP_FILES.get(str(request.url))
    if data is None:
        return httpx.Response(404)
    return json_response(data)


@pytest.fixture
def bootstrap_handler():
    return RecordingHandler(serve_bootstrap)


@pytest.fixture
def registry(bootstrap_handler):
    from rdap_lookup.bootstrap import BootstrapRegistry

    http = httpx.Client(transport=httpx.MockTransport(bootstrap_handler))
    yield BootstrapRegistry(
        asn_endpoint=ASN_URL,
        dns_endpoint=DNS_URL,
        ipv4_endpoint=IPV4_URL,
        ipv6_endpoint=IPV6_URL,
        http_client=http,
    )
    http.close()


@pytest.fixture
def make_client():
    """Build an RDAPClient whose HTTP traffic goes to `responder`."""
    from rdap_lookup.client import RDAPClient

    opened = []

    def factory(responder, base_address="https://rdap.server.test/rdap/", **kwargs):
        handler = RecordingHandler(responder)
        http = httpx.Client(
            transport=httpx.MockTransport(handler), follow_redirects=True
        )
        opened.append(http)
        client = RDAPClient(base_address=base_address, http_client=http, **kwargs)
        return client, handler

    yield factory
    for http in opened:
        http.close()
