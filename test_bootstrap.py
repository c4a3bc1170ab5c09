"""
Tests for bootstrap server discovery (RFC 7484).
"""

import threading
import time

import httpx
import pytest

from conftest import (
    ASN_URL,
    DNS_URL,
    IPV4_URL,
    RecordingHandler,
    json_response,
    serve_bootstrap,
)
from rdap_lookup.bootstrap import (
    IANA_ASN_URL,
    IANA_DNS_URL,
    IANA_IPV4_URL,
    IANA_IPV6_URL,
    BootstrapRegistry,
    parse_asn,
)
from rdap_lookup.errors import (
    NetworkError,
    NotFoundError,
    ParseError,
    StatusError,
    ValidationError,
)


def _registry_for(responder, **endpoints) -> BootstrapRegistry:
    handler = RecordingHandler(responder)
    http = httpx.Client(transport=httpx.MockTransport(handler))
    registry = BootstrapRegistry(http_client=http, **endpoints)
    registry.handler = handler
    return registry


# =============================================================================
# Defaults
# =============================================================================

def test_default_endpoints_are_iana():
    registry = BootstrapRegistry()

    assert registry.endpoints == {
        "asn": IANA_ASN_URL,
        "dns": IANA_DNS_URL,
        "ipv4": IANA_IPV4_URL,
        "ipv6": IANA_IPV6_URL,
    }
    assert IANA_ASN_URL == "https://data.iana.org/rdap/asn.json"
    assert IANA_DNS_URL == "https://data.iana.org/rdap/dns.json"
    assert IANA_IPV4_URL == "https://data.iana.org/rdap/ipv4.json"
    assert IANA_IPV6_URL == "https://data.iana.org/rdap/ipv6.json"


# =============================================================================
# Domains
# =============================================================================

def test_domain_longest_match_wins(registry):
    # Both "com" and "example.com" match; example.com has more labels
    assert registry.resolve_domain("a.b.example.com") == "https://rdap.example.test/"


def test_domain_falls_back_to_tld(registry):
    assert registry.resolve_domain("google.com") == "https://rdap.com-registry.test/v1/"
    assert registry.resolve_domain("wikipedia.org") == "https://rdap.shared.test/rdap/"


def test_domain_match_is_label_wise(registry):
    # "notexample.com" ends with the string "example.com" but not its labels
    assert registry.resolve_domain("notexample.com") == "https://rdap.com-registry.test/v1/"


def test_domain_normalization(registry):
    assert registry.resolve_domain("  Sub.EXAMPLE.com.  ") == "https://rdap.example.test/"


def test_domain_http_only_entry(registry):
    assert registry.resolve_domain("site.plain") == "http://rdap.plain.test/"


def test_domain_not_found(registry):
    with pytest.raises(NotFoundError):
        registry.resolve_domain("example.invalid")


@pytest.mark.parametrize("value", ["", "   ", "."])
def test_domain_empty_is_validation_error(registry, bootstrap_handler, value):
    with pytest.raises(ValidationError):
        registry.resolve_domain(value)
    assert bootstrap_handler.requests == []


def test_domain_ties_keep_first_entry():
    doc = {
        "version": "1.0",
        "services": [
            [["test"], ["https://first.test/"]],
            [["test"], ["https://second.test/"]],
        ],
    }
    registry = _registry_for(lambda r: json_response(doc), dns_endpoint=DNS_URL)
    assert registry.resolve_domain("a.test") == "https://first.test/"


# =============================================================================
# IP networks
# =============================================================================

def test_ip_longest_prefix_wins(registry):
    assert registry.resolve_ip("192.0.2.1") == "https://rdap.narrow.test/"
    assert registry.resolve_ip("192.0.2.1/25") == "https://rdap.narrow.test/"


def test_ip_wider_query_uses_covering_entry(registry):
    # 192.0.0.0/16 is not inside 192.0.2.0/24, only inside 192.0.0.0/8
    assert registry.resolve_ip("192.0.0.0/16") == "https://rdap.wide.test/"
    assert registry.resolve_ip("192.1.2.3") == "https://rdap.wide.test/"


def test_ip_any_entry_of_service_matches(registry):
    assert registry.resolve_ip("203.0.113.77") == "https://rdap.docs.test/"


def test_ip_v6_uses_v6_file(registry, bootstrap_handler):
    assert registry.resolve_ip("2001:db8:1234::1") == "https://rdap.v6-narrow.test/"
    assert registry.resolve_ip("2001:db8:ffff::/48") == "https://rdap.v6.test/"
    assert bootstrap_handler.urls == ["https://bootstrap.test/ipv6.json"]


def test_ip_not_found(registry):
    with pytest.raises(NotFoundError):
        registry.resolve_ip("10.0.0.1")


@pytest.mark.parametrize(
    "value", ["", "    ", "999.999.999.999", "123/40", "198.51.100.1/ZZZZff00"]
)
def test_ip_invalid_input_makes_no_request(registry, bootstrap_handler, value):
    with pytest.raises(ValidationError):
        registry.resolve_ip(value)
    assert bootstrap_handler.requests == []


def test_ip_malformed_prefix_in_file():
    doc = {"version": "1.0", "services": [[["192.0.2.0/33"], ["https://a.test/"]]]}
    registry = _registry_for(lambda r: json_response(doc), ipv4_endpoint=IPV4_URL)
    with pytest.raises(ParseError):
        registry.resolve_ip("192.0.2.1")


# =============================================================================
# AS numbers
# =============================================================================

@pytest.mark.parametrize(
    "asn,server",
    [
        (15, "https://rdap.arin.test/"),
        ("1877", "https://rdap.arin.test/"),
        ("AS1050", "https://rdap.ripe.test/"),
        ("as64512", "https://rdap.private.test/"),
    ],
)
def test_asn_smallest_range_wins(registry, asn, server):
    assert registry.resolve_asn(asn) == server


def test_asn_not_found(registry):
    with pytest.raises(NotFoundError):
        registry.resolve_asn(70000)


@pytest.mark.parametrize("value", ["", "ASX", "-5", "4294967296", "AS²", "١٢٣", True, 1.5])
def test_asn_invalid(value):
    with pytest.raises(ValidationError):
        parse_asn(value)


@pytest.mark.parametrize("entry", ["10-abc", "²", "1-²"])
def test_asn_malformed_range_in_file(entry):
    doc = {"version": "1.0", "services": [[[entry], ["https://a.test/"]]]}
    registry = _registry_for(lambda r: json_response(doc), asn_endpoint=ASN_URL)
    with pytest.raises(ParseError):
        registry.resolve_asn(10)


# =============================================================================
# Generic dispatch
# =============================================================================

def test_resolve_dispatches_on_query_kind(registry):
    assert registry.resolve("www.example.com") == "https://rdap.example.test/"
    assert registry.resolve("192.0.2.9") == "https://rdap.narrow.test/"
    assert registry.resolve("AS1050") == "https://rdap.ripe.test/"


# =============================================================================
# Fetching and caching
# =============================================================================

def test_each_file_fetched_once(registry, bootstrap_handler):
    registry.resolve_domain("example.com")
    registry.resolve_domain("example.org")
    registry.resolve_ip("192.0.2.1")
    registry.resolve_ip("198.51.100.1")

    assert bootstrap_handler.urls == [DNS_URL, IPV4_URL]
    assert bootstrap_handler.requests[0].headers["Accept"] == "application/json"


def test_concurrent_first_use_fetches_once():
    calls = []
    lock = threading.Lock()

    def slow(request):
        with lock:
            calls.append(str(request.url))
        time.sleep(0.05)
        return serve_bootstrap(request)

    registry = _registry_for(slow, dns_endpoint=DNS_URL)
    barrier = threading.Barrier(8)
    results, errors = [], []

    def worker():
        barrier.wait()
        try:
            results.append(registry.resolve_domain("a.example.com"))
        except Exception as e:  # pragma: no cover - surfaced below
            errors.append(e)

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    assert calls == [DNS_URL]
    assert results == ["https://rdap.example.test/"] * 8


def test_failed_fetch_is_not_cached():
    responses = [httpx.Response(503), None]

    def flaky(request):
        response = responses.pop(0)
        return response if response is not None else serve_bootstrap(request)

    registry = _registry_for(flaky, dns_endpoint=DNS_URL)
    with pytest.raises(StatusError) as exc:
        registry.resolve_domain("example.com")
    assert exc.value.status_code == 503

    assert registry.resolve_domain("example.com") == "https://rdap.example.test/"


def test_rate_limited_bootstrap_fetch_carries_retry_after():
    registry = _registry_for(
        lambda r: httpx.Response(429, headers={"Retry-After": "7"}), dns_endpoint=DNS_URL
    )
    with pytest.raises(StatusError) as exc:
        registry.resolve_domain("example.com")
    assert exc.value.status_code == 429
    assert exc.value.retry_after == 7.0


def test_network_failure():
    def broken(request):
        raise httpx.ConnectError("connection refused", request=request)

    registry = _registry_for(broken, dns_endpoint=DNS_URL)
    with pytest.raises(NetworkError):
        registry.resolve_domain("example.com")


@pytest.mark.parametrize(
    "body", [b"{not json", b'{"version": "1.0", "services": [["com"]]}', b"[]"]
)
def test_malformed_file_is_parse_error(body):
    registry = _registry_for(lambda r: httpx.Response(200, content=body), dns_endpoint=DNS_URL)
    with pytest.raises(ParseError):
        registry.resolve_domain("example.com")
