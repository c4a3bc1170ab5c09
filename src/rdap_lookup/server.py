"""
RDAP Lookup MCP Server

An MCP server exposing RDAP lookups as tools:
- Bootstrap server discovery (via the IANA registries)
- Domain, IP network and autonomous system lookups
"""

import json
import logging
import os
import threading

from mcp.server.fastmcp import FastMCP

from . import __version__
from .config import get_settings
from .errors import HTTPStatusError, RDAPLookupError
from .models import ResolutionQuery

# Suppress httpx request logging by default
# Set RDAP_LOOKUP_DEBUG=1 to enable verbose HTTP logging
if not os.environ.get("RDAP_LOOKUP_DEBUG"):
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

logger = logging.getLogger(__name__)

VERSION = __version__

mcp = FastMCP("rdap-lookup")
mcp._mcp_server.version = VERSION

# Shared by all tool calls so bootstrap files are fetched once per process
_registry = None
_registry_lock = threading.Lock()


def _get_registry():
    global _registry
    with _registry_lock:
        if _registry is None:
            _registry = get_settings().registry()
        return _registry


def _error_json(e: Exception) -> str:
    payload = {"error": str(e), "type": type(e).__name__}
    if isinstance(e, HTTPStatusError):
        payload["status_code"] = e.status_code
        if e.retry_after is not None:
            payload["retry_after"] = e.retry_after
    return json.dumps(payload, indent=2)


def _lookup(resolve_name: str, fetch, value) -> str:
    try:
        server = getattr(_get_registry(), resolve_name)(value)
        with get_settings().client(server) as client:
            resource = fetch(client, value)
    except (RDAPLookupError, ValueError) as e:
        logger.debug("Lookup of %r failed: %s", value, e)
        return _error_json(e)
    return json.dumps({"server": server, "result": resource.to_dict()}, indent=2)


# =============================================================================
# MCP Tools
# =============================================================================

@mcp.tool()
def version() -> str:
    """
    Get the version of the RDAP Lookup MCP server.

    Returns:
        Version string including server name and version number.
    """
    return f"RDAP Lookup MCP Server version {VERSION}"


@mcp.tool()
def bootstrap_server(query: str) -> str:
    """
    Find the authoritative RDAP server for a domain, IP address/CIDR or AS number.

    Args:
        query: e.g. "example.com", "192.0.2.1", "2001:db8::/32" or "AS15169"

    Returns:
        JSON with the query kind and the RDAP base URL, or an error.
    """
    try:
        kind = ResolutionQuery.parse(query).kind
        server = _get_registry().resolve(query)
    except (RDAPLookupError, ValueError) as e:
        return _error_json(e)
    return json.dumps({"query": query, "kind": kind.value, "server": server}, indent=2)


@mcp.tool()
def lookup_domain(fqdn: str) -> str:
    """
    Look up registration data for a domain name.

    Args:
        fqdn: Fully qualified domain name, e.g. "example.com"

    Returns:
        JSON with the RDAP server used and the decoded domain object.
    """
    return _lookup("resolve_domain", lambda c, v: c.domain(v), fqdn)


@mcp.tool()
def lookup_ip(address: str) -> str:
    """
    Look up registration data for an IP address or CIDR block.

    Args:
        address: e.g. "192.0.2.1" or "2001:db8::/32"

    Returns:
        JSON with the RDAP server used and the decoded IP network object.
    """
    return _lookup("resolve_ip", lambda c, v: c.ip(v), address)


@mcp.tool()
def lookup_autnum(asn: str) -> str:
    """
    Look up registration data for an autonomous system number.

    Args:
        asn: e.g. "15169" or "AS15169"

    Returns:
        JSON with the RDAP server used and the decoded autnum object.
    """
    return _lookup("resolve_asn", lambda c, v: c.autnum(v), asn)


def run() -> None:
    """Entry point for the rdap-lookup-mcp script."""
    mcp.run()
