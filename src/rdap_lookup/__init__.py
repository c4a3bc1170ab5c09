"""
rdap-lookup

A Registration Data Access Protocol (RDAP) client: finds the authoritative
RDAP server through the IANA bootstrap registries and decodes its answers.
"""

__version__ = "0.1.0"

from .bootstrap import BootstrapRegistry  # noqa: E402
from .client import RDAPClient, ResourceType  # noqa: E402
from .errors import (  # noqa: E402
    NetworkError,
    NotFoundError,
    ParseError,
    RDAPLookupError,
    RDAPProtocolError,
    SchemeError,
    StatusError,
    TypeMismatchError,
    ValidationError,
)
from .models import (  # noqa: E402
    Autnum,
    Domain,
    Entity,
    IPNetwork,
    Nameserver,
    RDAPError,
    ResolutionQuery,
    ServiceRegistryDocument,
)
from .transport import TransportConfig, build_http_client  # noqa: E402


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the CLI."""
    import sys

    args = sys.argv[1:] if argv is None else argv

    if not args:
        print("ERROR: You must specify a command", file=sys.stderr)
        print_help(sys.stderr)
        return 1

    command = args[0].lower()
    rest = args[1:]

    if command in ("help", "--help", "-h"):
        print_help()
        return 0

    if command in ("version", "--version", "-v"):
        print(f"rdap-lookup {__version__}")
        return 0

    handler = COMMANDS.get(command)
    if handler is None:
        print(f"command {command} not found", file=sys.stderr)
        return 1

    _configure_logging()
    try:
        handler(rest)
    except (RDAPLookupError, ValueError) as e:
        print(f"ERROR: {command}: {e}", file=sys.stderr)
        return 1
    return 0


def print_help(file=None):
    """Print help message."""
    print(f"""rdap-lookup {__version__}

Look up registration data over RDAP, using the IANA bootstrap registries
to find the authoritative server.

Usage:
    rdap-lookup domain <fqdn>           Look up a domain name
    rdap-lookup ip <address|cidr>       Look up an IP network
    rdap-lookup autnum <asn>            Look up an autonomous system
    rdap-lookup version                 Show version
    rdap-lookup help                    Show this help

Configuration:
    Settings are read from RDAP_LOOKUP_* environment variables or
    ~/.config/rdap-lookup/config.json, for example:
        RDAP_LOOKUP_DNS_BOOTSTRAP_URL=https://data.iana.org/rdap/dns.json
        RDAP_LOOKUP_TIMEOUT=10

    Set RDAP_LOOKUP_DEBUG=1 for verbose logging.
""", file=file)


def _configure_logging():
    import logging
    import os

    if os.environ.get("RDAP_LOOKUP_DEBUG"):
        logging.basicConfig(level=logging.DEBUG, format="%(name)s: %(message)s")
    else:
        logging.getLogger("httpx").setLevel(logging.WARNING)
        logging.getLogger("httpcore").setLevel(logging.WARNING)


def _print_resource(server: str, resource) -> None:
    import json
    import logging

    logging.getLogger(__name__).debug("Answer from %s", server)
    print(json.dumps(resource.to_dict(), indent=2))


def _lookup(args: list[str], what: str, resolve_name: str, fetch_name: str) -> None:
    from .config import get_settings

    if not args:
        raise ValidationError(f"no {what} specified")
    settings = get_settings()
    with settings.registry() as registry:
        server = getattr(registry, resolve_name)(args[0])
    with settings.client(server) as client:
        resource = getattr(client, fetch_name)(args[0])
    _print_resource(server, resource)


COMMANDS = {
    "domain": lambda args: _lookup(args, "domain", "resolve_domain", "domain"),
    "ip": lambda args: _lookup(args, "ip address", "resolve_ip", "ip"),
    "autnum": lambda args: _lookup(args, "AS number", "resolve_asn", "autnum"),
}
