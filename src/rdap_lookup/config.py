"""
Configuration for rdap-lookup.

Settings lookup order:
1. Environment variables (RDAP_LOOKUP_*)
2. Config file (~/.config/rdap-lookup/config.json)
3. Built-in defaults
"""

import json
import os
from dataclasses import dataclass
from pathlib import Path

from .bootstrap import (
    IANA_ASN_URL,
    IANA_DNS_URL,
    IANA_IPV4_URL,
    IANA_IPV6_URL,
    BootstrapRegistry,
)
from .client import DEFAULT_SERVER, RDAPClient
from .transport import TransportConfig

ENV_PREFIX = "RDAP_LOOKUP_"

_TRUE_VALUES = {"1", "true", "yes", "on"}


def get_config_dir() -> Path:
    """Get the config directory for this app."""
    if os.name == 'nt':  # Windows
        base = Path(os.environ.get('APPDATA', Path.home()))
    else:  # macOS, Linux
        base = Path(os.environ.get('XDG_CONFIG_HOME', Path.home() / '.config'))

    return base / 'rdap-lookup'


def get_config_file() -> Path:
    """Get the path to the config file."""
    return get_config_dir() / 'config.json'


def load_config() -> dict:
    """Load the config file, returning {} if it is missing or invalid."""
    try:
        config_file = get_config_file()
        if config_file.exists():
            config = json.loads(config_file.read_text())
            if isinstance(config, dict):
                return config
    except (json.JSONDecodeError, OSError):
        pass
    return {}


def _as_bool(value) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in _TRUE_VALUES


@dataclass(frozen=True)
class Settings:
    """Resolved settings used to build registries and clients."""

    server: str = DEFAULT_SERVER
    insecure_skip_verify: bool = False
    asn_bootstrap_url: str = IANA_ASN_URL
    dns_bootstrap_url: str = IANA_DNS_URL
    ipv4_bootstrap_url: str = IANA_IPV4_URL
    ipv6_bootstrap_url: str = IANA_IPV6_URL
    timeout: float | None = None

    def transport_config(self) -> TransportConfig:
        if self.timeout is None:
            return TransportConfig(insecure_skip_verify=self.insecure_skip_verify)
        return TransportConfig(
            insecure_skip_verify=self.insecure_skip_verify,
            dial_timeout=self.timeout,
            tls_handshake_timeout=self.timeout,
            response_header_timeout=self.timeout,
        )

    def registry(self) -> BootstrapRegistry:
        return BootstrapRegistry(
            asn_endpoint=self.asn_bootstrap_url,
            dns_endpoint=self.dns_bootstrap_url,
            ipv4_endpoint=self.ipv4_bootstrap_url,
            ipv6_endpoint=self.ipv6_bootstrap_url,
            transport_config=self.transport_config(),
        )

    def client(self, base_address: str | None = None) -> RDAPClient:
        return RDAPClient(
            base_address=base_address or self.server,
            transport_config=self.transport_config(),
        )


def get_settings() -> Settings:
    """
    Resolve settings from the environment, the config file and defaults.

    Raises ValueError if RDAP_LOOKUP_TIMEOUT (or "timeout") is not a number.
    """
    config = load_config()
    values = {}

    for name in (
        "server",
        "insecure_skip_verify",
        "asn_bootstrap_url",
        "dns_bootstrap_url",
        "ipv4_bootstrap_url",
        "ipv6_bootstrap_url",
        "timeout",
    ):
        env_name = ENV_PREFIX + ("INSECURE" if name == "insecure_skip_verify" else name.upper())
        if value := os.environ.get(env_name):
            values[name] = value
        elif config.get(name) not in (None, ""):
            values[name] = config[name]

    if "insecure_skip_verify" in values:
        values["insecure_skip_verify"] = _as_bool(values["insecure_skip_verify"])
    if "timeout" in values:
        values["timeout"] = float(values["timeout"])

    return Settings(**values)
