"""
RDAP data model.

Typed views over the JSON documents defined by RFC 7484 (bootstrap
service registries) and RFC 7483 (RDAP responses and error objects).

Each model decodes with `from_dict()` and encodes with `to_dict()`. Members
absent from the source document stay absent on encode, so a decode/encode
cycle reproduces the original values. Shape problems raise ParseError.
"""

import ipaddress
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from .errors import ParseError, ValidationError


# =============================================================================
# Decoding helpers
# =============================================================================

def _expect_dict(data: Any, what: str) -> dict:
    if not isinstance(data, dict):
        raise ParseError(f"{what}: expected a JSON object, got {type(data).__name__}")
    return data


def _opt_str(data: dict, key: str) -> str | None:
    value = data.get(key)
    if value is not None and not isinstance(value, str):
        raise ParseError(f"{key}: expected a string, got {type(value).__name__}")
    return value


def _opt_int(data: dict, key: str) -> int | None:
    value = data.get(key)
    # bool is an int subclass but never a valid number here
    if value is not None and (isinstance(value, bool) or not isinstance(value, int)):
        raise ParseError(f"{key}: expected an integer, got {type(value).__name__}")
    return value


def _str_list(data: dict, key: str) -> list[str]:
    value = data.get(key)
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ParseError(f"{key}: expected an array of strings")
    return list(value)


def _obj_list(data: dict, key: str, cls) -> list:
    value = data.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise ParseError(f"{key}: expected an array")
    return [cls.from_dict(item) for item in value]


def _parse_timestamp(value: str | None) -> datetime | None:
    """Parse an RFC 3339 timestamp, returning None when absent or invalid."""
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def _put(out: dict, key: str, value) -> None:
    """Set `key` only when the value carries data."""
    if value is None or value == []:
        return
    out[key] = value


# =============================================================================
# Bootstrap registry documents (RFC 7484)
# =============================================================================

class QueryKind(Enum):
    """The kind of value a bootstrap lookup is keyed on."""

    DOMAIN = "domain"
    IP = "ip"
    ASN = "asn"


@dataclass(frozen=True)
class ResolutionQuery:
    """A bootstrap lookup value together with its kind."""

    kind: QueryKind
    value: str

    @classmethod
    def parse(cls, value: str | int) -> "ResolutionQuery":
        """
        Classify a raw query value.

        Integers and "AS<n>" strings are AS numbers, anything that parses as
        an address or CIDR block is IP, and the rest is treated as a domain.
        """
        if isinstance(value, int) and not isinstance(value, bool):
            return cls(QueryKind.ASN, str(value))
        if not isinstance(value, str) or not value.strip():
            raise ValidationError(f"empty or invalid query: {value!r}")

        raw = value.strip()
        digits = raw[2:] if raw[:2].lower() == "as" else raw
        if digits.isascii() and digits.isdigit():
            return cls(QueryKind.ASN, raw)
        try:
            ipaddress.ip_network(raw, strict=False)
        except ValueError:
            return cls(QueryKind.DOMAIN, raw)
        return cls(QueryKind.IP, raw)


@dataclass
class Service:
    """One services entry: the keys it covers and their RDAP base URLs."""

    entries: list[str]
    urls: list[str]

    @classmethod
    def from_json(cls, raw: Any, index: int = 0) -> "Service":
        if not isinstance(raw, list) or len(raw) != 2:
            raise ParseError(f"services[{index}]: expected a 2-element array")
        entries, urls = raw
        for part, name in ((entries, "entries"), (urls, "urls")):
            if not isinstance(part, list) or not all(isinstance(v, str) for v in part):
                raise ParseError(f"services[{index}]: {name} must be an array of strings")
        if not urls:
            raise ParseError(f"services[{index}]: no server URLs listed")
        return cls(entries=list(entries), urls=list(urls))

    def to_json(self) -> list[list[str]]:
        return [list(self.entries), list(self.urls)]

    def preferred_url(self) -> str:
        """
        First HTTPS base URL, falling back to the first URL.

        RFC 7484 Section 3: secure transports SHOULD be tried first.
        """
        for url in self.urls:
            if url.lower().startswith("https://"):
                return url
        return self.urls[0]


@dataclass
class ServiceRegistryDocument:
    """An IANA RDAP bootstrap service registry file."""

    version: str
    services: list[Service] = field(default_factory=list)
    publication: str | None = None
    description: str | None = None

    @classmethod
    def from_dict(cls, data: Any) -> "ServiceRegistryDocument":
        data = _expect_dict(data, "bootstrap document")
        version = _opt_str(data, "version")
        if version is None:
            raise ParseError("bootstrap document: missing version")
        services = data.get("services")
        if not isinstance(services, list):
            raise ParseError("bootstrap document: services must be an array")
        return cls(
            version=version,
            services=[Service.from_json(s, i) for i, s in enumerate(services)],
            publication=_opt_str(data, "publication"),
            description=_opt_str(data, "description"),
        )

    def to_dict(self) -> dict:
        out: dict[str, Any] = {"version": self.version}
        _put(out, "publication", self.publication)
        _put(out, "description", self.description)
        out["services"] = [s.to_json() for s in self.services]
        return out

    @property
    def published_at(self) -> datetime | None:
        return _parse_timestamp(self.publication)


# =============================================================================
# RDAP error object (RFC 7483 Section 6)
# =============================================================================

@dataclass
class RDAPError:
    """An RDAP error response body."""

    error_code: int
    title: str = ""
    description: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Any) -> "RDAPError":
        data = _expect_dict(data, "error")
        code = _opt_int(data, "errorCode")
        if code is None:
            raise ParseError("error: missing errorCode")
        return cls(
            error_code=code,
            title=_opt_str(data, "title") or "",
            description=_str_list(data, "description"),
        )

    def to_dict(self) -> dict:
        return {
            "errorCode": self.error_code,
            "title": self.title,
            "description": list(self.description),
        }

    def __str__(self) -> str:
        if self.description:
            return f"{self.title} (Code: {self.error_code}): {' '.join(self.description)}"
        return f"{self.title} (Code: {self.error_code})"


# =============================================================================
# Common response structures (RFC 7483 Section 4)
# =============================================================================

class Status(str, Enum):
    """Status values from RFC 7483 Section 10.2.2."""

    VALIDATED = "validated"
    RENEW_PROHIBITED = "renew prohibited"
    UPDATE_PROHIBITED = "update prohibited"
    TRANSFER_PROHIBITED = "transfer prohibited"
    DELETE_PROHIBITED = "delete prohibited"
    PROXY = "proxy"
    PRIVATE = "private"
    REMOVED = "removed"
    OBSCURED = "obscured"
    ASSOCIATED = "associated"
    ACTIVE = "active"
    INACTIVE = "inactive"
    LOCKED = "locked"
    PENDING_CREATE = "pending create"
    PENDING_RENEW = "pending renew"
    PENDING_TRANSFER = "pending transfer"
    PENDING_UPDATE = "pending update"
    PENDING_DELETE = "pending delete"


@dataclass
class Link:
    value: str | None = None
    rel: str | None = None
    href: str | None = None
    type: str | None = None

    @classmethod
    def from_dict(cls, data: Any) -> "Link":
        data = _expect_dict(data, "link")
        return cls(
            value=_opt_str(data, "value"),
            rel=_opt_str(data, "rel"),
            href=_opt_str(data, "href"),
            type=_opt_str(data, "type"),
        )

    def to_dict(self) -> dict:
        out: dict[str, Any] = {}
        for key in ("value", "rel", "href", "type"):
            _put(out, key, getattr(self, key))
        return out


@dataclass
class Remark:
    description: list[str] = field(default_factory=list)
    title: str | None = None

    @classmethod
    def from_dict(cls, data: Any) -> "Remark":
        data = _expect_dict(data, "remark")
        return cls(
            description=_str_list(data, "description"),
            title=_opt_str(data, "title"),
        )

    def to_dict(self) -> dict:
        out: dict[str, Any] = {}
        _put(out, "title", self.title)
        _put(out, "description", list(self.description))
        return out


@dataclass
class Event:
    action: str | None = None
    timestamp: str | None = None

    @classmethod
    def from_dict(cls, data: Any) -> "Event":
        data = _expect_dict(data, "event")
        return cls(
            action=_opt_str(data, "eventAction"),
            timestamp=_opt_str(data, "eventDate"),
        )

    def to_dict(self) -> dict:
        out: dict[str, Any] = {}
        _put(out, "eventAction", self.action)
        _put(out, "eventDate", self.timestamp)
        return out

    @property
    def date(self) -> datetime | None:
        return _parse_timestamp(self.timestamp)


# =============================================================================
# Object classes (RFC 7483 Section 5)
# =============================================================================

@dataclass
class Resource:
    """Members shared by every RDAP object class."""

    OBJECT_CLASS = ""

    object_class_name: str | None = None
    handle: str | None = None
    status: list[str] = field(default_factory=list)
    remarks: list[Remark] = field(default_factory=list)
    links: list[Link] = field(default_factory=list)
    events: list[Event] = field(default_factory=list)
    entities: list["Entity"] = field(default_factory=list)

    @classmethod
    def _common(cls, data: dict) -> dict:
        return {
            "object_class_name": _opt_str(data, "objectClassName"),
            "handle": _opt_str(data, "handle"),
            "status": _str_list(data, "status"),
            "remarks": _obj_list(data, "remarks", Remark),
            "links": _obj_list(data, "links", Link),
            "events": _obj_list(data, "events", Event),
            "entities": _obj_list(data, "entities", Entity),
        }

    @classmethod
    def from_dict(cls, data: Any):
        data = _expect_dict(data, cls.OBJECT_CLASS or "resource")
        return cls(**cls._common(data))

    def to_dict(self) -> dict:
        out: dict[str, Any] = {}
        _put(out, "objectClassName", self.object_class_name)
        _put(out, "handle", self.handle)
        _put(out, "status", list(self.status))
        _put(out, "remarks", [r.to_dict() for r in self.remarks])
        _put(out, "links", [link.to_dict() for link in self.links])
        _put(out, "events", [e.to_dict() for e in self.events])
        _put(out, "entities", [e.to_dict() for e in self.entities])
        return out

    def has_status(self, status: Status | str) -> bool:
        value = status.value if isinstance(status, Status) else status
        return value in self.status

    def event(self, action: str) -> Event | None:
        """First event with the given eventAction, e.g. "registration"."""
        for event in self.events:
            if event.action == action:
                return event
        return None


@dataclass
class Entity(Resource):
    """RFC 7483 Section 5.1. Contact data stays as the raw jCard array."""

    OBJECT_CLASS = "entity"

    roles: list[str] = field(default_factory=list)
    vcard_array: list | None = None

    @classmethod
    def from_dict(cls, data: Any) -> "Entity":
        data = _expect_dict(data, "entity")
        vcard = data.get("vcardArray")
        if vcard is not None and not isinstance(vcard, list):
            raise ParseError("vcardArray: expected an array")
        return cls(
            **cls._common(data),
            roles=_str_list(data, "roles"),
            vcard_array=vcard,
        )

    def to_dict(self) -> dict:
        out = super().to_dict()
        _put(out, "roles", list(self.roles))
        _put(out, "vcardArray", self.vcard_array)
        return out

    @property
    def display_name(self) -> str | None:
        """The jCard "fn" property, if present."""
        if not self.vcard_array or len(self.vcard_array) < 2:
            return None
        for prop in self.vcard_array[1]:
            if isinstance(prop, list) and len(prop) >= 4 and prop[0] == "fn":
                return prop[3]
        return None


@dataclass
class Nameserver(Resource):
    """RFC 7483 Section 5.2."""

    OBJECT_CLASS = "nameserver"

    ldh_name: str | None = None
    unicode_name: str | None = None
    ip_addresses: dict[str, list[str]] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Any) -> "Nameserver":
        data = _expect_dict(data, "nameserver")
        addresses = data.get("ipAddresses") or {}
        if not isinstance(addresses, dict):
            raise ParseError("ipAddresses: expected an object")
        return cls(
            **cls._common(data),
            ldh_name=_opt_str(data, "ldhName"),
            unicode_name=_opt_str(data, "unicodeName"),
            ip_addresses={
                "v4": _str_list(addresses, "v4"),
                "v6": _str_list(addresses, "v6"),
            } if addresses else {},
        )

    def to_dict(self) -> dict:
        out = super().to_dict()
        _put(out, "ldhName", self.ldh_name)
        _put(out, "unicodeName", self.unicode_name)
        addresses = {k: list(v) for k, v in self.ip_addresses.items() if v}
        if addresses:
            out["ipAddresses"] = addresses
        return out


@dataclass
class IPNetwork(Resource):
    """RFC 7483 Section 5.4."""

    OBJECT_CLASS = "ip network"

    start_address: str | None = None
    end_address: str | None = None
    ip_version: str | None = None
    name: str | None = None
    type: str | None = None
    country: str | None = None
    parent_handle: str | None = None

    _MEMBERS = (
        ("start_address", "startAddress"),
        ("end_address", "endAddress"),
        ("ip_version", "ipVersion"),
        ("name", "name"),
        ("type", "type"),
        ("country", "country"),
        ("parent_handle", "parentHandle"),
    )

    @classmethod
    def from_dict(cls, data: Any) -> "IPNetwork":
        data = _expect_dict(data, "ip network")
        members = {attr: _opt_str(data, key) for attr, key in cls._MEMBERS}
        return cls(**cls._common(data), **members)

    def to_dict(self) -> dict:
        out = super().to_dict()
        for attr, key in self._MEMBERS:
            _put(out, key, getattr(self, attr))
        return out


@dataclass
class Domain(Resource):
    """RFC 7483 Section 5.3."""

    OBJECT_CLASS = "domain"

    ldh_name: str | None = None
    unicode_name: str | None = None
    nameservers: list[Nameserver] = field(default_factory=list)
    network: IPNetwork | None = None

    @classmethod
    def from_dict(cls, data: Any) -> "Domain":
        data = _expect_dict(data, "domain")
        network = data.get("network")
        return cls(
            **cls._common(data),
            ldh_name=_opt_str(data, "ldhName"),
            unicode_name=_opt_str(data, "unicodeName"),
            nameservers=_obj_list(data, "nameservers", Nameserver),
            network=IPNetwork.from_dict(network) if network is not None else None,
        )

    def to_dict(self) -> dict:
        out = super().to_dict()
        _put(out, "ldhName", self.ldh_name)
        _put(out, "unicodeName", self.unicode_name)
        _put(out, "nameservers", [ns.to_dict() for ns in self.nameservers])
        if self.network is not None:
            out["network"] = self.network.to_dict()
        return out


@dataclass
class Autnum(Resource):
    """RFC 7483 Section 5.5."""

    OBJECT_CLASS = "autnum"

    start_autnum: int | None = None
    end_autnum: int | None = None
    name: str | None = None
    type: str | None = None
    country: str | None = None

    @classmethod
    def from_dict(cls, data: Any) -> "Autnum":
        data = _expect_dict(data, "autnum")
        return cls(
            **cls._common(data),
            start_autnum=_opt_int(data, "startAutnum"),
            end_autnum=_opt_int(data, "endAutnum"),
            name=_opt_str(data, "name"),
            type=_opt_str(data, "type"),
            country=_opt_str(data, "country"),
        )

    def to_dict(self) -> dict:
        out = super().to_dict()
        _put(out, "startAutnum", self.start_autnum)
        _put(out, "endAutnum", self.end_autnum)
        _put(out, "name", self.name)
        _put(out, "type", self.type)
        _put(out, "country", self.country)
        return out


OBJECT_CLASSES: dict[str, type[Resource]] = {
    cls.OBJECT_CLASS: cls for cls in (Domain, IPNetwork, Entity, Nameserver, Autnum)
}


def decode_resource(data: Any) -> Resource:
    """Decode an RDAP object using its objectClassName discriminator."""
    data = _expect_dict(data, "response")
    name = data.get("objectClassName")
    cls = OBJECT_CLASSES.get(name) if isinstance(name, str) else None
    if cls is None:
        raise ParseError(f"unknown objectClassName: {name!r}")
    return cls.from_dict(data)
