"""
Data models for the RDAP server.

This module defines the typed views of stored records (network blocks,
AS blocks, whois/domain records, nameservers) and the small value objects
used when assembling RDAP output (links, events). Stored records are
untyped JSON; they only become valid when parsed here, and every parse
failure raises DataError.
"""

import ipaddress
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Optional, Union

from .enums import EventAction, RDAPStatus
from .exceptions import DataError

IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]
IPNetwork = Union[ipaddress.IPv4Network, ipaddress.IPv6Network]

MAX_AUTNUM = 2**32 - 1

_MISSING = object()


def _lookup(raw: dict, *names: str) -> Any:
    """Return the first present field among ``names`` or _MISSING."""
    for name in names:
        if name in raw:
            return raw[name]
    return _MISSING


def _require(raw: dict, *names: str) -> Any:
    value = _lookup(raw, *names)
    if value is _MISSING or value is None:
        raise DataError(
            code="missing_field",
            message=f"Stored record is missing field '{names[0]}'",
            details={"field": names[0]},
        )
    return value


def _require_str(raw: dict, *names: str) -> str:
    value = _require(raw, *names)
    if not isinstance(value, str):
        raise DataError(
            code="invalid_field",
            message=f"Field '{names[0]}' must be a string",
            details={"field": names[0], "value": repr(value)},
        )
    return value


def _ensure_mapping(raw: Any) -> dict:
    if not isinstance(raw, dict):
        raise DataError(
            code="invalid_record",
            message="Stored record is not a JSON object",
            details={"type": type(raw).__name__},
        )
    return raw


def parse_timestamp(value: Any, field_name: str) -> datetime:
    """
    Parse an RFC 3339 / ISO 8601 timestamp into an aware UTC datetime.

    Naive timestamps and bare dates are taken as UTC.

    Raises:
        DataError: If the value is not a parseable timestamp
    """
    if not isinstance(value, str):
        raise DataError(
            code="invalid_timestamp",
            message=f"Field '{field_name}' must be a timestamp string",
            details={"field": field_name, "value": repr(value)},
        )

    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"

    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        try:
            parsed = datetime.combine(date.fromisoformat(text), datetime.min.time())
        except ValueError as e:
            raise DataError(
                code="invalid_timestamp",
                message=f"Field '{field_name}' is not a valid timestamp: {value}",
                details={"field": field_name, "value": value, "error": str(e)},
            )

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def format_timestamp(value: datetime) -> str:
    """Render a datetime as RFC 3339 UTC with a 'Z' suffix."""
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def parse_statuses(value: Any, field_name: str = "status") -> Optional[list[str]]:
    """
    Validate an optional list of RDAP status values.

    Returns the list unchanged (or None when absent).

    Raises:
        DataError: If the value is not a list of known status strings
    """
    if value is None:
        return None
    if not isinstance(value, list):
        raise DataError(
            code="invalid_status",
            message=f"Field '{field_name}' must be a list",
            details={"field": field_name},
        )

    known = {status.value for status in RDAPStatus}
    for item in value:
        if item not in known:
            raise DataError(
                code="invalid_status",
                message=f"Unknown RDAP status: {item!r}",
                details={"field": field_name, "value": repr(item)},
            )
    return list(value)


def parse_address(value: Any, field_name: str) -> IPAddress:
    """
    Parse a stored IP address.

    Raises:
        DataError: If the value is not a valid IPv4/IPv6 address
    """
    if not isinstance(value, str):
        raise DataError(
            code="invalid_address",
            message=f"Field '{field_name}' must be an IP address string",
            details={"field": field_name, "value": repr(value)},
        )
    try:
        return ipaddress.ip_address(value.strip())
    except ValueError as e:
        raise DataError(
            code="invalid_address",
            message=f"Field '{field_name}' is not a valid IP address: {value}",
            details={"field": field_name, "value": value, "error": str(e)},
        )


def _parse_autnum(value: Any, field_name: str) -> Optional[int]:
    if value is _MISSING or value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise DataError(
            code="invalid_autnum",
            message=f"Field '{field_name}' must be an integer",
            details={"field": field_name, "value": repr(value)},
        )
    if not 0 <= value <= MAX_AUTNUM:
        raise DataError(
            code="invalid_autnum",
            message=f"Field '{field_name}' is outside the 32-bit ASN range",
            details={"field": field_name, "value": value},
        )
    return value


@dataclass
class Link:
    """An RDAP link object."""

    value: str
    rel: str
    href: str
    hreflang: list[str] = field(default_factory=list)
    type: Optional[str] = None

    def to_dict(self) -> dict:
        link = {
            "value": self.value,
            "rel": self.rel,
            "href": self.href,
        }
        if self.hreflang:
            link["hreflang"] = list(self.hreflang)
        if self.type:
            link["type"] = self.type
        return link


@dataclass
class Event:
    """An RDAP event (registration, expiration)."""

    event_action: EventAction
    event_date: datetime

    def to_dict(self) -> dict:
        return {
            "eventAction": self.event_action.value,
            "eventDate": format_timestamp(self.event_date),
        }


@dataclass
class NetworkBlock:
    """
    A stored network block: an inclusive address range plus metadata.

    The range need not be aligned to a power-of-two boundary.
    """

    start_address: IPAddress
    end_address: IPAddress
    record: dict

    @classmethod
    def from_record(cls, raw: Any) -> "NetworkBlock":
        """
        Parse a stored ip record.

        Raises:
            DataError: If either address is missing or malformed, or the
                range is reversed
        """
        raw = _ensure_mapping(raw)
        start = parse_address(_require(raw, "start_address", "startAddress"), "start_address")
        end = parse_address(_require(raw, "end_address", "endAddress"), "end_address")

        if start.version == end.version and start > end:
            raise DataError(
                code="invalid_range",
                message=f"Network block start {start} is after end {end}",
                details={"start_address": str(start), "end_address": str(end)},
            )

        return cls(start_address=start, end_address=end, record=raw)

    @property
    def is_mixed_family(self) -> bool:
        return self.start_address.version != self.end_address.version

    @property
    def version(self) -> int:
        return self.start_address.version

    @property
    def size(self) -> int:
        """Number of addresses in the inclusive range."""
        return int(self.end_address) - int(self.start_address) + 1

    @property
    def prefix_length(self) -> int:
        """Length of the smallest prefix that encloses the whole range."""
        differing = int(self.start_address) ^ int(self.end_address)
        return self.start_address.max_prefixlen - differing.bit_length()

    @property
    def enclosing_network(self) -> IPNetwork:
        """The smallest CIDR network that covers the whole range."""
        base = int(self.start_address) & int(self.end_address)
        if self.version == 4:
            return ipaddress.IPv4Network((base, self.prefix_length), strict=False)
        return ipaddress.IPv6Network((base, self.prefix_length), strict=False)

    def contains_address(self, address: IPAddress) -> bool:
        return (
            address.version == self.version
            and self.start_address <= address <= self.end_address
        )

    def covers(self, network: IPNetwork) -> bool:
        """True if every address of ``network`` lies inside the range."""
        return (
            self.contains_address(network.network_address)
            and self.contains_address(network.broadcast_address)
        )


@dataclass
class AutnumBlock:
    """
    A stored autonomous-system block.

    A block without ``start_autnum`` has no range and matches by handle
    only; a missing start is not taken as 0.
    """

    handle: Optional[str]
    start_autnum: Optional[int]
    end_autnum: Optional[int]
    record: dict

    @classmethod
    def from_record(cls, raw: Any) -> "AutnumBlock":
        """
        Parse a stored autnum record.

        A missing end defaults to the start.

        Raises:
            DataError: If a bound is not a 32-bit integer or the range is reversed
        """
        raw = _ensure_mapping(raw)
        start = _parse_autnum(_lookup(raw, "start_autnum", "startAutnum"), "start_autnum")
        end = _parse_autnum(_lookup(raw, "end_autnum", "endAutnum"), "end_autnum")
        if end is None:
            end = start

        if start is not None and end is not None and start > end:
            raise DataError(
                code="invalid_range",
                message=f"AS block start {start} is after end {end}",
                details={"start_autnum": start, "end_autnum": end},
            )

        handle = raw.get("handle")
        if handle is not None and not isinstance(handle, str):
            raise DataError(
                code="invalid_field",
                message="Field 'handle' must be a string",
                details={"field": "handle"},
            )

        return cls(handle=handle, start_autnum=start, end_autnum=end, record=raw)

    def matches(self, asn: int) -> bool:
        """True if ``asn`` lies in the block or the handle is exactly 'AS<asn>'."""
        in_range = (
            self.start_autnum is not None
            and self.start_autnum <= asn <= self.end_autnum
        )
        return in_range or self.handle == f"AS{asn}"


@dataclass
class NameserverRecord:
    """A stored nameserver record."""

    ldh_name: str
    unicode_name: str
    ip_addresses: dict
    status: Optional[list[str]] = None

    @classmethod
    def from_record(cls, raw: Any) -> "NameserverRecord":
        raw = _ensure_mapping(raw)
        ip_addresses = _require(raw, "ip_addresses", "ipAddresses")
        if not isinstance(ip_addresses, dict):
            raise DataError(
                code="invalid_field",
                message="Field 'ip_addresses' must be an object",
                details={"field": "ip_addresses"},
            )
        for family in ("v4", "v6"):
            addresses = ip_addresses.get(family, [])
            if not isinstance(addresses, list) or not all(
                isinstance(address, str) for address in addresses
            ):
                raise DataError(
                    code="invalid_field",
                    message=f"Field 'ip_addresses.{family}' must be a list of strings",
                    details={"field": f"ip_addresses.{family}"},
                )

        return cls(
            ldh_name=_require_str(raw, "ldh_name", "ldhName"),
            unicode_name=_require_str(raw, "unicode_name", "unicodeName"),
            ip_addresses=ip_addresses,
            status=parse_statuses(raw.get("status")),
        )


@dataclass
class WhoisRecord:
    """A stored domain (whois) record in its minimal form."""

    created_at: datetime
    name_servers: list[str]
    unicode_name: str
    ldh_name: str
    expires_at: Optional[datetime] = None
    status: Optional[list[str]] = None
    dnssec: Optional[dict] = None

    @classmethod
    def from_record(cls, raw: Any) -> "WhoisRecord":
        raw = _ensure_mapping(raw)

        name_servers = _require(raw, "name_servers")
        if not isinstance(name_servers, list) or not all(
            isinstance(name, str) for name in name_servers
        ):
            raise DataError(
                code="invalid_field",
                message="Field 'name_servers' must be a list of host names",
                details={"field": "name_servers"},
            )

        expires_at = raw.get("expires_at")
        dnssec = raw.get("dnssec")
        if dnssec is not None and not isinstance(dnssec, dict):
            raise DataError(
                code="invalid_field",
                message="Field 'dnssec' must be an object",
                details={"field": "dnssec"},
            )

        return cls(
            created_at=parse_timestamp(_require(raw, "created_at"), "created_at"),
            expires_at=(
                parse_timestamp(expires_at, "expires_at") if expires_at is not None else None
            ),
            name_servers=list(name_servers),
            status=parse_statuses(raw.get("status")),
            dnssec=dnssec,
            unicode_name=_require_str(raw, "unicode_name"),
            ldh_name=_require_str(raw, "ldh_name"),
        )
