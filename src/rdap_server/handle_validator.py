"""
Query decoding and handle normalization.

Turns raw query identifiers (domain and nameserver names, entity handles,
IP addresses and CIDR ranges, AS numbers) into canonical values before
they are used to build store keys. Every rejection raises DecodeError.
"""

import ipaddress
import re

import idna

from rdap_server.enums import ResourceType
from rdap_server.exceptions import DecodeError, UnsupportedResourceError
from rdap_server.models import MAX_AUTNUM, IPNetwork


# Forbidden characters in host names (control chars, whitespace, symbols and
# glob metacharacters, which would turn an exact key into a scan)
FORBIDDEN_CHARS_PATTERN = re.compile(
    r'[\x00-\x1f\x7f'
    r'\s'
    r'!@#$%^&*()+=\[\]{}|\\:;"\'<>,?/`~]'
)

ENTITY_HANDLE_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._:-]*$")

ASN_PATTERN = re.compile(r"^(?:AS)?([0-9]+)$", re.IGNORECASE | re.ASCII)

MAX_DOMAIN_LENGTH = 253
MAX_HANDLE_LENGTH = 255


class HandleValidator:
    """
    Normalizes handles into the canonical form used as store keys.

    Handles:
    - Lowercase LDH form for domain and nameserver names
    - IDNA (UTS #46) encoding of internationalized names to A-labels
    - Rejection of forbidden characters and empty labels
    - A safe character set for entity handles
    """

    def normalize(self, resource_type: ResourceType, raw: str) -> str:
        """
        Normalize a handle for the given resource type.

        Raises:
            DecodeError: If the handle is not acceptable for the type
            UnsupportedResourceError: If the type is not looked up by handle
        """
        if resource_type in (ResourceType.DOMAIN, ResourceType.NAMESERVER):
            return self.normalize_host_name(raw)
        if resource_type is ResourceType.ENTITY:
            return self.normalize_entity_handle(raw)
        raise UnsupportedResourceError(
            code="unsupported_resource",
            message=f"Handles are not used to look up {resource_type.object_class_name} objects",
            details={"resource": resource_type.value},
        )

    def normalize_host_name(self, raw: str) -> str:
        """
        Convert a domain or nameserver name to canonical form (lowercase, IDNA).

        Raises:
            DecodeError: If the name is empty, contains forbidden characters,
                has empty labels or fails IDNA encoding
        """
        if not raw or not raw.strip():
            raise DecodeError(
                code="empty_handle",
                message="Host name is empty",
                details={"raw_input": raw},
            )

        name = raw.strip()
        if name.endswith(".") and len(name) > 1:
            name = name[:-1]

        if FORBIDDEN_CHARS_PATTERN.search(name):
            raise DecodeError(
                code="forbidden_chars",
                message="Host name contains forbidden characters",
                details={
                    "raw_input": raw,
                    "forbidden_chars": FORBIDDEN_CHARS_PATTERN.findall(name),
                },
            )

        name = name.lower()
        if any(ord(c) > 127 for c in name):
            try:
                name = idna.encode(name, uts46=True).decode("ascii")
            except idna.IDNAError as e:
                raise DecodeError(
                    code="idna_error",
                    message=f"IDNA encoding failed: {e}",
                    details={"raw_input": raw, "idna_error": str(e)},
                )

        if any(not label for label in name.split(".")):
            raise DecodeError(
                code="empty_label",
                message="Host name contains an empty label",
                details={"raw_input": raw},
            )

        if len(name) > MAX_DOMAIN_LENGTH:
            raise DecodeError(
                code="too_long",
                message=f"Host name exceeds {MAX_DOMAIN_LENGTH} characters",
                details={"raw_input": raw},
            )

        return name

    def normalize_entity_handle(self, raw: str) -> str:
        """
        Validate an entity handle; handles are case-sensitive and kept as-is.

        Raises:
            DecodeError: If the handle contains characters outside the safe set
        """
        handle = (raw or "").strip()
        if not handle or len(handle) > MAX_HANDLE_LENGTH or not ENTITY_HANDLE_PATTERN.match(handle):
            raise DecodeError(
                code="invalid_handle",
                message=f"Invalid entity handle: {raw!r}",
                details={"raw_input": raw},
            )
        return handle


def parse_ip_query(raw: str) -> IPNetwork:
    """
    Parse an IP address or CIDR range query.

    A bare address becomes a single-host network; a CIDR with host bits
    set is reduced to its network (``10.0.0.5/24`` -> ``10.0.0.0/24``).

    Raises:
        DecodeError: If the value is neither an address nor a CIDR
    """
    text = (raw or "").strip()
    try:
        if "/" in text:
            return ipaddress.ip_network(text, strict=False)
        return ipaddress.ip_network(ipaddress.ip_address(text))
    except ValueError as e:
        raise DecodeError(
            code="invalid_ip",
            message=f"Invalid IP address or CIDR: {raw}",
            details={"raw_input": raw, "error": str(e)},
        )


def parse_asn(raw) -> int:
    """
    Parse an autonomous system number, with or without an 'AS' prefix.

    Raises:
        DecodeError: If the value is not an unsigned 32-bit integer
    """
    if isinstance(raw, bool):
        raise DecodeError(
            code="invalid_asn",
            message=f"Invalid AS number: {raw!r}",
            details={"raw_input": repr(raw)},
        )
    if isinstance(raw, int):
        value = raw
    else:
        match = ASN_PATTERN.match((raw or "").strip())
        if not match:
            raise DecodeError(
                code="invalid_asn",
                message=f"Invalid AS number: {raw!r}",
                details={"raw_input": raw},
            )
        value = int(match.group(1))

    if not 0 <= value <= MAX_AUTNUM:
        raise DecodeError(
            code="invalid_asn",
            message=f"AS number out of range: {value}",
            details={"raw_input": str(raw)},
        )
    return value
