"""
RDAP Assembler.

Transforms minimal stored records into fully linked RDAP objects
(RFC 9083): derives lifecycle events, expands referenced nameservers
through the same assembler, and attaches self links and conformance
metadata.

Expansion is bounded: a domain expands its nameservers (depth 1) and
nameservers reference nothing further. A failure anywhere in the expansion
fails the whole object, so a returned object is always fully resolved.
"""

import asyncio
import copy
from typing import Any, Optional

from .config import RDAPConfig
from .enums import EventAction, RDAPStatus, ResourceType
from .exceptions import DataError, DecodeError
from .handle_validator import HandleValidator
from .models import (
    AutnumBlock,
    Event,
    Link,
    NameserverRecord,
    NetworkBlock,
    WhoisRecord,
)
from .record_store import RecordStore

MAX_EXPANSION_DEPTH = 1


def to_camel_case(key: str) -> str:
    """Convert a snake_case field name to RDAP camelCase ('start_address' -> 'startAddress')."""
    head, *rest = key.split("_")
    return head + "".join(part[:1].upper() + part[1:] for part in rest)


def camelize_keys(record: dict) -> dict:
    """Copy a record, renaming top-level snake_case keys to camelCase."""
    return {to_camel_case(key): copy.deepcopy(value) for key, value in record.items()}


class RDAPAssembler:
    """Builds RDAP response objects from stored records."""

    def __init__(
        self,
        config: RDAPConfig,
        store: RecordStore,
        handle_validator: Optional[HandleValidator] = None,
    ) -> None:
        """
        Initialize the assembler.

        Args:
            config: URL root, port43 referral, content type and conformance
            store: Record store used to fetch referenced nameservers
            handle_validator: Normalizes referenced nameserver names
        """
        self._config = config
        self._store = store
        self._handle_validator = handle_validator or HandleValidator()
        self._builders = {
            ResourceType.DOMAIN: self._assemble_domain,
            ResourceType.NAMESERVER: self._assemble_nameserver,
            ResourceType.NETWORK: self._assemble_network,
            ResourceType.AUTONOMOUS_SYSTEM: self._assemble_autnum,
            ResourceType.ENTITY: self._assemble_entity,
        }

    @property
    def supported_types(self) -> frozenset:
        return frozenset(self._builders)

    async def assemble(
        self,
        record: Any,
        resource_type: ResourceType,
        top_level: bool = True,
        depth: int = 0,
    ) -> dict:
        """
        Assemble one stored record into its RDAP object.

        Args:
            record: The raw stored record
            resource_type: Type the record was stored under
            top_level: Attach rdapConformance and port43 (response roots only)
            depth: Current expansion depth (0 for the response root)

        Returns:
            The RDAP object as a JSON-ready dict

        Raises:
            DataError: If the record, or any record it references, is malformed
                or a referenced record is missing
            UpstreamError: If fetching a referenced record fails
        """
        if not isinstance(record, dict):
            raise DataError(
                code="invalid_record",
                message=f"Stored {resource_type.object_class_name} record is not a JSON object",
                details={"type": type(record).__name__},
            )

        obj = await self._builders[resource_type](record, depth)

        if top_level:
            obj["rdapConformance"] = list(self._config.conformance)
            obj["port43"] = self._config.port43

        return obj

    def self_link(self, resource_type: ResourceType, handle: str) -> Link:
        """Build the 'self' link for an object."""
        href = f"{self._config.url_root}/{resource_type.key_segment}/{handle}"
        return Link(
            value=href,
            rel="self",
            href=href,
            hreflang=[self._config.hreflang],
            type=self._config.content_type,
        )

    def _links(self, resource_type: ResourceType, handle: str, record: dict) -> list[dict]:
        # stored links are kept, minus any stored self link
        stored = record.get("links")
        extra = [
            copy.deepcopy(link)
            for link in (stored if isinstance(stored, list) else [])
            if isinstance(link, dict) and link.get("rel") != "self"
        ]
        return [self.self_link(resource_type, handle).to_dict()] + extra

    async def _assemble_domain(self, record: dict, depth: int) -> dict:
        whois = WhoisRecord.from_record(record)

        events = [Event(EventAction.REGISTRATION, whois.created_at)]
        if whois.expires_at is not None:
            events.append(Event(EventAction.EXPIRATION, whois.expires_at))

        nameservers = await self._expand_nameservers(whois, depth)

        obj = {
            "objectClassName": ResourceType.DOMAIN.object_class_name,
            "handle": whois.ldh_name,
            "ldhName": whois.ldh_name,
            "unicodeName": whois.unicode_name,
            "events": [event.to_dict() for event in events],
            "nameservers": nameservers,
            "entities": [],
            "links": [self.self_link(ResourceType.DOMAIN, whois.ldh_name).to_dict()],
        }
        if whois.status is not None:
            obj["status"] = list(whois.status)
        if whois.dnssec is not None:
            obj["secureDNS"] = copy.deepcopy(whois.dnssec)
        return obj

    async def _expand_nameservers(self, whois: WhoisRecord, depth: int) -> list[dict]:
        if not whois.name_servers:
            return []
        if depth >= MAX_EXPANSION_DEPTH:
            raise DataError(
                code="expansion_depth",
                message=f"Nameserver expansion below depth {MAX_EXPANSION_DEPTH} for {whois.ldh_name}",
                details={"domain": whois.ldh_name, "depth": depth},
            )

        # fetched concurrently; gather keeps the domain's nameserver order
        return list(await asyncio.gather(*(
            self._fetch_nameserver(whois.ldh_name, name, depth + 1)
            for name in whois.name_servers
        )))

    async def _fetch_nameserver(self, domain: str, name: str, depth: int) -> dict:
        try:
            handle = self._handle_validator.normalize_host_name(name)
        except DecodeError as e:
            raise DataError(
                code="invalid_nameserver_reference",
                message=f"Domain {domain} references an invalid nameserver name {name!r}",
                details={"domain": domain, "nameserver": name, "error": e.message},
            )

        records = await self._store.get([ResourceType.NAMESERVER.key(handle)])
        if not records:
            raise DataError(
                code="missing_nameserver",
                message=f"Nameserver {handle} referenced by {domain} does not exist",
                details={"domain": domain, "nameserver": handle},
            )

        return await self.assemble(
            records[0], ResourceType.NAMESERVER, top_level=False, depth=depth
        )

    async def _assemble_nameserver(self, record: dict, depth: int) -> dict:
        nameserver = NameserverRecord.from_record(record)
        return {
            "objectClassName": ResourceType.NAMESERVER.object_class_name,
            "handle": nameserver.ldh_name,
            "ldhName": nameserver.ldh_name,
            "unicodeName": nameserver.unicode_name,
            "ipAddresses": copy.deepcopy(nameserver.ip_addresses),
            # stored status is not carried over
            "status": [RDAPStatus.ACTIVE.value],
            "links": [self.self_link(ResourceType.NAMESERVER, nameserver.ldh_name).to_dict()],
        }

    async def _assemble_network(self, record: dict, depth: int) -> dict:
        block = NetworkBlock.from_record(record)
        if block.is_mixed_family:
            raise DataError(
                code="mixed_family",
                message="Network block start and end are in different address families",
                details={
                    "start_address": str(block.start_address),
                    "end_address": str(block.end_address),
                },
            )

        cidr = str(block.enclosing_network)
        handle = record.get("handle") or cidr

        obj = camelize_keys(record)
        obj["objectClassName"] = ResourceType.NETWORK.object_class_name
        obj["handle"] = handle
        obj["startAddress"] = str(block.start_address)
        obj["endAddress"] = str(block.end_address)
        obj.setdefault("ipVersion", f"v{block.version}")
        obj["links"] = self._links(ResourceType.NETWORK, cidr, record)
        return obj

    async def _assemble_autnum(self, record: dict, depth: int) -> dict:
        block = AutnumBlock.from_record(record)

        if block.start_autnum is not None:
            link_target = str(block.start_autnum)
        elif block.handle:
            link_target = block.handle[2:] if block.handle.upper().startswith("AS") else block.handle
        else:
            raise DataError(
                code="missing_field",
                message="AS block has neither a start number nor a handle",
                details={"field": "start_autnum"},
            )

        obj = camelize_keys(record)
        obj["objectClassName"] = ResourceType.AUTONOMOUS_SYSTEM.object_class_name
        obj["handle"] = block.handle or f"AS{block.start_autnum}"
        if block.start_autnum is not None:
            obj["startAutnum"] = block.start_autnum
            obj["endAutnum"] = block.end_autnum
        obj["links"] = self._links(ResourceType.AUTONOMOUS_SYSTEM, link_target, record)
        return obj

    async def _assemble_entity(self, record: dict, depth: int) -> dict:
        handle = record.get("handle")
        if not isinstance(handle, str) or not handle:
            raise DataError(
                code="missing_field",
                message="Stored entity record is missing field 'handle'",
                details={"field": "handle"},
            )

        obj = camelize_keys(record)
        obj["objectClassName"] = ResourceType.ENTITY.object_class_name
        obj["handle"] = handle
        obj["links"] = self._links(ResourceType.ENTITY, handle, record)
        return obj
