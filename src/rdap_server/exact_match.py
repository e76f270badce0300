"""
Exact-match resolution of objects by resource type and handle.
"""

from typing import Optional

from .assembler import RDAPAssembler
from .enums import ResourceType
from .exceptions import NotFoundError, UnsupportedResourceError
from .handle_validator import HandleValidator
from .record_store import RecordStore

# Networks and AS numbers are resolved by range, never by literal handle
EXACT_MATCH_TYPES = frozenset({
    ResourceType.DOMAIN,
    ResourceType.NAMESERVER,
    ResourceType.ENTITY,
})


class ExactMatchResolver:
    """Fetches and assembles exactly one object for a literal handle."""

    def __init__(
        self,
        store: RecordStore,
        assembler: RDAPAssembler,
        handle_validator: Optional[HandleValidator] = None,
    ) -> None:
        self._store = store
        self._assembler = assembler
        self._handle_validator = handle_validator or HandleValidator()

    def _canonical_handle(self, resource_type: ResourceType, handle: str) -> str:
        if resource_type not in EXACT_MATCH_TYPES:
            raise UnsupportedResourceError(
                code="unsupported_resource",
                message=f"Exact lookup is not implemented for {resource_type.object_class_name}",
                details={"resource": resource_type.value},
            )
        return self._handle_validator.normalize(resource_type, handle)

    async def resolve(self, resource_type: ResourceType, handle: str) -> dict:
        """
        Resolve a handle to its assembled RDAP object.

        When the store returns more than one record for the key the first
        one is used.

        Raises:
            UnsupportedResourceError: If the type is not resolved by handle
            DecodeError: If the handle is malformed
            NotFoundError: If nothing is stored under the handle
            DataError: If the record (or a referenced record) is malformed
        """
        canonical = self._canonical_handle(resource_type, handle)

        records = await self._store.get([resource_type.key(canonical)])
        if not records:
            raise NotFoundError(
                code="not_found",
                message=f"No {resource_type.object_class_name} found for {canonical}",
                details={"resource": resource_type.value, "handle": canonical},
            )

        return await self._assembler.assemble(records[0], resource_type)

    async def exists(self, resource_type: ResourceType, handle: str) -> bool:
        """
        Presence check: whether a record is stored under the handle.

        The record is not parsed.

        Raises:
            UnsupportedResourceError: If the type is not resolved by handle
            DecodeError: If the handle is malformed
        """
        canonical = self._canonical_handle(resource_type, handle)
        return await self._store.exists(resource_type, canonical)
