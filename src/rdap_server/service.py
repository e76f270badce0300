"""
Query service for the RDAP server.

RDAPService is the explicitly constructed service handle that every query
goes through. It owns the record store and wires the matchers, search
filter, exact-match resolver and assembler to it. Nothing is cached
between calls: each query reads the store fresh.

Operations come in pairs, a full fetch and a presence check:
- lookup / lookup_exists: exact match by resource type and handle
- lookup_network / network_exists: most specific network block for an IP
- lookup_autnum / autnum_exists: AS block for an AS number
- search / search_exists: field-glob search over one resource type
"""

import asyncio
import time
from typing import Awaitable, Mapping, Optional, TypeVar, Union

from .assembler import RDAPAssembler
from .audit_logger import AuditLogger
from .autnum_matcher import AutnumMatcher
from .config import SystemConfig
from .enums import ResourceType
from .exact_match import ExactMatchResolver
from .exceptions import (
    DataError,
    NotFoundError,
    RDAPServerError,
    UpstreamError,
)
from .handle_validator import HandleValidator
from .network_matcher import NetworkMatcher
from .record_store import RecordStore, create_record_store
from .search_filter import SearchFilter

T = TypeVar("T")

ResourceLike = Union[ResourceType, str]


def _resource_type(resource: ResourceLike) -> ResourceType:
    if isinstance(resource, ResourceType):
        return resource
    return ResourceType.from_segment(resource)


class RDAPService:
    """
    Entry point for all registration data queries.

    Stateless apart from the injected store, configuration and logger,
    so any number of queries may run concurrently.
    """

    component = "RDAPService"

    def __init__(
        self,
        config: SystemConfig,
        store: RecordStore,
        logger: Optional[AuditLogger] = None,
    ) -> None:
        """
        Initialize the service.

        Args:
            config: System configuration (RDAP output metadata is read from it)
            store: Record store all components read from
            logger: Optional audit logger
        """
        self._config = config
        self._store = store
        self._logger = logger

        handle_validator = HandleValidator()
        self._assembler = RDAPAssembler(config.rdap, store, handle_validator)
        self._network_matcher = NetworkMatcher(store)
        self._autnum_matcher = AutnumMatcher(store)
        self._search_filter = SearchFilter(store)
        self._resolver = ExactMatchResolver(store, self._assembler, handle_validator)

    @classmethod
    def from_config(
        cls,
        config: SystemConfig,
        logger: Optional[AuditLogger] = None,
    ) -> "RDAPService":
        """Create a service with the record store selected by configuration."""
        return cls(config, create_record_store(config.store, logger), logger)

    async def __aenter__(self) -> "RDAPService":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def close(self) -> None:
        await self._store.close()

    @property
    def config(self) -> SystemConfig:
        return self._config

    @property
    def store(self) -> RecordStore:
        return self._store

    @property
    def logger(self) -> Optional[AuditLogger]:
        return self._logger

    async def lookup(self, resource: ResourceLike, handle: str) -> dict:
        """
        Exact lookup of a domain, nameserver or entity.

        Raises:
            NotFoundError, UnsupportedResourceError, DecodeError, DataError,
            UpstreamError
        """
        resource_type = _resource_type(resource)
        return await self._run(
            "lookup",
            {"resource": resource_type.value, "handle": handle},
            self._resolver.resolve(resource_type, handle),
        )

    async def lookup_exists(self, resource: ResourceLike, handle: str) -> bool:
        """Presence variant of lookup; raises NotFoundError when absent."""
        resource_type = _resource_type(resource)

        async def check() -> bool:
            if not await self._resolver.exists(resource_type, handle):
                raise NotFoundError(
                    code="not_found",
                    message=f"No {resource_type.object_class_name} found for {handle}",
                    details={"resource": resource_type.value, "handle": handle},
                )
            return True

        return await self._run(
            "lookup_exists",
            {"resource": resource_type.value, "handle": handle},
            check(),
        )

    async def lookup_network(self, query: str) -> dict:
        """
        Most specific network block containing an IP address or CIDR.

        Raises:
            NotFoundError, DecodeError, DataError, UpstreamError
        """
        async def find() -> dict:
            block = await self._network_matcher.find_network(query)
            return await self._assembler.assemble(block.record, ResourceType.NETWORK)

        return await self._run("lookup_network", {"query": query}, find())

    async def network_exists(self, query: str) -> bool:
        """Presence variant of lookup_network."""
        async def find() -> bool:
            await self._network_matcher.find_network(query)
            return True

        return await self._run("network_exists", {"query": query}, find())

    async def lookup_autnum(self, asn: Union[int, str]) -> dict:
        """
        AS block for an autonomous system number.

        Raises:
            NotFoundError, DecodeError, DataError, UpstreamError
        """
        async def find() -> dict:
            block = await self._autnum_matcher.find_autnum(asn)
            return await self._assembler.assemble(block.record, ResourceType.AUTONOMOUS_SYSTEM)

        return await self._run("lookup_autnum", {"asn": str(asn)}, find())

    async def autnum_exists(self, asn: Union[int, str]) -> bool:
        """Presence variant of lookup_autnum."""
        async def find() -> bool:
            await self._autnum_matcher.find_autnum(asn)
            return True

        return await self._run("autnum_exists", {"asn": str(asn)}, find())

    async def search(
        self,
        resource: ResourceLike,
        field_globs: Optional[Mapping[str, str]] = None,
    ) -> dict:
        """
        Search one resource type by field globs and assemble every match.

        Returns:
            ``{"rdapConformance": [...], "<type>SearchResults": [...]}``

        Raises:
            PatternError, DataError, UpstreamError
        """
        resource_type = _resource_type(resource)
        field_globs = dict(field_globs or {})

        async def run_search() -> dict:
            records = await self._search_filter.search(resource_type, field_globs)
            results = await asyncio.gather(*(
                self._assembler.assemble(record, resource_type, top_level=False)
                for record in records
            ))
            return {
                "rdapConformance": list(self._config.rdap.conformance),
                resource_type.search_results_key: list(results),
            }

        return await self._run(
            "search",
            {"resource": resource_type.value, "filters": field_globs},
            run_search(),
        )

    async def search_exists(
        self,
        resource: ResourceLike,
        field_globs: Optional[Mapping[str, str]] = None,
    ) -> bool:
        """Presence variant of search: validates the query and runs the filter."""
        resource_type = _resource_type(resource)
        field_globs = dict(field_globs or {})

        async def run_search() -> bool:
            await self._search_filter.search(resource_type, field_globs)
            return True

        return await self._run(
            "search_exists",
            {"resource": resource_type.value, "filters": field_globs},
            run_search(),
        )

    async def _run(self, operation: str, details: dict, query: Awaitable[T]) -> T:
        start_time = time.perf_counter()
        self._log_debug(f"{operation} started", details)

        try:
            result = await query
        except (DataError, UpstreamError) as e:
            self._log_error(f"{operation} failed: {e.message}", e, details, start_time)
            raise
        except RDAPServerError as e:
            self._log_info(
                f"{operation} rejected: {e.message}",
                {**details, "error_code": e.code, "duration_ms": self._elapsed_ms(start_time)},
            )
            raise

        self._log_info(
            f"{operation} completed",
            {**details, "duration_ms": self._elapsed_ms(start_time)},
        )
        return result

    def _elapsed_ms(self, start_time: float) -> float:
        return round((time.perf_counter() - start_time) * 1000, 3)

    def _log_debug(self, message: str, data: dict) -> None:
        if self._logger:
            self._logger.debug(self.component, message, data)

    def _log_info(self, message: str, data: dict) -> None:
        if self._logger:
            self._logger.info(self.component, message, data)

    def _log_error(self, message: str, error: Exception, data: dict, start_time: float) -> None:
        if self._logger:
            self._logger.log_error(
                self.component,
                message,
                error=error,
                additional_data={**data, "duration_ms": self._elapsed_ms(start_time)},
            )
