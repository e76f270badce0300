"""
Record Store adapters for the RDAP server.

The core reads stored records only through ``RecordStore``. Records are
JSON objects kept under ``<segment>/<handle>`` keys. Three backends share
the same contract and the same field-filter semantics:

- MemoryRecordStore: an in-process mapping (tests, seed files)
- FileRecordStore: one JSON file per record under a root directory
- RedisRecordStore: one JSON string per key in redis
"""

import asyncio
import fnmatch
import json
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Iterable, Mapping, Optional, Union

import redis.asyncio as redis_asyncio
from redis.exceptions import RedisError

from .audit_logger import AuditLogger
from .config import StoreConfig
from .enums import ResourceType, StoreBackend
from .exceptions import ConfigError, DataError, DecodeError, NotFoundError, UpstreamError
from .search_filter import FieldFilter

RawText = Union[str, bytes]

WILDCARD_CHARS = frozenset("*?[")


def is_key_pattern(key: str) -> bool:
    """True if the key contains glob characters and therefore names a scan."""
    return any(char in WILDCARD_CHARS for char in key)


class RecordStore(ABC):
    """
    Read-only access to stored RDAP records.

    Subclasses supply raw JSON text for exact keys and key patterns; this
    base class decodes it and applies field filters identically for every
    backend.
    """

    component = "RecordStore"

    def __init__(self, logger: Optional[AuditLogger] = None) -> None:
        self._logger = logger

    async def __aenter__(self) -> "RecordStore":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def get(
        self,
        key_patterns: Iterable[str],
        field_filters: Optional[Mapping[str, str]] = None,
    ) -> list[Any]:
        """
        Fetch records for exact keys and/or key patterns.

        Exact keys that do not exist are dropped. Pattern results come back
        in sorted key order; undecodable records found by a scan are skipped.

        Args:
            key_patterns: Keys such as 'nameserver/ns1.example' or 'domain/*'
            field_filters: Optional field -> glob mapping every record must match

        Returns:
            List of decoded records

        Raises:
            PatternError: If a field filter is malformed
            DataError: If an exactly-named record is not valid JSON
            UpstreamError: If the backend fails
        """
        field_filter = FieldFilter(field_filters)
        records: list[Any] = []

        for key in key_patterns:
            if is_key_pattern(key):
                for found_key, text in await self._scan(key):
                    record = self._decode(found_key, text, strict=False)
                    if record is not None:
                        records.append(record)
            else:
                text = await self._read(key)
                if text is not None:
                    records.append(self._decode(key, text, strict=True))

        return field_filter.select(records) if field_filter else records

    async def exists(self, resource_type: ResourceType, handle: str) -> bool:
        """Check whether a record exists without decoding it."""
        return await self._exists(resource_type.key(handle))

    async def read_one(self, resource_type: ResourceType, handle: str) -> Any:
        """
        Fetch the single record stored for a handle.

        Raises:
            NotFoundError: If no record is stored under the key
        """
        records = await self.get([resource_type.key(handle)])
        if not records:
            raise NotFoundError(
                code="not_found",
                message=f"No {resource_type.object_class_name} found for {handle}",
                details={"resource": resource_type.value, "handle": handle},
            )
        return records[0]

    async def close(self) -> None:
        """Release backend resources."""
        return None

    def _decode(self, key: str, text: RawText, strict: bool) -> Any:
        try:
            return json.loads(text)
        except ValueError as e:
            if strict:
                raise DataError(
                    code="invalid_json",
                    message=f"Stored record {key} is not valid JSON",
                    details={"key": key, "error": str(e)},
                )
            if self._logger:
                self._logger.warn(
                    self.component,
                    f"Skipping undecodable record {key}",
                    {"key": key, "error": str(e)},
                )
            return None

    @abstractmethod
    async def _scan(self, pattern: str) -> list[tuple[str, RawText]]:
        """Return (key, raw text) pairs for every key matching ``pattern``, sorted by key."""

    @abstractmethod
    async def _read(self, key: str) -> Optional[RawText]:
        """Return the raw text stored under ``key`` or None."""

    @abstractmethod
    async def _exists(self, key: str) -> bool:
        """Return whether ``key`` exists."""


class MemoryRecordStore(RecordStore):
    """Record store backed by an in-process mapping of key -> record."""

    component = "MemoryRecordStore"

    def __init__(
        self,
        records: Optional[Mapping[str, Any]] = None,
        logger: Optional[AuditLogger] = None,
    ) -> None:
        """
        Initialize the store.

        Args:
            records: Mapping of key to record; strings are kept as raw JSON
                text, anything else is serialized
            logger: Optional audit logger
        """
        super().__init__(logger)
        self._records: dict[str, str] = {}
        for key, value in (records or {}).items():
            self.put(key, value)

    @classmethod
    def from_json_file(cls, path: Path, logger: Optional[AuditLogger] = None) -> "MemoryRecordStore":
        """
        Load a seed file holding a JSON object of key -> record.

        Raises:
            ConfigError: If the file cannot be read or is not a JSON object
        """
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            raise ConfigError(
                code="invalid_seed_file",
                message=f"Cannot load record seed file {path}: {e}",
                details={"path": str(path)},
            )
        if not isinstance(data, dict):
            raise ConfigError(
                code="invalid_seed_file",
                message=f"Record seed file {path} must hold a JSON object",
                details={"path": str(path)},
            )
        return cls(data, logger=logger)

    def put(self, key: str, value: Any) -> None:
        """Store a record (used to seed the store)."""
        key = key.lstrip("/")
        self._records[key] = value if isinstance(value, str) else json.dumps(value)

    async def _scan(self, pattern: str) -> list[tuple[str, RawText]]:
        pattern = pattern.lstrip("/")
        return [
            (key, self._records[key])
            for key in sorted(self._records)
            if fnmatch.fnmatchcase(key, pattern)
        ]

    async def _read(self, key: str) -> Optional[RawText]:
        return self._records.get(key.lstrip("/"))

    async def _exists(self, key: str) -> bool:
        return key.lstrip("/") in self._records


class FileRecordStore(RecordStore):
    """
    Record store backed by a directory tree: ``<root>/<segment>/<handle>``.

    Each file holds one JSON record. Disk access runs in a worker thread so
    the event loop never blocks.
    """

    component = "FileRecordStore"

    def __init__(self, root: Path, logger: Optional[AuditLogger] = None) -> None:
        super().__init__(logger)
        self._root = Path(root)

    @property
    def root(self) -> Path:
        return self._root

    def _path_for(self, key: str) -> Path:
        key = key.lstrip("/")
        parts = key.split("/")
        if any(part in ("", ".", "..") for part in parts):
            raise DecodeError(
                code="invalid_key",
                message=f"Invalid record key: {key}",
                details={"key": key},
            )
        return self._root.joinpath(*parts)

    def _scan_sync(self, pattern: str) -> list[tuple[str, bytes]]:
        pattern = pattern.lstrip("/")
        # '*' also matches '/' in keys: walk below the literal prefix, match whole keys
        wildcard_at = min(
            (pattern.index(char) for char in WILDCARD_CHARS if char in pattern),
            default=len(pattern),
        )
        base = self._root.joinpath(*pattern[:wildcard_at].split("/")[:-1])
        if not base.is_dir():
            return []

        results = []
        for path in base.rglob("*"):
            if not path.is_file():
                continue
            key = path.relative_to(self._root).as_posix()
            if fnmatch.fnmatchcase(key, pattern):
                results.append((key, path.read_bytes()))
        return sorted(results)

    def _read_sync(self, key: str) -> Optional[bytes]:
        path = self._path_for(key)
        if not path.is_file():
            return None
        return path.read_bytes()

    async def _scan(self, pattern: str) -> list[tuple[str, RawText]]:
        try:
            return await asyncio.to_thread(self._scan_sync, pattern)
        except OSError as e:
            raise UpstreamError(
                code="io_error",
                message=f"Failed to scan record store: {e}",
                details={"root": str(self._root), "pattern": pattern},
            )

    async def _read(self, key: str) -> Optional[RawText]:
        path = self._path_for(key)
        try:
            return await asyncio.to_thread(self._read_sync, key)
        except OSError as e:
            raise UpstreamError(
                code="io_error",
                message=f"Failed to read record {key}: {e}",
                details={"path": str(path)},
            )

    async def _exists(self, key: str) -> bool:
        path = self._path_for(key)
        try:
            return await asyncio.to_thread(path.is_file)
        except OSError as e:
            raise UpstreamError(
                code="io_error",
                message=f"Failed to check record {key}: {e}",
                details={"path": str(path)},
            )


class RedisRecordStore(RecordStore):
    """
    Record store backed by redis.

    Exact keys are read with GET, patterns with SCAN MATCH followed by one
    MGET. An optional prefix namespaces every key.
    """

    component = "RedisRecordStore"

    def __init__(
        self,
        url: str = "redis://localhost:6379/0",
        key_prefix: str = "",
        client: Optional[redis_asyncio.Redis] = None,
        logger: Optional[AuditLogger] = None,
    ) -> None:
        """
        Initialize the store.

        Args:
            url: Redis connection URL
            key_prefix: Prefix prepended to every key
            client: Pre-built client (tests); created from ``url`` otherwise
            logger: Optional audit logger
        """
        super().__init__(logger)
        self._key_prefix = key_prefix
        self._client = client if client is not None else redis_asyncio.from_url(url)

    def _upstream_error(self, e: Exception, operation: str, key: str) -> UpstreamError:
        return UpstreamError(
            code="redis_error",
            message=f"Redis {operation} failed: {e}",
            details={"key": key, "error_type": type(e).__name__},
        )

    async def _scan(self, pattern: str) -> list[tuple[str, RawText]]:
        match = self._key_prefix + pattern.lstrip("/")
        try:
            keys = sorted({
                key.decode("utf-8") if isinstance(key, bytes) else key
                async for key in self._client.scan_iter(match=match)
            })
            if not keys:
                return []
            values = await self._client.mget(keys)
        except (RedisError, OSError) as e:
            raise self._upstream_error(e, "scan", match)

        prefix_length = len(self._key_prefix)
        return [
            (key[prefix_length:], value)
            for key, value in zip(keys, values)
            if value is not None
        ]

    async def _read(self, key: str) -> Optional[RawText]:
        full_key = self._key_prefix + key.lstrip("/")
        try:
            return await self._client.get(full_key)
        except (RedisError, OSError) as e:
            raise self._upstream_error(e, "get", full_key)

    async def _exists(self, key: str) -> bool:
        full_key = self._key_prefix + key.lstrip("/")
        try:
            return bool(await self._client.exists(full_key))
        except (RedisError, OSError) as e:
            raise self._upstream_error(e, "exists", full_key)

    async def close(self) -> None:
        await self._client.aclose()


def create_record_store(
    config: StoreConfig,
    logger: Optional[AuditLogger] = None,
) -> RecordStore:
    """
    Build the record store selected by configuration.

    The memory backend loads ``config.path`` as a JSON seed file when it exists.

    Raises:
        ConfigError: If the backend is unknown
    """
    if config.backend == StoreBackend.FILE.value:
        return FileRecordStore(config.path, logger=logger)
    if config.backend == StoreBackend.REDIS.value:
        return RedisRecordStore(config.url, key_prefix=config.key_prefix, logger=logger)
    if config.backend == StoreBackend.MEMORY.value:
        if config.path and Path(config.path).is_file():
            return MemoryRecordStore.from_json_file(Path(config.path), logger=logger)
        return MemoryRecordStore(logger=logger)
    raise ConfigError(
        code="unknown_backend",
        message=f"Unknown record store backend: {config.backend}",
        details={"backend": config.backend},
    )
