"""
Enumeration types for the RDAP server.

These enums provide type-safe constants for resource types, event
actions, RDAP status values and configuration options.
"""

from enum import Enum

from .exceptions import NotFoundError


class ResourceType(Enum):
    """
    Closed set of resource types served by the registry.

    The value is the key segment used by the record store
    (``<segment>/<handle>``).
    """

    DOMAIN = "domain"
    NAMESERVER = "nameserver"
    NETWORK = "ip"
    AUTONOMOUS_SYSTEM = "autnum"
    ENTITY = "entity"

    @property
    def key_segment(self) -> str:
        return self.value

    @property
    def object_class_name(self) -> str:
        """RDAP objectClassName for this resource type."""
        return _OBJECT_CLASS_NAMES[self]

    @property
    def search_path(self) -> str:
        """Plural path segment used by search queries (e.g. 'domains')."""
        return _SEARCH_PATHS[self]

    @property
    def search_results_key(self) -> str:
        """Member name wrapping search results (e.g. 'domainSearchResults')."""
        return f"{self.value}SearchResults"

    def key(self, handle: str) -> str:
        """Build the store key for a single handle."""
        return f"{self.value}/{handle}"

    def wildcard_key(self) -> str:
        """Build the store key pattern matching every record of this type."""
        return f"{self.value}/*"

    @classmethod
    def from_segment(cls, segment: str) -> "ResourceType":
        """
        Resolve a path segment ('domain', 'ip', ...) to a resource type.

        Raises:
            NotFoundError: If the segment names no known resource type
        """
        for member in cls:
            if member.value == segment:
                return member
        raise NotFoundError(
            code="unknown_resource",
            message=f"Unknown resource type: {segment}",
            details={"resource": segment},
        )

    @classmethod
    def from_search_path(cls, path: str) -> "ResourceType":
        """
        Resolve a plural search path ('domains', 'entities', ...) to a resource type.

        Raises:
            NotFoundError: If the path names no known search collection
        """
        for member in cls:
            if _SEARCH_PATHS[member] == path:
                return member
        raise NotFoundError(
            code="unknown_resource",
            message=f"Unknown search collection: {path}",
            details={"resource": path},
        )


_OBJECT_CLASS_NAMES = {
    ResourceType.DOMAIN: "domain",
    ResourceType.NAMESERVER: "nameserver",
    ResourceType.NETWORK: "ip network",
    ResourceType.AUTONOMOUS_SYSTEM: "autnum",
    ResourceType.ENTITY: "entity",
}

_SEARCH_PATHS = {
    ResourceType.DOMAIN: "domains",
    ResourceType.NAMESERVER: "nameservers",
    ResourceType.NETWORK: "ips",
    ResourceType.AUTONOMOUS_SYSTEM: "autnums",
    ResourceType.ENTITY: "entities",
}


class EventAction(Enum):
    """RDAP event actions produced by the assembler."""

    REGISTRATION = "registration"
    EXPIRATION = "expiration"


class RDAPStatus(Enum):
    """RDAP status values (RFC 8056 / IANA RDAP JSON values registry)."""

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
    ADD_PERIOD = "add period"
    AUTO_RENEW_PERIOD = "auto renew period"
    CLIENT_DELETE_PROHIBITED = "client delete prohibited"
    CLIENT_HOLD = "client hold"
    CLIENT_RENEW_PROHIBITED = "client renew prohibited"
    CLIENT_TRANSFER_PROHIBITED = "client transfer prohibited"
    CLIENT_UPDATE_PROHIBITED = "client update prohibited"
    PENDING_RESTORE = "pending restore"
    REDEMPTION_PERIOD = "redemption period"
    RENEW_PERIOD = "renew period"
    SERVER_DELETE_PROHIBITED = "server delete prohibited"
    SERVER_RENEW_PROHIBITED = "server renew prohibited"
    SERVER_TRANSFER_PROHIBITED = "server transfer prohibited"
    SERVER_UPDATE_PROHIBITED = "server update prohibited"
    SERVER_HOLD = "server hold"
    TRANSFER_PERIOD = "transfer period"


class StoreBackend(Enum):
    """Record store backends."""

    MEMORY = "memory"
    FILE = "file"
    REDIS = "redis"


class LogLevel(Enum):
    """Logging severity levels."""

    DEBUG = "debug"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"

    @property
    def severity(self) -> int:
        return _LOG_SEVERITY[self]


_LOG_SEVERITY = {
    LogLevel.DEBUG: 10,
    LogLevel.INFO: 20,
    LogLevel.WARN: 30,
    LogLevel.ERROR: 40,
}
