"""
RDAP Server - Registration Data Access Protocol server.

This package serves registration data for domains, nameservers, IP networks,
autonomous system numbers and entities from a key/value record store,
assembling minimal stored records into linked RDAP JSON objects.
"""

__version__ = "0.1.0"
__author__ = "RDAP Server Team"

from rdap_server.exceptions import (
    RDAPServerError,
    NotFoundError,
    UnsupportedResourceError,
    DecodeError,
    PatternError,
    DataError,
    UpstreamError,
    ConfigError,
)
from rdap_server.enums import (
    ResourceType,
    EventAction,
    RDAPStatus,
    StoreBackend,
    LogLevel,
)
from rdap_server.config import (
    StoreConfig,
    RDAPConfig,
    HTTPConfig,
    LoggingConfig,
    SystemConfig,
    create_default_config,
    load_config_from_file,
    save_config_to_file,
    apply_env_overrides,
    validate_config,
)
from rdap_server.models import (
    Link,
    Event,
    NetworkBlock,
    AutnumBlock,
    NameserverRecord,
    WhoisRecord,
)
from rdap_server.audit_logger import (
    AuditLogger,
    LogEntry,
)
from rdap_server.handle_validator import (
    HandleValidator,
    parse_asn,
    parse_ip_query,
)
from rdap_server.record_store import (
    RecordStore,
    MemoryRecordStore,
    FileRecordStore,
    RedisRecordStore,
    create_record_store,
)
from rdap_server.search_filter import (
    FieldFilter,
    SearchFilter,
    compile_glob,
)
from rdap_server.network_matcher import (
    NetworkMatcher,
    select_network,
)
from rdap_server.autnum_matcher import (
    AutnumMatcher,
    select_autnum,
)
from rdap_server.assembler import (
    RDAPAssembler,
    MAX_EXPANSION_DEPTH,
)
from rdap_server.exact_match import (
    ExactMatchResolver,
)
from rdap_server.service import (
    RDAPService,
)
from rdap_server.api import (
    create_app,
)
from rdap_server.self_test import (
    SelfTest,
    SelfTestResult,
    StoreCheckResult,
    ProbeResult,
    ConfigValidationResult,
    run_self_test,
)
from rdap_server.cli import (
    main as cli_main,
    create_parser,
)

__all__ = [
    # Exceptions
    "RDAPServerError",
    "NotFoundError",
    "UnsupportedResourceError",
    "DecodeError",
    "PatternError",
    "DataError",
    "UpstreamError",
    "ConfigError",
    # Enums
    "ResourceType",
    "EventAction",
    "RDAPStatus",
    "StoreBackend",
    "LogLevel",
    # Configuration
    "StoreConfig",
    "RDAPConfig",
    "HTTPConfig",
    "LoggingConfig",
    "SystemConfig",
    "create_default_config",
    "load_config_from_file",
    "save_config_to_file",
    "apply_env_overrides",
    "validate_config",
    # Models
    "Link",
    "Event",
    "NetworkBlock",
    "AutnumBlock",
    "NameserverRecord",
    "WhoisRecord",
    # Audit Logger
    "AuditLogger",
    "LogEntry",
    # Handle Validator
    "HandleValidator",
    "parse_asn",
    "parse_ip_query",
    # Record Store
    "RecordStore",
    "MemoryRecordStore",
    "FileRecordStore",
    "RedisRecordStore",
    "create_record_store",
    # Search
    "FieldFilter",
    "SearchFilter",
    "compile_glob",
    # Matchers
    "NetworkMatcher",
    "select_network",
    "AutnumMatcher",
    "select_autnum",
    # Assembler
    "RDAPAssembler",
    "MAX_EXPANSION_DEPTH",
    # Exact match
    "ExactMatchResolver",
    # Service
    "RDAPService",
    # HTTP
    "create_app",
    # Self-Test
    "SelfTest",
    "SelfTestResult",
    "StoreCheckResult",
    "ProbeResult",
    "ConfigValidationResult",
    "run_self_test",
    # CLI
    "cli_main",
    "create_parser",
]
