"""
Configuration for the RDAP server.

This module defines the configuration dataclasses (record store, RDAP
output metadata, HTTP listener, logging), their defaults, JSON file
persistence, and environment overrides loaded through python-dotenv.
"""

import json
import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from .enums import LogLevel, StoreBackend


DEFAULT_CONFIG_PATH = Path("rdap-server.json")


@dataclass
class StoreConfig:
    """Record store configuration."""

    backend: str = StoreBackend.FILE.value
    path: Path = Path("rdap")
    url: str = "redis://localhost:6379/0"
    key_prefix: str = ""


@dataclass
class RDAPConfig:
    """Metadata attached to every assembled RDAP object."""

    url_root: str = "http://localhost:11000/rdap"
    port43: str = "whois.example.net"
    content_type: str = "application/rdap+json"
    hreflang: str = "en"
    conformance: list[str] = field(default_factory=lambda: ["rdap_level_0"])


@dataclass
class HTTPConfig:
    """HTTP listener configuration."""

    host: str = "0.0.0.0"
    port: int = 11000


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str = "info"
    output_format: str = "text"  # 'json', 'text', 'both'


@dataclass
class SystemConfig:
    """Main system configuration combining all sub-configurations."""

    store: StoreConfig = field(default_factory=StoreConfig)
    rdap: RDAPConfig = field(default_factory=RDAPConfig)
    http: HTTPConfig = field(default_factory=HTTPConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def create_default_config(store_path: Optional[Path] = None) -> SystemConfig:
    """
    Create a default system configuration.

    Args:
        store_path: Root directory of the file record store

    Returns:
        SystemConfig with default settings
    """
    config = SystemConfig()
    if store_path is not None:
        config.store.path = store_path
    return config


def config_from_dict(data: dict) -> SystemConfig:
    """
    Build a SystemConfig from its JSON representation.

    Missing sections and keys fall back to defaults.

    Raises:
        KeyError, TypeError, ValueError: If a section has the wrong shape
    """
    store_data = data.get("store", {})
    rdap_data = data.get("rdap", {})
    http_data = data.get("http", {})
    logging_data = data.get("logging", {})

    defaults = SystemConfig()

    store = StoreConfig(
        backend=store_data.get("backend", defaults.store.backend),
        path=Path(store_data.get("path", defaults.store.path)),
        url=store_data.get("url", defaults.store.url),
        key_prefix=store_data.get("key_prefix", defaults.store.key_prefix),
    )

    rdap = RDAPConfig(
        url_root=rdap_data.get("url_root", defaults.rdap.url_root),
        port43=rdap_data.get("port43", defaults.rdap.port43),
        content_type=rdap_data.get("content_type", defaults.rdap.content_type),
        hreflang=rdap_data.get("hreflang", defaults.rdap.hreflang),
        conformance=list(rdap_data.get("conformance", defaults.rdap.conformance)),
    )

    http = HTTPConfig(
        host=http_data.get("host", defaults.http.host),
        port=int(http_data.get("port", defaults.http.port)),
    )

    logging_config = LoggingConfig(
        level=logging_data.get("level", defaults.logging.level),
        output_format=logging_data.get("output_format", defaults.logging.output_format),
    )

    return SystemConfig(store=store, rdap=rdap, http=http, logging=logging_config)


def config_to_dict(config: SystemConfig) -> dict:
    """Convert a SystemConfig to its JSON representation."""
    return {
        "store": {
            "backend": config.store.backend,
            "path": str(config.store.path),
            "url": config.store.url,
            "key_prefix": config.store.key_prefix,
        },
        "rdap": {
            "url_root": config.rdap.url_root,
            "port43": config.rdap.port43,
            "content_type": config.rdap.content_type,
            "hreflang": config.rdap.hreflang,
            "conformance": list(config.rdap.conformance),
        },
        "http": {
            "host": config.http.host,
            "port": config.http.port,
        },
        "logging": {
            "level": config.logging.level,
            "output_format": config.logging.output_format,
        },
    }


def load_config_from_file(config_path: Path) -> Optional[SystemConfig]:
    """
    Load configuration from a JSON file.

    Args:
        config_path: Path to the configuration file

    Returns:
        SystemConfig if successful, None otherwise
    """
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = json.load(f)
        return config_from_dict(data)
    except FileNotFoundError:
        return None
    except (json.JSONDecodeError, KeyError, TypeError, ValueError, AttributeError) as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        return None


def save_config_to_file(config: SystemConfig, config_path: Path) -> bool:
    """
    Save configuration to a JSON file.

    Args:
        config: SystemConfig to save
        config_path: Path to save the configuration

    Returns:
        True if successful, False otherwise
    """
    try:
        config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(config_path, "w", encoding="utf-8") as f:
            json.dump(config_to_dict(config), f, indent=2, ensure_ascii=False)
        return True
    except (OSError, TypeError) as e:
        print(f"Error saving config: {e}", file=sys.stderr)
        return False


def apply_env_overrides(config: SystemConfig, load_env_file: bool = True) -> SystemConfig:
    """
    Override configuration values from RDAP_* environment variables.

    A ``.env`` file (found by python-dotenv) is loaded first when
    ``load_env_file`` is set; variables already in the environment win.

    Args:
        config: Configuration to update in place
        load_env_file: Whether to read a .env file

    Returns:
        The updated configuration
    """
    if load_env_file:
        load_dotenv()

    env = os.environ

    if "RDAP_STORE_BACKEND" in env:
        config.store.backend = env["RDAP_STORE_BACKEND"].strip().lower()
    if "RDAP_STORE_PATH" in env:
        config.store.path = Path(env["RDAP_STORE_PATH"])
    if "RDAP_REDIS_URL" in env:
        config.store.url = env["RDAP_REDIS_URL"].strip()
    if "RDAP_KEY_PREFIX" in env:
        config.store.key_prefix = env["RDAP_KEY_PREFIX"]
    if "RDAP_URL_ROOT" in env:
        config.rdap.url_root = env["RDAP_URL_ROOT"].strip()
    if "RDAP_PORT43" in env:
        config.rdap.port43 = env["RDAP_PORT43"].strip()
    if "RDAP_HOST" in env:
        config.http.host = env["RDAP_HOST"].strip()
    if "RDAP_PORT" in env:
        config.http.port = _int_env("RDAP_PORT", config.http.port)
    if "RDAP_LOG_LEVEL" in env:
        config.logging.level = env["RDAP_LOG_LEVEL"].strip().lower()
    if "RDAP_LOG_FORMAT" in env:
        config.logging.output_format = env["RDAP_LOG_FORMAT"].strip().lower()

    return config


def _int_env(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except ValueError:
        return default


def validate_config(config: SystemConfig) -> list[str]:
    """
    Check a configuration for values the server cannot run with.

    Returns:
        List of human-readable problems (empty when valid)
    """
    errors: list[str] = []

    backends = {backend.value for backend in StoreBackend}
    if config.store.backend not in backends:
        errors.append(
            f"Unsupported store backend: {config.store.backend} "
            f"(expected one of {', '.join(sorted(backends))})"
        )
    if config.store.backend == StoreBackend.REDIS.value and not config.store.url:
        errors.append("Redis store requires a URL")

    if not config.rdap.url_root:
        errors.append("RDAP url_root is empty")
    elif config.rdap.url_root.endswith("/"):
        errors.append("RDAP url_root must not end with '/'")
    if not config.rdap.conformance:
        errors.append("RDAP conformance list is empty")

    if not 0 < config.http.port < 65536:
        errors.append(f"HTTP port out of range: {config.http.port}")

    if config.logging.level not in {level.value for level in LogLevel}:
        errors.append(f"Unsupported log level: {config.logging.level}")
    if config.logging.output_format not in ("json", "text", "both"):
        errors.append(f"Unsupported log format: {config.logging.output_format}")

    return errors
