"""
Command-line interface for the RDAP server.

This module provides the main CLI entry point with commands for:
- serve: Run the HTTP server
- lookup / ip / autnum / search: Run a single query and print the RDAP JSON
- config: Configuration management
- self-test: Verify configuration and record store
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Awaitable, Callable, Optional

import uvicorn

from . import __version__
from .api import create_app
from .audit_logger import AuditLogger
from .config import (
    DEFAULT_CONFIG_PATH,
    SystemConfig,
    apply_env_overrides,
    config_to_dict,
    create_default_config,
    load_config_from_file,
    save_config_to_file,
    validate_config,
)
from .enums import LogLevel, ResourceType
from .exceptions import ConfigError, RDAPServerError
from .self_test import run_self_test
from .service import RDAPService


def load_runtime_config(args: argparse.Namespace) -> Optional[SystemConfig]:
    """
    Resolve the configuration for a command.

    An explicit --config file must load; otherwise the default config file
    is used when present. Environment overrides and --store are applied last.
    """
    config = None
    if args.config:
        config = load_config_from_file(Path(args.config))
        if config is None:
            print(f"Error: Could not load config from {args.config}", file=sys.stderr)
            return None
    else:
        config = load_config_from_file(DEFAULT_CONFIG_PATH)

    if config is None:
        config = create_default_config()

    config = apply_env_overrides(config)

    if getattr(args, "store", None):
        config.store.path = Path(args.store)

    return config


def create_logger(config: SystemConfig, verbose: bool = False) -> AuditLogger:
    """Create the audit logger for a command (debug level when verbose)."""
    if verbose:
        return AuditLogger(output_format=config.logging.output_format, level=LogLevel.DEBUG)
    return AuditLogger.from_config(config.logging)


def print_json(data: dict) -> None:
    print(json.dumps(data, indent=2, ensure_ascii=False))


async def run_query(
    config: SystemConfig,
    query: Callable[[RDAPService], Awaitable[dict]],
    verbose: bool = False,
) -> int:
    """
    Run a single query against a freshly built service and print the result.

    Returns:
        Exit code (0 on success, 1 on any query error)
    """
    logger = create_logger(config, verbose)

    try:
        service = RDAPService.from_config(config, logger)
    except ConfigError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 1

    async with service:
        try:
            result = await query(service)
        except RDAPServerError as e:
            print(json.dumps(e.to_rdap(), ensure_ascii=False), file=sys.stderr)
            return 1

    print_json(result)
    return 0


def parse_field_globs(items: list[str]) -> dict[str, str]:
    """
    Parse ``field=glob`` arguments into a field-glob map.

    Raises:
        ValueError: If an item has no '=' or an empty field name
    """
    field_globs = {}
    for item in items:
        name, sep, pattern = item.partition("=")
        if not sep or not name:
            raise ValueError(f"Expected field=glob, got: {item}")
        field_globs[name] = pattern
    return field_globs


def cmd_serve(args: argparse.Namespace) -> int:
    """Handle the 'serve' command."""
    config = load_runtime_config(args)
    if config is None:
        return 1

    if args.host:
        config.http.host = args.host
    if args.port:
        config.http.port = args.port

    errors = validate_config(config)
    if errors:
        for error in errors:
            print(f"Error: {error}", file=sys.stderr)
        return 1

    if args.self_test:
        result = asyncio.run(run_self_test(config=config, print_output=True))
        if not result.success:
            return 1

    logger = create_logger(config, args.verbose)
    try:
        service = RDAPService.from_config(config, logger)
    except ConfigError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 1

    logger.info("cli", "Starting RDAP server", {
        "host": config.http.host,
        "port": config.http.port,
        "backend": config.store.backend,
    })

    app = create_app(service, close_on_shutdown=True)
    uvicorn.run(
        app,
        host=config.http.host,
        port=config.http.port,
        log_level="debug" if args.verbose else "info",
    )
    return 0


def cmd_lookup(args: argparse.Namespace) -> int:
    """Handle the 'lookup' command."""
    config = load_runtime_config(args)
    if config is None:
        return 1

    try:
        resource_type = ResourceType.from_segment(args.resource)
    except RDAPServerError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 1

    return asyncio.run(run_query(
        config,
        lambda service: service.lookup(resource_type, args.handle),
        verbose=args.verbose,
    ))


def cmd_ip(args: argparse.Namespace) -> int:
    """Handle the 'ip' command."""
    config = load_runtime_config(args)
    if config is None:
        return 1

    return asyncio.run(run_query(
        config,
        lambda service: service.lookup_network(args.query),
        verbose=args.verbose,
    ))


def cmd_autnum(args: argparse.Namespace) -> int:
    """Handle the 'autnum' command."""
    config = load_runtime_config(args)
    if config is None:
        return 1

    return asyncio.run(run_query(
        config,
        lambda service: service.lookup_autnum(args.asn),
        verbose=args.verbose,
    ))


def cmd_search(args: argparse.Namespace) -> int:
    """Handle the 'search' command."""
    config = load_runtime_config(args)
    if config is None:
        return 1

    try:
        resource_type = ResourceType.from_search_path(args.collection)
        field_globs = parse_field_globs(args.filters)
    except RDAPServerError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 1
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    return asyncio.run(run_query(
        config,
        lambda service: service.search(resource_type, field_globs),
        verbose=args.verbose,
    ))


def cmd_self_test(args: argparse.Namespace) -> int:
    """Handle the 'self-test' command."""
    config = load_runtime_config(args)
    if config is None:
        return 1

    result = asyncio.run(run_self_test(
        config=config,
        probe_url=args.probe_url,
        print_output=True,
    ))

    return 0 if result.success else 1


def cmd_config(args: argparse.Namespace) -> int:
    """Handle the 'config' command."""
    config_path = Path(args.path) if args.path else DEFAULT_CONFIG_PATH

    if args.action == "show":
        config = load_config_from_file(config_path)
        if config is None:
            print(f"No configuration found at: {config_path}")
            print("Use 'config init' to create a default configuration.")
            return 1

        print(f"Configuration from: {config_path}")
        data = config_to_dict(config)
        # store URLs may carry credentials
        if data["store"]["url"]:
            data["store"]["url"] = AuditLogger.MASK_VALUE
        print_json(AuditLogger().mask_sensitive_data(data))
        return 0

    elif args.action == "init":
        if config_path.exists() and not args.force:
            print(f"Configuration already exists at: {config_path}")
            print("Use --force to overwrite.")
            return 1

        store_path = Path(args.store) if args.store else None
        config = create_default_config(store_path=store_path)
        if save_config_to_file(config, config_path):
            print(f"Configuration created at: {config_path}")
            return 0
        return 1

    elif args.action == "validate":
        config = load_config_from_file(config_path)
        if config is None:
            print(f"Error: Could not load config from {config_path}", file=sys.stderr)
            return 1

        errors = validate_config(config)
        if errors:
            print(f"Configuration at {config_path} is invalid:", file=sys.stderr)
            for error in errors:
                print(f"  - {error}", file=sys.stderr)
            return 1

        print(f"Configuration at {config_path} is valid.")
        return 0

    return 1


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--config", "-c",
        help=f"Path to configuration file (default: {DEFAULT_CONFIG_PATH} if present)",
    )
    parser.add_argument(
        "--store", "-s",
        help="Record store path (file root or memory seed file)",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable debug logging",
    )


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog="rdap-server",
        description="RDAP server for domains, nameservers, IP networks, AS numbers and entities",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # 'serve' command
    serve_parser = subparsers.add_parser(
        "serve",
        help="Run the RDAP HTTP server",
    )
    _add_common_arguments(serve_parser)
    serve_parser.add_argument(
        "--host",
        help="Listen address (overrides configuration)",
    )
    serve_parser.add_argument(
        "--port", "-p",
        type=int,
        help="Listen port (overrides configuration)",
    )
    serve_parser.add_argument(
        "--self-test",
        action="store_true",
        help="Run the self-test before serving",
    )
    serve_parser.set_defaults(func=cmd_serve)

    # 'lookup' command
    lookup_parser = subparsers.add_parser(
        "lookup",
        help="Look up a domain, nameserver or entity by handle",
    )
    lookup_parser.add_argument(
        "resource",
        help="Resource type (domain, nameserver, entity)",
    )
    lookup_parser.add_argument(
        "handle",
        help="Handle to look up (e.g., example.com)",
    )
    _add_common_arguments(lookup_parser)
    lookup_parser.set_defaults(func=cmd_lookup)

    # 'ip' command
    ip_parser = subparsers.add_parser(
        "ip",
        help="Look up the most specific network for an IP address or CIDR",
    )
    ip_parser.add_argument(
        "query",
        help="IP address or CIDR (e.g., 192.0.2.1 or 2001:db8::/32)",
    )
    _add_common_arguments(ip_parser)
    ip_parser.set_defaults(func=cmd_ip)

    # 'autnum' command
    autnum_parser = subparsers.add_parser(
        "autnum",
        help="Look up the AS block for an autonomous system number",
    )
    autnum_parser.add_argument(
        "asn",
        help="AS number (e.g., 64512 or AS64512)",
    )
    _add_common_arguments(autnum_parser)
    autnum_parser.set_defaults(func=cmd_autnum)

    # 'search' command
    search_parser = subparsers.add_parser(
        "search",
        help="Search a collection by field globs",
    )
    search_parser.add_argument(
        "collection",
        choices=[resource_type.search_path for resource_type in ResourceType],
        help="Collection to search",
    )
    search_parser.add_argument(
        "filters",
        nargs="*",
        metavar="field=glob",
        help="Field glob filters, all of which must match (e.g., ldh_name='*.example')",
    )
    _add_common_arguments(search_parser)
    search_parser.set_defaults(func=cmd_search)

    # 'config' command
    config_parser = subparsers.add_parser(
        "config",
        help="Configuration management",
    )
    config_parser.add_argument(
        "action",
        choices=["show", "init", "validate"],
        help="Configuration action",
    )
    config_parser.add_argument(
        "--path", "-p",
        help=f"Path to configuration file (default: {DEFAULT_CONFIG_PATH})",
    )
    config_parser.add_argument(
        "--force", "-f",
        action="store_true",
        help="Force overwrite existing configuration",
    )
    config_parser.add_argument(
        "--store", "-s",
        help="Record store path for new configuration",
    )
    config_parser.set_defaults(func=cmd_config)

    # 'self-test' command
    self_test_parser = subparsers.add_parser(
        "self-test",
        help="Verify configuration and record store",
    )
    _add_common_arguments(self_test_parser)
    self_test_parser.add_argument(
        "--probe-url",
        help="Also request this URL from a running server",
    )
    self_test_parser.set_defaults(func=cmd_self_test)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """
    Main entry point for the CLI.

    Args:
        argv: Command line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
