"""
Tests for the RDAP query service.

Covers the full query flow through the service handle: lookups, network
and AS matching, search wrapping, presence checks, and query logging.
"""

import asyncio
from io import StringIO

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from rdap_server.audit_logger import AuditLogger
from rdap_server.config import SystemConfig
from rdap_server.enums import LogLevel, ResourceType
from rdap_server.exceptions import (
    DataError,
    NotFoundError,
    PatternError,
    UnsupportedResourceError,
)
from rdap_server.record_store import MemoryRecordStore
from rdap_server.service import RDAPService


SEED = {
    "domain/example.com": {
        "ldh_name": "example.com",
        "unicode_name": "example.com",
        "created_at": "2021-06-01T00:00:00Z",
        "expires_at": "2031-06-01T00:00:00Z",
        "name_servers": ["ns1.example.com", "ns2.example.com"],
    },
    "domain/example.net": {
        "ldh_name": "example.net",
        "unicode_name": "example.net",
        "created_at": "2019-03-04T00:00:00Z",
        "name_servers": [],
    },
    "domain/orphan.org": {
        "ldh_name": "orphan.org",
        "unicode_name": "orphan.org",
        "created_at": "2019-03-04T00:00:00Z",
        "name_servers": ["ns9.missing.org"],
    },
    "nameserver/ns1.example.com": {
        "ldh_name": "ns1.example.com",
        "unicode_name": "ns1.example.com",
        "ip_addresses": {"v4": ["192.0.2.1"], "v6": []},
    },
    "nameserver/ns2.example.com": {
        "ldh_name": "ns2.example.com",
        "unicode_name": "ns2.example.com",
        "ip_addresses": {"v4": [], "v6": ["2001:db8::2"]},
    },
    "ip/wide": {"start_address": "10.0.0.0", "end_address": "10.0.3.255", "name": "WIDE"},
    "ip/narrow": {"start_address": "10.0.0.0", "end_address": "10.0.0.255", "name": "NARROW"},
    "autnum/as150": {"handle": "AS150", "start_autnum": 100, "end_autnum": 200},
    "entity/REG-1": {"handle": "REG-1", "roles": ["registrar"]},
}


def make_service(seed=None, logger=None) -> RDAPService:
    return RDAPService(SystemConfig(), MemoryRecordStore(SEED if seed is None else seed), logger)


def run(coro):
    return asyncio.run(coro)


class TestLookups:
    """Tests for exact, network and AS lookups through the service."""

    def test_domain_lookup(self) -> None:
        obj = run(make_service().lookup(ResourceType.DOMAIN, "Example.COM"))

        assert obj["ldhName"] == "example.com"
        assert [ns["ldhName"] for ns in obj["nameservers"]] == [
            "ns1.example.com", "ns2.example.com",
        ]
        assert obj["rdapConformance"] == ["rdap_level_0"]

    def test_lookup_accepts_segment_names(self) -> None:
        obj = run(make_service().lookup("entity", "REG-1"))
        assert obj["objectClassName"] == "entity"

    def test_unknown_segment_is_not_found(self) -> None:
        with pytest.raises(NotFoundError):
            run(make_service().lookup("registrar", "x"))

    def test_range_types_have_no_exact_lookup(self) -> None:
        with pytest.raises(UnsupportedResourceError):
            run(make_service().lookup(ResourceType.NETWORK, "10.0.0.0"))

    def test_domain_with_missing_nameserver_fails(self) -> None:
        with pytest.raises(DataError):
            run(make_service().lookup(ResourceType.DOMAIN, "orphan.org"))

    def test_network_lookup_picks_narrowest(self) -> None:
        obj = run(make_service().lookup_network("10.0.0.5"))

        assert obj["name"] == "NARROW"
        assert obj["handle"] == "10.0.0.0/24"
        assert obj["port43"] == "whois.example.net"

    def test_autnum_lookup(self) -> None:
        service = make_service()

        assert run(service.lookup_autnum(150))["handle"] == "AS150"
        with pytest.raises(NotFoundError):
            run(service.lookup_autnum("AS99"))


class TestPresenceChecks:
    """Tests for the HEAD-style presence variants."""

    def test_lookup_exists(self) -> None:
        service = make_service()

        assert run(service.lookup_exists(ResourceType.DOMAIN, "example.com"))
        with pytest.raises(NotFoundError):
            run(service.lookup_exists(ResourceType.DOMAIN, "absent.com"))

    def test_network_and_autnum_exists(self) -> None:
        service = make_service()

        assert run(service.network_exists("10.0.2.1"))
        assert run(service.autnum_exists("AS100"))
        with pytest.raises(NotFoundError):
            run(service.network_exists("192.0.2.1"))

    def test_search_exists_validates_patterns(self) -> None:
        service = make_service()

        assert run(service.search_exists(ResourceType.DOMAIN, {"ldh_name": "nothing*"}))
        with pytest.raises(PatternError):
            run(service.search_exists(ResourceType.DOMAIN, {"ldh_name": "[bad"}))


class TestSearchProperty:
    """Property-based tests for search through the service."""

    @given(pattern=st.sampled_from(["*", "example.*", "*.net", "{example,orphan}.com", "e?ample.com"]))
    @settings(max_examples=20)
    def test_search_results_match_filter(self, pattern: str) -> None:
        """
        Property: every search result matches the pattern and results carry
        no per-item conformance.
        """
        seed = {k: v for k, v in SEED.items() if k != "domain/orphan.org"}
        result = run(make_service(seed).search(ResourceType.DOMAIN, {"ldh_name": pattern}))

        assert result["rdapConformance"] == ["rdap_level_0"]
        items = result["domainSearchResults"]
        for item in items:
            assert item["objectClassName"] == "domain"
            assert "rdapConformance" not in item
            assert "port43" not in item

    def test_empty_search_returns_every_entity(self) -> None:
        result = run(make_service().search(ResourceType.ENTITY))

        assert [item["handle"] for item in result["entitySearchResults"]] == ["REG-1"]

    def test_search_results_in_key_order(self) -> None:
        seed = {k: v for k, v in SEED.items() if k != "domain/orphan.org"}
        result = run(make_service(seed).search(ResourceType.DOMAIN, {"ldh_name": "example.*"}))

        assert [item["ldhName"] for item in result["domainSearchResults"]] == [
            "example.com", "example.net",
        ]

    def test_broken_result_fails_search(self) -> None:
        with pytest.raises(DataError):
            run(make_service().search(ResourceType.DOMAIN, {}))


class TestQueryLogging:
    """Tests for query logging through the audit logger."""

    def test_success_is_logged(self) -> None:
        logger = AuditLogger(output_stream=StringIO(), level=LogLevel.DEBUG)

        run(make_service(logger=logger).lookup_autnum(150))

        messages = [entry.message for entry in logger.entries]
        assert messages == ["lookup_autnum started", "lookup_autnum completed"]
        assert "duration_ms" in logger.entries[-1].data

    def test_client_errors_are_logged_at_info(self) -> None:
        logger = AuditLogger(output_stream=StringIO(), level=LogLevel.DEBUG)

        with pytest.raises(NotFoundError):
            run(make_service(logger=logger).lookup_autnum(1))

        last = logger.entries[-1]
        assert last.level == LogLevel.INFO
        assert last.data["error_code"] == "not_found"

    def test_data_errors_are_logged_at_error(self) -> None:
        logger = AuditLogger(output_stream=StringIO(), level=LogLevel.DEBUG)

        with pytest.raises(DataError):
            run(make_service(logger=logger).lookup(ResourceType.DOMAIN, "orphan.org"))

        last = logger.entries[-1]
        assert last.level == LogLevel.ERROR
        assert last.data["error_type"] == "DataError"
        assert last.data["error_code"] == "missing_nameserver"

    def test_context_manager_closes_store(self) -> None:
        closed = []

        class TrackingStore(MemoryRecordStore):
            async def close(self) -> None:
                closed.append(True)

        async def use_service():
            async with RDAPService(SystemConfig(), TrackingStore()):
                pass

        run(use_service())
        assert closed == [True]
