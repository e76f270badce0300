"""
Tests for the HTTP boundary.

Drives the FastAPI application through Starlette's TestClient over an
in-memory record store.
"""

from io import StringIO

import pytest
from fastapi.testclient import TestClient

from rdap_server.api import create_app
from rdap_server.audit_logger import AuditLogger
from rdap_server.config import SystemConfig
from rdap_server.enums import LogLevel
from rdap_server.record_store import MemoryRecordStore
from rdap_server.service import RDAPService


RDAP_JSON = "application/rdap+json"

SEED = {
    "domain/example.com": {
        "ldh_name": "example.com",
        "unicode_name": "example.com",
        "created_at": "2021-06-01T00:00:00Z",
        "name_servers": ["ns1.example.com"],
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
    "ip/narrow": {"start_address": "10.0.0.0", "end_address": "10.0.0.255", "name": "NARROW"},
    "autnum/as150": {"handle": "AS150", "start_autnum": 100, "end_autnum": 200},
    "entity/REG-1": {"handle": "REG-1", "roles": ["registrar"]},
    "entity/REG-2": {"handle": "REG-2", "roles": ["registrant"]},
}


@pytest.fixture
def logger() -> AuditLogger:
    return AuditLogger(output_stream=StringIO(), level=LogLevel.DEBUG)


@pytest.fixture
def client(logger: AuditLogger) -> TestClient:
    service = RDAPService(SystemConfig(), MemoryRecordStore(SEED), logger)
    return TestClient(create_app(service))


def assert_rdap_error(response, status: int) -> None:
    assert response.status_code == status
    assert response.headers["content-type"].startswith(RDAP_JSON)
    body = response.json()
    assert body["errorCode"] == status
    assert isinstance(body["title"], str)
    assert isinstance(body["description"], list)


class TestLookupRoutes:
    """Tests for exact lookup routes."""

    def test_domain(self, client: TestClient) -> None:
        response = client.get("/rdap/domain/EXAMPLE.com")

        assert response.status_code == 200
        assert response.headers["content-type"].startswith(RDAP_JSON)
        body = response.json()
        assert body["ldhName"] == "example.com"
        assert body["nameservers"][0]["status"] == ["active"]
        assert body["rdapConformance"] == ["rdap_level_0"]

    def test_nameserver_and_entity(self, client: TestClient) -> None:
        assert client.get("/rdap/nameserver/ns1.example.com").json()["objectClassName"] == "nameserver"
        assert client.get("/rdap/entity/REG-1").json()["roles"] == ["registrar"]

    def test_absent_domain(self, client: TestClient) -> None:
        assert_rdap_error(client.get("/rdap/domain/absent.com"), 404)

    def test_unknown_resource(self, client: TestClient) -> None:
        assert_rdap_error(client.get("/rdap/registrar/x"), 404)

    def test_malformed_handle(self, client: TestClient) -> None:
        assert_rdap_error(client.get("/rdap/domain/exa*mple.com"), 400)

    def test_missing_nameserver_is_server_error(self, client: TestClient, logger: AuditLogger) -> None:
        assert_rdap_error(client.get("/rdap/domain/orphan.org"), 500)
        assert logger.entries[-1].level == LogLevel.ERROR


class TestNetworkAndAutnumRoutes:
    """Tests for the IP network and AS number routes."""

    @pytest.mark.parametrize("query", ["10.0.0.7", "10.0.0.0/25", "10.0.0.0/24"])
    def test_ip(self, client: TestClient, query: str) -> None:
        response = client.get(f"/rdap/ip/{query}")

        assert response.status_code == 200
        body = response.json()
        assert body["objectClassName"] == "ip network"
        assert body["handle"] == "10.0.0.0/24"

    def test_ip_not_found(self, client: TestClient) -> None:
        assert_rdap_error(client.get("/rdap/ip/192.0.2.1"), 404)

    @pytest.mark.parametrize("query", ["10.0.0.300", "not-an-ip", "10.0.0.0/33"])
    def test_ip_malformed(self, client: TestClient, query: str) -> None:
        assert_rdap_error(client.get(f"/rdap/ip/{query}"), 400)

    def test_autnum(self, client: TestClient) -> None:
        response = client.get("/rdap/autnum/150")

        assert response.status_code == 200
        assert response.json()["handle"] == "AS150"

    def test_autnum_not_found_and_malformed(self, client: TestClient) -> None:
        assert_rdap_error(client.get("/rdap/autnum/99"), 404)
        assert_rdap_error(client.get("/rdap/autnum/ASX"), 400)


class TestSearchRoutes:
    """Tests for the search routes."""

    def test_entity_search(self, client: TestClient) -> None:
        response = client.get("/rdap/entities", params={"handle": "REG-*"})

        assert response.status_code == 200
        body = response.json()
        assert body["rdapConformance"] == ["rdap_level_0"]
        assert [e["handle"] for e in body["entitySearchResults"]] == ["REG-1", "REG-2"]
        assert all("rdapConformance" not in e for e in body["entitySearchResults"])

    def test_search_without_matches(self, client: TestClient) -> None:
        response = client.get("/rdap/nameservers", params={"ldh_name": "*.invalid"})

        assert response.status_code == 200
        assert response.json()["nameserverSearchResults"] == []

    def test_bad_glob(self, client: TestClient) -> None:
        assert_rdap_error(client.get("/rdap/domains", params={"ldh_name": "[abc"}), 422)

    @pytest.mark.parametrize("collection", ["ips", "autnums", "registrars"])
    def test_unsearchable_collections(self, client: TestClient, collection: str) -> None:
        assert_rdap_error(client.get(f"/rdap/{collection}"), 404)


class TestHeadRequests:
    """HEAD answers with the GET status and an empty body."""

    @pytest.mark.parametrize(
        "path,status",
        [
            ("/rdap/domain/example.com", 200),
            ("/rdap/domain/absent.com", 404),
            ("/rdap/ip/10.0.0.1", 200),
            ("/rdap/ip/bogus", 400),
            ("/rdap/autnum/AS150", 200),
            ("/rdap/autnum/1", 404),
            ("/rdap/entities?handle=REG-*", 200),
            ("/rdap/domains?ldh_name={a,{b}}", 422),
        ],
    )
    def test_head(self, client: TestClient, path: str, status: int) -> None:
        response = client.head(path)

        assert response.status_code == status
        assert response.content == b""
        assert response.headers["content-type"].startswith(RDAP_JSON)

    def test_head_does_not_assemble(self, client: TestClient) -> None:
        # orphan.org is broken for GET but present for HEAD
        assert client.head("/rdap/domain/orphan.org").status_code == 200


class TestUnexpectedErrors:
    """Unhandled exceptions become a generic RDAP 500."""

    def test_generic_error_body(self, logger: AuditLogger) -> None:
        class ExplodingStore(MemoryRecordStore):
            async def get(self, key_patterns, field_filters=None):
                raise RuntimeError("boom")

        service = RDAPService(SystemConfig(), ExplodingStore(), logger)
        client = TestClient(create_app(service), raise_server_exceptions=False)

        response = client.get("/rdap/entity/REG-1")

        assert response.status_code == 500
        assert response.json()["errorCode"] == 500
        assert "boom" not in response.text
        assert logger.entries[-1].data["error_type"] == "RuntimeError"
