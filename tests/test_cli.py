"""
Tests for the command-line interface.

Query commands run against a memory store seeded from a JSON file in a
temporary working directory.
"""

import json
from pathlib import Path

import pytest

from rdap_server.cli import create_parser, main, parse_field_globs
from rdap_server.config import load_config_from_file


SEED = {
    "domain/example.com": {
        "ldh_name": "example.com",
        "unicode_name": "example.com",
        "created_at": "2021-06-01T00:00:00Z",
        "name_servers": [],
    },
    "ip/net": {"start_address": "192.0.2.0", "end_address": "192.0.2.255"},
    "autnum/as1": {"start_autnum": 1, "end_autnum": 10},
    "entity/REG-1": {"handle": "REG-1"},
}

ENV_VARS = [
    "RDAP_STORE_BACKEND", "RDAP_STORE_PATH", "RDAP_REDIS_URL", "RDAP_KEY_PREFIX",
    "RDAP_URL_ROOT", "RDAP_PORT43", "RDAP_HOST", "RDAP_PORT",
    "RDAP_LOG_LEVEL", "RDAP_LOG_FORMAT",
]


@pytest.fixture
def seed_file(tmp_path: Path, monkeypatch) -> Path:
    monkeypatch.chdir(tmp_path)
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("RDAP_STORE_BACKEND", "memory")

    path = tmp_path / "seed.json"
    path.write_text(json.dumps(SEED))
    return path


class TestParseFieldGlobs:
    """Tests for field=glob argument parsing."""

    def test_parses_pairs(self) -> None:
        assert parse_field_globs(["ldh_name=*.example", "handle=a=b"]) == {
            "ldh_name": "*.example",
            "handle": "a=b",
        }

    @pytest.mark.parametrize("item", ["ldh_name", "=*.example"])
    def test_rejects_malformed_items(self, item: str) -> None:
        with pytest.raises(ValueError):
            parse_field_globs([item])


class TestQueryCommands:
    """Tests for lookup, ip, autnum and search."""

    def test_lookup(self, seed_file: Path, capsys) -> None:
        code = main(["lookup", "domain", "EXAMPLE.COM", "--store", str(seed_file)])

        assert code == 0
        assert json.loads(capsys.readouterr().out)["ldhName"] == "example.com"

    def test_lookup_not_found(self, seed_file: Path, capsys) -> None:
        code = main(["lookup", "domain", "absent.com", "--store", str(seed_file)])

        assert code == 1
        assert json.loads(capsys.readouterr().err.splitlines()[-1])["errorCode"] == 404

    def test_lookup_unknown_resource(self, seed_file: Path) -> None:
        assert main(["lookup", "registrar", "x", "--store", str(seed_file)]) == 1

    def test_ip_and_autnum(self, seed_file: Path, capsys) -> None:
        assert main(["ip", "192.0.2.7", "--store", str(seed_file)]) == 0
        assert json.loads(capsys.readouterr().out)["handle"] == "192.0.2.0/24"

        assert main(["autnum", "AS5", "--store", str(seed_file)]) == 0
        assert json.loads(capsys.readouterr().out)["startAutnum"] == 1

    def test_search(self, seed_file: Path, capsys) -> None:
        code = main(["search", "entities", "handle=REG-*", "--store", str(seed_file)])

        assert code == 0
        assert json.loads(capsys.readouterr().out)["entitySearchResults"][0]["handle"] == "REG-1"

    def test_search_bad_filter(self, seed_file: Path) -> None:
        assert main(["search", "domains", "ldh_name", "--store", str(seed_file)]) == 1


class TestConfigCommand:
    """Tests for config init, validate and show."""

    def test_init_then_validate(self, tmp_path: Path, capsys) -> None:
        path = tmp_path / "rdap-server.json"

        assert main(["config", "init", "--path", str(path), "--store", "/srv/rdap"]) == 0
        assert load_config_from_file(path).store.path == Path("/srv/rdap")
        assert main(["config", "validate", "--path", str(path)]) == 0
        assert "is valid" in capsys.readouterr().out

    def test_init_refuses_to_overwrite(self, tmp_path: Path) -> None:
        path = tmp_path / "rdap-server.json"
        path.write_text("{}")

        assert main(["config", "init", "--path", str(path)]) == 1
        assert main(["config", "init", "--path", str(path), "--force"]) == 0

    def test_validate_reports_errors(self, tmp_path: Path, capsys) -> None:
        path = tmp_path / "rdap-server.json"
        path.write_text(json.dumps({"http": {"port": 0}}))

        assert main(["config", "validate", "--path", str(path)]) == 1
        assert "HTTP port out of range" in capsys.readouterr().err

    def test_show_masks_store_url(self, tmp_path: Path, capsys) -> None:
        path = tmp_path / "rdap-server.json"
        path.write_text(json.dumps({"store": {"backend": "redis", "url": "redis://:pw@db:6379/0"}}))

        assert main(["config", "show", "--path", str(path)]) == 0
        assert "pw@db" not in capsys.readouterr().out


class TestSelfTestCommand:
    def test_self_test_with_seed(self, seed_file: Path, capsys) -> None:
        assert main(["self-test", "--store", str(seed_file)]) == 0
        assert "Self-test passed" in capsys.readouterr().out


class TestParser:
    def test_search_collections(self) -> None:
        parser = create_parser()
        with pytest.raises(SystemExit):
            parser.parse_args(["search", "registrars"])

    def test_no_command_prints_help(self, capsys) -> None:
        assert main([]) == 0
        assert "rdap-server" in capsys.readouterr().out
