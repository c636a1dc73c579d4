"""
Tests for ledger configuration loading.

Covers:
- The shipped default set parses and seeds the catalog
- LEDGER_DATABASE_URL overrides database_url
- Validation failures raise ConfigError naming the key
- Missing sets raise FileNotFoundError
- LEDGER_CONFIG_TRACE is emitted with the checksum
"""

import hashlib
import textwrap
from decimal import Decimal

import pytest

from ledger_config import DATABASE_URL_ENV, get_active_config
from ledger_config.loader import compute_checksum, parse_config
from ledger_kernel.exceptions import ConfigError

MINIMAL = "database_url: sqlite://\n"


def _write_set(tmp_path, body: str, name: str = "test"):
    path = tmp_path / f"{name}.yaml"
    path.write_text(textwrap.dedent(body), encoding="utf-8")
    return path


class TestDefaultSet:
    def test_default_set_loads(self, monkeypatch):
        monkeypatch.delenv(DATABASE_URL_ENV, raising=False)
        config = get_active_config()

        assert config.name == "default"
        assert config.database_url == "sqlite:///ledger.db"
        assert config.admin_usernames == ("admin",)
        assert config.sync.debounce_seconds == 1.0
        assert config.reports.low_stock_threshold == Decimal("10")
        assert len(config.checksum) == 64

    def test_default_seed_catalog(self, monkeypatch):
        monkeypatch.delenv(DATABASE_URL_ENV, raising=False)
        store = get_active_config().seed_store()

        assert [h.id for h in store.hubs] == ["hub-1"]
        assert [p.id for p in store.products] == ["p1", "p2", "p3", "p4", "p5", "p6"]
        assert store.product("p2").short_name == "தேங்காய்"
        prices = {e.product_id: e.unit_price for e in store.price_history}
        assert prices["p2"] == Decimal("450")
        assert store.is_admin("ADMIN")


class TestOverrides:
    def test_environment_overrides_database_url(self, monkeypatch, captured_logs):
        monkeypatch.setenv(DATABASE_URL_ENV, "postgresql://ledger@db/ledger")

        config = get_active_config()

        assert config.database_url == "postgresql://ledger@db/ledger"
        trace = [r for r in captured_logs() if r["message"] == "LEDGER_CONFIG_TRACE"][0]
        assert trace["database_url_overridden"] is True

    def test_blank_override_is_ignored(self, monkeypatch):
        monkeypatch.setenv(DATABASE_URL_ENV, "   ")

        assert get_active_config().database_url == "sqlite:///ledger.db"


class TestCustomSets:
    def test_minimal_set_uses_defaults(self, tmp_path, monkeypatch):
        monkeypatch.delenv(DATABASE_URL_ENV, raising=False)
        _write_set(tmp_path, MINIMAL)

        config = get_active_config(tmp_path, "test")

        assert config.cache_path is None
        assert config.log_level == "INFO"
        assert config.sync.max_retries == 3
        assert config.reports.top_client_count == 10
        assert config.seed.products == ()

    def test_checksum_is_sha256_of_file(self, tmp_path, monkeypatch, captured_logs):
        monkeypatch.delenv(DATABASE_URL_ENV, raising=False)
        path = _write_set(tmp_path, MINIMAL)

        config = get_active_config(tmp_path, "test")

        assert config.checksum == hashlib.sha256(path.read_bytes()).hexdigest()
        trace = [r for r in captured_logs() if r["message"] == "LEDGER_CONFIG_TRACE"][0]
        assert trace["checksum"] == config.checksum
        assert trace["config_name"] == "test"

    def test_missing_set(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            get_active_config(tmp_path, "nope")

    def test_invalid_yaml(self, tmp_path):
        _write_set(tmp_path, "database_url: [unclosed\n")

        with pytest.raises(ConfigError):
            get_active_config(tmp_path, "test")

    def test_top_level_must_be_mapping(self, tmp_path):
        _write_set(tmp_path, "- just\n- a list\n")

        with pytest.raises(ConfigError, match="mapping"):
            get_active_config(tmp_path, "test")


class TestValidation:
    @pytest.mark.parametrize(
        "data, key",
        [
            ({}, "database_url"),
            ({"database_url": "  "}, "database_url"),
            ({"database_url": "sqlite://", "log_level": "LOUD"}, "log_level"),
            ({"database_url": "sqlite://", "admin_usernames": "admin"}, "admin_usernames"),
            ({"database_url": "sqlite://", "sync": {"max_retries": -1}}, "max_retries"),
            ({"database_url": "sqlite://", "sync": {"debounce_seconds": "soon"}}, "debounce_seconds"),
            ({"database_url": "sqlite://", "reports": {"top_client_count": 2.5}}, "top_client_count"),
            ({"database_url": "sqlite://", "reports": {"low_stock_threshold": -1}}, "low_stock_threshold"),
            ({"database_url": "sqlite://", "reports": {"low_stock_threshold": "lots"}}, "low_stock_threshold"),
            ({"database_url": "sqlite://", "sync": ["fast"]}, "sync"),
            ({"database_url": "sqlite://", "seed": {"products": [{"name": "x"}]}}, "seed.products"),
            ({"database_url": "sqlite://", "seed": {"price_history": [{"id": "ph", "product_id": "p"}]}},
             "seed.price_history"),
        ],
    )
    def test_invalid_values_raise(self, data, key):
        with pytest.raises(ConfigError) as exc_info:
            parse_config(data, "test", "test.yaml", "")

        assert key in exc_info.value.reason
        assert exc_info.value.code == "CONFIG_INVALID"

    def test_admin_usernames_are_deduplicated(self):
        config = parse_config(
            {"database_url": "sqlite://", "admin_usernames": ["admin", " Admin ", "", "ops"]},
            "test", "test.yaml", "",
        )

        assert config.admin_usernames == ("admin", "ops")

    def test_log_level_is_case_insensitive(self):
        config = parse_config({"database_url": "sqlite://", "log_level": "debug"}, "t", "t.yaml", "")

        assert config.log_level == "DEBUG"

    def test_compute_checksum_is_deterministic(self):
        assert compute_checksum(b"a: 1\n") == compute_checksum(b"a: 1\n")
        assert compute_checksum(b"a: 1\n") != compute_checksum(b"a: 2\n")
