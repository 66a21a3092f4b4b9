"""Tests for configuration system."""

import os
from dataclasses import dataclass
from pathlib import Path

import pytest
from pydantic import BaseModel

from pysef.core.config import Config, config_properties


class TestConfig:
    def test_get_simple_value(self):
        config = Config({"data": {"url": "sqlite://"}})
        assert config.get("data.url") == "sqlite://"

    def test_get_with_default(self):
        config = Config({})
        assert config.get("missing.key", "default") == "default"

    def test_get_nested_value(self):
        config = Config({"database": {"pool": {"size": 10}}})
        assert config.get("database.pool.size") == 10

    def test_load_from_yaml_file(self, tmp_path: Path):
        config_file = tmp_path / "pysef.yaml"
        config_file.write_text("app:\n  name: shop\n  port: 9090\n")
        config = Config.from_file(config_file)
        assert config.get("app.name") == "shop"

    def test_load_from_toml_file(self, tmp_path: Path):
        config_file = tmp_path / "pysef.toml"
        config_file.write_text('[pysef.data.relational]\nurl = "sqlite:///shop.db"\n')
        config = Config.from_file(config_file)
        assert config.get("pysef.data.relational.url") == "sqlite:///shop.db"

    def test_framework_defaults_are_loaded(self, tmp_path: Path):
        config = Config.from_sources(tmp_path)
        assert config.get("pysef.data.repository.refresh-mode") == "store-wins"
        assert config.loaded_sources == ["pysef-defaults.yaml (framework defaults)"]

    def test_defaults_can_be_skipped(self, tmp_path: Path):
        config = Config.from_sources(tmp_path, load_defaults=False)
        assert config.get("pysef.data.repository.refresh-mode") is None

    def test_sources_merge_config_dir_then_root(self, tmp_path: Path):
        (tmp_path / "config").mkdir()
        (tmp_path / "config" / "pysef.yaml").write_text("app:\n  name: inner\n  port: 1\n")
        (tmp_path / "pysef.yaml").write_text("app:\n  name: outer\n")
        config = Config.from_sources(tmp_path, load_defaults=False)
        assert config.get("app.name") == "outer"
        assert config.get("app.port") == 1

    def test_env_var_override(self):
        os.environ["PYSEF_APP_NAME"] = "env-service"
        try:
            config = Config({"app": {"name": "file-service"}})
            assert config.get("app.name") == "env-service"
        finally:
            del os.environ["PYSEF_APP_NAME"]

    def test_env_override_drops_pysef_prefix(self, monkeypatch):
        monkeypatch.setenv("PYSEF_DATA_RELATIONAL_URL", "sqlite:///env.db")
        config = Config({"pysef": {"data": {"relational": {"url": "sqlite://"}}}})
        assert config.get("pysef.data.relational.url") == "sqlite:///env.db"

    def test_get_section(self):
        config = Config({"pysef": {"data": {"remote": {"timeout": 5}}}})
        assert config.get_section("pysef.data.remote") == {"timeout": 5}
        assert config.get_section("pysef.nothing") == {}


class TestPlaceholders:
    def test_placeholder_from_other_key(self):
        config = Config({"host": "db.local", "url": "postgresql://${host}/shop"})
        assert config.get("url") == "postgresql://db.local/shop"

    def test_placeholder_from_environment(self, monkeypatch):
        monkeypatch.setenv("SHOP_DB_HOST", "env-host")
        config = Config({"url": "postgresql://${SHOP_DB_HOST}/shop"})
        assert config.get("url") == "postgresql://env-host/shop"

    def test_placeholder_default(self):
        config = Config({"url": "sqlite:///${db_file:shop.db}"})
        assert config.get("url") == "sqlite:///shop.db"

    def test_unresolvable_placeholder_raises(self):
        config = Config({"url": "${nowhere}"})
        with pytest.raises(ValueError, match="Cannot resolve placeholder"):
            config.get("url")

    def test_circular_placeholder_raises(self):
        config = Config({"a": "${b}", "b": "${a}"})
        with pytest.raises(ValueError, match="Max recursion depth"):
            config.get("a")


class TestConfigProperties:
    def test_bind_to_dataclass(self):
        @config_properties(prefix="database")
        @dataclass
        class DatabaseConfig:
            url: str = "sqlite:///test.db"
            pool_size: int = 5

        config = Config({"database": {"url": "postgresql://localhost/mydb", "pool_size": 20}})
        db_config = config.bind(DatabaseConfig)
        assert db_config.url == "postgresql://localhost/mydb"
        assert db_config.pool_size == 20

    def test_bind_uses_defaults(self):
        @config_properties(prefix="database")
        @dataclass
        class DatabaseConfig:
            url: str = "sqlite:///default.db"
            pool_size: int = 5

        db_config = Config({}).bind(DatabaseConfig)
        assert db_config.url == "sqlite:///default.db"
        assert db_config.pool_size == 5

    def test_bind_kebab_case_keys(self):
        @config_properties(prefix="repo")
        @dataclass
        class RepoConfig:
            strict_refresh: bool = False

        config = Config({"repo": {"strict-refresh": True}})
        assert config.bind(RepoConfig).strict_refresh is True

    def test_bind_coerces_env_strings(self, monkeypatch):
        @config_properties(prefix="pool")
        @dataclass
        class PoolConfig:
            size: int = 1
            timeout: float = 1.0
            enabled: bool = False

        monkeypatch.setenv("PYSEF_POOL_SIZE", "8")
        monkeypatch.setenv("PYSEF_POOL_TIMEOUT", "2.5")
        monkeypatch.setenv("PYSEF_POOL_ENABLED", "yes")
        bound = Config({}).bind(PoolConfig)
        assert (bound.size, bound.timeout, bound.enabled) == (8, 2.5, True)

    def test_bind_pydantic_model(self):
        @config_properties(prefix="remote")
        class RemoteConfig(BaseModel):
            base_url: str
            timeout: float = 30.0

        bound = Config({"remote": {"base_url": "http://svc"}}).bind(RemoteConfig)
        assert bound.base_url == "http://svc"
        assert bound.timeout == 30.0

    def test_bind_pydantic_validation_error(self):
        @config_properties(prefix="remote")
        class RemoteConfig(BaseModel):
            timeout: float

        with pytest.raises(ValueError, match="Configuration validation failed"):
            Config({"remote": {"timeout": "soon"}}).bind(RemoteConfig)

    def test_bind_undecorated_class_raises(self):
        @dataclass
        class Plain:
            value: int = 0

        with pytest.raises(ValueError, match="not decorated"):
            Config({}).bind(Plain)


class TestProfileConfigMerging:
    def test_merge_profile_config(self, tmp_path):
        base = tmp_path / "pysef.yaml"
        base.write_text("server:\n  port: 8080\n  host: localhost\n")

        profile = tmp_path / "pysef-dev.yaml"
        profile.write_text("server:\n  port: 9090\n  debug: true\n")

        config = Config.from_file(base, active_profiles=["dev"])
        assert config.get("server.port") == 9090
        assert config.get("server.host") == "localhost"
        assert config.get("server.debug") is True

    def test_later_profile_wins(self, tmp_path):
        base = tmp_path / "pysef.yaml"
        base.write_text("db:\n  url: base\n")
        (tmp_path / "pysef-dev.yaml").write_text("db:\n  url: dev-url\n")
        (tmp_path / "pysef-local.yaml").write_text("db:\n  url: local-url\n")

        config = Config.from_file(base, active_profiles=["dev", "local"])
        assert config.get("db.url") == "local-url"

    def test_missing_profile_file_is_skipped(self, tmp_path):
        base = tmp_path / "pysef.yaml"
        base.write_text("app:\n  name: test\n")

        config = Config.from_file(base, active_profiles=["nonexistent"])
        assert config.get("app.name") == "test"

    def test_env_vars_still_win(self, tmp_path, monkeypatch):
        base = tmp_path / "pysef.yaml"
        base.write_text("app:\n  name: base\n")
        (tmp_path / "pysef-dev.yaml").write_text("app:\n  name: dev\n")

        monkeypatch.setenv("PYSEF_APP_NAME", "env-wins")
        config = Config.from_file(base, active_profiles=["dev"])
        assert config.get("app.name") == "env-wins"
