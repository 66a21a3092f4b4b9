# Copyright 2026 Firefly Software Solutions Inc.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
"""Tests for the typed configuration property classes and framework defaults."""

from __future__ import annotations

from pysef.config.properties import (
    DataServiceProperties,
    LoggingProperties,
    RelationalProperties,
    RepositoryProperties,
)
from pysef.core.config import Config


class TestDefaults:
    def test_repository_defaults_from_framework_file(self, tmp_path):
        props = Config.from_sources(tmp_path).bind(RepositoryProperties)
        assert props.tracking == ["refresh-after-save"]
        assert props.refresh_mode == "store-wins"
        assert props.strict_refresh is False
        assert props.auto_save_on_close is False

    def test_relational_defaults(self, tmp_path):
        props = Config.from_sources(tmp_path).bind(RelationalProperties)
        assert props.url == "sqlite:///:memory:"
        assert props.echo is False

    def test_remote_defaults(self, tmp_path):
        props = Config.from_sources(tmp_path).bind(DataServiceProperties)
        assert props.base_url == "http://localhost:8080/odata"
        assert props.timeout == 30.0
        assert props.headers == {}

    def test_logging_defaults(self, tmp_path):
        props = Config.from_sources(tmp_path).bind(LoggingProperties)
        assert props.format == "console"
        assert props.level == {"root": "INFO"}


class TestOverrides:
    def test_project_file_overrides_defaults(self, tmp_path):
        (tmp_path / "pysef.yaml").write_text(
            "pysef:\n"
            "  data:\n"
            "    repository:\n"
            "      tracking: no-tracking\n"
            "      refresh-mode: client-wins\n"
            "      strict-refresh: true\n"
        )
        props = Config.from_sources(tmp_path).bind(RepositoryProperties)
        assert props.tracking == "no-tracking"
        assert props.refresh_mode == "client-wins"
        assert props.strict_refresh is True

    def test_profile_overlay(self, tmp_path):
        (tmp_path / "pysef.yaml").write_text("pysef:\n  data:\n    relational:\n      url: sqlite:///base.db\n")
        (tmp_path / "pysef-test.yaml").write_text("pysef:\n  data:\n    relational:\n      echo: true\n")
        props = Config.from_sources(tmp_path, active_profiles=["test"]).bind(RelationalProperties)
        assert props.url == "sqlite:///base.db"
        assert props.echo is True

    def test_env_override(self, tmp_path, monkeypatch):
        monkeypatch.setenv("PYSEF_DATA_REMOTE_TIMEOUT", "2.5")
        monkeypatch.setenv("PYSEF_DATA_REMOTE_BASE_URL", "http://svc/odata")
        props = Config.from_sources(tmp_path).bind(DataServiceProperties)
        assert props.timeout == 2.5
        assert props.base_url == "http://svc/odata"
