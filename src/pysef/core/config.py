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
"""Layered configuration: YAML/TOML files, env vars, and dataclass binding."""

from __future__ import annotations

import dataclasses
import importlib.resources
import os
import re
import tomllib
from collections.abc import Callable
from pathlib import Path
from typing import Any, TypeVar, cast, get_type_hints

import yaml  # type: ignore[import-untyped]
from pydantic import BaseModel, ValidationError

T = TypeVar("T")

_PLACEHOLDER_RE = re.compile(r"\$\{([^}]+)\}")

_CONFIG_PROPERTIES_ATTR = "__pysef_config_prefix__"

_ENV_PREFIX = "PYSEF_"

_MAX_PLACEHOLDER_DEPTH = 10


def config_properties(prefix: str) -> Callable[[type[T]], type[T]]:
    """Mark a class as bindable to a configuration prefix.

    Works with both dataclasses and Pydantic BaseModel subclasses.

    Usage:
        @config_properties(prefix="pysef.data.relational")
        @dataclass
        class RelationalProperties:
            url: str = "sqlite:///:memory:"
    """

    def decorator(cls: type[T]) -> type[T]:
        setattr(cls, _CONFIG_PROPERTIES_ATTR, prefix)
        return cls

    return decorator


class Config:
    """Hierarchical configuration with dot-notation access and env var overrides.

    Priority (highest wins):
    1. Environment variables (PYSEF_SECTION_KEY format)
    2. Configuration dict / file values
    3. Framework defaults (``pysef-defaults.yaml``)
    """

    def __init__(self, data: dict[str, Any] | None = None) -> None:
        self._data: dict[str, Any] = data or {}
        self._loaded_sources: list[str] = []

    @property
    def loaded_sources(self) -> list[str]:
        """Config file paths that were loaded, in merge order."""
        return list(self._loaded_sources)

    def to_dict(self) -> dict[str, Any]:
        return dict(self._data)

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    @classmethod
    def from_file(
        cls,
        path: str | Path,
        active_profiles: list[str] | None = None,
        load_defaults: bool = True,
    ) -> Config:
        """Load a YAML or TOML file plus its profile overlays.

        For ``app.yaml`` and profile ``dev`` the overlay is ``app-dev.yaml``
        in the same directory. Later profiles win over earlier ones.
        """
        path = Path(path)
        candidates = [(path, None)]
        candidates += [
            (path.parent / f"{path.stem}-{profile}{path.suffix}", profile)
            for profile in active_profiles or []
        ]
        return cls._merge_sources(candidates, load_defaults)

    @classmethod
    def from_sources(
        cls,
        base_dir: str | Path,
        active_profiles: list[str] | None = None,
        load_defaults: bool = True,
    ) -> Config:
        """Merge ``pysef.yaml`` / ``pysef.toml`` from ``config/`` and the project root.

        Merge order (later wins): framework defaults, ``config/pysef.*``,
        ``pysef.*``, then ``pysef-{profile}.*`` overlays from both locations.
        """
        base_dir = Path(base_dir)
        search_dirs = [base_dir / "config", base_dir]
        candidates: list[tuple[Path, str | None]] = [
            (directory / f"pysef{ext}", None) for directory in search_dirs for ext in (".yaml", ".toml")
        ]
        for profile in active_profiles or []:
            candidates += [
                (directory / f"pysef-{profile}{ext}", profile)
                for directory in search_dirs
                for ext in (".yaml", ".toml")
            ]
        return cls._merge_sources(candidates, load_defaults)

    @classmethod
    def _merge_sources(cls, candidates: list[tuple[Path, str | None]], load_defaults: bool) -> Config:
        data: dict[str, Any] = {}
        sources: list[str] = []

        if load_defaults:
            data = cls._load_framework_defaults()
            sources.append("pysef-defaults.yaml (framework defaults)")

        for candidate, profile in candidates:
            if not candidate.is_file():
                continue
            data = cls._deep_merge(data, cls._load_config_data(candidate))
            sources.append(f"{candidate} (profile: {profile})" if profile else str(candidate))

        instance = cls(data)
        instance._loaded_sources = sources
        return instance

    @staticmethod
    def _load_config_data(path: Path) -> dict[str, Any]:
        if path.suffix == ".toml":
            with open(path, "rb") as f:
                return tomllib.load(f) or {}
        with open(path) as f:
            return yaml.safe_load(f) or {}

    @staticmethod
    def _load_framework_defaults() -> dict[str, Any]:
        defaults_file = importlib.resources.files("pysef.resources").joinpath("pysef-defaults.yaml")
        with importlib.resources.as_file(defaults_file) as p, open(p) as f:
            return yaml.safe_load(f) or {}

    @staticmethod
    def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
        """Recursively merge override into base, with override values winning."""
        merged = dict(base)
        for key, value in override.items():
            if isinstance(merged.get(key), dict) and isinstance(value, dict):
                merged[key] = Config._deep_merge(merged[key], value)
            else:
                merged[key] = value
        return merged

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def get(self, key: str, default: Any = None) -> Any:
        """Get a value by dot-notation key, checking env vars first.

        ``pysef.data.relational.url`` is overridden by ``PYSEF_DATA_RELATIONAL_URL``.
        String values containing ``${...}`` placeholders are resolved from
        the environment, then from other config keys, then from an inline
        default (``${key:default}``).
        """
        env_val = os.environ.get(self._env_key(key))
        if env_val is not None:
            return env_val

        current = self._lookup(key)
        if current is None:
            return default

        if isinstance(current, str) and "${" in current:
            return self._resolve_placeholders(current)
        return current

    @staticmethod
    def _env_key(key: str) -> str:
        env_base = key.removeprefix("pysef.")
        return _ENV_PREFIX + env_base.upper().replace(".", "_").replace("-", "_")

    def _lookup(self, key: str) -> Any:
        current: Any = self._data
        for part in key.split("."):
            if not isinstance(current, dict):
                return None
            current = current.get(part)
            if current is None:
                return None
        return current

    def _resolve_placeholders(self, value: str, _depth: int = 0) -> str:
        if _depth > _MAX_PLACEHOLDER_DEPTH:
            raise ValueError(
                f"Max recursion depth exceeded resolving placeholders in '{value}'. Check for circular references."
            )

        def _replace(match: re.Match[str]) -> str:
            inner = match.group(1)
            ref_key, _, default_val = inner.partition(":")

            env_val = os.environ.get(ref_key)
            if env_val is not None:
                return env_val

            current = self._lookup(ref_key)
            if current is not None:
                resolved = str(current)
                if "${" in resolved:
                    resolved = self._resolve_placeholders(resolved, _depth + 1)
                return resolved

            if ":" in inner:
                return cast(str, default_val)

            raise ValueError(f"Cannot resolve placeholder '${{{inner}}}': not found in environment or config")

        return _PLACEHOLDER_RE.sub(_replace, value)

    def get_section(self, prefix: str) -> dict[str, Any]:
        """Get all values under a prefix as a dict (empty when absent)."""
        section = self._lookup(prefix)
        return section if isinstance(section, dict) else {}

    # ------------------------------------------------------------------
    # Binding
    # ------------------------------------------------------------------

    def bind(self, config_cls: type[T]) -> T:
        """Bind configuration to a @config_properties dataclass or Pydantic model.

        Dataclass fields are looked up under the prefix by their own name or
        by the kebab-case spelling (``refresh_mode`` / ``refresh-mode``), and
        environment overrides apply per field.
        """
        prefix = getattr(config_cls, _CONFIG_PROPERTIES_ATTR, None)
        if prefix is None:
            raise ValueError(f"{config_cls.__name__} is not decorated with @config_properties")

        section = self.get_section(prefix)

        if isinstance(config_cls, type) and issubclass(config_cls, BaseModel):
            try:
                return config_cls.model_validate(section)
            except ValidationError as exc:
                raise ValueError(
                    f"Configuration validation failed for '{config_cls.__name__}' (prefix='{prefix}'):\n{exc}"
                ) from exc

        hints = get_type_hints(config_cls)
        kwargs: dict[str, Any] = {}
        for field in dataclasses.fields(config_cls):  # type: ignore[arg-type]
            kebab = field.name.replace("_", "-")
            value = self.get(f"{prefix}.{field.name}")
            if value is None:
                value = self.get(f"{prefix}.{kebab}")
            if value is None:
                continue
            kwargs[field.name] = self._coerce(value, hints.get(field.name))

        return config_cls(**kwargs)

    @staticmethod
    def _coerce(value: Any, expected_type: Any) -> Any:
        if not isinstance(value, str):
            return value
        if expected_type is int:
            return int(value)
        if expected_type is float:
            return float(value)
        if expected_type is bool:
            return value.lower() in ("true", "1", "yes")
        return value
