"""
ErlLS configuration.

Values are layered, lowest precedence first:
1. Defaults declared on ErllsConfig
2. The project's .erlls.yml file
3. LSP initializationOptions sent by the editor

Example .erlls.yml:

    node_name: dev@localhost
    node_address: localhost:4370
    network_docs: true
    history_count: 8
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any

import yaml

from erlls.errors import ConfigError

CONFIG_FILE_NAME = ".erlls.yml"


@dataclass(frozen=True)
class ErllsConfig:
    """All tunables of the completion pipeline."""

    # Remote node
    node_name: str = "erlls@localhost"
    node_address: str | None = None
    bridge_command: list[str] = field(
        default_factory=lambda: ["erlls-bridge", "{node}"]
    )
    rpc_timeout: float = 5.0

    # Documentation
    network_docs: bool = False
    doc_base_url: str = "https://www.erlang.org/doc"
    doc_fetch_timeout: float = 3.0
    doc_index: str | None = None

    # Prefix detection
    symbol_chars: str = "a-zA-Z0-9_:@"
    language_ids: list[str] = field(default_factory=lambda: ["erlang"])
    file_suffixes: list[str] = field(
        default_factory=lambda: [".erl", ".hrl", ".escript", ".app.src"]
    )

    # Local history scan
    history_count: int = 5
    history_window: int = 4000

    # Client commands run after inserting ``module:`` and ``function(``.
    # An empty name disables the follow-up.
    completion_retrigger_command: str = "editor.action.triggerSuggest"
    signature_retrigger_command: str = "editor.action.triggerParameterHints"

    def merged(self, overrides: dict[str, Any] | None) -> ErllsConfig:
        """Return a copy with ``overrides`` applied. Unknown keys are ignored."""
        if not overrides:
            return self

        known = {f.name: f for f in fields(self)}
        changes: dict[str, Any] = {}
        for key, value in overrides.items():
            if key not in known:
                continue
            changes[key] = _coerce(key, value, getattr(self, key))

        config = replace(self, **changes)
        config.validate()
        return config

    def validate(self) -> None:
        if self.rpc_timeout <= 0:
            raise ConfigError("rpc_timeout must be positive")
        if self.doc_fetch_timeout <= 0:
            raise ConfigError("doc_fetch_timeout must be positive")
        if self.history_count < 0:
            raise ConfigError("history_count must not be negative")
        if self.history_window < 0:
            raise ConfigError("history_window must not be negative")
        if not self.bridge_command and not self.node_address:
            raise ConfigError("either node_address or bridge_command is required")
        if self.node_address:
            _, separator, port = self.node_address.rpartition(":")
            if not separator or not port.isdecimal() or not 1 <= int(port) <= 65535:
                raise ConfigError(
                    f"node_address must look like host:port, got {self.node_address!r}"
                )
        try:
            re.compile(f"[{self.symbol_chars}]")
        except re.error as e:
            raise ConfigError(f"symbol_chars is not a valid character set: {e}")

    @property
    def doc_index_path(self) -> Path | None:
        return Path(self.doc_index).expanduser() if self.doc_index else None


def _coerce(key: str, value: Any, default: Any) -> Any:
    """
    Coerce a raw YAML/JSON value to the type of the field default.

    A null value (``rpc_timeout:`` with nothing after it) keeps the default.
    """
    if value is None:
        return default

    if isinstance(default, bool):
        if isinstance(value, bool):
            return value
        if isinstance(value, str) and value.lower() in ("true", "yes", "on", "1"):
            return True
        if isinstance(value, str) and value.lower() in ("false", "no", "off", "0"):
            return False
        raise ConfigError(f"{key} must be a boolean, got {value!r}")

    if isinstance(default, int):
        try:
            return int(value)
        except (TypeError, ValueError):
            raise ConfigError(f"{key} must be an integer, got {value!r}")

    if isinstance(default, float):
        try:
            return float(value)
        except (TypeError, ValueError):
            raise ConfigError(f"{key} must be a number, got {value!r}")

    if isinstance(default, list):
        if isinstance(value, str):
            return value.split()
        if isinstance(value, (list, tuple)):
            return [str(v) for v in value]
        raise ConfigError(f"{key} must be a list, got {value!r}")

    return str(value)


def load_config_file(project_root: Path) -> dict[str, Any]:
    """Read .erlls.yml from the project root. Missing file means no overrides."""
    config_file = project_root / CONFIG_FILE_NAME
    if not config_file.is_file():
        return {}

    try:
        with open(config_file, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Cannot read {config_file}: {e}")

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"{config_file} must contain a mapping")

    return data


def load_config(
    project_root: Path | None = None,
    initialization_options: dict[str, Any] | None = None,
) -> ErllsConfig:
    """
    Build the effective configuration.

    Raises:
        ConfigError: If the file is unreadable or a value is invalid.
    """
    config = ErllsConfig()
    if project_root is not None:
        config = config.merged(load_config_file(project_root))
    return config.merged(initialization_options)
