"""
Local structured documentation.

Two sources, tried in order:
1. A YAML doc index on disk (``doc_index`` setting):

       lists:
         map: |
           map(Fun, List1) -> List2
           Takes a function from As to Bs, and a list of As ...

2. The node's own ``describe`` call, backed by the docs it has loaded.
"""

from __future__ import annotations

from pathlib import Path
from typing import Callable

import yaml

from erlls.errors import ConfigError, RpcError
from erlls.node.client import NodeClient

Log = Callable[[str], None]


class DocIndex:
    """module -> function -> text mapping loaded from a YAML file."""

    def __init__(self, entries: dict[str, dict[str, str]] | None = None):
        self._entries = entries or {}

    @classmethod
    def load(cls, path: Path) -> DocIndex:
        """
        Raises:
            ConfigError: If the file cannot be read or is not a mapping.
        """
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"Cannot read doc index {path}: {e}")

        if data is None:
            return cls()
        if not isinstance(data, dict):
            raise ConfigError(f"Doc index {path} must be a mapping of modules")

        entries: dict[str, dict[str, str]] = {}
        for module, functions in data.items():
            if not isinstance(functions, dict):
                continue
            entries[str(module)] = {
                str(name): str(text).strip()
                for name, text in functions.items()
                if text is not None
            }
        return cls(entries)

    def get(self, module: str, function: str) -> str:
        return self._entries.get(module, {}).get(function, "")

    def __len__(self) -> int:
        return sum(len(functions) for functions in self._entries.values())


class LocalDocs:
    """Exact ``module:function`` lookup in the doc index, then on the node."""

    def __init__(
        self,
        index: DocIndex | None = None,
        client: NodeClient | None = None,
        log: Log | None = None,
    ):
        self.index = index or DocIndex()
        self.client = client
        self._log = log or (lambda message: None)

    async def lookup(self, module: str, function: str) -> str:
        text = self.index.get(module, function)
        if text:
            return text

        if self.client is None:
            return ""

        try:
            text = await self.client.describe(module, function)
        except RpcError as e:
            self._log(f"describe {module}:{function} failed: {e}")
            return ""

        if not text.strip():
            self._log(f"Node has no documentation for {module}:{function}")
            return ""
        return text.strip()
