"""
Documentation resolution through a fixed fallback chain.

Stages, first non-empty result wins:
1. LOCAL - doc index / node describe
2. NETWORK - man page scrape (only when network_docs is enabled)
3. METADATA - signature composed from the node's arglists
4. NOT_FOUND - fixed message

The order is fixed; configuration only decides whether NETWORK runs.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable

from erlls.completion.scanner import QUALIFIER_SEPARATOR
from erlls.docs.local_docs import LocalDocs
from erlls.docs.scraper import ManPageScraper
from erlls.errors import RpcError, ScrapeError
from erlls.node.client import NodeClient

SYMBOL_PATTERN = re.compile(
    r"^\s*(?P<module>[A-Za-z0-9_@.]+):(?P<function>[A-Za-z0-9_@]+)(?:/\d+|\(.*)?\s*$"
)

Log = Callable[[str], None]


class DocStage(str, Enum):
    LOCAL = "local"
    NETWORK = "network"
    METADATA = "metadata"
    NOT_FOUND = "not_found"


@dataclass(frozen=True)
class DocFallbackResult:
    text: str
    stage: DocStage


def parse_symbol(symbol: str) -> tuple[str, str] | None:
    """
    Split ``module:function`` (optionally ``/arity`` or ``(...``) into parts.

    Returns None for unqualified or malformed symbols.
    """
    match = SYMBOL_PATTERN.match(symbol)
    if not match:
        return None
    return match.group("module"), match.group("function")


def format_arglist(arglist: Any) -> str:
    """``["Fun", "List"]`` -> ``Fun, List``; strings are taken as formatted."""
    if isinstance(arglist, str):
        return arglist.strip().removeprefix("(").removesuffix(")")
    if isinstance(arglist, (list, tuple)):
        return ", ".join(str(arg) for arg in arglist)
    return str(arglist)


def format_signatures(module: str, function: str, arglists: list[Any]) -> list[str]:
    """One ``module:function(args)`` line per arity."""
    return [
        f"{module}{QUALIFIER_SEPARATOR}{function}({format_arglist(arglist)})"
        for arglist in arglists
    ]


def not_found_message(symbol: str) -> str:
    return f"No documentation found for {symbol}"


class DocumentationResolver:
    """Resolves user-facing documentation for ``module:function`` symbols."""

    def __init__(
        self,
        local_docs: LocalDocs,
        client: NodeClient | None = None,
        scraper: ManPageScraper | None = None,
        network_docs: bool = False,
        log: Log | None = None,
    ):
        self.local_docs = local_docs
        self.client = client
        self.scraper = scraper
        self.network_docs = network_docs
        self._log = log or (lambda message: None)

    async def get_doc(self, symbol: str) -> str:
        """Documentation text for ``symbol``. Never raises, never empty."""
        result = await self.resolve(symbol)
        return result.text

    async def resolve(self, symbol: str) -> DocFallbackResult:
        parts = parse_symbol(symbol)
        if parts is None:
            return DocFallbackResult(not_found_message(symbol), DocStage.NOT_FOUND)
        module, function = parts

        text = await self.local_docs.lookup(module, function)
        if text:
            return DocFallbackResult(text, DocStage.LOCAL)

        if self.network_docs and self.scraper is not None:
            text = await self._scrape(module, function)
            if text:
                return DocFallbackResult(text, DocStage.NETWORK)

        text = await self.signature(module, function)
        if text:
            return DocFallbackResult(text, DocStage.METADATA)

        return DocFallbackResult(not_found_message(symbol), DocStage.NOT_FOUND)

    async def arglists(self, module: str, function: str) -> list[Any]:
        """The node's arglists for ``module:function``; empty if unavailable."""
        if self.client is None:
            return []
        try:
            return await self.client.arglists(module, function)
        except RpcError as e:
            self._log(f"arglists {module}:{function} failed: {e}")
            return []

    async def signature(self, module: str, function: str) -> str:
        """Signature lines, one per arity, or "" if unavailable."""
        arglists = await self.arglists(module, function)
        return "\n".join(format_signatures(module, function, arglists))

    async def _scrape(self, module: str, function: str) -> str:
        try:
            return await self.scraper.get_doc(module, function)  # pyright: ignore
        except ScrapeError as e:
            self._log(f"Man page lookup for {module}:{function} failed: {e}")
            return ""
