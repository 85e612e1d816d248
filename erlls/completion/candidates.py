"""
Candidate aggregation.

Merges three sources for a prefix, in this order:
1. LocalHistory - tokens used earlier in the enclosing clause
2. LocalDefinition - functions defined in the buffer
3. RemoteSymbol - modules or module:functions known to the node

Duplicates across sources are kept. The combined list is already in its
final order and must not be re-sorted by the editor.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable

from erlls.completion.scanner import (
    QUALIFIER_SEPARATOR,
    BufferContext,
    scan_definitions,
    scan_history,
    split_qualified,
)
from erlls.config import ErllsConfig
from erlls.errors import RpcError
from erlls.node.client import NodeClient


class Provenance(str, Enum):
    """Source that produced a candidate."""

    REMOTE_SYMBOL = "RemoteSymbol"
    LOCAL_HISTORY = "LocalHistory"
    LOCAL_DEFINITION = "LocalDefinition"


@dataclass(frozen=True)
class CandidateEntry:
    text: str
    provenance: Provenance

    @property
    def insert_suffix(self) -> str:
        """
        Punctuation appended when the candidate is inserted.

        A remote module gets the qualifier separator, a function gets an
        opening parenthesis; both re-trigger completion after insertion.
        """
        if self.provenance is Provenance.LOCAL_HISTORY:
            return ""
        if self.provenance is Provenance.LOCAL_DEFINITION:
            return "("
        if QUALIFIER_SEPARATOR in self.text:
            return "("
        return QUALIFIER_SEPARATOR

    @property
    def insert_text(self) -> str:
        return self.text + self.insert_suffix


@dataclass
class AggregatedCandidateSet:
    """Ordered candidates of one completion session, with their provenance."""

    prefix: str
    entries: list[CandidateEntry] = field(default_factory=list)
    _provenance: dict[str, Provenance] = field(default_factory=dict, repr=False)

    def add(self, text: str, provenance: Provenance) -> None:
        self.entries.append(CandidateEntry(text, provenance))
        # First source wins, the map is append-only.
        self._provenance.setdefault(text, provenance)

    def provenance(self, text: str) -> Provenance | None:
        return self._provenance.get(text)

    @property
    def texts(self) -> list[str]:
        return [entry.text for entry in self.entries]

    def __iter__(self) -> Iterator[CandidateEntry]:
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)


Log = Callable[[str], None]


class CandidateAggregator:
    """Gathers completion candidates from the node and the buffer."""

    def __init__(
        self,
        client: NodeClient | None,
        config: ErllsConfig,
        log: Log | None = None,
    ) -> None:
        self.client = client
        self.config = config
        self._log = log or (lambda message: None)

    async def get_candidates(
        self, prefix: str, buffer: BufferContext
    ) -> AggregatedCandidateSet:
        candidates = AggregatedCandidateSet(prefix)
        if not prefix:
            return candidates

        history = scan_history(
            buffer,
            prefix,
            self.config.symbol_chars,
            limit=self.config.history_count,
            window=self.config.history_window,
        )
        definitions = scan_definitions(buffer.text, prefix)
        remote = await self.remote_candidates(prefix)

        for text in history:
            candidates.add(text, Provenance.LOCAL_HISTORY)
        for text in definitions:
            candidates.add(text, Provenance.LOCAL_DEFINITION)
        for text in remote:
            candidates.add(text, Provenance.REMOTE_SYMBOL)

        return candidates

    async def remote_candidates(self, prefix: str) -> list[str]:
        """
        Ask the node for modules, or for functions when ``prefix`` is qualified.

        Returns an empty list when the node is unavailable.
        """
        if self.client is None:
            return []

        module, function = split_qualified(prefix)
        try:
            if module is not None:
                names = await self.client.functions(module, function)
                return [f"{module}{QUALIFIER_SEPARATOR}{name}" for name in names]
            return await self.client.modules(prefix)
        except RpcError as e:
            self._log(f"Remote completion for {prefix!r} failed: {e}")
            return []
