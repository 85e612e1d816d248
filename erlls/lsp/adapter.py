"""
Editor-facing completion protocol.

The host drives completion through a closed set of commands:
- prefix: symbol being typed, or None to stop
- candidates: merged candidate list for a prefix
- meta: one-line signature of a qualified candidate
- doc-buffer: full documentation text of a candidate
- post-completion: continue the chain after a candidate was inserted

Inserting ``module:`` immediately asks for the module's functions, and
inserting ``module:function(`` immediately looks up its argument lists.
"""

from __future__ import annotations

import inspect
from dataclasses import dataclass, field
from enum import Enum
from pathlib import PurePosixPath
from typing import Any, Callable
from urllib.parse import urlparse

from erlls.completion.candidates import AggregatedCandidateSet, CandidateAggregator
from erlls.completion.scanner import (
    QUALIFIER_SEPARATOR,
    BufferContext,
    PrefixContext,
)
from erlls.config import ErllsConfig
from erlls.docs.resolver import (
    DocumentationResolver,
    format_arglist,
    format_signatures,
    parse_symbol,
)
from erlls.errors import ProtocolError

Log = Callable[[str], None]


@dataclass(frozen=True)
class CompletionSession:
    uri: str
    generation: int


class CompletionSessions:
    """
    Tracks the live completion session of each document.

    Starting a new session, or editing the document, makes the previous
    session stale; results computed for a stale session are dropped.
    """

    def __init__(self) -> None:
        self._generations: dict[str, int] = {}

    def begin(self, uri: str) -> CompletionSession:
        generation = self._generations.get(uri, 0) + 1
        self._generations[uri] = generation
        return CompletionSession(uri, generation)

    def invalidate(self, uri: str) -> None:
        self._generations[uri] = self._generations.get(uri, 0) + 1

    def forget(self, uri: str) -> None:
        self._generations.pop(uri, None)

    def is_current(self, session: CompletionSession) -> bool:
        return self._generations.get(session.uri) == session.generation


class FollowUpKind(str, Enum):
    FUNCTIONS = "functions"
    ARGLISTS = "arglists"


@dataclass
class FollowUp:
    """Result of the completion chain after an insertion."""

    kind: FollowUpKind
    trigger: str
    items: list[str] = field(default_factory=list)


class CompletionAdapter:
    """Implements the host completion commands on top of the pipeline."""

    # Static capabilities declared to the host.
    SORTED = True
    DUPLICATES = False
    IGNORE_CASE = False
    NO_CACHE = True

    def __init__(
        self,
        aggregator: CandidateAggregator,
        resolver: DocumentationResolver,
        config: ErllsConfig,
        sessions: CompletionSessions | None = None,
        log: Log | None = None,
    ):
        self.aggregator = aggregator
        self.resolver = resolver
        self.config = config
        self.sessions = sessions or CompletionSessions()
        self._log = log or (lambda message: None)

        self._commands: dict[str, Callable[..., Any]] = {
            "prefix": self.prefix,
            "candidates": self.candidates,
            "meta": self.meta,
            "doc-buffer": self.doc_buffer,
            "post-completion": self.post_completion,
            "sorted": lambda: self.SORTED,
            "duplicates": lambda: self.DUPLICATES,
            "ignore-case": lambda: self.IGNORE_CASE,
            "no-cache": lambda: self.NO_CACHE,
        }

    # ===== Commands =====

    def prefix(self, buffer: BufferContext) -> str | None:
        """The prefix at the cursor, or None when completion should stop."""
        if not self.is_erlang_buffer(buffer):
            return None

        context = PrefixContext.from_buffer(buffer, self.config.symbol_chars)
        if context.in_comment_or_string or not context.prefix:
            return None
        return context.prefix

    async def candidates(
        self, prefix: str, buffer: BufferContext
    ) -> AggregatedCandidateSet:
        if not prefix:
            return AggregatedCandidateSet(prefix)

        session = self.sessions.begin(buffer.uri)
        result = await self.aggregator.get_candidates(prefix, buffer)
        if not self.sessions.is_current(session):
            self._log(f"Dropping stale completion for {prefix!r}")
            return AggregatedCandidateSet(prefix)
        return result

    async def meta(self, candidate: str) -> str | None:
        """Short signature, e.g. ``lists:map(Fun, List)``, for a qualified candidate."""
        parts = parse_symbol(_strip_insert_suffix(candidate))
        if parts is None:
            return None
        module, function = parts
        arglists = await self.resolver.arglists(module, function)
        if not arglists:
            return None
        return " | ".join(format_signatures(module, function, arglists))

    async def doc_buffer(self, candidate: str) -> str | None:
        symbol = _strip_insert_suffix(candidate)
        if not symbol:
            return None
        return await self.resolver.get_doc(symbol)

    async def arglists(self, symbol: str) -> list[str]:
        """Argument-list candidates to insert after ``symbol(``."""
        parts = parse_symbol(symbol)
        if parts is None:
            return []
        arglists = await self.resolver.arglists(*parts)
        return [f"{format_arglist(arglist)})" for arglist in arglists]

    async def post_completion(
        self, inserted: str, buffer: BufferContext | None = None
    ) -> FollowUp | None:
        """
        Continue the chain after ``inserted`` was put into the buffer.

        ``:`` re-runs candidates for the qualified prefix, ``(`` looks up
        the argument lists, anything else ends the chain.
        """
        if not inserted:
            return None

        if inserted.endswith(QUALIFIER_SEPARATOR):
            prefix = inserted
            if buffer is not None:
                prefix = self.prefix(buffer) or inserted
            candidates = await self.candidates(
                prefix, buffer or BufferContext(uri="", text=inserted, offset=len(inserted))
            )
            return FollowUp(FollowUpKind.FUNCTIONS, prefix, candidates.texts)

        if inserted.endswith("("):
            symbol = inserted[:-1]
            return FollowUp(FollowUpKind.ARGLISTS, symbol, await self.arglists(symbol))

        return None

    async def dispatch(self, command: str, *args: Any) -> Any:
        """
        Run a host command by name.

        Unknown commands and wrong arguments are logged and answered with
        None; nothing raises across the host boundary.
        """
        try:
            handler = self._commands.get(command)
            if handler is None:
                raise ProtocolError(f"unknown command {command!r}")
            try:
                inspect.signature(handler).bind(*args)
            except TypeError as e:
                raise ProtocolError(f"bad arguments for {command!r}: {e}")

            result = handler(*args)
            if inspect.isawaitable(result):
                result = await result
            return result
        except ProtocolError as e:
            self._log(f"Protocol error: {e}")
            return None

    # ===== Helpers =====

    def is_erlang_buffer(self, buffer: BufferContext) -> bool:
        if buffer.language_id:
            return buffer.language_id in self.config.language_ids

        path = PurePosixPath(urlparse(buffer.uri).path)
        return any(path.name.endswith(suffix) for suffix in self.config.file_suffixes)


def _strip_insert_suffix(candidate: str) -> str:
    return candidate.strip().removesuffix("(").removesuffix(QUALIFIER_SEPARATOR)
