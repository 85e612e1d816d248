"""
Erlang LSP capabilities.

Provides completion, hover and signature help for ``module:function``
symbols, backed by the CompletionAdapter.
"""

from __future__ import annotations

import re

from lsprotocol.types import (
    Command,
    CompletionItem,
    CompletionItemKind,
    CompletionList,
    CompletionParams,
    DidChangeTextDocumentParams,
    DidCloseTextDocumentParams,
    Hover,
    HoverParams,
    MarkupContent,
    MarkupKind,
    ParameterInformation,
    Position,
    Range,
    SignatureHelp,
    SignatureHelpParams,
    SignatureInformation,
    TextEdit,
)

from erlls.completion.candidates import CandidateEntry, Provenance
from erlls.completion.scanner import (
    QUALIFIER_SEPARATOR,
    BufferContext,
    enclosing_call,
)
from erlls.config import ErllsConfig
from erlls.docs.resolver import parse_symbol
from erlls.lsp.capabilities.capabilities import (
    CompletionCapability,
    HoverCapability,
    SignatureHelpCapability,
)

POST_COMPLETION_COMMAND = "erlls.postCompletion"

PROVENANCE_KINDS = {
    Provenance.LOCAL_HISTORY: CompletionItemKind.Text,
    Provenance.LOCAL_DEFINITION: CompletionItemKind.Function,
}

PROVENANCE_DETAILS = {
    Provenance.LOCAL_HISTORY: "recently used",
    Provenance.LOCAL_DEFINITION: "defined in this file",
    Provenance.REMOTE_SYMBOL: "node",
}

# A module:function symbol under the cursor for hover.
HOVER_START_WORD = re.compile(r"[A-Za-z0-9_@:]*$")
HOVER_END_WORD = re.compile(r"^[A-Za-z0-9_@]*")


def buffer_context(server, uri: str, position: Position) -> BufferContext:
    """Snapshot the document at ``position`` for the adapter."""
    doc = server.workspace.get_text_document(uri)
    return BufferContext(
        uri=uri,
        text=doc.source,
        offset=doc.offset_at_position(position),
        language_id=doc.language_id,
    )


def retrigger_command(config: ErllsConfig, entry: CandidateEntry) -> Command | None:
    """
    Client command that continues the chain once ``entry`` is inserted.

    ``module:`` reopens completion, which now asks the node for the module's
    functions. ``function(`` opens signature help with the argument lists.
    """
    if entry.insert_suffix == QUALIFIER_SEPARATOR:
        name = config.completion_retrigger_command
        title = "Complete functions"
    elif entry.insert_suffix == "(":
        name = config.signature_retrigger_command
        title = "Show argument lists"
    else:
        return None

    if not name:
        return None
    return Command(title=title, command=name)


def _item_kind(entry: CandidateEntry) -> CompletionItemKind:
    if entry.provenance is Provenance.REMOTE_SYMBOL:
        if entry.insert_suffix == "(":
            return CompletionItemKind.Function
        return CompletionItemKind.Module
    return PROVENANCE_KINDS[entry.provenance]


class ErlangCompletionCapability(CompletionCapability):
    """Completes modules, module:functions and buffer symbols."""

    @property
    def name(self) -> str:
        return "erlang_completion"

    @property
    def description(self) -> str:
        return "Complete Erlang modules and functions from the node and the buffer"

    def register(self) -> None:
        """Drop in-flight completion sessions when their document changes."""
        text_sync = self.server.text_sync_manager
        if text_sync is None:
            return
        text_sync.add_on_change_hook(self._on_document_changed)
        text_sync.add_on_close_hook(self._on_document_closed)

    async def _on_document_changed(self, params: DidChangeTextDocumentParams) -> None:
        if self.server.adapter:
            self.server.adapter.sessions.invalidate(params.text_document.uri)

    async def _on_document_closed(self, params: DidCloseTextDocumentParams) -> None:
        if self.server.adapter:
            self.server.adapter.sessions.forget(params.text_document.uri)

    async def can_handle(self, params: CompletionParams) -> bool:
        if not self.server.adapter:
            return False
        buffer = buffer_context(self.server, params.text_document.uri, params.position)
        return self.server.adapter.prefix(buffer) is not None

    async def complete(self, params: CompletionParams) -> CompletionList:
        adapter = self.server.adapter
        uri = params.text_document.uri
        buffer = buffer_context(self.server, uri, params.position)

        prefix = adapter.prefix(buffer)
        if not prefix:
            return CompletionList(is_incomplete=False, items=[])

        candidates = await adapter.candidates(prefix, buffer)

        # Replace the whole prefix, the client's word boundaries stop at ':'.
        edit_range = Range(
            start=Position(
                line=params.position.line,
                character=max(0, params.position.character - len(prefix)),
            ),
            end=params.position,
        )

        items = []
        for index, entry in enumerate(candidates):
            items.append(
                CompletionItem(
                    label=entry.text,
                    kind=_item_kind(entry),
                    detail=PROVENANCE_DETAILS[entry.provenance],
                    # The list is already ordered, keep it that way.
                    sort_text=f"{index:05d}",
                    filter_text=entry.text,
                    text_edit=TextEdit(range=edit_range, new_text=entry.insert_text),
                    command=retrigger_command(adapter.config, entry),
                    data={"symbol": entry.text, "provenance": entry.provenance.value},
                )
            )

        return CompletionList(is_incomplete=adapter.NO_CACHE, items=items)

    async def resolve(self, item: CompletionItem) -> CompletionItem:
        """Add the signature and documentation of a qualified candidate."""
        if not self.server.adapter or not isinstance(item.data, dict):
            return item

        symbol = item.data.get("symbol", "")
        if parse_symbol(symbol) is None:
            return item

        meta = await self.server.adapter.meta(symbol)
        if meta:
            item.detail = meta

        doc = await self.server.adapter.doc_buffer(symbol)
        if doc:
            item.documentation = MarkupContent(kind=MarkupKind.PlainText, value=doc)

        return item


class ErlangHoverCapability(HoverCapability):
    """Shows documentation for the module:function under the cursor."""

    @property
    def name(self) -> str:
        return "erlang_hover"

    @property
    def description(self) -> str:
        return "Show documentation of Erlang functions on hover"

    async def can_handle(self, params: HoverParams) -> bool:
        if not self.server.adapter:
            return False
        buffer = buffer_context(self.server, params.text_document.uri, params.position)
        return self.server.adapter.is_erlang_buffer(buffer)

    async def hover(self, params: HoverParams) -> Hover | None:
        doc = self.server.workspace.get_text_document(params.text_document.uri)
        word = doc.word_at_position(
            params.position,
            re_start_word=HOVER_START_WORD,
            re_end_word=HOVER_END_WORD,
        )
        if parse_symbol(word) is None:
            return None

        text = await self.server.adapter.doc_buffer(word)
        if not text:
            return None

        return Hover(
            contents=MarkupContent(
                kind=MarkupKind.Markdown,
                value=f"**{word}**\n\n```\n{text}\n```",
            )
        )


class ErlangSignatureHelpCapability(SignatureHelpCapability):
    """Shows the argument lists of the remote call around the cursor."""

    @property
    def name(self) -> str:
        return "erlang_signature_help"

    @property
    def description(self) -> str:
        return "Show argument lists of module:function calls"

    async def can_handle(self, params: SignatureHelpParams) -> bool:
        if not self.server.adapter:
            return False
        buffer = buffer_context(self.server, params.text_document.uri, params.position)
        return self.server.adapter.is_erlang_buffer(buffer)

    async def signature_help(
        self, params: SignatureHelpParams
    ) -> SignatureHelp | None:
        adapter = self.server.adapter
        buffer = buffer_context(self.server, params.text_document.uri, params.position)

        call = enclosing_call(buffer.text, buffer.offset, adapter.config.symbol_chars)
        if call is None:
            return None
        symbol, active_parameter = call

        arglists = await adapter.arglists(symbol)
        if not arglists:
            return None

        signatures = []
        for arglist in arglists:
            args = arglist.removesuffix(")")
            parameters = [
                ParameterInformation(label=arg.strip())
                for arg in args.split(",")
                if arg.strip()
            ]
            signatures.append(
                SignatureInformation(label=f"{symbol}({args})", parameters=parameters)
            )

        # Prefer the first arity that has enough parameters.
        active_signature = 0
        for index, signature in enumerate(signatures):
            if len(signature.parameters or []) > active_parameter:
                active_signature = index
                break

        return SignatureHelp(
            signatures=signatures,
            active_signature=active_signature,
            active_parameter=active_parameter,
        )
