"""
Tests for erlls/lsp/capabilities/erlang_capabilities.py

The server is a Mock holding a real pygls TextDocument and a real
CompletionAdapter whose aggregator and resolver are mocked.
"""
from unittest.mock import AsyncMock, Mock

import pytest
from lsprotocol.types import (
    CompletionItem,
    CompletionItemKind,
    CompletionParams,
    DidChangeTextDocumentParams,
    DidCloseTextDocumentParams,
    HoverParams,
    MarkupKind,
    MessageType,
    Position,
    SignatureHelpParams,
    TextDocumentIdentifier,
    VersionedTextDocumentIdentifier,
)
from pygls.workspace import TextDocument

from erlls.completion.candidates import AggregatedCandidateSet, Provenance
from erlls.config import ErllsConfig
from erlls.lsp.adapter import CompletionAdapter
from erlls.lsp.capabilities.capabilities import CapabilityManager
from erlls.lsp.capabilities.erlang_capabilities import (
    POST_COMPLETION_COMMAND,
    ErlangCompletionCapability,
    ErlangHoverCapability,
    ErlangSignatureHelpCapability,
)
from erlls.lsp.text_sync_manager import TextSyncManager

URI = "file:///src/demo.erl"


@pytest.fixture
def aggregator():
    aggregator = Mock()
    aggregator.get_candidates = AsyncMock(return_value=AggregatedCandidateSet(""))
    return aggregator


@pytest.fixture
def resolver():
    resolver = Mock()
    resolver.arglists = AsyncMock(return_value=[])
    resolver.get_doc = AsyncMock(return_value="")
    return resolver


@pytest.fixture
def server(aggregator, resolver):
    server = Mock()
    server.adapter = CompletionAdapter(aggregator, resolver, ErllsConfig())
    server.text_sync_manager = None
    server.emit_log = Mock()
    return server


def open_document(server, source: str, language_id: str = "erlang") -> None:
    document = TextDocument(URI, source=source, language_id=language_id)
    server.workspace.get_text_document.return_value = document


def completion_params(line: int, character: int) -> CompletionParams:
    return CompletionParams(
        text_document=TextDocumentIdentifier(uri=URI),
        position=Position(line=line, character=character),
    )


# =============================================================================
# Completion
# =============================================================================


@pytest.mark.asyncio
async def test_can_handle_erlang_prefix(server):
    capability = ErlangCompletionCapability(server)
    open_document(server, "f() ->\n    lists:ma")

    assert await capability.can_handle(completion_params(1, 12)) is True


@pytest.mark.asyncio
async def test_cannot_handle_in_comment(server):
    capability = ErlangCompletionCapability(server)
    open_document(server, "% lists:ma")

    assert await capability.can_handle(completion_params(0, 10)) is False


@pytest.mark.asyncio
async def test_cannot_handle_other_language(server):
    capability = ErlangCompletionCapability(server)
    open_document(server, "lists:ma", language_id="elixir")

    assert await capability.can_handle(completion_params(0, 8)) is False


@pytest.mark.asyncio
async def test_cannot_handle_before_configuration(server):
    server.adapter = None
    capability = ErlangCompletionCapability(server)

    assert await capability.can_handle(completion_params(0, 0)) is False


@pytest.mark.asyncio
async def test_complete_items(server, aggregator):
    candidates = AggregatedCandidateSet("lists:ma")
    candidates.add("lists:max_seen", Provenance.LOCAL_HISTORY)
    candidates.add("lists:map", Provenance.REMOTE_SYMBOL)
    aggregator.get_candidates.return_value = candidates
    open_document(server, "f() ->\n    lists:ma")

    result = await ErlangCompletionCapability(server).complete(completion_params(1, 12))

    assert result.is_incomplete is True
    history, remote = result.items

    assert history.label == "lists:max_seen"
    assert history.kind == CompletionItemKind.Text
    assert history.command is None
    assert history.text_edit.new_text == "lists:max_seen"

    assert remote.label == "lists:map"
    assert remote.kind == CompletionItemKind.Function
    assert remote.detail == "node"
    assert remote.data == {"symbol": "lists:map", "provenance": "RemoteSymbol"}


@pytest.mark.asyncio
async def test_complete_keeps_order(server, aggregator):
    candidates = AggregatedCandidateSet("li")
    for text in ("zlib", "lists", "array"):
        candidates.add(text, Provenance.REMOTE_SYMBOL)
    aggregator.get_candidates.return_value = candidates
    open_document(server, "f() -> li")

    result = await ErlangCompletionCapability(server).complete(completion_params(0, 9))

    ordered = sorted(result.items, key=lambda item: item.sort_text)
    assert [item.label for item in ordered] == ["zlib", "lists", "array"]


@pytest.mark.asyncio
async def test_complete_replaces_whole_prefix(server, aggregator):
    candidates = AggregatedCandidateSet("lists:ma")
    candidates.add("lists:map", Provenance.REMOTE_SYMBOL)
    aggregator.get_candidates.return_value = candidates
    open_document(server, "f() ->\n    lists:ma")

    result = await ErlangCompletionCapability(server).complete(completion_params(1, 12))
    item = result.items[0]

    assert item.text_edit.range.start == Position(line=1, character=4)
    assert item.text_edit.range.end == Position(line=1, character=12)
    assert item.text_edit.new_text == "lists:map("


@pytest.mark.asyncio
async def test_module_insertion_retriggers_completion(server, aggregator):
    candidates = AggregatedCandidateSet("li")
    candidates.add("lists", Provenance.REMOTE_SYMBOL)
    aggregator.get_candidates.return_value = candidates
    open_document(server, "f() -> li")

    result = await ErlangCompletionCapability(server).complete(completion_params(0, 9))
    item = result.items[0]

    assert item.kind == CompletionItemKind.Module
    assert item.text_edit.new_text == "lists:"
    assert item.command.command == "editor.action.triggerSuggest"
    assert item.command.command != POST_COMPLETION_COMMAND


@pytest.mark.asyncio
async def test_function_insertion_opens_signature_help(server, aggregator):
    candidates = AggregatedCandidateSet("lists:ma")
    candidates.add("lists:map", Provenance.REMOTE_SYMBOL)
    candidates.add("lists:max_seen", Provenance.LOCAL_HISTORY)
    aggregator.get_candidates.return_value = candidates
    open_document(server, "f() -> lists:ma")

    result = await ErlangCompletionCapability(server).complete(completion_params(0, 15))
    function, history = result.items

    assert function.command.command == "editor.action.triggerParameterHints"
    assert history.command is None


@pytest.mark.asyncio
async def test_retrigger_commands_are_configurable(server, aggregator, resolver):
    config = ErllsConfig(
        completion_retrigger_command="",
        signature_retrigger_command="my.showSignature",
    )
    server.adapter = CompletionAdapter(aggregator, resolver, config)
    candidates = AggregatedCandidateSet("li")
    candidates.add("lists", Provenance.REMOTE_SYMBOL)
    candidates.add("lists:map", Provenance.REMOTE_SYMBOL)
    aggregator.get_candidates.return_value = candidates
    open_document(server, "f() -> li")

    result = await ErlangCompletionCapability(server).complete(completion_params(0, 9))
    module, function = result.items

    assert module.command is None
    assert function.command.command == "my.showSignature"


@pytest.mark.asyncio
async def test_resolve_adds_signature_and_docs(server, resolver):
    resolver.arglists.return_value = [["Fun", "List"]]
    resolver.get_doc.return_value = "Maps a function over a list."
    item = CompletionItem(
        label="lists:map",
        data={"symbol": "lists:map", "provenance": "RemoteSymbol"},
    )

    resolved = await ErlangCompletionCapability(server).resolve(item)

    assert resolved.detail == "lists:map(Fun, List)"
    assert resolved.documentation.kind == MarkupKind.PlainText
    assert resolved.documentation.value == "Maps a function over a list."


@pytest.mark.asyncio
async def test_resolve_skips_unqualified(server, resolver):
    item = CompletionItem(label="lists", data={"symbol": "lists"})

    resolved = await ErlangCompletionCapability(server).resolve(item)

    assert resolved.detail is None
    resolver.get_doc.assert_not_called()


@pytest.mark.asyncio
async def test_document_change_invalidates_session(server):
    server.text_sync_manager = TextSyncManager(server)
    ErlangCompletionCapability(server).register()
    session = server.adapter.sessions.begin(URI)

    await server.text_sync_manager._broadcast_on_change(
        DidChangeTextDocumentParams(
            text_document=VersionedTextDocumentIdentifier(uri=URI, version=2),
            content_changes=[],
        )
    )

    assert not server.adapter.sessions.is_current(session)


@pytest.mark.asyncio
async def test_document_close_forgets_session(server):
    server.text_sync_manager = TextSyncManager(server)
    ErlangCompletionCapability(server).register()
    session = server.adapter.sessions.begin(URI)

    await server.text_sync_manager._broadcast_on_close(
        DidCloseTextDocumentParams(text_document=TextDocumentIdentifier(uri=URI))
    )

    assert not server.adapter.sessions.is_current(session)


# =============================================================================
# Hover
# =============================================================================


def hover_params(line: int, character: int) -> HoverParams:
    return HoverParams(
        text_document=TextDocumentIdentifier(uri=URI),
        position=Position(line=line, character=character),
    )


@pytest.mark.asyncio
async def test_hover_qualified_symbol(server, resolver):
    resolver.get_doc.return_value = "Maps a function over a list."
    open_document(server, "f(L) -> lists:map(F, L).")

    hover = await ErlangHoverCapability(server).hover(hover_params(0, 15))

    resolver.get_doc.assert_awaited_once_with("lists:map")
    assert hover.contents.kind == MarkupKind.Markdown
    assert hover.contents.value.startswith("**lists:map**")
    assert "Maps a function over a list." in hover.contents.value


@pytest.mark.asyncio
async def test_hover_unqualified_word(server, resolver):
    open_document(server, "f(L) -> lists:map(F, L).")

    assert await ErlangHoverCapability(server).hover(hover_params(0, 0)) is None
    resolver.get_doc.assert_not_called()


# =============================================================================
# Signature help
# =============================================================================


def signature_params(source: str) -> SignatureHelpParams:
    return SignatureHelpParams(
        text_document=TextDocumentIdentifier(uri=URI),
        position=Position(line=0, character=len(source)),
    )


@pytest.mark.asyncio
async def test_signature_help(server, resolver):
    resolver.arglists.return_value = [["From", "To"], ["From", "To", "Incr"]]
    source = "f() -> lists:seq(1, "
    open_document(server, source)

    result = await ErlangSignatureHelpCapability(server).signature_help(
        signature_params(source)
    )

    assert [s.label for s in result.signatures] == [
        "lists:seq(From, To)",
        "lists:seq(From, To, Incr)",
    ]
    assert [p.label for p in result.signatures[1].parameters] == ["From", "To", "Incr"]
    assert result.active_parameter == 1
    assert result.active_signature == 0


@pytest.mark.asyncio
async def test_signature_help_picks_matching_arity(server, resolver):
    resolver.arglists.return_value = [["From", "To"], ["From", "To", "Incr"]]
    source = "f() -> lists:seq(1, 10, "
    open_document(server, source)

    result = await ErlangSignatureHelpCapability(server).signature_help(
        signature_params(source)
    )

    assert result.active_parameter == 2
    assert result.active_signature == 1


@pytest.mark.asyncio
async def test_signature_help_outside_call(server, resolver):
    source = "f() -> ok"
    open_document(server, source)

    assert (
        await ErlangSignatureHelpCapability(server).signature_help(
            signature_params(source)
        )
        is None
    )


# =============================================================================
# CapabilityManager
# =============================================================================


@pytest.mark.asyncio
async def test_manager_isolates_capability_errors(server):
    failing = ErlangCompletionCapability(server)
    failing.can_handle = AsyncMock(side_effect=RuntimeError("boom"))
    manager = CapabilityManager(server, capabilities={"erlang_completion": failing})

    result = await manager.handle_completion(completion_params(0, 0))

    assert result.items == []
    message, level = server.emit_log.call_args[0]
    assert "RuntimeError: boom" in message
    assert level == MessageType.Error


def test_manager_default_capabilities(server):
    manager = CapabilityManager(server)

    assert set(manager.capabilities) == {
        "erlang_completion",
        "erlang_hover",
        "erlang_signature_help",
    }
    assert isinstance(manager.get_capability("erlang_hover"), ErlangHoverCapability)
