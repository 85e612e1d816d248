from __future__ import annotations

from pathlib import Path
from typing import Any, Sequence

from lsprotocol.types import (
    COMPLETION_ITEM_RESOLVE,
    INITIALIZE,
    SHUTDOWN,
    TEXT_DOCUMENT_COMPLETION,
    TEXT_DOCUMENT_HOVER,
    TEXT_DOCUMENT_SIGNATURE_HELP,
    CompletionItem,
    CompletionList,
    CompletionOptions,
    CompletionParams,
    DidSaveTextDocumentParams,
    HoverParams,
    InitializeParams,
    MessageType,
    Position,
    SignatureHelpOptions,
    SignatureHelpParams,
)
from pygls.uris import to_fs_path

from erlls import __version__
from erlls.completion.candidates import CandidateAggregator
from erlls.config import CONFIG_FILE_NAME, ErllsConfig, load_config
from erlls.docs.local_docs import DocIndex, LocalDocs
from erlls.docs.resolver import DocumentationResolver
from erlls.docs.scraper import ManPageScraper
from erlls.errors import ConfigError
from erlls.lsp.adapter import CompletionAdapter
from erlls.lsp.capabilities.capabilities import CapabilityManager
from erlls.lsp.capabilities.erlang_capabilities import (
    POST_COMPLETION_COMMAND,
    buffer_context,
)
from erlls.lsp.erlang_language_server import ErlangLanguageServer
from erlls.lsp.text_sync_manager import TextSyncManager
from erlls.node.client import NodeClient
from erlls.node.transport import RemoteNode


async def configure(ls: ErlangLanguageServer, config: ErllsConfig) -> None:
    """
    Build (or rebuild) the completion pipeline for ``config``.

    The previous node connection is closed; completion sessions survive.
    """
    if ls.node_client is not None:
        await ls.node_client.close()

    node = RemoteNode(
        name=config.node_name,
        address=config.node_address,
        bridge_command=tuple(config.bridge_command),
    )
    client = NodeClient(
        node,
        timeout=config.rpc_timeout,
        notify=ls.notify_operator,
        log=ls.emit_log,
    )

    index = DocIndex()
    if config.doc_index_path is not None:
        try:
            index = DocIndex.load(config.doc_index_path)
            ls.emit_log(f"Loaded {len(index)} documented functions from {config.doc_index}")
        except ConfigError as e:
            ls.emit_log(str(e), MessageType.Error)

    resolver = DocumentationResolver(
        LocalDocs(index, client, log=ls.emit_log),
        client=client,
        scraper=ManPageScraper(config.doc_base_url, config.doc_fetch_timeout),
        network_docs=config.network_docs,
        log=ls.emit_log,
    )
    sessions = ls.adapter.sessions if ls.adapter else None

    ls.settings = config
    ls.node_client = client
    ls.adapter = CompletionAdapter(
        CandidateAggregator(client, config, log=ls.emit_log),
        resolver,
        config,
        sessions=sessions,
        log=ls.emit_log,
    )


def read_config(ls: ErlangLanguageServer) -> ErllsConfig:
    """Effective configuration; defaults if the user's settings are invalid."""
    try:
        return load_config(ls.project_root, ls.initialization_options)
    except ConfigError as e:
        ls.emit_log(f"Invalid configuration, using defaults: {e}", MessageType.Error)
        return ErllsConfig()


def create_server() -> ErlangLanguageServer:
    """
    Creates and returns a configured Language Server instance.

    The LanguageServer class from pygls handles:
    - JSON-RPC communication with clients (editors)
    - Request/response lifecycle
    - Notifications and event handling
    """
    server = ErlangLanguageServer("erlls", __version__)

    # Text sync must exist before capabilities register their hooks.
    server.text_sync_manager = TextSyncManager(server)
    server.text_sync_manager.register_handlers()

    server.capability_manager = CapabilityManager(server)
    server.capability_manager.register_all()

    async def reload_config_on_save(params: DidSaveTextDocumentParams) -> None:
        if not params.text_document.uri.endswith(CONFIG_FILE_NAME):
            return
        await configure(server, read_config(server))
        server.emit_log(f"Reloaded {CONFIG_FILE_NAME}", MessageType.Info)

    server.text_sync_manager.add_on_save_hook(reload_config_on_save)

    @server.feature(INITIALIZE)
    async def initialize(ls: ErlangLanguageServer, params: InitializeParams):
        """Read configuration and connect the pipeline to the node."""
        if params.root_uri:
            root = to_fs_path(params.root_uri)
            ls.project_root = Path(root) if root else None
        ls.initialization_options = (
            params.initialization_options
            if isinstance(params.initialization_options, dict)
            else None
        )

        config = read_config(ls)
        await configure(ls, config)
        ls.emit_log(
            f"ErlLS {__version__} using node {config.node_name} "
            f"(network docs {'on' if config.network_docs else 'off'})",
            MessageType.Info,
        )

    @server.feature(SHUTDOWN)
    async def shutdown(ls: ErlangLanguageServer, params):
        if ls.node_client is not None:
            await ls.node_client.close()

    # Register aggregated handlers
    @server.feature(
        TEXT_DOCUMENT_COMPLETION,
        CompletionOptions(trigger_characters=[":"], resolve_provider=True),
    )
    async def completion(ls: ErlangLanguageServer, params: CompletionParams):
        if ls.capability_manager:
            return await ls.capability_manager.handle_completion(params)
        return CompletionList(is_incomplete=False, items=[])

    @server.feature(COMPLETION_ITEM_RESOLVE)
    async def completion_resolve(ls: ErlangLanguageServer, item: CompletionItem):
        if ls.capability_manager:
            return await ls.capability_manager.handle_completion_resolve(item)
        return item

    @server.feature(TEXT_DOCUMENT_HOVER)
    async def hover(ls: ErlangLanguageServer, params: HoverParams):
        if ls.capability_manager:
            return await ls.capability_manager.handle_hover(params)
        return None

    @server.feature(
        TEXT_DOCUMENT_SIGNATURE_HELP,
        SignatureHelpOptions(trigger_characters=["(", ","]),
    )
    async def signature_help(ls: ErlangLanguageServer, params: SignatureHelpParams):
        if ls.capability_manager:
            return await ls.capability_manager.handle_signature_help(params)
        return None

    @server.command(POST_COMPLETION_COMMAND)
    async def post_completion(ls: ErlangLanguageServer, *args: Any):
        return await run_post_completion(ls, args)

    return server


async def run_post_completion(
    ls: ErlangLanguageServer, args: Sequence[Any]
) -> dict[str, Any] | None:
    """
    Follow-up of an insertion, for hosts that drive the chain themselves.

    Arguments: document uri, inserted text and, optionally, the cursor
    position after it as ``{"line", "character"}``. Answers with the
    follow-up kind (functions or arglists), its trigger and its items.
    Completion items do not call this; they re-trigger the client instead.
    """
    if len(args) == 1 and isinstance(args[0], list):
        args = args[0]
    if ls.adapter is None or len(args) < 2:
        return None

    uri, inserted = args[0], args[1]
    buffer = None
    if len(args) > 2 and isinstance(args[2], dict):
        position = Position(
            line=int(args[2].get("line", 0)),
            character=int(args[2].get("character", 0)),
        )
        buffer = buffer_context(ls, uri, position)

    follow_up = await ls.adapter.post_completion(str(inserted), buffer)
    if follow_up is None:
        return None
    return {
        "kind": follow_up.kind.value,
        "trigger": follow_up.trigger,
        "items": follow_up.items,
    }
