"""
Text Synchronization Manager

Registers the LSP text sync notifications and lets capabilities hook into
change, save and close events. Opening a document is only logged.

pygls keeps ``server.workspace`` up to date before the hooks run, so hooks
only react to the event (invalidate sessions, reload configuration, ...).
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Awaitable, Callable

from lsprotocol.types import (
    TEXT_DOCUMENT_DID_CHANGE,
    TEXT_DOCUMENT_DID_CLOSE,
    TEXT_DOCUMENT_DID_OPEN,
    TEXT_DOCUMENT_DID_SAVE,
    DidChangeTextDocumentParams,
    DidCloseTextDocumentParams,
    DidOpenTextDocumentParams,
    DidSaveTextDocumentParams,
    LogMessageParams,
    MessageType,
)

if TYPE_CHECKING:
    from erlls.lsp.erlang_language_server import ErlangLanguageServer


OnChangeHook = Callable[[DidChangeTextDocumentParams], Awaitable[None]]
OnSaveHook = Callable[[DidSaveTextDocumentParams], Awaitable[None]]
OnCloseHook = Callable[[DidCloseTextDocumentParams], Awaitable[None]]


class TextSyncManager:
    """
    Manages text document synchronization and hook broadcasting.

    Design Principles:
    - Hooks run in registration order
    - Errors are isolated (one hook failure doesn't affect others)
    - Change hooks run on every keystroke and must stay cheap

    Usage:
        text_sync = TextSyncManager(server)
        text_sync.register_handlers()
        text_sync.add_on_change_hook(invalidate_sessions)
    """

    def __init__(self, server: ErlangLanguageServer) -> None:
        self.server = server

        self._on_change_hooks: list[OnChangeHook] = []
        self._on_save_hooks: list[OnSaveHook] = []
        self._on_close_hooks: list[OnCloseHook] = []

    def add_on_change_hook(self, hook: OnChangeHook) -> None:
        """
        Register a hook for document change events.

        Called on EVERY keystroke. Only mark state stale here, never do
        RPC or disk work.
        """
        self._on_change_hooks.append(hook)

    def add_on_save_hook(self, hook: OnSaveHook) -> None:
        self._on_save_hooks.append(hook)

    def add_on_close_hook(self, hook: OnCloseHook) -> None:
        self._on_close_hooks.append(hook)

    async def _broadcast(self, event: str, hooks: list, params: Any) -> None:
        for hook in hooks:
            try:
                await hook(params)
            except Exception as e:
                self.server.window_log_message(
                    LogMessageParams(
                        type=MessageType.Error,
                        message=f"Error in {event} hook "
                        f"{getattr(hook, '__name__', repr(hook))}: "
                        f"{type(e).__name__}: {e}",
                    )
                )

    async def _broadcast_on_change(self, params: DidChangeTextDocumentParams) -> None:
        await self._broadcast("on_change", self._on_change_hooks, params)

    async def _broadcast_on_save(self, params: DidSaveTextDocumentParams) -> None:
        await self._broadcast("on_save", self._on_save_hooks, params)

    async def _broadcast_on_close(self, params: DidCloseTextDocumentParams) -> None:
        await self._broadcast("on_close", self._on_close_hooks, params)

    def register_handlers(self) -> None:
        """
        Register LSP text synchronization handlers with the server.

        Call once during server creation, before capabilities add hooks.
        """

        @self.server.feature(TEXT_DOCUMENT_DID_OPEN)
        async def did_open(
            ls: ErlangLanguageServer, params: DidOpenTextDocumentParams
        ) -> None:
            ls.window_log_message(
                LogMessageParams(
                    type=MessageType.Log,
                    message=f"Document opened: {params.text_document.uri}",
                )
            )

        @self.server.feature(TEXT_DOCUMENT_DID_CHANGE)
        async def did_change(
            ls: ErlangLanguageServer, params: DidChangeTextDocumentParams
        ) -> None:
            await self._broadcast_on_change(params)

        @self.server.feature(TEXT_DOCUMENT_DID_SAVE)
        async def did_save(
            ls: ErlangLanguageServer, params: DidSaveTextDocumentParams
        ) -> None:
            await self._broadcast_on_save(params)

        @self.server.feature(TEXT_DOCUMENT_DID_CLOSE)
        async def did_close(
            ls: ErlangLanguageServer, params: DidCloseTextDocumentParams
        ) -> None:
            ls.window_log_message(
                LogMessageParams(
                    type=MessageType.Log,
                    message=f"Document closed: {params.text_document.uri}",
                )
            )
            await self._broadcast_on_close(params)
