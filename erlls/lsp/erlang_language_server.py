from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Any

from lsprotocol.types import LogMessageParams, MessageType, ShowMessageParams
from pygls.lsp.server import LanguageServer

from erlls.config import ErllsConfig

if TYPE_CHECKING:
    from erlls.lsp.adapter import CompletionAdapter
    from erlls.lsp.capabilities.capabilities import CapabilityManager
    from erlls.lsp.text_sync_manager import TextSyncManager
    from erlls.node.client import NodeClient


class ErlangLanguageServer(LanguageServer):
    """
    Custom Language Server with ErlLS-specific attributes.

    Attributes:
        settings: Effective configuration
        node_client: RPC client for the remote Erlang node
        adapter: Completion commands (prefix, candidates, meta, ...)
    """

    def __init__(self, name: str, version: str):
        super().__init__(name, version)

        self.settings = ErllsConfig()
        self.node_client: NodeClient | None = None
        self.adapter: CompletionAdapter | None = None
        self.capability_manager: CapabilityManager | None = None
        self.text_sync_manager: TextSyncManager | None = None

        self.project_root: Path | None = None
        self.initialization_options: dict[str, Any] | None = None

    def emit_log(self, message: str, type: MessageType = MessageType.Log) -> None:
        """Send a diagnostic line to the client's output channel."""
        self.window_log_message(LogMessageParams(type=type, message=message))

    def notify_operator(self, message: str) -> None:
        """Warn the user about something that needs attention."""
        self.window_show_message(
            ShowMessageParams(type=MessageType.Warning, message=message)
        )
        self.emit_log(message, MessageType.Warning)
