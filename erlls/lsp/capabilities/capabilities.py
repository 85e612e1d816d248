"""
LSP Capabilities Manager

This module manages LSP feature handlers (completion, hover, signature
help) using a plugin architecture.

Design Principles:
1. Plugin-based (add capabilities without modifying core)
2. Type-safe (abstract base class)
3. Composable (multiple handlers for same feature)
4. Testable (isolated capability handlers)
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from lsprotocol.types import (
    CompletionItem,
    CompletionList,
    CompletionParams,
    Hover,
    HoverParams,
    MessageType,
    SignatureHelp,
    SignatureHelpParams,
)


if TYPE_CHECKING:
    from erlls.lsp.erlang_language_server import ErlangLanguageServer


class Capability(ABC):
    """
    Base class for all LSP capability handlers.

    Each capability can handle one or more LSP features and decides whether
    it can handle a specific request based on context.
    """

    def __init__(self, server: ErlangLanguageServer) -> None:
        self.server = server

    def register(self) -> None:
        """
        Register extra hooks with the server.

        Called once during server initialization. LSP features themselves
        are registered by create_server and dispatched by CapabilityManager.
        """
        pass

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique name for this capability."""
        pass

    @property
    @abstractmethod
    def description(self) -> str:
        """Human-readable description of what this capability does."""
        pass

    @abstractmethod
    async def can_handle(self, params) -> bool:
        """Check if the capability can handle the request."""
        pass


class CompletionCapability(Capability):
    """Base class for completion capabilities."""

    @abstractmethod
    async def can_handle(self, params: CompletionParams) -> bool:
        """
        Check if this capability can handle the completion request.

        Returns True if this capability should provide completions
        for the current context.
        """
        pass

    @abstractmethod
    async def complete(self, params: CompletionParams) -> CompletionList:
        """
        Provide completion items.

        Only called if can_handle() returns True.
        """
        pass

    async def resolve(self, item: CompletionItem) -> CompletionItem:
        """
        Fill in detail/documentation of a selected item.

        By default, returns the item unchanged.
        """
        return item


class HoverCapability(Capability):
    """Base class for hover capabilities."""

    @abstractmethod
    async def can_handle(self, params: HoverParams) -> bool:
        """Check if this capability can handle the hover request."""
        pass

    @abstractmethod
    async def hover(self, params: HoverParams) -> Hover | None:
        """Provide hover information."""
        pass


class SignatureHelpCapability(Capability):
    """Base class for signature help capabilities."""

    @abstractmethod
    async def can_handle(self, params: SignatureHelpParams) -> bool:
        pass

    @abstractmethod
    async def signature_help(
        self, params: SignatureHelpParams
    ) -> SignatureHelp | None:
        """Provide the signatures of the call around the cursor."""
        pass


class CapabilityManager:
    """
    Central manager for all LSP capabilities.

    Usage:
        # In server initialization
        manager = CapabilityManager(server)
        manager.register_all()
    """

    def __init__(
        self,
        server: ErlangLanguageServer,
        capabilities: dict[str, Capability] | None = None,
    ):
        self.server = server

        # Default capabilities
        if capabilities is None:
            from erlls.lsp.capabilities.erlang_capabilities import (
                ErlangCompletionCapability,
                ErlangHoverCapability,
                ErlangSignatureHelpCapability,
            )

            capabilities = {
                "erlang_completion": ErlangCompletionCapability(server),
                "erlang_hover": ErlangHoverCapability(server),
                "erlang_signature_help": ErlangSignatureHelpCapability(server),
            }

        self.capabilities = capabilities
        self._registered = False

    def register_all(self) -> None:
        """Register all capabilities with the server."""
        if self._registered:
            return

        for capability in self.capabilities.values():
            capability.register()

        self._registered = True

    def get_capability(self, name: str) -> Capability | None:
        """Get a specific capability by name"""
        return self.capabilities.get(name)

    def get_capabilities_by_type(self, capability_type: type) -> list[Capability]:
        """Get all capabilities of a specific type (e.g., all CompletionCapability)."""
        return [
            cap
            for cap in self.capabilities.values()
            if isinstance(cap, capability_type)
        ]

    async def handle_completion(self, params: CompletionParams) -> CompletionList:
        """
        Handle completion requests by delegating to capable handlers.

        Items keep the order in which capabilities produced them.
        """
        all_items: list[CompletionItem] = []
        is_incomplete = False

        for capability in self.get_capabilities_by_type(CompletionCapability):
            try:
                if await capability.can_handle(params):
                    result = await capability.complete(params)  # pyright: ignore
                    all_items.extend(result.items)
                    is_incomplete = is_incomplete or result.is_incomplete
            except Exception as e:
                self._log_error(capability, "Completion", e)

        return CompletionList(is_incomplete=is_incomplete, items=all_items)

    async def handle_completion_resolve(self, item: CompletionItem) -> CompletionItem:
        for capability in self.get_capabilities_by_type(CompletionCapability):
            try:
                item = await capability.resolve(item)  # pyright: ignore
            except Exception as e:
                self._log_error(capability, "Completion resolve", e)

        return item

    async def handle_hover(self, params: HoverParams) -> Hover | None:
        """
        Handle hover requests by delegating to capable handlers.

        Returns the first non-None hover result
        """
        for capability in self.get_capabilities_by_type(HoverCapability):
            try:
                if await capability.can_handle(params):
                    result = await capability.hover(params)  # pyright: ignore
                    if result:
                        return result
            except Exception as e:
                self._log_error(capability, "Hover", e)

        return None

    async def handle_signature_help(
        self, params: SignatureHelpParams
    ) -> SignatureHelp | None:
        for capability in self.get_capabilities_by_type(SignatureHelpCapability):
            try:
                if await capability.can_handle(params):
                    result = await capability.signature_help(params)  # pyright: ignore
                    if result:
                        return result
            except Exception as e:
                self._log_error(capability, "Signature help", e)

        return None

    def _log_error(self, capability: Capability, feature: str, error: Exception) -> None:
        self.server.emit_log(
            f"{feature} error in {capability.name}: {type(error).__name__}: {error}",
            MessageType.Error,
        )
