"""
Exception hierarchy for ErlLS.

RPC and scrape errors never reach the editor: components catch them at
their boundary and degrade to an empty result.
"""


class ErllsError(Exception):
    """Base class for all ErlLS errors."""


class ConfigError(ErllsError):
    """Invalid configuration value or unreadable configuration file."""


class ProtocolError(ErllsError):
    """Host asked for an unknown command or passed a nonsensical argument."""


# ===== Remote node RPC =====


class RpcError(ErllsError):
    """A call to the remote node did not produce a usable value."""


class NodeUnreachableError(RpcError):
    """The transport to the remote node could not be opened or broke."""


class MalformedReplyError(RpcError):
    """The node answered with something that is not {id, status, value}."""


class RemoteCallError(RpcError):
    """The node answered with a status other than ``ok``."""

    def __init__(self, status: str, value=None):
        super().__init__(f"remote call failed with status {status!r}: {value!r}")
        self.status = status
        self.value = value


class RpcTimeoutError(RpcError):
    """No reply arrived before the configured timeout."""


# ===== Documentation scrape =====


class ScrapeError(ErllsError):
    """The network documentation stage could not produce text."""


class FetchError(ScrapeError):
    """The man page could not be downloaded."""


class AnchorNotFoundError(ScrapeError):
    """Neither the function anchor nor the description heading was found."""


class ExtractionError(ScrapeError):
    """An anchor was found but no closing block marker follows it."""
