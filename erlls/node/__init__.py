"""Connection to the remote Erlang node."""
from .client import CallKind, NodeClient, PendingCall
from .transport import RemoteNode, open_transport

__all__ = ["CallKind", "NodeClient", "PendingCall", "RemoteNode", "open_transport"]
