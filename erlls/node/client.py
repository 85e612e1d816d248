"""
Client for the remote Erlang node.

Every call gets its own id. A background reader task matches replies to
pending calls by that id, so several calls can be in flight at once and a
reply is only ever delivered to the call that asked for it.
"""

from __future__ import annotations

import asyncio
import itertools
import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable

from erlls.errors import (
    MalformedReplyError,
    NodeUnreachableError,
    RemoteCallError,
    RpcError,
    RpcTimeoutError,
)
from erlls.node.transport import NodeTransport, RemoteNode, open_transport


class CallKind(str, Enum):
    """Requests understood by the node."""

    MODULES = "modules"
    FUNCTIONS = "functions"
    DESCRIBE = "describe"
    ARGLISTS = "arglists"


@dataclass
class PendingCall:
    """One in-flight request and its result slot."""

    call_id: int
    kind: CallKind
    payload: dict
    future: asyncio.Future


Notify = Callable[[str], None]


class NodeClient:
    """
    Asynchronous RPC client for the node.

    Usage:
        client = NodeClient(RemoteNode("dev@localhost", address="localhost:4370"))
        modules = await client.modules("li")
        await client.close()
    """

    def __init__(
        self,
        node: RemoteNode,
        transport: NodeTransport | None = None,
        timeout: float = 5.0,
        notify: Notify | None = None,
        log: Notify | None = None,
    ):
        """
        Args:
            node: Node to talk to.
            transport: Transport override; chosen from ``node`` if None.
            timeout: Seconds to wait for each reply.
            notify: Operator-visible channel for malformed or failed replies.
            log: Channel for routine diagnostics.
        """
        self.node = node
        self.transport = transport or open_transport(node)
        self.timeout = timeout
        self._notify = notify or (lambda message: None)
        self._log = log or (lambda message: None)

        self._ids = itertools.count(1)
        self._pending: dict[int, PendingCall] = {}
        self._reader_task: asyncio.Task | None = None
        self._connect_lock = asyncio.Lock()

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    async def start(self) -> None:
        """Connect and start the reply reader. Safe to call repeatedly."""
        async with self._connect_lock:
            reader_alive = (
                self._reader_task is not None and not self._reader_task.done()
            )
            if self.transport.connected and reader_alive:
                return
            if not self.transport.connected:
                await self.transport.connect()
                self._log(f"Connected to node {self.node.name}")
            elif self._reader_task is not None and not self._reader_task.cancelled():
                error = self._reader_task.exception()
                if error is not None:
                    self._log(f"Restarting reply reader after failure: {error!r}")
            self._reader_task = asyncio.create_task(self._read_replies())

    async def close(self) -> None:
        if self._reader_task is not None:
            self._reader_task.cancel()
            try:
                await self._reader_task
            except asyncio.CancelledError:
                pass
            except Exception as e:
                self._log(f"Reply reader for {self.node.name} had failed: {e!r}")
            self._reader_task = None
        await self.transport.close()
        self._fail_all(NodeUnreachableError("client closed"))

    async def call(self, kind: CallKind, payload: dict) -> Any:
        """
        Send one request and wait for its reply.

        Raises:
            NodeUnreachableError: The transport is down.
            MalformedReplyError: The reply had an unrecognised shape.
            RemoteCallError: The node answered with a non-ok status.
            RpcTimeoutError: No reply within ``timeout`` seconds.
        """
        kind = CallKind(kind)
        await self.start()

        loop = asyncio.get_running_loop()
        call = PendingCall(next(self._ids), kind, payload, loop.create_future())
        self._pending[call.call_id] = call

        try:
            message = {"id": call.call_id, "kind": kind.value, "payload": payload}
            await self.transport.send(json.dumps(message).encode() + b"\n")
            return await asyncio.wait_for(call.future, self.timeout)
        except asyncio.TimeoutError:
            raise RpcTimeoutError(
                f"{kind.value} call got no reply within {self.timeout}s"
            ) from None
        finally:
            self._pending.pop(call.call_id, None)

    # ===== Node operations =====

    async def modules(self, prefix: str) -> list[str]:
        value = await self.call(CallKind.MODULES, {"prefix": prefix})
        return _string_list(value, CallKind.MODULES)

    async def functions(self, module: str, prefix: str) -> list[str]:
        value = await self.call(
            CallKind.FUNCTIONS, {"module": module, "prefix": prefix}
        )
        return _string_list(value, CallKind.FUNCTIONS)

    async def describe(self, module: str, function: str) -> str:
        value = await self.call(
            CallKind.DESCRIBE, {"module": module, "function": function}
        )
        if value is None:
            return ""
        if not isinstance(value, str):
            raise MalformedReplyError(f"describe returned {type(value).__name__}")
        return value

    async def arglists(self, module: str, function: str) -> list[Any]:
        value = await self.call(
            CallKind.ARGLISTS, {"module": module, "function": function}
        )
        if value is None:
            return []
        if not isinstance(value, list):
            raise MalformedReplyError(f"arglists returned {type(value).__name__}")
        return value

    # ===== Reply handling =====

    async def _read_replies(self) -> None:
        while True:
            line = await self.transport.readline()
            if not line:
                break
            if line.strip():
                self._handle_reply(line)

        self._log(f"Connection to node {self.node.name} closed")
        self._fail_all(NodeUnreachableError(f"node {self.node.name} disconnected"))
        await self.transport.close()

    def _handle_reply(self, line: bytes) -> None:
        try:
            reply = json.loads(line)
        except (json.JSONDecodeError, UnicodeDecodeError):
            self._notify(f"Malformed reply from {self.node.name}: {line[:200]!r}")
            return

        if not isinstance(reply, dict):
            self._notify(f"Malformed reply from {self.node.name}: {reply!r}")
            return

        call_id = reply.get("id")
        if not isinstance(call_id, int) or isinstance(call_id, bool):
            self._notify(f"Malformed reply from {self.node.name}: {reply!r}")
            return

        call = self._pending.get(call_id)
        if call is None:
            if "status" not in reply:
                self._notify(f"Malformed reply from {self.node.name}: {reply!r}")
            else:
                # Late reply for a call that timed out or was cancelled.
                self._log(f"Discarding reply for unknown call {call_id!r}")
            return

        if call.future.done():
            return

        status = reply.get("status")
        if status is None or (status == "ok" and "value" not in reply):
            self._notify(f"Malformed reply from {self.node.name}: {reply!r}")
            call.future.set_exception(
                MalformedReplyError(f"{call.kind.value} reply has no status/value")
            )
        elif status == "ok":
            call.future.set_result(reply["value"])
        else:
            self._notify(
                f"Node {self.node.name} failed {call.kind.value}: "
                f"{status} {reply.get('value')!r}"
            )
            call.future.set_exception(RemoteCallError(str(status), reply.get("value")))

    def _fail_all(self, error: RpcError) -> None:
        for call in list(self._pending.values()):
            if not call.future.done():
                call.future.set_exception(error)
        self._pending.clear()


def _string_list(value: Any, kind: CallKind) -> list[str]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise MalformedReplyError(f"{kind.value} returned {type(value).__name__}")
    return [str(item) for item in value]
