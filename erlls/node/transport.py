"""
Transports to the remote Erlang node.

The node speaks newline-delimited JSON. It is reached either directly over
TCP, or through a bridge process that relays stdin/stdout to the node.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from erlls.errors import NodeUnreachableError

# Replies can carry whole documentation strings.
READ_LIMIT = 4 * 1024 * 1024


@dataclass(frozen=True)
class RemoteNode:
    """Identity of the node holding module/function information."""

    name: str
    address: str | None = None
    bridge_command: tuple[str, ...] = field(default_factory=tuple)

    @property
    def host_port(self) -> tuple[str, int] | None:
        if not self.address:
            return None
        host, _, port = self.address.rpartition(":")
        return host or "localhost", int(port)

    def command(self) -> list[str]:
        """Bridge command with ``{node}`` substituted."""
        return [part.replace("{node}", self.name) for part in self.bridge_command]


class NodeTransport(ABC):
    """Byte stream to the node, one JSON message per line."""

    @abstractmethod
    async def connect(self) -> None:
        pass

    @abstractmethod
    async def send(self, line: bytes) -> None:
        pass

    @abstractmethod
    async def readline(self) -> bytes:
        """Return the next line, or b"" once the stream is closed."""
        pass

    @abstractmethod
    async def close(self) -> None:
        pass

    @property
    @abstractmethod
    def connected(self) -> bool:
        pass


class StreamTransport(NodeTransport):
    """Shared reader/writer handling for stream based transports."""

    def __init__(self) -> None:
        self._reader: asyncio.StreamReader | None = None
        self._writer: asyncio.StreamWriter | None = None

    @property
    def connected(self) -> bool:
        return self._writer is not None and not self._writer.is_closing()

    async def send(self, line: bytes) -> None:
        if not self.connected:
            raise NodeUnreachableError("not connected to the node")
        try:
            self._writer.write(line)  # pyright: ignore
            await self._writer.drain()  # pyright: ignore
        except (ConnectionError, OSError) as e:
            raise NodeUnreachableError(f"write to node failed: {e}") from e

    async def readline(self) -> bytes:
        if self._reader is None:
            return b""
        try:
            return await self._reader.readline()
        except (ConnectionError, OSError, asyncio.LimitOverrunError, ValueError):
            return b""


class TcpTransport(StreamTransport):
    """Direct TCP connection to a node listening on host:port."""

    def __init__(self, host: str, port: int) -> None:
        super().__init__()
        self.host = host
        self.port = port

    async def connect(self) -> None:
        try:
            self._reader, self._writer = await asyncio.open_connection(
                self.host, self.port, limit=READ_LIMIT
            )
        except OSError as e:
            raise NodeUnreachableError(
                f"cannot connect to {self.host}:{self.port}: {e}"
            ) from e

    async def close(self) -> None:
        if self._writer is not None:
            self._writer.close()
            try:
                await self._writer.wait_closed()
            except (ConnectionError, OSError):
                pass
        self._reader = None
        self._writer = None


class SubprocessTransport(StreamTransport):
    """Bridge process relaying JSON lines between stdio and the node."""

    def __init__(self, command: list[str]) -> None:
        super().__init__()
        self.command = command
        self._process: asyncio.subprocess.Process | None = None

    @property
    def connected(self) -> bool:
        return (
            self._process is not None
            and self._process.returncode is None
            and super().connected
        )

    async def connect(self) -> None:
        if not self.command:
            raise NodeUnreachableError("no bridge command configured")
        try:
            self._process = await asyncio.create_subprocess_exec(
                *self.command,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.DEVNULL,
                limit=READ_LIMIT,
            )
        except OSError as e:
            raise NodeUnreachableError(
                f"cannot start bridge {self.command[0]!r}: {e}"
            ) from e

        self._reader = self._process.stdout
        self._writer = self._process.stdin

    async def close(self) -> None:
        if self._process is None:
            return
        if self._process.returncode is None:
            if self._process.stdin is not None:
                self._process.stdin.close()
            try:
                await asyncio.wait_for(self._process.wait(), timeout=2)
            except asyncio.TimeoutError:
                self._process.kill()
                await self._process.wait()
        self._process = None
        self._reader = None
        self._writer = None


def open_transport(node: RemoteNode) -> NodeTransport:
    """Pick the transport for ``node``: TCP when an address is known."""
    host_port = node.host_port
    if host_port is not None:
        return TcpTransport(*host_port)
    return SubprocessTransport(node.command())
