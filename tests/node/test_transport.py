"""Tests for erlls/node/transport.py"""
from __future__ import annotations

import asyncio
import json
import socket

import pytest

from erlls.errors import NodeUnreachableError
from erlls.node.client import NodeClient
from erlls.node.transport import (
    RemoteNode,
    SubprocessTransport,
    TcpTransport,
    open_transport,
)


class TestRemoteNode:
    def test_host_port(self):
        node = RemoteNode("dev@localhost", address="10.0.0.5:4370")
        assert node.host_port == ("10.0.0.5", 4370)

    def test_host_defaults_to_localhost(self):
        node = RemoteNode("dev@localhost", address=":4370")
        assert node.host_port == ("localhost", 4370)

    def test_no_address(self):
        assert RemoteNode("dev@localhost").host_port is None

    def test_command_substitutes_node_name(self):
        node = RemoteNode(
            "dev@localhost", bridge_command=("erlls-bridge", "--node", "{node}")
        )
        assert node.command() == ["erlls-bridge", "--node", "dev@localhost"]

    def test_is_immutable(self):
        node = RemoteNode("dev@localhost")
        with pytest.raises(AttributeError):
            node.name = "other@localhost"  # type: ignore


class TestOpenTransport:
    def test_tcp_when_address_known(self):
        transport = open_transport(RemoteNode("a@b", address="localhost:4370"))
        assert isinstance(transport, TcpTransport)
        assert (transport.host, transport.port) == ("localhost", 4370)

    def test_bridge_otherwise(self):
        transport = open_transport(
            RemoteNode("a@b", bridge_command=("erlls-bridge", "{node}"))
        )
        assert isinstance(transport, SubprocessTransport)
        assert transport.command == ["erlls-bridge", "a@b"]


def _free_port() -> int:
    with socket.socket() as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


@pytest.mark.asyncio
async def test_tcp_connect_refused():
    transport = TcpTransport("127.0.0.1", _free_port())
    with pytest.raises(NodeUnreachableError):
        await transport.connect()
    assert not transport.connected


@pytest.mark.asyncio
async def test_send_when_not_connected():
    transport = TcpTransport("127.0.0.1", 1)
    with pytest.raises(NodeUnreachableError):
        await transport.send(b"{}\n")


@pytest.mark.asyncio
async def test_missing_bridge_executable():
    transport = SubprocessTransport(["/nonexistent/erlls-bridge", "dev@localhost"])
    with pytest.raises(NodeUnreachableError):
        await transport.connect()


@pytest.mark.asyncio
async def test_empty_bridge_command():
    with pytest.raises(NodeUnreachableError):
        await SubprocessTransport([]).connect()


@pytest.mark.asyncio
async def test_client_over_tcp():
    """A node on a real socket answers modules requests."""

    async def handle(reader: asyncio.StreamReader, writer: asyncio.StreamWriter):
        while line := await reader.readline():
            request = json.loads(line)
            prefix = request["payload"]["prefix"]
            reply = {"id": request["id"], "status": "ok", "value": [prefix + "sts"]}
            writer.write(json.dumps(reply).encode() + b"\n")
            await writer.drain()
        writer.close()

    server = await asyncio.start_server(handle, "127.0.0.1", 0)
    port = server.sockets[0].getsockname()[1]

    client = NodeClient(RemoteNode("dev@localhost", address=f"127.0.0.1:{port}"))
    try:
        assert await client.modules("li") == ["lists"]
        assert await client.modules("ga") == ["gasts"]
    finally:
        await client.close()
        server.close()
        await server.wait_closed()
