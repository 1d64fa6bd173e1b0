"""
Tests for the socket transport and for clients built on top of it.

A connected socket pair stands in for the server, so no network is needed.
"""

import socket

import pytest

from icapscan import IcapClient
from icapscan.exception import IcapConnectionError, IcapNegotiationError, IcapTimeoutError
from icapscan.transport import SocketTransport
from pytest_icapscan import IcapResponseBuilder


@pytest.fixture
def socket_pair(mocker):
    """Patch socket.create_connection to hand out one end of a socket pair."""
    client_side, server_side = socket.socketpair()
    create_connection = mocker.patch("socket.create_connection", return_value=client_side)
    yield create_connection, server_side
    client_side.close()
    server_side.close()


def recv_exactly(sock, length):
    data = b""
    while len(data) < length:
        data += sock.recv(length - len(data))
    return data


def test_connect_uses_timeout(socket_pair):
    """Test that the connect deadline is passed to create_connection."""
    create_connection, _ = socket_pair
    transport = SocketTransport("icap.local", 1344, timeout=3.5)

    transport.connect()

    create_connection.assert_called_once_with(("icap.local", 1344), timeout=3.5)
    assert transport.is_connected
    transport.close()


def test_connect_is_idempotent(socket_pair):
    """Test that calling connect() twice opens one connection."""
    create_connection, _ = socket_pair
    transport = SocketTransport("localhost", 1344)

    transport.connect()
    transport.connect()

    assert create_connection.call_count == 1
    transport.close()


def test_write_flush_and_read(socket_pair):
    """Test a round trip through the socket."""
    _, server_side = socket_pair
    transport = SocketTransport("localhost", 1344)
    transport.connect()

    transport.write(b"hello ")
    transport.write(b"server")
    transport.flush()
    assert recv_exactly(server_side, 12) == b"hello server"

    server_side.sendall(b"hi")
    assert transport.read(1) == b"h"
    assert transport.read(1) == b"i"
    transport.close()


def test_read_returns_empty_at_eof(socket_pair):
    """Test that a closed peer reads as end of stream."""
    _, server_side = socket_pair
    transport = SocketTransport("localhost", 1344)
    transport.connect()

    server_side.shutdown(socket.SHUT_WR)

    assert transport.read(10) == b""
    transport.close()


def test_read_timeout(socket_pair):
    """Test that read_timeout bounds a read from a silent server."""
    transport = SocketTransport("localhost", 1344, read_timeout=0.05)
    transport.connect()

    with pytest.raises(IcapTimeoutError):
        transport.read(1)
    transport.close()


def test_close_is_safe_to_repeat(socket_pair):
    """Test that close() can be called multiple times."""
    _, server_side = socket_pair
    transport = SocketTransport("localhost", 1344)
    transport.connect()

    transport.close()
    transport.close()

    assert not transport.is_connected
    assert server_side.recv(1) == b""


def test_io_without_connection_raises():
    """Test that using an unconnected transport fails."""
    transport = SocketTransport("localhost", 1344)

    with pytest.raises(IcapConnectionError) as exc_info:
        transport.write(b"data")

    assert "Not connected" in str(exc_info.value)


def test_connect_timeout(mocker):
    """Test that a connection deadline raises IcapTimeoutError."""
    mocker.patch("socket.create_connection", side_effect=socket.timeout("timed out"))

    with pytest.raises(IcapTimeoutError):
        SocketTransport("localhost", 1344).connect()


def test_connect_refused(mocker):
    """Test that a refused connection raises IcapConnectionError."""
    mocker.patch("socket.create_connection", side_effect=ConnectionRefusedError("refused"))

    with pytest.raises(IcapConnectionError) as exc_info:
        IcapClient("localhost", 1344)

    assert "Failed to connect to localhost:1344" in str(exc_info.value)


def test_client_over_socket(socket_pair):
    """Test negotiation and a scan over a real socket."""
    _, server_side = socket_pair
    options = IcapResponseBuilder().options(methods=["RESPMOD"], preview=1024).build()
    clean = IcapResponseBuilder().clean().build()
    server_side.sendall(options + clean)

    with IcapClient("localhost", 1344, service="avscan") as client:
        assert client.capabilities.supports_preview
        assert client.scan_bytes(b"test")
        assert client.is_connected

    assert not client.is_connected
    server_side.settimeout(1.0)
    request = b""
    while True:
        data = server_side.recv(4096)
        if not data:
            break
        request += data
    assert request.startswith(b"OPTIONS icap://localhost/avscan ICAP/1.0\r\n")
    assert b"RESPMOD icap://localhost/avscan ICAP/1.0\r\n" in request
    assert b"4\r\ntest\r\n0; ieof\r\n\r\n" in request


def test_client_closes_socket_when_negotiation_fails(socket_pair):
    """Test that the socket is released when the constructor raises."""
    _, server_side = socket_pair
    server_side.sendall(IcapResponseBuilder().error(500).build())

    with pytest.raises(IcapNegotiationError):
        IcapClient("localhost", 1344)

    server_side.settimeout(1.0)
    received = b""
    while True:
        data = server_side.recv(4096)
        if not data:
            break
        received += data
    assert received.startswith(b"OPTIONS ")
