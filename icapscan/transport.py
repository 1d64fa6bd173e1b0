"""Byte-stream transport used by the ICAP client."""

import logging
import socket
from typing import Optional, Protocol

from .exception import IcapConnectionError, IcapTimeoutError

logger = logging.getLogger(__name__)


class Transport(Protocol):
    """A connected, ordered, reliable byte stream."""

    def write(self, data: bytes) -> None: ...

    def flush(self) -> None: ...

    def read(self, max_len: int) -> bytes:
        """Return up to ``max_len`` bytes, or ``b""`` at end of stream."""
        ...

    def close(self) -> None: ...


class SocketTransport:
    """
    TCP transport over a blocking socket.

    Only establishing the connection has a deadline by default; once
    connected, reads block unless ``read_timeout`` is set.
    """

    def __init__(
        self,
        host: str,
        port: int,
        timeout: float = 10.0,
        read_timeout: Optional[float] = None,
    ) -> None:
        self._host = host
        self._port = port
        self._timeout = timeout
        self._read_timeout = read_timeout
        self._socket: Optional[socket.socket] = None
        self._stream = None

    @property
    def is_connected(self) -> bool:
        """Return True if the socket is open."""
        return self._socket is not None

    def connect(self) -> None:
        """Connect to the server.

        Raises:
            IcapTimeoutError: If the connection is not established in time.
            IcapConnectionError: If the connection fails.
        """
        if self._socket is not None:
            logger.debug("Already connected")
            return

        logger.info(f"Connecting to {self._host}:{self._port}")
        try:
            sock = socket.create_connection((self._host, self._port), timeout=self._timeout)
        except socket.timeout as e:
            raise IcapTimeoutError(f"Connection to {self._host}:{self._port} timed out") from e
        except OSError as e:
            raise IcapConnectionError(f"Failed to connect to {self._host}:{self._port}: {e}") from e

        sock.settimeout(self._read_timeout)
        self._socket = sock
        self._stream = sock.makefile("rwb")
        logger.info(f"Connected to {self._host}:{self._port}")

    def _require_stream(self):
        if self._stream is None:
            raise IcapConnectionError("Not connected to ICAP server")
        return self._stream

    def write(self, data: bytes) -> None:
        stream = self._require_stream()
        try:
            stream.write(data)
        except socket.timeout as e:
            raise IcapTimeoutError(f"Write to {self._host}:{self._port} timed out") from e
        except OSError as e:
            raise IcapConnectionError(f"Connection error with {self._host}:{self._port}: {e}") from e

    def flush(self) -> None:
        stream = self._require_stream()
        try:
            stream.flush()
        except socket.timeout as e:
            raise IcapTimeoutError(f"Write to {self._host}:{self._port} timed out") from e
        except OSError as e:
            raise IcapConnectionError(f"Connection error with {self._host}:{self._port}: {e}") from e

    def read(self, max_len: int) -> bytes:
        stream = self._require_stream()
        try:
            return stream.read1(max_len)
        except socket.timeout as e:
            raise IcapTimeoutError(f"Timeout reading response from {self._host}:{self._port}") from e
        except OSError as e:
            raise IcapConnectionError(f"Connection error with {self._host}:{self._port}: {e}") from e

    def close(self) -> None:
        """Close the connection. Safe to call more than once."""
        if self._socket is None:
            return
        try:
            if self._stream is not None:
                self._stream.close()
            self._socket.close()
            logger.info(f"Disconnected from {self._host}:{self._port}")
        except OSError as e:
            logger.warning(f"Error while disconnecting: {e}")
        finally:
            self._stream = None
            self._socket = None
