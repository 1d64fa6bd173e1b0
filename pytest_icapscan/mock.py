"""
Scripted in-memory transport for testing without network I/O.

FakeTransport stands in for a connected socket: the test queues the bytes the
server will answer with, the client reads them back, and everything the client
writes is recorded for assertions.

Example:
    >>> from pytest_icapscan import FakeTransport, IcapResponseBuilder
    >>> from icapscan import Capabilities, IcapClient
    >>>
    >>> transport = FakeTransport(IcapResponseBuilder().clean().build())
    >>> client = IcapClient(
    ...     "localhost",
    ...     capabilities=Capabilities(supports_respmod=True),
    ...     transport=transport,
    ... )
    >>> assert client.scan_bytes(b"content")
    >>> assert transport.written.startswith(b"RESPMOD icap://localhost/avscan ICAP/1.0")
"""

from __future__ import annotations

from dataclasses import dataclass

from icapscan.exception import IcapConnectionError


@dataclass
class TransportEvent:
    """One write or read performed on a FakeTransport."""

    kind: str
    data: bytes = b""


class FakeTransport:
    """
    Transport that replays queued server bytes and records client writes.

    Attributes:
        events: Every write, flush and read in call order. Consecutive reads
            are merged into one event so a header block read byte by byte
            shows up once.
        closed: Whether close() was called.
        write_error: Exception raised by the next write(), if set.
    """

    def __init__(self, *responses: bytes) -> None:
        self._incoming = bytearray()
        self.events: list[TransportEvent] = []
        self.closed = False
        self.write_error: BaseException | None = None
        self.queue(*responses)

    def queue(self, *responses: bytes) -> FakeTransport:
        """Append server responses to be read by the client."""
        for response in responses:
            self._incoming += response
        return self

    @property
    def written(self) -> bytes:
        """All bytes the client wrote, concatenated."""
        return b"".join(event.data for event in self.events if event.kind == "write")

    @property
    def unread(self) -> bytes:
        """Queued server bytes the client never read."""
        return bytes(self._incoming)

    def writes_before_read(self, index: int = 0) -> bytes:
        """Bytes written before the ``index``-th read (0-based)."""
        chunks = []
        reads = 0
        for event in self.events:
            if event.kind == "read":
                if reads == index:
                    break
                reads += 1
            elif event.kind == "write":
                chunks.append(event.data)
        return b"".join(chunks)

    def write(self, data: bytes) -> None:
        self._check_open()
        if self.write_error is not None:
            error, self.write_error = self.write_error, None
            raise error
        self.events.append(TransportEvent("write", bytes(data)))

    def flush(self) -> None:
        self._check_open()
        self.events.append(TransportEvent("flush"))

    def read(self, max_len: int) -> bytes:
        self._check_open()
        data = bytes(self._incoming[:max_len])
        del self._incoming[:max_len]
        if self.events and self.events[-1].kind == "read":
            self.events[-1].data += data
        else:
            self.events.append(TransportEvent("read", data))
        return data

    def close(self) -> None:
        self.closed = True

    def _check_open(self) -> None:
        if self.closed:
            raise IcapConnectionError("Transport is closed")
