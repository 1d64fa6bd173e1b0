"""Shared ICAP protocol constants and utilities.

This module contains the header builder, the chunked transfer codec and the
readers shared by the OPTIONS negotiation and the scan session. Responses are
read in full, encapsulated sections included, so a connection stays usable
for the next transaction.
"""

import enum
import logging
from datetime import datetime
from email.utils import format_datetime
from typing import TYPE_CHECKING, List, Optional, Tuple

from .exception import IcapConnectionError, IcapProtocolError

if TYPE_CHECKING:
    from .capabilities import Capabilities
    from .transport import Transport

logger = logging.getLogger(__name__)

CRLF: str = "\r\n"
HEADER_TERMINATOR: bytes = b"\r\n\r\n"
CHUNK_TERMINATOR: bytes = b"0\r\n\r\n"
IEOF_TERMINATOR: bytes = b"0; ieof\r\n\r\n"


class IcapMethod(str, enum.Enum):
    """Adaptation modes a scan can be sent with."""

    REQMOD = "REQMOD"
    RESPMOD = "RESPMOD"


class IcapProtocol:
    """Base class with shared ICAP protocol constants."""

    DEFAULT_PORT: int = 1344
    CRLF: str = CRLF
    ICAP_VERSION: str = "ICAP/1.0"
    BUFFER_SIZE: int = 8192
    HEADER_READ_BUDGET: int = 8192
    USER_AGENT: str = "Python-ICAP-Scan/1.0"


class HeaderBlock:
    """
    Accumulates a CRLF-terminated ICAP or HTTP header block.

    Example:
        >>> block = HeaderBlock("OPTIONS icap://localhost/avscan ICAP/1.0")
        >>> block.add("Host", "localhost")
        >>> block.render()
        'OPTIONS icap://localhost/avscan ICAP/1.0\\r\\nHost: localhost\\r\\n\\r\\n'
    """

    def __init__(self, request_line: str) -> None:
        self._lines: List[str] = [request_line]

    def add(self, name: str, value: str) -> None:
        """Append a ``Name: value`` line."""
        self._lines.append(f"{name}: {value}")

    def add_date(self, timestamp: datetime) -> None:
        """Add a ``Date`` header formatted per RFC 1123."""
        self.add("Date", format_datetime(timestamp, usegmt=True))

    def add_icap_headers(
        self,
        host: str,
        user_agent: str,
        preview_size: int,
        capabilities: "Capabilities",
    ) -> None:
        """Add the headers every ICAP adaptation request carries.

        Args:
            host: ICAP server host
            user_agent: Value of the User-Agent header
            preview_size: Number of body bytes sent before the server decides
            capabilities: Negotiated server capabilities; they decide whether
                ``Allow: 204`` and ``Preview`` are sent
        """
        self.add("Host", host)
        self.add("User-Agent", user_agent)
        if capabilities.supports_204:
            self.add("Allow", "204")
        if capabilities.supports_preview:
            self.add("Preview", str(preview_size))

    def render(self) -> str:
        """Return the block terminated by a blank line."""
        return CRLF.join(self._lines) + CRLF + CRLF

    def encode(self) -> bytes:
        return self.render().encode("utf-8")

    def __str__(self) -> str:
        return self.render()


def encode_chunk(data: bytes) -> bytes:
    """Encode data as a single HTTP chunk.

    A zero-length slice still yields a valid empty frame, which on the wire is
    indistinguishable from :data:`CHUNK_TERMINATOR`.

    Args:
        data: Data to encode

    Returns:
        Chunk-encoded bytes including size line and trailing CRLF
    """
    return f"{len(data):x}{CRLF}".encode() + data + CRLF.encode()


def encapsulated_header_value(mode: IcapMethod, header_block_length: int) -> str:
    """Calculate the Encapsulated header value for a request with a body.

    Args:
        mode: Adaptation mode of the request
        header_block_length: Length in bytes of the embedded HTTP header block

    Returns:
        Encapsulated header value string
    """
    if mode is IcapMethod.RESPMOD:
        return f"res-hdr=0, res-body={header_block_length}"
    return f"req-hdr=0, req-body={header_block_length}"


def read_header_block(transport: "Transport", budget: int = IcapProtocol.HEADER_READ_BUDGET) -> bytes:
    """Read one header block, up to and including the blank line.

    Bytes are read one at a time so that nothing past the terminator is
    consumed from the transport.

    Args:
        transport: Connected transport to read from
        budget: Maximum number of bytes scanned for the terminator

    Raises:
        IcapConnectionError: If the connection closes before the terminator.
        IcapProtocolError: If no terminator is found within ``budget`` bytes.
    """
    data = bytearray()
    while len(data) < budget:
        byte = transport.read(1)
        if not byte:
            raise IcapConnectionError(
                f"Connection closed after {len(data)} bytes, before header block complete"
            )
        data += byte
        if data.endswith(HEADER_TERMINATOR):
            logger.debug(f"Received {len(data)} byte header block")
            return bytes(data)
    raise IcapProtocolError(f"No header terminator within {budget} bytes")


def parse_encapsulated(value: str) -> List[Tuple[str, int]]:
    """Split an Encapsulated header value into ``(section, offset)`` pairs.

    Raises:
        IcapProtocolError: If an entry is not ``name=offset``.
    """
    sections = []
    for entry in value.split(","):
        name, sep, offset = entry.strip().partition("=")
        if not sep or not offset.strip().isdigit():
            raise IcapProtocolError(f"Invalid Encapsulated entry: {entry.strip()!r}")
        sections.append((name.strip().lower(), int(offset)))
    return sections


def read_line(transport: "Transport", budget: int = IcapProtocol.HEADER_READ_BUDGET) -> bytes:
    """Read one CRLF-terminated line, returned without the CRLF."""
    data = bytearray()
    while len(data) < budget:
        byte = transport.read(1)
        if not byte:
            raise IcapConnectionError(f"Connection closed after {len(data)} bytes, before line complete")
        data += byte
        if data.endswith(b"\r\n"):
            return bytes(data[:-2])
    raise IcapProtocolError(f"No line terminator within {budget} bytes")


def _discard_exactly(transport: "Transport", length: int) -> None:
    remaining = length
    while remaining > 0:
        data = transport.read(min(remaining, IcapProtocol.BUFFER_SIZE))
        if not data:
            raise IcapConnectionError(f"Connection closed with {remaining} bytes of chunk data unread")
        remaining -= len(data)


def discard_chunked_body(transport: "Transport", budget: int = IcapProtocol.HEADER_READ_BUDGET) -> int:
    """Read and drop a chunked body up to and including its last-chunk trailer.

    Returns:
        Number of body bytes discarded
    """
    discarded = 0
    while True:
        size_line = read_line(transport, budget)
        size_field = size_line.split(b";", 1)[0].strip()
        try:
            size = int(size_field, 16)
        except ValueError:
            raise IcapProtocolError(f"Invalid chunk size: {size_line!r}") from None
        if size == 0:
            # Trailer lines up to the blank line
            while read_line(transport, budget):
                pass
            return discarded
        _discard_exactly(transport, size)
        if read_line(transport, budget):
            raise IcapProtocolError("Chunk data not followed by CRLF")
        discarded += size


def discard_encapsulated(
    transport: "Transport",
    encapsulated: Optional[str],
    budget: int = IcapProtocol.HEADER_READ_BUDGET,
) -> None:
    """Consume the sections a response's Encapsulated header announces.

    Leaves the transport positioned at the start of the next response, so
    the connection can carry another transaction. A missing header or
    ``null-body`` alone means nothing follows the ICAP header block.
    """
    if not encapsulated:
        return
    for name, _ in parse_encapsulated(encapsulated):
        if name.endswith("-hdr"):
            read_header_block(transport, budget)
        elif name.endswith("-body"):
            if name != "null-body":
                discarded = discard_chunked_body(transport, budget)
                logger.debug(f"Discarded {discarded} byte encapsulated {name}")
        else:
            raise IcapProtocolError(f"Unknown Encapsulated section: {name!r}")
