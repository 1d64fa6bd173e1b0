"""Synchronous ICAP client."""

import logging
from pathlib import Path
from typing import Any, BinaryIO, Optional, Union

from ._protocol import IcapProtocol
from .capabilities import Capabilities, negotiate
from .config import Settings
from .exception import IcapConnectionError, IcapProtocolError
from .response import Verdict
from .session import ScanSession
from .source import DEFAULT_CONTENT_TYPE, BytesSource, FileSource, PayloadSource, StreamSource
from .transport import SocketTransport, Transport

logger = logging.getLogger(__name__)


class IcapClient(IcapProtocol):
    """
    ICAP (Internet Content Adaptation Protocol) Client implementation.
    Based on RFC 3507.

    Creating a client connects to the server and negotiates the service's
    capabilities with an OPTIONS request. If either step fails the connection
    is closed and the error is raised; no client is returned.

    Example:
        >>> from icapscan import IcapClient
        >>>
        >>> with IcapClient('localhost', service='avscan') as client:
        ...     if client.scan_file('/path/to/file.pdf'):
        ...         print("File is clean")

    Example with known capabilities (no OPTIONS request):
        >>> from icapscan import Capabilities, IcapClient, Settings
        >>>
        >>> settings = Settings(
        ...     host='localhost',
        ...     capabilities=Capabilities(supports_respmod=True, supports_204=True),
        ... )
        >>> with IcapClient.from_settings(settings) as client:
        ...     client.scan_bytes(b"content")
    """

    def __init__(
        self,
        address: str,
        port: int = IcapProtocol.DEFAULT_PORT,
        service: str = "avscan",
        timeout: float = 10.0,
        read_timeout: Optional[float] = None,
        user_agent: str = IcapProtocol.USER_AGENT,
        capabilities: Optional[Capabilities] = None,
        transport: Optional[Transport] = None,
    ) -> None:
        """
        Connect to an ICAP server and negotiate capabilities.

        Args:
            address: ICAP server hostname or IP address
            port: ICAP server port (default: 1344)
            service: ICAP service name (default: "avscan")
            timeout: Connection timeout in seconds (default: 10.0)
            read_timeout: Timeout for reads once connected; None blocks
            user_agent: Value of the User-Agent headers
            capabilities: Known service capabilities. When given, the
                OPTIONS exchange is skipped.
            transport: Already connected transport to use instead of opening
                a socket. The client takes ownership of it.

        Raises:
            IcapConnectionError: If connecting fails.
            IcapServiceNotFoundError: If the service does not exist.
            IcapNegotiationError: If the OPTIONS response is unusable.
        """
        self._address: str = address
        self._port: int = port
        self._service: str = service
        self._user_agent: str = user_agent

        if transport is None:
            socket_transport = SocketTransport(address, port, timeout=timeout, read_timeout=read_timeout)
            socket_transport.connect()
            transport = socket_transport
        self._transport: Transport = transport
        self._connected = True

        try:
            if capabilities is None:
                capabilities = negotiate(self._transport, address, service, user_agent)
            else:
                logger.debug(f"Using configured capabilities: {capabilities}")
        except BaseException:
            self.close()
            raise
        self._capabilities: Capabilities = capabilities
        logger.debug(f"Initialized IcapClient for {address}:{port}/{service}")

    @classmethod
    def from_settings(cls, settings: Settings, transport: Optional[Transport] = None) -> "IcapClient":
        """Create a client from a :class:`~icapscan.config.Settings` record."""
        return cls(
            settings.host,
            port=settings.port,
            service=settings.service,
            timeout=settings.timeout,
            read_timeout=settings.read_timeout,
            user_agent=settings.user_agent,
            capabilities=settings.capabilities,
            transport=transport,
        )

    @property
    def host(self) -> str:
        """Return the server host."""
        return self._address

    @property
    def port(self) -> int:
        """Return the server port."""
        return self._port

    @property
    def service(self) -> str:
        """Return the ICAP service name."""
        return self._service

    @property
    def capabilities(self) -> Capabilities:
        """Return the negotiated service capabilities."""
        return self._capabilities

    @property
    def is_connected(self) -> bool:
        """Return True if the client is currently connected to the server."""
        return self._connected

    def close(self) -> None:
        """Close the connection to the ICAP server."""
        if self._connected:
            self._connected = False
            self._transport.close()

    def __enter__(self) -> "IcapClient":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> bool:
        self.close()
        return False

    def scan(self, source: PayloadSource, content_type: Optional[str] = None) -> bool:
        """
        Scan a payload.

        Args:
            source: Payload to scan; closed when the scan ends
            content_type: Content-Type to declare; defaults to the source's

        Returns:
            True if the service allowed the content (204), False otherwise
        """
        return self.scan_verdict(source, content_type) is Verdict.ALLOWED

    def scan_verdict(self, source: PayloadSource, content_type: Optional[str] = None) -> Verdict:
        """
        Scan a payload and return the service's verdict.

        Unlike :meth:`scan`, this tells a blocked payload apart from a status
        code the client does not know how to interpret.

        Raises:
            IcapConnectionError: If not connected or the connection fails.
            IcapProtocolError: If the server's response is malformed.
            IcapUnsupportedModeError: If the service supports neither
                RESPMOD nor REQMOD.
        """
        with source:
            if not self._connected:
                raise IcapConnectionError("Not connected to ICAP server")

            logger.info(f"Scanning {source.size()} bytes with {self.host}/{self.service}")
            session = ScanSession(
                self._transport,
                self._capabilities,
                host=self._address,
                service=self._service,
                user_agent=self._user_agent,
                block_size=self.BUFFER_SIZE,
            )
            try:
                verdict = session.run(source, content_type)
            except (IcapConnectionError, IcapProtocolError):
                # The stream position is unknown after a failed exchange
                self.close()
                raise

        logger.info(f"Scan verdict: {verdict.value}")
        return verdict

    def scan_file(self, filepath: Union[str, Path], content_type: Optional[str] = None) -> bool:
        """
        Convenience method to scan a file.

        Args:
            filepath: Path to the file to scan (string or Path object)
            content_type: Content-Type to declare; guessed from the file name
                when omitted

        Raises:
            FileNotFoundError: If the file does not exist.
        """
        logger.info(f"Scanning file: {filepath}")
        return self.scan(FileSource(filepath, content_type=content_type))

    def scan_bytes(self, data: bytes, content_type: str = DEFAULT_CONTENT_TYPE) -> bool:
        """Convenience method to scan bytes content."""
        return self.scan(BytesSource(data, content_type=content_type))

    def scan_stream(
        self,
        stream: BinaryIO,
        size: Optional[int] = None,
        content_type: str = DEFAULT_CONTENT_TYPE,
    ) -> bool:
        """
        Convenience method to scan a file-like object.

        The stream is read sequentially and left open.

        Args:
            stream: File-like object (must support read())
            size: Number of bytes to scan; required unless the stream can seek
            content_type: Content-Type to declare
        """
        return self.scan(StreamSource(stream, size=size, content_type=content_type, close_stream=False))
