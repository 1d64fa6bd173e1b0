"""A single REQMOD/RESPMOD adaptation transaction."""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional

from ._protocol import (
    CHUNK_TERMINATOR,
    IEOF_TERMINATOR,
    HeaderBlock,
    IcapMethod,
    IcapProtocol,
    discard_encapsulated,
    encapsulated_header_value,
    encode_chunk,
    read_header_block,
)
from .capabilities import Capabilities
from .exception import IcapProtocolError, IcapUnsupportedModeError
from .response import IcapResponse, Verdict
from .source import PayloadSource
from .transport import Transport

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TransferTarget:
    """The payload a session is about to send."""

    mode: IcapMethod
    size: int
    content_type: str
    url: Optional[str] = None


def verdict_for_status(status_code: int) -> Verdict:
    """Map a final ICAP status code to a verdict."""
    if status_code == 204:
        return Verdict.ALLOWED
    if status_code == 403:
        return Verdict.BLOCKED
    if status_code == 200:
        # The server modified the content, so the original is rejected.
        logger.debug("Response code 200, content marked as rejected")
        return Verdict.BLOCKED
    logger.warning(f"ICAP unhandled response code: {status_code}")
    return Verdict.UNDETERMINED


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ScanSession:
    """
    Drives one adaptation transaction over an already negotiated connection.

    A session holds no state between runs; everything a transaction needs
    lives in the locals of :meth:`run`.

    Args:
        transport: Connected transport, used exclusively for this transaction
        capabilities: Capabilities negotiated with the service
        host: ICAP server host
        service: ICAP service name
        user_agent: Value of the User-Agent headers
        block_size: Size of the chunks the remainder is streamed in
        clock: Returns the timestamp used for the embedded Date header
    """

    def __init__(
        self,
        transport: Transport,
        capabilities: Capabilities,
        host: str,
        service: str,
        user_agent: str = IcapProtocol.USER_AGENT,
        block_size: int = IcapProtocol.BUFFER_SIZE,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._transport = transport
        self._capabilities = capabilities
        self._host = host
        self._service = service
        self._user_agent = user_agent
        self._block_size = block_size
        self._clock = clock

    def select_mode(self) -> IcapMethod:
        """Pick RESPMOD when the service supports it, REQMOD otherwise.

        Raises:
            IcapUnsupportedModeError: If the service supports neither.
        """
        if self._capabilities.supports_respmod:
            return IcapMethod.RESPMOD
        if self._capabilities.supports_reqmod:
            return IcapMethod.REQMOD
        raise IcapUnsupportedModeError(
            f"ICAP service {self._service} advertises neither RESPMOD nor REQMOD"
        )

    def compute_preview_size(self, payload_size: int) -> int:
        if self._capabilities.supports_preview:
            return min(payload_size, self._capabilities.preview_size)
        return payload_size

    def run(self, source: PayloadSource, content_type: Optional[str] = None) -> Verdict:
        """
        Send ``source`` to the service and return its verdict.

        The caller keeps ownership of ``source`` and is responsible for
        closing it.

        Args:
            source: Payload to scan
            content_type: Content-Type to declare; defaults to the source's

        Returns:
            Verdict of the service
        """
        mode = self.select_mode()
        target = TransferTarget(
            mode=mode,
            size=source.size(),
            content_type=content_type or source.content_type,
            url=f"/{self._service}" if mode is IcapMethod.REQMOD else None,
        )
        preview_size = self.compute_preview_size(target.size)
        logger.debug(
            f"Sending {mode.value}: {target.size} bytes, preview {preview_size} bytes, "
            f"preview supported: {self._capabilities.supports_preview}"
        )

        self._send_headers(target, preview_size)

        sent = 0
        if target.size > 0:
            preview = self._read(source, preview_size)
            self._transport.write(encode_chunk(preview))
            sent += len(preview)

        if target.size <= preview_size:
            # The preview already holds the whole payload
            self._transport.write(IEOF_TERMINATOR)
            self._transport.flush()
            self._check_sent(target, sent)
            return self._await_verdict()

        if preview_size != 0:
            self._transport.write(CHUNK_TERMINATOR)
        self._transport.flush()

        if self._capabilities.supports_preview:
            response = self._receive()
            if not response.is_continue:
                return verdict_for_status(response.status_code)
            logger.debug("Received 100 Continue, sending remainder of body")

        sent += self._send_remainder(source)
        self._check_sent(target, sent)
        return self._await_verdict()

    @staticmethod
    def _check_sent(target: TransferTarget, sent: int) -> None:
        if sent != target.size:
            logger.warning(f"Payload declared {target.size} bytes but {sent} were sent")

    def _send_headers(self, target: TransferTarget, preview_size: int) -> None:
        if target.mode is IcapMethod.RESPMOD:
            http_headers = HeaderBlock("HTTP/1.1 200 OK")
            http_headers.add_date(self._clock())
        else:
            http_headers = HeaderBlock(f"POST {target.url} HTTP/1.1")
            http_headers.add_date(self._clock())
            http_headers.add("User-Agent", self._user_agent)
        http_headers.add("Content-Length", str(target.size))
        http_headers.add("Content-Type", target.content_type)
        http_block = http_headers.encode()

        icap_headers = HeaderBlock(
            f"{target.mode.value} icap://{self._host}/{self._service} {IcapProtocol.ICAP_VERSION}"
        )
        icap_headers.add_icap_headers(self._host, self._user_agent, preview_size, self._capabilities)
        icap_headers.add("Encapsulated", encapsulated_header_value(target.mode, len(http_block)))

        self._transport.write(icap_headers.encode())
        self._transport.write(http_block)

    def _send_remainder(self, source: PayloadSource) -> int:
        sent = 0
        while True:
            block = self._read(source, self._block_size)
            if not block:
                break
            self._transport.write(encode_chunk(block))
            sent += len(block)
        self._transport.write(CHUNK_TERMINATOR)
        self._transport.flush()
        return sent

    def _await_verdict(self) -> Verdict:
        response = self._receive()
        return verdict_for_status(response.status_code)

    def _receive(self) -> IcapResponse:
        response = IcapResponse.parse(read_header_block(self._transport))
        discard_encapsulated(self._transport, response.headers.get("Encapsulated"))
        logger.debug(f"Scan response: {response.status_code} {response.status_message}")
        return response

    @staticmethod
    def _read(source: PayloadSource, length: int) -> bytes:
        """Read up to ``length`` bytes, stopping early only at end of source."""
        data = bytearray()
        try:
            while len(data) < length:
                block = source.read(length - len(data))
                if not block:
                    break
                data += block
        except OSError as e:
            raise IcapProtocolError(f"Failed to read from payload source: {e}") from e
        return bytes(data)
