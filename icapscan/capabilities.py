"""OPTIONS negotiation and the capability set derived from it."""

import logging
from dataclasses import dataclass

from ._protocol import HeaderBlock, IcapProtocol, discard_encapsulated, read_header_block
from .exception import IcapNegotiationError, IcapServiceNotFoundError
from .response import IcapResponse
from .transport import Transport

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Capabilities:
    """What an ICAP service advertised in its OPTIONS response."""

    supports_respmod: bool = False
    supports_reqmod: bool = False
    supports_204: bool = False
    supports_preview: bool = False
    preview_size: int = 0

    @classmethod
    def from_options_response(cls, response: IcapResponse) -> "Capabilities":
        """
        Derive capabilities from a parsed OPTIONS response.

        Args:
            response: Parsed OPTIONS response header block

        Returns:
            Capabilities object

        Raises:
            IcapServiceNotFoundError: If the server answered 404.
            IcapNegotiationError: If the status is not 200, or the Methods or
                Preview headers are missing or malformed.
        """
        if response.status_code == 404:
            raise IcapServiceNotFoundError(
                f"ICAP service not found: {response.status_code} {response.status_message}"
            )
        if response.status_code != 200:
            raise IcapNegotiationError(f"unexpected status {response.status_code}")

        # https://tools.ietf.org/html/rfc3507#section-4.10.2
        methods = response.headers.get("Methods")
        if methods is None:
            raise IcapNegotiationError("methods header missing")

        allow = response.headers.get("Allow")
        preview = response.headers.get("Preview")
        preview_size = 0
        if preview is not None:
            try:
                preview_size = int(preview.strip())
            except ValueError:
                raise IcapNegotiationError(f"invalid Preview header: {preview!r}") from None
            if preview_size < 0:
                raise IcapNegotiationError(f"invalid Preview header: {preview!r}")

        return cls(
            supports_respmod="RESPMOD" in methods,
            supports_reqmod="REQMOD" in methods,
            supports_204=allow is not None and "204" in allow,
            supports_preview=preview is not None,
            preview_size=preview_size,
        )


def build_options_request(host: str, service: str, user_agent: str) -> bytes:
    """Build the OPTIONS request for ``icap://<host>/<service>``."""
    block = HeaderBlock(f"OPTIONS icap://{host}/{service} {IcapProtocol.ICAP_VERSION}")
    block.add("Host", host)
    block.add("User-Agent", user_agent)
    block.add("Encapsulated", "null-body=0")
    return block.encode()


def negotiate(
    transport: Transport,
    host: str,
    service: str,
    user_agent: str = IcapProtocol.USER_AGENT,
) -> Capabilities:
    """
    Send OPTIONS over ``transport`` and return the advertised capabilities.

    Args:
        transport: Connected transport
        host: ICAP server host, as used in the request line and Host header
        service: ICAP service name (e.g., "avscan")
        user_agent: Value of the User-Agent header

    Returns:
        Capabilities object
    """
    logger.debug(f"Sending OPTIONS request for service: {service}")
    transport.write(build_options_request(host, service, user_agent))
    transport.flush()

    response = IcapResponse.parse(read_header_block(transport))
    discard_encapsulated(transport, response.headers.get("Encapsulated"))
    logger.debug(f"OPTIONS response: {response.status_code} {response.status_message}")

    capabilities = Capabilities.from_options_response(response)
    logger.info(f"Negotiated capabilities for {host}/{service}: {capabilities}")
    return capabilities
