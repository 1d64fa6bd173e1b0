class IcapException(Exception):
    """Base exception for ICAP errors."""

    pass


class IcapConnectionError(IcapException):
    """Raised when connecting to, reading from or writing to the ICAP server fails."""

    pass


class IcapTimeoutError(IcapConnectionError):
    """Raised when an ICAP connection or read times out."""

    pass


class IcapProtocolError(IcapException):
    """Raised when the server sends a malformed status line or header block."""

    pass


class IcapNegotiationError(IcapException):
    """Raised when the OPTIONS exchange returns an unusable capability set."""

    pass


class IcapServiceNotFoundError(IcapNegotiationError):
    """Raised when the server does not know the requested ICAP service (404)."""

    pass


class IcapUnsupportedModeError(IcapException):
    """Raised when the server advertises neither REQMOD nor RESPMOD."""

    pass
