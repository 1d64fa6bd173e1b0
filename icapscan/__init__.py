import logging

from .capabilities import Capabilities
from .config import Settings, load_settings
from .exception import (
    IcapConnectionError,
    IcapException,
    IcapNegotiationError,
    IcapProtocolError,
    IcapServiceNotFoundError,
    IcapTimeoutError,
    IcapUnsupportedModeError,
)
from .icap import IcapClient
from .response import IcapResponse, Verdict
from .source import BytesSource, FileSource, StreamSource

# Set up logging with NullHandler to avoid "No handler found" warnings
logging.getLogger(__name__).addHandler(logging.NullHandler())

__version__ = "0.1.0"

__all__ = [
    "BytesSource",
    "Capabilities",
    "FileSource",
    "IcapClient",
    "IcapResponse",
    "Settings",
    "StreamSource",
    "Verdict",
    "load_settings",
    "IcapException",
    "IcapConnectionError",
    "IcapNegotiationError",
    "IcapProtocolError",
    "IcapServiceNotFoundError",
    "IcapTimeoutError",
    "IcapUnsupportedModeError",
]
