"""Connection settings for the ICAP client."""

import os
from dataclasses import dataclass
from typing import Optional

from ._protocol import IcapProtocol
from .capabilities import Capabilities


def _float_env(name: str, default: Optional[float]) -> Optional[float]:
    try:
        value = os.getenv(name)
        return float(value) if value is not None else default
    except ValueError:
        return default


def _int_env(name: str, default: int) -> int:
    try:
        value = os.getenv(name)
        return int(value) if value is not None else default
    except ValueError:
        return default


@dataclass
class Settings:
    """
    Everything needed to open a client.

    When ``capabilities`` is set, the client trusts it and skips the OPTIONS
    exchange.
    """

    host: str
    port: int = IcapProtocol.DEFAULT_PORT
    service: str = "avscan"
    user_agent: str = IcapProtocol.USER_AGENT
    timeout: float = 10.0
    read_timeout: Optional[float] = None
    capabilities: Optional[Capabilities] = None


def load_settings(host: Optional[str] = None) -> Settings:
    """Load settings from ``ICAPSCAN_*`` environment variables.

    Args:
        host: Server host; overrides ``ICAPSCAN_HOST``

    Raises:
        ValueError: If no host is given and ``ICAPSCAN_HOST`` is unset.
    """
    host = host or os.getenv("ICAPSCAN_HOST")
    if not host:
        raise ValueError("ICAP host is required (set ICAPSCAN_HOST)")
    return Settings(
        host=host,
        port=_int_env("ICAPSCAN_PORT", IcapProtocol.DEFAULT_PORT),
        service=os.getenv("ICAPSCAN_SERVICE", "avscan"),
        user_agent=os.getenv("ICAPSCAN_USER_AGENT", IcapProtocol.USER_AGENT),
        timeout=_float_env("ICAPSCAN_TIMEOUT", 10.0),
        read_timeout=_float_env("ICAPSCAN_READ_TIMEOUT", None),
    )
