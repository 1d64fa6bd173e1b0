"""
Pytest plugin for testing code that uses the icapscan ICAP client.

This plugin provides fixtures, a scripted transport and a response builder for
testing ICAP integrations without a live ICAP server.

Fixture Categories:
    **Transport Fixtures** (no server required):
        - `fake_transport` - FakeTransport preloaded from the `icap_responses` marker
        - `fake_icap_client` - IcapClient wired to `fake_transport`

    **Response Fixtures**:
        - `icap_response_builder` - Factory for building raw responses
        - `options_response` - OPTIONS response advertising RESPMOD, REQMOD,
          204 and a 1024 byte preview
        - `capabilities` - The Capabilities that `options_response` negotiates to

    **Helper Fixtures**:
        - `sample_clean_content` - Sample bytes for testing
        - `sample_file` - Temporary file Path for testing

Markers:
    @pytest.mark.icap_responses(*responses)
        Raw server responses queued on `fake_transport`, in order.

Example - Scan against a scripted server:
    >>> @pytest.mark.icap_responses(b"ICAP/1.0 204 No Content\\r\\n\\r\\n")
    ... def test_clean(fake_icap_client):
    ...     assert fake_icap_client.scan_bytes(b"safe content")

Example - Negotiation from an OPTIONS response:
    >>> def test_negotiate(fake_transport, options_response):
    ...     fake_transport.queue(options_response)
    ...     client = IcapClient("localhost", transport=fake_transport)
    ...     assert client.capabilities.supports_preview
"""

from __future__ import annotations

from pathlib import Path
from typing import Callable, Generator

import pytest

from icapscan import Capabilities, IcapClient

from .builder import IcapResponseBuilder
from .mock import FakeTransport, TransportEvent

__all__ = [
    # Plugin hooks
    "pytest_configure",
    # Transport fixtures
    "fake_transport",
    "fake_icap_client",
    # Response fixtures
    "icap_response_builder",
    "options_response",
    "capabilities",
    # Helper fixtures
    "sample_clean_content",
    "sample_file",
    # Builders
    "IcapResponseBuilder",
    # Fakes
    "FakeTransport",
    "TransportEvent",
]


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers",
        "icap_responses(*responses): raw ICAP responses queued on fake_transport",
    )


@pytest.fixture
def fake_transport(request) -> FakeTransport:
    """
    Provide a FakeTransport.

    Responses given to the `icap_responses` marker are queued in order; more
    can be added with `fake_transport.queue(...)`.
    """
    transport = FakeTransport()
    marker = request.node.get_closest_marker("icap_responses")
    if marker is not None:
        transport.queue(*marker.args)
    return transport


@pytest.fixture
def icap_response_builder() -> Callable[[], IcapResponseBuilder]:
    """Provide a factory for IcapResponseBuilder instances."""
    return IcapResponseBuilder


@pytest.fixture
def options_response() -> bytes:
    """Raw OPTIONS response advertising RESPMOD, REQMOD, 204 and Preview: 1024."""
    return IcapResponseBuilder().options(methods=["RESPMOD", "REQMOD"], preview=1024).build()


@pytest.fixture
def capabilities() -> Capabilities:
    """Capabilities matching `options_response`."""
    return Capabilities(
        supports_respmod=True,
        supports_reqmod=True,
        supports_204=True,
        supports_preview=True,
        preview_size=1024,
    )


@pytest.fixture
def fake_icap_client(
    fake_transport: FakeTransport, capabilities: Capabilities
) -> Generator[IcapClient, None, None]:
    """
    Provide an IcapClient that talks to `fake_transport`.

    The client uses the `capabilities` fixture, so no OPTIONS response needs
    to be queued.
    """
    client = IcapClient(
        "localhost",
        service="avscan",
        capabilities=capabilities,
        transport=fake_transport,
    )
    yield client
    client.close()


@pytest.fixture
def sample_clean_content() -> bytes:
    """Provide sample clean content for testing."""
    return b"This is clean test content for ICAP scanning."


@pytest.fixture
def sample_file(tmp_path: Path, sample_clean_content: bytes) -> Path:
    """Provide a temporary file with clean content."""
    filepath = tmp_path / "sample.txt"
    filepath.write_bytes(sample_clean_content)
    return filepath
