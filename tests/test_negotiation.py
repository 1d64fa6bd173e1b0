"""
Tests for the OPTIONS exchange and the capabilities derived from it.
"""

import pytest

from icapscan import Capabilities, IcapClient, IcapResponse
from icapscan.capabilities import build_options_request, negotiate
from icapscan.exception import IcapNegotiationError, IcapServiceNotFoundError
from pytest_icapscan import FakeTransport, IcapResponseBuilder


def test_options_request_wire_format():
    """Test the exact bytes of the OPTIONS request."""
    assert build_options_request("icap.local", "avscan", "agent/1.0") == (
        b"OPTIONS icap://icap.local/avscan ICAP/1.0\r\n"
        b"Host: icap.local\r\n"
        b"User-Agent: agent/1.0\r\n"
        b"Encapsulated: null-body=0\r\n"
        b"\r\n"
    )


def test_full_capabilities(options_response, capabilities):
    """Test Methods, Allow and Preview all advertised."""
    response = IcapResponse.parse(options_response)

    assert Capabilities.from_options_response(response) == capabilities


def test_respmod_only_without_preview():
    """Test a server that supports RESPMOD only and no preview."""
    response = (
        IcapResponseBuilder().options(methods=["RESPMOD"], preview=None, allow_204=False).parse()
    )

    assert Capabilities.from_options_response(response) == Capabilities(supports_respmod=True)


def test_reqmod_only():
    """Test a server that supports REQMOD only."""
    response = IcapResponseBuilder().options(methods=["REQMOD"], preview=0).parse()

    capabilities = Capabilities.from_options_response(response)

    assert not capabilities.supports_respmod
    assert capabilities.supports_reqmod
    assert capabilities.supports_preview
    assert capabilities.preview_size == 0


def test_allow_without_204():
    """Test that an Allow header without 204 does not enable 204 support."""
    response = IcapResponseBuilder().options().with_header("Allow", "trailers").parse()

    assert not Capabilities.from_options_response(response).supports_204


def test_missing_methods_header():
    """Test that a 200 response without Methods fails negotiation."""
    response = IcapResponseBuilder().options().without_header("Methods").parse()

    with pytest.raises(IcapNegotiationError) as exc_info:
        Capabilities.from_options_response(response)

    assert "methods header missing" in str(exc_info.value)


@pytest.mark.parametrize("preview", ["abc", "", "-1", "10.5"])
def test_invalid_preview_header(preview):
    """Test that a Preview header that is not a valid size fails negotiation."""
    response = IcapResponseBuilder().options().with_header("Preview", preview).parse()

    with pytest.raises(IcapNegotiationError):
        Capabilities.from_options_response(response)


def test_404_raises_service_not_found():
    """Test that a 404 OPTIONS response raises IcapServiceNotFoundError."""
    response = IcapResponseBuilder().error(404, "ICAP Service not found").parse()

    with pytest.raises(IcapServiceNotFoundError):
        Capabilities.from_options_response(response)


@pytest.mark.parametrize("status_code", [204, 403, 500, 503])
def test_unexpected_status(status_code):
    """Test that any other status fails negotiation."""
    response = IcapResponseBuilder().with_status(status_code, "Whatever").parse()

    with pytest.raises(IcapNegotiationError) as exc_info:
        Capabilities.from_options_response(response)

    assert not isinstance(exc_info.value, IcapServiceNotFoundError)
    assert f"unexpected status {status_code}" in str(exc_info.value)


def test_negotiation_is_idempotent(options_response):
    """Test that the same OPTIONS text always yields identical capabilities."""
    first = negotiate(FakeTransport(options_response), "localhost", "avscan")
    second = negotiate(FakeTransport(options_response), "localhost", "avscan")

    assert first == second
    assert hash(first) == hash(second)


def test_negotiate_reads_only_the_header_block(options_response):
    """Test that negotiation does not consume bytes past the blank line."""
    transport = FakeTransport(options_response, b"ICAP/1.0 204 No Content\r\n\r\n")

    negotiate(transport, "localhost", "avscan")

    assert transport.unread == b"ICAP/1.0 204 No Content\r\n\r\n"


def test_client_negotiates_on_construction(fake_transport, options_response, capabilities):
    """Test that building a client sends OPTIONS and stores the capabilities."""
    fake_transport.queue(options_response)

    client = IcapClient("icap.local", service="avscan", transport=fake_transport)

    assert client.capabilities == capabilities
    assert client.is_connected
    assert fake_transport.written.startswith(b"OPTIONS icap://icap.local/avscan ICAP/1.0\r\n")


def test_client_construction_fails_and_closes_on_404(fake_transport):
    """Test that a failed negotiation closes the connection."""
    fake_transport.queue(IcapResponseBuilder().error(404, "Service Not Found").build())

    with pytest.raises(IcapServiceNotFoundError):
        IcapClient("localhost", service="missing", transport=fake_transport)

    assert fake_transport.closed


def test_client_with_known_capabilities_skips_options(fake_transport, capabilities):
    """Test that configured capabilities bypass the OPTIONS exchange."""
    client = IcapClient("localhost", capabilities=capabilities, transport=fake_transport)

    assert client.capabilities is capabilities
    assert fake_transport.written == b""
