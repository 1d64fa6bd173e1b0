"""
Integration tests for icapscan against a c-icap server with ClamAV.

The server is started from docker/docker-compose.yml through testcontainers.
These tests are deselected by default; run them with ``pytest -m integration``.
"""

import pytest

from icapscan import BytesSource, IcapClient, Verdict

EICAR_TEST_STRING = (
    b"X5O!P%@AP[4\\PZX54(P^)7CC)7}$EICAR-STANDARD-ANTIVIRUS-TEST-FILE!$H+H*"
)


@pytest.mark.integration
def test_negotiates_capabilities(icap_service):
    """Test OPTIONS negotiation against real ICAP server."""
    with IcapClient(
        icap_service["host"], icap_service["port"], service=icap_service["service"]
    ) as client:
        assert client.capabilities.supports_respmod or client.capabilities.supports_reqmod


@pytest.mark.integration
def test_scan_clean_content(icap_service):
    """Test scanning clean content."""
    with IcapClient(
        icap_service["host"], icap_service["port"], service=icap_service["service"]
    ) as client:
        assert client.scan_bytes(b"This is clean text content", content_type="text/plain")


@pytest.mark.integration
def test_scan_eicar_virus(icap_service):
    """Test detection of EICAR test virus."""
    with IcapClient(
        icap_service["host"], icap_service["port"], service=icap_service["service"]
    ) as client:
        verdict = client.scan_verdict(BytesSource(EICAR_TEST_STRING))
        assert verdict is not Verdict.ALLOWED


@pytest.mark.integration
def test_scan_file_larger_than_preview(icap_service, tmp_path):
    """Test a file that needs the 100 Continue round trip."""
    filepath = tmp_path / "large.txt"
    filepath.write_bytes(b"clean line of text\n" * 10_000)

    with IcapClient(
        icap_service["host"], icap_service["port"], service=icap_service["service"]
    ) as client:
        assert client.scan_file(filepath)


@pytest.mark.integration
def test_unknown_service_is_rejected(icap_service):
    """Test that a missing service fails negotiation."""
    from icapscan import IcapServiceNotFoundError

    with pytest.raises(IcapServiceNotFoundError):
        IcapClient(icap_service["host"], icap_service["port"], service="no-such-service")
