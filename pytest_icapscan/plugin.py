"""
Pytest plugin entry point for icapscan.
"""

from pytest_icapscan import (
    capabilities,
    fake_icap_client,
    fake_transport,
    icap_response_builder,
    options_response,
    pytest_configure,
    sample_clean_content,
    sample_file,
)

__all__ = [
    "pytest_configure",
    "capabilities",
    "fake_icap_client",
    "fake_transport",
    "icap_response_builder",
    "options_response",
    "sample_clean_content",
    "sample_file",
]
