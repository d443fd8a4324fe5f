"""
Pytest configuration and shared fixtures for scramsasl tests.
"""

import pytest

from scramsasl.scram.client import ScramClient
from scramsasl.scram.types import ScramMechanism
from tests.helpers import (
    RFC5802_CLIENT_NONCE,
    RFC5802_PASSWORD,
    RFC5802_SERVER_FIRST,
    RFC5802_USERNAME,
    RFC7677_CLIENT_NONCE,
    SimulatedScramServer,
)


# =============================================================================
# CLIENT FIXTURES
# =============================================================================


@pytest.fixture
def sha1_client() -> ScramClient:
    """SCRAM-SHA-1 client with the RFC 5802 nonce."""
    return ScramClient(
        digest_name="SHA-1",
        hmac_name="HmacSHA1",
        client_nonce=RFC5802_CLIENT_NONCE,
    )


@pytest.fixture
def sha256_client() -> ScramClient:
    """SCRAM-SHA-256 client with the RFC 7677 nonce."""
    return ScramClient(
        digest_name="SHA-256",
        hmac_name="HmacSHA256",
        client_nonce=RFC7677_CLIENT_NONCE,
    )


@pytest.fixture
def first_prepared_client(sha1_client: ScramClient) -> ScramClient:
    """SHA-1 client that has already sent its first message."""
    sha1_client.prepare_first_message(RFC5802_USERNAME).unwrap()
    return sha1_client


@pytest.fixture
def final_prepared_client(first_prepared_client: ScramClient) -> ScramClient:
    """SHA-1 client waiting for the RFC 5802 server-final-message."""
    first_prepared_client.prepare_final_message(
        RFC5802_PASSWORD, RFC5802_SERVER_FIRST
    ).unwrap()
    return first_prepared_client


# =============================================================================
# SERVER FIXTURES
# =============================================================================


@pytest.fixture
def simulated_server() -> SimulatedScramServer:
    """Simulated SCRAM-SHA-256 server with a cheap iteration count."""
    return SimulatedScramServer(
        password="correct horse",
        iterations=16,
        mechanism=ScramMechanism.SCRAM_SHA_256,
    )


# =============================================================================
# PYTEST MARKERS
# =============================================================================


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "vectors: marks tests replaying published RFC test vectors"
    )
