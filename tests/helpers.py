"""
Shared test data and a simulated SCRAM server for driving client exchanges.

The simulated server is built from the scramsasl primitives, so the RFC
test vectors below are what pin the derivation to independent values.
"""

from __future__ import annotations

from typing import Optional

from scramsasl.core.crypto import (
    compute_client_key,
    compute_server_key,
    compute_signature,
    compute_stored_key,
    constant_time_compare,
    salted_password,
    xor_bytes,
)
from scramsasl.core.encoding import b64decode, b64encode, saslprep
from scramsasl.scram.client import ScramClient, create_scram_client
from scramsasl.scram.types import ScramMechanism


# =============================================================================
# RFC TEST VECTORS
# =============================================================================

# RFC 5802 Section 5, SCRAM-SHA-1
RFC5802_USERNAME = "user"
RFC5802_PASSWORD = "pencil"
RFC5802_CLIENT_NONCE = "fyko+d2lbbFgONRv9qkxdawL"
RFC5802_CLIENT_FIRST = "n,,n=user,r=fyko+d2lbbFgONRv9qkxdawL"
RFC5802_SERVER_FIRST = "r=fyko+d2lbbFgONRv9qkxdawL3rfcNHYJY1ZVvWVs7j,s=QSXCR+Q6sek8bf92,i=4096"
RFC5802_CLIENT_FINAL = (
    "c=biws,r=fyko+d2lbbFgONRv9qkxdawL3rfcNHYJY1ZVvWVs7j,p=v0X8v3Bz2T0CJGbJQyF0X+HI4Ts="
)
RFC5802_SERVER_FINAL = "v=rmF9pqV8S7suAoZWja4dJRkFsKQ="
RFC5802_SALTED_PASSWORD_HEX = "1d96ee3a529b5a5f9e47c01f229a2cb8a6e15f7d"

# RFC 7677 Section 3, SCRAM-SHA-256
RFC7677_USERNAME = "user"
RFC7677_PASSWORD = "pencil"
RFC7677_CLIENT_NONCE = "rOprNGfwEbeRWgbNEkqO"
RFC7677_CLIENT_FIRST = "n,,n=user,r=rOprNGfwEbeRWgbNEkqO"
RFC7677_SERVER_FIRST = (
    "r=rOprNGfwEbeRWgbNEkqO%hvYDpWUa2RaTCAfuxFIlj)hNlF$k0,"
    "s=W22ZaJ0SNY7soEsUEjb6gQ==,i=4096"
)
RFC7677_CLIENT_FINAL = (
    "c=biws,r=rOprNGfwEbeRWgbNEkqO%hvYDpWUa2RaTCAfuxFIlj)hNlF$k0,"
    "p=dHzbZapWIk4jUhN+Ute9ytag9zjfMHgsqmmiz7AndVQ="
)
RFC7677_SERVER_FINAL = "v=6rriTRBi23WpRR/wtup+mMhUZUn/dB5nLTJRsjl95G4="


# =============================================================================
# SIMULATED SERVER
# =============================================================================


class SimulatedScramServer:
    """Server side of one exchange, for tests only."""

    def __init__(
        self,
        password: str,
        salt: bytes = b"simulated-salt",
        iterations: int = 16,
        server_nonce: str = "3rfcNHYJY1ZVvWVs7j",
        mechanism: ScramMechanism = ScramMechanism.SCRAM_SHA_256,
    ) -> None:
        self.password = password
        self.salt = salt
        self.iterations = iterations
        self.server_nonce = server_nonce
        self.mechanism = mechanism
        self.client_first_bare: Optional[str] = None
        self.server_first: Optional[str] = None

    def first_reply(self, client_first: str) -> str:
        """Answer a client-first-message with r=,s=,i=."""
        _, _, bare = client_first.partition(",,")
        self.client_first_bare = bare
        client_nonce = bare.split(",r=", 1)[1]
        self.server_first = (
            f"r={client_nonce}{self.server_nonce},"
            f"s={b64encode(self.salt)},i={self.iterations}"
        )
        return self.server_first

    def final_reply(self, client_final: str) -> str:
        """Verify the client proof and answer with v= or e=invalid-proof."""
        without_proof, _, proof_b64 = client_final.rpartition(",p=")
        auth_message = f"{self.client_first_bare},{self.server_first},{without_proof}"

        hmac_name = self.mechanism.hmac_name
        salted = salted_password(
            hmac_name, saslprep(self.password).encode("utf-8"), self.salt, self.iterations
        )
        stored_key = compute_stored_key(
            self.mechanism.digest_name, compute_client_key(hmac_name, salted)
        )
        client_signature = compute_signature(hmac_name, stored_key, auth_message)
        recovered_client_key = xor_bytes(b64decode(proof_b64), client_signature)
        recovered_stored_key = compute_stored_key(self.mechanism.digest_name, recovered_client_key)
        if not constant_time_compare(recovered_stored_key, stored_key):
            return "e=invalid-proof"

        server_key = compute_server_key(hmac_name, salted)
        server_signature = compute_signature(hmac_name, server_key, auth_message)
        return f"v={b64encode(bytes(server_signature))}"


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================


def make_client(
    mechanism: ScramMechanism = ScramMechanism.SCRAM_SHA_256,
    nonce: str = "clientnonce",
    max_iterations: int = 10_000,
) -> ScramClient:
    """Helper to create a client with a fixed nonce."""
    return create_scram_client(
        mechanism,
        client_nonce=nonce,
        max_iterations=max_iterations,
    )


def run_exchange(
    client: ScramClient,
    server: SimulatedScramServer,
    username: str = "user",
    password: str = "correct horse",
):
    """Helper to drive a full exchange; returns the check result."""
    first = client.prepare_first_message(username).unwrap()
    server_first = server.first_reply(first)
    final = client.prepare_final_message(password, server_first).unwrap()
    server_final = server.final_reply(final)
    return client.check_server_final_message(server_final)
