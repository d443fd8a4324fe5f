"""
scramsasl - Client side of the SCRAM SASL authentication exchange

Proves knowledge of a password to a server without sending it, using the
server's salt and iteration count, a keyed-hash derivation chain and a
final mutual-verification signature (RFC 5802).

The package owns the three-message exchange only. Transport, SASL
mechanism negotiation and credential storage belong to the caller.

Example Usage:
    from scramsasl import create_scram_client

    client = create_scram_client("SCRAM-SHA-256")
    first = client.prepare_first_message("user").unwrap()
    final = client.prepare_final_message("pencil", server_first).unwrap()
    result = client.check_server_final_message(server_final)
    if client.is_successful():
        print("Server verified")
"""

from scramsasl.core.exceptions import (
    AuthenticationError,
    ConfigurationError,
    CryptoError,
    ProtocolError,
    ScramError,
    StateError,
)
from scramsasl.core.types import FailureReason, ScramFailure
from scramsasl.scram.client import ScramClient, create_scram_client
from scramsasl.scram.types import ScramMechanism, ScramState

__version__ = "0.1.0"

__all__ = [
    # Main API
    "ScramClient",
    "create_scram_client",
    "ScramMechanism",
    "ScramState",
    # Results
    "FailureReason",
    "ScramFailure",
    # Exceptions
    "ScramError",
    "StateError",
    "ConfigurationError",
    "AuthenticationError",
    "ProtocolError",
    "CryptoError",
    # Metadata
    "__version__",
]
