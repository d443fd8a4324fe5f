"""
scramsasl SCRAM Module

Client side of the SCRAM SASL mechanism family (RFC 5802, RFC 7677).

Components:
- types: States, context, events, mechanism table and wire message parsing
- client: ScramClient exchange state machine and factory

Not covered: channel binding (the GS2 header is "n,,"), mechanism
negotiation, credential storage and the server side.
"""

from scramsasl.scram.types import (
    GS2_HEADER_NO_CHANNEL_BINDING,
    ScramContext,
    ScramMechanism,
    ScramState,
    ServerFinalMessage,
    ServerFirstMessage,
)
from scramsasl.scram.client import (
    ScramClient,
    ScramClientStateMachine,
    create_scram_client,
)

__all__ = [
    # State machine
    "ScramState",
    "ScramContext",
    "ScramClientStateMachine",
    # Mechanisms
    "ScramMechanism",
    "GS2_HEADER_NO_CHANNEL_BINDING",
    # Messages
    "ServerFirstMessage",
    "ServerFinalMessage",
    # Client
    "ScramClient",
    "create_scram_client",
]
