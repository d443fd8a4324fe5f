"""
scramsasl Core Module

Foundational pieces used by the SCRAM exchange.

Components:
- types: SecretBytes, FailureReason, ScramFailure
- state_machine: Base state machine with transition table and invariant checking
- crypto: Digest/HMAC by name, Hi(), key derivation helpers
- encoding: Base64 codec, SASLprep and saslname escaping
- exceptions: Custom exception types
"""

from scramsasl.core.types import (
    FailureReason,
    ScramFailure,
    SecretBytes,
)
from scramsasl.core.state_machine import StateMachineBase, Transition
from scramsasl.core.exceptions import (
    ScramError,
    AuthenticationError,
    ProtocolError,
    CryptoError,
    StateError,
    InvariantViolation,
    ConfigurationError,
)

__all__ = [
    # Types
    "FailureReason",
    "ScramFailure",
    "SecretBytes",
    # State Machine
    "StateMachineBase",
    "Transition",
    # Exceptions
    "ScramError",
    "AuthenticationError",
    "ProtocolError",
    "CryptoError",
    "StateError",
    "InvariantViolation",
    "ConfigurationError",
]
