"""
scramsasl SCRAM Types

Exchange states, context, state machine events and wire message parsing
for the client side of RFC 5802.

Wire messages (attribute=value pairs separated by commas):
    client-first:  n,,n=<username>,r=<client-nonce>
    server-first:  r=<nonce>,s=<base64-salt>,i=<iterations>
    client-final:  c=<base64(gs2-header)>,r=<nonce>,p=<base64-proof>
    server-final:  v=<base64-signature>
Either server message may instead be e=<server-error-value>.
"""

from __future__ import annotations

import re
from enum import Enum, auto
from typing import Optional

import attrs
from attrs import field
from returns.result import Failure, Result, Success

from scramsasl.core.encoding import b64decode
from scramsasl.core.exceptions import ConfigurationError, ProtocolError
from scramsasl.core.types import FailureReason, ScramFailure, SecretBytes


# =============================================================================
# GS2 HEADER
# =============================================================================

# "n": client does not support channel binding; empty authzid
GS2_HEADER_NO_CHANNEL_BINDING = "n,,"

_GS2_HEADER = re.compile(r"(?P<flag>[ny]|p=[^,]*),(?:a=[^,]+)?,")


def validate_gs2_header(header: str) -> str:
    """
    Check a GS2 header is usable by this client.

    Raises:
        ConfigurationError: Malformed header, or one requesting channel binding
    """
    if not isinstance(header, str):
        raise ConfigurationError("gs2_header must be a string")
    match = _GS2_HEADER.fullmatch(header)
    if match is None:
        raise ConfigurationError(f"Malformed GS2 header: {header!r}")
    if match.group("flag").startswith("p="):
        raise ConfigurationError("Channel binding is not supported")
    return header


# =============================================================================
# MECHANISMS
# =============================================================================


class ScramMechanism(Enum):
    """Registered SCRAM SASL mechanism names and their hash."""

    SCRAM_SHA_1 = "SCRAM-SHA-1"
    SCRAM_SHA_224 = "SCRAM-SHA-224"
    SCRAM_SHA_256 = "SCRAM-SHA-256"
    SCRAM_SHA_384 = "SCRAM-SHA-384"
    SCRAM_SHA_512 = "SCRAM-SHA-512"

    @property
    def digest_name(self) -> str:
        """Digest name, e.g. "SHA-256"."""
        return self.value[len("SCRAM-"):]

    @property
    def hmac_name(self) -> str:
        """HMAC name, e.g. "HmacSHA256"."""
        return "Hmac" + self.digest_name.replace("-", "")

    @classmethod
    def from_name(cls, name: str) -> ScramMechanism:
        """
        Look up a mechanism by its SASL name (case-insensitive).

        Raises:
            ConfigurationError: Unknown mechanism name
        """
        wanted = name.strip().upper() if isinstance(name, str) else ""
        for mechanism in cls:
            if mechanism.value == wanted:
                return mechanism
        raise ConfigurationError(f"Unknown SCRAM mechanism: {name!r}")


# =============================================================================
# SCRAM STATE MACHINE
# =============================================================================


class ScramState(Enum):
    """
    Client exchange states.

    INITIAL -> FIRST_PREPARED -> FINAL_PREPARED -> ENDED, and any
    non-terminal state may jump straight to ENDED on failure.
    """

    INITIAL = auto()
    FIRST_PREPARED = auto()
    FINAL_PREPARED = auto()
    ENDED = auto()


@attrs.define
class ScramContext:
    """
    Client exchange context.

    Updated only through state machine transitions.
    """

    client_nonce: str = ""

    # Set when the first message is prepared
    client_first_bare: Optional[str] = None

    # Set when the final message is prepared
    server_first_message: Optional[str] = None
    server_nonce: Optional[str] = None
    salt: Optional[bytes] = None
    iterations: Optional[int] = None
    auth_message: Optional[str] = None
    salted_password: Optional[SecretBytes] = field(default=None, repr=False)

    # Outcome
    successful: bool = False
    failure: Optional[ScramFailure] = None


@attrs.define(frozen=True, slots=True)
class FirstMessagePrepared:
    """Event: client-first-message built."""

    client_first_bare: str


@attrs.define(frozen=True, slots=True)
class FinalMessagePrepared:
    """Event: server-first-message accepted and client-final-message built."""

    server_first_message: str
    server_nonce: str
    salt: bytes
    iterations: int
    auth_message: str
    salted_password: SecretBytes = field(repr=False)


@attrs.define(frozen=True, slots=True)
class ServerSignatureVerified:
    """Event: server-final-message carried the expected signature."""


@attrs.define(frozen=True, slots=True)
class ExchangeAborted:
    """Event: a step failed; the exchange ends unsuccessfully."""

    failure: ScramFailure


# =============================================================================
# WIRE MESSAGES
# =============================================================================

# Extensions after i= are allowed; a leading mandatory extension (m=) is not
_SERVER_FIRST = re.compile(
    r"r=(?P<nonce>[^,]+),s=(?P<salt>[^,]+),i=(?P<iterations>[^,]+)(?:,.*)?",
    re.DOTALL,
)
_SERVER_FINAL = re.compile(r"v=(?P<verifier>[^,]+)(?:,.*)?", re.DOTALL)
_SERVER_ERROR = re.compile(r"e=(?P<error>[^,]+)(?:,.*)?", re.DOTALL)


@attrs.define(frozen=True, slots=True)
class ServerFirstMessage:
    """
    Fields of a server-first-message, still as wire text.

    Validation of the nonce binding and the iteration count needs the
    client's context and happens in the client.
    """

    nonce: str
    salt_b64: str
    iterations_text: str
    raw: str = field(repr=False)

    @classmethod
    def parse(cls, text: str) -> Result[ServerFirstMessage, ScramFailure]:
        """Parse server-first-message text."""
        if not isinstance(text, str):
            return Failure(ScramFailure(
                reason=FailureReason.MALFORMED_SERVER_FIRST,
                message="Server first message must be text",
            ))

        error = _SERVER_ERROR.fullmatch(text)
        if error is not None:
            return Failure(ScramFailure(
                reason=FailureReason.SERVER_ERROR,
                message=f"Server rejected the exchange: {error.group('error')}",
                server_error=error.group("error"),
            ))

        match = _SERVER_FIRST.fullmatch(text)
        if match is None:
            return Failure(ScramFailure(
                reason=FailureReason.MALFORMED_SERVER_FIRST,
                message="Server first message does not match r=...,s=...,i=...",
            ))

        return Success(cls(
            nonce=match.group("nonce"),
            salt_b64=match.group("salt"),
            iterations_text=match.group("iterations"),
            raw=text,
        ))


@attrs.define(frozen=True, slots=True)
class ServerFinalMessage:
    """Decoded server signature from a server-final-message."""

    signature: bytes = field(repr=False)

    @classmethod
    def parse(cls, text: str) -> Result[ServerFinalMessage, ScramFailure]:
        """Parse server-final-message text."""
        if not isinstance(text, str):
            return Failure(ScramFailure(
                reason=FailureReason.MALFORMED_SERVER_FINAL,
                message="Server final message must be text",
            ))

        error = _SERVER_ERROR.fullmatch(text)
        if error is not None:
            return Failure(ScramFailure(
                reason=FailureReason.SERVER_ERROR,
                message=f"Server rejected the client proof: {error.group('error')}",
                server_error=error.group("error"),
            ))

        match = _SERVER_FINAL.fullmatch(text)
        if match is None:
            return Failure(ScramFailure(
                reason=FailureReason.MALFORMED_SERVER_FINAL,
                message="Server final message does not match v=...",
            ))

        try:
            signature = b64decode(match.group("verifier"))
        except ProtocolError as e:
            return Failure(ScramFailure(
                reason=FailureReason.MALFORMED_SERVER_FINAL,
                message=f"Server signature is not valid base64: {e.message}",
            ))

        return Success(cls(signature=signature))
