"""
scramsasl Core Types

Value types shared by the primitives layer and the SCRAM exchange.

Design Principles:
- Immutable: value objects use frozen attrs classes
- Secret material is held in wipeable buffers, never in plain bytes fields
- Failures are data (ScramFailure), carried inside returns.Result
"""

from __future__ import annotations

import hmac
from enum import Enum, auto
from typing import Optional, Type

import attrs
from attrs import field, validators

from scramsasl.core.exceptions import (
    AuthenticationError,
    CryptoError,
    ProtocolError,
    ScramError,
)


# =============================================================================
# SECRET BUFFERS
# =============================================================================


@attrs.define(eq=False, slots=True, repr=False)
class SecretBytes:
    """
    Mutable buffer for derived key material.

    The content is overwritten with zeros by wipe(). Python may still hold
    copies produced by bytes(secret) or by the hashing backend; wipe() only
    covers the buffer owned by this object.

    INVARIANT: after wipe(), every byte of the buffer is zero
    """

    _buffer: bytearray = field(converter=bytearray, alias="data")
    _wiped: bool = field(default=False, init=False)

    def __bytes__(self) -> bytes:
        if self._wiped:
            raise ValueError("Secret has been wiped")
        return bytes(self._buffer)

    def __len__(self) -> int:
        return len(self._buffer)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, SecretBytes):
            other = bytes(other._buffer)
        if not isinstance(other, (bytes, bytearray)):
            return NotImplemented
        return hmac.compare_digest(bytes(self._buffer), bytes(other))

    def __repr__(self) -> str:
        state = "wiped" if self._wiped else f"{len(self._buffer)} bytes"
        return f"SecretBytes(<{state}>)"

    @property
    def is_wiped(self) -> bool:
        """True once wipe() has been called."""
        return self._wiped

    def wipe(self) -> None:
        """Overwrite the buffer with zeros."""
        for i in range(len(self._buffer)):
            self._buffer[i] = 0
        self._wiped = True


# =============================================================================
# FAILURES
# =============================================================================


class FailureReason(Enum):
    """Why an exchange step failed. Every failure ends the exchange."""

    PROHIBITED_USERNAME = auto()
    PROHIBITED_PASSWORD = auto()
    MALFORMED_SERVER_FIRST = auto()
    NONCE_MISMATCH = auto()
    INVALID_ITERATION_COUNT = auto()
    ITERATION_COUNT_TOO_HIGH = auto()
    MALFORMED_SERVER_FINAL = auto()
    SERVER_ERROR = auto()
    SERVER_SIGNATURE_MISMATCH = auto()
    CRYPTO_CONFIGURATION = auto()

    @property
    def exception_type(self) -> Type[ScramError]:
        """Exception class a failure with this reason maps onto."""
        if self is FailureReason.CRYPTO_CONFIGURATION:
            return CryptoError
        if self in (
            FailureReason.PROHIBITED_USERNAME,
            FailureReason.PROHIBITED_PASSWORD,
            FailureReason.SERVER_ERROR,
            FailureReason.SERVER_SIGNATURE_MISMATCH,
        ):
            return AuthenticationError
        return ProtocolError


@attrs.define(frozen=True, slots=True)
class ScramFailure:
    """
    Typed failure returned inside Failure(...) by the exchange.

    Attributes:
        reason: Failure category
        message: Human-readable description (never contains secrets)
        server_error: Value of the server's e= attribute, if it sent one
    """

    reason: FailureReason = field(validator=validators.instance_of(FailureReason))
    message: str = field(validator=[validators.instance_of(str), validators.min_len(1)])
    server_error: Optional[str] = None

    def to_exception(self) -> ScramError:
        """Build the matching exception for callers that prefer raising."""
        return self.reason.exception_type(self.message)

    def __str__(self) -> str:
        return f"{self.reason.name}: {self.message}"
