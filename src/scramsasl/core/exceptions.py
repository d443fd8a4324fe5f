"""
scramsasl Exception Types

Expected exchange failures travel as Failure(ScramFailure) values; the
exceptions below are raised for caller mistakes and configuration errors,
and are what ScramFailure.to_exception() produces for callers that would
rather raise.
"""

from typing import Optional


class ScramError(Exception):
    """Root of every scramsasl exception."""

    def __init__(self, message: str, code: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code


class AuthenticationError(ScramError):
    """
    Credentials were rejected.

    Either side refused the other's proof: the server answered e=, the
    server signature did not match, or the username/password could not be
    prepared at all.
    """

    pass


class ProtocolError(ScramError):
    """
    A server message could not be accepted.

    Malformed attributes, invalid Base64, a nonce that does not extend the
    client nonce, or an unusable iteration count.
    """

    pass


class CryptoError(ScramError):
    """
    A primitive could not be computed.

    Unknown algorithm name, digest and HMAC of different output lengths,
    rejected KDF parameters, or XOR of unequal buffers.
    """

    pass


class StateError(ScramError):
    """
    Exchange step called out of order.

    The client is left exactly as it was; this is a bug in the calling
    code, not something the server caused.
    """

    pass


class InvariantViolation(ScramError):
    """A transition would have produced a context that breaks an invariant."""

    pass


class ConfigurationError(ScramError):
    """
    Client settings are unusable.

    Raised from the constructor for empty algorithm names, nonces outside
    the printable range, GS2 headers requesting channel binding and
    non-positive iteration limits.
    """

    pass
