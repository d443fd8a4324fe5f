"""
scramsasl Encoding Helpers

Base64 codec and string preparation used to build SCRAM messages.

- Base64: strict decoding, invalid input is a protocol error
- SASLprep (RFC 4013) with the "query" semantics of RFC 5802 Section 5.1:
  unassigned code points are allowed
- saslname escaping (RFC 5802 Section 5.1): "," -> "=2C", "=" -> "=3D"
"""

from __future__ import annotations

import base64
import binascii
import stringprep
import unicodedata
from typing import Callable, Tuple

from scramsasl.core.exceptions import ProtocolError


# =============================================================================
# BASE64
# =============================================================================


def b64encode(data: bytes) -> str:
    """Encode bytes as standard Base64 text."""
    return base64.b64encode(bytes(data)).decode("ascii")


def b64decode(text: str) -> bytes:
    """
    Decode standard Base64 text.

    Raises:
        ProtocolError: If text is not valid Base64
    """
    try:
        return base64.b64decode(text.encode("ascii"), validate=True)
    except (binascii.Error, UnicodeEncodeError) as e:
        raise ProtocolError(f"Invalid base64 data: {e}") from e


# =============================================================================
# SASLPREP
# =============================================================================

# RFC 4013 Section 2.3 prohibited output, in the order RFC 3454 lists them
_PROHIBITED_TABLES: Tuple[Tuple[str, Callable[[str], bool]], ...] = (
    ("C.1.2 non-ASCII space", stringprep.in_table_c12),
    ("C.2.1 ASCII control", stringprep.in_table_c21),
    ("C.2.2 non-ASCII control", stringprep.in_table_c22),
    ("C.3 private use", stringprep.in_table_c3),
    ("C.4 non-character code point", stringprep.in_table_c4),
    ("C.5 surrogate code", stringprep.in_table_c5),
    ("C.6 inappropriate for plain text", stringprep.in_table_c6),
    ("C.7 inappropriate for canonical representation", stringprep.in_table_c7),
    ("C.8 change display properties", stringprep.in_table_c8),
    ("C.9 tagging character", stringprep.in_table_c9),
)


def saslprep(text: str) -> str:
    """
    Prepare a username or password with the SASLprep profile.

    Steps (RFC 4013 Section 2):
    1. Map non-ASCII spaces (C.1.2) to SPACE and drop B.1 characters
    2. Normalize with NFKC
    3. Reject prohibited output
    4. Apply the bidirectional rules of RFC 3454 Section 6

    Args:
        text: String to prepare

    Returns:
        The prepared string

    Raises:
        TypeError: If text is not a string
        ValueError: If the string contains prohibited characters
    """
    if not isinstance(text, str):
        raise TypeError("saslprep input must be a string")

    if not text:
        return text

    mapped = "".join(
        " " if stringprep.in_table_c12(c) else c
        for c in text
        if not stringprep.in_table_b1(c)
    )
    prepared = unicodedata.normalize("NFKC", mapped)

    for position, c in enumerate(prepared):
        for table_name, in_table in _PROHIBITED_TABLES:
            if in_table(c):
                raise ValueError(
                    f"Character at position {position} is prohibited (RFC 3454 {table_name})"
                )

    has_rand_al = any(stringprep.in_table_d1(c) for c in prepared)
    if has_rand_al:
        if any(stringprep.in_table_d2(c) for c in prepared):
            raise ValueError("String mixes RandALCat and LCat characters (RFC 3454 Section 6)")
        if not (stringprep.in_table_d1(prepared[0]) and stringprep.in_table_d1(prepared[-1])):
            raise ValueError(
                "RandALCat string must start and end with a RandALCat character "
                "(RFC 3454 Section 6)"
            )

    return prepared


def escape_saslname(name: str) -> str:
    """Escape "=" and "," for use as a SCRAM saslname."""
    return name.replace("=", "=3D").replace(",", "=2C")


def prepare_username(username: str) -> str:
    """
    SASLprep a username and escape it as a saslname.

    Raises:
        ValueError: If the username is empty or contains prohibited characters
    """
    prepared = saslprep(username)
    if not prepared:
        raise ValueError("Username is empty after preparation")
    return escape_saslname(prepared)
