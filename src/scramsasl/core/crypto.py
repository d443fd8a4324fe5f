"""
scramsasl Cryptographic Operations

Wrapper around the cryptography library for SCRAM-specific operations.
Uses established libraries - NO custom cryptographic implementations.

Algorithms are addressed by name. Both JCA-style names ("SHA-256",
"HmacSHA256") and IANA/RFC-style names ("sha256", "HMAC-SHA-256") resolve
to the same hash.

Security:
- Constant-time comparison for signatures
- Derived keys are returned as wipeable SecretBytes
"""

from __future__ import annotations

import base64
import hmac
import secrets
from typing import Dict, Type, Union

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives import hmac as crypto_hmac
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from scramsasl.core.exceptions import CryptoError
from scramsasl.core.types import SecretBytes


# Upper bound on server-supplied iteration counts; derivation cost is linear in it
SCRAM_MAX_ITERATIONS = 5_000_000

CLIENT_KEY_LABEL = b"Client Key"
SERVER_KEY_LABEL = b"Server Key"

# 18 random bytes encode to 24 Base64 characters, no padding
CLIENT_NONCE_SIZE = 18

KeyMaterial = Union[bytes, bytearray, SecretBytes]

_HASH_ALGORITHMS: Dict[str, Type[hashes.HashAlgorithm]] = {
    "sha1": hashes.SHA1,
    "sha224": hashes.SHA224,
    "sha256": hashes.SHA256,
    "sha384": hashes.SHA384,
    "sha512": hashes.SHA512,
}


# =============================================================================
# ALGORITHM RESOLUTION
# =============================================================================


def _canonical_name(name: str) -> str:
    canonical = name.strip().lower()
    for sep in ("-", "_", " ", "/"):
        canonical = canonical.replace(sep, "")
    if canonical.startswith("hmac"):
        canonical = canonical[len("hmac"):]
    return canonical


def resolve_hash_algorithm(name: str) -> hashes.HashAlgorithm:
    """
    Resolve an algorithm name to a cryptography hash instance.

    Args:
        name: Digest or HMAC name, e.g. "SHA-256" or "HmacSHA256"

    Returns:
        A fresh hash algorithm instance

    Raises:
        CryptoError: If the name does not denote a supported hash
    """
    if not isinstance(name, str) or not name.strip():
        raise CryptoError("Algorithm name must be a non-empty string")

    algorithm = _HASH_ALGORITHMS.get(_canonical_name(name))
    if algorithm is None:
        raise CryptoError(f"Unsupported algorithm: {name}")
    return algorithm()


def output_size(name: str) -> int:
    """Return the output length in bytes of the named digest or HMAC."""
    return resolve_hash_algorithm(name).digest_size


# =============================================================================
# DIGEST / HMAC
# =============================================================================


def digest(name: str, data: KeyMaterial) -> bytes:
    """
    Compute H(data) with the named hash.

    Raises:
        CryptoError: Unknown or unavailable algorithm
    """
    try:
        h = hashes.Hash(resolve_hash_algorithm(name))
        h.update(bytes(data))
        return h.finalize()
    except UnsupportedAlgorithm as e:
        raise CryptoError(f"Digest {name} not available: {e}") from e


def compute_hmac(name: str, key: KeyMaterial, data: KeyMaterial) -> bytes:
    """
    Compute HMAC(key, data) with the named hash.

    Raises:
        CryptoError: Unknown or unavailable algorithm, or unusable key
    """
    try:
        h = crypto_hmac.HMAC(bytes(key), resolve_hash_algorithm(name))
        h.update(bytes(data))
        return h.finalize()
    except (UnsupportedAlgorithm, TypeError, ValueError) as e:
        raise CryptoError(f"HMAC {name} failed: {e}") from e


# =============================================================================
# KEY DERIVATION
# =============================================================================


def salted_password(
    hmac_name: str,
    password: bytes,
    salt: bytes,
    iterations: int,
) -> SecretBytes:
    """
    Hi(password, salt, i) from RFC 5802 Section 2.2.

    U1 = HMAC(password, salt || INT(1)), Ui = HMAC(password, Ui-1), and the
    result is U1 XOR U2 XOR ... XOR Ui. That is PBKDF2 with HMAC as the PRF
    and a single output block, so the output length equals the HMAC length.

    Args:
        hmac_name: HMAC algorithm name
        password: Normalized password, UTF-8 encoded
        salt: Decoded salt from the server
        iterations: Iteration count (must be positive)

    Returns:
        SecretBytes holding SaltedPassword

    Raises:
        CryptoError: Unknown algorithm or rejected parameters
    """
    if iterations < 1:
        raise CryptoError(f"Iteration count must be positive, got {iterations}")

    algorithm = resolve_hash_algorithm(hmac_name)
    try:
        kdf = PBKDF2HMAC(
            algorithm=algorithm,
            length=algorithm.digest_size,
            salt=salt,
            iterations=iterations,
        )
        return SecretBytes(kdf.derive(password))
    except (UnsupportedAlgorithm, TypeError, ValueError) as e:
        raise CryptoError(f"Key derivation with {hmac_name} failed: {e}") from e


# =============================================================================
# SCRAM-SPECIFIC FUNCTIONS
# =============================================================================


def compute_client_key(hmac_name: str, salted: KeyMaterial) -> SecretBytes:
    """ClientKey := HMAC(SaltedPassword, "Client Key")"""
    return SecretBytes(compute_hmac(hmac_name, salted, CLIENT_KEY_LABEL))


def compute_server_key(hmac_name: str, salted: KeyMaterial) -> SecretBytes:
    """ServerKey := HMAC(SaltedPassword, "Server Key")"""
    return SecretBytes(compute_hmac(hmac_name, salted, SERVER_KEY_LABEL))


def compute_stored_key(digest_name: str, client_key: KeyMaterial) -> SecretBytes:
    """StoredKey := H(ClientKey)"""
    return SecretBytes(digest(digest_name, client_key))


def compute_signature(hmac_name: str, key: KeyMaterial, auth_message: str) -> SecretBytes:
    """
    ClientSignature := HMAC(StoredKey, AuthMessage), or
    ServerSignature := HMAC(ServerKey, AuthMessage)
    """
    return SecretBytes(compute_hmac(hmac_name, key, auth_message.encode("utf-8")))


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================


def xor_bytes(a: KeyMaterial, b: KeyMaterial) -> bytes:
    """
    XOR two equal-length byte strings.

    Raises:
        CryptoError: If the lengths differ
    """
    left, right = bytes(a), bytes(b)
    if len(left) != len(right):
        raise CryptoError(
            f"Cannot XOR buffers of different lengths ({len(left)} and {len(right)})"
        )
    return bytes(x ^ y for x, y in zip(left, right))


def constant_time_compare(a: KeyMaterial, b: KeyMaterial) -> bool:
    """
    Compare two byte strings in constant time.

    Prevents timing attacks on signature comparisons.
    """
    return hmac.compare_digest(bytes(a), bytes(b))


def generate_client_nonce() -> str:
    """
    Generate a printable client nonce.

    Returns:
        24 Base64 characters encoding 18 random bytes (never contains ",")
    """
    return base64.b64encode(secrets.token_bytes(CLIENT_NONCE_SIZE)).decode("ascii")
