"""
Unit tests for scramsasl.scram.types module.

Tests mechanism lookup, GS2 header validation and wire message parsing.
"""

import pytest
from returns.result import Failure, Success

from scramsasl.core.exceptions import ConfigurationError
from scramsasl.core.types import FailureReason
from scramsasl.scram.types import (
    GS2_HEADER_NO_CHANNEL_BINDING,
    ScramContext,
    ScramMechanism,
    ScramState,
    ServerFinalMessage,
    ServerFirstMessage,
    validate_gs2_header,
)
from tests.helpers import RFC5802_SERVER_FIRST, RFC7677_SERVER_FIRST


class TestScramMechanism:
    """Tests for the mechanism table."""

    @pytest.mark.parametrize("mechanism,digest_name,hmac_name", [
        (ScramMechanism.SCRAM_SHA_1, "SHA-1", "HmacSHA1"),
        (ScramMechanism.SCRAM_SHA_224, "SHA-224", "HmacSHA224"),
        (ScramMechanism.SCRAM_SHA_256, "SHA-256", "HmacSHA256"),
        (ScramMechanism.SCRAM_SHA_384, "SHA-384", "HmacSHA384"),
        (ScramMechanism.SCRAM_SHA_512, "SHA-512", "HmacSHA512"),
    ])
    def test_algorithm_names(self, mechanism, digest_name, hmac_name):
        """Test each mechanism's digest and HMAC names."""
        assert mechanism.digest_name == digest_name
        assert mechanism.hmac_name == hmac_name

    def test_from_name(self):
        """Test lookup by SASL name."""
        assert ScramMechanism.from_name("SCRAM-SHA-1") is ScramMechanism.SCRAM_SHA_1

    def test_from_name_case_insensitive(self):
        """Test lookup ignores case and surrounding whitespace."""
        assert ScramMechanism.from_name(" scram-sha-256 ") is ScramMechanism.SCRAM_SHA_256

    @pytest.mark.parametrize("name", ["SCRAM-MD5", "PLAIN", "", None])
    def test_from_name_unknown(self, name):
        """Test unknown names raise ConfigurationError."""
        with pytest.raises(ConfigurationError):
            ScramMechanism.from_name(name)


class TestGs2Header:
    """Tests for GS2 header validation."""

    def test_default_header(self):
        """Test default header is no channel binding, no authzid."""
        assert GS2_HEADER_NO_CHANNEL_BINDING == "n,,"
        assert validate_gs2_header("n,,") == "n,,"

    @pytest.mark.parametrize("header", ["y,,", "n,a=admin,"])
    def test_accepted_headers(self, header):
        """Test headers without channel binding are accepted."""
        assert validate_gs2_header(header) == header

    def test_channel_binding_rejected(self):
        """Test p= header is rejected."""
        with pytest.raises(ConfigurationError, match="Channel binding"):
            validate_gs2_header("p=tls-unique,,")

    @pytest.mark.parametrize("header", ["", "n,", "x,,", "n,,n=user", "n,,\n", None])
    def test_malformed_headers(self, header):
        """Test malformed headers are rejected."""
        with pytest.raises(ConfigurationError):
            validate_gs2_header(header)


class TestScramContext:
    """Tests for the exchange context."""

    def test_defaults(self):
        """Test a fresh context holds only the nonce."""
        ctx = ScramContext(client_nonce="abc")
        assert ctx.client_first_bare is None
        assert ctx.auth_message is None
        assert ctx.successful is False
        assert ctx.failure is None

    def test_repr_hides_salted_password(self):
        """Test salted_password is excluded from repr."""
        assert "salted_password" not in repr(ScramContext(client_nonce="abc"))

    def test_states(self):
        """Test the four exchange states."""
        assert [s.name for s in ScramState] == [
            "INITIAL", "FIRST_PREPARED", "FINAL_PREPARED", "ENDED",
        ]


class TestServerFirstMessage:
    """Tests for server-first-message parsing."""

    def test_parse_rfc5802(self):
        """Test parsing the RFC 5802 server-first-message."""
        result = ServerFirstMessage.parse(RFC5802_SERVER_FIRST)

        assert isinstance(result, Success)
        message = result.unwrap()
        assert message.nonce == "fyko+d2lbbFgONRv9qkxdawL3rfcNHYJY1ZVvWVs7j"
        assert message.salt_b64 == "QSXCR+Q6sek8bf92"
        assert message.iterations_text == "4096"
        assert message.raw == RFC5802_SERVER_FIRST

    def test_parse_nonce_with_special_characters(self):
        """Test nonce may contain %, ), $ and similar."""
        message = ServerFirstMessage.parse(RFC7677_SERVER_FIRST).unwrap()
        assert message.nonce.endswith("%hvYDpWUa2RaTCAfuxFIlj)hNlF$k0")

    def test_trailing_extensions_ignored(self):
        """Test extensions after i= are allowed."""
        message = ServerFirstMessage.parse("r=abc,s=c2FsdA==,i=10,x=ext").unwrap()
        assert message.iterations_text == "10"

    @pytest.mark.parametrize("text", [
        "r=abc,s=c2FsdA==",
        "r=abc,i=10",
        "s=c2FsdA==,r=abc,i=10",
        "m=ext,r=abc,s=c2FsdA==,i=10",
        "r=,s=c2FsdA==,i=10",
        "",
        "garbage",
    ])
    def test_malformed(self, text):
        """Test messages not matching r=,s=,i= are malformed."""
        result = ServerFirstMessage.parse(text)

        assert isinstance(result, Failure)
        assert result.failure().reason == FailureReason.MALFORMED_SERVER_FIRST

    def test_non_string(self):
        """Test non-text input is malformed."""
        result = ServerFirstMessage.parse(b"r=abc,s=c2FsdA==,i=10")
        assert result.failure().reason == FailureReason.MALFORMED_SERVER_FIRST

    def test_trailing_newline_kept_in_iterations(self):
        """Test a trailing newline is not silently dropped from i=."""
        message = ServerFirstMessage.parse("r=abc,s=c2FsdA==,i=10\n").unwrap()
        assert message.iterations_text == "10\n"

    def test_server_error(self):
        """Test e= is reported as a server error."""
        result = ServerFirstMessage.parse("e=unknown-user")

        failure = result.failure()
        assert failure.reason == FailureReason.SERVER_ERROR
        assert failure.server_error == "unknown-user"


class TestServerFinalMessage:
    """Tests for server-final-message parsing."""

    def test_parse(self):
        """Test parsing a verifier."""
        message = ServerFinalMessage.parse("v=rmF9pqV8S7suAoZWja4dJRkFsKQ=").unwrap()
        assert len(message.signature) == 20

    def test_trailing_extensions_ignored(self):
        """Test extensions after v= are allowed."""
        message = ServerFinalMessage.parse("v=YWJj,x=ext").unwrap()
        assert message.signature == b"abc"

    @pytest.mark.parametrize("text", ["", "v=", "x=YWJj", "YWJj", "r=abc,v=YWJj", "v=YWJj\n"])
    def test_malformed(self, text):
        """Test messages not matching v= are malformed."""
        result = ServerFinalMessage.parse(text)
        assert result.failure().reason == FailureReason.MALFORMED_SERVER_FINAL

    def test_invalid_base64(self):
        """Test verifier that is not Base64 is malformed."""
        result = ServerFinalMessage.parse("v=not*base64")
        assert result.failure().reason == FailureReason.MALFORMED_SERVER_FINAL

    def test_server_error(self):
        """Test e= is reported as a server error."""
        failure = ServerFinalMessage.parse("e=invalid-proof").failure()

        assert failure.reason == FailureReason.SERVER_ERROR
        assert failure.server_error == "invalid-proof"
        assert "invalid-proof" in failure.message
