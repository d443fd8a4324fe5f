"""
scramsasl SCRAM Client

Client side of the SCRAM exchange (RFC 5802, RFC 7677).

One ScramClient instance drives exactly one authentication attempt:

    client = ScramClient("SHA-256", "HmacSHA256")
    first = client.prepare_first_message("user").unwrap()
    # ... send first, receive server_first ...
    final = client.prepare_final_message("pencil", server_first).unwrap()
    # ... send final, receive server_final ...
    result = client.check_server_final_message(server_final)

Every message-producing step returns Success(message) or
Failure(ScramFailure). A Failure always ends the exchange. Calling a step
out of order raises StateError and leaves the exchange untouched.

Derivation (RFC 5802 Section 3):
    SaltedPassword  := Hi(Normalize(password), salt, i)
    ClientKey       := HMAC(SaltedPassword, "Client Key")
    StoredKey       := H(ClientKey)
    AuthMessage     := client-first-message-bare + "," +
                       server-first-message + "," +
                       client-final-message-without-proof
    ClientSignature := HMAC(StoredKey, AuthMessage)
    ClientProof     := ClientKey XOR ClientSignature
    ServerKey       := HMAC(SaltedPassword, "Server Key")
    ServerSignature := HMAC(ServerKey, AuthMessage)
"""

from __future__ import annotations

import re
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

import attrs
import structlog
from returns.result import Failure, Result, Success

from scramsasl.core.crypto import (
    SCRAM_MAX_ITERATIONS,
    compute_client_key,
    compute_server_key,
    compute_signature,
    compute_stored_key,
    constant_time_compare,
    generate_client_nonce,
    output_size,
    salted_password,
    xor_bytes,
)
from scramsasl.core.encoding import b64decode, b64encode, prepare_username, saslprep
from scramsasl.core.exceptions import ConfigurationError, CryptoError, ProtocolError, StateError
from scramsasl.core.state_machine import StateMachineBase, Transition, TransitionEntry
from scramsasl.core.types import FailureReason, ScramFailure, SecretBytes
from scramsasl.scram.types import (
    GS2_HEADER_NO_CHANNEL_BINDING,
    ExchangeAborted,
    FinalMessagePrepared,
    FirstMessagePrepared,
    ScramContext,
    ScramMechanism,
    ScramState,
    ServerFinalMessage,
    ServerFirstMessage,
    ServerSignatureVerified,
    validate_gs2_header,
)

# RFC 5802 "printable": %x21-2B / %x2D-7E
_PRINTABLE_NONCE = re.compile(r"[\x21-\x2b\x2d-\x7e]+")
_ITERATION_COUNT = re.compile(r"(?P<sign>-?)(?P<digits>[0-9]+)")


# =============================================================================
# SCRAM CLIENT STATE MACHINE
# =============================================================================


@attrs.define
class ScramClientStateMachine(
    StateMachineBase[ScramState, ScramContext]
):
    """
    State machine for one client-side SCRAM exchange.

    States:
    - INITIAL: Nothing sent
    - FIRST_PREPARED: client-first-message built
    - FINAL_PREPARED: server-first-message accepted, client-final-message built
    - ENDED: Exchange over (success or failure); no outgoing transitions
    """

    def initial_state(self) -> ScramState:
        return ScramState.INITIAL

    def transition_table(
        self,
    ) -> Dict[Tuple[ScramState, type], TransitionEntry]:
        return {
            (ScramState.INITIAL, FirstMessagePrepared): (
                ScramState.FIRST_PREPARED,
                self._handle_first_prepared,
            ),
            (ScramState.FIRST_PREPARED, FinalMessagePrepared): (
                ScramState.FINAL_PREPARED,
                self._handle_final_prepared,
            ),
            (ScramState.FINAL_PREPARED, ServerSignatureVerified): (
                ScramState.ENDED,
                self._handle_verified,
            ),
            (ScramState.INITIAL, ExchangeAborted): (
                ScramState.ENDED,
                self._handle_aborted,
            ),
            (ScramState.FIRST_PREPARED, ExchangeAborted): (
                ScramState.ENDED,
                self._handle_aborted,
            ),
            (ScramState.FINAL_PREPARED, ExchangeAborted): (
                ScramState.ENDED,
                self._handle_aborted,
            ),
        }

    @staticmethod
    def _handle_first_prepared(
        event: FirstMessagePrepared, ctx: ScramContext
    ) -> ScramContext:
        return attrs.evolve(ctx, client_first_bare=event.client_first_bare)

    @staticmethod
    def _handle_final_prepared(
        event: FinalMessagePrepared, ctx: ScramContext
    ) -> ScramContext:
        return attrs.evolve(
            ctx,
            server_first_message=event.server_first_message,
            server_nonce=event.server_nonce,
            salt=event.salt,
            iterations=event.iterations,
            auth_message=event.auth_message,
            salted_password=event.salted_password,
        )

    @staticmethod
    def _handle_verified(
        event: ServerSignatureVerified, ctx: ScramContext
    ) -> ScramContext:
        return attrs.evolve(ctx, successful=True, salted_password=None)

    @staticmethod
    def _handle_aborted(
        event: ExchangeAborted, ctx: ScramContext
    ) -> ScramContext:
        return attrs.evolve(
            ctx,
            successful=False,
            failure=event.failure,
            salted_password=None,
        )


# =============================================================================
# INVARIANTS
# =============================================================================


def _transcript_requires_messages(state: ScramState, ctx: ScramContext) -> bool:
    """AuthMessage exists only once both first messages are known."""
    if ctx.auth_message is None:
        return True
    return ctx.client_first_bare is not None and ctx.server_first_message is not None


def _server_nonce_extends_client_nonce(state: ScramState, ctx: ScramContext) -> bool:
    """The server nonce is the client nonce with a non-empty server part appended."""
    if ctx.server_nonce is None:
        return True
    return (
        ctx.server_nonce.startswith(ctx.client_nonce)
        and len(ctx.server_nonce) > len(ctx.client_nonce)
    )


def _positive_iterations(state: ScramState, ctx: ScramContext) -> bool:
    return ctx.iterations is None or ctx.iterations > 0


def _success_only_when_ended(state: ScramState, ctx: ScramContext) -> bool:
    return not ctx.successful or state == ScramState.ENDED


# =============================================================================
# SCRAM CLIENT
# =============================================================================


@attrs.define
class ScramClient:
    """
    Client side of one SCRAM authentication attempt.

    Attributes:
        digest_name: Digest used for StoredKey, e.g. "SHA-256"
        hmac_name: HMAC used everywhere else, e.g. "HmacSHA256"
        client_nonce: Nonce to send; generated by nonce_factory when omitted
        nonce_factory: Called once to produce the nonce when none is given.
            The default is random but makes no strength guarantee; supply
            your own for a specific randomness source.
        gs2_header: GS2 header; the default "n,," means no channel binding
            and no authorization identity
        max_iterations: Largest server iteration count accepted

    The digest and HMAC must have equal output lengths (for example
    "SHA-256" with "HmacSHA256"). A mismatch fails the final message.

    Not safe for concurrent use; serialize calls on one instance.
    """

    digest_name: str
    hmac_name: str
    client_nonce: Optional[str] = None
    nonce_factory: Callable[[], str] = attrs.field(default=generate_client_nonce, repr=False)
    gs2_header: str = GS2_HEADER_NO_CHANNEL_BINDING
    max_iterations: int = SCRAM_MAX_ITERATIONS

    # Internal state
    _state_machine: Optional[ScramClientStateMachine] = attrs.field(
        default=None, init=False, repr=False
    )
    _logger: Any = attrs.Factory(lambda: structlog.get_logger())

    def __attrs_post_init__(self) -> None:
        """Validate configuration and set up the state machine."""
        for label, value in (("digest_name", self.digest_name), ("hmac_name", self.hmac_name)):
            if not isinstance(value, str) or not value.strip():
                raise ConfigurationError(f"{label} cannot be empty")

        if self.client_nonce is None:
            self.client_nonce = self.nonce_factory()
        if not isinstance(self.client_nonce, str) or not self.client_nonce:
            raise ConfigurationError("client_nonce cannot be empty")
        if not _PRINTABLE_NONCE.fullmatch(self.client_nonce):
            raise ConfigurationError(
                "client_nonce must contain only printable ASCII characters other than ','"
            )

        validate_gs2_header(self.gs2_header)

        if not isinstance(self.max_iterations, int) or self.max_iterations < 1:
            raise ConfigurationError("max_iterations must be a positive integer")

        self._state_machine = ScramClientStateMachine(
            state=ScramState.INITIAL,
            context=ScramContext(client_nonce=self.client_nonce),
        )
        self._state_machine.add_invariant(
            "transcript_requires_messages", _transcript_requires_messages
        )
        self._state_machine.add_invariant(
            "server_nonce_extends_client_nonce", _server_nonce_extends_client_nonce
        )
        self._state_machine.add_invariant("positive_iterations", _positive_iterations)
        self._state_machine.add_invariant("success_only_when_ended", _success_only_when_ended)

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    @property
    def state(self) -> ScramState:
        """Current exchange state."""
        return self._state_machine.state

    @property
    def context(self) -> ScramContext:
        """Current context (read-only)."""
        return self._state_machine.context

    @property
    def is_ended(self) -> bool:
        """True once the exchange is over, successfully or not."""
        return self.state == ScramState.ENDED

    @property
    def failure(self) -> Optional[ScramFailure]:
        """Why the exchange failed, if it did."""
        return self.context.failure

    def is_successful(self) -> bool:
        """
        Whether the server proved knowledge of the password.

        Raises:
            StateError: If the exchange has not ended yet (check is_ended)
        """
        self._require_state(ScramState.ENDED, "is_successful")
        return self.context.successful

    def get_trace(self) -> List[Transition]:
        """Committed transitions of this exchange."""
        return self._state_machine.get_trace()

    def export_trace_json(self) -> str:
        """Committed transitions as JSON. Secrets are rendered as "<secret>"."""
        return self._state_machine.export_trace_json()

    # -------------------------------------------------------------------------
    # Exchange steps
    # -------------------------------------------------------------------------

    def prepare_first_message(self, username: str) -> Result[str, ScramFailure]:
        """
        Build the client-first-message.

        Args:
            username: User name; SASLprep'd and saslname-escaped

        Returns:
            Success("n,,n=<username>,r=<nonce>") or
            Failure(ScramFailure) with reason PROHIBITED_USERNAME

        Raises:
            StateError: If called more than once
        """
        self._require_state(ScramState.INITIAL, "prepare_first_message")

        try:
            normalized = prepare_username(username)
        except (TypeError, ValueError) as e:
            return self._abort(FailureReason.PROHIBITED_USERNAME, f"Invalid username: {e}")

        client_first_bare = f"n={normalized},r={self.client_nonce}"
        self._commit(FirstMessagePrepared(client_first_bare=client_first_bare))

        self._logger.debug(
            "first_message_prepared",
            gs2_header=self.gs2_header,
            nonce_length=len(self.client_nonce),
        )

        return Success(self.gs2_header + client_first_bare)

    def prepare_final_message(
        self,
        password: str,
        server_first_message: str,
    ) -> Result[str, ScramFailure]:
        """
        Validate the server-first-message and build the client-final-message.

        Args:
            password: User password; SASLprep'd before derivation
            server_first_message: Server reply to the first message

        Returns:
            Success("c=...,r=...,p=...") or Failure(ScramFailure)

        Raises:
            StateError: If prepare_first_message has not been called, or this
                method has already been called
        """
        self._require_state(ScramState.FIRST_PREPARED, "prepare_final_message")

        parsed = ServerFirstMessage.parse(server_first_message)
        if isinstance(parsed, Failure):
            return self._abort_with(parsed.failure())
        server_first = parsed.unwrap()

        if not (
            server_first.nonce.startswith(self.client_nonce)
            and len(server_first.nonce) > len(self.client_nonce)
        ):
            return self._abort(
                FailureReason.NONCE_MISMATCH,
                "Server nonce does not extend the client nonce",
            )

        count = _ITERATION_COUNT.fullmatch(server_first.iterations_text)
        if count is None:
            return self._abort(
                FailureReason.INVALID_ITERATION_COUNT,
                f"Iteration count is not an integer: {server_first.iterations_text[:32]!r}",
            )
        digits = count.group("digits").lstrip("0")
        if count.group("sign") or not digits:
            return self._abort(
                FailureReason.INVALID_ITERATION_COUNT,
                f"Iteration count must be positive, got {server_first.iterations_text[:32]}",
            )
        # Compare lengths first; int() refuses very long digit strings
        if len(digits) > len(str(self.max_iterations)):
            return self._abort(
                FailureReason.ITERATION_COUNT_TOO_HIGH,
                f"Iteration count of {len(digits)} digits exceeds maximum of {self.max_iterations}",
            )
        iterations = int(digits)
        if iterations > self.max_iterations:
            return self._abort(
                FailureReason.ITERATION_COUNT_TOO_HIGH,
                f"Iteration count {iterations} exceeds maximum of {self.max_iterations}",
            )

        try:
            salt = b64decode(server_first.salt_b64)
        except ProtocolError as e:
            return self._abort(FailureReason.MALFORMED_SERVER_FIRST, f"Invalid salt: {e.message}")

        try:
            prepared_password = saslprep(password)
        except (TypeError, ValueError) as e:
            return self._abort(FailureReason.PROHIBITED_PASSWORD, f"Invalid password: {e}")

        final_without_proof = (
            f"c={b64encode(self.gs2_header.encode('utf-8'))},r={server_first.nonce}"
        )
        auth_message = f"{self.context.client_first_bare},{server_first.raw},{final_without_proof}"

        salted: Optional[SecretBytes] = None
        transient: List[SecretBytes] = []
        try:
            digest_size = output_size(self.digest_name)
            hmac_size = output_size(self.hmac_name)
            if digest_size != hmac_size:
                raise CryptoError(
                    f"{self.digest_name} output ({digest_size} bytes) does not match "
                    f"{self.hmac_name} output ({hmac_size} bytes)"
                )

            salted = salted_password(
                self.hmac_name, prepared_password.encode("utf-8"), salt, iterations
            )
            client_key = compute_client_key(self.hmac_name, salted)
            transient.append(client_key)
            stored_key = compute_stored_key(self.digest_name, client_key)
            transient.append(stored_key)
            client_signature = compute_signature(self.hmac_name, stored_key, auth_message)
            transient.append(client_signature)
            client_proof = xor_bytes(client_key, client_signature)
        except CryptoError as e:
            if salted is not None:
                salted.wipe()
            return self._abort(FailureReason.CRYPTO_CONFIGURATION, e.message)
        finally:
            for secret in transient:
                secret.wipe()

        self._commit(FinalMessagePrepared(
            server_first_message=server_first.raw,
            server_nonce=server_first.nonce,
            salt=salt,
            iterations=iterations,
            auth_message=auth_message,
            salted_password=salted,
        ))

        self._logger.debug(
            "final_message_prepared",
            iterations=iterations,
            salt_length=len(salt),
        )

        return Success(f"{final_without_proof},p={b64encode(client_proof)}")

    def check_server_final_message(
        self,
        server_final_message: str,
    ) -> Result[bool, ScramFailure]:
        """
        Verify the server signature in the server-final-message.

        The received signature is compared with
        HMAC(HMAC(SaltedPassword, "Server Key"), AuthMessage).

        Returns:
            Success(True) if the server proved knowledge of the password,
            otherwise Failure(ScramFailure). The exchange ends either way.

        Raises:
            StateError: If prepare_final_message has not succeeded yet, or
                this method has already been called
        """
        self._require_state(ScramState.FINAL_PREPARED, "check_server_final_message")

        parsed = ServerFinalMessage.parse(server_final_message)
        if isinstance(parsed, Failure):
            return self._abort_with(parsed.failure())
        received = parsed.unwrap().signature

        ctx = self.context
        server_key: Optional[SecretBytes] = None
        expected: Optional[SecretBytes] = None
        try:
            server_key = compute_server_key(self.hmac_name, ctx.salted_password)
            expected = compute_signature(self.hmac_name, server_key, ctx.auth_message)
            verified = constant_time_compare(expected, received)
        except CryptoError as e:
            return self._abort(FailureReason.CRYPTO_CONFIGURATION, e.message)
        finally:
            for secret in (server_key, expected):
                if secret is not None:
                    secret.wipe()

        if not verified:
            return self._abort(
                FailureReason.SERVER_SIGNATURE_MISMATCH,
                "Server signature does not match the expected value",
            )

        salted = ctx.salted_password
        self._commit(ServerSignatureVerified())
        if salted is not None:
            salted.wipe()

        self._logger.info("server_signature_verified")

        return Success(True)

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _require_state(self, expected: ScramState, operation: str) -> None:
        if self.state != expected:
            self._logger.warning(
                "call_order_violation",
                operation=operation,
                current_state=self.state.name,
                required_state=expected.name,
            )
            raise StateError(
                f"{operation}() requires state {expected.name}, "
                f"current state is {self.state.name}"
            )

    def _commit(self, event: Any) -> None:
        result = self._state_machine.process_event(event)
        if isinstance(result, Failure):
            raise StateError(result.failure())

    def _abort(self, reason: FailureReason, message: str) -> Failure:
        return self._abort_with(ScramFailure(reason=reason, message=message))

    def _abort_with(self, failure: ScramFailure) -> Failure:
        """End the exchange unsuccessfully and wipe any retained secret."""
        salted = self.context.salted_password
        from_state = self.state
        self._commit(ExchangeAborted(failure=failure))
        if salted is not None:
            salted.wipe()

        self._logger.warning(
            "exchange_aborted",
            reason=failure.reason.name,
            from_state=from_state.name,
        )

        return Failure(failure)


# =============================================================================
# FACTORY FUNCTIONS
# =============================================================================


def create_scram_client(
    mechanism: Union[str, ScramMechanism] = ScramMechanism.SCRAM_SHA_256,
    client_nonce: Optional[str] = None,
    nonce_factory: Callable[[], str] = generate_client_nonce,
    max_iterations: int = SCRAM_MAX_ITERATIONS,
) -> ScramClient:
    """
    Create a ScramClient for a SASL mechanism name.

    Args:
        mechanism: ScramMechanism or its SASL name, e.g. "SCRAM-SHA-1"
        client_nonce: Fixed nonce (tests, replaying vectors)
        nonce_factory: Nonce source used when client_nonce is omitted
        max_iterations: Largest server iteration count accepted

    Returns:
        ScramClient in state INITIAL

    Raises:
        ConfigurationError: Unknown mechanism or invalid settings

    Example:
        client = create_scram_client("SCRAM-SHA-1", client_nonce="fyko+d2lbbFgONRv9qkxdawL")
        client.prepare_first_message("user")
    """
    if not isinstance(mechanism, ScramMechanism):
        mechanism = ScramMechanism.from_name(mechanism)

    return ScramClient(
        digest_name=mechanism.digest_name,
        hmac_name=mechanism.hmac_name,
        client_nonce=client_nonce,
        nonce_factory=nonce_factory,
        max_iterations=max_iterations,
    )
