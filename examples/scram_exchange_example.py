#!/usr/bin/env python3
"""
SCRAM Client Exchange Example

Demonstrates how to use scramsasl's ScramClient to authenticate against a
SCRAM server, replaying the published exchanges.

Features:
1. SCRAM-SHA-1 exchange from RFC 5802 Section 5
2. SCRAM-SHA-256 exchange from RFC 7677 Section 3
3. Handling a server signature that does not verify
4. Call-order enforcement
5. Transition trace export
"""

import json

import structlog
from returns.result import Failure, Success

from scramsasl import (
    ScramMechanism,
    StateError,
    create_scram_client,
)


def main():
    """Demonstrate client-side SCRAM authentication."""

    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.dev.ConsoleRenderer(),
        ],
    )

    print("=" * 70)
    print("scramsasl - Client-Side SCRAM Authentication")
    print("=" * 70)
    print()

    # ==========================================================================
    # EXAMPLE 1: RFC 5802 SCRAM-SHA-1
    # ==========================================================================
    print("1. RFC 5802 SCRAM-SHA-1 Exchange")
    print("-" * 40)

    client = create_scram_client(
        ScramMechanism.SCRAM_SHA_1,
        client_nonce="fyko+d2lbbFgONRv9qkxdawL",
    )

    client_first = client.prepare_first_message("user").unwrap()
    print(f"   C: {client_first}")

    server_first = "r=fyko+d2lbbFgONRv9qkxdawL3rfcNHYJY1ZVvWVs7j,s=QSXCR+Q6sek8bf92,i=4096"
    print(f"   S: {server_first}")

    client_final = client.prepare_final_message("pencil", server_first).unwrap()
    print(f"   C: {client_final}")

    server_final = "v=rmF9pqV8S7suAoZWja4dJRkFsKQ="
    print(f"   S: {server_final}")

    result = client.check_server_final_message(server_final)
    print(f"   Server Verified: {isinstance(result, Success)}")
    print(f"   Final State: {client.state.name}")
    print()

    # ==========================================================================
    # EXAMPLE 2: RFC 7677 SCRAM-SHA-256
    # ==========================================================================
    print("2. RFC 7677 SCRAM-SHA-256 Exchange")
    print("-" * 40)

    client = create_scram_client("SCRAM-SHA-256", client_nonce="rOprNGfwEbeRWgbNEkqO")
    client.prepare_first_message("user").unwrap()
    client_final = client.prepare_final_message(
        "pencil",
        "r=rOprNGfwEbeRWgbNEkqO%hvYDpWUa2RaTCAfuxFIlj)hNlF$k0,"
        "s=W22ZaJ0SNY7soEsUEjb6gQ==,i=4096",
    ).unwrap()
    print(f"   C: {client_final}")

    client.check_server_final_message("v=6rriTRBi23WpRR/wtup+mMhUZUn/dB5nLTJRsjl95G4=")
    print(f"   Successful: {client.is_successful()}")
    print()

    # ==========================================================================
    # EXAMPLE 3: Server Signature Mismatch
    # ==========================================================================
    print("3. Server Signature Mismatch")
    print("-" * 40)

    client = create_scram_client(
        ScramMechanism.SCRAM_SHA_1,
        client_nonce="fyko+d2lbbFgONRv9qkxdawL",
    )
    client.prepare_first_message("user").unwrap()
    client.prepare_final_message("pencil", server_first).unwrap()

    result = client.check_server_final_message("v=AAAAAAAAAAAAAAAAAAAAAAAAAAA=")

    if isinstance(result, Failure):
        print(f"   Mismatch Detected: YES")
        print(f"   Error: {result.failure()}")
    else:
        print(f"   WARNING: Mismatch not detected")
    print(f"   Successful: {client.is_successful()}")
    print()

    # ==========================================================================
    # EXAMPLE 4: Call-Order Enforcement
    # ==========================================================================
    print("4. Call-Order Enforcement")
    print("-" * 40)

    client = create_scram_client()
    try:
        client.prepare_final_message("pencil", server_first)
    except StateError as e:
        print(f"   Rejected: {e.message}")
    print(f"   State Unchanged: {client.state.name}")
    print()

    # ==========================================================================
    # EXAMPLE 5: Transition Trace
    # ==========================================================================
    print("5. Transition Trace")
    print("-" * 40)

    client = create_scram_client(
        ScramMechanism.SCRAM_SHA_1,
        client_nonce="fyko+d2lbbFgONRv9qkxdawL",
    )
    client.prepare_first_message("user").unwrap()
    client.prepare_final_message("pencil", "r=not-our-nonce,s=QSXCR+Q6sek8bf92,i=4096")

    for i, transition in enumerate(client.get_trace()):
        print(f"   [{i}] {transition.from_state.name} --[{transition.event_type}]--> "
              f"{transition.to_state.name}")

    exported = json.loads(client.export_trace_json())
    print(f"   Exported Transitions: {len(exported['transitions'])}")
    print(f"   Failure: {client.failure}")
    print()

    # ==========================================================================
    # SUMMARY
    # ==========================================================================
    print("=" * 70)
    print("Summary")
    print("=" * 70)
    print()
    print("This example demonstrated:")
    print("  1. Replaying the RFC 5802 SCRAM-SHA-1 exchange")
    print("  2. Replaying the RFC 7677 SCRAM-SHA-256 exchange")
    print("  3. Rejecting a server that cannot prove knowledge of the password")
    print("  4. StateError on out-of-order calls")
    print("  5. Transition trace export")
    print()
    print("For production use:")
    print("  - Omit client_nonce so a random nonce is generated")
    print("  - Use a new client for every authentication attempt")
    print("  - Carry the messages over your protocol's SASL framing")
    print()


if __name__ == "__main__":
    main()
