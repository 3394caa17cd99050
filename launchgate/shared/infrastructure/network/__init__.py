"""Network adapters (handshake endpoint)."""

from launchgate.shared.infrastructure.network.handshake_client import (
    PAYLOAD_FIELDS,
    HandshakeClient,
    build_payload,
    decode_payload,
    derive_domain,
    encode_payload,
    ensure_scheme,
)

__all__ = [
    "PAYLOAD_FIELDS",
    "HandshakeClient",
    "build_payload",
    "decode_payload",
    "derive_domain",
    "encode_payload",
    "ensure_scheme",
]
