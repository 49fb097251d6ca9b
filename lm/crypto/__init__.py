"""Crypto utilities"""

from .proof import compute_proof, generate_request_proof

from .installation_key import (
    InstallationKey,
    derive_installation_secret,
    generate_installation_id,
    generate_installation_key,
)

from .signing import (
    SignedRequestHeaders,
    sign_request,
    create_proof_input,
    create_signature_data,
    generate_extra_request_headers,
    generate_registration_headers,
    verify_signature,
    verify_signed_headers,
)

__all__ = [
    "compute_proof",
    "generate_request_proof",
    # Installation key
    "InstallationKey",
    "derive_installation_secret",
    "generate_installation_id",
    "generate_installation_key",
    # Signing
    "SignedRequestHeaders",
    "sign_request",
    "create_proof_input",
    "create_signature_data",
    "generate_extra_request_headers",
    "generate_registration_headers",
    "verify_signature",
    "verify_signed_headers",
]
