"""
Request signing for the customer-app API

Signed headers per request:
    X-App-Installation-Id, X-Timestamp, X-Nonce, X-Request-Signature

Signature format:
    proof_input    = installation_id.nonce.timestamp
    signature_data = proof_input.compute_proof(proof_input, secret)
    signature      = b64(DER(ECDSA-P256-SHA256(signature_data)))

Registration uses a single X-Request-Proof header over key.base_string().
"""

import base64
import binascii
import time
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Optional, Union

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec

from ..errors import EntropyUnavailableError
from .installation_key import InstallationKey
from .proof import compute_proof

HEADER_INSTALLATION_ID = "X-App-Installation-Id"
HEADER_TIMESTAMP = "X-Timestamp"
HEADER_NONCE = "X-Nonce"
HEADER_SIGNATURE = "X-Request-Signature"
HEADER_PROOF = "X-Request-Proof"

Timestamp = Union[datetime, int]


@dataclass(frozen=True)
class SignedRequestHeaders:
    """Per-request signed header set. Never reused."""
    installation_id: str
    timestamp: str
    nonce: str
    signature: str

    def as_headers(self) -> Dict[str, str]:
        return {
            HEADER_INSTALLATION_ID: self.installation_id,
            HEADER_TIMESTAMP: self.timestamp,
            HEADER_NONCE: self.nonce,
            HEADER_SIGNATURE: self.signature,
        }


def _timestamp_ms(now: Optional[Timestamp]) -> int:
    if now is None:
        return int(time.time() * 1000)
    if isinstance(now, datetime):
        if now.tzinfo is None:
            raise ValueError("now must be timezone-aware")
        return int(now.timestamp() * 1000)
    return int(now)


def _new_nonce() -> str:
    try:
        return str(uuid.uuid4()).lower()
    except (NotImplementedError, OSError) as e:
        raise EntropyUnavailableError(e)


def create_proof_input(installation_id: str, nonce: str, timestamp: str) -> str:
    """Create proof input: installation_id.nonce.timestamp"""
    return f"{installation_id}.{nonce}.{timestamp}"


def create_signature_data(
    installation_id: str,
    nonce: str,
    timestamp: str,
    secret: bytes,
) -> str:
    """Create the string that gets ECDSA-signed: proof_input.proof"""
    proof_input = create_proof_input(installation_id, nonce, timestamp)
    return f"{proof_input}.{compute_proof(proof_input, secret)}"


def sign_request(
    key: InstallationKey,
    now: Optional[Timestamp] = None,
) -> SignedRequestHeaders:
    """
    Sign one outgoing request.

    Args:
        key: Installation key
        now: Request time (aware datetime or epoch milliseconds); defaults to now

    Returns:
        SignedRequestHeaders with a fresh nonce
    """
    nonce = _new_nonce()
    timestamp = str(_timestamp_ms(now))

    signature_data = create_signature_data(
        key.installation_id, nonce, timestamp, key.secret
    )
    der_signature = key.private_key.sign(
        signature_data.encode("utf-8"),
        ec.ECDSA(hashes.SHA256()),
    )

    return SignedRequestHeaders(
        installation_id=key.installation_id,
        timestamp=timestamp,
        nonce=nonce,
        signature=base64.b64encode(der_signature).decode("ascii"),
    )


def generate_extra_request_headers(
    key: InstallationKey,
    now: Optional[Timestamp] = None,
) -> Dict[str, str]:
    """Signed headers for an authenticated API call"""
    return sign_request(key, now).as_headers()


def generate_registration_headers(key: InstallationKey) -> Dict[str, str]:
    """Headers for POST /auth/init"""
    return {
        HEADER_INSTALLATION_ID: key.installation_id,
        HEADER_PROOF: compute_proof(key.base_string(), key.secret),
    }


def verify_signature(
    public_key: ec.EllipticCurvePublicKey,
    signature_data: str,
    signature_b64: str,
) -> bool:
    """Check a base64 DER signature over signature_data"""
    try:
        signature = base64.b64decode(signature_b64, validate=True)
    except (binascii.Error, ValueError):
        return False

    try:
        public_key.verify(
            signature,
            signature_data.encode("utf-8"),
            ec.ECDSA(hashes.SHA256()),
        )
    except InvalidSignature:
        return False
    return True


def verify_signed_headers(key: InstallationKey, headers: Dict[str, str]) -> bool:
    """
    Recompute the proof from a signed header set and verify its signature.

    Useful for checking a stored key still matches what it signs.
    """
    signature_data = create_signature_data(
        headers[HEADER_INSTALLATION_ID],
        headers[HEADER_NONCE],
        headers[HEADER_TIMESTAMP],
        key.secret,
    )
    return verify_signature(
        key.private_key.public_key(),
        signature_data,
        headers[HEADER_SIGNATURE],
    )
