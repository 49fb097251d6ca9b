"""
Request proof generation

La Marzocco's keyed byte-mixing digest. It is not an HMAC and must stay
bit-exact with the customer-app API.
"""

import base64
import hashlib

from ..errors import InvalidKeyLengthError

SECRET_LENGTH = 32


def compute_proof(value: str, secret: bytes) -> str:
    """
    Compute the request proof for a string.

    Args:
        value: String to bind (e.g. "installation_id.nonce.timestamp")
        secret: 32-byte installation secret

    Returns:
        Base64-encoded SHA-256 digest (44 characters)

    Raises:
        InvalidKeyLengthError: If secret is not 32 bytes
    """
    if len(secret) != SECRET_LENGTH:
        raise InvalidKeyLengthError(len(secret))

    work = bytearray(secret)

    for byte_val in value.encode("utf-8"):
        idx = byte_val % SECRET_LENGTH
        shift = work[(idx + 1) % SECRET_LENGTH] & 0x07

        # XOR then rotate left within 8 bits
        mixed = byte_val ^ work[idx]
        if shift:
            mixed = ((mixed << shift) | (mixed >> (8 - shift))) & 0xFF
        work[idx] = mixed

    digest = hashlib.sha256(bytes(work)).digest()
    return base64.b64encode(digest).decode("ascii")


# Name used by the vendor app for the same primitive
generate_request_proof = compute_proof
