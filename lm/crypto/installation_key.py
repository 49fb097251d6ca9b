"""
Installation key generation

Each installation of the client owns a P-256 keypair and a 32-byte secret
derived from its installation ID and public key. The public key is always
encoded as DER SubjectPublicKeyInfo; the vendor app hashes that exact form.
"""

import base64
import binascii
import hashlib
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec

from ..errors import EntropyUnavailableError, KeyDecodingError
from .proof import SECRET_LENGTH


def _b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def _sha256_b64(data: bytes) -> str:
    return _b64(hashlib.sha256(data).digest())


def _spki_der(private_key: ec.EllipticCurvePrivateKey) -> bytes:
    return private_key.public_key().public_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )


@dataclass(frozen=True)
class InstallationKey:
    """Cryptographic identity of one client installation."""
    installation_id: str
    secret: bytes = field(repr=False)
    private_key: ec.EllipticCurvePrivateKey = field(repr=False, compare=False)

    def public_key_der(self) -> bytes:
        """DER SubjectPublicKeyInfo of the public key"""
        return _spki_der(self.private_key)

    def public_key_der_b64(self) -> str:
        """Base64 of the DER SubjectPublicKeyInfo (sent as "pk" at registration)"""
        return _b64(self.public_key_der())

    # Name used by the registration payload
    public_key_b64 = public_key_der_b64

    def base_string(self) -> str:
        """Registration proof input: installation_id.base64(sha256(spki_der))"""
        return f"{self.installation_id}.{_sha256_b64(self.public_key_der())}"

    def to_dict(self) -> Dict[str, str]:
        """
        Serialize for the credential store.

        The private key is written as base64 PKCS#8 DER, the secret as base64.
        """
        private_der = self.private_key.private_bytes(
            encoding=serialization.Encoding.DER,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        )
        return {
            "secret": _b64(self.secret),
            "private_key": _b64(private_der),
            "installation_id": self.installation_id,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "InstallationKey":
        """
        Rebuild a key from its persisted form.

        Raises:
            KeyDecodingError: If any field is missing or not valid key material
        """
        if not isinstance(data, Mapping):
            raise KeyDecodingError("installation_key must be a mapping")

        installation_id = data.get("installation_id")
        if not isinstance(installation_id, str) or not installation_id:
            raise KeyDecodingError("installation_id is missing")

        secret = _decode_b64_field(data, "secret")
        if len(secret) != SECRET_LENGTH:
            raise KeyDecodingError(
                f"secret must be {SECRET_LENGTH} bytes, got {len(secret)}"
            )

        private_key = _load_private_key(_decode_b64_field(data, "private_key"))
        return cls(installation_id=installation_id, secret=secret, private_key=private_key)


def _decode_b64_field(data: Mapping[str, Any], name: str) -> bytes:
    value = data.get(name)
    if not isinstance(value, str) or not value:
        raise KeyDecodingError(f"{name} is missing")
    try:
        return base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError) as e:
        raise KeyDecodingError(f"{name} is not valid base64", e)


def _load_private_key(raw: bytes) -> ec.EllipticCurvePrivateKey:
    # Early releases stored the bare 32-byte scalar instead of PKCS#8
    if len(raw) == 32:
        scalar = int.from_bytes(raw, "big")
        try:
            return ec.derive_private_key(scalar, ec.SECP256R1())
        except ValueError as e:
            raise KeyDecodingError("private_key scalar is out of range", e)

    try:
        key = serialization.load_der_private_key(raw, password=None)
    except (ValueError, TypeError, UnsupportedAlgorithm) as e:
        raise KeyDecodingError("private_key is not a PKCS#8 DER key", e)

    if not isinstance(key, ec.EllipticCurvePrivateKey) or not isinstance(
        key.curve, ec.SECP256R1
    ):
        raise KeyDecodingError("private_key is not a P-256 key")
    return key


def generate_installation_id() -> str:
    """Generate a new random installation ID (lower-case UUID4)"""
    try:
        return str(uuid.uuid4()).lower()
    except (NotImplementedError, OSError) as e:
        raise EntropyUnavailableError(e)


def derive_installation_secret(installation_id: str, public_key_der: bytes) -> bytes:
    """
    Derive the 32-byte proof secret.

    secret = sha256(installation_id + "." + b64(spki_der) + "." + b64(sha256(installation_id)))
    """
    triple = ".".join(
        [
            installation_id,
            _b64(public_key_der),
            _sha256_b64(installation_id.encode("utf-8")),
        ]
    )
    return hashlib.sha256(triple.encode("utf-8")).digest()


def generate_installation_key(installation_id: str) -> InstallationKey:
    """
    Generate a fresh installation key for an installation ID.

    Args:
        installation_id: Client-generated or server-assigned installation ID

    Returns:
        InstallationKey with a new P-256 keypair and its derived secret

    Raises:
        EntropyUnavailableError: If the OS random source fails
    """
    try:
        private_key = ec.generate_private_key(ec.SECP256R1())
    except (NotImplementedError, OSError) as e:
        raise EntropyUnavailableError(e)

    secret = derive_installation_secret(installation_id, _spki_der(private_key))
    return InstallationKey(
        installation_id=installation_id,
        secret=secret,
        private_key=private_key,
    )
