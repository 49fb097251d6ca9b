"""
JWT helpers

Only the payload is read; the server is the one that validates signatures.
"""

import base64
import binascii
import json
import time
from typing import Any, Dict, Optional


def _b64url_decode(s: str) -> bytes:
    return base64.urlsafe_b64decode(s + "=" * (-len(s) % 4))


def decode_jwt_claims(token: str) -> Optional[Dict[str, Any]]:
    """Decode JWT claims without verifying the signature"""
    try:
        _, payload_b64, _ = token.split(".")
        claims = json.loads(_b64url_decode(payload_b64))
    except (ValueError, binascii.Error):
        return None
    return claims if isinstance(claims, dict) else None


def is_token_expired(token: str, buffer_seconds: int = 0) -> bool:
    """
    Check whether an access token expires within buffer_seconds.

    Tokens that are not JWTs (no "ey" prefix) are opaque and treated as valid.
    JWTs that cannot be read, or carry no exp claim, are treated as expired.
    """
    if not token.startswith("ey"):
        return False

    claims = decode_jwt_claims(token)
    if claims is None:
        return True

    exp = claims.get("exp")
    if not isinstance(exp, (int, float)):
        return True

    return time.time() + buffer_seconds >= exp


def extract_username_from_token(token: str) -> Optional[str]:
    """Return the sub claim of a JWT, if any"""
    if not token.startswith("ey"):
        return None

    claims = decode_jwt_claims(token)
    if claims is None:
        return None

    sub = claims.get("sub")
    return sub if isinstance(sub, str) else None
