"""Utility modules"""

from .http import HttpClient, redact_headers
from .tokens import decode_jwt_claims, extract_username_from_token, is_token_expired

__all__ = [
    "HttpClient",
    "redact_headers",
    "decode_jwt_claims",
    "extract_username_from_token",
    "is_token_expired",
]
