"""
Custom exception classes for the lm client
Core signing errors plus API/transport errors for the customer-app API
"""

from typing import Optional, Dict, Any


class LmError(Exception):
    """Base lm error class"""

    def __init__(
        self,
        code: str,
        message: str,
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details or {}

    def __str__(self) -> str:
        return self.message


class InvalidKeyLengthError(LmError):
    """Proof secret is not 32 bytes"""

    def __init__(self, length: int):
        super().__init__(
            "INVALID_KEY_LENGTH",
            f"secret must be 32 bytes, got {length}",
            details={"length": length},
        )
        self.length = length


class KeyDecodingError(LmError):
    """Persisted installation key material could not be decoded"""

    def __init__(self, message: str, original_error: Optional[Exception] = None):
        super().__init__(
            "KEY_DECODING",
            f"Installation key is unreadable ({message}). "
            "Please run 'lm login' again to re-register this installation.",
        )
        self.original_error = original_error


class EntropyUnavailableError(LmError):
    """The platform random source could not produce bytes"""

    def __init__(self, original_error: Optional[Exception] = None):
        super().__init__("ENTROPY_UNAVAILABLE", "Secure random source is unavailable")
        self.original_error = original_error


class ConfigError(LmError):
    """Configuration file missing or unusable"""

    def __init__(self, message: str):
        super().__init__("CONFIG", message)


class AuthenticationError(LmError):
    """Authentication error (401 or failed sign-in/refresh)"""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__("UNAUTHENTICATED", message, status_code, details)


class ApiError(LmError):
    """Non-success response from the API"""

    def __init__(
        self,
        message: str,
        status_code: int,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__("API", message, status_code, details)


class NetworkError(LmError):
    """Network error (not from API)"""

    def __init__(self, message: str, original_error: Optional[Exception] = None):
        super().__init__("NETWORK", message)
        self.original_error = original_error


def create_error_from_response(
    status_code: int,
    body: str,
    context: str,
) -> LmError:
    """Create appropriate error from a non-success API response"""
    if status_code == 401:
        return AuthenticationError(
            "Authentication failed. Please run 'lm login' again.",
            status_code,
            {"body": body},
        )
    return ApiError(f"{context}: {body}", status_code, {"body": body})
