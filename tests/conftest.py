"""Shared fixtures"""

import base64
import json
import time

import pytest

from lm.crypto.installation_key import InstallationKey, generate_installation_key

# Fixed P-256 key (PKCS#8 DER, base64). Test material only.
FIXED_INSTALLATION_ID = "test-installation-id"
FIXED_PRIVATE_KEY_B64 = (
    "MIGHAgEAMBMGByqGSM49AgEGCCqGSM49AwEHBG0wawIBAQQgjLzE4/a8GEpcRkUH/wObre8rzoHY"
    "tJu2355rHbu9RfWhRANCAASjxT6dV7dRhM3SvdOOc6LRxmgrLtZdxwg8FRfyhnJU+M6gFVppPZ+G"
    "Sa7hv2Ou/7OWBfh/9oaSNyO9wqXa2ZFL"
)
FIXED_SECRET_B64 = "EcOY6VNEEwpn2aAN6lL2biHzVzCR4iwZ34DvzRLxc1A="


def _b64url(obj: dict) -> str:
    raw = json.dumps(obj).encode("utf-8")
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def _make_jwt(claims: dict) -> str:
    return f"{_b64url({'alg': 'HS256', 'typ': 'JWT'})}.{_b64url(claims)}.signature"


@pytest.fixture
def make_jwt():
    """Build an unsigned JWT from a claims dict"""
    return _make_jwt


@pytest.fixture
def valid_token() -> str:
    return _make_jwt({"sub": "me@example.com", "exp": int(time.time()) + 3600})


@pytest.fixture
def expired_token() -> str:
    return _make_jwt({"sub": "me@example.com", "exp": int(time.time()) - 60})


@pytest.fixture
def fixed_key_data() -> dict:
    return {
        "secret": FIXED_SECRET_B64,
        "private_key": FIXED_PRIVATE_KEY_B64,
        "installation_id": FIXED_INSTALLATION_ID,
    }


@pytest.fixture
def fixed_key(fixed_key_data) -> InstallationKey:
    return InstallationKey.from_dict(fixed_key_data)


@pytest.fixture
def installation_key() -> InstallationKey:
    return generate_installation_key("3f1c1f7e-7d8a-4b8e-9a51-0d8f5a7c2b10")


@pytest.fixture
def config_path(tmp_path, monkeypatch):
    """Point LM_CONFIG at a temporary file"""
    path = tmp_path / "lm.yml"
    monkeypatch.setenv("LM_CONFIG", str(path))
    return path
