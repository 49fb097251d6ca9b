"""Authentication Service - installation registration, sign-in and token refresh"""

import logging
from typing import Any, Dict, Optional, Tuple

from typing_extensions import Self

from ..crypto.installation_key import InstallationKey
from ..crypto.signing import generate_extra_request_headers, generate_registration_headers
from ..errors import AuthenticationError
from ..types import APIResponse, Credentials
from ..utils.http import HttpClient
from ..utils.tokens import extract_username_from_token

_LOGGER = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://lion.lamarzocco.io/api/customer-app"

INVALID_CREDENTIALS_MESSAGE = (
    "Invalid username or password. Please check your credentials and try again."
)


class AuthenticationClient:
    """Client for the unauthenticated /auth endpoints"""

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        http_client: Optional[HttpClient] = None,
        timeout: int = 30,
        debug: bool = False,
    ):
        self.base_url = base_url.rstrip("/")
        self.debug = debug
        self._owns_http_client = http_client is None
        self._http_client = http_client or HttpClient(timeout=timeout, debug=debug)

    async def __aenter__(self) -> Self:
        await self._http_client.__aenter__()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the HTTP client if this instance created it"""
        if self._owns_http_client:
            await self._http_client.close()

    async def register_client(self, installation_key: InstallationKey) -> None:
        """
        Register an installation key with the server.

        Must succeed once before the key's signed headers are accepted.

        Args:
            installation_key: Key to register

        Raises:
            AuthenticationError: If the server rejects the registration
        """
        response = await self._http_client.request(
            "POST",
            f"{self.base_url}/auth/init",
            generate_registration_headers(installation_key),
            {"pk": installation_key.public_key_b64()},
        )

        if response.success:
            _LOGGER.debug("Client registration successful")
            return

        _LOGGER.debug("Client registration failed: %s", response.text)
        if response.status == 401:
            raise AuthenticationError(
                "Registration failed: Invalid credentials", response.status
            )
        raise AuthenticationError(
            f"Registration failed: {response.text}", response.status
        )

    async def login(
        self,
        username: str,
        password: str,
        installation_key: Optional[InstallationKey] = None,
    ) -> Credentials:
        """
        Sign in with username and password.

        Args:
            username: Account email
            password: Account password (never stored)
            installation_key: Registered key; adds signed headers when given

        Returns:
            Credentials carrying the new token pair

        Raises:
            AuthenticationError: On rejected credentials or unreadable response
        """
        headers = (
            generate_extra_request_headers(installation_key) if installation_key else {}
        )
        response = await self._http_client.request(
            "POST",
            f"{self.base_url}/auth/signin",
            headers,
            {"username": username, "password": password},
        )

        if not response.success:
            _LOGGER.debug("Authentication failed with status: %s", response.status)
            raise self._login_error(response)

        access_token, refresh_token = self._parse_tokens(
            response, "Failed to parse authentication response"
        )
        _LOGGER.debug("Authentication successful for user: %s", username)
        return Credentials(
            username=username,
            access_token=access_token,
            refresh_token=refresh_token,
            installation_key=installation_key,
        )

    async def refresh_token(
        self,
        refresh_token: str,
        installation_key: Optional[InstallationKey] = None,
    ) -> Credentials:
        """
        Exchange a refresh token for a new token pair.

        The username is taken from the new access token's sub claim.

        Raises:
            AuthenticationError: If the refresh is rejected
        """
        headers = (
            generate_extra_request_headers(installation_key) if installation_key else {}
        )
        response = await self._http_client.request(
            "POST",
            f"{self.base_url}/auth/refreshtoken",
            headers,
            {"refreshToken": refresh_token},
        )

        if not response.success:
            _LOGGER.debug("Token refresh failed with status: %s", response.status)
            raise AuthenticationError(
                f"Token refresh failed: {response.text}", response.status
            )

        access_token, new_refresh_token = self._parse_tokens(
            response, "Failed to parse token refresh response"
        )
        _LOGGER.debug("Token refresh successful")
        return Credentials(
            username=extract_username_from_token(access_token) or "unknown",
            access_token=access_token,
            refresh_token=new_refresh_token,
            installation_key=installation_key,
        )

    def _parse_tokens(self, response: APIResponse, error_message: str) -> Tuple[str, str]:
        data = response.data
        if (
            not isinstance(data, dict)
            or not isinstance(data.get("accessToken"), str)
            or not isinstance(data.get("refreshToken"), str)
        ):
            _LOGGER.debug("Unexpected token response: %s", response.text)
            raise AuthenticationError(error_message, response.status)
        return data["accessToken"], data["refreshToken"]

    def _login_error(self, response: APIResponse) -> AuthenticationError:
        if response.status == 401:
            return AuthenticationError(INVALID_CREDENTIALS_MESSAGE, response.status)

        data: Dict[str, Any] = response.data if isinstance(response.data, dict) else {}
        message = data.get("message") or data.get("error")
        if message:
            return AuthenticationError(
                f"Authentication failed: {message}", response.status, data
            )
        return AuthenticationError(
            f"Authentication failed with status {response.status}: {response.text}",
            response.status,
        )
