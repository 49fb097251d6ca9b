"""
lm Python client
Main client class
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Callable, Dict, Literal, Optional

from .crypto.signing import generate_extra_request_headers
from .errors import AuthenticationError, LmError, create_error_from_response
from .services.auth import DEFAULT_BASE_URL, AuthenticationClient
from .types import APIResponse, Credentials
from .utils.http import HttpClient, redact_headers
from .utils.tokens import is_token_expired

if TYPE_CHECKING:
    from types import TracebackType

    from .services.machines import MachineService

_LOGGER = logging.getLogger(__name__)

# Refresh when the access token expires within this many seconds
TOKEN_REFRESH_BUFFER_SECONDS = 300

TokenRefreshCallback = Callable[[Credentials], None]


class LaMarzoccoClient:
    """
    Authenticated client with automatic token refresh

    Example:
        ```python
        async with LaMarzoccoClient(credentials) as client:
            for machine in await client.machines.list():
                status = await client.machines.get_status(machine.serial_number)
                print(machine.display_name, status.get_status_string())
        ```
    """

    def __init__(
        self,
        credentials: Credentials,
        on_tokens_refreshed: Optional[TokenRefreshCallback] = None,
        base_url: str = DEFAULT_BASE_URL,
        timeout: int = 30,
        debug: bool = False,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.credentials = credentials
        self.on_tokens_refreshed = on_tokens_refreshed
        self.timeout = timeout
        self.debug = debug

        self._http_client = HttpClient(timeout=timeout, debug=debug)
        self._auth_client = AuthenticationClient(
            base_url=self.base_url,
            http_client=self._http_client,
            debug=debug,
        )

        # Initialize services (lazy loading)
        self._machine_service: Optional[MachineService] = None

        if self.debug:
            _LOGGER.debug(
                "lm client initialized: base_url=%s, user=%s, installation_key=%s",
                self.base_url,
                credentials.username,
                credentials.installation_key is not None,
            )

    async def __aenter__(self) -> "LaMarzoccoClient":
        """Async context manager entry"""
        await self._http_client.__aenter__()
        return self

    async def __aexit__(
        self,
        exc_type: Optional[type],
        exc_val: Optional[BaseException],
        exc_tb: Optional[TracebackType],
    ) -> None:
        """Async context manager exit"""
        await self._http_client.__aexit__(exc_type, exc_val, exc_tb)

    async def ensure_valid_token(self) -> None:
        """Refresh the token pair if the access token is (nearly) expired"""
        if not is_token_expired(self.credentials.access_token, TOKEN_REFRESH_BUFFER_SECONDS):
            return

        _LOGGER.debug("Access token expired, attempting refresh")
        try:
            new_credentials = await self._auth_client.refresh_token(
                self.credentials.refresh_token,
                self.credentials.installation_key,
            )
        except LmError as e:
            _LOGGER.debug("Token refresh failed: %s", e)
            raise AuthenticationError(
                f"Access token expired and token refresh failed: {e}. "
                "Please re-authenticate."
            ) from e

        self.credentials = new_credentials
        if self.on_tokens_refreshed is not None:
            self.on_tokens_refreshed(new_credentials)

    async def get_headers(self) -> Dict[str, str]:
        """Authorization plus signed installation headers"""
        await self.ensure_valid_token()

        headers = {"Authorization": f"Bearer {self.credentials.access_token}"}
        if self.credentials.installation_key is not None:
            headers.update(generate_extra_request_headers(self.credentials.installation_key))
        return headers

    async def request(
        self,
        method: Literal["GET", "POST", "PUT", "PATCH", "DELETE"],
        path: str,
        body: Optional[Dict[str, Any]] = None,
        context: str = "Request failed",
    ) -> APIResponse:
        """
        Make authenticated API request

        Raises:
            AuthenticationError: 401, or token refresh failed
            ApiError: Any other non-success status
            NetworkError: Connection failure
        """
        url = f"{self.base_url}{path}"
        headers = await self.get_headers()

        if self.debug:
            _LOGGER.debug("%s %s body=%s headers=%s", method, path, body, redact_headers(headers))

        response = await self._http_client.request(method, url, headers, body)

        if not response.success:
            _LOGGER.debug("%s: %s", context, response.text)
            raise create_error_from_response(response.status, response.text, context)

        return response

    @property
    def machines(self) -> "MachineService":
        """Get machine service"""
        if self._machine_service is None:
            from .services.machines import MachineService

            self._machine_service = MachineService(self)
        return self._machine_service

    async def close(self) -> None:
        """Close HTTP client"""
        await self._http_client.close()
