"""
lm - La Marzocco cloud client
Control La Marzocco espresso machines from Python or the command line

Example:
    ```python
    import asyncio
    from lm import AuthenticationClient, LaMarzoccoClient
    from lm import generate_installation_id, generate_installation_key

    async def main():
        key = generate_installation_key(generate_installation_id())
        async with AuthenticationClient() as auth:
            await auth.register_client(key)
            credentials = await auth.login("me@example.com", "secret", key)

        async with LaMarzoccoClient(credentials) as client:
            for machine in await client.machines.list():
                print(machine.serial_number)

    asyncio.run(main())
    ```
"""

__version__ = "0.3.0"

# Main clients
from .client import LaMarzoccoClient
from .services.auth import AuthenticationClient

# Types
from .types import (
    APIResponse,
    Credentials,
    Machine,
    MachineCommand,
    MachineStatus,
    Widget,
    WidgetOutput,
)

# Installation key and signing
from .crypto import (
    InstallationKey,
    SignedRequestHeaders,
    compute_proof,
    generate_extra_request_headers,
    generate_installation_id,
    generate_installation_key,
    generate_registration_headers,
    generate_request_proof,
    sign_request,
)

# Errors
from .errors import (
    LmError,
    InvalidKeyLengthError,
    KeyDecodingError,
    EntropyUnavailableError,
    ConfigError,
    AuthenticationError,
    ApiError,
    NetworkError,
)

__all__ = [
    # Version
    "__version__",
    # Clients
    "LaMarzoccoClient",
    "AuthenticationClient",
    # Types
    "APIResponse",
    "Credentials",
    "Machine",
    "MachineCommand",
    "MachineStatus",
    "Widget",
    "WidgetOutput",
    # Installation key and signing
    "InstallationKey",
    "SignedRequestHeaders",
    "compute_proof",
    "generate_extra_request_headers",
    "generate_installation_id",
    "generate_installation_key",
    "generate_registration_headers",
    "generate_request_proof",
    "sign_request",
    # Errors
    "LmError",
    "InvalidKeyLengthError",
    "KeyDecodingError",
    "EntropyUnavailableError",
    "ConfigError",
    "AuthenticationError",
    "ApiError",
    "NetworkError",
]
