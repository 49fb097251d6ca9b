"""Service modules"""

from .auth import AuthenticationClient, DEFAULT_BASE_URL
from .machines import MachineService

__all__ = [
    "AuthenticationClient",
    "DEFAULT_BASE_URL",
    "MachineService",
]
