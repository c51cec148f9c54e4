"""
Connection credentials for the API clients.

The reflector itself is transport-agnostic and knows nothing about them.
They are used only by the shipped aiohttp-based API client and its login
routines (see :mod:`kreflector.clients.login`).
"""
import dataclasses
from typing import Optional


class LoginError(Exception):
    """ Raised when the reflector's API client cannot authenticate. """


@dataclasses.dataclass(frozen=True)
class ConnectionInfo:
    """
    A single endpoint with specific credentials and connection flags to use.
    """
    server: str  # e.g. "https://localhost:443"
    ca_path: Optional[str] = None
    ca_data: Optional[bytes] = None
    insecure: Optional[bool] = None
    username: Optional[str] = None
    password: Optional[str] = None
    scheme: Optional[str] = None  # RFC-7235/5.1: e.g. Bearer, Basic, Digest, etc.
    token: Optional[str] = None
    certificate_path: Optional[str] = None
    certificate_data: Optional[bytes] = None
    private_key_path: Optional[str] = None
    private_key_data: Optional[bytes] = None
    default_namespace: Optional[str] = None
