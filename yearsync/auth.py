"""
Access token handoff from the authentication flow.

The OAuth/PKCE flow runs elsewhere; it hands this service the resulting
access token and the space-separated scope string Google granted. Nothing
here is persisted.
"""

import logging
from typing import Optional

logger = logging.getLogger(__name__)

# Drive scope limited to the app's private appDataFolder
DRIVE_APPDATA_SCOPE = "https://www.googleapis.com/auth/drive.appdata"


class AuthState:
    """The current access token and granted scopes."""

    def __init__(self, access_token: Optional[str] = None, scope: str = ""):
        self.access_token = access_token
        self.scopes: set[str] = set(scope.split())

    def store_token(self, access_token: str, scope: str) -> None:
        self.access_token = access_token
        self.scopes = set(scope.split())
        logger.info(f"Access token stored (drive scope granted: {self.has_drive_scope()})")

    def clear(self) -> None:
        self.access_token = None
        self.scopes = set()
        logger.info("Access token cleared")

    def get_access_token(self) -> Optional[str]:
        return self.access_token

    def has_drive_scope(self) -> bool:
        return self.access_token is not None and DRIVE_APPDATA_SCOPE in self.scopes


_auth_state: Optional[AuthState] = None


def get_auth_state() -> AuthState:
    """Get the process-wide auth state."""
    global _auth_state
    if _auth_state is None:
        _auth_state = AuthState()
    return _auth_state


def reset_auth_state() -> None:
    global _auth_state
    _auth_state = None
