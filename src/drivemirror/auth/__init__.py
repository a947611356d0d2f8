"""Public auth exports for drivemirror."""

from __future__ import annotations

from .auth_info import AuthInfo
from .credentials import CredentialsClient

__all__ = ["AuthInfo", "CredentialsClient"]
