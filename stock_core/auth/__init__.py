"""
Session lifecycle for the Stock Manager data layer.

The signed-in user is the sole gate for local data and cloud sync. Identity
comes from the host's sign-in provider; this package only manages what
happens around it (pull on login, wipe on logout).
"""

from .session import SessionManager

__all__ = [
    "SessionManager",
]
