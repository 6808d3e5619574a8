"""
Session Module

SessionController drives login, account derivation, sponsored sends and
confirmation lookups for one user at a time.
"""

from .controller import ClientFactory, SessionController, blueprint_for
from .models import SessionResources, SessionState

__all__ = [
    "ClientFactory",
    "SessionController",
    "SessionResources",
    "SessionState",
    "blueprint_for",
]
