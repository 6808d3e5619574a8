"""
Authentication provider boundary.

The session only needs three things from a login provider: a way to
obtain a credential, a way to end the provider-side session, and a
notification when the provider changes state on its own.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable, List, Optional

from pydantic import SecretStr

from ..config import settings
from ..core.recovery.errors import AdapterError
from .models import Credential

logger = logging.getLogger(__name__)

ProviderChangeCallback = Callable[[Optional[Credential]], Awaitable[None]]


class AuthProvider(ABC):
    """Base authentication provider interface"""

    name: str

    def __init__(self) -> None:
        self._listeners: List[ProviderChangeCallback] = []

    @abstractmethod
    async def connect(self) -> Credential:
        """Log in and return a credential"""
        pass

    @abstractmethod
    async def logout(self) -> None:
        """End the provider-side session"""
        pass

    def on_provider_change(self, callback: ProviderChangeCallback) -> None:
        """Register a callback fired with the new credential, or None on disconnect."""
        self._listeners.append(callback)

    def remove_listener(self, callback: ProviderChangeCallback) -> None:
        if callback in self._listeners:
            self._listeners.remove(callback)

    async def _notify(self, credential: Optional[Credential]) -> None:
        for callback in list(self._listeners):
            await callback(credential)


class PrivateKeyAuthProvider(AuthProvider):
    """
    Local provider backed by a raw secp256k1 private key.

    Used for development, the CLI and tests in place of a hosted social
    login. The key comes from the constructor or AUTH_PRIVATE_KEY.
    """

    name = "private-key"

    def __init__(
        self,
        private_key: Optional[str] = None,
        verifier_id: str = "local",
        ttl: Optional[timedelta] = None,
    ) -> None:
        super().__init__()
        self._private_key = private_key if private_key is not None else settings.auth_private_key
        self._verifier_id = verifier_id
        self._ttl = ttl
        self._connected = False

    @property
    def connected(self) -> bool:
        return self._connected

    async def connect(self) -> Credential:
        if not self._private_key:
            raise AdapterError(
                "No private key configured for the local auth provider",
                provider=self.name,
            )

        issued_at = datetime.now(timezone.utc)
        credential = Credential(
            provider=self.name,
            verifier_id=self._verifier_id,
            private_key=SecretStr(self._private_key),
            issued_at=issued_at,
            expires_at=issued_at + self._ttl if self._ttl else None,
        )
        self._connected = True
        logger.info(f"Auth provider {self.name} connected for {self._verifier_id}")
        return credential

    async def logout(self) -> None:
        self._connected = False
        logger.info(f"Auth provider {self.name} logged out")

    async def disconnect(self) -> None:
        """Simulate a provider-side disconnect (expired login, revoked key)."""
        self._connected = False
        await self._notify(None)

    async def switch_key(self, private_key: str, verifier_id: Optional[str] = None) -> None:
        """Replace the key and notify listeners with the new credential."""
        self._private_key = private_key
        if verifier_id:
            self._verifier_id = verifier_id
        credential = await self.connect()
        await self._notify(credential)
