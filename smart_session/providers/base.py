from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Type

import httpx

from ..config import settings


class ProviderError(Exception):
    """Provider transport or protocol error."""
    pass


class Provider(ABC):
    """Base provider interface"""

    name: str
    timeout_s: Optional[float] = None
    error_cls: Type[Exception] = ProviderError

    def __init__(self, client: Optional[httpx.AsyncClient] = None) -> None:
        self._client = client
        self._closed = False

    @abstractmethod
    async def ready(self) -> bool:
        """Check if provider is ready to serve requests"""
        pass

    @abstractmethod
    async def health_check(self) -> Dict[str, Any]:
        """Return provider health status"""
        pass

    def _get_client(self) -> httpx.AsyncClient:
        if self._closed:
            raise self.error_cls(f"{self.name} provider is closed")
        if not self._client or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self.timeout_s or settings.request_timeout_seconds)
        return self._client

    async def close(self) -> None:
        self._closed = True
        client, self._client = self._client, None
        if client and not client.is_closed:
            await client.aclose()


class JsonRpcProvider(Provider):
    """Provider speaking JSON-RPC 2.0 over HTTP POST."""

    def __init__(
        self,
        rpc_url: str,
        client: Optional[httpx.AsyncClient] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> None:
        super().__init__(client)
        self._rpc_url = rpc_url
        self._headers = headers or {}
        self._request_id = 0

    @property
    def rpc_url(self) -> str:
        return self._rpc_url

    async def ready(self) -> bool:
        return bool(self._rpc_url)

    async def health_check(self) -> Dict[str, Any]:
        if not await self.ready():
            return {"status": "disabled", "reason": f"{self.name} not configured"}

        try:
            result = await self._rpc_call("eth_chainId", [])
            return {"status": "healthy", "chainId": result}
        except Exception as exc:
            return {"status": "error", "reason": str(exc)}

    async def _rpc_call(self, method: str, params: list[Any]) -> Any:
        if not await self.ready():
            raise self.error_cls(f"{self.name} provider is not configured")

        self._request_id += 1
        try:
            response = await self._get_client().post(
                self._rpc_url,
                json={"jsonrpc": "2.0", "id": self._request_id, "method": method, "params": params},
                headers=self._headers,
            )
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPError as exc:
            raise self.error_cls(f"{self.name} request failed ({method}): {exc}") from exc
        except ValueError as exc:
            raise self.error_cls(f"{self.name} returned invalid JSON ({method})") from exc

        if not isinstance(payload, dict):
            raise self.error_cls(f"{self.name} returned a non-object payload ({method})")
        if payload.get("error"):
            raise self.error_cls(f"{self.name} RPC error ({method}): {payload['error']}")
        return payload.get("result")
