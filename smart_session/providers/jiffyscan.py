"""
Jiffyscan index provider.

Queries the bundle activity index for the user operations a bundle
transaction carried. The index is eventually consistent: a bundle that was
mined seconds ago may simply not be there yet, which is different from the
index answering with something we cannot read.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .base import Provider
from ..core.recovery.errors import IndexResponseError

logger = logging.getLogger(__name__)


class IndexedUserOp(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    user_op_hash: str = Field(alias="userOpHash")
    sender: Optional[str] = None
    success: Optional[bool] = None


class BundleActivity(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    user_ops: Optional[List[IndexedUserOp]] = Field(default=None, alias="userOps")
    transaction_hash: Optional[str] = Field(default=None, alias="transactionHash")
    network: Optional[str] = None


class BundleActivityResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    bundle_details: Optional[BundleActivity] = Field(default=None, alias="bundleDetails")


def parse_bundle_activity(payload: Any) -> Optional[BundleActivity]:
    """
    Validate a getBundleActivity payload.

    Returns the bundle when it lists at least one user operation, None when
    the index has nothing yet, and raises IndexResponseError for payloads
    that do not fit the schema.
    """
    if not isinstance(payload, dict):
        raise IndexResponseError("Index returned a non-object payload")
    try:
        response = BundleActivityResponse.model_validate(payload)
    except ValidationError as exc:
        raise IndexResponseError(f"Malformed bundle activity payload: {exc}") from exc

    bundle = response.bundle_details
    if bundle is None or not bundle.user_ops:
        return None
    return bundle


class JiffyscanProvider(Provider):
    name = "jiffyscan"
    error_cls = IndexResponseError

    def __init__(
        self,
        api_url: str,
        api_key: str = "",
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        super().__init__(client)
        self._api_url = api_url.rstrip("/")
        self._api_key = api_key

    def _headers(self) -> Dict[str, str]:
        return {"x-api-key": self._api_key} if self._api_key else {}

    async def ready(self) -> bool:
        return bool(self._api_url)

    async def health_check(self) -> Dict[str, Any]:
        if not await self.ready():
            return {"status": "disabled", "reason": "Index API URL not configured"}
        if not self._api_key:
            return {"status": "degraded", "reason": "Missing Jiffyscan API key"}
        return {"status": "healthy"}

    async def get_bundle_activity(
        self,
        bundle: str,
        network: str,
        first: int = 10,
        skip: int = 0,
    ) -> Optional[BundleActivity]:
        params = {"bundle": bundle, "network": network, "first": first, "skip": skip}
        try:
            response = await self._get_client().get(
                f"{self._api_url}/getBundleActivity",
                params=params,
                headers=self._headers(),
            )
        except httpx.HTTPError as exc:
            raise IndexResponseError(f"Index request failed: {exc}", provider=self.name) from exc

        if response.status_code == 404:
            return None
        if response.status_code >= 400:
            raise IndexResponseError(
                f"Index returned HTTP {response.status_code}",
                provider=self.name,
                status_code=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError as exc:
            raise IndexResponseError("Index returned invalid JSON", provider=self.name) from exc
        return parse_bundle_activity(payload)
