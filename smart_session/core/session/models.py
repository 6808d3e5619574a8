"""
Session state and session-scoped resources.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import List

from ..confirmation import ConfirmationResolver
from ..execution.submitter import OperationSubmitter
from ...providers.bundler import BundlerProvider
from ...providers.jiffyscan import JiffyscanProvider
from ...providers.paymaster import PaymasterProvider
from ...providers.rpc import ChainRpcProvider

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    """Lifecycle of a smart account session."""
    LOGGED_OUT = "logged_out"
    AUTHENTICATING = "authenticating"
    SIGNING_READY = "signing_ready"
    ACCOUNT_READY = "account_ready"

    @property
    def in_transition(self) -> bool:
        return self in (SessionState.AUTHENTICATING, SessionState.SIGNING_READY)


@dataclass
class SessionResources:
    """Clients wired for one ACCOUNT_READY session, closed on logout."""
    rpc: ChainRpcProvider
    bundler: BundlerProvider
    paymaster: PaymasterProvider
    index: JiffyscanProvider
    submitter: OperationSubmitter
    resolver: ConfirmationResolver

    async def close(self) -> None:
        """Close every provider; the first failure is re-raised after all were tried."""
        failures: List[Exception] = []
        for provider in (self.rpc, self.bundler, self.paymaster, self.index):
            try:
                await provider.close()
            except Exception as exc:
                logger.warning(f"Closing {provider.name} provider failed: {exc}")
                failures.append(exc)
        if failures:
            raise failures[0]
