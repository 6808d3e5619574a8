"""
smart-session

Social-login sessions for ERC-4337 smart accounts with sponsored gas.
"""

from .auth import AuthProvider, Credential, PrivateKeyAuthProvider, Signer
from .core.account import AccountBlueprint, AccountDescriptor, AccountDeriver
from .core.confirmation import NOT_FOUND, ConfirmationRecord, ConfirmationResolver, NotFound
from .core.execution import FeeParams, TransactionHandle, UserOperation
from .core.execution.submitter import OperationSubmitter
from .core.recovery import (
    AdapterError,
    DerivationError,
    IndexResponseError,
    NoActiveSessionError,
    ResolutionExhausted,
    SessionBusyError,
    SmartSessionError,
    SponsorshipError,
    SubmissionError,
)
from .core.session import SessionController, SessionState
from .networks import NetworkConfig, get_network

__version__ = "0.1.0"

__all__ = [
    "AuthProvider",
    "Credential",
    "PrivateKeyAuthProvider",
    "Signer",
    "AccountBlueprint",
    "AccountDescriptor",
    "AccountDeriver",
    "NOT_FOUND",
    "ConfirmationRecord",
    "ConfirmationResolver",
    "NotFound",
    "FeeParams",
    "TransactionHandle",
    "UserOperation",
    "OperationSubmitter",
    "AdapterError",
    "DerivationError",
    "IndexResponseError",
    "NoActiveSessionError",
    "ResolutionExhausted",
    "SessionBusyError",
    "SmartSessionError",
    "SponsorshipError",
    "SubmissionError",
    "SessionController",
    "SessionState",
    "NetworkConfig",
    "get_network",
]
