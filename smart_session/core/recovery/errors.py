"""
Error Classification

Typed errors raised by the session components. Every error carries a
category and a context so callers can decide whether re-running the whole
operation makes sense.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


class ErrorCategory(str, Enum):
    """Categories of errors for caller decisions."""

    NETWORK = "network"           # Network/connectivity issues
    TIMEOUT = "timeout"           # Polling budget exhausted
    PROVIDER = "provider"         # External provider rejected the request
    VALIDATION = "validation"     # Input validation error
    AUTHENTICATION = "authentication"  # Auth provider / session state
    UNKNOWN = "unknown"           # Unclassified error


@dataclass
class ErrorContext:
    """Additional context about an error."""

    category: ErrorCategory = ErrorCategory.UNKNOWN
    recoverable: bool = False
    suggested_action: Optional[str] = None
    provider: Optional[str] = None
    chain_id: Optional[int] = None
    tx_hash: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)


class SmartSessionError(Exception):
    """Base class for all session errors."""

    category: ErrorCategory = ErrorCategory.UNKNOWN
    recoverable: bool = False

    def __init__(
        self,
        message: str,
        context: Optional[ErrorContext] = None,
        **details: Any,
    ):
        super().__init__(message)
        self.message = message
        self.context = context or ErrorContext(
            category=self.category,
            recoverable=self.recoverable,
            details=details,
        )


class AdapterError(SmartSessionError):
    """Authentication provider failed or produced an unusable credential."""

    category = ErrorCategory.AUTHENTICATION


class NoActiveSessionError(AdapterError):
    """Operation needs a logged-in session and there is none."""
    pass


class SessionBusyError(AdapterError):
    """A session transition is already in flight."""

    recoverable = True


class DerivationError(SmartSessionError):
    """Signer or factory inputs cannot produce an account."""

    category = ErrorCategory.VALIDATION


class SponsorshipError(SmartSessionError):
    """Paymaster rejected the draft or could not be reached."""

    category = ErrorCategory.PROVIDER


class SubmissionError(SmartSessionError):
    """Operation could not be signed, sponsored or accepted by the relay."""

    category = ErrorCategory.PROVIDER


class InclusionPending(SubmissionError):
    """
    The relay accepted the operation but no inclusion receipt was read.

    The operation may still land: do not resubmit it. Track it by
    ``user_operation_hash`` instead.
    """

    category = ErrorCategory.TIMEOUT
    recoverable = True

    def __init__(self, message: str, user_operation_hash: str, **details: Any):
        super().__init__(message, user_op_hash=user_operation_hash, **details)
        self.user_operation_hash = user_operation_hash


class ResolutionExhausted(SmartSessionError):
    """Polling budget reached without an indexed record."""

    category = ErrorCategory.TIMEOUT
    recoverable = True


class IndexResponseError(SmartSessionError):
    """Index answered with a payload that does not match its schema."""

    category = ErrorCategory.PROVIDER
