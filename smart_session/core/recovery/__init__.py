"""
Error Recovery Module

Typed session errors and the bounded polling combinator used wherever the
session waits on an eventually consistent external service.
"""

from .errors import (
    ErrorCategory,
    ErrorContext,
    SmartSessionError,
    AdapterError,
    NoActiveSessionError,
    SessionBusyError,
    DerivationError,
    SponsorshipError,
    SubmissionError,
    InclusionPending,
    ResolutionExhausted,
    IndexResponseError,
)
from .polling import PollPolicy, PollResult, poll_until

__all__ = [
    # Errors
    "ErrorCategory",
    "ErrorContext",
    "SmartSessionError",
    "AdapterError",
    "NoActiveSessionError",
    "SessionBusyError",
    "DerivationError",
    "SponsorshipError",
    "SubmissionError",
    "InclusionPending",
    "ResolutionExhausted",
    "IndexResponseError",
    # Polling
    "PollPolicy",
    "PollResult",
    "poll_until",
]
