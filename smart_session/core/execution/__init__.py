"""
UserOperation Execution Layer

- UserOperation: v0.7 operation model, hashing and RPC encoding
- userop_builder: calldata for execute, factory deployment and nonce reads
- OperationSubmitter (submitter module): sponsor, sign and submit through
  the bundler
"""

from .userop import (
    DUMMY_SIGNATURE,
    FeeParams,
    TransactionHandle,
    UserOperation,
    UserOpReceipt,
)
from .userop_builder import (
    build_create_account_call,
    build_entrypoint_get_nonce_call,
    build_execute_call_data,
    encode_function_data,
)

__all__ = [
    "DUMMY_SIGNATURE",
    "FeeParams",
    "TransactionHandle",
    "UserOperation",
    "UserOpReceipt",
    "build_create_account_call",
    "build_entrypoint_get_nonce_call",
    "build_execute_call_data",
    "encode_function_data",
]
