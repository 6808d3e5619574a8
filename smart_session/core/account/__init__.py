from .deriver import (
    AccountBlueprint,
    AccountDescriptor,
    AccountDeriver,
    compute_create2_address,
    verify_deployment,
)

__all__ = [
    "AccountBlueprint",
    "AccountDescriptor",
    "AccountDeriver",
    "compute_create2_address",
    "verify_deployment",
]
