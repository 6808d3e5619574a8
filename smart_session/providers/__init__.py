from .base import JsonRpcProvider, Provider, ProviderError
from .bundler import BundlerConfig, BundlerError, BundlerProvider
from .jiffyscan import BundleActivity, IndexedUserOp, JiffyscanProvider, parse_bundle_activity
from .paymaster import PaymasterConfig, PaymasterProvider, SponsorshipFields
from .rpc import ChainRpcProvider, RpcError

__all__ = [
    "Provider",
    "ProviderError",
    "JsonRpcProvider",
    "BundlerConfig",
    "BundlerError",
    "BundlerProvider",
    "BundleActivity",
    "IndexedUserOp",
    "JiffyscanProvider",
    "parse_bundle_activity",
    "PaymasterConfig",
    "PaymasterProvider",
    "SponsorshipFields",
    "ChainRpcProvider",
    "RpcError",
]
