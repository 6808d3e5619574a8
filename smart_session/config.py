from dataclasses import replace
from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .networks import NetworkConfig, get_network


BASE_DIR = Path(__file__).resolve().parents[1]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=BASE_DIR / ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(default="auto", description="Log rendering: json, console or auto")

    # Target chain
    network: str = Field(default="vanar-mainnet", description="Network slug from the network table")
    rpc_url: str = Field(default="", description="Override for the chain RPC endpoint")
    bundler_url: str = Field(default="", description="Override for the ERC-4337 bundler endpoint")
    paymaster_url: str = Field(default="", description="Override for the paymaster endpoint")
    index_api_url: str = Field(default="", description="Override for the Jiffyscan API base URL")
    factory_address: str = Field(default="", description="Override for the SimpleAccount factory")
    account_implementation: str = Field(
        default="",
        description="SimpleAccount implementation the factory deploys proxies for",
    )
    proxy_creation_code: str = Field(
        default="",
        description="Hex creation code of the proxy the factory deploys (CREATE2 input)",
    )

    # External API Keys
    jiffyscan_api_key: str = Field(default="", description="Jiffyscan API key (paymaster, bundler and index)")
    paymaster_rpc_method: str = Field(
        default="pm_sponsorUserOperation",
        description="JSON-RPC method used to request sponsorship",
    )

    # Local key provider
    auth_private_key: str = Field(default="", description="Private key used by the local auth provider")

    request_timeout_seconds: float = Field(default=20.0, description="HTTP timeout for provider calls")

    # Confirmation polling
    confirmation_poll_interval_seconds: float = Field(
        default=3.0,
        ge=0,
        description="Fixed delay between index queries",
    )
    confirmation_max_attempts: int = Field(
        default=20,
        ge=1,
        description="Maximum index queries before giving up",
    )
    receipt_poll_interval_seconds: float = Field(
        default=2.0,
        ge=0,
        description="Fixed delay between bundler receipt queries",
    )
    receipt_max_attempts: int = Field(
        default=30,
        ge=1,
        description="Maximum bundler receipt queries after submission",
    )

    # Fees are caller policy; these are only used when a caller passes none
    default_max_fee_per_gas: int = Field(default=1_000_000_000, ge=0)
    default_max_priority_fee_per_gas: int = Field(default=1_000_000_000, ge=0)

    def resolve_network(self, network: Optional[str] = None) -> NetworkConfig:
        """Return the network table entry with any configured overrides applied."""
        base = get_network(network or self.network)
        overrides = {
            "rpc_url": self.rpc_url,
            "bundler_url": self.bundler_url,
            "paymaster_url": self.paymaster_url,
            "index_api_url": self.index_api_url,
            "factory_address": self.factory_address,
            "account_implementation": self.account_implementation,
            "proxy_creation_code": self.proxy_creation_code,
        }
        return replace(base, **{key: value for key, value in overrides.items() if value})


# Global settings instance
settings = Settings()
