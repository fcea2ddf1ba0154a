import os

from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


BASE_DIR = Path(__file__).resolve().parents[1]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=BASE_DIR / ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    def model_post_init(self, __context: Any) -> None:
        """Ensure we pick up legacy environment variable aliases."""

        super().model_post_init(__context)

        if not self.z_api_key:
            fallback = os.getenv("ZAI_API_KEY") or os.getenv("ZAI_KEY")
            if fallback:
                object.__setattr__(self, "z_api_key", fallback)

        if not self.gemini_api_key:
            fallback = os.getenv("GOOGLE_API_KEY")
            if fallback:
                object.__setattr__(self, "gemini_api_key", fallback)

    # Server Settings
    host: str = Field(default="127.0.0.1", description="Server host")
    port: int = Field(default=8000, description="Server port")
    log_level: str = Field(default="INFO", description="Logging level")
    cors_allow_origins: List[str] = Field(
        default_factory=lambda: ["http://localhost:3000"],
        description="Origins allowed to send credentialed requests",
    )

    # Session / Sign-in
    session_secret: str = Field(
        default="",
        description="HMAC secret used to sign session tokens (JWT_SECRET)",
    )
    session_cookie_name: str = Field(default="session", description="Session cookie name")
    session_max_age_seconds: int = Field(
        default=60 * 60 * 24 * 7,
        description="Session lifetime (one week)",
    )
    cookie_secure: bool = Field(default=False, description="Mark the session cookie as Secure")
    nonce_ttl_seconds: int = Field(default=600, description="Sign-in nonce lifetime")

    # LLM Settings
    llm_provider: str = Field(default="gemini", description="Default completion backend")
    llm_model: Optional[str] = Field(default=None, description="Override model for the active provider")
    gemini_api_key: str = Field(default="", description="Google Gemini API key")
    anthropic_api_key: str = Field(default="", description="Anthropic API key")
    z_api_key: str = Field(default="", description="Z AI API key")
    draft_temperature: float = Field(default=0.1, description="Temperature for the tool-selection draft")
    draft_max_tokens: int = Field(default=500, description="Token budget for the tool-selection draft")
    synthesis_temperature: float = Field(default=0.7, description="Temperature for the final answer")
    synthesis_max_tokens: int = Field(default=1000, description="Token budget for the final answer")
    chat_history_window: int = Field(
        default=10,
        description="Number of most recent conversation turns sent with each prompt",
    )

    # Chain
    chain_id: int = Field(default=8453, description="Chain the custodial accounts live on (Base)")
    network: str = Field(default="base", description="Network slug used by the wallet service")
    rpc_url: str = Field(default="https://mainnet.base.org", description="Public JSON-RPC endpoint")
    wallet_rpc_url: str = Field(
        default="https://rpc.wallet.coinbase.com",
        description="Wallet RPC exposing coinbase_fetchPermissions",
    )
    usdc_address: str = Field(
        default="0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913",
        description="USDC token contract on Base",
    )
    usdc_decimals: int = Field(default=6, description="USDC decimals")
    swap_router_address: str = Field(
        default="0x000000000022d473030f116ddee9f6b43ac78ba3",
        description="Permit2 contract approved before swaps",
    )
    spend_permission_manager_address: str = Field(
        default="0xf85210B21cC50302F477BA56686d2019dC9b67Ad",
        description="SpendPermissionManager contract",
    )

    # Sponsored-gas relay / wallet service
    relay_api_url: str = Field(default="", description="Base URL of the smart-account wallet service")
    relay_api_key: str = Field(default="", description="API key for the wallet service")
    paymaster_url: str = Field(default="", description="Paymaster used to sponsor gas")
    relay_poll_interval_seconds: float = Field(default=2.0, description="Operation status poll interval")
    relay_timeout_seconds: float = Field(default=120.0, description="Maximum wait for an operation")

    # Fund movement
    post_pull_settle_seconds: float = Field(default=5.0, description="Delay after a pull before balance checks")
    approve_settle_seconds: float = Field(default=3.0, description="Delay after the router approval")
    swap_slippage_bps: int = Field(default=500, description="Swap slippage tolerance in basis points")
    explorer_url: str = Field(
        default="https://account.base.app/activity",
        description="Activity page linked after successful operations",
    )

    # Client
    api_base_url: str = Field(default="http://127.0.0.1:8000", description="Server URL used by the client")
    retry_max_attempts: int = Field(default=5, description="Fund-movement attempts before giving up")
    retry_base_delay_seconds: float = Field(default=1.0, description="Backoff base, doubled per attempt")
    transaction_history_limit: int = Field(default=50, description="Records kept per user")
    client_state_dir: Path = Field(
        default=Path.home() / ".spendchat",
        description="Directory for client-persisted transaction history",
    )

    # Storage
    redis_url: str = Field(
        default="",
        description="Redis connection string for nonces, wallet mappings and the fund-movement journal",
    )
    cache_ttl_seconds: int = Field(default=300, description="Cache TTL in seconds")
    max_cache_size: int = Field(default=1000, description="Maximum cache size")
    journal_ttl_seconds: int = Field(default=60 * 60 * 24 * 30, description="Fund-movement record lifetime")

    # Tools
    openweather_api_key: str = Field(default="", description="OpenWeather API key")
    request_timeout_seconds: int = Field(default=30, description="Request timeout")

    @property
    def provider_default_models(self) -> Dict[str, str]:
        return {
            "gemini": "gemini-2.5-flash",
            "anthropic": "claude-sonnet-4-5",
            "zai": "glm-4.6",
        }

    def resolve_default_model(self, provider: str) -> str:
        return self.provider_default_models.get(provider, "gemini-2.5-flash")


settings = Settings()
