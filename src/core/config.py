"""Application configuration management using Pydantic Settings."""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    All settings can be overridden via environment variables.
    Required settings will raise validation errors if not provided.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="fulfillment-bridge", description="Application name")
    app_env: str = Field(default="development", description="Environment (development/staging/production)")
    debug: bool = Field(default=False, description="Enable debug mode (includes stack traces in error responses)")

    # Server
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8080, description="Server port")

    # CORS
    cors_origins: str = Field(
        default="http://localhost:3000,http://localhost:5173",
        description="Comma-separated list of allowed CORS origins",
    )

    # Supabase document store
    supabase_url: str = Field(..., description="Supabase project URL")
    supabase_secret_key: str = Field(..., description="Supabase secret key for backend operations")
    collection_prefix: str = Field(
        default="",
        description="Prefix for document tables, e.g. 'dev-' to target dev-invoices/dev-users/dev-products",
    )

    # Payment webhook (OpenNode)
    opennode_api_key: str = Field(default="", description="OpenNode API key used as the webhook HMAC secret")
    auto_shipment_enabled: bool = Field(
        default=False,
        description="Submit a shipment automatically after a verified payment",
    )

    # Fulfillment provider (OpenLogi)
    openlogi_base_url: str = Field(default="https://api-demo.openlogi.com", description="OpenLogi API base URL")
    openlogi_shipments_path: str = Field(default="/api/shipments", description="Shipment creation endpoint path")
    openlogi_api_key: str = Field(default="", description="OpenLogi bearer token")
    openlogi_api_version: str = Field(default="1.5", description="Value for the X-Api-Version header")
    openlogi_timeout_seconds: float = Field(default=30.0, gt=0, description="Shipment request timeout")
    openlogi_user_agent: str = Field(default="fulfillment-bridge/1.0", description="User-Agent for provider calls")
    openlogi_product_code_map: dict[str, str] = Field(
        default_factory=dict,
        description="JSON object mapping internal product ids to OpenLogi product codes",
    )

    # Currency
    usd_to_jpy_rate: float = Field(default=150, gt=0, description="USD to JPY conversion rate")

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS origins string into a list."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.app_env == "production"

    @property
    def openlogi_shipments_url(self) -> str:
        """Full URL of the shipment creation endpoint."""
        return self.openlogi_base_url.rstrip("/") + self.openlogi_shipments_path

    def table_name(self, collection: str) -> str:
        """Resolve a document table name with the configured prefix."""
        return f"{self.collection_prefix}{collection}"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings singleton.

    Returns:
        Settings: Application settings instance.

    Note:
        Settings are cached using lru_cache for performance.
        Call get_settings.cache_clear() to reload settings.
    """
    return Settings()
