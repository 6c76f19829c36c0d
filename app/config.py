"""
Application configuration with Pydantic Settings for validation and type safety.
Supports environment-specific configurations and .env file loading.
"""

from enum import Enum
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator


class Environment(str, Enum):
    """Application environment types"""

    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"
    TESTING = "testing"


class Settings(BaseSettings):
    """
    Application settings with validation.
    Settings are loaded from environment variables or .env file.
    """

    # Application settings
    app_name: str = Field(default="NutriCoach", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    environment: Environment = Field(
        default=Environment.DEVELOPMENT, description="Application environment"
    )
    debug: bool = Field(default=False, description="Debug mode")

    # Server settings
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, ge=1, le=65535, description="Server port")

    # Database settings - PostgreSQL
    postgres_db_url: str = Field(
        default="postgresql+psycopg2://postgres@localhost:5432/nutricoach",
        description="PostgreSQL connection URL",
    )
    db_echo: bool = Field(default=False, description="SQLAlchemy echo SQL statements")
    db_init_attempts: int = Field(
        default=8, ge=1, description="Database initialization retry attempts"
    )
    db_init_delay_sec: float = Field(
        default=2.0, ge=0, description="Delay between DB init attempts"
    )

    # Auth settings (tokens are issued by the hosting platform's identity provider)
    auth_jwt_secret: str = Field(
        default="change-me", description="Shared secret used to verify access tokens"
    )
    auth_jwt_algorithm: str = Field(default="HS256", description="JWT signing algorithm")
    auth_jwt_audience: str = Field(
        default="authenticated", description="Expected JWT audience claim"
    )

    # Outbound HTTP integrations
    http_timeout_sec: float = Field(
        default=8.0, gt=0, description="Timeout for product source requests"
    )
    open_food_facts_base_url: str = Field(
        default="https://world.openfoodfacts.org",
        description="Open Food Facts base URL",
    )
    open_food_facts_user_agent: str = Field(
        default="NutriCoach/1.0", description="User-Agent sent to Open Food Facts"
    )
    albert_heijn_base_url: str = Field(
        default="https://api.ah.nl", description="Albert Heijn mobile API base URL"
    )
    albert_heijn_client_id: str = Field(
        default="appie-ios", description="Albert Heijn anonymous client id"
    )

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(
        default="%(asctime)s %(levelname)s %(name)s: %(message)s",
        description="Log format string",
    )

    # CORS settings
    cors_origins: list[str] = Field(
        default=["http://localhost:3000", "http://localhost:8000"],
        description="Allowed CORS origins",
    )
    cors_allow_credentials: bool = Field(
        default=True, description="Allow CORS credentials"
    )
    cors_allow_methods: list[str] = Field(
        default=["*"], description="Allowed HTTP methods"
    )
    cors_allow_headers: list[str] = Field(
        default=["*"], description="Allowed HTTP headers"
    )

    # API settings
    api_prefix: str = Field(default="", description="API route prefix")
    api_title: str = Field(
        default="NutriCoach API", description="API documentation title"
    )
    api_description: str = Field(
        default="Nutrition coaching backend: pantry, diet guardrails, protocols and meal plan checks",
        description="API documentation description",
    )

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=False, extra="ignore"
    )

    @field_validator("environment", mode="before")
    @classmethod
    def validate_environment(cls, v):
        """Validate and normalize environment value"""
        if isinstance(v, str):
            return Environment(v.lower())
        return v

    def is_production(self) -> bool:
        """Check if running in production environment"""
        return self.environment == Environment.PRODUCTION

    def is_development(self) -> bool:
        """Check if running in development environment"""
        return self.environment == Environment.DEVELOPMENT

    def is_testing(self) -> bool:
        """Check if running in testing environment"""
        return self.environment == Environment.TESTING


# Global settings instance
settings = Settings()
