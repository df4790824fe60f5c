"""
Application settings and configuration management
Uses Pydantic Settings for environment variable handling and validation
"""

from functools import lru_cache
from typing import ClassVar, FrozenSet, List, Optional
from urllib.parse import quote_plus
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
import json
import re


HEX_COLOR_PATTERN = re.compile(r"^#[0-9a-fA-F]{6}$")


class Settings(BaseSettings):
    """Application settings with environment variable support"""

    # Application
    app_name: str = "QuerySight"
    environment: str = Field(default="development")
    debug: bool = Field(default=False)
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="console", description="console or json")
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=5000)

    # CORS
    allowed_origins_str: str = Field(
        default='["http://localhost:3000","http://127.0.0.1:3000"]',
        validation_alias="ALLOWED_ORIGINS",
    )
    cors_allow_methods_str: str = Field(
        default='["GET","POST","OPTIONS"]',
        validation_alias="CORS_ALLOW_METHODS",
        description="Allowed HTTP methods for CORS (JSON array or comma-separated)"
    )
    cors_allow_credentials: bool = Field(default=False)

    # Database (MySQL dialect; the example queries rely on DATE_FORMAT/CURDATE)
    db_host: str = Field(default="localhost")
    db_port: int = Field(default=3306)
    db_user: str = Field(default="root")
    db_password: str = Field(default="")
    db_name: str = Field(default="requests")
    database_url_override: Optional[str] = Field(
        default=None,
        validation_alias="DATABASE_URL",
        description="Full SQLAlchemy URL; takes precedence over the DB_* fields"
    )
    db_pool_size: int = Field(default=5)
    db_pool_recycle: int = Field(default=3600)
    db_connect_retries: int = Field(default=3)
    db_connect_retry_delay: float = Field(default=2.0)

    # LLM completion service
    llm_provider: str = Field(default="openai", description="openai or bedrock")
    openai_api_key: Optional[str] = Field(default=None)
    openai_model: str = Field(default="gpt-3.5-turbo")
    openai_base_url: Optional[str] = Field(default=None)
    aws_region: str = Field(default="us-east-1")
    bedrock_model_id: str = Field(default="us.amazon.nova-lite-v1:0")
    max_tokens: int = Field(default=150, description="Maximum tokens for the generated query")
    temperature: float = Field(default=0.0)
    llm_timeout_seconds: float = Field(default=60.0)
    llm_max_retries: int = Field(default=0)

    # Chart presentation
    chart_base_color: str = Field(default="#79bc43")
    chart_light_color: str = Field(default="#dff2d1")
    chart_border_color: str = Field(default="rgba(75, 192, 192, 1)")
    currency_symbol: str = Field(default="$")
    currency_markers_str: str = Field(
        default='["subtotal","amount"]',
        validation_alias="CURRENCY_MARKERS",
    )

    # Query sessions
    sequencing_policy: str = Field(
        default="latest_submission",
        description="latest_submission or last_response"
    )
    max_sessions: int = Field(default=1000)

    model_config = SettingsConfigDict(
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        env_parse_none_str="null",
        extra="ignore",
        populate_by_name=True,
    )

    LLM_PROVIDERS: ClassVar[FrozenSet[str]] = frozenset(["openai", "bedrock"])
    SEQUENCING_POLICIES: ClassVar[FrozenSet[str]] = frozenset(["latest_submission", "last_response"])

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Log level must be one of {valid_levels}")
        return v.upper()

    @field_validator("llm_provider")
    @classmethod
    def validate_llm_provider(cls, v):
        if v.lower() not in cls.LLM_PROVIDERS:
            raise ValueError(f"LLM provider must be one of {sorted(cls.LLM_PROVIDERS)}")
        return v.lower()

    @field_validator("sequencing_policy")
    @classmethod
    def validate_sequencing_policy(cls, v):
        if v.lower() not in cls.SEQUENCING_POLICIES:
            raise ValueError(f"Sequencing policy must be one of {sorted(cls.SEQUENCING_POLICIES)}")
        return v.lower()

    @field_validator("chart_base_color", "chart_light_color")
    @classmethod
    def validate_hex_color(cls, v):
        if not HEX_COLOR_PATTERN.match(v):
            raise ValueError(f"Chart colors must be #rrggbb hex strings, got {v!r}")
        return v.lower()

    def _parse_string_list(self, value: str, default: List[str]) -> List[str]:
        """Parse a string into a list (JSON array or comma-separated)"""
        if isinstance(value, list):
            return value

        if isinstance(value, str):
            raw = value.strip()

            # Try JSON parsing first
            if raw.startswith('[') and raw.endswith(']'):
                try:
                    return json.loads(raw)
                except (json.JSONDecodeError, ValueError):
                    pass

            if ',' in raw:
                return [item.strip() for item in raw.split(",") if item.strip()]

            if raw:
                return [raw]

        return default

    @property
    def allowed_origins(self) -> List[str]:
        """Parse and return allowed_origins as a list"""
        return self._parse_string_list(
            self.allowed_origins_str,
            ["http://localhost:3000", "http://127.0.0.1:3000"],
        )

    @property
    def cors_allow_methods(self) -> List[str]:
        """Parse and return CORS allowed methods as a list"""
        return self._parse_string_list(self.cors_allow_methods_str, ["GET", "POST", "OPTIONS"])

    @property
    def currency_markers(self) -> List[str]:
        """Lowercase substrings that mark a dataset label as a money amount"""
        markers = self._parse_string_list(self.currency_markers_str, ["subtotal", "amount"])
        return [marker.lower() for marker in markers]

    @property
    def database_url(self) -> str:
        """Construct the async SQLAlchemy database URL"""
        if self.database_url_override:
            return self.database_url_override
        return (
            f"mysql+aiomysql://{quote_plus(self.db_user)}:{quote_plus(self.db_password)}"
            f"@{self.db_host}:{self.db_port}/{self.db_name}"
        )

    @property
    def is_production(self) -> bool:
        """Check if running in production environment"""
        return self.environment.lower() == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development environment"""
        return self.environment.lower() == "development"

    def validate_llm_configuration(self) -> list[str]:
        """
        Validate completion-service configuration.
        Returns list of issues (empty if all valid).
        """
        issues = []

        if self.llm_provider == "openai" and not self.openai_api_key:
            issues.append("OPENAI_API_KEY is not configured")

        if self.llm_provider == "bedrock" and not self.bedrock_model_id:
            issues.append("BEDROCK_MODEL_ID is not configured")

        if self.max_tokens <= 0:
            issues.append(f"MAX_TOKENS must be positive, got {self.max_tokens}")

        return issues

    def validate_cors_configuration(self) -> list[str]:
        """
        Validate CORS configuration.
        Returns list of issues (empty if all valid).
        """
        issues = []

        origins = self.allowed_origins
        if "*" in origins:
            if self.is_production:
                issues.append(
                    "CRITICAL: CORS allows all origins ('*') in production. "
                    "Set specific origins via ALLOWED_ORIGINS."
                )
            else:
                issues.append(
                    "WARNING: CORS allows all origins ('*'). "
                    "This should not be used in production."
                )

        if "*" in origins and self.cors_allow_credentials:
            issues.append(
                "CRITICAL: CORS allows credentials with wildcard origin. "
                "This is blocked by browsers and indicates misconfiguration."
            )

        valid_methods = {"GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS", "HEAD"}
        for method in self.cors_allow_methods:
            if method.upper() not in valid_methods:
                issues.append(f"WARNING: Unknown HTTP method in CORS config: {method}")

        return issues


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached application settings
    Uses lru_cache to avoid reading environment variables multiple times
    """
    return Settings()


def clear_settings_cache() -> None:
    """
    Clear the settings cache. Used primarily for testing.
    After calling this, the next call to get_settings() will
    create a new Settings instance with fresh environment variables.
    """
    get_settings.cache_clear()
