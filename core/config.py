"""
Centralized configuration management.
All environment variables and settings are defined here.
"""
from datetime import date
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""
    
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )
    
    # Application
    app_name: str = Field(default="Schedule C Expense Tracker", alias="APP_NAME")
    host: str = Field(default="0.0.0.0", alias="HOST")
    port: int = Field(default=8080, alias="PORT")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    
    # Storage
    database_path: str = Field(default="data/schedule_c.db", alias="DATABASE_PATH")
    
    # Classification service (OpenRouter-compatible chat completions)
    llm_gateway_url: str = Field(
        default="https://openrouter.ai/api/v1/chat/completions",
        alias="LLM_GATEWAY_URL",
    )
    llm_model: str = Field(default="anthropic/claude-3.5-sonnet", alias="LLM_MODEL")
    llm_timeout: int = Field(default=30, alias="LLM_TIMEOUT")
    llm_max_attempts: int = Field(default=1, alias="LLM_MAX_ATTEMPTS")
    llm_api_key: Optional[str] = Field(default=None, alias="LLM_API_KEY")
    max_concurrent_llm_calls: int = Field(default=1, alias="MAX_CONCURRENT_LLM_CALLS")
    
    # Deduction rate tables, updated per tax year
    mileage_rate: float = Field(default=0.67, alias="MILEAGE_RATE")
    home_office_rate: float = Field(default=5.0, alias="HOME_OFFICE_RATE")
    home_office_cap: float = Field(default=1500.0, alias="HOME_OFFICE_CAP")
    tax_year: Optional[int] = Field(default=None, alias="TAX_YEAR")
    
    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level is one of the standard levels."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Log level must be one of: {valid_levels}")
        return v_upper
    
    @field_validator("port")
    @classmethod
    def validate_port(cls, v):
        """Validate port is in valid range."""
        if not (1 <= v <= 65535):
            raise ValueError("Port must be between 1 and 65535")
        return v
    
    @field_validator("llm_timeout")
    @classmethod
    def validate_timeout(cls, v):
        if v <= 0:
            raise ValueError("LLM timeout must be positive")
        return v
    
    @field_validator("llm_max_attempts")
    @classmethod
    def validate_attempts(cls, v):
        if not (1 <= v <= 5):
            raise ValueError("LLM max attempts must be between 1 and 5")
        return v
    
    @field_validator("max_concurrent_llm_calls")
    @classmethod
    def validate_concurrency(cls, v):
        """Validate concurrency setting."""
        if v < 1:
            raise ValueError("Max concurrent LLM calls must be at least 1")
        if v > 10:
            raise ValueError("Max concurrent LLM calls should not exceed 10")
        return v
    
    @field_validator("mileage_rate", "home_office_rate", "home_office_cap")
    @classmethod
    def validate_rates(cls, v):
        if v < 0:
            raise ValueError("Deduction rates must not be negative")
        return v
    
    @property
    def effective_tax_year(self) -> int:
        """Configured tax year, or the current calendar year."""
        return self.tax_year or date.today().year


# Global settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """
    Get application settings singleton.
    
    Returns:
        Settings instance
    """
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Reset settings singleton (useful for testing)."""
    global _settings
    _settings = None
