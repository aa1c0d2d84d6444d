"""Configuration management for HouseSplit."""

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

from .exceptions import ConfigurationError

CURRENCY_SYMBOLS = {
    "USD": "$",
    "CAD": "$",
    "AUD": "$",
    "EUR": "€",
    "GBP": "£",
    "JPY": "¥",
    "INR": "₹",
}


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Household backend (only needed when not reading a snapshot file)
    supabase_url: str | None = None
    supabase_api_key: str | None = None
    household_id: str | None = None

    # Display settings
    currency_code: str = "USD"

    # Analytics settings
    analytics_months: int = 6  # Months of history in trend charts

    # Settlement ledger path
    database_path: Path = Path.home() / ".house_split" / "house_split.db"

    def __init__(self, **kwargs):
        """Initialize settings and create database directory if needed."""
        super().__init__(**kwargs)
        self.database_path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def has_backend(self) -> bool:
        """Whether enough settings are present to fetch from the backend."""
        return bool(self.supabase_url and self.supabase_api_key and self.household_id)

    @property
    def currency_symbol(self) -> str:
        """Symbol used when printing amounts; unknown codes print as a prefix."""
        code = self.currency_code.upper()
        return CURRENCY_SYMBOLS.get(code, f"{code} ")


def load_settings() -> Settings:
    """Load application settings from environment variables."""
    try:
        return Settings()
    except Exception as e:
        raise ConfigurationError(
            f"Failed to load settings. Check your .env file and environment "
            f"variables. See .env.example for reference.\n"
            f"Error: {e}"
        ) from e
