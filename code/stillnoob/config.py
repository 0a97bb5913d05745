"""Application settings, read from the environment and ``.env``.

Nested sections use a double underscore, e.g. ``WCL__CLIENT_ID`` or
``SCAN__POLL_INTERVAL_MINUTES``.
"""

from functools import lru_cache

from pydantic import BaseModel, Field, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class WCLConfig(BaseModel):
    client_id: str = ""
    client_secret: SecretStr = SecretStr("")
    api_url: str = "https://www.warcraftlogs.com/api/v2/client"
    oauth_url: str = "https://www.warcraftlogs.com/oauth/token"
    token_bucket_size: int = Field(default=280, ge=1)  # requests per hour

    @property
    def has_credentials(self) -> bool:
        return bool(self.client_id and self.client_secret.get_secret_value())


class RaiderIOConfig(BaseModel):
    base_url: str = "https://raider.io/api/v1"
    timeout: float = 10.0
    cache_ttl_seconds: int = 900
    cache_max_entries: int = 500


class BlizzardConfig(BaseModel):
    """Battle.net profile API, only used to fill in class/spec at registration."""

    client_id: str = ""
    client_secret: SecretStr = SecretStr("")
    region: str = "eu"
    locale: str = "en_US"


class DatabaseConfig(BaseModel):
    url: str = "sqlite+aiosqlite:///./stillnoob.db"
    echo: bool = False
    # Ignored for SQLite
    pool_size: int = 5
    max_overflow: int = 10


class ScanConfig(BaseModel):
    enabled: bool = False
    poll_interval_minutes: int = Field(default=30, ge=1)
    reports_per_character: int = 5
    max_retries: int = 3
    base_delay_seconds: float = 2.0
    circuit_breaker_threshold: int = Field(default=5, ge=1)


class AnalysisConfig(BaseModel):
    default_weeks: int = 8
    cache_ttl_seconds: int = 300
    cache_max_entries: int = 200
    recent_fights_limit: int = 20


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
    )

    debug: bool = False
    log_level: str = "INFO"
    api_key: str = ""  # empty disables the key check
    wcl: WCLConfig = WCLConfig()
    raiderio: RaiderIOConfig = RaiderIOConfig()
    blizzard: BlizzardConfig = BlizzardConfig()
    db: DatabaseConfig = DatabaseConfig()
    scan: ScanConfig = ScanConfig()
    analysis: AnalysisConfig = AnalysisConfig()

    @model_validator(mode="after")
    def _scanner_needs_wcl(self):
        if self.scan.enabled and not self.wcl.has_credentials:
            raise ValueError(
                "SCAN__ENABLED=true requires WCL__CLIENT_ID and WCL__CLIENT_SECRET"
            )
        return self


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
