"""
Configuration system with environment-based settings.
Uses pydantic-settings for validation and type safety.
"""

from functools import lru_cache
from typing import Annotated, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Application
    APP_VERSION: str = "1.0.0"
    ENV: Literal["development", "staging", "production"] = "development"
    DEBUG: bool = False

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 3000

    # CORS
    CORS_ORIGINS: Annotated[list[str], NoDecode] = ["http://localhost:3000"]

    # Crawler
    CRAWLER_DEFAULT_MAX_PAGES: int = 20
    CRAWLER_DEFAULT_MAX_DEPTH: int = 2
    CRAWLER_CONCURRENCY: int = Field(1, ge=1, le=8)  # 1 = single-flight
    CRAWLER_RESPECT_ROBOTS: bool = False
    CRAWLER_ROBOTS_TIMEOUT: float = 10.0
    CRAWLER_USER_AGENT: str = "SiteAnalyzerBot/1.0 (+https://github.com/site-analyzer)"

    # Rendering (Playwright / Chromium)
    RENDER_HEADLESS: bool = True
    RENDER_BROWSER_ARGS: Annotated[list[str], NoDecode] = ["--no-sandbox", "--disable-setuid-sandbox"]
    RENDER_NAVIGATION_TIMEOUT_MS: int = 30_000
    RENDER_STEP_TIMEOUT_S: float = 15.0       # per DOM evaluation / screenshot
    RENDER_BLOCKED_RESOURCE_TYPES: Annotated[list[str], NoDecode] = ["image", "media"]

    # Viewport sweep
    VIEWPORT_SETTLE_MS: int = 100
    OVERFLOW_SCROLL_TOLERANCE_PX: int = 5
    OVERFLOW_CONTAINER_TOLERANCE_PX: int = 20
    OVERFLOW_LEFT_EDGE_PX: int = 10
    TAP_TARGET_MIN_PX: int = 44

    # Screenshots
    SCREENSHOTS_ENABLED: bool = True
    SCREENSHOT_DIR: str = "screenshots"
    SCREENSHOT_QUALITY: int = Field(60, ge=1, le=100)

    # Spell check
    SPELLCHECK_ENABLED: bool = True
    SPELLCHECK_LANGUAGE: str = "en"

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: Literal["json", "console"] = "json"

    @field_validator("CORS_ORIGINS", "RENDER_BROWSER_ARGS", "RENDER_BLOCKED_RESOURCE_TYPES", mode="before")
    @classmethod
    def parse_csv_list(cls, v: str | list) -> list:
        if isinstance(v, str):
            return [item.strip() for item in v.split(",") if item.strip()]
        return v

    @property
    def settle_seconds(self) -> float:
        return self.VIEWPORT_SETTLE_MS / 1000


@lru_cache()
def get_settings() -> Settings:
    """Cached settings instance - created once per process."""
    return Settings()
