from __future__ import annotations

from pydantic import BaseModel, Field, field_validator


class StoreSettings(BaseModel):
    file_name: str = "healingStore.json"
    directory: str = "."
    retention_days: int = 30

    @field_validator("retention_days")
    @classmethod
    def validate_retention(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("retention_days must be positive")
        return value

    @field_validator("file_name")
    @classmethod
    def validate_file_name(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("file_name must not be empty")
        return value


class SynonymSettings(BaseModel):
    enabled: bool = True
    endpoint: str = "https://api.datamuse.com/words"
    limit: int = 3
    timeout_seconds: float = 5

    @field_validator("limit")
    @classmethod
    def validate_limit(cls, value: int) -> int:
        if value < 0:
            raise ValueError("limit must not be negative")
        return value


class GenerativeSettings(BaseModel):
    provider: str = "openai"
    model: str | None = None
    timeout_seconds: float = 30

    @field_validator("provider")
    @classmethod
    def validate_provider(cls, value: str) -> str:
        normalized = value.lower()
        if normalized not in {"openai", "anthropic", "gemini"}:
            raise ValueError(f"Unsupported LLM provider: {value}")
        return normalized


class BrowserSettings(BaseModel):
    name: str = "chrome"
    headless: bool = True
    page_load_timeout_seconds: int = 30
    window_width: int = 1440
    window_height: int = 1200

    @field_validator("window_width", "window_height")
    @classmethod
    def validate_window(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("window dimensions must be positive")
        return value

    @field_validator("name")
    @classmethod
    def validate_name(cls, value: str) -> str:
        normalized = value.lower()
        if normalized not in {"chrome", "firefox"}:
            raise ValueError(f"Unsupported browser: {value}")
        return normalized


class HealingSettings(BaseModel):
    strategy: str = "heuristic"
    log_level: str = "info"
    candidate_visibility_timeout_seconds: float | None = 1.5
    original_visibility_timeout_seconds: float | None = None
    audit_log_path: str | None = None
    store: StoreSettings = Field(default_factory=StoreSettings)
    synonyms: SynonymSettings = Field(default_factory=SynonymSettings)
    generative: GenerativeSettings = Field(default_factory=GenerativeSettings)
    browser: BrowserSettings = Field(default_factory=BrowserSettings)

    @field_validator("strategy")
    @classmethod
    def validate_strategy(cls, value: str) -> str:
        normalized = value.lower()
        if normalized not in {"heuristic", "ai"}:
            raise ValueError("strategy must be 'heuristic' or 'ai'")
        return normalized

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        normalized = value.lower()
        if normalized not in {"silent", "info", "debug"}:
            raise ValueError("log_level must be 'silent', 'info' or 'debug'")
        return normalized
