from __future__ import annotations

from dataclasses import dataclass, fields, replace
from typing import Any

from pydantic import AliasChoices, Field, ValidationInfo, field_validator
from pydantic_settings import BaseSettings

# Budget fields that must hold a positive integer; anything else falls back to the default.
POSITIVE_INT_FIELDS = (
    "crawl_page_limit",
    "crawl_max_discovery_depth",
    "max_pagination_requests",
    "max_collected_pages",
    "max_selected_pages",
    "max_chars_per_page",
    "max_total_chars",
    "min_remaining_chars",
    "firecrawl_timeout_ms",
    "firecrawl_retry_base_delay_ms",
    "claude_timeout_ms",
    "claude_max_tokens",
    "repair_timeout_ms",
    "repair_max_tokens",
)

NON_NEGATIVE_INT_FIELDS = ("firecrawl_retries",)


def coerce_positive_int(value: Any, fallback: int) -> int:
    """Return ``value`` as a positive int, or ``fallback`` when it isn't one."""
    if isinstance(value, bool):
        return fallback
    try:
        number = int(str(value).strip())
    except (TypeError, ValueError):
        return fallback
    return number if number > 0 else fallback


def coerce_non_negative_int(value: Any, fallback: int) -> int:
    if isinstance(value, bool):
        return fallback
    try:
        number = int(str(value).strip())
    except (TypeError, ValueError):
        return fallback
    return number if number >= 0 else fallback


class Settings(BaseSettings):
    # Firecrawl
    firecrawl_api_key: str = ""
    firecrawl_base_url: str = "https://api.firecrawl.dev/v2"
    firecrawl_timeout_ms: int = 30000
    firecrawl_retries: int = 2
    firecrawl_retry_base_delay_ms: int = 600

    # Crawl job shape
    crawl_page_limit: int = 60
    crawl_max_discovery_depth: int = 3
    crawl_entire_domain: bool = False

    # Claude
    claude_api_key: str = Field(
        default="",
        validation_alias=AliasChoices("claude_api_key", "anthropic_api_key"),
    )
    claude_base_url: str = "https://api.anthropic.com"
    claude_model: str = "claude-sonnet-4-20250514"
    claude_timeout_ms: int = 180000
    claude_max_tokens: int = 4000
    claude_temperature: float = 0.2
    repair_timeout_ms: int = 90000
    repair_max_tokens: int = 4000

    # Page selection budgets
    max_pagination_requests: int = 10
    max_collected_pages: int = 300
    max_selected_pages: int = 24
    max_chars_per_page: int = 4500
    max_total_chars: int = 160000
    min_remaining_chars: int = 200
    enforce_brief_limits: bool = False

    # App
    cors_origins: str = "http://localhost:3000"
    app_log_level: str = "INFO"
    noisy_log_level: str = "WARNING"
    log_to_file: bool = True
    log_dir: str = "logs"

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @field_validator(*POSITIVE_INT_FIELDS, mode="before")
    @classmethod
    def _positive_or_default(cls, value: Any, info: ValidationInfo) -> int:
        return coerce_positive_int(value, cls.model_fields[info.field_name].default)

    @field_validator(*NON_NEGATIVE_INT_FIELDS, mode="before")
    @classmethod
    def _non_negative_or_default(cls, value: Any, info: ValidationInfo) -> int:
        return coerce_non_negative_int(value, cls.model_fields[info.field_name].default)

    @field_validator("claude_temperature", mode="before")
    @classmethod
    def _temperature_or_default(cls, value: Any, info: ValidationInfo) -> float:
        fallback = cls.model_fields[info.field_name].default
        try:
            number = float(str(value).strip())
        except (TypeError, ValueError):
            return fallback
        return number if 0.0 <= number <= 1.0 else fallback

    @property
    def cors_origin_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]


@dataclass(frozen=True, slots=True)
class RequestBudget:
    """Numeric limits applied to a single pipeline invocation."""

    max_pagination_requests: int = 10
    max_collected_pages: int = 300
    max_selected_pages: int = 24
    max_chars_per_page: int = 4500
    max_total_chars: int = 160000
    min_remaining_chars: int = 200
    firecrawl_timeout_ms: int = 30000
    firecrawl_retries: int = 2
    firecrawl_retry_base_delay_ms: int = 600
    claude_timeout_ms: int = 180000
    claude_max_tokens: int = 4000
    repair_timeout_ms: int = 90000
    repair_max_tokens: int = 4000

    @classmethod
    def from_settings(cls, source: Settings) -> "RequestBudget":
        return cls(**{f.name: getattr(source, f.name) for f in fields(cls)})

    def with_overrides(self, **values: Any) -> "RequestBudget":
        """Return a copy with ``values`` applied; invalid numbers keep the current value."""
        known = {f.name for f in fields(self)}
        unknown = set(values) - known
        if unknown:
            raise TypeError(f"Unknown budget fields: {', '.join(sorted(unknown))}")

        changes: dict[str, int] = {}
        for name, value in values.items():
            if value is None:
                continue
            current = getattr(self, name)
            if name in NON_NEGATIVE_INT_FIELDS:
                changes[name] = coerce_non_negative_int(value, current)
            else:
                changes[name] = coerce_positive_int(value, current)
        return replace(self, **changes)


settings = Settings()
