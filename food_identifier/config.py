"""
Runtime settings.

Read from the environment (and a local .env file) once, validated, then
passed explicitly to build_pipeline().

Example .env:
    OPENAI_API_KEY=sk-...
    USDA_API_KEY=your-fdc-key
    VISION_TIMEOUT_SECONDS=20
    TRACE_FORWARD_URL=http://localhost:3000/api/debug/logs
"""

from __future__ import annotations

import os
from typing import Callable, Mapping, Optional, TypeVar

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from food_identifier.domain.shared.errors import ConfigurationError

T = TypeVar("T")

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off", ""}


class Settings(BaseModel):
    """Validated pipeline configuration."""

    model_config = ConfigDict(frozen=True)

    # Vision
    openai_api_key: Optional[str] = None
    openai_vision_model: str = "gpt-4o"
    vision_timeout_seconds: float = Field(30.0, gt=0)
    vision_max_tokens: int = Field(1000, gt=0)
    vision_temperature: float = Field(0.5, ge=0.0, le=2.0)

    # Nutrition providers
    usda_api_key: str = "DEMO_KEY"
    nutrition_provider_timeout_seconds: float = Field(10.0, gt=0)
    nutrition_provider_max_retries: int = Field(2, ge=1)
    nutrition_search_page_size: int = Field(10, gt=0, le=200)
    usda_confidence: float = Field(0.9, ge=0.0, le=1.0)
    off_confidence: float = Field(0.8, ge=0.0, le=1.0)
    nutrition_max_concurrency: int = Field(0, ge=0, description="0 = unbounded")

    # Pipeline
    low_confidence_threshold: float = Field(0.3, ge=0.0, le=1.0)

    # Tracing / logging
    trace_forward_url: Optional[str] = None
    log_level: str = "INFO"
    log_json: bool = False

    @classmethod
    def from_env(
        cls,
        environ: Optional[Mapping[str, str]] = None,
        dotenv: bool = True,
    ) -> Settings:
        """
        Build settings from environment variables.

        Args:
            environ: Mapping to read (os.environ if None)
            dotenv: Load .env into os.environ first

        Returns:
            Validated Settings

        Raises:
            ConfigurationError: On unparseable or out-of-range values
        """
        if dotenv and environ is None:
            load_dotenv()
        env = os.environ if environ is None else environ

        def get(key: str, parse: Callable[[str], T], default: T) -> T:
            raw = env.get(key)
            if raw is None or raw.strip() == "":
                return default
            try:
                return parse(raw.strip())
            except ValueError as e:
                raise ConfigurationError(f"{key} has invalid value {raw!r}") from e

        try:
            return cls(
                openai_api_key=env.get("OPENAI_API_KEY") or None,
                openai_vision_model=get("OPENAI_VISION_MODEL", str, "gpt-4o"),
                vision_timeout_seconds=get("VISION_TIMEOUT_SECONDS", float, 30.0),
                vision_max_tokens=get("VISION_MAX_TOKENS", int, 1000),
                vision_temperature=get("VISION_TEMPERATURE", float, 0.5),
                usda_api_key=get("USDA_API_KEY", str, "DEMO_KEY"),
                nutrition_provider_timeout_seconds=get(
                    "NUTRITION_PROVIDER_TIMEOUT_SECONDS", float, 10.0
                ),
                nutrition_provider_max_retries=get("NUTRITION_PROVIDER_MAX_RETRIES", int, 2),
                nutrition_search_page_size=get("NUTRITION_SEARCH_PAGE_SIZE", int, 10),
                usda_confidence=get("USDA_CONFIDENCE", float, 0.9),
                off_confidence=get("OFF_CONFIDENCE", float, 0.8),
                nutrition_max_concurrency=get("NUTRITION_MAX_CONCURRENCY", int, 0),
                low_confidence_threshold=get("LOW_CONFIDENCE_THRESHOLD", float, 0.3),
                trace_forward_url=env.get("TRACE_FORWARD_URL") or None,
                log_level=get("LOG_LEVEL", str.upper, "INFO"),
                log_json=get("LOG_JSON", parse_bool, False),
            )
        except PydanticValidationError as e:
            raise ConfigurationError(f"Invalid settings: {e}") from e


def parse_bool(raw: str) -> bool:
    """
    Parse an env flag.

    Example:
        >>> parse_bool("yes")
        True
        >>> parse_bool("0")
        False
    """
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ValueError(f"not a boolean: {raw!r}")
