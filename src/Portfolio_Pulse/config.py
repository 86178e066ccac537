"""Runtime settings for the batch pipeline, read from environment variables.

Every knob has a default so the CLI and web app start without configuration.
Environment variables use the ``PULSE_`` prefix, except ``OLLAMA_HOST`` which
is shared with the ollama client itself.
"""

from __future__ import annotations

import logging
import os
from decimal import Decimal, InvalidOperation
from typing import Final

import pydantic
from pydantic import BaseModel, ConfigDict, Field

from Portfolio_Pulse.models.enums import AnalysisKind
from Portfolio_Pulse.utils.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------

DEFAULT_COOLDOWN_SECONDS: Final[float] = 30.0
DEFAULT_POLL_INTERVAL_SECONDS: Final[float] = 1.0
DEFAULT_HISTORY_PERIOD: Final[str] = "2y"
DEFAULT_NOTIONAL: Final[Decimal] = Decimal("1000")
DEFAULT_OLLAMA_HOST: Final[str] = "http://localhost:11434"
DEFAULT_OLLAMA_MODEL: Final[str] = "llama3.1:8b"
DEFAULT_CALL_TIMEOUT_SECONDS: Final[float] = 180.0

_ENV_PREFIX: Final[str] = "PULSE_"


class PipelineSettings(BaseModel):
    """Tunable parameters of a batch analysis run.

    When ``retry_wait_seconds`` is unset a failed job becomes eligible again
    once a full cooldown has elapsed since its own last attempt.
    """

    model_config = ConfigDict(frozen=True)

    cooldown_seconds: float = Field(default=DEFAULT_COOLDOWN_SECONDS, ge=0.0)
    retry_wait_seconds: float | None = Field(default=None, ge=0.0)
    poll_interval_seconds: float = Field(default=DEFAULT_POLL_INTERVAL_SECONDS, gt=0.0)
    history_period: str = DEFAULT_HISTORY_PERIOD
    notional: Decimal = Field(default=DEFAULT_NOTIONAL, gt=0)
    analysis_kind: AnalysisKind = AnalysisKind.COMPLETE
    symbol_suffix: str = ""
    ollama_host: str = DEFAULT_OLLAMA_HOST
    ollama_model: str = DEFAULT_OLLAMA_MODEL
    call_timeout_seconds: float = Field(default=DEFAULT_CALL_TIMEOUT_SECONDS, gt=0.0)

    @property
    def effective_retry_wait(self) -> float:
        """Retry wait in seconds, falling back to the cooldown duration."""
        if self.retry_wait_seconds is None:
            return self.cooldown_seconds
        return self.retry_wait_seconds


def _read_env(name: str) -> str | None:
    value = os.environ.get(f"{_ENV_PREFIX}{name}")
    if value is None or not value.strip():
        return None
    return value.strip()


def load_settings(**overrides: object) -> PipelineSettings:
    """Build settings from ``PULSE_*`` environment variables plus overrides.

    Keyword overrides win over the environment, which wins over defaults.
    ``None`` overrides are ignored so CLI options can pass through unset.

    Raises:
        ConfigurationError: If a value cannot be parsed or fails validation.
    """
    raw: dict[str, object] = {}

    env_fields: dict[str, str] = {
        "COOLDOWN_SECONDS": "cooldown_seconds",
        "RETRY_WAIT_SECONDS": "retry_wait_seconds",
        "POLL_INTERVAL_SECONDS": "poll_interval_seconds",
        "HISTORY_PERIOD": "history_period",
        "NOTIONAL": "notional",
        "ANALYSIS_KIND": "analysis_kind",
        "SYMBOL_SUFFIX": "symbol_suffix",
        "OLLAMA_MODEL": "ollama_model",
        "CALL_TIMEOUT_SECONDS": "call_timeout_seconds",
    }
    for env_name, field_name in env_fields.items():
        value = _read_env(env_name)
        if value is not None:
            raw[field_name] = value

    ollama_host = os.environ.get("OLLAMA_HOST")
    if ollama_host:
        raw["ollama_host"] = ollama_host

    raw.update({key: value for key, value in overrides.items() if value is not None})

    try:
        settings = PipelineSettings.model_validate(raw)
    except (pydantic.ValidationError, InvalidOperation) as exc:
        msg = f"Invalid pipeline settings: {exc}"
        raise ConfigurationError(msg) from exc

    logger.debug(
        "Pipeline settings loaded: cooldown=%.1fs retry_wait=%.1fs period=%s model=%s",
        settings.cooldown_seconds,
        settings.effective_retry_wait,
        settings.history_period,
        settings.ollama_model,
    )
    return settings
