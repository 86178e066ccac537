"""Tests for PipelineSettings and load_settings()."""

from __future__ import annotations

from decimal import Decimal

import pytest

from Portfolio_Pulse.config import (
    DEFAULT_COOLDOWN_SECONDS,
    DEFAULT_OLLAMA_HOST,
    PipelineSettings,
    load_settings,
)
from Portfolio_Pulse.models import AnalysisKind
from Portfolio_Pulse.utils.exceptions import ConfigurationError

_ENV_VARS = (
    "PULSE_COOLDOWN_SECONDS",
    "PULSE_RETRY_WAIT_SECONDS",
    "PULSE_POLL_INTERVAL_SECONDS",
    "PULSE_HISTORY_PERIOD",
    "PULSE_NOTIONAL",
    "PULSE_ANALYSIS_KIND",
    "PULSE_SYMBOL_SUFFIX",
    "PULSE_OLLAMA_MODEL",
    "PULSE_CALL_TIMEOUT_SECONDS",
    "OLLAMA_HOST",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


class TestPipelineSettings:
    """Tests for the settings model itself."""

    def test_defaults(self) -> None:
        settings = PipelineSettings()
        assert settings.cooldown_seconds == DEFAULT_COOLDOWN_SECONDS
        assert settings.history_period == "2y"
        assert settings.analysis_kind == AnalysisKind.COMPLETE
        assert settings.ollama_host == DEFAULT_OLLAMA_HOST

    def test_retry_wait_falls_back_to_cooldown(self) -> None:
        assert PipelineSettings(cooldown_seconds=12.0).effective_retry_wait == 12.0  # noqa: PLR2004

    def test_explicit_retry_wait(self) -> None:
        settings = PipelineSettings(cooldown_seconds=12.0, retry_wait_seconds=0.0)
        assert settings.effective_retry_wait == 0.0


class TestLoadSettings:
    """Tests for environment and override precedence."""

    def test_no_env_gives_defaults(self) -> None:
        assert load_settings() == PipelineSettings()

    def test_env_values_parsed(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("PULSE_COOLDOWN_SECONDS", "5")
        monkeypatch.setenv("PULSE_NOTIONAL", "2500.50")
        monkeypatch.setenv("PULSE_ANALYSIS_KIND", "technical")
        monkeypatch.setenv("PULSE_SYMBOL_SUFFIX", ".SA")
        monkeypatch.setenv("OLLAMA_HOST", "http://gpu-box:11434")

        settings = load_settings()

        assert settings.cooldown_seconds == 5.0  # noqa: PLR2004
        assert settings.notional == Decimal("2500.50")
        assert settings.analysis_kind == AnalysisKind.TECHNICAL
        assert settings.symbol_suffix == ".SA"
        assert settings.ollama_host == "http://gpu-box:11434"

    def test_blank_env_ignored(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("PULSE_HISTORY_PERIOD", "   ")
        assert load_settings().history_period == "2y"

    def test_overrides_beat_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("PULSE_COOLDOWN_SECONDS", "5")
        assert load_settings(cooldown_seconds=1.0).cooldown_seconds == 1.0

    def test_none_overrides_ignored(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("PULSE_COOLDOWN_SECONDS", "5")
        assert load_settings(cooldown_seconds=None).cooldown_seconds == 5.0  # noqa: PLR2004

    @pytest.mark.parametrize(
        ("name", "value"),
        [
            ("PULSE_COOLDOWN_SECONDS", "-1"),
            ("PULSE_COOLDOWN_SECONDS", "soon"),
            ("PULSE_NOTIONAL", "0"),
            ("PULSE_ANALYSIS_KIND", "astrology"),
        ],
    )
    def test_invalid_values(self, monkeypatch: pytest.MonkeyPatch, name: str, value: str) -> None:
        monkeypatch.setenv(name, value)
        with pytest.raises(ConfigurationError, match="Invalid pipeline settings"):
            load_settings()
