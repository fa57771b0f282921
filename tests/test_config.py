"""Tests for core/config.py, configs/base.py and configs/loader.py."""

import tempfile
from pathlib import Path

import pytest

from configs.base import OrchestratorConfig
from configs.loader import load_config
from core.config import (
    BACKOFF_BASE,
    BACKOFF_MAX,
    BATCH_OPERATIONS,
    CACHE_SWEEP_INTERVAL,
    DEFAULT_HISTORY_LIMIT,
    GEMINI_MODELS,
    MODEL_PRICING,
    SCORE_WEIGHTS,
    _env_float,
    _env_int,
)
from core.types import BatchOperationType


class TestConstants:
    """Tests for module-level defaults."""

    def test_score_weights_sum_to_100(self):
        """Model comparison weights should add up to 100."""
        assert sum(SCORE_WEIGHTS.values()) == 100

    def test_backoff_defaults(self):
        """Backoff should start at 200 ms and cap at 5 s."""
        assert BACKOFF_BASE == 0.2
        assert BACKOFF_MAX == 5.0

    def test_sweep_and_history_defaults(self):
        """Sweep interval and history page size should match documented defaults."""
        assert CACHE_SWEEP_INTERVAL == 60
        assert DEFAULT_HISTORY_LIMIT == 50

    def test_operations_match_enum(self):
        """Every operation name should be a BatchOperationType value."""
        assert set(BATCH_OPERATIONS) == {op.value for op in BatchOperationType}

    def test_gemini_models_priced(self):
        """Every selectable Gemini model should have a price."""
        for model_name, _ in GEMINI_MODELS.values():
            assert model_name in MODEL_PRICING


class TestEnvHelpers:
    """Tests for environment overrides."""

    def test_env_float_default(self, monkeypatch):
        """Unset variables should fall back to the default."""
        monkeypatch.delenv("ANNOTATION_TEST_VALUE", raising=False)
        assert _env_float("ANNOTATION_TEST_VALUE", 1.5) == 1.5

    def test_env_float_blank_uses_default(self, monkeypatch):
        """Blank variables should fall back to the default."""
        monkeypatch.setenv("ANNOTATION_TEST_VALUE", "  ")
        assert _env_float("ANNOTATION_TEST_VALUE", 2.0) == 2.0

    def test_env_int_parses(self, monkeypatch):
        """Numeric variables should be parsed."""
        monkeypatch.setenv("ANNOTATION_TEST_VALUE", "7")
        assert _env_int("ANNOTATION_TEST_VALUE", 3) == 7

    def test_env_float_invalid_raises(self, monkeypatch):
        """Non-numeric variables should raise with the variable name."""
        monkeypatch.setenv("ANNOTATION_TEST_VALUE", "abc")
        with pytest.raises(ValueError, match="ANNOTATION_TEST_VALUE"):
            _env_float("ANNOTATION_TEST_VALUE", 1.0)


class TestOrchestratorConfig:
    """Tests for OrchestratorConfig dataclass."""

    def test_defaults(self):
        """Should carry the documented defaults."""
        config = OrchestratorConfig()
        assert config.backoff_base == 0.2
        assert config.storage_dir is None
        assert config.quality_threshold is None
        assert config.namespace_ttls == {}

    def test_rejects_zero_parallelism(self):
        """parallel_requests below 1 should raise."""
        with pytest.raises(ValueError, match="parallel_requests"):
            OrchestratorConfig(parallel_requests=0)

    def test_rejects_negative_retries(self):
        """Negative retry_attempts should raise."""
        with pytest.raises(ValueError, match="retry_attempts"):
            OrchestratorConfig(retry_attempts=-1)

    def test_rejects_bad_threshold(self):
        """quality_threshold outside 0-100 should raise."""
        with pytest.raises(ValueError, match="quality_threshold"):
            OrchestratorConfig(quality_threshold=150)

    def test_option_defaults(self):
        """option_defaults should expose the batch-level defaults."""
        config = OrchestratorConfig(default_model="m1", parallel_requests=8, retry_attempts=1)
        defaults = config.option_defaults()
        assert defaults["model"] == "m1"
        assert defaults["parallel_requests"] == 8
        assert defaults["retry_attempts"] == 1


class TestLoadConfig:
    """Tests for load_config."""

    def test_load_preset_module(self):
        """Should load a preset by module path."""
        config = load_config("configs.presets.local")
        assert isinstance(config, OrchestratorConfig)
        assert config.provider == "echo"

    def test_load_preset_file_path(self):
        """Should load a preset by relative file path."""
        config = load_config("configs/presets/high_throughput.py")
        assert config.parallel_requests == 16
        assert config.quality_threshold == 50

    def test_load_absolute_file(self):
        """Should exec an arbitrary config file."""
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "custom.py"
            path.write_text(
                "from configs.base import OrchestratorConfig\n"
                "config = OrchestratorConfig(parallel_requests=3)\n"
            )
            config = load_config(str(path))
            assert config.parallel_requests == 3

    def test_missing_config_variable(self):
        """A file without 'config' should raise ValueError."""
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "empty.py"
            path.write_text("x = 1\n")
            with pytest.raises(ValueError, match="config"):
                load_config(str(path))

    def test_wrong_type(self):
        """A 'config' of the wrong type should raise ValueError."""
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "wrong.py"
            path.write_text("config = {'parallel_requests': 2}\n")
            with pytest.raises(ValueError, match="OrchestratorConfig"):
                load_config(str(path))

    def test_missing_file(self):
        """A nonexistent file should raise ValueError."""
        with pytest.raises(ValueError):
            load_config("/nonexistent/config.py")

    def test_unknown_module(self):
        """An unknown module path should raise ValueError."""
        with pytest.raises(ValueError):
            load_config("configs.presets.does_not_exist")
