"""
Unit tests for Config class.

Tests configuration defaults, environment variable handling, file loading
and validation.
"""

import json
import os
from pathlib import Path
from unittest.mock import patch

import pytest

from sanity_runner.core.config import DEFAULT_ENGINE_COMMAND, Config
from sanity_runner.core.exceptions import ValidationError


class TestConfig:
    """Test cases for Config class."""

    def test_default_config_creation(self):
        config = Config()

        assert config.ci_mode is False
        assert config.log_level == "INFO"
        assert config.log_format == "text"
        assert config.engine_command == DEFAULT_ENGINE_COMMAND
        assert config.engine_timeout == 600
        assert config.output_dir is None
        assert config.url_expiry_seconds == 7 * 24 * 60 * 60
        assert config.slack_default_channel == "#sanity-runner"
        assert config.screenshots_enabled is False

    @patch.dict(os.environ, {"CI": "true"})
    def test_ci_mode_detection(self):
        config = Config()

        assert config.ci_mode is True
        assert config.is_ci_mode is True
        assert config.log_format == "json"

    @patch.dict(os.environ, {"CI": "false"})
    def test_ci_mode_false(self):
        assert Config().ci_mode is False

    def test_log_level_normalization(self):
        assert Config(log_level="warn").log_level == "WARNING"
        assert Config(log_level="debug").log_level == "DEBUG"
        assert Config(log_level="chatty").log_level == "INFO"

    def test_string_paths_coerced(self):
        config = Config(output_dir="reports", logs_dir="logs")

        assert config.output_dir == Path("reports")
        assert config.get_log_file_path() == Path("logs") / "sanity-runner.log"

    def test_no_log_file_without_logs_dir(self):
        assert Config().get_log_file_path() is None

    @patch.dict(
        os.environ,
        {
            "SANITY_RUNNER_LOG_LEVEL": "DEBUG",
            "SANITY_RUNNER_OUTPUT_DIR": "/tmp/reports",
            "SANITY_RUNNER_ENGINE_COMMAND": "npx playwright test --reporter=json",
            "SANITY_RUNNER_ENGINE_TIMEOUT": "120",
            "SANITY_RUNNER_SCREENSHOT_BUCKET": "shots",
            "SANITY_RUNNER_BLOB_BASE_URL": "https://blobs.example.com",
            "SANITY_RUNNER_BLOB_SIGNING_KEY": "secret",
            "SANITY_RUNNER_URL_EXPIRY_SECONDS": "not-a-number",
            "SLACK_BOT_TOKEN": "xoxb-token",
            "SANITY_RUNNER_SLACK_CHANNEL": "#alerts",
            "PAGERDUTY_ROUTING_KEY": "routing-key",
        },
    )
    def test_from_env(self):
        config = Config.from_env()

        assert config.log_level == "DEBUG"
        assert config.output_dir == Path("/tmp/reports")
        assert config.engine_command == "npx playwright test --reporter=json"
        assert config.engine_timeout == 120
        assert config.screenshots_enabled is True
        assert config.blob_signing_key == "secret"
        assert config.url_expiry_seconds == 7 * 24 * 60 * 60
        assert config.slack_bot_token == "xoxb-token"
        assert config.slack_default_channel == "#alerts"
        assert config.pagerduty_routing_key == "routing-key"

    def test_to_dict_masks_secrets(self):
        config = Config(
            slack_bot_token="xoxb-token",
            blob_signing_key="secret",
            pagerduty_routing_key="routing-key",
        )

        data = config.to_dict()

        assert data["slack_bot_token"] == "***"
        assert data["blob_signing_key"] == "***"
        assert data["pagerduty_routing_key"] == "***"
        assert "xoxb-token" not in json.dumps(data)

    def test_from_yaml_file(self, tmp_path):
        path = tmp_path / "sanity-runner.yaml"
        path.write_text(
            "engine_timeout: 90\n"
            "output_dir: reports\n"
            "slack_default_channel: '#qa'\n"
            "unknown_key: ignored\n"
        )

        config = Config.from_file(path)

        assert config.engine_timeout == 90
        assert config.output_dir == Path("reports")
        assert config.slack_default_channel == "#qa"
        assert not hasattr(config, "unknown_key")

    def test_from_json_file(self, tmp_path):
        path = tmp_path / "sanity-runner.json"
        path.write_text(json.dumps({"log_level": "warn", "log_format": "json"}))

        config = Config.from_file(path)

        assert config.log_level == "WARNING"
        assert config.log_format == "json"

    def test_from_file_invalid(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{not json")

        with pytest.raises(ValidationError) as exc_info:
            Config.from_file(path)

        assert exc_info.value.validation_type == "config_file"

    def test_from_file_not_mapping(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n")

        with pytest.raises(ValidationError):
            Config.from_file(path)

    def test_from_file_missing(self, tmp_path):
        with pytest.raises(ValidationError):
            Config.from_file(tmp_path / "missing.yaml")

    def test_validate_valid_config(self):
        Config().validate()

    def test_validate_collects_all_violations(self):
        config = Config(
            log_format="xml",
            engine_command="  ",
            engine_timeout=0,
            url_expiry_seconds=-1,
            screenshot_bucket="shots",
        )

        with pytest.raises(ValidationError) as exc_info:
            config.validate()

        violations = exc_info.value.violations
        assert len(violations) == 5
        assert any("log format" in v for v in violations)
        assert any("blob storage URL" in v for v in violations)

    def test_validate_requires_signing_key(self):
        config = Config(screenshot_bucket="shots", blob_base_url="https://blobs")

        with pytest.raises(ValidationError, match="signing key"):
            config.validate()
