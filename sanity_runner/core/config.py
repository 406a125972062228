"""
Configuration management for Sanity Runner.

Handles environment variables, defaults, configuration files and validation
for the execution, reporting and alerting components.
"""

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Dict, Any, List

import yaml


DEFAULT_ENGINE_COMMAND = "npx jest --json --runInBand"


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


@dataclass
class Config:
    """Configuration class for Sanity Runner with environment variable support."""

    # Environment detection
    ci_mode: bool = field(default=False)

    # Logging configuration
    log_level: str = field(default="INFO")
    log_format: str = field(default="text")
    logs_dir: Optional[Path] = field(default=None)

    # Execution engine
    engine_command: str = field(default=DEFAULT_ENGINE_COMMAND)
    engine_timeout: int = field(default=600)

    # Report output
    output_dir: Optional[Path] = field(default=None)

    # Screenshot publishing
    screenshot_bucket: Optional[str] = field(default=None)
    screenshot_filename: str = field(default="screenshot.png")
    blob_base_url: Optional[str] = field(default=None)
    blob_signing_key: Optional[str] = field(default=None)
    url_expiry_seconds: int = field(default=7 * 24 * 60 * 60)

    # Alert transports
    slack_bot_token: Optional[str] = field(default=None)
    slack_default_channel: str = field(default="#sanity-runner")
    pagerduty_routing_key: Optional[str] = field(default=None)

    def __post_init__(self):
        """Post-initialization normalization."""
        if os.getenv("CI", "").lower() == "true" and self.ci_mode is False:
            self.ci_mode = True

        valid_log_levels = ["DEBUG", "INFO", "WARNING", "ERROR"]
        level = self.log_level.upper()
        if level == "WARN":
            level = "WARNING"
        self.log_level = level if level in valid_log_levels else "INFO"

        # JSON lines in CI unless explicitly set otherwise
        if self.ci_mode and self.log_format == "text":
            self.log_format = "json"

        if isinstance(self.logs_dir, str):
            self.logs_dir = Path(self.logs_dir)
        if isinstance(self.output_dir, str):
            self.output_dir = Path(self.output_dir)

    @property
    def is_ci_mode(self) -> bool:
        """Check if running in CI environment."""
        return self.ci_mode

    @property
    def screenshots_enabled(self) -> bool:
        """Screenshots are published only when a destination bucket is set."""
        return bool(self.screenshot_bucket)

    def get_log_file_path(self) -> Optional[Path]:
        """Get the main log file path."""
        if self.logs_dir is None:
            return None
        return self.logs_dir / "sanity-runner.log"

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary for logging. Secrets are masked."""
        return {
            "ci_mode": self.ci_mode,
            "log_level": self.log_level,
            "log_format": self.log_format,
            "logs_dir": str(self.logs_dir) if self.logs_dir else None,
            "engine_command": self.engine_command,
            "engine_timeout": self.engine_timeout,
            "output_dir": str(self.output_dir) if self.output_dir else None,
            "screenshot_bucket": self.screenshot_bucket,
            "screenshot_filename": self.screenshot_filename,
            "blob_base_url": self.blob_base_url,
            "blob_signing_key": "***" if self.blob_signing_key else None,
            "url_expiry_seconds": self.url_expiry_seconds,
            "slack_bot_token": "***" if self.slack_bot_token else None,
            "slack_default_channel": self.slack_default_channel,
            "pagerduty_routing_key": "***" if self.pagerduty_routing_key else None,
        }

    @classmethod
    def from_env(cls) -> "Config":
        """Create configuration from environment variables."""
        ci = os.getenv("CI", "").lower() == "true"
        logs_dir = os.getenv("SANITY_RUNNER_LOGS_DIR")
        output_dir = os.getenv("SANITY_RUNNER_OUTPUT_DIR")

        return cls(
            ci_mode=ci,
            log_level=os.getenv("SANITY_RUNNER_LOG_LEVEL", "INFO"),
            log_format=os.getenv("SANITY_RUNNER_LOG_FORMAT", "json" if ci else "text"),
            logs_dir=Path(logs_dir) if logs_dir else None,
            engine_command=os.getenv(
                "SANITY_RUNNER_ENGINE_COMMAND", DEFAULT_ENGINE_COMMAND
            ),
            engine_timeout=_env_int("SANITY_RUNNER_ENGINE_TIMEOUT", 600),
            output_dir=Path(output_dir) if output_dir else None,
            screenshot_bucket=os.getenv("SANITY_RUNNER_SCREENSHOT_BUCKET") or None,
            blob_base_url=os.getenv("SANITY_RUNNER_BLOB_BASE_URL") or None,
            blob_signing_key=os.getenv("SANITY_RUNNER_BLOB_SIGNING_KEY") or None,
            url_expiry_seconds=_env_int(
                "SANITY_RUNNER_URL_EXPIRY_SECONDS", 7 * 24 * 60 * 60
            ),
            slack_bot_token=os.getenv("SLACK_BOT_TOKEN") or None,
            slack_default_channel=os.getenv(
                "SANITY_RUNNER_SLACK_CHANNEL", "#sanity-runner"
            ),
            pagerduty_routing_key=os.getenv("PAGERDUTY_ROUTING_KEY") or None,
        )

    @classmethod
    def from_file(cls, path: Path) -> "Config":
        """
        Load configuration from a JSON or YAML file on top of the environment.

        Keys that do not name a configuration field are ignored.
        """
        from .exceptions import ValidationError

        path = Path(path)
        config = cls.from_env()

        try:
            with open(path, "r", encoding="utf-8") as f:
                if path.suffix.lower() in (".yaml", ".yml"):
                    file_config = yaml.safe_load(f) or {}
                else:
                    file_config = json.load(f)
        except (OSError, json.JSONDecodeError, yaml.YAMLError) as e:
            raise ValidationError(
                f"Could not load config file {path}: {e}",
                validation_type="config_file",
            )

        if not isinstance(file_config, dict):
            raise ValidationError(
                f"Config file {path} must contain a mapping",
                validation_type="config_file",
            )

        for key, value in file_config.items():
            if hasattr(config, key):
                if (key.endswith("_dir") or key.endswith("_path")) and value:
                    value = Path(value)
                setattr(config, key, value)

        config.__post_init__()
        return config

    def validate(self) -> None:
        """Validate configuration and raise ValidationError if invalid."""
        from .exceptions import ValidationError

        errors: List[str] = []

        if self.log_format not in ("json", "text"):
            errors.append(
                f"Invalid log format: {self.log_format}. Must be one of ['json', 'text']"
            )

        if not self.engine_command.strip():
            errors.append("Engine command cannot be empty")

        if self.engine_timeout <= 0:
            errors.append(f"Engine timeout must be positive: {self.engine_timeout}")

        if self.url_expiry_seconds <= 0:
            errors.append(
                f"URL expiry must be positive: {self.url_expiry_seconds}"
            )

        if self.screenshot_bucket and not self.blob_base_url:
            errors.append("Screenshot bucket is set but no blob storage URL is configured")

        if self.blob_base_url and not self.blob_signing_key:
            errors.append("Blob storage URL is set but no signing key is configured")

        if errors:
            message = "Configuration validation failed: " + "; ".join(errors)
            raise ValidationError(
                message,
                validation_type="config",
                violations=errors,
            )
