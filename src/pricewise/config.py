"""Configuration settings for the Pricewise price tracking service."""
from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal, Optional

from dotenv import load_dotenv


@dataclass(slots=True)
class PipelineConfig:
    """Settings for a single refresh-and-notify run."""

    threshold_percent: float = 40.0
    """Minimum percentage drop from the last observed price that triggers an alert."""

    strict_new_low: bool = False
    """Require the new price to be strictly below the recorded low for a lowest-price alert."""

    fetch_timeout_seconds: float = 30.0
    """Timeout handed to the snapshot source for each product."""

    batch_time_budget_seconds: float = 300.0
    """Wall-clock budget for the whole batch."""

    max_workers: int = 8
    """Upper bound on products refreshed concurrently."""


@dataclass(slots=True)
class PollingConfig:
    """Settings related to the recurring refresh schedule."""

    interval_seconds: int = 3600
    """How frequently to run the pipeline."""


@dataclass(slots=True)
class EmailConfig:
    """SMTP settings for outbound alert mail."""

    host: str = ""
    port: int = 587
    username: str = ""
    password: str = ""
    sender: str = ""
    use_ssl: bool = False

    @property
    def configured(self) -> bool:
        return bool(self.host and self.sender)


@dataclass(slots=True)
class AppConfig:
    """Top-level configuration for the application."""

    environment: Literal["development", "production"] = "development"
    data_directory: Path = field(default_factory=lambda: Path("data"))
    log_level: str = "INFO"
    pipeline: PipelineConfig = field(default_factory=PipelineConfig)
    polling: PollingConfig = field(default_factory=PollingConfig)
    email: EmailConfig = field(default_factory=EmailConfig)

    @property
    def products_directory(self) -> Path:
        return self.data_directory / "products"

    def ensure_data_directories(self) -> None:
        """Create data directories required by the application."""

        self.data_directory.mkdir(parents=True, exist_ok=True)
        self.products_directory.mkdir(parents=True, exist_ok=True)

    @classmethod
    def from_env(
        cls,
        environ: Optional[Mapping[str, str]] = None,
        dotenv_path: Optional[Path] = None,
    ) -> AppConfig:
        """Build a configuration from ``PRICEWISE_*`` variables.

        When reading the process environment, a ``.env`` file (by default in the
        working directory) is loaded first; variables already set take precedence.
        Missing or malformed values fall back to the dataclass defaults.
        """

        if environ is None:
            load_dotenv(dotenv_path=dotenv_path or Path.cwd() / ".env")
            env: Mapping[str, str] = os.environ
        else:
            env = environ
        defaults = cls()
        pipeline = PipelineConfig(
            threshold_percent=_float(env, "PRICEWISE_THRESHOLD_PERCENT", defaults.pipeline.threshold_percent),
            strict_new_low=_bool(env, "PRICEWISE_STRICT_NEW_LOW", defaults.pipeline.strict_new_low),
            fetch_timeout_seconds=_float(
                env, "PRICEWISE_FETCH_TIMEOUT", defaults.pipeline.fetch_timeout_seconds
            ),
            batch_time_budget_seconds=_float(
                env, "PRICEWISE_BATCH_BUDGET", defaults.pipeline.batch_time_budget_seconds
            ),
            max_workers=max(_int(env, "PRICEWISE_MAX_WORKERS", defaults.pipeline.max_workers), 1),
        )
        polling = PollingConfig(
            interval_seconds=_int(env, "PRICEWISE_POLL_INTERVAL", defaults.polling.interval_seconds),
        )
        email = EmailConfig(
            host=env.get("PRICEWISE_SMTP_HOST", "").strip(),
            port=_int(env, "PRICEWISE_SMTP_PORT", defaults.email.port),
            username=env.get("PRICEWISE_SMTP_USER", "").strip(),
            password=env.get("PRICEWISE_SMTP_PASSWORD", ""),
            sender=env.get("PRICEWISE_EMAIL_FROM", "").strip(),
            use_ssl=_bool(env, "PRICEWISE_SMTP_USE_SSL", defaults.email.use_ssl),
        )
        environment = env.get("PRICEWISE_ENV", defaults.environment)
        if environment not in ("development", "production"):
            environment = defaults.environment
        return cls(
            environment=environment,  # type: ignore[arg-type]
            data_directory=Path(env.get("PRICEWISE_DATA_DIR", str(defaults.data_directory))),
            log_level=env.get("PRICEWISE_LOG_LEVEL", defaults.log_level).upper(),
            pipeline=pipeline,
            polling=polling,
            email=email,
        )


def _float(env: Mapping[str, str], name: str, default: float) -> float:
    try:
        return float(env[name])
    except (KeyError, ValueError):
        return default


def _int(env: Mapping[str, str], name: str, default: int) -> int:
    try:
        return int(env[name])
    except (KeyError, ValueError):
        return default


def _bool(env: Mapping[str, str], name: str, default: bool) -> bool:
    value = env.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes")
