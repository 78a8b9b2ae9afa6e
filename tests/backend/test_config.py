from __future__ import annotations

import os
from pathlib import Path

from pricewise.config import AppConfig, PipelineConfig


def test_defaults_apply_when_environment_is_empty() -> None:
    config = AppConfig.from_env({})

    assert config.pipeline == PipelineConfig()
    assert config.pipeline.threshold_percent == 40.0
    assert config.polling.interval_seconds == 3600
    assert config.email.configured is False
    assert config.data_directory == Path("data")


def test_environment_overrides() -> None:
    config = AppConfig.from_env(
        {
            "PRICEWISE_THRESHOLD_PERCENT": "12.5",
            "PRICEWISE_STRICT_NEW_LOW": "yes",
            "PRICEWISE_FETCH_TIMEOUT": "5",
            "PRICEWISE_BATCH_BUDGET": "60",
            "PRICEWISE_MAX_WORKERS": "2",
            "PRICEWISE_POLL_INTERVAL": "900",
            "PRICEWISE_SMTP_HOST": "smtp.example.com",
            "PRICEWISE_EMAIL_FROM": "alerts@example.com",
            "PRICEWISE_SMTP_USE_SSL": "true",
            "PRICEWISE_DATA_DIR": "/tmp/pricewise",
            "PRICEWISE_ENV": "production",
            "PRICEWISE_LOG_LEVEL": "debug",
        }
    )

    assert config.pipeline.threshold_percent == 12.5
    assert config.pipeline.strict_new_low is True
    assert config.pipeline.fetch_timeout_seconds == 5.0
    assert config.pipeline.batch_time_budget_seconds == 60.0
    assert config.pipeline.max_workers == 2
    assert config.polling.interval_seconds == 900
    assert config.email.configured is True
    assert config.email.use_ssl is True
    assert config.data_directory == Path("/tmp/pricewise")
    assert config.environment == "production"
    assert config.log_level == "DEBUG"


def test_malformed_values_fall_back_to_defaults() -> None:
    config = AppConfig.from_env(
        {"PRICEWISE_THRESHOLD_PERCENT": "lots", "PRICEWISE_MAX_WORKERS": "0", "PRICEWISE_ENV": "staging"}
    )

    assert config.pipeline.threshold_percent == 40.0
    assert config.pipeline.max_workers == 1
    assert config.environment == "development"


def test_ensure_data_directories(tmp_path) -> None:
    config = AppConfig(data_directory=tmp_path / "data")

    config.ensure_data_directories()

    assert config.products_directory.is_dir()


def test_dotenv_file_fills_missing_variables(tmp_path, monkeypatch) -> None:
    environ = {"PRICEWISE_POLL_INTERVAL": "120"}
    monkeypatch.setattr(os, "environ", environ)
    dotenv_file = tmp_path / ".env"
    dotenv_file.write_text(
        "PRICEWISE_THRESHOLD_PERCENT=25\nPRICEWISE_POLL_INTERVAL=999\nPRICEWISE_SMTP_HOST=smtp.example.com\n",
        encoding="utf-8",
    )

    config = AppConfig.from_env(dotenv_path=dotenv_file)

    assert config.pipeline.threshold_percent == 25.0
    assert config.polling.interval_seconds == 120
    assert config.email.host == "smtp.example.com"
