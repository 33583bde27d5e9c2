from __future__ import annotations

import logging

from techenglish.logging_config import build_logging_config, configure_logging


def test_defaults_route_telemetry_to_its_own_handler() -> None:
    config = build_logging_config({})

    assert config["root"] == {"handlers": ["default"], "level": "INFO"}
    telemetry = config["loggers"]["techenglish.telemetry"]
    assert telemetry == {"level": "INFO", "handlers": ["telemetry"], "propagate": False}
    assert config["loggers"]["techenglish.audit"] == {"level": "INFO"}
    assert "sqlalchemy.engine" not in config["loggers"]


def test_channel_levels_follow_environment() -> None:
    config = build_logging_config(
        {
            "TECHENGLISH_LOG_LEVEL": "warning",
            "TECHENGLISH_TELEMETRY_LOG_LEVEL": "debug",
            "TECHENGLISH_DEBUG_SQL": "1",
        }
    )

    assert config["root"]["level"] == "WARNING"
    assert config["loggers"]["techenglish.telemetry"]["level"] == "DEBUG"
    assert config["loggers"]["techenglish.audit"]["level"] == "WARNING"
    assert config["loggers"]["sqlalchemy.engine"] == {"level": "INFO"}


def test_unknown_level_names_fall_back() -> None:
    config = build_logging_config({"TECHENGLISH_LOG_LEVEL": "chatty", "TECHENGLISH_AUDIT_LOG_LEVEL": "loud"})

    assert config["root"]["level"] == "INFO"
    assert config["loggers"]["techenglish.audit"]["level"] == "INFO"


def test_configure_logging_applies_levels() -> None:
    configure_logging({"TECHENGLISH_AUDIT_LOG_LEVEL": "ERROR"})
    try:
        assert logging.getLogger("techenglish.audit").level == logging.ERROR
        assert logging.getLogger("techenglish.telemetry").propagate is False
    finally:
        configure_logging({})
