import logging
import os
from logging.config import dictConfig
from typing import Any, Dict, Mapping, Optional

DEFAULT_LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
TELEMETRY_LOG_FORMAT = "%(asctime)s %(message)s"

# Loggers whose level can be tuned independently of the root level.
CHANNEL_ENV = {
    "techenglish.telemetry": "TECHENGLISH_TELEMETRY_LOG_LEVEL",
    "techenglish.audit": "TECHENGLISH_AUDIT_LOG_LEVEL",
}


def _level(value: Optional[str], fallback: str) -> str:
    candidate = (value or fallback).strip().upper()
    if not isinstance(logging.getLevelName(candidate), int):
        return fallback
    return candidate


def build_logging_config(env: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
    """Return the ``dictConfig`` payload for the given environment.

    Telemetry events get their own handler so event lines can be shipped
    or silenced without touching application logs. Unknown level names
    fall back to the root level.
    """
    env = os.environ if env is None else env
    root_level = _level(env.get("TECHENGLISH_LOG_LEVEL"), "INFO")

    loggers: Dict[str, Any] = {}
    for name, variable in CHANNEL_ENV.items():
        loggers[name] = {"level": _level(env.get(variable), root_level)}
    loggers["techenglish.telemetry"].update({"handlers": ["telemetry"], "propagate": False})

    if env.get("TECHENGLISH_DEBUG_SQL", "0") == "1":
        loggers["sqlalchemy.engine"] = {"level": "INFO"}
    if env.get("TECHENGLISH_DEBUG_HTTP", "0") == "1":
        loggers["uvicorn.access"] = {"level": "DEBUG"}

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {"format": DEFAULT_LOG_FORMAT},
            "telemetry": {"format": TELEMETRY_LOG_FORMAT},
        },
        "handlers": {
            "default": {"class": "logging.StreamHandler", "formatter": "default"},
            "telemetry": {"class": "logging.StreamHandler", "formatter": "telemetry"},
        },
        "loggers": loggers,
        "root": {"handlers": ["default"], "level": root_level},
    }


def configure_logging(env: Optional[Mapping[str, str]] = None) -> None:
    """Configure process logging from ``TECHENGLISH_*`` environment flags."""
    dictConfig(build_logging_config(env))
