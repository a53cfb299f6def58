"""JSON-file and environment backed store for the process-wide AppConfig.

The first ``load_config()`` in a fresh home directory seeds ``config.json``
from environment variables; later calls read the file once and then serve
the cached instance until ``reload_config()`` or ``save_config()``.
"""
from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Callable, Dict, Tuple

from signal_trader.config.models import (
    DEFAULT_INSTRUMENTS,
    AppConfig,
    build_app_config,
)
from signal_trader.core.errors import InvalidConfig

CONFIG_FILENAME = "config.json"
DEFAULT_HOME = Path.home() / ".signal_trader"

_APP_CONFIG: AppConfig | None = None

logger = logging.getLogger(__name__)


def _lower(raw: str) -> str:
    return raw.strip().lower()


def _csv(raw: str) -> list[str]:
    return [item for item in raw.split(",") if item.strip()]


# (section, field) -> (env var, default, parser)
_ENV_FIELDS: Dict[Tuple[str, str], Tuple[str, str, Callable[[str], Any]]] = {
    ("trading", "profit_target_percent"): ("PROFIT_TARGET_PERCENT", "2.0", float),
    ("trading", "stop_loss_percent"): ("STOP_LOSS_PERCENT", "1.0", float),
    ("trading", "max_position_size_percent"): ("MAX_POSITION_SIZE_PERCENT", "10.0", float),
    ("trading", "tick_interval_millis"): ("TICK_INTERVAL_MILLIS", "1000", int),
    ("trading", "risk_level"): ("RISK_LEVEL", "medium", _lower),
    ("universe", "instruments"): ("INSTRUMENTS", ",".join(DEFAULT_INSTRUMENTS), _csv),
    ("feed", "feed_type"): ("FEED_TYPE", "simulated", _lower),
    ("feed", "binance_base_url"): ("BINANCE_BASE_URL", "https://api.binance.com", str),
    ("feed", "kline_interval"): ("KLINE_INTERVAL", "1m", str),
    ("ledger", "paper_equity"): ("PAPER_EQUITY", "1000.0", float),
}


def get_config_path() -> Path:
    """Location of ``config.json`` under ``$SIGNAL_TRADER_HOME``.

    Falls back to ``~/.signal_trader``. The directory is created on demand.
    """
    home = os.getenv("SIGNAL_TRADER_HOME")
    directory = Path(home) if home else DEFAULT_HOME
    directory.mkdir(parents=True, exist_ok=True)
    return directory / CONFIG_FILENAME


def _load_from_env() -> AppConfig:
    """Build an AppConfig from environment variables over built-in defaults.

    Raises:
        InvalidConfig: If a variable cannot be parsed or is out of range
    """
    sections: Dict[str, Dict[str, Any]] = {}
    for (section, field), (var, default, parse) in _ENV_FIELDS.items():
        raw = os.getenv(var, default)
        try:
            value = parse(raw)
        except ValueError as exc:
            raise InvalidConfig(f"{var}={raw!r} is not valid for {section}.{field}") from exc
        sections.setdefault(section, {})[field] = value
    return build_app_config(sections)


def _read_file(path: Path) -> AppConfig:
    logger.info("Reading configuration file %s", path)
    try:
        payload: Dict[str, Any] = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        logger.error("Config file %s is not valid JSON: %s", path, exc)
        raise InvalidConfig(f"Invalid configuration file {path}: {exc}") from exc
    return build_app_config(payload)


def load_config() -> AppConfig:
    """Return the process-wide AppConfig.

    Served from cache when present. Otherwise read from ``config.json``, or,
    when that file does not exist yet, built from the environment and
    written out so the next run starts from the same values.

    Raises:
        InvalidConfig: If the file is malformed or a value is out of range
    """
    global _APP_CONFIG

    if _APP_CONFIG is None:
        path = get_config_path()
        if path.exists():
            _APP_CONFIG = _read_file(path)
        else:
            logger.info("%s missing, seeding it from the environment", path)
            save_config(_load_from_env())
    return _APP_CONFIG


def save_config(app_config: AppConfig) -> None:
    """Write ``app_config`` to ``config.json`` and make it the cached value.

    Raises:
        OSError: If the file cannot be written
    """
    global _APP_CONFIG

    path = get_config_path()
    text = json.dumps(app_config.model_dump(mode="json"), indent=2, ensure_ascii=False)
    path.write_text(text + "\n", encoding="utf-8")
    _APP_CONFIG = app_config
    logger.info("Wrote configuration to %s", path)


def reload_config() -> AppConfig:
    """Drop the cache and read ``config.json`` again.

    Raises:
        InvalidConfig: If the file is absent or invalid
    """
    global _APP_CONFIG

    path = get_config_path()
    if not path.exists():
        raise InvalidConfig(f"Configuration file not found: {path}")
    _APP_CONFIG = None
    return load_config()
