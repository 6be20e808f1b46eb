"""
Engine Configuration

Settings are read from environment variables so the same engine can run
inside the upload service, a batch job or a test session without code changes.

Variables:
- TAXFOLIO_REPORTING_CURRENCY: currency every amount is converted into (EUR)
- TAXFOLIO_RATES_PATH: JSON rate document loaded once at start-up
- TAXFOLIO_COUNTRY_DATA_PATH: optional JSON country table (bundled table otherwise)
- TAXFOLIO_SLOW_RUN_MS: engine runs slower than this are logged as SLOW
- LOG_LEVEL / TAXFOLIO_LOG_FILE: read by setup_logger, see lib.utils.logging_config

Copyright (c) 2026 Andreas Wagner. All rights reserved.
"""

import os
from dataclasses import dataclass
from typing import Mapping, Optional


DEFAULT_REPORTING_CURRENCY = "EUR"
DEFAULT_SLOW_RUN_MS = 1000.0


@dataclass(frozen=True)
class Settings:
    """Immutable engine settings."""

    reporting_currency: str = DEFAULT_REPORTING_CURRENCY
    rates_path: Optional[str] = None
    country_data_path: Optional[str] = None
    slow_run_threshold_ms: float = DEFAULT_SLOW_RUN_MS


def get_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """
    Build Settings from the process environment.

    Args:
        environ: Mapping to read from instead of os.environ (used by tests)

    Raises:
        ValueError: If TAXFOLIO_SLOW_RUN_MS is not a number
    """
    env = os.environ if environ is None else environ

    raw_threshold = env.get("TAXFOLIO_SLOW_RUN_MS")
    try:
        threshold = float(raw_threshold) if raw_threshold else DEFAULT_SLOW_RUN_MS
    except ValueError as e:
        raise ValueError(f"TAXFOLIO_SLOW_RUN_MS must be a number, got '{raw_threshold}'") from e

    return Settings(
        reporting_currency=env.get("TAXFOLIO_REPORTING_CURRENCY", DEFAULT_REPORTING_CURRENCY).strip().upper(),
        rates_path=env.get("TAXFOLIO_RATES_PATH") or None,
        country_data_path=env.get("TAXFOLIO_COUNTRY_DATA_PATH") or None,
        slow_run_threshold_ms=threshold,
    )
