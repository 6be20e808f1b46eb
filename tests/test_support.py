"""
Tests for configuration, hashing, country lookup and logging helpers.

Copyright (c) 2026 Andreas Wagner. All rights reserved.
"""

import json
import logging
import uuid
from datetime import date
from decimal import Decimal

import pytest

from core.config import DEFAULT_SLOW_RUN_MS, get_settings
from core.hashing import (
    calculate_sha256,
    canonical_json_dumps,
    transaction_fingerprint,
    verify_hash,
)
from lib.countries import CountryLookup
from lib.utils.logging_config import PerformanceLogger, get_perf_logger, setup_logger


class TestSettings:
    """Environment-driven configuration."""

    def test_defaults(self):
        settings = get_settings({})

        assert settings.reporting_currency == "EUR"
        assert settings.rates_path is None
        assert settings.country_data_path is None
        assert settings.slow_run_threshold_ms == DEFAULT_SLOW_RUN_MS

    def test_reads_mapping(self):
        settings = get_settings({
            "TAXFOLIO_REPORTING_CURRENCY": " usd ",
            "TAXFOLIO_RATES_PATH": "/data/rates.json",
            "TAXFOLIO_COUNTRY_DATA_PATH": "",
            "TAXFOLIO_SLOW_RUN_MS": "250",
        })

        assert settings.reporting_currency == "USD"
        assert settings.rates_path == "/data/rates.json"
        assert settings.country_data_path is None
        assert settings.slow_run_threshold_ms == 250.0

    def test_invalid_threshold_raises(self):
        with pytest.raises(ValueError, match="TAXFOLIO_SLOW_RUN_MS"):
            get_settings({"TAXFOLIO_SLOW_RUN_MS": "fast"})

    def test_logging_variables_left_to_setup_logger(self):
        assert get_settings({"LOG_LEVEL": "debug", "TAXFOLIO_LOG_FILE": "/tmp/engine.log"}) == get_settings({})

    def test_reads_process_environment(self, monkeypatch):
        monkeypatch.setenv("TAXFOLIO_RATES_PATH", "/tmp/rates.json")

        assert get_settings().rates_path == "/tmp/rates.json"


class TestHashing:
    """Canonical serialization and transaction fingerprints."""

    def test_canonical_json_sorted_and_compact(self):
        assert canonical_json_dumps({"b": 1, "a": Decimal("123.45"), "d": date(2024, 1, 15)}) == \
            '{"a":123.45,"b":1,"d":"2024-01-15"}'

    def test_equal_decimals_hash_identically(self):
        assert calculate_sha256({"amount": Decimal("10")}) == calculate_sha256({"amount": Decimal("10.00")})

    def test_hash_prefix_and_verify(self):
        digest = calculate_sha256({"x": 1})

        assert digest.startswith("sha256:")
        assert verify_hash({"x": 1}, digest)
        assert not verify_hash({"x": 2}, digest)

    def test_unsupported_type_raises(self):
        with pytest.raises(TypeError):
            canonical_json_dumps({"value": object()})

    def test_fingerprint_uses_source_fields_only(self):
        first = transaction_fingerprint(date(2024, 1, 2), "Compra 10", "o1", Decimal("100"), Decimal("1"))
        same = transaction_fingerprint(date(2024, 1, 2), "Compra 10", "o1", Decimal("100.0"), Decimal("1.00"))
        other = transaction_fingerprint(date(2024, 1, 2), "Compra 10", "o2", Decimal("100"), Decimal("1"))

        assert first == same
        assert first != other

    def test_fingerprint_without_date(self):
        assert transaction_fingerprint(None, "", "", Decimal(0), Decimal(0)).startswith("sha256:")


class TestCountryLookup:
    """ISIN prefix to country description."""

    def test_describe(self):
        lookup = CountryLookup.default()

        assert lookup.describe("US0378331005") == "840 - United States of America (the)"
        assert lookup.describe("ie00b4l5y983") == "372 - Ireland"
        assert lookup.describe("XX1234567890") == "Unknown Code: XX"
        assert lookup.describe("U") == "Invalid ISIN (Too Short)"
        assert lookup.describe("") == "Invalid ISIN (Too Short)"

    def test_missing_numeric(self):
        lookup = CountryLookup([{"country": "Nowhere", "alpha2": "NW"}])

        assert lookup.describe("NW0000000000") == "N/A - Nowhere"

    def test_entries_without_alpha2_skipped(self):
        lookup = CountryLookup([
            {"country": "Ireland", "alpha2": "IE", "numeric": "372"},
            {"country": "Broken", "alpha2": ""},
            {"country": "Also broken", "alpha2": "ABC"},
        ])

        assert len(lookup) == 1
        assert lookup.get("ie")["country"] == "Ireland"
        assert lookup.get("AB") is None

    def test_from_file(self, tmp_path):
        path = tmp_path / "countries.json"
        path.write_text(json.dumps([{"country": "Ireland", "alpha2": "IE", "alpha3": "IRL", "numeric": "372"}]))

        lookup = CountryLookup.from_file(path)

        assert len(lookup) == 1
        assert lookup.describe("IE00B4L5Y983") == "372 - Ireland"

    def test_from_file_requires_list(self, tmp_path):
        path = tmp_path / "countries.json"
        path.write_text(json.dumps({"IE": "Ireland"}))

        with pytest.raises(ValueError):
            CountryLookup.from_file(path)

    def test_from_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            CountryLookup.from_file(tmp_path / "missing.json")


def _unique_name() -> str:
    return f"taxfolio.test.{uuid.uuid4().hex}"


class TestLogging:
    """Logger setup and run timing."""

    def test_setup_logger_is_idempotent(self):
        name = _unique_name()

        first = setup_logger(name, level="DEBUG")
        second = setup_logger(name)

        assert first is second
        assert len(first.handlers) == 1
        assert first.level == logging.DEBUG
        assert first.propagate is False

    def test_log_file(self, tmp_path):
        log_file = tmp_path / "logs" / "engine.log"
        logger = setup_logger(_unique_name(), level="INFO", log_file=str(log_file))

        logger.info("engine started")
        for handler in logger.handlers:
            handler.flush()

        content = log_file.read_text()
        assert "[INFO    ]" in content
        assert "engine started" in content

    def test_performance_logger_records_duration(self):
        logger = setup_logger(_unique_name())

        with get_perf_logger(logger, "noop", threshold_ms=10_000) as perf:
            pass

        assert isinstance(perf, PerformanceLogger)
        assert perf.duration_ms is not None
        assert perf.duration_ms >= 0

    def test_performance_logger_does_not_swallow(self):
        logger = setup_logger(_unique_name())

        with pytest.raises(RuntimeError):
            with get_perf_logger(logger, "failing"):
                raise RuntimeError("boom")
