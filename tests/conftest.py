"""
Shared fixtures for the tax engine tests.

Copyright (c) 2026 Andreas Wagner. All rights reserved.
"""

import sys
from pathlib import Path
# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))
sys.path.insert(0, str(Path(__file__).parent))

from datetime import date
from decimal import Decimal

import pytest

from factories import make_enriched
from lib.ecb_rates import ExchangeRateObservation, ExchangeRateResolver


@pytest.fixture
def enriched():
    """Factory for EnrichedTransaction records."""
    return make_enriched


@pytest.fixture
def usd_observations():
    return [
        ExchangeRateObservation("USD", date(2024, 1, 15), Decimal("1.0945")),
        ExchangeRateObservation("USD", date(2024, 1, 17), Decimal("1.0900")),
        ExchangeRateObservation("GBP", date(2024, 1, 15), Decimal("0.8600")),
    ]


@pytest.fixture
def resolver(usd_observations):
    return ExchangeRateResolver(usd_observations)
