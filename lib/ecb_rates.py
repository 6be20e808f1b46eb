"""
European Central Bank (ECB) Exchange Rates

Provides the historical reference rates used to convert every transaction
into the reporting currency (EUR).

Components:
- ExchangeRateResolver: immutable (currency, date) -> rate table with
  "latest observation on or before the date" lookup
- load_rate_observations: reads the rate document loaded once at start-up
- ECBRateFetcher: downloads daily reference rates from the ECB data API to
  build or refresh that document

Rates follow the ECB convention: units of foreign currency per 1 EUR, so
amount_eur = amount / rate.

API Documentation: https://data.ecb.europa.eu/help/api/data

Copyright (c) 2026 Andreas Wagner. All rights reserved.
"""

import json
import xml.etree.ElementTree as ET
from bisect import bisect_right
from collections import defaultdict
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple, Union

import pandas as pd
import requests

from lib.utils.logging_config import setup_logger

logger = setup_logger(__name__)


class RateNotFoundError(LookupError):
    """No observation exists for the currency on or before the requested date."""

    def __init__(self, currency: str, requested_date: Optional[date]):
        self.currency = currency
        self.requested_date = requested_date
        super().__init__(f"Exchange rate not found for {currency} on or before {requested_date}")


class RateDataError(ValueError):
    """The rate document cannot be interpreted."""
    pass


@dataclass(frozen=True)
class ExchangeRateObservation:
    """One published reference rate."""

    currency: str
    date: date
    rate: Decimal


class ExchangeRateResolver:
    """
    Point-in-time currency conversion over a fixed table of observations.

    The table is sorted once at construction and never modified afterwards,
    so one resolver can be shared by concurrent engine runs without locking.
    """

    def __init__(
        self,
        observations: Iterable[ExchangeRateObservation],
        reporting_currency: str = "EUR"
    ):
        self.reporting_currency = reporting_currency.upper()

        grouped: Dict[str, List[Tuple[date, Decimal]]] = defaultdict(list)
        for obs in observations:
            grouped[obs.currency.upper()].append((obs.date, obs.rate))

        self._dates: Dict[str, Tuple[date, ...]] = {}
        self._rates: Dict[str, Tuple[Decimal, ...]] = {}
        for currency, rows in grouped.items():
            # Stable sort keeps document order for duplicate dates; the last one wins on lookup
            rows.sort(key=lambda row: row[0])
            self._dates[currency] = tuple(row[0] for row in rows)
            self._rates[currency] = tuple(row[1] for row in rows)

        logger.debug(
            f"Rate table ready: {self.observation_count} observations "
            f"across {len(self._dates)} currencies"
        )

    @classmethod
    def from_file(cls, file_path: Union[str, Path], reporting_currency: str = "EUR") -> 'ExchangeRateResolver':
        """Build a resolver from a rate document on disk."""
        return cls(load_rate_observations(file_path), reporting_currency=reporting_currency)

    @property
    def currencies(self) -> List[str]:
        """Currencies with at least one observation."""
        return sorted(self._dates)

    @property
    def observation_count(self) -> int:
        return sum(len(dates) for dates in self._dates.values())

    def lookup(self, currency: str, on_date: Optional[date]) -> Decimal:
        """
        Rate for a currency on a date.

        Args:
            currency: ISO currency code of the transaction
            on_date: Transaction date

        Returns:
            1 for the reporting currency; otherwise the rate of the exact
            observation, or of the latest one before the date

        Raises:
            RateNotFoundError: If no observation exists on or before the date
        """
        currency = (currency or "").upper()

        if currency == self.reporting_currency:
            return Decimal("1")

        if on_date is None:
            raise RateNotFoundError(currency, on_date)

        dates = self._dates.get(currency)
        if not dates:
            logger.warning(f"No exchange rates loaded for {currency}")
            raise RateNotFoundError(currency, on_date)

        idx = bisect_right(dates, on_date) - 1
        if idx < 0:
            logger.warning(f"Exchange rate not found for {currency} on or before {on_date}")
            raise RateNotFoundError(currency, on_date)

        rate = self._rates[currency][idx]
        found_date = dates[idx]
        match = "exact match" if found_date == on_date else f"last available prior date {found_date}"
        logger.debug(f"Exchange rate {currency} on {on_date} = {rate} ({match})")
        return rate


def _extract_records(data) -> List[dict]:
    """Normalize both supported document shapes to {period, value, currency} dicts."""
    if isinstance(data, dict) and "root" in data:
        # ECB export: {"root": {"Obs": [{"_TIME_PERIOD", "_OBS_VALUE", "_CCY"}, ...]}}
        obs = (data.get("root") or {}).get("Obs") or []
        if isinstance(obs, dict):
            obs = [obs]
        return [
            {
                "period": item.get("_TIME_PERIOD"),
                "value": item.get("_OBS_VALUE"),
                "currency": item.get("_CCY"),
            }
            for item in obs
        ]

    if isinstance(data, list):
        return [
            {
                "period": item.get("period"),
                "value": item.get("value"),
                "currency": item.get("currency"),
            }
            for item in data
            if isinstance(item, dict)
        ]

    raise RateDataError(f"Unsupported rate document shape: {type(data).__name__}")


def load_rate_observations(file_path: Union[str, Path]) -> List[ExchangeRateObservation]:
    """
    Load the rate document.

    Accepted shapes:
        [{"period": "2024-01-15", "value": "1.0945", "currency": "USD"}, ...]
        {"root": {"Obs": [{"_TIME_PERIOD": ..., "_OBS_VALUE": ..., "_CCY": ...}]}}

    Observations with an unparseable period, a non-numeric or non-positive
    value, or no currency are dropped with a warning.

    Raises:
        FileNotFoundError: If the document does not exist
        RateDataError: If the document is not valid JSON or has an unknown shape
    """
    path = Path(file_path)
    logger.info(f"Loading historical exchange rates from {path}")

    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise RateDataError(f"Rate document {path} is not valid JSON: {e}") from e

    records = _extract_records(data)
    frame = pd.DataFrame.from_records(records, columns=["period", "value", "currency"])

    frame["currency"] = frame["currency"].fillna("").astype(str).str.strip().str.upper()
    frame["parsed_period"] = pd.to_datetime(frame["period"], format="%Y-%m-%d", errors="coerce")
    frame["numeric_value"] = pd.to_numeric(frame["value"], errors="coerce")

    invalid = (
        frame["parsed_period"].isna()
        | frame["numeric_value"].isna()
        | (frame["numeric_value"] <= 0)
        | (frame["currency"] == "")
    )
    if invalid.any():
        logger.warning(f"Dropping {int(invalid.sum())} invalid rate observations from {path}")

    valid = frame.loc[~invalid].sort_values(["currency", "parsed_period"], kind="stable")

    observations = []
    for row in valid.itertuples(index=False):
        try:
            rate = Decimal(str(row.value).strip())
        except InvalidOperation:
            # Numeric for pandas but not for Decimal (e.g. "1e"); treat as invalid
            logger.warning(f"Skipping rate value '{row.value}' for {row.currency} on {row.period}")
            continue
        observations.append(ExchangeRateObservation(
            currency=row.currency,
            date=row.parsed_period.date(),
            rate=rate
        ))

    logger.info(f"Loaded {len(observations)} exchange rate observations from {path}")
    return observations


def write_rate_document(file_path: Union[str, Path], observations: Iterable[ExchangeRateObservation]) -> int:
    """
    Write observations as a {period, value, currency} rate document.

    Returns:
        Number of observations written
    """
    rows = [
        {"period": obs.date.isoformat(), "value": str(obs.rate), "currency": obs.currency}
        for obs in sorted(observations, key=lambda o: (o.currency, o.date))
    ]

    path = Path(file_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, 'w', encoding='utf-8') as f:
        json.dump(rows, f, indent=2)

    logger.info(f"Wrote {len(rows)} exchange rate observations to {path}")
    return len(rows)


class ECBRateFetcher:
    """
    Downloads official ECB reference rates.

    Used offline to build the rate document; the engine itself never calls
    the network.
    """

    # ECB API endpoint for daily exchange rates
    API_URL = "https://data-api.ecb.europa.eu/service/data/EXR/D.{currency}.EUR.SP00.A"

    NAMESPACES = {
        'generic': 'http://www.sdmx.org/resources/sdmxml/schemas/v2_1/data/generic',
    }

    def __init__(self, session: Optional[requests.Session] = None, timeout: float = 10):
        self.session = session or requests.Session()
        self.session.headers.update({
            "User-Agent": "Taxfolio/1.0 (Rate Loader)",
            "Accept": "application/xml"
        })
        self.timeout = timeout

    def fetch_observations(
        self,
        currency: str,
        start_date: date,
        end_date: date
    ) -> List[ExchangeRateObservation]:
        """
        Fetch daily observations for one currency over a date range.

        Returns:
            Observations sorted by date; empty on network or parse failure
        """
        currency = currency.upper()
        if currency == "EUR":
            return []

        url = self.API_URL.format(currency=currency)
        params = {
            "startPeriod": start_date.isoformat(),
            "endPeriod": end_date.isoformat()
        }

        try:
            response = self.session.get(url, params=params, timeout=self.timeout)
            response.raise_for_status()
            observations = self._parse_generic_xml(response.content, currency)
        except requests.RequestException as e:
            logger.error(f"ECB API request failed for {currency}: {e}")
            return []
        except (ET.ParseError, ValueError, InvalidOperation) as e:
            logger.error(f"Failed to parse ECB response for {currency}: {e}")
            return []

        logger.info(f"ECB returned {len(observations)} {currency} observations for {start_date}..{end_date}")
        return sorted(observations, key=lambda o: o.date)

    def fetch_many(
        self,
        currencies: Iterable[str],
        start_date: date,
        end_date: date
    ) -> List[ExchangeRateObservation]:
        """Fetch several currencies; failures of one currency do not stop the others."""
        observations: List[ExchangeRateObservation] = []
        for currency in currencies:
            observations.extend(self.fetch_observations(currency, start_date, end_date))
        return observations

    def _parse_generic_xml(self, content: bytes, currency: str) -> List[ExchangeRateObservation]:
        """Parse an SDMX generic data message into observations."""
        root = ET.fromstring(content)

        observations = []
        for obs in root.findall('.//generic:Obs', self.NAMESPACES):
            dimension = obs.find('generic:ObsDimension', self.NAMESPACES)
            value = obs.find('generic:ObsValue', self.NAMESPACES)
            if dimension is None or value is None:
                continue

            period = dimension.attrib.get('value')
            value_str = value.attrib.get('value')
            if not period or not value_str or value_str == 'NaN':
                continue

            observations.append(ExchangeRateObservation(
                currency=currency,
                date=date.fromisoformat(period),
                rate=Decimal(value_str)
            ))

        return observations
