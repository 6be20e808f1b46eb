"""
Country Lookup

Maps the 2-letter prefix of an ISIN to a descriptive country string such as
"840 - United States of America (the)". The table is loaded once and only
queried afterwards.

Copyright (c) 2026 Andreas Wagner. All rights reserved.
"""

import json
from pathlib import Path
from types import MappingProxyType
from typing import Dict, Iterable, Mapping, Optional, Union

from lib.country_data import COUNTRIES
from lib.utils.logging_config import setup_logger

logger = setup_logger(__name__)


class CountryLookup:
    """Read-only ISIN prefix -> country table."""

    def __init__(self, countries: Iterable[Mapping[str, str]]):
        table: Dict[str, Mapping[str, str]] = {}
        for entry in countries:
            alpha2 = (entry.get("alpha2") or "").strip().upper()
            if len(alpha2) != 2:
                logger.warning(f"Skipping country entry without a 2-letter code: {entry}")
                continue
            table[alpha2] = dict(entry)

        self._table = MappingProxyType(table)

    @classmethod
    def default(cls) -> 'CountryLookup':
        """Lookup over the bundled ISO table."""
        return cls(COUNTRIES)

    @classmethod
    def from_file(cls, file_path: Union[str, Path]) -> 'CountryLookup':
        """
        Load a JSON list of {country, alpha2, alpha3, numeric} entries.

        Raises:
            FileNotFoundError: If the file does not exist
            ValueError: If the file is not a JSON list
        """
        path = Path(file_path)
        logger.info(f"Loading country data from {path}")

        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)

        if not isinstance(data, list):
            raise ValueError(f"Country data in {path} must be a JSON list, got {type(data).__name__}")

        lookup = cls(data)
        logger.info(f"Loaded {len(lookup)} countries from {path}")
        return lookup

    def __len__(self) -> int:
        return len(self._table)

    def get(self, alpha2: str) -> Optional[Mapping[str, str]]:
        """Raw table entry for a 2-letter code, if known."""
        return self._table.get((alpha2 or "").upper())

    def describe(self, isin: str) -> str:
        """
        Descriptive country string for an ISIN.

        Returns:
            "<numeric> - <country>", "Unknown Code: XX" or "Invalid ISIN (Too Short)"
        """
        if not isin or len(isin) < 2:
            return "Invalid ISIN (Too Short)"

        alpha2 = isin[:2].upper()
        entry = self._table.get(alpha2)
        if entry is None:
            return f"Unknown Code: {alpha2}"

        numeric = (entry.get("numeric") or "").strip() or "N/A"
        return f"{numeric} - {entry.get('country', alpha2)}"
