"""
Library Package

Reference data and shared helpers used by the tax engine:
- ecb_rates: ECB exchange rate table, loader and fetcher
- countries: ISIN prefix -> country lookup
- parsers: normalized transaction input model
- utils: logging

Copyright (c) 2026 Andreas Wagner. All rights reserved.
"""

__all__ = ['ecb_rates', 'countries', 'country_data', 'parsers', 'utils']
