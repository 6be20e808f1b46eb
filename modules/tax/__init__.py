"""
Tax Module

Deterministic, replayable tax basis engine.

Features:
- One enrichment pass (ECB conversion, country, dedup hash, direction)
- FIFO stock lot matching with year-end holdings snapshots
- Long/short option position matching
- Dividend, cash deposit and fee extraction
- Skipped records reported with their reason, never silently dropped

Copyright (c) 2026 Andreas Wagner. All rights reserved.
"""

__all__ = ['engine', 'enricher', 'options', 'income', 'tax_events']
