"""
Modules Package

Business Logic Layer

Modules:
- tax: Transaction enrichment, FIFO lot matching and income aggregation

Copyright (c) 2026 Andreas Wagner. All rights reserved.
"""

__all__ = ['tax']
