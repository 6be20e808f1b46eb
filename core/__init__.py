"""
Core Kernel Module

Foundational pieces shared by every engine component.

Components:
- config: Environment-driven engine settings
- hashing: Canonical JSON + SHA256 fingerprints for deduplication

Copyright (c) 2026 Andreas Wagner. All rights reserved.
"""

__all__ = ['config', 'hashing']
