"""
Hashing Module - Transaction Fingerprints

Canonical JSON serialization and SHA256 hashing. The enricher stamps every
transaction with a content hash that the persistence layer uses to reject
re-uploads of the same broker rows.

Copyright (c) 2026 Andreas Wagner. All rights reserved.
"""

import hashlib
import json
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional


def canonical_json_dumps(obj: Any) -> str:
    """
    Serialize object to canonical JSON string.

    Ensures deterministic serialization for hashing:
    - Keys sorted alphabetically
    - No whitespace
    - Decimals as floats, so "10" and "10.00" hash identically
    - Dates as ISO strings

    Example:
        >>> canonical_json_dumps({"amount": Decimal("123.45"), "date": date(2024, 1, 15)})
        '{"amount":123.45,"date":"2024-01-15"}'
    """
    def default_handler(o):
        if isinstance(o, Decimal):
            return float(o)
        elif isinstance(o, (date, datetime)):
            return o.isoformat()
        else:
            raise TypeError(f"Object of type {type(o).__name__} is not JSON serializable")

    return json.dumps(
        obj,
        sort_keys=True,
        separators=(',', ':'),
        default=default_handler,
        ensure_ascii=True
    )


def calculate_sha256(data: Any) -> str:
    """
    Calculate SHA256 hash of data.

    Returns:
        SHA256 hex digest prefixed with 'sha256:'
    """
    json_str = canonical_json_dumps(data)
    hash_obj = hashlib.sha256(json_str.encode('utf-8'))
    return f"sha256:{hash_obj.hexdigest()}"


def transaction_fingerprint(
    transaction_date: Optional[date],
    raw_text: str,
    order_id: str,
    source_amount: Decimal,
    commission: Decimal
) -> str:
    """
    Dedup hash over the broker-provided content of one transaction row.

    Only source fields take part; derived values such as the exchange rate
    are excluded so that a rate-table refresh does not change the hash.
    """
    return calculate_sha256({
        "date": transaction_date,
        "raw_text": raw_text or "",
        "order_id": order_id or "",
        "source_amount": source_amount,
        "commission": commission,
    })


def verify_hash(data: Any, expected_hash: str) -> bool:
    """Verify that data matches expected hash."""
    return calculate_sha256(data) == expected_hash
