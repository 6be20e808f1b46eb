"""
Normalized Transaction Model

The broker parsers hand the engine one NormalizedTransaction per broker row,
already classified by type (stock, option, dividend, cash, fee) and, where the
broker export carries it, by buy/sell direction.

Older exports carry no structured direction for options; for those the
direction is inferred from keywords in the raw row text (see
infer_direction_from_text).

Copyright (c) 2026 Andreas Wagner. All rights reserved.
"""

import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict, field_validator

from lib.utils.logging_config import setup_logger

logger = setup_logger(__name__)


# Custom exceptions
class TransactionTypeError(ValueError):
    """Raised when transaction type cannot be normalized."""
    pass


class TransactionType(str, Enum):
    """Transaction classes the engine understands."""

    STOCK = "STOCK"
    OPTION = "OPTION"
    DIVIDEND = "DIVIDEND"
    CASH = "CASH"
    FEE = "FEE"

    @classmethod
    def normalize(cls, value: str) -> 'TransactionType':
        """Normalize transaction type from various parser spellings.

        Raises:
            TransactionTypeError: If the transaction type cannot be mapped.
        """
        clean_value = value.strip().upper().replace(" ", "").replace("-", "").replace("_", "")

        type_map = {
            "STOCK": cls.STOCK,
            "STK": cls.STOCK,
            "ETF": cls.STOCK,
            "EQUITY": cls.STOCK,
            "OPTION": cls.OPTION,
            "OPT": cls.OPTION,
            "DIVIDEND": cls.DIVIDEND,
            "CASH": cls.CASH,
            "FEE": cls.FEE,
        }

        result = type_map.get(clean_value)
        if result is None:
            raise TransactionTypeError(f"Unknown transaction type: '{value}'")
        return result


class BuySell(str, Enum):
    """Trade direction."""

    BUY = "BUY"
    SELL = "SELL"

    @classmethod
    def normalize(cls, value: Optional[str]) -> Optional['BuySell']:
        """Map broker spellings to a direction; blanks and unknowns give None."""
        if not value:
            return None
        clean_value = value.strip().upper()
        if clean_value in ("BUY", "B", "BOT"):
            return cls.BUY
        if clean_value in ("SELL", "S", "SLD"):
            return cls.SELL
        return None


# Whole-word keywords seen in broker descriptions (English and Portuguese exports)
BUY_KEYWORDS = ("buy", "bought", "compra")
SELL_KEYWORDS = ("sell", "sold", "venda")

_BUY_PATTERN = re.compile(r"\b(?:" + "|".join(BUY_KEYWORDS) + r")\b", re.IGNORECASE)
_SELL_PATTERN = re.compile(r"\b(?:" + "|".join(SELL_KEYWORDS) + r")\b", re.IGNORECASE)


def infer_direction_from_text(text: Optional[str]) -> Optional[BuySell]:
    """
    Infer trade direction from free text.

    Returns None when neither or both keyword groups occur; an ambiguous
    row is never guessed.
    """
    if not text:
        return None

    is_buy = _BUY_PATTERN.search(text) is not None
    is_sell = _SELL_PATTERN.search(text) is not None

    if is_buy == is_sell:
        return None
    return BuySell.BUY if is_buy else BuySell.SELL


DATE_FORMATS = ("%Y-%m-%d", "%d-%m-%Y", "%d/%m/%Y", "%Y%m%d")


def parse_date(value) -> Optional[date]:
    """Parse a date from the formats the parsers emit; None if it cannot be parsed."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    text = str(value).strip()
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None


class NormalizedTransaction(BaseModel):
    """
    One broker row after parsing, before enrichment.

    Read-only input to the engine: the enricher never modifies it.
    """

    model_config = ConfigDict(frozen=True)

    source: str = ""
    transaction_date: Optional[date] = None

    product_name: str = ""
    isin: str = ""

    quantity: Decimal = Decimal(0)
    price: Decimal = Decimal(0)
    commission: Decimal = Decimal(0)
    currency: str = "EUR"

    order_id: str = ""
    raw_text: str = ""
    source_amount: Decimal = Decimal(0)

    transaction_type: TransactionType
    transaction_subtype: str = ""
    buy_sell: Optional[BuySell] = None

    @field_validator('transaction_date', mode='before')
    @classmethod
    def lenient_date(cls, v):
        """Unparseable dates become None; date-dependent components skip the row."""
        parsed = parse_date(v)
        if parsed is None and v not in (None, ""):
            logger.warning(f"Unparseable transaction date '{v}', keeping row without a date")
        return parsed

    @field_validator('quantity', 'price', 'commission', 'source_amount', mode='before')
    @classmethod
    def parse_decimal(cls, v):
        """Parse numbers via str() so floats do not leak binary noise into Decimals."""
        if v is None or v == "":
            return Decimal(0)
        if isinstance(v, Decimal):
            return v
        if isinstance(v, str):
            v = v.strip().replace(',', '')
        try:
            return Decimal(str(v))
        except InvalidOperation as e:
            raise ValueError(f"Not a number: {v!r}") from e

    @field_validator('transaction_type', mode='before')
    @classmethod
    def normalize_type(cls, v):
        if isinstance(v, TransactionType):
            return v
        return TransactionType.normalize(str(v))

    @field_validator('buy_sell', mode='before')
    @classmethod
    def normalize_buy_sell(cls, v):
        if isinstance(v, BuySell) or v is None:
            return v
        return BuySell.normalize(str(v))

    @field_validator('currency', mode='before')
    @classmethod
    def normalize_currency(cls, v):
        return (v or "EUR").strip().upper()

    @field_validator('isin', 'product_name', 'order_id', 'raw_text', 'transaction_subtype', mode='before')
    @classmethod
    def strip_text(cls, v):
        return (v or "").strip()

    def resolve_direction(self) -> Tuple[Optional[BuySell], bool]:
        """
        Resolve the trade direction once.

        Returns:
            (direction, inferred) where inferred is True when the direction
            came from keywords in raw_text rather than the structured field.
        """
        if self.buy_sell is not None:
            return self.buy_sell, False
        return infer_direction_from_text(self.raw_text), True

    def is_trade(self) -> bool:
        """Check if this row is a stock or option trade."""
        return self.transaction_type in (TransactionType.STOCK, TransactionType.OPTION)
