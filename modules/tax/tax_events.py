"""
Tax Event and Lot Data Models

Defines the records derived from one engine run:
- EnrichedTransaction: a normalized broker row plus EUR conversion, country and dedup hash
- OpenLot / RealizedSale / UnmatchedSale: stock FIFO matching output
- OptionPosition / RealizedOptionTrade: option FIFO matching output
- DividendCountrySummary, CashMovement, FeeDetail: income and cost aggregates
- SkippedRecord: a row a component refused to process, with the reason
- EngineResult: everything above, handed to the reporting layer

All records are immutable. Matching state (remaining quantity, pending
commission) lives in side tables owned by a single matcher call.

Copyright (c) 2026 Andreas Wagner. All rights reserved.
"""

import json
from dataclasses import asdict, dataclass, field
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

import pandas as pd

from lib.parsers.enhanced_transaction import BuySell, TransactionType
from lib.utils.logging_config import setup_logger

logger = setup_logger(__name__)

CENT = Decimal("0.01")


def round_money(value: Decimal) -> Decimal:
    """Round to 2 decimals, half away from zero."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


class SkipReason(str, Enum):
    """Why a component refused a record."""
    AMBIGUOUS_DIRECTION = "AMBIGUOUS_DIRECTION"
    NON_POSITIVE_QUANTITY = "NON_POSITIVE_QUANTITY"
    MISSING_PRODUCT_NAME = "MISSING_PRODUCT_NAME"
    MISSING_INSTRUMENT = "MISSING_INSTRUMENT"
    INVALID_DATE = "INVALID_DATE"
    INVALID_ISIN = "INVALID_ISIN"
    ZERO_QUANTITY_LOT = "ZERO_QUANTITY_LOT"
    INVALID_RECORD = "INVALID_RECORD"


class PositionSide(str, Enum):
    """Side of the option position a trade closed."""
    LONG = "LONG"
    SHORT = "SHORT"


@dataclass(frozen=True)
class EnrichedTransaction:
    """
    A normalized transaction after enrichment.

    Key Invariant: original_quantity is fixed at creation. Matchers never
    modify this record; they track consumption in their own side tables.
    """

    # Normalized input fields
    source: str
    transaction_date: Optional[date]
    product_name: str
    isin: str
    quantity: Decimal
    price: Decimal
    commission: Decimal
    currency: str
    order_id: str
    raw_text: str
    source_amount: Decimal
    transaction_type: TransactionType
    transaction_subtype: str
    buy_sell: Optional[BuySell]

    # Computed at enrichment
    amount: Decimal
    exchange_rate: Decimal
    amount_eur: Decimal
    country_code: str
    hash_id: str
    direction: Optional[BuySell]
    direction_inferred: bool
    original_quantity: Decimal

    @property
    def year(self) -> Optional[int]:
        return self.transaction_date.year if self.transaction_date else None

    def is_buy(self) -> bool:
        return self.direction == BuySell.BUY

    def is_sell(self) -> bool:
        return self.direction == BuySell.SELL


@dataclass(frozen=True)
class OpenLot:
    """
    Snapshot of a stock lot still holding unconsumed quantity.

    Amounts are the lot's totals prorated to remaining_quantity.
    """

    isin: str
    buy_date: date
    product_name: str
    remaining_quantity: Decimal
    original_quantity: Decimal
    buy_price: Decimal
    buy_amount: Decimal
    buy_amount_eur: Decimal
    currency: str
    order_id: str = ""
    hash_id: str = ""


@dataclass(frozen=True)
class RealizedSale:
    """
    One FIFO match between a sell and (part of) one lot.

    A sell spanning several lots yields one RealizedSale per lot.
    """

    sale_date: date
    buy_date: date
    product_name: str
    isin: str
    quantity: Decimal

    sale_price: Decimal
    sale_amount: Decimal
    sale_currency: str
    sale_amount_eur: Decimal

    buy_price: Decimal
    buy_amount: Decimal
    buy_currency: str
    buy_amount_eur: Decimal

    buy_exchange_rate: Decimal
    sale_exchange_rate: Decimal
    commission: Decimal
    delta: Decimal

    country_code: str = ""
    sale_order_id: str = ""
    buy_order_id: str = ""

    def holding_period_days(self) -> int:
        return (self.sale_date - self.buy_date).days


@dataclass(frozen=True)
class UnmatchedSale:
    """Sell quantity left over after every open lot was consumed."""

    sale_date: date
    isin: str
    product_name: str
    quantity: Decimal
    order_id: str = ""


@dataclass(frozen=True)
class OptionPosition:
    """Open option leg. Quantity is signed: positive long, negative short."""

    open_date: date
    product_name: str
    quantity: Decimal
    open_price: Decimal
    open_amount: Decimal
    open_amount_eur: Decimal
    currency: str
    order_id: str = ""

    @property
    def side(self) -> PositionSide:
        return PositionSide.LONG if self.quantity > 0 else PositionSide.SHORT


@dataclass(frozen=True)
class RealizedOptionTrade:
    """One FIFO match between an opening and a closing option leg."""

    open_date: date
    close_date: date
    product_name: str
    quantity: Decimal

    open_price: Decimal
    open_amount: Decimal
    open_currency: str
    open_amount_eur: Decimal

    close_price: Decimal
    close_amount: Decimal
    close_currency: str
    close_amount_eur: Decimal

    commission: Decimal
    delta: Decimal
    closed_position: PositionSide

    open_order_id: str = ""
    close_order_id: str = ""


@dataclass
class DividendCountrySummary:
    """Dividend totals for one (year, country), EUR."""

    gross_amount: Decimal = field(default_factory=lambda: Decimal(0))
    taxed_amount: Decimal = field(default_factory=lambda: Decimal(0))


@dataclass(frozen=True)
class CashMovement:
    """A cash deposit."""

    date: date
    type: str
    amount: Decimal
    currency: str
    amount_eur: Decimal
    order_id: str = ""


@dataclass(frozen=True)
class FeeDetail:
    """A brokerage fee or a trade commission, EUR (negative = cost)."""

    date: Optional[date]
    description: str
    amount_eur: Decimal
    source: str
    category: str
    order_id: str = ""


@dataclass(frozen=True)
class SkippedRecord:
    """A record a component did not process."""

    transaction: Any
    component: str
    reason: SkipReason
    message: str

    def to_dict(self) -> Dict[str, Any]:
        # Rows rejected before enrichment are kept as the raw mapping
        if isinstance(self.transaction, Mapping):
            lookup = self.transaction.get
        else:
            lookup = lambda name, default: getattr(self.transaction, name, default)

        return {
            "component": self.component,
            "reason": self.reason.value,
            "message": self.message,
            "order_id": lookup("order_id", ""),
            "date": lookup("transaction_date", None),
            "product_name": lookup("product_name", ""),
        }


DividendSummary = Dict[int, Dict[str, DividendCountrySummary]]


def _json_default(obj):
    if isinstance(obj, Decimal):
        return float(obj)
    if isinstance(obj, date):
        return obj.isoformat()
    raise TypeError(f"Type {type(obj)} not serializable")


@dataclass
class EngineResult:
    """Aggregate output of one engine run."""

    realized_sales: List[RealizedSale] = field(default_factory=list)
    holdings_by_year: Dict[int, List[OpenLot]] = field(default_factory=dict)
    unmatched_sales: List[UnmatchedSale] = field(default_factory=list)
    option_trades: List[RealizedOptionTrade] = field(default_factory=list)
    option_positions: List[OptionPosition] = field(default_factory=list)
    cash_movements: List[CashMovement] = field(default_factory=list)
    dividend_summary: DividendSummary = field(default_factory=dict)
    fees: List[FeeDetail] = field(default_factory=list)
    skipped: List[SkippedRecord] = field(default_factory=list)
    enriched: List[EnrichedTransaction] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Plain-data view (Decimals and dates untouched)."""
        return {
            "realized_sales": [asdict(s) for s in self.realized_sales],
            "holdings_by_year": {
                year: [asdict(lot) for lot in lots]
                for year, lots in sorted(self.holdings_by_year.items())
            },
            "unmatched_sales": [asdict(u) for u in self.unmatched_sales],
            "option_trades": [asdict(t) for t in self.option_trades],
            "option_positions": [asdict(p) for p in self.option_positions],
            "cash_movements": [asdict(c) for c in self.cash_movements],
            "dividend_summary": {
                year: {country: asdict(summary) for country, summary in sorted(countries.items())}
                for year, countries in sorted(self.dividend_summary.items())
            },
            "fees": [asdict(f) for f in self.fees],
            "skipped": [s.to_dict() for s in self.skipped],
        }

    def export_to_json(self, filepath: Union[str, Path]):
        """Export the result (without the enriched transactions) to a JSON file."""
        data = self.to_dict()

        with open(filepath, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=2, default=_json_default)

        logger.info(
            f"Exported {len(self.realized_sales)} sales, {len(self.option_trades)} option trades "
            f"and {len(self.skipped)} skipped records to {filepath}"
        )

    def to_frames(self) -> Dict[str, pd.DataFrame]:
        """
        DataFrames for the reporting layer.

        Keys: realized_sales, holdings, unmatched_sales, option_trades,
        option_positions, cash_movements, dividends, fees, skipped.
        """
        holdings_rows = [
            {"year": year, **asdict(lot)}
            for year, lots in sorted(self.holdings_by_year.items())
            for lot in lots
        ]
        dividend_rows = [
            {"year": year, "country": country, **asdict(summary)}
            for year, countries in sorted(self.dividend_summary.items())
            for country, summary in sorted(countries.items())
        ]

        return {
            "realized_sales": _frame([asdict(s) for s in self.realized_sales], RealizedSale),
            "holdings": _frame(holdings_rows, OpenLot, leading=["year"]),
            "unmatched_sales": _frame([asdict(u) for u in self.unmatched_sales], UnmatchedSale),
            "option_trades": _frame([asdict(t) for t in self.option_trades], RealizedOptionTrade),
            "option_positions": _frame([asdict(p) for p in self.option_positions], OptionPosition),
            "cash_movements": _frame([asdict(c) for c in self.cash_movements], CashMovement),
            "dividends": _frame(dividend_rows, DividendCountrySummary, leading=["year", "country"]),
            "fees": _frame([asdict(f) for f in self.fees], FeeDetail),
            "skipped": pd.DataFrame(
                [s.to_dict() for s in self.skipped],
                columns=["component", "reason", "message", "order_id", "date", "product_name"]
            ),
        }


def _frame(rows: List[Dict[str, Any]], record_type, leading: Optional[List[str]] = None) -> pd.DataFrame:
    """Build a DataFrame whose columns exist even when there are no rows."""
    columns = list(leading or []) + list(record_type.__dataclass_fields__)
    return pd.DataFrame(rows, columns=columns)
