"""
Income and Cost Extractors

Simple per-row components fed by the same enriched transactions as the
matchers:
- DividendTaxAggregator: gross dividends and withheld tax per (year, country)
- CashMovementExtractor: cash deposits
- FeeExtractor: brokerage fees and trade commissions

Copyright (c) 2026 Andreas Wagner. All rights reserved.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Iterable, List

from lib.parsers.enhanced_transaction import TransactionType
from lib.utils.logging_config import setup_logger
from modules.tax.tax_events import (
    CashMovement,
    DividendCountrySummary,
    DividendSummary,
    EnrichedTransaction,
    FeeDetail,
    SkippedRecord,
    SkipReason,
    round_money,
)

logger = setup_logger(__name__)

DIVIDEND_TAX_SUBTYPE = "tax"
DEPOSIT_SUBTYPE = "deposit"

BROKERAGE_FEE = "Brokerage Fee"
TRADE_COMMISSION = "Trade Commission"


@dataclass
class DividendAggregation:
    """Output of one DividendTaxAggregator.aggregate call."""

    summary: DividendSummary = field(default_factory=dict)
    skipped: List[SkippedRecord] = field(default_factory=list)


class DividendTaxAggregator:
    """
    Groups dividend rows by year and ISIN country.

    Rows with subtype "tax" are withholding tax and add to taxed_amount;
    every other dividend row adds to gross_amount. Each row's EUR amount is
    rounded before it is added and the totals are rounded again.
    """

    COMPONENT = "dividend_tax_aggregator"

    def aggregate(self, transactions: Iterable[EnrichedTransaction]) -> DividendAggregation:
        result = DividendAggregation()

        for txn in transactions:
            if txn.transaction_type != TransactionType.DIVIDEND:
                continue

            if txn.transaction_date is None:
                self._skip(result, txn, SkipReason.INVALID_DATE, "dividend without a valid date")
                continue
            if len(txn.isin) < 2:
                self._skip(result, txn, SkipReason.INVALID_ISIN, f"dividend with invalid ISIN '{txn.isin}'")
                continue

            country = txn.isin[:2].upper()
            summary = result.summary.setdefault(txn.transaction_date.year, {}).setdefault(
                country, DividendCountrySummary()
            )

            amount = round_money(txn.amount_eur)
            if txn.transaction_subtype.lower() == DIVIDEND_TAX_SUBTYPE:
                summary.taxed_amount = round_money(summary.taxed_amount + amount)
            else:
                summary.gross_amount = round_money(summary.gross_amount + amount)

        logger.debug(f"Dividends aggregated for {len(result.summary)} year(s)")
        return result

    def _skip(self, result: DividendAggregation, txn: EnrichedTransaction, reason: SkipReason, message: str):
        logger.warning(f"Skipping dividend order {txn.order_id or '-'}: {message}")
        result.skipped.append(SkippedRecord(txn, self.COMPONENT, reason, message))


class CashMovementExtractor:
    """Cash deposits. Withdrawals are not reported yet."""

    def extract(self, transactions: Iterable[EnrichedTransaction]) -> List[CashMovement]:
        movements = [
            CashMovement(
                date=txn.transaction_date,
                type=DEPOSIT_SUBTYPE,
                amount=txn.amount,
                currency=txn.currency,
                amount_eur=txn.amount_eur,
                order_id=txn.order_id,
            )
            for txn in transactions
            if txn.transaction_type == TransactionType.CASH
            and txn.transaction_subtype.lower() == DEPOSIT_SUBTYPE
        ]
        logger.debug(f"Found {len(movements)} cash deposits")
        return movements


class FeeExtractor:
    """
    Costs paid to the broker, in EUR.

    A FEE row is reported with its own EUR amount. Any row with a positive
    commission additionally yields a trade commission entry of
    -commission / exchange_rate. Commissions are converted to EUR like every
    other amount here, unlike older exports that reported them unconverted.
    """

    def extract(self, transactions: Iterable[EnrichedTransaction]) -> List[FeeDetail]:
        fees = []
        for txn in transactions:
            if txn.transaction_type == TransactionType.FEE:
                fees.append(FeeDetail(
                    date=txn.transaction_date,
                    description=txn.product_name or txn.raw_text,
                    amount_eur=txn.amount_eur,
                    source=txn.source,
                    category=BROKERAGE_FEE,
                    order_id=txn.order_id,
                ))

            if txn.commission > 0:
                rate = txn.exchange_rate if txn.exchange_rate > 0 else Decimal(1)
                fees.append(FeeDetail(
                    date=txn.transaction_date,
                    description=txn.product_name or txn.raw_text,
                    amount_eur=-txn.commission / rate,
                    source=txn.source,
                    category=TRADE_COMMISSION,
                    order_id=txn.order_id,
                ))

        logger.debug(f"Found {len(fees)} fee entries")
        return fees
