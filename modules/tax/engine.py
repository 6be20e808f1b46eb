"""
Tax Basis Engine - FIFO Lot Matching

The engine:
1. Enriches normalized broker rows once (EUR conversion, country, hash, direction)
2. Matches stock sells to lots strictly first-in, first-out
3. Snapshots open lots at every year end (gap years carry the prior snapshot)
4. Fans the same enriched rows out to the option matcher and the income extractors
5. Keeps rows any component refused out of every output; they are reported as skipped

Lots are never modified. Each match call keeps an arena of lot records and
side tables (lot index -> remaining quantity, lot index -> unattributed
commission), so running the engine twice over the same input gives the
same result.

TAX COMPLIANCE:
- Uses official ECB exchange rates (legal requirement)
- Broker FX rates from CSVs are NOT used for tax calculations

Copyright (c) 2026 Andreas Wagner. All rights reserved.
"""

from collections import defaultdict, deque
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Deque, Dict, Iterable, List, Optional, Sequence, Tuple

from core.config import Settings, get_settings
from lib.countries import CountryLookup
from lib.ecb_rates import ExchangeRateResolver
from lib.parsers.enhanced_transaction import TransactionType
from lib.utils.logging_config import get_perf_logger, setup_logger
from modules.tax.enricher import TransactionEnricher, TransactionInput
from modules.tax.income import CashMovementExtractor, DividendTaxAggregator, FeeExtractor
from modules.tax.options import OptionPositionMatcher
from modules.tax.tax_events import (
    EngineResult,
    EnrichedTransaction,
    OpenLot,
    RealizedSale,
    SkippedRecord,
    SkipReason,
    UnmatchedSale,
    round_money,
)

logger = setup_logger(__name__)


class ZeroQuantityLotError(ValueError):
    """Raised when a match would be prorated against a lot of zero quantity."""

    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__(f"Cannot prorate against lot {order_id or '-'} with zero original quantity")


def prorate(quantity: Decimal, lot_quantity: Decimal, order_id: str = "") -> Decimal:
    """
    Share of a lot represented by quantity.

    Raises:
        ZeroQuantityLotError: If lot_quantity is zero
    """
    if lot_quantity == 0:
        raise ZeroQuantityLotError(order_id)
    return quantity / lot_quantity


@dataclass
class StockMatchResult:
    """Output of one StockLotMatcher.match call."""

    realized_sales: List[RealizedSale] = field(default_factory=list)
    holdings_by_year: Dict[int, List[OpenLot]] = field(default_factory=dict)
    unmatched_sales: List[UnmatchedSale] = field(default_factory=list)
    skipped: List[SkippedRecord] = field(default_factory=list)


class StockLotMatcher:
    """
    First-In, First-Out matching of stock sells against buys per ISIN.

    Processing order: date, then buys before sells on the same date (a
    same-day buy is available to a same-day sell), then order id.
    """

    COMPONENT = "stock_lot_matcher"

    def match(self, transactions: Iterable[EnrichedTransaction]) -> StockMatchResult:
        result = StockMatchResult()
        eligible = self._select(transactions, result.skipped)

        ordered = sorted(
            eligible,
            key=lambda t: (t.transaction_date, 0 if t.is_buy() else 1, t.order_id)
        )

        # Arena: lot index -> buy record. Side tables hold the per-run mutable state.
        lots: List[EnrichedTransaction] = []
        remaining: Dict[int, Decimal] = {}
        pending_commission: Dict[int, Decimal] = {}
        queues: Dict[str, Deque[int]] = defaultdict(deque)

        last_year: Optional[int] = None

        for txn in ordered:
            year = txn.transaction_date.year

            if last_year is not None and year > last_year:
                snapshot = self._snapshot(queues, lots, remaining)
                for gap_year in range(last_year, year):
                    result.holdings_by_year[gap_year] = list(snapshot)
            last_year = year

            if txn.is_buy():
                idx = len(lots)
                lots.append(txn)
                remaining[idx] = txn.quantity
                pending_commission[idx] = txn.commission
                queues[txn.isin].append(idx)
            else:
                self._match_sell(txn, queues[txn.isin], lots, remaining, pending_commission, result)

        if last_year is not None:
            result.holdings_by_year[last_year] = self._snapshot(queues, lots, remaining)

        logger.debug(
            f"Stock matching: {len(result.realized_sales)} realized sales, "
            f"{len(result.unmatched_sales)} unmatched, {len(result.skipped)} skipped"
        )
        return result

    def _select(
        self,
        transactions: Iterable[EnrichedTransaction],
        skipped: List[SkippedRecord]
    ) -> List[EnrichedTransaction]:
        """STOCK rows that can be matched; everything else unfit is reported."""
        eligible = []
        for txn in transactions:
            if txn.transaction_type != TransactionType.STOCK:
                continue

            reason = None
            if txn.transaction_date is None:
                reason = (SkipReason.INVALID_DATE, "stock transaction without a valid date")
            elif not txn.isin:
                reason = (SkipReason.MISSING_INSTRUMENT, "stock transaction without ISIN")
            elif txn.quantity <= 0:
                reason = (SkipReason.NON_POSITIVE_QUANTITY, f"stock transaction with quantity {txn.quantity}")
            elif txn.direction is None:
                reason = (SkipReason.AMBIGUOUS_DIRECTION, f"cannot tell buy from sell in '{txn.raw_text}'")
            elif txn.is_buy() and txn.original_quantity <= 0:
                reason = (SkipReason.ZERO_QUANTITY_LOT, f"buy with original quantity {txn.original_quantity}")

            if reason is not None:
                logger.warning(f"Skipping stock order {txn.order_id or '-'}: {reason[1]}")
                skipped.append(SkippedRecord(txn, self.COMPONENT, reason[0], reason[1]))
                continue

            eligible.append(txn)
        return eligible

    def _match_sell(
        self,
        sale: EnrichedTransaction,
        queue: Deque[int],
        lots: Sequence[EnrichedTransaction],
        remaining: Dict[int, Decimal],
        pending_commission: Dict[int, Decimal],
        result: StockMatchResult
    ):
        to_match = sale.quantity

        while to_match > 0 and queue:
            idx = queue[0]
            lot = lots[idx]
            matched_qty = min(to_match, remaining[idx])

            purchase_ratio = prorate(matched_qty, lot.original_quantity, lot.order_id)
            sale_ratio = matched_qty / sale.quantity

            buy_amount_eur = round_money(lot.amount_eur * purchase_ratio)
            sale_amount_eur = round_money(sale.amount_eur * sale_ratio)

            # The lot's own commission goes to the first sale that touches it, once
            commission = round_money(sale.commission * sale_ratio + pending_commission[idx])
            pending_commission[idx] = Decimal(0)

            result.realized_sales.append(RealizedSale(
                sale_date=sale.transaction_date,
                buy_date=lot.transaction_date,
                product_name=sale.product_name,
                isin=sale.isin,
                quantity=matched_qty,
                sale_price=sale.price,
                sale_amount=sale.amount * sale_ratio,
                sale_currency=sale.currency,
                sale_amount_eur=sale_amount_eur,
                buy_price=lot.price,
                buy_amount=lot.amount * purchase_ratio,
                buy_currency=lot.currency,
                buy_amount_eur=buy_amount_eur,
                buy_exchange_rate=lot.exchange_rate,
                sale_exchange_rate=sale.exchange_rate,
                commission=commission,
                delta=round_money(buy_amount_eur + sale_amount_eur),
                country_code=sale.country_code,
                sale_order_id=sale.order_id,
                buy_order_id=lot.order_id,
            ))

            remaining[idx] -= matched_qty
            to_match -= matched_qty

            if remaining[idx] == 0:
                queue.popleft()

        if to_match > 0:
            logger.warning(
                f"Orphaned sell: {sale.isin} on {sale.transaction_date} "
                f"- selling {to_match} more shares than available"
            )
            result.unmatched_sales.append(UnmatchedSale(
                sale_date=sale.transaction_date,
                isin=sale.isin,
                product_name=sale.product_name,
                quantity=to_match,
                order_id=sale.order_id,
            ))

    @staticmethod
    def _snapshot(
        queues: Dict[str, Deque[int]],
        lots: Sequence[EnrichedTransaction],
        remaining: Dict[int, Decimal]
    ) -> List[OpenLot]:
        """Open lots in instrument first-seen order, FIFO within each instrument."""
        snapshot = []
        for isin, queue in queues.items():
            for idx in queue:
                lot = lots[idx]
                qty = remaining[idx]
                ratio = prorate(qty, lot.original_quantity, lot.order_id)
                snapshot.append(OpenLot(
                    isin=isin,
                    buy_date=lot.transaction_date,
                    product_name=lot.product_name,
                    remaining_quantity=qty,
                    original_quantity=lot.original_quantity,
                    buy_price=lot.price,
                    buy_amount=lot.amount * ratio,
                    buy_amount_eur=round_money(lot.amount_eur * ratio),
                    currency=lot.currency,
                    order_id=lot.order_id,
                    hash_id=lot.hash_id,
                ))
        return snapshot


class TaxBasisEngine:
    """
    Runs every component over one batch of transactions.

    Single-threaded and synchronous. The resolver and country lookup are
    read-only and may be shared between engines; nothing else outlives a run.
    """

    def __init__(
        self,
        resolver: ExchangeRateResolver,
        countries: Optional[CountryLookup] = None,
        slow_run_threshold_ms: float = 1000
    ):
        self.resolver = resolver
        self.enricher = TransactionEnricher(resolver, countries)
        self.stock_matcher = StockLotMatcher()
        self.option_matcher = OptionPositionMatcher()
        self.dividend_aggregator = DividendTaxAggregator()
        self.cash_extractor = CashMovementExtractor()
        self.fee_extractor = FeeExtractor()
        self.slow_run_threshold_ms = slow_run_threshold_ms

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> 'TaxBasisEngine':
        """
        Build an engine from configured file paths.

        Raises:
            ValueError: If no rate document is configured
        """
        settings = settings or get_settings()

        if not settings.rates_path:
            raise ValueError("TAXFOLIO_RATES_PATH is not set; the engine needs a rate document")

        resolver = ExchangeRateResolver.from_file(settings.rates_path, settings.reporting_currency)

        if settings.country_data_path:
            countries = CountryLookup.from_file(settings.country_data_path)
        else:
            countries = CountryLookup.default()

        return cls(resolver, countries, slow_run_threshold_ms=settings.slow_run_threshold_ms)

    def run(self, transactions: Iterable[TransactionInput]) -> EngineResult:
        """Enrich once, then fan out to every component."""
        batch = list(transactions)
        logger.info(f"Processing {len(batch)} transactions")

        with get_perf_logger(logger, f"engine run ({len(batch)} transactions)", self.slow_run_threshold_ms):
            enrichment = self.enricher.enrich(batch)
            enriched = enrichment.enriched

            stocks = self.stock_matcher.match(enriched)
            options = self.option_matcher.match(enriched)
            dividends = self.dividend_aggregator.aggregate(enriched)

            # A row refused by any component stays out of every output
            refused = {id(record.transaction) for record in stocks.skipped + options.skipped + dividends.skipped}
            accepted = [txn for txn in enriched if id(txn) not in refused]

            result = EngineResult(
                realized_sales=stocks.realized_sales,
                holdings_by_year=stocks.holdings_by_year,
                unmatched_sales=stocks.unmatched_sales,
                option_trades=options.trades,
                option_positions=options.positions,
                cash_movements=self.cash_extractor.extract(accepted),
                dividend_summary=dividends.summary,
                fees=self.fee_extractor.extract(accepted),
                skipped=enrichment.skipped + stocks.skipped + options.skipped + dividends.skipped,
                enriched=enriched,
            )

        self._log_summary(result)
        return result

    @staticmethod
    def _log_summary(result: EngineResult):
        counts: Dict[Tuple[str, str], int] = defaultdict(int)
        for record in result.skipped:
            counts[(record.component, record.reason.value)] += 1

        for (component, reason), count in sorted(counts.items()):
            logger.warning(f"{component}: skipped {count} record(s) ({reason})")

        logger.info(
            f"Generated {len(result.realized_sales)} realized sales, "
            f"{len(result.option_trades)} option trades, "
            f"{len(result.option_positions)} open option positions, "
            f"{len(result.cash_movements)} cash movements"
        )
