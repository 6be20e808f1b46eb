"""
Canonical Transaction Enricher

Turns NormalizedTransactions into EnrichedTransactions:
1. Signed gross amount (trades: quantity x price, negative for buys)
2. ECB exchange rate for (currency, date), falling back to 1.0
3. EUR amount: (amount - commission) / rate
4. Country from the ISIN prefix
5. Dedup hash over the broker-provided row content
6. Trade direction, resolved once (structured field first, keywords second)

TAX COMPLIANCE:
- Uses official ECB exchange rates from the loaded rate table
- Broker FX rates from CSVs are NOT used for conversion

Copyright (c) 2026 Andreas Wagner. All rights reserved.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Iterable, List, Mapping, Optional, Union

from pydantic import ValidationError

from core.hashing import transaction_fingerprint
from lib.countries import CountryLookup
from lib.ecb_rates import ExchangeRateResolver, RateNotFoundError
from lib.parsers.enhanced_transaction import BuySell, NormalizedTransaction, TransactionType
from lib.utils.logging_config import setup_logger
from modules.tax.tax_events import EnrichedTransaction, SkippedRecord, SkipReason

logger = setup_logger(__name__)

FALLBACK_RATE = Decimal("1")

TransactionInput = Union[NormalizedTransaction, Mapping]


@dataclass
class EnrichmentResult:
    """Output of one TransactionEnricher.enrich call."""

    enriched: List[EnrichedTransaction] = field(default_factory=list)
    skipped: List[SkippedRecord] = field(default_factory=list)


class TransactionEnricher:
    """
    Enriches a batch of normalized transactions.

    A missing or invalid exchange rate never aborts the batch: the row is
    converted at 1.0 and a warning is logged. A mapping that does not
    validate as a NormalizedTransaction is reported as skipped.
    """

    COMPONENT = "transaction_enricher"

    def __init__(self, resolver: ExchangeRateResolver, countries: Optional[CountryLookup] = None):
        self.resolver = resolver
        self.countries = countries or CountryLookup.default()

    def enrich(self, transactions: Iterable[TransactionInput]) -> EnrichmentResult:
        """Enrich every valid transaction; output order matches input order."""
        result = EnrichmentResult()

        for txn in transactions:
            try:
                result.enriched.append(self.enrich_one(txn))
            except ValidationError as e:
                message = "; ".join(
                    f"{'.'.join(str(loc) for loc in error['loc'])}: {error['msg']}" for error in e.errors()
                )
                order_id = txn.get("order_id") if isinstance(txn, Mapping) else None
                logger.warning(f"Skipping invalid transaction {order_id or '-'}: {message}")
                result.skipped.append(SkippedRecord(txn, self.COMPONENT, SkipReason.INVALID_RECORD, message))

        enriched = result.enriched
        fallback_count = sum(
            1 for txn in enriched
            if txn.exchange_rate == FALLBACK_RATE and txn.currency != self.resolver.reporting_currency
        )
        if fallback_count:
            logger.warning(f"{fallback_count} of {len(enriched)} transactions converted at fallback rate 1.0")
        logger.debug(f"Enriched {len(enriched)} transactions, {len(result.skipped)} invalid")
        return result

    def enrich_one(self, txn: TransactionInput) -> EnrichedTransaction:
        """
        Enrich a single transaction.

        Raises:
            ValidationError: If a mapping does not describe a valid transaction
        """
        if isinstance(txn, Mapping):
            txn = NormalizedTransaction.model_validate(txn)

        direction, inferred = txn.resolve_direction()
        if inferred and direction is not None and txn.is_trade():
            logger.debug(f"Direction {direction.value} inferred from text for order {txn.order_id}")

        amount = self._signed_amount(txn, direction)
        rate = self._exchange_rate(txn)
        amount_eur = (amount - txn.commission) / rate

        return EnrichedTransaction(
            source=txn.source,
            transaction_date=txn.transaction_date,
            product_name=txn.product_name,
            isin=txn.isin,
            quantity=txn.quantity,
            price=txn.price,
            commission=txn.commission,
            currency=txn.currency,
            order_id=txn.order_id,
            raw_text=txn.raw_text,
            source_amount=txn.source_amount,
            transaction_type=txn.transaction_type,
            transaction_subtype=txn.transaction_subtype,
            buy_sell=txn.buy_sell,
            amount=amount,
            exchange_rate=rate,
            amount_eur=amount_eur,
            country_code=self.countries.describe(txn.isin),
            hash_id=transaction_fingerprint(
                txn.transaction_date,
                txn.raw_text,
                txn.order_id,
                txn.source_amount,
                txn.commission
            ),
            direction=direction,
            direction_inferred=inferred,
            original_quantity=txn.quantity,
        )

    @staticmethod
    def _signed_amount(txn: NormalizedTransaction, direction: Optional[BuySell]) -> Decimal:
        """Trades: gross value signed by direction. Everything else: the source amount as given."""
        if txn.transaction_type not in (TransactionType.STOCK, TransactionType.OPTION):
            return txn.source_amount

        gross = abs(txn.quantity * txn.price)
        if direction == BuySell.BUY:
            return -gross
        return gross

    def _exchange_rate(self, txn: NormalizedTransaction) -> Decimal:
        try:
            rate = self.resolver.lookup(txn.currency, txn.transaction_date)
        except RateNotFoundError:
            logger.warning(
                f"No {txn.currency} rate for {txn.transaction_date} "
                f"(order {txn.order_id or '-'}), using {FALLBACK_RATE}"
            )
            return FALLBACK_RATE

        if rate <= 0:
            logger.warning(f"Non-positive {txn.currency} rate {rate} on {txn.transaction_date}, using {FALLBACK_RATE}")
            return FALLBACK_RATE

        return rate
