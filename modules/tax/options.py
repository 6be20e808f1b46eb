"""
Option Position Matcher

FIFO matching of option legs per contract. Either side of a match can open
or close a position:
- BUY closes open shorts first, any remainder opens a long
- SELL closes open longs first, any remainder opens a short

Per-unit values of a leg are always taken from its original quantity, so
the cost basis of a position stays stable across several partial closes.
Exercise and assignment rows carry no amount; for a closing leg without an
amount the per-unit value falls back to its price, signed by direction.

Copyright (c) 2026 Andreas Wagner. All rights reserved.
"""

import re
from collections import defaultdict, deque
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Deque, Dict, Iterable, List

from lib.parsers.enhanced_transaction import BuySell, TransactionType
from lib.utils.logging_config import setup_logger
from modules.tax.tax_events import (
    EnrichedTransaction,
    OptionPosition,
    PositionSide,
    RealizedOptionTrade,
    SkippedRecord,
    SkipReason,
    round_money,
)

logger = setup_logger(__name__)

_WHITESPACE = re.compile(r"\s+")


def contract_key(product_name: str) -> str:
    """Grouping key for an option contract, e.g. 'flw  p31.00 18mar22' -> 'FLW P31.00 18MAR22'."""
    return _WHITESPACE.sub(" ", product_name.strip()).upper()


def _to_eur(value: Decimal, rate: Decimal) -> Decimal:
    # A non-positive rate never leaves the enricher; treat it as 1:1 if one is handed in directly
    if rate <= 0:
        return value
    return value / rate


@dataclass
class OptionMatchResult:
    """Output of one OptionPositionMatcher.match call."""

    trades: List[RealizedOptionTrade] = field(default_factory=list)
    positions: List[OptionPosition] = field(default_factory=list)
    skipped: List[SkippedRecord] = field(default_factory=list)


class OptionPositionMatcher:
    """Matches option opens and closes per contract, long and short."""

    COMPONENT = "option_position_matcher"

    def match(self, transactions: Iterable[EnrichedTransaction]) -> OptionMatchResult:
        result = OptionMatchResult()

        # Arena of legs plus side tables: leg index -> unsigned original / remaining quantity
        legs: List[EnrichedTransaction] = []
        leg_quantity: Dict[int, Decimal] = {}
        remaining: Dict[int, Decimal] = {}

        for txn in self._select(transactions, result.skipped):
            idx = len(legs)
            legs.append(txn)
            leg_quantity[idx] = abs(txn.quantity)

        order = sorted(range(len(legs)), key=lambda i: (legs[i].transaction_date, legs[i].order_id))

        long_queues: Dict[str, Deque[int]] = defaultdict(deque)
        short_queues: Dict[str, Deque[int]] = defaultdict(deque)
        contracts: List[str] = []

        for idx in order:
            txn = legs[idx]
            key = contract_key(txn.product_name)
            if key not in contracts:
                contracts.append(key)

            if txn.direction == BuySell.BUY:
                closing_queue, opening_queue = short_queues[key], long_queues[key]
                closed_side = PositionSide.SHORT
            else:
                closing_queue, opening_queue = long_queues[key], short_queues[key]
                closed_side = PositionSide.LONG

            to_match = leg_quantity[idx]
            while to_match > 0 and closing_queue:
                open_idx = closing_queue[0]
                matched_qty = min(to_match, remaining[open_idx])

                result.trades.append(self._realize(
                    legs[open_idx], leg_quantity[open_idx],
                    txn, leg_quantity[idx],
                    matched_qty, closed_side
                ))

                remaining[open_idx] -= matched_qty
                to_match -= matched_qty
                if remaining[open_idx] == 0:
                    closing_queue.popleft()

            if to_match > 0:
                remaining[idx] = to_match
                opening_queue.append(idx)

        for key in contracts:
            for idx in long_queues[key]:
                result.positions.append(self._position(legs[idx], leg_quantity[idx], remaining[idx]))
            for idx in short_queues[key]:
                result.positions.append(self._position(legs[idx], leg_quantity[idx], -remaining[idx]))

        logger.debug(
            f"Option matching: {len(result.trades)} trades, {len(result.positions)} open positions, "
            f"{len(result.skipped)} skipped"
        )
        return result

    def _select(
        self,
        transactions: Iterable[EnrichedTransaction],
        skipped: List[SkippedRecord]
    ) -> List[EnrichedTransaction]:
        eligible = []
        for txn in transactions:
            if txn.transaction_type != TransactionType.OPTION:
                continue

            reason = None
            if txn.transaction_date is None:
                reason = (SkipReason.INVALID_DATE, "option transaction without a valid date")
            elif txn.quantity == 0:
                reason = (SkipReason.NON_POSITIVE_QUANTITY, "option transaction with zero quantity")
            elif not txn.product_name.strip():
                reason = (SkipReason.MISSING_PRODUCT_NAME, "option transaction without product name")
            elif txn.direction is None:
                reason = (
                    SkipReason.AMBIGUOUS_DIRECTION,
                    f"ambiguous or missing buy/sell keyword in '{txn.raw_text}'"
                )

            if reason is not None:
                logger.warning(f"Skipping option order {txn.order_id or '-'}: {reason[1]}")
                skipped.append(SkippedRecord(txn, self.COMPONENT, reason[0], reason[1]))
                continue

            if txn.quantity < 0:
                logger.warning(
                    f"Option transaction {txn.order_id or '-'} has negative quantity {txn.quantity}. "
                    f"Taking absolute value."
                )

            eligible.append(txn)
        return eligible

    @staticmethod
    def _close_unit_amount(close: EnrichedTransaction, close_qty: Decimal) -> Decimal:
        if close.amount == 0:
            # Exercise / assignment: no cash amount on the closing row
            return -close.price if close.direction == BuySell.BUY else close.price
        return close.amount / close_qty

    def _realize(
        self,
        open_leg: EnrichedTransaction,
        open_qty: Decimal,
        close_leg: EnrichedTransaction,
        close_qty: Decimal,
        matched_qty: Decimal,
        closed_side: PositionSide
    ) -> RealizedOptionTrade:
        open_unit = open_leg.amount / open_qty
        close_unit = self._close_unit_amount(close_leg, close_qty)

        open_amount_eur = round_money(_to_eur(open_unit, open_leg.exchange_rate) * matched_qty)
        close_amount_eur = round_money(_to_eur(close_unit, close_leg.exchange_rate) * matched_qty)

        commission = (open_leg.commission / open_qty + close_leg.commission / close_qty) * matched_qty

        return RealizedOptionTrade(
            open_date=open_leg.transaction_date,
            close_date=close_leg.transaction_date,
            product_name=open_leg.product_name,
            quantity=matched_qty,
            open_price=open_leg.price,
            open_amount=open_unit * matched_qty,
            open_currency=open_leg.currency,
            open_amount_eur=open_amount_eur,
            close_price=close_leg.price,
            close_amount=close_unit * matched_qty,
            close_currency=close_leg.currency,
            close_amount_eur=close_amount_eur,
            commission=round_money(commission),
            delta=round_money(open_amount_eur + close_amount_eur),
            closed_position=closed_side,
            open_order_id=open_leg.order_id,
            close_order_id=close_leg.order_id,
        )

    @staticmethod
    def _position(leg: EnrichedTransaction, leg_qty: Decimal, signed_qty: Decimal) -> OptionPosition:
        share = abs(signed_qty) / leg_qty
        return OptionPosition(
            open_date=leg.transaction_date,
            product_name=leg.product_name,
            quantity=signed_qty,
            open_price=leg.price,
            open_amount=leg.amount * share,
            open_amount_eur=round_money(leg.amount_eur * share),
            currency=leg.currency,
            order_id=leg.order_id,
        )
