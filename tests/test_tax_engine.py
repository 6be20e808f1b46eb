"""
Tests for the FIFO stock lot matcher.

Copyright (c) 2026 Andreas Wagner. All rights reserved.
"""

import random
from datetime import date
from decimal import Decimal

import pytest

from lib.parsers.enhanced_transaction import BuySell, TransactionType
from modules.tax.engine import StockLotMatcher, ZeroQuantityLotError, prorate
from modules.tax.tax_events import SkipReason

BUY = BuySell.BUY
SELL = BuySell.SELL


@pytest.fixture
def matcher():
    return StockLotMatcher()


class TestStockLotMatcherScenario:
    """Buy 10 @ 10 (commission 1), sell 4 @ 15 (commission 0.50)."""

    @pytest.fixture
    def transactions(self, enriched):
        return [
            enriched(direction=BUY, quantity=10, price=10, commission="1",
                     amount_eur="-100", transaction_date=date(2021, 1, 5), order_id="b1"),
            enriched(direction=SELL, quantity=4, price=15, commission="0.50",
                     amount_eur="60", transaction_date=date(2021, 3, 1), order_id="s1"),
        ]

    def test_realized_sale(self, matcher, transactions):
        result = matcher.match(transactions)

        assert len(result.realized_sales) == 1
        sale = result.realized_sales[0]
        assert sale.quantity == Decimal("4")
        assert sale.buy_amount_eur == Decimal("-40.00")
        assert sale.sale_amount_eur == Decimal("60.00")
        assert sale.commission == Decimal("1.50")
        assert sale.delta == Decimal("20.00")
        assert sale.buy_date == date(2021, 1, 5)
        assert sale.sale_date == date(2021, 3, 1)
        assert sale.buy_order_id == "b1"
        assert sale.sale_order_id == "s1"

    def test_remaining_lot(self, matcher, transactions):
        result = matcher.match(transactions)

        assert list(result.holdings_by_year) == [2021]
        lots = result.holdings_by_year[2021]
        assert len(lots) == 1
        assert lots[0].remaining_quantity == Decimal("6")
        assert lots[0].original_quantity == Decimal("10")
        assert lots[0].buy_amount_eur == Decimal("-60.00")
        assert lots[0].buy_amount == Decimal("-60")

    def test_inputs_untouched(self, matcher, transactions):
        before = list(transactions)

        matcher.match(transactions)

        assert transactions == before
        assert transactions[0].quantity == Decimal("10")


class TestFIFOOrdering:
    """Oldest lot first; same-day buys before sells."""

    def test_oldest_lot_consumed_first(self, matcher, enriched):
        result = matcher.match([
            enriched(direction=SELL, quantity=15, price=30, transaction_date=date(2021, 3, 1), order_id="s1"),
            enriched(direction=BUY, quantity=10, price=20, transaction_date=date(2021, 2, 1), order_id="b2"),
            enriched(direction=BUY, quantity=10, price=10, transaction_date=date(2021, 1, 1), order_id="b1"),
        ])

        sales = result.realized_sales
        assert [s.quantity for s in sales] == [Decimal("10"), Decimal("5")]
        assert [s.buy_date for s in sales] == [date(2021, 1, 1), date(2021, 2, 1)]
        assert [s.buy_amount_eur for s in sales] == [Decimal("-100.00"), Decimal("-100.00")]
        assert [s.sale_amount_eur for s in sales] == [Decimal("300.00"), Decimal("150.00")]
        assert [s.delta for s in sales] == [Decimal("200.00"), Decimal("50.00")]

        remaining = result.holdings_by_year[2021]
        assert [lot.remaining_quantity for lot in remaining] == [Decimal("5")]
        assert remaining[0].buy_date == date(2021, 2, 1)

    def test_same_day_buy_available_to_sell(self, matcher, enriched):
        # Order ids alone would put the sell first
        result = matcher.match([
            enriched(direction=SELL, quantity=5, price=12, transaction_date=date(2021, 6, 1), order_id="A"),
            enriched(direction=BUY, quantity=5, price=10, transaction_date=date(2021, 6, 1), order_id="B"),
        ])

        assert len(result.realized_sales) == 1
        assert result.unmatched_sales == []
        assert result.holdings_by_year[2021] == []

    def test_equal_dates_ordered_by_order_id(self, matcher, enriched):
        result = matcher.match([
            enriched(direction=BUY, quantity=1, price=20, transaction_date=date(2021, 1, 1), order_id="002"),
            enriched(direction=BUY, quantity=1, price=10, transaction_date=date(2021, 1, 1), order_id="001"),
            enriched(direction=SELL, quantity=1, price=30, transaction_date=date(2021, 2, 1), order_id="003"),
        ])

        assert result.realized_sales[0].buy_order_id == "001"

    def test_instruments_are_independent(self, matcher, enriched):
        result = matcher.match([
            enriched(direction=BUY, quantity=10, isin="US0378331005", transaction_date=date(2021, 1, 1)),
            enriched(direction=SELL, quantity=10, isin="US5949181045", transaction_date=date(2021, 2, 1)),
        ])

        assert result.realized_sales == []
        assert len(result.unmatched_sales) == 1
        assert [lot.isin for lot in result.holdings_by_year[2021]] == ["US0378331005"]

    def test_input_order_does_not_matter(self, matcher, enriched):
        transactions = [
            enriched(direction=BUY, quantity=10, price=10, transaction_date=date(2020, 1, 1), order_id="1"),
            enriched(direction=BUY, quantity=5, price=12, transaction_date=date(2020, 6, 1), order_id="2"),
            enriched(direction=SELL, quantity=12, price=15, transaction_date=date(2021, 1, 1), order_id="3"),
            enriched(direction=BUY, quantity=3, price=9, transaction_date=date(2022, 1, 1), order_id="4"),
            enriched(direction=SELL, quantity=4, price=11, transaction_date=date(2022, 5, 1), order_id="5"),
        ]
        shuffled = list(transactions)
        random.Random(7).shuffle(shuffled)

        assert matcher.match(shuffled) == matcher.match(transactions)


class TestCommissionAttribution:
    """A lot's commission is charged to exactly one sale."""

    def test_first_partial_sale_carries_lot_commission(self, matcher, enriched):
        result = matcher.match([
            enriched(direction=BUY, quantity=10, commission="2", transaction_date=date(2021, 1, 1), order_id="b"),
            enriched(direction=SELL, quantity=3, commission="0.30", transaction_date=date(2021, 2, 1), order_id="s1"),
            enriched(direction=SELL, quantity=7, commission="0.70", transaction_date=date(2021, 3, 1), order_id="s2"),
        ])

        assert [s.commission for s in result.realized_sales] == [Decimal("2.30"), Decimal("0.70")]

    def test_sale_spanning_lots(self, matcher, enriched):
        result = matcher.match([
            enriched(direction=BUY, quantity=10, commission="1", transaction_date=date(2021, 1, 1), order_id="b1"),
            enriched(direction=BUY, quantity=10, commission="2", transaction_date=date(2021, 1, 2), order_id="b2"),
            enriched(direction=SELL, quantity=15, commission="1.5", transaction_date=date(2021, 2, 1), order_id="s"),
        ])

        assert [s.commission for s in result.realized_sales] == [Decimal("2.00"), Decimal("2.50")]

    def test_rates_are_reported(self, matcher, enriched):
        result = matcher.match([
            enriched(direction=BUY, quantity=2, currency="USD", exchange_rate="1.25",
                     transaction_date=date(2021, 1, 1), order_id="b"),
            enriched(direction=SELL, quantity=2, currency="USD", exchange_rate="1.10",
                     transaction_date=date(2021, 2, 1), order_id="s"),
        ])

        sale = result.realized_sales[0]
        assert sale.buy_exchange_rate == Decimal("1.25")
        assert sale.sale_exchange_rate == Decimal("1.10")
        assert sale.buy_currency == sale.sale_currency == "USD"


class TestHoldingsSnapshots:
    """Year-end holdings with flat carry-forward."""

    def test_gap_years_carry_forward(self, matcher, enriched):
        result = matcher.match([
            enriched(direction=BUY, quantity=10, transaction_date=date(2019, 5, 1), order_id="b"),
            enriched(direction=SELL, quantity=4, transaction_date=date(2022, 2, 1), order_id="s"),
        ])

        assert sorted(result.holdings_by_year) == [2019, 2020, 2021, 2022]
        assert result.holdings_by_year[2020] == result.holdings_by_year[2019]
        assert result.holdings_by_year[2021] == result.holdings_by_year[2019]
        assert result.holdings_by_year[2021][0].remaining_quantity == Decimal("10")
        assert result.holdings_by_year[2022][0].remaining_quantity == Decimal("6")

    def test_snapshot_taken_before_year_change(self, matcher, enriched):
        result = matcher.match([
            enriched(direction=BUY, quantity=10, transaction_date=date(2020, 12, 31), order_id="b"),
            enriched(direction=SELL, quantity=10, transaction_date=date(2021, 1, 1), order_id="s"),
        ])

        assert result.holdings_by_year[2020][0].remaining_quantity == Decimal("10")
        assert result.holdings_by_year[2021] == []

    def test_snapshot_order_follows_first_seen_instrument(self, matcher, enriched):
        result = matcher.match([
            enriched(direction=BUY, quantity=1, isin="US5949181045", transaction_date=date(2021, 1, 1), order_id="1"),
            enriched(direction=BUY, quantity=1, isin="US0378331005", transaction_date=date(2021, 1, 2), order_id="2"),
            enriched(direction=BUY, quantity=2, isin="US5949181045", transaction_date=date(2021, 1, 3), order_id="3"),
        ])

        assert [(lot.isin, lot.order_id) for lot in result.holdings_by_year[2021]] == [
            ("US5949181045", "1"), ("US5949181045", "3"), ("US0378331005", "2"),
        ]

    def test_empty_input(self, matcher):
        result = matcher.match([])

        assert result.realized_sales == []
        assert result.holdings_by_year == {}


class TestOversell:
    """Sell quantity without open lots is reported, not dropped."""

    def test_partial_oversell(self, matcher, enriched):
        result = matcher.match([
            enriched(direction=BUY, quantity=5, transaction_date=date(2021, 1, 1), order_id="b"),
            enriched(direction=SELL, quantity=8, transaction_date=date(2021, 2, 1), order_id="s"),
        ])

        assert [s.quantity for s in result.realized_sales] == [Decimal("5")]
        assert len(result.unmatched_sales) == 1
        assert result.unmatched_sales[0].quantity == Decimal("3")
        assert result.unmatched_sales[0].order_id == "s"

    def test_sell_without_any_lot(self, matcher, enriched):
        result = matcher.match([
            enriched(direction=SELL, quantity=2, transaction_date=date(2021, 2, 1), order_id="s"),
        ])

        assert result.realized_sales == []
        assert result.unmatched_sales[0].quantity == Decimal("2")
        assert result.holdings_by_year == {2021: []}


class TestSkippedRecords:
    """Unfit stock rows are reported with a reason."""

    def test_skip_reasons(self, matcher, enriched):
        result = matcher.match([
            enriched(transaction_date=None, order_id="no-date"),
            enriched(isin="", order_id="no-isin"),
            enriched(quantity=0, order_id="zero"),
            enriched(quantity=-3, order_id="negative"),
            enriched(direction=None, order_id="ambiguous"),
            enriched(quantity=5, original_quantity=0, order_id="zero-lot"),
        ])

        reasons = {s.transaction.order_id: s.reason for s in result.skipped}
        assert reasons == {
            "no-date": SkipReason.INVALID_DATE,
            "no-isin": SkipReason.MISSING_INSTRUMENT,
            "zero": SkipReason.NON_POSITIVE_QUANTITY,
            "negative": SkipReason.NON_POSITIVE_QUANTITY,
            "ambiguous": SkipReason.AMBIGUOUS_DIRECTION,
            "zero-lot": SkipReason.ZERO_QUANTITY_LOT,
        }
        assert all(s.component == "stock_lot_matcher" for s in result.skipped)
        assert result.realized_sales == []
        assert result.holdings_by_year == {}

    def test_other_types_are_ignored(self, matcher, enriched):
        result = matcher.match([
            enriched(transaction_type=TransactionType.OPTION, product_name="FLW P31.00 18MAR22"),
            enriched(transaction_type=TransactionType.DIVIDEND, direction=None),
        ])

        assert result.skipped == []
        assert result.holdings_by_year == {}


class TestProrate:
    """Guarded proration."""

    def test_ratio(self):
        assert prorate(Decimal("4"), Decimal("10")) == Decimal("0.4")

    def test_zero_lot_raises(self):
        with pytest.raises(ZeroQuantityLotError) as exc_info:
            prorate(Decimal("1"), Decimal("0"), "lot-7")

        assert exc_info.value.order_id == "lot-7"
        assert isinstance(exc_info.value, ValueError)


class TestIdempotence:
    """Same input, same output."""

    def test_rerun_is_identical(self, matcher, enriched):
        transactions = [
            enriched(direction=BUY, quantity=10, commission="1", transaction_date=date(2020, 1, 1), order_id="1"),
            enriched(direction=SELL, quantity=4, commission="1", transaction_date=date(2020, 6, 1), order_id="2"),
            enriched(direction=SELL, quantity=4, commission="1", transaction_date=date(2021, 6, 1), order_id="3"),
        ]

        first = matcher.match(transactions)
        second = matcher.match(transactions)

        assert first == second
        assert first.realized_sales[0].commission == Decimal("2.00")
        assert second.realized_sales[0].commission == Decimal("2.00")
