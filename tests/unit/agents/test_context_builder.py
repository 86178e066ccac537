"""Tests for build_context_text()."""

from __future__ import annotations

import datetime

from fakes import make_daily_series, make_series

from Portfolio_Pulse.agents.context_builder import RECENT_CLOSES, build_context_text
from Portfolio_Pulse.models import PriceSeries


class TestBuildContextText:
    """Tests for the flat key-value market context."""

    def test_header_and_prices(self) -> None:
        series = make_series(
            "AAA",
            [
                (datetime.date(2025, 1, 2), "100"),
                (datetime.date(2025, 1, 3), "90"),
                (datetime.date(2025, 1, 6), "110"),
            ],
        )
        text = build_context_text(series, name="Alpha Corp")
        lines = text.splitlines()

        assert lines[0] == "Ticker: AAA"
        assert lines[1] == "Name: Alpha Corp"
        assert "Last Close: 110.00 (2025-01-06)" in text
        assert "Period: 2025-01-02 to 2025-01-06 (3 sessions)" in text
        assert "Period Low: 90.00" in text
        assert "Period High: 110.00" in text
        assert "Period Change: +10.00%" in text
        assert "Dividends Paid: none" in text

    def test_empty_series(self) -> None:
        text = build_context_text(PriceSeries(symbol="AAA", points=[]))
        assert text == "Ticker: AAA\nPrice History: none available"

    def test_dividends_listed(self) -> None:
        series = make_series(
            "AAA",
            [(datetime.date(2025, 3, 1), "50"), (datetime.date(2025, 6, 1), "52")],
            dividends={datetime.date(2025, 3, 1): "0.25", datetime.date(2025, 6, 1): "0.30"},
        )
        text = build_context_text(series)

        assert "Dividends Paid: 2 payments, 0.5500 per share" in text
        assert "  Dividend 2025-06-01: 0.3000" in text

    def test_recent_closes_tail(self) -> None:
        text = build_context_text(make_daily_series("AAA", days=30))
        tail = text.split("Recent Closes:\n", 1)[1].splitlines()

        assert len(tail) == RECENT_CLOSES
        assert tail[-1] == "  2025-06-30: 102.90"

    def test_growth_not_available_for_single_point(self) -> None:
        series = make_series("AAA", [(datetime.date(2025, 1, 2), "100")])
        assert "Annualized Growth: N/A" in build_context_text(series)
