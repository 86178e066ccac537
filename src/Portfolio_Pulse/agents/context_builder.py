"""Convert a PriceSeries into flat key-value text for LLM prompts.

The output is a concise summary: last close, change over the period, the
dividends paid, and a short tail of recent closes. No raw JSON is emitted;
models read flat text more reliably than nested structures.
"""

from __future__ import annotations

from decimal import Decimal

from Portfolio_Pulse.analysis.simulation import cagr
from Portfolio_Pulse.models.market_data import PriceSeries

RECENT_CLOSES: int = 10
MAX_DIVIDEND_LINES: int = 12


def _format_pct(value: Decimal) -> str:
    return f"{value * 100:+.2f}%"


def build_context_text(series: PriceSeries, name: str = "") -> str:
    """Render *series* as flat key-value text suitable for an LLM prompt.

    Parameters
    ----------
    series:
        Ascending price history for the instrument.
    name:
        Optional display name.

    Returns
    -------
    str
        Multi-line text block with labeled values.
    """
    lines: list[str] = [f"Ticker: {series.symbol}"]
    if name:
        lines.append(f"Name: {name}")

    if series.is_empty:
        lines.append("Price History: none available")
        return "\n".join(lines)

    first = series.points[0]
    last = series.points[-1]
    lines.extend(
        [
            f"Last Close: {last.close:.2f} ({last.date.isoformat()})",
            f"Period: {first.date.isoformat()} to {last.date.isoformat()} "
            f"({len(series.points)} sessions)",
            f"Period Low: {min(p.close for p in series.points):.2f}",
            f"Period High: {max(p.close for p in series.points):.2f}",
        ]
    )

    if first.close > 0:
        lines.append(f"Period Change: {_format_pct((last.close - first.close) / first.close)}")

    annual = cagr(series)
    lines.append(f"Annualized Growth: {'N/A' if annual is None else _format_pct(annual)}")

    dividends = [p for p in series.points if p.dividend]
    if dividends:
        total = sum((p.dividend for p in dividends if p.dividend is not None), Decimal("0"))
        lines.append(f"Dividends Paid: {len(dividends)} payments, {total:.4f} per share")
        for point in dividends[-MAX_DIVIDEND_LINES:]:
            lines.append(f"  Dividend {point.date.isoformat()}: {point.dividend:.4f}")
    else:
        lines.append("Dividends Paid: none")

    lines.append("Recent Closes:")
    for point in series.points[-RECENT_CLOSES:]:
        lines.append(f"  {point.date.isoformat()}: {point.close:.2f}")

    return "\n".join(lines)
