"""CLI entry point for Portfolio Pulse.

Provides the ``pulse`` command with subcommands for running a batch analysis
over several instruments, backtesting one instrument, and projecting it
forward at its historical growth rate.

This is the ONLY module where ``print()`` is allowed. All other modules use
``logging``. Async internals are bridged to typer's synchronous interface via
``asyncio.run()``.
"""

from __future__ import annotations

import asyncio
from decimal import ROUND_CEILING, Decimal, InvalidOperation
from typing import Annotated

import typer
from rich.console import Console
from rich.markdown import Markdown
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn
from rich.table import Table

from Portfolio_Pulse.agents.analyst import OllamaAnalyst
from Portfolio_Pulse.analysis.simulation import (
    UNREACHABLE,
    backtest as run_backtest,
    cagr,
    projection_income,
    projection_time,
    projection_time_for_income,
    projection_value,
)
from Portfolio_Pulse.config import PipelineSettings, load_settings
from Portfolio_Pulse.logging_config import configure_logging
from Portfolio_Pulse.models import (
    AnalysisKind,
    Instrument,
    JobState,
    LookbackPeriod,
    PriceSeries,
    ProjectionMode,
    RankEntry,
    RunSnapshot,
    RunStatus,
)
from Portfolio_Pulse.pipeline.scheduler import BatchAnalysisRun
from Portfolio_Pulse.services.market_data import MarketDataService
from Portfolio_Pulse.utils.exceptions import ConfigurationError, DataFetchError

# ---------------------------------------------------------------------------
# Typer app
# ---------------------------------------------------------------------------

app = typer.Typer(name="pulse", help="Sequential AI analysis and backtests for a portfolio")

# Rich console for formatted output
console = Console()

# ---------------------------------------------------------------------------
# Default constants
# ---------------------------------------------------------------------------

PROGRESS_REFRESH_SECONDS: float = 0.5
DEFAULT_AMOUNT: str = "1000"

_STATE_STYLE: dict[JobState, str] = {
    JobState.PENDING: "dim",
    JobState.PROCESSING: "cyan",
    JobState.COOLDOWN: "yellow",
    JobState.COMPLETED: "green",
    JobState.FAILED: "red",
}


def _settings_or_exit(**overrides: object) -> PipelineSettings:
    try:
        return load_settings(**overrides)
    except ConfigurationError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=2) from exc


def _decimal_or_exit(value: str, option: str) -> Decimal:
    try:
        return Decimal(value)
    except InvalidOperation as exc:
        console.print(f"[red]Invalid number for {option}: {value!r}[/red]")
        raise typer.Exit(code=2) from exc


def _format_pct(value: Decimal) -> str:
    color = "green" if value > 0 else "red" if value < 0 else "dim"
    return f"[{color}]{value * 100:+.2f}%[/{color}]"


# ---------------------------------------------------------------------------
# analyze command
# ---------------------------------------------------------------------------


@app.command()
def analyze(
    symbols: Annotated[list[str], typer.Argument(help="Ticker symbols to analyze, in order")],
    kind: Annotated[
        AnalysisKind, typer.Option(help="Report type requested for each instrument")
    ] = AnalysisKind.COMPLETE,
    cooldown: Annotated[
        float | None, typer.Option(help="Seconds to wait between analysis calls")
    ] = None,
    retry_wait: Annotated[
        float | None, typer.Option(help="Seconds before a failed instrument is retried")
    ] = None,
    period: Annotated[str | None, typer.Option(help="History period fetched (yfinance)")] = None,
    suffix: Annotated[
        str | None, typer.Option(help="Exchange suffix appended to symbols, e.g. .SA")
    ] = None,
    model: Annotated[str | None, typer.Option(help="Ollama model tag")] = None,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Enable debug logging")] = False,
    quiet: Annotated[bool, typer.Option("--quiet", "-q", help="Suppress info logging")] = False,
) -> None:
    """Analyze every symbol one at a time, then rank them and ask for a joint view."""
    configure_logging(verbose=verbose, quiet=quiet)

    settings = _settings_or_exit(
        analysis_kind=kind,
        cooldown_seconds=cooldown,
        retry_wait_seconds=retry_wait,
        history_period=period,
        symbol_suffix=suffix,
        ollama_model=model,
    )
    try:
        instruments = [Instrument(symbol=s) for s in symbols]
    except ValueError as exc:
        console.print(f"[red]Invalid symbol: {exc}[/red]")
        raise typer.Exit(code=2) from exc

    snapshot = asyncio.run(_analyze_async(instruments, settings))
    _render_run(snapshot)
    if snapshot.status == RunStatus.FAILED:
        raise typer.Exit(code=1)


async def _analyze_async(instruments: list[Instrument], settings: PipelineSettings) -> RunSnapshot:
    """Drive one run to the end while rendering live progress."""
    run = BatchAnalysisRun(
        MarketDataService(symbol_suffix=settings.symbol_suffix),
        OllamaAnalyst.from_settings(settings),
        settings,
    )
    try:
        run.start_run(instruments)
    except ConfigurationError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=2) from exc

    with Progress(
        SpinnerColumn(spinner_name="line"),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        console=console,
    ) as progress:
        task = progress.add_task("Starting...", total=len(instruments))
        driver = asyncio.create_task(run.drive())
        while not driver.done():
            progress.update(task, **_progress_fields(run.snapshot()))
            await asyncio.wait({driver}, timeout=PROGRESS_REFRESH_SECONDS)
        snapshot = driver.result()
        progress.update(task, **_progress_fields(snapshot))

    return snapshot


def _progress_fields(snapshot: RunSnapshot) -> dict[str, object]:
    settled = sum(1 for job in snapshot.jobs if job.state == JobState.COMPLETED or job.terminal)
    processing = [job.symbol for job in snapshot.jobs if job.state == JobState.PROCESSING]

    if snapshot.status == RunStatus.AGGREGATING:
        description = "Joint analysis..."
    elif snapshot.status in (RunStatus.COMPLETED, RunStatus.FAILED):
        description = f"Run {snapshot.status.value}"
    elif processing:
        description = f"Analyzing {processing[0]}"
    elif snapshot.cooldown_seconds_remaining:
        description = f"Cooldown {snapshot.cooldown_seconds_remaining}s"
    else:
        description = "Waiting for retries"
    return {"description": description, "completed": settled}


def _render_run(snapshot: RunSnapshot) -> None:
    jobs_table = Table(title="Instruments")
    jobs_table.add_column("Symbol", style="bold", width=10)
    jobs_table.add_column("State", width=11)
    jobs_table.add_column("Tries", justify="right", width=5)
    jobs_table.add_column("Error")
    for job in snapshot.jobs:
        style = _STATE_STYLE.get(job.state, "")
        tries = job.retry_count + (1 if job.state == JobState.COMPLETED else 0)
        jobs_table.add_row(
            job.symbol,
            f"[{style}]{job.state.value}[/{style}]",
            str(tries),
            job.error_message or "",
        )
    console.print(jobs_table)

    _render_leaderboard(snapshot.leaderboard)

    if snapshot.joint is not None:
        console.print("\n[bold underline]Joint Analysis[/bold underline]\n")
        console.print(Markdown(snapshot.joint.narrative))
        if snapshot.joint.ranking:
            ai_table = Table(title="AI Ranking")
            ai_table.add_column("#", justify="right", style="dim", width=4)
            ai_table.add_column("Symbol", style="bold", width=10)
            ai_table.add_column("Signal", width=10)
            ai_table.add_column("Score", justify="right", width=7)
            for position, item in enumerate(snapshot.joint.ranking, start=1):
                ai_table.add_row(str(position), item.symbol, item.signal, f"{item.score:.1f}")
            console.print(ai_table)

    if snapshot.status == RunStatus.FAILED:
        console.print(f"\n[red]Joint analysis failed: {snapshot.error_message}[/red]")
    else:
        console.print(
            f"\n[green]Run complete: {snapshot.completed_count}/{len(snapshot.jobs)} "
            "instruments analyzed[/green]"
        )


def _render_leaderboard(entries: list[RankEntry]) -> None:
    if not entries:
        console.print("[yellow]No completed instruments to rank.[/yellow]")
        return

    table = Table(title="Leaderboard (1M / 6M / 1Y)")
    table.add_column("Rank", justify="right", style="dim", width=5)
    table.add_column("Symbol", style="bold", width=10)
    table.add_column("Points", justify="right", width=7)
    table.add_column("1M", justify="right", width=9)
    table.add_column("6M", justify="right", width=9)
    table.add_column("1Y", justify="right", width=9)
    for entry in entries:
        table.add_row(
            str(entry.rank),
            entry.symbol,
            str(entry.score),
            _format_pct(entry.returns.one_month),
            _format_pct(entry.returns.six_month),
            _format_pct(entry.returns.one_year),
        )
    console.print(table)


# ---------------------------------------------------------------------------
# backtest command
# ---------------------------------------------------------------------------


@app.command()
def backtest(
    symbol: Annotated[str, typer.Argument(help="Ticker symbol to backtest")],
    amount: Annotated[str, typer.Option(help="Amount invested")] = DEFAULT_AMOUNT,
    period: Annotated[
        LookbackPeriod, typer.Option(help="How long ago the investment was made")
    ] = LookbackPeriod.ONE_YEAR,
    suffix: Annotated[str | None, typer.Option(help="Exchange suffix, e.g. .SA")] = None,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Enable debug logging")] = False,
) -> None:
    """Show what an investment made in the past would be worth today."""
    configure_logging(verbose=verbose, quiet=not verbose)
    settings = _settings_or_exit(symbol_suffix=suffix)
    invested = _decimal_or_exit(amount, "--amount")

    series = asyncio.run(_fetch_series(symbol, settings))
    current_price = series.last_close
    result = (
        None if current_price is None else run_backtest(series, current_price, invested, period)
    )
    if result is None:
        console.print(f"[yellow]Not enough history for a {period.value} backtest.[/yellow]")
        raise typer.Exit(code=1)

    table = Table(title=f"Backtest: {series.symbol} ({period.value})")
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")
    table.add_row("Start date", result.initial_date.isoformat())
    table.add_row("Start price", f"{result.initial_price:,.2f}")
    table.add_row("Invested", f"{invested:,.2f}")
    table.add_row("Market value", f"{result.market_value:,.2f}")
    table.add_row("Dividends received", f"{result.dividends_value:,.2f}")
    table.add_row("Total (dividends as cash)", f"{result.final_value_simple:,.2f}")
    table.add_row("Total (dividends reinvested)", f"{result.final_value_compound:,.2f}")
    table.add_row("Reinvestment gain", f"{result.extra_return:,.2f}")
    console.print(table)


async def _fetch_series(symbol: str, settings: PipelineSettings) -> PriceSeries:
    service = MarketDataService(symbol_suffix=settings.symbol_suffix)
    try:
        return await service.fetch_price_series(symbol, settings.history_period)
    except DataFetchError as exc:
        console.print(f"[red]Failed to fetch history for {symbol}: {exc}[/red]")
        raise typer.Exit(code=1) from exc


# ---------------------------------------------------------------------------
# project command
# ---------------------------------------------------------------------------


@app.command()
def project(
    symbol: Annotated[str, typer.Argument(help="Ticker symbol whose growth rate is used")],
    mode: Annotated[ProjectionMode, typer.Option(help="What to solve for")] = ProjectionMode.VALUE,
    start: Annotated[str, typer.Option(help="Starting capital")] = "0",
    monthly: Annotated[str, typer.Option(help="Monthly contribution")] = "0",
    months: Annotated[int, typer.Option(help="Horizon for value/income_value modes")] = 120,
    target: Annotated[
        str | None, typer.Option(help="Capital (goal) or monthly income (income_goal) target")
    ] = None,
    suffix: Annotated[str | None, typer.Option(help="Exchange suffix, e.g. .SA")] = None,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Enable debug logging")] = False,
) -> None:
    """Project a savings plan forward at the instrument's historical CAGR."""
    configure_logging(verbose=verbose, quiet=not verbose)
    settings = _settings_or_exit(symbol_suffix=suffix)
    start_amount = _decimal_or_exit(start, "--start")
    contribution = _decimal_or_exit(monthly, "--monthly")

    series = asyncio.run(_fetch_series(symbol, settings))
    annual = cagr(series)
    rate_str = "N/A" if annual is None else f"{annual * 100:.2f}%"
    console.print(f"[bold]{series.symbol}[/bold] historical CAGR: {rate_str}")

    if mode == ProjectionMode.VALUE:
        value = projection_value(annual, start_amount, contribution, months)
        console.print(f"Capital after {months} months: [green]{value:,.2f}[/green]")
        return
    if mode == ProjectionMode.INCOME_VALUE:
        income = projection_income(annual, start_amount, contribution, months)
        console.print(f"Monthly income after {months} months: [green]{income:,.2f}[/green]")
        return

    if target is None:
        console.print(f"[red]--target is required for mode {mode.value}[/red]")
        raise typer.Exit(code=2)
    goal = _decimal_or_exit(target, "--target")
    if mode == ProjectionMode.GOAL:
        needed = projection_time(annual, start_amount, contribution, goal)
    else:
        needed = projection_time_for_income(annual, start_amount, contribution, goal)

    if needed == UNREACHABLE:
        console.print("[yellow]Target is unreachable at this growth rate.[/yellow]")
        return
    years, rest = divmod(int(needed.to_integral_value(rounding=ROUND_CEILING)), 12)
    console.print(f"Target reached in [green]{needed:.1f}[/green] months ({years}y {rest}m)")
