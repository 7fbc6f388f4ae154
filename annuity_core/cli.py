from __future__ import annotations

import json
import logging
from datetime import date
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from annuity_core.domain.calendar import parse_portfolio_date
from annuity_core.domain.errors import EngineError
from annuity_core.domain.models import SCENARIOS, MonteCarloConfig
from annuity_core.io import annuities as annuities_io
from annuity_core.io import config as config_io
from annuity_core.io import prices as prices_io
from annuity_core.io import results as results_io
from annuity_core.services import montecarlo, portfolio, simulator

app = typer.Typer(help="BTC annuity scenario engine: Monte Carlo projections and cash-flow simulation.")


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging")):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def _emit(payload, out: Optional[Path], label: str) -> None:
    if out:
        results_io.save_json(out, payload)
        typer.echo(f"{label} written to {out}")
    else:
        typer.echo(json.dumps(payload, indent=2))


def _monte_carlo_config(
    config: Optional[Path],
    paths: Optional[int],
    projection_days: Optional[int],
    history_years: Optional[int],
    seed: Optional[int],
) -> MonteCarloConfig:
    base = config_io.load_monte_carlo_config(config) if config else MonteCarloConfig()
    return MonteCarloConfig(
        paths=paths if paths is not None else base.paths,
        projection_days=projection_days if projection_days is not None else base.projection_days,
        history_years=history_years if history_years is not None else base.history_years,
        seed=seed if seed is not None else base.seed,
    )


def _run_monte_carlo(history, mc_config: MonteCarloConfig):
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        transient=True,
        console=Console(stderr=True),
    ) as progress:
        task = progress.add_task(f"Generating {mc_config.paths} price paths...", total=None)
        try:
            result = montecarlo.run_monte_carlo(history, mc_config)
        except EngineError as exc:
            raise typer.BadParameter(str(exc)) from exc
        progress.update(task, advance=1)
    return result


@app.command("montecarlo")
def montecarlo_command(
    prices: Path = typer.Option(..., help="Price history (CSV with date,price or JSON records)"),
    config: Optional[Path] = typer.Option(None, help="Monte Carlo config JSON"),
    paths: Optional[int] = typer.Option(None, help="Number of simulated paths (default 100)"),
    projection_days: Optional[int] = typer.Option(None, help="Projection horizon in days (default 365)"),
    history_years: Optional[int] = typer.Option(None, help="Years of history used for the fit (default 13)"),
    seed: Optional[int] = typer.Option(None, help="Random seed"),
    include_paths: bool = typer.Option(False, help="Include every simulated path in the output"),
    out: Optional[Path] = typer.Option(None, help="Output path for Monte Carlo JSON"),
):
    """Fit historical log returns and project best/average/worst price envelopes."""
    history = prices_io.load_price_history(prices)
    mc_config = _monte_carlo_config(config, paths, projection_days, history_years, seed)
    result = _run_monte_carlo(history, mc_config)
    _emit(results_io.monte_carlo_to_dict(result, include_paths=include_paths), out, "Monte Carlo projection")


@app.command()
def simulate(
    prices: Path = typer.Option(..., help="Price history (CSV with date,price or JSON records)"),
    annuities: Path = typer.Option(..., help="Annuities JSON"),
    monte_carlo: Optional[Path] = typer.Option(None, help="Monte Carlo JSON from the montecarlo command"),
    project: bool = typer.Option(False, help="Generate a Monte Carlo projection inline"),
    paths: Optional[int] = typer.Option(None, help="Paths for the inline projection"),
    projection_days: Optional[int] = typer.Option(None, help="Horizon for the inline projection"),
    seed: Optional[int] = typer.Option(None, help="Random seed for the inline projection"),
    out: Optional[Path] = typer.Option(None, help="Output path for scenario results JSON"),
):
    """Run the average/best/worst scenario simulation."""
    history = prices_io.load_price_history(prices)
    try:
        contracts = annuities_io.load_annuities(annuities)
    except EngineError as exc:
        raise typer.BadParameter(str(exc)) from exc

    mc_result = None
    if monte_carlo:
        mc_result = results_io.monte_carlo_from_dict(results_io.read_json(monte_carlo))
    elif project:
        mc_result = _run_monte_carlo(history, _monte_carlo_config(None, paths, projection_days, None, seed))

    results = simulator.simulate(history, contracts, mc_result)
    _emit(results_io.results_to_dict(results), out, "Scenario results")


@app.command()
def report(
    results: Path = typer.Option(..., help="Scenario results JSON from the simulate command"),
    scenario: str = typer.Option("average", help="Scenario: average|best|worst"),
    flows: bool = typer.Option(True, help="Show the cash-flow table"),
):
    """Print a scenario's cash flows and monthly income."""
    if scenario not in SCENARIOS:
        raise typer.BadParameter(f"Unknown scenario {scenario!r}; choose from {', '.join(SCENARIOS)}")
    loaded = results_io.results_from_dict(results_io.read_json(results))
    if scenario not in loaded:
        raise typer.BadParameter(f"Scenario {scenario!r} not present in {results}")
    result = loaded[scenario]

    console = Console()
    if flows:
        table = Table(title=f"Cash flows ({scenario})")
        table.add_column("Date")
        table.add_column("Annuity")
        table.add_column("Type")
        table.add_column("USD", justify="right")
        table.add_column("BTC", justify="right")
        for cf in result.cash_flows:
            style = "cyan" if cf.is_projection else None
            table.add_row(
                cf.date.isoformat(), cf.annuity_id, cf.type,
                f"{cf.usd_amount:,.2f}", f"{cf.btc_amount:.8f}",
                style=style,
            )
        console.print(table)

    income = Table(title=f"Monthly income ({scenario})")
    income.add_column("Month")
    income.add_column("USD", justify="right")
    for month, amount in simulator.monthly_income_by_month(result).items():
        income.add_row(month.strftime("%Y-%m"), f"{amount:,.2f}")
    console.print(income)

    if result.valuations:
        last = result.valuations[-1]
        console.print(
            f"Final valuation {last.date.isoformat()}: [bold]{last.btc_value:.8f}[/bold] BTC "
            f"= [green]{last.usd_value:,.2f}[/green] USD"
        )


@app.command()
def remaining(
    annuities: Path = typer.Option(..., help="Annuities JSON"),
    today: Optional[str] = typer.Option(None, help="Reference date (default: today)"),
):
    """Months remaining on each annuity."""
    try:
        contracts = annuities_io.load_annuities(annuities)
    except EngineError as exc:
        raise typer.BadParameter(str(exc)) from exc
    reference = parse_portfolio_date(today) if today else date.today()
    for annuity in contracts:
        left = portfolio.remaining_months(annuity, reference)
        typer.echo(f"{annuity.id}\t{left} of {annuity.term_months} months remaining")


if __name__ == "__main__":
    app()
