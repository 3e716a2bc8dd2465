"""Command-line entry point: parse a model file, run it, and report."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Optional

import typer
from rich import print as rprint
from rich.console import Console
from rich.table import Table

from .config import SimulationConfig, load_config
from .dsl import load_model
from .engine import Model, run_batched, summarise

app = typer.Typer(help="stockflow: stock-and-flow simulation from a small DSL")
console = Console()

CONFIG_HELP = "YAML file with simulation settings (dt, steps, history_capacity, ...)"


def _configure_logging(cfg: SimulationConfig) -> None:
    logging.basicConfig(
        level=getattr(logging, cfg.log_level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def _prepare(model_path: Path, config_path: Optional[str]) -> tuple[Model, SimulationConfig]:
    cfg = load_config(config_path)
    _configure_logging(cfg)
    if not model_path.exists():
        rprint(f"[red]Model file not found:[/red] {model_path}")
        raise typer.Exit(code=1)
    return load_model(model_path, config=cfg), cfg


def _fmt(value: Optional[float]) -> str:
    return "-" if value is None else f"{value:.4g}"


@app.command()
def run(
    model_path: Path = typer.Argument(..., help="Path to a .sd model file"),
    steps: Optional[int] = typer.Option(None, "--steps", "-n", help="Number of steps (default from config)"),
    dt: Optional[float] = typer.Option(None, "--dt", help="Step size (default from config)"),
    as_json: bool = typer.Option(False, "--json", help="Emit the run as JSON, history included"),
    config_path: Optional[str] = typer.Option(None, "--config-path", help=CONFIG_HELP),
):
    """Run a model and print the final stock values."""

    model, cfg = _prepare(model_path, config_path)
    total = cfg.steps if steps is None else steps
    step_size = cfg.dt if dt is None else dt
    if step_size <= 0:
        rprint("[red]--dt must be positive[/red]")
        raise typer.Exit(code=1)
    taken = run_batched(model, total, step_size, batch_size=cfg.effective_batch_size(total))

    if as_json:
        payload = {
            "time": model.time,
            "steps": model.step_count,
            "terminated": model.is_terminated,
            "config": cfg.dump(),
            "stocks": model.stock_values(),
            "history": model.history.as_records(),
            "diagnostics": [
                {"source": d.source, "message": d.message, "time": d.time} for d in model.diagnostics.records
            ],
        }
        typer.echo(json.dumps(payload, indent=2))
        return

    table = Table(title=f"{model_path.name} after {taken} steps")
    table.add_column("Stock", style="cyan")
    table.add_column("Value", style="white", justify="right")
    table.add_column("Units", style="green")
    for stock in model.stocks.values():
        table.add_row(stock.name, f"{stock.value:.4f}", stock.units or "")
    console.print(table)
    status = "[yellow]terminated[/yellow]" if model.is_terminated else "[green]running[/green]"
    rprint(f"time={model.time:g} step={model.step_count} status={status}")
    if model.diagnostics.total:
        rprint(f"[yellow]{model.diagnostics.total} diagnostic(s) recorded; rerun with --json for details[/yellow]")


@app.command()
def inspect(
    model_path: Path = typer.Argument(..., help="Path to a .sd model file"),
    config_path: Optional[str] = typer.Option(None, "--config-path", help=CONFIG_HELP),
):
    """List the declarations a model file produced."""

    model, _ = _prepare(model_path, config_path)

    stocks = Table(title="Stocks")
    for column in ("Name", "Initial", "Min", "Max", "Units"):
        stocks.add_column(column)
    for name, initial in model.initial_values().items():
        stock = model.stocks[name]
        stocks.add_row(name, _fmt(initial), _fmt(stock.min_value), _fmt(stock.max_value), stock.units or "")
    console.print(stocks)

    flows = Table(title="Flows")
    for column in ("Name", "From", "To", "Rate", "Reads"):
        flows.add_column(column)
    for flow in model.flows.values():
        rate = flow.rate_text if flow.rate_text is not None else _fmt(flow.rate)  # type: ignore[arg-type]
        flows.add_row(
            flow.name,
            flow.describe_endpoint(flow.source, "source"),
            flow.describe_endpoint(flow.target, "sink"),
            rate,
            ", ".join(flow.dependencies),
        )
    console.print(flows)

    for name, value in model.constants.items():
        rprint(f"const [cyan]{name}[/cyan] = {value:g}")
    for name, table in model.lookup_tables.items():
        rprint(f"lookup [cyan]{name}[/cyan]: {len(table)} point(s)")
    for name, table in model.lookup_tables_2d.items():
        rprint(f"lookup2d [cyan]{name}[/cyan]: {len(table)} point(s)")
    for graph in model.graphs.values():
        rprint(f"graph [cyan]{graph.name}[/cyan] ({graph.type}): {', '.join(graph.variables)}")
    if model.termination_text:
        rprint(f"terminate when [magenta]{model.termination_text}[/magenta]")


@app.command()
def summary(
    model_path: Path = typer.Argument(..., help="Path to a .sd model file"),
    steps: Optional[int] = typer.Option(None, "--steps", "-n", help="Number of steps (default from config)"),
    dt: Optional[float] = typer.Option(None, "--dt", help="Step size (default from config)"),
    config_path: Optional[str] = typer.Option(None, "--config-path", help=CONFIG_HELP),
):
    """Run a model and print per-stock min/max/last/avg."""

    model, cfg = _prepare(model_path, config_path)
    total = cfg.steps if steps is None else steps
    step_size = cfg.dt if dt is None else dt
    if step_size <= 0:
        rprint("[red]--dt must be positive[/red]")
        raise typer.Exit(code=1)
    run_batched(model, total, step_size, batch_size=cfg.effective_batch_size(total))

    table = Table(title=f"{model_path.name} summary")
    for column in ("Stock", "Min", "Max", "Last", "Avg"):
        table.add_column(column, justify="right" if column != "Stock" else "left")
    for name, stats in summarise(model).items():
        table.add_row(name, *(f"{stats[key]:.4f}" for key in ("min", "max", "last", "avg")))
    console.print(table)


def main() -> None:  # pragma: no cover
    app()


if __name__ == "__main__":  # pragma: no cover
    main()
