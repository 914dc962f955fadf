"""Command-line interface for quantcore.

Usage:
    quantcore universe
    quantcore evaluate --vix 25 --macro 100 --quality 0 --breakout 0
    quantcore run --duration 30 --seed 7
"""

import time
from typing import Optional

import click
from rich.console import Console
from rich.table import Table

from quantcore.ledger.ledger import Ledger
from quantcore.market.random_walk import RandomWalkFeed
from quantcore.market.universe import DEFAULT_UNIVERSE
from quantcore.orchestration.engine import EngineSettings, EngineState, TradingEngine
from quantcore.portfolio.base import AllocationConfig
from quantcore.portfolio.multi_strategy_allocator import MultiStrategyAllocator
from quantcore.utils.config import load_engine_config
from quantcore.utils.exceptions import QuantCoreError
from quantcore.utils.logging import get_logger, setup_logging

logger = get_logger(__name__)

console = Console()


def _allocation_from(config, macro, quality, breakout) -> AllocationConfig:
    """Sleeve weights from CLI options, falling back to the config file."""
    weights = {
        "macro": macro if macro is not None else config.get("allocation.macro", 40),
        "quality": quality if quality is not None else config.get("allocation.quality", 30),
        "breakout": breakout if breakout is not None else config.get("allocation.breakout", 30),
    }
    return AllocationConfig.from_mapping(weights)


def create_state_table(state: EngineState) -> Table:
    """Create account/holdings summary table."""
    table = Table(title="Engine State", show_header=True, header_style="bold magenta")
    table.add_column("Metric", style="cyan", no_wrap=True)
    table.add_column("Value", style="green")

    table.add_row("Running", "yes" if state.is_running else "no")
    table.add_row("Cash", f"{state.cash:,.0f}")
    table.add_row("Total Assets", f"{state.total_assets:,.0f}")
    table.add_row("Profit Rate", f"{state.profit_rate:+.2f}%")
    table.add_row("VIX", f"{state.macro_indicator:.2f}")
    table.add_row("Pending Orders", str(len(state.pending_orders)))
    table.add_row("In Flight", str(state.in_flight))
    table.add_row("API Usage", str(state.api_usage))

    for instrument_id, holding in sorted(state.holdings.items()):
        table.add_row(
            f"  {instrument_id}",
            f"{holding.shares:,} @ {holding.avg_cost:,.0f}",
        )

    return table


@click.group()
@click.option("--config", "config_path", type=click.Path(exists=True), default=None,
              help="YAML configuration file")
@click.option("--log-level", default=None, help="Override logging level")
@click.pass_context
def cli(ctx: click.Context, config_path: Optional[str], log_level: Optional[str]):
    """quantcore allocation and execution engine"""
    try:
        config = load_engine_config(config_path)
    except (FileNotFoundError, QuantCoreError) as e:
        raise click.ClickException(str(e))

    setup_logging(
        level=log_level or config.get("logging.level", "INFO"),
        scheduler_level=config.get("logging.scheduler_level", "WARNING"),
    )
    ctx.obj = config


@cli.command()
def universe():
    """Show the default trading universe."""
    table = Table(title="Default Universe", show_header=True, header_style="bold magenta")
    for column in ("Code", "Name", "Price", "Sector", "Class", "Risk", "PER", "PBR"):
        table.add_column(column)

    for inst in DEFAULT_UNIVERSE:
        table.add_row(
            inst.instrument_id,
            inst.name,
            f"{inst.price:,.0f}",
            inst.sector.value,
            inst.asset_class.value,
            str(inst.risk_grade),
            f"{inst.per:.1f}" if inst.per else "-",
            f"{inst.pbr:.1f}" if inst.pbr else "-",
        )

    console.print(table)


@cli.command()
@click.option("--vix", type=float, default=15.2, help="Macro indicator value")
@click.option("--cash", type=float, default=None, help="Starting cash")
@click.option("--macro", type=float, default=None, help="Macro sleeve weight")
@click.option("--quality", type=float, default=None, help="Quality sleeve weight")
@click.option("--breakout", type=float, default=None, help="Breakout sleeve weight")
@click.pass_obj
def evaluate(config, vix, cash, macro, quality, breakout):
    """Run one allocation against a fresh ledger and show the orders."""
    try:
        settings = EngineSettings.from_config(config)
        allocation = _allocation_from(config, macro, quality, breakout)
    except QuantCoreError as e:
        raise click.ClickException(str(e))

    ledger = Ledger(cash if cash is not None else settings.initial_cash)
    allocator = MultiStrategyAllocator(
        {
            "risk_threshold": settings.risk_threshold,
            "rebalance_threshold": settings.rebalance_threshold,
        }
    )
    result = allocator.allocate(DEFAULT_UNIVERSE, vix, ledger, allocation)

    weights = Table(title=f"Target Weights (VIX {vix:.2f})", header_style="bold magenta")
    weights.add_column("Code")
    weights.add_column("Weight", justify="right")
    for instrument_id, weight in result.target_weights.items():
        weights.add_row(instrument_id, f"{weight:.2%}")
    console.print(weights)

    orders = Table(title="Orders", header_style="bold magenta")
    for column in ("Side", "Code", "Qty", "Price", "Value"):
        orders.add_column(column)
    for request in result.orders:
        orders.add_row(
            request.side.value,
            request.instrument_id,
            f"{request.quantity:,}",
            f"{request.limit_price:,.0f}",
            f"{request.estimated_value:,.0f}",
        )
    console.print(orders)

    if result.empty_pools:
        console.print(f"[yellow]Empty sleeve pools: {', '.join(result.empty_pools)}[/yellow]")


@cli.command()
@click.option("--duration", type=float, default=30.0, help="Seconds to run")
@click.option("--seed", type=int, default=None, help="Random-walk feed seed")
@click.option("--macro", type=float, default=None, help="Macro sleeve weight")
@click.option("--quality", type=float, default=None, help="Quality sleeve weight")
@click.option("--breakout", type=float, default=None, help="Breakout sleeve weight")
@click.pass_obj
def run(config, duration, seed, macro, quality, breakout):
    """Run the engine against the random-walk feed."""
    try:
        settings = EngineSettings.from_config(config)
        allocation = _allocation_from(config, macro, quality, breakout)
    except QuantCoreError as e:
        raise click.ClickException(str(e))

    feed = RandomWalkFeed(
        initial_vix=config.get("feed.initial_vix", 15.2),
        rate=config.get("feed.rate", 3.5),
        seed=seed if seed is not None else config.get("feed.seed"),
    )
    engine = TradingEngine(feed, settings=settings, allocation=allocation)

    engine.start()
    try:
        time.sleep(duration)
    except KeyboardInterrupt:
        console.print("[yellow]Interrupted[/yellow]")
    finally:
        engine.stop()

    console.print(create_state_table(engine.get_state()))


def main():
    cli()


if __name__ == "__main__":
    main()
