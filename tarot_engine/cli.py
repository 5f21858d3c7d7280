#!/usr/bin/env python3
"""
Tarot Slot RTP Simulator CLI

Usage:
    python -m tarot_engine.cli                       # 1,000,000 spins, seed 12345
    python -m tarot_engine.cli 5000000 42
    python -m tarot_engine.cli 8000000 42 --workers 8
    python -m tarot_engine.cli 100000 7 --feature T_DEATH --count 3
    python -m tarot_engine.cli 1000000 --target-rtp 96 --json
"""

import argparse
import logging
import sys

from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from tarot_engine.driver import FEATURE_NAMES, FEATURE_ORDER, Report, SimulationDriver, run_feature, run_sharded
from tarot_engine.features import FEATURE_TYPES
from tarot_engine.model import DEFAULT_MODEL
from tarot_engine.settings import SimConfig, coerce_float, coerce_int

logger = logging.getLogger("tarot.cli")
console = Console()
err_console = Console(stderr=True)  # logs + progress


def _setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(message)s",
        datefmt="%H:%M:%S",
        handlers=[RichHandler(console=err_console, show_path=False)],
    )


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Simulate the tarot slot and report its RTP")
    # Kept as strings: anything non-numeric falls back to the default
    parser.add_argument("spins", nargs="?", default=None, help="Number of spins (default 1,000,000)")
    parser.add_argument("seed", nargs="?", default=None, help="32-bit RNG seed (default 12345)")
    parser.add_argument("--workers", default=None, help="Worker processes for a sharded run")
    parser.add_argument("--feature", choices=FEATURE_TYPES, help="Play one feature from forced triggers")
    parser.add_argument("--count", default="2", help=f"Tarot columns for --feature (2-{DEFAULT_MODEL.cols})")
    parser.add_argument("--target-rtp", default=None, help="Target RTP %% for a convergence check")
    parser.add_argument("--json", action="store_true", help="Print the report as JSON")
    return parser.parse_args(argv)


def resolve(args: argparse.Namespace) -> dict:
    """Turn raw CLI strings into run parameters, warning on each fallback."""
    spins = SimConfig.spins(args.spins)
    seed = SimConfig.seed(args.seed)
    if args.spins is not None and coerce_int(args.spins, None) != spins:
        logger.warning(f"Invalid spin count {args.spins!r}, using {spins:,}")
    if args.seed is not None and coerce_int(args.seed, None) not in (seed, seed - 0x100000000):
        logger.warning(f"Invalid seed {args.seed!r}, using {seed}")

    workers = coerce_int(args.workers, SimConfig.WORKERS)
    if workers is None or workers < 1:
        workers = 1
    count = coerce_int(args.count, 2)
    if count is None or not 2 <= count <= DEFAULT_MODEL.cols:
        logger.warning(f"Invalid tarot count {args.count!r}, using 2")
        count = 2
    target = coerce_float(args.target_rtp, SimConfig.TARGET_RTP)
    return {"spins": spins, "seed": seed, "workers": workers, "count": count, "target_rtp": target}


def render(report: Report, target_rtp=None) -> None:
    """Rich version of the classic results printout."""
    lo, hi = report.confidence_95
    header = (
        f"Spins:          {report.spins:,}\n"
        f"Seed:           {report.seed}\n"
        f"Bet per spin:   €{report.bet:.2f}\n"
        f"Total wagered:  €{report.total_wagered:,.2f}\n"
        f"Total won:      €{report.total_won:,.2f}\n"
        f"[bold]RTP:            {report.rtp:.4f}%[/bold]  (95% CI {lo:.2f} to {hi:.2f}%)\n"
        f"House Edge:     {report.house_edge:.4f}%\n"
        f"Max win:        €{report.max_win:,.2f}  σ={report.std_dev:.2f} bets"
    )
    if target_rtp is not None:
        ok = report.within_tolerance(target_rtp, SimConfig.RTP_TOLERANCE)
        status = "[green]✅ PASS[/green]" if ok else "[red]❌ FAIL[/red]"
        header += f"\nTarget:         {target_rtp:.2f}% ±{SimConfig.RTP_TOLERANCE}  {status}"
    title = "TAROT SLOT: RTP SIMULATION RESULTS"
    if report.mode != "base":
        title = f"TAROT SLOT: {report.mode.upper()}"
    console.print(Panel(header, title=title, border_style="cyan"))

    if report.mode == "base":
        console.print(
            f"  [bold]BASE GAME[/bold]\n"
            f"    Winning spins:  {report.base_hits:,} / {report.spins:,} "
            f"({report.base_hit_rate:.2f}% hit rate)\n"
            f"    Base game RTP:  {report.base_rtp:.4f}%\n\n"
            f"  [bold]TAROT EVENTS[/bold]\n"
            f"    Single tarot (no trigger):  {report.single_tarots:,}\n"
            f"    Mixed tarots (no trigger):  {report.mixed_tarots:,}\n"
        )

    table = Table(title="Feature Breakdown")
    table.add_column("Feature")
    table.add_column("Triggers", justify="right")
    table.add_column("Trigger Rate", justify="right")
    table.add_column("Free Spins", justify="right")
    table.add_column("Feature RTP", justify="right")
    for t in FEATURE_ORDER:
        s = report.features[t]
        table.add_row(
            FEATURE_NAMES[t], f"{s.triggers:,}", f"{report.trigger_rate(t):.4f}%",
            f"{s.spins:,}", f"{report.feature_contribution(t):.4f}%",
        )
    console.print(table)
    console.print(f"  Total Feature RTP: [bold]{report.feature_rtp:.4f}%[/bold]")


def main(argv=None) -> int:
    _setup_logging(SimConfig.LOG_LEVEL)
    args = parse_args(argv)
    params = resolve(args)

    with err_console.status("Simulating...") as status:
        def progress(done: int, total: int, rtp: float) -> None:
            status.update(f"{done / total * 100:.0f}% done... RTP so far: {rtp:.2f}%")

        if args.feature:
            report = run_feature(args.feature, params["count"], params["spins"],
                                 params["seed"], progress=progress)
        elif params["workers"] > 1:
            report = run_sharded(params["spins"], params["seed"], params["workers"])
        else:
            report = SimulationDriver(progress=progress).run(params["spins"], params["seed"])

    if args.json:
        print(report.to_json())
    else:
        render(report, params["target_rtp"])

    if params["target_rtp"] is not None and not report.within_tolerance(params["target_rtp"]):
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
