"""
TAROT ENGINE: Simulation Driver

Runs N spins of the tarot slot from one seed and aggregates an RTP report.

Per spin:
    wager the bet → draw a spin → detect a tarot trigger →
    play the triggered feature, or score the base grid on the paylines

Usage:
    from tarot_engine.driver import run, run_sharded, run_feature
    report = run(1_000_000, seed=12345)
    print(report.summary())

    # Same total spins across 8 processes (different, but reproducible, result)
    report = run_sharded(8_000_000, seed=12345, workers=8)

    # Mean payout of one feature, played from forced triggers
    report = run_feature("T_DEATH", count=2, spins=100_000, seed=7)
"""

from __future__ import annotations

import json
import logging
import math
import time
from concurrent.futures import ProcessPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, Optional

from tarot_engine.features import FEATURES, get_feature
from tarot_engine.model import (
    DEFAULT_MODEL, T_CUPS, T_DEATH, T_FOOL, T_LOVERS, T_PRIESTESS, GameModel,
)
from tarot_engine.paylines import PaylineEvaluator
from tarot_engine.rng import XorShift32, derive_shard_seed
from tarot_engine.settings import DEFAULT_SEED, DEFAULT_SPINS, SimConfig, coerce_int
from tarot_engine.spin import SpinGenerator, detect_trigger

logger = logging.getLogger("tarot.driver")

# Report order
FEATURE_ORDER = (T_FOOL, T_CUPS, T_LOVERS, T_PRIESTESS, T_DEATH)
FEATURE_NAMES = {
    T_FOOL: "Fool",
    T_CUPS: "Cups",
    T_LOVERS: "Lovers",
    T_PRIESTESS: "Priestess",
    T_DEATH: "Death",
}

ProgressFn = Callable[[int, int, float], None]  # (spins done, total, running RTP %)


# ═══════════════════════════════════════════════════════════════
# Report
# ═══════════════════════════════════════════════════════════════

@dataclass
class FeatureStats:
    triggers: int = 0
    win: float = 0.0
    spins: int = 0       # free spins played inside the feature

    def merge(self, other: "FeatureStats") -> "FeatureStats":
        return FeatureStats(
            triggers=self.triggers + other.triggers,
            win=self.win + other.win,
            spins=self.spins + other.spins,
        )


def _empty_features() -> dict:
    return {t: FeatureStats() for t in FEATURE_ORDER}


@dataclass
class Report:
    """Aggregate counters for one run (or several merged shards)."""
    spins: int = 0
    seed: int = DEFAULT_SEED
    bet: float = DEFAULT_MODEL.bet
    total_wagered: float = 0.0
    total_won: float = 0.0
    base_hits: int = 0
    base_won: float = 0.0
    single_tarots: int = 0
    mixed_tarots: int = 0          # 2+ tarot columns, no pair of one type
    features: dict = field(default_factory=_empty_features)

    # Spread
    max_win: float = 0.0
    sum_sq_win: float = 0.0

    # Run info
    mode: str = "base"             # "base" or "feature:<tarot>"
    shards: int = 1
    duration_seconds: float = 0.0

    # ── Derived metrics (percent unless noted) ──

    @property
    def rtp(self) -> float:
        return self.total_won / self.total_wagered * 100 if self.total_wagered else 0.0

    @property
    def house_edge(self) -> float:
        return 100 - self.rtp

    @property
    def base_rtp(self) -> float:
        return self.base_won / self.total_wagered * 100 if self.total_wagered else 0.0

    @property
    def base_hit_rate(self) -> float:
        return self.base_hits / self.spins * 100 if self.spins else 0.0

    @property
    def feature_won(self) -> float:
        return sum(s.win for s in self.features.values())

    @property
    def feature_rtp(self) -> float:
        return self.feature_won / self.total_wagered * 100 if self.total_wagered else 0.0

    def feature_contribution(self, tarot_type: str) -> float:
        if not self.total_wagered:
            return 0.0
        return self.features[tarot_type].win / self.total_wagered * 100

    def trigger_rate(self, tarot_type: str) -> float:
        return self.features[tarot_type].triggers / self.spins * 100 if self.spins else 0.0

    @property
    def std_dev(self) -> float:
        """Standard deviation of a single spin's win, in bets."""
        if self.spins < 2:
            return 0.0
        mean = self.total_won / self.spins
        var = max(0.0, self.sum_sq_win / self.spins - mean * mean)
        return math.sqrt(var) / self.bet

    @property
    def confidence_95(self) -> tuple[float, float]:
        """95% confidence interval of the RTP, in percent."""
        if self.spins < 2:
            return (self.rtp, self.rtp)
        half = 1.96 * self.std_dev / math.sqrt(self.spins) * 100
        return (self.rtp - half, self.rtp + half)

    def within_tolerance(self, target_rtp: float, tolerance: float = SimConfig.RTP_TOLERANCE) -> bool:
        """True when the measured RTP is within ±tolerance points of target_rtp."""
        return abs(self.rtp - target_rtp) <= tolerance

    # ── Combination & output ──

    def merge(self, other: "Report") -> "Report":
        """Sum of two reports; seed and mode are taken from self."""
        return Report(
            spins=self.spins + other.spins,
            seed=self.seed,
            bet=self.bet,
            total_wagered=self.total_wagered + other.total_wagered,
            total_won=self.total_won + other.total_won,
            base_hits=self.base_hits + other.base_hits,
            base_won=self.base_won + other.base_won,
            single_tarots=self.single_tarots + other.single_tarots,
            mixed_tarots=self.mixed_tarots + other.mixed_tarots,
            features={t: self.features[t].merge(other.features[t]) for t in FEATURE_ORDER},
            max_win=max(self.max_win, other.max_win),
            sum_sq_win=self.sum_sq_win + other.sum_sq_win,
            mode=self.mode,
            shards=self.shards + other.shards,
            duration_seconds=max(self.duration_seconds, other.duration_seconds),
        )

    def to_dict(self) -> dict:
        return {
            "mode": self.mode,
            "spins": self.spins,
            "seed": self.seed,
            "shards": self.shards,
            "bet": self.bet,
            "total_wagered": round(self.total_wagered, 2),
            "total_won": round(self.total_won, 2),
            "rtp_pct": round(self.rtp, 4),
            "house_edge_pct": round(self.house_edge, 4),
            "confidence_95": [round(x, 4) for x in self.confidence_95],
            "std_dev_bets": round(self.std_dev, 4),
            "max_win": round(self.max_win, 2),
            "base_game": {
                "hits": self.base_hits,
                "hit_rate_pct": round(self.base_hit_rate, 2),
                "rtp_pct": round(self.base_rtp, 4),
            },
            "tarot_events": {
                "single": self.single_tarots,
                "mixed": self.mixed_tarots,
            },
            "features": {
                FEATURE_NAMES[t]: {
                    "triggers": s.triggers,
                    "trigger_rate_pct": round(self.trigger_rate(t), 4),
                    "free_spins": s.spins,
                    "win": round(s.win, 2),
                    "rtp_pct": round(self.feature_contribution(t), 4),
                }
                for t, s in self.features.items()
            },
            "feature_rtp_pct": round(self.feature_rtp, 4),
            "duration_s": round(self.duration_seconds, 2),
        }

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)

    def summary(self) -> str:
        lo, hi = self.confidence_95
        lines = [
            "═══════════════════════════════════════════════════",
            "  TAROT SLOT: RTP SIMULATION RESULTS",
            "═══════════════════════════════════════════════════",
            f"  Spins:          {self.spins:,}",
            f"  Seed:           {self.seed}",
            f"  Bet per spin:   €{self.bet:.2f}",
            f"  Total wagered:  €{self.total_wagered:.2f}",
            f"  Total won:      €{self.total_won:.2f}",
            f"  RTP:            {self.rtp:.4f}%  (95% CI {lo:.2f} to {hi:.2f}%)",
            f"  House Edge:     {self.house_edge:.4f}%",
            f"  Base hit rate:  {self.base_hit_rate:.2f}%   Base RTP: {self.base_rtp:.4f}%",
            f"  Tarot events:   single={self.single_tarots:,} mixed={self.mixed_tarots:,}",
        ]
        for t in FEATURE_ORDER:
            s = self.features[t]
            lines.append(
                f"  {FEATURE_NAMES[t]:10s} | triggers={s.triggers:>8,} "
                f"rate={self.trigger_rate(t):.4f}% rtp={self.feature_contribution(t):.4f}%"
            )
        lines.append(f"  Total Feature RTP: {self.feature_rtp:.4f}%")
        return "\n".join(lines)


# ═══════════════════════════════════════════════════════════════
# Driver
# ═══════════════════════════════════════════════════════════════

def _resolve(spins, seed) -> tuple[int, int]:
    n = coerce_int(spins, DEFAULT_SPINS)
    if n is None or n <= 0:
        n = DEFAULT_SPINS
    s = coerce_int(seed, DEFAULT_SEED)
    return n, s & 0xFFFFFFFF


class SimulationDriver:
    """Plays spins against one math model and accumulates a Report.

    Holds no run state of its own: the RNG and the Report are passed in,
    so one driver can serve any number of runs or shards.
    """

    def __init__(self, model: GameModel = DEFAULT_MODEL,
                 progress: Optional[ProgressFn] = None,
                 progress_steps: int = SimConfig.PROGRESS_STEPS):
        self.model = model
        self.spinner = SpinGenerator(model)
        self.evaluator = PaylineEvaluator(model)
        self.features = {t: cls(model) for t, cls in FEATURES.items()}
        self.progress = progress
        self.progress_steps = progress_steps

    def play_spin(self, rng: XorShift32, report: Report) -> float:
        """One paid spin; returns its cash win."""
        m = self.model
        report.spins += 1
        report.total_wagered += m.bet

        spin = self.spinner.generate(rng)
        trigger = detect_trigger(spin.tarot_columns)

        if trigger is not None:
            result = self.features[trigger.type].play(rng, trigger, spin.grid)
            win = result.win
            stats = report.features[trigger.type]
            stats.triggers += 1
            stats.win += win
            stats.spins += result.spins_played
        else:
            if len(spin.tarot_columns) == 1:
                report.single_tarots += 1
            elif len(spin.tarot_columns) >= 2:
                report.mixed_tarots += 1
            win = self.evaluator.evaluate(spin.grid, m.bet_per_line)
            report.base_won += win
            if win > 0:
                report.base_hits += 1

        report.total_won += win
        report.sum_sq_win += win * win
        if win > report.max_win:
            report.max_win = win
        return win

    def _tick(self, i: int, total: int, report: Report, interval: int) -> None:
        if self.progress is not None and interval > 0 and i > 0 and i % interval == 0:
            self.progress(i, total, report.rtp)

    def run(self, spins=None, seed=None) -> Report:
        spins, seed = _resolve(spins, seed)
        rng = XorShift32(seed)
        report = Report(seed=seed, bet=self.model.bet)
        interval = spins // self.progress_steps if self.progress_steps else 0

        logger.info("Simulating %s spins (seed=%d)", f"{spins:,}", seed)
        t0 = time.time()
        for i in range(spins):
            self._tick(i, spins, report, interval)
            self.play_spin(rng, report)
        report.duration_seconds = time.time() - t0
        logger.info("Finished %s spins in %.1fs: RTP %.4f%%",
                    f"{spins:,}", report.duration_seconds, report.rtp)
        return report

    def run_feature(self, tarot_type: str, count: int = 2, spins=None, seed=None) -> Report:
        """Play one feature `spins` times from forced triggers.

        Each round wagers one bet, draws `count` random columns for the
        tarot and plays the feature on that spin. The Report's RTP is then
        the feature's mean payout per trigger as a percentage of the bet.
        """
        feature = get_feature(tarot_type, self.model)
        if not 2 <= count <= self.model.cols:
            raise ValueError(f"count must be between 2 and {self.model.cols}, got {count}")
        spins, seed = _resolve(spins, seed)
        rng = XorShift32(seed)
        report = Report(seed=seed, bet=self.model.bet, mode=f"feature:{feature.tarot_type}")
        stats = report.features[feature.tarot_type]
        interval = spins // self.progress_steps if self.progress_steps else 0

        logger.info("Playing %s %s times (count=%d, seed=%d)",
                    feature.display_name, f"{spins:,}", count, seed)
        t0 = time.time()
        for i in range(spins):
            self._tick(i, spins, report, interval)
            columns = sorted(rng.shuffle(list(range(self.model.cols)))[:count])
            spin = self.spinner.forced(rng, feature.tarot_type, columns)
            trigger = detect_trigger(spin.tarot_columns)
            result = feature.play(rng, trigger, spin.grid)

            report.spins += 1
            report.total_wagered += self.model.bet
            report.total_won += result.win
            report.sum_sq_win += result.win * result.win
            report.max_win = max(report.max_win, result.win)
            stats.triggers += 1
            stats.win += result.win
            stats.spins += result.spins_played
        report.duration_seconds = time.time() - t0
        return report


# ═══════════════════════════════════════════════════════════════
# Entry points
# ═══════════════════════════════════════════════════════════════

def run(spins=None, seed=None, model: GameModel = DEFAULT_MODEL,
        progress: Optional[ProgressFn] = None) -> Report:
    """Simulate `spins` spins from `seed`. Missing or non-numeric inputs use defaults."""
    return SimulationDriver(model, progress=progress).run(spins, seed)


def run_feature(tarot_type: str, count: int = 2, spins=None, seed=None,
                model: GameModel = DEFAULT_MODEL,
                progress: Optional[ProgressFn] = None) -> Report:
    return SimulationDriver(model, progress=progress).run_feature(tarot_type, count, spins, seed)


def _run_shard(args: tuple) -> Report:
    spins, seed, model = args
    return SimulationDriver(model).run(spins, seed)


def shard_plan(spins: int, seed: int, workers: int) -> list[tuple[int, int]]:
    """(spins, seed) per shard; the first shards absorb the remainder."""
    base, extra = divmod(spins, workers)
    plan = []
    for i in range(workers):
        n = base + (1 if i < extra else 0)
        if n > 0:
            plan.append((n, derive_shard_seed(seed, i)))
    return plan


def run_sharded(spins=None, seed=None, workers: int = SimConfig.WORKERS,
                model: GameModel = DEFAULT_MODEL) -> Report:
    """Split a run over worker processes and sum the shard reports.

    workers <= 1 is exactly run(spins, seed). With more workers every shard
    gets its own derived seed, so the result is reproducible for a given
    (spins, seed, workers) but differs from the single-process run.
    """
    spins, seed = _resolve(spins, seed)
    workers = coerce_int(workers, 1) or 1
    if workers <= 1:
        return run(spins, seed, model)

    plan = shard_plan(spins, seed, workers)
    logger.info("Sharding %s spins over %d workers", f"{spins:,}", len(plan))
    for i, (n, s) in enumerate(plan):
        logger.debug("Shard %d: %s spins, seed=%d", i, f"{n:,}", s)

    t0 = time.time()
    with ProcessPoolExecutor(max_workers=len(plan)) as pool:
        reports = list(pool.map(_run_shard, [(n, s, model) for n, s in plan]))

    merged = reports[0]
    for r in reports[1:]:
        merged = merged.merge(r)
    merged.seed = seed
    merged.duration_seconds = time.time() - t0
    logger.info("Sharded run finished in %.1fs: RTP %.4f%%", merged.duration_seconds, merged.rtp)
    return merged
