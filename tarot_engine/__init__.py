"""
TAROT ENGINE

RTP simulator for the five-reel tarot slot: seeded spins, 25-line scoring
and the five tarot bonus features.

Usage:
    from tarot_engine import run
    report = run(1_000_000, seed=12345)
    print(report.summary())
"""

from tarot_engine.driver import Report, SimulationDriver, run, run_feature, run_sharded
from tarot_engine.model import DEFAULT_MODEL, GameModel
from tarot_engine.rng import XorShift32

__all__ = [
    "DEFAULT_MODEL", "GameModel", "Report", "SimulationDriver", "XorShift32",
    "run", "run_feature", "run_sharded",
]
