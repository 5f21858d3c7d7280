"""
TAROT ENGINE: Spin Generation & Feature Detection

A base spin is a 5x3 column-major grid. With probability tarot_chance,
one to three whole columns are replaced by tarot stacks; two or more
stacks of the same tarot trigger that tarot's bonus feature.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from tarot_engine.model import DEFAULT_MODEL, TRIGGER_PRIORITY, GameModel
from tarot_engine.rng import XorShift32


@dataclass(frozen=True)
class TarotColumn:
    col: int
    tarot_type: str


@dataclass
class Trigger:
    """A detected feature activation: at most one per spin."""
    type: str
    count: int
    columns: list[int] = field(default_factory=list)  # ascending


@dataclass
class Spin:
    grid: list[list[str]]
    tarot_columns: list[TarotColumn] = field(default_factory=list)


def normal_grid(rng: XorShift32, model: GameModel = DEFAULT_MODEL,
                cols: Optional[int] = None, rows: Optional[int] = None) -> list[list[str]]:
    """Grid of independently weighted normal symbols, drawn column by column."""
    cols = model.cols if cols is None else cols
    rows = model.rows if rows is None else rows
    ids, weights = model.normal_ids, model.normal_weights
    return [[rng.weighted_choice(ids, weights) for _ in range(rows)] for _ in range(cols)]


class SpinGenerator:
    """Draws base-game spins in a fixed order.

    Draw order per spin:
      1. has_tarots float
      2. (tarots only) count float, column shuffle, one tarot per column
      3. column by column: tarot fill, or one weighted draw per row
    """

    def __init__(self, model: GameModel = DEFAULT_MODEL):
        self.model = model

    @staticmethod
    def _tarot_count(roll: float) -> int:
        if roll <= 0.20:
            return 1
        if roll <= 0.70:
            return 2
        return 3

    def generate(self, rng: XorShift32) -> Spin:
        m = self.model
        tarot_cols: list[int] = []
        tarot_types: list[str] = []

        if rng.next_float() < m.tarot_chance:
            count = self._tarot_count(rng.next_float())
            available = rng.shuffle(list(range(m.cols)))
            tarot_cols = available[:count]
            for _ in range(count):
                tarot_types.append(rng.weighted_choice(m.tarot_ids, m.tarot_weights))

        return self._fill(rng, dict(zip(tarot_cols, tarot_types)))

    def forced(self, rng: XorShift32, tarot_type: str, columns: list[int]) -> Spin:
        """Spin with the given columns forced to one tarot (debug / feature runs)."""
        if tarot_type not in self.model.tarot_ids:
            raise ValueError(f"Unknown tarot type: {tarot_type}. Available: {list(self.model.tarot_ids)}")
        return self._fill(rng, {c: tarot_type for c in columns})

    def _fill(self, rng: XorShift32, tarot_by_col: dict[int, str]) -> Spin:
        m = self.model
        grid: list[list[str]] = []
        tarot_columns: list[TarotColumn] = []
        for col in range(m.cols):
            tarot = tarot_by_col.get(col)
            if tarot is not None:
                grid.append([tarot] * m.rows)
                tarot_columns.append(TarotColumn(col, tarot))
            else:
                grid.append([rng.weighted_choice(m.normal_ids, m.normal_weights)
                             for _ in range(m.rows)])
        return Spin(grid=grid, tarot_columns=tarot_columns)


def detect_trigger(tarot_columns: list[TarotColumn]) -> Optional[Trigger]:
    """Highest-priority tarot with two or more columns, or None."""
    if len(tarot_columns) < 2:
        return None
    grouped: dict[str, list[int]] = {}
    for tc in tarot_columns:
        grouped.setdefault(tc.tarot_type, []).append(tc.col)
    for tarot_type in TRIGGER_PRIORITY:
        cols = grouped.get(tarot_type)
        if cols and len(cols) >= 2:
            return Trigger(type=tarot_type, count=len(cols), columns=sorted(cols))
    return None
