"""
TAROT ENGINE: Base Feature

Abstract base for the five tarot bonus features.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional

from tarot_engine.model import DEFAULT_MODEL, GameModel
from tarot_engine.paylines import PaylineEvaluator
from tarot_engine.rng import XorShift32
from tarot_engine.spin import Trigger


@dataclass
class FeatureResult:
    """Outcome of one feature activation."""
    tarot_type: str
    win: float
    spins_played: int = 1
    details: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "tarot_type": self.tarot_type,
            "win": round(self.win, 6),
            "spins_played": self.spins_played,
            "details": self.details,
        }


class TarotFeature(ABC):
    """A bonus feature triggered by two or more matching tarot columns.

    Subclasses consume the RNG in a fixed order; reordering draws changes
    every later spin of the run.
    """

    tarot_type: str = "base"
    display_name: str = "Base Feature"

    def __init__(self, model: GameModel = DEFAULT_MODEL):
        self.model = model
        self.evaluator = PaylineEvaluator(model)

    @abstractmethod
    def play(self, rng: XorShift32, trigger: Trigger,
             grid: Optional[list[list[str]]] = None) -> FeatureResult:
        """Play the feature to completion and return its cash win."""
        ...

    def line_win(self, grid) -> float:
        return self.evaluator.evaluate(grid, self.model.bet_per_line)

    def get_metadata(self) -> dict:
        return {
            "tarot_type": self.tarot_type,
            "display_name": self.display_name,
        }
