"""Cups: multiplier tokens summed and paid on the total bet, no paylines."""
from typing import Optional

from tarot_engine.features.base import FeatureResult, TarotFeature
from tarot_engine.model import T_CUPS
from tarot_engine.rng import XorShift32
from tarot_engine.spin import Trigger


class CupsFeature(TarotFeature):
    tarot_type = T_CUPS
    display_name = "Cups"

    POOL_PAIR = (2, 3)       # two-column trigger
    POOL_MAJOR = (3, 5, 10)  # three or more columns

    def play(self, rng: XorShift32, trigger: Trigger,
             grid: Optional[list[list[str]]] = None) -> FeatureResult:
        pair = trigger.count == 2
        pool = self.POOL_PAIR if pair else self.POOL_MAJOR
        tokens = []
        for _ in trigger.columns:
            n = rng.next_int(1, 2) if pair else rng.next_int(2, 3)
            for _ in range(n):
                tokens.append(rng.choice(pool))

        total = sum(tokens)
        return FeatureResult(
            tarot_type=self.tarot_type,
            win=total * self.model.bet,
            details={"tokens": tokens, "multiplier_sum": total},
        )
