"""
The Lovers: free spins where a random rectangle is filled with a bond symbol.

Three bond candidates are drawn per spin and the first one is always used.
That stands in for the player's pick in the real game; the simulation does
not model player choice.
"""
from typing import Optional

from tarot_engine.features.base import FeatureResult, TarotFeature
from tarot_engine.model import T_LOVERS, WILD
from tarot_engine.rng import XorShift32
from tarot_engine.spin import Trigger, normal_grid

# (upper bound of the roll, shapes as (width, height)); the last rung catches the rest
AREA_LADDER = (
    (0.15, ((1, 1),)),
    (0.40, ((2, 1), (1, 2))),
    (0.70, ((2, 2), (3, 1))),
    (0.88, ((3, 2), (2, 3))),
    (0.97, ((4, 2), (3, 3))),
    (None, ((5, 2), (4, 3))),
)


def roll_area(rng: XorShift32) -> tuple[int, int]:
    roll = rng.next_float()
    for bound, shapes in AREA_LADDER:
        if bound is None or roll < bound:
            break
    if len(shapes) == 1:
        return shapes[0]
    return shapes[0] if rng.next_float() < 0.5 else shapes[1]


class LoversFeature(TarotFeature):
    tarot_type = T_LOVERS
    display_name = "The Lovers"

    def _candidate(self, rng: XorShift32) -> str:
        roll = rng.next_float()
        if roll < 0.60:
            return rng.choice(self.model.premium_pool)
        if roll < 0.90:
            return rng.choice(self.model.low_pool)
        return WILD

    def play(self, rng: XorShift32, trigger: Trigger,
             grid: Optional[list[list[str]]] = None) -> FeatureResult:
        m = self.model
        spins_total = 6 if trigger.count >= 3 else 3
        multiplier = 2 if trigger.count == 2 else 1
        total_win = 0.0
        bonds = []

        for _ in range(spins_total):
            sub_grid = normal_grid(rng, m)
            candidates = [self._candidate(rng) for _ in range(3)]
            bond = candidates[0]

            width, height = roll_area(rng)
            width = min(width, m.cols)
            height = min(height, m.rows)
            start_col = rng.next_int(0, m.cols - width)
            start_row = rng.next_int(0, m.rows - height)

            for c in range(start_col, start_col + width):
                for r in range(start_row, start_row + height):
                    sub_grid[c][r] = bond

            total_win += self.line_win(sub_grid) * multiplier
            bonds.append({
                "symbol": bond,
                "candidates": candidates,
                "area": (start_col, start_row, width, height),
            })

        return FeatureResult(
            tarot_type=self.tarot_type,
            win=total_win,
            spins_played=spins_total,
            details={"multiplier": multiplier, "bonds": bonds},
        )
