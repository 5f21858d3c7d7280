"""The Fool: wilds injected into the triggering columns, one multiplied evaluation."""
from typing import Optional

from tarot_engine.features.base import FeatureResult, TarotFeature
from tarot_engine.model import T_FOOL, WILD
from tarot_engine.rng import XorShift32
from tarot_engine.spin import Trigger

MAX_WILDS = 9


def cap_wilds(counts: list[int], cap: int = MAX_WILDS) -> list[int]:
    """Trim the total to cap, rightmost column first, never below 1 per column."""
    counts = list(counts)
    excess = sum(counts) - cap
    i = len(counts) - 1
    while excess > 0 and i >= 0:
        reduce = min(excess, counts[i] - 1)
        counts[i] -= reduce
        excess -= reduce
        i -= 1
    return counts


def roll_wild_counts(rng: XorShift32, trigger: Trigger) -> list[int]:
    counts = []
    for _ in trigger.columns:
        if trigger.count == 2:
            counts.append(rng.next_int(1, 3))
        else:
            roll = rng.next_float()
            if roll < 0.20:
                counts.append(1)
            elif roll < 0.60:
                counts.append(2)
            else:
                counts.append(3)
    return cap_wilds(counts)


class FoolFeature(TarotFeature):
    tarot_type = T_FOOL
    display_name = "The Fool"

    def play(self, rng: XorShift32, trigger: Trigger,
             grid: Optional[list[list[str]]] = None) -> FeatureResult:
        if grid is None:
            raise ValueError("The Fool rewrites the triggering spin and needs its grid")
        grid = [list(column) for column in grid]
        rows = len(grid[0]) if grid else self.model.rows

        wild_counts = roll_wild_counts(rng, trigger)
        for col, wild_count in zip(trigger.columns, wild_counts):
            order = rng.shuffle(list(range(rows)))
            wild_rows = set(order[:wild_count])
            for row in range(rows):
                if row in wild_rows:
                    grid[col][row] = WILD
                else:
                    grid[col][row] = rng.choice(self.model.premium_pool)

        multiplier = 5 if trigger.count >= 3 else 3
        win = self.line_win(grid) * multiplier
        return FeatureResult(
            tarot_type=self.tarot_type,
            win=win,
            details={"wild_counts": wild_counts, "multiplier": multiplier, "grid": grid},
        )
