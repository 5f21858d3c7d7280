"""The High Priestess: free spins with mystery cells that accumulate and never reset."""
from typing import Optional

from tarot_engine.features.base import FeatureResult, TarotFeature
from tarot_engine.model import T_PRIESTESS
from tarot_engine.rng import XorShift32
from tarot_engine.spin import Trigger, normal_grid


def roll_new_cells(rng: XorShift32) -> int:
    roll = rng.next_float()
    if roll < 0.70:
        return 1
    if roll < 0.92:
        return 2
    return 3


class PriestessFeature(TarotFeature):
    tarot_type = T_PRIESTESS
    display_name = "The High Priestess"

    def play(self, rng: XorShift32, trigger: Trigger,
             grid: Optional[list[list[str]]] = None) -> FeatureResult:
        m = self.model
        spins_total = 9 if trigger.count >= 3 else 6
        multiplier = 2 if trigger.count >= 3 else 1
        total_win = 0.0
        mystery: list[tuple[int, int]] = []
        history = []

        for _ in range(spins_total):
            sub_grid = normal_grid(rng, m)
            cover = roll_new_cells(rng)

            occupied = set(mystery)
            available = [(c, r) for c in range(m.cols) for r in range(m.rows)
                         if (c, r) not in occupied]
            rng.shuffle(available)
            mystery.extend(available[:min(cover, len(available))])

            symbol = rng.weighted_choice(m.normal_ids, m.normal_weights)
            for c, r in mystery:
                sub_grid[c][r] = symbol

            total_win += self.line_win(sub_grid) * multiplier
            history.append({"symbol": symbol, "cells": list(mystery)})

        return FeatureResult(
            tarot_type=self.tarot_type,
            win=total_win,
            spins_played=spins_total,
            details={"multiplier": multiplier, "history": history},
        )
