"""
Death: cluster-pay free spins on a growing grid with sticky wilds.

Every cluster of 3+ connected cells pays and is slashed. A slashed cell has
a 15% chance of coming back as a sticky WILD on the next spin. Slashed cells
fill the reap bar; each threshold reached grows the grid by one column and
one row (up to 8x6) and grants one extra spin.
"""
import logging
from typing import Optional

from tarot_engine.clusters import cluster_payout, find_clusters
from tarot_engine.features.base import FeatureResult, TarotFeature
from tarot_engine.model import T_DEATH, WILD
from tarot_engine.rng import XorShift32
from tarot_engine.spin import Trigger

logger = logging.getLogger("tarot.features")

DEATH_SPINS = 10
REAP_THRESHOLDS = (10, 20, 30)
STICKY_CHANCE = 0.15


class DeathFeature(TarotFeature):
    tarot_type = T_DEATH
    display_name = "Death"

    def _draw_grid(self, rng: XorShift32, cols: int, rows: int, sticky: set) -> list[list[str]]:
        m = self.model
        grid = []
        for c in range(cols):
            column = []
            for r in range(rows):
                if (c, r) in sticky:
                    column.append(WILD)
                else:
                    column.append(rng.weighted_choice(m.normal_ids, m.normal_weights))
            grid.append(column)
        return grid

    def play(self, rng: XorShift32, trigger: Trigger,
             grid: Optional[list[list[str]]] = None) -> FeatureResult:
        m = self.model
        spins_remaining = DEATH_SPINS
        spins_played = 0
        reap_bar = 0
        expansion = 0
        cols, rows = m.cols, m.rows
        sticky: set[tuple[int, int]] = set()
        total_win = 0.0
        clusters_found = 0

        while spins_remaining > 0:
            spin_grid = self._draw_grid(rng, cols, rows, sticky)

            # dict keeps slash order, which fixes the order of the sticky rolls
            slashed: dict[tuple[int, int], None] = {}
            for cluster in find_clusters(spin_grid, cols, rows):
                total_win += cluster_payout(cluster.symbol, cluster.size, m.bet, m)
                clusters_found += 1
                for cell in cluster.cells:
                    slashed.setdefault(cell, None)

            sticky.difference_update(slashed)
            for cell in slashed:
                if rng.next_float() < STICKY_CHANCE:
                    sticky.add(cell)

            reap_bar += len(slashed)

            while (expansion < len(REAP_THRESHOLDS)
                   and reap_bar >= REAP_THRESHOLDS[expansion]
                   and cols < m.max_cols and rows < m.max_rows):
                expansion += 1
                cols += 1
                rows += 1
                spins_remaining += 1

            spins_remaining -= 1
            spins_played += 1

        logger.debug("Death finished: %d spins, %dx%d grid, reap=%d, win=%.2f",
                     spins_played, cols, rows, reap_bar, total_win)
        return FeatureResult(
            tarot_type=self.tarot_type,
            win=total_win,
            spins_played=spins_played,
            details={
                "final_size": (cols, rows),
                "reap_bar": reap_bar,
                "expansions": expansion,
                "clusters": clusters_found,
                "sticky_wilds": sorted(sticky),
            },
        )
