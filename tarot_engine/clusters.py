"""
TAROT ENGINE: Cluster Finder

4-directional connected components over a grid of any size (Death feature).
WILD joins every concrete symbol's clusters; a separate pass then finds
clusters made only of WILDs. A WILD can therefore count towards several
clusters in the same grid.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field

from tarot_engine.model import DEFAULT_MODEL, EMPTY, TAROT_PREFIX, WILD, GameModel, SymbolTier

MIN_CLUSTER = 3

# (dcol, drow)
_DIRS = ((-1, 0), (1, 0), (0, -1), (0, 1))

# multiplier by size 3, 4, 5, 6+
CLUSTER_PAYS = {
    SymbolTier.PREMIUM: (1, 5, 15, 30),
    SymbolTier.LOW:     (0.5, 2, 5, 10),
    SymbolTier.WILD:    (2, 10, 25, 50),
}


@dataclass
class Cluster:
    symbol: str
    cells: list[tuple[int, int]] = field(default_factory=list)  # (col, row), BFS order

    @property
    def size(self) -> int:
        return len(self.cells)


def _cell(grid, c: int, r: int):
    if c >= len(grid) or grid[c] is None or r >= len(grid[c]):
        return None
    return grid[c][r]


def _flood(grid, cols: int, rows: int, start: tuple[int, int], visited: set, accept) -> list:
    queue = deque([start])
    visited.add(start)
    cells = []
    while queue:
        c, r = queue.popleft()
        cells.append((c, r))
        for dc, dr in _DIRS:
            nc, nr = c + dc, r + dr
            if nc < 0 or nc >= cols or nr < 0 or nr >= rows:
                continue
            if (nc, nr) in visited:
                continue
            if accept(_cell(grid, nc, nr)):
                visited.add((nc, nr))
                queue.append((nc, nr))
    return cells


def find_clusters(grid, cols: int, rows: int, min_size: int = MIN_CLUSTER) -> list[Cluster]:
    """All clusters of at least min_size cells.

    Concrete symbols are processed in order of first appearance (column
    by column), each with its own visited set; pure-WILD clusters come last.
    """
    targets: dict[str, None] = {}
    for c in range(cols):
        for r in range(rows):
            s = _cell(grid, c, r)
            if s and s != WILD and s != EMPTY and not s.startswith(TAROT_PREFIX):
                targets.setdefault(s, None)

    clusters: list[Cluster] = []
    for target in targets:
        visited: set = set()
        accept = lambda s, t=target: s == t or s == WILD
        for c in range(cols):
            for r in range(rows):
                if _cell(grid, c, r) != target or (c, r) in visited:
                    continue
                cells = _flood(grid, cols, rows, (c, r), visited, accept)
                if len(cells) >= min_size:
                    clusters.append(Cluster(target, cells))

    visited = set()
    for c in range(cols):
        for r in range(rows):
            if _cell(grid, c, r) != WILD or (c, r) in visited:
                continue
            cells = _flood(grid, cols, rows, (c, r), visited, lambda s: s == WILD)
            if len(cells) >= min_size:
                clusters.append(Cluster(WILD, cells))

    return clusters


def cluster_multiplier(tier: SymbolTier, size: int) -> float:
    """Bet multiplier for a cluster; tiers without a row pay as LOW."""
    pays = CLUSTER_PAYS.get(tier, CLUSTER_PAYS[SymbolTier.LOW])
    if size >= 6:
        return pays[3]
    if size == 5:
        return pays[2]
    if size == 4:
        return pays[1]
    return pays[0]


def cluster_payout(symbol_id: str, size: int, bet: float, model: GameModel = DEFAULT_MODEL) -> float:
    return cluster_multiplier(model.tier_of(symbol_id), size) * bet
