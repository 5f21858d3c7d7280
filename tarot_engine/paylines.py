"""
TAROT ENGINE: Payline Evaluator

Scores a grid against the 25 fixed paylines with WILD substitution.

Grids are column-major: grid[col][row].
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from tarot_engine.model import DEFAULT_MODEL, EMPTY, WILD, GameModel


@dataclass
class WinLine:
    """One paying payline."""
    payline_index: int          # 0-24
    symbol: str
    match_count: int            # 3, 4 or 5
    payout: float               # cash, already scaled by bet per line
    cells: list = field(default_factory=list)  # [(col, row), ...]


class PaylineEvaluator:
    """Left-to-right line scorer.

    WILDs take the value of the first non-WILD, non-empty symbol on the
    line. A line of only WILDs stays WILD and pays from the WILD row of the
    paytable.
    """

    def __init__(self, model: GameModel = DEFAULT_MODEL):
        self.model = model

    @staticmethod
    def line_symbols(grid, payline) -> list[str]:
        """Symbols along a payline; missing cells read as empty."""
        symbols = []
        for col, row in enumerate(payline):
            column = grid[col] if col < len(grid) else None
            cell = column[row] if column is not None and row < len(column) else None
            symbols.append(cell or EMPTY)
        return symbols

    @staticmethod
    def score_line(symbols: list[str]) -> tuple[str, int]:
        """Return (winning symbol, consecutive count from the left)."""
        target: Optional[str] = None
        for s in symbols:
            if s != WILD and s != EMPTY:
                target = s
                break

        if target is not None:
            substituted = [target if s == WILD else s for s in symbols]
        else:
            substituted = list(symbols)

        first = substituted[0]
        count = 1
        for s in substituted[1:]:
            if s != first:
                break
            count += 1

        # Only reachable if substitution leaves a leading WILD behind a
        # non-WILD first reel; kept so scoring matches the reference tool.
        win_symbol = first
        if first == WILD and symbols[0] != WILD:
            for s in symbols[:count]:
                if s != WILD:
                    win_symbol = s
                    break

        return win_symbol, count

    def _line_payout(self, win_symbol: str, count: int) -> float:
        if count < 3:
            return 0.0
        pays = self.model.paytable.get(win_symbol)
        if not pays:
            return 0.0
        return pays.get(count) or 0.0

    def evaluate(self, grid, bet_per_line: float) -> float:
        """Total cash win over all paylines."""
        total = 0.0
        for payline in self.model.paylines:
            win_symbol, count = self.score_line(self.line_symbols(grid, payline))
            mult = self._line_payout(win_symbol, count)
            if mult:
                total += mult * bet_per_line
        return total

    def winning_lines(self, grid, bet_per_line: float) -> list[WinLine]:
        """Per-line breakdown of evaluate(); payouts sum to the same total."""
        wins = []
        for idx, payline in enumerate(self.model.paylines):
            win_symbol, count = self.score_line(self.line_symbols(grid, payline))
            mult = self._line_payout(win_symbol, count)
            if mult:
                wins.append(WinLine(
                    payline_index=idx,
                    symbol=win_symbol,
                    match_count=count,
                    payout=mult * bet_per_line,
                    cells=[(col, payline[col]) for col in range(count)],
                ))
        return wins
