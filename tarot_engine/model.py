"""
TAROT ENGINE: Math Model

The fixed "math model" of the tarot slot: symbol catalog and weights,
paytable, the 25 paylines and the tarot catalog. Any change to a weight or
payout changes the simulated RTP, so the tables are validated once and then
frozen.

Usage:
    from tarot_engine.model import DEFAULT_MODEL
    DEFAULT_MODEL.normal_ids        # ids drawn for a regular cell
    DEFAULT_MODEL.paytable["COIN"]  # {3: 10, 4: 24, 5: 95}
    DEFAULT_MODEL.bet_per_line      # 0.008
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, field_validator, model_validator


WILD = "WILD"
EMPTY = ""
TAROT_PREFIX = "T_"

T_FOOL = "T_FOOL"
T_CUPS = "T_CUPS"
T_LOVERS = "T_LOVERS"
T_PRIESTESS = "T_PRIESTESS"
T_DEATH = "T_DEATH"

# Highest priority first
TRIGGER_PRIORITY = (T_DEATH, T_PRIESTESS, T_LOVERS, T_FOOL, T_CUPS)


class SymbolTier(str, Enum):
    WILD    = "WILD"
    LOW     = "LOW"
    PREMIUM = "PREMIUM"
    TAROT   = "TAROT"


class SymbolDef(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    tier: SymbolTier
    base_weight: float = Field(gt=0)


class GameModel(BaseModel):
    """Immutable slot math model. Build once, share everywhere."""
    model_config = ConfigDict(frozen=True)

    symbols: tuple[SymbolDef, ...]
    tarot_symbols: tuple[SymbolDef, ...]
    paytable: dict[str, dict[int, float]]
    paylines: tuple[tuple[int, ...], ...]
    bet: float = Field(0.20, gt=0)
    tarot_chance: float = Field(0.071, ge=0, le=1)
    cols: int = 5
    rows: int = 3
    max_cols: int = 8
    max_rows: int = 6

    _normal_ids: tuple = PrivateAttr(default=())
    _normal_weights: tuple = PrivateAttr(default=())
    _tarot_ids: tuple = PrivateAttr(default=())
    _tarot_weights: tuple = PrivateAttr(default=())
    _premium_pool: tuple = PrivateAttr(default=())
    _low_pool: tuple = PrivateAttr(default=())
    _tiers: dict = PrivateAttr(default_factory=dict)

    @field_validator("paylines")
    @classmethod
    def _check_paylines(cls, v):
        if len(v) != 25:
            raise ValueError(f"Expected 25 paylines, got {len(v)}")
        seen = set()
        for i, line in enumerate(v, start=1):
            if len(line) != 5:
                raise ValueError(f"Payline {i} has {len(line)} entries, expected 5")
            if any(r < 0 or r > 2 for r in line):
                raise ValueError(f"Payline {i} has an invalid row index")
            if line in seen:
                raise ValueError(f"Payline {i} is a duplicate: {list(line)}")
            seen.add(line)
        return v

    @field_validator("tarot_symbols")
    @classmethod
    def _check_tarots(cls, v):
        for sym in v:
            if sym.tier != SymbolTier.TAROT or not sym.id.startswith(TAROT_PREFIX):
                raise ValueError(f"Tarot symbol {sym.id} must be TAROT tier with '{TAROT_PREFIX}' prefix")
        return v

    @model_validator(mode="after")
    def _check_paytable(self):
        known = {s.id for s in self.symbols} | {s.id for s in self.tarot_symbols}
        for symbol_id, pays in self.paytable.items():
            if symbol_id not in known:
                raise ValueError(f"Paytable entry for unknown symbol: {symbol_id}")
            if any(n not in (3, 4, 5) or p <= 0 for n, p in pays.items()):
                raise ValueError(f"Paytable entry for {symbol_id} must map 3/4/5 to positive payouts")
        if not any(s.tier == SymbolTier.WILD for s in self.symbols):
            raise ValueError("Symbol catalog needs a WILD symbol")
        if self.max_cols < self.cols or self.max_rows < self.rows:
            raise ValueError("Maximum grid size is smaller than the base grid")
        return self

    def model_post_init(self, __context) -> None:
        self._normal_ids = tuple(s.id for s in self.symbols)
        self._normal_weights = tuple(s.base_weight for s in self.symbols)
        self._tarot_ids = tuple(s.id for s in self.tarot_symbols)
        self._tarot_weights = tuple(s.base_weight for s in self.tarot_symbols)
        self._premium_pool = tuple(s.id for s in self.symbols if s.tier == SymbolTier.PREMIUM)
        self._low_pool = tuple(s.id for s in self.symbols if s.tier == SymbolTier.LOW)
        self._tiers = {s.id: s.tier for s in (*self.symbols, *self.tarot_symbols)}

    # ── Derived pools ──

    @property
    def normal_ids(self) -> tuple:
        return self._normal_ids

    @property
    def normal_weights(self) -> tuple:
        return self._normal_weights

    @property
    def tarot_ids(self) -> tuple:
        return self._tarot_ids

    @property
    def tarot_weights(self) -> tuple:
        return self._tarot_weights

    @property
    def premium_pool(self) -> tuple:
        return self._premium_pool

    @property
    def low_pool(self) -> tuple:
        return self._low_pool

    @property
    def bet_per_line(self) -> float:
        return self.bet / len(self.paylines)

    def tier_of(self, symbol_id: str) -> SymbolTier:
        """Tier of a symbol; ids outside the catalog score as LOW."""
        return self._tiers.get(symbol_id, SymbolTier.LOW)

    def payout(self, symbol_id: str, count: int) -> float:
        """Line payout multiplier, 0 when the paytable has no entry."""
        return self.paytable.get(symbol_id, {}).get(count, 0.0)


# ═══════════════════════════════════════════════════════════════
# Default Tables
# ═══════════════════════════════════════════════════════════════

SYMBOLS = (
    SymbolDef(id="WILD",       tier=SymbolTier.WILD,    base_weight=5),
    SymbolDef(id="COIN",       tier=SymbolTier.LOW,     base_weight=30),
    SymbolDef(id="CUP",        tier=SymbolTier.LOW,     base_weight=28),
    SymbolDef(id="KEY",        tier=SymbolTier.LOW,     base_weight=26),
    SymbolDef(id="SWORD",      tier=SymbolTier.LOW,     base_weight=28),
    SymbolDef(id="RING",       tier=SymbolTier.LOW,     base_weight=27),
    SymbolDef(id="FLEUR",      tier=SymbolTier.LOW,     base_weight=29),
    SymbolDef(id="SKULLCROSS", tier=SymbolTier.PREMIUM, base_weight=15),
    SymbolDef(id="DICE",       tier=SymbolTier.PREMIUM, base_weight=12),
    SymbolDef(id="KING",       tier=SymbolTier.PREMIUM, base_weight=10),
    SymbolDef(id="ANGEL",      tier=SymbolTier.PREMIUM, base_weight=8),
)

TAROT_SYMBOLS = (
    SymbolDef(id=T_FOOL,      tier=SymbolTier.TAROT, base_weight=30),
    SymbolDef(id=T_CUPS,      tier=SymbolTier.TAROT, base_weight=30),
    SymbolDef(id=T_LOVERS,    tier=SymbolTier.TAROT, base_weight=20),
    SymbolDef(id=T_PRIESTESS, tier=SymbolTier.TAROT, base_weight=10),
    SymbolDef(id=T_DEATH,     tier=SymbolTier.TAROT, base_weight=10),
)

PAYTABLE = {
    "WILD":       {3: 100, 4: 500, 5: 2500},
    "ANGEL":      {3: 48,  4: 190, 5: 750},
    "KING":       {3: 38,  4: 130, 5: 500},
    "DICE":       {3: 28,  4: 75,  5: 375},
    "SKULLCROSS": {3: 18,  4: 55,  5: 225},
    "FLEUR":      {3: 15,  4: 45,  5: 185},
    "RING":       {3: 12,  4: 38,  5: 150},
    "SWORD":      {3: 12,  4: 38,  5: 150},
    "KEY":        {3: 10,  4: 30,  5: 110},
    "CUP":        {3: 10,  4: 24,  5: 95},
    "COIN":       {3: 10,  4: 24,  5: 95},
    T_FOOL:       {3: 25,  4: 60,  5: 160},
    T_CUPS:       {3: 25,  4: 60,  5: 160},
    T_LOVERS:     {3: 30,  4: 80,  5: 200},
    T_PRIESTESS:  {3: 50,  4: 120, 5: 320},
    T_DEATH:      {3: 50,  4: 120, 5: 320},
}

# Row index per reel; row 0 = top
PAYLINES = (
    # Straight
    (1, 1, 1, 1, 1), (0, 0, 0, 0, 0), (2, 2, 2, 2, 2),
    # V
    (0, 1, 2, 1, 0), (2, 1, 0, 1, 2),
    # Zigzag
    (0, 1, 0, 1, 0), (2, 1, 2, 1, 2), (1, 0, 1, 0, 1), (1, 2, 1, 2, 1),
    # W / M
    (0, 2, 0, 2, 0), (2, 0, 2, 0, 2),
    # Steps
    (0, 0, 1, 1, 2), (2, 2, 1, 1, 0), (0, 1, 1, 2, 2), (2, 1, 1, 0, 0),
    # Bumps
    (1, 0, 1, 2, 2), (1, 2, 1, 0, 0), (2, 2, 1, 0, 1), (0, 0, 1, 2, 1),
    # Arches
    (0, 1, 1, 1, 2), (2, 1, 1, 1, 0),
    # Slides
    (0, 1, 2, 0, 0), (2, 1, 0, 2, 2),
    # Flat dip
    (0, 0, 1, 0, 0), (2, 2, 1, 2, 2),
)

DEFAULT_MODEL = GameModel(
    symbols=SYMBOLS,
    tarot_symbols=TAROT_SYMBOLS,
    paytable=PAYTABLE,
    paylines=PAYLINES,
)
