"""
Tarot Slot Simulator - Configuration

Run defaults come from the environment (or a local .env file):

    TAROT_SPINS=1000000
    TAROT_SEED=12345
    TAROT_WORKERS=1
    TAROT_TARGET_RTP=96.0        # optional, percent
    TAROT_RTP_TOLERANCE=0.5      # percentage points
    TAROT_LOG_LEVEL=INFO

Anything that does not parse falls back to the built-in default.
"""

import math
import os
from typing import Optional

from dotenv import load_dotenv

load_dotenv()

DEFAULT_SPINS = 1_000_000
DEFAULT_SEED = 12345


def coerce_int(value, default: Optional[int]) -> Optional[int]:
    """int(value), or default for missing / non-numeric input.

    Numeric floats ("250000.0", 2.5e5) truncate toward zero like parseInt.
    """
    if value is None:
        return default
    text = str(value).strip()
    try:
        return int(text)
    except ValueError:
        pass
    try:
        number = float(text)
    except ValueError:
        return default
    if not math.isfinite(number):
        return default
    return int(number)


def coerce_float(value, default: Optional[float]) -> Optional[float]:
    if value is None:
        return default
    try:
        return float(str(value).strip())
    except ValueError:
        return default


class SimConfig:

    SPINS = coerce_int(os.getenv("TAROT_SPINS"), DEFAULT_SPINS)
    SEED = coerce_int(os.getenv("TAROT_SEED"), DEFAULT_SEED)
    WORKERS = coerce_int(os.getenv("TAROT_WORKERS"), 1)

    # --- Convergence check ---
    TARGET_RTP = coerce_float(os.getenv("TAROT_TARGET_RTP"), None)
    RTP_TOLERANCE = coerce_float(os.getenv("TAROT_RTP_TOLERANCE"), 0.5)

    # --- Progress / logging ---
    PROGRESS_STEPS = 10
    LOG_LEVEL = os.getenv("TAROT_LOG_LEVEL", "INFO").upper()

    @classmethod
    def spins(cls, value=None) -> int:
        """Spin count from user input, falling back to the configured default."""
        n = coerce_int(value, cls.SPINS)
        if n is None or n <= 0:
            return DEFAULT_SPINS if cls.SPINS is None or cls.SPINS <= 0 else cls.SPINS
        return n

    @classmethod
    def seed(cls, value=None) -> int:
        """Seed from user input as an unsigned 32-bit value; 0 counts as missing."""
        s = coerce_int(value, cls.SEED)
        s = s & 0xFFFFFFFF if s is not None else 0
        if not s:
            s = (cls.SEED or DEFAULT_SEED) & 0xFFFFFFFF
        return s or DEFAULT_SEED
