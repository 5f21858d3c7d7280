"""
TAROT ENGINE: Bonus Features

One engine per tarot. Each exposes play(rng, trigger, grid) -> FeatureResult.

Usage:
    from tarot_engine.features import get_feature
    feature = get_feature("T_DEATH")
    result = feature.play(rng, trigger)
"""

from tarot_engine.features.base import FeatureResult, TarotFeature
from tarot_engine.features.cups import CupsFeature
from tarot_engine.features.death import DeathFeature
from tarot_engine.features.fool import FoolFeature
from tarot_engine.features.lovers import LoversFeature
from tarot_engine.features.priestess import PriestessFeature
from tarot_engine.model import DEFAULT_MODEL, GameModel

FEATURES = {
    "T_FOOL": FoolFeature,
    "T_CUPS": CupsFeature,
    "T_LOVERS": LoversFeature,
    "T_PRIESTESS": PriestessFeature,
    "T_DEATH": DeathFeature,
}

FEATURE_TYPES = list(FEATURES.keys())


def get_feature(tarot_type: str, model: GameModel = DEFAULT_MODEL) -> TarotFeature:
    """Get the feature engine for a tarot type."""
    cls = FEATURES.get(tarot_type.upper())
    if cls is None:
        raise ValueError(f"Unknown tarot type: {tarot_type}. Available: {FEATURE_TYPES}")
    return cls(model)


__all__ = [
    "FEATURES", "FEATURE_TYPES", "FeatureResult", "TarotFeature", "get_feature",
    "CupsFeature", "DeathFeature", "FoolFeature", "LoversFeature", "PriestessFeature",
]
