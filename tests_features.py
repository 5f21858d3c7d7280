#!/usr/bin/env python3
"""
Tests for the tarot bonus features

Validates:
1.  Registry lookup (case-insensitive, unknown type rejected)
2.  Lovers / Priestess / Death / Cups totals match the reference simulator
3.  Fool wild cap, wild placement and multiplier
4.  Cups token counts and pools
5.  Lovers rectangle stays inside the grid, bond is the first candidate
6.  Priestess mystery cells only grow and never repeat
7.  Death grid growth, bonus spins and sticky wild bounds
"""

import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).parent
sys.path.insert(0, str(PROJECT_ROOT))

from tarot_engine.features import FEATURE_TYPES, FEATURES, get_feature
from tarot_engine.features.cups import CupsFeature
from tarot_engine.features.death import DEATH_SPINS, DeathFeature
from tarot_engine.features.fool import MAX_WILDS, FoolFeature, cap_wilds, roll_wild_counts
from tarot_engine.features.lovers import AREA_LADDER, LoversFeature, roll_area
from tarot_engine.features.priestess import PriestessFeature, roll_new_cells
from tarot_engine.model import DEFAULT_MODEL, T_CUPS, T_DEATH, T_FOOL, T_LOVERS, T_PRIESTESS, WILD
from tarot_engine.rng import XorShift32
from tarot_engine.spin import SpinGenerator, Trigger


def _trigger(tarot_type, count):
    columns = {2: [0, 1], 3: [0, 1, 2], 4: [0, 1, 2, 3], 5: [0, 1, 2, 3, 4]}[count]
    return Trigger(type=tarot_type, count=count, columns=columns)


def _close(a, b, tol=1e-9):
    return abs(a - b) < tol


# ============================================================
# Registry
# ============================================================

def test_registry():
    """Every tarot has a feature engine, looked up case-insensitively."""
    assert FEATURE_TYPES == [T_FOOL, T_CUPS, T_LOVERS, T_PRIESTESS, T_DEATH]
    assert set(FEATURES) == set(DEFAULT_MODEL.tarot_ids)
    assert isinstance(get_feature("t_death"), DeathFeature)
    meta = get_feature(T_LOVERS).get_metadata()
    assert meta == {"tarot_type": T_LOVERS, "display_name": "The Lovers"}
    print("✅ Feature registry resolves all five tarots")


def test_registry_rejects_unknown():
    try:
        get_feature("T_TOWER")
    except ValueError as e:
        assert "T_TOWER" in str(e)
    else:
        raise AssertionError("unknown tarot accepted")
    print("✅ Unknown tarot type raises ValueError")


# ============================================================
# Reference totals (seed 2024, recorded from the reference simulator)
# ============================================================

def test_lovers_reference():
    for count, win, state in ((2, 0.8, 3524447657), (3, 1.096, 1854377402)):
        rng = XorShift32(2024)
        result = LoversFeature().play(rng, _trigger(T_LOVERS, count))
        assert _close(result.win, win), (count, result.win)
        assert rng.state == state
    print("✅ Lovers matches reference totals and RNG state")


def test_priestess_reference():
    for count, win, state in ((2, 2.984, 3663929027), (3, 20.528, 228178186)):
        rng = XorShift32(2024)
        result = PriestessFeature().play(rng, _trigger(T_PRIESTESS, count))
        assert _close(result.win, win), (count, result.win)
        assert rng.state == state
    print("✅ Priestess matches reference totals and RNG state")


def test_death_reference():
    """Death ignores the trigger count: both sizes play the same spins."""
    for count in (2, 3):
        rng = XorShift32(2024)
        result = DeathFeature().play(rng, _trigger(T_DEATH, count))
        assert _close(result.win, 0.2), (count, result.win)
        assert rng.state == 88756601
    print("✅ Death matches reference total and RNG state")


def test_cups_reference():
    cases = (
        (Trigger(T_CUPS, 2, [1, 3]), 1.8, 3331393626),
        (Trigger(T_CUPS, 3, [0, 2, 4]), 12.2, 346951311),
    )
    for trigger, win, state in cases:
        rng = XorShift32(2024)
        result = CupsFeature().play(rng, trigger)
        assert _close(result.win, win), (trigger.count, result.win)
        assert rng.state == state
        assert _close(result.details["multiplier_sum"] * DEFAULT_MODEL.bet, result.win)
    print("✅ Cups matches reference totals and RNG state")


# ============================================================
# Fool
# ============================================================

def test_cap_wilds():
    assert cap_wilds([1, 2]) == [1, 2]
    assert cap_wilds([3, 3, 3]) == [3, 3, 3]
    assert cap_wilds([3, 3, 3, 3]) == [3, 3, 2, 1]
    assert cap_wilds([3, 3, 3, 3, 3]) == [3, 3, 1, 1, 1]
    assert cap_wilds([2, 2], cap=3) == [2, 1]
    print("✅ Wild cap trims from the rightmost column, floor of one")


def test_wild_counts_in_range():
    rng = XorShift32(31)
    for count in (2, 3, 4, 5):
        for _ in range(300):
            counts = roll_wild_counts(rng, _trigger(T_FOOL, count))
            assert len(counts) == count
            assert all(1 <= n <= 3 for n in counts)
            assert sum(counts) <= MAX_WILDS
    print("✅ Fool wild counts stay within 1-3 per column and 9 total")


def test_fool_places_wilds():
    gen = SpinGenerator()
    fool = FoolFeature()
    rng = XorShift32(55)
    for count in (2, 3, 4, 5):
        for _ in range(100):
            columns = sorted(rng.shuffle(list(range(5)))[:count])
            spin = gen.forced(rng, T_FOOL, columns)
            before = [list(col) for col in spin.grid]
            result = fool.play(rng, Trigger(T_FOOL, count, columns), spin.grid)

            assert spin.grid == before, "caller's grid must not change"
            grid = result.details["grid"]
            for col, wilds in zip(columns, result.details["wild_counts"]):
                assert grid[col].count(WILD) == wilds
                assert all(s == WILD or s in DEFAULT_MODEL.premium_pool for s in grid[col])
            for col in set(range(5)) - set(columns):
                assert grid[col] == before[col]
            assert result.details["multiplier"] == (5 if count >= 3 else 3)
            assert _close(result.win, fool.line_win(grid) * result.details["multiplier"])
    print("✅ Fool rewrites only the triggering columns")


def test_fool_needs_grid():
    try:
        FoolFeature().play(XorShift32(1), _trigger(T_FOOL, 2))
    except ValueError:
        pass
    else:
        raise AssertionError("Fool played without a grid")
    print("✅ Fool without a grid raises ValueError")


# ============================================================
# Cups
# ============================================================

def test_cups_tokens():
    cups = CupsFeature()
    rng = XorShift32(8)
    for count in (2, 3, 5):
        for _ in range(300):
            result = cups.play(rng, _trigger(T_CUPS, count))
            tokens = result.details["tokens"]
            if count == 2:
                assert 2 <= len(tokens) <= 4
                assert set(tokens) <= {2, 3}
            else:
                assert 2 * count <= len(tokens) <= 3 * count
                assert set(tokens) <= {3, 5, 10}
            assert result.spins_played == 1
    print("✅ Cups tokens come from the right pool in the right numbers")


# ============================================================
# Lovers
# ============================================================

def test_area_ladder():
    rng = XorShift32(17)
    shapes = {s for _, pair in AREA_LADDER for s in pair}
    seen = set()
    for _ in range(5000):
        shape = roll_area(rng)
        assert shape in shapes
        seen.add(shape)
    assert (1, 1) in seen and len(seen) >= 9
    print(f"✅ Lovers area ladder produced {len(seen)} shapes")


def test_lovers_rectangles():
    lovers = LoversFeature()
    rng = XorShift32(64)
    for count in (2, 3, 4):
        for _ in range(100):
            result = lovers.play(rng, _trigger(T_LOVERS, count))
            assert result.spins_played == (6 if count >= 3 else 3)
            assert result.details["multiplier"] == (2 if count == 2 else 1)
            for bond in result.details["bonds"]:
                c0, r0, w, h = bond["area"]
                assert 0 <= c0 and c0 + w <= 5
                assert 0 <= r0 and r0 + h <= 3
                assert len(bond["candidates"]) == 3
                assert bond["symbol"] == bond["candidates"][0]
    print("✅ Lovers rectangles stay inside the 5x3 grid")


# ============================================================
# Priestess
# ============================================================

def test_roll_new_cells():
    rng = XorShift32(90)
    counts = {roll_new_cells(rng) for _ in range(2000)}
    assert counts == {1, 2, 3}
    print("✅ Priestess adds 1-3 mystery cells per spin")


def test_priestess_cells_accumulate():
    priestess = PriestessFeature()
    rng = XorShift32(13)
    for count in (2, 3):
        for _ in range(100):
            result = priestess.play(rng, _trigger(T_PRIESTESS, count))
            history = result.details["history"]
            assert len(history) == result.spins_played == (9 if count >= 3 else 6)
            prev = []
            for entry in history:
                cells = entry["cells"]
                assert cells[:len(prev)] == prev
                assert 1 <= len(cells) - len(prev) <= 3 or len(cells) == 15
                assert len(set(cells)) == len(cells)
                assert all(0 <= c < 5 and 0 <= r < 3 for c, r in cells)
                assert entry["symbol"] in DEFAULT_MODEL.normal_ids
                prev = cells
    print("✅ Priestess mystery cells persist and never repeat")


# ============================================================
# Death
# ============================================================

def test_death_growth_bounds():
    death = DeathFeature()
    rng = XorShift32(21)
    grew = 0
    for _ in range(300):
        result = death.play(rng, _trigger(T_DEATH, 2))
        cols, rows = result.details["final_size"]
        expansions = result.details["expansions"]
        assert 0 <= expansions <= 3
        assert (cols, rows) == (5 + expansions, 3 + expansions)
        assert result.spins_played == DEATH_SPINS + expansions
        assert all(0 <= c < cols and 0 <= r < rows for c, r in result.details["sticky_wilds"])
        assert result.win >= 0
        grew += expansions > 0
    assert grew > 0
    print(f"✅ Death grid grew in {grew}/300 features, never past 8x6")


def test_death_reap_thresholds():
    death = DeathFeature()
    rng = XorShift32(5)
    for _ in range(200):
        d = death.play(rng, _trigger(T_DEATH, 2)).details
        thresholds_met = sum(d["reap_bar"] >= t for t in (10, 20, 30))
        assert d["expansions"] == thresholds_met
    print("✅ Each reap threshold reached adds exactly one expansion")


def test_feature_result_to_dict():
    result = CupsFeature().play(XorShift32(2024), Trigger(T_CUPS, 2, [1, 3]))
    d = result.to_dict()
    assert d["tarot_type"] == T_CUPS
    assert d["win"] == 1.8
    assert d["spins_played"] == 1
    print("✅ FeatureResult.to_dict")


# ============================================================
# Runner
# ============================================================

if __name__ == "__main__":
    tests = [
        test_registry,
        test_registry_rejects_unknown,
        test_lovers_reference,
        test_priestess_reference,
        test_death_reference,
        test_cups_reference,
        test_cap_wilds,
        test_wild_counts_in_range,
        test_fool_places_wilds,
        test_fool_needs_grid,
        test_cups_tokens,
        test_area_ladder,
        test_lovers_rectangles,
        test_roll_new_cells,
        test_priestess_cells_accumulate,
        test_death_growth_bounds,
        test_death_reap_thresholds,
        test_feature_result_to_dict,
    ]

    print(f"\n{'='*60}")
    print(f"Tarot Feature Tests: {len(tests)} tests")
    print(f"{'='*60}\n")

    passed = 0
    failed = 0
    for test in tests:
        try:
            test()
            passed += 1
        except Exception as e:
            print(f"❌ {test.__name__}: {e}")
            failed += 1
        print()

    print(f"{'='*60}")
    print(f"Results: {passed} passed, {failed} failed, {passed + failed} total")
    print(f"{'='*60}")

    sys.exit(0 if failed == 0 else 1)
