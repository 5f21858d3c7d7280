#!/usr/bin/env python3
"""
TAROT ENGINE: Unit Test Suite

Run: python tests.py
     python tests.py -v              # verbose
     python tests.py TestClusters    # run specific class

Test categories:
  TestXorShift32      reference sequences, seed 0, ints, shuffle, weighted picks
  TestGameModel       default tables, derived pools, validation errors
  TestPaylines        wild substitution, line scoring, per-line breakdown
  TestClusters        connected components, WILD joker, cluster pays
  TestSpinGeneration  draw order, forced spins, trigger priority

Expected sequences and first-spin triggers were recorded from the reference
simulator, so any change to draw order shows up here first.
"""

import sys
import unittest
from pathlib import Path

# ── Ensure project root is on sys.path ──
PROJECT_ROOT = Path(__file__).parent
sys.path.insert(0, str(PROJECT_ROOT))

from pydantic import ValidationError

from tarot_engine.clusters import Cluster, cluster_multiplier, cluster_payout, find_clusters
from tarot_engine.model import (
    DEFAULT_MODEL, PAYLINES, PAYTABLE, SYMBOLS, TAROT_SYMBOLS,
    T_CUPS, T_DEATH, T_FOOL, T_LOVERS, T_PRIESTESS, WILD,
    GameModel, SymbolDef, SymbolTier,
)
from tarot_engine.paylines import PaylineEvaluator
from tarot_engine.rng import MASK32, XorShift32, derive_shard_seed
from tarot_engine.spin import SpinGenerator, TarotColumn, detect_trigger, normal_grid


# ============================================================
# RNG Tests
# ============================================================

class TestXorShift32(unittest.TestCase):
    """Xorshift32 must reproduce the reference generator exactly."""

    def test_reference_states_seed_12345(self):
        rng = XorShift32(12345)
        states = []
        for _ in range(5):
            rng.next_float()
            states.append(rng.state)
        self.assertEqual(states, [3336926330, 1697253807, 2816511904, 1954660842, 3676852532])

    def test_reference_states_classic_seed(self):
        rng = XorShift32(2463534242)
        states = []
        for _ in range(3):
            rng.next_float()
            states.append(rng.state)
        self.assertEqual(states, [723471715, 2497006458, 2331550023])

    def test_reference_floats_seed_42(self):
        rng = XorShift32(42)
        self.assertAlmostEqual(rng.next_float(), 0.0026438925421433273, places=15)
        self.assertAlmostEqual(rng.next_float(), 0.6602433129819677, places=15)
        self.assertAlmostEqual(rng.next_float(), 0.9280905660540076, places=15)

    def test_seed_zero_behaves_like_seed_one(self):
        zero, one = XorShift32(0), XorShift32(1)
        self.assertEqual(zero.state, 1)
        self.assertEqual(zero.next_float(), one.next_float())
        self.assertEqual(zero.state, 270369)
        self.assertAlmostEqual(XorShift32(1).next_float(), 0.00006295018830870981, places=17)

    def test_seed_masked_to_32_bits(self):
        self.assertEqual(XorShift32(-1).state, MASK32)
        self.assertEqual(XorShift32(1 << 32).state, 1)

    def test_set_state(self):
        rng = XorShift32(5)
        rng.next_float()
        rng.set_state(12345)
        rng.next_float()
        self.assertEqual(rng.state, 3336926330)

    def test_floats_in_unit_interval(self):
        rng = XorShift32(99)
        for _ in range(5000):
            f = rng.next_float()
            self.assertGreaterEqual(f, 0.0)
            self.assertLessEqual(f, 1.0)

    def test_next_int_reference(self):
        rng = XorShift32(7)
        self.assertEqual(
            [rng.next_int(1, 3), rng.next_int(1, 3), rng.next_int(0, 4), rng.next_int(10, 20)],
            [1, 1, 0, 15],
        )

    def test_next_int_inclusive_range(self):
        rng = XorShift32(3)
        seen = {rng.next_int(1, 3) for _ in range(2000)}
        self.assertEqual(seen, {1, 2, 3})

    def test_shuffle_reference(self):
        rng = XorShift32(99)
        items = [0, 1, 2, 3, 4]
        out = rng.shuffle(items)
        self.assertIs(out, items)
        self.assertEqual(items, [3, 1, 4, 2, 0])
        self.assertEqual(rng.state, 2300548571)

    def test_shuffle_single_item_draws_nothing(self):
        rng = XorShift32(99)
        self.assertEqual(rng.shuffle([7]), [7])
        self.assertEqual(rng.state, 99)

    def test_choice_stays_in_sequence(self):
        rng = XorShift32(11)
        pool = ("A", "B", "C")
        for _ in range(200):
            self.assertIn(rng.choice(pool), pool)

    def test_weighted_choice_zero_total(self):
        """Zero total weight returns the last item and leaves the state alone."""
        rng = XorShift32(8)
        self.assertEqual(rng.weighted_choice(["a", "b", "c"], [0, 0, 0]), "c")
        self.assertEqual(rng.state, 8)

    def test_weighted_choice_skips_zero_weights(self):
        rng = XorShift32(21)
        for _ in range(500):
            self.assertEqual(rng.weighted_choice(["a", "b", "c"], [0, 4, 0]), "b")

    def test_weighted_choice_frequencies(self):
        rng = XorShift32(1234)
        hits = sum(rng.weighted_choice(["x", "y"], [3, 1]) == "x" for _ in range(20000))
        self.assertAlmostEqual(hits / 20000, 0.75, delta=0.02)

    def test_derive_shard_seed(self):
        a = derive_shard_seed(12345, 0)
        self.assertEqual(a, derive_shard_seed(12345, 0))
        self.assertNotEqual(a, derive_shard_seed(12345, 1))
        self.assertNotEqual(a, derive_shard_seed(54321, 0))
        self.assertTrue(0 < a <= MASK32)


# ============================================================
# Math Model Tests
# ============================================================

class TestGameModel(unittest.TestCase):

    def test_default_tables(self):
        m = DEFAULT_MODEL
        self.assertEqual(len(m.paylines), 25)
        self.assertEqual(m.normal_ids[0], WILD)
        self.assertEqual(sum(m.normal_weights), 218)
        self.assertEqual(m.tarot_ids, (T_FOOL, T_CUPS, T_LOVERS, T_PRIESTESS, T_DEATH))
        self.assertEqual(sum(m.tarot_weights), 100)
        self.assertAlmostEqual(m.bet_per_line, 0.008)
        self.assertEqual(m.tarot_chance, 0.071)

    def test_pools(self):
        m = DEFAULT_MODEL
        self.assertEqual(m.premium_pool, ("SKULLCROSS", "DICE", "KING", "ANGEL"))
        self.assertEqual(m.low_pool, ("COIN", "CUP", "KEY", "SWORD", "RING", "FLEUR"))

    def test_tier_lookup(self):
        m = DEFAULT_MODEL
        self.assertEqual(m.tier_of("ANGEL"), SymbolTier.PREMIUM)
        self.assertEqual(m.tier_of("COIN"), SymbolTier.LOW)
        self.assertEqual(m.tier_of(WILD), SymbolTier.WILD)
        self.assertEqual(m.tier_of(T_DEATH), SymbolTier.TAROT)
        self.assertEqual(m.tier_of("MYSTERY"), SymbolTier.LOW)

    def test_payout_lookup(self):
        m = DEFAULT_MODEL
        self.assertEqual(m.payout("WILD", 5), 2500)
        self.assertEqual(m.payout("T_PRIESTESS", 3), 50)
        self.assertEqual(m.payout("COIN", 2), 0.0)
        self.assertEqual(m.payout("NOPE", 3), 0.0)

    def test_model_is_frozen(self):
        with self.assertRaises(ValidationError):
            DEFAULT_MODEL.bet = 1.0

    def test_rejects_wrong_payline_count(self):
        with self.assertRaises(ValidationError):
            GameModel(symbols=SYMBOLS, tarot_symbols=TAROT_SYMBOLS,
                      paytable=PAYTABLE, paylines=PAYLINES[:24])

    def test_rejects_duplicate_payline(self):
        lines = PAYLINES[:24] + (PAYLINES[0],)
        with self.assertRaises(ValidationError):
            GameModel(symbols=SYMBOLS, tarot_symbols=TAROT_SYMBOLS,
                      paytable=PAYTABLE, paylines=lines)

    def test_rejects_bad_row_index(self):
        lines = PAYLINES[:24] + ((0, 1, 3, 1, 0),)
        with self.assertRaises(ValidationError):
            GameModel(symbols=SYMBOLS, tarot_symbols=TAROT_SYMBOLS,
                      paytable=PAYTABLE, paylines=lines)

    def test_rejects_unknown_paytable_symbol(self):
        table = dict(PAYTABLE, GHOST={3: 1, 4: 2, 5: 3})
        with self.assertRaises(ValidationError):
            GameModel(symbols=SYMBOLS, tarot_symbols=TAROT_SYMBOLS,
                      paytable=table, paylines=PAYLINES)

    def test_rejects_non_tarot_in_tarot_catalog(self):
        tarots = TAROT_SYMBOLS + (SymbolDef(id="COIN", tier=SymbolTier.LOW, base_weight=1),)
        with self.assertRaises(ValidationError):
            GameModel(symbols=SYMBOLS, tarot_symbols=tarots,
                      paytable=PAYTABLE, paylines=PAYLINES)

    def test_rejects_non_positive_weight(self):
        with self.assertRaises(ValidationError):
            SymbolDef(id="COIN", tier=SymbolTier.LOW, base_weight=0)

    def test_custom_model(self):
        m = GameModel(symbols=SYMBOLS, tarot_symbols=TAROT_SYMBOLS,
                      paytable=PAYTABLE, paylines=PAYLINES, bet=1.0)
        self.assertAlmostEqual(m.bet_per_line, 0.04)
        self.assertEqual(m.normal_ids, DEFAULT_MODEL.normal_ids)


# ============================================================
# Payline Tests
# ============================================================

def _grid_from_rows(top, middle, bottom):
    """Column-major grid from three row lists."""
    return [[top[c], middle[c], bottom[c]] for c in range(len(top))]


class TestPaylines(unittest.TestCase):

    def setUp(self):
        self.ev = PaylineEvaluator(DEFAULT_MODEL)
        self.bpl = DEFAULT_MODEL.bet_per_line

    def test_score_line_plain(self):
        self.assertEqual(self.ev.score_line(["COIN", "COIN", "COIN", "KEY", "COIN"]), ("COIN", 3))
        self.assertEqual(self.ev.score_line(["COIN", "CUP", "COIN", "COIN", "COIN"]), ("COIN", 1))

    def test_score_line_leading_wilds(self):
        self.assertEqual(self.ev.score_line([WILD, WILD, "COIN", "COIN", "COIN"]), ("COIN", 5))
        self.assertEqual(self.ev.score_line([WILD, "KING", WILD, "DICE", "KING"]), ("KING", 3))

    def test_score_line_wild_takes_first_concrete_symbol_only(self):
        # WILD becomes ANGEL everywhere, so it cannot extend the KING run
        self.assertEqual(self.ev.score_line(["ANGEL", WILD, "KING", "KING", "KING"]), ("ANGEL", 2))

    def test_score_line_all_wild(self):
        self.assertEqual(self.ev.score_line([WILD] * 5), (WILD, 5))

    def test_score_line_empty_cells(self):
        self.assertEqual(self.ev.score_line(["", "COIN", "COIN", "COIN", "COIN"]), ("", 1))
        self.assertEqual(self.ev.score_line([WILD, "", "", "", ""]), (WILD, 1))

    def test_single_middle_line(self):
        grid = _grid_from_rows(
            ["KEY", "RING", "KEY", "RING", "KEY"],
            ["COIN"] * 5,
            ["SWORD", "FLEUR", "SWORD", "FLEUR", "SWORD"],
        )
        self.assertAlmostEqual(self.ev.evaluate(grid, self.bpl), 0.76)
        wins = self.ev.winning_lines(grid, self.bpl)
        self.assertEqual(len(wins), 1)
        self.assertEqual(wins[0].payline_index, 0)
        self.assertEqual((wins[0].symbol, wins[0].match_count), ("COIN", 5))
        self.assertEqual(wins[0].cells, [(0, 1), (1, 1), (2, 1), (3, 1), (4, 1)])

    def test_wild_columns_every_line(self):
        grid = [[WILD] * 3, [WILD] * 3, ["COIN"] * 3, ["COIN"] * 3, ["COIN"] * 3]
        self.assertAlmostEqual(self.ev.evaluate(grid, self.bpl), 19.0)
        wins = self.ev.winning_lines(grid, self.bpl)
        self.assertEqual(len(wins), 25)
        self.assertTrue(all(w.symbol == "COIN" and w.match_count == 5 for w in wins))

    def test_all_wild_grid(self):
        grid = [[WILD] * 3 for _ in range(5)]
        self.assertAlmostEqual(self.ev.evaluate(grid, self.bpl), 25 * 20.0)

    def test_tarot_line_pays_from_paytable(self):
        grid = [[T_DEATH] * 3, [T_DEATH] * 3, [T_DEATH] * 3, ["COIN", "CUP", "KEY"], ["KEY", "COIN", "CUP"]]
        wins = self.ev.winning_lines(grid, self.bpl)
        self.assertEqual(len(wins), 25)
        self.assertAlmostEqual(self.ev.evaluate(grid, self.bpl), 25 * 50 * self.bpl)

    def test_reference_first_spin_scores_nothing(self):
        grid = [["KEY", "RING", "SWORD"], ["SKULLCROSS", "KING", "COIN"],
                ["FLEUR", "SKULLCROSS", "SWORD"], ["FLEUR", "KEY", "ANGEL"],
                ["SKULLCROSS", "CUP", "SWORD"]]
        self.assertEqual(self.ev.evaluate(grid, self.bpl), 0.0)
        self.assertEqual(self.ev.winning_lines(grid, self.bpl), [])

    def test_missing_cells_read_empty(self):
        self.assertEqual(self.ev.line_symbols([["COIN"], ["COIN"]], (0, 0, 0, 0, 0)),
                         ["COIN", "COIN", "", "", ""])

    def test_breakdown_matches_total(self):
        rng = XorShift32(404)
        for _ in range(200):
            grid = normal_grid(rng, DEFAULT_MODEL)
            total = self.ev.evaluate(grid, self.bpl)
            parts = sum(w.payout for w in self.ev.winning_lines(grid, self.bpl))
            self.assertAlmostEqual(total, parts)


# ============================================================
# Cluster Tests
# ============================================================

class TestClusters(unittest.TestCase):

    def test_reference_grid(self):
        grid = [["KING", "KEY", "KING"], ["KING", WILD, "KEY"], ["RING", "KEY", "RING"]]
        clusters = find_clusters(grid, 3, 3)
        self.assertEqual(clusters, [
            Cluster("KING", [(0, 0), (1, 0), (1, 1)]),
            Cluster("KEY", [(0, 1), (1, 1), (2, 1), (1, 2)]),
        ])

    def test_below_minimum_is_ignored(self):
        grid = [["COIN", "COIN", "KEY"], ["KEY", "CUP", "COIN"], ["CUP", "KEY", "CUP"]]
        self.assertEqual(find_clusters(grid, 3, 3), [])

    def test_one_cluster_per_component(self):
        grid = [["COIN", "COIN", "COIN"], ["COIN", "KEY", "CUP"], ["KEY", "CUP", "KEY"]]
        clusters = find_clusters(grid, 3, 3)
        self.assertEqual(len(clusters), 1)
        self.assertEqual(clusters[0].size, 4)
        self.assertAlmostEqual(cluster_payout("COIN", 4, 0.20), 0.40)

    def test_three_cell_group_is_one_cluster(self):
        # a LOW column of three with no WILD next to it: the smallest paying cluster
        grid = [["COIN", "COIN", "COIN"], ["KEY", "CUP", "KEY"], ["CUP", "KEY", "CUP"]]
        clusters = find_clusters(grid, 3, 3)
        self.assertEqual(len(clusters), 1)
        self.assertEqual(clusters[0].symbol, "COIN")
        self.assertEqual(clusters[0].cells, [(0, 0), (0, 1), (0, 2)])
        self.assertEqual(clusters[0].size, 3)
        self.assertAlmostEqual(cluster_payout("COIN", 3, 0.20), 0.10)

    def test_diagonals_do_not_connect(self):
        grid = [["COIN", "KEY", "COIN"], ["KEY", "COIN", "KEY"], ["COIN", "KEY", "COIN"]]
        self.assertEqual(find_clusters(grid, 3, 3), [])

    def test_pure_wild_cluster(self):
        grid = [[WILD] * 3 for _ in range(3)]
        clusters = find_clusters(grid, 3, 3)
        self.assertEqual(len(clusters), 1)
        self.assertEqual(clusters[0].symbol, WILD)
        self.assertEqual(clusters[0].size, 9)

    def test_wild_counts_for_several_clusters(self):
        # WILD column joins the COIN and KEY groups and also forms its own cluster
        grid = [["COIN", "COIN", "COIN"], [WILD, WILD, WILD], ["KEY", "KEY", "KEY"]]
        clusters = find_clusters(grid, 3, 3)
        self.assertEqual([(c.symbol, c.size) for c in clusters],
                         [("COIN", 6), ("KEY", 6), (WILD, 3)])

    def test_respects_grid_bounds(self):
        grid = [["COIN"] * 6 for _ in range(8)]
        clusters = find_clusters(grid, 5, 3)
        self.assertEqual(len(clusters), 1)
        self.assertEqual(clusters[0].size, 15)
        self.assertTrue(all(c < 5 and r < 3 for c, r in clusters[0].cells))

    def test_tarot_cells_never_cluster(self):
        grid = [[T_CUPS] * 3 for _ in range(3)]
        self.assertEqual(find_clusters(grid, 3, 3), [])

    def test_multipliers(self):
        self.assertEqual(cluster_multiplier(SymbolTier.PREMIUM, 3), 1)
        self.assertEqual(cluster_multiplier(SymbolTier.PREMIUM, 6), 30)
        self.assertEqual(cluster_multiplier(SymbolTier.LOW, 5), 5)
        self.assertEqual(cluster_multiplier(SymbolTier.WILD, 4), 10)
        self.assertEqual(cluster_multiplier(SymbolTier.WILD, 40), 50)
        self.assertEqual(cluster_multiplier(SymbolTier.TAROT, 3), 0.5)

    def test_payouts(self):
        self.assertAlmostEqual(cluster_payout("COIN", 3, 0.20), 0.10)
        self.assertAlmostEqual(cluster_payout("KING", 3, 0.20), 0.20)
        self.assertAlmostEqual(cluster_payout(WILD, 6, 0.20), 10.0)
        self.assertAlmostEqual(cluster_payout("UNKNOWN", 3, 0.20), 0.10)


# ============================================================
# Spin Generation Tests
# ============================================================

class TestSpinGeneration(unittest.TestCase):

    def setUp(self):
        self.gen = SpinGenerator(DEFAULT_MODEL)

    def test_reference_first_spin(self):
        rng = XorShift32(12345)
        spin = self.gen.generate(rng)
        self.assertEqual(spin.grid, [
            ["KEY", "RING", "SWORD"], ["SKULLCROSS", "KING", "COIN"],
            ["FLEUR", "SKULLCROSS", "SWORD"], ["FLEUR", "KEY", "ANGEL"],
            ["SKULLCROSS", "CUP", "SWORD"],
        ])
        self.assertEqual(spin.tarot_columns, [])
        self.assertEqual(rng.state, 1869525001)

    def test_reference_first_spin_triggers(self):
        cases = {
            13: (T_FOOL, [0, 3], [TarotColumn(0, T_FOOL), TarotColumn(3, T_FOOL)]),
            19: (T_CUPS, [3, 4], [TarotColumn(3, T_CUPS), TarotColumn(4, T_CUPS)]),
            58: (T_LOVERS, [1, 2], [TarotColumn(1, T_LOVERS), TarotColumn(2, T_LOVERS),
                                    TarotColumn(3, T_PRIESTESS)]),
            109: (T_PRIESTESS, [0, 1], [TarotColumn(0, T_PRIESTESS), TarotColumn(1, T_PRIESTESS),
                                        TarotColumn(3, T_LOVERS)]),
            156: (T_DEATH, [2, 4], [TarotColumn(2, T_DEATH), TarotColumn(4, T_DEATH)]),
        }
        for seed, (tarot, columns, tarot_columns) in cases.items():
            spin = self.gen.generate(XorShift32(seed))
            self.assertEqual(spin.tarot_columns, tarot_columns, f"seed {seed}")
            trigger = detect_trigger(spin.tarot_columns)
            self.assertEqual((trigger.type, trigger.count, trigger.columns), (tarot, 2, columns))
            for col in columns:
                self.assertEqual(spin.grid[col], [tarot] * 3)

    def test_grid_shape_and_tarot_stacks(self):
        rng = XorShift32(2)
        for _ in range(3000):
            spin = self.gen.generate(rng)
            self.assertEqual(len(spin.grid), 5)
            self.assertTrue(all(len(col) == 3 for col in spin.grid))
            self.assertLessEqual(len(spin.tarot_columns), 3)
            tarot_cols = {tc.col for tc in spin.tarot_columns}
            for c, column in enumerate(spin.grid):
                if c in tarot_cols:
                    self.assertEqual(len(set(column)), 1)
                else:
                    self.assertTrue(all(s in DEFAULT_MODEL.normal_ids for s in column))

    def test_tarot_rate(self):
        rng = XorShift32(77)
        n = 40000
        with_tarots = sum(bool(self.gen.generate(rng).tarot_columns) for _ in range(n))
        self.assertAlmostEqual(with_tarots / n, 0.071, delta=0.006)

    def test_tarot_count_bands(self):
        self.assertEqual(SpinGenerator._tarot_count(0.20), 1)
        self.assertEqual(SpinGenerator._tarot_count(0.2000001), 2)
        self.assertEqual(SpinGenerator._tarot_count(0.70), 2)
        self.assertEqual(SpinGenerator._tarot_count(0.71), 3)

    def test_normal_grid_custom_size(self):
        grid = normal_grid(XorShift32(5), DEFAULT_MODEL, cols=8, rows=6)
        self.assertEqual(len(grid), 8)
        self.assertTrue(all(len(col) == 6 for col in grid))

    def test_forced_spin(self):
        spin = self.gen.forced(XorShift32(3), T_DEATH, [1, 3])
        self.assertEqual(spin.grid[1], [T_DEATH] * 3)
        self.assertEqual(spin.grid[3], [T_DEATH] * 3)
        trigger = detect_trigger(spin.tarot_columns)
        self.assertEqual((trigger.type, trigger.count, trigger.columns), (T_DEATH, 2, [1, 3]))

    def test_forced_spin_unknown_tarot(self):
        with self.assertRaises(ValueError):
            self.gen.forced(XorShift32(3), "T_TOWER", [0, 1])

    def test_trigger_needs_a_pair(self):
        self.assertIsNone(detect_trigger([]))
        self.assertIsNone(detect_trigger([TarotColumn(2, T_DEATH)]))
        self.assertIsNone(detect_trigger([TarotColumn(0, T_FOOL), TarotColumn(4, T_CUPS),
                                          TarotColumn(2, T_DEATH)]))

    def test_trigger_priority(self):
        cols = [TarotColumn(0, T_CUPS), TarotColumn(1, T_CUPS),
                TarotColumn(4, T_DEATH), TarotColumn(2, T_DEATH)]
        trigger = detect_trigger(cols)
        self.assertEqual((trigger.type, trigger.count, trigger.columns), (T_DEATH, 2, [2, 4]))

        cols = [TarotColumn(0, T_FOOL), TarotColumn(1, T_LOVERS),
                TarotColumn(2, T_FOOL), TarotColumn(3, T_LOVERS)]
        self.assertEqual(detect_trigger(cols).type, T_LOVERS)

    def test_trigger_counts_all_matching_columns(self):
        cols = [TarotColumn(4, T_PRIESTESS), TarotColumn(0, T_PRIESTESS), TarotColumn(2, T_PRIESTESS)]
        trigger = detect_trigger(cols)
        self.assertEqual((trigger.count, trigger.columns), (3, [0, 2, 4]))


if __name__ == "__main__":
    unittest.main()
