#!/usr/bin/env python3
"""
Tests for the simulation driver, report and CLI

Validates:
1.  Full runs reproduce the reference simulator's totals and counters
2.  Same (spins, seed) gives the same report; seed 0 plays like seed 1
3.  Progress callback cadence does not disturb the draw sequence
4.  Forced-feature runs (run_feature) and their argument checks
5.  Shard plan, sharded runs and Report.merge
6.  RTP agrees across seeds within the 95% confidence intervals
7.  Report metrics, JSON export and tolerance check
8.  Settings coercion and CLI fallbacks / exit codes
"""

import io
import json
import sys
from contextlib import redirect_stdout
from pathlib import Path

PROJECT_ROOT = Path(__file__).parent
sys.path.insert(0, str(PROJECT_ROOT))

from tarot_engine import cli
from tarot_engine.driver import (
    FEATURE_ORDER, FeatureStats, Report, SimulationDriver, _resolve,
    run, run_feature, run_sharded, shard_plan,
)
from tarot_engine.model import DEFAULT_MODEL, T_CUPS, T_DEATH, T_FOOL, T_LOVERS, T_PRIESTESS
from tarot_engine.rng import XorShift32, derive_shard_seed
from tarot_engine.settings import DEFAULT_SPINS, SimConfig, coerce_float, coerce_int


def _close(a, b, tol=1e-6):
    return abs(a - b) < tol


def _counters(report):
    return (
        report.spins, report.total_won, report.base_hits, report.base_won,
        report.single_tarots, report.mixed_tarots, report.max_win, report.sum_sq_win,
        [(s.triggers, s.win, s.spins) for s in report.features.values()],
    )


# ============================================================
# Reference runs
# ============================================================

def test_reference_run_20k():
    """20,000 spins from seed 12345, totals recorded from the reference simulator."""
    r = run(20000, 12345)
    assert r.spins == 20000
    assert _close(r.total_wagered, 3999.999999998553)
    assert _close(r.total_won, 3928.439999999914), r.total_won
    assert r.base_hits == 4258
    assert (r.single_tarots, r.mixed_tarots) == (249, 701)

    expected = {
        T_FOOL: (171, 780.8400000000003),
        T_CUPS: (140, 282.2000000000001),
        T_LOVERS: (71, 623.488),
        T_PRIESTESS: (20, 237.10399999999996),
        T_DEATH: (23, 418.4000000000001),
    }
    for t, (triggers, win) in expected.items():
        assert r.features[t].triggers == triggers, (t, r.features[t].triggers)
        assert _close(r.features[t].win, win), (t, r.features[t].win)
    assert _close(r.base_won + r.feature_won, r.total_won)
    print(f"✅ 20k reference run: RTP {r.rtp:.4f}%")


def test_reference_run_5k():
    r = run(5000, 777)
    assert _close(r.total_won, 1158.5600000000031), r.total_won
    assert r.base_hits == 1094
    assert (r.single_tarots, r.mixed_tarots) == (67, 157)
    triggers = [r.features[t].triggers for t in FEATURE_ORDER]
    assert triggers == [39, 39, 19, 6, 3], triggers
    assert _close(r.features[T_LOVERS].win, 416.4800000000001)
    print(f"✅ 5k reference run: RTP {r.rtp:.4f}%")


def test_deterministic():
    a = run(3000, 4242)
    b = run(3000, 4242)
    c = run(3000, 4243)
    assert _counters(a) == _counters(b)
    assert _counters(a) != _counters(c)
    print("✅ Same seed, same report")


def test_seed_zero_plays_like_seed_one():
    zero, one = run(500, 0), run(500, 1)
    assert zero.seed == 0
    assert _counters(zero) == _counters(one)
    print("✅ Seed 0 is remapped by the RNG")


def test_resolve_defaults():
    assert _resolve(None, None)[0] == DEFAULT_SPINS
    assert _resolve("abc", "x") == (DEFAULT_SPINS, 12345)
    assert _resolve(-5, 7) == (DEFAULT_SPINS, 7)
    assert _resolve("250", -1) == (250, 0xFFFFFFFF)
    assert _resolve(2.5e5, 7) == (250000, 7)
    assert _resolve("1e3", "9.0") == (1000, 9)
    print("✅ Driver falls back on missing or invalid input")


def test_progress_callback():
    calls = []
    driver = SimulationDriver(progress=lambda done, total, rtp: calls.append((done, total)))
    r = driver.run(1000, 9)
    assert [d for d, _ in calls] == [100, 200, 300, 400, 500, 600, 700, 800, 900]
    assert all(total == 1000 for _, total in calls)
    assert _counters(r) == _counters(run(1000, 9))
    print("✅ Progress fires every tenth and leaves the RNG alone")


def test_play_spin_accumulates():
    driver = SimulationDriver()
    report = Report()
    rng = XorShift32(12345)
    win = driver.play_spin(rng, report)
    assert win == 0.0
    assert report.spins == 1
    assert _close(report.total_wagered, 0.2)
    assert rng.state == 1869525001
    print("✅ play_spin wagers, draws and scores one spin")


# ============================================================
# Forced features
# ============================================================

def test_run_feature_cups():
    r = run_feature(T_CUPS, count=3, spins=400, seed=9)
    assert r.mode == "feature:T_CUPS"
    assert r.spins == 400
    stats = r.features[T_CUPS]
    assert stats.triggers == 400 and stats.spins == 400
    assert all(r.features[t].triggers == 0 for t in FEATURE_ORDER if t != T_CUPS)
    # three columns of 2-3 tokens worth 3-10 times the bet
    assert 400 * 6 * 3 * 0.2 - 1e-6 <= r.total_won <= 400 * 9 * 10 * 0.2 + 1e-6
    assert r.max_win <= 18.0 + 1e-9
    print(f"✅ Cups x3 mean payout {r.rtp / 100:.2f} bets")


def test_run_feature_spin_counts():
    r = run_feature(T_PRIESTESS, count=2, spins=50, seed=3)
    assert r.features[T_PRIESTESS].spins == 50 * 6
    r = run_feature(T_LOVERS, count=4, spins=50, seed=3)
    assert r.features[T_LOVERS].spins == 50 * 6
    r = run_feature(T_DEATH, count=2, spins=50, seed=3)
    assert 50 * 10 <= r.features[T_DEATH].spins <= 50 * 13
    r = run_feature("t_fool", count=5, spins=50, seed=3)
    assert r.mode == "feature:T_FOOL"
    print("✅ run_feature counts the free spins played")


def test_run_feature_rejects_bad_args():
    for tarot, count in (("T_TOWER", 2), (T_CUPS, 1), (T_CUPS, 6)):
        try:
            run_feature(tarot, count=count, spins=10, seed=1)
        except ValueError:
            continue
        raise AssertionError(f"accepted {tarot} x{count}")
    print("✅ run_feature validates tarot and count")


# ============================================================
# Sharding
# ============================================================

def test_shard_plan():
    plan = shard_plan(10, 1, 3)
    assert [n for n, _ in plan] == [4, 3, 3]
    assert [s for _, s in plan] == [derive_shard_seed(1, i) for i in range(3)]
    assert len(shard_plan(2, 1, 4)) == 2
    print("✅ Shard plan splits spins and derives seeds")


def test_run_sharded_single_worker_is_run():
    assert _counters(run_sharded(600, 31, workers=1)) == _counters(run(600, 31))
    print("✅ One worker is a plain run")


def test_run_sharded_merges_shards():
    merged = run_sharded(600, 31, workers=2)
    assert merged.spins == 600
    assert merged.shards == 2
    assert merged.seed == 31
    parts = [run(n, s) for n, s in shard_plan(600, 31, 2)]
    assert merged.base_hits == sum(p.base_hits for p in parts)
    assert _close(merged.total_won, sum(p.total_won for p in parts))
    print("✅ Sharded run equals the sum of its shards")


def test_report_merge():
    a = Report(spins=10, total_wagered=2.0, total_won=1.0, base_hits=3, max_win=0.8)
    b = Report(spins=5, total_wagered=1.0, total_won=4.0, base_hits=1, max_win=3.5)
    a.features[T_DEATH] = FeatureStats(triggers=1, win=3.5, spins=11)
    m = a.merge(b)
    assert (m.spins, m.base_hits, m.shards) == (15, 4, 2)
    assert _close(m.total_won, 5.0) and _close(m.max_win, 3.5)
    assert m.features[T_DEATH].triggers == 1 and m.features[T_DEATH].spins == 11
    assert a.spins == 10
    print("✅ Report.merge sums counters and keeps the max win")


# ============================================================
# Convergence
# ============================================================

def test_rtp_converges_across_seeds():
    """Independent seeds agree on the RTP within their 95% intervals."""
    reports = [run(60000, seed) for seed in (98765, 12345, 3000000000)]
    half = [(r.confidence_95[1] - r.confidence_95[0]) / 2 for r in reports]
    for i in range(len(reports)):
        for j in range(i + 1, len(reports)):
            a, b = reports[i], reports[j]
            assert a.within_tolerance(b.rtp, half[i] + half[j]), (a.seed, a.rtp, b.seed, b.rtp)
    assert all(0 < h < 15 for h in half), half
    rtps = ", ".join(f"{r.rtp:.2f}%" for r in reports)
    print(f"✅ RTP converges across seeds: {rtps}")


# ============================================================
# Report
# ============================================================

def test_empty_report():
    r = Report()
    assert r.rtp == 0.0 and r.base_rtp == 0.0 and r.feature_rtp == 0.0
    assert r.std_dev == 0.0
    assert r.confidence_95 == (0.0, 0.0)
    assert r.trigger_rate(T_FOOL) == 0.0
    print("✅ Empty report has zero metrics")


def test_report_metrics():
    r = Report(spins=4, total_wagered=0.8, total_won=1.0, sum_sq_win=1.0, base_won=0.2)
    assert _close(r.rtp, 125.0)
    assert _close(r.house_edge, -25.0)
    assert _close(r.base_rtp, 25.0)
    # one spin won 1.0, three won nothing: variance 0.1875
    assert _close(r.std_dev, 0.1875 ** 0.5 / 0.2)
    lo, hi = r.confidence_95
    assert lo < r.rtp < hi
    assert r.within_tolerance(125.4, 0.5)
    assert not r.within_tolerance(96.0, 0.5)
    print("✅ Report metrics")


def test_report_json_and_summary():
    r = run(300, 5)
    d = json.loads(r.to_json())
    assert d["spins"] == 300 and d["seed"] == 5 and d["mode"] == "base"
    assert set(d["features"]) == {"Fool", "Cups", "Lovers", "Priestess", "Death"}
    assert d["rtp_pct"] == round(r.rtp, 4)
    text = r.summary()
    assert "RTP SIMULATION RESULTS" in text
    assert "Total Feature RTP" in text
    print("✅ Report exports JSON and a text summary")


# ============================================================
# Settings & CLI
# ============================================================

def test_coercion():
    assert coerce_int("12", 0) == 12
    assert coerce_int(" 7 ", 0) == 7
    assert coerce_int("abc", 5) == 5
    assert coerce_int(None, 3) == 3
    assert coerce_int("250000.0", 0) == 250000
    assert coerce_int(2.5e5, 0) == 250000
    assert coerce_int("nan", 5) == 5
    assert coerce_int("inf", 5) == 5
    assert coerce_float("96.5", None) == 96.5
    assert coerce_float("n/a", 1.0) == 1.0
    print("✅ Settings coercion")


def test_sim_config_fallbacks():
    assert SimConfig.spins("250") == 250
    assert SimConfig.spins("-4") == SimConfig.spins(None)
    assert SimConfig.spins("lots") == SimConfig.spins(None)
    assert SimConfig.seed("0") == SimConfig.seed(None)
    assert SimConfig.seed("-1") == 0xFFFFFFFF
    assert SimConfig.seed("42") == 42
    # 2**32 wraps to 0, which counts as missing
    assert SimConfig.seed("4294967296") == SimConfig.seed(None)
    assert SimConfig.seed("4294967296") != 0
    print("✅ SimConfig falls back like the classic CLI")


def test_cli_resolve():
    params = cli.resolve(cli.parse_args(["5000", "42", "--count", "9", "--workers", "0"]))
    assert params["spins"] == 5000
    assert params["seed"] == 42
    assert params["count"] == 2
    assert params["workers"] == 1

    params = cli.resolve(cli.parse_args(["many", "nope", "--target-rtp", "96"]))
    assert params["spins"] == SimConfig.spins(None)
    assert params["seed"] == SimConfig.seed(None)
    assert params["target_rtp"] == 96.0

    cols = DEFAULT_MODEL.cols
    assert cli.resolve(cli.parse_args(["10", "1", "--count", str(cols)]))["count"] == cols
    assert cli.resolve(cli.parse_args(["10", "1", "--count", str(cols + 1)]))["count"] == 2
    print("✅ CLI resolves arguments with fallbacks")


def test_cli_json_output():
    buf = io.StringIO()
    with redirect_stdout(buf):
        code = cli.main(["300", "7", "--json"])
    assert code == 0
    d = json.loads(buf.getvalue())
    assert d["spins"] == 300 and d["seed"] == 7
    print("✅ CLI --json prints a parseable report")


def test_cli_target_rtp_exit_code():
    buf = io.StringIO()
    with redirect_stdout(buf):
        code = cli.main(["300", "7", "--json", "--target-rtp", "1000"])
    assert code == 1
    print("✅ CLI exits 1 when the RTP misses the target")


def test_cli_feature_mode():
    buf = io.StringIO()
    with redirect_stdout(buf):
        code = cli.main(["100", "3", "--feature", "T_CUPS", "--count", "3", "--json"])
    assert code == 0
    d = json.loads(buf.getvalue())
    assert d["mode"] == "feature:T_CUPS"
    assert d["features"]["Cups"]["triggers"] == 100
    print("✅ CLI --feature runs forced triggers")


# ============================================================
# Runner
# ============================================================

if __name__ == "__main__":
    tests = [
        test_reference_run_20k,
        test_reference_run_5k,
        test_deterministic,
        test_seed_zero_plays_like_seed_one,
        test_resolve_defaults,
        test_progress_callback,
        test_play_spin_accumulates,
        test_run_feature_cups,
        test_run_feature_spin_counts,
        test_run_feature_rejects_bad_args,
        test_shard_plan,
        test_run_sharded_single_worker_is_run,
        test_run_sharded_merges_shards,
        test_report_merge,
        test_rtp_converges_across_seeds,
        test_empty_report,
        test_report_metrics,
        test_report_json_and_summary,
        test_coercion,
        test_sim_config_fallbacks,
        test_cli_resolve,
        test_cli_json_output,
        test_cli_target_rtp_exit_code,
        test_cli_feature_mode,
    ]

    print(f"\n{'='*60}")
    print(f"Tarot Driver Tests: {len(tests)} tests")
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
