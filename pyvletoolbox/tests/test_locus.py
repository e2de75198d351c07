#!/usr/bin/env python3
"""
Validation tests for the locus module.
Run with: python3 -m pytest pyvletoolbox/tests/ -v
Or standalone: python3 pyvletoolbox/tests/test_locus.py
"""

import sys
import os
import tempfile
from dataclasses import dataclass
import numpy as np

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..'))
from pyvletoolbox.eos import cubic_model, PR
from pyvletoolbox.errors import SaturationNotFound
from pyvletoolbox.params import SingleParam, PairParam
from pyvletoolbox.initial import CubicInitialGuess
from pyvletoolbox.critical import ucst_mix
from pyvletoolbox.locus import LocusCurve, UCEPResult, trace, crit_locus, ucst_curve, vlle_curve, ucep_mix


def symmetric_pair(kij):
    """ Two components with identical pure properties, coupled only through kij"""
    names = ['A', 'B']
    return PR(SingleParam('critical temperature', names, [500.0, 500.0]),
              SingleParam('critical pressure', names, [4e6, 4e6]),
              SingleParam('acentric factor', names, [0.2, 0.2]),
              PairParam('kij', names, [[0.0, kij], [kij, 0.0]]))


@dataclass
class Point:
    value: float
    composition: np.ndarray
    iterations: int
    converged: bool = True


def point(v):
    return Point(v**2, np.array([v / 10, 1 - v / 10]), 1)


IMMISCIBLE = symmetric_pair(0.3)

# =============================================================================
# Continuation driver
# =============================================================================

def test_trace_stops_after_consecutive_failures():
    def solve(v, seed):
        if v > 5:
            raise SaturationNotFound(f"beyond the end at {v}")
        return point(v)
    curve = trace(solve, range(1, 11), parameter='v')
    assert curve.values == [1.0, 2.0, 3.0, 4.0, 5.0]
    assert curve.failed == [6.0, 7.0]
    assert curve.terminated == 'consecutive failures'

def test_trace_skips_isolated_failure():
    def solve(v, seed):
        if v == 3:
            raise SaturationNotFound("isolated")
        return point(v)
    curve = trace(solve, [1, 2, 3, 4, 5])
    assert curve.values == [1.0, 2.0, 4.0, 5.0]
    assert curve.failed == [3.0]
    assert curve.terminated == 'endpoint reached'
    assert len(curve) == 4

def test_trace_seeds():
    seeds = []
    def solve(v, seed):
        seeds.append(seed)
        return point(v)
    trace(solve, [1, 2, 3], seed='start')
    assert seeds[0] == 'start'
    assert seeds[1].value == 1.0, "Second point is seeded from the first result"
    assert abs(seeds[2].value - 16.0) < 1e-12, "Positive scalars extrapolate in their logarithm"
    assert np.allclose(seeds[2].composition, [0.3, 0.7])

def test_trace_falls_back_to_last_result():
    seeds = []
    def solve(v, seed):
        seeds.append(seed)
        if v == 3 and seed.value != 4.0:
            raise SaturationNotFound("extrapolated seed rejected")
        return point(v)
    curve = trace(solve, [1, 2, 3])
    assert curve.values == [1.0, 2.0, 3.0]
    assert seeds[-1].value == 4.0

def test_trace_without_extrapolation():
    seeds = []
    def solve(v, seed):
        seeds.append(seed)
        return point(v)
    trace(solve, [1, 2, 3], extrapolate=False)
    assert seeds[2].value == 4.0

def test_other_errors_propagate():
    def solve(v, seed):
        raise ValueError("bad input")
    try:
        trace(solve, [1, 2])
        assert False, "Expected ValueError to propagate"
    except ValueError:
        pass

def test_curve_table_and_export():
    curve = trace(lambda v, seed: point(v), [1, 2], parameter='v')
    df = curve.to_dataframe()
    assert list(df.columns) == ['v', 'value', 'composition1', 'composition2', 'iterations']
    assert np.allclose(df['composition1'], [0.1, 0.2])
    text = str(curve)
    assert 'composition2' in text
    with tempfile.TemporaryDirectory() as tmp:
        filename = os.path.join(tmp, 'curve.xlsx')
        assert curve.export(filename) == text
        assert os.path.exists(filename)
    assert 'Empty curve' in str(LocusCurve('T'))

# =============================================================================
# Phase diagram curves
# =============================================================================

def test_propane_butane_critical_locus():
    model = cubic_model('PR', ['propane', 'n-butane'])
    curve = crit_locus(model, [0.2, 0.4, 0.6, 0.8], provider=CubicInitialGuess())
    assert len(curve) == 4 and not curve.failed
    temperatures = [r.temperature for r in curve.results]
    assert np.all(np.diff(temperatures) < 0), "Critical temperature falls as propane is added"
    assert all(369.89 < t < 425.125 for t in temperatures)

def test_ucst_curve():
    curve = ucst_curve(IMMISCIBLE, [440.0, 450.0, 460.0])
    assert len(curve) == 3
    pressures = [r.pressure for r in curve.results]
    assert np.all(np.diff(pressures) > 0)
    assert all(abs(r.composition[0] - 0.5) < 1e-6 for r in curve.results)

def test_three_phase_line():
    curve = vlle_curve(IMMISCIBLE, [300.0, 320.0, 340.0])
    assert len(curve) == 3
    pressures = [r.pressure for r in curve.results]
    assert np.all(np.diff(pressures) > 0)
    splits = [r.x[0] - r.w[0] for r in curve.results]
    assert np.all(np.diff(splits) < 0), "Liquids approach each other as temperature rises"

def test_upper_critical_end_point():
    ucep = ucep_mix(IMMISCIBLE)
    assert isinstance(ucep, UCEPResult)
    assert 380.0 < ucep.temperature < 480.0, f"T_ucep = {ucep.temperature}"
    assert abs(ucep.x[0] - 0.5) < 1e-6 and abs(ucep.y[0] - 0.5) < 1e-6
    assert ucep.pressure > 0
    assert ucep.v_vapor > ucep.v_critical
    crit = ucst_mix(IMMISCIBLE, ucep.temperature)
    assert abs(crit.pressure / ucep.pressure - 1.0) < 1e-5, "UCEP lies on the liquid-liquid critical line"

def test_binary_only():
    ternary = cubic_model('PR', ['propane', 'n-butane', 'n-pentane'])
    for call in (lambda: crit_locus(ternary, [0.5]), lambda: ucep_mix(ternary)):
        try:
            call()
            assert False, "Expected ValueError"
        except ValueError:
            pass


if __name__ == '__main__':
    print("=" * 70)
    print("LOCUS MODULE VALIDATION TESTS")
    print("=" * 70)

    tests = [v for k, v in globals().items() if k.startswith('test_')]
    passed = 0
    failed = 0
    errors = []

    for test in tests:
        try:
            test()
            passed += 1
            print(f"  PASS: {test.__name__}")
        except Exception as e:
            failed += 1
            errors.append((test.__name__, str(e)))
            print(f"  FAIL: {test.__name__}: {e}")

    print(f"\n{'=' * 70}")
    print(f"Results: {passed} passed, {failed} failed out of {passed + failed}")

    print("=" * 70)
    sys.exit(1 if failed > 0 else 0)
