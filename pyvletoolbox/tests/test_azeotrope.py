#!/usr/bin/env python3
"""
Validation tests for the azeotrope module.
Run with: python3 -m pytest pyvletoolbox/tests/ -v
Or standalone: python3 pyvletoolbox/tests/test_azeotrope.py
"""

import sys
import os
import numpy as np

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..'))
from pyvletoolbox.eos import cubic_model, PR
from pyvletoolbox.errors import NoAzeotrope
from pyvletoolbox.params import SingleParam, PairParam
from pyvletoolbox.saturation import saturation_pressure
from pyvletoolbox.azeotrope import AzeotropeResult, azeotrope_pressure

T = 300.0


def symmetric_pair(kij):
    """ Two components with identical pure properties, coupled only through kij"""
    names = ['A', 'B']
    return PR(SingleParam('critical temperature', names, [500.0, 500.0]),
              SingleParam('critical pressure', names, [4e6, 4e6]),
              SingleParam('acentric factor', names, [0.2, 0.2]),
              PairParam('kij', names, [[0.0, kij], [kij, 0.0]]))


POSITIVE = symmetric_pair(0.05)

# =============================================================================
# Azeotropes
# =============================================================================

def test_symmetric_maximum_pressure_azeotrope():
    res = azeotrope_pressure(POSITIVE, T)
    assert isinstance(res, AzeotropeResult)
    assert np.allclose(res.x, [0.5, 0.5], atol=1e-8), f"x = {res.x}"
    psat = saturation_pressure(POSITIVE.pure_model(0), T).pressure
    assert res.pressure > psat, "Positive deviations give a maximum pressure azeotrope"
    assert res.pressure < 2 * psat
    assert res.v_vapor / res.v_liquid > 10

def test_azeotrope_is_an_equilibrium():
    res = azeotrope_pressure(POSITIVE, T)
    lnf_l = POSITIVE.ln_fugacity(res.v_liquid, T, res.x)
    lnf_v = POSITIVE.ln_fugacity(res.v_vapor, T, res.x)
    assert np.max(np.abs(lnf_l - lnf_v)) < 1e-8
    for V in (res.v_liquid, res.v_vapor):
        assert abs(POSITIVE.pressure(V, T, res.x) / res.pressure - 1.0) < 1e-8

def test_azeotrope_guesses():
    res = azeotrope_pressure(POSITIVE, T)
    again = azeotrope_pressure(POSITIVE, T, guess=res)
    assert again.iterations <= 2
    tuple_guess = azeotrope_pressure(POSITIVE, T, guess=(0.9 * res.pressure, [0.4, 0.6]))
    assert abs(tuple_guess.pressure / res.pressure - 1.0) < 1e-8
    assert np.allclose(tuple_guess.x, res.x, atol=1e-8)

def test_ideal_pair_has_no_azeotrope():
    model = cubic_model('PR', ['propane', 'n-butane'])
    try:
        azeotrope_pressure(model, T)
        assert False, "Expected NoAzeotrope for propane/n-butane"
    except NoAzeotrope:
        pass

def test_pure_component_rejected():
    try:
        azeotrope_pressure(cubic_model('PR', ['propane']), T)
        assert False, "Expected ValueError"
    except ValueError:
        pass


if __name__ == '__main__':
    print("=" * 70)
    print("AZEOTROPE MODULE VALIDATION TESTS")
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
