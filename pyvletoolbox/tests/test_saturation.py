#!/usr/bin/env python3
"""
Validation tests for the saturation module.
Run with: python3 -m pytest pyvletoolbox/tests/ -v
Or standalone: python3 pyvletoolbox/tests/test_saturation.py
"""

import sys
import os
import numpy as np

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..'))
from pyvletoolbox.classes import error_kind
from pyvletoolbox.eos import cubic_model
from pyvletoolbox.errors import SaturationNotFound
from pyvletoolbox.critical import crit_pure
from pyvletoolbox.initial import CubicInitialGuess
from pyvletoolbox.saturation import SaturationResult, saturation_pressure, saturation_curve, enthalpy_vaporization

PROPANE = cubic_model('PR', ['propane'])
ONE = np.ones(1)

# =============================================================================
# Saturation pressure
# =============================================================================

def test_propane_vapor_pressure():
    """PR propane near its normal boiling point (231 K)"""
    T = 230.0
    sat = saturation_pressure(PROPANE, T)
    assert isinstance(sat, SaturationResult)
    assert sat.converged
    assert 8e4 < sat.pressure < 1.2e5, f"Psat = {sat.pressure} Pa"
    assert sat.v_vapor / sat.v_liquid > 100
    for V in (sat.v_liquid, sat.v_vapor):
        assert abs(PROPANE.pressure(V, T, ONE) / sat.pressure - 1.0) < 1e-8
    lnf_l = PROPANE.ln_fugacity(sat.v_liquid, T, ONE)[0]
    lnf_v = PROPANE.ln_fugacity(sat.v_vapor, T, ONE)[0]
    assert abs(lnf_l - lnf_v) < 1e-9

def test_reseeding_with_solution_is_immediate():
    sat = saturation_pressure(PROPANE, 300.0)
    again = saturation_pressure(PROPANE, 300.0, guess=sat)
    assert again.iterations <= 3, f"Took {again.iterations} iterations from a converged seed"
    assert abs(again.pressure / sat.pressure - 1.0) < 1e-9

def test_guess_formats():
    sat = saturation_pressure(PROPANE, 280.0)
    from_pair = saturation_pressure(PROPANE, 285.0, guess=(sat.v_liquid, sat.v_vapor))
    from_triple = saturation_pressure(PROPANE, 285.0, guess=(sat.pressure, sat.v_liquid, sat.v_vapor))
    assert abs(from_pair.pressure / from_triple.pressure - 1.0) < 1e-8
    assert from_pair.pressure > sat.pressure
    try:
        saturation_pressure(PROPANE, 285.0, guess=(1.0, 2.0, 3.0, 4.0))
        assert False, "Expected ValueError for a malformed guess"
    except ValueError:
        pass

def test_cubic_provider_agrees():
    generic = saturation_pressure(PROPANE, 320.0)
    cubic = saturation_pressure(PROPANE, 320.0, provider=CubicInitialGuess())
    assert abs(generic.pressure / cubic.pressure - 1.0) < 1e-8

def test_vdw_reduced_vapor_pressure():
    """van der Waals coexistence at Tr = 0.9 has Pr = 0.6470"""
    model = cubic_model('vdW', ['propane'])
    sat = saturation_pressure(model, 0.9 * 369.89)
    assert abs(sat.pressure / 4.2512e6 / 0.6470 - 1.0) < 1e-3, f"Pr = {sat.pressure / 4.2512e6}"

def test_fails_at_and_above_critical_temperature():
    Tc = crit_pure(PROPANE).temperature
    for T in [Tc * (1 + 1e-6), 1.05 * Tc]:
        try:
            saturation_pressure(PROPANE, T)
            assert False, f"Expected SaturationNotFound at T = {T}"
        except SaturationNotFound as e:
            assert e.kind in (error_kind.DEGENERATE, error_kind.NOT_CONVERGED), f"Unexpected kind {e.kind}"

def test_subcritical_seed_above_critical_fails():
    below = saturation_pressure(PROPANE, 365.0)
    try:
        saturation_pressure(PROPANE, 375.0, guess=below)
        assert False, "Expected SaturationNotFound above Tc"
    except SaturationNotFound:
        pass

def test_mixture_model_rejected():
    mix = cubic_model('PR', ['propane', 'n-butane'])
    try:
        saturation_pressure(mix, 300.0)
        assert False, "Expected ValueError for a mixture model"
    except ValueError:
        pass

# =============================================================================
# Sweeps and derived properties
# =============================================================================

def test_saturation_curve_sequential_and_threaded():
    temperatures = [200.0, 250.0, 300.0, 350.0, 400.0]
    seq = saturation_curve(PROPANE, temperatures)
    par = saturation_curve(PROPANE, temperatures, threaded=True)
    assert list(seq.columns) == ['T', 'P', 'V_liquid', 'V_vapor', 'iterations']
    assert len(seq) == len(temperatures)
    assert np.isnan(seq['P'].iloc[-1]) and np.isnan(par['P'].iloc[-1]), "400 K is supercritical"
    assert np.all(np.diff(seq['P'].iloc[:-1]) > 0), "Vapor pressure should rise with temperature"
    assert np.allclose(seq['P'].iloc[:-1], par['P'].iloc[:-1], rtol=1e-8)

def test_enthalpy_of_vaporization():
    dh = enthalpy_vaporization(PROPANE, 231.0)
    assert 15e3 < dh < 23e3, f"ΔHvap = {dh} J/mol"
    assert enthalpy_vaporization(PROPANE, 350.0) < dh, "ΔHvap should fall towards the critical point"


if __name__ == '__main__':
    print("=" * 70)
    print("SATURATION MODULE VALIDATION TESTS")
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
