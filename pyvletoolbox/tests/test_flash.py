#!/usr/bin/env python3
"""
Validation tests for the flash module.
Run with: python3 -m pytest pyvletoolbox/tests/ -v
Or standalone: python3 pyvletoolbox/tests/test_flash.py
"""

import sys
import os
import numpy as np

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..'))
from pyvletoolbox.classes import phase, error_kind
from pyvletoolbox.eos import cubic_model
from pyvletoolbox.errors import FlashInfeasible
from pyvletoolbox.flash import RachfordRiceResult, FlashResult, rachford_rice, rachford_rice_multiphase, tp_flash

ATOL = 1e-12

MIX = cubic_model('PR', ['propane', 'n-butane'])


def rr_function(beta, z, K):
    return np.sum(z * (K - 1) / (1 + beta * (K - 1)))

# =============================================================================
# Two-phase Rachford-Rice
# =============================================================================

def test_symmetric_split():
    res = rachford_rice([0.5, 0.5], [2.0, 0.5])
    assert isinstance(res, RachfordRiceResult)
    assert abs(res.beta - 0.5) < ATOL, f"beta = {res.beta}"
    assert np.allclose(res.x, [1 / 3, 2 / 3], atol=ATOL)
    assert np.allclose(res.y, [2 / 3, 1 / 3], atol=ATOL)
    assert np.allclose(res.phase_fractions, [0.5, 0.5], atol=ATOL)

def test_root_is_unique_on_physical_interval():
    z = np.array([0.2, 0.3, 0.5])
    K = np.array([3.0, 1.2, 0.3])
    res = rachford_rice(z, K)
    assert 0 < res.beta < 1
    assert abs(rr_function(res.beta, z, K)) < 1e-12
    lo, hi = 1 / (1 - K.max()), 1 / (1 - K.min())
    grid = np.linspace(lo, hi, 2002)[1:-1]
    values = np.array([rr_function(b, z, K) for b in grid])
    assert np.all(np.diff(values) < 0), "Rachford-Rice function must decrease monotonically"
    assert np.count_nonzero(np.diff(np.sign(values))) == 1

def test_mass_balance_and_normalization():
    cases = [([0.5, 0.5], [1e3, 1e-3]),
             ([0.1, 0.2, 0.3, 0.4], [5.0, 2.0, 0.8, 0.1]),
             ([0.98, 0.02], [1.05, 0.2]),
             ([0.01, 0.99], [50.0, 0.99])]
    for z, K in cases:
        z, K = np.array(z), np.array(K)
        res = rachford_rice(z, K)
        assert 0 < res.beta < 1, f"beta = {res.beta} for K = {K}"
        assert np.allclose((1 - res.beta) * res.x + res.beta * res.y, z, atol=1e-12)
        assert abs(np.sum(res.x) - 1) < 1e-10 and abs(np.sum(res.y) - 1) < 1e-10
        assert np.allclose(res.y, K * res.x, rtol=1e-10)

def test_single_phase_feeds_are_infeasible():
    for K in ([0.5, 0.8], [1.5, 2.0]):
        try:
            rachford_rice([0.5, 0.5], K)
            assert False, f"Expected FlashInfeasible for K = {K}"
        except FlashInfeasible as e:
            assert e.kind == error_kind.INFEASIBLE
            assert e.no_solution

def test_unit_k_values_are_degenerate():
    try:
        rachford_rice([0.3, 0.7], [1.0, 1.0])
        assert False, "Expected FlashInfeasible"
    except FlashInfeasible as e:
        assert e.kind == error_kind.DEGENERATE

def test_invalid_k_values():
    for K in ([2.0], [2.0, -0.5], [2.0, np.nan]):
        try:
            rachford_rice([0.5, 0.5], K)
            assert False, f"Expected ValueError for K = {K}"
        except ValueError:
            pass

# =============================================================================
# Multiphase Rachford-Rice
# =============================================================================

REFERENCE = np.array([0.6, 0.3, 0.1])
PHASE_2 = np.array([0.1, 0.7, 0.2])
PHASE_3 = np.array([0.2, 0.1, 0.7])
K3 = np.array([PHASE_2 / REFERENCE, PHASE_3 / REFERENCE])

def test_multiphase_reduces_to_two_phase():
    z, K = [0.2, 0.3, 0.5], [3.0, 1.2, 0.3]
    two = rachford_rice(z, K)
    multi = rachford_rice_multiphase(z, [K])
    assert abs(multi.beta[0] - two.beta) < 1e-10
    assert np.allclose(multi.compositions, two.compositions, atol=1e-10)

def test_three_phase_split_recovered():
    fractions = np.array([0.5, 0.3, 0.2])
    z = fractions @ np.array([REFERENCE, PHASE_2, PHASE_3])
    res = rachford_rice_multiphase(z, K3)
    assert np.allclose(res.phase_fractions, fractions, atol=1e-10), f"{res.phase_fractions}"
    assert np.allclose(res.compositions, [REFERENCE, PHASE_2, PHASE_3], atol=1e-10)
    assert np.allclose(res.phase_fractions @ res.compositions, z, atol=1e-12)

def test_three_phase_warm_start():
    fractions = np.array([0.5, 0.3, 0.2])
    z = fractions @ np.array([REFERENCE, PHASE_2, PHASE_3])
    cold = rachford_rice_multiphase(z, K3)
    warm = rachford_rice_multiphase(z, K3, beta0=[0.29, 0.21])
    assert warm.iterations <= cold.iterations
    assert np.allclose(warm.phase_fractions, cold.phase_fractions, atol=1e-10)

def test_negative_phase_fraction_is_infeasible():
    fractions = np.array([1.2, -0.1, -0.1])
    z = fractions @ np.array([REFERENCE, PHASE_2, PHASE_3])
    try:
        rachford_rice_multiphase(z, K3)
        assert False, "Expected FlashInfeasible"
    except FlashInfeasible as e:
        assert e.kind == error_kind.INFEASIBLE

def test_multiphase_shape_checks():
    try:
        rachford_rice_multiphase([0.5, 0.5], [[2.0, 0.5, 1.0]])
        assert False, "Expected ValueError for mismatched K shape"
    except ValueError:
        pass

# =============================================================================
# Isothermal flash
# =============================================================================

def test_propane_butane_flash():
    p, T, z = 5e5, 300.0, np.array([0.5, 0.5])
    res = tp_flash(MIX, p, T, z)
    assert isinstance(res, FlashResult)
    assert res.phases == (phase.LIQUID, phase.VAPOR)
    beta = res.phase_fractions[1]
    assert 0 < beta < 1, f"Vapor fraction {beta}"
    x, y = res.compositions
    assert x[0] < 0.5 < y[0], "Propane should concentrate in the vapor"
    assert np.allclose(res.phase_fractions @ res.compositions, z, atol=1e-10)
    Vl, Vv = res.volumes
    assert Vl < Vv
    lnf_l = MIX.ln_fugacity(Vl, T, x)
    lnf_v = MIX.ln_fugacity(Vv, T, y)
    assert np.max(np.abs(lnf_l - lnf_v)) < 1e-7, "Phases not in equilibrium"

def test_flash_warm_start():
    res = tp_flash(MIX, 5e5, 300.0, [0.5, 0.5])
    again = tp_flash(MIX, 5e5, 300.0, [0.5, 0.5], guess=res)
    assert again.iterations <= 3
    assert np.allclose(again.compositions, res.compositions, atol=1e-8)

def test_single_phase_flash_fails():
    try:
        tp_flash(MIX, 2e6, 300.0, [0.5, 0.5])
        assert False, "Expected FlashInfeasible for a compressed liquid"
    except FlashInfeasible as e:
        assert e.stage == 'rachford-rice', f"Failed during {e.stage}"
        assert e.kind == error_kind.INFEASIBLE


def test_multiphase_round_off_fraction_clipped():
    fractions = np.array([0.5, 0.5, 0.0])
    z = fractions @ np.array([REFERENCE, PHASE_2, PHASE_3])
    res = rachford_rice_multiphase(z, K3)
    assert np.all(res.phase_fractions >= 0) and np.all(res.phase_fractions <= 1)
    assert np.allclose(res.phase_fractions, fractions, atol=1e-10), f"{res.phase_fractions}"
    assert np.allclose(res.beta, res.phase_fractions[1:])

def test_multiphase_negative_flash():
    fractions = np.array([1.2, -0.1, -0.1])
    z = fractions @ np.array([REFERENCE, PHASE_2, PHASE_3])
    res = rachford_rice_multiphase(z, K3, negative=True)
    assert np.allclose(res.phase_fractions, fractions, atol=1e-10), f"{res.phase_fractions}"
    assert np.allclose(res.compositions, [REFERENCE, PHASE_2, PHASE_3], atol=1e-10)

def test_multiphase_infeasible_split_from_warm_start():
    fractions = np.array([1.2, -0.1, -0.1])
    z = fractions @ np.array([REFERENCE, PHASE_2, PHASE_3])
    try:
        rachford_rice_multiphase(z, K3, beta0=[-0.09, -0.09])
        assert False, "Expected FlashInfeasible"
    except FlashInfeasible as e:
        assert e.kind == error_kind.INFEASIBLE


if __name__ == '__main__':
    print("=" * 70)
    print("FLASH MODULE VALIDATION TESTS")
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
