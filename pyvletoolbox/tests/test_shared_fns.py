#!/usr/bin/env python3
"""
Validation tests for the shared_fns module.
Run with: python3 -m pytest pyvletoolbox/tests/ -v
Or standalone: python3 pyvletoolbox/tests/test_shared_fns.py
"""

import sys
import os
import numpy as np

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..'))
from pyvletoolbox.shared_fns import expand_fractions, in_simplex, fd_jacobian, damped_newton

# =============================================================================
# Helpers
# =============================================================================

def test_expand_fractions():
    assert np.allclose(expand_fractions([0.2, 0.3]), [0.2, 0.3, 0.5])
    assert np.allclose(expand_fractions([]), [1.0])

def test_in_simplex():
    assert in_simplex(np.array([0.2, 0.8]), np.array([0.5, 0.5]))
    assert not in_simplex(np.array([0.0, 1.0]))
    assert not in_simplex(np.array([np.nan, 1.0]))
    assert not in_simplex(np.array([0.1, 0.9]), eps=0.2)

def test_fd_jacobian():
    fun = lambda x: np.array([x[0]**2 * x[1], np.sin(x[1])])
    x = np.array([1.5, 0.3])
    exact = np.array([[2 * x[0] * x[1], x[0]**2], [0.0, np.cos(x[1])]])
    assert np.allclose(fd_jacobian(fun, x), exact, rtol=1e-8, atol=1e-10)

def test_fd_jacobian_one_sided_near_domain_edge():
    fun = lambda x: np.array([np.sqrt(x[0]) if x[0] >= 1.0 else np.nan])
    J = fd_jacobian(fun, np.array([1.0]))
    assert abs(J[0, 0] - 0.5) < 1e-5

# =============================================================================
# Damped Newton
# =============================================================================

def test_newton_converges():
    fun = lambda x: np.array([x[0]**2 - 2.0, x[0] * x[1] - 1.0])
    res = damped_newton(fun, [1.0, 1.0])
    assert res.converged and res.status == 'converged'
    assert np.allclose(res.x, [np.sqrt(2), 1 / np.sqrt(2)], atol=1e-10)

def test_newton_step_limit():
    fun = lambda x: np.array([np.exp(x[0]) - 1e4])
    res = damped_newton(fun, [0.0], max_step=0.5)
    assert res.converged
    assert res.status == 'converged'
    assert abs(res.x[0] - np.log(1e4)) < 1e-8
    assert res.iterations >= 2 * np.log(1e4) - 1, "Each step is capped at 0.5"

def test_newton_reports_infeasible():
    fun = lambda x: np.array([x[0] + 1.0])
    res = damped_newton(fun, [1.0], feasible=lambda x: x[0] > 0)
    assert not res.converged
    assert res.status in ('infeasible', 'stalled')

def test_newton_reports_non_finite_start():
    res = damped_newton(lambda x: np.array([np.nan]), [1.0])
    assert res.status == 'non-finite' and not res.converged

def test_newton_without_root():
    fun = lambda x: np.array([x[0]**2 + 1.0])
    res = damped_newton(fun, [0.5], max_iter=50)
    assert not res.converged
    assert res.status in ('stalled', 'singular', 'max_iter')


def test_fd_jacobian_stays_inside_feasible_region():
    def fun(x):
        if x[0] < 0:
            raise ValueError("negative mole fraction")
        return np.array([x[0]**2])
    x = np.array([1e-8])
    J = fd_jacobian(fun, x, feasible=lambda u: u[0] >= 0)
    assert abs(J[0, 0] - 2 * x[0]) < 2e-6

def test_newton_on_residual_undefined_outside_domain():
    def fun(x):
        if x[0] < 0:
            raise ValueError("negative mole fraction")
        return np.array([np.log(x[0] + 1e-3) - np.log(2e-3)])
    res = damped_newton(fun, [1e-9], feasible=lambda u: u[0] >= 0)
    assert res.converged
    assert abs(res.x[0] - 1e-3) < 1e-10

def test_newton_capped_step_with_small_relative_decrease():
    fun = lambda x: np.array([np.exp(x[0]) - 1e3, x[1] - 1.0])
    res = damped_newton(fun, [0.0, 0.0], max_step=0.2)
    assert res.converged, f"status = {res.status}"
    assert np.allclose(res.x, [np.log(1e3), 1.0], atol=1e-8)


if __name__ == '__main__':
    print("=" * 70)
    print("SHARED FUNCTIONS VALIDATION TESTS")
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
