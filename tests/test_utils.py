# -*- coding: utf-8 -*-
"""Linear algebra helpers."""

import numpy as np
import pytest
from numpy.testing import assert_allclose

from gnms.utils import as_weight_matrix, checked_inverse, chol_solve, clamped_eig


class TestCholSolve:
    def test_solves_spd_system(self):
        rng = np.random.default_rng(3)
        M = rng.standard_normal((4, 4))
        A = M @ M.T + 4.0 * np.eye(4)
        B = rng.standard_normal((4, 2))
        X = chol_solve(A, B)
        assert_allclose(A @ X, B, atol=1e-10)

    def test_inverse_of_spd(self):
        A = np.array([[2.0, 0.5], [0.5, 1.0]])
        assert_allclose(chol_solve(A, np.eye(2)), np.linalg.inv(A), atol=1e-12)

    @pytest.mark.parametrize("A", [
        np.array([[-1.0]]),
        np.array([[1.0, 0.0], [0.0, -1e-3]]),
        np.zeros((2, 2)),
    ])
    def test_not_positive_definite_raises(self, A):
        with pytest.raises(np.linalg.LinAlgError):
            chol_solve(A, np.eye(A.shape[0]))

    def test_non_finite_input_raises(self):
        with pytest.raises(FloatingPointError):
            chol_solve(np.array([[np.nan]]), np.eye(1))


class TestOtherHelpers:
    def test_clamped_eig_floors_eigenvalues(self):
        V, lam, lam_min = clamped_eig(np.diag([3.0, -2.0]), 0.1)
        assert lam_min == -2.0
        assert_allclose(np.sort(lam), [0.1, 3.0])
        assert_allclose((V * lam) @ V.T, np.diag([3.0, 0.1]), atol=1e-12)

    def test_checked_inverse_rejects_ill_conditioned(self):
        assert_allclose(checked_inverse(np.diag([2.0, 4.0])), np.diag([0.5, 0.25]))
        with pytest.raises(np.linalg.LinAlgError, match="ill-conditioned"):
            checked_inverse(np.diag([1.0, 1e-14]))

    @pytest.mark.parametrize("weight, expected", [
        (2.0, 2.0 * np.eye(2)),
        ([1.0, 3.0], np.diag([1.0, 3.0])),
        ([[1.0, 2.0], [0.0, 1.0]], np.array([[1.0, 1.0], [1.0, 1.0]])),
    ])
    def test_as_weight_matrix(self, weight, expected):
        assert_allclose(as_weight_matrix(weight, 2), expected)

    def test_as_weight_matrix_shape_mismatch(self):
        with pytest.raises(ValueError):
            as_weight_matrix([1.0, 2.0, 3.0], 2)
