"""
Tests for RBF Gram matrix computation.
"""

import math
import pytest
import torch
from kmsd.errors import DimensionMismatch
from kmsd.kernel import pairwise_sq_dists, rbf_kernel


def _randn(*shape, seed=0):
    gen = torch.Generator().manual_seed(seed)
    return torch.randn(*shape, generator=gen, dtype=torch.float64)


def test_self_kernel_symmetric_unit_diagonal():
    """kernel(X, X) is symmetric with ones on the diagonal."""
    X = _randn(20, 3)
    K = rbf_kernel(X, X, sigma=0.5)

    assert K.shape == (20, 20)
    assert torch.allclose(K, K.T, atol=1e-12)
    assert torch.allclose(K.diagonal(), torch.ones(20, dtype=K.dtype), atol=1e-12)


def test_entries_in_unit_interval():
    """Every Gram entry lies in (0, 1]."""
    X1 = _randn(15, 4, seed=1)
    X2 = _randn(9, 4, seed=2)
    K = rbf_kernel(X1, X2, sigma=1.0)

    assert K.shape == (15, 9)
    assert (K > 0).all()
    assert (K <= 1).all()


def test_dimension_mismatch():
    """Different feature counts raise DimensionMismatch."""
    with pytest.raises(DimensionMismatch):
        rbf_kernel(_randn(5, 3), _randn(5, 2), sigma=0.5)

    # Also a ValueError for callers that catch builtins
    with pytest.raises(ValueError):
        rbf_kernel(_randn(5, 3), _randn(4, 4), sigma=0.5)


def test_non_matrix_input_rejected():
    with pytest.raises(DimensionMismatch):
        rbf_kernel(_randn(5), _randn(5, 1), sigma=0.5)


def test_width_scaled_by_feature_count():
    """The exponent divides by d * sigma."""
    a = torch.zeros(1, 4, dtype=torch.float64)
    b = torch.zeros(1, 4, dtype=torch.float64)
    b[0, 0] = 1.0  # squared distance 1

    K = rbf_kernel(a, b, sigma=0.5)
    assert math.isclose(K.item(), math.exp(-1.0 / (4 * 0.5)), rel_tol=1e-12)


def test_matches_direct_distance():
    X1 = _randn(8, 5, seed=3)
    X2 = _randn(6, 5, seed=4)
    sigma = 0.7

    expected = torch.exp(-torch.cdist(X1, X2) ** 2 / (5 * sigma))
    assert torch.allclose(rbf_kernel(X1, X2, sigma), expected, atol=1e-10)


def test_squared_distances_clamped_non_negative():
    """Cancellation on large, nearly equal rows must not produce negatives."""
    X = 1e4 + 1e-6 * _randn(10, 3, seed=5)
    d2 = pairwise_sq_dists(X, X)

    assert (d2 >= 0).all()
    assert (rbf_kernel(X, X, sigma=0.1) <= 1).all()


if __name__ == "__main__":
    test_self_kernel_symmetric_unit_diagonal()
    test_entries_in_unit_interval()
    test_dimension_mismatch()
    test_non_matrix_input_rejected()
    test_width_scaled_by_feature_count()
    test_matches_direct_distance()
    test_squared_distances_clamped_non_negative()
    print("All kernel tests passed!")
