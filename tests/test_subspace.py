"""
Tests for kernel subspace extraction and projector construction.
"""

import pytest
import torch
from kmsd.errors import NumericalInstability
from kmsd.kernel import rbf_kernel
from kmsd.subspace import topk_from_kernel, projector_from_vecs


def _known_spectrum(evals, seed=0):
    """Symmetric matrix Q diag(evals) Q^T with a random orthogonal Q."""
    gen = torch.Generator().manual_seed(seed)
    n = len(evals)
    Q, _ = torch.linalg.qr(torch.randn(n, n, generator=gen, dtype=torch.float64))
    lam = torch.tensor(evals, dtype=torch.float64)
    return Q @ torch.diag(lam) @ Q.T, Q


def _rbf_gram(n=40, d=2, sigma=0.5, seed=0):
    gen = torch.Generator().manual_seed(seed)
    X = torch.randn(n, d, generator=gen, dtype=torch.float64)
    return rbf_kernel(X, X, sigma)


def test_energy_threshold():
    """The smallest prefix exceeding the threshold is selected."""
    # Normalized cumulative energy: 0.60, 0.85, 0.93, 0.97, 1.00
    K, Q = _known_spectrum([6.0, 2.5, 0.8, 0.4, 0.3])

    V, k = topk_from_kernel(K, 0.9)
    assert k == 3
    assert V.shape == (5, 3)

    # Span matches the top-3 eigenvectors
    P_expected = Q[:, :3] @ Q[:, :3].T
    assert torch.allclose(projector_from_vecs(V), P_expected, atol=1e-8)

    assert topk_from_kernel(K, 0.8)[1] == 2
    assert topk_from_kernel(K, 0.5)[1] == 1
    assert topk_from_kernel(K, 0.95)[1] == 4


def test_minimal_prefix_on_rbf_kernel():
    """Column count equals the minimal prefix of descending eigenvalues above 90%."""
    K = _rbf_gram()
    _, k = topk_from_kernel(K, 0.9)

    evals = torch.sort(torch.linalg.eigvalsh(K), descending=True).values.clamp(min=0)
    cum = torch.cumsum(evals / evals.sum(), dim=0)
    expected = int((cum > 0.9).nonzero()[0].item()) + 1

    assert k == expected
    assert cum[k - 1] > 0.9
    if k > 1:
        assert cum[k - 2] <= 0.9


def test_lower_threshold_never_increases_k():
    K = _rbf_gram(n=60, d=3, sigma=1.0, seed=1)
    thresholds = [0.99, 0.95, 0.9, 0.8, 0.7, 0.5, 0.3, 0.1]

    ks = [topk_from_kernel(K, e)[1] for e in thresholds]
    assert all(a >= b for a, b in zip(ks, ks[1:]))


def test_basis_orthonormal():
    """Basis columns are orthonormal."""
    K = _rbf_gram(n=30, seed=2)
    V, k = topk_from_kernel(K, 0.9)

    VtV = V.T @ V
    I_k = torch.eye(k, dtype=V.dtype)
    assert torch.allclose(VtV, I_k, atol=1e-10)


def test_projector_properties():
    K = _rbf_gram(n=25, seed=3)
    V, _ = topk_from_kernel(K, 0.9)
    P = projector_from_vecs(V)

    assert P.shape == (25, 25)
    assert torch.allclose(P @ P, P, atol=1e-10)
    assert torch.allclose(P, P.T, atol=1e-10)


def test_non_finite_kernel_raises():
    K = _rbf_gram(n=10, seed=4)
    K[0, 1] = float("nan")
    K[1, 0] = float("nan")

    with pytest.raises(NumericalInstability):
        topk_from_kernel(K, 0.9)


def test_zero_spectrum_raises():
    with pytest.raises(NumericalInstability):
        topk_from_kernel(torch.zeros(4, 4, dtype=torch.float64), 0.9)


if __name__ == "__main__":
    test_energy_threshold()
    test_minimal_prefix_on_rbf_kernel()
    test_lower_threshold_never_increases_k()
    test_basis_orthonormal()
    test_projector_properties()
    test_non_finite_kernel_raises()
    test_zero_spectrum_raises()
    print("All subspace tests passed!")
