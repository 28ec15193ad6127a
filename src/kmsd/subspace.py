"""
Subspace extraction from kernel matrices.

This module provides utilities for:
- Computing the top-k eigenvectors of a kernel matrix by energy threshold
- Building orthogonal projectors from eigenvector bases
"""

from typing import Tuple
import warnings
import torch

from .errors import NumericalInstability


def topk_from_kernel(kernel: torch.Tensor, energy: float = 0.9) -> Tuple[torch.Tensor, int]:
    """
    Compute the smallest set of top eigenvectors of a kernel matrix
    capturing more than ``energy`` of its spectral mass.

    Eigenvalues are normalized by the matrix's own eigenvalue sum, sorted in
    descending order and accumulated; k is the length of the shortest prefix
    whose cumulative normalized energy strictly exceeds the threshold.

    Args:
        kernel: Symmetric PSD kernel matrix of shape (n, n)
        energy: Energy threshold in (0, 1), e.g. 0.9 for 90%

    Returns:
        Tuple of (V_k, k) where:
            - V_k: Eigenvectors (n, k) with orthonormal columns, largest
              eigenvalue first
            - k: Number of eigenvectors selected

    Raises:
        NumericalInstability: If the eigendecomposition yields non-finite
            values or the spectrum carries no positive mass

    Example:
        >>> X = torch.randn(50, 2, dtype=torch.float64)
        >>> K = rbf_kernel(X, X, sigma=0.5)
        >>> V_k, k = topk_from_kernel(K, 0.9)
        >>> print(f"Captured 90% energy with {k} of {K.shape[0]} eigenvectors")
    """
    # Symmetrize to remove round-off asymmetry
    kernel = 0.5 * (kernel + kernel.transpose(-1, -2))
    kernel = kernel.to(dtype=torch.float64)

    try:
        evals, evecs = torch.linalg.eigh(kernel)
    except torch.linalg.LinAlgError as err:
        raise NumericalInstability(f"Eigendecomposition failed: {err}") from err

    if not (torch.isfinite(evals).all() and torch.isfinite(evecs).all()):
        raise NumericalInstability("Eigendecomposition produced non-finite values")

    # PSD up to round-off
    evals = torch.clamp(evals, min=0)

    idx = torch.argsort(evals, descending=True)
    evals = evals[idx]
    evecs = evecs[:, idx]

    total = evals.sum()
    if not total > 0:
        raise NumericalInstability("Kernel spectrum has no positive energy")

    ratio = torch.cumsum(evals / total, dim=0)

    # First index whose cumulative energy exceeds the threshold
    k = int((ratio <= energy).sum().item()) + 1
    k = min(k, len(evals))
    if k == len(evals) and len(evals) > 1:
        warnings.warn(
            f"Energy threshold {energy} keeps all {k} eigenvectors; "
            "the subspace is not reduced"
        )

    return evecs[:, :k], k


def projector_from_vecs(V_k: torch.Tensor) -> torch.Tensor:
    """
    Build the orthogonal projector P = V V^T onto the span of V's columns.

    Args:
        V_k: Basis matrix (n, k) with orthonormal columns

    Returns:
        Projector matrix P (n, n) satisfying P^2 = P and P^T = P
    """
    return V_k @ V_k.T
