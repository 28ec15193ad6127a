"""
Radial basis function Gram matrices.

The width convention divides the squared distance by the feature count as
well as by sigma: k(a, b) = exp(-||a - b||^2 / (d * sigma)).
"""

import torch

from .errors import DimensionMismatch


def pairwise_sq_dists(a: torch.Tensor, b: torch.Tensor) -> torch.Tensor:
    """
    Compute ||a_i - b_j||^2 for every row pair without forming (m, n, d) tensors.

    Uses the expansion ||a||^2 + ||b||^2 - 2 a.b and clamps the result at zero,
    since cancellation can leave tiny negative values.

    Args:
        a: Matrix of shape (m, d)
        b: Matrix of shape (n, d)

    Returns:
        Non-negative squared distances of shape (m, n)
    """
    a_norm = (a ** 2).sum(-1, keepdim=True)      # (m, 1)
    b_norm = (b ** 2).sum(-1, keepdim=True).T    # (1, n)
    d2 = a_norm + b_norm - 2 * (a @ b.T)
    return torch.clamp(d2, min=0.0)


def rbf_kernel(x1: torch.Tensor, x2: torch.Tensor, sigma: float) -> torch.Tensor:
    """
    Gram matrix of the dimension-scaled RBF kernel between two observation sets.

    Entry (i, j) is exp(-||x1_i - x2_j||^2 / (d * sigma)) where d is the
    number of features.

    Args:
        x1: Observations (n1, d)
        x2: Observations (n2, d)
        sigma: Kernel width, positive

    Returns:
        Gram matrix (n1, n2) with entries in (0, 1]

    Raises:
        DimensionMismatch: If the inputs are not 2-D or differ in feature count

    Example:
        >>> X = torch.randn(10, 3, dtype=torch.float64)
        >>> K = rbf_kernel(X, X, sigma=0.5)
        >>> torch.allclose(K.diagonal(), torch.ones(10, dtype=K.dtype))
        True
    """
    if x1.ndim != 2 or x2.ndim != 2:
        raise DimensionMismatch(
            f"rbf_kernel expects 2-D inputs, got shapes {tuple(x1.shape)} and {tuple(x2.shape)}"
        )
    d = x1.shape[1]
    if d == 0:
        raise DimensionMismatch("Observations must have at least one feature")
    if x2.shape[1] != d:
        raise DimensionMismatch(
            f"Feature count mismatch: x1 has {d} columns, x2 has {x2.shape[1]}"
        )

    d2 = pairwise_sq_dists(x1, x2.to(x1))
    return torch.exp(-d2 / (d * sigma))
