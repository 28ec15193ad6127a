"""
Kernel matched subspace detection statistic.

This module provides:
- The Gamma correlation matrix between target and background subspaces
- The generalized likelihood-ratio statistic for a batch of samples

All functions take the matrices they need explicitly so each stage can be
computed and tested on its own.
"""

import torch

from .errors import NumericalInstability


def gamma_matrix(
    tau: torch.Tensor,
    beta: torch.Tensor,
    kt_t: torch.Tensor,
    kt_b: torch.Tensor,
    kb_t: torch.Tensor,
    kb_b: torch.Tensor,
) -> torch.Tensor:
    """
    Assemble the block correlation matrix of the target and background subspaces.

        Gamma = [ Tau^T Kt_t Tau    Tau^T Kt_b Beta  ]
                [ Beta^T Kb_t Tau   Beta^T Kb_b Beta ]

    Args:
        tau: Target basis (n_t, k_t)
        beta: Background basis (n_b, k_b)
        kt_t: Target-target kernel (n_t, n_t)
        kt_b: Target-background kernel (n_t, n_b)
        kb_t: Background-target kernel (n_b, n_t)
        kb_b: Background-background kernel (n_b, n_b)

    Returns:
        Gamma of shape (k_t + k_b, k_t + k_b)
    """
    top = torch.cat([tau.T @ kt_t @ tau, tau.T @ kt_b @ beta], dim=1)
    bottom = torch.cat([beta.T @ kb_t @ tau, beta.T @ kb_b @ beta], dim=1)
    return torch.cat([top, bottom], dim=0)


def subspace_energy(basis: torch.Tensor, kmap: torch.Tensor) -> torch.Tensor:
    """
    Per-sample energy of empirical kernel maps inside a subspace.

    Equals diag(kmap^T (B B^T) kmap) without forming the (m, m) product.

    Args:
        basis: Orthonormal basis (n, k)
        kmap: Empirical kernel map (n, m), one column per sample

    Returns:
        Energies of shape (m,)
    """
    coords = basis.T @ kmap
    return (coords ** 2).sum(dim=0)


def kmsd_statistic(
    ktb_y: torch.Tensor,
    kt_y: torch.Tensor,
    kb_y: torch.Tensor,
    delta: torch.Tensor,
    tau: torch.Tensor,
    beta: torch.Tensor,
    gamma: torch.Tensor,
    max_condition: float = 1e12,
) -> torch.Tensor:
    """
    Generalized likelihood-ratio statistic of the kernel matched subspace detector.

    For each sample y (one column of the kernel maps):

        num = k_tb^T D D^T k_tb - k_b^T B B^T k_b
        den = k_tb^T D D^T k_tb - [k_t^T T, k_b^T B] Gamma^-1 [T^T k_t; B^T k_b]
        stat = num / den

    Only the per-sample (diagonal) terms are computed, and Gamma is applied
    through a linear solve rather than an explicit inverse.

    Args:
        ktb_y: Kernel map between the joint library and samples (n_t + n_b, m)
        kt_y: Kernel map between the target library and samples (n_t, m)
        kb_y: Kernel map between the background library and samples (n_b, m)
        delta: Joint basis (n_t + n_b, k_d)
        tau: Target basis (n_t, k_t)
        beta: Background basis (n_b, k_b)
        gamma: Correlation matrix (k_t + k_b, k_t + k_b)
        max_condition: Largest acceptable condition number of gamma

    Returns:
        Statistics of shape (m,)

    Raises:
        NumericalInstability: If gamma is singular or ill-conditioned, or if
            any statistic is not finite
    """
    joint = subspace_energy(delta, ktb_y)
    background = subspace_energy(beta, kb_y)
    num = joint - background

    # Coordinates of each sample in the target and background subspaces
    coords = torch.cat([tau.T @ kt_y, beta.T @ kb_y], dim=0)  # (k_t + k_b, m)

    cond = torch.linalg.cond(gamma)
    if not torch.isfinite(cond) or cond > max_condition:
        raise NumericalInstability(
            f"Gamma is singular or ill-conditioned (condition number {cond.item():.3e}, "
            f"limit {max_condition:.3e})"
        )
    try:
        whitened = torch.linalg.solve(gamma, coords)
    except torch.linalg.LinAlgError as err:
        raise NumericalInstability(f"Gamma solve failed: {err}") from err

    cross = (coords * whitened).sum(dim=0)
    den = joint - cross

    stat = num / den
    if not torch.isfinite(stat).all():
        bad = int((~torch.isfinite(stat)).sum().item())
        raise NumericalInstability(
            f"{bad} of {stat.numel()} statistics are not finite (zero denominator)"
        )
    return stat
