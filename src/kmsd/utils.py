"""
Tensor conversion helpers shared by the detector modules.

This module provides helper functions for:
- Converting numpy arrays, nested lists and tensors into float64 matrices
- Resolving the torch device a computation should run on
"""

from typing import Optional, Union
import numpy as np
import torch

from .errors import DimensionMismatch

DEFAULT_DTYPE = torch.float64

ArrayLike = Union[torch.Tensor, np.ndarray, list, tuple]


def resolve_device(device: Optional[Union[str, torch.device]] = None) -> torch.device:
    """
    Resolve a device specification to a torch.device.

    Args:
        device: Device name, torch.device, or None for CPU

    Returns:
        torch.device to place computations on
    """
    if device is None:
        return torch.device("cpu")
    return torch.device(device)


def as_matrix(
    x: ArrayLike,
    device: Optional[Union[str, torch.device]] = None,
    name: str = "observations",
) -> torch.Tensor:
    """
    Convert an observation matrix to a float64 tensor of shape (n, d).

    A 1-D input is treated as a single observation (one row).

    Args:
        x: Observations as tensor, numpy array or nested sequence
        device: Target device (default: CPU)
        name: Name used in error messages

    Returns:
        2-D float64 tensor on the requested device

    Raises:
        DimensionMismatch: If the input has more than two dimensions
    """
    if isinstance(x, torch.Tensor):
        t = x.detach()
    else:
        t = torch.as_tensor(np.asarray(x, dtype=np.float64))

    if t.ndim == 1:
        t = t.unsqueeze(0)
    if t.ndim != 2:
        raise DimensionMismatch(
            f"{name} must be a 2-D matrix (samples x features), got shape {tuple(t.shape)}"
        )
    return t.to(device=resolve_device(device), dtype=DEFAULT_DTYPE)


def as_labels(y: ArrayLike) -> torch.Tensor:
    """Convert labels to a flat int64 tensor on CPU."""
    if isinstance(y, torch.Tensor):
        t = y.detach().cpu()
    else:
        t = torch.as_tensor(np.asarray(y))
    return t.reshape(-1).to(torch.int64)
