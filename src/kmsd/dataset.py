"""
Labeled observation sets for training and scoring.

This module provides:
- LabeledDataset, observations with binary class labels
- make_unimodal, a two-class Gaussian generator for experiments and tests
"""

from dataclasses import dataclass
from typing import Optional, Sequence
import torch

from .utils import ArrayLike, DEFAULT_DTYPE, as_labels, as_matrix
from .errors import DimensionMismatch

TARGET_LABEL = 1
BACKGROUND_LABEL = 0


@dataclass(frozen=True)
class LabeledDataset:
    """
    Observations (n, d) with one integer label per row.

    Label 1 marks target observations and label 0 background observations.
    Rows carrying any other label are kept but ignored by the detector.

    Attributes:
        observations: float64 matrix (n, d)
        labels: int64 vector (n,)

    Example:
        >>> ds = LabeledDataset.from_arrays([[0.0, 0.1], [5.0, 4.9]], [0, 1])
        >>> ds.observations_by_class(1).shape
        torch.Size([1, 2])
    """
    observations: torch.Tensor
    labels: torch.Tensor

    def __post_init__(self):
        if self.observations.shape[0] != self.labels.shape[0]:
            raise DimensionMismatch(
                f"{self.observations.shape[0]} observations but {self.labels.shape[0]} labels"
            )

    @classmethod
    def from_arrays(cls, observations: ArrayLike, labels: ArrayLike) -> "LabeledDataset":
        """Build a dataset from tensors, numpy arrays or nested lists."""
        return cls(as_matrix(observations), as_labels(labels))

    @property
    def n_features(self) -> int:
        return int(self.observations.shape[1])

    @property
    def classes(self) -> Sequence[int]:
        return [int(c) for c in torch.unique(self.labels).tolist()]

    def __len__(self) -> int:
        return int(self.observations.shape[0])

    def observations_by_class(self, label: int) -> torch.Tensor:
        """
        Return the observations whose label equals ``label``.

        Args:
            label: Class label to select

        Returns:
            Matrix (n_label, d), possibly with zero rows
        """
        mask = (self.labels == label).to(self.observations.device)
        return self.observations[mask]

    def get_observations(self) -> torch.Tensor:
        """All observations as a matrix."""
        return self.observations


def make_unimodal(
    n_per_class: int = 200,
    target_mean: Sequence[float] = (2.0, 2.0),
    background_mean: Sequence[float] = (0.0, 0.0),
    std: float = 1.0,
    seed: Optional[int] = None,
) -> LabeledDataset:
    """
    Draw a two-class dataset of isotropic Gaussian clusters.

    Background rows (label 0) come first, then target rows (label 1).

    Args:
        n_per_class: Samples drawn for each class (default: 200)
        target_mean: Center of the target cluster (default: (2, 2))
        background_mean: Center of the background cluster (default: (0, 0))
        std: Standard deviation of every feature (default: 1.0)
        seed: Optional seed for a private torch.Generator

    Returns:
        LabeledDataset with 2 * n_per_class rows

    Raises:
        DimensionMismatch: If the two means differ in length
    """
    mu_t = torch.as_tensor(target_mean, dtype=DEFAULT_DTYPE)
    mu_b = torch.as_tensor(background_mean, dtype=DEFAULT_DTYPE)
    if mu_t.shape != mu_b.shape or mu_t.ndim != 1:
        raise DimensionMismatch(
            f"Class means must be vectors of equal length, got {tuple(mu_t.shape)} and {tuple(mu_b.shape)}"
        )

    gen = torch.Generator()
    if seed is not None:
        gen.manual_seed(seed)
    else:
        gen.seed()

    d = mu_t.shape[0]
    background = mu_b + std * torch.randn(n_per_class, d, generator=gen, dtype=DEFAULT_DTYPE)
    target = mu_t + std * torch.randn(n_per_class, d, generator=gen, dtype=DEFAULT_DTYPE)

    observations = torch.cat([background, target], dim=0)
    labels = torch.cat([
        torch.full((n_per_class,), BACKGROUND_LABEL, dtype=torch.int64),
        torch.full((n_per_class,), TARGET_LABEL, dtype=torch.int64),
    ])
    return LabeledDataset(observations, labels)
