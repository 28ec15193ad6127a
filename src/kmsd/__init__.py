"""
Kernel Matched Subspace Detector - binary target/background detection in an
RBF-induced feature space.

This package provides modular utilities for:
- Dimension-scaled RBF Gram matrices
- Kernel subspace bases selected by spectral energy
- The Gamma correlation matrix and the likelihood-ratio detection statistic
- One-shot training and memory-bounded, chunked scoring
"""

from .config import KmsdConfig, load_config_from_yaml
from .dataset import LabeledDataset, make_unimodal
from .detector import KmsdDetector, TrainedModel, iter_chunks, score, score_batch, train
from .errors import (
    ConfigurationError,
    DimensionMismatch,
    KmsdError,
    MissingClassError,
    NotTrainedError,
    NumericalInstability,
)
from .kernel import pairwise_sq_dists, rbf_kernel
from .statistic import gamma_matrix, kmsd_statistic, subspace_energy
from .subspace import projector_from_vecs, topk_from_kernel

__version__ = "0.1.0"

__all__ = [
    "KmsdConfig",
    "load_config_from_yaml",
    "LabeledDataset",
    "make_unimodal",
    "KmsdDetector",
    "TrainedModel",
    "train",
    "score",
    "score_batch",
    "iter_chunks",
    "rbf_kernel",
    "pairwise_sq_dists",
    "topk_from_kernel",
    "projector_from_vecs",
    "gamma_matrix",
    "kmsd_statistic",
    "subspace_energy",
    "KmsdError",
    "ConfigurationError",
    "MissingClassError",
    "DimensionMismatch",
    "NumericalInstability",
    "NotTrainedError",
]
