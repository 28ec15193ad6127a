"""
Training and batched scoring for the kernel matched subspace detector.

This module provides:
- train: builds the immutable TrainedModel from labeled observations
- score: evaluates the detection statistic in memory-bounded chunks
- KmsdDetector: a small lifecycle wrapper (untrained -> trained)
"""

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, replace
from numbers import Integral
from typing import Iterator, Optional, Tuple
import torch
from tqdm import tqdm

from .config import KmsdConfig
from .dataset import BACKGROUND_LABEL, TARGET_LABEL
from .errors import (
    ConfigurationError,
    DimensionMismatch,
    MissingClassError,
    NotTrainedError,
)
from .kernel import rbf_kernel
from .statistic import gamma_matrix, kmsd_statistic
from .subspace import topk_from_kernel
from .utils import DEFAULT_DTYPE, as_matrix, resolve_device


@dataclass(frozen=True)
class TrainedModel:
    """
    Everything needed to reproduce scoring, created once by ``train``.

    Attributes:
        config: Configuration the model was trained with (holds sigma)
        zt: Target library (n_t, d)
        zb: Background library (n_b, d)
        ztb: Joint library, target rows first (n_t + n_b, d)
        delta: Joint subspace basis (n_t + n_b, k_d)
        tau: Target subspace basis (n_t, k_t)
        beta: Background subspace basis (n_b, k_b)
        kt_t: Target-target kernel
        kb_b: Background-background kernel
        kt_b: Target-background kernel
        kb_t: Background-target kernel
        gamma: Subspace correlation matrix (k_t + k_b, k_t + k_b)
    """
    config: KmsdConfig
    zt: torch.Tensor
    zb: torch.Tensor
    ztb: torch.Tensor
    delta: torch.Tensor
    tau: torch.Tensor
    beta: torch.Tensor
    kt_t: torch.Tensor
    kb_b: torch.Tensor
    kt_b: torch.Tensor
    kb_t: torch.Tensor
    gamma: torch.Tensor

    @property
    def sigma(self) -> float:
        return self.config.sigma

    @property
    def n_features(self) -> int:
        return int(self.ztb.shape[1])

    @property
    def k_delta(self) -> int:
        return int(self.delta.shape[1])

    @property
    def k_tau(self) -> int:
        return int(self.tau.shape[1])

    @property
    def k_beta(self) -> int:
        return int(self.beta.shape[1])

    @property
    def device(self) -> torch.device:
        return self.ztb.device


def train(config: KmsdConfig, dataset) -> TrainedModel:
    """
    Build the target, background and joint subspaces from a labeled dataset.

    The dataset must provide ``observations_by_class(label)``; label 1 rows
    form the target library and label 0 rows the background library.

    Args:
        config: Validated detector configuration
        dataset: Labeled observations (e.g. LabeledDataset)

    Returns:
        TrainedModel

    Raises:
        ConfigurationError: If config is not a KmsdConfig
        MissingClassError: If either class has no observations
        DimensionMismatch: If the two classes differ in feature count
        NumericalInstability: If an eigendecomposition fails

    Example:
        >>> ds = make_unimodal(n_per_class=50, seed=0)
        >>> model = train(KmsdConfig(sigma=0.5), ds)
        >>> print(model.k_delta, model.k_tau, model.k_beta)
    """
    if not isinstance(config, KmsdConfig):
        raise ConfigurationError(f"config must be a KmsdConfig, got {type(config).__name__}")

    device = resolve_device(config.device)
    zt = _class_library(dataset, TARGET_LABEL, "target", device)
    zb = _class_library(dataset, BACKGROUND_LABEL, "background", device)
    if zt.shape[1] != zb.shape[1]:
        raise DimensionMismatch(
            f"Target library has {zt.shape[1]} features, background library has {zb.shape[1]}"
        )

    # Target rows first: block indexing of the joint library depends on it
    ztb = torch.cat([zt, zb], dim=0)
    sigma = config.sigma

    ktb_tb = rbf_kernel(ztb, ztb, sigma)
    delta, _ = topk_from_kernel(ktb_tb, config.energy)

    kt_t = rbf_kernel(zt, zt, sigma)
    tau, _ = topk_from_kernel(kt_t, config.energy)

    kb_b = rbf_kernel(zb, zb, sigma)
    beta, _ = topk_from_kernel(kb_b, config.energy)

    kt_b = rbf_kernel(zt, zb, sigma)
    kb_t = rbf_kernel(zb, zt, sigma)

    gamma = gamma_matrix(tau, beta, kt_t, kt_b, kb_t, kb_b)

    return TrainedModel(
        config=config,
        zt=zt,
        zb=zb,
        ztb=ztb,
        delta=delta,
        tau=tau,
        beta=beta,
        kt_t=kt_t,
        kb_b=kb_b,
        kt_b=kt_b,
        kb_t=kb_t,
        gamma=gamma,
    )


def _class_library(dataset, label: int, name: str, device: torch.device) -> torch.Tensor:
    raw = dataset.observations_by_class(label)
    if len(raw) == 0:
        raise MissingClassError(f"No {name} observations (label {label}) in training data")
    return as_matrix(raw, device=device, name=f"{name} library")


def score_batch(model: TrainedModel, samples: torch.Tensor) -> torch.Tensor:
    """
    Score one batch of samples against a trained model.

    Args:
        model: Trained model
        samples: Observations (m, d)

    Returns:
        Detection statistics of shape (m,)

    Raises:
        DimensionMismatch: If samples do not have the model's feature count
        NumericalInstability: If Gamma cannot be inverted stably
    """
    y = as_matrix(samples, device=model.device, name="samples")
    if y.shape[1] != model.n_features:
        raise DimensionMismatch(
            f"Samples have {y.shape[1]} features, model was trained on {model.n_features}"
        )

    # Empirical kernel maps
    ktb_y = rbf_kernel(model.ztb, y, model.sigma)
    kb_y = rbf_kernel(model.zb, y, model.sigma)
    kt_y = rbf_kernel(model.zt, y, model.sigma)

    return kmsd_statistic(
        ktb_y,
        kt_y,
        kb_y,
        model.delta,
        model.tau,
        model.beta,
        model.gamma,
        max_condition=model.config.max_condition,
    )


def iter_chunks(n: int, chunk_size: int) -> Iterator[Tuple[int, int]]:
    """
    Yield contiguous (start, stop) row ranges of at most chunk_size rows.

    Example:
        >>> list(iter_chunks(5, 2))
        [(0, 2), (2, 4), (4, 5)]
    """
    for start in range(0, n, chunk_size):
        yield start, min(start + chunk_size, n)


def score(
    model: Optional[TrainedModel],
    samples,
    chunk_size: Optional[int] = None,
    n_workers: int = 1,
    progress: bool = False,
) -> torch.Tensor:
    """
    Score a full observation matrix, chunking it to bound peak memory.

    Inputs smaller than ``chunk_size`` are scored in a single call. Larger
    inputs are split into contiguous chunks of at most ``chunk_size`` rows,
    each scored independently; results are concatenated in row order.

    Args:
        model: Trained model (None raises NotTrainedError)
        samples: Observations (m, d) as tensor, numpy array or nested list
        chunk_size: Rows per chunk (default: model.config.chunk_size)
        n_workers: Worker threads used to score chunks (default: 1)
        progress: Show a tqdm progress bar over chunks

    Returns:
        Statistics of shape (m,), float64

    Raises:
        NotTrainedError: If model is None
        ConfigurationError: If chunk_size or n_workers is not a positive integer
        DimensionMismatch: If samples do not match the model's feature count
        NumericalInstability: If scoring is numerically unstable
    """
    if model is None:
        raise NotTrainedError("Cannot score samples: the detector has not been trained")

    if chunk_size is None:
        chunk_size = model.config.chunk_size
    _check_positive_int(chunk_size, "chunk_size")
    _check_positive_int(n_workers, "n_workers")

    y = as_matrix(samples, device=model.device, name="samples")
    if y.shape[1] != model.n_features:
        raise DimensionMismatch(
            f"Samples have {y.shape[1]} features, model was trained on {model.n_features}"
        )

    n = y.shape[0]
    if n == 0:
        return torch.empty(0, dtype=DEFAULT_DTYPE, device=model.device)
    if n < chunk_size:
        return score_batch(model, y)

    ranges = list(iter_chunks(n, chunk_size))

    def run_chunk(bounds):
        start, stop = bounds
        return score_batch(model, y[start:stop])

    if n_workers > 1:
        # executor.map yields results in submission order
        with ThreadPoolExecutor(max_workers=n_workers) as executor:
            results = list(tqdm(
                executor.map(run_chunk, ranges),
                total=len(ranges),
                desc="Scoring chunks",
                disable=not progress,
            ))
    else:
        results = [
            run_chunk(bounds)
            for bounds in tqdm(ranges, desc="Scoring chunks", disable=not progress)
        ]

    return torch.cat(results, dim=0)


def _check_positive_int(value, name: str):
    if isinstance(value, bool) or not isinstance(value, Integral) or value < 1:
        raise ConfigurationError(f"{name} must be a positive integer, got {value!r}")


class KmsdDetector:
    """
    Kernel matched subspace detector.

    A two-class detector: label 1 observations are targets, label 0
    observations are background. ``train`` leaves this detector untouched
    and returns a new, trained detector; ``run`` scores samples with the
    trained model.

    Args:
        config: Detector configuration (default: built from keyword arguments)
        **kwargs: KmsdConfig fields, used when config is not given

    Example:
        >>> train_ds = make_unimodal(seed=0)
        >>> test_ds = make_unimodal(seed=1)
        >>> detector = KmsdDetector(sigma=0.5).train(train_ds)
        >>> stats = detector.run(test_ds)
    """

    name = "Kernel matched subspace detector"
    name_abbreviation = "KMSD"
    binary_only = True

    def __init__(self, config: Optional[KmsdConfig] = None, **kwargs):
        if config is not None and not isinstance(config, KmsdConfig):
            raise ConfigurationError(f"config must be a KmsdConfig, got {type(config).__name__}")
        try:
            if config is None:
                config = KmsdConfig(**kwargs)
            elif kwargs:
                config = replace(config, **kwargs)
        except TypeError as err:
            raise ConfigurationError(f"Invalid detector option: {err}") from err
        self._config = config
        self._model: Optional[TrainedModel] = None

    @property
    def config(self) -> KmsdConfig:
        return self._config

    @property
    def is_trained(self) -> bool:
        return self._model is not None

    @property
    def model(self) -> TrainedModel:
        if self._model is None:
            raise NotTrainedError("Detector has not been trained")
        return self._model

    def train(self, dataset) -> "KmsdDetector":
        """
        Train on a labeled dataset.

        Args:
            dataset: Labeled observations exposing observations_by_class()

        Returns:
            A new trained KmsdDetector
        """
        trained = KmsdDetector(self._config)
        trained._model = train(self._config, dataset)
        return trained

    def run(
        self,
        samples,
        chunk_size: Optional[int] = None,
        n_workers: int = 1,
        progress: bool = False,
    ) -> torch.Tensor:
        """
        Compute the detection statistic for every sample.

        Args:
            samples: Observation matrix, or a dataset exposing get_observations()
            chunk_size: Rows per chunk (default: config.chunk_size)
            n_workers: Worker threads used to score chunks
            progress: Show a tqdm progress bar over chunks

        Returns:
            Statistics of shape (m,), in input row order
        """
        if hasattr(samples, "get_observations"):
            samples = samples.get_observations()
        return score(
            self._model,
            samples,
            chunk_size=chunk_size,
            n_workers=n_workers,
            progress=progress,
        )

    def __repr__(self) -> str:
        state = "trained" if self.is_trained else "untrained"
        return f"KmsdDetector(sigma={self._config.sigma}, energy={self._config.energy}, {state})"
