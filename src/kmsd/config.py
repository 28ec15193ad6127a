"""
Detector configuration.

This module provides:
- KmsdConfig, the immutable, validated configuration value
- Loading a configuration from a YAML file
"""

from dataclasses import asdict, dataclass, fields
import math
from numbers import Integral, Real
from typing import Any, Dict, Optional

from .errors import ConfigurationError


@dataclass(frozen=True)
class KmsdConfig:
    """
    Kernel matched subspace detector configuration.

    Validated once at construction; instances are immutable.

    Attributes:
        sigma: RBF kernel width (inverse kernel width in the exponent),
            must be a positive finite scalar
        energy: Spectral energy fraction each subspace basis must exceed
        chunk_size: Maximum number of samples scored in one batch
        max_condition: Largest condition number of Gamma accepted at scoring
        device: Torch device to compute on (None for CPU)

    Example:
        >>> config = KmsdConfig(sigma=0.5)
        >>> config.chunk_size
        1000
    """
    sigma: float = 0.01
    energy: float = 0.9
    chunk_size: int = 1000
    max_condition: float = 1e12
    device: Optional[str] = None

    def __post_init__(self):
        if not _is_positive_scalar(self.sigma):
            raise ConfigurationError(f"sigma must be a positive scalar, got {self.sigma!r}")
        if not _is_real(self.energy) or not 0.0 < self.energy < 1.0:
            raise ConfigurationError(f"energy must be in (0, 1), got {self.energy!r}")
        if (
            isinstance(self.chunk_size, bool)
            or not isinstance(self.chunk_size, Integral)
            or self.chunk_size < 1
        ):
            raise ConfigurationError(f"chunk_size must be a positive integer, got {self.chunk_size!r}")
        if not _is_positive_scalar(self.max_condition) or self.max_condition <= 1.0:
            raise ConfigurationError(f"max_condition must be > 1, got {self.max_condition!r}")
        if self.device is not None and not isinstance(self.device, str):
            raise ConfigurationError(f"device must be a string, not: {self.device!r}")

    def to_dict(self) -> Dict[str, Any]:
        """Return the configuration as a plain dictionary."""
        return asdict(self)


_FLOAT_FIELDS = ("sigma", "energy", "max_condition")


def _is_real(value) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool)


def _is_positive_scalar(value) -> bool:
    return _is_real(value) and math.isfinite(value) and value > 0


def load_config_from_yaml(path: str) -> KmsdConfig:
    """
    Load a detector configuration from a YAML file.

    Expected YAML format:
        sigma: 0.5
        energy: 0.9
        chunk_size: 1000
        max_condition: 1.0e12
        device: cpu

    Missing keys take their defaults. PyYAML reads exponents without a dot
    (``1e-2``) as strings; numeric strings for the float fields are converted.

    Args:
        path: Path to YAML file

    Returns:
        Validated KmsdConfig

    Raises:
        ConfigurationError: If the file is not a mapping or has unknown keys
    """
    import yaml

    with open(path, "r") as f:
        raw = yaml.safe_load(f) or {}

    if not isinstance(raw, dict):
        raise ConfigurationError(f"Config file {path} must contain a mapping, got {type(raw).__name__}")

    known = {f.name for f in fields(KmsdConfig)}
    unknown = sorted(set(raw) - known)
    if unknown:
        available = ", ".join(sorted(known))
        raise ConfigurationError(f"Unknown config keys {unknown}. Available: {available}")

    for key in _FLOAT_FIELDS:
        if isinstance(raw.get(key), str):
            try:
                raw[key] = float(raw[key])
            except ValueError as err:
                raise ConfigurationError(f"{key} must be a number, got {raw[key]!r}") from err

    return KmsdConfig(**raw)
