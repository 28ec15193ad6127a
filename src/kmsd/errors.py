"""
Error taxonomy for the kernel matched subspace detector.

Every error derives from KmsdError and from the builtin exception a caller
would naturally expect, so ``except ValueError`` keeps working.
"""


class KmsdError(Exception):
    """Base class for all detector errors."""


class ConfigurationError(KmsdError, ValueError):
    """Invalid detector configuration (e.g. non-positive sigma)."""


class MissingClassError(KmsdError, ValueError):
    """A training class (target or background) has no observations."""


class DimensionMismatch(KmsdError, ValueError):
    """Two observation sets disagree on their feature count."""


class NumericalInstability(KmsdError, ArithmeticError):
    """Eigendecomposition or Gamma solve produced unusable values."""


class NotTrainedError(KmsdError, RuntimeError):
    """Scoring was attempted before the detector was trained."""
