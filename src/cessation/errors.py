from __future__ import annotations


class DataError(ValueError):
    """A required column is missing or a recoding table has no matching case."""


class ShapeError(ValueError):
    """Imputed tables or coefficient vectors disagree with their peers."""


class ConvergenceError(RuntimeError):
    """Cross-validated search found no finite minimum over its parameter grid."""
