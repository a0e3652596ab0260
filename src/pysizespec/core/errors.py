"""
Exception classes for PySizeSpec.

All conditions are raised synchronously at the point of detection.
Construction-time validation collects every violated invariant into a
single ParamsInconsistent; runtime checks inside a projection step fail
on the first mismatch.
"""

from __future__ import annotations

from typing import List, Optional


class SizeSpecError(Exception):
    """Base exception for size-spectrum model errors."""

    pass


class InvalidGrid(SizeSpecError, ValueError):
    """Raised when the size grid bounds are inconsistent."""

    pass


class ParamsInconsistent(SizeSpecError, ValueError):
    """Raised when a parameter store violates one or more invariants.

    Parameters
    ----------
    errors : list of str
        One message per violated invariant.
    """

    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        lines = [f"  - {msg}" for msg in self.errors]
        super().__init__(
            f"Parameter store has {len(self.errors)} inconsistenc"
            f"{'y' if len(self.errors) == 1 else 'ies'}:\n" + "\n".join(lines)
        )


class ShapeMismatch(SizeSpecError, ValueError):
    """Raised when an array has the wrong shape inside the rate pipeline."""

    def __init__(self, stage: str, array: str, expected, got):
        self.stage = stage
        self.array = array
        self.expected = tuple(expected)
        self.got = tuple(got)
        super().__init__(
            f"{stage}: '{array}' has shape {self.got}, expected {self.expected}"
        )


class BadEffortShape(SizeSpecError, ValueError):
    """Raised when fishing effort does not match the number of gears."""

    pass


class UnknownGear(SizeSpecError, LookupError):
    """Raised when effort names a gear the parameter store does not have."""

    def __init__(
        self,
        unknown: List[str],
        known: List[str],
        missing: Optional[List[str]] = None,
    ):
        self.unknown = list(unknown)
        self.known = list(known)
        self.missing = list(missing or [])
        if self.unknown:
            msg = f"Unknown gear(s) {self.unknown}; the model has gears {self.known}"
        else:
            msg = f"Effort table lacks gear(s) {self.missing}; the model has gears {self.known}"
        super().__init__(msg)

    def __str__(self) -> str:
        return self.args[0]


class BadSaveCadence(SizeSpecError, ValueError):
    """Raised when t_save is not a positive integer multiple of dt."""

    pass


class UnknownFunction(SizeSpecError, LookupError):
    """Raised when a registry has no implementation under a name."""

    def __init__(self, registry: str, name: str, available: Optional[List[str]] = None):
        self.registry = registry
        self.name = name
        msg = f"No function '{name}' registered in {registry}"
        if available:
            msg += f" (available: {', '.join(sorted(available))})"
        super().__init__(msg)

    def __str__(self) -> str:
        return self.args[0]


class ProjectionError(SizeSpecError, RuntimeError):
    """Raised when a projection step produces an unusable state."""

    pass
