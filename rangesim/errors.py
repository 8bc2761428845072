"""Error types raised by the rangesim kernels.

Three kinds, all detected at kernel entry before any computation:
  - ShapeMismatch:    inconsistent array dimensions between inputs
  - InvalidParameter: values outside their admissible domain
  - NumericOverflow:  stochastic counts outside the int64 range

Every error names the offending parameter. Errors raised inside the
simulation loop are re-raised with the step index attached (see
RangeSimError.at_step), so a failed run reports where it stopped.
"""

from __future__ import annotations

from typing import Any, Optional


class RangeSimError(Exception):
    """Base class for kernel validation failures."""

    def __init__(self, message: str, parameter: Optional[str] = None,
                 step: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.parameter = parameter
        self.step = step

    def __str__(self) -> str:
        if self.step is None:
            return self.message
        return f"step {self.step}: {self.message}"

    def at_step(self, step: int) -> 'RangeSimError':
        """Tag this error with the simulation step it was raised in."""
        self.step = step
        return self


class ShapeMismatch(RangeSimError, ValueError):
    """Array dimensions are inconsistent with each other."""

    def __init__(self, parameter: str, expected: Any, actual: Any,
                 detail: str = ""):
        message = f"{parameter}: expected shape {expected}, got {actual}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message, parameter=parameter)
        self.expected = expected
        self.actual = actual


class InvalidParameter(RangeSimError, ValueError):
    """A parameter value is outside its admissible domain."""

    def __init__(self, parameter: str, detail: str):
        super().__init__(f"{parameter}: {detail}", parameter=parameter)


class NumericOverflow(RangeSimError, OverflowError):
    """Sampling inputs are not representable as integer counts."""

    def __init__(self, parameter: str, detail: str):
        super().__init__(f"{parameter}: {detail}", parameter=parameter)
