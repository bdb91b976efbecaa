"""
Engine error taxonomy and tagged outcomes.

Components report insufficient data and degenerate calibrations as an
``Outcome`` on their result objects. The exceptions below are raised where a
caller must not continue (e.g. forecasting from a broken calibration).
"""

from enum import Enum


class Outcome(str, Enum):
    """Tag carried by every result object."""
    OK = 'ok'
    INSUFFICIENT_DATA = 'insufficient_data'
    CALIBRATION_DEGENERATE = 'calibration_degenerate'


class SpreadEngineError(Exception):
    """Base class for engine errors."""


class InsufficientData(SpreadEngineError):
    """Fewer observations than an operation needs."""

    def __init__(self, required: int, got: int, operation: str = ''):
        self.required = required
        self.got = got
        self.operation = operation
        where = f" for {operation}" if operation else ""
        super().__init__(f"Need at least {required} observations{where}, got {got}")


class CalibrationDegenerate(SpreadEngineError):
    """OU calibration broke down (non-positive AR coefficient, zero variance, ...)."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Calibration degenerate: {reason}")


class NumericInstability(SpreadEngineError):
    """Non-finite intermediate value in a copula evaluation."""
