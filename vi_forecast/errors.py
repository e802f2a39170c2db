"""Exceptions raised by the forecasting engine"""

from typing import Optional


class VIForecastError(Exception):
    """Base class for all forecasting errors"""


class UpstreamError(VIForecastError):
    """A data provider request failed or returned a malformed payload"""

    def __init__(self, stage: str, status_code: Optional[int] = None, detail: str = ""):
        self.stage = stage
        self.status_code = status_code
        self.detail = detail
        message = f"{stage} request failed"
        if status_code is not None:
            message += f" with status {status_code}"
        if detail:
            message += f": {detail}"
        super().__init__(message)


class SingularMatrixError(VIForecastError, ArithmeticError):
    """The normal equations have no unique solution"""

    def __init__(self, pivot_index: int, pivot_value: float):
        self.pivot_index = pivot_index
        self.pivot_value = pivot_value
        super().__init__(
            f"Matrix is numerically singular (pivot {pivot_index} = {pivot_value:.3e}); "
            "try a longer lookback window"
        )


class InsufficientDataError(VIForecastError):
    """Not enough samples to carry out the requested step"""


class BackendUnavailableError(VIForecastError):
    """The requested numeric backend is not installed"""
