"""
Unemployment ARIMA Analysis - Errors
------------------------------------
Exception types raised by the analysis stages.
"""


class AnalysisError(Exception):
    """Base class for all errors raised by the analysis."""


class DataFormatError(AnalysisError):
    """The input data is empty, malformed or not a gap-free monthly series."""


class DataFetchError(AnalysisError):
    """The data source could not be read or downloaded."""


class InvalidInputError(AnalysisError):
    """An argument violates the preconditions of an operation."""


class NonConvergenceError(AnalysisError):
    """A model fit did not converge or no admissible candidate was found."""


class LengthMismatchError(AnalysisError):
    """Forecast and actual values do not cover the same horizon."""


class ModelSelectionError(AnalysisError):
    """No converged candidate model was available for selection."""
