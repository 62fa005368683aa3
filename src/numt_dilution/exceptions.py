"""
Custom exceptions for the numt-dilution pipeline.

Every error aborts the current run. Zero allele counts are not an error:
they surface as missing values in the regression input.
"""


class NumtDilutionError(Exception):
    """Base exception for numt-dilution pipeline errors."""

    def __init__(self, message: str, details: dict = None):
        super().__init__(message)
        self.details = details or {}


class ValidationError(NumtDilutionError):
    """Raised when input validation fails."""
    pass


class ShapeMismatchError(ValidationError):
    """Raised when observations do not cover every (individual, site) pair exactly once."""
    pass


class InconsistentFlagError(ValidationError):
    """Raised when a site's polymorphism flag differs between individuals."""
    pass


class ConfigurationError(NumtDilutionError):
    """Raised when configuration is invalid."""
    pass


class InsufficientDataError(NumtDilutionError):
    """Raised when there is insufficient data for analysis."""
    pass


class InsufficientEligibleSitesError(InsufficientDataError):
    """Raised when fewer sites carry nonzero sampling weight than requested."""
    pass


class StatisticalError(NumtDilutionError):
    """Raised when statistical analysis fails."""
    pass


class SingularFitError(StatisticalError):
    """Raised when a model design matrix is rank deficient."""
    pass


class ConvergenceError(StatisticalError):
    """Raised when an iterative model fit does not converge."""
    pass
