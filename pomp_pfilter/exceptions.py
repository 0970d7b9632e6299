"""
Exceptions raised by models and filters.
"""


class PompError(Exception):
    """Base class for errors raised by pomp_pfilter."""


class InvalidParameterError(PompError, ValueError):
    """
    Parameter vector is outside the model's domain.

    Raised by a model (e.g. negative rate) or by the filter when the model
    returns an illegal density. Aborts the filter run.
    """


class DimensionMismatchError(PompError, ValueError):
    """Particle count, data or time stamps are inconsistent."""


class FilterCollapseError(PompError, RuntimeError):
    """
    Number of filtering failures exceeded the allowed maximum.

    Attributes:
        n_failures: Failures counted so far
        step: Index (0-based) of the observation at which the limit was crossed
    """

    def __init__(self, message: str, n_failures: int, step: int):
        super().__init__(message)
        self.n_failures = n_failures
        self.step = step
