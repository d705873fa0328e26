"""Exceptions raised while reconciling charging sessions."""


class ChargeCostError(Exception):
    """Base exception for reconciliation errors."""
    pass


class RateLimitExceeded(ChargeCostError):
    """An outbound request would exceed the configured rate limit."""
    pass


class NoAppropriateMatch(ChargeCostError):
    """No provider session satisfied the matching tolerances."""
    pass


class IncompleteCoverage(ChargeCostError):
    """Price intervals did not cover every sample of a session."""
    pass


class UndeterminedPhases(ChargeCostError):
    """The phase count of a session could not be inferred."""
    pass


class ScheduleBoundaryNotFound(ChargeCostError):
    """A tariff schedule does not contain the requested time range."""
    pass
