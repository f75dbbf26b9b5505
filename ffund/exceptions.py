"""
Custom exceptions for the ffund allocation engine.

Domain validation failures are never raised; they travel as
``AllocationResult`` values. The exceptions below cover programming
faults, dependency failures and configuration problems.
"""


class FfundError(Exception):
    """Base exception for all ffund-related errors."""
    pass


class AllocationStateError(FfundError):
    """Raised when a snapshot holds a state the engine can never accept.

    Examples: a negative funding goal, a negative milestone price, or a
    phase that belongs to a different project than the one supplied.
    """
    pass


class AllocationRejected(FfundError):
    """Raised by ``AllocationResult.unwrap()`` on a rejected proposal."""

    def __init__(self, issue):
        self.issue = issue
        super().__init__(f"{issue.kind.value}: {issue.message}")


class StoreError(FfundError):
    """Raised when an external store call fails."""
    pass


class SnapshotError(FfundError):
    """Raised when a snapshot file cannot be loaded or is malformed."""
    pass


class ConfigurationError(FfundError):
    """Raised when there's a configuration or setup issue."""
    pass
