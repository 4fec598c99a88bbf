"""Exception hierarchy for autoheal.

Operational failures of collaborators (store, oracle) are caught close to
where they happen and degraded to neutral results. Only configuration,
startup and invariant failures are expected to reach a caller.
"""


class AutohealError(Exception):
    """Base exception for all autoheal errors."""


class ConfigurationError(AutohealError):
    """Configuration could not be loaded or is inconsistent."""


class StoreError(AutohealError):
    """A store operation failed."""


class StoreUnavailableError(StoreError):
    """The backing store could not be opened or reached."""


class InvalidErrorRecordError(StoreError):
    """An error record was rejected at the store boundary."""


class OracleError(AutohealError):
    """The external oracle failed or returned an unusable response."""


class InvariantViolationError(AutohealError):
    """An engine invariant was broken. Indicates a bug, not an operational fault."""
