"""Custom exceptions for quantcore.

This module defines the exception hierarchy for the application.

Ledger rejections (insufficient margin, naked short) are not exceptions: they
are reported as values on ``FillResult`` and never abort a scheduler tick.
"""


class QuantCoreError(Exception):
    """Base exception for all quantcore errors.

    All custom exceptions in the application should inherit from this class.
    """

    pass


class ConfigurationError(QuantCoreError):
    """Raised when configuration is invalid or missing.

    Examples:
        - Invalid engine settings (non-positive rate limit)
        - Unparseable environment override
    """

    pass


class AllocationConfigError(ConfigurationError):
    """Raised when sleeve weights are malformed.

    Examples:
        - Negative sleeve weight
        - Non-numeric or non-finite sleeve weight
    """

    pass


class EngineError(QuantCoreError):
    """Base exception for engine control errors."""

    pass


class EngineStateError(EngineError):
    """Raised when a control operation is not allowed in the current state.

    Examples:
        - start() on a running engine
        - set_allocation_config() while the engine is running
    """

    pass


class MarketDataError(QuantCoreError):
    """Raised when the market feed produces an unusable snapshot.

    Examples:
        - Empty universe
        - Duplicate instrument identifiers
    """

    pass
