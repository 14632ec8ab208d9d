"""
Error taxonomy for the pricing engine.

Input validation and a failed Black-Scholes anchor are fatal. Numerical
instability and allocation failures are recovered by the fallback chain.
"""

from heston_fft.core.types import FallbackReason


class PricingError(Exception):
    """Base class for pricing engine errors."""

    reason: FallbackReason = FallbackReason.NONE


class InputValidationError(PricingError, ValueError):
    """Non-positive price, spot, strike or time, or an invalid grid override."""

    reason = FallbackReason.INVALID_INPUT


class NumericInstabilityError(PricingError):
    """Non-finite values prevented a usable price curve."""

    reason = FallbackReason.NUMERIC_INSTABILITY


class AllocationFailureError(PricingError):
    """Transform or cache buffers could not be allocated."""

    reason = FallbackReason.ALLOCATION_FAILURE


class BlackScholesAnchorError(PricingError):
    """The Black-Scholes implied volatility anchor is undefined for the inputs."""

    reason = FallbackReason.ANCHOR_UNAVAILABLE
