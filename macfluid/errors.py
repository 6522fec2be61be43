"""
errors.py — Exception Hierarchy
================================
Everything the package raises on purpose derives from FluidSimError.

Runtime anomalies (samples outside the domain, a pressure solve that runs
out of iterations, a near-zero max velocity) are clamped or capped instead
of raised. Only bad configuration and a genuinely blown-up field reach here.
"""


class FluidSimError(Exception):
    """Root of all macfluid errors."""


class ConfigurationError(FluidSimError, ValueError):
    """A configuration value is invalid."""


class InvalidDimensionError(ConfigurationError):
    """Grid width or height is not a positive, finite number."""


class SimulationError(FluidSimError, RuntimeError):
    """The simulation state cannot be advanced (e.g. non-finite velocity)."""
