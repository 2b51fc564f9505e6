"""Custom exceptions for planet generation."""


class PlanetGenError(Exception):
    """Base exception for planet generation errors."""

    pass


class ConfigurationError(PlanetGenError):
    """Raised when a profile, strategy or population rule is unusable.

    Generation aborts without producing a partial world.
    """

    pass
