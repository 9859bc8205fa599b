"""Exception types raised by the precomputation pipeline.

Configuration and resource errors abort a run: a caller either gets a
complete, consistent set of coefficients or an exception.
"""


class PRTError(Exception):
    """Base class for all radiance transfer errors."""


class ConfigurationError(PRTError, ValueError):
    """Invalid configuration value."""


class UnsupportedModeError(ConfigurationError):
    """Transport mode string is not one of the recognized values."""

    def __init__(self, mode: str, supported: tuple):
        self.mode = mode
        self.supported = supported
        super().__init__(
            f"Unsupported transport mode: {mode!r}. "
            f"Expected one of: {', '.join(supported)}"
        )


class ResourceLoadError(PRTError, OSError):
    """An input resource (cubemap face, mesh file) could not be decoded."""


class ResourceMismatchError(PRTError, ValueError):
    """Input resources have inconsistent shapes (e.g. cubemap face sizes)."""


class InvalidIndexError(PRTError, IndexError):
    """SH (l, m) pair or mesh vertex index outside its declared range."""
