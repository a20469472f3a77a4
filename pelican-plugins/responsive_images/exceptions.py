"""Errors raised by the responsive images plugin."""


class ResponsiveImagesError(Exception):
    pass


class ConfigurationError(ResponsiveImagesError):
    """An option value or preset that cannot be used as configured."""


class BreakpointError(ResponsiveImagesError):
    """No usable breakpoint ladder could be planned for an image."""


class DerivativeError(ResponsiveImagesError):
    """Decoding, scaling or encoding a derivative failed."""

    def __init__(self, message: str, source=None, target=None):
        super().__init__(message)
        self.source = source
        self.target = target
