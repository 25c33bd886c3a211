"""
Custom exceptions for Product Staging
"""


class StagingError(Exception):
    """Base class for all staging failures."""


class ImageUnreadableError(StagingError):
    """
    Raised when an image source cannot be loaded or decoded.

    Fatal to the enclosing operation: compositing fails outright,
    deskew reports it through DeskewResult.reason instead.
    """

    def __init__(self, source: str, message: str = None):
        self.source = source
        self.message = message or f"Image unreadable: {source}"
        super().__init__(self.message)


class SurfaceUnavailableError(StagingError):
    """Raised when a drawing or analysis surface cannot be allocated."""

    def __init__(self, width: int, height: int, message: str = None):
        self.width = width
        self.height = height
        self.message = message or f"Cannot allocate a {width}x{height} surface"
        super().__init__(self.message)


class CompositeError(StagingError):
    """
    Raised when a composite cannot be produced.

    The compositing path never hands back a partially drawn image,
    so callers get either a finished result or this exception.
    """
