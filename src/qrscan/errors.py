"""
Error types raised by the QR scanning core.

Backend I/O failures are not wrapped: they surface as the ``OSError``
raised by the capture backend.
"""


class ScanError(Exception):
    """Base class for all scanning errors."""
    pass


class UnsupportedFormat(ScanError):
    """No usable capture mode, or a pixel format without a converter."""
    pass


class FormatNotHonored(ScanError):
    """The device applied a different pixel format than the one requested."""

    def __init__(self, requested, applied):
        super().__init__(
            f"Camera applied format {applied} instead of requested {requested}"
        )
        self.requested = requested
        self.applied = applied


class DecodeFailure(ScanError):
    """A raw frame could not be turned into a still image."""
    pass


class ExhaustedInput(ScanError):
    """A fixed frame or result queue has been drained."""
    pass
