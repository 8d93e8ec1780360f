"""
Exception hierarchy for regsync.

Run-level errors (bad arguments, unparsable locators, empty sources) abort
a sync. Per-repository and per-tag errors are caught by the services that
dispatch them and only logged or counted.
"""


class RegsyncError(Exception):
    """Base class for all regsync errors."""


class UsageError(RegsyncError):
    """Bad command invocation."""


class ReferenceParseError(RegsyncError, ValueError):
    """A locator or image reference could not be parsed."""


class SourceParseError(ReferenceParseError):
    """The SOURCE locator is malformed."""


class DestinationParseError(ReferenceParseError):
    """The DESTINATION locator is malformed."""


class TagParseError(ReferenceParseError):
    """A single tag could not be turned into an image reference."""

    def __init__(self, tag: str, reason: str):
        super().__init__(f"Invalid tag '{tag}': {reason}")
        self.tag = tag
        self.reason = reason


class NoImagesFoundError(RegsyncError):
    """Resolution produced no image references."""

    def __init__(self, message: str = "No images to sync found in SOURCE"):
        super().__init__(message)


class UnsupportedSyncError(RegsyncError):
    """The source/destination combination is not supported."""


class TransportError(RegsyncError):
    """An image transport operation failed."""


class ImageNotFoundError(TransportError):
    """The image or repository does not exist."""


class AuthenticationError(TransportError):
    """The registry rejected the supplied credentials."""


class TransientTransportError(TransportError):
    """Network or registry failure that may succeed on retry."""


class SyncTimeoutError(TransportError, TimeoutError):
    """The shared run deadline elapsed."""


class InspectError(RegsyncError):
    """Fetching source image metadata failed."""


class CopyError(RegsyncError):
    """Copying an image failed after all attempts."""

    def __init__(self, message: str, attempts: int = 1):
        super().__init__(message)
        self.attempts = attempts
