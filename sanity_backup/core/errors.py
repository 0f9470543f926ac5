"""Exception hierarchy."""


class SanityBackupError(Exception):
    """Base error for the project."""


class InvalidRootError(SanityBackupError):
    """A source or destination root is missing or not a directory."""


class UsageError(SanityBackupError):
    """Bad command line."""


class ListingError(SanityBackupError):
    """A complete source or destination listing could not be obtained."""

    def __init__(self, side: str, cause: BaseException):
        super().__init__(f"Unable to get complete {side} listing: {cause}")
        self.side = side
        self.cause = cause


class QueueShutDownError(SanityBackupError):
    """Raised when putting onto a work queue that was forcibly shut down."""
