"""
Custom exception hierarchy for the media deduplicating organizer.

Only ValidationError (and PipelineBusyError) escape a pipeline run. The
other kinds are caught at the stage that raised them and recorded in the
run's report so processing can continue.
"""


class MediaDedupError(Exception):
    """Base exception for all organizer errors."""
    pass


class ValidationError(MediaDedupError):
    """Raised when the source or target arguments are unusable."""
    pass


class ReadError(MediaDedupError):
    """Raised when a file cannot be read for hashing."""
    pass


class MetadataError(MediaDedupError):
    """Raised when a metadata probe fails on a file."""
    pass


class TransferError(MediaDedupError):
    """Raised when a copy or move operation fails."""

    def __init__(self, message: str, src=None, dest=None):
        super().__init__(message)
        self.src = src
        self.dest = dest


class PipelineBusyError(MediaDedupError):
    """Raised when a run is started on an app that is already running one."""
    pass
