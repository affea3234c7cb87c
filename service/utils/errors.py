"""
Error types for the uploader service.

All errors inherit from UploaderError for easy catching. The subclasses mirror
how far a failure is allowed to reach: a ConfigError refuses a whole
configuration, a TaskConstructionError drops one watch task, everything else
only affects a single file.
"""


class UploaderError(Exception):
    """Base exception for all uploader failures."""
    pass


class ConfigError(UploaderError):
    """Raised when a configuration can't be used to build an uploader."""
    pass


class TaskConstructionError(UploaderError):
    """Raised when a single watch task can't be created."""

    def __init__(self, directory: str, reason: str):
        self.directory = directory
        self.reason = reason
        super().__init__(f"can't watch {directory}: {reason}")


class WatchDirectoryNotFoundError(TaskConstructionError, FileNotFoundError):
    """Raised when a watched directory does not exist."""

    def __init__(self, directory: str):
        super().__init__(directory, "no such directory")


class WatchNotADirectoryError(TaskConstructionError, NotADirectoryError):
    """Raised when a watched path is not a directory."""

    def __init__(self, directory: str):
        super().__init__(directory, "not a directory")


class WatchSubscriptionError(TaskConstructionError):
    """Raised when filesystem notifications can't be subscribed to."""
    pass


class InvalidPatternError(TaskConstructionError):
    """Raised when a file name pattern is not a valid glob."""

    def __init__(self, directory: str, pattern: str):
        self.pattern = pattern
        super().__init__(directory, f"invalid file name pattern: {pattern!r}")


class TransientFileError(UploaderError):
    """Raised when a file can't be processed right now (stat failure, size)."""

    def __init__(self, filepath: str, reason: str):
        self.filepath = filepath
        self.reason = reason
        super().__init__(f"{filepath}: {reason}")


class TagEvaluationError(UploaderError):
    """Raised when a tag expression can't be evaluated for a file."""

    def __init__(self, expression: str, reason: str):
        self.expression = expression
        self.reason = reason
        super().__init__(f"can't evaluate tag expr [{expression}]: {reason}")


class DeliveryError(UploaderError):
    """Raised when a file can't be delivered to its chat."""
    pass


class DeliveryCancelledError(DeliveryError):
    """Raised when a delivery is abandoned because the uploader is stopping."""

    def __init__(self):
        super().__init__("delivery cancelled")
