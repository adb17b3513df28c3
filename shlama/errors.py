from typing import Optional


class ShlamaError(Exception):
    """Base class for every error reported to the user."""


class UsageError(ShlamaError):
    """The request was empty or the command line was malformed."""


class ServerUnavailableError(ShlamaError):
    """The inference server could not be reached or started."""


class InferenceError(ShlamaError):
    """The generation request failed in transport, timed out or returned a bad payload."""


class EmptySuggestionError(ShlamaError):
    """The model answered but left nothing usable after cleanup."""


class ExecutionError(ShlamaError):
    """The confirmed command could not be started or exited with a failure status."""

    def __init__(self, message: str, command: str, returncode: Optional[int] = None):
        super().__init__(message)
        self.command = command
        self.returncode = returncode


class ConfigWriteError(ShlamaError):
    """Persisting the model choice failed."""
