"""
Custom exception classes for the application.

This module defines domain-specific exceptions that provide better error handling
and clearer error messages throughout the application.
"""


class ApplicationError(Exception):
    """Base exception for all application errors"""

    def __init__(self, message: str, details: dict | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class ConfigurationError(ApplicationError):
    """Raised when there's a configuration issue"""

    def __init__(self, message: str, missing_keys: list[str] | None = None):
        details = {"missing_keys": missing_keys} if missing_keys else {}
        super().__init__(message, details)


class ValidationError(ApplicationError):
    """Raised when a job or query request fails validation"""

    def __init__(self, message: str, invalid_fields: list[str] | None = None):
        self.invalid_fields = invalid_fields or []
        details = {"invalid_fields": self.invalid_fields} if self.invalid_fields else {}
        super().__init__(message, details)


class ProcessError(ApplicationError):
    """Base for failures of an external process invocation"""

    def __init__(self, command: str, message: str, details: dict | None = None):
        merged = {"command": command}
        merged.update(details or {})
        super().__init__(message, merged)


class ProcessTimeout(ProcessError):
    """Raised when a process was killed after exceeding its time limit"""

    def __init__(self, command: str, timeout_seconds: float):
        super().__init__(
            command,
            f"{command} timed out after {timeout_seconds:g} seconds",
            {"timeout_seconds": timeout_seconds}
        )


class ProcessExecutionError(ProcessError):
    """Raised when a process exits with a non-zero code"""

    def __init__(self, command: str, returncode: int, stderr: str):
        self.stderr = stderr
        msg = f"{command} failed (exit code {returncode})"
        if stderr:
            msg = f"{msg}: {stderr}"
        super().__init__(command, msg, {"returncode": returncode})


class ProcessSpawnError(ProcessError):
    """Raised when a process could not be started at all"""

    def __init__(self, command: str, reason: str):
        super().__init__(command, f"Failed to start {command}: {reason}")


class ArtifactMissingError(ApplicationError):
    """Raised when a process reported success but produced no output file"""

    def __init__(self, path: str, message: str):
        super().__init__(message, {"path": path})


class MetadataFetchError(ApplicationError):
    """Raised when format metadata for a URL cannot be retrieved"""

    def __init__(self, url: str, message: str, reason: str | None = None):
        details = {"url": url}
        if reason:
            details["reason"] = reason
        super().__init__(message, details)
