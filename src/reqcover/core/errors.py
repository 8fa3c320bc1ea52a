"""reqcover error types with typed error codes.

Error code ranges:
- 2xxx: Config
- 3xxx: Snapshot store (locking, decoding)
- 4xxx: Filesystem layout
- 5xxx: Report generation
- 6xxx: Error log
- 9xxx: Internal
"""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any


class ErrorCode(IntEnum):
    """Typed error codes for programmatic handling."""

    # Config (2xxx)
    CONFIG_PARSE_ERROR = 2001
    CONFIG_INVALID_VALUE = 2002
    CONFIG_FILE_NOT_FOUND = 2004
    CONFIG_SUITE_NOT_FOUND = 2005

    # Snapshot store (3xxx)
    LOCK_ACQUISITION_FAILED = 3001
    SNAPSHOT_DECODE_FAILED = 3002

    # Filesystem (4xxx)
    DIRECTORY_CREATION_FAILED = 4001

    # Reports (5xxx)
    REPORT_WRITER_FAILED = 5001
    REPORT_FORMAT_UNSUPPORTED = 5002

    # Error log (6xxx)
    ERROR_LOG_UNWRITABLE = 6001

    # Internal (9xxx)
    INTERNAL_ERROR = 9001


@dataclass(frozen=True, slots=True)
class ReqCoverError(Exception):
    """Base error with structured context for diagnostics."""

    code: ErrorCode
    message: str
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def error_name(self) -> str:
        """String identifier for logging (e.g., 'CONFIG_PARSE_ERROR')."""
        return self.code.name

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code.value,
            "error": self.error_name,
            "message": self.message,
            "details": self.details,
        }

    def __str__(self) -> str:
        return self.message


class ConfigError(ReqCoverError):
    """Configuration-related errors. Fatal before any recording starts."""

    @classmethod
    def parse_error(cls, path: str, reason: str) -> "ConfigError":
        return cls(
            code=ErrorCode.CONFIG_PARSE_ERROR,
            message=f"Failed to parse config at {path}: {reason}",
            details={"path": path, "reason": reason},
        )

    @classmethod
    def invalid_value(cls, field: str, value: Any, reason: str) -> "ConfigError":
        return cls(
            code=ErrorCode.CONFIG_INVALID_VALUE,
            message=f"Invalid value for '{field}': {reason}",
            details={"field": field, "value": str(value), "reason": reason},
        )

    @classmethod
    def file_not_found(cls, path: str) -> "ConfigError":
        return cls(
            code=ErrorCode.CONFIG_FILE_NOT_FOUND,
            message=f"Codeception config file '{path}' not found",
            details={"path": path},
        )

    @classmethod
    def suite_not_found(cls, suite: str) -> "ConfigError":
        return cls(
            code=ErrorCode.CONFIG_SUITE_NOT_FOUND,
            message=f"Suite '{suite}' could not be found",
            details={"suite": suite},
        )


class LockAcquisitionError(ReqCoverError):
    """Exclusive lock on the persisted snapshot could not be obtained."""

    @classmethod
    def for_path(cls, path: str, reason: str) -> "LockAcquisitionError":
        return cls(
            code=ErrorCode.LOCK_ACQUISITION_FAILED,
            message=f"Failed to acquire write-lock for {path}",
            details={"path": path, "reason": reason},
        )


class SnapshotDecodeError(ReqCoverError):
    """Persisted snapshot content could not be deserialized."""

    @classmethod
    def for_path(cls, path: str, reason: str) -> "SnapshotDecodeError":
        return cls(
            code=ErrorCode.SNAPSHOT_DECODE_FAILED,
            message=f"Failed to read coverage snapshot {path}: {reason}",
            details={"path": path, "reason": reason},
        )


class DirectoryCreationError(ReqCoverError):
    """Working or report directory could not be created."""

    @classmethod
    def for_path(cls, path: str, reason: str) -> "DirectoryCreationError":
        return cls(
            code=ErrorCode.DIRECTORY_CREATION_FAILED,
            message=f'Failed to create directory "{path}"',
            details={"path": path, "reason": reason},
        )


class ReportGenerationError(ReqCoverError):
    """A report writer failed or the requested format is not available."""

    @classmethod
    def writer_failed(cls, report_format: str, reason: str) -> "ReportGenerationError":
        return cls(
            code=ErrorCode.REPORT_WRITER_FAILED,
            message=f"Failed to build {report_format} report: {reason}",
            details={"format": report_format, "reason": reason},
        )

    @classmethod
    def unsupported(cls, report_format: str, requirement: str) -> "ReportGenerationError":
        return cls(
            code=ErrorCode.REPORT_FORMAT_UNSUPPORTED,
            message=f"{report_format.capitalize()} report requires {requirement}",
            details={"format": report_format, "requirement": requirement},
        )


class WritePermissionError(ReqCoverError):
    """The error log itself could not be written."""

    @classmethod
    def for_log(cls, path: str, original: str) -> "WritePermissionError":
        return cls(
            code=ErrorCode.ERROR_LOG_UNWRITABLE,
            message=(
                f"Could not write error to log file ({path}), original message: {original}"
            ),
            details={"path": path},
        )


class InternalError(ReqCoverError):
    """Internal/unexpected errors."""

    @classmethod
    def unexpected(cls, reason: str, **details: Any) -> "InternalError":
        return cls(
            code=ErrorCode.INTERNAL_ERROR,
            message=f"Internal error: {reason}",
            details=details,
        )
