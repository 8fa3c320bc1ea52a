"""Core module exports."""

from reqcover.core.errors import (
    ConfigError,
    DirectoryCreationError,
    ErrorCode,
    InternalError,
    LockAcquisitionError,
    ReportGenerationError,
    ReqCoverError,
    SnapshotDecodeError,
    WritePermissionError,
)
from reqcover.core.logging import (
    clear_request_id,
    configure_logging,
    get_logger,
    get_request_id,
    set_request_id,
)

__all__ = [
    # Errors
    "ConfigError",
    "DirectoryCreationError",
    "ErrorCode",
    "InternalError",
    "LockAcquisitionError",
    "ReportGenerationError",
    "ReqCoverError",
    "SnapshotDecodeError",
    "WritePermissionError",
    # Logging
    "clear_request_id",
    "configure_logging",
    "get_logger",
    "get_request_id",
    "set_request_id",
]
