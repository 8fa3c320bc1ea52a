"""Pydantic configuration models with env var support.

Configuration Hierarchy (highest to lowest precedence):
1. Direct kwargs to load_config()
2. Environment variables (REQCOVER__SECTION__KEY)
3. YAML settings file (reqcover.yaml)
4. Built-in defaults (this file)

Environment Variable Format:
    REQCOVER__<SECTION>__<KEY>=<VALUE>

Examples:
    REQCOVER__LOGGING__LEVEL=DEBUG
    REQCOVER__SERVER__PORT=8080
    REQCOVER__COVERAGE__CONFIG_DIR=/srv/app
"""

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class LogOutputConfig(BaseModel):
    """Single logging output configuration."""

    format: Literal["json", "console"] = "console"
    destination: str = "stderr"  # stderr, stdout, or absolute file path
    level: LogLevel | None = None  # Inherits from parent if None

    @field_validator("destination")
    @classmethod
    def validate_destination(cls, v: str) -> str:
        if v in ("stderr", "stdout"):
            return v
        path = Path(v).expanduser()
        if not path.is_absolute():
            raise ValueError(f"File destination must be absolute path: {v}")
        return str(path)


class LoggingConfig(BaseModel):
    """Logging configuration.

    Env vars:
        REQCOVER__LOGGING__LEVEL: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """

    level: LogLevel = Field(
        default="INFO",
        description="Root log level. DEBUG logs every armed request.",
    )
    outputs: list[LogOutputConfig] = Field(default_factory=lambda: [LogOutputConfig()])


class ServerConfig(BaseModel):
    """Server configuration for `reqcover serve`.

    Env vars:
        REQCOVER__SERVER__HOST: Bind address (default: 127.0.0.1)
        REQCOVER__SERVER__PORT: Port number (default: 8000)
    """

    host: str = Field(
        default="127.0.0.1",
        description="Bind address. Use 0.0.0.0 for network access.",
    )
    port: int = Field(default=8000, description="Server port.")

    @field_validator("port")
    @classmethod
    def validate_port(cls, v: int) -> int:
        if not (0 <= v <= 65535):
            raise ValueError(f"Port must be 0-65535, got {v}")
        return v


class CoverageConfig(BaseModel):
    """Coverage collection configuration.

    Env vars:
        REQCOVER__COVERAGE__CONFIG_DIR: Where codeception.yml is looked up
        REQCOVER__COVERAGE__WORK_DIR: Override the c3tmp working directory
        REQCOVER__COVERAGE__ERROR_LOG_FILE: Override <work_dir>/error.txt
    """

    config_dir: str = Field(
        default=".",
        description="Directory holding codeception.yml / codeception.dist.yml.",
    )
    work_dir: str | None = Field(
        default=None,
        description="Working directory for the snapshot and reports. "
        "Default: <paths.output>/c3tmp from the project config.",
    )
    error_log_file: str | None = Field(
        default=None,
        description="Fatal errors are written here. Default: <work_dir>/error.txt.",
    )
    report_route: str = Field(
        default="c3/report",
        description="Path fragment that marks report requests.",
    )


class ReqCoverConfig(BaseModel):
    """Root configuration for reqcover."""

    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    coverage: CoverageConfig = Field(default_factory=CoverageConfig)
