"""Config module exports."""

from reqcover.config.loader import ReqCoverSettings, load_config
from reqcover.config.models import (
    CoverageConfig,
    LoggingConfig,
    ReqCoverConfig,
    ServerConfig,
)
from reqcover.config.project import (
    CoverageRules,
    ProjectConfig,
    load_project_config,
)

__all__ = [
    "load_config",
    "load_project_config",
    "CoverageConfig",
    "CoverageRules",
    "LoggingConfig",
    "ProjectConfig",
    "ReqCoverConfig",
    "ReqCoverSettings",
    "ServerConfig",
]
