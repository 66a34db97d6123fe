"""
Utility modules for the placement matching engine.

This package contains shared utilities used across the application:
- config: Configuration management
- logger: Logging infrastructure
- constants: Application-wide constants
- exceptions: Error types used by the queue processor
"""

from placement_matching.utils.config import (
    AppSettings,
    get_settings,
    reload_settings,
    ROOT_DIR,
    PACKAGE_DIR,
    LOGS_DIR,
)
from placement_matching.utils.constants import (
    APP_NAME,
    APP_DISPLAY_NAME,
    VERSION,
    MatchRecordStatus,
    MatchScoreLevel,
    PreferenceType,
    RunType,
    TaskStatus,
)
from placement_matching.utils.exceptions import (
    CandidateNotFoundError,
    InvalidTaskScopeError,
    MatchingError,
    OpportunityNotFoundError,
    ProfileNotFoundError,
    TaskTimeoutError,
)
from placement_matching.utils.logger import (
    setup_logging,
    get_logger,
    audit_log,
    LoggerMixin,
    task_context,
    log,
)

__all__ = [
    # Config
    "AppSettings",
    "get_settings",
    "reload_settings",
    "ROOT_DIR",
    "PACKAGE_DIR",
    "LOGS_DIR",
    # Constants
    "APP_NAME",
    "APP_DISPLAY_NAME",
    "VERSION",
    "MatchRecordStatus",
    "MatchScoreLevel",
    "PreferenceType",
    "RunType",
    "TaskStatus",
    # Exceptions
    "CandidateNotFoundError",
    "InvalidTaskScopeError",
    "MatchingError",
    "OpportunityNotFoundError",
    "ProfileNotFoundError",
    "TaskTimeoutError",
    # Logger
    "setup_logging",
    "get_logger",
    "audit_log",
    "LoggerMixin",
    "task_context",
    "log",
]
