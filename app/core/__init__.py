"""Core module initialization."""

from app.core.cache import cache_manager, cached
from app.core.config import Settings, get_settings
from app.core.database import Base, build_engine, build_session_factory
from app.core.exceptions import AssessmentPlatformError, ErrorKind
from app.core.init_guard import InitializeOnce
from app.core.result import Err, Ok, Result, to_response

__all__ = [
    # Config
    "Settings",
    "get_settings",
    # Database
    "Base",
    "build_engine",
    "build_session_factory",
    # Cache
    "cache_manager",
    "cached",
    # Errors and results
    "AssessmentPlatformError",
    "ErrorKind",
    "Ok",
    "Err",
    "Result",
    "to_response",
    # Initialization
    "InitializeOnce",
]
