"""
Cross-cutting middleware: error rendering, CORS and access logging.
"""

from .error_handler import create_error_response, setup_exception_handlers
from .cors import CORSConfig, get_cors_config, setup_cors
from .logging import LoggingConfig, redact_sensitive_data, setup_logging

__all__ = [
    "create_error_response",
    "setup_exception_handlers",
    "CORSConfig",
    "get_cors_config",
    "setup_cors",
    "LoggingConfig",
    "redact_sensitive_data",
    "setup_logging",
]
