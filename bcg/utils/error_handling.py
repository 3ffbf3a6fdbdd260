#!/usr/bin/env python3
"""
bcg Error Handling Utilities

Provides the fatal error hierarchy, standardized error formatting and a
command decorator that turns errors into exit codes.

Every failure in a run is fatal: router policy is all-or-nothing, so errors
carry enough context (peer, stage, cause) to report exactly which peer
blocked the run.

Error Format Standards:
- INFO: "✓ {message}"                    # Success messages
- WARNING: "⚠ {message}"                 # Warning messages
- ERROR: "✗ {message}"                   # Error messages
- FATAL: "✗ Fatal: {message}"            # Critical errors
- USAGE: "Usage: {usage_help}"           # Usage guidance
"""

import logging
import subprocess
from functools import wraps
from typing import Optional, Union

from bcg.utils.exit_codes import BCGExitCodes


class ErrorSeverity:
    """Error severity levels for consistent classification"""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    FATAL = "fatal"
    USAGE = "usage"


class BCGError(Exception):
    """Base exception class for bcg with standardized error handling"""

    stage = "run"
    exit_code = BCGExitCodes.GENERAL_ERROR

    def __init__(self, message: str, severity: str = ErrorSeverity.FATAL,
                 guidance: Optional[str] = None, technical_details: Optional[str] = None,
                 peer: Optional[str] = None):
        self.message = message
        self.severity = severity
        self.guidance = guidance
        self.technical_details = technical_details
        self.peer = peer
        super().__init__(message)

    def __str__(self):
        if self.peer:
            return f"[{self.peer}] {self.message}"
        return self.message


class ConfigurationError(BCGError):
    """Raised when the peer document or application settings are invalid"""

    stage = "config"
    exit_code = BCGExitCodes.CONFIGURATION_ERROR


class EnrichmentError(BCGError):
    """Raised when external peer data cannot be resolved"""

    stage = "enrichment"
    exit_code = BCGExitCodes.ENRICHMENT_FAILED


class RegistryError(EnrichmentError):
    """Raised when the registry is unreachable or answers with garbage"""
    pass


class RegistryNotFoundError(RegistryError):
    """Raised when an ASN has no registry entry"""
    pass


class PrefixGeneratorError(EnrichmentError):
    """Raised when the prefix-set generator fails"""

    exit_code = BCGExitCodes.BGPQ4_EXECUTION_FAILED


class CompilationError(BCGError):
    """Raised when a resolved peer violates a compile-time invariant"""

    stage = "compile"
    exit_code = BCGExitCodes.COMPILATION_FAILED


class EmissionError(BCGError):
    """Raised when artifacts cannot be rendered, written or activated"""

    stage = "emit"
    exit_code = BCGExitCodes.EMISSION_FAILED


class ErrorFormatter:
    """Centralized error message formatting with consistent symbols and styles"""

    SYMBOLS = {
        ErrorSeverity.INFO: "✓",
        ErrorSeverity.WARNING: "⚠",
        ErrorSeverity.ERROR: "✗",
        ErrorSeverity.FATAL: "✗ Fatal:",
        ErrorSeverity.USAGE: "Usage:"
    }

    @classmethod
    def format_message(cls, message: str, severity: str = ErrorSeverity.ERROR,
                       guidance: Optional[str] = None) -> str:
        """Format a message with the appropriate symbol and structure"""
        symbol = cls.SYMBOLS.get(severity, "•")
        formatted = f"{symbol} {message}"

        if guidance:
            formatted += f"\n  Suggestion: {guidance}"

        return formatted

    @classmethod
    def format_error(cls, error: Union[Exception, BCGError],
                     hide_technical: bool = True) -> str:
        """Format an exception with appropriate level of detail"""
        if isinstance(error, BCGError):
            message = f"{error.stage} failed: {error}"
            formatted = cls.format_message(message, error.severity, error.guidance)
            if not hide_technical and error.technical_details:
                formatted += f"\n  Technical: {error.technical_details}"
            return formatted

        error_type = type(error).__name__
        message = str(error)

        if isinstance(error, FileNotFoundError):
            guidance = "Check that the file path is correct and the file exists"
            return cls.format_message(f"File not found: {message}",
                                      ErrorSeverity.ERROR, guidance)
        elif isinstance(error, PermissionError):
            guidance = "Check file permissions or run with appropriate privileges"
            return cls.format_message(f"Permission denied: {message}",
                                      ErrorSeverity.ERROR, guidance)
        elif isinstance(error, subprocess.TimeoutExpired):
            guidance = "Check network connectivity or increase timeout value"
            return cls.format_message(f"Operation timed out: {message}",
                                      ErrorSeverity.ERROR, guidance)
        elif isinstance(error, KeyboardInterrupt):
            return cls.format_message("Operation interrupted by user", ErrorSeverity.WARNING)
        else:
            if hide_technical:
                return cls.format_message("Unexpected error occurred", ErrorSeverity.ERROR,
                                          "Check logs for details or run with --verbose")
            return cls.format_message(f"Unexpected {error_type}: {message}",
                                      ErrorSeverity.ERROR)


def handle_errors(logger_name: str = None, hide_technical: Optional[bool] = None):
    """
    Decorator for standardized error handling in command functions

    When hide_technical is None, technical details are shown if the command's
    parsed arguments (first positional argument) carry verbose=True.
    """
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            logger = logging.getLogger(logger_name or f'bcg.{func.__name__}')
            hide = hide_technical
            if hide is None:
                hide = not (args and getattr(args[0], 'verbose', False))

            try:
                return func(*args, **kwargs)
            except BCGError as e:
                logger.error(f"{e.stage} stage aborted the run: {e}")
                if e.technical_details:
                    logger.error(f"{e.stage} stage details: {e.technical_details}")
                print(ErrorFormatter.format_error(e, hide))
                return int(e.exit_code)

            except KeyboardInterrupt:
                logger.info(f"Command {func.__name__} interrupted by user")
                print(ErrorFormatter.format_message("Operation interrupted by user",
                                                    ErrorSeverity.WARNING))
                return int(BCGExitCodes.SIGINT_TERMINATION)

            except Exception as e:
                logger.exception(f"Unexpected error in {func.__name__}: {e}")
                print(ErrorFormatter.format_error(e, hide))
                return int(BCGExitCodes.UNEXPECTED_ERROR)

        return wrapper
    return decorator


def print_success(message: str):
    """Print a success message with consistent formatting"""
    print(ErrorFormatter.format_message(message, ErrorSeverity.INFO))


def print_warning(message: str, guidance: str = None):
    """Print a warning message with consistent formatting"""
    print(ErrorFormatter.format_message(message, ErrorSeverity.WARNING, guidance))


def print_error(message: str, guidance: str = None):
    """Print an error message with consistent formatting"""
    print(ErrorFormatter.format_message(message, ErrorSeverity.ERROR, guidance))


__all__ = [
    'ErrorSeverity', 'BCGError', 'ConfigurationError', 'EnrichmentError',
    'RegistryError', 'RegistryNotFoundError', 'PrefixGeneratorError',
    'CompilationError', 'EmissionError', 'ErrorFormatter', 'handle_errors',
    'print_success', 'print_warning', 'print_error'
]
