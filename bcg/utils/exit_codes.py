"""
bcg Exit Codes - Standardized Exit Codes for Monitoring Integration

Exit codes are consumed by the systemd timer and monitoring checks that run
bcg unattended. Changes here must be coordinated with whoever alerts on them.
"""

from enum import IntEnum


class BCGExitCodes(IntEnum):
    """
    Standardized exit codes for bcg runs

    Exit codes follow UNIX conventions:
    - 0: Success
    - 1-2: User/configuration errors
    - 3-63: Application-specific errors
    - 128+: Signal termination
    """

    # Success
    SUCCESS = 0

    # User/Configuration Errors (1-2)
    GENERAL_ERROR = 1
    INVALID_USAGE = 2

    # bcg Application Errors (3-63)
    CONFIGURATION_ERROR = 3
    ENRICHMENT_FAILED = 4
    COMPILATION_FAILED = 5
    EMISSION_FAILED = 6
    BGPQ4_EXECUTION_FAILED = 17
    UNEXPECTED_ERROR = 22

    # Signal Termination (128+)
    SIGINT_TERMINATION = 130   # Ctrl+C (SIGINT = 2, 128+2)


def describe_exit_code(code: int) -> str:
    """Human readable name for an exit code, for log lines"""
    try:
        return BCGExitCodes(code).name.lower().replace("_", "-")
    except ValueError:
        return f"exit-{code}"
