"""Base error type for appbuild.

Every failure raised by the package carries a stable ``code`` so that
callers (CLI, run history) can record and branch on it without parsing
messages. Concrete error classes live next to the code that raises them.
"""

# Stable error codes
PATTERN_MALFORMED = "pattern_malformed"
RESOLUTION_AMBIGUOUS = "resolution_ambiguous"
RESOLUTION_EMPTY = "resolution_empty"
INTEREST_INSPECTION_ERROR = "interest_inspection_error"
ARGUMENT_PARSE_ERROR = "argument_parse_error"
FINGERPRINT_ERROR = "fingerprint_error"
BUILD_FAILED = "build_failed"
EXECUTION_ERROR = "execution_error"
CAPTURE_IO_FAILED = "capture_io_failed"
PURGE_IO_FAILED = "purge_io_failed"
RESTORE_IO_FAILED = "restore_io_failed"
SCAN_FAILED = "scan_failed"
LEDGER_FAILED = "ledger_failed"
DEPENDENCY_CACHE_ERROR = "dependency_cache_error"
RUN_NOT_FOUND = "run_not_found"


class AppBuildError(Exception):
    """Base error for all appbuild operations."""

    def __init__(self, message: str, code: str = "appbuild_error") -> None:
        super().__init__(message)
        self.code = code


__all__ = [
    "ARGUMENT_PARSE_ERROR",
    "BUILD_FAILED",
    "CAPTURE_IO_FAILED",
    "DEPENDENCY_CACHE_ERROR",
    "EXECUTION_ERROR",
    "FINGERPRINT_ERROR",
    "INTEREST_INSPECTION_ERROR",
    "LEDGER_FAILED",
    "PATTERN_MALFORMED",
    "PURGE_IO_FAILED",
    "RESOLUTION_AMBIGUOUS",
    "RESOLUTION_EMPTY",
    "RESTORE_IO_FAILED",
    "RUN_NOT_FOUND",
    "SCAN_FAILED",
    "AppBuildError",
]
