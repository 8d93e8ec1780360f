"""
Standard exit codes for regsync commands.

Following Unix/POSIX conventions for command-line tools.
"""
from typing import Optional

# Standard POSIX exit codes
SUCCESS = 0              # Successful termination
GENERAL_ERROR = 1        # General errors
USAGE_ERROR = 2          # Misuse of shell command (wrong arguments, etc.)

# Application-specific exit codes (64-113 are typically available)
NO_IMAGES_FOUND = 64     # Source resolved to zero images
API_ERROR = 65           # Image transport call failed
CONFIG_ERROR = 66        # Configuration or source YAML error
NETWORK_ERROR = 68       # Network connection failed or timed out
AUTH_ERROR = 69          # Authentication/authorization failed
DATA_ERROR = 70          # Malformed locator or reference
PARTIAL_SUCCESS = 71     # Some tags synced, some failed
INTERRUPTED = 130        # Terminated by Ctrl+C (SIGINT)

# Exit code mappings for common exceptions
EXCEPTION_EXIT_CODES = {
    'TimeoutError': NETWORK_ERROR,
    'ValueError': DATA_ERROR,
    'ConfigError': CONFIG_ERROR,
    'UsageError': USAGE_ERROR,
    'SourceParseError': DATA_ERROR,
    'DestinationParseError': DATA_ERROR,
    'TagParseError': DATA_ERROR,
    'NoImagesFoundError': NO_IMAGES_FOUND,
    'UnsupportedSyncError': USAGE_ERROR,
    'SyncTimeoutError': NETWORK_ERROR,
    'TransientTransportError': NETWORK_ERROR,
    'AuthenticationError': AUTH_ERROR,
    'ImageNotFoundError': API_ERROR,
    'TransportError': API_ERROR,
}


def get_exit_code_for_exception(exc: Exception) -> int:
    """
    Get the appropriate exit code for an exception.

    Looks up the exception's class and then its bases, so subclasses
    without their own entry inherit the parent's code.

    Args:
        exc: The exception that occurred

    Returns:
        Appropriate exit code
    """
    if isinstance(exc, CommandError):
        return exc.exit_code
    for klass in type(exc).__mro__:
        code = EXCEPTION_EXIT_CODES.get(klass.__name__)
        if code is not None:
            return code
    return GENERAL_ERROR


def exit_with_code(code: int, message: Optional[str] = None):
    """
    Exit with a specific code and optional message.

    Args:
        code: Exit code
        message: Optional message to print to stderr
    """
    import sys
    if message:
        print(message, file=sys.stderr)
    sys.exit(code)


class CommandError(Exception):
    """
    Exception that commands can raise to indicate specific exit codes.
    """
    def __init__(self, message: str, exit_code: int = GENERAL_ERROR):
        super().__init__(message)
        self.exit_code = exit_code


class ConfigError(CommandError):
    """Raised when there's a configuration error."""
    def __init__(self, message: str):
        super().__init__(message, CONFIG_ERROR)


class PartialSuccessError(CommandError):
    """Raised when some operations succeed and some fail."""
    def __init__(self, message: str, succeeded: int = 0, failed: int = 0):
        super().__init__(message, PARTIAL_SUCCESS)
        self.succeeded = succeeded
        self.failed = failed
