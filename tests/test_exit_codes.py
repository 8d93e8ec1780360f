"""
Tests for exit code mapping.
"""

import pytest

from regsync import exit_codes
from regsync.errors import (
    AuthenticationError,
    CopyError,
    DestinationParseError,
    ImageNotFoundError,
    NoImagesFoundError,
    SourceParseError,
    SyncTimeoutError,
    TagParseError,
    TransientTransportError,
    UnsupportedSyncError,
    UsageError,
)
from regsync.exit_codes import (
    CommandError,
    ConfigError,
    get_exit_code_for_exception,
)


class TestExitCodes:
    """Tests for get_exit_code_for_exception."""

    @pytest.mark.parametrize("exc, code", [
        (UsageError("x"), exit_codes.USAGE_ERROR),
        (SourceParseError("x"), exit_codes.DATA_ERROR),
        (DestinationParseError("x"), exit_codes.DATA_ERROR),
        (TagParseError("-x", "invalid"), exit_codes.DATA_ERROR),
        (NoImagesFoundError(), exit_codes.NO_IMAGES_FOUND),
        (UnsupportedSyncError("x"), exit_codes.USAGE_ERROR),
        (SyncTimeoutError("x"), exit_codes.NETWORK_ERROR),
        (TransientTransportError("x"), exit_codes.NETWORK_ERROR),
        (AuthenticationError("x"), exit_codes.AUTH_ERROR),
        (ImageNotFoundError("x"), exit_codes.API_ERROR),
        (ConfigError("x"), exit_codes.CONFIG_ERROR),
        (ValueError("x"), exit_codes.DATA_ERROR),
    ])
    def test_mapping(self, exc, code):
        assert get_exit_code_for_exception(exc) == code

    def test_subclass_inherits_parent_code(self):
        class MirrorUnavailable(TransientTransportError):
            pass

        assert get_exit_code_for_exception(MirrorUnavailable("x")) == exit_codes.NETWORK_ERROR

    def test_command_error_carries_code(self):
        assert get_exit_code_for_exception(CommandError("x", exit_code=42)) == 42

    @pytest.mark.parametrize("exc", [RuntimeError("x"), KeyError("x"), FileNotFoundError("x")])
    def test_unknown_exception(self, exc):
        assert get_exit_code_for_exception(exc) == exit_codes.GENERAL_ERROR

    def test_copy_error_keeps_attempts(self):
        err = CopyError("docker://a.io/b:v1: reset", attempts=4)

        assert err.attempts == 4
        assert get_exit_code_for_exception(err) == exit_codes.GENERAL_ERROR

    def test_exit_with_code(self, capsys):
        with pytest.raises(SystemExit) as excinfo:
            exit_codes.exit_with_code(exit_codes.PARTIAL_SUCCESS, "Error: boom")

        assert excinfo.value.code == exit_codes.PARTIAL_SUCCESS
        assert "Error: boom" in capsys.readouterr().err
