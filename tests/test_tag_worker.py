"""
Tests for the tag sync worker.
"""

from unittest.mock import MagicMock

import pytest

from regsync.domain.context import CopyOptions, SystemContext
from regsync.domain.manifest import ImageInspectInfo
from regsync.domain.operation import RepoDescriptor, SyncStatus, SyncUnit
from regsync.domain.reference import (
    directory_reference,
    parse_docker_reference,
    parse_location,
)
from regsync.errors import (
    CopyError,
    DestinationParseError,
    InspectError,
    SyncTimeoutError,
    TransientTransportError,
    UnsupportedSyncError,
)
from regsync.infra.deadline import Deadline
from regsync.services.tag_worker import TagSyncWorker, build_destination
from tests.conftest import FakeTransport, write_manifest

SOURCE = "registry.example.com/team/busybox:v1"


def _unit(destination, ref=None, ctx=None, dir_base_path=None):
    ref = ref or parse_docker_reference(SOURCE)
    repo = RepoDescriptor(
        context=ctx or SystemContext(),
        tagged_images=(ref,),
        dir_base_path=dir_base_path,
    )
    return SyncUnit(0, ref, parse_location(destination), repo, CopyOptions(source_ctx=repo.context))


class TestBuildDestination:
    """Tests for destination naming."""

    def test_registry_to_directory(self):
        dest = build_destination(parse_docker_reference(SOURCE), parse_location("dir:/mnt/mirror"))

        assert dest.is_directory
        assert dest.path == "/mnt/mirror/registry.example.com/team/busybox:v1"

    def test_registry_to_registry(self):
        dest = build_destination(parse_docker_reference(SOURCE), parse_location("docker://mirror.lan/cache"))

        assert str(dest) == "docker://mirror.lan/cache/busybox:v1"

    def test_registry_to_registry_host_only(self):
        dest = build_destination(parse_docker_reference(SOURCE), parse_location("docker://mirror.lan"))

        assert dest.tagged_name == "mirror.lan/busybox:v1"

    def test_directory_to_registry(self):
        ref = directory_reference("/media/usb/team/busybox:v1")

        dest = build_destination(ref, parse_location("docker://mirror.lan/ns"), "/media/usb")

        assert dest.tagged_name == "mirror.lan/ns/team/busybox:v1"

    def test_directory_to_directory(self):
        with pytest.raises(UnsupportedSyncError):
            build_destination(directory_reference("/a/app:v1"), parse_location("dir:/b"), "/a")

    def test_invalid_destination_name(self):
        with pytest.raises(DestinationParseError):
            build_destination(parse_docker_reference(SOURCE), parse_location("docker://mirror.lan/UPPER"))


class TestSkipDecision:
    """Tests for skipping unchanged tags."""

    def test_unchanged_directory_destination_is_skipped(self, tmp_path):
        transport = FakeTransport(default_info=ImageInspectInfo(layers=("sha256:b", "sha256:a", "sha256:c")))
        write_manifest(tmp_path / "registry.example.com/team/busybox:v1", ["sha256:a", "sha256:b", "sha256:c"])

        signal = TagSyncWorker(transport).sync_one(_unit(f"dir:{tmp_path}"))

        assert signal.status == SyncStatus.SKIPPED
        assert signal.reason == "unchanged"
        assert transport.copies == []

    def test_changed_layer_is_copied(self, tmp_path):
        transport = FakeTransport(default_info=ImageInspectInfo(layers=("sha256:a", "sha256:b", "sha256:d")))
        write_manifest(tmp_path / "registry.example.com/team/busybox:v1", ["sha256:a", "sha256:b", "sha256:c"])

        signal = TagSyncWorker(transport).sync_one(_unit(f"dir:{tmp_path}"))

        assert signal.status == SyncStatus.SUCCESS
        assert len(transport.copies) == 1

    def test_layer_count_change_is_copied(self, tmp_path):
        transport = FakeTransport(default_info=ImageInspectInfo(layers=("sha256:a",)))
        write_manifest(tmp_path / "registry.example.com/team/busybox:v1", ["sha256:a", "sha256:b"])

        signal = TagSyncWorker(transport).sync_one(_unit(f"dir:{tmp_path}"))

        assert signal.status == SyncStatus.SUCCESS

    def test_source_without_layers_is_up_to_date(self, tmp_path):
        transport = FakeTransport(default_info=ImageInspectInfo(layers=()))
        write_manifest(tmp_path / "registry.example.com/team/busybox:v1", ["sha256:a"])

        signal = TagSyncWorker(transport).sync_one(_unit(f"dir:{tmp_path}"))

        assert signal.status == SyncStatus.SKIPPED
        assert transport.copies == []

    def test_corrupt_manifest_is_copied_again(self, tmp_path):
        transport = FakeTransport()
        image_dir = tmp_path / "registry.example.com/team/busybox:v1"
        image_dir.mkdir(parents=True)
        (image_dir / "manifest.json").write_text("{oops")

        signal = TagSyncWorker(transport).sync_one(_unit(f"dir:{tmp_path}"))

        assert signal.status == SyncStatus.SUCCESS
        assert len(transport.copies) == 1

    @pytest.mark.parametrize("content", [
        '{"layers": ["sha256:aaa", "sha256:bbb"]}',
        '{"config": "sha256:config", "layers": []}',
        '["sha256:aaa"]',
    ])
    def test_malformed_manifest_is_copied_again(self, tmp_path, content):
        transport = FakeTransport()
        image_dir = tmp_path / "registry.example.com/team/busybox:v1"
        image_dir.mkdir(parents=True)
        (image_dir / "manifest.json").write_text(content)

        signal = TagSyncWorker(transport).sync_one(_unit(f"dir:{tmp_path}"))

        assert signal.status == SyncStatus.SUCCESS
        assert signal.error is None
        assert len(transport.copies) == 1

    def test_missing_manifest_is_copied(self, tmp_path):
        transport = FakeTransport()

        signal = TagSyncWorker(transport).sync_one(_unit(f"dir:{tmp_path}"))

        assert signal.status == SyncStatus.SUCCESS
        assert transport.copies == [
            (f"docker://{SOURCE}", f"dir:{tmp_path}/registry.example.com/team/busybox:v1")
        ]
        assert (tmp_path / "registry.example.com/team/busybox:v1/manifest.json").is_file()

    def test_registry_destination_always_copies(self):
        transport = FakeTransport(default_info=ImageInspectInfo(layers=()))

        signal = TagSyncWorker(transport).sync_one(_unit("docker://mirror.lan"))

        assert signal.status == SyncStatus.SUCCESS
        assert transport.copies == [(f"docker://{SOURCE}", "docker://mirror.lan/busybox:v1")]


class TestArchitectureFilter:
    """Tests for the architecture override."""

    def test_mismatch_is_skipped_without_error(self):
        transport = FakeTransport(default_info=ImageInspectInfo(architecture="amd64", layers=("sha256:a",)))
        unit = _unit("docker://mirror.lan", ctx=SystemContext(override_arch="arm64"))

        signal = TagSyncWorker(transport).sync_one(unit)

        assert signal.status == SyncStatus.SKIPPED
        assert signal.error is None
        assert signal.success is True
        assert "amd64" in signal.reason
        assert transport.copies == []

    def test_mismatch_skipped_for_directory_destination(self, tmp_path):
        transport = FakeTransport(default_info=ImageInspectInfo(architecture="amd64", layers=("sha256:a",)))
        unit = _unit(f"dir:{tmp_path}", ctx=SystemContext(override_arch="arm64"))

        signal = TagSyncWorker(transport).sync_one(unit)

        assert signal.status == SyncStatus.SKIPPED
        assert transport.copies == []

    def test_match_is_copied(self):
        transport = FakeTransport(default_info=ImageInspectInfo(architecture="arm64", layers=("sha256:a",)))
        unit = _unit("docker://mirror.lan", ctx=SystemContext(override_arch="arm64"))

        signal = TagSyncWorker(transport).sync_one(unit)

        assert signal.status == SyncStatus.SUCCESS

    def test_unknown_architecture_is_copied(self):
        transport = FakeTransport(default_info=ImageInspectInfo(architecture="", layers=("sha256:a",)))
        unit = _unit("docker://mirror.lan", ctx=SystemContext(override_arch="arm64"))

        assert TagSyncWorker(transport).sync_one(unit).status == SyncStatus.SUCCESS


class TestRetry:
    """Tests for copy retries."""

    def test_always_failing_copy_is_attempted_four_times(self):
        transport = FakeTransport(fail_copies={f"docker://{SOURCE}": 100})

        signal = TagSyncWorker(transport).sync_one(_unit("docker://mirror.lan"))

        assert len(transport.copies) == 4
        assert signal.status == SyncStatus.FAILED
        assert signal.done is True
        assert signal.success is False
        assert signal.attempts == 4
        assert isinstance(signal.error, CopyError)
        assert signal.error.attempts == 4

    def test_transient_failure_recovers(self):
        transport = FakeTransport(fail_copies={f"docker://{SOURCE}": 2})

        signal = TagSyncWorker(transport).sync_one(_unit("docker://mirror.lan"))

        assert signal.status == SyncStatus.SUCCESS
        assert signal.attempts == 3
        assert len(transport.copies) == 3

    def test_retry_reevaluates_whole_attempt(self):
        transport = FakeTransport(fail_copies={f"docker://{SOURCE}": 1})

        TagSyncWorker(transport).sync_one(_unit("docker://mirror.lan"))

        # Inspection is repeated for each attempt
        assert len(transport.inspected) == 2

    def test_custom_retry_bound(self):
        transport = FakeTransport(fail_copies={f"docker://{SOURCE}": 100})

        signal = TagSyncWorker(transport, max_retries=0).sync_one(_unit("docker://mirror.lan"))

        assert signal.attempts == 1
        assert len(transport.copies) == 1

    def test_inspect_failure_is_not_retried(self):
        transport = MagicMock()
        transport.inspect.side_effect = TransientTransportError("EOF")

        signal = TagSyncWorker(transport).sync_one(_unit("docker://mirror.lan"))

        assert signal.status == SyncStatus.FAILED
        assert isinstance(signal.error, InspectError)
        assert transport.inspect.call_count == 1
        transport.copy.assert_not_called()

    def test_timeout_is_not_retried(self):
        transport = MagicMock()
        transport.inspect.return_value = ImageInspectInfo(layers=("sha256:a",))
        transport.copy.side_effect = SyncTimeoutError("Command timed out")

        signal = TagSyncWorker(transport).sync_one(_unit("docker://mirror.lan"))

        assert signal.status == SyncStatus.FAILED
        assert isinstance(signal.error, SyncTimeoutError)
        assert transport.copy.call_count == 1

    def test_expired_deadline_fails_promptly(self):
        now = [100.0]
        deadline = Deadline(5, clock=lambda: now[0])
        now[0] = 200.0
        transport = FakeTransport()

        signal = TagSyncWorker(transport, deadline).sync_one(_unit("docker://mirror.lan"))

        assert signal.status == SyncStatus.FAILED
        assert isinstance(signal.error, SyncTimeoutError)
        assert transport.copies == []

    def test_copy_receives_unit_options(self):
        transport = MagicMock()
        transport.inspect.return_value = ImageInspectInfo(layers=("sha256:a",))
        unit = _unit("docker://mirror.lan", ctx=SystemContext(username="alice", password="pw"))

        TagSyncWorker(transport).sync_one(unit)

        source, dest, options, deadline = transport.copy.call_args[0]
        assert str(source) == f"docker://{SOURCE}"
        assert str(dest) == "docker://mirror.lan/busybox:v1"
        assert options.source_ctx.username == "alice"
