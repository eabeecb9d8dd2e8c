"""Tests for the filesystem migrator."""

import pytest
from unittest.mock import AsyncMock, call

from splitami.core.ledger import ResourceKind, ResourceLedger
from splitami.core.migrator import FilesystemMigrator, fstab_line
from splitami.errors import LocalCommandError, WaitTimeout
from splitami.models.config import SplitConfig
from splitami.models.path import PathSpec, parse_path_specs, processing_order
from splitami.models.run import DeviceAssignment, RunContext


@pytest.fixture
def context():
    """Run context of a test host."""
    return RunContext(
        region="us-east-1",
        availability_zone="us-east-1a",
        instance_id="i-123",
        source_image_id="ami-0abc",
    )


@pytest.fixture
def assignment():
    """Devices for /data and /var/log."""
    return DeviceAssignment(
        root_device="/dev/xvdb",
        local_devices={"/data": "/dev/xvdc", "/var/log": "/dev/xvdd"},
        final_letters={"/data": "c", "/var/log": "d"},
    )


@pytest.fixture
def client():
    """Resource client double."""
    client = AsyncMock()
    client.create_volume.side_effect = ["vol-1", "vol-2"]
    client.create_snapshot.side_effect = ["snap-1", "snap-2"]
    return client


@pytest.fixture
def migrator(client, context):
    """Migrator wired to doubles."""
    return FilesystemMigrator(
        client,
        AsyncMock(),
        context,
        SplitConfig(),
        "/newami/root",
        ResourceLedger(),
    )


def test_fstab_line():
    """Test the fstab entry format."""
    spec = PathSpec(mount_path="/data", size_gib=20, mount_options="noatime")

    assert fstab_line("/dev/xvdc", spec, "ext4") == "/dev/xvdc\t/data\text4\tnoatime\t0\t0"


def test_fstab_line_escapes_whitespace():
    """Test that a path with spaces stays a single fstab field."""
    spec = PathSpec.parse("/srv/my data:1:defaults")

    line = fstab_line("/dev/xvdf", spec, "ext4")

    assert line.split() == ["/dev/xvdf", "/srv/my\\040data", "ext4", "defaults", "0", "0"]


@pytest.mark.asyncio
class TestFilesystemMigrator:
    """Test FilesystemMigrator."""

    async def test_migrate_steps_in_order(self, migrator, client, assignment):
        """Test the full sequence for one path."""
        spec = PathSpec(mount_path="/data", size_gib=19.5, mount_options="noatime")

        result = await migrator.migrate(spec, assignment)

        client.create_volume.assert_awaited_once_with(20, "gp2", tags={"Name": "ami-0abc /data"})
        client.attach_volume.assert_awaited_once_with("vol-1", "i-123", "/dev/xvdc")
        assert migrator.fs_ops.method_calls == [
            call.format("/dev/xvdc", "ext4"),
            call.mount("/dev/xvdc", "/newami/xvdc"),
            call.ensure_dir("/newami/root/data"),
            call.copy_tree("/newami/root/data", "/newami/xvdc"),
            call.remove_tree("/newami/root/data"),
            call.append_line("/newami/root/etc/fstab", "/dev/xvdc\t/data\text4\tnoatime\t0\t0"),
            call.unmount("/newami/xvdc"),
            call.remove_dir("/newami/xvdc"),
        ]
        assert [c[0] for c in client.method_calls] == [
            "create_volume",
            "attach_volume",
            "detach_volume",
            "create_snapshot",
            "delete_volume",
        ]
        client.delete_volume.assert_awaited_once_with("vol-1")

        assert result.snapshot_id == "snap-1"
        assert result.mapping.device_name == "/dev/sdc"
        assert result.mapping.ebs.snapshot_id == "snap-1"
        assert result.mapping.ebs.delete_on_termination is True
        assert result.mapping.ebs.volume_type == "gp2"

    async def test_fstab_entries_for_two_paths(self, migrator, assignment):
        """Test that exactly one fstab line is appended per path."""
        specs = parse_path_specs(["/data:20:noatime", "/var/log:5:defaults"])

        for spec in processing_order(specs):
            await migrator.migrate(spec, assignment)

        lines = [c.args[1] for c in migrator.fs_ops.append_line.call_args_list]
        assert lines == [
            "/dev/xvdd\t/var/log\text4\tdefaults\t0\t0",
            "/dev/xvdc\t/data\text4\tnoatime\t0\t0",
        ]

    async def test_ledger_empty_after_success(self, migrator, assignment):
        """Test that only the snapshot stays recorded."""
        spec = PathSpec(mount_path="/data", size_gib=1, mount_options="defaults")

        await migrator.migrate(spec, assignment)

        assert [(e.kind, e.resource_id) for e in migrator.ledger.entries] == [
            (ResourceKind.SNAPSHOT, "snap-1"),
        ]

    async def test_failure_stops_and_keeps_ledger(self, migrator, client, assignment):
        """Test that a failed copy aborts before any snapshot is taken."""
        migrator.fs_ops.copy_tree.side_effect = LocalCommandError(["cp"], 1, "disk full")
        spec = PathSpec(mount_path="/data", size_gib=1, mount_options="defaults")

        with pytest.raises(LocalCommandError):
            await migrator.migrate(spec, assignment)

        client.create_snapshot.assert_not_called()
        migrator.fs_ops.remove_tree.assert_not_called()
        assert [e.kind for e in migrator.ledger.entries] == [
            ResourceKind.VOLUME,
            ResourceKind.ATTACHMENT,
            ResourceKind.MOUNT,
        ]

    async def test_failed_attach_is_recorded(self, migrator, client, assignment):
        """Test that an attachment that never settled is still detached on teardown."""
        client.attach_volume.side_effect = WaitTimeout("volume never in-use")
        spec = PathSpec(mount_path="/data", size_gib=1, mount_options="defaults")

        with pytest.raises(WaitTimeout):
            await migrator.migrate(spec, assignment)

        assert [(e.kind, e.resource_id) for e in migrator.ledger.entries] == [
            (ResourceKind.VOLUME, "vol-1"),
            (ResourceKind.ATTACHMENT, "vol-1"),
        ]
        migrator.fs_ops.format.assert_not_called()
