"""Tests for local filesystem operations."""

import pytest
from unittest.mock import AsyncMock, patch

from splitami.errors import LocalCommandError, SplitError
from splitami.utils.filesystem import LocalFilesystemOps


@pytest.fixture
def dev_dir(tmp_path):
    """Fake /dev directory."""
    dev = tmp_path / "dev"
    dev.mkdir()
    for name in ("xvda", "xvda1", "xvdf", "sda", "null"):
        (dev / name).touch()
    return dev


@pytest.fixture
def mock_run():
    """Patch the command runner."""
    with patch("splitami.utils.filesystem.run_command", new_callable=AsyncMock) as mock:
        yield mock


@pytest.mark.asyncio
class TestLocalFilesystemOps:
    """Test LocalFilesystemOps."""

    async def test_list_device_nodes(self, dev_dir):
        """Test listing nodes matching a prefix."""
        ops = LocalFilesystemOps(dev_dir=dev_dir)

        assert await ops.list_device_nodes("/dev/xvd") == [
            "/dev/xvda", "/dev/xvda1", "/dev/xvdf",
        ]
        assert await ops.list_device_nodes("/dev/sd") == ["/dev/sda"]

    async def test_format(self, mock_run):
        """Test mkfs invocation."""
        ops = LocalFilesystemOps(command_timeout=60)

        await ops.format("/dev/xvdb", "ext4")

        mock_run.assert_awaited_once_with(["mkfs", "-t", "ext4", "/dev/xvdb"], timeout=60)

    async def test_mount_creates_mount_point(self, tmp_path, mock_run):
        """Test the mount point is created before mounting."""
        ops = LocalFilesystemOps()
        mount_point = tmp_path / "newami" / "xvdb"

        await ops.mount("/dev/xvdb", str(mount_point))

        assert mount_point.is_dir()
        mock_run.assert_awaited_once_with(
            ["mount", "/dev/xvdb", str(mount_point)], timeout=None
        )

    async def test_unmount(self, mock_run):
        """Test umount invocation."""
        await LocalFilesystemOps().unmount("/newami/xvdb")

        mock_run.assert_awaited_once_with(["umount", "/newami/xvdb"], timeout=None)

    async def test_copy_and_remove_tree(self, mock_run):
        """Test the commands moving a directory's contents."""
        ops = LocalFilesystemOps()

        await ops.copy_tree("/newami/root/var/", "/newami/xvdb")
        await ops.remove_tree("/newami/root/var")

        commands = [c.args[0] for c in mock_run.await_args_list]
        assert commands == [
            ["cp", "-a", "/newami/root/var/.", "/newami/xvdb/"],
            ["find", "/newami/root/var", "-mindepth", "1", "-delete"],
        ]

    async def test_remove_dir(self, tmp_path):
        """Test removing an empty directory and ignoring a missing one."""
        ops = LocalFilesystemOps()
        target = tmp_path / "scratch"
        target.mkdir()

        await ops.remove_dir(str(target))
        await ops.remove_dir(str(target))

        assert not target.exists()

    async def test_remove_dir_not_empty(self, tmp_path):
        """Test that a non-empty directory is an error."""
        target = tmp_path / "scratch"
        target.mkdir()
        (target / "leftover").touch()

        with pytest.raises(LocalCommandError) as exc_info:
            await LocalFilesystemOps().remove_dir(str(target))

        assert "rmdir" in str(exc_info.value)

    async def test_append_line(self, tmp_path):
        """Test appending to a new and then an existing file."""
        ops = LocalFilesystemOps()
        fstab = tmp_path / "root" / "etc" / "fstab"

        await ops.append_line(str(fstab), "/dev/xvdb\t/var\text4\tdefaults\t0\t0")
        await ops.append_line(str(fstab), "/dev/xvdc\t/home\text4\tdefaults\t0\t0")

        assert fstab.read_text() == (
            "/dev/xvdb\t/var\text4\tdefaults\t0\t0\n"
            "/dev/xvdc\t/home\text4\tdefaults\t0\t0\n"
        )

    async def test_append_line_failure(self, tmp_path):
        """Test that a file I/O failure is reported as a command error."""
        blocker = tmp_path / "root"
        blocker.write_text("not a directory")

        with pytest.raises(LocalCommandError) as exc_info:
            await LocalFilesystemOps().append_line(str(blocker / "etc" / "fstab"), "x")

        assert isinstance(exc_info.value, SplitError)
        assert str(blocker / "etc" / "fstab") in str(exc_info.value)

    async def test_ensure_dir_failure(self, tmp_path):
        """Test that an impossible mkdir is reported as a command error."""
        blocker = tmp_path / "newami"
        blocker.write_text("")

        with pytest.raises(LocalCommandError):
            await LocalFilesystemOps().ensure_dir(str(blocker / "xvdb"))
