"""Local filesystem operations used while migrating data between volumes."""

import asyncio
import logging
from pathlib import Path
from typing import Callable, List, Optional, TypeVar

from splitami.errors import LocalCommandError
from splitami.utils.process import run_command


logger = logging.getLogger(__name__)

T = TypeVar("T")


class LocalFilesystemOps:
    """Format, mount and move data on locally attached block devices.

    Every operation shells out to the standard utilities (``mkfs``,
    ``mount``, ``umount``, ``cp``, ``find``) or performs plain file I/O in a
    worker thread. Failures surface as ``LocalCommandError`` from
    ``run_command``; file I/O errors are reported the same way.
    """

    def __init__(self, dev_dir: Path = Path("/dev"), command_timeout: Optional[float] = None):
        """Initialize filesystem operations."""
        self.dev_dir = Path(dev_dir)
        self.command_timeout = command_timeout

    async def _in_thread(self, operation: List[str], func: Callable[[], T]) -> T:
        """Run blocking file I/O in a worker thread."""
        try:
            return await asyncio.to_thread(func)
        except OSError as e:
            raise LocalCommandError(operation, stderr=str(e)) from e

    async def list_device_nodes(self, prefix: str) -> List[str]:
        """List device nodes whose path starts with ``prefix``."""
        pattern = f"{Path(prefix).name}*"
        nodes = await self._in_thread(
            ["ls", str(self.dev_dir)],
            lambda: sorted(self.dev_dir.glob(pattern)),
        )
        return [str(Path(prefix).parent / node.name) for node in nodes]

    async def format(self, device: str, fs_type: str) -> None:
        """Create a filesystem on a device."""
        logger.info(f"Creating {fs_type} filesystem on {device}")
        await run_command(["mkfs", "-t", fs_type, device], timeout=self.command_timeout)

    async def ensure_dir(self, path: str) -> None:
        """Create a directory and its parents if missing."""
        await self._in_thread(
            ["mkdir", "-p", path],
            lambda: Path(path).mkdir(parents=True, exist_ok=True),
        )

    async def remove_dir(self, path: str) -> None:
        """Remove an empty directory, ignoring a missing one."""
        def _remove():
            target = Path(path)
            if target.exists():
                target.rmdir()

        await self._in_thread(["rmdir", path], _remove)

    async def mount(self, device: str, mount_point: str) -> None:
        """Mount a device, creating the mount point first."""
        await self.ensure_dir(mount_point)
        logger.info(f"Mounting {device} at {mount_point}")
        await run_command(["mount", device, mount_point], timeout=self.command_timeout)

    async def unmount(self, mount_point: str) -> None:
        """Unmount a mount point."""
        logger.info(f"Unmounting {mount_point}")
        await run_command(["umount", mount_point], timeout=self.command_timeout)

    async def copy_tree(self, source: str, destination: str) -> None:
        """Copy the contents of ``source``, hidden entries included, into ``destination``."""
        logger.info(f"Copying {source} to {destination}")
        await run_command(
            ["cp", "-a", f"{source.rstrip('/')}/.", f"{destination.rstrip('/')}/"],
            timeout=self.command_timeout,
        )

    async def remove_tree(self, path: str) -> None:
        """Remove everything below ``path`` but keep the directory itself."""
        logger.info(f"Removing contents of {path}")
        await run_command(
            ["find", path, "-mindepth", "1", "-delete"],
            timeout=self.command_timeout,
        )

    async def append_line(self, path: str, line: str) -> None:
        """Append one line to a text file."""
        def _append():
            target = Path(path)
            target.parent.mkdir(parents=True, exist_ok=True)
            with target.open("a") as f:
                f.write(f"{line}\n")

        await self._in_thread(["append", path], _append)
        logger.debug(f"Appended to {path}: {line!r}")
