"""Migration of one directory from the root volume onto its own volume."""

import logging
import posixpath
from typing import Optional

from splitami.core.ledger import ResourceKind, ResourceLedger
from splitami.core.mappings import MappingBuilder
from splitami.models.config import SplitConfig
from splitami.models.path import PathSpec
from splitami.models.run import DeviceAssignment, MigrationResult, RunContext
from splitami.providers.base import ResourceClient
from splitami.utils.filesystem import LocalFilesystemOps


logger = logging.getLogger(__name__)


FSTAB_ESCAPES = {" ": "\\040", "\t": "\\011", "\n": "\\012", "\\": "\\134"}


def fstab_escape(value: str) -> str:
    """Octal-escape characters fstab(5) would treat as field separators."""
    return "".join(FSTAB_ESCAPES.get(c, c) for c in value)


def fstab_line(device: str, spec: PathSpec, fs_type: str) -> str:
    """Tab separated fstab entry with dump and pass disabled."""
    return "\t".join([
        device,
        fstab_escape(spec.mount_path),
        fs_type,
        spec.mount_options,
        "0",
        "0",
    ])


class FilesystemMigrator:
    """Moves one path out of the mounted root volume into a new snapshot.

    The steps run strictly in order and any failure aborts the run:
    create and attach a volume, format and mount it, move the directory's
    content over, record the fstab entry, then unmount, detach, snapshot
    and delete the volume.
    """

    def __init__(
        self,
        client: ResourceClient,
        fs_ops: LocalFilesystemOps,
        context: RunContext,
        config: SplitConfig,
        root_mount: str,
        ledger: Optional[ResourceLedger] = None,
    ):
        """Initialize migrator for one run."""
        self.client = client
        self.fs_ops = fs_ops
        self.context = context
        self.config = config
        self.root_mount = root_mount
        self.ledger = ledger or ResourceLedger()

    @property
    def fstab_path(self) -> str:
        """fstab of the root volume."""
        return posixpath.join(self.root_mount, self.config.filesystem.fstab_path)

    def mount_point(self, local_device: str) -> str:
        """Scratch mount point for a local device."""
        return posixpath.join(self.config.filesystem.scratch_dir, posixpath.basename(local_device))

    def mapping_device(self, letter: str) -> str:
        """Device name of a letter in the image's block device mappings."""
        return f"{self.config.filesystem.mapping_device_prefix}{letter}"

    def fstab_device(self, letter: str) -> str:
        """Device node of a letter as seen by the guest."""
        return f"{self.config.filesystem.fstab_device_prefix}{letter}"

    async def migrate(self, spec: PathSpec, assignment: DeviceAssignment) -> MigrationResult:
        """Migrate one path and return its new mapping."""
        fs_config = self.config.filesystem
        local_device = assignment.local_device(spec)
        letter = assignment.final_letter(spec)
        mount_point = self.mount_point(local_device)
        source_dir = posixpath.join(self.root_mount, spec.relative_path)

        logger.info(f"Migrating {spec.mount_path} ({spec.volume_size} GiB) via {local_device}")

        volume_id = await self.client.create_volume(
            spec.volume_size,
            self.config.aws.volume_type,
            tags={"Name": f"{self.context.source_image_id} {spec.mount_path}"},
        )
        self.ledger.add(ResourceKind.VOLUME, volume_id, spec.mount_path)

        self.ledger.add(ResourceKind.ATTACHMENT, volume_id, local_device)
        await self.client.attach_volume(volume_id, self.context.instance_id, local_device)

        await self.fs_ops.format(local_device, fs_config.fs_type)
        await self.fs_ops.mount(local_device, mount_point)
        self.ledger.add(ResourceKind.MOUNT, mount_point, local_device)

        # The directory may not exist in the source image yet
        await self.fs_ops.ensure_dir(source_dir)
        await self.fs_ops.copy_tree(source_dir, mount_point)
        await self.fs_ops.remove_tree(source_dir)

        line = fstab_line(self.fstab_device(letter), spec, fs_config.fs_type)
        await self.fs_ops.append_line(self.fstab_path, line)

        await self.fs_ops.unmount(mount_point)
        self.ledger.discard(ResourceKind.MOUNT, mount_point)
        await self.fs_ops.remove_dir(mount_point)

        await self.client.detach_volume(volume_id)
        self.ledger.discard(ResourceKind.ATTACHMENT, volume_id)

        snapshot_id = await self.client.create_snapshot(
            volume_id,
            f"{spec.mount_path} of {self.context.source_image_id}",
        )
        self.ledger.add(ResourceKind.SNAPSHOT, snapshot_id, spec.mount_path)

        await self.client.delete_volume(volume_id)
        self.ledger.discard(ResourceKind.VOLUME, volume_id)

        mapping = MappingBuilder.new_mapping(
            self.mapping_device(letter),
            snapshot_id,
            self.config.aws.volume_type,
        )
        logger.info(f"Migrated {spec.mount_path} to snapshot {snapshot_id} ({mapping.device_name})")

        return MigrationResult(
            path_spec=spec,
            volume_id=volume_id,
            snapshot_id=snapshot_id,
            mapping=mapping,
            fstab_line=line,
        )
