"""Split orchestration: from one image to a multi-volume image."""

import asyncio
import logging
import posixpath
from typing import Dict, List, Optional, Sequence, Tuple

from splitami.core.allocator import allocate_devices
from splitami.core.ledger import ResourceKind, ResourceLedger
from splitami.core.mappings import MappingBuilder
from splitami.core.migrator import FilesystemMigrator, fstab_line
from splitami.errors import LocalCommandError
from splitami.models.config import SplitConfig
from splitami.models.image import ImageSpec
from splitami.models.path import (
    PathSpec,
    parse_path_specs,
    processing_order,
    validate_image_id,
)
from splitami.models.run import (
    DeviceAssignment,
    MigrationResult,
    PlannedPath,
    RunContext,
    SplitPlan,
    SplitResult,
)
from splitami.providers.base import ResourceClient
from splitami.providers.ec2 import Ec2ResourceClient
from splitami.providers.metadata import InstanceMetadata, region_from_zone
from splitami.utils.filesystem import LocalFilesystemOps
from splitami.utils.templates import render_template, sanitize_image_name


logger = logging.getLogger(__name__)

PROVENANCE_TAGS = ("CreatedAt", "CreatedFrom")
ROOT_MOUNT_NAME = "root"
DESCRIPTION_MAX_LENGTH = 255
TAG_VALUE_MAX_LENGTH = 255


def base_tags(source_tags: Dict[str, str], context: RunContext) -> Dict[str, str]:
    """Source tags with fresh provenance tags."""
    tags = {k: v for k, v in source_tags.items() if k not in PROVENANCE_TAGS}
    # Name and Description are set per resource
    tags.pop("Name", None)
    tags.pop("Description", None)
    tags["CreatedAt"] = context.started_at.isoformat()
    tags["CreatedFrom"] = context.source_image_id
    return tags


class SplitOrchestrator:
    """Runs a split from start to finish.

    Sequence: fetch the source image, allocate devices, stage the root
    volume, migrate every path (deepest first), snapshot the root, wait for
    all snapshots, register the new image and tag everything. Any error is
    fatal; resources created so far are reported and, when configured, torn
    down.
    """

    def __init__(
        self,
        client: ResourceClient,
        fs_ops: LocalFilesystemOps,
        context: RunContext,
        config: SplitConfig,
        path_specs: Sequence[PathSpec],
        ledger: Optional[ResourceLedger] = None,
    ):
        """Initialize orchestrator for one run."""
        self.client = client
        self.fs_ops = fs_ops
        self.context = context
        self.config = config
        self.path_specs = list(path_specs)
        self.ledger = ledger or ResourceLedger()

    @property
    def root_mount(self) -> str:
        """Scratch mount point of the root volume."""
        return posixpath.join(self.config.filesystem.scratch_dir, ROOT_MOUNT_NAME)

    def _migrator(self) -> FilesystemMigrator:
        return FilesystemMigrator(
            self.client,
            self.fs_ops,
            self.context,
            self.config,
            self.root_mount,
            self.ledger,
        )

    async def run(self) -> SplitResult:
        """Perform the split."""
        try:
            return await self._run()
        except Exception as e:
            logger.error(f"Split of {self.context.source_image_id} failed: {e}")
            if self.config.cleanup_on_failure:
                logger.info("Tearing down resources created by this run")
                await self.ledger.teardown(self.client, self.fs_ops)
            self.ledger.report()
            raise

    async def _run(self) -> SplitResult:
        self.check_naming()
        source = await self.client.describe_image(self.context.source_image_id)
        builder = MappingBuilder(source)
        tags = base_tags(source.tags, self.context)
        assignment = await self.allocate(source)

        root_volume_id = await self._stage_root(source, assignment)

        migrator = self._migrator()
        results: List[MigrationResult] = []
        for spec in processing_order(self.path_specs):
            result = await migrator.migrate(spec, assignment)
            builder.add(result.mapping)
            results.append(result)

        root_snapshot_id = await self._finalize_root(root_volume_id)
        builder.set_root_snapshot(root_snapshot_id)
        mappings = builder.build()

        snapshot_ids = [root_snapshot_id] + [r.snapshot_id for r in results]
        logger.info(f"Waiting for {len(snapshot_ids)} snapshots to complete")
        await self.client.wait_for_snapshots(snapshot_ids)

        if self.config.publish.public_snapshots:
            for snapshot_id in snapshot_ids:
                await self.client.set_snapshot_public(snapshot_id, True)

        name, description = self.image_naming(source)
        image_id = await self.client.register_image(name, description, source, mappings)
        # Snapshots now back the registered image
        for snapshot_id in snapshot_ids:
            self.ledger.discard(ResourceKind.SNAPSHOT, snapshot_id)

        await self._tag(image_id, name, description, tags, root_snapshot_id, results)

        if self.config.publish.public_image:
            await self.client.set_image_public(image_id, True)

        logger.info(f"Created image {image_id} ({name})")
        return SplitResult(
            image_id=image_id,
            image_name=name,
            root_snapshot_id=root_snapshot_id,
            snapshot_ids=snapshot_ids,
            block_device_mappings=mappings,
        )

    async def allocate(self, source: ImageSpec) -> DeviceAssignment:
        """Assign local devices and final letters for this run."""
        prefix = self.config.filesystem.local_device_prefix
        present = await self.fs_ops.list_device_nodes(prefix)
        return allocate_devices(
            present,
            [m.device_name for m in source.block_device_mappings],
            self.path_specs,
            prefix,
        )

    async def plan(self) -> SplitPlan:
        """Describe what a run would do without creating anything."""
        self.check_naming()
        source = await self.client.describe_image(self.context.source_image_id)
        MappingBuilder(source)  # rejects images without an EBS root
        assignment = await self.allocate(source)
        migrator = self._migrator()
        fs_type = self.config.filesystem.fs_type

        paths = []
        for spec in processing_order(self.path_specs):
            letter = assignment.final_letter(spec)
            paths.append(PlannedPath(
                path_spec=spec,
                local_device=assignment.local_device(spec),
                mapping_device=migrator.mapping_device(letter),
                fstab_line=fstab_line(migrator.fstab_device(letter), spec, fs_type),
            ))
        return SplitPlan(
            source_image_id=source.image_id,
            root_device=assignment.root_device,
            paths=paths,
        )

    async def _stage_root(self, source: ImageSpec, assignment: DeviceAssignment) -> str:
        """Create, attach and mount a copy of the source root volume."""
        root = source.root_mapping
        ebs = root.ebs
        logger.info(f"Staging root volume from snapshot {ebs.snapshot_id}")

        volume_id = await self.client.create_volume(
            ebs.volume_size,
            ebs.volume_type or self.config.aws.volume_type,
            snapshot_id=ebs.snapshot_id,
            tags={"Name": f"{self.context.source_image_id} root"},
        )
        self.ledger.add(ResourceKind.VOLUME, volume_id, "root")

        # Recorded first so a failed wait still detaches before deleting
        self.ledger.add(ResourceKind.ATTACHMENT, volume_id, assignment.root_device)
        await self.client.attach_volume(volume_id, self.context.instance_id, assignment.root_device)

        await self.fs_ops.mount(assignment.root_device, self.root_mount)
        self.ledger.add(ResourceKind.MOUNT, self.root_mount, assignment.root_device)
        return volume_id

    async def _finalize_root(self, volume_id: str) -> str:
        """Unmount, detach and snapshot the root volume, then delete it."""
        await self.fs_ops.unmount(self.root_mount)
        self.ledger.discard(ResourceKind.MOUNT, self.root_mount)
        await self.fs_ops.remove_dir(self.root_mount)
        try:
            await self.fs_ops.remove_dir(self.config.filesystem.scratch_dir)
        except LocalCommandError as e:
            logger.warning(f"Could not remove {self.config.filesystem.scratch_dir}: {e}")

        await self.client.detach_volume(volume_id)
        self.ledger.discard(ResourceKind.ATTACHMENT, volume_id)

        snapshot_id = await self.client.create_snapshot(
            volume_id,
            f"Root volume of {self.context.source_image_id}",
        )
        self.ledger.add(ResourceKind.SNAPSHOT, snapshot_id, "root")

        await self.client.delete_volume(volume_id)
        self.ledger.discard(ResourceKind.VOLUME, volume_id)
        return snapshot_id

    def check_naming(self) -> None:
        """Render the naming templates against placeholder image values.

        Raises ``InvalidInput`` for a broken template before any resource
        exists; the real name is rendered again once the image is known.
        """
        placeholder = ImageSpec(
            image_id=self.context.source_image_id,
            name=self.context.source_image_id,
            root_device_name="/dev/sda1",
        )
        self.image_naming(placeholder)

    def image_naming(self, source: ImageSpec) -> Tuple[str, str]:
        """Rendered name and description of the new image."""
        naming = self.config.naming
        values = {
            "source_id": source.image_id,
            "source_name": source.name or source.image_id,
            "source_description": source.description or source.name or source.image_id,
            "timestamp": self.context.timestamp,
            "region": self.context.region,
            "paths": ",".join(spec.mount_path for spec in self.path_specs),
        }
        name = sanitize_image_name(render_template(naming.name_template, **values))
        description = render_template(naming.description_template, **values)
        return name, description[:DESCRIPTION_MAX_LENGTH]

    async def _tag(
        self,
        image_id: str,
        name: str,
        description: str,
        tags: Dict[str, str],
        root_snapshot_id: str,
        results: List[MigrationResult],
    ) -> None:
        """Tag the image and its snapshots."""
        def tagged(resource_name: str, resource_description: str) -> Dict[str, str]:
            return {
                **tags,
                "Name": resource_name[:TAG_VALUE_MAX_LENGTH],
                "Description": resource_description[:TAG_VALUE_MAX_LENGTH],
            }

        await self.client.tag_resources([image_id], tagged(name, description))
        await self.client.tag_resources(
            [root_snapshot_id],
            tagged(f"{name} /", f"Root volume of {name}"),
        )
        for result in results:
            path = result.path_spec.mount_path
            await self.client.tag_resources(
                [result.snapshot_id],
                tagged(f"{name} {path}", f"{path} volume of {name}"),
            )


async def resolve_context(
    source_image_id: str,
    config: SplitConfig,
    metadata: Optional[InstanceMetadata] = None,
) -> RunContext:
    """Read the local instance identity from the metadata service."""
    metadata = metadata or InstanceMetadata(
        config.aws.metadata_url,
        timeout=config.aws.metadata_timeout,
    )
    logger.info("Detecting AWS region from EC2 metadata service...")
    zone = await asyncio.to_thread(metadata.availability_zone)
    instance_id = await asyncio.to_thread(metadata.instance_id)
    context = RunContext(
        region=region_from_zone(zone),
        availability_zone=zone,
        instance_id=instance_id,
        source_image_id=source_image_id,
    )
    logger.info(f"Running on {instance_id} in {zone}")
    return context


async def _prepare(
    source_image_id: str,
    path_args: Sequence[str],
    config: SplitConfig,
    metadata: Optional[InstanceMetadata],
    client: Optional[ResourceClient],
    fs_ops: Optional[LocalFilesystemOps],
) -> SplitOrchestrator:
    # Arguments are validated before anything remote is contacted
    validate_image_id(source_image_id)
    path_specs = parse_path_specs(path_args)

    context = await resolve_context(source_image_id, config, metadata)
    if client is None:
        client = Ec2ResourceClient(context, config.aws)
    if fs_ops is None:
        fs_ops = LocalFilesystemOps()
    return SplitOrchestrator(client, fs_ops, context, config, path_specs)


async def split_image(
    source_image_id: str,
    path_args: Sequence[str],
    config: Optional[SplitConfig] = None,
    metadata: Optional[InstanceMetadata] = None,
    client: Optional[ResourceClient] = None,
    fs_ops: Optional[LocalFilesystemOps] = None,
) -> SplitResult:
    """Split ``source_image_id`` according to ``PATH:SIZE:OPTIONS`` arguments."""
    config = config or SplitConfig()
    orchestrator = await _prepare(source_image_id, path_args, config, metadata, client, fs_ops)
    return await orchestrator.run()


async def plan_split(
    source_image_id: str,
    path_args: Sequence[str],
    config: Optional[SplitConfig] = None,
    metadata: Optional[InstanceMetadata] = None,
    client: Optional[ResourceClient] = None,
    fs_ops: Optional[LocalFilesystemOps] = None,
) -> SplitPlan:
    """Preview a split without creating any resource."""
    config = config or SplitConfig()
    orchestrator = await _prepare(source_image_id, path_args, config, metadata, client, fs_ops)
    return await orchestrator.plan()
