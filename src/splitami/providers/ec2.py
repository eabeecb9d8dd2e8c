"""EC2 implementation of the resource client."""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from splitami.errors import ProviderError, WaitTimeout
from splitami.models.config import AwsConfig
from splitami.models.image import BlockDeviceMapping, ImageSpec
from splitami.models.run import RunContext
from splitami.providers.base import (
    ImageState,
    ResourceClient,
    SnapshotState,
    VolumeState,
)


logger = logging.getLogger(__name__)

VOLUME_FAILED_STATES = {VolumeState.ERROR.value, VolumeState.DELETED.value, VolumeState.DELETING.value}
IMAGE_FAILED_STATES = {
    ImageState.INVALID.value,
    ImageState.DEREGISTERED.value,
    ImageState.FAILED.value,
    ImageState.ERROR.value,
}


class ResourceNotFound(ProviderError):
    """The provider does not (yet) know about a resource."""
    pass


def _to_tag_list(tags: Dict[str, str]) -> List[Dict[str, str]]:
    return [{"Key": key, "Value": value} for key, value in tags.items()]


class Ec2ResourceClient(ResourceClient):
    """Resource client backed by the boto3 EC2 API."""

    def __init__(self, context: RunContext, config: AwsConfig, client: Any = None):
        """Initialize EC2 client for the run's region."""
        self.context = context
        self.config = config
        self.client = client or boto3.client("ec2", region_name=context.region)

    async def _call(self, operation: str, **kwargs) -> Dict[str, Any]:
        """Invoke an EC2 API operation in a worker thread."""
        method = getattr(self.client, operation)
        try:
            return await asyncio.to_thread(method, **kwargs)
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code", "")
            if code.endswith(".NotFound"):
                raise ResourceNotFound(f"{operation} failed: {e}") from e
            logger.error(f"EC2 {operation} failed: {e}")
            raise ProviderError(f"{operation} failed: {e}") from e
        except BotoCoreError as e:
            logger.error(f"EC2 {operation} failed: {e}")
            raise ProviderError(f"{operation} failed: {e}") from e

    async def _wait_until(self, description: str, check: Callable[[], Awaitable[bool]]) -> None:
        """Poll ``check`` until it returns True or the wait bound is exceeded.

        ``check`` raises ``ProviderError`` when the resource reached a state it
        cannot leave. A resource the provider does not report yet counts as
        pending.
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.config.wait_timeout
        logger.info(f"Waiting until {description}...")

        while True:
            try:
                if await check():
                    logger.debug(f"Done waiting: {description}")
                    return
            except ResourceNotFound:
                logger.debug(f"Not visible yet while waiting until {description}")

            if loop.time() >= deadline:
                raise WaitTimeout(
                    f"Timed out after {self.config.wait_timeout}s waiting until {description}"
                )
            await asyncio.sleep(self.config.poll_interval)

    async def _wait_for_volume(self, volume_id: str, target: VolumeState) -> None:
        async def check() -> bool:
            response = await self._call("describe_volumes", VolumeIds=[volume_id])
            volumes = response.get("Volumes", [])
            if not volumes:
                raise ResourceNotFound(f"Volume {volume_id} not found")
            state = volumes[0]["State"]
            if state != target.value and state in VOLUME_FAILED_STATES:
                raise ProviderError(f"Volume {volume_id} entered state {state}")
            return state == target.value

        await self._wait_until(f"volume {volume_id} is {target.value}", check)

    async def describe_image(self, image_id: str) -> ImageSpec:
        """Fetch an image."""
        response = await self._call("describe_images", ImageIds=[image_id])
        images = response.get("Images", [])
        if not images:
            raise ProviderError(f"Image {image_id} not found")
        return ImageSpec.from_ec2(images[0])

    async def create_volume(
        self,
        size_gib: Optional[int],
        volume_type: str,
        snapshot_id: Optional[str] = None,
        tags: Optional[Dict[str, str]] = None,
    ) -> str:
        """Create a volume and wait until it is available."""
        params: Dict[str, Any] = {
            "AvailabilityZone": self.context.availability_zone,
            "VolumeType": volume_type,
        }
        if size_gib:
            params["Size"] = size_gib
        if snapshot_id:
            params["SnapshotId"] = snapshot_id
        if tags:
            params["TagSpecifications"] = [
                {"ResourceType": "volume", "Tags": _to_tag_list(tags)}
            ]

        source = f"snapshot {snapshot_id}" if snapshot_id else "scratch"
        logger.info(f"Creating {volume_type} volume ({size_gib or 'default'} GiB) from {source}")
        volume_id = (await self._call("create_volume", **params))["VolumeId"]
        await self._wait_for_volume(volume_id, VolumeState.AVAILABLE)
        return volume_id

    async def attach_volume(self, volume_id: str, instance_id: str, device: str) -> None:
        """Attach a volume and wait until the device is usable."""
        logger.info(f"Attaching volume {volume_id} to {instance_id} at {device}")
        await self._call(
            "attach_volume",
            VolumeId=volume_id,
            InstanceId=instance_id,
            Device=device,
        )
        await self._wait_for_volume(volume_id, VolumeState.IN_USE)

        # in-use is reported before the device node is ready
        delay = self.config.attach_settle_delay
        if delay:
            logger.debug(f"Waiting {delay}s for {device} to settle")
            await asyncio.sleep(delay)

    async def detach_volume(self, volume_id: str) -> None:
        """Detach a volume and wait until it is available."""
        logger.info(f"Detaching volume {volume_id}")
        await self._call("detach_volume", VolumeId=volume_id)
        await self._wait_for_volume(volume_id, VolumeState.AVAILABLE)

    async def delete_volume(self, volume_id: str) -> None:
        """Delete a volume without waiting."""
        logger.info(f"Deleting volume {volume_id}")
        await self._call("delete_volume", VolumeId=volume_id)

    async def create_snapshot(self, volume_id: str, description: str) -> str:
        """Start a snapshot and return its id."""
        response = await self._call(
            "create_snapshot",
            VolumeId=volume_id,
            Description=description,
        )
        snapshot_id = response["SnapshotId"]
        logger.info(f"Started snapshot {snapshot_id} of volume {volume_id}")
        return snapshot_id

    async def wait_for_snapshots(self, snapshot_ids: List[str]) -> None:
        """Wait until every snapshot has completed."""
        if not snapshot_ids:
            return

        async def check() -> bool:
            response = await self._call("describe_snapshots", SnapshotIds=list(snapshot_ids))
            states = {s["SnapshotId"]: s["State"] for s in response.get("Snapshots", [])}
            for snapshot_id, state in states.items():
                if state == SnapshotState.ERROR.value:
                    raise ProviderError(f"Snapshot {snapshot_id} entered state {state}")
            pending = [
                sid for sid in snapshot_ids
                if states.get(sid) != SnapshotState.COMPLETED.value
            ]
            if pending:
                logger.debug(f"Snapshots still pending: {', '.join(pending)}")
            return not pending

        await self._wait_until(f"snapshots {', '.join(snapshot_ids)} are completed", check)

    async def delete_snapshot(self, snapshot_id: str) -> None:
        """Delete a snapshot without waiting."""
        logger.info(f"Deleting snapshot {snapshot_id}")
        await self._call("delete_snapshot", SnapshotId=snapshot_id)

    async def register_image(
        self,
        name: str,
        description: str,
        source: ImageSpec,
        block_device_mappings: List[BlockDeviceMapping],
    ) -> str:
        """Register an image and wait until it is available."""
        params: Dict[str, Any] = {
            "Name": name,
            "Description": description,
            "RootDeviceName": source.root_device_name,
            "BlockDeviceMappings": [m.to_ec2() for m in block_device_mappings],
        }
        optional = {
            "Architecture": source.architecture,
            "KernelId": source.kernel_id,
            "RamdiskId": source.ramdisk_id,
            "VirtualizationType": source.virtualization_type,
            "EnaSupport": source.ena_support,
            "SriovNetSupport": source.sriov_net_support,
            "BootMode": source.boot_mode,
        }
        params.update({key: value for key, value in optional.items() if value is not None})

        logger.info(f"Registering image {name}")
        image_id = (await self._call("register_image", **params))["ImageId"]

        async def check() -> bool:
            response = await self._call("describe_images", ImageIds=[image_id])
            images = response.get("Images", [])
            if not images:
                raise ResourceNotFound(f"Image {image_id} not found")
            state = images[0]["State"]
            if state in IMAGE_FAILED_STATES:
                reason = images[0].get("StateReason", {}).get("Message", "")
                raise ProviderError(f"Image {image_id} entered state {state} {reason}".strip())
            return state == ImageState.AVAILABLE.value

        await self._wait_until(f"image {image_id} is available", check)
        return image_id

    async def tag_resources(self, resource_ids: List[str], tags: Dict[str, str]) -> None:
        """Apply tags to resources."""
        if not resource_ids or not tags:
            return
        logger.debug(f"Tagging {', '.join(resource_ids)}")
        await self._call("create_tags", Resources=list(resource_ids), Tags=_to_tag_list(tags))

    async def set_snapshot_public(self, snapshot_id: str, public: bool) -> None:
        """Grant or revoke public create-volume permission."""
        operation = "add" if public else "remove"
        logger.info(f"Snapshot {snapshot_id}: {operation} public create-volume permission")
        await self._call(
            "modify_snapshot_attribute",
            SnapshotId=snapshot_id,
            Attribute="createVolumePermission",
            OperationType=operation,
            GroupNames=["all"],
        )

    async def set_image_public(self, image_id: str, public: bool) -> None:
        """Grant or revoke public launch permission."""
        key = "Add" if public else "Remove"
        logger.info(f"Image {image_id}: {key.lower()} public launch permission")
        await self._call(
            "modify_image_attribute",
            ImageId=image_id,
            LaunchPermission={key: [{"Group": "all"}]},
        )
