"""Resource client interface."""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Dict, List, Optional

from splitami.models.image import BlockDeviceMapping, ImageSpec


class VolumeState(Enum):
    """Block storage volume states."""
    CREATING = "creating"
    AVAILABLE = "available"
    IN_USE = "in-use"
    DELETING = "deleting"
    DELETED = "deleted"
    ERROR = "error"


class SnapshotState(Enum):
    """Snapshot states."""
    PENDING = "pending"
    COMPLETED = "completed"
    ERROR = "error"


class ImageState(Enum):
    """Machine image states."""
    PENDING = "pending"
    AVAILABLE = "available"
    INVALID = "invalid"
    DEREGISTERED = "deregistered"
    TRANSIENT = "transient"
    FAILED = "failed"
    ERROR = "error"


class ResourceClient(ABC):
    """Volume, snapshot and image operations of a cloud provider.

    Every call blocks until the resource reaches the state it names, polling
    the provider as needed.
    """

    @abstractmethod
    async def describe_image(self, image_id: str) -> ImageSpec:
        """Fetch an image."""
        pass

    @abstractmethod
    async def create_volume(
        self,
        size_gib: Optional[int],
        volume_type: str,
        snapshot_id: Optional[str] = None,
        tags: Optional[Dict[str, str]] = None,
    ) -> str:
        """Create a volume and wait until it is available."""
        pass

    @abstractmethod
    async def attach_volume(self, volume_id: str, instance_id: str, device: str) -> None:
        """Attach a volume and wait until the device is usable."""
        pass

    @abstractmethod
    async def detach_volume(self, volume_id: str) -> None:
        """Detach a volume and wait until it is available."""
        pass

    @abstractmethod
    async def delete_volume(self, volume_id: str) -> None:
        """Delete a volume without waiting."""
        pass

    @abstractmethod
    async def create_snapshot(self, volume_id: str, description: str) -> str:
        """Start a snapshot and return its id."""
        pass

    @abstractmethod
    async def wait_for_snapshots(self, snapshot_ids: List[str]) -> None:
        """Wait until every snapshot has completed."""
        pass

    @abstractmethod
    async def delete_snapshot(self, snapshot_id: str) -> None:
        """Delete a snapshot without waiting."""
        pass

    @abstractmethod
    async def register_image(
        self,
        name: str,
        description: str,
        source: ImageSpec,
        block_device_mappings: List[BlockDeviceMapping],
    ) -> str:
        """Register an image and wait until it is available."""
        pass

    @abstractmethod
    async def tag_resources(self, resource_ids: List[str], tags: Dict[str, str]) -> None:
        """Apply tags to resources."""
        pass

    @abstractmethod
    async def set_snapshot_public(self, snapshot_id: str, public: bool) -> None:
        """Grant or revoke public create-volume permission."""
        pass

    @abstractmethod
    async def set_image_public(self, image_id: str, public: bool) -> None:
        """Grant or revoke public launch permission."""
        pass
