"""Cloud resource providers for splitami."""

from splitami.providers.base import (
    ResourceClient,
    VolumeState,
    SnapshotState,
    ImageState,
)
from splitami.providers.ec2 import Ec2ResourceClient
from splitami.providers.metadata import InstanceMetadata, region_from_zone

__all__ = [
    "ResourceClient",
    "VolumeState",
    "SnapshotState",
    "ImageState",
    "Ec2ResourceClient",
    "InstanceMetadata",
    "region_from_zone",
]
