"""Pydantic models for configuration and validation."""

from splitami.models.config import (
    SplitConfig,
    AwsConfig,
    FilesystemConfig,
    PublishConfig,
    NamingConfig,
)
from splitami.models.image import ImageSpec, BlockDeviceMapping, EbsBlockDevice
from splitami.models.path import PathSpec
from splitami.models.run import (
    RunContext,
    DeviceAssignment,
    MigrationResult,
    SplitResult,
    SplitPlan,
    PlannedPath,
)

__all__ = [
    "SplitConfig",
    "AwsConfig",
    "FilesystemConfig",
    "PublishConfig",
    "NamingConfig",
    "ImageSpec",
    "BlockDeviceMapping",
    "EbsBlockDevice",
    "PathSpec",
    "RunContext",
    "DeviceAssignment",
    "MigrationResult",
    "SplitResult",
    "SplitPlan",
    "PlannedPath",
]
