"""Run state models shared by the split components."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List

from pydantic import BaseModel, Field

from splitami.models.image import BlockDeviceMapping
from splitami.models.path import PathSpec


@dataclass(frozen=True)
class RunContext:
    """Identity of the host and the run, resolved once at startup."""
    region: str
    availability_zone: str
    instance_id: str
    source_image_id: str
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def timestamp(self) -> str:
        """Compact UTC timestamp used in generated names."""
        return self.started_at.strftime("%Y%m%d%H%M%S")


class DeviceAssignment(BaseModel):
    """Local attachment devices and in-guest device letters for one run."""
    root_device: str = Field(..., description="Local device for the root volume")
    local_devices: Dict[str, str] = Field(default_factory=dict)
    final_letters: Dict[str, str] = Field(default_factory=dict)

    class Config:
        """Pydantic config."""
        frozen = True

    def local_device(self, spec: PathSpec) -> str:
        """Local attachment device for a path."""
        return self.local_devices[spec.mount_path]

    def final_letter(self, spec: PathSpec) -> str:
        """In-guest device letter for a path."""
        return self.final_letters[spec.mount_path]


class MigrationResult(BaseModel):
    """Outcome of migrating one path into its own snapshot."""
    path_spec: PathSpec
    volume_id: str
    snapshot_id: str
    mapping: BlockDeviceMapping
    fstab_line: str


class SplitResult(BaseModel):
    """Outcome of a complete split run."""
    image_id: str
    image_name: str
    root_snapshot_id: str
    snapshot_ids: List[str] = Field(default_factory=list)
    block_device_mappings: List[BlockDeviceMapping] = Field(default_factory=list)


class PlannedPath(BaseModel):
    """One path as it would be migrated, without touching any resource."""
    path_spec: PathSpec
    local_device: str
    mapping_device: str
    fstab_line: str


class SplitPlan(BaseModel):
    """Read-only preview of a split run."""
    source_image_id: str
    root_device: str
    paths: List[PlannedPath] = Field(default_factory=list)
