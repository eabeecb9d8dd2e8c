"""Machine image and block device mapping models."""

from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field


class EbsBlockDevice(BaseModel):
    """EBS parameters of a block device mapping."""
    snapshot_id: Optional[str] = None
    volume_size: Optional[int] = None
    volume_type: Optional[str] = None
    delete_on_termination: bool = Field(default=True)
    iops: Optional[int] = None
    throughput: Optional[int] = None
    encrypted: Optional[bool] = None

    class Config:
        """Pydantic config."""
        frozen = True

    @classmethod
    def from_ec2(cls, data: Dict[str, Any]) -> "EbsBlockDevice":
        """Build from an EC2 ``Ebs`` structure."""
        return cls(
            snapshot_id=data.get("SnapshotId"),
            volume_size=data.get("VolumeSize"),
            volume_type=data.get("VolumeType"),
            delete_on_termination=data.get("DeleteOnTermination", True),
            iops=data.get("Iops"),
            throughput=data.get("Throughput"),
            encrypted=data.get("Encrypted"),
        )

    def to_ec2(self) -> Dict[str, Any]:
        """Render as an EC2 ``Ebs`` structure for image registration."""
        ebs: Dict[str, Any] = {"DeleteOnTermination": self.delete_on_termination}
        if self.snapshot_id:
            ebs["SnapshotId"] = self.snapshot_id
        if self.volume_size:
            ebs["VolumeSize"] = self.volume_size
        if self.volume_type:
            ebs["VolumeType"] = self.volume_type
        # iops/throughput are only accepted for provisioned volume types
        if self.iops and self.volume_type in ("io1", "io2", "gp3"):
            ebs["Iops"] = self.iops
        if self.throughput and self.volume_type == "gp3":
            ebs["Throughput"] = self.throughput
        return ebs


class BlockDeviceMapping(BaseModel):
    """Association between an instance device name and its backing store."""
    device_name: str = Field(..., description="Device name exposed to the instance")
    ebs: Optional[EbsBlockDevice] = None
    virtual_name: Optional[str] = Field(None, description="Ephemeral store name")
    no_device: bool = Field(default=False)

    class Config:
        """Pydantic config."""
        frozen = True

    @property
    def snapshot_id(self) -> Optional[str]:
        """Backing snapshot id, if any."""
        return self.ebs.snapshot_id if self.ebs else None

    def with_snapshot(self, snapshot_id: str) -> "BlockDeviceMapping":
        """Return a copy of this mapping backed by another snapshot."""
        ebs = self.ebs or EbsBlockDevice()
        return BlockDeviceMapping(
            device_name=self.device_name,
            ebs=EbsBlockDevice(
                snapshot_id=snapshot_id,
                volume_size=ebs.volume_size,
                volume_type=ebs.volume_type,
                delete_on_termination=ebs.delete_on_termination,
                iops=ebs.iops,
                throughput=ebs.throughput,
            ),
            virtual_name=self.virtual_name,
            no_device=self.no_device,
        )

    @classmethod
    def from_ec2(cls, data: Dict[str, Any]) -> "BlockDeviceMapping":
        """Build from an EC2 ``BlockDeviceMapping`` structure."""
        return cls(
            device_name=data["DeviceName"],
            ebs=EbsBlockDevice.from_ec2(data["Ebs"]) if "Ebs" in data else None,
            virtual_name=data.get("VirtualName"),
            no_device="NoDevice" in data,
        )

    def to_ec2(self) -> Dict[str, Any]:
        """Render as an EC2 ``BlockDeviceMapping`` structure."""
        mapping: Dict[str, Any] = {"DeviceName": self.device_name}
        if self.no_device:
            mapping["NoDevice"] = ""
        elif self.virtual_name:
            mapping["VirtualName"] = self.virtual_name
        elif self.ebs:
            mapping["Ebs"] = self.ebs.to_ec2()
        return mapping


class ImageSpec(BaseModel):
    """A registered machine image, as read from the provider."""
    image_id: str = Field(..., description="Image identifier")
    name: str = Field(default="")
    description: str = Field(default="")
    state: Optional[str] = None
    root_device_name: str = Field(..., description="Device name of the root volume")
    block_device_mappings: List[BlockDeviceMapping] = Field(default_factory=list)
    tags: Dict[str, str] = Field(default_factory=dict)
    architecture: Optional[str] = None
    kernel_id: Optional[str] = None
    ramdisk_id: Optional[str] = None
    virtualization_type: Optional[str] = None
    ena_support: Optional[bool] = None
    sriov_net_support: Optional[str] = None
    boot_mode: Optional[str] = None

    class Config:
        """Pydantic config."""
        frozen = True

    @property
    def root_mapping(self) -> Optional[BlockDeviceMapping]:
        """The mapping backing the root device."""
        for mapping in self.block_device_mappings:
            if mapping.device_name == self.root_device_name:
                return mapping
        return None

    @classmethod
    def from_ec2(cls, data: Dict[str, Any]) -> "ImageSpec":
        """Build from an EC2 ``Image`` structure."""
        return cls(
            image_id=data["ImageId"],
            name=data.get("Name", ""),
            description=data.get("Description", ""),
            state=data.get("State"),
            root_device_name=data["RootDeviceName"],
            block_device_mappings=[
                BlockDeviceMapping.from_ec2(m)
                for m in data.get("BlockDeviceMappings", [])
            ],
            tags={t["Key"]: t["Value"] for t in data.get("Tags", [])},
            architecture=data.get("Architecture"),
            kernel_id=data.get("KernelId"),
            ramdisk_id=data.get("RamdiskId"),
            virtualization_type=data.get("VirtualizationType"),
            ena_support=data.get("EnaSupport"),
            sriov_net_support=data.get("SriovNetSupport"),
            boot_mode=data.get("BootMode"),
        )
