"""Tests for image models."""

from splitami.models.image import BlockDeviceMapping, EbsBlockDevice, ImageSpec


SOURCE_IMAGE = {
    "ImageId": "ami-0abc",
    "Name": "base-image",
    "Description": "Base image",
    "State": "available",
    "RootDeviceName": "/dev/sda1",
    "Architecture": "x86_64",
    "VirtualizationType": "hvm",
    "EnaSupport": True,
    "BlockDeviceMappings": [
        {
            "DeviceName": "/dev/sda1",
            "Ebs": {
                "SnapshotId": "snap-aaa",
                "VolumeSize": 8,
                "VolumeType": "gp2",
                "DeleteOnTermination": True,
                "Encrypted": False,
            },
        },
        {"DeviceName": "/dev/sdb", "VirtualName": "ephemeral0"},
        {"DeviceName": "/dev/sdc", "NoDevice": ""},
    ],
    "Tags": [{"Key": "Team", "Value": "infra"}],
}


class TestImageSpec:
    """Test ImageSpec model."""

    def test_from_ec2(self):
        """Test building an image from an EC2 response."""
        image = ImageSpec.from_ec2(SOURCE_IMAGE)

        assert image.image_id == "ami-0abc"
        assert image.name == "base-image"
        assert image.root_device_name == "/dev/sda1"
        assert image.architecture == "x86_64"
        assert image.kernel_id is None
        assert image.ena_support is True
        assert image.tags == {"Team": "infra"}
        assert len(image.block_device_mappings) == 3

    def test_root_mapping(self):
        """Test locating the root mapping."""
        image = ImageSpec.from_ec2(SOURCE_IMAGE)

        root = image.root_mapping
        assert root.device_name == "/dev/sda1"
        assert root.snapshot_id == "snap-aaa"
        assert root.ebs.volume_size == 8

    def test_missing_root_mapping(self):
        """Test an image whose root device has no mapping."""
        image = ImageSpec(image_id="ami-1", root_device_name="/dev/xvda")

        assert image.root_mapping is None


class TestBlockDeviceMapping:
    """Test BlockDeviceMapping model."""

    def test_round_trip_kinds(self):
        """Test that ephemeral and suppressed mappings keep their kind."""
        image = ImageSpec.from_ec2(SOURCE_IMAGE)
        ephemeral, suppressed = image.block_device_mappings[1:]

        assert ephemeral.to_ec2() == {"DeviceName": "/dev/sdb", "VirtualName": "ephemeral0"}
        assert suppressed.to_ec2() == {"DeviceName": "/dev/sdc", "NoDevice": ""}

    def test_ebs_to_ec2_drops_encryption_flag(self):
        """Test that registration output only carries registrable fields."""
        mapping = ImageSpec.from_ec2(SOURCE_IMAGE).root_mapping

        assert mapping.to_ec2() == {
            "DeviceName": "/dev/sda1",
            "Ebs": {
                "DeleteOnTermination": True,
                "SnapshotId": "snap-aaa",
                "VolumeSize": 8,
                "VolumeType": "gp2",
            },
        }

    def test_iops_only_for_provisioned_types(self):
        """Test that iops is emitted only where the volume type takes it."""
        assert "Iops" not in EbsBlockDevice(volume_type="gp2", iops=100).to_ec2()
        assert EbsBlockDevice(volume_type="io1", iops=1000).to_ec2()["Iops"] == 1000

    def test_with_snapshot(self):
        """Test substituting the backing snapshot."""
        mapping = ImageSpec.from_ec2(SOURCE_IMAGE).root_mapping

        replaced = mapping.with_snapshot("snap-new")

        assert replaced.snapshot_id == "snap-new"
        assert replaced.device_name == "/dev/sda1"
        assert replaced.ebs.volume_size == 8
        assert replaced.ebs.volume_type == "gp2"
        assert mapping.snapshot_id == "snap-aaa"

    def test_snapshot_id_without_ebs(self):
        """Test that non-EBS mappings have no snapshot."""
        assert BlockDeviceMapping(device_name="/dev/sdb", virtual_name="ephemeral0").snapshot_id is None
