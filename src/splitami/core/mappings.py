"""Block device mapping assembly."""

import logging
from typing import List, Optional

from splitami.errors import ProviderError
from splitami.models.image import BlockDeviceMapping, EbsBlockDevice, ImageSpec


logger = logging.getLogger(__name__)


class MappingBuilder:
    """Accumulates the block device mappings of the image being built.

    Starts from the source image's mappings. The only changes allowed are
    substituting the root snapshot and appending one mapping per new path.
    """

    def __init__(self, source: ImageSpec):
        """Initialize from the source image's mappings."""
        if source.root_mapping is None or source.root_mapping.snapshot_id is None:
            raise ProviderError(
                f"Image {source.image_id} has no EBS mapping for root device "
                f"{source.root_device_name}"
            )
        self.root_device_name = source.root_device_name
        self._inherited: List[BlockDeviceMapping] = list(source.block_device_mappings)
        self._added: List[BlockDeviceMapping] = []
        self._root_snapshot_id: Optional[str] = None

    @staticmethod
    def new_mapping(device_name: str, snapshot_id: str, volume_type: str) -> BlockDeviceMapping:
        """Mapping for a freshly created path snapshot."""
        return BlockDeviceMapping(
            device_name=device_name,
            ebs=EbsBlockDevice(
                snapshot_id=snapshot_id,
                volume_type=volume_type,
                delete_on_termination=True,
            ),
        )

    def add(self, mapping: BlockDeviceMapping) -> None:
        """Append the mapping of a migrated path."""
        existing = {m.device_name for m in self._inherited + self._added}
        if mapping.device_name in existing:
            raise ProviderError(f"Device {mapping.device_name} is already mapped")
        self._added.append(mapping)

    def set_root_snapshot(self, snapshot_id: str) -> None:
        """Record the snapshot that replaces the source root snapshot."""
        self._root_snapshot_id = snapshot_id

    def build(self) -> List[BlockDeviceMapping]:
        """Final mappings: inherited ones with root substituted, then added ones."""
        if self._root_snapshot_id is None:
            raise ProviderError("Root snapshot has not been created")

        mappings = []
        for mapping in self._inherited:
            if mapping.device_name == self.root_device_name:
                logger.debug(
                    f"Root {mapping.device_name}: {mapping.snapshot_id} -> {self._root_snapshot_id}"
                )
                mapping = mapping.with_snapshot(self._root_snapshot_id)
            mappings.append(mapping)
        return mappings + self._added
