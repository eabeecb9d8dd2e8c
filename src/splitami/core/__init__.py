"""Split orchestration components."""

from splitami.core.allocator import allocate_devices
from splitami.core.ledger import ResourceLedger, ResourceKind
from splitami.core.mappings import MappingBuilder
from splitami.core.migrator import FilesystemMigrator
from splitami.core.orchestrator import SplitOrchestrator, split_image, plan_split

__all__ = [
    "allocate_devices",
    "ResourceLedger",
    "ResourceKind",
    "MappingBuilder",
    "FilesystemMigrator",
    "SplitOrchestrator",
    "split_image",
    "plan_split",
]
