"""Bookkeeping of resources created during a run."""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, TYPE_CHECKING

if TYPE_CHECKING:
    from splitami.providers.base import ResourceClient
    from splitami.utils.filesystem import LocalFilesystemOps

logger = logging.getLogger(__name__)


class ResourceKind(Enum):
    """Kinds of resources a run can leave behind."""
    VOLUME = "volume"
    ATTACHMENT = "attachment"
    MOUNT = "mount"
    SNAPSHOT = "snapshot"


@dataclass(frozen=True)
class LedgerEntry:
    """One live resource."""
    kind: ResourceKind
    resource_id: str
    detail: str = ""


class ResourceLedger:
    """Tracks live resources in creation order."""

    def __init__(self):
        """Initialize empty ledger."""
        self._entries: List[LedgerEntry] = []

    @property
    def entries(self) -> List[LedgerEntry]:
        """Live resources, oldest first."""
        return list(self._entries)

    def add(self, kind: ResourceKind, resource_id: str, detail: str = "") -> None:
        """Record a newly created resource."""
        self._entries.append(LedgerEntry(kind, resource_id, detail))

    def discard(self, kind: ResourceKind, resource_id: str) -> None:
        """Forget a resource that was cleaned up or handed over."""
        self._entries = [
            e for e in self._entries
            if not (e.kind == kind and e.resource_id == resource_id)
        ]

    def find(self, kind: ResourceKind) -> List[LedgerEntry]:
        """Live resources of one kind."""
        return [e for e in self._entries if e.kind == kind]

    def report(self) -> None:
        """Log every live resource so an operator can reconcile by hand."""
        if not self._entries:
            logger.info("No resources left behind")
            return
        logger.error("Resources left behind by the failed run:")
        for entry in self._entries:
            detail = f" ({entry.detail})" if entry.detail else ""
            logger.error(f"  {entry.kind.value}: {entry.resource_id}{detail}")

    async def teardown(
        self,
        client: "ResourceClient",
        fs_ops: "LocalFilesystemOps",
    ) -> None:
        """Best-effort removal of every live resource, newest first."""
        for entry in reversed(self._entries):
            try:
                if entry.kind == ResourceKind.MOUNT:
                    await fs_ops.unmount(entry.resource_id)
                elif entry.kind == ResourceKind.ATTACHMENT:
                    await client.detach_volume(entry.resource_id)
                elif entry.kind == ResourceKind.VOLUME:
                    await client.delete_volume(entry.resource_id)
                elif entry.kind == ResourceKind.SNAPSHOT:
                    await client.delete_snapshot(entry.resource_id)
                self.discard(entry.kind, entry.resource_id)
                logger.info(f"Cleaned up {entry.kind.value} {entry.resource_id}")
            except Exception as e:
                logger.warning(f"Failed to clean up {entry.kind.value} {entry.resource_id}: {e}")
