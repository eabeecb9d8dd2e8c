"""
splitami - Split a single-volume EC2 AMI into a multi-volume AMI.

Carves chosen directories out of an image's root volume into their own
snapshots and registers a new image mounting them through /etc/fstab.
"""

__version__ = "1.0.0"

# Re-export key components for easier access
from splitami.models.config import SplitConfig
from splitami.models.image import ImageSpec
from splitami.models.path import PathSpec
from splitami.core.orchestrator import split_image, plan_split

__all__ = [
    "SplitConfig",
    "ImageSpec",
    "PathSpec",
    "split_image",
    "plan_split",
]
