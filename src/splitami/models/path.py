"""Path specification models."""

import math
import re
from typing import Iterable, List
from pydantic import BaseModel, Field, validator

from splitami.errors import InvalidInput


PATH_SPEC_PATTERN = re.compile(r"\A(/[^:]+):([0-9.]+):([^:]+)\Z")
IMAGE_ID_PATTERN = re.compile(r"\Aami-[0-9a-f]+\Z")


class PathSpec(BaseModel):
    """A directory to carve out of the root volume into its own volume."""
    mount_path: str = Field(..., description="Absolute path inside the image")
    size_gib: float = Field(..., gt=0, description="Size of the new volume in GiB")
    mount_options: str = Field(..., min_length=1, description="fstab mount options")

    class Config:
        """Pydantic config."""
        frozen = True

    @validator("mount_path")
    def validate_mount_path(cls, v):
        """Require a normalized absolute path other than the root itself."""
        if not v.startswith("/"):
            raise ValueError(f"Mount path must be absolute: {v}")
        segments = [s for s in v.split("/") if s not in ("", ".")]
        if ".." in segments:
            raise ValueError(f"Mount path cannot contain '..': {v}")
        if not segments:
            raise ValueError("Mount path cannot be the root directory")
        return "/" + "/".join(segments)

    @validator("mount_options")
    def validate_mount_options(cls, v):
        """fstab fields cannot hold whitespace."""
        if any(c.isspace() for c in v):
            raise ValueError(f"Mount options cannot contain whitespace: {v!r}")
        return v

    @property
    def volume_size(self) -> int:
        """Whole GiB size to provision."""
        return math.ceil(self.size_gib)

    @property
    def relative_path(self) -> str:
        """Mount path relative to the root of the filesystem."""
        return self.mount_path.lstrip("/")

    @classmethod
    def parse(cls, text: str) -> "PathSpec":
        """Parse a ``PATH:SIZE:OPTIONS`` argument."""
        match = PATH_SPEC_PATTERN.match(text)
        if not match:
            raise InvalidInput(
                f"Filesystem parameter {text!r} must match {PATH_SPEC_PATTERN.pattern}"
            )
        path, size, options = match.groups()
        try:
            size_gib = float(size)
        except ValueError:
            raise InvalidInput(f"Invalid size {size!r} in {text!r}")
        try:
            return cls(mount_path=path, size_gib=size_gib, mount_options=options)
        except ValueError as e:
            raise InvalidInput(f"Invalid filesystem parameter {text!r}: {e}") from e


def validate_image_id(image_id: str) -> str:
    """Check that an argument looks like an AMI id."""
    if not IMAGE_ID_PATTERN.match(image_id or ""):
        raise InvalidInput(
            f"Source image ({image_id}) must be an EC2 AMI ID in the current region"
        )
    return image_id


def parse_path_specs(args: Iterable[str]) -> List[PathSpec]:
    """Parse and validate all path arguments, keeping argument order."""
    specs = [PathSpec.parse(arg) for arg in args]
    if not specs:
        raise InvalidInput("Filesystem parameters (PATH:SIZE:MOUNT_OPTIONS) required")

    seen = set()
    for spec in specs:
        if spec.mount_path in seen:
            raise InvalidInput(f"Duplicate filesystem path: {spec.mount_path}")
        seen.add(spec.mount_path)
    return specs


def processing_order(specs: Iterable[PathSpec]) -> List[PathSpec]:
    """Order specs so nested paths are migrated before their ancestors."""
    return sorted(specs, key=lambda spec: spec.mount_path, reverse=True)
