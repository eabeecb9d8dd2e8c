"""Device name and letter allocation."""

import logging
import string
from typing import Iterable, List, Optional, Sequence

from splitami.errors import ResourceExhausted
from splitami.models.path import PathSpec
from splitami.models.run import DeviceAssignment


logger = logging.getLogger(__name__)

# Letters b through y; a is conventionally the root and z is never handed out.
CANDIDATE_LETTERS = tuple(string.ascii_lowercase[1:25])
DEVICE_NAME_PREFIXES = ("/dev/xvd", "/dev/sd", "/dev/hd", "xvd", "sd", "hd")


def device_letter(device_name: str) -> Optional[str]:
    """Drive letter encoded in a device name (``/dev/sda1`` -> ``a``)."""
    for prefix in DEVICE_NAME_PREFIXES:
        if device_name.startswith(prefix):
            rest = device_name[len(prefix):]
            if rest and rest[0] in string.ascii_lowercase:
                return rest[0]
            return None
    return None


def free_local_devices(present_nodes: Iterable[str], prefix: str) -> List[str]:
    """Candidate local device nodes not currently present on the host."""
    present = set(present_nodes)
    candidates = [f"{prefix}{letter}" for letter in CANDIDATE_LETTERS]
    return sorted(device for device in candidates if device not in present)


def free_letters(used_device_names: Iterable[str]) -> List[str]:
    """Candidate letters not used by any existing block device mapping."""
    used = {device_letter(name) for name in used_device_names}
    return sorted(letter for letter in CANDIDATE_LETTERS if letter not in used)


def allocate_devices(
    present_nodes: Iterable[str],
    used_device_names: Iterable[str],
    path_specs: Sequence[PathSpec],
    local_device_prefix: str = "/dev/xvd",
) -> DeviceAssignment:
    """Assign a local device to root and every path, and a final letter to every path.

    Assignments follow argument order: root takes the first free local
    device, then each path in the order it was given.
    """
    local = free_local_devices(present_nodes, local_device_prefix)
    letters = free_letters(used_device_names)

    needed_local = len(path_specs) + 1
    if len(local) < needed_local:
        raise ResourceExhausted(
            f"Need {needed_local} free local devices under {local_device_prefix}, "
            f"only {len(local)} available"
        )
    if len(letters) < len(path_specs):
        raise ResourceExhausted(
            f"Need {len(path_specs)} free device letters, only {len(letters)} available"
        )

    assignment = DeviceAssignment(
        root_device=local[0],
        local_devices={
            spec.mount_path: device for spec, device in zip(path_specs, local[1:])
        },
        final_letters={
            spec.mount_path: letter for spec, letter in zip(path_specs, letters)
        },
    )
    logger.debug(f"Device assignment: {assignment}")
    return assignment
