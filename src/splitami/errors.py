"""Exception hierarchy for split runs."""

from typing import List, Optional


class SplitError(Exception):
    """Base class for all fatal split errors."""
    pass


class InvalidInput(SplitError):
    """Bad arguments or configuration, detected before any resource is touched."""
    pass


class ResourceExhausted(SplitError):
    """Not enough free device names or device letters."""
    pass


class ProviderError(SplitError):
    """A cloud API call failed or a resource reached an unexpected state."""
    pass


class WaitTimeout(SplitError):
    """A wait-until-state exceeded its bound."""
    pass


class LocalCommandError(SplitError):
    """A local OS command (mount, mkfs, cp, ...) failed."""

    def __init__(
        self,
        cmd: List[str],
        returncode: Optional[int] = None,
        stderr: str = "",
    ):
        self.cmd = cmd
        self.returncode = returncode
        self.stderr = stderr
        message = f"Command failed ({returncode}): {' '.join(cmd)}"
        if stderr:
            message = f"{message}: {stderr.strip()}"
        super().__init__(message)
