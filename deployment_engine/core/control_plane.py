# deployment_engine/core/control_plane.py

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional


APPLY_ACTIONS = {"created", "configured", "unchanged"}


@dataclass(frozen=True)
class ApplyResult:
    """Outcome of one idempotent apply."""

    kind: str
    name: str
    action: str  # "created", "configured", "unchanged"


@dataclass(frozen=True)
class ExecResult:
    """Outcome of a command run inside a workload."""

    exit_code: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


class ControlPlane(ABC):
    """
    Contract for the cluster control plane.

    Entities are identified by (kind, name) inside one namespace.
    """

    @abstractmethod
    def apply(self, manifest: Dict[str, Any]) -> ApplyResult:
        """
        Create or update an entity to match the manifest.
        Re-applying an identical manifest must be a no-op ("unchanged").
        Raises ControlPlaneError when the request is rejected.
        """
        raise NotImplementedError

    @abstractmethod
    def get(self, kind: str, name: str) -> Optional[Dict[str, Any]]:
        """
        Fetch the stored manifest.
        Returns None if not found.
        """
        raise NotImplementedError

    @abstractmethod
    def delete(self, kind: str, name: str) -> bool:
        """
        Delete an entity. Returns False if it did not exist.
        """
        raise NotImplementedError

    @abstractmethod
    def list(self, kind: str) -> List[Dict[str, Any]]:
        """
        All stored manifests of one kind.
        """
        raise NotImplementedError

    @abstractmethod
    def exec(self, workload: str, command: List[str]) -> ExecResult:
        """
        Run a command inside one running replica of a workload.
        """
        raise NotImplementedError

    def wait_ready(self, kind: str, name: str) -> None:
        """
        Block until an applied entity is ready for use.

        Only workloads have a readiness notion; other kinds are ready as
        soon as they are applied. Raises ControlPlaneError on timeout or
        a failed rollout.
        """
        return None
