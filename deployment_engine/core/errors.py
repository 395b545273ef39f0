# deployment_engine/core/errors.py

from typing import List, Optional

# -----------------------------
# Base Errors
# -----------------------------

class DeploymentError(Exception):
    """Base class for all deployment engine errors."""
    pass


# -----------------------------
# Planning Errors
# -----------------------------

class StageDefinitionError(DeploymentError):
    """Malformed stage definition (duplicate ids, missing payload)."""
    pass


class CyclicDependency(DeploymentError):
    """Stage dependency graph contains a cycle."""

    def __init__(self, cycle: List[str]):
        self.cycle = list(cycle)
        super().__init__(
            f"Cyclic stage dependency: {' -> '.join(self.cycle)}"
        )


class MissingDependencyError(DeploymentError):
    """A reference names a stage or entity that does not exist (yet)."""

    def __init__(self, kind: str, name: str, stage_id: Optional[str] = None):
        self.kind = kind
        self.name = name
        self.stage_id = stage_id
        where = f" (referenced by stage '{stage_id}')" if stage_id else ""
        super().__init__(f"Missing dependency {kind}/{name}{where}")


# -----------------------------
# Apply Errors
# -----------------------------

class StageApplyError(DeploymentError):
    """A stage's apply operation failed. Carries the failing stage and raw cause."""

    def __init__(self, stage_id: str, cause: BaseException, run_id=None):
        self.stage_id = stage_id
        self.cause = cause
        self.run_id = run_id
        super().__init__(f"Stage '{stage_id}' failed: {cause}")


class ControlPlaneError(DeploymentError):
    """Cluster control plane rejected or failed a request."""
    pass


class ImageBuildError(DeploymentError):
    """Container image build or publish failed."""
    pass


# -----------------------------
# Verification Errors
# -----------------------------

class VerificationError(DeploymentError):
    """Post-deployment check did not succeed."""

    def __init__(self, check: str, detail: str):
        self.check = check
        self.detail = detail
        super().__init__(f"Verification '{check}' failed: {detail}")


# -----------------------------
# Persistence Errors
# -----------------------------

class RunPersistenceError(DeploymentError):
    pass


class RunAlreadyExists(RunPersistenceError):
    pass


class RunNotFound(RunPersistenceError):
    pass
