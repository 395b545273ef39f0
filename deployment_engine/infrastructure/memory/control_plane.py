# deployment_engine/infrastructure/memory/control_plane.py

import copy
from threading import Lock
from typing import Any, Callable, Dict, List, Optional, Tuple

from deployment_engine.core.control_plane import ApplyResult, ControlPlane, ExecResult
from deployment_engine.core.errors import ControlPlaneError


class InMemoryControlPlane(ControlPlane):
    """
    Keyed manifest store with kubectl-like apply semantics.

    Used for dry runs and tests. Failures can be injected per entity
    with ``fail_on`` and exec output scripted with ``on_exec``.
    """

    def __init__(self):
        self._store: Dict[Tuple[str, str], Dict[str, Any]] = {}
        self._lock = Lock()
        self._failures: Dict[Tuple[str, str], str] = {}
        self._exec_handlers: Dict[str, Callable[[List[str]], ExecResult]] = {}
        self._rollout_failures: Dict[str, str] = {}

        self.apply_log: List[ApplyResult] = []
        self.exec_log: List[Tuple[str, List[str]]] = []
        self.wait_log: List[Tuple[str, str]] = []

    # -------------------------
    # TEST HOOKS
    # -------------------------

    def fail_on(self, kind: str, name: str, message: str) -> None:
        """Reject every apply of (kind, name) with ``message``."""
        self._failures[(kind, name)] = message

    def clear_failure(self, kind: str, name: str) -> None:
        self._failures.pop((kind, name), None)

    def fail_rollout(self, workload: str, message: str) -> None:
        """Make waiting on ``workload`` fail as a stuck rollout would."""
        self._rollout_failures[workload] = message

    def on_exec(self, workload: str, handler: Callable[[List[str]], ExecResult]) -> None:
        self._exec_handlers[workload] = handler

    def snapshot(self) -> Dict[Tuple[str, str], Dict[str, Any]]:
        with self._lock:
            return copy.deepcopy(self._store)

    def created(self, kind: Optional[str] = None) -> List[ApplyResult]:
        return [
            r for r in self.apply_log
            if r.action == "created" and (kind is None or r.kind == kind)
        ]

    # -------------------------
    # CONTROL PLANE
    # -------------------------

    def apply(self, manifest: Dict[str, Any]) -> ApplyResult:
        kind = manifest.get("kind")
        name = (manifest.get("metadata") or {}).get("name")
        if not kind or not name:
            raise ControlPlaneError("error: manifest must set kind and metadata.name")

        with self._lock:
            message = self._failures.get((kind, name))
            if message:
                raise ControlPlaneError(message)

            stored = self._store.get((kind, name))
            if stored is None:
                action = "created"
            elif stored == manifest:
                action = "unchanged"
            else:
                action = "configured"

            self._store[(kind, name)] = copy.deepcopy(manifest)
            result = ApplyResult(kind=kind, name=name, action=action)
            self.apply_log.append(result)
            return result

    def get(self, kind: str, name: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            stored = self._store.get((kind, name))
            return copy.deepcopy(stored) if stored is not None else None

    def delete(self, kind: str, name: str) -> bool:
        with self._lock:
            return self._store.pop((kind, name), None) is not None

    def list(self, kind: str) -> List[Dict[str, Any]]:
        with self._lock:
            return [
                copy.deepcopy(manifest)
                for (stored_kind, _), manifest in sorted(self._store.items())
                if stored_kind == kind
            ]

    def exec(self, workload: str, command: List[str]) -> ExecResult:
        if self.get("Deployment", workload) is None:
            raise ControlPlaneError(
                f'Error from server (NotFound): deployments.apps "{workload}" not found'
            )

        self.exec_log.append((workload, list(command)))

        handler = self._exec_handlers.get(workload)
        if handler is None:
            return ExecResult(exit_code=0)
        return handler(list(command))

    def wait_ready(self, kind: str, name: str) -> None:
        if kind != "Deployment":
            return
        if self.get(kind, name) is None:
            raise ControlPlaneError(
                f'Error from server (NotFound): deployments.apps "{name}" not found'
            )

        self.wait_log.append((kind, name))

        message = self._rollout_failures.get(name)
        if message:
            raise ControlPlaneError(message)
