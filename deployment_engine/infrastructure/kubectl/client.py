#deployment_engine\infrastructure\kubectl\client.py
"""Control plane backed by the kubectl CLI."""

import json
import logging
import subprocess
from typing import Any, Dict, List, Optional

import yaml

from deployment_engine.core.control_plane import (
    APPLY_ACTIONS,
    ApplyResult,
    ControlPlane,
    ExecResult,
)
from deployment_engine.core.errors import ControlPlaneError

logger = logging.getLogger(__name__)


# kubectl resource names for the kinds we manage
RESOURCE_NAMES = {
    "PersistentVolume": "persistentvolume",
    "PersistentVolumeClaim": "persistentvolumeclaim",
    "Secret": "secret",
    "ConfigMap": "configmap",
    "Deployment": "deployment.apps",
    "Service": "service",
    "Ingress": "ingress.networking.k8s.io",
    "HorizontalPodAutoscaler": "horizontalpodautoscaler.autoscaling",
}

ROLLOUT_GRACE_SECONDS = 15


class KubectlControlPlane(ControlPlane):
    """
    Shells out to kubectl.

    ``apply`` pipes one YAML document to ``kubectl apply -f -`` and reads
    the action from its output (``deployment.apps/web created``).
    """

    def __init__(
        self,
        kubectl_path: str = "kubectl",
        namespace: Optional[str] = None,
        context: Optional[str] = None,
        timeout_seconds: int = 120,
        rollout_timeout_seconds: int = 300,
    ):
        self.kubectl_path = kubectl_path
        self.namespace = namespace
        self.context = context
        self.timeout_seconds = timeout_seconds
        self.rollout_timeout_seconds = rollout_timeout_seconds

    def _base_command(self) -> List[str]:
        command = [self.kubectl_path]
        if self.context:
            command += ["--context", self.context]
        if self.namespace:
            command += ["--namespace", self.namespace]
        return command

    def _run(
        self,
        args: List[str],
        stdin: Optional[str] = None,
        timeout: Optional[int] = None,
    ) -> subprocess.CompletedProcess:
        command = self._base_command() + args
        timeout = timeout or self.timeout_seconds
        logger.debug(f"[kubectl] {' '.join(command)}")
        try:
            return subprocess.run(
                command,
                input=stdin,
                capture_output=True,
                text=True,
                timeout=timeout,
            )
        except FileNotFoundError as e:
            raise ControlPlaneError(f"kubectl not found at {self.kubectl_path}") from e
        except subprocess.TimeoutExpired as e:
            raise ControlPlaneError(
                f"kubectl {' '.join(args)} timed out after {timeout}s"
            ) from e

    @staticmethod
    def _resource(kind: str) -> str:
        return RESOURCE_NAMES.get(kind, kind.lower())

    # -------------------------
    # CONTROL PLANE
    # -------------------------

    def apply(self, manifest: Dict[str, Any]) -> ApplyResult:
        kind = manifest.get("kind")
        name = (manifest.get("metadata") or {}).get("name")
        if not kind or not name:
            raise ControlPlaneError("error: manifest must set kind and metadata.name")

        document = yaml.safe_dump(manifest, sort_keys=False)
        result = self._run(["apply", "-f", "-"], stdin=document)

        if result.returncode != 0:
            raise ControlPlaneError(result.stderr.strip() or result.stdout.strip())

        return ApplyResult(kind=kind, name=name, action=self._parse_action(result.stdout))

    @staticmethod
    def _parse_action(stdout: str) -> str:
        lines = [line for line in stdout.strip().splitlines() if line.strip()]
        if not lines:
            return "configured"
        # "deployment.apps/web unchanged" / "... created (server dry run)"
        words = lines[-1].split()
        for word in words[1:]:
            if word in APPLY_ACTIONS:
                return word
        return "configured"

    def get(self, kind: str, name: str) -> Optional[Dict[str, Any]]:
        result = self._run(["get", self._resource(kind), name, "-o", "json"])

        if result.returncode != 0:
            if "NotFound" in result.stderr:
                return None
            raise ControlPlaneError(result.stderr.strip())

        try:
            return json.loads(result.stdout)
        except json.JSONDecodeError as e:
            raise ControlPlaneError(f"Unreadable kubectl output for {kind}/{name}: {e}") from e

    def delete(self, kind: str, name: str) -> bool:
        result = self._run(["delete", self._resource(kind), name, "--ignore-not-found"])

        if result.returncode != 0:
            raise ControlPlaneError(result.stderr.strip())

        # --ignore-not-found prints nothing when there was nothing to delete
        return bool(result.stdout.strip())

    def list(self, kind: str) -> List[Dict[str, Any]]:
        result = self._run(["get", self._resource(kind), "-o", "json"])

        if result.returncode != 0:
            raise ControlPlaneError(result.stderr.strip())

        return json.loads(result.stdout).get("items", [])

    def exec(self, workload: str, command: List[str]) -> ExecResult:
        result = self._run(["exec", f"deployment/{workload}", "--"] + list(command))

        if result.returncode != 0 and "NotFound" in result.stderr:
            raise ControlPlaneError(result.stderr.strip())

        return ExecResult(
            exit_code=result.returncode,
            stdout=result.stdout,
            stderr=result.stderr,
        )

    def wait_ready(self, kind: str, name: str) -> None:
        if kind != "Deployment":
            return

        # kubectl enforces the rollout deadline; the process gets a little longer
        result = self._run(
            [
                "rollout", "status", f"deployment/{name}",
                f"--timeout={self.rollout_timeout_seconds}s",
            ],
            timeout=self.rollout_timeout_seconds + ROLLOUT_GRACE_SECONDS,
        )

        if result.returncode != 0:
            raise ControlPlaneError(
                f"deployment/{name} did not become ready: "
                f"{result.stderr.strip() or result.stdout.strip()}"
            )
        logger.info(f"[kubectl] deployment/{name} rolled out")
