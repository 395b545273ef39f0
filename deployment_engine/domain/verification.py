#deployment_engine\domain\verification.py
"""Post-deployment verification: env resolution, database connectivity, routing."""

import logging
from typing import Any, Dict, List, Optional

import requests

from deployment_engine.core.control_plane import ControlPlane
from deployment_engine.core.errors import (
    ControlPlaneError,
    MissingDependencyError,
    VerificationError,
)
from deployment_engine.core.models import StageDefinition, StageType
from deployment_engine.domain.manifests import decode_secret_value
from deployment_engine.domain.models import (
    ConfigSet,
    CredentialSet,
    EnvBinding,
    ExternalRoute,
    InternalAddress,
    Workload,
)

logger = logging.getLogger(__name__)


class DeploymentVerifier:
    """Checks a deployed stage set against the live control plane."""

    def __init__(
        self,
        control_plane: ControlPlane,
        http_session: Optional[requests.Session] = None,
        route_scheme: str = "http",
        timeout_seconds: float = 10.0,
    ):
        self._control_plane = control_plane
        self._http = http_session or requests.Session()
        self._route_scheme = route_scheme
        self._timeout = timeout_seconds

    # -------------------------
    # ENVIRONMENT
    # -------------------------

    def resolve_binding(self, binding: EnvBinding) -> str:
        """
        Value a container would see for one binding.

        Raises:
            MissingDependencyError: the referenced entity or key does not exist
        """
        if binding.secret:
            secret_name, key = binding.secret
            secret = self._require(CredentialSet.kind, secret_name)
            data = secret.get("data") or {}
            if key not in data:
                raise MissingDependencyError(CredentialSet.kind, f"{secret_name}[{key}]")
            return decode_secret_value(data[key])

        if binding.config:
            config_name, key = binding.config
            config = self._require(ConfigSet.kind, config_name)
            data = config.get("data") or {}
            if key not in data:
                raise MissingDependencyError(ConfigSet.kind, f"{config_name}[{key}]")
            return data[key]

        if binding.address:
            self._require(InternalAddress.kind, binding.address)
            return binding.address

        return binding.value

    def resolve_environment(self, workload: Workload) -> Dict[str, str]:
        return {binding.name: self.resolve_binding(binding) for binding in workload.env}

    def _require(self, kind: str, name: str) -> Dict[str, Any]:
        manifest = self._control_plane.get(kind, name)
        if manifest is None:
            raise MissingDependencyError(kind, name)
        return manifest

    # -------------------------
    # DATABASE
    # -------------------------

    def database_check_command(self, workload: Workload) -> List[str]:
        """``mysql ... -e 'SELECT 1'`` using the workload's own credentials."""
        env = self.resolve_environment(workload)
        user = env.get("MYSQL_USER") or "root"
        password = env.get("MYSQL_PASSWORD") if "MYSQL_USER" in env else env.get("MYSQL_ROOT_PASSWORD")
        command = ["mysql", f"-u{user}"]
        if password:
            command.append(f"-p{password}")
        if env.get("MYSQL_DATABASE"):
            command.append(env["MYSQL_DATABASE"])
        return command + ["-e", "SELECT 1"]

    def verify_database(self, workload: Workload, command: Optional[List[str]] = None) -> Dict[str, Any]:
        """Run a connectivity check inside the database workload."""
        command = command or self.database_check_command(workload)

        try:
            result = self._control_plane.exec(workload.name, command)
        except ControlPlaneError as e:
            raise VerificationError("database", str(e)) from e

        if not result.ok:
            raise VerificationError(
                "database",
                f"exit code {result.exit_code}: {result.stderr.strip() or result.stdout.strip()}",
            )

        logger.info(f"[verifier] database {workload.name} reachable")
        return {"check": "database", "workload": workload.name, "ok": True}

    # -------------------------
    # ROUTING
    # -------------------------

    def verify_route(self, route: ExternalRoute) -> Dict[str, Any]:
        """GET the route's host + path; any non-error status passes."""
        if self._control_plane.get(ExternalRoute.kind, route.name) is None:
            raise VerificationError("route", f"Ingress {route.name} does not exist")

        url = f"{self._route_scheme}://{route.host}{route.path_prefix}"
        try:
            response = self._http.get(url, timeout=self._timeout, allow_redirects=False)
        except requests.RequestException as e:
            raise VerificationError("route", f"GET {url} failed: {e}") from e

        if response.status_code >= 400:
            raise VerificationError("route", f"GET {url} returned {response.status_code}")

        logger.info(f"[verifier] route {url} -> {response.status_code}")
        return {"check": "route", "url": url, "status_code": response.status_code, "ok": True}

    # -------------------------
    # ALL
    # -------------------------

    def verify_all(self, stages: List[StageDefinition], check_routes: bool = True) -> List[Dict[str, Any]]:
        """
        Resolve every workload's environment, check database stages and
        (optionally) external routes. Stops at the first failing check.
        """
        report = []
        for stage in stages:
            for entity in stage.entities:
                if isinstance(entity, Workload):
                    try:
                        env = self.resolve_environment(entity)
                    except MissingDependencyError as e:
                        raise VerificationError("environment", str(e)) from e
                    report.append({
                        "check": "environment",
                        "workload": entity.name,
                        "resolved": sorted(env),
                        "ok": True,
                    })
                    if stage.stage_type == StageType.DATABASE:
                        report.append(self.verify_database(entity))

                elif isinstance(entity, ExternalRoute) and check_routes:
                    report.append(self.verify_route(entity))

        return report
