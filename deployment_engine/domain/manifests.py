#deployment_engine\domain\manifests.py
"""Render domain entities to Kubernetes manifests."""

import base64
import hashlib
import json
from typing import Any, Dict, Iterable, List, Optional

import yaml

from deployment_engine.domain.models import (
    AutoscalePolicy,
    ConfigSet,
    CredentialSet,
    EnvBinding,
    ExternalRoute,
    InternalAddress,
    PersistentVolume,
    StorageClaim,
    Workload,
)


MANAGED_BY_LABEL = "app.kubernetes.io/managed-by"
MANAGED_BY = "deployment-engine"


def _metadata(name: str, namespace: Optional[str], labels: Optional[Dict[str, str]] = None,
              namespaced: bool = True) -> Dict[str, Any]:
    metadata: Dict[str, Any] = {
        "name": name,
        "labels": {MANAGED_BY_LABEL: MANAGED_BY, **(labels or {})},
    }
    if namespaced and namespace:
        metadata["namespace"] = namespace
    return metadata


def encode_secret_value(value) -> str:
    if isinstance(value, str):
        value = value.encode("utf-8")
    return base64.b64encode(value).decode("ascii")


def decode_secret_value(value: str) -> str:
    return base64.b64decode(value).decode("utf-8")


# ============================================
# PER-KIND RENDERERS
# ============================================

def _persistent_volume(pv: PersistentVolume, namespace):
    spec: Dict[str, Any] = {
        "storageClassName": pv.storage_class,
        "capacity": {"storage": pv.capacity},
        "accessModes": [pv.access_mode.value],
    }
    if pv.host_path:
        spec["hostPath"] = {"path": pv.host_path}
    return {
        "apiVersion": "v1",
        "kind": PersistentVolume.kind,
        # PersistentVolumes are cluster scoped
        "metadata": _metadata(pv.name, namespace, pv.labels, namespaced=False),
        "spec": spec,
    }


def _storage_claim(claim: StorageClaim, namespace):
    spec: Dict[str, Any] = {
        "accessModes": [claim.access_mode.value],
        "resources": {"requests": {"storage": claim.capacity}},
    }
    if claim.storage_class is not None:
        spec["storageClassName"] = claim.storage_class
    if claim.volume_name:
        spec["volumeName"] = claim.volume_name
    return {
        "apiVersion": "v1",
        "kind": StorageClaim.kind,
        "metadata": _metadata(claim.name, namespace),
        "spec": spec,
    }


def _credential_set(secret: CredentialSet, namespace):
    return {
        "apiVersion": "v1",
        "kind": CredentialSet.kind,
        "metadata": _metadata(secret.name, namespace),
        "type": "Opaque",
        "data": {key: encode_secret_value(value) for key, value in sorted(secret.data.items())},
    }


def _config_set(config: ConfigSet, namespace):
    return {
        "apiVersion": "v1",
        "kind": ConfigSet.kind,
        "metadata": _metadata(config.name, namespace),
        "data": {key: str(value) for key, value in sorted(config.data.items())},
    }


def env_var(binding: EnvBinding) -> Dict[str, Any]:
    """Container env entry for one binding."""
    if binding.secret:
        secret_name, key = binding.secret
        return {"name": binding.name, "valueFrom": {"secretKeyRef": {"name": secret_name, "key": key}}}
    if binding.config:
        config_name, key = binding.config
        return {"name": binding.name, "valueFrom": {"configMapKeyRef": {"name": config_name, "key": key}}}
    if binding.address:
        # In-cluster DNS resolves the service name itself
        return {"name": binding.name, "value": binding.address}
    return {"name": binding.name, "value": binding.value}


def _workload(workload: Workload, namespace):
    selector = {"app": workload.name}

    container: Dict[str, Any] = {
        "name": workload.name,
        "image": workload.image,
    }
    if workload.args:
        container["args"] = list(workload.args)
    if workload.port is not None:
        container["ports"] = [{"containerPort": workload.port}]
    if workload.env:
        container["env"] = [env_var(binding) for binding in workload.env]
    if workload.resources:
        container["resources"] = {
            "requests": {"cpu": workload.resources.cpu, "memory": workload.resources.memory},
        }

    pod_spec: Dict[str, Any] = {"containers": [container]}
    if workload.volume_mounts:
        volumes = []
        mounts = []
        for i, mount in enumerate(workload.volume_mounts):
            volume_name = f"{workload.name}-storage-{i}"
            volumes.append({
                "name": volume_name,
                "persistentVolumeClaim": {"claimName": mount.claim_name},
            })
            mounts.append({"name": volume_name, "mountPath": mount.mount_path})
        container["volumeMounts"] = mounts
        pod_spec["volumes"] = volumes

    return {
        "apiVersion": "apps/v1",
        "kind": Workload.kind,
        "metadata": _metadata(workload.name, namespace, {**selector, **workload.labels}),
        "spec": {
            "replicas": workload.replicas,
            "selector": {"matchLabels": selector},
            "strategy": {"type": workload.strategy.value},
            "template": {
                "metadata": {"labels": {**selector, **workload.labels}},
                "spec": pod_spec,
            },
        },
    }


def _internal_address(address: InternalAddress, namespace):
    spec: Dict[str, Any] = {
        "selector": {"app": address.workload},
        "ports": [{
            "port": address.port,
            "targetPort": address.effective_target_port,
        }],
    }
    if address.headless:
        spec["clusterIP"] = "None"
    return {
        "apiVersion": "v1",
        "kind": InternalAddress.kind,
        "metadata": _metadata(address.name, namespace),
        "spec": spec,
    }


def _external_route(route: ExternalRoute, namespace):
    spec: Dict[str, Any] = {
        "rules": [{
            "host": route.host,
            "http": {
                "paths": [{
                    "path": route.path_prefix,
                    "pathType": "Prefix",
                    "backend": {
                        "service": {
                            "name": route.address,
                            "port": {"number": route.port},
                        },
                    },
                }],
            },
        }],
    }
    if route.ingress_class:
        spec["ingressClassName"] = route.ingress_class
    return {
        "apiVersion": "networking.k8s.io/v1",
        "kind": ExternalRoute.kind,
        "metadata": _metadata(route.name, namespace),
        "spec": spec,
    }


def _autoscale_policy(policy: AutoscalePolicy, namespace):
    return {
        "apiVersion": "autoscaling/v2",
        "kind": AutoscalePolicy.kind,
        "metadata": _metadata(policy.name, namespace),
        "spec": {
            "scaleTargetRef": {
                "apiVersion": "apps/v1",
                "kind": Workload.kind,
                "name": policy.workload,
            },
            "minReplicas": policy.min_replicas,
            "maxReplicas": policy.max_replicas,
            "metrics": [{
                "type": "Resource",
                "resource": {
                    "name": "cpu",
                    "target": {"type": "Utilization", "averageUtilization": policy.cpu_utilization},
                },
            }],
        },
    }


_RENDERERS = {
    PersistentVolume: _persistent_volume,
    StorageClaim: _storage_claim,
    CredentialSet: _credential_set,
    ConfigSet: _config_set,
    Workload: _workload,
    InternalAddress: _internal_address,
    ExternalRoute: _external_route,
    AutoscalePolicy: _autoscale_policy,
}


# ============================================
# PUBLIC API
# ============================================

def to_manifest(entity, namespace: Optional[str] = None) -> Dict[str, Any]:
    """Render one entity. Raises TypeError for unknown entity types."""
    renderer = _RENDERERS.get(type(entity))
    if renderer is None:
        raise TypeError(f"No manifest renderer for {type(entity).__name__}")
    return renderer(entity, namespace)


def stage_manifests(stage, namespace: Optional[str] = None) -> List[Dict[str, Any]]:
    return [to_manifest(entity, namespace) for entity in stage.entities]


def render_stages(stages: Iterable, namespace: Optional[str] = None) -> str:
    """All manifests of the given stages as one multi-document YAML string."""
    documents = []
    for stage in stages:
        documents.extend(stage_manifests(stage, namespace))
    return yaml.safe_dump_all(documents, sort_keys=False, default_flow_style=False)


def stage_fingerprint(stage) -> str:
    """
    Content hash of everything a stage would apply.

    Covers the rendered manifests, the image build and the command, so a
    stage whose definition changed since it last completed hashes differently.
    """
    build = stage.image_build
    content = {
        "manifests": stage_manifests(stage),
        "image": None if build is None else {
            "ref": build.image.ref,
            "context_path": build.context_path,
            "dockerfile": build.dockerfile,
            "build_args": build.build_args,
            "push": build.push,
        },
        "target_workload": stage.target_workload,
        "command": list(stage.command),
    }
    encoded = json.dumps(content, sort_keys=True, default=str).encode("utf-8")
    return "sha256:" + hashlib.sha256(encoded).hexdigest()
