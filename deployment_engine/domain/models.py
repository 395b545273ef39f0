#deployment_engine\domain\models.py
"""Domain models for the configuration records a deployment applies."""

from dataclasses import dataclass, field
from enum import Enum
from typing import ClassVar, Dict, List, Optional, Tuple, Union


# ============================================
# ENUMS
# ============================================

class AccessMode(Enum):
    """Volume access mode."""
    READ_WRITE_ONCE = "ReadWriteOnce"
    READ_ONLY_MANY = "ReadOnlyMany"
    READ_WRITE_MANY = "ReadWriteMany"


class DeployStrategy(Enum):
    """Workload rollout strategy."""
    ROLLING_UPDATE = "RollingUpdate"
    RECREATE = "Recreate"


# ============================================
# IMAGE
# ============================================

@dataclass(frozen=True)
class ImageReference:
    """A built, published application artifact."""
    repository: str
    tag: str = "latest"
    registry: Optional[str] = None

    @property
    def ref(self) -> str:
        prefix = f"{self.registry}/" if self.registry else ""
        return f"{prefix}{self.repository}:{self.tag}"

    @property
    def name(self) -> str:
        """Repository without tag (what ``docker push`` takes)."""
        prefix = f"{self.registry}/" if self.registry else ""
        return f"{prefix}{self.repository}"


@dataclass
class ImageBuild:
    """Build context for the application image."""
    image: ImageReference
    context_path: str = "."
    dockerfile: str = "Dockerfile"
    build_args: Dict[str, str] = field(default_factory=dict)
    push: bool = True


# ============================================
# STORAGE
# ============================================

@dataclass
class PersistentVolume:
    """A durable storage pool the claim binds to."""
    kind: ClassVar[str] = "PersistentVolume"

    name: str
    capacity: str  # "20Gi"
    access_mode: AccessMode = AccessMode.READ_WRITE_ONCE
    host_path: Optional[str] = None
    storage_class: str = "manual"
    labels: Dict[str, str] = field(default_factory=dict)

    def references(self) -> List[Tuple[str, str]]:
        return []


@dataclass
class StorageClaim:
    """A durable volume request."""
    kind: ClassVar[str] = "PersistentVolumeClaim"

    name: str
    capacity: str
    access_mode: AccessMode = AccessMode.READ_WRITE_ONCE
    storage_class: Optional[str] = "manual"
    volume_name: Optional[str] = None

    def references(self) -> List[Tuple[str, str]]:
        if self.volume_name:
            return [(PersistentVolume.kind, self.volume_name)]
        return []


# ============================================
# CREDENTIALS / CONFIG
# ============================================

@dataclass
class CredentialSet:
    """Shared secret values, referenced by name + key."""
    kind: ClassVar[str] = "Secret"

    name: str
    data: Dict[str, Union[bytes, str]] = field(default_factory=dict)

    def references(self) -> List[Tuple[str, str]]:
        return []


@dataclass
class ConfigSet:
    """Non-secret key/value settings, referenced by name + key."""
    kind: ClassVar[str] = "ConfigMap"

    name: str
    data: Dict[str, str] = field(default_factory=dict)

    def references(self) -> List[Tuple[str, str]]:
        return []


# ============================================
# WORKLOADS
# ============================================

@dataclass(frozen=True)
class EnvBinding:
    """
    One environment variable of a workload.

    Exactly one source: a literal ``value``, a key of a credential set
    (``secret``), a key of a config set (``config``), or the stable name
    of an internal address (``address``).
    """
    name: str
    value: Optional[str] = None
    secret: Optional[Tuple[str, str]] = None  # (credential set, key)
    config: Optional[Tuple[str, str]] = None  # (config set, key)
    address: Optional[str] = None

    def __post_init__(self):
        sources = [s for s in (self.value, self.secret, self.config, self.address) if s is not None]
        if len(sources) != 1:
            raise ValueError(f"Env binding {self.name} must have exactly one source")

    @classmethod
    def literal(cls, name: str, value: str) -> "EnvBinding":
        return cls(name=name, value=value)

    @classmethod
    def from_secret(cls, name: str, secret_name: str, key: str) -> "EnvBinding":
        return cls(name=name, secret=(secret_name, key))

    @classmethod
    def from_config(cls, name: str, config_name: str, key: str) -> "EnvBinding":
        return cls(name=name, config=(config_name, key))

    @classmethod
    def from_address(cls, name: str, address_name: str) -> "EnvBinding":
        return cls(name=name, address=address_name)

    def references(self) -> List[Tuple[str, str]]:
        if self.secret:
            return [(CredentialSet.kind, self.secret[0])]
        if self.config:
            return [(ConfigSet.kind, self.config[0])]
        if self.address:
            return [(InternalAddress.kind, self.address)]
        return []


@dataclass(frozen=True)
class VolumeMount:
    """Storage claim mounted into a workload."""
    claim_name: str
    mount_path: str


@dataclass(frozen=True)
class ResourceLimits:
    """Resource requests for containers."""
    cpu: str  # "250m"
    memory: str  # "256Mi"


@dataclass
class Workload:
    """A running set of replicas of one container image."""
    kind: ClassVar[str] = "Deployment"

    name: str
    image: str
    replicas: int = 1
    port: Optional[int] = None
    env: List[EnvBinding] = field(default_factory=list)
    volume_mounts: List[VolumeMount] = field(default_factory=list)
    resources: Optional[ResourceLimits] = None
    strategy: DeployStrategy = DeployStrategy.ROLLING_UPDATE
    args: List[str] = field(default_factory=list)
    labels: Dict[str, str] = field(default_factory=dict)

    def __post_init__(self):
        if self.replicas < 0:
            raise ValueError(f"Workload {self.name}: replicas must be >= 0")

    def env_binding(self, name: str) -> Optional[EnvBinding]:
        for binding in self.env:
            if binding.name == name:
                return binding
        return None

    def references(self) -> List[Tuple[str, str]]:
        refs = []
        for binding in self.env:
            refs.extend(binding.references())
        for mount in self.volume_mounts:
            refs.append((StorageClaim.kind, mount.claim_name))
        return refs


# ============================================
# ADDRESSING
# ============================================

@dataclass
class InternalAddress:
    """A stable in-cluster name resolving to a workload's replicas."""
    kind: ClassVar[str] = "Service"

    name: str
    workload: str
    port: int
    target_port: Optional[int] = None
    headless: bool = False

    @property
    def effective_target_port(self) -> int:
        return self.target_port if self.target_port is not None else self.port

    def references(self) -> List[Tuple[str, str]]:
        return [(Workload.kind, self.workload)]


@dataclass
class ExternalRoute:
    """Maps an external host/path to exactly one internal address."""
    kind: ClassVar[str] = "Ingress"

    name: str
    host: str
    address: str
    port: int
    path_prefix: str = "/"
    ingress_class: Optional[str] = "nginx"

    def __post_init__(self):
        if not self.path_prefix.startswith("/"):
            raise ValueError(f"Route {self.name}: path prefix must start with '/'")

    def references(self) -> List[Tuple[str, str]]:
        return [(InternalAddress.kind, self.address)]


@dataclass
class AutoscalePolicy:
    """Horizontal autoscaling bounds handed to the external controller."""
    kind: ClassVar[str] = "HorizontalPodAutoscaler"

    name: str
    workload: str
    cpu_utilization: int = 50
    min_replicas: int = 1
    max_replicas: int = 5

    def __post_init__(self):
        if self.min_replicas < 1 or self.max_replicas < self.min_replicas:
            raise ValueError(
                f"Autoscale policy {self.name}: need 1 <= min_replicas <= max_replicas"
            )

    def references(self) -> List[Tuple[str, str]]:
        return [(Workload.kind, self.workload)]
