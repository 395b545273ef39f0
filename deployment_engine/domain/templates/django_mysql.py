#deployment_engine\domain\templates\django_mysql.py

"""Django + MySQL deployment (image, storage, secret, config, database, app, ingress)."""

import shlex
from typing import List, Optional

from deployment_engine.config import DeploySettings
from deployment_engine.core.models import StageDefinition, StageType
from deployment_engine.domain.models import (
    AccessMode,
    AutoscalePolicy,
    ConfigSet,
    CredentialSet,
    DeployStrategy,
    EnvBinding,
    ExternalRoute,
    ImageBuild,
    ImageReference,
    InternalAddress,
    PersistentVolume,
    ResourceLimits,
    StorageClaim,
    VolumeMount,
    Workload,
)


MYSQL_DATA_PATH = "/var/lib/mysql"


def application_image(settings: DeploySettings) -> ImageReference:
    return ImageReference(
        registry=settings.image_registry,
        repository=settings.image_repository,
        tag=settings.image_tag,
    )


def build_stages(settings: Optional[DeploySettings] = None) -> List[StageDefinition]:
    """Build the stage set for the given settings (defaults: mysql + django-app on mydjangoapp.com)."""
    settings = settings or DeploySettings()

    image = application_image(settings)
    volume_name = f"{settings.db_address_name}-pv-volume"
    claim_name = f"{settings.db_address_name}-pv-claim"
    secret = settings.db_secret_name
    config = settings.app_config_name

    stages = [
        StageDefinition(
            stage_id="image",
            stage_name="Build and Publish Application Image",
            stage_type=StageType.IMAGE,
            order=1,
            image_build=ImageBuild(
                image=image,
                context_path=settings.build_context,
                dockerfile=settings.dockerfile,
                push=settings.push_image,
            ),
        ),
        StageDefinition(
            stage_id="storage",
            stage_name="Provision Database Storage",
            stage_type=StageType.STORAGE,
            order=2,
            entities=[
                PersistentVolume(
                    name=volume_name,
                    capacity=settings.storage_capacity,
                    access_mode=AccessMode.READ_WRITE_ONCE,
                    host_path=settings.storage_host_path,
                    storage_class=settings.storage_class,
                    labels={"type": "local"},
                ),
                StorageClaim(
                    name=claim_name,
                    capacity=settings.storage_capacity,
                    access_mode=AccessMode.READ_WRITE_ONCE,
                    storage_class=settings.storage_class,
                    volume_name=volume_name,
                ),
            ],
        ),
        StageDefinition(
            stage_id="secret",
            stage_name="Create Database Credentials",
            stage_type=StageType.SECRET,
            order=3,
            entities=[
                CredentialSet(
                    name=secret,
                    data={
                        "database": settings.db_name,
                        "username": settings.db_user,
                        "password": settings.db_password,
                        "root-password": settings.db_root_password,
                    },
                ),
            ],
        ),
        StageDefinition(
            stage_id="config",
            stage_name="Create Application Config",
            stage_type=StageType.CONFIG,
            order=4,
            entities=[
                ConfigSet(
                    name=config,
                    data={
                        "DATABASE_NAME": settings.db_name,
                        "DATABASE_PORT": str(settings.db_port),
                    },
                ),
            ],
        ),
        StageDefinition(
            stage_id="database",
            stage_name="Deploy MySQL",
            stage_type=StageType.DATABASE,
            order=5,
            depends_on=["storage", "secret"],
            entities=[
                Workload(
                    name=settings.db_address_name,
                    image=settings.db_image,
                    replicas=1,
                    port=settings.db_port,
                    env=[
                        EnvBinding.from_secret("MYSQL_ROOT_PASSWORD", secret, "root-password"),
                        EnvBinding.from_secret("MYSQL_DATABASE", secret, "database"),
                        EnvBinding.from_secret("MYSQL_USER", secret, "username"),
                        EnvBinding.from_secret("MYSQL_PASSWORD", secret, "password"),
                    ],
                    volume_mounts=[VolumeMount(claim_name=claim_name, mount_path=MYSQL_DATA_PATH)],
                    # Single writer on a ReadWriteOnce volume
                    strategy=DeployStrategy.RECREATE,
                ),
                InternalAddress(
                    name=settings.db_address_name,
                    workload=settings.db_address_name,
                    port=settings.db_port,
                    headless=True,
                ),
            ],
        ),
        StageDefinition(
            stage_id="application",
            stage_name="Deploy Django Application",
            stage_type=StageType.APPLICATION,
            order=6,
            depends_on=["image", "secret", "config", "database"],
            entities=[
                Workload(
                    name=settings.app_name,
                    image=image.ref,
                    replicas=settings.app_replicas,
                    port=settings.app_port,
                    env=[
                        EnvBinding.from_address("DATABASE_HOST", settings.db_address_name),
                        EnvBinding.from_config("DATABASE_PORT", config, "DATABASE_PORT"),
                        EnvBinding.from_config("DATABASE_NAME", config, "DATABASE_NAME"),
                        EnvBinding.from_secret("DATABASE_USER", secret, "username"),
                        EnvBinding.from_secret("DATABASE_PASSWORD", secret, "password"),
                    ],
                    resources=_app_resources(settings),
                ),
                InternalAddress(
                    name=settings.app_name,
                    workload=settings.app_name,
                    port=settings.app_port,
                ),
            ],
        ),
        StageDefinition(
            stage_id="exposure",
            stage_name="Expose Application",
            stage_type=StageType.EXPOSURE,
            order=7,
            depends_on=["application"],
            entities=[
                ExternalRoute(
                    name=f"{settings.app_name}-ingress",
                    host=settings.external_host,
                    path_prefix=settings.path_prefix,
                    address=settings.app_name,
                    port=settings.app_port,
                    ingress_class=settings.ingress_class,
                ),
            ],
        ),
    ]

    if settings.migrate_enabled:
        stages.append(StageDefinition(
            stage_id="migrate",
            stage_name="Run Schema Migrations",
            stage_type=StageType.MIGRATION,
            order=8,
            depends_on=["application"],
            target_workload=settings.app_name,
            command=shlex.split(settings.migrate_command),
        ))

    if settings.autoscale_enabled:
        stages.append(StageDefinition(
            stage_id="autoscale",
            stage_name="Configure Autoscaling",
            stage_type=StageType.AUTOSCALE,
            order=9,
            depends_on=["application"],
            entities=[
                AutoscalePolicy(
                    name=f"{settings.app_name}-hpa",
                    workload=settings.app_name,
                    cpu_utilization=settings.autoscale_cpu_utilization,
                    min_replicas=settings.autoscale_min_replicas,
                    max_replicas=settings.autoscale_max_replicas,
                ),
            ],
        ))

    return stages


def _app_resources(settings: DeploySettings) -> Optional[ResourceLimits]:
    if settings.app_cpu_request and settings.app_memory_request:
        return ResourceLimits(cpu=settings.app_cpu_request, memory=settings.app_memory_request)
    return None
