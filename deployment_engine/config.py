#deployment_engine\config.py

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class DeploySettings(BaseSettings):
    """Deployment settings from DEPLOY_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="DEPLOY_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Cluster
    namespace: Optional[str] = "default"
    kubectl_path: str = "kubectl"
    kube_context: Optional[str] = None
    kubectl_timeout_seconds: int = 120
    rollout_timeout_seconds: int = 300

    # Image
    image_registry: Optional[str] = None
    image_repository: str = "mydjangoapp"
    image_tag: str = "latest"
    build_context: str = "."
    dockerfile: str = "Dockerfile"
    push_image: bool = True

    # Database
    db_name: str = "mydb"
    db_user: str = "database"
    db_password: str = Field(default="changeme", repr=False)
    db_root_password: str = Field(default="changeme-root", repr=False)
    db_image: str = "mysql:8.0"
    db_address_name: str = "mysql"
    db_port: int = 3306
    db_secret_name: str = "mysql-secret"

    # Storage
    storage_capacity: str = "20Gi"
    storage_host_path: Optional[str] = "/mnt/data"
    storage_class: str = "manual"

    # Application
    app_name: str = "django-app"
    app_replicas: int = 2
    app_port: int = 8000
    app_config_name: str = "django-config"
    app_cpu_request: Optional[str] = "250m"
    app_memory_request: Optional[str] = "256Mi"

    # Routing
    external_host: str = "mydjangoapp.com"
    path_prefix: str = "/"
    ingress_class: Optional[str] = "nginx"

    # Optional stages
    autoscale_enabled: bool = False
    autoscale_cpu_utilization: int = 50
    autoscale_min_replicas: int = 2
    autoscale_max_replicas: int = 5
    migrate_enabled: bool = False
    migrate_command: str = "python manage.py migrate --noinput"

    # Verification
    verify_route_scheme: str = "http"
    verify_timeout_seconds: float = 10.0
