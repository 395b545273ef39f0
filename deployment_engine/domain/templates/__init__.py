"""Deployment templates."""

from .django_mysql import build_stages as build_django_mysql_stages


TEMPLATES = {
    "django-mysql": build_django_mysql_stages,
}


__all__ = ["TEMPLATES", "build_django_mysql_stages"]
