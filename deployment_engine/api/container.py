#deployment_engine\api\container.py
from functools import lru_cache

from fastapi import Depends

from deployment_engine.container import Container, build_container
from deployment_engine.domain.templates import build_django_mysql_stages


@lru_cache(maxsize=1)
def get_container() -> Container:
    return build_container(persistent_ledger=True)


def get_stages(container: Container = Depends(get_container)):
    return build_django_mysql_stages(container.settings)
