# deployment_engine/infrastructure/docker/image_builder.py
"""Build and publish the application image through the local Docker daemon."""

import logging
from typing import Optional

import docker

from deployment_engine.core.errors import ImageBuildError
from deployment_engine.core.image_builder import ImageBuilder, PublishedImage

logger = logging.getLogger(__name__)


class DockerImageBuilder(ImageBuilder):
    """
    Steps:
    1. Build the context with the given Dockerfile, tagged with the image ref
    2. Push the tag to its registry (unless ``build.push`` is False)
    3. Return the image id and pushed digest
    """

    def __init__(self, client=None):
        self._client = client

    @property
    def client(self):
        if self._client is None:
            try:
                self._client = docker.from_env()
            except docker.errors.DockerException as e:
                raise ImageBuildError(f"Failed to connect to Docker: {e}") from e
            logger.info("[docker] connected to Docker daemon")
        return self._client

    def build_and_publish(self, build) -> PublishedImage:
        ref = build.image.ref

        logger.info(f"[docker] building {ref} from {build.context_path} ({build.dockerfile})")
        try:
            image, _ = self.client.images.build(
                path=build.context_path,
                dockerfile=build.dockerfile,
                tag=ref,
                buildargs=build.build_args or None,
                rm=True,
            )
        except docker.errors.BuildError as e:
            raise ImageBuildError(f"Build of {ref} failed: {e.msg}") from e
        except docker.errors.APIError as e:
            raise ImageBuildError(f"Docker API error while building {ref}: {e}") from e

        logger.info(f"[docker] built {ref} ({image.short_id})")

        digest = None
        if build.push:
            digest = self._push(build.image.name, build.image.tag)

        return PublishedImage(ref=ref, image_id=image.id, digest=digest)

    def _push(self, repository: str, tag: str) -> Optional[str]:
        logger.info(f"[docker] pushing {repository}:{tag}")
        digest = None
        try:
            for line in self.client.images.push(repository, tag=tag, stream=True, decode=True):
                if "error" in line:
                    raise ImageBuildError(f"Push of {repository}:{tag} failed: {line['error']}")
                aux = line.get("aux") or {}
                if "Digest" in aux:
                    digest = aux["Digest"]
        except docker.errors.APIError as e:
            raise ImageBuildError(f"Docker API error while pushing {repository}:{tag}: {e}") from e

        logger.info(f"[docker] pushed {repository}:{tag} digest={digest}")
        return digest
