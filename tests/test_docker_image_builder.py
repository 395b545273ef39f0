#tests\test_docker_image_builder.py

"""Test the Docker image builder against a fake docker client."""

from unittest.mock import MagicMock

import docker
import pytest

from deployment_engine.core.errors import ImageBuildError
from deployment_engine.domain.models import ImageBuild, ImageReference
from deployment_engine.infrastructure.docker.image_builder import DockerImageBuilder


@pytest.fixture
def client():
    client = MagicMock()
    image = MagicMock(id="sha256:abc123", short_id="sha256:abc1")
    client.images.build.return_value = (image, iter([]))
    client.images.push.return_value = iter([
        {"status": "Pushing"},
        {"status": "latest: digest: sha256:def456 size: 1234"},
        {"aux": {"Tag": "v1", "Digest": "sha256:def456", "Size": 1234}},
    ])
    return client


@pytest.fixture
def build():
    return ImageBuild(
        image=ImageReference(repository="mydjangoapp", tag="v1", registry="registry.local:5000"),
        context_path="./app",
        build_args={"PIP_INDEX_URL": "https://pypi.org/simple"},
    )


class TestDockerImageBuilder:

    def test_build_and_push(self, client, build):
        published = DockerImageBuilder(client=client).build_and_publish(build)

        assert published.ref == "registry.local:5000/mydjangoapp:v1"
        assert published.image_id == "sha256:abc123"
        assert published.digest == "sha256:def456"
        client.images.build.assert_called_once_with(
            path="./app",
            dockerfile="Dockerfile",
            tag="registry.local:5000/mydjangoapp:v1",
            buildargs={"PIP_INDEX_URL": "https://pypi.org/simple"},
            rm=True,
        )
        client.images.push.assert_called_once_with(
            "registry.local:5000/mydjangoapp", tag="v1", stream=True, decode=True,
        )

    def test_build_without_push(self, client, build):
        build.push = False

        published = DockerImageBuilder(client=client).build_and_publish(build)

        assert published.digest is None
        client.images.push.assert_not_called()

    def test_build_error(self, client, build):
        client.images.build.side_effect = docker.errors.BuildError("COPY failed", build_log=[])

        with pytest.raises(ImageBuildError) as exc:
            DockerImageBuilder(client=client).build_and_publish(build)

        assert "COPY failed" in str(exc.value)

    def test_push_error_line(self, client, build):
        client.images.push.return_value = iter([
            {"status": "Pushing"},
            {"error": "denied: requested access to the resource is denied"},
        ])

        with pytest.raises(ImageBuildError) as exc:
            DockerImageBuilder(client=client).build_and_publish(build)

        assert "denied" in str(exc.value)

    def test_push_api_error(self, client, build):
        client.images.push.side_effect = docker.errors.APIError("registry unreachable")

        with pytest.raises(ImageBuildError):
            DockerImageBuilder(client=client).build_and_publish(build)

    def test_daemon_unavailable(self, monkeypatch, build):
        def unavailable():
            raise docker.errors.DockerException("Error while fetching server API version")

        monkeypatch.setattr(docker, "from_env", unavailable)

        with pytest.raises(ImageBuildError):
            DockerImageBuilder().build_and_publish(build)
