# deployment_engine/core/image_builder.py

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class PublishedImage:
    """An addressable image produced by build-and-publish."""

    ref: str
    image_id: Optional[str] = None
    digest: Optional[str] = None


class ImageBuilder(ABC):
    """Contract for the container build-and-publish facility."""

    @abstractmethod
    def build_and_publish(self, build) -> PublishedImage:
        """
        Build ``build.context_path`` and push it as ``build.image.ref``.
        Rebuilding the same tag must be safe.
        Raises ImageBuildError on failure.
        """
        raise NotImplementedError
