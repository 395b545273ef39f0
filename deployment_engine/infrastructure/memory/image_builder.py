# deployment_engine/infrastructure/memory/image_builder.py

import hashlib
from typing import Dict, List, Optional

from deployment_engine.core.errors import ImageBuildError
from deployment_engine.core.image_builder import ImageBuilder, PublishedImage


class InMemoryImageBuilder(ImageBuilder):
    """Records builds instead of talking to a Docker daemon."""

    def __init__(self, fail_with: Optional[str] = None):
        self.fail_with = fail_with
        self.published: Dict[str, PublishedImage] = {}
        self.builds: List[str] = []

    def build_and_publish(self, build) -> PublishedImage:
        ref = build.image.ref
        if self.fail_with:
            raise ImageBuildError(self.fail_with)

        self.builds.append(ref)

        digest = "sha256:" + hashlib.sha256(
            f"{ref}|{build.context_path}|{build.dockerfile}".encode("utf-8")
        ).hexdigest()
        published = PublishedImage(ref=ref, image_id=digest[:19], digest=digest)
        self.published[ref] = published
        return published
