"""Default base and runtime images."""

import os
from dataclasses import dataclass
from typing import Mapping, Optional

DEFAULT_BASE_IMAGE = 'debian:bookworm'
DEBIAN_SLIM_IMAGE = 'debian:bookworm-slim'


@dataclass(frozen=True)
class ImageConfig:
    """Image defaults, resolved once per process and injected into the generator."""

    default_base_image: str = DEFAULT_BASE_IMAGE
    slim_image: str = DEBIAN_SLIM_IMAGE

    @classmethod
    def from_environ(cls, environ: Optional[Mapping[str, str]] = None) -> 'ImageConfig':
        """Read ``WEBOPS_DEFAULT_BASE_IMAGE`` / ``WEBOPS_SLIM_IMAGE`` overrides."""
        environ = os.environ if environ is None else environ
        return cls(
            default_base_image=environ.get('WEBOPS_DEFAULT_BASE_IMAGE') or DEFAULT_BASE_IMAGE,
            slim_image=environ.get('WEBOPS_SLIM_IMAGE') or DEBIAN_SLIM_IMAGE,
        )

    def runtime_image(self, explicit: Optional[str] = None, slim: bool = False) -> str:
        """Explicit image, then the slim image when requested, then the default."""
        if explicit:
            return explicit
        if slim:
            return self.slim_image
        return self.default_base_image
