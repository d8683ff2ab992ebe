from __future__ import annotations

import logging

from dumbgoodies.assembly.images import has_transparency, to_b64
from dumbgoodies.errors import GenerationError, ImageDecodeError
from dumbgoodies.prompts import packshot, strict_packshot
from dumbgoodies.providers.base import SUPPORTED_SIZES, ImageProvider

log = logging.getLogger(__name__)


def check_size(size: str) -> str:
    if size not in SUPPORTED_SIZES:
        raise ValueError(f"unsupported size '{size}' (expected one of {', '.join(SUPPORTED_SIZES)})")
    return size


class ProductImageGenerator:
    """
    Text-to-image for isolated product shots.

    The packshot boilerplate is the main defense against unwanted scenery; the
    only programmatic check is an optional alpha sanity check with one retry
    using a stricter prompt.
    """

    def __init__(self, provider: ImageProvider, size: str = "1024x1024", require_transparency: bool = True) -> None:
        self.provider = provider
        self.size = check_size(size)
        self.require_transparency = require_transparency

    @property
    def name(self) -> str:
        return self.provider.name

    async def generate(self, prompt: str, size: str | None = None) -> bytes:
        size = check_size(size or self.size)
        first = await self.provider.generate(packshot(prompt), size)
        if not first.data:
            raise GenerationError(f"{self.provider.name} returned no image payload")
        if not self.require_transparency or _transparent(first.data):
            return first.data

        log.info("%s image has no transparency; retrying once with a stricter prompt", self.provider.name)
        second = await self.provider.generate(strict_packshot(prompt), size)
        if not second.data:
            raise GenerationError(f"{self.provider.name} returned no image payload on retry")
        return second.data

    async def generate_b64(self, prompt: str, size: str | None = None) -> str:
        return to_b64(await self.generate(prompt, size))


def _transparent(data: bytes) -> bool:
    try:
        return has_transparency(data)
    except ImageDecodeError as exc:
        raise GenerationError(f"provider returned an undecodable image: {exc}") from exc
