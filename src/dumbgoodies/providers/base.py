from __future__ import annotations

import asyncio
from collections.abc import Awaitable
from dataclasses import dataclass, field
from typing import Any, Protocol, TypeVar

from dumbgoodies.errors import ProviderError

T = TypeVar("T")

SUPPORTED_SIZES = ("1024x1024", "1536x1024", "1024x1536")


@dataclass(frozen=True)
class GeneratedImage:
    data: bytes  # encoded image bytes as returned by the provider
    prompt_used: str
    provider: str
    model: str
    raw_metadata: dict[str, Any] = field(default_factory=dict)


class ImageProvider(Protocol):
    name: str

    async def generate(self, prompt: str, size: str) -> GeneratedImage: ...

    async def edit(
        self,
        image: bytes,
        prompt: str,
        mask: bytes | None,
        size: str,
    ) -> GeneratedImage: ...


class IdeaProvider(Protocol):
    name: str

    async def propose_ideas(self, brand: str) -> list[dict[str, str]]: ...


async def bounded(provider: str, call: Awaitable[T], timeout: float) -> T:
    """Await an SDK call with a deadline; a timeout surfaces as ProviderError."""
    try:
        return await asyncio.wait_for(call, timeout=timeout)
    except asyncio.TimeoutError as exc:
        raise ProviderError(provider, f"timed out after {timeout:.0f}s") from exc
