from __future__ import annotations

import logging
from io import BytesIO
from typing import Any

from PIL import Image

from dumbgoodies.config import settings
from dumbgoodies.errors import ProviderError
from dumbgoodies.providers.base import GeneratedImage, bounded

log = logging.getLogger(__name__)

# Gemini image models take an aspect ratio rather than a pixel size.
SIZE_TO_RATIO = {"1024x1024": "1:1", "1536x1024": "3:2", "1024x1536": "2:3"}


class GeminiImageProvider:
    name = "gemini"

    def __init__(self, api_key: str, model: str | None = None, timeout: float | None = None) -> None:
        # Imported lazily so the app can start without the dependency installed.
        from google import genai  # type: ignore

        self._genai = genai
        self.client = genai.Client(api_key=api_key)
        self.model = model or settings.gemini_image_model
        self.timeout = timeout or settings.provider_timeout_s

    async def generate(self, prompt: str, size: str) -> GeneratedImage:
        return await self._run([prompt], prompt, size)

    async def edit(
        self,
        image: bytes,
        prompt: str,
        mask: bytes | None,
        size: str,
    ) -> GeneratedImage:
        """
        Gemini has no mask parameter: the mask goes in as a second image and the
        prompt says what it means.
        """
        enriched = (
            "IMPORTANT:\n"
            "- The FIRST image is the product. Preserve it.\n"
            + (
                "- The SECOND image is a mask: only edit where it is transparent; keep every opaque area unchanged.\n"
                if mask is not None
                else ""
            )
            + f"\n{prompt}\n"
        )
        contents: list[Any] = [enriched, Image.open(BytesIO(image))]
        if mask is not None:
            contents.append(Image.open(BytesIO(mask)))
        return await self._run(contents, enriched, size)

    async def _run(self, contents: list[Any], prompt_used: str, size: str) -> GeneratedImage:
        from google.genai import types  # type: ignore

        ratio = SIZE_TO_RATIO.get(size, "1:1")
        try:
            resp = await bounded(
                self.name,
                self.client.aio.models.generate_content(
                    model=self.model,
                    contents=contents,
                    config=types.GenerateContentConfig(
                        response_modalities=["IMAGE", "TEXT"],
                        image_config=types.ImageConfig(aspect_ratio=ratio),
                    ),
                ),
                self.timeout,
            )
        except ProviderError:
            raise
        except Exception as exc:
            # The SDK raises a mix of APIError and transport errors.
            raise ProviderError(self.name, f"generate_content failed: {exc}") from exc

        extracted = _extract_images_from_generate_content(resp)
        if not extracted:
            raise ProviderError(self.name, "No image data received")
        data, meta = extracted[0]
        return GeneratedImage(
            data=data,
            prompt_used=prompt_used,
            provider=self.name,
            model=self.model,
            raw_metadata=meta | {"aspect_ratio": ratio},
        )


def _extract_images_from_generate_content(resp: Any) -> list[tuple[bytes, dict[str, Any]]]:
    out: list[tuple[bytes, dict[str, Any]]] = []
    for cand in getattr(resp, "candidates", []) or []:
        content = getattr(cand, "content", None)
        parts = getattr(content, "parts", None) or []
        for part in parts:
            inline = getattr(part, "inline_data", None)
            if not inline:
                continue
            mime = getattr(inline, "mime_type", None) or ""
            data = getattr(inline, "data", None)
            if not data:
                continue
            if mime and not mime.startswith("image/"):
                continue
            out.append((data, {"mime_type": mime}))
    return out
