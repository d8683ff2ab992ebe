from __future__ import annotations

import base64
import json
import logging
import re
from typing import Any

from dumbgoodies.config import settings
from dumbgoodies.errors import ProviderError
from dumbgoodies.prompts import ideas_prompt
from dumbgoodies.providers.base import GeneratedImage, bounded

log = logging.getLogger(__name__)


class OpenAIImageProvider:
    name = "openai"

    def __init__(self, api_key: str, model: str | None = None, timeout: float | None = None) -> None:
        from openai import AsyncOpenAI  # type: ignore

        self.client = AsyncOpenAI(api_key=api_key)
        self.model = model or settings.openai_image_model
        self.timeout = timeout or settings.provider_timeout_s

    async def generate(self, prompt: str, size: str) -> GeneratedImage:
        import openai  # type: ignore

        try:
            resp = await bounded(
                self.name,
                self.client.images.generate(
                    model=self.model,
                    prompt=prompt,
                    size=size,
                    n=1,
                    background="transparent",
                    output_format="png",
                ),
                self.timeout,
            )
        except openai.OpenAIError as exc:
            raise ProviderError(self.name, f"image generation failed: {exc}") from exc

        return GeneratedImage(
            data=_first_b64_image(self.name, resp),
            prompt_used=prompt,
            provider=self.name,
            model=self.model,
            raw_metadata={"size": size},
        )

    async def edit(
        self,
        image: bytes,
        prompt: str,
        mask: bytes | None,
        size: str,
    ) -> GeneratedImage:
        import openai  # type: ignore

        kwargs: dict[str, Any] = {
            "model": self.model,
            "image": ("image.png", image, "image/png"),
            "prompt": prompt,
            "size": size,
            "n": 1,
        }
        if mask is not None:
            kwargs["mask"] = ("mask.png", mask, "image/png")

        try:
            resp = await bounded(self.name, self.client.images.edit(**kwargs), self.timeout)
        except openai.OpenAIError as exc:
            raise ProviderError(self.name, f"image edit failed: {exc}") from exc

        return GeneratedImage(
            data=_first_b64_image(self.name, resp),
            prompt_used=prompt,
            provider=self.name,
            model=self.model,
            raw_metadata={"size": size, "masked": mask is not None},
        )


class OpenAITextProvider:
    name = "openai"

    def __init__(self, api_key: str, model: str | None = None, timeout: float | None = None) -> None:
        from openai import AsyncOpenAI  # type: ignore

        self.client = AsyncOpenAI(api_key=api_key)
        self.model = model or settings.openai_text_model
        self.timeout = timeout or settings.provider_timeout_s

    async def propose_ideas(self, brand: str) -> list[dict[str, str]]:
        """
        Ask for two fake-merch ideas. Returns whatever well-formed items the model
        produced; the caller enforces the count.
        """
        import openai  # type: ignore

        try:
            resp = await bounded(
                self.name,
                self.client.responses.create(model=self.model, input=ideas_prompt(brand)),
                self.timeout,
            )
        except openai.OpenAIError as exc:
            raise ProviderError(self.name, f"idea proposal failed: {exc}") from exc

        text = getattr(resp, "output_text", None) or ""
        data = parse_json_list(text)
        if data is None:
            log.warning("ideas response was not a JSON list: %.200s", text)
            return []

        out: list[dict[str, str]] = []
        for item in data:
            if isinstance(item, str) and item.strip():
                out.append({"label": item.strip(), "prompt_base": item.strip()})
                continue
            if not isinstance(item, dict):
                continue
            label = str(item.get("label", "")).strip()
            prompt_base = str(item.get("prompt_base", "")).strip() or label
            if label:
                out.append({"label": label, "prompt_base": prompt_base})
        return out


def _first_b64_image(provider: str, resp: Any) -> bytes:
    items = getattr(resp, "data", None) or []
    b64 = getattr(items[0], "b64_json", None) if items else None
    if not b64:
        raise ProviderError(provider, "No image data received")
    return base64.b64decode(b64)


def parse_json_list(raw: str) -> list[Any] | None:
    """
    Best-effort JSON extraction (handles code fences and accidental pre/post text).
    Accepts a bare list or an object wrapping one under "ideas"/"products".
    """
    s = (raw or "").strip()
    m = re.search(r"```(?:json)?\s*(.*?)\s*```", s, re.DOTALL | re.IGNORECASE)
    if m:
        s = m.group(1).strip()

    try:
        data = json.loads(s)
    except ValueError:
        start, end = s.find("["), s.rfind("]")
        if start == -1 or end <= start:
            return None
        try:
            data = json.loads(s[start : end + 1])
        except ValueError:
            return None

    if isinstance(data, dict):
        data = data.get("ideas") or data.get("products")
    return data if isinstance(data, list) else None
