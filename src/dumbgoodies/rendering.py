from __future__ import annotations

import asyncio
import logging
import re
import uuid
from dataclasses import dataclass

from dumbgoodies.assembly.images import make_thumbnail, normalize_to_png
from dumbgoodies.config import Settings, settings
from dumbgoodies.errors import GenerationError, ImageDecodeError, ProviderError, RenderFailed
from dumbgoodies.generation import ProductImageGenerator
from dumbgoodies.integration import IntegrationInput, LogoIntegrationPipeline, StrategyName, build_chain, label_edit
from dumbgoodies.prompts import product_prompt
from dumbgoodies.providers.base import ImageProvider
from dumbgoodies.storage import BucketStore, date_prefix, fetch_image_bytes

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class RenderResult:
    model: str
    image_url: str
    thumbnail_url: str

    def as_dict(self) -> dict[str, str]:
        return {"model": self.model, "imageUrl": self.image_url, "thumbnailUrl": self.thumbnail_url}


def clamp_variants(n: int | None, upper: int = 4) -> int:
    return max(1, min(int(n if n is not None else 1), upper))


def slug(text: str) -> str:
    s = re.sub(r"[^a-z0-9]+", "-", (text or "").lower()).strip("-")
    return s[:48] or "item"


def persist_render(
    buckets: BucketStore,
    project_id: str,
    concept_id: str,
    model_tag: str,
    raw: bytes,
    variant_key: str | None = None,
    cfg: Settings = settings,
) -> RenderResult:
    """
    PNG + thumbnail into the renders/thumbs buckets under
    {date}/{projectId}/{conceptId}/{modelTag}[-{variant_key}]. No DB write: a
    render only becomes a row when it is saved.
    """
    png = normalize_to_png(raw)
    thumb = make_thumbnail(png, cfg.thumbnail_size)
    stem = f"{date_prefix()}/{project_id}/{concept_id}/{model_tag}"
    if variant_key:
        stem = f"{stem}-{variant_key}"
    image = buckets.put(cfg.bucket_renders, f"{stem}.png", png, "image/png")
    thumbnail = buckets.put(cfg.bucket_thumbs, f"{stem}_{cfg.thumbnail_size}.png", thumb, "image/png")
    return RenderResult(model=model_tag, image_url=image.url, thumbnail_url=thumbnail.url)


class Renderer:
    """
    Turns a concept (+ optional logo / product reference) into stored images.

    Variants run concurrently and are spread round-robin over the configured
    providers; a failed variant is dropped, and only a fully failed set raises.
    """

    def __init__(self, buckets: BucketStore, providers: dict[str, ImageProvider], cfg: Settings = settings) -> None:
        if not providers:
            raise ValueError("at least one image provider is required")
        self.buckets = buckets
        self.cfg = cfg
        self.generators = {
            name: ProductImageGenerator(p, size=cfg.image_size, require_transparency=cfg.require_transparency)
            for name, p in providers.items()
        }

    def pipeline_for(
        self, generator: ProductImageGenerator, start: StrategyName | str | None = None
    ) -> LogoIntegrationPipeline:
        return LogoIntegrationPipeline(
            build_chain(
                start or self.cfg.logo_strategy,
                generator,
                placement=self.cfg.composite_placement,
                blend=self.cfg.composite_blend,
            )
        )

    async def _fetch(self, url: str | None) -> bytes | None:
        if not url:
            return None
        return await fetch_image_bytes(url, self.buckets, self.cfg.fetch_timeout_s)

    async def produce(
        self,
        generator: ProductImageGenerator,
        brand: str,
        prompt_base: str,
        logo: bytes | None = None,
        product_ref: bytes | None = None,
    ) -> tuple[bytes, str]:
        """Pixels plus the model tag naming the provider and strategy that made them."""
        if logo is not None:
            start = StrategyName(self.cfg.logo_strategy)
            if product_ref is None and start == StrategyName.DIRECT:
                # Direct generation needs no base; only build one if it fails.
                try:
                    data = await generator.generate(product_prompt(brand, prompt_base, branded=True))
                    return data, f"{generator.name}-direct-generation"
                except (ProviderError, GenerationError) as exc:
                    log.warning("direct generation failed, falling back to compositing: %s", exc)
                    start = StrategyName.COMPOSITE_REFINE

            if product_ref is not None:
                base = product_ref
            else:
                base = await generator.generate(product_prompt(brand, prompt_base, branded=False))
            result = await self.pipeline_for(generator, start).integrate(
                IntegrationInput(base=base, logo=logo, product_label=prompt_base, brand=brand)
            )
            return result.data, f"{generator.name}-{result.strategy}"

        if product_ref is not None:
            try:
                return await label_edit(generator.provider, product_ref, brand), f"{generator.name}-label-edit"
            except (ProviderError, ImageDecodeError) as exc:
                log.warning("label edit failed, falling back to direct generation: %s", exc)

        data = await generator.generate(product_prompt(brand, prompt_base, branded=True))
        return data, f"{generator.name}-direct-generation"

    async def render_concept(
        self,
        project_id: str,
        concept_id: str,
        brand: str,
        prompt_base: str,
        logo_url: str | None = None,
        product_ref_url: str | None = None,
        variants: int | None = None,
    ) -> list[RenderResult]:
        n = clamp_variants(variants if variants is not None else self.cfg.default_variants, self.cfg.max_variants)
        # Downloads happen once, before fan-out; their failures are not per-variant.
        logo = await self._fetch(logo_url)
        product_ref = await self._fetch(product_ref_url)
        names = list(self.generators)

        async def one(i: int) -> RenderResult:
            generator = self.generators[names[i % len(names)]]
            data, tag = await self.produce(generator, brand, prompt_base, logo=logo, product_ref=product_ref)
            return await asyncio.to_thread(
                persist_render,
                self.buckets,
                project_id,
                concept_id,
                tag,
                data,
                variant_key=uuid.uuid4().hex[:8],
                cfg=self.cfg,
            )

        outcomes = await asyncio.gather(*(one(i) for i in range(n)), return_exceptions=True)

        results: list[RenderResult] = []
        details: dict[str, str] = {}
        for i, outcome in enumerate(outcomes):
            if isinstance(outcome, Exception):
                log.warning("render variant %d for concept %s failed: %s", i, concept_id, outcome)
                details[f"variant-{i}"] = str(outcome) or outcome.__class__.__name__
            elif isinstance(outcome, BaseException):
                raise outcome
            else:
                results.append(outcome)

        if not results:
            raise RenderFailed(details)
        log.info("rendered %d/%d variant(s) for concept %s", len(results), n, concept_id)
        return results

    async def render_more(self, brand: str, product: str, logo_url: str | None = None) -> RenderResult:
        logo = await self._fetch(logo_url)
        generator = next(iter(self.generators.values()))
        data, tag = await self.produce(generator, brand, product, logo=logo)
        return await asyncio.to_thread(
            persist_render,
            self.buckets,
            slug(brand),
            slug(product),
            tag,
            data,
            variant_key=uuid.uuid4().hex[:8],
            cfg=self.cfg,
        )
