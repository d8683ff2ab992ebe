from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol

from dumbgoodies.assembly.composite import (
    GUIDE_ROI,
    LABEL_MASK_BOX,
    REFINE_MASK_BOX,
    canvas_composite,
    edit_mask,
    feather_for,
    guide_image,
    pure_composite,
)
from dumbgoodies.assembly.images import decode_image, pil_to_png_bytes
from dumbgoodies.errors import ProviderError
from dumbgoodies.generation import ProductImageGenerator
from dumbgoodies.prompts import guide_edit_prompt, label_edit_prompt, product_prompt, refine_prompt
from dumbgoodies.providers.base import SUPPORTED_SIZES, ImageProvider

log = logging.getLogger(__name__)

BASE_ONLY_TAG = "base-only"


class StrategyName(str, Enum):
    DIRECT = "direct"
    COMPOSITE_REFINE = "composite_refine"
    MASKED_GUIDE = "masked_guide"
    PURE_COMPOSITE = "pure_composite"


# Fallbacks always move toward PURE_COMPOSITE, the strategy with no external call.
STRATEGY_ORDER = (
    StrategyName.DIRECT,
    StrategyName.COMPOSITE_REFINE,
    StrategyName.MASKED_GUIDE,
    StrategyName.PURE_COMPOSITE,
)


@dataclass(frozen=True)
class IntegrationInput:
    base: bytes  # clean product image
    logo: bytes
    product_label: str
    brand: str = ""


@dataclass(frozen=True)
class IntegrationResult:
    data: bytes
    strategy: str
    failures: list[tuple[str, str]] = field(default_factory=list)


class LogoIntegrationStrategy(Protocol):
    tag: str

    async def integrate(self, inp: IntegrationInput) -> bytes: ...


def edit_size_for(size: tuple[int, int]) -> str:
    """Closest supported edit size by aspect ratio."""
    w, h = size
    ratio = w / h if h else 1.0

    def _dist(s: str) -> float:
        sw, sh = (int(v) for v in s.split("x"))
        return abs(sw / sh - ratio)

    return min(SUPPORTED_SIZES, key=_dist)


class DirectGeneration:
    """Draw the product with the brand name in the prompt; the logo artwork is not used."""

    tag = "direct-generation"

    def __init__(self, generator: ProductImageGenerator) -> None:
        self.generator = generator

    async def integrate(self, inp: IntegrationInput) -> bytes:
        return await self.generator.generate(product_prompt(inp.brand, inp.product_label, branded=True))


class CompositeThenRefine:
    tag = "composite-refine"

    def __init__(self, provider: ImageProvider) -> None:
        self.provider = provider

    async def integrate(self, inp: IntegrationInput) -> bytes:
        base = decode_image(inp.base)
        composite = canvas_composite(base, decode_image(inp.logo))
        composite_png = pil_to_png_bytes(composite)
        mask = edit_mask(composite.size, REFINE_MASK_BOX, feather=feather_for(composite.size))

        try:
            refined = await self.provider.edit(
                composite_png,
                refine_prompt(inp.product_label),
                pil_to_png_bytes(mask),
                edit_size_for(composite.size),
            )
        except ProviderError as exc:
            log.warning("refine failed, returning raw composite: %s", exc)
            return composite_png
        return refined.data


class MaskedGuideEdit:
    """
    Logo pasted into a fixed ROI plus a mask that only opens a feathered hole
    over that ROI; the edit prompt forbids anything but the visible artwork.
    """

    tag = "masked-guide-edit"

    def __init__(self, provider: ImageProvider, roi: tuple[float, float, float, float] = GUIDE_ROI) -> None:
        self.provider = provider
        self.roi = roi

    async def integrate(self, inp: IntegrationInput) -> bytes:
        guide = guide_image(decode_image(inp.base), decode_image(inp.logo), self.roi)
        mask = edit_mask(guide.size, self.roi, feather=feather_for(guide.size))
        result = await self.provider.edit(
            pil_to_png_bytes(guide),
            guide_edit_prompt(inp.product_label),
            pil_to_png_bytes(mask),
            edit_size_for(guide.size),
        )
        return result.data


class PureComposite:
    tag = "pure-composite"

    def __init__(self, placement: str = "lower-center", blend: str = "overlay") -> None:
        self.placement = placement
        self.blend = blend

    async def integrate(self, inp: IntegrationInput) -> bytes:
        out, box = pure_composite(
            decode_image(inp.base),
            decode_image(inp.logo),
            placement=self.placement,
            blend=self.blend,
        )
        log.debug("pure composite: logo box %s [%s, %s]", box, self.placement, self.blend)
        return pil_to_png_bytes(out)


def make_strategy(
    name: StrategyName,
    generator: ProductImageGenerator,
    placement: str = "lower-center",
    blend: str = "overlay",
) -> LogoIntegrationStrategy:
    if name == StrategyName.DIRECT:
        return DirectGeneration(generator)
    if name == StrategyName.COMPOSITE_REFINE:
        return CompositeThenRefine(generator.provider)
    if name == StrategyName.MASKED_GUIDE:
        return MaskedGuideEdit(generator.provider)
    return PureComposite(placement=placement, blend=blend)


def build_chain(
    start: StrategyName | str,
    generator: ProductImageGenerator,
    placement: str = "lower-center",
    blend: str = "overlay",
) -> list[LogoIntegrationStrategy]:
    start = StrategyName(start)
    names = STRATEGY_ORDER[STRATEGY_ORDER.index(start) :]
    return [make_strategy(n, generator, placement=placement, blend=blend) for n in names]


class LogoIntegrationPipeline:
    """
    Runs strategies in order until one succeeds. If all of them fail the
    unmodified base is returned, so integrate() never raises.
    """

    def __init__(self, strategies: list[LogoIntegrationStrategy]) -> None:
        self.strategies = list(strategies)

    async def integrate(self, inp: IntegrationInput) -> IntegrationResult:
        failures: list[tuple[str, str]] = []
        for strategy in self.strategies:
            try:
                data = await strategy.integrate(inp)
            except Exception as exc:
                log.warning("logo strategy %s failed for %r: %s", strategy.tag, inp.product_label, exc)
                failures.append((strategy.tag, str(exc) or exc.__class__.__name__))
                continue
            if failures:
                log.info("logo integrated with fallback %s after %d failure(s)", strategy.tag, len(failures))
            return IntegrationResult(data=data, strategy=strategy.tag, failures=failures)

        log.warning("all logo strategies failed for %r; returning the base image", inp.product_label)
        return IntegrationResult(data=inp.base, strategy=BASE_ONLY_TAG, failures=failures)


async def label_edit(provider: ImageProvider, base: bytes, brand: str) -> bytes:
    """Brand a reference product photo without a logo file: edit a rounded label area."""
    img = decode_image(base)
    mask = edit_mask(img.size, LABEL_MASK_BOX, rounded=True)
    result = await provider.edit(
        pil_to_png_bytes(img),
        label_edit_prompt(brand),
        pil_to_png_bytes(mask),
        edit_size_for(img.size),
    )
    return result.data
