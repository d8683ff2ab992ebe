from __future__ import annotations

import asyncio

import pytest

from conftest import FakeImageProvider, png_bytes, transparent_png
from dumbgoodies.errors import ProviderError, RenderFailed
from dumbgoodies.rendering import Renderer, clamp_variants, slug


class _Flaky(FakeImageProvider):
    """Fails every other generate call."""

    def __init__(self):
        super().__init__(name="flaky")
        self.n = 0

    async def generate(self, prompt, size):
        self.n += 1
        if self.n % 2 == 0:
            raise ProviderError(self.name, "flaky")
        return await super().generate(prompt, size)


def test_clamp_variants():
    assert clamp_variants(None) == 1
    assert clamp_variants(0) == 1
    assert clamp_variants(3) == 3
    assert clamp_variants(12) == 4
    assert clamp_variants(12, upper=2) == 2


def test_slug():
    assert slug("Crypto Hot Sauce!") == "crypto-hot-sauce"
    assert slug("***") == "item"


def test_render_without_logo_is_direct_generation(buckets, cfg):
    renderer = Renderer(buckets, {"fake": FakeImageProvider()}, cfg)
    results = asyncio.run(renderer.render_concept("p1", "c1", "Acme", "ceramic mug, office setting"))
    assert len(results) == 1
    r = results[0]
    assert r.model == "fake-direct-generation"
    assert "/renders/" in r.image_url and "/p1/c1/fake-direct-generation-" in r.image_url
    assert r.thumbnail_url.endswith("_512.png")
    assert buckets.read_url(r.image_url).startswith(b"\x89PNG")


def test_variants_are_clamped_and_spread_over_providers(buckets, cfg):
    a, b = FakeImageProvider(name="a"), FakeImageProvider(name="b")
    renderer = Renderer(buckets, {"a": a, "b": b}, cfg)
    results = asyncio.run(renderer.render_concept("p1", "c1", "Acme", "mug", variants=9))
    assert len(results) == 4
    assert sorted(r.model for r in results) == ["a-direct-generation"] * 2 + ["b-direct-generation"] * 2
    assert len({r.image_url for r in results}) == 4


def test_partial_failures_return_the_successes(buckets, cfg):
    renderer = Renderer(buckets, {"flaky": _Flaky()}, cfg)
    results = asyncio.run(renderer.render_concept("p1", "c1", "Acme", "mug", variants=4))
    assert len(results) == 2


def test_all_variants_failing_raises_with_details(buckets, cfg):
    renderer = Renderer(buckets, {"fake": FakeImageProvider(fail_generate=True)}, cfg)
    with pytest.raises(RenderFailed) as info:
        asyncio.run(renderer.render_concept("p1", "c1", "Acme", "mug", variants=2))
    assert set(info.value.details) == {"variant-0", "variant-1"}


def test_logo_goes_through_integration_pipeline(buckets, cfg):
    logo = buckets.put("uploads", "logo.png", transparent_png((64, 32)))
    provider = FakeImageProvider()
    renderer = Renderer(buckets, {"fake": provider}, cfg)
    (result,) = asyncio.run(renderer.render_concept("p1", "c1", "Acme", "mug", logo_url=logo.url))
    assert result.model == "fake-masked-guide-edit"
    # unbranded base, then the guided edit
    assert len(provider.generate_calls) == 1
    assert "No logos" in provider.generate_calls[0][0]
    assert len(provider.edit_calls) == 1


def test_reference_without_logo_uses_label_edit(buckets, cfg):
    ref = buckets.put("uploads", "ref.png", png_bytes((512, 512)))
    provider = FakeImageProvider()
    renderer = Renderer(buckets, {"fake": provider}, cfg)
    (result,) = asyncio.run(renderer.render_concept("p1", "c1", "Acme", "custom product", product_ref_url=ref.url))
    assert result.model == "fake-label-edit"
    assert provider.generate_calls == []


def test_render_more_stores_under_brand_and_product(buckets, cfg):
    renderer = Renderer(buckets, {"fake": FakeImageProvider()}, cfg)
    result = asyncio.run(renderer.render_more("Acme Co", "Meme Mousepad"))
    assert "/acme-co/meme-mousepad/" in result.image_url
    assert result.as_dict()["model"] == "fake-direct-generation"


def test_direct_strategy_with_logo_skips_the_unbranded_base(buckets, cfg):
    cfg.logo_strategy = "direct"
    logo = buckets.put("uploads", "logo.png", transparent_png((64, 32)))
    provider = FakeImageProvider()
    renderer = Renderer(buckets, {"fake": provider}, cfg)
    (result,) = asyncio.run(renderer.render_concept("p1", "c1", "Acme", "mug", logo_url=logo.url))
    assert result.model == "fake-direct-generation"
    assert len(provider.generate_calls) == 1
    assert "No logos" not in provider.generate_calls[0][0]
    assert provider.edit_calls == []


def test_failed_direct_generation_falls_back_to_compositing(buckets, cfg):
    cfg.logo_strategy = "direct"
    logo = buckets.put("uploads", "logo.png", transparent_png((64, 32)))

    class _FirstCallFails(FakeImageProvider):
        async def generate(self, prompt, size):
            if not self.generate_calls:
                self.generate_calls.append((prompt, size))
                raise ProviderError(self.name, "down")
            return await super().generate(prompt, size)

    provider = _FirstCallFails()
    renderer = Renderer(buckets, {"fake": provider}, cfg)
    (result,) = asyncio.run(renderer.render_concept("p1", "c1", "Acme", "mug", logo_url=logo.url))
    assert result.model == "fake-composite-refine"
    assert len(provider.generate_calls) == 2
    assert "No logos" in provider.generate_calls[1][0]
