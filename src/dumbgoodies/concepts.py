from __future__ import annotations

import logging
import random
import re
from dataclasses import dataclass

from sqlalchemy.orm import Session

from dumbgoodies.db import Concept, Project
from dumbgoodies.errors import BadIdeasResponse, BrandError
from dumbgoodies.providers.base import IdeaProvider
from dumbgoodies.records import add_concepts, create_project

log = logging.getLogger(__name__)

BLOCKED_BRAND_WORDS = ("nazi", "hitler", "rape", "slur")

BLOCKED_PRODUCT_TERMS = (
    "knife", "blade", "weapon", "gun", "pill", "drug", "cigarette", "alcohol",
    "beer", "wine", "vodka", "prescription", "medicine", "syringe", "needle",
)

CUSTOM_LABEL = "Custom Product"
CUSTOM_PROMPT = "custom product"


@dataclass(frozen=True)
class ConceptIdea:
    label: str
    prompt_base: str


DUMB_PRODUCTS = (
    ConceptIdea("AI Flip-Flops", "foam flip-flops with colorful straps, beach setting, sand and water background, summer vibes"),
    ConceptIdea("Crypto Hot Sauce", "small glass hot sauce bottle with red chili pepper sauce, kitchen counter setting"),
    ConceptIdea("Tech Bro Coffee Mug", "ceramic coffee mug with steam rising from hot coffee, office desk setting"),
    ConceptIdea("Influencer Tote Bag", "canvas tote bag hanging on a hook, minimalist background"),
    ConceptIdea("Startup T-Shirt", "cotton t-shirt laid flat on clean surface, casual wear style"),
    ConceptIdea("Gamer Energy Drink", "aluminum energy drink can with vibrant colors, gaming setup background"),
    ConceptIdea("Metaverse Sunglasses", "trendy sunglasses with reflective lenses, outdoor sunny setting"),
    ConceptIdea("Blockchain Water Bottle", "stainless steel water bottle with modern design, gym or office setting"),
    ConceptIdea("NFT Phone Case", "smartphone case with artistic design, tech desk background"),
    ConceptIdea("Cloud Storage USB", "sleek USB flash drive on modern desk, tech accessories around"),
    ConceptIdea("Social Media Stickers", "collection of vinyl stickers on laptop or water bottle surface"),
    ConceptIdea("Digital Nomad Backpack", "modern backpack with multiple compartments, travel setting"),
    ConceptIdea("Podcast Microphone Stress Ball", "microphone-shaped stress ball on desk, office environment"),
    ConceptIdea("Meme Mousepad", "computer mousepad with funny design, gaming desk setup"),
    ConceptIdea("Viral Video Cap", "baseball cap with trendy design, urban street background"),
    ConceptIdea("Influencer Ring Light Keychain", "miniature ring light keychain, keys and accessories background"),
    ConceptIdea("Crypto Mining Socks", "colorful patterned socks laid out flat, cozy home setting"),
    ConceptIdea("AI Assistant Rubber Duck", "yellow rubber duck with tech twist, bathroom or desk setting"),
    ConceptIdea("Startup Ping Pong Balls", "white ping pong balls on table tennis table, office recreation area"),
    ConceptIdea("Tech Conference Lanyard", "colorful conference lanyard with badge holder, professional setting"),
)


def clean_brand(brand: str) -> str:
    """
    Strip control characters and anything outside word chars, spaces, "-" and ".";
    cap at 24 chars. Raises BrandError for empty, URL-like or blocked brands.
    """
    raw = (brand or "").strip()
    if re.match(r"^https?://", raw, re.IGNORECASE):
        raise BrandError("Brand cannot be a URL")
    cleaned = re.sub(r"[\n\r\t]", " ", raw)
    cleaned = re.sub(r"[^\w\s\-.]", "", cleaned).strip()[:24].strip()
    if not cleaned:
        raise BrandError("Invalid brand name")
    lower = cleaned.lower()
    if any(w in lower for w in BLOCKED_BRAND_WORDS):
        raise BrandError("Brand not allowed")
    return cleaned


def is_blocked_product(text: str) -> bool:
    lower = text.lower()
    return any(term in lower for term in BLOCKED_PRODUCT_TERMS)


class CuratedIdeas:
    """Two random picks from the curated list. Never fails, no model call."""

    name = "curated"

    def __init__(self, rng: random.Random | None = None) -> None:
        self._rng = rng or random.Random()

    async def propose(self, brand: str) -> list[ConceptIdea]:
        return self._rng.sample(list(DUMB_PRODUCTS), 2)


class ModelIdeas:
    """Text-model ideas; anything but exactly two safe ideas is rejected."""

    name = "model"

    def __init__(self, provider: IdeaProvider) -> None:
        self.provider = provider

    async def propose(self, brand: str) -> list[ConceptIdea]:
        raw = await self.provider.propose_ideas(brand)
        ideas = [ConceptIdea(i["label"], i["prompt_base"]) for i in raw]
        safe = [i for i in ideas if not is_blocked_product(f"{i.label} {i.prompt_base}")]
        if len(safe) != len(ideas):
            log.warning("dropped %d unsafe idea(s) for brand %r", len(ideas) - len(safe), brand)
        if len(safe) != 2:
            raise BadIdeasResponse(f"expected exactly 2 ideas, got {len(safe)}")
        return safe


async def propose_concepts(
    session: Session,
    ideas_source: CuratedIdeas | ModelIdeas,
    brand: str,
    logo_url: str | None = None,
    product_hint: str | None = None,
    product_ref_url: str | None = None,
) -> tuple[Project, list[Concept]]:
    """
    Create a project and its 1-2 concepts. A hint or reference image short-circuits
    to a single concept without asking for ideas.
    """
    hint = (product_hint or "").strip()
    source = "hint"
    if hint or product_ref_url:
        ideas = [ConceptIdea(hint or CUSTOM_LABEL, hint or CUSTOM_PROMPT)]
    else:
        ideas = await ideas_source.propose(brand)
        source = ideas_source.name

    # Sequential inserts: a failure between them leaves an orphaned project.
    project = create_project(session, brand=brand, logo_url=logo_url)
    concepts = add_concepts(session, project.id, [(i.label, i.prompt_base) for i in ideas])
    log.info("project %s for %r with %d concept(s) from %s", project.id, brand, len(concepts), source)
    return project, concepts
