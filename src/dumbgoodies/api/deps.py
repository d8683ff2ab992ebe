from __future__ import annotations

import logging
from collections.abc import Iterator
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path

from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session, sessionmaker

from dumbgoodies.concepts import CuratedIdeas, ModelIdeas
from dumbgoodies.config import Settings, settings
from dumbgoodies.db import init_db, make_engine, make_sessionmaker
from dumbgoodies.providers.base import IdeaProvider, ImageProvider
from dumbgoodies.ratelimit import FixedWindowRateLimiter, RateLimiter, client_key
from dumbgoodies.rendering import Renderer
from dumbgoodies.storage import BucketStore

log = logging.getLogger(__name__)


@dataclass
class Services:
    settings: Settings
    buckets: BucketStore
    sessions: sessionmaker
    limiter: RateLimiter
    image_providers: dict[str, ImageProvider] = field(default_factory=dict)
    idea_provider: IdeaProvider | None = None
    curated: CuratedIdeas = field(default_factory=CuratedIdeas)

    def renderer(self) -> Renderer:
        if not self.image_providers:
            wanted = (self.settings.image_providers or ["openai"])[0]
            raise HTTPException(status_code=400, detail=f"{wanted.upper()}_API_KEY is not set")
        return Renderer(self.buckets, self.image_providers, self.settings)

    def ideas(self) -> CuratedIdeas | ModelIdeas:
        if self.settings.concept_source != "model":
            return self.curated
        if self.idea_provider is None:
            raise HTTPException(status_code=400, detail="OPENAI_API_KEY is not set")
        return ModelIdeas(self.idea_provider)


def build_image_providers(cfg: Settings) -> dict[str, ImageProvider]:
    providers: dict[str, ImageProvider] = {}
    for name in cfg.image_providers:
        if name == "openai" and cfg.openai_api_key:
            from dumbgoodies.providers.openai_provider import OpenAIImageProvider

            providers[name] = OpenAIImageProvider(
                api_key=cfg.openai_api_key, model=cfg.openai_image_model, timeout=cfg.provider_timeout_s
            )
        elif name == "gemini" and cfg.gemini_api_key:
            from dumbgoodies.providers.gemini_provider import GeminiImageProvider

            providers[name] = GeminiImageProvider(
                api_key=cfg.gemini_api_key, model=cfg.gemini_image_model, timeout=cfg.provider_timeout_s
            )
        else:
            log.warning("image provider %r is not available (unknown name or missing key)", name)
    return providers


def build_services(cfg: Settings = settings) -> Services:
    engine = make_engine(cfg.resolved_database_url())
    init_db(engine)

    idea_provider = None
    if cfg.openai_api_key:
        from dumbgoodies.providers.openai_provider import OpenAITextProvider

        idea_provider = OpenAITextProvider(
            api_key=cfg.openai_api_key, model=cfg.openai_text_model, timeout=cfg.provider_timeout_s
        )

    return Services(
        settings=cfg,
        buckets=BucketStore(Path(cfg.data_dir) / "buckets", cfg.public_base_url),
        sessions=make_sessionmaker(engine),
        limiter=FixedWindowRateLimiter(cfg.rate_limit_requests, cfg.rate_limit_window_s),
        image_providers=build_image_providers(cfg),
        idea_provider=idea_provider,
    )


@lru_cache(maxsize=1)
def get_services() -> Services:
    return build_services(settings)


def get_db(services: Services = Depends(get_services)) -> Iterator[Session]:
    session = services.sessions()
    try:
        yield session
    finally:
        session.close()


def enforce_rate_limit(request: Request, services: Services = Depends(get_services)) -> None:
    key = client_key(request.headers, request.client.host if request.client else None)
    if not services.limiter.hit(key):
        log.warning("rate limit exceeded for %s on %s", key, request.url.path)
        raise HTTPException(status_code=429, detail="rate_limit_exceeded")
