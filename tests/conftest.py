from __future__ import annotations

import io
import os
import tempfile

# Module-level settings are read at import time; keep them out of the checkout.
os.environ.setdefault("DATA_DIR", tempfile.mkdtemp(prefix="dumbgoodies-test-"))

import pytest
from PIL import Image

from dumbgoodies.errors import ProviderError
from dumbgoodies.providers.base import GeneratedImage


def png_bytes(size=(64, 64), color=(200, 40, 40, 255), mode="RGBA") -> bytes:
    buf = io.BytesIO()
    Image.new(mode, size, color if mode == "RGBA" else color[:3]).save(buf, format="PNG")
    return buf.getvalue()


def transparent_png(size=(64, 64)) -> bytes:
    img = Image.new("RGBA", size, (0, 0, 0, 0))
    for x in range(size[0] // 4, 3 * size[0] // 4):
        for y in range(size[1] // 4, 3 * size[1] // 4):
            img.putpixel((x, y), (30, 120, 220, 255))
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


class FakeImageProvider:
    """Records calls; returns canned PNGs, or raises when told to."""

    def __init__(self, name="fake", outputs=None, fail_generate=False, fail_edit=False):
        self.name = name
        self.outputs = list(outputs or [])
        self.fail_generate = fail_generate
        self.fail_edit = fail_edit
        self.generate_calls: list[tuple[str, str]] = []
        self.edit_calls: list[tuple[str, str]] = []

    def _next(self) -> bytes:
        return self.outputs.pop(0) if self.outputs else transparent_png()

    async def generate(self, prompt, size):
        self.generate_calls.append((prompt, size))
        if self.fail_generate:
            raise ProviderError(self.name, "generate boom")
        return GeneratedImage(data=self._next(), prompt_used=prompt, provider=self.name, model="fake-1")

    async def edit(self, image, prompt, mask, size):
        self.edit_calls.append((prompt, size))
        if self.fail_edit:
            raise ProviderError(self.name, "edit boom")
        return GeneratedImage(data=self._next(), prompt_used=prompt, provider=self.name, model="fake-1")


@pytest.fixture
def buckets(tmp_path):
    from dumbgoodies.storage import BucketStore

    return BucketStore(tmp_path / "buckets", "http://testserver/files")


@pytest.fixture
def cfg(tmp_path):
    from dumbgoodies.config import Settings

    return Settings(
        _env_file=None,
        data_dir=str(tmp_path),
        public_base_url="http://testserver/files",
        image_providers=["fake"],
    )


@pytest.fixture
def sessions(tmp_path):
    from dumbgoodies.db import init_db, make_engine, make_sessionmaker

    engine = make_engine(f"sqlite:///{tmp_path}/test.db")
    init_db(engine)
    return make_sessionmaker(engine)


@pytest.fixture
def db(sessions):
    session = sessions()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def fake_provider():
    return FakeImageProvider()


@pytest.fixture
def services(cfg, buckets, sessions, fake_provider):
    from dumbgoodies.api.deps import Services
    from dumbgoodies.ratelimit import FixedWindowRateLimiter

    return Services(
        settings=cfg,
        buckets=buckets,
        sessions=sessions,
        limiter=FixedWindowRateLimiter(cfg.rate_limit_requests, cfg.rate_limit_window_s),
        image_providers={"fake": fake_provider},
    )


@pytest.fixture
def client(services):
    from fastapi.testclient import TestClient

    from dumbgoodies.api.app import app
    from dumbgoodies.api.deps import get_services

    app.dependency_overrides[get_services] = lambda: services
    try:
        with TestClient(app) as c:
            yield c
    finally:
        app.dependency_overrides.clear()
