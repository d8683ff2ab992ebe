from __future__ import annotations


class DumbGoodiesError(Exception):
    pass


class ProviderError(DumbGoodiesError):
    """An external model call failed, timed out, or returned nothing usable."""

    def __init__(self, provider: str, message: str) -> None:
        super().__init__(f"{provider}: {message}")
        self.provider = provider


class GenerationError(DumbGoodiesError):
    pass


class ImageDecodeError(DumbGoodiesError, ValueError):
    pass


class BadIdeasResponse(DumbGoodiesError):
    pass


class FetchError(DumbGoodiesError):
    pass


class BrandError(DumbGoodiesError, ValueError):
    pass


class RenderFailed(DumbGoodiesError):
    def __init__(self, details: dict[str, str]) -> None:
        super().__init__("all render variants failed")
        self.details = details
