from __future__ import annotations

from pydantic import AnyHttpUrl, BaseModel, ConfigDict, Field, model_validator


class _Body(BaseModel):
    # Wire format is camelCase; snake_case names are accepted too.
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)


class ProposeRequest(_Body):
    brand: str = Field(min_length=1)
    logo_url: AnyHttpUrl | None = Field(default=None, alias="logoUrl")
    product_hint: str | None = None
    product_ref_url: AnyHttpUrl | None = None


class RenderRequest(_Body):
    project_id: str = Field(alias="projectId", min_length=1)
    concept_id: str = Field(alias="conceptId", min_length=1)
    brand: str = Field(min_length=1)
    prompt_base: str = Field(alias="promptBase", min_length=1)
    logo_url: AnyHttpUrl | None = Field(default=None, alias="logoUrl")
    product_ref_url: AnyHttpUrl | None = Field(default=None, alias="productRefUrl")
    variants: int | None = None


class RenderMoreRequest(_Body):
    brand: str = Field(min_length=1)
    product: str = Field(min_length=1)
    logo_url: AnyHttpUrl | None = Field(default=None, alias="logoUrl")


class SaveRequest(_Body):
    project_id: str | None = Field(default=None, alias="projectId")
    concept_id: str | None = Field(default=None, alias="conceptId")
    brand: str | None = None
    product: str | None = None
    model: str = Field(min_length=1)
    image_url: AnyHttpUrl = Field(alias="imageUrl")
    thumbnail_url: AnyHttpUrl | None = Field(default=None, alias="thumbnailUrl")
    public: bool = True

    @model_validator(mode="after")
    def _target(self) -> "SaveRequest":
        if bool(self.project_id) != bool(self.concept_id):
            raise ValueError("projectId and conceptId must be sent together")
        if self.project_id and self.concept_id:
            return self
        if self.brand and self.product:
            return self
        raise ValueError("either projectId + conceptId or brand + product is required")


def url_or_none(value: AnyHttpUrl | None) -> str | None:
    return str(value) if value is not None else None
