"""Product domain models and API schemas."""

from __future__ import annotations

from enum import Enum

from pydantic import AnyHttpUrl, BaseModel, ConfigDict, Field, field_validator, model_validator

# Sentinels used when a remote document omits a numeric field.
MISSING_TIMESTAMP = 0
MISSING_PRICE = 0.0


class ProductStatus(str, Enum):
    DRAFT = "draft"
    PUBLISHED = "published"


class Product(BaseModel):
    """A product as stored under ``products/{ownerId}/{productId}``."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., min_length=1)
    owner_id: str = Field(..., alias="ownerId", min_length=1)
    name: str = ""
    description: str = ""
    images: list[str] = Field(default_factory=list)
    price_start: float = Field(MISSING_PRICE, alias="priceStart")
    price_end: float = Field(MISSING_PRICE, alias="priceEnd")
    status: ProductStatus = ProductStatus.DRAFT
    categories: list[str] = Field(default_factory=list)
    created_at: int = Field(MISSING_TIMESTAMP, alias="createdAt")

    @field_validator("categories")
    @classmethod
    def _dedupe_categories(cls, values: list[str]) -> list[str]:
        return list(dict.fromkeys(values))

    @property
    def is_published(self) -> bool:
        return self.status is ProductStatus.PUBLISHED

    def to_document(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class ProductPayload(BaseModel):
    """Incoming payload used by an owner to publish or save a product."""

    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(..., min_length=1)
    description: str = ""
    images: list[AnyHttpUrl] = Field(default_factory=list)
    price_start: float = Field(..., alias="priceStart", gt=0)
    price_end: float = Field(..., alias="priceEnd", gt=0)
    status: ProductStatus = Field(
        ProductStatus.PUBLISHED,
        description="Publication status of the product",
    )
    categories: list[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_price_range(self) -> ProductPayload:
        if self.price_start > self.price_end:
            raise ValueError("priceStart must not exceed priceEnd")
        return self


class LikeState(BaseModel):
    """Like flag of one product for the caller (``likes/{userId}/{productId}``)."""

    model_config = ConfigDict(populate_by_name=True)

    product_id: str = Field(..., alias="productId")
    liked: bool
