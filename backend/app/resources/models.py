"""Input and report models for plan-capped store resources."""
from __future__ import annotations

from enum import Enum
from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, HttpUrl

SLUG_PATTERN = r"^[a-z0-9]+(?:-[a-z0-9]+)*$"


class ProductStatus(str, Enum):
    ACTIVE = "active"
    HIDDEN = "hidden"


class OutOfStockBehavior(str, Enum):
    LABEL = "label"
    AUTO_HIDE = "auto_hide"


class CallToAction(str, Enum):
    WHATSAPP = "whatsapp"
    PAYMENT_LINK = "payment_link"
    CONTACT = "contact"


class ProductCreate(BaseModel):
    """Validated fields for a new product."""

    name: str = Field(min_length=2, max_length=80)
    slug: str = Field(min_length=2, max_length=80, pattern=SLUG_PATTERN)
    description: Optional[str] = None
    price_text: Optional[str] = None
    catalog_id: Optional[str] = None
    status: ProductStatus = ProductStatus.ACTIVE
    stock: int = Field(default=0, ge=0)
    out_of_stock_behavior: OutOfStockBehavior = OutOfStockBehavior.LABEL
    cta_override: Optional[CallToAction] = None
    payment_url: Optional[HttpUrl] = None
    whatsapp_message: Optional[str] = None
    contact_url: Optional[HttpUrl] = None
    sort_order: int = 0

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    def to_fields(self) -> dict:
        return self.model_dump(mode="json")


class CatalogCreate(BaseModel):
    """Validated fields for a new catalog."""

    name: str = Field(min_length=2, max_length=50)
    slug: str = Field(min_length=2, max_length=50, pattern=SLUG_PATTERN)
    visible: bool = True
    sort_order: int = 0

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    def to_fields(self) -> dict:
        return self.model_dump(mode="json")


class ProductImportRow(BaseModel):
    """One spreadsheet row as submitted; nothing is validated yet."""

    row_number: Optional[int] = Field(default=None, alias="rowNumber")
    name: Optional[str] = None
    slug: Optional[str] = None
    url: Optional[str] = None
    description: Optional[str] = None
    price_text: Optional[str] = None
    stock: Optional[Union[int, float, str]] = None
    catalog_slug: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True, frozen=True)


class ImportRowError(BaseModel):
    row_number: int = Field(alias="rowNumber")
    message: str

    model_config = ConfigDict(populate_by_name=True, frozen=True)


class ImportReport(BaseModel):
    """Batch outcome: a success count plus one entry per failed row."""

    imported: int = 0
    failed: int = 0
    errors: List[ImportRowError] = Field(default_factory=list)
    halted_at_row: Optional[int] = Field(default=None, alias="haltedAtRow")

    model_config = ConfigDict(populate_by_name=True, frozen=True)


__all__ = [
    "CallToAction",
    "CatalogCreate",
    "ImportReport",
    "ImportRowError",
    "OutOfStockBehavior",
    "ProductCreate",
    "ProductImportRow",
    "ProductStatus",
    "SLUG_PATTERN",
]
