# comparison/models.py
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

from agents.platforms import Platform

ComparisonStatus = Literal["searching", "completed", "failed"]
TERMINAL_STATUSES = ("completed", "failed")


class ProductFields(BaseModel):
    """What the pipeline hands to the store. Optional fields stay unset rather than None."""

    name: str = Field(..., min_length=1)
    price: float = Field(..., ge=0)
    currency: str = Field(..., min_length=1)
    platform: Platform
    url: str
    search_query: str
    availability: bool = True
    original_price: Optional[float] = None
    description: Optional[str] = None
    image_url: Optional[str] = None
    brand: Optional[str] = None
    category: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None

    @field_validator("name")
    @classmethod
    def _name_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("name must be non-empty")
        return v

    def to_record(self) -> Dict[str, Any]:
        """Store payload: absent optional fields are omitted, never None."""
        return self.model_dump(exclude_none=True)


class Product(ProductFields):
    id: str
    extracted_at: datetime


class ExtractedProduct(ProductFields):
    """Origin product returned by the extraction client, with its store id."""

    product_id: str


class AlternativesResult(BaseModel):
    product_ids: List[str] = Field(default_factory=list)
    products: List[ProductFields] = Field(default_factory=list)


class Comparison(BaseModel):
    id: str
    original_product_id: str
    search_query: str
    status: ComparisonStatus
    created_at: datetime
    completed_at: Optional[datetime] = None
    product_ids: List[str] = Field(default_factory=list)
    error: Optional[str] = None


class ComparisonView(BaseModel):
    """A comparison with its product references resolved."""

    id: str
    status: ComparisonStatus
    search_query: str
    original_product: Optional[Product] = None
    products: List[Product] = Field(default_factory=list)
    error: Optional[str] = None
    created_at: datetime
    completed_at: Optional[datetime] = None


class SearchRecord(BaseModel):
    id: str
    url: str
    successful: bool
    created_at: datetime
    user_agent: Optional[str] = None
    ip: Optional[str] = None
    comparison_id: Optional[str] = None
    error: Optional[str] = None
