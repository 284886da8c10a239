# Copyright (c) 2026 Harsh Dwivedi
# Licensed under the Harsh Non-Commercial Attribution License (HNCAL) v1.0
# Commercial use requires written permission. See LICENSE for details.

"""
LabelPair — Image Data Models
Pydantic models representing one product photo through the early stages
of the pipeline: upstream classification record → normalised FeatureRow.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class Role(str, Enum):
    FRONT = "front"
    BACK = "back"
    SIDE = "side"
    OTHER = "other"


class PackagingHint(str, Enum):
    POUCH = "pouch"
    DROPPER_BOTTLE = "dropper-bottle"
    BOTTLE = "bottle"
    JAR = "jar"
    TUBE = "tube"
    CANISTER = "canister"
    OTHER = "other"
    UNKNOWN = "unknown"


class ImageRecord(BaseModel):
    """
    One per-image record from the upstream visual-classification step.
    Accepts both snake_case and the upstream camelCase keys.
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    url: str = Field(..., min_length=1)
    role: Role = Role.OTHER
    group_id: Optional[str] = None

    brand: Optional[str] = None
    product: Optional[str] = None
    variant: Optional[str] = None
    size: Optional[str] = None
    category_path: Optional[str] = None

    visual_description: Optional[str] = None
    has_visible_text: bool = False
    dominant_color: Optional[str] = None
    text_extracted: Optional[str] = None
    display_url: Optional[str] = None

    @field_validator("url")
    @classmethod
    def _url_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("url is blank")
        return v

    @field_validator("role", mode="before")
    @classmethod
    def _role_lowercase(cls, v: Any) -> Any:
        if v is None:
            return Role.OTHER
        if isinstance(v, str):
            return v.strip().lower()
        return v


class AnalysisGroup(BaseModel):
    """A product group from the upstream analysis step (brand-level facts)."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    group_id: Optional[str] = Field(None, alias="id")
    brand: Optional[str] = None
    product: Optional[str] = None
    variant: Optional[str] = None
    size: Optional[str] = None
    category_path: Optional[str] = None
    primary_image_url: Optional[str] = None
    images: list[str] = Field(default_factory=list)


class ImageInsight(BaseModel):
    """A per-image insight from the upstream analysis step (visual facts)."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    url: str
    role: Optional[str] = None
    original_role: Optional[str] = None
    visual_description: Optional[str] = None
    has_visible_text: bool = False
    dominant_color: Optional[str] = None
    text_extracted: Optional[str] = None
    display_url: Optional[str] = None


class VisionAnalysis(BaseModel):
    """Upstream {groups, imageInsights} payload."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    groups: list[AnalysisGroup] = Field(default_factory=list)
    image_insights: list[ImageInsight] = Field(default_factory=list)


class FeatureRow(BaseModel):
    """
    Canonical per-image descriptor keyed by url. Built once per run and
    never edited in place — role promotion produces a new row.
    """
    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    url: str = Field(..., description="Canonical image key (trimmed, lowercased)")
    role: Role
    original_role: Role = Field(..., description="Role as classified upstream")
    group_id: Optional[str] = None

    # ── Normalised matching signals ──
    brand_norm: str = ""
    product_tokens: tuple[str, ...] = ()
    variant_tokens: tuple[str, ...] = ()
    size_canonical: Optional[str] = None
    packaging_hint: PackagingHint = PackagingHint.UNKNOWN
    category_path: Optional[str] = None
    category_tail: str = ""
    has_text: bool = False
    text_extracted: str = ""
    color_key: str = ""

    # ── Display values carried into Pairs / Products ──
    brand: Optional[str] = None
    product: Optional[str] = None
    variant: Optional[str] = None
    size: Optional[str] = None
    display_url: Optional[str] = None
