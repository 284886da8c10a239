# Copyright (c) 2026 Harsh Dwivedi
# Licensed under the Harsh Non-Commercial Attribution License (HNCAL) v1.0
# Commercial use requires written permission. See LICENSE for details.

"""
LabelPair — Pairing Data Models
Candidate scores, accepted pairs, products and singletons, plus the
PairingResult wire structure consumed by the listing / pricing services.
Wire models serialise with camelCase keys (model_dump(by_alias=True)).
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

_WIRE = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class BrandFlag(str, Enum):
    EQUAL = "equal"
    MISMATCH = "mismatch"
    UNKNOWN_RESCUE = "unknownRescue"
    DISTRIBUTOR_RESCUE = "distributorRescue"
    UNKNOWN = "unknown"


class PairSource(str, Enum):
    AUTO = "auto"
    AUTO_HAIR = "auto_hair"
    ORACLE = "oracle"
    TWO_SHOT = "two_shot"


class SingletonReason:
    """Closed set of singleton justifications."""
    NO_MATCH = "no matching product or unique brand"
    TIEBREAK_DISABLED = "tiebreak_disabled"
    CANDIDATES_CLAIMED = "candidates claimed by other fronts"
    DECLINED_PREFIX = "declined despite candidates"
    MODEL_PAIR_REJECTED_PREFIX = "declined despite candidates (model-pair rejected"

    @classmethod
    def is_recognized(cls, reason: str) -> bool:
        return reason in (cls.NO_MATCH, cls.TIEBREAK_DISABLED, cls.CANDIDATES_CLAIMED) or (
            reason.lower().startswith(cls.DECLINED_PREFIX)
        )


class CandidateScore(BaseModel):
    """A derived (front, back) compatibility score with its sub-signals."""
    model_config = ConfigDict(frozen=True)

    back_url: str
    score: float

    brand_flag: BrandFlag
    brand_match: bool
    prod_jaccard: float = Field(..., ge=0.0, le=1.0)
    var_jaccard: float = Field(..., ge=0.0, le=1.0)
    size_eq: bool
    pkg_match: bool
    packaging: str
    packaging_boost: float = 0.0
    cat_tail_overlap: bool
    cosmetic_back_cue: bool
    color_match: bool = False
    proximity_boost: float = 0.0
    barcode_boost: float = 0.0


class Pair(BaseModel):
    """An accepted front/back match."""
    model_config = _WIRE

    front_url: str
    back_url: str
    match_score: float
    brand: str = "unknown"
    product: str = ""
    variant: Optional[str] = None
    size_front: Optional[str] = None
    size_back: Optional[str] = None
    evidence: list[str] = Field(default_factory=list)
    confidence: float = Field(..., ge=0.0, le=1.0)
    source: PairSource


class ProductEvidence(BaseModel):
    model_config = _WIRE

    brand: str
    product: str
    variant: Optional[str] = None
    match_score: float = 0.0
    confidence: float = Field(0.0, ge=0.0, le=1.0)
    triggers: list[str] = Field(default_factory=list)


class Product(BaseModel):
    """Externally visible unit: one pair (or a solo front) plus extras."""
    model_config = _WIRE

    product_id: str
    front_url: str
    back_url: Optional[str] = None
    hero_display_url: str = ""
    back_display_url: Optional[str] = None
    extras: list[str] = Field(default_factory=list)
    evidence: ProductEvidence


class Singleton(BaseModel):
    """An image left unresolved, terminal within the run."""
    model_config = _WIRE

    url: str
    reason: str


class PairingResult(BaseModel):
    """Wire output of one pairing run."""
    model_config = _WIRE

    engine_version: str
    pairs: list[Pair] = Field(default_factory=list)
    products: list[Product] = Field(default_factory=list)
    singletons: list[Singleton] = Field(default_factory=list)
    debug_summary: list[str] = Field(default_factory=list)


class BrandPairRate(BaseModel):
    fronts: int = 0
    paired: int = 0
    pair_rate: float = 0.0


class PairingMetrics(BaseModel):
    """One structured summary per run — the engine's only metrics channel."""
    strategy: str
    images: int = 0
    fronts: int = 0
    backs: int = 0
    fronts_with_candidates: int = 0
    candidates: int = 0
    auto_pairs: int = 0
    oracle_pairs: int = 0
    solver_pairs: int = 0
    singletons: int = 0
    products: int = 0
    extras: int = 0
    by_brand: dict[str, BrandPairRate] = Field(default_factory=dict)
    reasons: dict[str, int] = Field(default_factory=dict)
    thresholds: dict[str, float] = Field(default_factory=dict)
    duration_ms: float = 0.0
