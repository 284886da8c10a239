# Copyright (c) 2026 Harsh Dwivedi
# Licensed under the Harsh Non-Commercial Attribution License (HNCAL) v1.0
# Commercial use requires written permission. See LICENSE for details.

"""
LabelPair — Tie-Break Oracle Models
The request hints block and the validated reply structure. The oracle's
raw text is never trusted: it must parse into OracleReply before any
contract check runs.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from labelpair.models.image import FeatureRow

_WIRE = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class OracleHints(BaseModel):
    """Closed-world hints: every undecided front and its allowed backs."""
    model_config = _WIRE

    features_by_url: dict[str, FeatureRow] = Field(default_factory=dict)
    candidates_by_front: dict[str, list[str]] = Field(default_factory=dict)


class OracleRequest(BaseModel):
    system: str
    user: str
    hints: OracleHints


class OracleReplyPair(BaseModel):
    """One proposed pair. Non-finite scores fail validation."""
    model_config = _WIRE

    front_url: str
    back_url: str
    match_score: float = Field(..., allow_inf_nan=False)
    brand: Optional[str] = None
    product: Optional[str] = None
    variant: Optional[str] = None
    size_front: Optional[str] = None
    size_back: Optional[str] = None
    evidence: list[str] = Field(default_factory=list)
    confidence: Optional[float] = Field(None, ge=0.0, le=1.0, allow_inf_nan=False)


class OracleReplySingleton(BaseModel):
    model_config = _WIRE

    url: str
    reason: str = ""


class OracleReply(BaseModel):
    model_config = _WIRE

    pairs: list[OracleReplyPair] = Field(default_factory=list)
    singletons: list[OracleReplySingleton] = Field(default_factory=list)
    debug_summary: list[str] = Field(default_factory=list)
