# Copyright (c) 2026 Harsh Dwivedi
# Licensed under the Harsh Non-Commercial Attribution License (HNCAL) v1.0
# Commercial use requires written permission. See LICENSE for details.

"""
LabelPair — Pair Construction
Builds Pair records from two FeatureRows and a CandidateScore so every
pairing source (auto, hair auto, two-shot) reports identical fields.
"""

from __future__ import annotations

import math

from labelpair.models.image import FeatureRow
from labelpair.models.pairing import CandidateScore, Pair, PairSource


def score_gap(best: CandidateScore, runner_up: CandidateScore | None) -> float:
    """Best minus runner-up score; infinite when there is no runner-up."""
    if runner_up is None:
        return math.inf
    return best.score - runner_up.score


def _fmt_gap(gap: float) -> str:
    return "inf" if math.isinf(gap) else f"{gap:.2f}"


def candidate_evidence(
    label: str,
    cand: CandidateScore,
    gap: float | None = None,
) -> list[str]:
    """One evidence line per sub-signal group."""
    lines = [f"{label}: preScore={cand.score:.2f}"]
    if gap is not None:
        lines.append(f"gap={_fmt_gap(gap)}")
    lines.extend([
        f"brand={cand.brand_flag.value}",
        f"packaging={cand.packaging} boost={cand.packaging_boost}",
        f"prodJac={cand.prod_jaccard:.2f} varJac={cand.var_jaccard:.2f}",
        f"sizeEq={cand.size_eq} catTailOverlap={cand.cat_tail_overlap}",
        f"cosmeticBackCue={cand.cosmetic_back_cue} colorMatch={cand.color_match}",
    ])
    return lines


def build_pair(
    front: FeatureRow,
    back: FeatureRow,
    cand: CandidateScore,
    evidence: list[str],
    confidence: float,
    source: PairSource,
) -> Pair:
    return Pair(
        front_url=front.url,
        back_url=back.url,
        match_score=round(cand.score, 1),
        brand=front.brand or back.brand or "unknown",
        product=front.product or back.product or "",
        variant=front.variant or back.variant,
        size_front=front.size_canonical or front.size,
        size_back=back.size_canonical or back.size,
        evidence=evidence,
        confidence=confidence,
        source=source,
    )
