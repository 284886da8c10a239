# Copyright (c) 2026 Harsh Dwivedi
# Licensed under the Harsh Non-Commercial Attribution License (HNCAL) v1.0
# Commercial use requires written permission. See LICENSE for details.

"""
LabelPair — Candidate Scorer
Scores every front against every back / other image as a weighted sum of
independent sub-signals, then keeps the top-K per front.

Sub-signals (points):
  brand      +3 equal, −penalty mismatch (both known), 0 if either unknown
             distributor rescue: mismatch waived, +1.5, when product,
               packaging and size/category all agree (contract packers)
             unknown rescue: +1 when one brand is unknown but packaging
               agrees and category is unknown or overlapping
  product    +2 Jaccard ≥ 0.5, +1 Jaccard ≥ 0.3
  variant    +1 Jaccard ≥ 0.5
  size       +1 canonical sizes equal
  packaging  +boost when equal (dropper > pouch > other kinds)
  category   +1 category-tail token overlap
  cosmetic   +0.5 INCI / hair-use cue on a back when the front is hair/cosmetic
  colour     +1.5 same dominant colour (shade-insensitive)
  proximity  +0.5 same folder or near-identical filename
  barcode    +0.5 barcode cue on back and the front's signature is unique
  role       −2 when not front→back (−0.5 with strong visual evidence)
  conflict   −2 hair/cosmetic vs supplement/food categories

Backs below min_pre_score are dropped. Ties break on product Jaccard,
brand match, packaging match, then back URL — fully deterministic.
"""

from __future__ import annotations

import re
import time
from collections import Counter, defaultdict
from dataclasses import dataclass, field

from labelpair.config import Settings, get_settings
from labelpair.models.image import FeatureRow, PackagingHint, Role
from labelpair.models.pairing import BrandFlag, CandidateScore
from labelpair.utils.logger import get_logger
from labelpair.utils.text_utils import (
    category_tail_overlap,
    colors_match,
    filename_proximity,
    has_category_conflict,
    is_hair_cosmetic,
    jaccard,
)

log = get_logger(__name__)

_W_BRAND = 3.0
_W_DISTRIBUTOR_RESCUE = 1.5
_W_UNKNOWN_RESCUE = 1.0
_W_COSMETIC_CUE = 0.5
_W_COLOR = 1.5
_W_PROXIMITY = 0.5
_W_BARCODE = 0.5
_ROLE_PENALTY = 2.0
_ROLE_PENALTY_STRONG_EVIDENCE = 0.5
_CATEGORY_CONFLICT_PENALTY = 2.0

_COSMETIC_BACK_CUE_RE = re.compile(
    r"ingredients:|avoid contact|12m|24m|distributed by|apply.*hair", re.IGNORECASE
)
_BARCODE_RE = re.compile(r"barcode|upc|ean|gtin|product code", re.IGNORECASE)

# Packaging values that carry no matching signal
_UNINFORMATIVE_PACKAGING = frozenset({PackagingHint.OTHER, PackagingHint.UNKNOWN})


@dataclass
class CandidateReport:
    """Output of build_candidates — ranked lists plus operator warnings."""
    candidates: dict[str, list[CandidateScore]]     # front url → top-K, best first
    warnings: list[str] = field(default_factory=list)
    build_ms: float = 0.0


def _front_signature(front: FeatureRow) -> str:
    return f"{front.brand_norm}|{' '.join(sorted(front.product_tokens))}"


def _packaging_boost(packaging: PackagingHint, settings: Settings) -> float:
    if packaging == PackagingHint.DROPPER_BOTTLE:
        return settings.pkg_boost_dropper
    if packaging == PackagingHint.POUCH:
        return settings.pkg_boost_pouch
    return settings.pkg_boost_default


def has_cosmetic_back_cue(row: FeatureRow) -> bool:
    return bool(_COSMETIC_BACK_CUE_RE.search(row.text_extracted))


def score_pair(
    front: FeatureRow,
    back: FeatureRow,
    front_is_unique: bool = False,
    settings: Settings | None = None,
) -> CandidateScore:
    """
    Score one (front, back) combination.

    Args:
        front:           Front-role FeatureRow
        back:            Candidate back (back or other role)
        front_is_unique: True if no other front shares this front's
                         brand + product signature (enables barcode nudge)
        settings:        Engine settings (defaults to cached settings)

    Returns:
        CandidateScore with the summed score and every sub-signal.
    """
    if settings is None:
        settings = get_settings()

    score = 0.0
    both_brands = bool(front.brand_norm) and bool(back.brand_norm)
    brand_match = both_brands and front.brand_norm == back.brand_norm

    prod_jac = jaccard(front.product_tokens, back.product_tokens)
    var_jac = jaccard(front.variant_tokens, back.variant_tokens)
    size_eq = (
        front.size_canonical is not None
        and front.size_canonical == back.size_canonical
    )
    pkg_match = (
        front.packaging_hint not in _UNINFORMATIVE_PACKAGING
        and front.packaging_hint == back.packaging_hint
    )
    cat_overlap = category_tail_overlap(front.category_tail, back.category_tail)

    if brand_match:
        score += _W_BRAND

    if prod_jac >= 0.5:
        score += 2.0
    elif prod_jac >= 0.3:
        score += 1.0

    if var_jac >= 0.5:
        score += 1.0

    if size_eq:
        score += 1.0

    packaging_boost = 0.0
    if pkg_match:
        packaging_boost = _packaging_boost(front.packaging_hint, settings)
        score += packaging_boost

    if cat_overlap:
        score += 1.0

    # ── Brand flag + rescues ──
    if brand_match:
        brand_flag = BrandFlag.EQUAL
    elif both_brands:
        supporting = pkg_match and (size_eq or cat_overlap)
        if prod_jac >= 0.5 and supporting:
            # Contract packer on the back label: waive the mismatch penalty
            brand_flag = BrandFlag.DISTRIBUTOR_RESCUE
            score += _W_DISTRIBUTOR_RESCUE
        else:
            brand_flag = BrandFlag.MISMATCH
            score -= settings.brand_mismatch_penalty
    else:
        brand_flag = BrandFlag.UNKNOWN
        category_open = (
            not front.category_path
            or not back.category_path
            or front.category_path.lower() == "unknown"
            or back.category_path.lower() == "unknown"
            or cat_overlap
        )
        if pkg_match and category_open:
            brand_flag = BrandFlag.UNKNOWN_RESCUE
            score += _W_UNKNOWN_RESCUE

    cosmetic_cue = has_cosmetic_back_cue(back)
    if cosmetic_cue and back.role == Role.BACK and is_hair_cosmetic(front.category_path):
        score += _W_COSMETIC_CUE

    color_match = colors_match(front.color_key, back.color_key)
    if color_match:
        score += _W_COLOR

    proximity_boost = _W_PROXIMITY if filename_proximity(front.url, back.url) else 0.0
    score += proximity_boost

    barcode_boost = _W_BARCODE if front_is_unique and _BARCODE_RE.search(back.text_extracted) else 0.0
    score += barcode_boost

    if front.role != Role.FRONT or back.role != Role.BACK:
        strong_evidence = color_match and (prod_jac >= 0.4 or size_eq) and pkg_match
        score -= _ROLE_PENALTY_STRONG_EVIDENCE if strong_evidence else _ROLE_PENALTY

    if has_category_conflict(front.category_path, back.category_path):
        score -= _CATEGORY_CONFLICT_PENALTY

    return CandidateScore(
        back_url=back.url,
        score=round(score, 4),
        brand_flag=brand_flag,
        brand_match=brand_match,
        prod_jaccard=prod_jac,
        var_jaccard=var_jac,
        size_eq=size_eq,
        pkg_match=pkg_match,
        packaging=front.packaging_hint.value,
        packaging_boost=packaging_boost,
        cat_tail_overlap=cat_overlap,
        cosmetic_back_cue=cosmetic_cue,
        color_match=color_match,
        proximity_boost=proximity_boost,
        barcode_boost=barcode_boost,
    )


def candidate_sort_key(c: CandidateScore) -> tuple:
    """Descending score, then product Jaccard, brand, packaging; URL last."""
    return (-c.score, -c.prod_jaccard, not c.brand_match, not c.pkg_match, c.back_url)


def split_roles(features: dict[str, FeatureRow]) -> tuple[list[FeatureRow], list[FeatureRow]]:
    """Return (fronts, back-pool) where the back pool is every back / other row."""
    fronts = [f for f in features.values() if f.role == Role.FRONT]
    backs = [f for f in features.values() if f.role in (Role.BACK, Role.OTHER)]
    return fronts, backs


def unique_front_urls(fronts: list[FeatureRow]) -> set[str]:
    """Fronts whose brand + product signature appears exactly once."""
    counts = Counter(_front_signature(f) for f in fronts)
    return {f.url for f in fronts if counts[_front_signature(f)] == 1}


def build_candidates(
    features: dict[str, FeatureRow],
    max_candidates: int | None = None,
    settings: Settings | None = None,
) -> CandidateReport:
    """
    Score every front against the back pool and keep its top-K.

    Args:
        features:       URL → FeatureRow (after role promotion)
        max_candidates: K. Defaults to config MAX_CANDIDATES (4).
        settings:       Engine settings (defaults to cached settings)

    Returns:
        CandidateReport — only fronts with ≥1 surviving candidate appear.
    """
    if settings is None:
        settings = get_settings()
    if max_candidates is None:
        max_candidates = settings.max_candidates

    start = time.perf_counter()
    fronts, backs = split_roles(features)
    unique_fronts = unique_front_urls(fronts)

    log.info(
        "candidate_build_start",
        n_fronts=len(fronts),
        n_backs=len(backs),
        top_k=max_candidates,
    )

    candidates: dict[str, list[CandidateScore]] = {}
    for front in fronts:
        scored = [
            score_pair(front, back, front.url in unique_fronts, settings)
            for back in backs
            if back.url != front.url
        ]
        kept = [c for c in scored if c.score >= settings.min_pre_score]
        kept.sort(key=candidate_sort_key)
        if kept:
            candidates[front.url] = kept[:max_candidates]

    build_ms = (time.perf_counter() - start) * 1000.0
    warnings = _collect_warnings(candidates, build_ms, settings)

    log.info(
        "candidate_build_complete",
        fronts_with_candidates=len(candidates),
        total_candidates=sum(len(c) for c in candidates.values()),
        build_ms=round(build_ms, 1),
    )

    return CandidateReport(candidates=candidates, warnings=warnings, build_ms=build_ms)


def _collect_warnings(
    candidates: dict[str, list[CandidateScore]],
    build_ms: float,
    settings: Settings,
) -> list[str]:
    warnings: list[str] = []

    if build_ms > settings.max_candidate_build_ms:
        msg = (
            f"candidate building took {build_ms:.0f}ms "
            f"(budget {settings.max_candidate_build_ms}ms)"
        )
        warnings.append(msg)
        log.warning("candidate_build_slow", build_ms=round(build_ms, 1),
                    budget_ms=settings.max_candidate_build_ms)

    back_fronts: dict[str, list[str]] = defaultdict(list)
    for front_url, cands in candidates.items():
        for c in cands:
            back_fronts[c.back_url].append(front_url)

    n_fronts = len(candidates)
    for back_url, front_urls in back_fronts.items():
        share = len(front_urls) / n_fronts
        if (
            len(front_urls) >= settings.ambiguity_min_fronts
            and share > settings.ambiguity_front_fraction
        ):
            msg = (
                f"back={back_url} appears under {len(front_urls)} of "
                f"{n_fronts} fronts; candidate pool is ambiguous"
            )
            warnings.append(msg)
            log.warning("candidate_back_ambiguous", back=back_url,
                        fronts=len(front_urls), fronts_total=n_fronts)

    return warnings
