# Copyright (c) 2026 Harsh Dwivedi
# Licensed under the Harsh Non-Commercial Attribution License (HNCAL) v1.0
# Commercial use requires written permission. See LICENSE for details.

"""
LabelPair — Auto-Pair Decider
Accepts slam-dunk pairs without consulting the oracle.

Pass 1 (general):   best ≥ AUTO_PAIR_SCORE and (best − runnerUp) ≥ AUTO_PAIR_GAP
                    → confidence 0.95
Pass 2 (hair/cosmetic): lower floor for fronts in hair / cosmetic / skin
                    categories whose best back carries INCI or hair-use
                    text on distinctive packaging → confidence 0.90

Processing order: fronts sorted by best score descending, then front URL.
The strongest fronts claim their backs first; a claimed back is removed
from every other front's pool (first claim wins).

Ranking for best / runnerUp uses each front's full candidate list, so a
front whose best back was claimed elsewhere is never silently moved to
its second choice — it goes to the tie-break stage instead.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from labelpair.config import Settings, get_settings
from labelpair.models.image import FeatureRow, PackagingHint
from labelpair.models.pairing import BrandFlag, CandidateScore, Pair, PairSource
from labelpair.modules.matching.pair_factory import (
    build_pair,
    candidate_evidence,
    score_gap,
)
from labelpair.utils.logger import get_logger
from labelpair.utils.text_utils import is_hair_cosmetic

log = get_logger(__name__)

AUTO_PAIR_CONFIDENCE = 0.95
AUTO_PAIR_HAIR_CONFIDENCE = 0.90

_HAIR_STRONG_PACKAGING = frozenset({PackagingHint.DROPPER_BOTTLE.value, PackagingHint.BOTTLE.value})


@dataclass
class AutoPairOutcome:
    """Output of auto_pair — accepted pairs and the still-undecided fronts."""
    pairs: list[Pair]
    # front url → candidates with claimed backs removed (never empty)
    undecided: dict[str, list[CandidateScore]]
    # fronts that had candidates, all of which were claimed by other fronts
    exhausted: list[str] = field(default_factory=list)
    claimed_backs: frozenset[str] = frozenset()


def should_auto_pair(
    best: CandidateScore,
    runner_up: CandidateScore | None,
    settings: Settings,
) -> bool:
    return (
        best.score >= settings.auto_pair_score
        and score_gap(best, runner_up) >= settings.auto_pair_gap
    )


def should_auto_pair_hair(
    top: CandidateScore,
    second: CandidateScore | None,
    settings: Settings,
) -> bool:
    """
    Hair / cosmetic backs are mostly ingredient lists with little brand or
    product text, so they rarely clear the general floor. Accept on
    distinctive packaging + INCI cue + brand agreement instead.
    """
    pkg_strong = top.packaging in _HAIR_STRONG_PACKAGING
    # Small bottles often hide the size; distinctive packaging excuses it
    size_ok = top.size_eq or pkg_strong
    return (
        top.score >= settings.auto_pair_hair_score
        and score_gap(top, second) >= settings.auto_pair_hair_gap
        and pkg_strong
        and top.cosmetic_back_cue
        and size_ok
        and top.brand_flag in (BrandFlag.EQUAL, BrandFlag.UNKNOWN_RESCUE)
    )


def _processing_order(candidates: dict[str, list[CandidateScore]]) -> list[str]:
    return sorted(candidates, key=lambda url: (-candidates[url][0].score, url))


def auto_pair(
    features: dict[str, FeatureRow],
    candidates: dict[str, list[CandidateScore]],
    settings: Settings | None = None,
) -> AutoPairOutcome:
    """
    Run both auto-pair passes.

    Args:
        features:   URL → FeatureRow (after role promotion)
        candidates: front url → ranked candidates from build_candidates
        settings:   Engine settings (defaults to cached settings)

    Returns:
        AutoPairOutcome with pairs, claim-filtered undecided fronts and the
        frozen set of claimed backs.
    """
    if settings is None:
        settings = get_settings()

    order = _processing_order({u: c for u, c in candidates.items() if c})
    pairs: list[Pair] = []
    claimed: set[str] = set()
    paired_fronts: set[str] = set()

    # ── Pass 1: general ───────────────────────────────────────────────────
    for front_url in order:
        cands = candidates[front_url]
        best = cands[0]
        runner_up = cands[1] if len(cands) > 1 else None
        if best.back_url in claimed or not should_auto_pair(best, runner_up, settings):
            continue

        gap = score_gap(best, runner_up)
        pair = build_pair(
            features[front_url],
            features[best.back_url],
            best,
            evidence=candidate_evidence("AUTO-PAIRED", best, gap),
            confidence=AUTO_PAIR_CONFIDENCE,
            source=PairSource.AUTO,
        )
        pairs.append(pair)
        claimed.add(best.back_url)
        paired_fronts.add(front_url)
        log.info("autopair_accepted", front=front_url, back=best.back_url,
                 score=best.score, gap=gap, brand=best.brand_flag.value)

    # ── Pass 2: hair / cosmetic ───────────────────────────────────────────
    for front_url in order:
        if front_url in paired_fronts:
            continue
        front = features[front_url]
        if not is_hair_cosmetic(front.category_path):
            continue

        pool = [c for c in candidates[front_url] if c.score >= settings.hair_min_pre_score]
        if not pool:
            continue
        top = pool[0]
        second = pool[1] if len(pool) > 1 else None
        if top.back_url in claimed or not should_auto_pair_hair(top, second, settings):
            continue

        gap = score_gap(top, second)
        pair = build_pair(
            front,
            features[top.back_url],
            top,
            evidence=candidate_evidence("AUTO-PAIRED[hair]", top, gap),
            confidence=AUTO_PAIR_HAIR_CONFIDENCE,
            source=PairSource.AUTO_HAIR,
        )
        pairs.append(pair)
        claimed.add(top.back_url)
        paired_fronts.add(front_url)
        log.info("autopair_hair_accepted", front=front_url, back=top.back_url,
                 score=top.score, gap=gap, packaging=top.packaging)

    # ── Undecided fronts with claim-filtered pools ────────────────────────
    undecided: dict[str, list[CandidateScore]] = {}
    exhausted: list[str] = []
    for front_url in order:
        if front_url in paired_fronts:
            continue
        remaining = [c for c in candidates[front_url] if c.back_url not in claimed]
        if remaining:
            undecided[front_url] = remaining
        else:
            exhausted.append(front_url)

    log.info(
        "autopair_complete",
        auto_pairs=len(pairs),
        undecided=len(undecided),
        exhausted=len(exhausted),
    )

    return AutoPairOutcome(
        pairs=pairs,
        undecided=undecided,
        exhausted=exhausted,
        claimed_backs=frozenset(claimed),
    )
