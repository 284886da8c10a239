# Copyright (c) 2026 Harsh Dwivedi
# Licensed under the Harsh Non-Commercial Attribution License (HNCAL) v1.0
# Commercial use requires written permission. See LICENSE for details.

"""
LabelPair — Run Metrics
Builds the single PairingMetrics summary emitted at the end of each run.
"""

from __future__ import annotations

from collections import Counter

from labelpair.config import Settings
from labelpair.models.image import FeatureRow, Role
from labelpair.models.pairing import (
    BrandPairRate,
    Pair,
    PairingMetrics,
    PairSource,
    Product,
    Singleton,
    SingletonReason,
)


def reason_bucket(reason: str) -> str:
    """Histogram key for a singleton reason."""
    lowered = reason.lower()
    if lowered.startswith(SingletonReason.DECLINED_PREFIX):
        return "declined_despite_candidates"
    if reason == SingletonReason.TIEBREAK_DISABLED:
        return "tiebreak_disabled"
    if reason == SingletonReason.CANDIDATES_CLAIMED:
        return "candidates_claimed"
    if reason == SingletonReason.NO_MATCH:
        return "no_match"
    return "other"


def _by_brand(features: dict[str, FeatureRow], pairs: list[Pair]) -> dict[str, BrandPairRate]:
    paired_fronts = {p.front_url for p in pairs}
    fronts: Counter[str] = Counter()
    paired: Counter[str] = Counter()
    for row in features.values():
        if row.role != Role.FRONT:
            continue
        brand = row.brand_norm or "unknown"
        fronts[brand] += 1
        if row.url in paired_fronts:
            paired[brand] += 1
    return {
        brand: BrandPairRate(
            fronts=n,
            paired=paired[brand],
            pair_rate=round(paired[brand] / n, 3),
        )
        for brand, n in sorted(fronts.items())
    }


def build_metrics(
    strategy: str,
    features: dict[str, FeatureRow],
    pairs: list[Pair],
    products: list[Product],
    singletons: list[Singleton],
    settings: Settings,
    duration_ms: float,
    fronts_with_candidates: int = 0,
    candidates: int = 0,
) -> PairingMetrics:
    sources = Counter(p.source for p in pairs)
    return PairingMetrics(
        strategy=strategy,
        images=len(features),
        fronts=sum(1 for f in features.values() if f.role == Role.FRONT),
        backs=sum(1 for f in features.values() if f.role == Role.BACK),
        fronts_with_candidates=fronts_with_candidates,
        candidates=candidates,
        auto_pairs=sources[PairSource.AUTO] + sources[PairSource.AUTO_HAIR],
        oracle_pairs=sources[PairSource.ORACLE],
        solver_pairs=sources[PairSource.TWO_SHOT],
        singletons=len(singletons),
        products=len(products),
        extras=sum(len(p.extras) for p in products),
        by_brand=_by_brand(features, pairs),
        reasons=dict(sorted(Counter(reason_bucket(s.reason) for s in singletons).items())),
        thresholds=settings.thresholds_snapshot(),
        duration_ms=round(duration_ms, 1),
    )


def format_metrics_log(m: PairingMetrics) -> str:
    """Single-line summary for operators grepping plain-text logs."""
    return (
        f"METRICS strategy={m.strategy} images={m.images} fronts={m.fronts} "
        f"backs={m.backs} candidates={m.candidates} autoPairs={m.auto_pairs} "
        f"modelPairs={m.oracle_pairs} solverPairs={m.solver_pairs} "
        f"singletons={m.singletons} products={m.products} extras={m.extras} "
        f"durationMs={m.duration_ms}"
    )
