# Copyright (c) 2026 Harsh Dwivedi
# Licensed under the Harsh Non-Commercial Attribution License (HNCAL) v1.0
# Commercial use requires written permission. See LICENSE for details.

"""
LabelPair — Pairing Orchestrator
Wires all stages in dependency order for one batch of images.

Execution order:
  1. FeatureRow build
  2. Role promotion (lone-front groups)
  3. Strategy selection
     TWO_SHOT   → Hungarian solver → products (no extras, no singletons)
     HEURISTIC  → candidates → auto-pair → oracle tie-break
                  → extras grouping → singleton resolution
  4. Accounting check + metrics

The oracle call is the only suspension point. Claimed backs travel as
frozensets in each stage's return value, so concurrent runs in one
process share no state. Any fatal error propagates; there is no partial
result.
"""

from __future__ import annotations

import time
import traceback
import uuid
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, Mapping, Optional

from structlog.contextvars import bound_contextvars

from labelpair.config import Settings, get_settings
from labelpair.core.errors import AccountingError
from labelpair.core.metrics import build_metrics, format_metrics_log
from labelpair.models.image import FeatureRow, ImageRecord, Role
from labelpair.models.pairing import (
    Pair,
    PairingMetrics,
    PairingResult,
    Product,
    Singleton,
    SingletonReason,
)
from labelpair.modules.candidates import build_candidates
from labelpair.modules.features import build_features, promote_lone_front_others
from labelpair.modules.grouping import attach_extras, build_products, resolve_singletons
from labelpair.modules.matching import auto_pair, is_two_shot, solve_two_shot
from labelpair.modules.oracle import OracleClient, resolve_ties
from labelpair.utils.logger import get_logger

log = get_logger(__name__)


class PairingStrategy(str, Enum):
    TWO_SHOT = "two_shot"
    HEURISTIC = "heuristic"


@dataclass
class PairingRun:
    """Everything one run produces: the wire result plus operator detail."""
    result: PairingResult
    metrics: PairingMetrics
    oracle_raw_text: Optional[str] = None
    warnings: list[str] = field(default_factory=list)


@dataclass
class _StageOutput:
    pairs: list[Pair]
    products: list[Product]
    singletons: list[Singleton]
    debug_summary: list[str] = field(default_factory=list)
    oracle_raw_text: Optional[str] = None
    fronts_with_candidates: int = 0
    candidates: int = 0


def select_strategy(features: dict[str, FeatureRow]) -> PairingStrategy:
    """Structural predicate on the promoted feature map."""
    return PairingStrategy.TWO_SHOT if is_two_shot(features) else PairingStrategy.HEURISTIC


async def run_pairing(
    records: Iterable[ImageRecord | Mapping[str, Any]],
    *,
    oracle: OracleClient | None = None,
    settings: Settings | None = None,
    run_id: str | None = None,
) -> PairingRun:
    """
    Pair one batch of classified images.

    Args:
        records:  Upstream per-image records (models or camelCase dicts)
        oracle:   Tie-break transport; created from settings only if needed
        settings: Engine settings (defaults to cached settings)
        run_id:   Correlation id bound into every log entry of the run

    Returns:
        PairingRun with the fully-resolved PairingResult.

    Raises:
        OracleContractError, OracleResponseError, OracleUnavailableError,
        AccountingError
    """
    if settings is None:
        settings = get_settings()
    run_id = run_id or uuid.uuid4().hex[:12]

    with bound_contextvars(run_id=run_id):
        try:
            return await _run(records, oracle, settings)
        except Exception as exc:
            log.error(
                "pairing_fatal_error",
                error=f"{type(exc).__name__}: {exc}",
                traceback=traceback.format_exc(),
            )
            raise


async def _run(
    records: Iterable[ImageRecord | Mapping[str, Any]],
    oracle: OracleClient | None,
    settings: Settings,
) -> PairingRun:
    start = time.perf_counter()

    # ── Stage 1–2: Features + role promotion ─────────────────────────────────
    built = build_features(records)
    features = promote_lone_front_others(built.features)
    warnings = list(built.warnings)

    n_fronts = sum(1 for f in features.values() if f.role == Role.FRONT)
    strategy = select_strategy(features)
    log.info("pairing_start", images=len(features), fronts=n_fronts, strategy=strategy.value)

    # ── Stage 3: Strategy ────────────────────────────────────────────────────
    if n_fronts == 0:
        out = _StageOutput(pairs=[], products=[], singletons=[])
        if features:
            out.debug_summary.append(
                f"no front images: {len(features)} image(s) left unpaired"
            )
    elif strategy is PairingStrategy.TWO_SHOT:
        out = _run_two_shot(features, settings)
    else:
        out = await _run_heuristic(features, built.records, oracle, settings, warnings)

    if n_fronts:
        check_accounting(features, out.pairs, out.products, out.singletons)

    result = PairingResult(
        engine_version=settings.engine_version,
        pairs=out.pairs,
        products=out.products,
        singletons=out.singletons,
        debug_summary=out.debug_summary + warnings,
    )

    # ── Stage 4: Metrics ─────────────────────────────────────────────────────
    duration_ms = (time.perf_counter() - start) * 1000.0
    metrics = build_metrics(
        strategy=strategy.value,
        features=features,
        pairs=out.pairs,
        products=out.products,
        singletons=out.singletons,
        settings=settings,
        duration_ms=duration_ms,
        fronts_with_candidates=out.fronts_with_candidates,
        candidates=out.candidates,
    )
    log.info("pairing_metrics", summary=format_metrics_log(metrics), **metrics.model_dump())

    return PairingRun(
        result=result,
        metrics=metrics,
        oracle_raw_text=out.oracle_raw_text,
        warnings=warnings,
    )


def _run_two_shot(features: dict[str, FeatureRow], settings: Settings) -> _StageOutput:
    pairs = solve_two_shot(features, settings)
    products = build_products(pairs, features)
    n_fronts = len(pairs)
    return _StageOutput(
        pairs=pairs,
        products=products,
        singletons=[],
        debug_summary=[f"two-shot batch: {n_fronts} front(s) solved by global assignment"],
        fronts_with_candidates=n_fronts,
        candidates=n_fronts * n_fronts,
    )


async def _run_heuristic(
    features: dict[str, FeatureRow],
    records: dict[str, ImageRecord],
    oracle: OracleClient | None,
    settings: Settings,
    warnings: list[str],
) -> _StageOutput:
    report = build_candidates(features, settings=settings)
    warnings.extend(report.warnings)

    decided = auto_pair(features, report.candidates, settings)
    ties = await resolve_ties(
        decided.undecided,
        decided.claimed_backs,
        features,
        records,
        oracle=oracle,
        settings=settings,
    )

    pairs = sorted(decided.pairs + ties.pairs, key=lambda p: p.front_url)
    terminal = list(ties.singletons) + [
        Singleton(url=url, reason=SingletonReason.CANDIDATES_CLAIMED)
        for url in decided.exhausted
    ]

    taken = {p.front_url for p in pairs} | {p.back_url for p in pairs}
    taken |= {s.url for s in terminal}

    # Fronts with candidates are all decided by now; remaining fronts had none
    leftover_fronts = [
        url for url, row in features.items()
        if row.role == Role.FRONT and url not in taken
    ]
    eligible = [
        url for url, row in features.items()
        if row.role != Role.FRONT and url not in taken
    ]

    extras = attach_extras(build_products(pairs, features), eligible, features, settings)
    resolved = resolve_singletons(
        extras.unattached + leftover_fronts,
        extras.products,
        features,
        settings,
    )

    singletons = sorted(terminal + resolved.singletons, key=lambda s: s.url)

    return _StageOutput(
        pairs=pairs,
        products=resolved.products,
        singletons=singletons,
        debug_summary=list(ties.debug_summary),
        oracle_raw_text=ties.raw_text,
        fronts_with_candidates=len(report.candidates),
        candidates=sum(len(c) for c in report.candidates.values()),
    )


def check_accounting(
    features: dict[str, FeatureRow],
    pairs: list[Pair],
    products: list[Product],
    singletons: list[Singleton],
) -> None:
    """
    Every featured image appears exactly once across pair members, product
    extras, solo-product fronts and singletons, and every singleton carries
    a reason from SingletonReason.

    Raises:
        AccountingError listing the missing, duplicated or unknown URLs, or
        the singletons whose reason is unrecognised.
    """
    seen: Counter[str] = Counter()
    for p in pairs:
        seen[p.front_url] += 1
        seen[p.back_url] += 1
    for product in products:
        seen.update(product.extras)
        if product.back_url is None:
            seen[product.front_url] += 1
    seen.update(s.url for s in singletons)

    missing = sorted(set(features) - set(seen))
    duplicated = sorted(url for url, n in seen.items() if n > 1)
    unknown = sorted(set(seen) - set(features))
    if missing or duplicated or unknown:
        log.error("accounting_failed", missing=missing[:10], duplicated=duplicated[:10],
                  unknown=unknown[:10])
        raise AccountingError(
            f"image accounting mismatch: missing={missing[:5]} "
            f"duplicated={duplicated[:5]} unknown={unknown[:5]}"
        )

    unexplained = sorted(s.url for s in singletons if not SingletonReason.is_recognized(s.reason))
    if unexplained:
        log.error("accounting_failed", unexplained=unexplained[:10])
        raise AccountingError(f"unrecognised singleton reason: urls={unexplained[:5]}")
