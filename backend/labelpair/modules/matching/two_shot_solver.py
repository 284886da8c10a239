# Copyright (c) 2026 Harsh Dwivedi
# Licensed under the Harsh Non-Commercial Attribution License (HNCAL) v1.0
# Commercial use requires written permission. See LICENSE for details.

"""
LabelPair — Two-Shot Global Solver
For "two-shot" batches (exactly one front and one back per product, no
side / other shots) pairing is a complete bipartite assignment problem.
Solved exactly with the Hungarian algorithm
(scipy.optimize.linear_sum_assignment, maximize=True) on the full,
unpruned front × back score matrix.

Greedy assignment collapses here: two fronts sharing a brand fight over
the same back and the loser is forced onto a poor match. Hungarian
maximises total score and guarantees a 1:1 bijection, so every image is
consumed exactly once and no singletons or extras exist.

Scores use the same sub-signal formula as the candidate scorer (no
min-score floor, no top-K pruning). Rows and columns are ordered by URL
so equal-score ties resolve identically run to run.
"""

from __future__ import annotations

import numpy as np
from scipy.optimize import linear_sum_assignment

from labelpair.config import Settings, get_settings
from labelpair.models.image import FeatureRow, Role
from labelpair.models.pairing import CandidateScore, Pair, PairSource
from labelpair.modules.candidates.scorer import score_pair, unique_front_urls
from labelpair.modules.matching.pair_factory import build_pair, candidate_evidence
from labelpair.utils.logger import get_logger

log = get_logger(__name__)

TWO_SHOT_CONFIDENCE = 0.98


def is_two_shot(features: dict[str, FeatureRow]) -> bool:
    """
    True when the batch holds N ≥ 1 fronts, exactly N backs and nothing else.
    """
    n_front = sum(1 for f in features.values() if f.role == Role.FRONT)
    n_back = sum(1 for f in features.values() if f.role == Role.BACK)
    return n_front > 0 and n_front == n_back and n_front + n_back == len(features)


def build_score_matrix(
    fronts: list[FeatureRow],
    backs: list[FeatureRow],
    settings: Settings | None = None,
) -> tuple[np.ndarray, list[list[CandidateScore]]]:
    """
    Score every front against every back.

    Returns:
        (score_matrix, cells)
        score_matrix: (n_fronts, n_backs) float64 — higher = better match
        cells:        CandidateScore per (row, col) for evidence reporting
    """
    if settings is None:
        settings = get_settings()

    unique = unique_front_urls(fronts)
    cells = [
        [score_pair(front, back, front.url in unique, settings) for back in backs]
        for front in fronts
    ]
    matrix = np.array(
        [[c.score for c in row] for row in cells],
        dtype=np.float64,
    ).reshape(len(fronts), len(backs))
    return matrix, cells


def solve_two_shot(
    features: dict[str, FeatureRow],
    settings: Settings | None = None,
) -> list[Pair]:
    """
    Run maximum-weight bipartite matching over all fronts and backs.

    Args:
        features: URL → FeatureRow for a two-shot batch (see is_two_shot)
        settings: Engine settings (defaults to cached settings)

    Returns:
        One Pair per front, ordered by front URL.

    Raises:
        ValueError if the batch is not two-shot shaped.
    """
    if not is_two_shot(features):
        raise ValueError("solve_two_shot requires equal front/back counts and no other roles")

    fronts = sorted((f for f in features.values() if f.role == Role.FRONT), key=lambda f: f.url)
    backs = sorted((f for f in features.values() if f.role == Role.BACK), key=lambda f: f.url)

    matrix, cells = build_score_matrix(fronts, backs, settings)

    log.info("two_shot_start", n_fronts=len(fronts), n_backs=len(backs),
             score_matrix_shape=matrix.shape)

    row_ind, col_ind = linear_sum_assignment(matrix, maximize=True)

    pairs: list[Pair] = []
    for row, col in zip(row_ind, col_ind):
        cand = cells[row][col]
        pairs.append(build_pair(
            fronts[row],
            backs[col],
            cand,
            evidence=candidate_evidence("GLOBAL-PAIRED", cand),
            confidence=TWO_SHOT_CONFIDENCE,
            source=PairSource.TWO_SHOT,
        ))

    pairs.sort(key=lambda p: p.front_url)

    log.info(
        "two_shot_complete",
        pairs=len(pairs),
        total_score=round(float(matrix[row_ind, col_ind].sum()), 2),
    )

    return pairs
