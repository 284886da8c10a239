# Copyright (c) 2026 Harsh Dwivedi
# Licensed under the Harsh Non-Commercial Attribution License (HNCAL) v1.0
# Commercial use requires written permission. See LICENSE for details.

"""
LabelPair — Matching Module
Public API for the deterministic pairing strategies.
"""

from labelpair.modules.matching.auto_pair import (
    AUTO_PAIR_CONFIDENCE,
    AUTO_PAIR_HAIR_CONFIDENCE,
    AutoPairOutcome,
    auto_pair,
    should_auto_pair,
    should_auto_pair_hair,
)
from labelpair.modules.matching.pair_factory import (
    build_pair,
    candidate_evidence,
    score_gap,
)
from labelpair.modules.matching.two_shot_solver import (
    TWO_SHOT_CONFIDENCE,
    build_score_matrix,
    is_two_shot,
    solve_two_shot,
)

__all__ = [
    # Auto-pair
    "AUTO_PAIR_CONFIDENCE",
    "AUTO_PAIR_HAIR_CONFIDENCE",
    "AutoPairOutcome",
    "auto_pair",
    "should_auto_pair",
    "should_auto_pair_hair",
    # Pair construction
    "build_pair",
    "candidate_evidence",
    "score_gap",
    # Two-shot Hungarian solver
    "TWO_SHOT_CONFIDENCE",
    "build_score_matrix",
    "is_two_shot",
    "solve_two_shot",
]
