# Copyright (c) 2026 Harsh Dwivedi
# Licensed under the Harsh Non-Commercial Attribution License (HNCAL) v1.0
# Commercial use requires written permission. See LICENSE for details.

"""
LabelPair — Candidate Scoring Module
Public API for front → back candidate scoring.
"""

from labelpair.modules.candidates.scorer import (
    CandidateReport,
    build_candidates,
    candidate_sort_key,
    has_cosmetic_back_cue,
    score_pair,
    split_roles,
    unique_front_urls,
)

__all__ = [
    "CandidateReport",
    "build_candidates",
    "candidate_sort_key",
    "has_cosmetic_back_cue",
    "score_pair",
    "split_roles",
    "unique_front_urls",
]
