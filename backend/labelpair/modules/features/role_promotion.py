# Copyright (c) 2026 Harsh Dwivedi
# Licensed under the Harsh Non-Commercial Attribution License (HNCAL) v1.0
# Commercial use requires written permission. See LICENSE for details.

"""
LabelPair — Lone-Front Role Promotion
The one documented role rewrite. A group holding exactly one front,
zero backs and exactly one "other" almost always had its back label
misclassified; that "other" is promoted to "back" before scoring.

Pure: returns a new map, input rows are untouched (FeatureRow is frozen).
"""

from __future__ import annotations

from collections import defaultdict

from labelpair.models.image import FeatureRow, Role
from labelpair.utils.logger import get_logger

log = get_logger(__name__)


def promote_lone_front_others(
    features: dict[str, FeatureRow],
) -> dict[str, FeatureRow]:
    """
    Apply the lone-front promotion to every upstream group.

    Args:
        features: URL → FeatureRow map from build_features

    Returns:
        New URL → FeatureRow map (same key order) with promoted rows replaced.
    """
    by_group: dict[str, list[FeatureRow]] = defaultdict(list)
    for row in features.values():
        if row.group_id:
            by_group[row.group_id].append(row)

    promoted: dict[str, FeatureRow] = {}
    for group_id, rows in by_group.items():
        fronts = [r for r in rows if r.role == Role.FRONT]
        backs = [r for r in rows if r.role == Role.BACK]
        others = [r for r in rows if r.role == Role.OTHER]
        if len(fronts) == 1 and not backs and len(others) == 1:
            other = others[0]
            promoted[other.url] = other.model_copy(update={"role": Role.BACK})
            log.info(
                "role_promoted",
                group_id=group_id,
                front=fronts[0].url,
                other=other.url,
            )

    return {url: promoted.get(url, row) for url, row in features.items()}
