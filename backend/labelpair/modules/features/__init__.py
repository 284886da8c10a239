# Copyright (c) 2026 Harsh Dwivedi
# Licensed under the Harsh Non-Commercial Attribution License (HNCAL) v1.0
# Commercial use requires written permission. See LICENSE for details.

"""
LabelPair — Feature Module
Public API for the FeatureRow builder stage.
"""

from labelpair.modules.features.feature_builder import (
    FeatureBuildResult,
    build_feature_row,
    build_features,
    records_from_analysis,
)
from labelpair.modules.features.role_promotion import promote_lone_front_others

__all__ = [
    # Builder
    "FeatureBuildResult",
    "build_feature_row",
    "build_features",
    "records_from_analysis",
    # Role promotion
    "promote_lone_front_others",
]
