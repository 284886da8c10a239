# Copyright (c) 2026 Harsh Dwivedi
# Licensed under the Harsh Non-Commercial Attribution License (HNCAL) v1.0
# Commercial use requires written permission. See LICENSE for details.

"""
LabelPair — Grouping Module
Public API for product assembly: extras attachment and singleton resolution.
"""

from labelpair.modules.grouping.extras_grouper import (
    ExtrasOutcome,
    attach_extras,
    build_products,
    make_product_id,
    score_extra,
)
from labelpair.modules.grouping.singleton_resolver import (
    SOLO_PRODUCT_CONFIDENCE,
    SingletonOutcome,
    resolve_singletons,
)

__all__ = [
    # Extras
    "ExtrasOutcome",
    "attach_extras",
    "build_products",
    "make_product_id",
    "score_extra",
    # Singletons
    "SOLO_PRODUCT_CONFIDENCE",
    "SingletonOutcome",
    "resolve_singletons",
]
