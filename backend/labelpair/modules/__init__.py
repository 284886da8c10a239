# Copyright (c) 2026 Harsh Dwivedi
# Licensed under the Harsh Non-Commercial Attribution License (HNCAL) v1.0
# Commercial use requires written permission. See LICENSE for details.

"""
LabelPair — Pipeline Stages
One subpackage per stage, leaves first:

  features    FeatureRow build + role promotion
  candidates  front → back candidate scoring
  matching    auto-pair decider, two-shot solver
  oracle      tie-break oracle adapter
  grouping    extras grouper, singleton resolver
"""
