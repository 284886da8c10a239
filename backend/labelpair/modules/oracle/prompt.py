# Copyright (c) 2026 Harsh Dwivedi
# Licensed under the Harsh Non-Commercial Attribution License (HNCAL) v1.0
# Commercial use requires written permission. See LICENSE for details.

"""
LabelPair — Tie-Break Prompt Text
Instructions sent with every oracle request. The closed-world rules here
mirror the checks in contract.py; the acceptance floor is filled in from
Settings.oracle_min_match_score, the same floor contract.py demotes at.
"""

from string import Template

SYSTEM_PROMPT = (
    "You are a front-to-back product image matcher. Pair a FRONT image with a "
    "BACK image only when both show the same product. Use only the JSON you are "
    "given; do not re-interpret images or use outside knowledge. Be "
    "deterministic and follow the acceptance rules exactly."
)

USER_PROMPT = """
TASK:
You receive INPUT (per-image records for the fronts still undecided and their
candidate backs) followed by HINTS:
  {
    "featuresByUrl": { "<url>": { brandNorm, productTokens, variantTokens,
                                  sizeCanonical, packagingHint, categoryTail,
                                  colorKey, role, ... } },
    "candidatesByFront": { "<frontUrl>": ["<backUrl>", ...] }
  }

For every front in candidatesByFront, compute a matchScore for each allowed
back from packaging, dominant colour, product / variant token overlap, size,
category and shared label text. Penalise disagreeing known brands.

RULES (hard requirements):
- Choose at most one back per front, and only from candidatesByFront[frontUrl].
- A back may belong to only one front.
- Accept the best back if matchScore >= $min_match_score and it beats the runner-up by >= 0.8.
- If two backs are within 0.5 of the best score, do not pick; decline.
- Every front in candidatesByFront must appear exactly once: either in pairs,
  or in singletons with a reason that starts with "declined despite candidates"
  followed by the top-3 candidate scores.
- Never report "no candidates" for a front that has candidates.
- Use the urls exactly as given.

Output STRICT JSON only:
{
  "pairs": [
    {
      "frontUrl": "<url>",
      "backUrl": "<url>",
      "matchScore": 0.00,
      "brand": "<brand>",
      "product": "<product>",
      "variant": "<variant or null>",
      "sizeFront": "<size or null>",
      "sizeBack": "<size or null>",
      "evidence": ["<short reason>", "..."],
      "confidence": 0.00
    }
  ],
  "singletons": [
    { "url": "<front url>", "reason": "declined despite candidates: ..." }
  ],
  "debugSummary": ["front=<url> candidate=<backUrl> matchScore=<x.xx>"]
}

confidence = min(1, matchScore / 3.5), capped at 0.6 when brands disagree.
""".strip()


def render_user_prompt(min_match_score: float) -> str:
    """USER_PROMPT with the acceptance floor substituted."""
    return Template(USER_PROMPT).substitute(min_match_score=f"{min_match_score:.2f}")
