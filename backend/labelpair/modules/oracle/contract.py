# Copyright (c) 2026 Harsh Dwivedi
# Licensed under the Harsh Non-Commercial Attribution License (HNCAL) v1.0
# Commercial use requires written permission. See LICENSE for details.

"""
LabelPair — Oracle Reply Contract
Parses the oracle's raw text into a validated OracleReply and enforces the
closed-world contract against the request that produced it.

Fatal (OracleContractError):
  - pair for a front that was not sent (hallucinated / already auto-paired)
  - back outside that front's allowed list
  - back claimed twice (counting backs claimed by auto-pairing)
  - front decided twice (two pairs, or a pair and a singleton)
  - singleton for a front with candidates whose reason does not start
    with "declined despite candidates"
  - any sent front left without a decision

Soft downgrade (not fatal):
  - pair below ORACLE_MIN_MATCH_SCORE — dropped, front recorded as a
    "declined despite candidates (model-pair rejected: …)" singleton

Parse failures (OracleResponseError) include JSON errors and any shape
mismatch against OracleReply, after fence markup has been stripped.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field

from pydantic import ValidationError

from labelpair.config import Settings, get_settings
from labelpair.core.errors import OracleContractError, OracleResponseError
from labelpair.models.image import FeatureRow
from labelpair.models.oracle import OracleReply, OracleReplyPair
from labelpair.models.pairing import Pair, PairSource, Singleton, SingletonReason
from labelpair.utils.logger import get_logger
from labelpair.utils.text_utils import canonical_url

log = get_logger(__name__)

_FENCE_RE = re.compile(r"```(?:json|JSON)?")


@dataclass
class OracleDecision:
    """Validated, contract-checked oracle outcome."""
    pairs: list[Pair]
    singletons: list[Singleton]
    claimed_backs: frozenset[str]
    debug_summary: list[str] = field(default_factory=list)


def strip_fences(text: str) -> str:
    """Remove markdown code-fence markup wrapping a JSON reply."""
    return _FENCE_RE.sub("", text).strip()


def parse_reply(raw_text: str) -> OracleReply:
    """
    Parse raw oracle text into an OracleReply.

    Raises:
        OracleResponseError if the text is not valid JSON after fence
        stripping, or does not match the reply schema.
    """
    cleaned = strip_fences(raw_text or "")
    try:
        payload = json.loads(cleaned)
    except json.JSONDecodeError as exc:
        raise OracleResponseError(
            f"oracle reply is not valid JSON: {exc.msg} (first 200 chars: {cleaned[:200]!r})"
        ) from exc
    try:
        return OracleReply.model_validate(payload)
    except ValidationError as exc:
        raise OracleResponseError(
            f"oracle reply does not match the reply contract: {exc.error_count()} error(s)"
        ) from exc


def _default_confidence(match_score: float) -> float:
    return max(0.0, min(1.0, match_score / 3.5))


def _to_pair(p: OracleReplyPair, front: FeatureRow | None, back: FeatureRow | None) -> Pair:
    front_url, back_url = canonical_url(p.front_url), canonical_url(p.back_url)
    confidence = p.confidence if p.confidence is not None else _default_confidence(p.match_score)
    return Pair(
        front_url=front_url,
        back_url=back_url,
        match_score=round(p.match_score, 2),
        brand=p.brand or (front.brand if front else None) or "unknown",
        product=p.product or (front.product if front else None) or "",
        variant=p.variant or (front.variant if front else None),
        size_front=p.size_front or (front.size_canonical if front else None),
        size_back=p.size_back or (back.size_canonical if back else None),
        evidence=list(p.evidence) or ["MODEL-PAIRED"],
        confidence=confidence,
        source=PairSource.ORACLE,
    )


def validate_reply(
    reply: OracleReply,
    allowed: dict[str, list[str]],
    claimed_backs: frozenset[str],
    features: dict[str, FeatureRow],
    settings: Settings | None = None,
) -> OracleDecision:
    """
    Enforce the closed-world contract.

    Args:
        reply:         Parsed OracleReply
        allowed:       front url → allowed back urls (exactly what was sent)
        claimed_backs: Backs already claimed before the oracle ran
        features:      URL → FeatureRow (for display fields)
        settings:      Engine settings (defaults to cached settings)

    Returns:
        OracleDecision with accepted pairs, singletons (oracle-declined and
        soft-downgraded fronts) and the updated claimed-back set.

    Raises:
        OracleContractError naming the offending front / back.
    """
    if settings is None:
        settings = get_settings()
    floor = settings.oracle_min_match_score

    allowed_sets = {front: set(backs) for front, backs in allowed.items()}
    claimed = set(claimed_backs)
    decided: dict[str, str] = {}          # front → "pair" | "demoted" | "singleton"
    pairs: list[Pair] = []
    singletons: list[Singleton] = []

    for p in reply.pairs:
        front, back = canonical_url(p.front_url), canonical_url(p.back_url)

        backs = allowed_sets.get(front)
        if backs is None:
            raise OracleContractError(
                f"model returned pair for front not in input: front={front} "
                "(may have been auto-paired already)",
                front=front, back=back,
            )
        if back not in backs:
            raise OracleContractError(
                f"model chose back not in candidates: front={front} back={back}",
                front=front, back=back,
            )
        if front in decided:
            raise OracleContractError(
                f"model decided front twice: front={front}", front=front, back=back,
            )

        if p.match_score < floor:
            reason = (
                f"{SingletonReason.MODEL_PAIR_REJECTED_PREFIX}: "
                f"score={p.match_score:.2f} < {floor:.1f} threshold)"
            )
            singletons.append(Singleton(url=front, reason=reason))
            decided[front] = "demoted"
            log.info("oracle_pair_demoted", front=front, back=back,
                     score=p.match_score, floor=floor)
            continue

        if back in claimed:
            raise OracleContractError(
                f"model reused back: back={back} already claimed (front={front})",
                front=front, back=back,
            )

        claimed.add(back)
        decided[front] = "pair"
        pairs.append(_to_pair(p, features.get(front), features.get(back)))

    for s in reply.singletons:
        url = canonical_url(s.url)
        if url not in allowed_sets:
            log.warning("oracle_singleton_ignored", url=url, reason=s.reason)
            continue
        state = decided.get(url)
        if state == "demoted":
            continue
        if state is not None:
            raise OracleContractError(
                f"model decided front twice: front={url} is both paired and a singleton",
                front=url,
            )
        if allowed_sets[url] and not s.reason.lower().startswith(SingletonReason.DECLINED_PREFIX):
            raise OracleContractError(
                f'model claimed "no candidates" despite candidates: url={url} reason={s.reason}',
                front=url,
            )
        singletons.append(Singleton(url=url, reason=s.reason))
        decided[url] = "singleton"

    missing = [front for front in allowed if front not in decided]
    if missing:
        raise OracleContractError(
            f"contract violation: missing decision for front {missing[0]}"
            + (f" (+{len(missing) - 1} more)" if len(missing) > 1 else ""),
            front=missing[0],
        )

    log.info("oracle_contract_ok", pairs=len(pairs), singletons=len(singletons))

    return OracleDecision(
        pairs=pairs,
        singletons=singletons,
        claimed_backs=frozenset(claimed),
        debug_summary=list(reply.debug_summary),
    )
