# Copyright (c) 2026 Harsh Dwivedi
# Licensed under the Harsh Non-Commercial Attribution License (HNCAL) v1.0
# Commercial use requires written permission. See LICENSE for details.

"""
LabelPair — Tie-Break Resolution
Sends every still-undecided front to the oracle in ONE request and turns
the validated reply into pairs and singletons.

Request layout (user message):
    USER_PROMPT (acceptance floor = oracle_min_match_score)
    INPUT:  records for the undecided fronts and their allowed backs
    HINTS:  {"featuresByUrl": …, "candidatesByFront": …}

The oracle's choice universe is closed: candidatesByFront lists the
claim-filtered backs from the auto-pair stage, and contract.py rejects
anything outside it.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field

from labelpair.config import Settings, get_settings
from labelpair.models.image import FeatureRow, ImageRecord
from labelpair.models.oracle import OracleHints, OracleRequest
from labelpair.models.pairing import CandidateScore, Pair, Singleton, SingletonReason
from labelpair.modules.oracle.client import OpenAIOracleClient, OracleClient
from labelpair.modules.oracle.contract import parse_reply, validate_reply
from labelpair.modules.oracle.prompt import SYSTEM_PROMPT, render_user_prompt
from labelpair.utils.logger import get_logger

log = get_logger(__name__)


@dataclass
class TieBreakOutcome:
    pairs: list[Pair] = field(default_factory=list)
    singletons: list[Singleton] = field(default_factory=list)
    claimed_backs: frozenset[str] = frozenset()
    debug_summary: list[str] = field(default_factory=list)
    raw_text: str | None = None
    consulted: bool = False


def allowed_backs(undecided: dict[str, list[CandidateScore]]) -> dict[str, list[str]]:
    """front url → ranked allowed back urls."""
    return {front: [c.back_url for c in cands] for front, cands in undecided.items()}


def build_oracle_request(
    undecided: dict[str, list[CandidateScore]],
    features: dict[str, FeatureRow],
    records: dict[str, ImageRecord],
    settings: Settings | None = None,
) -> OracleRequest:
    """
    Build the single closed-world request for this run.

    Only undecided fronts and their allowed backs are included, both in
    INPUT and in featuresByUrl.
    """
    if settings is None:
        settings = get_settings()
    allowed = allowed_backs(undecided)
    urls: list[str] = []
    for front, backs in allowed.items():
        for url in (front, *backs):
            if url not in urls:
                urls.append(url)

    input_rows = []
    for url in urls:
        record = records.get(url)
        if record is None:
            continue
        row = record.model_dump(by_alias=True, mode="json", exclude_none=True)
        row["url"] = url
        row["role"] = features[url].role.value
        input_rows.append(row)

    hints = OracleHints(
        features_by_url={url: features[url] for url in urls if url in features},
        candidates_by_front=allowed,
    )
    hints_json = hints.model_dump(by_alias=True, mode="json")

    user = "\n\n".join([
        render_user_prompt(settings.oracle_min_match_score),
        "INPUT:\n" + json.dumps(input_rows, indent=2),
        "HINTS:\n" + json.dumps(hints_json, indent=2),
    ])
    return OracleRequest(system=SYSTEM_PROMPT, user=user, hints=hints)


def _disabled_outcome(
    undecided: dict[str, list[CandidateScore]],
    claimed_backs: frozenset[str],
) -> TieBreakOutcome:
    singletons = [
        Singleton(url=front, reason=SingletonReason.TIEBREAK_DISABLED)
        for front in sorted(undecided)
    ]
    log.info("tiebreak_disabled", fronts=len(singletons))
    return TieBreakOutcome(
        singletons=singletons,
        claimed_backs=claimed_backs,
        debug_summary=[f"tiebreak disabled: {len(singletons)} undecided front(s) left as singletons"],
    )


async def resolve_ties(
    undecided: dict[str, list[CandidateScore]],
    claimed_backs: frozenset[str],
    features: dict[str, FeatureRow],
    records: dict[str, ImageRecord],
    oracle: OracleClient | None = None,
    settings: Settings | None = None,
) -> TieBreakOutcome:
    """
    Decide every undecided front, consulting the oracle at most once.

    Args:
        undecided:     front url → claim-filtered candidates (non-empty)
        claimed_backs: Backs already claimed by auto-pairing
        features:      URL → FeatureRow
        records:       URL → source ImageRecord (INPUT block)
        oracle:        Transport; an OpenAIOracleClient is created when None
        settings:      Engine settings (defaults to cached settings)

    Returns:
        TieBreakOutcome. With nothing undecided the oracle is not called.

    Raises:
        OracleUnavailableError, OracleResponseError, OracleContractError
    """
    if settings is None:
        settings = get_settings()

    if not undecided:
        return TieBreakOutcome(claimed_backs=claimed_backs)

    if settings.disable_tiebreak:
        return _disabled_outcome(undecided, claimed_backs)

    owned: OpenAIOracleClient | None = None
    if oracle is None:
        oracle = owned = OpenAIOracleClient(settings)

    request = build_oracle_request(undecided, features, records, settings)
    log.info(
        "tiebreak_start",
        fronts=len(request.hints.candidates_by_front),
        images=len(request.hints.features_by_url),
    )

    try:
        raw_text = await oracle.complete(request.system, request.user)
    finally:
        if owned is not None:
            await owned.aclose()

    try:
        reply = parse_reply(raw_text)
        decision = validate_reply(
            reply,
            allowed=request.hints.candidates_by_front,
            claimed_backs=claimed_backs,
            features=features,
            settings=settings,
        )
    except Exception as exc:
        log.error("tiebreak_failed", error=f"{type(exc).__name__}: {exc}")
        raise

    log.info(
        "tiebreak_complete",
        oracle_pairs=len(decision.pairs),
        singletons=len(decision.singletons),
    )

    return TieBreakOutcome(
        pairs=decision.pairs,
        singletons=decision.singletons,
        claimed_backs=decision.claimed_backs,
        debug_summary=decision.debug_summary,
        raw_text=raw_text,
        consulted=True,
    )
