# Copyright (c) 2026 Harsh Dwivedi
# Licensed under the Harsh Non-Commercial Attribution License (HNCAL) v1.0
# Commercial use requires written permission. See LICENSE for details.

"""
Phase 4 — Auto-pair decider tests.
Tests the general and hair / cosmetic passes, first-claim-wins back
exclusivity, claim-filtered undecided pools and pair construction.
"""

import math

import pytest


# ─── Helpers ─────────────────────────────────────────────────────────────────

def _settings(**kw):
    from labelpair.config import Settings
    return Settings(_env_file=None, **kw)


def _row(url: str, role: str = "back", **kw):
    from labelpair.models.image import ImageRecord
    from labelpair.modules.features import build_feature_row
    return build_feature_row(ImageRecord(url=url, role=role, **kw))


def _run(*rows, **settings_kw):
    from labelpair.modules.candidates import build_candidates
    from labelpair.modules.matching import auto_pair

    settings = _settings(**settings_kw)
    features = {r.url: r for r in rows}
    report = build_candidates(features, settings=settings)
    return auto_pair(features, report.candidates, settings)


# ─── General pass ────────────────────────────────────────────────────────────

def test_clear_winner_auto_pairs():
    from labelpair.models.pairing import PairSource
    from labelpair.modules.matching import AUTO_PAIR_CONFIDENCE

    out = _run(
        _row("front_a.jpg", "front", brand="Acme", product="Vitamin C", size="60 caps"),
        _row("back_a.jpg", "back", brand="Acme", product="Vitamin C", size="60 caps"),
    )
    assert len(out.pairs) == 1
    pair = out.pairs[0]
    assert (pair.front_url, pair.back_url) == ("front_a.jpg", "back_a.jpg")
    assert pair.source == PairSource.AUTO
    assert pair.confidence == AUTO_PAIR_CONFIDENCE
    assert pair.match_score == 6.0
    assert pair.brand == "Acme"
    assert pair.product == "Vitamin C"
    assert pair.size_front == "60 caps"
    assert pair.evidence[0].startswith("AUTO-PAIRED")
    assert "gap=inf" in pair.evidence
    assert out.undecided == {}
    assert out.claimed_backs == frozenset({"back_a.jpg"})


def test_small_gap_leaves_front_undecided():
    out = _run(
        _row("front_a.jpg", "front", brand="Acme", product="Vitamin C"),
        _row("back_a.jpg", "back", brand="Acme", product="Vitamin C"),
        _row("back_b.jpg", "back", brand="Acme", product="Vitamin C"),
    )
    assert out.pairs == []
    assert [c.back_url for c in out.undecided["front_a.jpg"]] == ["back_a.jpg", "back_b.jpg"]
    assert out.claimed_backs == frozenset()


def test_score_below_threshold_leaves_front_undecided():
    # Unknown brand rescue + bottle: 2.0 is a candidate but not an auto-pair
    out = _run(
        _row("front_a.jpg", "front", visual_description="white bottle"),
        _row("back_a.jpg", "back", visual_description="white bottle"),
    )
    assert out.pairs == []
    assert list(out.undecided) == ["front_a.jpg"]


def test_thresholds_are_configurable():
    out = _run(
        _row("front_a.jpg", "front", visual_description="white bottle"),
        _row("back_a.jpg", "back", visual_description="white bottle"),
        auto_pair_score=2.0,
    )
    assert len(out.pairs) == 1


# ─── Back exclusivity ────────────────────────────────────────────────────────

def test_stronger_front_claims_contested_back():
    out = _run(
        _row("front_a.jpg", "front", brand="Acme", product="Vitamin C", variant="Orange"),
        _row("front_b.jpg", "front", brand="Acme", product="Vitamin C"),
        _row("back_x.jpg", "back", brand="Acme", product="Vitamin C", variant="Orange"),
    )
    assert [(p.front_url, p.back_url) for p in out.pairs] == [("front_a.jpg", "back_x.jpg")]
    assert out.exhausted == ["front_b.jpg"]
    assert out.undecided == {}


def test_claimed_best_is_not_replaced_by_runner_up():
    out = _run(
        _row("front_a.jpg", "front", brand="Acme", product="Vitamin C", variant="Orange"),
        _row("front_b.jpg", "front", brand="Acme", product="Vitamin C"),
        _row("back_x.jpg", "back", brand="Acme", product="Vitamin C", variant="Orange"),
        _row("back_y.jpg", "back", brand="Acme", product="Zinc"),
    )
    # front_b's best (back_x) went to front_a; back_y is left for the tie-break
    assert [p.front_url for p in out.pairs] == ["front_a.jpg"]
    assert [c.back_url for c in out.undecided["front_b.jpg"]] == ["back_y.jpg"]
    assert "back_x.jpg" in out.claimed_backs


def test_no_back_is_paired_twice():
    rows = []
    for i in range(4):
        rows.append(_row(f"front_{i}.jpg", "front", brand="Acme", product="Whey"))
    rows.append(_row("back_only.jpg", "back", brand="Acme", product="Whey"))
    out = _run(*rows)
    backs = [p.back_url for p in out.pairs]
    assert len(backs) == len(set(backs))


# ─── Hair / cosmetic pass ────────────────────────────────────────────────────

def test_hair_pass_accepts_lower_score():
    from labelpair.models.pairing import PairSource
    from labelpair.modules.matching import AUTO_PAIR_HAIR_CONFIDENCE

    out = _run(
        _row("front_h.jpg", "front", category_path="Beauty > Hair Care",
             visual_description="white bottle"),
        _row("back_h.jpg", "back", visual_description="white bottle",
             text_extracted="Ingredients: Aqua, Argan Oil"),
    )
    assert len(out.pairs) == 1
    pair = out.pairs[0]
    assert pair.source == PairSource.AUTO_HAIR
    assert pair.confidence == AUTO_PAIR_HAIR_CONFIDENCE
    assert pair.match_score == 2.5
    assert pair.evidence[0].startswith("AUTO-PAIRED[hair]")


def test_hair_pass_requires_cosmetic_cue():
    out = _run(
        _row("front_h.jpg", "front", category_path="Beauty > Hair Care",
             visual_description="white bottle"),
        _row("back_h.jpg", "back", visual_description="white bottle"),
    )
    assert out.pairs == []
    assert list(out.undecided) == ["front_h.jpg"]


def test_hair_pass_skips_non_hair_fronts():
    out = _run(
        _row("front_h.jpg", "front", category_path="Health > Vitamins",
             visual_description="white bottle"),
        _row("back_h.jpg", "back", visual_description="white bottle",
             text_extracted="Ingredients: Aqua"),
    )
    assert out.pairs == []


# ─── Pair construction ───────────────────────────────────────────────────────

def test_score_gap():
    from labelpair.models.pairing import BrandFlag, CandidateScore
    from labelpair.modules.matching import score_gap

    def cand(score):
        return CandidateScore(
            back_url="b.jpg", score=score, brand_flag=BrandFlag.EQUAL, brand_match=True,
            prod_jaccard=0.0, var_jaccard=0.0, size_eq=False, pkg_match=False,
            packaging="unknown", cat_tail_overlap=False, cosmetic_back_cue=False,
        )

    assert score_gap(cand(5.0), cand(3.5)) == pytest.approx(1.5)
    assert math.isinf(score_gap(cand(5.0), None))


def test_build_pair_falls_back_to_unknown_brand():
    from labelpair.models.pairing import PairSource
    from labelpair.modules.candidates import score_pair
    from labelpair.modules.matching import build_pair

    front = _row("front_a.jpg", "front", visual_description="white bottle")
    back = _row("back_a.jpg", "back", visual_description="white bottle")
    cand = score_pair(front, back, settings=_settings())
    pair = build_pair(front, back, cand, ["x"], 0.5, PairSource.ORACLE)
    assert pair.brand == "unknown"
    assert pair.product == ""
    assert pair.size_front is None
