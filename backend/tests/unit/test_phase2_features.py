# Copyright (c) 2026 Harsh Dwivedi
# Licensed under the Harsh Non-Commercial Attribution License (HNCAL) v1.0
# Commercial use requires written permission. See LICENSE for details.

"""
Phase 2 — FeatureRow builder tests.
Tests record normalisation, malformed / duplicate handling, the
vision-analysis adapter and lone-front role promotion.
"""

import pytest


# ─── Helpers ─────────────────────────────────────────────────────────────────

def _rec(url: str, role: str, **kw) -> dict:
    return {"url": url, "role": role, **kw}


# ─── build_feature_row ───────────────────────────────────────────────────────

def test_feature_row_normalisation():
    from labelpair.models.image import ImageRecord, PackagingHint, Role
    from labelpair.modules.features import build_feature_row

    row = build_feature_row(ImageRecord(
        url=" Shoot\\Front_A.JPG ",
        role="front",
        brand="Jocko Fuel",
        product="Mold Cleanse",
        variant="Berry Blast",
        size="8 oz",
        category_path="Health > Supplements > Detox",
        visual_description="Black stand-up pouch",
        dominant_color="Dark Blue",
        text_extracted="Jocko Mold Cleanse",
        has_visible_text=True,
    ))

    assert row.url == "shoot/front_a.jpg"
    assert row.role == Role.FRONT
    assert row.original_role == Role.FRONT
    assert row.brand_norm == "jocko"
    assert row.product_tokens == ("mold", "cleanse")
    assert row.variant_tokens == ("berry", "blast")
    assert row.size_canonical == "227g"
    assert row.packaging_hint == PackagingHint.POUCH
    assert row.category_tail == "Supplements > Detox"
    assert row.color_key == "dark-blue"
    assert row.has_text is True
    assert row.brand == "Jocko Fuel"


def test_feature_row_is_frozen():
    from pydantic import ValidationError
    from labelpair.models.image import ImageRecord, Role
    from labelpair.modules.features import build_feature_row

    row = build_feature_row(ImageRecord(url="a.jpg", role="front"))
    with pytest.raises(ValidationError):
        row.role = Role.BACK


def test_feature_row_missing_signals_are_empty():
    from labelpair.models.image import ImageRecord, PackagingHint
    from labelpair.modules.features import build_feature_row

    row = build_feature_row(ImageRecord(url="a.jpg"))
    assert row.brand_norm == ""
    assert row.product_tokens == ()
    assert row.size_canonical is None
    assert row.packaging_hint == PackagingHint.UNKNOWN
    assert row.category_tail == ""


# ─── build_features ──────────────────────────────────────────────────────────

def test_build_features_keeps_input_order():
    from labelpair.modules.features import build_features

    result = build_features([
        _rec("c.jpg", "front"),
        _rec("a.jpg", "back"),
        _rec("b.jpg", "side"),
    ])
    assert list(result.features) == ["c.jpg", "a.jpg", "b.jpg"]
    assert set(result.records) == {"a.jpg", "b.jpg", "c.jpg"}
    assert result.warnings == []


def test_build_features_skips_malformed_records():
    from labelpair.modules.features import build_features

    result = build_features([
        _rec("good.jpg", "front"),
        _rec("", "back"),
        {"role": "back"},
        _rec("bad_role.jpg", "upside-down"),
    ])
    assert list(result.features) == ["good.jpg"]
    assert len(result.warnings) == 3
    assert all("malformed record" in w for w in result.warnings)


def test_build_features_duplicate_url_keeps_first():
    from labelpair.models.image import Role
    from labelpair.modules.features import build_features

    result = build_features([
        _rec("Dup.jpg", "front", brand="Acme"),
        _rec("dup.jpg", "back", brand="Other"),
    ])
    assert list(result.features) == ["dup.jpg"]
    assert result.features["dup.jpg"].role == Role.FRONT
    assert any("duplicate" in w for w in result.warnings)


def test_build_features_accepts_models_and_dicts():
    from labelpair.models.image import ImageRecord
    from labelpair.modules.features import build_features

    result = build_features([ImageRecord(url="a.jpg", role="front"), _rec("b.jpg", "back")])
    assert set(result.features) == {"a.jpg", "b.jpg"}


# ─── records_from_analysis ───────────────────────────────────────────────────

def test_records_from_analysis_joins_by_basename():
    from labelpair.modules.features import build_features, records_from_analysis

    analysis = {
        "groups": [{
            "id": "g1",
            "brand": "Acme",
            "product": "Vitamin C",
            "categoryPath": "Health > Vitamins",
            "primaryImageUrl": "https://cdn.test/batch/front.jpg",
            "images": ["https://cdn.test/batch/front.jpg", "https://cdn.test/batch/back.jpg"],
        }],
        "imageInsights": [
            {"url": "/local/front.jpg", "role": "front", "visualDescription": "white bottle"},
            {"url": "/local/back.jpg", "role": "other", "originalRole": "back"},
            {"url": "/local/stray.jpg", "role": "side"},
        ],
    }
    records = records_from_analysis(analysis)

    assert [r["url"] for r in records] == ["/local/front.jpg", "/local/back.jpg"]
    assert records[1]["role"] == "back"
    assert records[0]["brand"] == "Acme"
    assert records[0]["group_id"] == "g1"

    features = build_features(records).features
    assert features["/local/front.jpg"].brand_norm == "acme"


# ─── Role promotion ──────────────────────────────────────────────────────────

def test_promote_lone_front_other_to_back():
    from labelpair.models.image import Role
    from labelpair.modules.features import build_features, promote_lone_front_others

    features = build_features([
        _rec("f.jpg", "front", group_id="g1"),
        _rec("o.jpg", "other", group_id="g1"),
    ]).features
    promoted = promote_lone_front_others(features)

    assert promoted["o.jpg"].role == Role.BACK
    assert promoted["o.jpg"].original_role == Role.OTHER
    # Input map is untouched
    assert features["o.jpg"].role == Role.OTHER
    assert list(promoted) == list(features)


def test_promotion_skips_groups_with_a_back():
    from labelpair.models.image import Role
    from labelpair.modules.features import build_features, promote_lone_front_others

    features = build_features([
        _rec("f.jpg", "front", group_id="g1"),
        _rec("b.jpg", "back", group_id="g1"),
        _rec("o.jpg", "other", group_id="g1"),
    ]).features
    promoted = promote_lone_front_others(features)
    assert promoted["o.jpg"].role == Role.OTHER


def test_promotion_skips_groups_with_two_others():
    from labelpair.models.image import Role
    from labelpair.modules.features import build_features, promote_lone_front_others

    features = build_features([
        _rec("f.jpg", "front", group_id="g1"),
        _rec("o1.jpg", "other", group_id="g1"),
        _rec("o2.jpg", "other", group_id="g1"),
    ]).features
    promoted = promote_lone_front_others(features)
    assert promoted["o1.jpg"].role == Role.OTHER
    assert promoted["o2.jpg"].role == Role.OTHER


def test_promotion_ignores_ungrouped_images():
    from labelpair.models.image import Role
    from labelpair.modules.features import build_features, promote_lone_front_others

    features = build_features([
        _rec("f.jpg", "front"),
        _rec("o.jpg", "other"),
    ]).features
    assert promote_lone_front_others(features)["o.jpg"].role == Role.OTHER
