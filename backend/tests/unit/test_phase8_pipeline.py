# Copyright (c) 2026 Harsh Dwivedi
# Licensed under the Harsh Non-Commercial Attribution License (HNCAL) v1.0
# Commercial use requires written permission. See LICENSE for details.

"""
Phase 8 — Pairing orchestrator tests.
Runs whole batches through run_pairing with in-memory oracles and checks
products, extras, singletons, image accounting, metrics and run isolation.
"""

import asyncio
import json

import pytest


# ─── Helpers ─────────────────────────────────────────────────────────────────

class RecordingOracle:
    """Returns a canned reply and records the run_id bound during each call."""

    def __init__(self, reply: dict | None = None):
        self.reply = reply
        self.calls = 0
        self.seen_run_ids: list[str] = []

    async def complete(self, system: str, user: str) -> str:
        import structlog
        self.calls += 1
        self.seen_run_ids.append(structlog.contextvars.get_contextvars().get("run_id"))
        if self.reply is None:
            raise AssertionError("oracle should not be consulted")
        await asyncio.sleep(0)
        return json.dumps(self.reply)


def _settings(**kw):
    from labelpair.config import Settings
    return Settings(_env_file=None, **kw)


def _test_brand(url: str, role: str, **kw) -> dict:
    return {"url": url, "role": role, "brand": "TestBrand", "product": "Test Product", **kw}


def _with_sides(n: int) -> list[dict]:
    records = [
        _test_brand("front_1.jpg", "front", visualDescription="white bottle"),
        _test_brand("back_1.jpg", "back", visualDescription="white bottle"),
    ]
    for i in range(1, n + 1):
        records.append({"url": f"side_{i}.jpg", "role": "side", "brand": "TestBrand",
                        "visualDescription": "white bottle"})
    return records


def _tie_records() -> list[dict]:
    bolt = {"brand": "Bolt", "product": "Protein Powder"}
    return [
        {"url": "front_b.jpg", "role": "front", **bolt},
        {"url": "front_c.jpg", "role": "front", **bolt},
        {"url": "back_b.jpg", "role": "back", **bolt},
        {"url": "back_c.jpg", "role": "back", **bolt},
        {"url": "side_z.jpg", "role": "side"},
    ]


def _tie_reply() -> dict:
    def pair(front, back):
        return {"frontUrl": front, "backUrl": back, "matchScore": 5.0,
                "brand": "Bolt", "product": "Protein Powder", "evidence": ["tokens"]}
    return {
        "pairs": [pair("front_b.jpg", "back_b.jpg"), pair("front_c.jpg", "back_c.jpg")],
        "singletons": [],
        "debugSummary": ["two confident pairs"],
    }


async def _run(records, oracle=None, **settings_kw):
    from labelpair.core.pipeline import run_pairing
    return await run_pairing(records, oracle=oracle, settings=_settings(**settings_kw))


# ─── Basic batches ───────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_single_pair_becomes_one_product():
    run = await _run([
        _test_brand("front_1.jpg", "front"),
        _test_brand("back_1.jpg", "back"),
    ], oracle=RecordingOracle())

    result = run.result
    assert len(result.pairs) == 1
    assert len(result.products) == 1
    product = result.products[0]
    assert (product.front_url, product.back_url) == ("front_1.jpg", "back_1.jpg")
    assert product.extras == []
    assert product.evidence.brand == "TestBrand"
    assert product.evidence.product == "Test Product"
    assert result.singletons == []


@pytest.mark.asyncio
async def test_side_image_attaches_as_extra():
    oracle = RecordingOracle()
    run = await _run(_with_sides(1), oracle=oracle)

    assert run.metrics.strategy == "heuristic"
    assert [p.source.value for p in run.result.pairs] == ["auto"]
    assert run.result.products[0].extras == ["side_1.jpg"]
    assert run.result.singletons == []
    assert oracle.calls == 0


@pytest.mark.asyncio
async def test_extras_overflow_becomes_singleton():
    from labelpair.models.pairing import SingletonReason

    run = await _run(_with_sides(3), oracle=RecordingOracle(), max_extras_per_product=2)

    assert run.result.products[0].extras == ["side_1.jpg", "side_2.jpg"]
    assert [(s.url, s.reason) for s in run.result.singletons] == [
        ("side_3.jpg", SingletonReason.NO_MATCH),
    ]


@pytest.mark.asyncio
async def test_zero_fronts_yields_empty_result():
    oracle = RecordingOracle()
    run = await _run([
        {"url": "back_1.jpg", "role": "back", "brand": "Acme"},
        {"url": "side_1.jpg", "role": "side", "brand": "Acme"},
    ], oracle=oracle)

    assert run.result.pairs == []
    assert run.result.products == []
    assert run.result.singletons == []
    assert any("no front images" in line for line in run.result.debug_summary)
    assert oracle.calls == 0


@pytest.mark.asyncio
async def test_empty_batch():
    run = await _run([], oracle=RecordingOracle())
    assert run.result.pairs == []
    assert run.result.debug_summary == []
    assert run.metrics.images == 0


@pytest.mark.asyncio
async def test_front_without_candidates_becomes_solo_product():
    run = await _run([
        _test_brand("front_1.jpg", "front"),
        _test_brand("back_1.jpg", "back"),
        {"url": "front_z.jpg", "role": "front", "brand": "Zeta", "product": "Shampoo"},
    ], oracle=RecordingOracle())

    solo = [p for p in run.result.products if p.back_url is None]
    assert [p.front_url for p in solo] == ["front_z.jpg"]
    assert solo[0].evidence.triggers == ["solo-product-unique-brand"]
    assert run.result.singletons == []


@pytest.mark.asyncio
async def test_exhausted_front_is_terminal_singleton():
    from labelpair.models.pairing import SingletonReason

    run = await _run([
        {"url": "front_a.jpg", "role": "front", "brand": "Acme", "product": "Vitamin C",
         "variant": "Orange"},
        {"url": "front_b.jpg", "role": "front", "brand": "Acme", "product": "Vitamin C"},
        {"url": "back_x.jpg", "role": "back", "brand": "Acme", "product": "Vitamin C",
         "variant": "Orange"},
    ], oracle=RecordingOracle())

    assert [(p.front_url, p.back_url) for p in run.result.pairs] == [("front_a.jpg", "back_x.jpg")]
    assert [(s.url, s.reason) for s in run.result.singletons] == [
        ("front_b.jpg", SingletonReason.CANDIDATES_CLAIMED),
    ]
    assert run.metrics.reasons == {"candidates_claimed": 1}


# ─── Tie-break integration ───────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_tied_fronts_are_resolved_by_oracle():
    oracle = RecordingOracle(_tie_reply())
    run = await _run(_tie_records(), oracle=oracle)

    assert oracle.calls == 1
    assert [(p.front_url, p.back_url) for p in run.result.pairs] == [
        ("front_b.jpg", "back_b.jpg"),
        ("front_c.jpg", "back_c.jpg"),
    ]
    assert run.metrics.oracle_pairs == 2
    assert run.oracle_raw_text is not None
    assert "two confident pairs" in run.result.debug_summary


@pytest.mark.asyncio
async def test_oracle_failure_propagates_without_result():
    from labelpair.core.errors import OracleUnavailableError

    class DownOracle:
        async def complete(self, system: str, user: str) -> str:
            raise OracleUnavailableError("connection refused")

    with pytest.raises(OracleUnavailableError):
        await _run(_tie_records(), oracle=DownOracle())


# ─── Run context ─────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_run_id_is_bound_during_run():
    import structlog
    from labelpair.core.pipeline import run_pairing

    oracle = RecordingOracle(_tie_reply())
    await run_pairing(_tie_records(), oracle=oracle, settings=_settings(), run_id="run-123")

    assert oracle.seen_run_ids == ["run-123"]
    assert "run_id" not in structlog.contextvars.get_contextvars()


@pytest.mark.asyncio
async def test_concurrent_runs_are_isolated():
    from labelpair.core.pipeline import run_pairing

    settings = _settings()
    oracle_a = RecordingOracle(_tie_reply())
    oracle_b = RecordingOracle(_tie_reply())
    run_a, run_b = await asyncio.gather(
        run_pairing(_tie_records(), oracle=oracle_a, settings=settings, run_id="a"),
        run_pairing(_tie_records(), oracle=oracle_b, settings=settings, run_id="b"),
    )

    assert oracle_a.seen_run_ids == ["a"]
    assert oracle_b.seen_run_ids == ["b"]
    assert run_a.result.model_dump() == run_b.result.model_dump()


# ─── Accounting ──────────────────────────────────────────────────────────────

def _accounting_fixture():
    from labelpair.models.pairing import Pair, PairSource
    from labelpair.modules.features import build_features
    from labelpair.modules.grouping import build_products

    features = build_features([
        _test_brand("front_1.jpg", "front"),
        _test_brand("back_1.jpg", "back"),
    ]).features
    pair = Pair(
        front_url="front_1.jpg", back_url="back_1.jpg", match_score=5.0,
        brand="TestBrand", product="Test Product", evidence=["x"],
        confidence=0.95, source=PairSource.AUTO,
    )
    return features, [pair], build_products([pair], features)


def test_accounting_passes_for_complete_result():
    from labelpair.core.pipeline import check_accounting
    features, pairs, products = _accounting_fixture()
    check_accounting(features, pairs, products, [])


def test_accounting_rejects_duplicate():
    from labelpair.core.errors import AccountingError
    from labelpair.core.pipeline import check_accounting

    features, pairs, products = _accounting_fixture()
    products[0] = products[0].model_copy(update={"extras": ["back_1.jpg"]})
    with pytest.raises(AccountingError, match="duplicated=\\['back_1.jpg'\\]"):
        check_accounting(features, pairs, products, [])


def test_accounting_rejects_missing_image():
    from labelpair.core.errors import AccountingError
    from labelpair.core.pipeline import check_accounting

    features, _, _ = _accounting_fixture()
    with pytest.raises(AccountingError, match="missing"):
        check_accounting(features, [], [], [])


def test_accounting_rejects_unknown_url():
    from labelpair.core.errors import AccountingError
    from labelpair.core.pipeline import check_accounting
    from labelpair.models.pairing import Singleton, SingletonReason

    features, pairs, products = _accounting_fixture()
    with pytest.raises(AccountingError, match="unknown=\\['ghost.jpg'\\]"):
        check_accounting(features, pairs, products,
                         [Singleton(url="ghost.jpg", reason=SingletonReason.NO_MATCH)])


def test_accounting_rejects_unrecognised_singleton_reason():
    from labelpair.core.errors import AccountingError
    from labelpair.core.pipeline import check_accounting
    from labelpair.models.pairing import Singleton, SingletonReason

    features, _, _ = _accounting_fixture()
    singletons = [
        Singleton(url="front_1.jpg", reason="Declined despite candidates: weak evidence"),
        Singleton(url="back_1.jpg", reason="because"),
    ]
    with pytest.raises(AccountingError, match="unrecognised singleton reason: urls=\\['back_1.jpg'\\]"):
        check_accounting(features, [], [], singletons)

    singletons[1] = Singleton(url="back_1.jpg", reason=SingletonReason.NO_MATCH)
    check_accounting(features, [], [], singletons)


# ─── Metrics and wire output ─────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_metrics_summary():
    from labelpair.core.metrics import format_metrics_log
    from labelpair.core.pipeline import run_pairing

    settings = _settings(max_extras_per_product=2)
    run = await run_pairing(_with_sides(3), oracle=RecordingOracle(), settings=settings)
    m = run.metrics

    assert (m.images, m.fronts, m.backs) == (5, 1, 1)
    assert (m.auto_pairs, m.oracle_pairs, m.solver_pairs) == (1, 0, 0)
    assert (m.products, m.extras, m.singletons) == (1, 2, 1)
    assert m.reasons == {"no_match": 1}
    assert m.by_brand["testbrand"].pair_rate == 1.0
    assert m.thresholds == settings.thresholds_snapshot()
    assert m.duration_ms >= 0.0
    line = format_metrics_log(m)
    assert line.startswith("METRICS strategy=heuristic images=5 fronts=1 backs=1")
    assert "extras=2" in line


def test_reason_buckets():
    from labelpair.core.metrics import reason_bucket
    from labelpair.models.pairing import SingletonReason

    assert reason_bucket("Declined despite candidates: weak evidence") == "declined_despite_candidates"
    assert reason_bucket(SingletonReason.TIEBREAK_DISABLED) == "tiebreak_disabled"
    assert reason_bucket(SingletonReason.NO_MATCH) == "no_match"
    assert reason_bucket("something else") == "other"


@pytest.mark.asyncio
async def test_result_serialises_camel_case():
    run = await _run(_with_sides(1), oracle=RecordingOracle())
    wire = run.result.model_dump(by_alias=True, mode="json")

    assert set(wire) == {"engineVersion", "pairs", "products", "singletons", "debugSummary"}
    assert wire["engineVersion"] == "labelpair-1.0.0"
    assert {"frontUrl", "backUrl", "matchScore", "confidence", "source"} <= set(wire["pairs"][0])
    assert {"productId", "heroDisplayUrl", "backDisplayUrl", "extras"} <= set(wire["products"][0])
