# Copyright (c) 2026 Harsh Dwivedi
# Licensed under the Harsh Non-Commercial Attribution License (HNCAL) v1.0
# Commercial use requires written permission. See LICENSE for details.

"""
LabelPair — Extras Grouper
Turns finalised pairs into Products and attaches leftover images to them.

Per-product score for an eligible image:
    brand equal to front or back brand    +3   (all three known + differ → reject)
    packaging equal (not other/unknown)   +2
    category-tail token overlap           +1
    same folder as front or back          +1
Attach threshold: EXTRAS_MIN_SCORE (2).

Exclusivity: every image is scored against all products first and goes
to its single best product (ties → earlier product). Each product keeps
its top MAX_EXTRAS_PER_PRODUCT attachments by score (ties → URL); the
overflow is handed to the singleton resolver.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from labelpair.config import Settings, get_settings
from labelpair.models.image import FeatureRow, PackagingHint
from labelpair.models.pairing import Pair, Product, ProductEvidence
from labelpair.utils.logger import get_logger
from labelpair.utils.text_utils import category_tail_overlap, same_folder, slugify

log = get_logger(__name__)

_W_BRAND = 3.0
_W_PACKAGING = 2.0
_W_CATEGORY = 1.0
_W_FOLDER = 1.0

_UNINFORMATIVE_PACKAGING = frozenset({PackagingHint.OTHER, PackagingHint.UNKNOWN})


@dataclass
class ExtrasOutcome:
    products: list[Product]
    # eligible images left unattached (below threshold or capped out), URL order
    unattached: list[str] = field(default_factory=list)
    overflow: list[str] = field(default_factory=list)


def make_product_id(brand: str | None, product: str | None, taken: set[str]) -> str:
    """
    Deterministic slug of brand + product, unique within `taken`.

    Missing brand becomes "unknown"; collisions get _2, _3, … The chosen id
    is added to `taken`.
    """
    brand_part = slugify(brand or "") or "unknown"
    product_part = slugify(product or "")
    base = f"{brand_part}_{product_part}" if product_part else brand_part

    candidate = base
    n = 2
    while candidate in taken:
        candidate = f"{base}_{n}"
        n += 1
    taken.add(candidate)
    return candidate


def _display(row: FeatureRow | None, url: str) -> str:
    if row is not None and row.display_url:
        return row.display_url
    return url


def build_products(
    pairs: list[Pair],
    features: dict[str, FeatureRow],
    taken_ids: set[str] | None = None,
) -> list[Product]:
    """One Product per Pair, in pair order, with empty extras."""
    taken = taken_ids if taken_ids is not None else set()
    products: list[Product] = []
    for pair in pairs:
        front = features.get(pair.front_url)
        back = features.get(pair.back_url)
        products.append(Product(
            product_id=make_product_id(pair.brand, pair.product, taken),
            front_url=pair.front_url,
            back_url=pair.back_url,
            hero_display_url=_display(front, pair.front_url),
            back_display_url=_display(back, pair.back_url),
            extras=[],
            evidence=ProductEvidence(
                brand=pair.brand,
                product=pair.product,
                variant=pair.variant,
                match_score=pair.match_score,
                confidence=pair.confidence,
                triggers=list(pair.evidence),
            ),
        ))
    return products


def score_extra(
    image: FeatureRow,
    front: FeatureRow,
    back: FeatureRow | None,
) -> float | None:
    """
    Score one image against a product's front / back rows.

    Returns None when every brand involved is known and none agree.
    """
    anchors = [front] if back is None else [front, back]
    score = 0.0

    anchor_brands = [a.brand_norm for a in anchors]
    if image.brand_norm and image.brand_norm in anchor_brands:
        score += _W_BRAND
    elif image.brand_norm and all(anchor_brands):
        return None

    if image.packaging_hint not in _UNINFORMATIVE_PACKAGING and any(
        a.packaging_hint == image.packaging_hint for a in anchors
    ):
        score += _W_PACKAGING

    if any(category_tail_overlap(a.category_tail, image.category_tail) for a in anchors):
        score += _W_CATEGORY

    if any(same_folder(a.url, image.url) for a in anchors):
        score += _W_FOLDER

    return score


def attach_extras(
    products: list[Product],
    eligible: list[str],
    features: dict[str, FeatureRow],
    settings: Settings | None = None,
) -> ExtrasOutcome:
    """
    Attach eligible images to products.

    Args:
        products: Products built from the finalised pairs (not mutated)
        eligible: URLs of unattached side / other images and unclaimed backs
        features: URL → FeatureRow
        settings: Engine settings (defaults to cached settings)

    Returns:
        ExtrasOutcome with new Product objects carrying their extras.
    """
    if settings is None:
        settings = get_settings()
    max_extras = settings.max_extras_per_product
    floor = settings.extras_min_score

    anchors = [
        (features[p.front_url], features.get(p.back_url) if p.back_url else None)
        for p in products
    ]

    attached: dict[int, list[tuple[float, str]]] = {}
    unattached: list[str] = []

    for url in sorted(eligible):
        image = features[url]
        best_idx, best_score = -1, float("-inf")
        for idx, (front, back) in enumerate(anchors):
            score = score_extra(image, front, back)
            if score is None or score < floor:
                continue
            if score > best_score:
                best_idx, best_score = idx, score
        if best_idx < 0:
            unattached.append(url)
            continue
        attached.setdefault(best_idx, []).append((best_score, url))

    overflow: list[str] = []
    result: list[Product] = []
    for idx, product in enumerate(products):
        ranked = sorted(attached.get(idx, []), key=lambda item: (-item[0], item[1]))
        room = max(0, max_extras - len(product.extras))
        kept, dropped = ranked[:room], ranked[room:]
        overflow.extend(url for _, url in dropped)
        extras = [url for _, url in kept]
        for score, url in kept:
            log.info("extras_attached", product_id=product.product_id, url=url, score=score)
        if dropped:
            log.info("extras_capped", product_id=product.product_id,
                     kept=len(kept), overflow=len(dropped), max_extras=max_extras)
        result.append(product.model_copy(update={"extras": list(product.extras) + extras}))

    log.info(
        "extras_grouping_complete",
        products=len(result),
        attached=sum(len(p.extras) for p in result),
        unattached=len(unattached),
        overflow=len(overflow),
    )

    return ExtrasOutcome(
        products=result,
        unattached=sorted(unattached + overflow),
        overflow=sorted(overflow),
    )
