# Copyright (c) 2026 Harsh Dwivedi
# Licensed under the Harsh Non-Commercial Attribution License (HNCAL) v1.0
# Commercial use requires written permission. See LICENSE for details.

"""
LabelPair — Singleton Resolver
Last chance for images nothing else claimed. Images are processed in URL
order; each ends in exactly one of:

  1. solo Product   — a front with a brand no product carries yet and a
                      product signal (back_url=None, confidence 0.5)
  2. weak extra     — best product with spare capacity scoring ≥ 2
                      (brand equal +2, shared filename prefix +1)
  3. Singleton      — reason "no matching product or unique brand"
"""

from __future__ import annotations

from dataclasses import dataclass, field

from labelpair.config import Settings, get_settings
from labelpair.models.image import FeatureRow, Role
from labelpair.models.pairing import Product, ProductEvidence, Singleton, SingletonReason
from labelpair.modules.grouping.extras_grouper import make_product_id
from labelpair.utils.logger import get_logger
from labelpair.utils.text_utils import basename

log = get_logger(__name__)

SOLO_PRODUCT_CONFIDENCE = 0.5

_W_BRAND = 2.0
_W_PREFIX = 1.0
_MIN_WEAK_SCORE = 2.0
_PREFIX_LEN = 9          # e.g. "20251115_" camera timestamp prefix


@dataclass
class SingletonOutcome:
    products: list[Product]
    singletons: list[Singleton] = field(default_factory=list)
    solo_fronts: list[str] = field(default_factory=list)
    weak_extras: list[str] = field(default_factory=list)


def _product_brands(products: list[Product], features: dict[str, FeatureRow]) -> set[str]:
    brands: set[str] = set()
    for p in products:
        for url in (p.front_url, p.back_url):
            row = features.get(url) if url else None
            if row is not None and row.brand_norm:
                brands.add(row.brand_norm)
    return brands


def _shares_prefix(url_a: str, url_b: str) -> bool:
    prefix = basename(url_a)[:_PREFIX_LEN]
    return len(prefix) == _PREFIX_LEN and basename(url_b).startswith(prefix)


def _weak_score(image: FeatureRow, product: Product, features: dict[str, FeatureRow]) -> float:
    front = features[product.front_url]
    score = 0.0
    if image.brand_norm and image.brand_norm == front.brand_norm:
        score += _W_BRAND
    if _shares_prefix(image.url, product.front_url):
        score += _W_PREFIX
    return score


def _solo_product(row: FeatureRow, taken_ids: set[str]) -> Product:
    brand = row.brand or row.brand_norm
    product = row.product or " ".join(row.product_tokens)
    return Product(
        product_id=make_product_id(brand, product, taken_ids),
        front_url=row.url,
        back_url=None,
        hero_display_url=row.display_url or row.url,
        back_display_url=None,
        extras=[],
        evidence=ProductEvidence(
            brand=brand,
            product=product,
            variant=row.variant or (" ".join(row.variant_tokens) or None),
            match_score=0.0,
            confidence=SOLO_PRODUCT_CONFIDENCE,
            triggers=["solo-product-unique-brand"],
        ),
    )


def resolve_singletons(
    unattached: list[str],
    products: list[Product],
    features: dict[str, FeatureRow],
    settings: Settings | None = None,
) -> SingletonOutcome:
    """
    Resolve every leftover image.

    Args:
        unattached: URLs not in any pair, product extras or terminal singleton
        products:   Products after extras grouping (not mutated)
        features:   URL → FeatureRow
        settings:   Engine settings (defaults to cached settings)
    """
    if settings is None:
        settings = get_settings()
    max_extras = settings.max_extras_per_product

    result = [p.model_copy(update={"extras": list(p.extras)}) for p in products]
    taken_ids = {p.product_id for p in result}
    brands = _product_brands(result, features)

    singletons: list[Singleton] = []
    solo_fronts: list[str] = []
    weak_extras: list[str] = []

    for url in sorted(unattached):
        row = features[url]

        is_front = Role.FRONT in (row.role, row.original_role)
        if is_front and row.brand_norm and row.brand_norm not in brands and row.product_tokens:
            product = _solo_product(row, taken_ids)
            result.append(product)
            brands.add(row.brand_norm)
            solo_fronts.append(url)
            log.info("solo_product_created", url=url, product_id=product.product_id,
                     brand=row.brand_norm)
            continue

        best_idx, best_score = -1, 0.0
        for idx, product in enumerate(result):
            if len(product.extras) >= max_extras:
                continue
            score = _weak_score(row, product, features)
            if score > best_score:
                best_idx, best_score = idx, score

        if best_idx >= 0 and best_score >= _MIN_WEAK_SCORE:
            result[best_idx].extras.append(url)
            weak_extras.append(url)
            log.info("weak_extra_attached", url=url,
                     product_id=result[best_idx].product_id, score=best_score)
            continue

        singletons.append(Singleton(url=url, reason=SingletonReason.NO_MATCH))

    log.info(
        "singleton_resolution_complete",
        solo_products=len(solo_fronts),
        weak_extras=len(weak_extras),
        singletons=len(singletons),
    )

    return SingletonOutcome(
        products=result,
        singletons=singletons,
        solo_fronts=solo_fronts,
        weak_extras=weak_extras,
    )
