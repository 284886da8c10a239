# Copyright (c) 2026 Harsh Dwivedi
# Licensed under the Harsh Non-Commercial Attribution License (HNCAL) v1.0
# Commercial use requires written permission. See LICENSE for details.

"""
LabelPair — FeatureRow Builder
Normalises upstream per-image classification records into canonical
FeatureRows keyed by canonical URL.

Records that fail validation (missing / blank url, unknown role, wrong
field types) are excluded with a warning — they are never guessed into
a pair. Duplicate canonical URLs keep the first record.

Also adapts the upstream {groups, imageInsights} analysis shape into flat
ImageRecords (records_from_analysis), joining insights to their group by
filename.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from pydantic import ValidationError

from labelpair.core.errors import InputRecordError
from labelpair.models.image import FeatureRow, ImageRecord, Role, VisionAnalysis
from labelpair.utils.logger import get_logger
from labelpair.utils.text_utils import (
    basename,
    canonical_url,
    canonicalize_size,
    extract_category_tail,
    extract_packaging,
    normalize_brand,
    normalize_color,
    tokenize,
)

log = get_logger(__name__)


@dataclass
class FeatureBuildResult:
    """Output of build_features — the feature map plus exclusion warnings."""
    features: dict[str, FeatureRow]
    records: dict[str, ImageRecord]                      # canonical url → source record
    warnings: list[str] = field(default_factory=list)


def _coerce_record(raw: ImageRecord | Mapping[str, Any]) -> ImageRecord:
    if isinstance(raw, ImageRecord):
        return raw
    try:
        return ImageRecord.model_validate(raw)
    except ValidationError as exc:
        url = raw.get("url") if isinstance(raw, Mapping) else None
        fields = ",".join(str(e["loc"][0]) for e in exc.errors() if e["loc"])
        raise InputRecordError(f"malformed record url={url!r} fields={fields}") from exc


def build_feature_row(record: ImageRecord) -> FeatureRow:
    """Normalise a single validated record into a FeatureRow."""
    return FeatureRow(
        url=canonical_url(record.url),
        role=record.role,
        original_role=record.role,
        group_id=record.group_id,
        brand_norm=normalize_brand(record.brand),
        product_tokens=tokenize(record.product),
        variant_tokens=tokenize(record.variant),
        size_canonical=canonicalize_size(record.size, record.category_path),
        packaging_hint=extract_packaging(record.visual_description),
        category_path=record.category_path or None,
        category_tail=extract_category_tail(record.category_path),
        has_text=record.has_visible_text,
        text_extracted=record.text_extracted or "",
        color_key=normalize_color(record.dominant_color),
        brand=record.brand,
        product=record.product,
        variant=record.variant,
        size=record.size,
        display_url=record.display_url,
    )


def build_features(
    records: Iterable[ImageRecord | Mapping[str, Any]],
) -> FeatureBuildResult:
    """
    Build the URL → FeatureRow map for one run.

    Args:
        records: Upstream classification records (models or raw dicts)

    Returns:
        FeatureBuildResult with features in input order.
    """
    features: dict[str, FeatureRow] = {}
    sources: dict[str, ImageRecord] = {}
    warnings: list[str] = []

    for raw in records:
        try:
            record = _coerce_record(raw)
        except InputRecordError as exc:
            warnings.append(str(exc))
            log.warning("feature_record_skipped", reason=str(exc))
            continue

        row = build_feature_row(record)
        if row.url in features:
            msg = f"duplicate record url={row.url}; keeping first"
            warnings.append(msg)
            log.warning("feature_record_duplicate", url=row.url)
            continue

        features[row.url] = row
        sources[row.url] = record

    log.info(
        "feature_build_complete",
        images=len(features),
        skipped=len(warnings),
        fronts=sum(1 for f in features.values() if f.role == Role.FRONT),
        backs=sum(1 for f in features.values() if f.role == Role.BACK),
    )

    return FeatureBuildResult(features=features, records=sources, warnings=warnings)


def records_from_analysis(
    analysis: VisionAnalysis | Mapping[str, Any],
) -> list[dict[str, Any]]:
    """
    Flatten an upstream {groups, imageInsights} analysis into record dicts.

    Each insight is joined to the first group listing an image with the
    same basename. Insights with no group are dropped (logged), matching
    the upstream contract that every analysed image belongs to a group.
    The insight's originalRole wins over role when present.
    """
    if not isinstance(analysis, VisionAnalysis):
        analysis = VisionAnalysis.model_validate(analysis)

    group_by_base: dict[str, Any] = {}
    for group in analysis.groups:
        urls = list(group.images)
        if group.primary_image_url:
            urls.insert(0, group.primary_image_url)
        for url in urls:
            base = basename(url).lower()
            if base and base not in group_by_base:
                group_by_base[base] = group

    records: list[dict[str, Any]] = []
    dropped = 0
    for insight in analysis.image_insights:
        group = group_by_base.get(basename(insight.url).lower())
        if group is None:
            dropped += 1
            log.warning("analysis_insight_ungrouped", url=insight.url)
            continue
        records.append({
            "url": insight.url,
            "role": insight.original_role or insight.role,
            "group_id": group.group_id or group.primary_image_url,
            "brand": group.brand,
            "product": group.product,
            "variant": group.variant,
            "size": group.size,
            "category_path": group.category_path,
            "visual_description": insight.visual_description,
            "has_visible_text": insight.has_visible_text,
            "dominant_color": insight.dominant_color,
            "text_extracted": insight.text_extracted,
            "display_url": insight.display_url,
        })

    log.info("analysis_flattened", records=len(records), dropped=dropped)
    return records
