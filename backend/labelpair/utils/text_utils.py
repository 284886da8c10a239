# Copyright (c) 2026 Harsh Dwivedi
# Licensed under the Harsh Non-Commercial Attribution License (HNCAL) v1.0
# Commercial use requires written permission. See LICENSE for details.

"""
LabelPair — Text & URL Utilities
Pure helpers shared by the feature builder, candidate scorer and grouping
stages: URL canonicalisation, brand / size / packaging normalisation,
token-set similarity and filename proximity.
"""

from __future__ import annotations

import re

from rapidfuzz.distance import Levenshtein

from labelpair.models.image import PackagingHint

# Corporate / marketing suffixes that never identify a brand on their own
_BRAND_SUFFIX_RE = re.compile(
    r"\b(inc|llc|ltd|corp|company|brands|supplements|nutrition|wellness|fuel)\b\.?",
    re.IGNORECASE,
)
_GENERIC_BRAND_WORDS = frozenset({"by", "from", "the", "a", "an"})
_TOKEN_SPLIT_RE = re.compile(r"[^a-z0-9+.-]+")
_NON_ALNUM_RE = re.compile(r"[^a-z0-9]+")

# Categories whose sizes are compared in metric units
_METRIC_CATEGORY_RE = re.compile(
    r"supplement|vitamin|nutrition|food|beverage|hair|cosmetic|skin", re.IGNORECASE
)
_HAIR_COSMETIC_RE = re.compile(r"hair|cosmetic|skin|styling|beauty", re.IGNORECASE)
_CONFLICT_HAIR_RE = re.compile(r"hair|cosmetic|beauty", re.IGNORECASE)
_CONFLICT_SUPPLEMENT_RE = re.compile(r"supplement|food|beverage|vitamin|nutrition", re.IGNORECASE)

_IMAGE_EXT_RE = re.compile(r"\.(jpe?g|png|webp|gif)$", re.IGNORECASE)
_SHADE_PREFIX_RE = re.compile(r"^(light-|dark-|deep-|bright-|pale-|dim-)", re.IGNORECASE)


# ─── URLs ────────────────────────────────────────────────────────────────────

def canonical_url(url: str) -> str:
    """Canonical image key: trimmed, forward slashes, lowercased."""
    return url.strip().replace("\\", "/").lower()


def basename(url: str) -> str:
    """Filename component of a URL or path, query string removed."""
    no_query = url.strip().split("?")[0]
    return no_query.split("/")[-1]


def path_parts(url: str) -> tuple[str, str]:
    """Split a URL into (folder, filename stem without image extension)."""
    parts = url.split("/")
    folder = "/".join(parts[:-1])
    stem = _IMAGE_EXT_RE.sub("", parts[-1])
    return folder, stem


def filename_proximity(url_a: str, url_b: str) -> bool:
    """True if both images share a folder or have near-identical stems."""
    folder_a, stem_a = path_parts(url_a)
    folder_b, stem_b = path_parts(url_b)
    if folder_a and folder_a == folder_b:
        return True
    if len(stem_a) > 2 and len(stem_b) > 2:
        return Levenshtein.distance(stem_a.lower(), stem_b.lower()) <= 2
    return False


def same_folder(url_a: str, url_b: str) -> bool:
    folder_a, _ = path_parts(url_a)
    folder_b, _ = path_parts(url_b)
    return bool(folder_a) and folder_a == folder_b


# ─── Normalisation ───────────────────────────────────────────────────────────

def normalize_brand(raw: str | None) -> str:
    """
    Reduce a brand string to its core identifier.

    "Jocko Fuel" → "jocko", "Root Brands" → "root", "Unknown" → "".
    Multi-word brands keep their first significant token.
    """
    if not raw or raw.strip().lower() == "unknown":
        return ""
    normalized = _BRAND_SUFFIX_RE.sub("", raw.lower())
    normalized = _NON_ALNUM_RE.sub(" ", normalized).strip()
    tokens = [t for t in normalized.split() if t and t not in _GENERIC_BRAND_WORDS]
    if len(normalized.split()) > 1 and tokens:
        return tokens[0]
    return " ".join(normalized.split())


def tokenize(text: str | None) -> tuple[str, ...]:
    if not text:
        return ()
    return tuple(t for t in _TOKEN_SPLIT_RE.split(text.lower()) if t)


def canonicalize_size(size: str | None, category_path: str | None) -> str | None:
    """
    Canonicalise a size label to g / ml for categories that sell by weight
    or volume; other categories keep the raw label.
    """
    if not size or not size.strip():
        return None
    size = size.strip()
    if not _METRIC_CATEGORY_RE.search(category_path or ""):
        return size

    g_match = re.search(r"(\d+)\s*g\b", size, re.IGNORECASE)
    if g_match:
        return f"{g_match.group(1)}g"

    fl_oz_match = re.search(r"([\d.]+)\s*fl\.?\s*oz", size, re.IGNORECASE)
    if fl_oz_match:
        return f"{round(float(fl_oz_match.group(1)) * 29.573)}ml"

    oz_match = re.search(r"([\d.]+)\s*oz(?!\s*\()", size, re.IGNORECASE)
    if oz_match and not re.search(r"fl", size, re.IGNORECASE):
        return f"{round(float(oz_match.group(1)) * 28.35)}g"

    return size


def extract_packaging(visual_description: str | None) -> PackagingHint:
    if not visual_description:
        return PackagingHint.UNKNOWN
    lower = visual_description.lower()
    if re.search(r"resealable|stand-up|pouch", lower):
        return PackagingHint.POUCH
    if re.search(r"dropper|pipette|tincture", lower):
        return PackagingHint.DROPPER_BOTTLE
    if re.search(r"\bbottle\b", lower):
        return PackagingHint.BOTTLE
    if re.search(r"\bjar\b", lower):
        return PackagingHint.JAR
    if re.search(r"\btube\b", lower):
        return PackagingHint.TUBE
    if re.search(r"canister|tub", lower):
        return PackagingHint.CANISTER
    return PackagingHint.OTHER


def extract_category_tail(category_path: str | None) -> str:
    """Last two nodes of a 'A > B > C' category path."""
    if not category_path:
        return ""
    parts = [p for p in re.split(r"\s*>\s*", category_path.strip()) if p]
    return " > ".join(parts[-2:])


def normalize_color(color: str | None) -> str:
    if not color:
        return ""
    return re.sub(r"\s+", "-", color.strip().lower())


def slugify(text: str) -> str:
    """Lowercase, non-alphanumeric runs collapsed to a single underscore."""
    return _NON_ALNUM_RE.sub("_", text.lower()).strip("_")


# ─── Similarity ──────────────────────────────────────────────────────────────

def jaccard(a: tuple[str, ...] | list[str], b: tuple[str, ...] | list[str]) -> float:
    set_a, set_b = set(a), set(b)
    union = set_a | set_b
    if not union:
        return 0.0
    return len(set_a & set_b) / len(union)


def category_tail_overlap(tail_a: str, tail_b: str) -> bool:
    if not tail_a or not tail_b:
        return False
    # Word tokens only: separators like ">" and "&" are not evidence
    tokens_a = set(re.findall(r"[a-z0-9]+", tail_a.lower()))
    tokens_b = set(re.findall(r"[a-z0-9]+", tail_b.lower()))
    return bool(tokens_a & tokens_b)


def colors_match(color_a: str, color_b: str) -> bool:
    """Same dominant colour, ignoring shade modifiers (light-/dark-/…)."""
    if not color_a or not color_b:
        return False
    if color_a == color_b:
        return True
    return _SHADE_PREFIX_RE.sub("", color_a) == _SHADE_PREFIX_RE.sub("", color_b)


def is_hair_cosmetic(category_path: str | None) -> bool:
    return bool(category_path) and bool(_HAIR_COSMETIC_RE.search(category_path))


def has_category_conflict(cat_a: str | None, cat_b: str | None) -> bool:
    """Hair/cosmetic on one side and supplement/food on the other."""
    if not cat_a or not cat_b:
        return False
    a_hair = bool(_CONFLICT_HAIR_RE.search(cat_a))
    b_hair = bool(_CONFLICT_HAIR_RE.search(cat_b))
    a_supp = bool(_CONFLICT_SUPPLEMENT_RE.search(cat_a))
    b_supp = bool(_CONFLICT_SUPPLEMENT_RE.search(cat_b))
    return (a_hair and b_supp) or (a_supp and b_hair)
