# Copyright (c) 2026 Harsh Dwivedi
# Licensed under the Harsh Non-Commercial Attribution License (HNCAL) v1.0
# Commercial use requires written permission. See LICENSE for details.

"""
LabelPair — Engine Configuration
All thresholds are loaded from environment variables with defaults tuned
on mixed supplement / hair-care batches. Override via .env or environment.
"""

from functools import lru_cache
from typing import Literal, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ─── Candidate Scorer ────────────────────────────────────────────────────
    # Backs scoring below this floor never enter a front's candidate list
    min_pre_score: float = 1.5
    max_candidates: int = 4
    brand_mismatch_penalty: float = 1.5
    pkg_boost_dropper: float = 2.0
    pkg_boost_pouch: float = 1.5
    pkg_boost_default: float = 1.0

    # ─── Auto-Pair Decider ───────────────────────────────────────────────────
    auto_pair_score: float = 3.0
    auto_pair_gap: float = 1.0
    # Hair / cosmetic backs: lower floor, same gap logic
    auto_pair_hair_score: float = 2.4
    auto_pair_hair_gap: float = 0.8
    hair_min_pre_score: float = 1.5

    # ─── Extras Grouper ──────────────────────────────────────────────────────
    max_extras_per_product: int = 4
    extras_min_score: float = 2.0

    # ─── Tie-Break Oracle ────────────────────────────────────────────────────
    disable_tiebreak: bool = False
    oracle_min_match_score: float = 3.0
    oracle_model: str = "gpt-4o-mini"
    oracle_timeout_s: float = 60.0
    openai_api_key: Optional[str] = None

    # ─── Warning Budgets ─────────────────────────────────────────────────────
    max_candidate_build_ms: int = 2000
    ambiguity_front_fraction: float = 0.5
    ambiguity_min_fronts: int = 3

    # ─── Engine ──────────────────────────────────────────────────────────────
    engine_version: str = "labelpair-1.0.0"

    # ─── Logging ─────────────────────────────────────────────────────────────
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # ─── Derived helpers ─────────────────────────────────────────────────────
    def thresholds_snapshot(self) -> dict[str, float]:
        """Threshold subset recorded in every run's metrics."""
        return {
            "min_pre_score": self.min_pre_score,
            "auto_pair_score": self.auto_pair_score,
            "auto_pair_gap": self.auto_pair_gap,
            "auto_pair_hair_score": self.auto_pair_hair_score,
            "auto_pair_hair_gap": self.auto_pair_hair_gap,
            "oracle_min_match_score": self.oracle_min_match_score,
            "extras_min_score": self.extras_min_score,
        }


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached singleton Settings instance."""
    return Settings()
